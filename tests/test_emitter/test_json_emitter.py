"""Tests for the JSON IR emitter."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from specgen.emitter import EmitterFormat, get_emitter
from specgen.emitter.json_ir import JsonEmitter
from specgen.emitter.python import PythonEmitter
from specgen.exceptions import EmitError
from specgen.parser.document import Document
from specgen.pipeline import GeneratedIR, build_ir
from specgen.resolver.graph import TypeGraph


@pytest.fixture
def ir_data(petstore_document: Document) -> dict:
    files = JsonEmitter().render(build_ir(petstore_document))
    assert list(files) == ["ir.json"]
    return json.loads(files["ir.json"])


class TestJsonEmitter:
    def test_top_level_keys(self, ir_data: dict) -> None:
        assert set(ir_data) == {"title", "servers", "metadata", "types", "operations"}
        assert ir_data["servers"] == ["https://petstore.example.com/v1"]

    def test_types_carry_names_and_paths(self, ir_data: dict) -> None:
        declared = {t["name"]: t for t in ir_data["types"] if t["declared"]}
        assert declared["Owner"]["path"] == "/Pet/owner"
        assert declared["Owner"]["kind"] == "struct"
        assert declared["Animal"]["match"] == "discriminator"

    def test_operations(self, ir_data: dict) -> None:
        ops = {op["id"]: op for op in ir_data["operations"]}
        assert ops["listPets"]["name"] == "list_pets"
        assert ops["streamEvents"]["is_stream"] is True
        assert [r["status_code"] for r in ops["listPets"]["responses"]] == [200, 404]

    def test_emit_writes_one_file(self, petstore_document: Document, tmp_path: Path) -> None:
        written = JsonEmitter().emit(build_ir(petstore_document), tmp_path)
        assert written == [tmp_path / "ir.json"]

    def test_requires_frozen_graph(self) -> None:
        with pytest.raises(EmitError):
            JsonEmitter().render(GeneratedIR(graph=TypeGraph()))


class TestGetEmitter:
    def test_formats(self) -> None:
        assert isinstance(get_emitter(EmitterFormat.JSON), JsonEmitter)
        assert isinstance(get_emitter(EmitterFormat.PYTHON), PythonEmitter)

    def test_accepts_plain_strings(self) -> None:
        assert get_emitter("json").name == "json"
