"""Tests for specgen.parser.ignore."""

from __future__ import annotations

import logging

import pytest

from specgen.exceptions import RefResolutionError
from specgen.models import IgnoreConfig
from specgen.parser.document import Document
from specgen.parser.ignore import apply_ignore, component_name


class TestComponentName:
    @pytest.mark.parametrize("entry", ["Pet", "/Pet", "#/components/schemas/Pet"])
    def test_accepted_forms(self, entry: str) -> None:
        assert component_name(entry) == "Pet"

    def test_escaped_pointer(self) -> None:
        assert component_name("#/components/schemas/a~1b") == "a/b"


class TestApplyIgnore:
    def test_empty_config_returns_same_document(self, petstore_document: Document) -> None:
        assert apply_ignore(petstore_document, IgnoreConfig()) is petstore_document

    def test_removes_path(self, petstore_document: Document) -> None:
        filtered = apply_ignore(petstore_document, IgnoreConfig(paths=["/events"]))
        assert "/events" not in filtered.paths()
        assert "/pets" in filtered.paths()

    def test_does_not_mutate_input(self, petstore_document: Document) -> None:
        apply_ignore(petstore_document, IgnoreConfig(paths=["/events"], components=["Labels"]))
        assert "/events" in petstore_document.paths()
        assert "Labels" in petstore_document.schemas()

    def test_removes_component_and_records_pointer(self, petstore_document: Document) -> None:
        filtered = apply_ignore(petstore_document, IgnoreConfig(components=["/Labels"]))
        assert "Labels" not in filtered.schemas()
        assert "#/components/schemas/Labels" in filtered.ignored

    def test_reference_to_ignored_component_fails(self, petstore_document: Document) -> None:
        filtered = apply_ignore(petstore_document, IgnoreConfig(components=["PetBase"]))
        with pytest.raises(RefResolutionError, match="ignored component"):
            filtered.resolve_pointer("#/components/schemas/PetBase")

    def test_unknown_entries_only_warn(
        self,
        petstore_document: Document,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="specgen"):
            filtered = apply_ignore(
                petstore_document,
                IgnoreConfig(paths=["/nowhere"], components=["Ghost"]),
            )
        assert filtered.paths().keys() == petstore_document.paths().keys()
        assert "/nowhere" in caplog.text
        assert "Ghost" in caplog.text

    def test_version_preserved(self, petstore_document: Document) -> None:
        filtered = apply_ignore(petstore_document, IgnoreConfig(paths=["/events"]))
        assert filtered.version == "3.1.0"
