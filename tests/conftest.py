"""Shared test fixtures for specgen.

Provides the petstore fixture document, small inline documents, an
isolated working directory for config resolution, and a CLI runner.
These fixtures are automatically discovered by pytest and available to
all test modules without explicit imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
import yaml

from specgen.output import reset_output
from specgen.parser.document import Document


FIXTURES_DIR = Path(__file__).parent / "fixtures"
PETSTORE_PATH = FIXTURES_DIR / "petstore_3.1.yaml"


def make_document(
    schemas: dict[str, Any] | None = None,
    paths: dict[str, Any] | None = None,
    **extra: Any,
) -> Document:
    """Wrap inline ``components.schemas`` and ``paths`` into a Document."""
    raw: dict[str, Any] = {
        "openapi": "3.1.0",
        "info": {"title": "Test API", "version": "1.0.0"},
        "paths": paths or {},
        "components": {"schemas": schemas or {}},
    }
    raw.update(extra)
    return Document(raw, version="3.1.0")


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time, and its RichHandler is attached to the ``specgen``
    logger. When Typer's CliRunner redirects those streams the cached
    references go stale, so a fresh manager is forced on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@pytest.fixture
def petstore_raw() -> dict[str, Any]:
    """Raw petstore 3.1 document."""
    with open(PETSTORE_PATH, encoding="utf-8") as f:
        return yaml.safe_load(f)


@pytest.fixture
def petstore_document(petstore_raw: dict[str, Any]) -> Document:
    return Document(petstore_raw, version="3.1.0")


@pytest.fixture
def petstore_path() -> Path:
    return PETSTORE_PATH


@pytest.fixture
def component_document() -> Document:
    """The nested-component document used by the mapping scenarios."""
    return make_document(
        schemas={
            "Component": {
                "type": "object",
                "properties": {
                    "SubComponent": {
                        "type": "object",
                        "properties": {
                            "TestObject": {
                                "type": "object",
                                "properties": {"value": {"type": "string"}},
                            }
                        },
                    }
                },
            }
        }
    )


# ---------------------------------------------------------------------------
# Isolation
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run in an empty working directory with no config env vars.

    Returns the working directory.
    """
    workdir = tmp_path / "project"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    monkeypatch.delenv("SPECGEN_CONFIG", raising=False)
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setenv("NO_COLOR", "1")
    return workdir


@pytest.fixture
def cli_runner():  # noqa: ANN201
    from typer.testing import CliRunner

    return CliRunner()


@pytest.fixture
def make_doc():  # noqa: ANN201
    """Factory fixture for inline documents (see :func:`make_document`)."""
    return make_document
