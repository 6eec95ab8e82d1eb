"""Fetch raw OpenAPI documents from a URL, a local file, or stdin.

This is the only module of the parser sub-package that performs I/O. It
reads the source, detects JSON versus YAML, and checks that the document
declares an OpenAPI 3.x version. Everything downstream works on the
resulting plain dictionary wrapped in a :class:`~specgen.parser.document.Document`.

Public functions:

* :func:`load_spec` -- read and parse a document from any supported source.
* :func:`validate_openapi_version` -- return the ``openapi`` version string,
  rejecting Swagger 2.x and non-3.x documents.
* :func:`load_document` -- both of the above, returning a ``Document``.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any

import httpx
import yaml

from specgen.exceptions import ParseError
from specgen.parser.document import Document

logger = logging.getLogger(__name__)


def load_document(source: str) -> Document:
    """Load, parse and version-check a document.

    Args:
        source: A URL (http/https), file path, or ``-`` for stdin.

    Returns:
        A :class:`~specgen.parser.document.Document` over the parsed
        dictionary.

    Raises:
        ParseError: If the source cannot be read or parsed, or declares an
            unsupported version.
    """
    raw = load_spec(source)
    version = validate_openapi_version(raw)
    logger.debug("Loaded OpenAPI %s document from %s", version, source)
    return Document(raw, version=version)


def load_spec(source: str) -> dict[str, Any]:
    """Load an OpenAPI document from URL, file path, or stdin (``-``).

    Args:
        source: A URL (http/https), file path, or ``-`` for stdin.

    Returns:
        The parsed document as a dictionary.

    Raises:
        ParseError: If the source cannot be loaded or parsed.
    """
    if source == "-":
        return _load_from_stdin()
    if source.startswith(("http://", "https://")):
        return _load_from_url(source)
    return _load_from_file(source)


def _load_from_stdin() -> dict[str, Any]:
    try:
        content = sys.stdin.read()
    except OSError as exc:
        raise ParseError(f"Failed to read from stdin: {exc}") from exc

    if not content.strip():
        raise ParseError("No input received from stdin")

    return _parse_content(content, hint="")


def _load_from_url(url: str) -> dict[str, Any]:
    """Fetch a document over HTTP, using the response content type as a format hint."""
    try:
        response = httpx.get(url, timeout=30.0, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise ParseError(
            f"HTTP {exc.response.status_code} fetching document from {url}"
        ) from exc
    except httpx.RequestError as exc:
        raise ParseError(f"Failed to fetch document from {url}: {exc}") from exc

    content_type = response.headers.get("content-type", "")
    hint = ""
    if "json" in content_type:
        hint = "json"
    elif "yaml" in content_type or "yml" in content_type:
        hint = "yaml"

    return _parse_content(response.text, hint=hint)


def _load_from_file(path: str) -> dict[str, Any]:
    """Read a local document; ``.json``/``.yaml``/``.yml`` suffixes pick the parser."""
    file_path = Path(path)
    if not file_path.is_file():
        raise ParseError(f"Document not found: {path}")

    try:
        content = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ParseError(f"Failed to read {path}: {exc}") from exc

    if not content.strip():
        raise ParseError(f"Document is empty: {path}")

    suffix = file_path.suffix.lower()
    hint = ""
    if suffix == ".json":
        hint = "json"
    elif suffix in (".yaml", ".yml"):
        hint = "yaml"

    return _parse_content(content, hint=hint)


def _parse_content(content: str, hint: str = "") -> dict[str, Any]:
    """Parse *content* as JSON or YAML.

    JSON is attempted first unless the hint says YAML, since every JSON
    document is also YAML but the JSON parser reports errors more
    precisely. An explicit ``json`` hint disables the YAML fallback.

    Raises:
        ParseError: If neither parser produces a mapping.
    """
    json_error: Exception | None = None

    if hint != "yaml":
        try:
            result = json.loads(content)
        except json.JSONDecodeError as exc:
            if hint == "json":
                raise ParseError(f"Invalid JSON: {exc}") from exc
            json_error = exc
        else:
            return _require_mapping(result)

    try:
        result = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        msg = "Failed to parse document as JSON or YAML"
        if json_error:
            msg += f"\n  JSON error: {json_error}"
        msg += f"\n  YAML error: {exc}"
        raise ParseError(msg) from exc

    return _require_mapping(result)


def _require_mapping(result: Any) -> dict[str, Any]:
    if not isinstance(result, dict):
        kind = type(result).__name__ if result is not None else "empty document"
        raise ParseError(f"Document must be a JSON/YAML object (got {kind})")
    return result


def validate_openapi_version(spec: dict[str, Any]) -> str:
    """Validate and return the OpenAPI version string.

    Args:
        spec: The parsed document.

    Returns:
        The version string (e.g. ``'3.0.3'``, ``'3.1.0'``).

    Raises:
        ParseError: If the version is missing, is Swagger 2.x, or is not 3.x.
    """
    if "swagger" in spec:
        raise ParseError(
            f"Swagger {spec['swagger']} is not supported. "
            "Only OpenAPI 3.0.x and 3.1.x documents can be resolved."
        )

    openapi_version = spec.get("openapi")
    if openapi_version is None:
        raise ParseError("Missing 'openapi' field. Is this an OpenAPI 3.x document?")

    version_str = str(openapi_version)
    if version_str.startswith("3."):
        return version_str

    raise ParseError(
        f"Unsupported OpenAPI version: {version_str}. "
        "Only OpenAPI 3.0.x and 3.1.x are supported."
    )
