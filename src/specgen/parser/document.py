"""Read-only view over a parsed OpenAPI document with JSON-pointer navigation.

A :class:`Document` wraps the plain dictionary produced by
:mod:`specgen.parser.loader`. The resolvers never index the dictionary
directly when following references; they go through
:meth:`Document.resolve_pointer` so that every failure carries the pointer
that caused it and so that components removed by the ignore filter fail
loudly instead of silently disappearing.

Only internal references (``#/...``) are supported. Pointer segments use
RFC 6901 escaping (``~0`` for ``~``, ``~1`` for ``/``).
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any, Optional

from specgen.exceptions import RefResolutionError, UnsupportedFeatureError

SCHEMAS_POINTER = "#/components/schemas"


def escape_segment(segment: str) -> str:
    """Escape a single pointer segment (``~`` -> ``~0``, ``/`` -> ``~1``)."""
    return segment.replace("~", "~0").replace("/", "~1")


def unescape_segment(segment: str) -> str:
    return segment.replace("~1", "/").replace("~0", "~")


def join_pointer(base: str, *segments: Any) -> str:
    """Append escaped *segments* to the pointer *base*.

    Example::

        >>> join_pointer("#/paths", "/pets/{id}", "get")
        '#/paths/~1pets~1{id}/get'
    """
    parts = [base]
    parts.extend(escape_segment(str(s)) for s in segments)
    return "/".join(parts)


def schema_pointer(name: str) -> str:
    """Pointer of the component schema called *name*."""
    return join_pointer(SCHEMAS_POINTER, name)


class Document:
    """A parsed OpenAPI document.

    Args:
        raw: The document dictionary. It is treated as read-only.
        version: The declared ``openapi`` version, if already validated.
        ignored: Pointers removed by the ignore filter. Resolving any of
            them raises :class:`~specgen.exceptions.RefResolutionError`.
    """

    def __init__(
        self,
        raw: dict[str, Any],
        version: Optional[str] = None,
        ignored: frozenset[str] = frozenset(),
    ) -> None:
        self._raw = raw
        self._version = version or str(raw.get("openapi", ""))
        self._ignored = ignored

    @property
    def raw(self) -> dict[str, Any]:
        return self._raw

    @property
    def version(self) -> str:
        return self._version

    @property
    def ignored(self) -> frozenset[str]:
        return self._ignored

    @property
    def title(self) -> str:
        return str((self._raw.get("info") or {}).get("title") or "API")

    @property
    def servers(self) -> list[str]:
        return [s["url"] for s in self._raw.get("servers") or [] if isinstance(s, dict) and "url" in s]

    def schemas(self) -> dict[str, Any]:
        """The ``components.schemas`` mapping in document order (empty if absent)."""
        components = self._raw.get("components") or {}
        return components.get("schemas") or {}

    def paths(self) -> dict[str, Any]:
        return self._raw.get("paths") or {}

    def iter_schemas(self) -> Iterator[tuple[str, str, Any]]:
        """Yield ``(name, pointer, schema)`` for every component schema."""
        for name, schema in self.schemas().items():
            yield name, schema_pointer(name), schema

    def resolve_pointer(self, ref: str, location: Optional[str] = None) -> Any:
        """Return the node a ``$ref`` string points at.

        Args:
            ref: An internal reference such as ``#/components/schemas/Pet``.
            location: Pointer of the node holding the reference, used in
                error messages.

        Raises:
            UnsupportedFeatureError: For external references.
            RefResolutionError: If the target was ignored or does not exist.
        """
        if not ref.startswith("#"):
            raise UnsupportedFeatureError(
                f"External $ref not supported: {ref}", location=location
            )
        if ref == "#":
            return self._raw
        if not ref.startswith("#/"):
            raise RefResolutionError(f"Malformed $ref: {ref}", location=location)

        for ignored in self._ignored:
            if ref == ignored or ref.startswith(ignored + "/"):
                raise RefResolutionError(
                    f"$ref '{ref}' points at ignored component '{ignored}'",
                    location=location,
                )

        current: Any = self._raw
        for raw_segment in ref[2:].split("/"):
            segment = unescape_segment(raw_segment)
            if isinstance(current, dict):
                if segment not in current:
                    raise RefResolutionError(
                        f"Cannot resolve $ref '{ref}': key '{segment}' not found",
                        location=location,
                    )
                current = current[segment]
            elif isinstance(current, list):
                try:
                    current = current[int(segment)]
                except (ValueError, IndexError) as exc:
                    raise RefResolutionError(
                        f"Cannot resolve $ref '{ref}': invalid array index '{segment}'",
                        location=location,
                    ) from exc
            else:
                raise RefResolutionError(
                    f"Cannot resolve $ref '{ref}': cannot navigate into {type(current).__name__}",
                    location=location,
                )
        return current

    def follow(self, node: Any, pointer: str) -> tuple[Any, str]:
        """Follow a chain of ``$ref`` objects until a concrete node is reached.

        Used for parameter, request body and response objects, which (unlike
        schemas) have no identity of their own in the IR.

        Returns:
            ``(node, pointer)`` of the final, non-reference node.

        Raises:
            RefResolutionError: If the chain loops or a target is missing.
        """
        seen: set[str] = set()
        while isinstance(node, dict) and "$ref" in node:
            ref = node["$ref"]
            if ref in seen:
                raise RefResolutionError(f"Circular $ref chain through '{ref}'", location=pointer)
            seen.add(ref)
            node = self.resolve_pointer(ref, location=pointer)
            pointer = ref
        return node, pointer
