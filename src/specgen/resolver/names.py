"""Assign target-language identifiers to types, fields, variants and operations.

Naming happens after resolution, in batches. Component types are named
first so they claim the short identifiers; types created while resolving
operations are named in a second batch and disambiguate against the
first.

For every declared type the resolver tries, in order:

1. an exact ``struct_mapping`` entry for its naming path (an inline
   array or map with an entry becomes a declared type);
2. the schema ``title`` (inline schemas only);
3. the trailing ``qualifier`` path segments, then progressively longer
   suffixes of the path (``Owner`` -> ``PetOwner``);
4. the fully qualified candidate with a numeric suffix.

Reserved words of the target language count as collisions. Within a
batch, shallower paths win over deeper ones and document order breaks
ties. Every identifier is assigned exactly once; later batches never
rename.

The language-specific parts (case conventions, reserved words) live in a
:class:`NamingRules` strategy; :class:`PythonNamingRules` is the default.
"""

from __future__ import annotations

import keyword
import logging
import re
from collections.abc import Callable, Iterable, Sequence
from http import HTTPStatus
from typing import Any, Optional, Protocol

from specgen.exceptions import ConfigError, NameCollisionError, StructuralConflictError
from specgen.models import (
    AliasDef,
    ArrayDef,
    EnumDef,
    MapDef,
    NameMappingConfig,
    Operation,
    StructDef,
    TypeDef,
    TypeKey,
)
from specgen.resolver.graph import TypeGraph

logger = logging.getLogger(__name__)

_MAX_SUFFIX = 1000
_DEFAULT_TYPE_MODULE = "models"
_DEFAULT_OPERATION_MODULE = "default"

_INVALID_IDENT_RE = re.compile(r"[^a-zA-Z0-9]+")


def split_words(text: str) -> list[str]:
    """Split an arbitrary string into words at case and separator boundaries.

    Example::

        >>> split_words("listItems")
        ['list', 'Items']
        >>> split_words("X-Request-ID")
        ['X', 'Request', 'ID']
    """
    text = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", text)
    text = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1 \2", text)
    return [w for w in _INVALID_IDENT_RE.split(text) if w]


class NamingRules(Protocol):
    """Case conventions and reserved words of a target language."""

    def type_name(self, segments: Sequence[str]) -> str: ...

    def member_name(self, raw: str) -> str: ...

    def variant_name(self, value: Any) -> str: ...

    def module_name(self, raw: str) -> str: ...

    def is_reserved_type(self, name: str) -> bool: ...

    def is_reserved_member(self, name: str) -> bool: ...

    def is_reserved_function(self, name: str) -> bool: ...

    def is_reserved_parameter(self, name: str) -> bool: ...

    def is_reserved_module(self, name: str) -> bool: ...


# Names the generated modules bind at module scope.
_GENERATED_GLOBALS = frozenset(
    {
        "typing",
        "datetime",
        "enum",
        "uuid",
        "pydantic",
        "httpx",
        "models",
        "runtime",
        "str",
        "int",
        "float",
        "bool",
        "bytes",
        "list",
        "dict",
    }
)

# Attributes of pydantic.BaseModel a field must not shadow.
_BASEMODEL_ATTRIBUTES = frozenset(
    {
        "construct",
        "copy",
        "dict",
        "from_orm",
        "json",
        "parse_file",
        "parse_obj",
        "parse_raw",
        "schema",
        "schema_json",
        "update_forward_refs",
        "validate",
        "model_computed_fields",
        "model_config",
        "model_construct",
        "model_copy",
        "model_dump",
        "model_dump_json",
        "model_extra",
        "model_fields",
        "model_fields_set",
        "model_json_schema",
        "model_parametrized_name",
        "model_post_init",
        "model_rebuild",
        "model_validate",
        "model_validate_json",
        "model_validate_strings",
    }
)

_KEYWORDS = frozenset(keyword.kwlist)


class PythonNamingRules:
    """PascalCase types, snake_case members, UPPER_SNAKE enum variants."""

    def type_name(self, segments: Sequence[str]) -> str:
        words = [w for segment in segments for w in split_words(segment)]
        name = "".join(w if w.isdigit() else w[0].upper() + w[1:].lower() for w in words)
        if not name:
            return "Model"
        if name[0].isdigit():
            name = f"Model{name}"
        return name

    def member_name(self, raw: str) -> str:
        name = "_".join(w.lower() for w in split_words(raw))
        if not name:
            return "value"
        if name[0].isdigit():
            name = f"n_{name}"
        return name

    def variant_name(self, value: Any) -> str:
        if isinstance(value, bool):
            return "TRUE" if value else "FALSE"
        name = "_".join(w.upper() for w in split_words(str(value)))
        if isinstance(value, (int, float)) and value < 0:
            name = f"MINUS_{name}"
        if not name:
            return "VALUE"
        if name[0].isdigit():
            name = f"VALUE_{name}"
        return name

    def module_name(self, raw: str) -> str:
        name = self.member_name(raw)
        return name if name != "value" else _DEFAULT_OPERATION_MODULE

    def is_reserved_type(self, name: str) -> bool:
        return name in _KEYWORDS or name in _GENERATED_GLOBALS

    def is_reserved_member(self, name: str) -> bool:
        return name in _KEYWORDS or name in _GENERATED_GLOBALS or name in _BASEMODEL_ATTRIBUTES

    def is_reserved_function(self, name: str) -> bool:
        return name in _KEYWORDS or name in _GENERATED_GLOBALS

    def is_reserved_parameter(self, name: str) -> bool:
        return (
            name in _KEYWORDS
            or name in _GENERATED_GLOBALS
            or name in ("client", "body", "body_request", "content_type", "request", "response", "url")
        )

    def is_reserved_module(self, name: str) -> bool:
        return name in _KEYWORDS or name in ("api", "runtime", "__init__")


def _segments(path: str) -> list[str]:
    return [s for s in path.split("/") if s]


def _legal(name: str) -> bool:
    return name.isidentifier() and not keyword.iskeyword(name)


class NameResolver:
    """Assign identifiers in a :class:`~specgen.resolver.graph.TypeGraph` and to operations.

    Args:
        graph: The graph whose declared types receive names.
        mapping: User overrides. Every ``struct_mapping`` value is reserved
            up front so derived names can never take it.
        rules: Target-language naming strategy.
    """

    def __init__(
        self,
        graph: TypeGraph,
        mapping: Optional[NameMappingConfig] = None,
        rules: Optional[NamingRules] = None,
    ) -> None:
        self._graph = graph
        self._mapping = mapping or NameMappingConfig()
        self._rules: NamingRules = rules or PythonNamingRules()
        self._taken: dict[str, TypeKey] = {}
        self._reserved = set(self._mapping.struct_mapping.values())
        self._functions: set[str] = set()
        self._mapped_paths: set[str] = set()

    @property
    def rules(self) -> NamingRules:
        return self._rules

    # ------------------------------------------------------------------ #
    # Types
    # ------------------------------------------------------------------ #

    def name_types(self, order: Sequence[str] = ()) -> list[TypeKey]:
        """Name every declared type that has no identifier yet.

        Args:
            order: Root segments (component names) in document order. Types
                under earlier roots win ties between equally deep paths.

        Returns:
            Keys of the types named in this batch, in naming order.
        """
        self._promote_mapped()
        rank = {name: index for index, name in enumerate(order)}
        sequence = {key: index for index, key in enumerate(self._graph)}
        batch = [t for t in self._graph.types.values() if t.declared and t.name is None]
        batch.sort(
            key=lambda t: (
                len(_segments(t.path)),
                rank.get(next(iter(_segments(t.path)), ""), len(rank)),
                sequence[t.key],
            )
        )

        named: list[TypeKey] = []
        for typedef in batch:
            mapped = self._mapping.struct_mapping.get(typedef.path)
            if mapped is not None:
                self._claim_mapped(typedef, mapped)
                named.append(typedef.key)

        for typedef in batch:
            current = self._graph[typedef.key]
            if current.declared and current.name is None:
                self._claim_derived(current)
                named.append(typedef.key)

        self._name_members()
        logger.debug("Named %d types", len(named))
        return named

    def check_struct_mapping(self) -> None:
        """Fail on ``struct_mapping`` entries that named nothing.

        Call once every batch is named.

        Raises:
            ConfigError: Listing the unused naming paths.
        """
        unused = [path for path in self._mapping.struct_mapping if path not in self._mapped_paths]
        if unused:
            raise ConfigError(
                "struct_mapping entries match no nameable type: "
                + ", ".join(unused)
                + " (inline primitives are only named with options.name_inline_primitives)"
            )

    def _promote_mapped(self) -> None:
        """Declare inline arrays and maps that have a ``struct_mapping`` entry."""
        for typedef in list(self._graph.types.values()):
            if (
                isinstance(typedef, (ArrayDef, MapDef))
                and not typedef.declared
                and typedef.path in self._mapping.struct_mapping
            ):
                self._graph.replace(typedef.model_copy(update={"declared": True}))
                logger.debug("Declared %s for its struct_mapping entry", typedef.path)

    def _claim_mapped(self, typedef: TypeDef, identifier: str) -> None:
        self._mapped_paths.add(typedef.path)
        if not _legal(identifier):
            raise NameCollisionError(
                f"Mapped identifier '{identifier}' is not a legal identifier",
                location=typedef.path,
            )
        owner = self._taken.get(identifier)
        if owner is None:
            self._assign(typedef, identifier)
            return

        if not self._graph.equivalent(owner, typedef.key):
            raise StructuralConflictError(
                f"'{typedef.path}' and '{self._graph[owner].path}' are both mapped to "
                f"'{identifier}' but differ structurally",
                location=typedef.path,
            )
        self._graph.replace(
            AliasDef(
                key=typedef.key,
                path=typedef.path,
                qualifier=typedef.qualifier,
                declared=False,
                nullable=typedef.nullable,
                description=typedef.description,
                target=owner,
            )
        )
        logger.info("Merged %s into %s (%s)", typedef.path, self._graph[owner].path, identifier)

    def _claim_derived(self, typedef: TypeDef) -> None:
        candidates = self._type_candidates(typedef)
        for candidate in candidates:
            if self._type_free(candidate):
                self._assign(typedef, candidate)
                return
        base = candidates[-1]
        for suffix in range(2, _MAX_SUFFIX):
            candidate = f"{base}{suffix}"
            if self._type_free(candidate):
                self._assign(typedef, candidate)
                return
        raise NameCollisionError(f"Could not find a free identifier for '{base}'", location=typedef.path)

    def _type_candidates(self, typedef: TypeDef) -> list[str]:
        segments = _segments(typedef.path) or ["Model"]
        start = max(1, min(typedef.qualifier, len(segments)))
        candidates: list[str] = []
        if typedef.title and len(segments) > 1:
            candidates.append(self._rules.type_name([typedef.title]))
        for count in range(start, len(segments) + 1):
            candidates.append(self._rules.type_name(segments[-count:]))
        return list(dict.fromkeys(candidates))

    def _type_free(self, name: str) -> bool:
        return (
            _legal(name)
            and name not in self._taken
            and name not in self._reserved
            and not self._rules.is_reserved_type(name)
        )

    def _assign(self, typedef: TypeDef, identifier: str) -> None:
        if typedef.name is not None:
            raise NameCollisionError(
                f"Type already named '{typedef.name}'", location=typedef.path
            )
        self._taken[identifier] = typedef.key
        self._graph.replace(
            typedef.model_copy(
                update={"name": identifier, "module": self.module_for_path(typedef.path)}
            )
        )

    # ------------------------------------------------------------------ #
    # Fields and variants
    # ------------------------------------------------------------------ #

    def _name_members(self) -> None:
        for typedef in list(self._graph.types.values()):
            if isinstance(typedef, StructDef) and any(f.name is None for f in typedef.fields):
                self._name_fields(typedef)
            elif isinstance(typedef, EnumDef) and any(v.name is None for v in typedef.variants):
                self._name_variants(typedef)

    def _name_fields(self, struct: StructDef) -> None:
        names: list[Optional[str]] = [None] * len(struct.fields)
        used: set[str] = set()

        for index, field in enumerate(struct.fields):
            mapped = self._mapping.property_mapping.get(f"{struct.path}/{field.raw_name}")
            if mapped is None:
                continue
            if not _legal(mapped) or mapped in used:
                raise NameCollisionError(
                    f"Mapped field identifier '{mapped}' is illegal or duplicated",
                    location=f"{struct.path}/{field.raw_name}",
                )
            names[index] = mapped
            used.add(mapped)

        qualifiers = [self._rules.member_name(s) for s in reversed(_segments(struct.path))]
        for index, field in enumerate(struct.fields):
            if names[index] is None:
                names[index] = _disambiguate(
                    self._rules.member_name(field.raw_name),
                    qualifiers,
                    used,
                    self._rules.is_reserved_member,
                    location=f"{struct.path}/{field.raw_name}",
                )

        self._graph.replace(
            struct.model_copy(
                update={
                    "fields": [
                        f.model_copy(update={"name": n}) for f, n in zip(struct.fields, names)
                    ]
                }
            )
        )

    def _name_variants(self, enum: EnumDef) -> None:
        used: set[str] = set()
        variants = []
        for variant in enum.variants:
            name = _disambiguate(
                self._rules.variant_name(variant.value),
                [],
                used,
                lambda _: False,
                location=enum.path,
            )
            variants.append(variant.model_copy(update={"name": name}))
        self._graph.replace(enum.model_copy(update={"variants": variants}))

    # ------------------------------------------------------------------ #
    # Operations
    # ------------------------------------------------------------------ #

    def name_operations(self, operations: Iterable[Operation]) -> None:
        """Assign function and parameter identifiers to *operations* in order."""
        for operation in operations:
            if operation.name is None:
                operation.name = _disambiguate(
                    self._rules.member_name(operation.id),
                    [operation.module],
                    self._functions,
                    self._rules.is_reserved_function,
                    location=operation.path_template,
                )
            used: set[str] = set()
            for parameter in operation.parameters:
                if parameter.name is None:
                    parameter.name = _disambiguate(
                        self._rules.member_name(parameter.raw_name),
                        [parameter.location.value],
                        used,
                        self._rules.is_reserved_parameter,
                        location=f"/{operation.id}/{parameter.raw_name}",
                    )
                else:
                    used.add(parameter.name)

    # ------------------------------------------------------------------ #
    # Modules and status codes
    # ------------------------------------------------------------------ #

    def module_for_path(self, path: str) -> str:
        """Module a type at *path* is emitted into."""
        segments = _segments(path)
        if segments:
            mapped = self._mapping.module_mapping.get(f"/{segments[0]}")
            if mapped is not None:
                return self._checked_module(mapped, path)
        return _DEFAULT_TYPE_MODULE

    def module_for_operation(self, operation_id: str, tags: Sequence[str]) -> str:
        """Module an operation is emitted into: mapping, then first tag, then ``default``."""
        keys = [f"/{operation_id}"]
        if tags:
            keys.append(f"/{tags[0]}")
        for key in keys:
            mapped = self._mapping.module_mapping.get(key)
            if mapped is not None:
                return self._checked_module(mapped, key)
        if tags:
            name = self._rules.module_name(tags[0])
            if not self._rules.is_reserved_module(name):
                return name
            return f"{name}_ops"
        return _DEFAULT_OPERATION_MODULE

    def _checked_module(self, name: str, location: str) -> str:
        if not _legal(name) or self._rules.is_reserved_module(name):
            raise NameCollisionError(f"Mapped module name '{name}' is not usable", location=location)
        return name

    def status_name(self, status_code: int) -> Optional[str]:
        """Name of a response variant: the mapping entry, else the HTTP reason phrase.

        Returns:
            ``None`` when the code has neither a mapping nor a standard
            reason phrase.
        """
        mapped = self._mapping.status_code_mapping.get(str(status_code))
        if mapped is not None:
            return mapped
        try:
            phrase = HTTPStatus(status_code).phrase
        except ValueError:
            return None
        return self._rules.type_name([phrase])


def _disambiguate(
    base: str,
    qualifiers: Sequence[str],
    used: set[str],
    reserved: Callable[[str], bool],
    location: str,
) -> str:
    """Pick the first free candidate, qualifying with *qualifiers* then a numeric suffix.

    The chosen name is added to *used*.
    """
    candidates = [base]
    current = base
    for qualifier in qualifiers:
        current = f"{qualifier}_{current}"
        candidates.append(current)

    for candidate in candidates:
        if candidate not in used and not reserved(candidate) and _legal(candidate):
            used.add(candidate)
            return candidate

    last = candidates[-1]
    for suffix in range(2, _MAX_SUFFIX):
        candidate = f"{last}_{suffix}"
        if candidate not in used and not reserved(candidate):
            used.add(candidate)
            return candidate
    raise NameCollisionError(f"Could not find a free identifier for '{base}'", location=location)
