"""Turn JSON Schema nodes into TypeDefs registered in a :class:`~specgen.resolver.graph.TypeGraph`.

Resolution is memoized by JSON pointer: the pointer of a schema node is
the key of the TypeDef built from it, and a ``$ref`` resolves to the key
of its target. Before recursing into a node the resolver registers a
:class:`~specgen.models.PendingDef` under that key, so a schema that
reaches itself again simply gets the key back and the recursion ends.

Shapes produced:

* ``type: object`` with properties -> :class:`~specgen.models.StructDef`
* ``type: object`` without properties -> :class:`~specgen.models.MapDef`
* ``type: array`` -> :class:`~specgen.models.ArrayDef`
* ``enum`` / ``const`` -> :class:`~specgen.models.EnumDef`
* ``anyOf`` / ``oneOf`` -> :class:`~specgen.models.UnionDef`
* ``allOf`` -> a flattened StructDef (or an alias for a lone ``$ref``)
* scalars -> shared primitive builtins, or declared aliases for
  component-level primitives

Inline schemas are identified by their naming path (``/Pet/owner``,
``/Pet/tags/Item``). Identical inline schemas at different paths stay
separate types; merging them is the job of the name mapping.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from specgen.exceptions import (
    ParseError,
    RefResolutionError,
    StructuralConflictError,
    UnsupportedFeatureError,
)
from specgen.models import (
    AliasDef,
    ArrayDef,
    Discriminator,
    EnumDef,
    EnumVariant,
    GeneratorOptions,
    MapDef,
    MatchStrategy,
    PendingDef,
    PrimitiveDef,
    PrimitiveType,
    StructDef,
    StructField,
    TypeKey,
    UnionDef,
    UnionTag,
)
from specgen.parser.document import SCHEMAS_POINTER, Document, join_pointer, schema_pointer, unescape_segment
from specgen.resolver.graph import TypeGraph

logger = logging.getLogger(__name__)

_UNSUPPORTED_KEYWORDS = (
    "prefixItems",
    "not",
    "if",
    "then",
    "else",
    "patternProperties",
    "dependentSchemas",
    "$dynamicRef",
)

_SCALAR_TYPES = {
    "string": PrimitiveType.STRING,
    "number": PrimitiveType.NUMBER,
    "integer": PrimitiveType.INTEGER,
    "boolean": PrimitiveType.BOOLEAN,
    "null": PrimitiveType.NULL,
}

_KNOWN_TYPES = set(_SCALAR_TYPES) | {"object", "array"}


def child_path(path: str, segment: str) -> str:
    """Append *segment* to a naming path. Slashes inside the segment are flattened."""
    return f"{path}/{segment.replace('/', '_')}"


class SchemaResolver:
    """Resolve schema nodes of a :class:`~specgen.parser.document.Document` into a graph.

    Args:
        document: The (already ignore-filtered) document.
        graph: The registry that receives every TypeDef.
        options: Generator switches; ``name_inline_primitives`` turns
            inline scalars into declared aliases.
    """

    def __init__(
        self,
        document: Document,
        graph: TypeGraph,
        options: Optional[GeneratorOptions] = None,
    ) -> None:
        self._document = document
        self._graph = graph
        self._options = options or GeneratorOptions()
        self._component_names: list[str] = []
        self._following: set[str] = set()

    @property
    def document(self) -> Document:
        return self._document

    @property
    def graph(self) -> TypeGraph:
        return self._graph

    @property
    def component_names(self) -> list[str]:
        """Component names in document order, as visited by :meth:`resolve_components`."""
        return list(self._component_names)

    def resolve_components(self) -> list[TypeKey]:
        """Resolve every ``components.schemas`` entry in document order.

        Returns:
            The key of each component's TypeDef.
        """
        keys: list[TypeKey] = []
        for name, pointer, schema in self._document.iter_schemas():
            self._component_names.append(name)
            keys.append(self.resolve(schema, pointer, f"/{name.replace('/', '_')}", component=True))
        logger.info("Resolved %d component schemas into %d types", len(keys), len(self._graph))
        return keys

    def resolve(
        self,
        schema: Any,
        pointer: str,
        path: str,
        qualifier: int = 1,
        component: bool = False,
    ) -> TypeKey:
        """Resolve one schema node and return its type key.

        Args:
            schema: The schema node (a mapping or a boolean schema).
            pointer: JSON pointer of the node; becomes the type key.
            path: Naming path of the node.
            qualifier: Number of trailing path segments the default
                identifier is built from.
            component: Whether the node is a ``components.schemas`` entry.
                Components are always declared types.

        Raises:
            RefResolutionError: For missing or ignored ``$ref`` targets.
            UnsupportedFeatureError: For constructs outside the modelled subset.
            StructuralConflictError: For unmergeable ``allOf`` members.
        """
        if pointer in self._graph:
            return pointer

        if schema is True:
            schema = {}
        elif schema is False:
            raise UnsupportedFeatureError("The 'false' schema is not supported", location=pointer)
        if not isinstance(schema, dict):
            raise ParseError(
                f"Schema must be an object, got {type(schema).__name__}", location=pointer
            )

        if "$ref" in schema:
            return self._resolve_ref(schema, pointer, path, qualifier, component)

        self._check_supported(schema, pointer)
        nullable, type_ = _normalize_type(schema, pointer)

        if "allOf" in schema:
            return self._resolve_all_of(schema, pointer, path, qualifier, component, nullable)
        if "anyOf" in schema or "oneOf" in schema:
            return self._resolve_union(schema, pointer, path, qualifier, component, nullable)
        if "enum" in schema or "const" in schema:
            return self._resolve_enum(schema, pointer, path, qualifier, type_, nullable)
        if type_ == "array" or "items" in schema:
            return self._resolve_array(schema, pointer, path, qualifier, component, nullable)
        if type_ == "object" or "properties" in schema or "additionalProperties" in schema:
            return self._resolve_object(schema, pointer, path, qualifier, component, nullable)
        return self._resolve_primitive(schema, pointer, path, qualifier, component, type_, nullable)

    # ------------------------------------------------------------------ #
    # References
    # ------------------------------------------------------------------ #

    def _resolve_ref(
        self,
        schema: dict[str, Any],
        pointer: str,
        path: str,
        qualifier: int,
        component: bool,
    ) -> TypeKey:
        ref = schema["$ref"]
        if not isinstance(ref, str):
            raise ParseError("$ref must be a string", location=pointer)
        if ref in self._following:
            raise RefResolutionError(f"Circular $ref chain through '{ref}'", location=pointer)

        target = self._document.resolve_pointer(ref, location=pointer)
        target_path, target_qualifier, target_component = _path_for_ref(ref)

        nullable = schema.get("nullable") is True
        if component or nullable:
            # The node needs its own identity: a named component alias, or a
            # use-site nullable wrapper around a shared type.
            self._graph.placeholder(pointer, path, qualifier)
            target_key = self._follow(target, ref, target_path, target_qualifier, target_component)
            self._graph.replace(
                AliasDef(
                    target=target_key,
                    **self._common(schema, pointer, path, qualifier, component, nullable),
                )
            )
            return pointer

        return self._follow(target, ref, target_path, target_qualifier, target_component)

    def _follow(self, target: Any, ref: str, path: str, qualifier: int, component: bool) -> TypeKey:
        self._following.add(ref)
        try:
            return self.resolve(target, ref, path, qualifier=qualifier, component=component)
        finally:
            self._following.discard(ref)

    # ------------------------------------------------------------------ #
    # Shapes
    # ------------------------------------------------------------------ #

    def _resolve_primitive(
        self,
        schema: dict[str, Any],
        pointer: str,
        path: str,
        qualifier: int,
        component: bool,
        type_: Optional[str],
        nullable: bool,
    ) -> TypeKey:
        primitive = _SCALAR_TYPES.get(type_, PrimitiveType.ANY) if type_ else PrimitiveType.ANY
        fmt = schema.get("format") if isinstance(schema.get("format"), str) else None
        builtin = self._graph.builtin(primitive, fmt, nullable)
        if not component and not self._options.name_inline_primitives:
            return builtin

        self._graph.register(
            AliasDef(
                target=builtin,
                **self._common(schema, pointer, path, qualifier, True, False),
            )
        )
        return pointer

    def _resolve_array(
        self,
        schema: dict[str, Any],
        pointer: str,
        path: str,
        qualifier: int,
        component: bool,
        nullable: bool,
    ) -> TypeKey:
        self._graph.placeholder(pointer, path, qualifier)
        element = self.resolve(
            schema.get("items", {}),
            join_pointer(pointer, "items"),
            child_path(path, "Item"),
            qualifier=2,
        )
        self._graph.replace(
            ArrayDef(
                element=element,
                **self._common(schema, pointer, path, qualifier, component, nullable),
            )
        )
        return pointer

    def _resolve_object(
        self,
        schema: dict[str, Any],
        pointer: str,
        path: str,
        qualifier: int,
        component: bool,
        nullable: bool,
    ) -> TypeKey:
        self._graph.placeholder(pointer, path, qualifier)
        additional = schema.get("additionalProperties")

        if "properties" not in schema and additional is not False:
            if isinstance(additional, dict) and additional:
                value = self.resolve(
                    additional,
                    join_pointer(pointer, "additionalProperties"),
                    child_path(path, "Value"),
                    qualifier=2,
                )
            else:
                value = self._graph.builtin(PrimitiveType.ANY)
            self._graph.replace(
                MapDef(value=value, **self._common(schema, pointer, path, qualifier, component, nullable))
            )
            return pointer

        fields, extra = self._collect_fields(schema, pointer, path)
        self._graph.replace(
            StructDef(
                fields=fields,
                extra=extra,
                **self._common(schema, pointer, path, qualifier, True, nullable),
            )
        )
        return pointer

    def _resolve_all_of(
        self,
        schema: dict[str, Any],
        pointer: str,
        path: str,
        qualifier: int,
        component: bool,
        nullable: bool,
    ) -> TypeKey:
        members = schema["allOf"]
        if not isinstance(members, list) or not members:
            raise ParseError("allOf must be a non-empty list", location=pointer)

        self._graph.placeholder(pointer, path, qualifier)

        lone_ref = len(members) == 1 and isinstance(members[0], dict) and "$ref" in members[0]
        if lone_ref and not schema.get("properties") and not schema.get("additionalProperties"):
            target = self.resolve(
                members[0],
                join_pointer(pointer, "allOf", 0),
                child_path(path, "Part0"),
                qualifier=2,
            )
            self._graph.replace(
                AliasDef(
                    target=target,
                    **self._common(schema, pointer, path, qualifier, component, nullable),
                )
            )
            return pointer

        fields, extra = self._collect_fields(schema, pointer, path)
        self._graph.replace(
            StructDef(
                fields=fields,
                extra=extra,
                **self._common(schema, pointer, path, qualifier, True, nullable),
            )
        )
        return pointer

    def _resolve_union(
        self,
        schema: dict[str, Any],
        pointer: str,
        path: str,
        qualifier: int,
        component: bool,
        nullable: bool,
    ) -> TypeKey:
        if "anyOf" in schema and "oneOf" in schema:
            raise UnsupportedFeatureError("Both anyOf and oneOf on one schema", location=pointer)
        tag = UnionTag.ONE_OF if "oneOf" in schema else UnionTag.ANY_OF
        raw_members = schema[tag.value]
        if not isinstance(raw_members, list) or not raw_members:
            raise ParseError(f"{tag.value} must be a non-empty list", location=pointer)
        if "properties" in schema:
            logger.debug("Ignoring properties next to %s at %s", tag.value, pointer)

        self._graph.placeholder(pointer, path, qualifier)

        members: list[TypeKey] = []
        for index, member in enumerate(raw_members):
            if _is_null_schema(member):
                nullable = True
                continue
            key = self.resolve(
                member,
                join_pointer(pointer, tag.value, index),
                child_path(path, f"Variant{index}"),
                qualifier=2,
            )
            if key not in members:
                members.append(key)

        if not members:
            raise UnsupportedFeatureError(
                f"{tag.value} without a non-null member", location=pointer
            )

        discriminator = self._discriminator(schema, raw_members, members, pointer)
        common = self._common(schema, pointer, path, qualifier, component, nullable)
        if len(members) == 1 and discriminator is None:
            self._graph.replace(AliasDef(target=members[0], **common))
            return pointer

        if discriminator is not None:
            match = MatchStrategy.DISCRIMINATOR
        elif tag is UnionTag.ONE_OF:
            match = MatchStrategy.EXCLUSIVE
        else:
            match = MatchStrategy.ORDERED

        common["declared"] = True
        self._graph.replace(
            UnionDef(tag=tag, members=members, match=match, discriminator=discriminator, **common)
        )
        return pointer

    def _resolve_enum(
        self,
        schema: dict[str, Any],
        pointer: str,
        path: str,
        qualifier: int,
        type_: Optional[str],
        nullable: bool,
    ) -> TypeKey:
        if "enum" in schema:
            raw_values = schema["enum"]
            if not isinstance(raw_values, list) or not raw_values:
                raise ParseError("enum must be a non-empty list", location=pointer)
        else:
            raw_values = [schema["const"]]

        values: list[Any] = []
        for value in raw_values:
            if value is None:
                nullable = True
                continue
            if isinstance(value, (dict, list)):
                raise UnsupportedFeatureError("Enum values must be scalars", location=pointer)
            if any(type(value) is type(v) and value == v for v in values):
                continue
            values.append(value)

        if not values:
            return self._graph.builtin(PrimitiveType.NULL)

        self._graph.register(
            EnumDef(
                primitive=_enum_primitive(values, type_, pointer),
                variants=[EnumVariant(value=v) for v in values],
                **self._common(schema, pointer, path, qualifier, True, nullable),
            )
        )
        return pointer

    # ------------------------------------------------------------------ #
    # allOf flattening
    # ------------------------------------------------------------------ #

    def _collect_fields(
        self,
        schema: dict[str, Any],
        pointer: str,
        path: str,
    ) -> tuple[list[StructField], Optional[TypeKey]]:
        """Gather the fields of an object schema, flattening its ``allOf`` members.

        Fields keep first-declaration order. A property declared twice keeps
        its first definition; both must agree on the type. ``required`` lists
        of inline members apply to the merged result, so a member may mark a
        property contributed by a sibling as required.
        """
        merged, extra, required = self._gather_fields(schema, pointer, path)
        for name in required:
            if name in merged:
                merged[name] = merged[name].model_copy(update={"required": True})
            else:
                logger.debug("Required property %s is not declared at %s", name, pointer)
        return list(merged.values()), extra

    def _gather_fields(
        self,
        schema: dict[str, Any],
        pointer: str,
        path: str,
    ) -> tuple[dict[str, StructField], Optional[TypeKey], list[str]]:
        merged: dict[str, StructField] = {}
        extra: Optional[TypeKey] = None
        required: list[str] = []

        for index, member in enumerate(schema.get("allOf") or []):
            member_pointer = join_pointer(pointer, "allOf", index)
            if isinstance(member, dict) and "$ref" in member:
                key = self.resolve(member, member_pointer, child_path(path, f"Part{index}"), qualifier=2)
                member_fields, member_extra = self._merge_source(key, member_pointer)
            elif member is True or member == {}:
                continue
            elif isinstance(member, dict):
                self._check_supported(member, member_pointer)
                if any(k in member for k in ("anyOf", "oneOf", "enum", "const", "items")) or (
                    _normalize_type(member, member_pointer)[1] not in (None, "object")
                ):
                    raise StructuralConflictError(
                        "allOf member is not an object schema", location=member_pointer
                    )
                member_merged, member_extra, member_required = self._gather_fields(
                    member, member_pointer, path
                )
                member_fields = list(member_merged.values())
                required.extend(member_required)
            else:
                raise ParseError("allOf member must be a schema object", location=member_pointer)

            for field in member_fields:
                _merge_field(merged, field, member_pointer)
            if extra is None:
                extra = member_extra

        for raw_name, prop in (schema.get("properties") or {}).items():
            prop_pointer = join_pointer(pointer, "properties", raw_name)
            key = self.resolve(prop, prop_pointer, child_path(path, str(raw_name)))
            details = prop if isinstance(prop, dict) else {}
            _merge_field(
                merged,
                StructField(
                    raw_name=str(raw_name),
                    type=key,
                    default=details.get("default"),
                    description=details.get("description"),
                ),
                prop_pointer,
            )

        required.extend(str(name) for name in schema.get("required") or [])

        additional = schema.get("additionalProperties")
        if isinstance(additional, dict) and additional:
            extra = self.resolve(
                additional,
                join_pointer(pointer, "additionalProperties"),
                child_path(path, "Value"),
                qualifier=2,
            )
        elif additional is True or additional == {}:
            extra = self._graph.builtin(PrimitiveType.ANY)

        return merged, extra, required

    def _merge_source(
        self, key: TypeKey, location: str
    ) -> tuple[list[StructField], Optional[TypeKey]]:
        """Fields contributed by a referenced ``allOf`` member."""
        typedef = self._graph[key]
        seen = {key}
        while isinstance(typedef, AliasDef):
            if typedef.target in seen:
                break
            seen.add(typedef.target)
            typedef = self._graph[typedef.target]

        if isinstance(typedef, PendingDef):
            raise StructuralConflictError(
                f"allOf member '{key}' is part of a reference cycle", location=location
            )
        if isinstance(typedef, StructDef):
            return list(typedef.fields), typedef.extra
        if isinstance(typedef, MapDef):
            return [], typedef.value
        if isinstance(typedef, PrimitiveDef) and typedef.primitive is PrimitiveType.ANY:
            return [], None
        raise StructuralConflictError(
            f"allOf member '{key}' is not an object schema", location=location
        )

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _discriminator(
        self,
        schema: dict[str, Any],
        raw_members: list[Any],
        members: list[TypeKey],
        pointer: str,
    ) -> Optional[Discriminator]:
        raw = schema.get("discriminator")
        if not raw:
            return None
        if not isinstance(raw, dict) or not raw.get("propertyName"):
            raise ParseError("discriminator requires a propertyName", location=pointer)

        mapping: dict[str, TypeKey] = {}
        for value, target in (raw.get("mapping") or {}).items():
            ref = target if target.startswith("#") else schema_pointer(target)
            if ref not in members:
                raise StructuralConflictError(
                    f"Discriminator value '{value}' maps to '{ref}', which is not a member",
                    location=pointer,
                )
            mapping[str(value)] = ref

        if not mapping:
            for member in raw_members:
                ref = member.get("$ref") if isinstance(member, dict) else None
                if isinstance(ref, str) and ref in members:
                    mapping[unescape_segment(ref.rsplit("/", 1)[-1])] = ref

        return Discriminator(property_name=raw["propertyName"], mapping=mapping)

    def _check_supported(self, schema: dict[str, Any], pointer: str) -> None:
        for keyword in _UNSUPPORTED_KEYWORDS:
            if keyword in schema:
                raise UnsupportedFeatureError(f"'{keyword}' is not supported", location=pointer)
        if isinstance(schema.get("items"), list):
            raise UnsupportedFeatureError("Tuple-style 'items' lists are not supported", location=pointer)

    @staticmethod
    def _common(
        schema: dict[str, Any],
        pointer: str,
        path: str,
        qualifier: int,
        declared: bool,
        nullable: bool,
    ) -> dict[str, Any]:
        title = schema.get("title")
        description = schema.get("description")
        return {
            "key": pointer,
            "path": path,
            "qualifier": qualifier,
            "declared": declared,
            "nullable": nullable,
            "title": title if isinstance(title, str) else None,
            "description": description if isinstance(description, str) else None,
        }


def _normalize_type(schema: dict[str, Any], pointer: str) -> tuple[bool, Optional[str]]:
    """Return ``(nullable, type)``, folding ``[X, "null"]`` and 3.0 ``nullable``."""
    nullable = schema.get("nullable") is True
    type_ = schema.get("type")
    if isinstance(type_, list):
        if "null" in type_:
            nullable = True
        rest = [t for t in type_ if t != "null"]
        if len(rest) > 1:
            raise UnsupportedFeatureError(f"Multiple types {type_} are not supported", location=pointer)
        type_ = rest[0] if rest else "null"
    if type_ is not None and type_ not in _KNOWN_TYPES:
        raise UnsupportedFeatureError(f"Unknown type '{type_}'", location=pointer)
    return nullable, type_


def _is_null_schema(schema: Any) -> bool:
    if not isinstance(schema, dict):
        return False
    type_ = schema.get("type")
    return type_ == "null" or type_ == ["null"]


def _enum_primitive(values: list[Any], type_: Optional[str], pointer: str) -> PrimitiveType:
    if type_ in _SCALAR_TYPES and type_ != "null":
        return _SCALAR_TYPES[type_]
    if all(isinstance(v, str) for v in values):
        return PrimitiveType.STRING
    if all(isinstance(v, bool) for v in values):
        return PrimitiveType.BOOLEAN
    if all(isinstance(v, int) and not isinstance(v, bool) for v in values):
        return PrimitiveType.INTEGER
    if all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in values):
        return PrimitiveType.NUMBER
    raise UnsupportedFeatureError("Enum values of mixed types are not supported", location=pointer)


def _merge_field(merged: dict[str, StructField], field: StructField, location: str) -> None:
    existing = merged.get(field.raw_name)
    if existing is None:
        merged[field.raw_name] = field
        return
    if existing.type != field.type:
        raise StructuralConflictError(
            f"Property '{field.raw_name}' is declared as both '{existing.type}' and '{field.type}'",
            location=location,
        )
    if field.required and not existing.required:
        merged[field.raw_name] = existing.model_copy(update={"required": True})


def _path_for_ref(ref: str) -> tuple[str, int, bool]:
    """Naming path, qualifier and component flag for a ``$ref`` target.

    ``#/components/schemas/Pet`` is the component ``/Pet``. Deeper
    pointers are translated segment by segment so they land on the same
    path the natural traversal would have given them.
    """
    prefix = SCHEMAS_POINTER + "/"
    if not ref.startswith(prefix):
        segments = [unescape_segment(s).replace("/", "_") for s in ref[2:].split("/") if s]
        return "/" + "/".join(segments[-2:]), 1, False

    segments = [unescape_segment(s).replace("/", "_") for s in ref[len(prefix):].split("/")]
    if len(segments) == 1:
        return f"/{segments[0]}", 1, True

    path_segments = [segments[0]]
    qualifier = 1
    index = 1
    while index < len(segments):
        segment = segments[index]
        following = segments[index + 1] if index + 1 < len(segments) else None
        if segment == "properties" and following is not None:
            path_segments.append(following)
            qualifier = 1
            index += 2
        elif segment in ("anyOf", "oneOf") and following is not None:
            path_segments.append(f"Variant{following}")
            qualifier = 2
            index += 2
        elif segment == "allOf" and following is not None:
            path_segments.append(f"Part{following}")
            qualifier = 2
            index += 2
        elif segment == "items":
            path_segments.append("Item")
            qualifier = 2
            index += 1
        elif segment == "additionalProperties":
            path_segments.append("Value")
            qualifier = 2
            index += 1
        else:
            path_segments.append(segment)
            qualifier = 1
            index += 1
    return "/" + "/".join(path_segments), qualifier, False
