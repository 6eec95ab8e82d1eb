"""Canonical Pydantic models shared across all specgen modules.

Every other module imports its data shapes from here. The models fall into
two groups:

**Configuration models** -- loaded from ``specgen.json`` / ``specgen.yaml``:
    :class:`ProjectMetadata`, :class:`NameMappingConfig`,
    :class:`IgnoreConfig`, :class:`GeneratorOptions` and the root
    :class:`GeneratorConfig`.

**IR models** -- produced by the resolvers and consumed by emitters:
    the ``TypeDef`` variants (:class:`PrimitiveDef`, :class:`ArrayDef`,
    :class:`MapDef`, :class:`StructDef`, :class:`EnumDef`,
    :class:`UnionDef`, :class:`AliasDef`, :class:`PendingDef`) plus
    :class:`Operation`, :class:`Parameter` and :class:`ResponseVariant`.

TypeDefs are frozen. The resolvers never edit one in place; they build a
modified copy with ``model_copy(update=...)`` and hand it to
:meth:`~specgen.resolver.graph.TypeGraph.replace`. References between
types are plain string keys, which is what lets cyclic schemas exist in
the graph without recursion.
"""

from __future__ import annotations

import enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


TypeKey = str
"""Stable registry key of a TypeDef -- the JSON pointer of its schema node,
or ``primitive:<type>[:<format>][?]`` for the shared primitive builtins."""


# --- Configuration ---


class ProjectMetadata(BaseModel):
    """Name and version written into the generated package's metadata."""

    name: str = "api-client"
    version: str = "0.1.0"


class NameMappingConfig(BaseModel):
    """User-supplied identifier overrides. An exact entry always wins.

    Example::

        NameMappingConfig(
            struct_mapping={"/Component/SubComponent/TestObject": "TestObjectData"},
            property_mapping={"/Pet/class": "pet_class"},
            module_mapping={"/pets": "pet_store"},
            status_code_mapping={"418": "Teapot"},
        )
    """

    struct_mapping: dict[str, str] = Field(
        default_factory=dict,
        description="Naming path of a type -> type identifier",
    )
    property_mapping: dict[str, str] = Field(
        default_factory=dict,
        description="'<struct path>/<raw property>' -> field identifier",
    )
    module_mapping: dict[str, str] = Field(
        default_factory=dict,
        description="'/<root segment>' or '/<tag>' -> module name",
    )
    status_code_mapping: dict[str, str] = Field(
        default_factory=dict,
        description="Status code (as a string) -> response variant name",
    )


class IgnoreConfig(BaseModel):
    """Paths and components removed from the document before resolution."""

    paths: list[str] = Field(default_factory=list)
    components: list[str] = Field(
        default_factory=list,
        description="Component names: 'Pet', '/Pet' or '#/components/schemas/Pet'",
    )


class GeneratorOptions(BaseModel):
    """Behaviour switches that are not naming overrides."""

    name_inline_primitives: bool = Field(
        default=False,
        description="Give inline primitive schemas their own declared alias",
    )
    package_name: Optional[str] = Field(
        default=None,
        description="Import package of the generated client (derived from the project name)",
    )


class GeneratorConfig(BaseModel):
    """Root configuration object.

    See Also:
        :func:`~specgen.config.resolve_config`: Precedence chain that
        decides which file (if any) this is loaded from.
    """

    model_config = ConfigDict(extra="forbid")

    project_metadata: ProjectMetadata = Field(default_factory=ProjectMetadata)
    name_mapping: NameMappingConfig = Field(default_factory=NameMappingConfig)
    ignore: IgnoreConfig = Field(default_factory=IgnoreConfig)
    options: GeneratorOptions = Field(default_factory=GeneratorOptions)


# --- Type graph ---


class PrimitiveType(str, enum.Enum):
    """Scalar JSON Schema types. ``ANY`` stands for the empty schema ``{}``."""

    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    NULL = "null"
    ANY = "any"


class UnionTag(str, enum.Enum):
    """Composition keyword a union was declared with."""

    ANY_OF = "anyOf"
    ONE_OF = "oneOf"
    ALL_OF = "allOf"


class MatchStrategy(str, enum.Enum):
    """How a value is matched against union members during deserialization.

    * ``DISCRIMINATOR`` -- the discriminator property selects the member.
    * ``EXCLUSIVE`` -- every member is tried; exactly one must validate.
    * ``ORDERED`` -- members are tried in declaration order; first match wins.
    """

    DISCRIMINATOR = "discriminator"
    EXCLUSIVE = "exclusive"
    ORDERED = "ordered"


class _TypeDefBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: TypeKey
    path: str = Field(description="Naming path, e.g. '/Pet/owner'")
    qualifier: int = Field(
        default=1,
        description="Trailing path segments the default identifier is built from",
    )
    name: Optional[str] = None
    module: Optional[str] = None
    declared: bool = False
    nullable: bool = False
    title: Optional[str] = None
    description: Optional[str] = None

    def references(self) -> list[TypeKey]:
        """Keys of the TypeDefs this one points at."""
        return []


class PrimitiveDef(_TypeDefBase):
    kind: Literal["primitive"] = "primitive"
    primitive: PrimitiveType
    format: Optional[str] = None


class ArrayDef(_TypeDefBase):
    kind: Literal["array"] = "array"
    element: TypeKey

    def references(self) -> list[TypeKey]:
        return [self.element]


class MapDef(_TypeDefBase):
    kind: Literal["map"] = "map"
    value: TypeKey

    def references(self) -> list[TypeKey]:
        return [self.value]


class StructField(BaseModel):
    """One property of a :class:`StructDef`.

    ``raw_name`` is the property name as written in the document; ``name``
    is the target-language identifier assigned by the name resolver.
    """

    model_config = ConfigDict(frozen=True)

    raw_name: str
    type: TypeKey
    required: bool = False
    name: Optional[str] = None
    default: Any = None
    description: Optional[str] = None


class StructDef(_TypeDefBase):
    kind: Literal["struct"] = "struct"
    fields: list[StructField] = Field(default_factory=list)
    extra: Optional[TypeKey] = Field(
        default=None, description="additionalProperties schema next to declared properties"
    )

    def references(self) -> list[TypeKey]:
        refs = [f.type for f in self.fields]
        if self.extra is not None:
            refs.append(self.extra)
        return refs


class EnumVariant(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: Any
    name: Optional[str] = None


class EnumDef(_TypeDefBase):
    kind: Literal["enum"] = "enum"
    primitive: PrimitiveType = PrimitiveType.STRING
    variants: list[EnumVariant] = Field(default_factory=list)


class Discriminator(BaseModel):
    """Discriminator property plus the value -> member key table."""

    model_config = ConfigDict(frozen=True)

    property_name: str
    mapping: dict[str, TypeKey] = Field(default_factory=dict)


class UnionDef(_TypeDefBase):
    kind: Literal["union"] = "union"
    tag: UnionTag
    members: list[TypeKey] = Field(default_factory=list)
    match: Optional[MatchStrategy] = None
    discriminator: Optional[Discriminator] = None

    def references(self) -> list[TypeKey]:
        return list(self.members)


class AliasDef(_TypeDefBase):
    """Named pass-through to another type.

    Declared aliases are emitted under their own identifier (primitive
    components, component-to-component ``$ref``). Undeclared aliases are
    transparent and only exist to carry use-site nullability or to
    collapse merged duplicates.
    """

    kind: Literal["alias"] = "alias"
    target: TypeKey

    def references(self) -> list[TypeKey]:
        return [self.target]


class PendingDef(_TypeDefBase):
    """Placeholder registered before a schema is recursed into."""

    kind: Literal["pending"] = "pending"


TypeDef = Annotated[
    Union[
        PrimitiveDef,
        ArrayDef,
        MapDef,
        StructDef,
        EnumDef,
        UnionDef,
        AliasDef,
        PendingDef,
    ],
    Field(discriminator="kind"),
]


class GraphSnapshot(BaseModel):
    """Serializable view of a frozen type graph."""

    types: list[TypeDef] = Field(default_factory=list)


# --- Operations ---


class HTTPMethod(str, enum.Enum):
    """HTTP methods of an OpenAPI path item, in the order they are visited."""

    GET = "get"
    PUT = "put"
    POST = "post"
    DELETE = "delete"
    OPTIONS = "options"
    HEAD = "head"
    PATCH = "patch"
    TRACE = "trace"


class ParameterLocation(str, enum.Enum):
    """Locations where an API parameter can appear, per OpenAPI ``in`` field."""

    QUERY = "query"
    HEADER = "header"
    PATH = "path"
    COOKIE = "cookie"


class Parameter(BaseModel):
    """A single resolved operation parameter."""

    raw_name: str
    location: ParameterLocation
    type: TypeKey
    required: bool = False
    name: Optional[str] = None
    description: Optional[str] = None
    default: Any = None


class ResponseVariant(BaseModel):
    """One ``(status code, content type)`` outcome of an operation.

    ``content_type`` and ``type`` are both ``None`` for responses that
    declare no body.
    """

    status_code: int = Field(ge=0, le=65535)
    content_type: Optional[str] = None
    type: Optional[TypeKey] = None
    name: str
    description: Optional[str] = None


class Operation(BaseModel):
    """A resolved API operation (one path template + HTTP method pair).

    ``name`` (the function identifier) and each parameter's ``name`` are
    filled in by :meth:`~specgen.resolver.names.NameResolver.name_operations`.
    """

    id: str
    method: HTTPMethod
    path_template: str
    module: str
    name: Optional[str] = None
    parameters: list[Parameter] = Field(default_factory=list)
    request_variants: dict[str, TypeKey] = Field(default_factory=dict)
    request_required: bool = False
    responses: list[ResponseVariant] = Field(default_factory=list)
    is_stream: bool = False
    summary: Optional[str] = None
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    deprecated: bool = False

    @property
    def response_variants(self) -> dict[tuple[int, Optional[str]], Optional[TypeKey]]:
        """``(status code, content type) -> type key`` lookup table."""
        return {(r.status_code, r.content_type): r.type for r in self.responses}
