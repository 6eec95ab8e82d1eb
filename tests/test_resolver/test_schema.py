"""Tests for specgen.resolver.schema -- schema nodes to TypeDefs."""

from __future__ import annotations

from typing import Any, Optional

import pytest

from specgen.exceptions import (
    ParseError,
    RefResolutionError,
    StructuralConflictError,
    UnsupportedFeatureError,
)
from specgen.models import (
    AliasDef,
    ArrayDef,
    EnumDef,
    GeneratorOptions,
    MapDef,
    MatchStrategy,
    PrimitiveType,
    StructDef,
    UnionDef,
    UnionTag,
)
from specgen.parser.document import Document
from specgen.resolver.graph import TypeGraph
from specgen.resolver.schema import SchemaResolver, child_path

PET = "#/components/schemas/Pet"


def _resolve(document: Document, options: Optional[GeneratorOptions] = None) -> TypeGraph:
    graph = TypeGraph()
    SchemaResolver(document, graph, options).resolve_components()
    return graph


def _one(make_doc, schema: dict[str, Any], options: Optional[GeneratorOptions] = None) -> tuple[TypeGraph, Any]:  # noqa: ANN001
    graph = _resolve(make_doc(schemas={"Pet": schema}), options)
    return graph, graph[PET]


class TestChildPath:
    def test_appends_segment(self) -> None:
        assert child_path("/Pet", "owner") == "/Pet/owner"

    def test_flattens_slashes(self) -> None:
        assert child_path("/op", "a/b") == "/op/a_b"


class TestObjects:
    def test_component_struct(self, make_doc) -> None:  # noqa: ANN001
        graph, pet = _one(
            make_doc,
            {
                "type": "object",
                "description": "A pet",
                "required": ["id"],
                "properties": {"id": {"type": "integer"}, "name": {"type": "string", "default": "rex"}},
            },
        )
        assert isinstance(pet, StructDef)
        assert pet.declared
        assert pet.path == "/Pet"
        assert pet.description == "A pet"
        assert [f.raw_name for f in pet.fields] == ["id", "name"]
        assert [f.required for f in pet.fields] == [True, False]
        assert pet.fields[1].default == "rex"
        assert graph[pet.fields[0].type].primitive is PrimitiveType.INTEGER

    def test_inline_struct_gets_nested_path(self, make_doc) -> None:  # noqa: ANN001
        graph, pet = _one(
            make_doc,
            {"type": "object", "properties": {"owner": {"type": "object", "properties": {"n": {}}}}},
        )
        owner = graph[pet.fields[0].type]
        assert owner.key == f"{PET}/properties/owner"
        assert owner.path == "/Pet/owner"
        assert owner.qualifier == 1
        assert owner.declared

    def test_properties_without_type_is_struct(self, make_doc) -> None:  # noqa: ANN001
        _, pet = _one(make_doc, {"properties": {"a": {"type": "string"}}})
        assert isinstance(pet, StructDef)

    def test_map_from_additional_properties(self, make_doc) -> None:  # noqa: ANN001
        graph, pet = _one(make_doc, {"type": "object", "additionalProperties": {"type": "object", "properties": {"x": {}}}})
        assert isinstance(pet, MapDef)
        value = graph[pet.value]
        assert value.path == "/Pet/Value"
        assert value.qualifier == 2

    def test_free_form_object_is_map_of_any(self, make_doc) -> None:  # noqa: ANN001
        graph, pet = _one(make_doc, {"type": "object"})
        assert isinstance(pet, MapDef)
        assert graph[pet.value].primitive is PrimitiveType.ANY

    def test_struct_with_extra(self, make_doc) -> None:  # noqa: ANN001
        graph, pet = _one(
            make_doc,
            {"type": "object", "properties": {"a": {}}, "additionalProperties": {"type": "integer"}},
        )
        assert isinstance(pet, StructDef)
        assert graph[pet.extra].primitive is PrimitiveType.INTEGER


class TestArraysAndPrimitives:
    def test_inline_array_is_undeclared(self, make_doc) -> None:  # noqa: ANN001
        graph, pet = _one(
            make_doc,
            {"type": "object", "properties": {"tags": {"type": "array", "items": {"type": "object", "properties": {"v": {}}}}}},
        )
        tags = graph[pet.fields[0].type]
        assert isinstance(tags, ArrayDef)
        assert not tags.declared
        item = graph[tags.element]
        assert item.path == "/Pet/tags/Item"
        assert item.qualifier == 2

    def test_component_array_is_declared(self, make_doc) -> None:  # noqa: ANN001
        _, pet = _one(make_doc, {"type": "array", "items": {"type": "string"}})
        assert isinstance(pet, ArrayDef)
        assert pet.declared

    def test_component_primitive_is_declared_alias(self, make_doc) -> None:  # noqa: ANN001
        graph, pet = _one(make_doc, {"type": "string", "format": "uuid"})
        assert isinstance(pet, AliasDef)
        assert pet.declared
        assert pet.target == "primitive:string:uuid"

    def test_inline_primitive_uses_builtin(self, make_doc) -> None:  # noqa: ANN001
        _, pet = _one(make_doc, {"properties": {"at": {"type": "string", "format": "date-time"}}})
        assert pet.fields[0].type == "primitive:string:date-time"

    def test_name_inline_primitives_option(self, make_doc) -> None:  # noqa: ANN001
        graph, pet = _one(
            make_doc,
            {"properties": {"at": {"type": "string"}}},
            GeneratorOptions(name_inline_primitives=True),
        )
        alias = graph[pet.fields[0].type]
        assert isinstance(alias, AliasDef)
        assert alias.declared
        assert alias.path == "/Pet/at"

    def test_type_list_with_null(self, make_doc) -> None:  # noqa: ANN001
        _, pet = _one(make_doc, {"properties": {"tag": {"type": ["string", "null"]}}})
        assert pet.fields[0].type == "primitive:string?"

    def test_openapi_30_nullable(self, make_doc) -> None:  # noqa: ANN001
        _, pet = _one(make_doc, {"properties": {"tag": {"type": "integer", "nullable": True}}})
        assert pet.fields[0].type == "primitive:integer?"

    def test_empty_schema_is_any(self, make_doc) -> None:  # noqa: ANN001
        _, pet = _one(make_doc, {"properties": {"blob": {}, "yes": True}})
        assert [f.type for f in pet.fields] == ["primitive:any", "primitive:any"]


class TestReferences:
    def test_ref_resolves_to_target_key(self, make_doc) -> None:  # noqa: ANN001
        graph = _resolve(
            make_doc(
                schemas={
                    "Pet": {"properties": {"owner": {"$ref": "#/components/schemas/Owner"}}},
                    "Owner": {"properties": {"name": {"type": "string"}}},
                }
            )
        )
        assert graph[PET].fields[0].type == "#/components/schemas/Owner"

    def test_component_ref_becomes_declared_alias(self, make_doc) -> None:  # noqa: ANN001
        graph = _resolve(
            make_doc(
                schemas={
                    "Pet": {"$ref": "#/components/schemas/Animal"},
                    "Animal": {"properties": {"legs": {"type": "integer"}}},
                }
            )
        )
        pet = graph[PET]
        assert isinstance(pet, AliasDef)
        assert pet.declared
        assert pet.target == "#/components/schemas/Animal"

    def test_nullable_ref_gets_use_site_alias(self, make_doc) -> None:  # noqa: ANN001
        graph = _resolve(
            make_doc(
                schemas={
                    "Pet": {"properties": {"owner": {"$ref": "#/components/schemas/Owner", "nullable": True}}},
                    "Owner": {"properties": {"name": {}}},
                }
            )
        )
        wrapper = graph[graph[PET].fields[0].type]
        assert isinstance(wrapper, AliasDef)
        assert wrapper.nullable
        assert not wrapper.declared
        assert not graph["#/components/schemas/Owner"].nullable

    def test_missing_ref(self, make_doc) -> None:  # noqa: ANN001
        with pytest.raises(RefResolutionError, match="Ghost"):
            _resolve(make_doc(schemas={"Pet": {"properties": {"g": {"$ref": "#/components/schemas/Ghost"}}}}))

    def test_pure_ref_loop(self, make_doc) -> None:  # noqa: ANN001
        with pytest.raises(RefResolutionError, match="Circular"):
            _resolve(
                make_doc(
                    schemas={
                        "Holder": {"properties": {"a": {"$ref": "#/components/schemas/A/properties/x"}}},
                        "A": {"properties": {"x": {"$ref": "#/components/schemas/A/properties/x"}}},
                    }
                )
            )

    def test_recursive_struct(self, make_doc) -> None:  # noqa: ANN001
        graph = _resolve(
            make_doc(
                schemas={
                    "Node": {
                        "type": "object",
                        "properties": {
                            "children": {"type": "array", "items": {"$ref": "#/components/schemas/Node"}},
                        },
                    }
                }
            )
        )
        node = graph["#/components/schemas/Node"]
        children = graph[node.fields[0].type]
        assert children.element == node.key
        assert all(t.kind != "pending" for t in graph.types.values())

    def test_memoized_by_pointer(self, make_doc) -> None:  # noqa: ANN001
        document = make_doc(schemas={"Pet": {"properties": {"a": {"type": "object", "properties": {}}}}})
        graph = TypeGraph()
        resolver = SchemaResolver(document, graph)
        resolver.resolve_components()
        size = len(graph)
        assert resolver.resolve({}, PET, "/Pet") == PET
        assert len(graph) == size


class TestEnums:
    def test_string_enum(self, make_doc) -> None:  # noqa: ANN001
        _, pet = _one(make_doc, {"type": "string", "enum": ["a", "b", "a"]})
        assert isinstance(pet, EnumDef)
        assert pet.primitive is PrimitiveType.STRING
        assert [v.value for v in pet.variants] == ["a", "b"]

    def test_null_member_makes_nullable(self, make_doc) -> None:  # noqa: ANN001
        _, pet = _one(make_doc, {"enum": ["a", None]})
        assert pet.nullable
        assert [v.value for v in pet.variants] == ["a"]

    def test_integer_inferred(self, make_doc) -> None:  # noqa: ANN001
        _, pet = _one(make_doc, {"enum": [1, 2, 3]})
        assert pet.primitive is PrimitiveType.INTEGER

    def test_number_enum(self, make_doc) -> None:  # noqa: ANN001
        _, pet = _one(make_doc, {"type": "number", "enum": [1, 1.5]})
        assert pet.primitive is PrimitiveType.NUMBER
        assert len(pet.variants) == 2

    def test_const(self, make_doc) -> None:  # noqa: ANN001
        _, pet = _one(make_doc, {"const": "fixed"})
        assert [v.value for v in pet.variants] == ["fixed"]

    def test_mixed_types_rejected(self, make_doc) -> None:  # noqa: ANN001
        with pytest.raises(UnsupportedFeatureError, match="mixed"):
            _one(make_doc, {"enum": [1, "a"]})

    def test_empty_enum_rejected(self, make_doc) -> None:  # noqa: ANN001
        with pytest.raises(ParseError):
            _one(make_doc, {"enum": []})


class TestUnions:
    @staticmethod
    def _members() -> dict[str, Any]:
        return {
            "Cat": {"type": "object", "properties": {"kind": {"type": "string"}, "lives": {"type": "integer"}}},
            "Dog": {"type": "object", "properties": {"kind": {"type": "string"}, "good": {"type": "boolean"}}},
        }

    def test_one_of_is_exclusive(self, make_doc) -> None:  # noqa: ANN001
        graph = _resolve(
            make_doc(schemas={"Pet": {"oneOf": [{"$ref": "#/components/schemas/Cat"}, {"$ref": "#/components/schemas/Dog"}]}, **self._members()})
        )
        pet = graph[PET]
        assert isinstance(pet, UnionDef)
        assert pet.tag is UnionTag.ONE_OF
        assert pet.match is MatchStrategy.EXCLUSIVE
        assert pet.members == ["#/components/schemas/Cat", "#/components/schemas/Dog"]

    def test_any_of_is_ordered(self, make_doc) -> None:  # noqa: ANN001
        _, pet = _one(make_doc, {"anyOf": [{"type": "string"}, {"type": "integer"}]})
        assert pet.match is MatchStrategy.ORDERED
        assert pet.members == ["primitive:string", "primitive:integer"]

    def test_inline_members_get_variant_paths(self, make_doc) -> None:  # noqa: ANN001
        graph, pet = _one(
            make_doc,
            {"oneOf": [{"type": "object", "properties": {"a": {}}}, {"type": "object", "properties": {"b": {}}}]},
        )
        assert [graph[m].path for m in pet.members] == ["/Pet/Variant0", "/Pet/Variant1"]
        assert all(graph[m].qualifier == 2 for m in pet.members)

    def test_implicit_discriminator_mapping(self, make_doc) -> None:  # noqa: ANN001
        graph = _resolve(
            make_doc(
                schemas={
                    "Pet": {
                        "oneOf": [{"$ref": "#/components/schemas/Cat"}, {"$ref": "#/components/schemas/Dog"}],
                        "discriminator": {"propertyName": "kind"},
                    },
                    **self._members(),
                }
            )
        )
        pet = graph[PET]
        assert pet.match is MatchStrategy.DISCRIMINATOR
        assert pet.discriminator.property_name == "kind"
        assert pet.discriminator.mapping == {
            "Cat": "#/components/schemas/Cat",
            "Dog": "#/components/schemas/Dog",
        }

    def test_explicit_discriminator_mapping(self, make_doc) -> None:  # noqa: ANN001
        graph = _resolve(
            make_doc(
                schemas={
                    "Pet": {
                        "oneOf": [{"$ref": "#/components/schemas/Cat"}, {"$ref": "#/components/schemas/Dog"}],
                        "discriminator": {
                            "propertyName": "kind",
                            "mapping": {"cat": "#/components/schemas/Cat", "dog": "Dog"},
                        },
                    },
                    **self._members(),
                }
            )
        )
        assert graph[PET].discriminator.mapping == {
            "cat": "#/components/schemas/Cat",
            "dog": "#/components/schemas/Dog",
        }

    def test_discriminator_to_non_member(self, make_doc) -> None:  # noqa: ANN001
        with pytest.raises(StructuralConflictError, match="not a member"):
            _resolve(
                make_doc(
                    schemas={
                        "Pet": {
                            "oneOf": [{"$ref": "#/components/schemas/Cat"}],
                            "discriminator": {"propertyName": "kind", "mapping": {"dog": "Dog"}},
                        },
                        **self._members(),
                    }
                )
            )

    def test_null_member_sets_nullable(self, make_doc) -> None:  # noqa: ANN001
        _, pet = _one(make_doc, {"anyOf": [{"type": "string"}, {"type": "integer"}, {"type": "null"}]})
        assert pet.nullable
        assert len(pet.members) == 2

    def test_single_member_collapses_to_alias(self, make_doc) -> None:  # noqa: ANN001
        graph = _resolve(
            make_doc(schemas={"Pet": {"properties": {"o": {"anyOf": [{"$ref": "#/components/schemas/Dog"}, {"type": "null"}]}}}, **self._members()})
        )
        field_type = graph[graph[PET].fields[0].type]
        assert isinstance(field_type, AliasDef)
        assert field_type.nullable
        assert field_type.target == "#/components/schemas/Dog"

    def test_only_null_rejected(self, make_doc) -> None:  # noqa: ANN001
        with pytest.raises(UnsupportedFeatureError):
            _one(make_doc, {"oneOf": [{"type": "null"}]})


class TestAllOf:
    def test_flattens_members_in_order(self, make_doc) -> None:  # noqa: ANN001
        graph = _resolve(
            make_doc(
                schemas={
                    "Pet": {
                        "allOf": [
                            {"$ref": "#/components/schemas/Base"},
                            {"type": "object", "required": ["name"], "properties": {"name": {"type": "string"}}},
                        ],
                        "properties": {"extra": {"type": "boolean"}},
                    },
                    "Base": {"type": "object", "properties": {"id": {"type": "integer"}}},
                }
            )
        )
        pet = graph[PET]
        assert isinstance(pet, StructDef)
        assert [f.raw_name for f in pet.fields] == ["id", "name", "extra"]
        assert [f.required for f in pet.fields] == [False, True, False]

    def test_member_requires_sibling_property(self, make_doc) -> None:  # noqa: ANN001
        graph = _resolve(
            make_doc(
                schemas={
                    "Child": {
                        "allOf": [
                            {"$ref": "#/components/schemas/Base"},
                            {"type": "object", "required": ["id"], "properties": {"name": {"type": "string"}}},
                        ]
                    },
                    "Base": {"type": "object", "properties": {"id": {"type": "integer"}}},
                }
            )
        )
        child = graph["#/components/schemas/Child"]
        assert {f.raw_name: f.required for f in child.fields} == {"id": True, "name": False}
        assert not graph["#/components/schemas/Base"].fields[0].required

    def test_required_from_nested_inline_members(self, make_doc) -> None:  # noqa: ANN001
        _, pet = _one(
            make_doc,
            {
                "allOf": [
                    {"properties": {"a": {}, "b": {}}},
                    {"allOf": [{"required": ["a"]}, {"required": ["b", "missing"]}]},
                ]
            },
        )
        assert {f.raw_name: f.required for f in pet.fields} == {"a": True, "b": True}

    def test_lone_ref_becomes_alias(self, make_doc) -> None:  # noqa: ANN001
        graph = _resolve(
            make_doc(
                schemas={
                    "Pet": {"allOf": [{"$ref": "#/components/schemas/Base"}], "description": "wrapped"},
                    "Base": {"type": "object", "properties": {"id": {}}},
                }
            )
        )
        pet = graph[PET]
        assert isinstance(pet, AliasDef)
        assert pet.target == "#/components/schemas/Base"

    def test_conflicting_property_types(self, make_doc) -> None:  # noqa: ANN001
        with pytest.raises(StructuralConflictError, match="'id'"):
            _one(
                make_doc,
                {
                    "allOf": [
                        {"type": "object", "properties": {"id": {"type": "string"}}},
                        {"type": "object", "properties": {"id": {"type": "integer"}}},
                    ]
                },
            )

    def test_non_object_member(self, make_doc) -> None:  # noqa: ANN001
        with pytest.raises(StructuralConflictError, match="not an object"):
            _one(make_doc, {"allOf": [{"type": "string"}, {"type": "object", "properties": {"a": {}}}]})

    def test_cycle_through_all_of(self, make_doc) -> None:  # noqa: ANN001
        with pytest.raises(StructuralConflictError, match="cycle"):
            _resolve(
                make_doc(
                    schemas={
                        "A": {"allOf": [{"$ref": "#/components/schemas/B"}, {"properties": {"a": {}}}]},
                        "B": {"allOf": [{"$ref": "#/components/schemas/A"}, {"properties": {"b": {}}}]},
                    }
                )
            )


class TestUnsupported:
    @pytest.mark.parametrize(
        "schema",
        [
            {"type": "array", "prefixItems": [{"type": "string"}]},
            {"not": {"type": "string"}},
            {"if": {"type": "string"}, "then": {"minLength": 1}},
            {"type": "array", "items": [{"type": "string"}]},
            {"type": ["string", "integer"]},
            {"type": "file"},
        ],
    )
    def test_rejected(self, make_doc, schema: dict[str, Any]) -> None:  # noqa: ANN001
        with pytest.raises(UnsupportedFeatureError) as exc_info:
            _one(make_doc, schema)
        assert exc_info.value.exit_code == 9
        assert exc_info.value.location == PET

    def test_false_schema(self, make_doc) -> None:  # noqa: ANN001
        with pytest.raises(UnsupportedFeatureError, match="false"):
            _one(make_doc, {"properties": {"never": False}})

    def test_non_object_schema(self, make_doc) -> None:  # noqa: ANN001
        with pytest.raises(ParseError):
            _one(make_doc, {"properties": {"bad": "string"}})


class TestDeterminism:
    def test_same_document_same_graph(self, petstore_document: Document) -> None:
        first = _resolve(petstore_document).snapshot()
        second = _resolve(petstore_document).snapshot()
        assert first == second

    def test_component_names_in_document_order(self, petstore_document: Document) -> None:
        resolver = SchemaResolver(petstore_document, TypeGraph())
        resolver.resolve_components()
        assert resolver.component_names == list(petstore_document.schemas())
