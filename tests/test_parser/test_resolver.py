"""Tests for specfuse.parser.resolver."""

from __future__ import annotations

import json
from typing import Any

from specfuse.models import ParsedSchema, SchemaKind
from specfuse.parser.graphql import parse_graphql
from specfuse.parser.resolver import (
    GraphQLSchemaResolver,
    SchemaResolver,
    infer_schema,
    openapi_resolver,
    openapi_schema,
    schema_ref_name,
)


def _link_builder(calls: list[str]):
    """Builder over ``{name: {prop: target}}`` tables that records each build."""

    def build(resolver: SchemaResolver[dict[str, str]], definition: dict[str, str]) -> ParsedSchema:
        calls.append(definition["__name__"])
        return ParsedSchema(
            kind=SchemaKind.OBJECT,
            properties={
                prop: resolver.resolve(target)
                for prop, target in definition.items()
                if prop != "__name__"
            },
        )

    return build


# ---------------------------------------------------------------------------
# Generic resolver
# ---------------------------------------------------------------------------


class TestSchemaResolver:
    """Depth-first walk with cycle breaking and memoization."""

    def test_mutual_cycle_is_broken_by_reference(self) -> None:
        calls: list[str] = []
        resolver = SchemaResolver(
            {"A": {"__name__": "A", "b": "B"}, "B": {"__name__": "B", "a": "A"}},
            _link_builder(calls),
        )
        models = resolver.resolve_models()

        a = models["A"].schema_
        assert a.properties["b"].properties["a"] == ParsedSchema.ref("A")
        assert models["B"].schema_.properties["a"].reference == "A"

    def test_self_reference(self) -> None:
        resolver = SchemaResolver({"Node": {"__name__": "Node", "next": "Node"}}, _link_builder([]))
        node = resolver.resolve("Node")
        assert node.properties["next"].is_reference
        assert node.properties["next"].reference == "Node"

    def test_each_definition_built_once(self) -> None:
        calls: list[str] = []
        resolver = SchemaResolver(
            {
                "Leaf": {"__name__": "Leaf"},
                "Left": {"__name__": "Left", "x": "Leaf"},
                "Right": {"__name__": "Right", "x": "Leaf"},
            },
            _link_builder(calls),
        )
        resolver.resolve_models()
        assert calls == ["Leaf", "Left", "Right"]

    def test_unknown_name_kept_as_reference(self) -> None:
        resolver = SchemaResolver({"A": {"__name__": "A", "b": "Missing"}}, _link_builder([]))
        assert resolver.resolve("A").properties["b"] == ParsedSchema.ref("Missing")
        assert "Missing" not in resolver
        assert "A" in resolver

    def test_models_follow_declaration_order(self) -> None:
        resolver = SchemaResolver(
            {"Z": {"__name__": "Z"}, "A": {"__name__": "A"}, "M": {"__name__": "M"}},
            _link_builder([]),
            describe=lambda d: f"model {d['__name__']}",
        )
        models = resolver.resolve_models()
        assert list(models) == ["Z", "A", "M"]
        assert models["A"].description == "model A"


# ---------------------------------------------------------------------------
# OpenAPI schemas
# ---------------------------------------------------------------------------


class TestOpenAPISchemas:
    def test_petstore_models(self, openapi_text: str) -> None:
        models = openapi_resolver(json.loads(openapi_text)).resolve_models()
        assert list(models) == ["Pet", "NewPet", "Owner", "Error"]

    def test_all_of_is_flattened(self, openapi_text: str) -> None:
        pet = openapi_resolver(json.loads(openapi_text)).resolve("Pet")
        assert pet.kind == SchemaKind.OBJECT
        assert list(pet.properties) == ["name", "tag", "owner", "id"]
        assert pet.required == ["name", "id"]

    def test_nullable_type_array(self, openapi_text: str) -> None:
        tag = openapi_resolver(json.loads(openapi_text)).resolve("NewPet").properties["tag"]
        assert tag.kind == SchemaKind.STRING
        assert tag.nullable

    def test_cycle_through_array_items(self, openapi_text: str) -> None:
        models = openapi_resolver(json.loads(openapi_text)).resolve_models()
        pets = models["Owner"].schema_.properties["pets"]
        assert pets.kind == SchemaKind.ARRAY
        assert pets.items is not None
        assert pets.items.reference == "Pet"

    def test_external_ref_preserved(self) -> None:
        resolver = openapi_resolver({})
        schema = openapi_schema(resolver, {"$ref": "common.yaml#/Money"})
        assert schema.reference == "common.yaml#/Money"

    def test_one_of_same_kind_collapses(self) -> None:
        resolver = openapi_resolver({})
        schema = openapi_schema(
            resolver, {"oneOf": [{"type": "string"}, {"type": "string", "format": "uuid"}]}
        )
        assert schema.kind == SchemaKind.STRING

    def test_one_of_mixed_kinds_is_any(self) -> None:
        resolver = openapi_resolver({})
        schema = openapi_schema(resolver, {"anyOf": [{"type": "string"}, {"type": "integer"}]})
        assert schema.kind == SchemaKind.ANY

    def test_kind_inferred_without_type(self) -> None:
        resolver = openapi_resolver({})
        assert openapi_schema(resolver, {"enum": ["a", "b"]}).kind == SchemaKind.ENUM
        assert openapi_schema(resolver, {"properties": {"x": {}}}).kind == SchemaKind.OBJECT
        assert openapi_schema(resolver, {"items": {"type": "string"}}).kind == SchemaKind.ARRAY
        assert openapi_schema(resolver, {}).kind == SchemaKind.ANY

    def test_constraints_carried(self) -> None:
        resolver = openapi_resolver({})
        schema = openapi_schema(
            resolver,
            {"type": "integer", "minimum": 1, "maximum": 100, "default": 20, "deprecated": True},
        )
        assert (schema.minimum, schema.maximum, schema.default) == (1, 100, 20)
        assert schema.deprecated

    def test_schema_ref_name(self) -> None:
        assert schema_ref_name("#/components/schemas/Pet") == "Pet"
        assert schema_ref_name("#/definitions/a~1b") == "a/b"
        assert schema_ref_name("#/components/responses/Error") is None


# ---------------------------------------------------------------------------
# GraphQL types
# ---------------------------------------------------------------------------


class TestGraphQLSchemas:
    def _models(self, graphql_text: str) -> dict[str, Any]:
        resolver = GraphQLSchemaResolver(parse_graphql(graphql_text).types)
        return {name: model.schema_ for name, model in resolver.resolve_models().items()}

    def test_scalars_are_not_models(self, graphql_text: str) -> None:
        models = self._models(graphql_text)
        assert list(models) == ["Node", "Status", "User", "CreateUserInput", "SearchResult"]

    def test_recursive_list_field(self, graphql_text: str) -> None:
        node = self._models(graphql_text)["Node"]
        children = node.properties["children"]
        assert children.kind == SchemaKind.ARRAY
        assert not children.nullable
        assert children.items is not None
        assert children.items.reference == "Node"
        assert node.properties["parent"].reference == "Node"
        assert node.required == ["id", "children"]

    def test_custom_scalar_becomes_formatted_string(self, graphql_text: str) -> None:
        created = self._models(graphql_text)["User"].properties["createdAt"]
        assert created.kind == SchemaKind.STRING
        assert created.format == "DateTime"
        assert created.nullable

    def test_id_maps_to_string(self, graphql_text: str) -> None:
        assert self._models(graphql_text)["User"].properties["id"].kind == SchemaKind.STRING

    def test_enum_and_deprecation(self, graphql_text: str) -> None:
        user = self._models(graphql_text)["User"]
        assert user.properties["status"].kind == SchemaKind.ENUM
        assert user.properties["status"].enum == ["ACTIVE", "ARCHIVED"]
        assert user.properties["nickname"].deprecated

    def test_union_discriminated_by_typename(self, graphql_text: str) -> None:
        union = self._models(graphql_text)["SearchResult"]
        assert union.kind == SchemaKind.OBJECT
        assert union.properties["__typename"].enum == ["User", "Node"]
        assert union.required == ["__typename"]


# ---------------------------------------------------------------------------
# Example-body inference
# ---------------------------------------------------------------------------


class TestInferSchema:
    def test_primitives(self) -> None:
        assert infer_schema(True).kind == SchemaKind.BOOLEAN
        assert infer_schema(3).kind == SchemaKind.INTEGER
        assert infer_schema(2.5).kind == SchemaKind.NUMBER
        assert infer_schema("x").kind == SchemaKind.STRING
        assert infer_schema(None).kind == SchemaKind.NULL

    def test_nested_object(self) -> None:
        schema = infer_schema({"id": 1, "tags": ["a"], "owner": {"name": "Ann"}})
        assert schema.kind == SchemaKind.OBJECT
        assert schema.properties["tags"].items is not None
        assert schema.properties["tags"].items.kind == SchemaKind.STRING
        assert schema.properties["owner"].properties["name"].kind == SchemaKind.STRING

    def test_empty_array_items_any(self) -> None:
        schema = infer_schema([])
        assert schema.items is not None
        assert schema.items.kind == SchemaKind.ANY
