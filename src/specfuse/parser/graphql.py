"""Decode GraphQL SDL into a :class:`~specfuse.models.ParsedGraphQLSchema`.

Parsing is delegated to graphql-core's SDL parser; this module only walks
the resulting document AST.  Type extensions (``extend type Query { ... }``)
are folded into the definition they extend, and the fields of the root
operation types become :class:`~specfuse.models.GraphQLOperation` entries
rather than ordinary types.  Root type names come from an explicit
``schema { query: ... }`` block when present, defaulting to ``Query``,
``Mutation`` and ``Subscription``.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from graphql import GraphQLSyntaxError
from graphql.language import (
    DocumentNode,
    EnumTypeDefinitionNode,
    EnumTypeExtensionNode,
    ExecutableDefinitionNode,
    FieldDefinitionNode,
    InputObjectTypeDefinitionNode,
    InputObjectTypeExtensionNode,
    InputValueDefinitionNode,
    InterfaceTypeDefinitionNode,
    InterfaceTypeExtensionNode,
    ListTypeNode,
    NonNullTypeNode,
    ObjectTypeDefinitionNode,
    ObjectTypeExtensionNode,
    ScalarTypeDefinitionNode,
    ScalarTypeExtensionNode,
    SchemaDefinitionNode,
    SchemaExtensionNode,
    TypeNode,
    UnionTypeDefinitionNode,
    UnionTypeExtensionNode,
    parse,
)
from graphql.utilities import value_from_ast_untyped

from specfuse.exceptions import SpecParseError
from specfuse.models import (
    GraphQLArgument,
    GraphQLField,
    GraphQLOperation,
    GraphQLOperationType,
    GraphQLTypeDef,
    GraphQLTypeKind,
    GraphQLTypeRef,
    ParsedGraphQLSchema,
)

logger = logging.getLogger(__name__)

_DEFAULT_ROOTS = {
    GraphQLOperationType.QUERY: "Query",
    GraphQLOperationType.MUTATION: "Mutation",
    GraphQLOperationType.SUBSCRIPTION: "Subscription",
}

_DEFINITION_KINDS: dict[type, GraphQLTypeKind] = {
    ObjectTypeDefinitionNode: GraphQLTypeKind.OBJECT,
    ObjectTypeExtensionNode: GraphQLTypeKind.OBJECT,
    InputObjectTypeDefinitionNode: GraphQLTypeKind.INPUT_OBJECT,
    InputObjectTypeExtensionNode: GraphQLTypeKind.INPUT_OBJECT,
    InterfaceTypeDefinitionNode: GraphQLTypeKind.INTERFACE,
    InterfaceTypeExtensionNode: GraphQLTypeKind.INTERFACE,
    EnumTypeDefinitionNode: GraphQLTypeKind.ENUM,
    EnumTypeExtensionNode: GraphQLTypeKind.ENUM,
    UnionTypeDefinitionNode: GraphQLTypeKind.UNION,
    UnionTypeExtensionNode: GraphQLTypeKind.UNION,
    ScalarTypeDefinitionNode: GraphQLTypeKind.SCALAR,
    ScalarTypeExtensionNode: GraphQLTypeKind.SCALAR,
}


def parse_graphql(content: str) -> ParsedGraphQLSchema:
    """Parse GraphQL SDL text.

    Raises:
        SpecParseError: On a syntax error (with line/column), on JSON input,
            or when the document defines no types at all.
    """
    if _looks_like_json(content):
        raise SpecParseError(
            "GraphQL input must be SDL text, not JSON",
            suggestions=[
                "Print the schema as SDL (e.g. graphql.utilities.print_schema)"
            ],
        )

    try:
        document = parse(content, no_location=False)
    except GraphQLSyntaxError as exc:
        location = exc.locations[0] if exc.locations else None
        raise SpecParseError(
            f"GraphQL syntax error: {exc.message}",
            line=location.line if location else None,
            column=location.column if location else None,
        ) from exc

    return _build_schema(document)


def _looks_like_json(content: str) -> bool:
    stripped = content.lstrip()
    if not stripped.startswith(("{", "[")):
        return False
    try:
        json.loads(stripped)
    except json.JSONDecodeError:
        return False
    return True


def _build_schema(document: DocumentNode) -> ParsedGraphQLSchema:
    types: dict[str, GraphQLTypeDef] = {}
    # An explicit schema definition replaces the default root names.
    explicit = any(isinstance(node, SchemaDefinitionNode) for node in document.definitions)
    roots: dict[GraphQLOperationType, str] = {} if explicit else dict(_DEFAULT_ROOTS)
    description: Optional[str] = None

    for node in document.definitions:
        if isinstance(node, (SchemaDefinitionNode, SchemaExtensionNode)):
            for operation_type in node.operation_types or ():
                roots[GraphQLOperationType(operation_type.operation.value)] = (
                    operation_type.type.name.value
                )
            if isinstance(node, SchemaDefinitionNode) and node.description:
                description = node.description.value
            continue
        kind = _DEFINITION_KINDS.get(type(node))
        if kind is None:
            if isinstance(node, ExecutableDefinitionNode):
                logger.debug("Ignoring executable definition in SDL document")
            continue
        incoming = _type_def(node, kind)
        existing = types.get(incoming.name)
        types[incoming.name] = _merge(existing, incoming) if existing else incoming

    if not types:
        raise SpecParseError("No GraphQL type definitions found")

    operations: dict[GraphQLOperationType, list[GraphQLOperation]] = {
        operation_type: [] for operation_type in GraphQLOperationType
    }
    for operation_type, root_name in roots.items():
        root = types.pop(root_name, None)
        operations[operation_type] = (
            [_operation(f, operation_type) for f in root.fields] if root else []
        )

    schema = ParsedGraphQLSchema(
        types=list(types.values()),
        queries=operations[GraphQLOperationType.QUERY],
        mutations=operations[GraphQLOperationType.MUTATION],
        subscriptions=operations[GraphQLOperationType.SUBSCRIPTION],
        description=description,
    )
    logger.debug(
        "Parsed GraphQL schema: %d types, %d queries, %d mutations, %d subscriptions",
        schema.type_count,
        schema.query_count,
        schema.mutation_count,
        schema.subscription_count,
    )
    return schema


def _type_def(node: Any, kind: GraphQLTypeKind) -> GraphQLTypeDef:
    description = getattr(node, "description", None)
    fields: list[GraphQLField] = []
    values: list[str] = []
    possible_types: list[str] = []
    interfaces: list[str] = []

    if kind in (GraphQLTypeKind.OBJECT, GraphQLTypeKind.INTERFACE):
        fields = [_field(f) for f in node.fields or ()]
        interfaces = [i.name.value for i in node.interfaces or ()]
    elif kind == GraphQLTypeKind.INPUT_OBJECT:
        fields = [_input_field(f) for f in node.fields or ()]
    elif kind == GraphQLTypeKind.ENUM:
        values = [v.name.value for v in node.values or ()]
    elif kind == GraphQLTypeKind.UNION:
        possible_types = [t.name.value for t in node.types or ()]

    return GraphQLTypeDef(
        name=node.name.value,
        kind=kind,
        description=description.value if description else None,
        fields=fields,
        values=values,
        possible_types=possible_types,
        interfaces=interfaces,
    )


def _merge(base: GraphQLTypeDef, extension: GraphQLTypeDef) -> GraphQLTypeDef:
    """Fold an ``extend`` block (or a later definition) into *base*."""
    known_fields = {f.name for f in base.fields}
    return base.model_copy(
        update={
            "description": base.description or extension.description,
            "fields": base.fields + [f for f in extension.fields if f.name not in known_fields],
            "values": base.values + [v for v in extension.values if v not in base.values],
            "possible_types": base.possible_types
            + [t for t in extension.possible_types if t not in base.possible_types],
            "interfaces": base.interfaces
            + [i for i in extension.interfaces if i not in base.interfaces],
        }
    )


def _field(node: FieldDefinitionNode) -> GraphQLField:
    return GraphQLField(
        name=node.name.value,
        type_ref=type_ref(node.type),
        description=node.description.value if node.description else None,
        args=[_argument(a) for a in node.arguments or ()],
        deprecated=_is_deprecated(node),
    )


def _input_field(node: InputValueDefinitionNode) -> GraphQLField:
    return GraphQLField(
        name=node.name.value,
        type_ref=type_ref(node.type),
        description=node.description.value if node.description else None,
        deprecated=_is_deprecated(node),
    )


def _argument(node: InputValueDefinitionNode) -> GraphQLArgument:
    return GraphQLArgument(
        name=node.name.value,
        type_ref=type_ref(node.type),
        description=node.description.value if node.description else None,
        default_value=(
            value_from_ast_untyped(node.default_value) if node.default_value else None
        ),
    )


def _operation(field: GraphQLField, operation_type: GraphQLOperationType) -> GraphQLOperation:
    return GraphQLOperation(
        name=field.name,
        operation_type=operation_type,
        return_type=field.type_ref,
        description=field.description,
        args=field.args,
        deprecated=field.deprecated,
    )


def _is_deprecated(node: Any) -> bool:
    return any(d.name.value == "deprecated" for d in node.directives or ())


def type_ref(node: TypeNode) -> GraphQLTypeRef:
    """Flatten a wrapped type node into a :class:`GraphQLTypeRef`.

    Nested lists (``[[Int]]``) collapse to a single list of the innermost
    named type.
    """
    is_required = isinstance(node, NonNullTypeNode)
    if is_required:
        node = node.type
    if not isinstance(node, ListTypeNode):
        return GraphQLTypeRef(name=node.name.value, is_required=is_required)

    inner = node.type
    item_required = isinstance(inner, NonNullTypeNode)
    while isinstance(inner, (NonNullTypeNode, ListTypeNode)):
        inner = inner.type
    return GraphQLTypeRef(
        name=inner.name.value,
        is_list=True,
        is_required=is_required,
        item_required=item_required,
    )
