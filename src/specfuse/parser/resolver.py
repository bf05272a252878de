"""Resolve named type definitions into canonical, finite schema trees.

Every source format describes its types as a table of named definitions
that may point at each other: OpenAPI through ``$ref``, GraphQL through
named type references.  :class:`SchemaResolver` turns such a table into
:class:`~specfuse.models.ParsedSchema` trees with a depth-first walk:

* a definition is inlined at each use site,
* re-entering a name that is still being resolved (a cycle) yields a
  reference-only node, ``ParsedSchema(reference=name)``, instead of
  recursing,
* a finished schema is memoized, so later uses reuse it without a re-walk,
* names missing from the table are kept as references; the validator
  reports them.

The walk follows definition order, so the output is deterministic.

Format-specific builders live here too: :func:`openapi_resolver`,
:class:`GraphQLSchemaResolver` and :func:`infer_schema` (for Postman example
bodies, which carry no names at all).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, Generic, Optional, TypeVar

from specfuse.models import (
    GraphQLTypeDef,
    GraphQLTypeKind,
    GraphQLTypeRef,
    ParsedModel,
    ParsedSchema,
    SchemaKind,
)

logger = logging.getLogger(__name__)

D = TypeVar("D")

SCHEMA_REF_PREFIXES = ("#/components/schemas/", "#/definitions/")

_GRAPHQL_SCALARS = {
    "Int": SchemaKind.INTEGER,
    "Float": SchemaKind.NUMBER,
    "String": SchemaKind.STRING,
    "ID": SchemaKind.STRING,
    "Boolean": SchemaKind.BOOLEAN,
}


class SchemaResolver(Generic[D]):
    """Memoizing, cycle-safe resolver over a name -> definition table.

    Args:
        definitions: Definitions keyed by model name, in declaration order.
        build: Called as ``build(resolver, definition)`` to turn one
            definition into a schema.  It calls :meth:`resolve` for every
            named type it meets.
        describe: Optional ``describe(definition)`` returning the model
            description used by :meth:`resolve_models`.
    """

    def __init__(
        self,
        definitions: Mapping[str, D],
        build: Callable[[SchemaResolver[D], D], ParsedSchema],
        describe: Optional[Callable[[D], Optional[str]]] = None,
    ):
        self._definitions = dict(definitions)
        self._build = build
        self._describe = describe
        self._in_progress: set[str] = set()
        self._memo: dict[str, ParsedSchema] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._definitions

    def resolve(self, name: str) -> ParsedSchema:
        """Return the schema for *name*, or a reference node on a cycle or miss."""
        memoized = self._memo.get(name)
        if memoized is not None:
            return memoized
        if name in self._in_progress:
            logger.debug("Breaking cycle at '%s'", name)
            return ParsedSchema.ref(name)
        if name not in self._definitions:
            logger.debug("Keeping unknown type '%s' as a reference", name)
            return ParsedSchema.ref(name)

        self._in_progress.add(name)
        try:
            schema = self._build(self, self._definitions[name])
        finally:
            self._in_progress.discard(name)
        self._memo[name] = schema
        return schema

    def resolve_models(self) -> dict[str, ParsedModel]:
        """Resolve every definition, in declaration order."""
        models: dict[str, ParsedModel] = {}
        for name, definition in self._definitions.items():
            schema = self.resolve(name)
            description = self._describe(definition) if self._describe else None
            models[name] = ParsedModel(
                name=name,
                schema=schema,
                description=description or schema.description,
            )
        return models


# ------------------------------------------------------------------ #
# OpenAPI
# ------------------------------------------------------------------ #


def openapi_resolver(document: dict[str, Any]) -> SchemaResolver[dict[str, Any]]:
    """Build a resolver over ``components.schemas`` of an OpenAPI document."""
    schemas = (document.get("components") or {}).get("schemas") or {}
    definitions = {
        str(name): raw for name, raw in schemas.items() if isinstance(raw, dict)
    }
    return SchemaResolver(
        definitions,
        openapi_schema,
        describe=lambda raw: raw.get("description"),
    )


def schema_ref_name(ref: str) -> Optional[str]:
    """Model name for a ``#/components/schemas/X`` style pointer, else ``None``."""
    for prefix in SCHEMA_REF_PREFIXES:
        if ref.startswith(prefix):
            return ref[len(prefix):].replace("~1", "/").replace("~0", "~")
    return None


def openapi_schema(resolver: SchemaResolver[dict[str, Any]], raw: Any) -> ParsedSchema:
    """Convert one raw OpenAPI schema object.

    ``$ref`` pointers into the schema table go through *resolver*; any other
    pointer is preserved verbatim as a reference.
    """
    if not isinstance(raw, dict):
        return ParsedSchema(kind=SchemaKind.ANY)

    ref = raw.get("$ref")
    if isinstance(ref, str):
        name = schema_ref_name(ref)
        return resolver.resolve(name) if name is not None else ParsedSchema.ref(ref)

    if "allOf" in raw:
        return _flatten_all_of(resolver, raw)
    for combinator in ("oneOf", "anyOf"):
        if combinator in raw:
            return _collapse_branches(resolver, raw, raw[combinator])

    kind, nullable = _openapi_kind(raw)
    properties = {
        str(key): openapi_schema(resolver, value)
        for key, value in (raw.get("properties") or {}).items()
    }
    items = None
    if kind == SchemaKind.ARRAY:
        items = openapi_schema(resolver, raw.get("items") or {})

    return ParsedSchema(
        kind=kind,
        format=raw.get("format"),
        title=raw.get("title"),
        description=raw.get("description"),
        properties=properties,
        required=[str(r) for r in raw.get("required") or [] if isinstance(r, str)],
        items=items,
        enum=raw.get("enum"),
        default=raw.get("default"),
        minimum=raw.get("minimum"),
        maximum=raw.get("maximum"),
        min_length=raw.get("minLength"),
        max_length=raw.get("maxLength"),
        pattern=raw.get("pattern"),
        nullable=nullable or bool(raw.get("nullable", False)),
        deprecated=bool(raw.get("deprecated", False)),
        example=raw.get("example"),
    )


def _openapi_kind(raw: dict[str, Any]) -> tuple[SchemaKind, bool]:
    """Return ``(kind, nullable)``, reading 3.1 type arrays like ``["string", "null"]``."""
    type_value = raw.get("type")
    nullable = False
    if isinstance(type_value, list):
        nullable = "null" in type_value
        non_null = [t for t in type_value if t != "null"]
        type_value = non_null[0] if non_null else "null"

    if type_value is None:
        if "enum" in raw:
            return SchemaKind.ENUM, nullable
        if "properties" in raw:
            return SchemaKind.OBJECT, nullable
        if "items" in raw:
            return SchemaKind.ARRAY, nullable
        return SchemaKind.ANY, nullable
    try:
        return SchemaKind(str(type_value)), nullable
    except ValueError:
        return SchemaKind.ANY, nullable


def _flatten_all_of(resolver: SchemaResolver[dict[str, Any]], raw: dict[str, Any]) -> ParsedSchema:
    properties: dict[str, ParsedSchema] = {}
    required: list[str] = []
    description = raw.get("description")
    branches = [openapi_schema(resolver, b) for b in raw.get("allOf") or []]

    own = {k: v for k, v in raw.items() if k != "allOf"}
    if own.get("properties"):
        branches.append(openapi_schema(resolver, own))

    references = [b for b in branches if b.is_reference]
    if references and len(references) == len(branches) == 1:
        return references[0]

    for branch in branches:
        if branch.is_reference:
            logger.debug("allOf branch '%s' is on a cycle; not flattened", branch.reference)
            continue
        properties.update(branch.properties)
        required.extend(r for r in branch.required if r not in required)
        description = description or branch.description

    return ParsedSchema(
        kind=SchemaKind.OBJECT,
        title=raw.get("title"),
        description=description,
        properties=properties,
        required=required,
        nullable=bool(raw.get("nullable", False)),
    )


def _collapse_branches(
    resolver: SchemaResolver[dict[str, Any]], raw: dict[str, Any], branches: Any
) -> ParsedSchema:
    resolved = [openapi_schema(resolver, b) for b in branches or []]
    if not resolved:
        return ParsedSchema(kind=SchemaKind.ANY, description=raw.get("description"))
    first = resolved[0]
    if all(b.kind == first.kind and not b.is_reference for b in resolved):
        return first
    if len(resolved) == 1:
        return first
    return ParsedSchema(
        kind=SchemaKind.ANY,
        description=raw.get("description") or first.description,
        nullable=bool(raw.get("nullable", False)),
    )


# ------------------------------------------------------------------ #
# GraphQL
# ------------------------------------------------------------------ #


class GraphQLSchemaResolver(SchemaResolver[GraphQLTypeDef]):
    """Resolver over the non-scalar named types of a GraphQL schema.

    Custom scalars are not models; they map to strings whose ``format`` is
    the scalar name.
    """

    def __init__(self, types: list[GraphQLTypeDef]):
        self.custom_scalars = {t.name for t in types if t.kind == GraphQLTypeKind.SCALAR}
        super().__init__(
            {t.name: t for t in types if t.kind != GraphQLTypeKind.SCALAR},
            _graphql_type_schema,
            describe=lambda t: t.description,
        )

    def type_ref_schema(self, ref: GraphQLTypeRef) -> ParsedSchema:
        """Schema for a (possibly list-wrapped) type reference such as ``[User!]``."""
        base = self._named(ref.name)
        if ref.is_list:
            if not ref.item_required and not base.is_reference:
                base = base.model_copy(update={"nullable": True})
            return ParsedSchema(kind=SchemaKind.ARRAY, items=base, nullable=not ref.is_required)
        if not ref.is_required and not base.is_reference:
            return base.model_copy(update={"nullable": True})
        return base

    def _named(self, name: str) -> ParsedSchema:
        builtin = _GRAPHQL_SCALARS.get(name)
        if builtin is not None:
            return ParsedSchema(kind=builtin)
        if name in self.custom_scalars:
            return ParsedSchema(kind=SchemaKind.STRING, format=name)
        return self.resolve(name)


def _graphql_type_schema(
    resolver: GraphQLSchemaResolver, type_def: GraphQLTypeDef
) -> ParsedSchema:
    if type_def.kind == GraphQLTypeKind.ENUM:
        return ParsedSchema(
            kind=SchemaKind.ENUM,
            title=type_def.name,
            description=type_def.description,
            enum=list(type_def.values),
        )
    if type_def.kind == GraphQLTypeKind.UNION:
        # Members are told apart by __typename.
        return ParsedSchema(
            kind=SchemaKind.OBJECT,
            title=type_def.name,
            description=type_def.description
            or "One of: " + ", ".join(type_def.possible_types),
            properties={
                "__typename": ParsedSchema(
                    kind=SchemaKind.ENUM, enum=list(type_def.possible_types)
                )
            },
            required=["__typename"],
        )

    properties: dict[str, ParsedSchema] = {}
    required: list[str] = []
    for field in type_def.fields:
        schema = resolver.type_ref_schema(field.type_ref)
        updates: dict[str, Any] = {}
        if field.description and not schema.is_reference:
            updates["description"] = field.description
        if field.deprecated and not schema.is_reference:
            updates["deprecated"] = True
        properties[field.name] = schema.model_copy(update=updates) if updates else schema
        if field.type_ref.is_required:
            required.append(field.name)

    return ParsedSchema(
        kind=SchemaKind.OBJECT,
        title=type_def.name,
        description=type_def.description,
        properties=properties,
        required=required,
    )


# ------------------------------------------------------------------ #
# Postman example bodies
# ------------------------------------------------------------------ #


def infer_schema(value: Any) -> ParsedSchema:
    """Infer a schema from a decoded JSON example.

    Arrays take their item shape from the first element; an empty array
    gets items of kind ``any``.
    """
    if value is None:
        return ParsedSchema(kind=SchemaKind.NULL, nullable=True)
    if isinstance(value, bool):
        return ParsedSchema(kind=SchemaKind.BOOLEAN)
    if isinstance(value, int):
        return ParsedSchema(kind=SchemaKind.INTEGER)
    if isinstance(value, float):
        return ParsedSchema(kind=SchemaKind.NUMBER)
    if isinstance(value, str):
        return ParsedSchema(kind=SchemaKind.STRING)
    if isinstance(value, list):
        items = infer_schema(value[0]) if value else ParsedSchema(kind=SchemaKind.ANY)
        return ParsedSchema(kind=SchemaKind.ARRAY, items=items)
    if isinstance(value, dict):
        return ParsedSchema(
            kind=SchemaKind.OBJECT,
            properties={str(k): infer_schema(v) for k, v in value.items()},
        )
    return ParsedSchema(kind=SchemaKind.ANY)
