"""Canonical Pydantic models shared across all specfuse modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into five groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`ChunkOptions`, :class:`ValidatorConfig`, :class:`ConverterConfig`,
    :class:`OutputConfig` and :class:`GlobalConfig`.

**Native trees** -- produced by the format adapters, one family per format:
    :class:`ParsedPostmanCollection`, :class:`ParsedGraphQLSchema` and
    :class:`OpenAPIDocument`.

**Canonical models** -- the unified representation every format converts
into: :class:`ParsedSchema`, :class:`ParsedModel`, :class:`ParsedEndpoint`,
:class:`ParsedSecurityScheme` and :class:`ParsedSpec`. These are frozen;
an edit produces a new snapshot (see :mod:`specfuse.parser.converter`).

**Derived output** -- :class:`ValidationResult`, :class:`TextChunk`,
:class:`GapAnalysis` and :class:`EndpointStats`.

**Inference models** -- :class:`InferenceResult`, :class:`Provenance` and the
ledger's action/outcome/stats types.

Canonical and inference models serialise with camelCase aliases
(``inferredValue``, ``statusCode``) so the transport shape matches what
UI layers and inference providers exchange, while Python code uses the
snake_case field names.
"""

from __future__ import annotations

import enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel


class _Canonical(BaseModel):
    """Base for frozen, camelCase-serialised models."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


# --- Configuration ---


class ChunkOptions(BaseModel):
    """Options for :func:`~specfuse.chunker.split_text`.

    The constraint ``0 <= overlap < chunk_size`` is enforced by the chunker
    (raising :class:`~specfuse.exceptions.ChunkConfigError`) rather than by
    this model, so a bad value in a config file surfaces as a chunker
    configuration error at the point of use.
    """

    chunk_size: int = Field(default=1000, description="Maximum chunk length in characters")
    overlap: int = Field(default=200, description="Characters shared by consecutive chunks")
    preserve_structure: bool = Field(
        default=True, description="Snap boundaries back to blank lines or closing braces"
    )
    lookback: Optional[int] = Field(
        default=None,
        description="Max characters a boundary may move back (default: chunk_size // 4)",
    )


class ValidatorConfig(BaseModel):
    """Severity policy for the findings the validator treats as negotiable."""

    unresolved_variable_severity: Literal["error", "warning"] = Field(
        default="warning",
        description="Severity of leftover {{var}} placeholders in Postman requests",
    )
    unresolved_reference_severity: Literal["error", "warning"] = Field(
        default="error",
        description="Severity of schema references naming a missing model",
    )


class ConverterConfig(BaseModel):
    """Settings applied while projecting native trees into a :class:`ParsedSpec`."""

    model_collision: Literal["suffix", "last_writer"] = Field(
        default="suffix",
        description="How merge_specs resolves two models with the same name",
    )
    default_version: str = Field(
        default="1.0.0", description="Version used when the document declares none"
    )


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/specfuse/config.json``.

    Loaded and saved by :func:`~specfuse.config.load_global_config` and
    :func:`~specfuse.config.save_global_config`. Fields here have the
    lowest precedence and can be overridden by project config, environment
    variables, or CLI flags. See :func:`~specfuse.config.resolve_config`
    for the full precedence chain.
    """

    chunker: ChunkOptions = Field(default_factory=ChunkOptions)
    validator: ValidatorConfig = Field(default_factory=ValidatorConfig)
    converter: ConverterConfig = Field(default_factory=ConverterConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


# --- Format tags ---


class SpecFormat(str, enum.Enum):
    """Closed set of source formats the adapters understand."""

    POSTMAN = "postman"
    GRAPHQL = "graphql"
    OPENAPI = "openapi"


# --- Native trees: Postman ---


class PostmanKeyValue(BaseModel):
    """A ``key``/``value`` pair as used by Postman headers, queries and variables."""

    key: str
    value: str = ""
    description: Optional[str] = None
    disabled: bool = False


class PostmanAuth(BaseModel):
    """Resolved auth block: ``type`` plus its flattened key/value settings."""

    type: str
    config: dict[str, str] = Field(default_factory=dict)


class PostmanBody(BaseModel):
    """Request body in one of Postman's modes (raw, formdata, urlencoded, ...)."""

    mode: str
    raw: Optional[str] = None
    language: Optional[str] = None
    fields: list[PostmanKeyValue] = Field(default_factory=list)


class PostmanResponse(BaseModel):
    """A saved example response attached to a request."""

    name: str = ""
    code: Optional[int] = None
    status: Optional[str] = None
    body: Optional[str] = None
    headers: list[PostmanKeyValue] = Field(default_factory=list)


class PostmanEndpoint(BaseModel):
    """One flattened request with inherited auth and variables already applied."""

    name: str
    method: str
    url: str
    path: str
    host: Optional[str] = None
    description: Optional[str] = None
    folders: list[str] = Field(default_factory=list)
    headers: list[PostmanKeyValue] = Field(default_factory=list)
    query: list[PostmanKeyValue] = Field(default_factory=list)
    path_variables: list[PostmanKeyValue] = Field(default_factory=list)
    body: Optional[PostmanBody] = None
    auth: Optional[PostmanAuth] = None
    responses: list[PostmanResponse] = Field(default_factory=list)
    unresolved_variables: list[str] = Field(default_factory=list)


class ParsedPostmanCollection(BaseModel):
    """Native tree produced by :func:`~specfuse.parser.postman.parse_postman`."""

    name: str
    description: Optional[str] = None
    schema_url: Optional[str] = None
    version: Optional[str] = None
    variables: dict[str, str] = Field(default_factory=dict)
    auth: Optional[PostmanAuth] = None
    endpoints: list[PostmanEndpoint] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def endpoint_count(self) -> int:
        return len(self.endpoints)


# --- Native trees: GraphQL ---


class GraphQLTypeKind(str, enum.Enum):
    """Kinds of named types in an SDL type system."""

    OBJECT = "OBJECT"
    INPUT_OBJECT = "INPUT_OBJECT"
    INTERFACE = "INTERFACE"
    ENUM = "ENUM"
    UNION = "UNION"
    SCALAR = "SCALAR"


class GraphQLOperationType(str, enum.Enum):
    """Root operation types and the pseudo-verb each one maps to."""

    QUERY = "query"
    MUTATION = "mutation"
    SUBSCRIPTION = "subscription"

    @property
    def pseudo_verb(self) -> str:
        return self.value.upper()


class GraphQLTypeRef(BaseModel):
    """A possibly wrapped type reference such as ``[User!]!``."""

    name: str
    is_list: bool = False
    is_required: bool = False
    item_required: bool = False

    @property
    def display(self) -> str:
        inner = f"{self.name}!" if self.item_required else self.name
        text = f"[{inner}]" if self.is_list else self.name
        return f"{text}!" if self.is_required else text


class GraphQLArgument(BaseModel):
    name: str
    type_ref: GraphQLTypeRef
    description: Optional[str] = None
    default_value: Any = None


class GraphQLField(BaseModel):
    name: str
    type_ref: GraphQLTypeRef
    description: Optional[str] = None
    args: list[GraphQLArgument] = Field(default_factory=list)
    deprecated: bool = False


class GraphQLTypeDef(BaseModel):
    """A named type definition, with any ``extend`` blocks already merged."""

    name: str
    kind: GraphQLTypeKind
    description: Optional[str] = None
    fields: list[GraphQLField] = Field(default_factory=list)
    values: list[str] = Field(default_factory=list)
    possible_types: list[str] = Field(default_factory=list)
    interfaces: list[str] = Field(default_factory=list)


class GraphQLOperation(BaseModel):
    """A root field of ``Query``, ``Mutation`` or ``Subscription``."""

    name: str
    operation_type: GraphQLOperationType
    return_type: GraphQLTypeRef
    description: Optional[str] = None
    args: list[GraphQLArgument] = Field(default_factory=list)
    deprecated: bool = False


class ParsedGraphQLSchema(BaseModel):
    """Native tree produced by :func:`~specfuse.parser.graphql.parse_graphql`."""

    types: list[GraphQLTypeDef] = Field(default_factory=list)
    queries: list[GraphQLOperation] = Field(default_factory=list)
    mutations: list[GraphQLOperation] = Field(default_factory=list)
    subscriptions: list[GraphQLOperation] = Field(default_factory=list)
    description: Optional[str] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def type_count(self) -> int:
        return len(self.types)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def query_count(self) -> int:
        return len(self.queries)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def mutation_count(self) -> int:
        return len(self.mutations)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def subscription_count(self) -> int:
        return len(self.subscriptions)

    @property
    def operations(self) -> list[GraphQLOperation]:
        return [*self.queries, *self.mutations, *self.subscriptions]


# --- Native trees: OpenAPI ---


class OpenAPIDocument(BaseModel):
    """Native tree produced by :func:`~specfuse.parser.openapi.parse_openapi`."""

    openapi_version: str
    document: dict[str, Any]


# --- Canonical models ---


class SchemaKind(str, enum.Enum):
    """Kind of a :class:`ParsedSchema` node."""

    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"
    ENUM = "enum"
    NULL = "null"
    ANY = "any"


class ParsedSchema(_Canonical):
    """A recursive schema node.

    ``reference`` is a weak pointer by name into :attr:`ParsedSpec.models`.
    A schema never contains itself; a type graph with cycles is represented
    by breaking each cycle with a reference-only node.
    """

    kind: SchemaKind = SchemaKind.OBJECT
    format: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    properties: dict[str, ParsedSchema] = Field(default_factory=dict)
    required: list[str] = Field(default_factory=list)
    items: Optional[ParsedSchema] = None
    enum: Optional[list[Any]] = None
    default: Any = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    nullable: bool = False
    deprecated: bool = False
    example: Any = None
    reference: Optional[str] = None

    @property
    def is_reference(self) -> bool:
        return self.reference is not None

    @classmethod
    def ref(cls, name: str) -> ParsedSchema:
        """Build a reference-only node pointing at model *name*."""
        return cls(reference=name)


class ParsedModel(_Canonical):
    name: str
    schema_: ParsedSchema = Field(alias="schema")
    description: Optional[str] = None
    examples: list[Any] = Field(default_factory=list)


class ParameterLocation(str, enum.Enum):
    """Locations where an API parameter can appear.

    GraphQL arguments are bucketed under ``QUERY`` since GraphQL has no HTTP
    parameter channel of its own.
    """

    QUERY = "query"
    HEADER = "header"
    PATH = "path"
    COOKIE = "cookie"


class ParsedParameter(_Canonical):
    name: str
    location: ParameterLocation
    description: Optional[str] = None
    required: bool = False
    schema_: ParsedSchema = Field(default_factory=lambda: ParsedSchema(kind=SchemaKind.STRING), alias="schema")
    example: Any = None
    deprecated: bool = False


class ParsedMediaType(_Canonical):
    schema_: Optional[ParsedSchema] = Field(default=None, alias="schema")
    example: Any = None


class ParsedRequestBody(_Canonical):
    description: Optional[str] = None
    required: bool = False
    content: dict[str, ParsedMediaType] = Field(default_factory=dict)


class ParsedResponse(_Canonical):
    status_code: str
    description: str = ""
    content: dict[str, ParsedMediaType] = Field(default_factory=dict)
    headers: dict[str, ParsedSchema] = Field(default_factory=dict)


class ParsedEndpoint(_Canonical):
    """A single operation: an HTTP method + path, or a GraphQL root field.

    For GraphQL, ``method`` carries the pseudo-verb (``QUERY``,
    ``MUTATION``, ``SUBSCRIPTION``) and ``path`` the field name.

    ``unresolved_variables`` lists Postman ``{{name}}`` placeholders that no
    scope defined, including ones in headers, bodies and auth settings that
    do not survive as parameters.
    """

    method: str
    path: str
    name: str = ""
    operation_id: Optional[str] = None
    description: Optional[str] = None
    parameters: list[ParsedParameter] = Field(default_factory=list)
    request_body: Optional[ParsedRequestBody] = None
    responses: dict[str, ParsedResponse] = Field(default_factory=dict)
    security: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    deprecated: bool = False
    unresolved_variables: list[str] = Field(default_factory=list)


class SecuritySchemeKind(str, enum.Enum):
    API_KEY = "apiKey"
    HTTP = "http"
    OAUTH2 = "oauth2"
    OPENID_CONNECT = "openIdConnect"


class OAuthFlow(_Canonical):
    authorization_url: Optional[str] = None
    token_url: Optional[str] = None
    refresh_url: Optional[str] = None
    scopes: dict[str, str] = Field(default_factory=dict)


class ParsedSecurityScheme(_Canonical):
    """A security scheme; only the fields relevant to ``kind`` are populated."""

    name: str
    kind: SecuritySchemeKind
    description: Optional[str] = None
    # apiKey
    location: Optional[str] = None  # header, query, cookie
    param_name: Optional[str] = None
    # http
    scheme: Optional[str] = None  # bearer, basic, digest
    bearer_format: Optional[str] = None
    # oauth2
    flows: dict[str, OAuthFlow] = Field(default_factory=dict)
    # openIdConnect
    openid_connect_url: Optional[str] = None


class ServerInfo(_Canonical):
    url: str
    description: Optional[str] = None


class TagInfo(_Canonical):
    name: str
    description: Optional[str] = None


class ParsedSpec(_Canonical):
    """Canonical representation of an API description, whatever its source format.

    Produced by :func:`~specfuse.parser.converter.convert` and consumed by
    the validator, the chunker, and external UI/codegen layers. Instances
    are immutable snapshots; see
    :func:`~specfuse.parser.converter.with_model` for copy-on-write edits.
    """

    title: str
    version: str
    description: Optional[str] = None
    servers: list[ServerInfo] = Field(default_factory=list)
    endpoints: list[ParsedEndpoint] = Field(default_factory=list)
    models: dict[str, ParsedModel] = Field(default_factory=dict)
    security_schemes: list[ParsedSecurityScheme] = Field(default_factory=list)
    global_security: list[str] = Field(default_factory=list)
    tags: list[TagInfo] = Field(default_factory=list)
    source_format: Optional[SpecFormat] = None

    def security_scheme(self, name: str) -> Optional[ParsedSecurityScheme]:
        """Return the scheme called *name*, or ``None``."""
        for scheme in self.security_schemes:
            if scheme.name == name:
                return scheme
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a plain nested dict with camelCase keys for transport."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ParsedSpec:
        """Rebuild a snapshot from :meth:`to_dict` output."""
        return cls.model_validate(data)


# --- Derived output ---


class ValidationResult(_Canonical):
    """Outcome of a validation pass. ``valid`` is true iff ``errors`` is empty."""

    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def valid(self) -> bool:
        return not self.errors


class ChunkType(str, enum.Enum):
    PARAGRAPH = "paragraph"
    HEADING = "heading"
    CODE = "code"
    LIST = "list"
    TABLE = "table"


class ChunkMetadata(_Canonical):
    """Where a chunk came from. ``start``/``end`` are offsets into the original text."""

    type: ChunkType
    source: str
    start: int
    end: int
    index: int = 0

    @property
    def length(self) -> int:
        return self.end - self.start


class TextChunk(_Canonical):
    content: str
    metadata: ChunkMetadata


class GapStatus(str, enum.Enum):
    PRESENT = "present"
    INFERRED = "inferred"
    MISSING = "missing"


class GapAnalysis(_Canonical):
    """Whether one cross-cutting concern is documented by a spec."""

    field: str
    status: GapStatus
    confidence: Optional[float] = None
    issues: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class EndpointStats(_Canonical):
    total: int = 0
    by_method: dict[str, int] = Field(default_factory=dict)
    by_tag: dict[str, int] = Field(default_factory=dict)
    deprecated: int = 0
    with_auth: int = 0
    with_pagination: int = 0


class AuthPatterns(_Canonical):
    auth_types: list[str] = Field(default_factory=list)
    has_bearer_auth: bool = False
    has_api_key_auth: bool = False
    has_oauth: bool = False
    requires_auth: bool = False


class PaginationPatterns(_Canonical):
    """Pagination evidence found in query parameters and response shapes."""

    has_pagination: bool = False
    patterns: list[str] = Field(default_factory=list)
    common_params: list[str] = Field(default_factory=list)


# --- Inference models ---


class InferenceCategory(str, enum.Enum):
    AUTH = "auth"
    PAGINATION = "pagination"
    RATE_LIMIT = "rate_limit"
    ERROR_HANDLING = "error_handling"
    DATA_FORMAT = "data_format"
    OTHER = "other"


class ProvenanceSource(str, enum.Enum):
    PATTERN_ANALYSIS = "pattern_analysis"
    SIMILAR_APIS = "similar_apis"
    DOCUMENTATION = "documentation"
    COMMUNITY_KNOWLEDGE = "community_knowledge"
    STATISTICAL = "statistical"


class Provenance(_Canonical):
    """Why and how an inference was produced."""

    source: ProvenanceSource
    confidence: float = Field(ge=0.0, le=1.0)
    description: str
    examples: list[str] = Field(default_factory=list)


class InferenceAlternative(_Canonical):
    value: Any = None
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""
    use_cases: list[str] = Field(default_factory=list)


class InferenceResult(_Canonical):
    """An inferred value for one field of an API, keyed by ``(field, category)``."""

    field: str
    inferred_value: Any = None
    confidence: float = Field(ge=0.0, le=1.0)
    provenance: list[Provenance] = Field(min_length=1)
    alternatives: list[InferenceAlternative] = Field(default_factory=list)
    reasoning: str = ""
    evidence: list[str] = Field(default_factory=list)
    category: InferenceCategory

    @property
    def key(self) -> tuple[str, InferenceCategory]:
        return (self.field, self.category)


class LedgerAction(str, enum.Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    OVERRIDE = "override"


class UserAction(_Canonical):
    """User feedback on one inference, as received from the UI layer."""

    field: str
    category: InferenceCategory
    action: LedgerAction
    value: Any = None


class IngestOutcome(str, enum.Enum):
    INSERTED = "inserted"
    MERGED = "merged"
    DROPPED = "dropped"


class ActionOutcome(str, enum.Enum):
    """Result of :meth:`~specfuse.inference.ledger.InferenceLedger.apply_action`.

    ``CONFLICT`` marks an action on a key already pinned or suppressed by a
    different decision; it is resolved as a no-op rather than raised.
    """

    APPLIED = "applied"
    UNCHANGED = "unchanged"
    CONFLICT = "conflict"
    MISSING = "missing"


class LedgerStats(_Canonical):
    coverage: float = 0.0
    confidence: float = 0.0
    total_fields: int = 0
    inferred_fields: int = 0
    entries: int = 0
    pinned: int = 0
    suppressed: int = 0


ParsedSchema.model_rebuild()
