"""Project native trees into the canonical :class:`~specfuse.models.ParsedSpec`.

:func:`convert` dispatches on the native tree type produced by the format
adapters:

* ``ParsedPostmanCollection`` -- folders become dot-joined tags, auth blocks
  become named security schemes, example bodies give inferred schemas and
  every endpoint gets at least a synthesized ``default`` response.
* ``ParsedGraphQLSchema`` -- named types become models via
  :class:`~specfuse.parser.resolver.GraphQLSchemaResolver`; each root field
  becomes one endpoint whose method is the pseudo-verb ``QUERY``,
  ``MUTATION`` or ``SUBSCRIPTION``.
* ``OpenAPIDocument`` -- paths and operations are walked the OpenAPI way:
  path-level parameters are merged with operation-level ones (operation
  wins on the same ``name`` + ``in``), and operation ``security`` replaces
  the global requirement, an explicit ``[]`` meaning "no auth".

Snapshots are immutable.  :func:`with_model`, :func:`without_model` and
:func:`merge_specs` return new snapshots and never touch their inputs.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import Any, Optional, Union

from specfuse.exceptions import SpecParseError
from specfuse.models import (
    ConverterConfig,
    OAuthFlow,
    OpenAPIDocument,
    ParameterLocation,
    ParsedEndpoint,
    ParsedGraphQLSchema,
    ParsedMediaType,
    ParsedModel,
    ParsedParameter,
    ParsedPostmanCollection,
    ParsedRequestBody,
    ParsedResponse,
    ParsedSchema,
    ParsedSecurityScheme,
    ParsedSpec,
    PostmanAuth,
    PostmanBody,
    PostmanEndpoint,
    PostmanKeyValue,
    PostmanResponse,
    SchemaKind,
    SecuritySchemeKind,
    ServerInfo,
    SpecFormat,
    TagInfo,
)
from specfuse.parser.resolver import (
    GraphQLSchemaResolver,
    SchemaResolver,
    infer_schema,
    openapi_resolver,
    openapi_schema,
)

logger = logging.getLogger(__name__)

NativeTree = Union[ParsedPostmanCollection, ParsedGraphQLSchema, OpenAPIDocument]

GRAPHQL_RESPONSE_MEDIA_TYPE = "application/graphql-response+json"

_HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")


def convert(native: NativeTree, config: Optional[ConverterConfig] = None) -> ParsedSpec:
    """Convert any native tree into a :class:`ParsedSpec`.

    Args:
        native: Output of one of the format adapters.
        config: Converter settings; defaults apply when ``None``.

    Returns:
        An immutable canonical snapshot.
    """
    config = config or ConverterConfig()
    if isinstance(native, ParsedPostmanCollection):
        spec = _convert_postman(native, config)
    elif isinstance(native, ParsedGraphQLSchema):
        spec = _convert_graphql(native, config)
    elif isinstance(native, OpenAPIDocument):
        spec = _convert_openapi(native, config)
    else:
        raise TypeError(f"Unsupported native tree: {type(native).__name__}")
    logger.debug(
        "Converted %s source '%s': %d endpoints, %d models",
        spec.source_format.value if spec.source_format else "unknown",
        spec.title,
        len(spec.endpoints),
        len(spec.models),
    )
    return spec


# ------------------------------------------------------------------ #
# Postman
# ------------------------------------------------------------------ #

_POSTMAN_SCHEME_NAMES = {
    "bearer": "bearerAuth",
    "basic": "basicAuth",
    "digest": "digestAuth",
    "apikey": "apiKeyAuth",
    "oauth2": "oauth2Auth",
}

_OAUTH_GRANT_FLOWS = {
    "authorization_code": "authorizationCode",
    "authorization_code_with_pkce": "authorizationCode",
    "client_credentials": "clientCredentials",
    "password_credentials": "password",
    "implicit": "implicit",
}


class _SchemeTable:
    """Assigns stable names to distinct auth configurations."""

    def __init__(self) -> None:
        self.schemes: list[ParsedSecurityScheme] = []

    def name_for(self, auth: PostmanAuth) -> str:
        candidate = _postman_scheme(auth, _POSTMAN_SCHEME_NAMES.get(auth.type, f"{auth.type}Auth"))
        base = candidate.name
        suffix = 1
        while True:
            existing = next((s for s in self.schemes if s.name == candidate.name), None)
            if existing is None:
                self.schemes.append(candidate)
                return candidate.name
            if existing == candidate:
                return existing.name
            suffix += 1
            candidate = candidate.model_copy(update={"name": f"{base}_{suffix}"})


def _postman_scheme(auth: PostmanAuth, name: str) -> ParsedSecurityScheme:
    config = auth.config
    if auth.type in ("bearer", "basic", "digest"):
        return ParsedSecurityScheme(name=name, kind=SecuritySchemeKind.HTTP, scheme=auth.type)
    if auth.type == "apikey":
        return ParsedSecurityScheme(
            name=name,
            kind=SecuritySchemeKind.API_KEY,
            location=config.get("in") or "header",
            param_name=config.get("key") or "X-API-Key",
        )
    if auth.type == "oauth2":
        flow_name = _OAUTH_GRANT_FLOWS.get(config.get("grant_type", ""), "authorizationCode")
        scopes = {s: "" for s in config.get("scope", "").split() if s}
        flow = OAuthFlow(
            authorization_url=config.get("authUrl") or None,
            token_url=config.get("accessTokenUrl") or None,
            scopes=scopes,
        )
        return ParsedSecurityScheme(
            name=name, kind=SecuritySchemeKind.OAUTH2, flows={flow_name: flow}
        )
    return ParsedSecurityScheme(
        name=name,
        kind=SecuritySchemeKind.HTTP,
        scheme=auth.type,
        description=f"Postman '{auth.type}' auth",
    )


def _convert_postman(collection: ParsedPostmanCollection, config: ConverterConfig) -> ParsedSpec:
    schemes = _SchemeTable()
    global_security = [schemes.name_for(collection.auth)] if collection.auth else []

    endpoints: list[ParsedEndpoint] = []
    tags: list[str] = []
    servers: list[str] = []
    for endpoint in collection.endpoints:
        tag = ".".join(endpoint.folders)
        if tag and tag not in tags:
            tags.append(tag)
        if endpoint.host and endpoint.host not in servers:
            servers.append(endpoint.host)
        security = [schemes.name_for(endpoint.auth)] if endpoint.auth else []
        endpoints.append(_postman_endpoint(endpoint, [tag] if tag else [], security))

    return ParsedSpec(
        title=collection.name,
        version=collection.version or config.default_version,
        description=collection.description,
        servers=[ServerInfo(url=url) for url in servers],
        endpoints=endpoints,
        security_schemes=schemes.schemes,
        global_security=global_security,
        tags=[TagInfo(name=t) for t in tags],
        source_format=SpecFormat.POSTMAN,
    )


def _postman_endpoint(
    endpoint: PostmanEndpoint, tags: list[str], security: list[str]
) -> ParsedEndpoint:
    parameters = [
        ParsedParameter(
            name=v.key,
            location=ParameterLocation.PATH,
            required=True,
            description=v.description,
            example=v.value or None,
        )
        for v in endpoint.path_variables
    ]
    parameters.extend(
        _postman_parameter(q, ParameterLocation.QUERY)
        for q in endpoint.query
        if not q.disabled
    )
    parameters.extend(
        _postman_parameter(h, ParameterLocation.HEADER)
        for h in endpoint.headers
        if not h.disabled and h.key.lower() not in ("content-type", "authorization")
    )

    content_type = _header(endpoint.headers, "content-type")
    responses: dict[str, ParsedResponse] = {}
    for saved in endpoint.responses:
        status = str(saved.code) if saved.code is not None else "default"
        if status not in responses:
            responses[status] = _postman_response(saved, status)
    if not responses:
        responses["default"] = ParsedResponse(
            status_code="default", description="Response not documented in the collection"
        )

    return ParsedEndpoint(
        method=endpoint.method,
        path=endpoint.path,
        name=endpoint.name,
        description=endpoint.description,
        parameters=parameters,
        request_body=_postman_body(endpoint.body, content_type),
        responses=responses,
        security=security,
        tags=tags,
        unresolved_variables=endpoint.unresolved_variables,
    )


def _postman_parameter(pair: PostmanKeyValue, location: ParameterLocation) -> ParsedParameter:
    return ParsedParameter(
        name=pair.key,
        location=location,
        description=pair.description,
        example=pair.value or None,
    )


def _header(headers: list[PostmanKeyValue], name: str) -> Optional[str]:
    for header in headers:
        if not header.disabled and header.key.lower() == name:
            return header.value
    return None


def _postman_body(body: Optional[PostmanBody], content_type: Optional[str]) -> Optional[ParsedRequestBody]:
    if body is None:
        return None
    if body.mode in ("formdata", "urlencoded"):
        media_type = content_type or (
            "multipart/form-data" if body.mode == "formdata" else "application/x-www-form-urlencoded"
        )
        fields = [f for f in body.fields if not f.disabled]
        schema = ParsedSchema(
            kind=SchemaKind.OBJECT,
            properties={f.key: ParsedSchema(kind=SchemaKind.STRING) for f in fields},
        )
        example = {f.key: f.value for f in fields}
        return ParsedRequestBody(content={media_type: ParsedMediaType(schema=schema, example=example)})
    if body.mode == "file":
        media_type = content_type or "application/octet-stream"
        return ParsedRequestBody(
            content={media_type: ParsedMediaType(schema=ParsedSchema(kind=SchemaKind.STRING, format="binary"))}
        )
    if body.mode == "graphql":
        return ParsedRequestBody(
            content={
                content_type or "application/json": ParsedMediaType(
                    schema=ParsedSchema(
                        kind=SchemaKind.OBJECT,
                        properties={"query": ParsedSchema(kind=SchemaKind.STRING)},
                        required=["query"],
                    ),
                    example={"query": body.raw or ""},
                )
            }
        )
    if not body.raw:
        return None
    return ParsedRequestBody(content=dict([_raw_media(body.raw, content_type)]))


def _postman_response(saved: PostmanResponse, status: str) -> ParsedResponse:
    content: dict[str, ParsedMediaType] = {}
    if saved.body:
        content = dict([_raw_media(saved.body, _header(saved.headers, "content-type"))])
    return ParsedResponse(
        status_code=status,
        description=saved.name or saved.status or "",
        content=content,
    )


def _raw_media(raw: str, content_type: Optional[str]) -> tuple[str, ParsedMediaType]:
    """Content type precedence: explicit header, JSON if it parses, else text/plain."""
    decoded: Any = None
    is_json = True
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError:
        is_json = False

    media_type = (content_type or "").split(";")[0].strip()
    if not media_type:
        media_type = "application/json" if is_json else "text/plain"

    if is_json:
        return media_type, ParsedMediaType(schema=infer_schema(decoded), example=decoded)
    return media_type, ParsedMediaType(schema=ParsedSchema(kind=SchemaKind.STRING), example=raw)


# ------------------------------------------------------------------ #
# GraphQL
# ------------------------------------------------------------------ #


def _convert_graphql(schema: ParsedGraphQLSchema, config: ConverterConfig) -> ParsedSpec:
    resolver = GraphQLSchemaResolver(schema.types)
    models = resolver.resolve_models()

    endpoints = []
    for operation in schema.operations:
        parameters = []
        for arg in operation.args:
            arg_schema = resolver.type_ref_schema(arg.type_ref)
            if arg.default_value is not None and not arg_schema.is_reference:
                arg_schema = arg_schema.model_copy(update={"default": arg.default_value})
            parameters.append(
                ParsedParameter(
                    name=arg.name,
                    location=ParameterLocation.QUERY,
                    description=arg.description,
                    required=arg.type_ref.is_required and arg.default_value is None,
                    schema=arg_schema,
                )
            )
        result = ParsedResponse(
            status_code="200",
            description=f"{operation.return_type.display} result",
            content={
                GRAPHQL_RESPONSE_MEDIA_TYPE: ParsedMediaType(
                    schema=resolver.type_ref_schema(operation.return_type)
                )
            },
        )
        endpoints.append(
            ParsedEndpoint(
                method=operation.operation_type.pseudo_verb,
                path=operation.name,
                name=operation.name,
                operation_id=operation.name,
                description=operation.description,
                parameters=parameters,
                responses={"200": result},
                tags=[operation.operation_type.value],
                deprecated=operation.deprecated,
            )
        )

    tag_names = [t for t in ("query", "mutation", "subscription") if any(t in e.tags for e in endpoints)]
    return ParsedSpec(
        title="GraphQL Schema",
        version=config.default_version,
        description=schema.description,
        endpoints=endpoints,
        models=models,
        tags=[TagInfo(name=t) for t in tag_names],
        source_format=SpecFormat.GRAPHQL,
    )


# ------------------------------------------------------------------ #
# OpenAPI
# ------------------------------------------------------------------ #


def _convert_openapi(native: OpenAPIDocument, config: ConverterConfig) -> ParsedSpec:
    document = native.document
    resolver = openapi_resolver(document)
    info = document.get("info") or {}

    # Models first so the memo is filled in declaration order.
    models = resolver.resolve_models()
    global_security = _security_names(document.get("security") or [])
    endpoints = _openapi_endpoints(document, resolver, global_security)

    declared_tags = [
        TagInfo(name=str(t["name"]), description=t.get("description"))
        for t in document.get("tags") or []
        if isinstance(t, dict) and t.get("name")
    ]
    known = {t.name for t in declared_tags}
    for endpoint in endpoints:
        for tag in endpoint.tags:
            if tag not in known:
                known.add(tag)
                declared_tags.append(TagInfo(name=tag))

    return ParsedSpec(
        title=str(info.get("title") or "Untitled API"),
        version=str(info.get("version") or config.default_version),
        description=info.get("description"),
        servers=[
            ServerInfo(url=str(s.get("url", "/")), description=s.get("description"))
            for s in document.get("servers") or []
            if isinstance(s, dict)
        ],
        endpoints=endpoints,
        models=models,
        security_schemes=_openapi_security_schemes(document),
        global_security=global_security,
        tags=declared_tags,
        source_format=SpecFormat.OPENAPI,
    )


def _security_names(requirements: Iterable[Any]) -> list[str]:
    """Flatten a security requirement list into unique scheme names."""
    names: list[str] = []
    for requirement in requirements:
        if isinstance(requirement, dict):
            for name in requirement:
                if name not in names:
                    names.append(str(name))
    return names


def _follow(document: dict[str, Any], value: Any, seen: frozenset[str] = frozenset()) -> Any:
    """Follow a non-schema ``$ref`` (parameters, responses, request bodies)."""
    if not isinstance(value, dict) or not isinstance(value.get("$ref"), str):
        return value
    ref = value["$ref"]
    if ref in seen or not ref.startswith("#/"):
        return {}
    current: Any = document
    for segment in ref[2:].split("/"):
        segment = segment.replace("~1", "/").replace("~0", "~")
        if not isinstance(current, dict) or segment not in current:
            raise SpecParseError(f"Cannot resolve $ref '{ref}': key '{segment}' not found")
        current = current[segment]
    return _follow(document, current, seen | {ref})


def _openapi_endpoints(
    document: dict[str, Any],
    resolver: SchemaResolver[dict[str, Any]],
    global_security: list[str],
) -> list[ParsedEndpoint]:
    endpoints: list[ParsedEndpoint] = []
    for path, path_item in (document.get("paths") or {}).items():
        path_item = _follow(document, path_item)
        if not isinstance(path_item, dict):
            continue
        path_params = [_follow(document, p) for p in path_item.get("parameters") or []]

        for method in _HTTP_METHODS:
            operation = path_item.get(method)
            if not isinstance(operation, dict):
                continue
            op_params = [_follow(document, p) for p in operation.get("parameters") or []]
            parameters = [
                _openapi_parameter(resolver, p)
                for p in _merge_parameters(path_params, op_params)
            ]

            op_security = operation.get("security")
            security = _security_names(op_security) if op_security is not None else list(global_security)

            endpoints.append(
                ParsedEndpoint(
                    method=method.upper(),
                    path=str(path),
                    name=operation.get("summary") or operation.get("operationId") or "",
                    operation_id=operation.get("operationId"),
                    description=operation.get("description") or operation.get("summary"),
                    parameters=[p for p in parameters if p is not None],
                    request_body=_openapi_request_body(document, resolver, operation.get("requestBody")),
                    responses=_openapi_responses(document, resolver, operation.get("responses") or {}),
                    security=security,
                    tags=[str(t) for t in operation.get("tags") or []],
                    deprecated=bool(operation.get("deprecated", False)),
                )
            )
    return endpoints


def _merge_parameters(
    path_params: list[dict[str, Any]],
    op_params: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Operation-level parameters override path-level ones with the same name and location."""
    op_keys = {(p.get("name", ""), p.get("in", "")) for p in op_params if isinstance(p, dict)}
    merged = [
        p for p in path_params
        if isinstance(p, dict) and (p.get("name", ""), p.get("in", "")) not in op_keys
    ]
    merged.extend(p for p in op_params if isinstance(p, dict))
    return merged


def _openapi_parameter(
    resolver: SchemaResolver[dict[str, Any]], param: dict[str, Any]
) -> Optional[ParsedParameter]:
    try:
        location = ParameterLocation(param.get("in", "query"))
    except ValueError:
        logger.debug("Skipping parameter '%s' with location %r", param.get("name"), param.get("in"))
        return None

    raw_schema = param.get("schema")
    if raw_schema is None:
        # Parameters may carry their schema under content instead.
        for media in (param.get("content") or {}).values():
            if isinstance(media, dict) and "schema" in media:
                raw_schema = media["schema"]
                break

    return ParsedParameter(
        name=str(param.get("name", "")),
        location=location,
        description=param.get("description"),
        # Path parameters are always required.
        required=location == ParameterLocation.PATH or bool(param.get("required", False)),
        schema=openapi_schema(resolver, raw_schema) if raw_schema is not None else ParsedSchema(kind=SchemaKind.STRING),
        example=param.get("example"),
        deprecated=bool(param.get("deprecated", False)),
    )


def _openapi_content(
    resolver: SchemaResolver[dict[str, Any]], content: Any
) -> dict[str, ParsedMediaType]:
    result: dict[str, ParsedMediaType] = {}
    for media_type, media in (content or {}).items():
        if not isinstance(media, dict):
            continue
        schema = openapi_schema(resolver, media["schema"]) if "schema" in media else None
        result[str(media_type)] = ParsedMediaType(schema=schema, example=media.get("example"))
    return result


def _openapi_request_body(
    document: dict[str, Any], resolver: SchemaResolver[dict[str, Any]], body: Any
) -> Optional[ParsedRequestBody]:
    body = _follow(document, body)
    if not isinstance(body, dict) or not body:
        return None
    return ParsedRequestBody(
        description=body.get("description"),
        required=bool(body.get("required", False)),
        content=_openapi_content(resolver, body.get("content")),
    )


def _openapi_responses(
    document: dict[str, Any], resolver: SchemaResolver[dict[str, Any]], responses: dict[str, Any]
) -> dict[str, ParsedResponse]:
    result: dict[str, ParsedResponse] = {}
    for status_code, response in responses.items():
        response = _follow(document, response)
        if not isinstance(response, dict):
            continue
        headers = {}
        for name, header in (response.get("headers") or {}).items():
            header = _follow(document, header)
            if isinstance(header, dict):
                headers[str(name)] = openapi_schema(resolver, header.get("schema") or {})
        result[str(status_code)] = ParsedResponse(
            status_code=str(status_code),
            description=str(response.get("description") or ""),
            content=_openapi_content(resolver, response.get("content")),
            headers=headers,
        )
    return result


def _openapi_security_schemes(document: dict[str, Any]) -> list[ParsedSecurityScheme]:
    raw_schemes = (document.get("components") or {}).get("securitySchemes") or {}
    schemes: list[ParsedSecurityScheme] = []
    for name, raw in raw_schemes.items():
        raw = _follow(document, raw)
        if not isinstance(raw, dict):
            continue
        try:
            kind = SecuritySchemeKind(raw.get("type", "http"))
        except ValueError:
            logger.warning("Skipping security scheme '%s' with type %r", name, raw.get("type"))
            continue
        flows = {
            str(flow_name): OAuthFlow(
                authorization_url=flow.get("authorizationUrl"),
                token_url=flow.get("tokenUrl"),
                refresh_url=flow.get("refreshUrl"),
                scopes={str(k): str(v) for k, v in (flow.get("scopes") or {}).items()},
            )
            for flow_name, flow in (raw.get("flows") or {}).items()
            if isinstance(flow, dict)
        }
        schemes.append(
            ParsedSecurityScheme(
                name=str(name),
                kind=kind,
                description=raw.get("description"),
                location=raw.get("in"),
                param_name=raw.get("name"),
                scheme=raw.get("scheme"),
                bearer_format=raw.get("bearerFormat"),
                flows=flows,
                openid_connect_url=raw.get("openIdConnectUrl"),
            )
        )
    return schemes


# ------------------------------------------------------------------ #
# Snapshot edits
# ------------------------------------------------------------------ #


def with_model(spec: ParsedSpec, model: ParsedModel) -> ParsedSpec:
    """Return a new snapshot with *model* added or replaced."""
    return spec.model_copy(update={"models": {**spec.models, model.name: model}})


def without_model(spec: ParsedSpec, name: str) -> ParsedSpec:
    """Return a new snapshot without model *name*.

    References to the removed model are left in place for the validator to
    report.
    """
    return spec.model_copy(
        update={"models": {k: v for k, v in spec.models.items() if k != name}}
    )


def to_dict(spec: ParsedSpec) -> dict[str, Any]:
    return spec.to_dict()


def from_dict(data: dict[str, Any]) -> ParsedSpec:
    return ParsedSpec.from_dict(data)


def merge_specs(specs: list[ParsedSpec], collision: Optional[str] = None) -> ParsedSpec:
    """Combine several snapshots into one.

    Endpoints are concatenated in input order.  Two models with the same name
    and identical schemas are kept once.  Differing models are resolved by
    *collision*:

    * ``"suffix"`` (default) -- the later model is renamed ``Name_2``,
      ``Name_3``, ... and every reference to it inside its own spec is
      rewritten.  Schemas are compared after that rewrite, so a model that
      refers to a renamed model is renamed too rather than repointing the
      earlier spec's model.
    * ``"last_writer"`` -- the later model replaces the earlier one.

    Security schemes follow the suffix rule regardless, since endpoint
    security lists refer to them by name.
    """
    if not specs:
        raise ValueError("merge_specs needs at least one spec")
    policy = collision or "suffix"
    if policy not in ("suffix", "last_writer"):
        raise ValueError(f"Unknown collision policy: {policy}")

    first = specs[0]
    models: dict[str, ParsedModel] = dict(first.models)
    schemes: list[ParsedSecurityScheme] = list(first.security_schemes)
    endpoints = list(first.endpoints)
    servers = list(first.servers)
    tags = list(first.tags)
    global_security = list(first.global_security)
    formats = {first.source_format}

    for spec in specs[1:]:
        renames = _collision_renames(models, spec.models) if policy == "suffix" else {}
        for name, model in spec.models.items():
            if policy == "last_writer" and name in models and models[name].schema_ != model.schema_:
                logger.warning("Model '%s' replaced by a later spec", name)
            target = renames.get(name, name)
            models[target] = ParsedModel(
                name=target,
                schema=_rename_refs(model.schema_, renames),
                description=model.description,
                examples=model.examples,
            )

        scheme_renames: dict[str, str] = {}
        for scheme in spec.security_schemes:
            existing_scheme = next((s for s in schemes if s.name == scheme.name), None)
            if existing_scheme is None:
                schemes.append(scheme)
            elif existing_scheme != scheme:
                taken = {s.name for s in schemes}
                suffix = 2
                while f"{scheme.name}_{suffix}" in taken:
                    suffix += 1
                scheme_renames[scheme.name] = f"{scheme.name}_{suffix}"
                schemes.append(scheme.model_copy(update={"name": scheme_renames[scheme.name]}))

        endpoints.extend(_rename_endpoint(e, renames, scheme_renames) for e in spec.endpoints)
        servers.extend(s for s in spec.servers if s not in servers)
        tags.extend(t for t in spec.tags if t.name not in {x.name for x in tags})
        for name in spec.global_security:
            name = scheme_renames.get(name, name)
            if name not in global_security:
                global_security.append(name)
        formats.add(spec.source_format)

    return ParsedSpec(
        title=first.title,
        version=first.version,
        description=first.description,
        servers=servers,
        endpoints=endpoints,
        models=models,
        security_schemes=schemes,
        global_security=global_security,
        tags=tags,
        source_format=first.source_format if len(formats) == 1 else None,
    )


def _collision_renames(
    models: dict[str, ParsedModel], incoming: dict[str, ParsedModel]
) -> dict[str, str]:
    """Suffix renames for *incoming* models that differ from those in *models*.

    A model is compared after its references are rewritten, so renaming one
    model can make a dependent model differ as well.  Repeats until no new
    rename appears.
    """
    renames: dict[str, str] = {}
    changed = True
    while changed:
        changed = False
        for name, model in incoming.items():
            existing = models.get(name)
            if name in renames or existing is None:
                continue
            if existing.schema_ != _rename_refs(model.schema_, renames):
                renames[name] = _free_name(name, models, incoming)
                logger.warning("Model '%s' collides; renamed to '%s'", name, renames[name])
                changed = True
    return renames


def _free_name(name: str, taken: dict[str, ParsedModel], own: dict[str, ParsedModel]) -> str:
    suffix = 2
    while f"{name}_{suffix}" in taken or f"{name}_{suffix}" in own:
        suffix += 1
    return f"{name}_{suffix}"


def _rename_refs(schema: Optional[ParsedSchema], renames: dict[str, str]) -> Optional[ParsedSchema]:
    if schema is None or not renames:
        return schema
    if schema.reference is not None:
        target = renames.get(schema.reference)
        return schema.model_copy(update={"reference": target}) if target else schema
    updates: dict[str, Any] = {}
    if schema.properties:
        updates["properties"] = {k: _rename_refs(v, renames) for k, v in schema.properties.items()}
    if schema.items is not None:
        updates["items"] = _rename_refs(schema.items, renames)
    return schema.model_copy(update=updates) if updates else schema


def _rename_content(
    content: dict[str, ParsedMediaType], renames: dict[str, str]
) -> dict[str, ParsedMediaType]:
    return {
        k: v.model_copy(update={"schema_": _rename_refs(v.schema_, renames)})
        for k, v in content.items()
    }


def _rename_endpoint(
    endpoint: ParsedEndpoint, renames: dict[str, str], scheme_renames: dict[str, str]
) -> ParsedEndpoint:
    if not renames and not scheme_renames:
        return endpoint
    request_body = endpoint.request_body
    if request_body is not None:
        request_body = request_body.model_copy(
            update={"content": _rename_content(request_body.content, renames)}
        )
    return endpoint.model_copy(
        update={
            "parameters": [
                p.model_copy(update={"schema_": _rename_refs(p.schema_, renames)})
                for p in endpoint.parameters
            ],
            "request_body": request_body,
            "responses": {
                code: r.model_copy(
                    update={
                        "content": _rename_content(r.content, renames),
                        "headers": {k: _rename_refs(v, renames) for k, v in r.headers.items()},
                    }
                )
                for code, r in endpoint.responses.items()
            },
            "security": [scheme_renames.get(s, s) for s in endpoint.security],
        }
    )
