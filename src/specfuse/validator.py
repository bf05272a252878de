"""Structural checks over canonical specs and over raw documents.

Two entry points, both returning a :class:`~specfuse.models.ValidationResult`
instead of raising:

* :func:`validate_spec` checks a :class:`~specfuse.models.ParsedSpec` for
  problems no adapter rejects: dangling model references, ``required`` names
  that are not properties, duplicate ``(method, path)`` pairs, inverted
  bounds, enum defaults outside the enum, undeclared security schemes,
  endpoints without responses and leftover Postman ``{{var}}`` placeholders.
* :func:`validate_content` runs the cheap raw-document checks (collection
  info, root types, OpenAPI info/paths) without building a canonical spec.

Warnings never affect :attr:`ValidationResult.valid`.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterator
from typing import Any, Optional

from specfuse.exceptions import SpecParseError
from specfuse.models import (
    ParsedEndpoint,
    ParsedSchema,
    ParsedSpec,
    SchemaKind,
    SpecFormat,
    ValidationResult,
    ValidatorConfig,
)
from specfuse.parser.graphql import parse_graphql
from specfuse.parser.openapi import parse_structured

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\{\{\s*([^{}\s]+)\s*\}\}")

_HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

# Above this many paths the document is flagged as unusually large.
_LARGE_PATH_COUNT = 1000


class _Findings:
    def __init__(self) -> None:
        self.errors: list[str] = []
        self.warnings: list[str] = []

    def add(self, severity: str, message: str) -> None:
        target = self.errors if severity == "error" else self.warnings
        if message not in target:
            target.append(message)

    def result(self) -> ValidationResult:
        return ValidationResult(errors=self.errors, warnings=self.warnings)


def validate_spec(spec: ParsedSpec, config: Optional[ValidatorConfig] = None) -> ValidationResult:
    """Validate a canonical spec.

    Args:
        spec: The snapshot to check.
        config: Severity policy; defaults apply when ``None``.
    """
    config = config or ValidatorConfig()
    findings = _Findings()

    if not spec.title.strip():
        findings.add("warning", "Spec has no title")
    if not spec.version.strip():
        findings.add("warning", "Spec has no version")
    if not spec.endpoints:
        findings.add("warning", "Spec defines no endpoints")

    models = set(spec.models)
    for name, model in spec.models.items():
        _check_schema(model.schema_, f"model '{name}'", models, config, findings)

    schemes = {s.name for s in spec.security_schemes}
    for name in spec.global_security:
        if name not in schemes:
            findings.add("error", f"Global security references undeclared scheme '{name}'")

    seen: set[tuple[str, str]] = set()
    for endpoint in spec.endpoints:
        label = f"{endpoint.method} {endpoint.path}"
        key = (endpoint.method.upper(), endpoint.path)
        if key in seen:
            findings.add("error", f"Duplicate endpoint: {label}")
        seen.add(key)

        if not endpoint.responses:
            findings.add("error", f"Endpoint {label} has no responses")
        for name in endpoint.security:
            if name not in schemes:
                findings.add("error", f"Endpoint {label} references undeclared security scheme '{name}'")
        for context, schema in _endpoint_schemas(endpoint):
            _check_schema(schema, f"{label} {context}", models, config, findings)
        for variable in _placeholders(endpoint):
            findings.add(
                config.unresolved_variable_severity,
                f"Unresolved variable '{{{{{variable}}}}}' in {label}",
            )

    for server in spec.servers:
        for variable in _PLACEHOLDER_RE.findall(server.url):
            findings.add(
                config.unresolved_variable_severity,
                f"Unresolved variable '{{{{{variable}}}}}' in server '{server.url}'",
            )

    result = findings.result()
    logger.debug(
        "Validated '%s': %d errors, %d warnings",
        spec.title,
        len(result.errors),
        len(result.warnings),
    )
    return result


def _endpoint_schemas(endpoint: ParsedEndpoint) -> Iterator[tuple[str, ParsedSchema]]:
    for param in endpoint.parameters:
        yield f"parameter '{param.name}'", param.schema_
    if endpoint.request_body is not None:
        for media_type, media in endpoint.request_body.content.items():
            if media.schema_ is not None:
                yield f"request body ({media_type})", media.schema_
    for code, response in endpoint.responses.items():
        for media_type, media in response.content.items():
            if media.schema_ is not None:
                yield f"response {code} ({media_type})", media.schema_
        for header, schema in response.headers.items():
            yield f"response {code} header '{header}'", schema


def _check_schema(
    schema: ParsedSchema,
    context: str,
    models: set[str],
    config: ValidatorConfig,
    findings: _Findings,
) -> None:
    if schema.reference is not None:
        if schema.reference not in models:
            findings.add(
                config.unresolved_reference_severity,
                f"Unresolved reference '{schema.reference}' in {context}",
            )
        return

    for name in schema.required:
        if name not in schema.properties:
            findings.add("error", f"Required property '{name}' is not defined in {context}")
    if schema.kind == SchemaKind.ARRAY and schema.items is None:
        findings.add("error", f"Array schema without items in {context}")
    if schema.kind != SchemaKind.ARRAY and schema.items is not None:
        findings.add("error", f"Non-array schema has items in {context}")
    if schema.minimum is not None and schema.maximum is not None and schema.minimum > schema.maximum:
        findings.add("error", f"minimum {schema.minimum} exceeds maximum {schema.maximum} in {context}")
    if (
        schema.min_length is not None
        and schema.max_length is not None
        and schema.min_length > schema.max_length
    ):
        findings.add("error", f"minLength exceeds maxLength in {context}")
    if schema.enum is not None and schema.default is not None and schema.default not in schema.enum:
        findings.add("error", f"Default {schema.default!r} is not one of the enum values in {context}")

    for name, prop in schema.properties.items():
        _check_schema(prop, f"{context}.{name}", models, config, findings)
    if schema.items is not None:
        _check_schema(schema.items, f"{context}[]", models, config, findings)


def _placeholders(endpoint: ParsedEndpoint) -> list[str]:
    texts = [endpoint.path]
    for param in endpoint.parameters:
        texts.append(param.name)
        if isinstance(param.example, str):
            texts.append(param.example)
    names = list(endpoint.unresolved_variables)
    for text in texts:
        for name in _PLACEHOLDER_RE.findall(text):
            if name not in names:
                names.append(name)
    return names


# ------------------------------------------------------------------ #
# Raw document checks
# ------------------------------------------------------------------ #


def validate_content(content: str, fmt: SpecFormat) -> ValidationResult:
    """Cheap checks on raw text, without building a canonical spec."""
    findings = _Findings()
    if fmt == SpecFormat.POSTMAN:
        _check_postman(content, findings)
    elif fmt == SpecFormat.GRAPHQL:
        _check_graphql(content, findings)
    else:
        _check_openapi(content, findings)
    return findings.result()


def _check_postman(content: str, findings: _Findings) -> None:
    try:
        collection = json.loads(content)
    except json.JSONDecodeError as exc:
        findings.add("error", f"Invalid JSON format: {exc.msg} (line {exc.lineno}, column {exc.colno})")
        return
    if not isinstance(collection, dict):
        findings.add("error", "Collection must be a JSON object")
        return

    info = collection.get("info")
    if not isinstance(info, dict):
        findings.add("error", "Missing collection info")
    elif not info.get("name"):
        findings.add("error", "Missing collection name")

    items = collection.get("item")
    if items is None:
        findings.add("error", "Missing collection items")
    elif not isinstance(items, list):
        findings.add("error", "Collection items must be an array")
    elif not items:
        findings.add("warning", "Collection has no items")

    schema_url = info.get("schema") if isinstance(info, dict) else None
    if schema_url and "getpostman.com" not in str(schema_url):
        findings.add("warning", "Unknown collection schema format")


def _check_graphql(content: str, findings: _Findings) -> None:
    try:
        schema = parse_graphql(content)
    except SpecParseError as exc:
        findings.add("error", str(exc))
        return
    if not schema.operations:
        findings.add("warning", "No root types (Query, Mutation, Subscription) found")


def _check_openapi(content: str, findings: _Findings) -> None:
    try:
        document = parse_structured(content)
    except SpecParseError as exc:
        findings.add("error", str(exc))
        return

    if "openapi" not in document and "swagger" not in document:
        findings.add("error", "Missing OpenAPI/Swagger version field")

    info = document.get("info")
    if not isinstance(info, dict):
        findings.add("error", "Missing info object")
    else:
        if not info.get("title"):
            findings.add("error", "Missing info.title")
        if not info.get("version"):
            findings.add("error", "Missing info.version")

    paths = document.get("paths")
    if not isinstance(paths, dict):
        findings.add("error", "Missing paths object")
        paths = {}
    elif not paths:
        findings.add("warning", "No paths defined")

    for path, path_item in paths.items():
        if not str(path).startswith("/"):
            findings.add("error", f"Path '{path}' should start with '/'")
        if not isinstance(path_item, dict):
            continue
        operations = [m for m in _HTTP_METHODS if isinstance(path_item.get(m), dict)]
        if not operations and "$ref" not in path_item:
            findings.add("warning", f"Path '{path}' has no operations")
        for method in operations:
            operation: dict[str, Any] = path_item[method]
            if not operation.get("operationId"):
                findings.add("warning", f"Operation {method.upper()} {path} missing operationId")
            if not operation.get("summary") and not operation.get("description"):
                findings.add("warning", f"Operation {method.upper()} {path} missing summary/description")

    if len(paths) > _LARGE_PATH_COUNT:
        findings.add("warning", f"Large number of paths ({len(paths)}); consider splitting the API")

    components = document.get("components") or {}
    if not components.get("securitySchemes") and not document.get("securityDefinitions"):
        findings.add("warning", "No security schemes defined")
