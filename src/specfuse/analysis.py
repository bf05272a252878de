"""Heuristic summaries of a canonical spec.

These feed the inference workflow: :func:`gap_analysis` reports which
cross-cutting concerns a spec already documents, and :func:`inferable_fields`
turns the undocumented ones into the field list whose size is the ledger's
coverage denominator.  All functions are pure over a
:class:`~specfuse.models.ParsedSpec`.
"""

from __future__ import annotations

import re

from specfuse.models import (
    AuthPatterns,
    EndpointStats,
    GapAnalysis,
    GapStatus,
    PaginationPatterns,
    ParameterLocation,
    ParsedEndpoint,
    ParsedSchema,
    ParsedSpec,
    SecuritySchemeKind,
)

PAGINATION_PARAMS = ("page", "limit", "offset", "size", "per_page", "cursor", "after", "before")

# Narrower list used for per-endpoint counts.
_STATS_PAGINATION_PARAMS = ("page", "limit", "offset", "cursor")

_LIST_PATH_RE = re.compile(r"/(list|all|items|data|records)$", re.IGNORECASE)

GAP_FIELDS = ("authentication", "pagination", "rate_limiting", "error_handling", "documentation")


def endpoint_stats(spec: ParsedSpec) -> EndpointStats:
    """Counts by method and tag, plus deprecated/auth/pagination totals."""
    by_method: dict[str, int] = {}
    by_tag: dict[str, int] = {}
    deprecated = with_auth = with_pagination = 0

    for endpoint in spec.endpoints:
        by_method[endpoint.method] = by_method.get(endpoint.method, 0) + 1
        for tag in endpoint.tags:
            by_tag[tag] = by_tag.get(tag, 0) + 1
        if endpoint.deprecated:
            deprecated += 1
        if endpoint.security:
            with_auth += 1
        if any(p.name.lower() in _STATS_PAGINATION_PARAMS for p in endpoint.parameters):
            with_pagination += 1

    return EndpointStats(
        total=len(spec.endpoints),
        by_method=by_method,
        by_tag=by_tag,
        deprecated=deprecated,
        with_auth=with_auth,
        with_pagination=with_pagination,
    )


def auth_patterns(spec: ParsedSpec) -> AuthPatterns:
    auth_types: list[str] = []
    for scheme in spec.security_schemes:
        if scheme.kind.value not in auth_types:
            auth_types.append(scheme.kind.value)

    return AuthPatterns(
        auth_types=auth_types,
        has_bearer_auth=any(
            s.kind == SecuritySchemeKind.HTTP and (s.scheme or "").lower() == "bearer"
            for s in spec.security_schemes
        ),
        has_api_key_auth=any(s.kind == SecuritySchemeKind.API_KEY for s in spec.security_schemes),
        has_oauth=any(s.kind == SecuritySchemeKind.OAUTH2 for s in spec.security_schemes),
        requires_auth=bool(spec.global_security) or any(e.security for e in spec.endpoints),
    )


def pagination_patterns(spec: ParsedSpec) -> PaginationPatterns:
    """Find pagination query parameters and paginated response envelopes.

    Envelope shapes: ``data_with_count`` (data + total/count),
    ``items_with_count`` (items + total/count), ``cursor_based``
    (results + next) and ``hal_links`` (data + links).
    """
    params: list[str] = []
    patterns: list[str] = []
    for endpoint in spec.endpoints:
        for param in endpoint.parameters:
            if (
                param.location == ParameterLocation.QUERY
                and param.name.lower() in PAGINATION_PARAMS
                and param.name not in params
            ):
                params.append(param.name)
        for response in endpoint.responses.values():
            for media in response.content.values():
                if media.schema_ is not None:
                    _envelope_patterns(media.schema_, patterns)

    return PaginationPatterns(
        has_pagination=bool(params or patterns),
        patterns=patterns,
        common_params=params,
    )


def _envelope_patterns(schema: ParsedSchema, found: list[str]) -> None:
    props = set(schema.properties)
    checks = (
        ("data_with_count", "data" in props and bool(props & {"total", "count"})),
        ("items_with_count", "items" in props and bool(props & {"total", "count"})),
        ("cursor_based", "results" in props and "next" in props),
        ("hal_links", "data" in props and "links" in props),
    )
    for name, matched in checks:
        if matched and name not in found:
            found.append(name)
    for child in schema.properties.values():
        if child.properties:
            _envelope_patterns(child, found)


def is_list_endpoint(endpoint: ParsedEndpoint) -> bool:
    """GET endpoints that look like collections rather than single resources."""
    if endpoint.method.upper() != "GET":
        return False
    path = endpoint.path
    return bool(_LIST_PATH_RE.search(path)) or "{" not in path or path.endswith("s")


def gap_analysis(spec: ParsedSpec) -> list[GapAnalysis]:
    """One :class:`GapAnalysis` per entry of :data:`GAP_FIELDS`, in that order."""
    return [
        _auth_gap(spec),
        _pagination_gap(spec),
        _rate_limit_gap(spec),
        _error_handling_gap(spec),
        _documentation_gap(spec),
    ]


def inferable_fields(spec: ParsedSpec) -> list[str]:
    """Gap fields the spec does not document, i.e. what inference could fill."""
    return [gap.field for gap in gap_analysis(spec) if gap.status != GapStatus.PRESENT]


def _auth_gap(spec: ParsedSpec) -> GapAnalysis:
    if spec.security_schemes:
        return GapAnalysis(field="authentication", status=GapStatus.PRESENT, confidence=0.9)
    return GapAnalysis(
        field="authentication",
        status=GapStatus.MISSING,
        issues=["No authentication method defined"],
        recommendations=[
            "Add authentication scheme to API specification",
            "Document authentication requirements",
            "Consider Bearer token or API key authentication",
        ],
    )


def _pagination_gap(spec: ParsedSpec) -> GapAnalysis:
    if not any(is_list_endpoint(e) for e in spec.endpoints):
        # Nothing to paginate.
        return GapAnalysis(field="pagination", status=GapStatus.PRESENT, confidence=1.0)
    if pagination_patterns(spec).has_pagination:
        return GapAnalysis(field="pagination", status=GapStatus.PRESENT, confidence=0.9)
    return GapAnalysis(
        field="pagination",
        status=GapStatus.MISSING,
        issues=["List endpoints lack pagination parameters"],
        recommendations=[
            "Add pagination parameters to list endpoints",
            "Consider offset/limit or cursor-based pagination",
            "Document pagination behavior",
        ],
    )


def _rate_limit_gap(spec: ParsedSpec) -> GapAnalysis:
    for endpoint in spec.endpoints:
        for response in endpoint.responses.values():
            if any("rate" in h.lower() or "limit" in h.lower() for h in response.headers):
                return GapAnalysis(field="rate_limiting", status=GapStatus.PRESENT, confidence=0.8)
    return GapAnalysis(
        field="rate_limiting",
        status=GapStatus.MISSING,
        issues=["No rate limiting headers defined"],
        recommendations=[
            "Implement rate limiting for production APIs",
            "Add rate limit headers to responses",
            "Document rate limiting behavior",
        ],
    )


def _error_handling_gap(spec: ParsedSpec) -> GapAnalysis:
    for endpoint in spec.endpoints:
        if any(code.startswith(("4", "5")) for code in endpoint.responses):
            return GapAnalysis(field="error_handling", status=GapStatus.PRESENT, confidence=0.8)
    return GapAnalysis(
        field="error_handling",
        status=GapStatus.MISSING,
        issues=["No error response definitions found"],
        recommendations=[
            "Define error response schemas",
            "Document HTTP status codes",
            "Provide structured error responses",
        ],
    )


def _documentation_gap(spec: ParsedSpec) -> GapAnalysis:
    total = len(spec.endpoints)
    documented = sum(1 for e in spec.endpoints if e.description)
    ratio = documented / total if total else 0.0
    if ratio > 0.5:
        return GapAnalysis(field="documentation", status=GapStatus.PRESENT, confidence=ratio)
    return GapAnalysis(
        field="documentation",
        status=GapStatus.MISSING,
        issues=[f"Only {round(ratio * 100)}% of endpoints have descriptions"],
        recommendations=[
            "Add descriptions to all endpoints",
            "Document parameters and response schemas",
            "Provide usage examples",
        ],
    )
