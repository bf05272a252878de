"""Decode Postman Collection v2.0/v2.1 JSON into a flat list of requests.

Postman nests requests inside folders, and both auth and variables are
inherited down that tree.  :func:`parse_postman` walks the tree once and
emits a :class:`~specfuse.models.ParsedPostmanCollection` whose endpoints
already carry:

* their folder chain (outermost first),
* the effective auth block, resolved nearest-ancestor-wins
  (request > folder > ... > collection).  ``noauth`` at any level clears
  auth; ``inherit`` or a missing block defers to the parent,
* ``{{name}}`` placeholders substituted from the variable scopes, again
  nearest-first: folder ``variable`` arrays, then collection variables,
  then the supplied environment.  Unknown placeholders stay literal and
  their names are listed in ``unresolved_variables``.

Request URLs may be plain strings or URL objects (``raw``/``host``/``path``/
``query``/``variable``).  Postman path variables (``:id``) are rewritten to
the ``{id}`` template form.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from typing import Any, Optional

from specfuse.exceptions import SpecParseError
from specfuse.models import (
    ParsedPostmanCollection,
    PostmanAuth,
    PostmanBody,
    PostmanEndpoint,
    PostmanKeyValue,
    PostmanResponse,
)

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\{\{\s*([^{}\s]+)\s*\}\}")
_PATH_VARIABLE_RE = re.compile(r"(?<=/):([A-Za-z_][A-Za-z0-9_.-]*)")
_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")

# Substitution passes; a variable may expand to another placeholder.
_MAX_EXPANSIONS = 5

Scopes = list[dict[str, str]]


def parse_postman(
    content: str, environment: Optional[Mapping[str, Any]] = None
) -> ParsedPostmanCollection:
    """Parse a Postman collection.

    Args:
        content: Collection JSON text.
        environment: Optional variables, either a plain ``{name: value}``
            mapping or a Postman environment export (``{"values": [...]}``).

    Returns:
        The flattened native tree.

    Raises:
        SpecParseError: For invalid JSON, a non-object root, a document
            missing ``info`` or ``item``, or a request, URL or body option
            block of the wrong JSON type.
    """
    try:
        raw = json.loads(content)
    except json.JSONDecodeError as exc:
        raise SpecParseError(
            f"Invalid JSON: {exc.msg}",
            line=exc.lineno,
            column=exc.colno,
            suggestions=["Export the collection again as Collection v2.1 JSON"],
        ) from exc

    if not isinstance(raw, dict):
        raise SpecParseError(
            f"Postman collection must be a JSON object (got {type(raw).__name__})"
        )

    info = raw.get("info")
    if not isinstance(info, dict):
        raise SpecParseError(
            "Missing collection info",
            suggestions=["Postman collections carry an 'info' object with a name"],
        )
    items = raw.get("item")
    if items is None:
        raise SpecParseError("Missing collection items")
    if not isinstance(items, list):
        raise SpecParseError("Collection items must be an array")

    collection_vars = _variables(raw.get("variable"))
    scopes: Scopes = [collection_vars, environment_variables(environment)]
    collection_auth = _auth_block(raw.get("auth"), None, scopes)

    endpoints: list[PostmanEndpoint] = []
    _walk(items, [], collection_auth, [], scopes, endpoints)

    name = str(info.get("name") or "Untitled Collection")
    logger.debug("Parsed Postman collection '%s' with %d requests", name, len(endpoints))
    return ParsedPostmanCollection(
        name=name,
        description=_description(info.get("description")),
        schema_url=str(info["schema"]) if info.get("schema") else None,
        version=_version(info.get("version")),
        variables=collection_vars,
        auth=collection_auth,
        endpoints=endpoints,
    )


def environment_variables(environment: Optional[Mapping[str, Any]]) -> dict[str, str]:
    """Normalise an environment to a ``{name: value}`` dict.

    Accepts a plain mapping or a Postman environment export whose
    ``values`` array holds ``{key, value, enabled}`` entries; disabled
    entries are skipped.
    """
    if not environment:
        return {}
    values = environment.get("values")
    if isinstance(values, list):
        result: dict[str, str] = {}
        for entry in values:
            if not isinstance(entry, dict) or "key" not in entry:
                continue
            if entry.get("enabled", True) is False:
                continue
            result[str(entry["key"])] = _text(entry.get("value"))
        return result
    return {str(key): _text(value) for key, value in environment.items()}


def substitute(text: str, scopes: Scopes) -> str:
    """Replace ``{{name}}`` tokens using the first scope that defines *name*."""

    def lookup(match: re.Match[str]) -> str:
        name = match.group(1)
        for scope in scopes:
            if name in scope:
                return scope[name]
        return match.group(0)

    for _ in range(_MAX_EXPANSIONS):
        expanded = _PLACEHOLDER_RE.sub(lookup, text)
        if expanded == text:
            break
        text = expanded
    return text


def _walk(
    items: list[Any],
    folders: list[str],
    inherited_auth: Optional[PostmanAuth],
    folder_scopes: Scopes,
    outer_scopes: Scopes,
    out: list[PostmanEndpoint],
) -> None:
    for item in items:
        if not isinstance(item, dict):
            continue
        if "item" in item:
            folder_name = str(item.get("name") or "Untitled Folder")
            children = item.get("item") or []
            if not isinstance(children, list):
                raise SpecParseError(f"Items of folder '{folder_name}' must be an array")
            scopes = [_variables(item.get("variable")), *folder_scopes]
            auth = _auth_block(item.get("auth"), inherited_auth, scopes + outer_scopes)
            _walk(children, [*folders, folder_name], auth, scopes, outer_scopes, out)
        elif "request" in item:
            out.append(_endpoint(item, folders, inherited_auth, folder_scopes + outer_scopes))
        else:
            logger.debug("Skipping item without request or children: %r", item.get("name"))


def _endpoint(
    item: dict[str, Any],
    folders: list[str],
    inherited_auth: Optional[PostmanAuth],
    scopes: Scopes,
) -> PostmanEndpoint:
    label = str(item.get("name") or "Untitled Request")
    request = item["request"]
    if isinstance(request, str):
        request = {"method": "GET", "url": request}
    elif not isinstance(request, dict):
        raise SpecParseError(
            f"Request '{label}' must be an object or a URL string (got {type(request).__name__})"
        )

    url = request.get("url") or ""
    if not isinstance(url, (str, dict)):
        raise SpecParseError(
            f"URL of request '{label}' must be a string or an object (got {type(url).__name__})"
        )
    url_text, host, path, query, path_variables = _url(url, scopes)
    headers = _headers(request.get("header"), scopes)
    body = _body(request.get("body"), scopes, label)
    auth = _auth_block(request.get("auth"), inherited_auth, scopes)

    return PostmanEndpoint(
        name=str(item.get("name") or path),
        method=str(request.get("method") or "GET").upper(),
        url=url_text,
        path=path,
        host=host,
        description=_description(request.get("description"))
        or _description(item.get("description")),
        folders=list(folders),
        headers=headers,
        query=query,
        path_variables=path_variables,
        body=body,
        auth=auth,
        responses=[_response(r) for r in _entries(item.get("response")) if isinstance(r, dict)],
        unresolved_variables=_unresolved(path, query, path_variables, headers, body, auth),
    )


def _unresolved(
    path: str,
    query: list[PostmanKeyValue],
    path_variables: list[PostmanKeyValue],
    headers: list[PostmanKeyValue],
    body: Optional[PostmanBody],
    auth: Optional[PostmanAuth],
) -> list[str]:
    """Placeholder names left literal after substitution, in first-seen order.

    The host is not scanned; it becomes a server entry and is checked there.
    """
    texts = [path]
    pairs = [*query, *path_variables, *headers]
    if body is not None:
        if body.language != "graphql" and body.raw:
            texts.append(body.raw)
        pairs.extend(body.fields)
    for pair in pairs:
        if not pair.disabled:
            texts.extend((pair.key, pair.value))
    if auth is not None:
        texts.extend(auth.config.values())

    names: list[str] = []
    for text in texts:
        for name in _PLACEHOLDER_RE.findall(text):
            if name not in names:
                names.append(name)
    return names


def _url(
    url: Any, scopes: Scopes
) -> tuple[str, Optional[str], str, list[PostmanKeyValue], list[PostmanKeyValue]]:
    """Return ``(url, host, path, query, path_variables)`` for a request URL."""
    if isinstance(url, str):
        text = substitute(url, scopes)
        host, path, query_string = _split_raw_url(text)
        query = [
            PostmanKeyValue(key=key, value=value)
            for key, value in _query_pairs(query_string)
        ]
        return text, host, _template_path(path), query, _path_variables(path, [])

    raw = url.get("raw")
    text = substitute(raw, scopes) if isinstance(raw, str) else ""
    host, path, _ = _split_raw_url(text)

    if url.get("path") is not None:
        segments = url["path"]
        if isinstance(segments, list):
            joined = "/".join(
                str(s.get("value", "")) if isinstance(s, dict) else str(s)
                for s in segments
            )
        else:
            joined = str(segments)
        path = "/" + substitute(joined, scopes).lstrip("/")
    if url.get("host") is not None:
        host_parts = url["host"]
        host_text = (
            ".".join(str(p) for p in host_parts) if isinstance(host_parts, list) else str(host_parts)
        )
        host_text = substitute(host_text, scopes)
        protocol = url.get("protocol")
        host = f"{protocol}://{host_text}" if protocol else (host or host_text)
        if not text:
            text = f"{host}{path}"

    query = [
        _key_value(entry, scopes)
        for entry in _entries(url.get("query"))
        if isinstance(entry, dict) and entry.get("key") is not None
    ]
    declared = [
        _key_value(entry, scopes)
        for entry in _entries(url.get("variable"))
        if isinstance(entry, dict) and entry.get("key") is not None
    ]
    return text, host, _template_path(path), query, _path_variables(path, declared)


def _split_raw_url(text: str) -> tuple[Optional[str], str, str]:
    """Split a raw URL into ``(host, path, query_string)``.

    The host keeps its scheme (``https://api.example.com``) or its
    unresolved placeholder (``{{baseUrl}}``).
    """
    text = text.split("#", 1)[0]
    base, _, query_string = text.partition("?")

    scheme = _SCHEME_RE.match(base)
    if scheme:
        rest = base[scheme.end():]
        hostname, slash, path = rest.partition("/")
        return base[: scheme.end()] + hostname, slash + path or "/", query_string
    if base.startswith("{{"):
        end = base.find("}}")
        if end != -1:
            return base[: end + 2], base[end + 2:] or "/", query_string
    if base.startswith("/") or not base:
        return None, base or "/", query_string
    hostname, slash, path = base.partition("/")
    return hostname, slash + path or "/", query_string


def _query_pairs(query_string: str) -> list[tuple[str, str]]:
    pairs = []
    for part in query_string.split("&"):
        if not part:
            continue
        key, _, value = part.partition("=")
        pairs.append((key, value))
    return pairs


def _template_path(path: str) -> str:
    return _PATH_VARIABLE_RE.sub(lambda m: "{" + m.group(1) + "}", path)


def _path_variables(path: str, declared: list[PostmanKeyValue]) -> list[PostmanKeyValue]:
    """Path variables in URL order, taking values from the declared list."""
    by_key = {v.key: v for v in declared}
    result = []
    for name in _PATH_VARIABLE_RE.findall(path):
        result.append(by_key.get(name, PostmanKeyValue(key=name)))
    return result


def _headers(headers: Any, scopes: Scopes) -> list[PostmanKeyValue]:
    if isinstance(headers, str):
        # v2.0 allows a raw "Name: value" block
        result = []
        for line in headers.splitlines():
            key, sep, value = line.partition(":")
            if sep and key.strip():
                result.append(
                    PostmanKeyValue(key=key.strip(), value=substitute(value.strip(), scopes))
                )
        return result
    return [
        _key_value(entry, scopes)
        for entry in _entries(headers)
        if isinstance(entry, dict) and entry.get("key") is not None
    ]


def _body(body: Any, scopes: Scopes, label: str) -> Optional[PostmanBody]:
    if not isinstance(body, dict) or not body.get("mode"):
        return None
    mode = str(body["mode"])
    if mode == "raw":
        options = _object(body.get("options"), f"Body options of request '{label}'")
        raw_options = _object(options.get("raw"), f"Raw body options of request '{label}'")
        return PostmanBody(
            mode=mode,
            raw=substitute(_text(body.get("raw")), scopes),
            language=raw_options.get("language"),
        )
    if mode in ("formdata", "urlencoded"):
        fields = [
            _key_value(entry, scopes)
            for entry in _entries(body.get(mode))
            if isinstance(entry, dict) and entry.get("key") is not None
        ]
        return PostmanBody(mode=mode, fields=fields)
    if mode == "graphql":
        graphql = _object(body.get("graphql"), f"GraphQL body of request '{label}'")
        return PostmanBody(mode=mode, raw=_text(graphql.get("query")), language="graphql")
    return PostmanBody(mode=mode)


def _object(value: Any, what: str) -> dict[str, Any]:
    """*value* as a dict; missing means empty, any other type is a parse error."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise SpecParseError(f"{what} must be an object (got {type(value).__name__})")
    return value


def _entries(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _auth_block(
    auth: Any, inherited: Optional[PostmanAuth], scopes: Scopes
) -> Optional[PostmanAuth]:
    """Resolve one level of the auth chain."""
    if not isinstance(auth, dict) or not auth.get("type") or auth["type"] == "inherit":
        return inherited
    auth_type = str(auth["type"])
    if auth_type == "noauth":
        return None

    settings = auth.get(auth_type)
    config: dict[str, str] = {}
    if isinstance(settings, list):
        # v2.1: [{"key": ..., "value": ..., "type": ...}]
        for entry in settings:
            if isinstance(entry, dict) and "key" in entry:
                config[str(entry["key"])] = substitute(_text(entry.get("value")), scopes)
    elif isinstance(settings, dict):
        # v2.0: {"token": ...}
        for key, value in settings.items():
            config[str(key)] = substitute(_text(value), scopes)
    return PostmanAuth(type=auth_type, config=config)


def _response(response: dict[str, Any]) -> PostmanResponse:
    code = response.get("code")
    headers = response.get("header")
    return PostmanResponse(
        name=str(response.get("name") or ""),
        code=int(code) if isinstance(code, (int, str)) and str(code).isdigit() else None,
        status=_text(response["status"]) if response.get("status") is not None else None,
        body=_text(response["body"]) if response.get("body") is not None else None,
        headers=[
            _key_value(entry, [])
            for entry in _entries(headers)
            if isinstance(entry, dict) and entry.get("key") is not None
        ],
    )


def _key_value(entry: dict[str, Any], scopes: Scopes) -> PostmanKeyValue:
    return PostmanKeyValue(
        key=str(entry["key"]),
        value=substitute(_text(entry.get("value")), scopes),
        description=_description(entry.get("description")),
        disabled=bool(entry.get("disabled", False)),
    )


def _variables(entries: Any) -> dict[str, str]:
    if not isinstance(entries, list):
        return {}
    result: dict[str, str] = {}
    for entry in entries:
        if not isinstance(entry, dict) or entry.get("disabled"):
            continue
        key = entry.get("key", entry.get("id"))
        if key is not None:
            result[str(key)] = _text(entry.get("value"))
    return result


def _description(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        value = value.get("content")
    return str(value) if value else None


def _version(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        parts = [str(value.get(k, 0)) for k in ("major", "minor", "patch")]
        return ".".join(parts)
    return str(value) if value else None


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value) if isinstance(value, (dict, list)) else str(value)
