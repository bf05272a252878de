"""Read API descriptions from a URL, local file, or stdin, and detect their format.

This module is the only place that performs I/O; the adapters and the
converter work on text already in memory.  The public functions are:

* :func:`load_source` -- Return the text behind a file path, URL or ``-``.
* :func:`detect_format` -- Guess the :class:`~specfuse.models.SpecFormat` of
  some text.
* :func:`parse_document` -- Dispatch text to the adapter for its format.
"""

from __future__ import annotations

import logging
import re
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

import httpx

from specfuse.exceptions import SpecParseError
from specfuse.models import SpecFormat
from specfuse.parser.converter import NativeTree
from specfuse.parser.graphql import parse_graphql
from specfuse.parser.openapi import parse_openapi, parse_structured
from specfuse.parser.postman import parse_postman

logger = logging.getLogger(__name__)

_SDL_KEYWORD_RE = re.compile(
    r"^\s*(?:\"\"\"[\s\S]*?\"\"\"\s*)?(?:extend\s+)?"
    r"(?:type|input|enum|interface|union|scalar|schema|directive)\b",
    re.MULTILINE,
)


def load_source(source: str) -> str:
    """Load raw text from a URL, file path, or stdin ('-').

    Args:
        source: A URL (http/https), file path, or '-' for stdin.

    Raises:
        SpecParseError: If the source cannot be read or is empty.
    """
    if source == "-":
        return _load_from_stdin()
    if source.startswith(("http://", "https://")):
        return _load_from_url(source)
    return _load_from_file(source)


def _load_from_stdin() -> str:
    try:
        content = sys.stdin.read()
    except OSError as exc:
        raise SpecParseError(f"Failed to read from stdin: {exc}") from exc

    if not content.strip():
        raise SpecParseError("No input received from stdin")
    return content


def _load_from_url(url: str) -> str:
    try:
        response = httpx.get(url, timeout=30.0, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise SpecParseError(
            f"HTTP {exc.response.status_code} fetching {url}"
        ) from exc
    except httpx.RequestError as exc:
        raise SpecParseError(f"Failed to fetch {url}: {exc}") from exc

    logger.debug("Fetched %d bytes from %s", len(response.content), url)
    return response.text


def _load_from_file(path: str) -> str:
    file_path = Path(path)
    if not file_path.is_file():
        raise SpecParseError(f"File not found: {path}")

    try:
        content = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SpecParseError(f"Failed to read {path}: {exc}") from exc

    if not content.strip():
        raise SpecParseError(f"File is empty: {path}")
    return content


def detect_format(content: str, filename: Optional[str] = None) -> SpecFormat:
    """Guess the format of *content*.

    Structured documents with an ``openapi``/``swagger`` key are OpenAPI;
    ones with ``info`` + ``item`` (or ``info._postman_id``) are Postman.
    Otherwise text containing SDL definitions is GraphQL.  A ``.graphql`` or
    ``.gql`` *filename* short-circuits to GraphQL.

    Raises:
        SpecParseError: If no format matches.
    """
    if filename and Path(filename).suffix.lower() in (".graphql", ".gql", ".graphqls"):
        return SpecFormat.GRAPHQL

    try:
        document = parse_structured(content)
    except SpecParseError:
        document = None

    if document is not None:
        if "openapi" in document or "swagger" in document:
            return SpecFormat.OPENAPI
        info = document.get("info")
        if "item" in document or (isinstance(info, dict) and "_postman_id" in info):
            return SpecFormat.POSTMAN

    if _SDL_KEYWORD_RE.search(content):
        return SpecFormat.GRAPHQL

    raise SpecParseError(
        "Could not detect the document format",
        suggestions=["Pass --format postman, graphql or openapi explicitly"],
    )


def parse_document(
    content: str,
    fmt: Optional[SpecFormat] = None,
    environment: Optional[Mapping[str, Any]] = None,
) -> NativeTree:
    """Parse *content* with the adapter for *fmt* (detected when ``None``).

    *environment* only applies to Postman collections.
    """
    fmt = fmt or detect_format(content)
    logger.debug("Parsing document as %s", fmt.value)
    if fmt == SpecFormat.POSTMAN:
        return parse_postman(content, environment=environment)
    if fmt == SpecFormat.GRAPHQL:
        return parse_graphql(content)
    return parse_openapi(content)
