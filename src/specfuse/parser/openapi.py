"""Decode OpenAPI 3.x documents into their native tree.

OpenAPI needs no bespoke tree: the native form is the document dictionary
itself, wrapped in :class:`~specfuse.models.OpenAPIDocument` together with the
validated version string.  The heavy lifting (``$ref`` resolution, parameter
merging, security overrides) happens later in
:mod:`specfuse.parser.converter`.

The public functions are:

* :func:`parse_openapi` -- Parse JSON or YAML text into an
  :class:`~specfuse.models.OpenAPIDocument`.
* :func:`parse_structured` -- Parse JSON or YAML text into a dict.  Shared
  with the format detector and the raw-content validator.
* :func:`validate_openapi_version` -- Check and return the ``openapi`` version
  string, rejecting Swagger 2.x and unsupported versions.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import yaml

from specfuse.exceptions import SpecParseError
from specfuse.models import OpenAPIDocument

logger = logging.getLogger(__name__)


def parse_openapi(content: str) -> OpenAPIDocument:
    """Parse an OpenAPI 3.x document.

    Args:
        content: JSON or YAML text.

    Returns:
        The native :class:`~specfuse.models.OpenAPIDocument`.

    Raises:
        SpecParseError: If the text is not a JSON/YAML object or does not
            declare a supported OpenAPI version.
    """
    document = parse_structured(content)
    version = validate_openapi_version(document)
    logger.debug(
        "Parsed OpenAPI %s document with %d paths",
        version,
        len(document.get("paths") or {}),
    )
    return OpenAPIDocument(openapi_version=version, document=document)


def parse_structured(content: str, hint: str = "") -> dict[str, Any]:
    """Load a JSON or YAML mapping.

    JSON is attempted first because its errors carry exact positions; a
    *hint* of ``"json"`` makes a JSON failure final and ``"yaml"`` skips
    straight to YAML.  When both fail, the message lists each parser's
    complaint and the position of the last one.

    Raises:
        SpecParseError: If the text is not a mapping in either syntax.
    """
    complaints = ["Failed to parse document as JSON or YAML"]
    line: int | None = None
    column: int | None = None

    if hint != "yaml":
        try:
            return _as_mapping(json.loads(content))
        except json.JSONDecodeError as exc:
            if hint == "json":
                raise SpecParseError(
                    f"Invalid JSON: {exc.msg}", line=exc.lineno, column=exc.colno
                ) from exc
            complaints.append(f"JSON error: {exc}")
            line, column = exc.lineno, exc.colno

    try:
        return _as_mapping(yaml.safe_load(content))
    except yaml.YAMLError as exc:
        complaints.append(f"YAML error: {exc}")
        mark = getattr(exc, "problem_mark", None)
        if mark is not None:
            line, column = mark.line + 1, mark.column + 1

    raise SpecParseError("\n  ".join(complaints), line=line, column=column)


def _as_mapping(document: Any) -> dict[str, Any]:
    if not isinstance(document, dict):
        kind = "empty document" if document is None else type(document).__name__
        raise SpecParseError(f"Document must be a JSON/YAML object (got {kind})")
    return document


def validate_openapi_version(document: dict[str, Any]) -> str:
    """Validate and return the OpenAPI version string.

    Supports OpenAPI 3.0.x and 3.1.x (later 3.x minors are let through).

    Raises:
        SpecParseError: If the version is missing, unsupported, or indicates
            Swagger 2.x.
    """
    if "swagger" in document:
        swagger_ver = str(document["swagger"])
        raise SpecParseError(
            f"Swagger {swagger_ver} is not supported. "
            "Only OpenAPI 3.0.x and 3.1.x are supported.",
            suggestions=["Convert the document with https://converter.swagger.io"],
        )

    openapi_version = document.get("openapi")
    if openapi_version is None:
        raise SpecParseError(
            "Missing 'openapi' field. Is this an OpenAPI 3.x document?"
        )

    version_str = str(openapi_version)
    if version_str.startswith("3."):
        return version_str

    raise SpecParseError(
        f"Unsupported OpenAPI version: {version_str}. "
        "Only OpenAPI 3.0.x and 3.1.x are supported."
    )
