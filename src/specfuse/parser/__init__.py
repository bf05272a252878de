"""Format adapters, schema resolution and conversion to the canonical model.

Typical usage::

    from specfuse.parser import load_source, parse_document, convert

    content = load_source("collection.json")
    spec = convert(parse_document(content))

Sub-modules:

* :mod:`~specfuse.parser.postman` -- Postman Collection v2.x adapter.
* :mod:`~specfuse.parser.graphql` -- GraphQL SDL adapter.
* :mod:`~specfuse.parser.openapi` -- OpenAPI 3.x adapter.
* :mod:`~specfuse.parser.loader` -- I/O (URL, file, stdin), format detection
  and adapter dispatch.
* :mod:`~specfuse.parser.resolver` -- Cycle-safe schema resolution.
* :mod:`~specfuse.parser.converter` -- Native tree to
  :class:`~specfuse.models.ParsedSpec`, plus snapshot edits and merging.
"""

from specfuse.parser.converter import convert, merge_specs, with_model, without_model
from specfuse.parser.graphql import parse_graphql
from specfuse.parser.loader import detect_format, load_source, parse_document
from specfuse.parser.openapi import parse_openapi
from specfuse.parser.postman import parse_postman

__all__ = [
    "convert",
    "detect_format",
    "load_source",
    "merge_specs",
    "parse_document",
    "parse_graphql",
    "parse_openapi",
    "parse_postman",
    "with_model",
    "without_model",
]
