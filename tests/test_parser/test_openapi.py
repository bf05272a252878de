"""Tests for specfuse.parser.openapi -- document decoding and version checks."""

from __future__ import annotations

import textwrap

import pytest

from specfuse.exceptions import SpecParseError
from specfuse.parser.openapi import parse_openapi, parse_structured, validate_openapi_version


class TestParseOpenAPI:
    def test_json_document(self, openapi_text: str) -> None:
        doc = parse_openapi(openapi_text)
        assert doc.openapi_version == "3.0.3"
        assert set(doc.document["paths"]) == {"/pets", "/pets/{petId}"}

    def test_yaml_document(self) -> None:
        text = textwrap.dedent("""\
            openapi: 3.1.0
            info:
              title: Tiny
              version: "1"
            paths: {}
        """)
        doc = parse_openapi(text)
        assert doc.openapi_version == "3.1.0"
        assert doc.document["info"]["title"] == "Tiny"

    def test_swagger_rejected_with_suggestion(self) -> None:
        with pytest.raises(SpecParseError, match="Swagger 2.0 is not supported") as exc_info:
            parse_openapi('{"swagger": "2.0", "info": {}, "paths": {}}')
        assert exc_info.value.suggestions

    def test_missing_version(self) -> None:
        with pytest.raises(SpecParseError, match="Missing 'openapi' field"):
            parse_openapi('{"info": {"title": "x"}}')

    def test_unsupported_version(self) -> None:
        with pytest.raises(SpecParseError, match="Unsupported OpenAPI version: 4.0"):
            validate_openapi_version({"openapi": "4.0"})


class TestParseStructured:
    def test_json_preferred(self) -> None:
        assert parse_structured('{"a": 1}') == {"a": 1}

    def test_yaml_fallback(self) -> None:
        assert parse_structured("a: 1\nb: [x, y]\n") == {"a": 1, "b": ["x", "y"]}

    def test_non_object_rejected(self) -> None:
        with pytest.raises(SpecParseError, match="must be a JSON/YAML object"):
            parse_structured("[1, 2]")

    def test_json_hint_reports_position(self) -> None:
        with pytest.raises(SpecParseError, match="Invalid JSON") as exc_info:
            parse_structured('{\n  "a": }', hint="json")
        assert exc_info.value.line == 2

    def test_unparseable_reports_both_errors(self) -> None:
        with pytest.raises(SpecParseError) as exc_info:
            parse_structured("key: [unclosed\n  other: {")
        message = str(exc_info.value)
        assert "JSON error" in message
        assert "YAML error" in message
        assert exc_info.value.line is not None
