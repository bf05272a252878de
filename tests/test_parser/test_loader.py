"""Tests for specfuse.parser.loader."""

from __future__ import annotations

import io
import json
import textwrap
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest

from specfuse.exceptions import SpecParseError
from specfuse.models import OpenAPIDocument, ParsedGraphQLSchema, ParsedPostmanCollection, SpecFormat
from specfuse.parser.loader import detect_format, load_source, parse_document

FIXTURES_DIR = Path(__file__).parent.parent / "fixtures"


# ---------------------------------------------------------------------------
# load_source dispatch
# ---------------------------------------------------------------------------


class TestLoadSource:
    """load_source reads files, stdin and URLs."""

    def test_loads_from_file(self) -> None:
        text = load_source(str(FIXTURES_DIR / "schema.graphql"))
        assert "type Query" in text

    def test_loads_from_stdin(self) -> None:
        with patch("specfuse.parser.loader.sys") as mock_sys:
            mock_sys.stdin = io.StringIO("type Query { ok: Boolean }")
            text = load_source("-")
        assert text.startswith("type Query")

    def test_empty_stdin_raises(self) -> None:
        with patch("specfuse.parser.loader.sys") as mock_sys:
            mock_sys.stdin = io.StringIO("   \n")
            with pytest.raises(SpecParseError, match="No input"):
                load_source("-")

    def test_loads_from_url(self) -> None:
        body = {"openapi": "3.0.3", "info": {"title": "URL test", "version": "1.0"}}
        mock_response = httpx.Response(
            status_code=200,
            json=body,
            request=httpx.Request("GET", "https://example.com/openapi.json"),
        )
        with patch("specfuse.parser.loader.httpx.get", return_value=mock_response) as mock_get:
            text = load_source("https://example.com/openapi.json")
        assert json.loads(text)["info"]["title"] == "URL test"
        mock_get.assert_called_once_with(
            "https://example.com/openapi.json", timeout=30.0, follow_redirects=True
        )

    def test_url_http_error_raises(self) -> None:
        mock_response = httpx.Response(
            status_code=404,
            request=httpx.Request("GET", "https://example.com/missing.json"),
        )
        with patch("specfuse.parser.loader.httpx.get", return_value=mock_response):
            with pytest.raises(SpecParseError, match="HTTP 404"):
                load_source("https://example.com/missing.json")

    def test_url_connection_error_raises(self) -> None:
        request = httpx.Request("GET", "https://unreachable.example.com/spec.json")
        with patch(
            "specfuse.parser.loader.httpx.get",
            side_effect=httpx.ConnectError("refused", request=request),
        ):
            with pytest.raises(SpecParseError, match="Failed to fetch"):
                load_source("https://unreachable.example.com/spec.json")

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(SpecParseError, match="File not found"):
            load_source(str(tmp_path / "nope.json"))

    def test_empty_file_raises(self, tmp_path: Path) -> None:
        empty = tmp_path / "empty.json"
        empty.write_text("", encoding="utf-8")
        with pytest.raises(SpecParseError, match="File is empty"):
            load_source(str(empty))


# ---------------------------------------------------------------------------
# Format detection
# ---------------------------------------------------------------------------


class TestDetectFormat:
    """detect_format recognizes each supported document family."""

    def test_openapi_json(self, openapi_text: str) -> None:
        assert detect_format(openapi_text) == SpecFormat.OPENAPI

    def test_openapi_yaml(self) -> None:
        text = textwrap.dedent("""\
            openapi: "3.1.0"
            info:
              title: YAML
              version: "1.0"
            paths: {}
        """)
        assert detect_format(text) == SpecFormat.OPENAPI

    def test_swagger_is_reported_as_openapi(self) -> None:
        assert detect_format('{"swagger": "2.0", "info": {}}') == SpecFormat.OPENAPI

    def test_postman(self, postman_text: str) -> None:
        assert detect_format(postman_text) == SpecFormat.POSTMAN

    def test_graphql_sdl(self, graphql_text: str) -> None:
        assert detect_format(graphql_text) == SpecFormat.GRAPHQL

    def test_graphql_by_filename(self) -> None:
        assert detect_format("{}", filename="api.graphql") == SpecFormat.GRAPHQL

    def test_unknown_raises_with_suggestion(self) -> None:
        with pytest.raises(SpecParseError) as exc_info:
            detect_format('{"hello": "world"}')
        assert exc_info.value.suggestions
        assert "--format" in exc_info.value.suggestions[0]


# ---------------------------------------------------------------------------
# Adapter dispatch
# ---------------------------------------------------------------------------


class TestParseDocument:
    def test_dispatches_by_detected_format(
        self, postman_text: str, graphql_text: str, openapi_text: str
    ) -> None:
        assert isinstance(parse_document(postman_text), ParsedPostmanCollection)
        assert isinstance(parse_document(graphql_text), ParsedGraphQLSchema)
        assert isinstance(parse_document(openapi_text), OpenAPIDocument)

    def test_explicit_format_wins(self, graphql_text: str) -> None:
        with pytest.raises(SpecParseError):
            parse_document(graphql_text, SpecFormat.POSTMAN)

    def test_environment_applies_to_postman(self) -> None:
        text = json.dumps(
            {
                "info": {"name": "Env"},
                "item": [{"name": "Ping", "request": {"method": "GET", "url": "{{host}}/ping"}}],
            }
        )
        collection = parse_document(text, environment={"host": "https://env.example.com"})
        assert isinstance(collection, ParsedPostmanCollection)
        assert collection.endpoints[0].url == "https://env.example.com/ping"
