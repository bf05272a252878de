"""Shared test fixtures for specfuse.

Provides the sample documents under ``tests/fixtures/`` as raw text and as
converted specs, an isolated configuration environment and a CLI runner.
These fixtures are discovered by pytest automatically.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from specfuse.models import ParsedSpec
from specfuse.output import reset_output


FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The manager keeps references to the sys.stdout/sys.stderr objects that
    were current when it was created.  CliRunner swaps those streams per
    invocation, so a stale manager would write to a closed file.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Raw documents
# ---------------------------------------------------------------------------


@pytest.fixture
def postman_text() -> str:
    return (FIXTURES_DIR / "postman_collection.json").read_text(encoding="utf-8")


@pytest.fixture
def graphql_text() -> str:
    return (FIXTURES_DIR / "schema.graphql").read_text(encoding="utf-8")


@pytest.fixture
def openapi_text() -> str:
    return (FIXTURES_DIR / "openapi_petstore.json").read_text(encoding="utf-8")


# ---------------------------------------------------------------------------
# Converted specs
# ---------------------------------------------------------------------------


@pytest.fixture
def postman_spec(postman_text: str) -> ParsedSpec:
    """The sample collection converted to the canonical model."""
    from specfuse.parser import convert, parse_postman

    return convert(parse_postman(postman_text))


@pytest.fixture
def graphql_spec(graphql_text: str) -> ParsedSpec:
    from specfuse.parser import convert, parse_graphql

    return convert(parse_graphql(graphql_text))


@pytest.fixture
def openapi_spec(openapi_text: str) -> ParsedSpec:
    from specfuse.parser import convert, parse_openapi

    return convert(parse_openapi(openapi_text))


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Points XDG_CONFIG_HOME and XDG_DATA_HOME into tmp_path, forces the XDG
    layout, clears SPECFUSE_* variables and changes into tmp_path so no
    project config is picked up by accident.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("specfuse.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in ["SPECFUSE_CHUNK_SIZE", "SPECFUSE_CHUNK_OVERLAP", "SPECFUSE_OUTPUT_FORMAT"]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
