"""Tests for specfuse.config -- XDG paths, atomic writes, precedence."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from specfuse.config import (
    _atomic_write,
    get_config_dir,
    get_data_dir,
    load_global_config,
    load_project_config,
    resolve_config,
    save_global_config,
    set_config_value,
)
from specfuse.exceptions import ConfigError
from specfuse.models import ChunkOptions, GlobalConfig


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> None:
    """Write a dict as JSON to *path*, creating parent dirs."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


# ---------------------------------------------------------------------------
# Directories
# ---------------------------------------------------------------------------


@pytest.fixture
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
    for var in ("XDG_CONFIG_HOME", "XDG_DATA_HOME"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path


class TestDirectories:
    @pytest.mark.parametrize(
        ("getter", "expected"),
        [
            (get_config_dir, (".config", "specfuse")),
            (get_data_dir, (".local", "share", "specfuse")),
        ],
    )
    def test_xdg_defaults(
        self, home: Path, monkeypatch: pytest.MonkeyPatch, getter: Any, expected: tuple[str, ...]
    ) -> None:
        monkeypatch.setattr("specfuse.config._is_xdg_platform", lambda: True)
        path = getter()
        assert path == home.joinpath(*expected)
        assert path.is_dir()

    def test_xdg_variable_wins(self, home: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("specfuse.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_DATA_HOME", str(home / "xdg-data"))
        assert get_data_dir() == home / "xdg-data" / "specfuse"

    def test_other_platforms_use_dot_dir(self, home: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("specfuse.config._is_xdg_platform", lambda: False)
        assert get_config_dir() == home / ".specfuse"
        assert get_data_dir() == home / ".specfuse" / "logs"


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_replaces_content_and_creates_parents(self, tmp_path: Path) -> None:
        target = tmp_path / "nested" / "config.json"
        _atomic_write(target, "{}")
        _atomic_write(target, '{"chunker": {}}')
        assert target.read_text(encoding="utf-8") == '{"chunker": {}}'
        assert [p.name for p in target.parent.iterdir()] == ["config.json"]

    def test_failure_keeps_previous_file(self, tmp_path: Path) -> None:
        target = tmp_path / "config.json"
        target.write_text("previous", encoding="utf-8")
        with patch("specfuse.config.os.fsync", side_effect=OSError("disk error")):
            with pytest.raises(OSError, match="disk error"):
                _atomic_write(target, "replacement")
        assert target.read_text(encoding="utf-8") == "previous"
        assert [p.name for p in tmp_path.iterdir()] == ["config.json"]


# ---------------------------------------------------------------------------
# Global config
# ---------------------------------------------------------------------------


class TestGlobalConfig:
    def test_load_returns_defaults_when_missing(self, isolated_config: Path) -> None:
        config = load_global_config()
        assert config == GlobalConfig()
        assert config.chunker.chunk_size == 1000
        assert config.converter.model_collision == "suffix"

    def test_save_and_load_roundtrip(self, isolated_config: Path) -> None:
        config = GlobalConfig(chunker=ChunkOptions(chunk_size=500, overlap=50))
        save_global_config(config)
        assert load_global_config() == config

    def test_saved_config_is_valid_json(self, isolated_config: Path) -> None:
        save_global_config(GlobalConfig())
        path = isolated_config / "config" / "specfuse" / "config.json"
        data = json.loads(path.read_text(encoding="utf-8"))
        assert set(data) == {"chunker", "validator", "converter", "output"}

    def test_load_invalid_json_raises_config_error(self, isolated_config: Path) -> None:
        path = isolated_config / "config" / "specfuse" / "config.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid global config"):
            load_global_config()

    def test_load_invalid_schema_raises_config_error(self, isolated_config: Path) -> None:
        _write_json(
            isolated_config / "config" / "specfuse" / "config.json",
            {"converter": {"model_collision": "first_wins"}},
        )
        with pytest.raises(ConfigError):
            load_global_config()


# ---------------------------------------------------------------------------
# Project config
# ---------------------------------------------------------------------------


class TestProjectConfig:
    def test_load_returns_none_when_missing(self, isolated_config: Path) -> None:
        assert load_project_config() is None

    def test_load_valid_project_config(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "specfuse.json", {"chunker": {"overlap": 10}})
        assert load_project_config() == {"chunker": {"overlap": 10}}

    def test_load_invalid_json_raises_config_error(self, isolated_config: Path) -> None:
        (isolated_config / "specfuse.json").write_text("[oops", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid project config"):
            load_project_config()

    def test_non_object_raises_config_error(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "specfuse.json", [1, 2])
        with pytest.raises(ConfigError, match="must be a JSON object"):
            load_project_config()


# ---------------------------------------------------------------------------
# Precedence resolution
# ---------------------------------------------------------------------------


class TestResolveConfig:
    """CLI > environment > project > global > defaults."""

    def test_defaults(self, isolated_config: Path) -> None:
        assert resolve_config() == GlobalConfig()

    def test_project_overrides_global(self, isolated_config: Path) -> None:
        save_global_config(GlobalConfig(chunker=ChunkOptions(chunk_size=800, overlap=80)))
        _write_json(isolated_config / "specfuse.json", {"chunker": {"overlap": 40}})

        config = resolve_config()
        assert config.chunker.chunk_size == 800
        assert config.chunker.overlap == 40

    def test_env_overrides_project(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _write_json(isolated_config / "specfuse.json", {"chunker": {"chunk_size": 300}})
        monkeypatch.setenv("SPECFUSE_CHUNK_SIZE", "600")
        monkeypatch.setenv("SPECFUSE_OUTPUT_FORMAT", "json")

        config = resolve_config()
        assert config.chunker.chunk_size == 600
        assert config.output.format == "json"

    def test_cli_overrides_env(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SPECFUSE_CHUNK_OVERLAP", "50")
        config = resolve_config(cli_chunk_size=2000, cli_overlap=10, cli_format="plain")
        assert (config.chunker.chunk_size, config.chunker.overlap) == (2000, 10)
        assert config.output.format == "plain"

    def test_malformed_project_section(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _write_json(isolated_config / "specfuse.json", {"chunker": 5})
        monkeypatch.setenv("SPECFUSE_CHUNK_SIZE", "600")
        with pytest.raises(ConfigError, match="Invalid configuration"):
            resolve_config()

    def test_invalid_env_value(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SPECFUSE_CHUNK_SIZE", "huge")
        with pytest.raises(ConfigError, match="Invalid configuration"):
            resolve_config()


# ---------------------------------------------------------------------------
# set_config_value
# ---------------------------------------------------------------------------


class TestSetConfigValue:
    def test_coerces_by_field_type(self) -> None:
        config = set_config_value(GlobalConfig(), "chunker.chunk_size", "750")
        assert config.chunker.chunk_size == 750

    def test_bool_and_literal(self) -> None:
        config = set_config_value(GlobalConfig(), "chunker.preserve_structure", "false")
        config = set_config_value(config, "validator.unresolved_variable_severity", "error")
        assert config.chunker.preserve_structure is False
        assert config.validator.unresolved_variable_severity == "error"

    def test_none_clears_optional(self) -> None:
        config = set_config_value(GlobalConfig(), "chunker.lookback", "120")
        assert config.chunker.lookback == 120
        assert set_config_value(config, "chunker.lookback", "none").chunker.lookback is None

    def test_input_is_not_modified(self) -> None:
        original = GlobalConfig()
        set_config_value(original, "chunker.overlap", "5")
        assert original.chunker.overlap == 200

    def test_unknown_key(self) -> None:
        with pytest.raises(ConfigError, match="Unknown config key 'chunker.width'") as exc_info:
            set_config_value(GlobalConfig(), "chunker.width", "1")
        assert "chunker.chunk_size" in str(exc_info.value)

    def test_invalid_value(self) -> None:
        with pytest.raises(ConfigError, match="Invalid value for 'converter.model_collision'"):
            set_config_value(GlobalConfig(), "converter.model_collision", "merge")
