"""Where specfuse keeps its settings and how they are layered.

Settings cover the four knobs the pipeline exposes: chunk geometry,
validator severities, the model-collision policy used when merging sources,
and the default output format.  They are read from, lowest to highest:

1. built-in defaults (:class:`~specfuse.models.GlobalConfig`),
2. the user file ``config.json`` in :func:`get_config_dir`,
3. ``specfuse.json`` in the working directory (any subset of sections),
4. ``SPECFUSE_*`` environment variables (see :data:`ENV_OVERRIDES`),
5. command-line flags passed to :func:`resolve_config`.

Linux and the BSDs follow the XDG base-directory layout; other platforms
keep everything under ``~/.specfuse``.  The user file is replaced
atomically, so a crash mid-write leaves the previous version intact.
"""

from __future__ import annotations

import json
import logging
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from specfuse.exceptions import ConfigError
from specfuse.models import GlobalConfig

logger = logging.getLogger(__name__)

_APP_NAME = "specfuse"
_USER_FILE = "config.json"
_PROJECT_FILE = "specfuse.json"

# Environment variable -> (section, field)
ENV_OVERRIDES = {
    "SPECFUSE_CHUNK_SIZE": ("chunker", "chunk_size"),
    "SPECFUSE_CHUNK_OVERLAP": ("chunker", "overlap"),
    "SPECFUSE_OUTPUT_FORMAT": ("output", "format"),
}

# kind -> (XDG variable, default below $HOME, fallback below ~/.specfuse)
_DIRS = {
    "config": ("XDG_CONFIG_HOME", (".config",), ()),
    "data": ("XDG_DATA_HOME", (".local", "share"), ("logs",)),
}


# --- Directories ---


def _is_xdg_platform() -> bool:
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _app_dir(kind: str) -> Path:
    env_var, xdg_default, fallback = _DIRS[kind]
    if _is_xdg_platform():
        root = os.environ.get(env_var) or str(Path.home().joinpath(*xdg_default))
        path = Path(root) / _APP_NAME
    else:
        path = Path.home().joinpath(f".{_APP_NAME}", *fallback)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """Directory holding the user ``config.json`` (created on demand)."""
    return _app_dir("config")


def get_data_dir() -> Path:
    """Directory for crash logs (created on demand)."""
    return _app_dir("data")


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Replace *path* with *data* via a fsynced sibling temp file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    handle, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(handle, "w", encoding="utf-8") as tmp:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


# --- User and project files ---


def _read_json(path: Path, label: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigError(f"Invalid {label} config at {path}: {exc}") from exc


def load_global_config() -> GlobalConfig:
    """Read the user config file, or return defaults when there is none.

    Raises:
        ConfigError: If the file is not valid JSON or does not match
            :class:`~specfuse.models.GlobalConfig`.
    """
    path = get_config_dir() / _USER_FILE
    if not path.is_file():
        return GlobalConfig()
    data = _read_json(path, "global")
    try:
        return GlobalConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    text = json.dumps(config.model_dump(mode="json"), indent=2) + "\n"
    _atomic_write(get_config_dir() / _USER_FILE, text)


def load_project_config() -> Optional[dict[str, Any]]:
    """Return the sections of ``./specfuse.json``, or ``None`` if absent.

    Raises:
        ConfigError: If the file is not a JSON object.
    """
    path = Path.cwd() / _PROJECT_FILE
    if not path.is_file():
        return None
    data = _read_json(path, "project")
    if not isinstance(data, dict):
        raise ConfigError(f"Project config at {path} must be a JSON object")
    return data


# --- Layering ---


def _overlay(base: dict[str, Any], layer: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *layer* over *base* (dicts merge, other values replace)."""
    merged = dict(base)
    for key, value in layer.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _overlay(merged[key], value)
        else:
            merged[key] = value
    return merged


def _put(data: dict[str, Any], section: str, field: str, value: Any) -> None:
    # A malformed project section is left for validation to report.
    if isinstance(data.get(section), dict):
        data[section][field] = value


def resolve_config(
    cli_chunk_size: Optional[int] = None,
    cli_overlap: Optional[int] = None,
    cli_format: Optional[str] = None,
) -> GlobalConfig:
    """Layer defaults, user file, project file, environment and flags.

    ``None`` flags leave lower layers alone.  Values coming from the
    environment are strings and are coerced by model validation.

    Raises:
        ConfigError: If the combined settings do not validate.
    """
    data = load_global_config().model_dump(mode="json")
    project = load_project_config()
    if project is not None:
        data = _overlay(data, project)

    for env_var, (section, field) in ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            logger.debug("%s.%s overridden by %s", section, field, env_var)
            _put(data, section, field, value)

    flags = {
        ("chunker", "chunk_size"): cli_chunk_size,
        ("chunker", "overlap"): cli_overlap,
        ("output", "format"): cli_format,
    }
    for (section, field), value in flags.items():
        if value is not None:
            _put(data, section, field, value)

    try:
        return GlobalConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def set_config_value(config: GlobalConfig, key: str, value: str) -> GlobalConfig:
    """Return a copy of *config* with dotted *key* (``chunker.overlap``) set to *value*.

    *value* is coerced by the field's type through Pydantic validation.

    Raises:
        ConfigError: If the key is unknown or the value is invalid.
    """
    section, _, field = key.partition(".")
    data = config.model_dump(mode="json")
    if section not in data or not isinstance(data[section], dict) or field not in data[section]:
        known = sorted(
            f"{s}.{f}" for s, fields in data.items() if isinstance(fields, dict) for f in fields
        )
        raise ConfigError(f"Unknown config key '{key}'. Known keys: {', '.join(known)}")
    data[section][field] = None if value.lower() in ("none", "null") else value
    try:
        return GlobalConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid value for '{key}': {value}") from exc
