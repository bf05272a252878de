"""Source loading and error reporting shared by the sub-commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import typer

from specfuse.exceptions import InvalidUsageError, SpecfuseError, SpecParseError
from specfuse.models import ConverterConfig, ParsedSpec, SpecFormat
from specfuse.output import debug, error, suggest


def fail(exc: SpecfuseError) -> typer.Exit:
    """Report *exc* on stderr and return the matching :class:`typer.Exit`.

    Usage: ``raise fail(exc) from None``.
    """
    error(str(exc))
    if isinstance(exc, SpecParseError):
        for hint in exc.suggestions:
            suggest(hint)
    return typer.Exit(code=exc.exit_code)


def read_json_file(path: Path, what: str) -> Any:
    """Parse a JSON file given on the command line.

    Raises:
        InvalidUsageError: If the file is missing or not valid JSON.
    """
    if not path.is_file():
        raise InvalidUsageError(f"{what} file not found: {path}")
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise InvalidUsageError(f"{what} file {path} is not valid JSON: {exc}") from exc


def load_text(source: str, fmt: Optional[SpecFormat]) -> tuple[str, SpecFormat]:
    """Read *source* and settle its format (explicit *fmt* wins over detection)."""
    from specfuse.parser import detect_format, load_source

    content = load_source(source)
    if fmt is None:
        fmt = detect_format(content, filename=None if source == "-" else source)
    debug(f"{source}: {fmt.value}")
    return content, fmt


def load_spec(
    source: str,
    fmt: Optional[SpecFormat] = None,
    env_file: Optional[Path] = None,
    converter: Optional[ConverterConfig] = None,
) -> ParsedSpec:
    """Load, parse and convert *source* into a :class:`ParsedSpec`.

    *env_file* is a Postman environment export used for ``{{var}}``
    substitution; it is ignored for other formats.

    Raises:
        SpecParseError: If the document cannot be read or parsed.
        InvalidUsageError: If *env_file* cannot be read.
    """
    from specfuse.parser import convert, parse_document

    environment = read_json_file(env_file, "Environment") if env_file is not None else None
    if environment is not None and not isinstance(environment, dict):
        raise InvalidUsageError(f"Environment file {env_file} must hold a JSON object")

    content, fmt = load_text(source, fmt)
    return convert(parse_document(content, fmt, environment=environment), converter)
