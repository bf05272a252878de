"""Validate command -- report errors and warnings for an API description.

By default the document is converted and the canonical spec is checked with
:func:`~specfuse.validator.validate_spec`.  ``--raw`` skips conversion and
runs the format-level checks of :func:`~specfuse.validator.validate_content`,
which also work on documents too broken to convert.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from specfuse.commands.common import fail, load_spec, load_text
from specfuse.exceptions import SpecfuseError
from specfuse.exit_codes import EXIT_GENERIC_FAILURE
from specfuse.models import SpecFormat
from specfuse.output import report


def validate_command(
    source: str = typer.Argument(help="File, URL, or '-' for stdin."),
    fmt: Optional[SpecFormat] = typer.Option(
        None, "--format", "-f", help="Source format (detected when omitted)."
    ),
    raw: bool = typer.Option(
        False, "--raw", help="Check the raw document instead of the converted spec."
    ),
    env_file: Optional[Path] = typer.Option(
        None, "--env", "-e", help="Postman environment JSON for {{variable}} substitution."
    ),
) -> None:
    """Validate an API description. Exits with code 1 when errors are found.

    Example::

        specfuse validate collection.json
        specfuse validate openapi.yaml --raw --json
    """
    from specfuse.config import resolve_config
    from specfuse.validator import validate_content, validate_spec

    try:
        config = resolve_config()
        if raw:
            content, detected = load_text(source, fmt)
            result = validate_content(content, detected)
        else:
            spec = load_spec(source, fmt, env_file, config.converter)
            result = validate_spec(spec, config.validator)
    except SpecfuseError as exc:
        raise fail(exc) from None

    report(result)
    if not result.valid:
        raise typer.Exit(code=EXIT_GENERIC_FAILURE)
