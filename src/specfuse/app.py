"""Typer application and CLI entry point for specfuse.

The root callback picks the output format (``--json``/``--plain`` or the
configured ``output.format``) and, with ``--verbose``, routes ``specfuse.*``
log records through :class:`rich.logging.RichHandler`.  Sub-commands are
attached at import time by :func:`register_commands`.

:func:`main` is the console-script entry point declared in
``pyproject.toml``.  A :class:`~specfuse.exceptions.SpecfuseError` that
escapes a command exits with its ``exit_code``; any other exception is
written to a crash log in :func:`~specfuse.config.get_data_dir`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

import typer

from specfuse import __version__
from specfuse.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INTERRUPTED

if TYPE_CHECKING:
    from specfuse.output import OutputFormat

app = typer.Typer(
    name="specfuse",
    help="Normalize Postman, GraphQL and OpenAPI descriptions into one canonical model.",
    no_args_is_help=True,
    add_completion=True,
    rich_markup_mode="rich",
)


def _show_version(value: bool) -> None:
    if value:
        typer.echo(f"specfuse {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False, "--version", callback=_show_version, is_eager=True, help="Print the version and exit."
    ),
    json_output: bool = typer.Option(False, "--json", help="Write data to stdout as JSON."),
    plain_output: bool = typer.Option(
        False, "--plain", help="Write data as plain text and tab-separated tables."
    ),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colour and Rich markup."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print data, warnings and errors."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print debug messages and logs."),
) -> None:
    """Install the global output manager before any sub-command runs."""
    from specfuse.output import OutputManager, set_output, warning

    fmt, config_problem = _choose_format(json_output, plain_output)
    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    if config_problem:
        warning(config_problem)
    if verbose:
        _enable_debug_logging(no_color)


def _choose_format(json_output: bool, plain_output: bool) -> tuple[OutputFormat, Optional[str]]:
    """Return the output format and, if config could not be read, why.

    A broken config file must not stop ``config set``/``config reset`` from
    running, so it degrades to ``AUTO`` with a warning.
    """
    from specfuse.config import resolve_config
    from specfuse.exceptions import ConfigError
    from specfuse.output import OutputFormat

    if json_output:
        return OutputFormat.JSON, None
    if plain_output:
        return OutputFormat.PLAIN, None
    try:
        configured = resolve_config().output.format
    except ConfigError as exc:
        return OutputFormat.AUTO, str(exc)
    try:
        return OutputFormat(configured), None
    except ValueError:
        return OutputFormat.AUTO, f"Unknown output.format {configured!r}; using auto"


def _enable_debug_logging(no_color: bool) -> None:
    from rich.console import Console
    from rich.logging import RichHandler

    logger = logging.getLogger("specfuse")
    logger.handlers = [
        RichHandler(
            console=Console(stderr=True, no_color=no_color),
            show_path=False,
            rich_tracebacks=True,
        )
    ]
    logger.setLevel(logging.DEBUG)


def register_commands() -> None:
    """Attach the built-in sub-commands to :data:`app`."""
    from specfuse.commands.chunk import chunk_command
    from specfuse.commands.config import config_app
    from specfuse.commands.convert import convert_command
    from specfuse.commands.infer import infer_app
    from specfuse.commands.inspect import inspect_app
    from specfuse.commands.validate import validate_command

    app.command("convert")(convert_command)
    app.command("validate")(validate_command)
    app.command("chunk")(chunk_command)
    app.add_typer(inspect_app, name="inspect", help="Inspect a normalized spec.")
    app.add_typer(infer_app, name="infer", help="Merge inference candidates into a ledger.")
    app.add_typer(config_app, name="config", help="Configuration management.")


register_commands()


def _interrupted(signum: int, frame: Any) -> None:
    sys.stderr.write("\nCancelled.\n")
    sys.exit(EXIT_INTERRUPTED)


def _crash_log(exc: BaseException) -> Path:
    """Save the traceback of *exc* as ``crash-<timestamp>.log`` and return the path."""
    from specfuse.config import get_data_dir

    path = get_data_dir() / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
    path.write_text("".join(traceback.format_exception(exc)), encoding="utf-8")
    return path


def main() -> None:
    """Run the CLI. Always ends in :class:`SystemExit`."""
    from specfuse.exceptions import SpecfuseError
    from specfuse.output import error

    signal.signal(signal.SIGINT, _interrupted)
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        _interrupted(signal.SIGINT, None)
    except SpecfuseError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        error(f"Unexpected error. Debug log: {_crash_log(exc)}")
        sys.exit(EXIT_GENERIC_FAILURE)
