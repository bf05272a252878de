"""Terminal output for specfuse commands.

Anything another program might consume (canonical specs, chunk lists,
tables, ledger exports, validation reports in JSON mode) is written to
**stdout**.  Progress lines, findings, warnings and hints go to **stderr**,
so ``specfuse convert api.json > spec.json`` stays clean.

Rich rendering is used only when stdout is an interactive terminal and
colour is allowed; ``NO_COLOR`` (any value), ``TERM=dumb`` and
``--no-color`` all switch it off.  The CLI callback installs one
:class:`OutputManager` with :func:`set_output`; commands use the
module-level helpers.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

if TYPE_CHECKING:
    from specfuse.models import ValidationResult


class OutputFormat(str, Enum):
    """Rendering of stdout data. ``AUTO`` is settled when the manager is built."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """True when ``NO_COLOR`` is set (any value) or ``TERM=dumb``."""
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


def _settle_format(requested: OutputFormat, no_color: bool) -> OutputFormat:
    if requested != OutputFormat.AUTO:
        return requested
    return OutputFormat.RICH if _is_tty() and not no_color else OutputFormat.PLAIN


class OutputManager:
    """Writes data to stdout and diagnostics to stderr in one chosen format.

    Args:
        format: Requested data format.
        no_color: Disable colour and markup on both streams.
        quiet: Drop ``info``, ``success`` and ``suggest`` messages.
        verbose: Show ``debug`` messages.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._format = _settle_format(format, self._no_color)
        self._quiet = quiet
        self._verbose = verbose
        self._console = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=self._format == OutputFormat.RICH,
        )
        self._err_console = Console(file=sys.stderr, stderr=True, no_color=self._no_color)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    # -- stdout ---------------------------------------------------------

    def print_data(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    def emit(self, data: Any) -> None:
        """Write *data* as indented JSON (highlighted in rich mode)."""
        text = json.dumps(data, indent=2, ensure_ascii=False, default=str)
        if self._format == OutputFormat.RICH:
            self._console.print(Syntax(text, "json", theme="monokai", word_wrap=True))
        else:
            self.print_data(text)

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Render rows as JSON records, tab-separated lines, or a Rich table."""
        if self._format == OutputFormat.JSON:
            self.emit([dict(zip(headers, row)) for row in rows])
            return
        if self._format == OutputFormat.PLAIN:
            for line in [headers, *rows]:
                self.print_data("\t".join(line))
            return

        table = Table(title=title, header_style="bold cyan")
        for header in headers:
            table.add_column(header, overflow="fold")
        for row in rows:
            table.add_row(*row)
        self._console.print(table)

    def report(self, result: ValidationResult) -> None:
        """Print a validation result.

        JSON mode emits the result on stdout.  Otherwise each finding is
        written to stderr followed by a one-line summary.
        """
        if self._format == OutputFormat.JSON:
            self.emit(result.model_dump(mode="json", by_alias=True))
            return
        for message in result.errors:
            self.error(message)
        for message in result.warnings:
            self.warning(message)
        if result.valid:
            self.success(f"Valid ({len(result.warnings)} warnings)")
        else:
            self.error(f"{len(result.errors)} errors, {len(result.warnings)} warnings")

    # -- stderr ---------------------------------------------------------

    def info(self, message: str) -> None:
        if not self._quiet:
            self._note(message)

    def success(self, message: str) -> None:
        if not self._quiet:
            self._note(message, style="green")

    def warning(self, message: str) -> None:
        """Shown even in quiet mode."""
        self._note(message, label="Warning:", style="yellow")

    def error(self, message: str) -> None:
        """Never suppressed."""
        self._note(message, label="Error:", style="bold red")

    def suggest(self, message: str) -> None:
        if not self._quiet:
            self._note(f"→ {message}", style="dim")

    def debug(self, message: str) -> None:
        if self._verbose:
            self._note(message, label="[debug]", style="dim")

    def _note(self, message: str, label: str = "", style: str = "") -> None:
        plain = f"{label} {message}" if label else message
        if self._no_color:
            print(plain, file=sys.stderr, flush=True)
        else:
            # markup=False keeps "[debug]" and user text from being parsed.
            self._err_console.print(plain, style=style or None, markup=False, highlight=False)


# -- global instance ----------------------------------------------------

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """The installed manager; an ``AUTO`` one is created on first use."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    global _output
    _output = None


def emit(data: Any) -> None:
    get_output().emit(data)


def print_data(text: str) -> None:
    get_output().print_data(text)


def print_table(headers: list[str], rows: list[list[str]], title: Optional[str] = None) -> None:
    get_output().print_table(headers, rows, title)


def report(result: ValidationResult) -> None:
    get_output().report(result)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def suggest(message: str) -> None:
    get_output().suggest(message)


def debug(message: str) -> None:
    get_output().debug(message)
