"""Exception hierarchy for specfuse.

All exceptions inherit from :class:`SpecfuseError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`specfuse.exit_codes`.
The top-level error handler in :func:`specfuse.app.main` catches
``SpecfuseError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Only malformed input and bad configuration are raised. Validation findings
are returned as :class:`~specfuse.models.ValidationResult` values and ledger
conflicts as :class:`~specfuse.models.ActionOutcome` values.

Subclass hierarchy::

    SpecfuseError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- SpecParseError      (exit 7)
    +-- ChunkConfigError    (exit 8)
    +-- ConfigError         (exit 1)
"""

from __future__ import annotations

from typing import Optional

from specfuse.exit_codes import (
    EXIT_CHUNK_CONFIG_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_SPEC_PARSE_ERROR,
)


class SpecfuseError(Exception):
    """Base exception for all specfuse errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`specfuse.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(SpecfuseError):
    """Raised for invalid CLI arguments or unsupported option combinations."""

    exit_code = EXIT_INVALID_USAGE


class SpecParseError(SpecfuseError):
    """Raised when a format adapter cannot parse a document.

    Parsing is atomic: when this is raised no partial tree exists. The
    position is best-effort and ``None`` when the underlying parser does not
    report one.

    Args:
        message: Human-readable error description.
        line: 1-based line of the offending token, if known.
        column: 1-based column of the offending token, if known.
        suggestions: Hints for fixing the document.
    """

    exit_code = EXIT_SPEC_PARSE_ERROR

    def __init__(
        self,
        message: str,
        line: Optional[int] = None,
        column: Optional[int] = None,
        suggestions: Optional[list[str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column
        self.suggestions = list(suggestions or [])

    def __str__(self) -> str:
        if self.line is None:
            return self.message
        if self.column is None:
            return f"{self.message} (line {self.line})"
        return f"{self.message} (line {self.line}, column {self.column})"


class ChunkConfigError(SpecfuseError):
    """Raised when chunker options violate ``0 <= overlap < chunk_size``."""

    exit_code = EXIT_CHUNK_CONFIG_ERROR


class ConfigError(SpecfuseError):
    """Raised for configuration problems (invalid JSON, unknown keys, bad values)."""

    exit_code = EXIT_GENERIC_FAILURE
