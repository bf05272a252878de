"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~specfuse.exceptions.SpecfuseError` subclass.
Shell wrappers and CI jobs can tell a malformed document apart from an
invalid one without parsing stderr.

Example::

    $ specfuse validate broken.graphql
    $ echo $?
    7   # EXIT_SPEC_PARSE_ERROR -- the SDL could not be parsed
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred, or a document failed validation."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_SPEC_PARSE_ERROR = 7
"""The API description could not be parsed by its format adapter."""

EXIT_CHUNK_CONFIG_ERROR = 8
"""The text chunker was given an invalid size/overlap combination."""

EXIT_INTERRUPTED = 130
"""The run was cancelled with Ctrl-C (128 + SIGINT)."""
