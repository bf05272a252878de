"""Chunk command -- split a spec into overlapping chunks for retrieval."""

from __future__ import annotations

from typing import Optional

import typer

from specfuse.commands.common import fail, load_spec
from specfuse.exceptions import SpecfuseError
from specfuse.models import SpecFormat
from specfuse.output import emit, info


def chunk_command(
    source: str = typer.Argument(help="File, URL, or '-' for stdin."),
    fmt: Optional[SpecFormat] = typer.Option(
        None, "--format", "-f", help="Source format (detected when omitted)."
    ),
    chunk_size: Optional[int] = typer.Option(
        None, "--chunk-size", "-s", help="Maximum chunk length in characters."
    ),
    overlap: Optional[int] = typer.Option(
        None, "--overlap", "-o", help="Characters shared by consecutive chunks."
    ),
    structure: Optional[bool] = typer.Option(
        None,
        "--structure/--no-structure",
        help="Snap chunk boundaries to blank lines, braces and sentences.",
    ),
    raw: bool = typer.Option(
        False, "--raw", help="Chunk the document text instead of the canonical JSON."
    ),
) -> None:
    """Split an API description into chunks and print them as JSON.

    Chunk size and overlap fall back to ``SPECFUSE_CHUNK_SIZE``,
    ``SPECFUSE_CHUNK_OVERLAP``, then the ``chunker`` config section.

    Example::

        specfuse chunk openapi.yaml --chunk-size 800 --overlap 100
        specfuse chunk NOTES.md --raw --no-structure
    """
    from specfuse.chunker import chunk_spec, split_text
    from specfuse.config import resolve_config
    from specfuse.parser import load_source

    try:
        config = resolve_config(cli_chunk_size=chunk_size, cli_overlap=overlap)
        options = config.chunker
        if structure is not None:
            options = options.model_copy(update={"preserve_structure": structure})

        if raw:
            chunks = split_text(load_source(source), source, options)
        else:
            chunks = chunk_spec(load_spec(source, fmt, converter=config.converter), options)
    except SpecfuseError as exc:
        raise fail(exc) from None

    info(f"{len(chunks)} chunks (size {options.chunk_size}, overlap {options.overlap})")
    emit([chunk.model_dump(mode="json", by_alias=True) for chunk in chunks])
