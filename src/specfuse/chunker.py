"""Split long text into overlapping chunks for retrieval pipelines.

:func:`split_text` produces chunks of at most ``chunk_size`` characters whose
union covers the input with no gaps; consecutive chunks share ``overlap``
characters.  Offsets in :class:`~specfuse.models.ChunkMetadata` point into
the original text, so ``content[start:end] == chunk.content`` always holds.

In plain mode the window slides by a fixed stride of
``chunk_size - overlap``.  With ``preserve_structure`` each boundary is moved
back to the nearest safe break within a bounded look-back window, so chunks
tend to end at a blank line, a closing brace, a sentence or a line end
instead of mid-token.
"""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Optional

from specfuse.exceptions import ChunkConfigError
from specfuse.models import ChunkMetadata, ChunkOptions, ChunkType, ParsedSpec, TextChunk

logger = logging.getLogger(__name__)

# Safe breaks, best first.  A boundary goes right after the match.
_BREAKS = (
    re.compile(r"\n[ \t]*\n"),
    re.compile(r"[}\]],?[ \t]*\n"),
    re.compile(r"[.!?][ \t]+"),
    re.compile(r"\n"),
)

_LIST_ITEM_RE = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+")


def split_text(
    content: str, source: str, options: Optional[ChunkOptions] = None
) -> list[TextChunk]:
    """Split *content* into chunks.

    Args:
        content: Text to split.
        source: Label recorded in every chunk's metadata.
        options: Chunk size, overlap and boundary policy.

    Returns:
        Chunks in document order.  Empty content gives no chunks; content no
        longer than ``chunk_size`` gives exactly one.

    Raises:
        ChunkConfigError: If ``chunk_size <= 0`` or ``overlap`` is outside
            ``[0, chunk_size)``.  Raised before any splitting happens.
    """
    options = options or ChunkOptions()
    check_options(options)

    length = len(content)
    if length == 0:
        return []
    if length <= options.chunk_size:
        bounds = [(0, length)]
    elif options.preserve_structure:
        bounds = _structural_bounds(content, options)
    else:
        bounds = _sliding_bounds(length, options.chunk_size, options.overlap)

    chunks = [
        TextChunk(
            content=content[start:end],
            metadata=ChunkMetadata(
                type=classify(content[start:end]) if options.preserve_structure else ChunkType.PARAGRAPH,
                source=source,
                start=start,
                end=end,
                index=index,
            ),
        )
        for index, (start, end) in enumerate(bounds)
    ]
    logger.debug("Split %d characters from '%s' into %d chunks", length, source, len(chunks))
    return chunks


def check_options(options: ChunkOptions) -> None:
    """Raise :class:`ChunkConfigError` unless ``0 <= overlap < chunk_size``."""
    if options.chunk_size <= 0:
        raise ChunkConfigError(f"chunk_size must be positive (got {options.chunk_size})")
    if options.overlap < 0:
        raise ChunkConfigError(f"overlap must not be negative (got {options.overlap})")
    if options.overlap >= options.chunk_size:
        raise ChunkConfigError(
            f"overlap ({options.overlap}) must be smaller than chunk_size ({options.chunk_size})"
        )
    if options.lookback is not None and options.lookback < 0:
        raise ChunkConfigError(f"lookback must not be negative (got {options.lookback})")


def _sliding_bounds(length: int, size: int, overlap: int) -> list[tuple[int, int]]:
    stride = size - overlap
    count = math.ceil((length - overlap) / stride)
    return [(i * stride, min(i * stride + size, length)) for i in range(count)]


def _structural_bounds(content: str, options: ChunkOptions) -> list[tuple[int, int]]:
    size, overlap = options.chunk_size, options.overlap
    lookback = options.lookback if options.lookback is not None else size // 4
    length = len(content)

    bounds: list[tuple[int, int]] = []
    start = 0
    while True:
        raw_end = start + size
        if raw_end >= length:
            bounds.append((start, length))
            return bounds
        # The boundary must stay past start + overlap so the next start advances.
        floor = max(start + overlap + 1, raw_end - lookback)
        end = _snap(content, floor, raw_end)
        bounds.append((start, end))
        start = end - overlap


def _snap(content: str, floor: int, raw_end: int) -> int:
    """Last safe break in ``content[floor:raw_end]``, else *raw_end*."""
    if floor >= raw_end:
        return raw_end
    window = content[floor:raw_end]
    for pattern in _BREAKS:
        last = None
        for last in pattern.finditer(window):
            pass
        if last is not None:
            return floor + last.end()
    return raw_end


def classify(text: str) -> ChunkType:
    """Best-effort structural type of a chunk, judged by its first line."""
    stripped = text.lstrip()
    if stripped.startswith("```") or stripped[:1] in ("{", "["):
        return ChunkType.CODE
    if stripped.startswith("#"):
        return ChunkType.HEADING
    lines = [line for line in stripped.splitlines() if line.strip()]
    if lines and all(line.lstrip().startswith("|") for line in lines[:2]):
        return ChunkType.TABLE
    if lines and _LIST_ITEM_RE.match(lines[0]):
        return ChunkType.LIST
    return ChunkType.PARAGRAPH


def serialize_spec_for_chunking(spec: ParsedSpec) -> str:
    """Render *spec* as pretty JSON, the form fed to :func:`split_text`."""
    return json.dumps(spec.to_dict(), indent=2, ensure_ascii=False)


def chunk_spec(spec: ParsedSpec, options: Optional[ChunkOptions] = None) -> list[TextChunk]:
    """Serialise and split a canonical spec in one step."""
    return split_text(serialize_spec_for_chunking(spec), f"spec:{spec.title}", options)
