"""
Column chunk packing for the streaming wire form.

Columns are serialized one at a time and grouped into ColumnsChunkSegment
messages whose summed column payload size stays under a byte budget.  The
packer is a generator over a generator: it never holds more than one
chunk's worth of serialized columns.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, Tuple

from mlprofile.wire.messages import ColumnsChunkSegment

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHUNK_BYTES = 1024 * 1024


def iter_column_chunks(
    columns: Iterable[Tuple[str, bytes]],
    marker: str,
    max_chunk_bytes: int = DEFAULT_MAX_CHUNK_BYTES,
) -> Iterator[ColumnsChunkSegment]:
    """
    Group serialized columns into size-bounded chunk segments.

    Parameters
    ----------
    columns : iterable of (column name, serialized column) pairs
        Pulled lazily, one pair at a time.
    marker : str
        Marker stamped on every emitted segment.
    max_chunk_bytes : int
        Budget for the summed column payload sizes of one chunk.  A column
        that alone exceeds the budget is emitted in a chunk of its own.

    Yields
    ------
    ColumnsChunkSegment
        Non-empty chunks.  Nothing is yielded for an empty column input.
    """
    if max_chunk_bytes <= 0:
        raise ValueError("max_chunk_bytes must be positive")

    pending: Dict[str, bytes] = {}
    pending_size = 0
    for name, payload in columns:
        size = len(name.encode("utf-8")) + len(payload)
        if pending and pending_size + size > max_chunk_bytes:
            yield ColumnsChunkSegment(marker=marker, columns=pending)
            pending = {}
            pending_size = 0
        if size > max_chunk_bytes:
            logger.warning(
                "Column %r serializes to %d bytes, above the %d byte chunk limit",
                name, size, max_chunk_bytes,
            )
        pending[name] = payload
        pending_size += size

    if pending:
        yield ColumnsChunkSegment(marker=marker, columns=pending)
