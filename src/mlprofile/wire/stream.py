"""
Streaming (chunked) profile I/O.

Writing: ChunkedProfileWriter frames a profile's metadata segment and its
column chunk segments onto a binary sink.  Several profiles may be written
to the same sink; their frames are told apart by marker.

Reading: ProfileAssembler accepts segments in stream order, groups them by
marker, and builds a DatasetProfile for a marker on request.  There is no
end-of-profile frame; the caller decides when a marker is complete (end of
input, or a new marker starting when profiles are not interleaved).
read_chunked_profiles() reads a whole stream and returns every profile.

Assembly is all-or-nothing: any inconsistency raises CorruptFrameError and
no partial profile is returned.
"""

from __future__ import annotations

import logging
import uuid
from typing import BinaryIO, Callable, Dict, Iterable, Iterator, List, Optional

from mlprofile.core.column import ColumnProfile
from mlprofile.core.profile import DatasetProfile
from mlprofile.errors import CorruptFrameError
from mlprofile.metrics.model import ModelMetrics
from mlprofile.wire.chunks import DEFAULT_MAX_CHUNK_BYTES
from mlprofile.wire.framing import iter_frames, write_frame
from mlprofile.wire.messages import (
    ColumnsChunkSegment,
    DatasetMetadataSegment,
    MessageSegment,
    decode_segment,
    encode,
)

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return str(uuid.uuid4())


class ChunkedProfileWriter:
    """
    Writes profiles to *sink* in the chunked form.

    Parameters
    ----------
    sink : binary file-like object
    max_chunk_bytes : int
        Byte budget for the column payloads of one chunk segment.
    id_factory : callable returning str
        Source of the random part of each marker.  Inject a deterministic
        one in tests.
    """

    def __init__(
        self,
        sink: BinaryIO,
        max_chunk_bytes: int = DEFAULT_MAX_CHUNK_BYTES,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        if max_chunk_bytes <= 0:
            raise ValueError("max_chunk_bytes must be positive")
        self._sink = sink
        self.max_chunk_bytes = max_chunk_bytes
        self._id_factory = id_factory

    def write(self, profile: DatasetProfile) -> str:
        """Write all segments of *profile*; return the marker used."""
        marker = ""
        frames = 0
        written = 0
        for segment in profile.to_segments(self._id_factory, self.max_chunk_bytes):
            marker = segment.marker
            written += write_frame(self._sink, encode(segment))
            frames += 1
        logger.debug(
            "Wrote profile %r as %d frames (%d bytes), marker %s",
            profile.session_id, frames, written, marker,
        )
        return marker


class _Pending:
    """Segments collected so far for one marker."""

    def __init__(self, metadata: DatasetMetadataSegment) -> None:
        self.metadata = metadata
        self.columns: Dict[str, bytes] = {}
        self.chunks = 0


class ProfileAssembler:
    """
    Groups segments by marker and rebuilds profiles from them.

    Segments must arrive in stream order: a marker's metadata segment
    before any of its column chunks.
    """

    def __init__(self) -> None:
        self._pending: Dict[str, _Pending] = {}
        # Markers in order of their metadata segment.
        self._order: List[str] = []

    @property
    def markers(self) -> List[str]:
        return list(self._order)

    def add(self, segment: MessageSegment) -> None:
        if isinstance(segment, DatasetMetadataSegment):
            if segment.marker in self._pending:
                raise CorruptFrameError(
                    f"Duplicate metadata segment for marker {segment.marker!r}"
                )
            self._pending[segment.marker] = _Pending(segment)
            self._order.append(segment.marker)
            return

        if isinstance(segment, ColumnsChunkSegment):
            pending = self._pending.get(segment.marker)
            if pending is None:
                raise CorruptFrameError(
                    f"Column chunk for marker {segment.marker!r} "
                    "arrived before its metadata segment"
                )
            for name, payload in segment.columns.items():
                if name in pending.columns:
                    raise CorruptFrameError(
                        f"Column {name!r} appears in more than one chunk "
                        f"of marker {segment.marker!r}"
                    )
                pending.columns[name] = payload
            pending.chunks += 1
            return

        raise CorruptFrameError(f"Unknown segment type {type(segment).__name__!r}")

    def add_frame(self, payload: bytes) -> None:
        self.add(decode_segment(payload))

    def build(self, marker: str) -> DatasetProfile:
        """Build the profile for *marker* from everything collected so far."""
        pending = self._pending.get(marker)
        if pending is None:
            raise KeyError(f"No metadata segment seen for marker {marker!r}")
        columns = {
            name: ColumnProfile.from_wire(payload)
            for name, payload in pending.columns.items()
        }
        logger.debug(
            "Assembled marker %s from %d chunks, %d columns",
            marker, pending.chunks, len(columns),
        )
        return DatasetProfile.from_properties(
            pending.metadata.properties,
            columns,
            ModelMetrics.from_message(pending.metadata.model_metrics),
        )

    def pop(self, marker: str) -> DatasetProfile:
        """Build the profile for *marker* and forget its segments."""
        profile = self.build(marker)
        del self._pending[marker]
        self._order.remove(marker)
        return profile


def assemble(segments: Iterable[MessageSegment]) -> List[DatasetProfile]:
    """Rebuild every profile found in *segments*, in order of first appearance."""
    assembler = ProfileAssembler()
    for segment in segments:
        assembler.add(segment)
    return [assembler.build(marker) for marker in assembler.markers]


def iter_segments(source: BinaryIO) -> Iterator[MessageSegment]:
    for payload in iter_frames(source):
        yield decode_segment(payload)


def read_chunked_profiles(source: BinaryIO) -> List[DatasetProfile]:
    """Read *source* to exhaustion and return every profile it holds."""
    return assemble(iter_segments(source))


def write_chunked_profile(
    profile: DatasetProfile,
    sink: BinaryIO,
    max_chunk_bytes: int = DEFAULT_MAX_CHUNK_BYTES,
    id_factory: Optional[Callable[[], str]] = None,
) -> str:
    """Write *profile* to *sink* in chunked form; return its marker."""
    writer = ChunkedProfileWriter(sink, max_chunk_bytes, id_factory or _new_id)
    return writer.write(profile)
