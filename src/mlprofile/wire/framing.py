"""
Length-delimited framing.

Each frame is an unsigned LEB128 varint holding the payload length followed
by exactly that many payload bytes (the same convention as protobuf's
``writeDelimitedTo``), so a stream of frames can be read without an index.

End of input exactly at a frame boundary is a clean stop.  End of input
inside a length prefix or a payload is corruption.
"""

from __future__ import annotations

from typing import BinaryIO, Iterator, Optional

from mlprofile.errors import CorruptFrameError

# A uint64 needs at most ten 7-bit groups.
_MAX_VARINT_BYTES = 10


def encode_varint(value: int) -> bytes:
    if value < 0:
        raise ValueError("varint value must be non-negative")
    out = bytearray()
    while True:
        bits = value & 0x7F
        value >>= 7
        if value:
            out.append(bits | 0x80)
        else:
            out.append(bits)
            return bytes(out)


def _read_varint(source: BinaryIO) -> Optional[int]:
    """Read a varint; return None on end of input before the first byte."""
    result = 0
    for i in range(_MAX_VARINT_BYTES):
        byte = source.read(1)
        if not byte:
            if i == 0:
                return None
            raise CorruptFrameError("Stream ended inside a frame length prefix")
        b = byte[0]
        result |= (b & 0x7F) << (7 * i)
        if not b & 0x80:
            return result
    raise CorruptFrameError("Frame length prefix is longer than 10 bytes")


def frame(payload: bytes) -> bytes:
    """Return *payload* with its length prefix."""
    return encode_varint(len(payload)) + payload


def write_frame(sink: BinaryIO, payload: bytes) -> int:
    """Write one frame to *sink*; return the number of bytes written."""
    data = frame(payload)
    sink.write(data)
    return len(data)


def read_frame(source: BinaryIO) -> Optional[bytes]:
    """
    Read one frame payload from *source*.

    Returns None when *source* is exhausted at a frame boundary.

    Raises
    ------
    CorruptFrameError
        If the stream ends partway through a frame.
    """
    size = _read_varint(source)
    if size is None:
        return None
    payload = source.read(size)
    if len(payload) != size:
        raise CorruptFrameError(
            f"Truncated frame: expected {size} bytes, got {len(payload)}"
        )
    return payload


def iter_frames(source: BinaryIO) -> Iterator[bytes]:
    """Yield frame payloads until *source* is exhausted."""
    while True:
        payload = read_frame(source)
        if payload is None:
            return
        yield payload
