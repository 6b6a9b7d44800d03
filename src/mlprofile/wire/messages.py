"""
Wire message types.

All payloads are msgpack documents described by msgspec Structs.  Two
closed variant sets are encoded as msgspec *tagged unions* so the decoder
dispatches on the tag rather than on nullable sibling fields:

    ModelMetricsMessage = ClassificationMessage | RegressionMessage
    MessageSegment      = DatasetMetadataSegment | ColumnsChunkSegment

Column payloads are carried as opaque ``bytes`` (each one an encoded
ColumnMessage) so the chunk writer can size them before packing.

Decoding validates the schema version before the full document is decoded,
so an unreadable major version fails with SchemaVersionError rather than a
field validation error.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Union

import msgspec

from mlprofile.core.schema import validate_schema
from mlprofile.errors import CorruptFrameError

# ---------------------------------------------------------------------------
# Column accumulator payload
# ---------------------------------------------------------------------------

class ColumnMessage(msgspec.Struct):
    name: str
    count: int = 0
    null_count: int = 0
    type_counts: Dict[str, int] = msgspec.field(default_factory=dict)
    numeric_count: int = 0
    mean: float = 0.0
    m2: float = 0.0
    min: Optional[float] = None
    max: Optional[float] = None
    frequent: Dict[str, int] = msgspec.field(default_factory=dict)
    dropped: int = 0
    # HyperLogLog registers, present once the frequency table was pruned.
    distinct: Optional[bytes] = None


# ---------------------------------------------------------------------------
# Model metrics payload
# ---------------------------------------------------------------------------

class ClassificationMessage(msgspec.Struct, tag="classification"):
    prediction_field: str
    target_field: str
    score_field: Optional[str] = None
    labels: List[str] = msgspec.field(default_factory=list)
    counts: List[List[int]] = msgspec.field(default_factory=list)
    score_sums: List[List[float]] = msgspec.field(default_factory=list)
    output_fields: List[str] = msgspec.field(default_factory=list)


class RegressionMessage(msgspec.Struct, tag="regression"):
    prediction_field: str
    target_field: str
    count: int = 0
    sum_diff: float = 0.0
    sum_abs_diff: float = 0.0
    sum2_diff: float = 0.0
    output_fields: List[str] = msgspec.field(default_factory=list)


# Keep Union[] notation: msgspec evaluates these annotations at runtime.
ModelMetricsMessage = Union[ClassificationMessage, RegressionMessage]


# ---------------------------------------------------------------------------
# Dataset payloads
# ---------------------------------------------------------------------------

class DatasetProperties(msgspec.Struct):
    session_id: str
    session_timestamp: int
    # -1 when the profile has no data timestamp.
    data_timestamp: int
    tags: Dict[str, str]
    metadata: Dict[str, str]
    schema_major_version: int
    schema_minor_version: int


class DatasetProfileMessage(msgspec.Struct):
    """Self-contained, non-chunked profile."""
    properties: DatasetProperties
    columns: Dict[str, bytes] = msgspec.field(default_factory=dict)
    model_metrics: Optional[ModelMetricsMessage] = None


class DatasetMetadataSegment(msgspec.Struct, tag="metadata"):
    marker: str
    properties: DatasetProperties
    model_metrics: Optional[ModelMetricsMessage] = None


class ColumnsChunkSegment(msgspec.Struct, tag="columns"):
    marker: str
    columns: Dict[str, bytes] = msgspec.field(default_factory=dict)


MessageSegment = Union[DatasetMetadataSegment, ColumnsChunkSegment]


# ---------------------------------------------------------------------------
# Version probes: only the fields needed to check the schema version
# ---------------------------------------------------------------------------

class _VersionFields(msgspec.Struct):
    schema_major_version: int = -1
    schema_minor_version: int = -1


class _ProfileProbe(msgspec.Struct):
    properties: _VersionFields


class _MetadataProbe(msgspec.Struct, tag="metadata"):
    properties: _VersionFields


class _ColumnsProbe(msgspec.Struct, tag="columns"):
    pass


# ---------------------------------------------------------------------------
# Codecs
# ---------------------------------------------------------------------------

_encoder = msgspec.msgpack.Encoder()
_column_decoder = msgspec.msgpack.Decoder(ColumnMessage)
_profile_decoder = msgspec.msgpack.Decoder(DatasetProfileMessage)
_segment_decoder = msgspec.msgpack.Decoder(MessageSegment)
_profile_probe = msgspec.msgpack.Decoder(_ProfileProbe)
_segment_probe = msgspec.msgpack.Decoder(Union[_MetadataProbe, _ColumnsProbe])


def encode(message: msgspec.Struct) -> bytes:
    return _encoder.encode(message)


def _decode(decoder: msgspec.msgpack.Decoder, payload: bytes, what: str):
    try:
        return decoder.decode(payload)
    except msgspec.DecodeError as exc:
        raise CorruptFrameError(f"Could not decode {what}: {exc}") from exc


def decode_column(payload: bytes) -> ColumnMessage:
    return _decode(_column_decoder, payload, "column message")


def decode_profile(payload: bytes) -> DatasetProfileMessage:
    probe = _decode(_profile_probe, payload, "profile message")
    validate_schema(
        probe.properties.schema_major_version,
        probe.properties.schema_minor_version,
    )
    return _decode(_profile_decoder, payload, "profile message")


def decode_segment(payload: bytes) -> MessageSegment:
    probe = _decode(_segment_probe, payload, "message segment")
    if isinstance(probe, _MetadataProbe):
        validate_schema(
            probe.properties.schema_major_version,
            probe.properties.schema_minor_version,
        )
    return _decode(_segment_decoder, payload, "message segment")
