"""
DatasetProfile — a mergeable statistical profile of a dataset or partition.

A profile owns a column store (name → ColumnProfile), grouping identity
(session id, timestamps, tags), free-form metadata, and optionally a
ModelMetrics block.

Merge algebra
-------------
- A profile with no columns is the identity for merge: merging it with a
  profile that has columns returns that other profile unchanged, without
  any validation.
- merge() also treats the zero accumulator (no columns, no data timestamp,
  tags, metadata or model metrics) as its identity against any profile,
  including a column-less one that only carries grouping tags.
- merge_strict() requires equal session id, session timestamp, data
  timestamp and tags.
- merge() keeps only the tags equal on both sides and takes the session id
  and both timestamps from the left operand.  It does not compare
  timestamps: callers must only merge profiles of the same logical group
  this way.
- Both merges keep only metadata entries equal on both sides, union the
  columns (pairwise accumulator merge) and merge model metrics.

Shared storage
--------------
with_classification_model() / with_regression_model() return a new profile
backed by the SAME column store.  After the call, track through the new
profile only; the source profile must be treated as read-only.
"""

from __future__ import annotations

import datetime
import io
import logging
import uuid
from collections.abc import Iterable, Mapping
from typing import Any, BinaryIO, Callable, Dict, Iterator, Optional, Union

from mlprofile.core.column import ColumnProfile, ColumnStore
from mlprofile.core.schema import SCHEMA_MAJOR_VERSION, SCHEMA_MINOR_VERSION
from mlprofile.core.types import (
    DatasetSummary,
    from_epoch_millis,
    to_epoch_millis,
    to_utc,
)
from mlprofile.errors import (
    CorruptFrameError,
    InconsistentGroupingError,
    InconsistentTagsError,
    InconsistentTimestampError,
    StructuralIntegrityError,
)
from mlprofile.metrics.model import ModelMetrics
from mlprofile.wire.chunks import DEFAULT_MAX_CHUNK_BYTES, iter_column_chunks
from mlprofile.wire.framing import frame, read_frame, write_frame
from mlprofile.wire.messages import (
    DatasetMetadataSegment,
    DatasetProfileMessage,
    DatasetProperties,
    MessageSegment,
    decode_profile,
    encode,
)

logger = logging.getLogger(__name__)

# Wire value for an absent data timestamp.
NO_DATA_TIMESTAMP = -1


def _new_id() -> str:
    return str(uuid.uuid4())


def _shared_items(left: Mapping[str, str], right: Mapping[str, str]) -> Dict[str, str]:
    """Entries of *left* whose key maps to an equal value in *right*."""
    return {k: v for k, v in left.items() if k in right and right[k] == v}


class DatasetProfile:
    """
    Mergeable profile of a dataset.

    Parameters
    ----------
    session_id : str
        Identity of the profile, e.g. the dataset name.  Must be non-empty.
    session_timestamp : datetime
        When the profiling run started.  Stored as UTC, millisecond precision.
    data_timestamp : datetime or None
        Logical time bucket of the data; None means unscoped.
    tags : mapping of str to str
        Grouping identity.
    columns : mapping of column name to accumulator, or a ColumnStore
        Initial columns.  The accumulators are adopted, not copied; a
        ColumnStore is shared as-is.
    metadata : mapping of str to str
        Auxiliary annotations that do not take part in grouping.
    model_metrics : ModelMetrics or None
    """

    def __init__(
        self,
        session_id: str,
        session_timestamp: datetime.datetime,
        data_timestamp: Optional[datetime.datetime] = None,
        tags: Optional[Mapping[str, str]] = None,
        columns: Union[Mapping[str, Any], ColumnStore, None] = None,
        metadata: Optional[Mapping[str, str]] = None,
        model_metrics: Optional[ModelMetrics] = None,
    ) -> None:
        self._session_id = session_id
        self._session_timestamp = (
            to_utc(session_timestamp) if session_timestamp is not None else None
        )
        self._data_timestamp = (
            to_utc(data_timestamp) if data_timestamp is not None else None
        )
        self._tags: Dict[str, str] = dict(sorted((tags or {}).items()))
        self._metadata: Dict[str, str] = dict(metadata or {})
        if isinstance(columns, ColumnStore):
            self._store = columns
        else:
            self._store = ColumnStore(columns)
        self._model_metrics = model_metrics
        self._validate()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def session_timestamp(self) -> datetime.datetime:
        return self._session_timestamp

    @property
    def data_timestamp(self) -> Optional[datetime.datetime]:
        return self._data_timestamp

    @property
    def tags(self) -> Dict[str, str]:
        return dict(self._tags)

    @property
    def metadata(self) -> Dict[str, str]:
        return dict(self._metadata)

    @property
    def columns(self) -> Dict[str, Any]:
        """Snapshot of the column map.  The accumulators are live objects."""
        return self._store.snapshot()

    @property
    def model_metrics(self) -> Optional[ModelMetrics]:
        return self._model_metrics

    def is_empty(self) -> bool:
        """True for the merge identity: no data timestamp and no columns."""
        return self._data_timestamp is None and len(self._store) == 0

    def _validate(self) -> None:
        if not isinstance(self._session_id, str) or not self._session_id:
            raise StructuralIntegrityError("session_id must be a non-empty string")
        if self._session_timestamp is None:
            raise StructuralIntegrityError("session_timestamp is required")
        if self._store is None:
            raise StructuralIntegrityError("columns are required")
        if self._tags is None:
            raise StructuralIntegrityError("tags are required")
        if self._metadata is None:
            raise StructuralIntegrityError("metadata is required")

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def with_metadata(self, key: str, value: str) -> DatasetProfile:
        self._metadata[key] = value
        return self

    def with_all_metadata(self, metadata: Mapping[str, str]) -> DatasetProfile:
        self._metadata.update(metadata)
        return self

    # ------------------------------------------------------------------
    # Model tracking
    # ------------------------------------------------------------------

    def with_classification_model(
        self,
        prediction_field: str,
        target_field: str,
        score_field: Optional[str] = None,
        additional_output_fields: Optional[Iterable[str]] = None,
    ) -> DatasetProfile:
        """
        Return a profile sharing this profile's columns with classification
        tracking attached.  Track through the returned profile only.

        *additional_output_fields* names extra model outputs to record
        alongside the prediction and score fields.
        """
        model = ModelMetrics.classification(
            prediction_field, target_field, score_field, additional_output_fields,
        )
        return self._with_model(model)

    def with_regression_model(
        self,
        prediction_field: str,
        target_field: str,
        additional_output_fields: Optional[Iterable[str]] = None,
    ) -> DatasetProfile:
        """
        Return a profile sharing this profile's columns with regression
        tracking attached.  Track through the returned profile only.
        """
        model = ModelMetrics.regression(prediction_field, target_field, additional_output_fields)
        return self._with_model(model)

    def _with_model(self, model: ModelMetrics) -> DatasetProfile:
        return DatasetProfile(
            self._session_id,
            self._session_timestamp,
            self._data_timestamp,
            tags=self._tags,
            columns=self._store,
            metadata=self._metadata,
            model_metrics=model,
        )

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    def track(self, column_name: str, value: Any) -> None:
        """Feed *value* to the accumulator for *column_name*, creating it if needed."""
        self._store.get_or_create(column_name).track(value)

    def track_record(self, record: Mapping[str, Any]) -> None:
        """
        Track every entry of *record*, then hand the whole record to the
        model metrics if configured.

        Raises
        ------
        MissingFieldError
            If model metrics are configured and a declared field is absent.
        """
        for name, value in record.items():
            self.track(name, value)
        if self._model_metrics is not None:
            self._model_metrics.track(record)

    def track_dataframe(self, df: Any) -> None:
        """Track every row of a pandas, polars or pyarrow frame as a record."""
        # Lazy import: adapters pull in optional backends.
        from mlprofile.adapters import iter_records

        for record in iter_records(df):
            self.track_record(record)

    # ------------------------------------------------------------------
    # Merge
    # ------------------------------------------------------------------

    def _is_merge_identity(self) -> bool:
        """Empty, untagged, unannotated and without model metrics: the zero accumulator."""
        return (
            self.is_empty()
            and not self._tags
            and not self._metadata
            and self._model_metrics is None
        )

    def _identity_operand(self, other: DatasetProfile) -> Optional[DatasetProfile]:
        """Return the operand that a column-less side leaves unchanged, if any."""
        if len(self._store) == 0 and len(other._store) > 0:
            return other
        if len(other._store) == 0 and len(self._store) > 0:
            return self
        return None

    def merge_strict(self, other: DatasetProfile) -> DatasetProfile:
        """
        Merge profiles that must belong to the same group.

        Raises
        ------
        InconsistentGroupingError
            If session ids, session timestamps, data timestamps or tags differ.
        """
        shortcut = self._identity_operand(other)
        if shortcut is not None:
            return shortcut

        if self._session_id != other._session_id:
            raise InconsistentGroupingError("session id", self._session_id, other._session_id)
        if self._session_timestamp != other._session_timestamp:
            raise InconsistentTimestampError(
                "session timestamp", self._session_timestamp, other._session_timestamp,
            )
        if self._data_timestamp != other._data_timestamp:
            raise InconsistentTimestampError(
                "data timestamp", self._data_timestamp, other._data_timestamp,
            )
        if self._tags != other._tags:
            raise InconsistentTagsError("tags", self._tags, other._tags)

        return self._do_merge(other, self._tags)

    def merge(self, other: DatasetProfile) -> DatasetProfile:
        """
        Merge keeping only shared tags; identity and timestamps come from *self*.

        Timestamps are not compared.  The caller guarantees both sides
        describe the same logical group.
        """
        if other._is_merge_identity():
            return self
        if self._is_merge_identity():
            return other
        shortcut = self._identity_operand(other)
        if shortcut is not None:
            return shortcut
        return self._do_merge(other, _shared_items(self._tags, other._tags))

    def _do_merge(self, other: DatasetProfile, tags: Mapping[str, str]) -> DatasetProfile:
        self._validate()
        other._validate()

        mine = self._store.snapshot()
        theirs = other._store.snapshot()
        merged: Dict[str, Any] = {}
        for name in mine.keys() | theirs.keys():
            left = mine.get(name)
            right = theirs.get(name)
            if left is None:
                left = ColumnProfile(name)
            if right is None:
                right = ColumnProfile(name)
            merged[name] = left.merge(right)

        if self._model_metrics is not None:
            model = self._model_metrics.merge(other._model_metrics)
        elif other._model_metrics is not None:
            model = other._model_metrics.copy()
        else:
            model = None

        return DatasetProfile(
            self._session_id,
            self._session_timestamp,
            self._data_timestamp,
            tags=tags,
            columns=merged,
            metadata=_shared_items(self._metadata, other._metadata),
            model_metrics=model,
        )

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def to_summary(self) -> DatasetSummary:
        self._validate()
        columns = self._store.snapshot()
        return DatasetSummary(
            session_id=self._session_id,
            session_timestamp=self._session_timestamp,
            data_timestamp=self._data_timestamp,
            tags=dict(self._tags),
            metadata=dict(self._metadata),
            columns={name: col.to_summary() for name, col in columns.items()},
            model=(
                self._model_metrics.to_summary()
                if self._model_metrics is not None else None
            ),
        )

    # ------------------------------------------------------------------
    # Wire form
    # ------------------------------------------------------------------

    def to_properties(self) -> DatasetProperties:
        data_ts = (
            NO_DATA_TIMESTAMP if self._data_timestamp is None
            else to_epoch_millis(self._data_timestamp)
        )
        return DatasetProperties(
            session_id=self._session_id,
            session_timestamp=to_epoch_millis(self._session_timestamp),
            data_timestamp=data_ts,
            tags=dict(self._tags),
            metadata=dict(self._metadata),
            schema_major_version=SCHEMA_MAJOR_VERSION,
            schema_minor_version=SCHEMA_MINOR_VERSION,
        )

    def to_message(self) -> DatasetProfileMessage:
        self._validate()
        columns = self._store.snapshot()
        return DatasetProfileMessage(
            properties=self.to_properties(),
            columns={name: col.to_wire() for name, col in columns.items()},
            model_metrics=(
                self._model_metrics.to_message()
                if self._model_metrics is not None else None
            ),
        )

    def to_bytes(self) -> bytes:
        """Serialize to one length-delimited, non-chunked frame."""
        return frame(encode(self.to_message()))

    def write_to(self, sink: BinaryIO) -> int:
        """Write one non-chunked frame to *sink*; return bytes written."""
        return write_frame(sink, encode(self.to_message()))

    def to_segments(
        self,
        id_factory: Callable[[], str] = _new_id,
        max_chunk_bytes: int = DEFAULT_MAX_CHUNK_BYTES,
    ) -> Iterator[MessageSegment]:
        """
        Yield the streaming form: one metadata segment, then column chunks.

        Every segment carries the marker ``session_id + id_factory()``.
        Columns are serialized lazily as the chunks are consumed.
        """
        self._validate()
        marker = self._session_id + id_factory()
        model = self._model_metrics
        yield DatasetMetadataSegment(
            marker=marker,
            properties=self.to_properties(),
            model_metrics=model.to_message() if model is not None else None,
        )
        columns = self._store.snapshot()
        serialized = ((name, col.to_wire()) for name, col in columns.items())
        yield from iter_column_chunks(serialized, marker, max_chunk_bytes)

    @classmethod
    def from_properties(
        cls,
        props: DatasetProperties,
        columns: Optional[Mapping[str, Any]] = None,
        model_metrics: Optional[ModelMetrics] = None,
    ) -> DatasetProfile:
        data_ts = (
            None if props.data_timestamp < 0
            else from_epoch_millis(props.data_timestamp)
        )
        try:
            return cls(
                props.session_id,
                from_epoch_millis(props.session_timestamp),
                data_ts,
                tags=props.tags,
                columns=columns,
                metadata=props.metadata,
                model_metrics=model_metrics,
            )
        except StructuralIntegrityError as exc:
            raise CorruptFrameError(f"Invalid profile properties: {exc}") from exc

    @classmethod
    def from_message(cls, msg: DatasetProfileMessage) -> DatasetProfile:
        columns = {
            name: ColumnProfile.from_wire(payload)
            for name, payload in msg.columns.items()
        }
        return cls.from_properties(
            msg.properties, columns, ModelMetrics.from_message(msg.model_metrics),
        )

    @classmethod
    def parse(cls, source: BinaryIO) -> DatasetProfile:
        """
        Read one non-chunked profile frame from *source*.

        Raises
        ------
        SchemaVersionError
            If the payload's major schema version is unsupported.
        CorruptFrameError
            If the stream is empty, truncated, or the payload is undecodable.
        """
        payload = read_frame(source)
        if payload is None:
            raise CorruptFrameError("No profile frame in stream")
        return cls.from_message(decode_profile(payload))

    @classmethod
    def from_bytes(cls, data: bytes) -> DatasetProfile:
        return cls.parse(io.BytesIO(data))

    # ------------------------------------------------------------------
    # Pickle through the wire form
    # ------------------------------------------------------------------

    def __reduce__(self) -> Any:
        return (_restore, (self.to_bytes(),))

    def __repr__(self) -> str:
        return (
            f"DatasetProfile(session_id={self._session_id!r}, "
            f"session_timestamp={self._session_timestamp.isoformat()!r}, "
            f"data_timestamp="
            f"{self._data_timestamp.isoformat() if self._data_timestamp else None!r}, "
            f"tags={self._tags!r}, columns={len(self._store)})"
        )


def _restore(data: bytes) -> DatasetProfile:
    return DatasetProfile.from_bytes(data)
