"""
Shared dataclasses and time helpers used across the mlprofile package.

Summary payloads here are plain, backend-agnostic values: accumulators
produce them, the reporting layer renders them.  No dataframe libraries are
imported in this module.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Any, Optional, Union

# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------

_EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)


def utc_now() -> datetime.datetime:
    """Return the current UTC time truncated to milliseconds."""
    return to_utc(datetime.datetime.now(datetime.timezone.utc))


def to_utc(value: datetime.datetime) -> datetime.datetime:
    """
    Normalise *value* to an aware UTC datetime with millisecond precision.

    Naive datetimes are taken to already be in UTC.  Precision is cut to
    milliseconds because that is what the wire format carries; keeping the
    in-memory value identical makes round-trips and strict merges exact.
    """
    # pandas.Timestamp carries nanoseconds that replace() would keep.
    if hasattr(value, "to_pydatetime"):
        value = value.to_pydatetime()
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    else:
        value = value.astimezone(datetime.timezone.utc)
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def to_epoch_millis(value: datetime.datetime) -> int:
    delta = to_utc(value) - _EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000


def from_epoch_millis(millis: int) -> datetime.datetime:
    return _EPOCH + datetime.timedelta(milliseconds=millis)


def format_iso_utc(value: datetime.datetime) -> str:
    """
    Format as ISO-8601 local date-time in UTC, e.g. ``2021-03-01T00:00:00``.

    A fractional second is printed without trailing zeros
    (``10:30:15.12``), the way java.time ISO_LOCAL_DATE_TIME prints it, so
    time-bucket tags match those written by the JVM engines.
    """
    local = to_utc(value).replace(tzinfo=None)
    text = local.isoformat(timespec="seconds")
    if local.microsecond:
        text += "." + f"{local.microsecond:06d}".rstrip("0")
    return text


# ---------------------------------------------------------------------------
# Per-column statistics
# ---------------------------------------------------------------------------

@dataclass
class NumericStats:
    """Descriptive statistics for a numeric column."""
    count: int
    null_count: int
    mean: float
    std: float
    min: float
    max: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "null_count": self.null_count,
            "mean": self.mean,
            "std": self.std,
            "min": self.min,
            "max": self.max,
        }


@dataclass
class CategoricalStats:
    """Frequency statistics for a categorical column."""
    count: int
    null_count: int
    n_unique: int
    # Most frequent labels only, most frequent first.
    value_counts: dict[str, int]

    def to_dict(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "null_count": self.null_count,
            "n_unique": self.n_unique,
            "value_counts": self.value_counts,
        }


# Keep Union[] notation for Python 3.9 runtime compatibility.
ColumnStatsPayload = Union[NumericStats, CategoricalStats]


@dataclass
class ColumnStats:
    """
    Wraps NumericStats or CategoricalStats with the column name and the
    inferred value type so callers don't need isinstance checks.
    """
    name: str
    inferred_type: str   # "integral", "fractional", "boolean", "string", "unknown", "null"
    kind: str            # "numeric" or "categorical"
    stats: ColumnStatsPayload
    type_counts: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "inferred_type": self.inferred_type,
            "kind": self.kind,
            "type_counts": self.type_counts,
            "stats": self.stats.to_dict(),
        }


# ---------------------------------------------------------------------------
# Dataset summary
# ---------------------------------------------------------------------------

@dataclass
class DatasetSummary:
    """
    Flat, read-only view of a profile.

    Attributes
    ----------
    session_id        : profile identity
    session_timestamp : UTC datetime the profiling run started
    data_timestamp    : UTC datetime bucket of the data, or None
    tags              : grouping identity
    metadata          : auxiliary annotations
    columns           : per-column statistics keyed by column name
    model             : model metrics summary, or None
    """
    session_id: str
    session_timestamp: datetime.datetime
    data_timestamp: Optional[datetime.datetime]
    tags: dict[str, str]
    metadata: dict[str, str]
    columns: dict[str, ColumnStats]
    model: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "session_timestamp": self.session_timestamp,
            "data_timestamp": self.data_timestamp,
            "tags": dict(self.tags),
            "metadata": dict(self.metadata),
            "columns": {k: v.to_dict() for k, v in self.columns.items()},
            "model": self.model,
        }

    def to_json(self, indent: int = 2) -> str:
        # Lazy import keeps core.types free of reporting dependencies.
        from mlprofile.reporting.formatters import JSONFormatter
        return JSONFormatter(sort_keys=True).format(self, indent=indent)
