"""
Column accumulators.

ColumnAccumulator is the boundary the dataset profile depends on: a
per-column, mergeable statistics structure.  It is a typing.Protocol so
other sketch implementations can be dropped in without inheriting from a
common base.  ColumnProfile is the implementation shipped with mlprofile:
exact counters, numeric moments, and a bounded frequency table.

Bounded frequency table
-----------------------
Non-numeric values are counted exactly until the table holds more than
2 * max_items distinct keys.  It is then pruned to the max_items most
frequent keys and the pruned occurrences are added to a dropped count.
A datasketch HyperLogLog takes over the distinct count at the first
prune; it is seeded from the table, which is still complete at that
point.  A column that never prunes carries no sketch and reports an exact
n_unique.  Keys longer than MAX_KEY_LENGTH characters are truncated.

ColumnStore is the column map owned by a DatasetProfile.  It is the only
piece here that is thread-safe: get-or-create of a column name is guarded
by a lock so concurrent first observations produce exactly one
accumulator.  Accumulators themselves are not thread-safe; one logical
owner mutates each column.
"""

from __future__ import annotations

import math
import threading
from collections import Counter
from typing import Any, Callable, Iterator, Protocol, runtime_checkable

import numpy as np
from datasketch import HyperLogLog

from mlprofile.core.types import CategoricalStats, ColumnStats, NumericStats
from mlprofile.errors import CorruptFrameError
from mlprofile.wire.messages import ColumnMessage, decode_column, encode

# Inferred value types, in tie-break order.
INTEGRAL = "integral"
FRACTIONAL = "fractional"
BOOLEAN = "boolean"
STRING = "string"
UNKNOWN = "unknown"
NULL = "null"

_TYPE_ORDER = (INTEGRAL, FRACTIONAL, BOOLEAN, STRING, UNKNOWN)

DEFAULT_TOP_K = 10
DEFAULT_MAX_ITEMS = 128
MAX_KEY_LENGTH = 256
# 4096 registers, ~1.6% standard error.
HLL_PRECISION = 12


@runtime_checkable
class ColumnAccumulator(Protocol):
    """
    Protocol that every column accumulator must satisfy.

    merge() must be commutative and associative and must not mutate either
    operand.
    """

    name: str

    @property
    def count(self) -> int:
        """Number of values tracked, nulls included."""
        ...

    def track(self, value: Any) -> None:
        ...

    def merge(self, other: Any) -> Any:
        ...

    def to_summary(self) -> ColumnStats:
        ...

    def to_wire(self) -> bytes:
        ...

    @classmethod
    def from_wire(cls, payload: bytes) -> Any:
        ...


def _classify(value: Any) -> str:
    if value is None:
        return NULL
    # bool first: it is an int subclass.
    if isinstance(value, (bool, np.bool_)):
        return BOOLEAN
    if isinstance(value, (int, np.integer)):
        return INTEGRAL
    if isinstance(value, (float, np.floating)):
        return NULL if math.isnan(value) else FRACTIONAL
    if isinstance(value, str):
        return STRING
    return UNKNOWN


class ColumnProfile:
    """
    Mergeable statistics for a single column.

    Parameters
    ----------
    name : str
        Column name.
    top_k : int
        Number of most frequent values reported by to_summary().
    max_items : int
        Number of distinct non-numeric values kept after the frequency
        table is pruned.
    """

    def __init__(
        self, name: str, top_k: int = DEFAULT_TOP_K, max_items: int = DEFAULT_MAX_ITEMS,
    ) -> None:
        if max_items < top_k:
            raise ValueError("max_items must be >= top_k")
        self.name = name
        self.top_k = top_k
        self.max_items = max_items
        self._count = 0
        self._null_count = 0
        self._type_counts: Counter[str] = Counter()
        # Numeric moments (Chan et al. parallel variance).
        self._n = 0
        self._mean = 0.0
        self._m2 = 0.0
        self._min: float | None = None
        self._max: float | None = None
        self._frequent: Counter[str] = Counter()
        self._dropped = 0
        self._distinct: HyperLogLog | None = None

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    @property
    def count(self) -> int:
        return self._count

    @property
    def null_count(self) -> int:
        return self._null_count

    def track(self, value: Any) -> None:
        kind = _classify(value)
        self._count += 1
        if kind == NULL:
            self._null_count += 1
            return

        self._type_counts[kind] += 1
        if kind in (INTEGRAL, FRACTIONAL):
            self._track_number(float(value))
        else:
            self._track_item(str(value))

    def _track_number(self, x: float) -> None:
        self._n += 1
        delta = x - self._mean
        self._mean += delta / self._n
        self._m2 += delta * (x - self._mean)
        self._min = x if self._min is None else min(self._min, x)
        self._max = x if self._max is None else max(self._max, x)

    def _track_item(self, key: str) -> None:
        key = key[:MAX_KEY_LENGTH]
        if self._distinct is not None:
            self._distinct.update(key.encode("utf-8"))
        self._frequent[key] += 1
        if len(self._frequent) > 2 * self.max_items:
            self._prune()

    def _sketch(self) -> HyperLogLog:
        """Return a copy of the distinct-count sketch, seeding it from the table if absent."""
        if self._distinct is not None:
            return HyperLogLog(reg=self._distinct.reg.copy())
        hll = HyperLogLog(p=HLL_PRECISION)
        for key in self._frequent:
            hll.update(key.encode("utf-8"))
        return hll

    def _prune(self) -> None:
        if self._distinct is None:
            self._distinct = self._sketch()
        ranked = sorted(self._frequent.items(), key=lambda kv: (-kv[1], kv[0]))
        self._dropped += sum(c for _, c in ranked[self.max_items:])
        self._frequent = Counter(dict(ranked[: self.max_items]))

    @property
    def n_unique(self) -> int:
        """Distinct non-numeric values; exact until the table is first pruned."""
        if self._distinct is None:
            return len(self._frequent)
        return int(round(self._distinct.count()))

    # ------------------------------------------------------------------
    # Merge
    # ------------------------------------------------------------------

    def merge(self, other: ColumnProfile) -> ColumnProfile:
        """Return a new ColumnProfile combining *self* and *other*."""
        result = ColumnProfile(self.name, top_k=self.top_k, max_items=self.max_items)
        result._count = self._count + other._count
        result._null_count = self._null_count + other._null_count
        result._type_counts = self._type_counts + other._type_counts
        result._frequent = self._frequent + other._frequent
        result._dropped = self._dropped + other._dropped
        if self._distinct is not None or other._distinct is not None:
            sketch = self._sketch()
            sketch.merge(other._sketch())
            result._distinct = sketch
        if len(result._frequent) > 2 * result.max_items:
            result._prune()

        n = self._n + other._n
        if n:
            delta = other._mean - self._mean
            result._n = n
            result._mean = self._mean + delta * other._n / n
            result._m2 = self._m2 + other._m2 + delta * delta * self._n * other._n / n
        result._min = _pick(min, self._min, other._min)
        result._max = _pick(max, self._max, other._max)
        return result

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def inferred_type(self) -> str:
        if not self._type_counts:
            return NULL if self._count else UNKNOWN
        return max(
            _TYPE_ORDER,
            key=lambda t: (self._type_counts.get(t, 0), -_TYPE_ORDER.index(t)),
        )

    def to_summary(self) -> ColumnStats:
        non_numeric = self._count - self._null_count - self._n
        type_counts = dict(self._type_counts)
        if self._n and self._n >= non_numeric:
            std = math.sqrt(self._m2 / (self._n - 1)) if self._n > 1 else float("nan")
            stats = NumericStats(
                count=self._count,
                null_count=self._null_count,
                mean=self._mean,
                std=std,
                min=self._min if self._min is not None else float("nan"),
                max=self._max if self._max is not None else float("nan"),
            )
            return ColumnStats(self.name, self.inferred_type(), "numeric", stats, type_counts)

        top = sorted(self._frequent.items(), key=lambda kv: (-kv[1], kv[0]))[: self.top_k]
        stats = CategoricalStats(
            count=self._count,
            null_count=self._null_count,
            n_unique=self.n_unique,
            value_counts=dict(top),
        )
        return ColumnStats(self.name, self.inferred_type(), "categorical", stats, type_counts)

    # ------------------------------------------------------------------
    # Wire form
    # ------------------------------------------------------------------

    def to_message(self) -> ColumnMessage:
        return ColumnMessage(
            name=self.name,
            count=self._count,
            null_count=self._null_count,
            type_counts=dict(self._type_counts),
            numeric_count=self._n,
            mean=self._mean,
            m2=self._m2,
            min=self._min,
            max=self._max,
            frequent=dict(self._frequent),
            dropped=self._dropped,
            distinct=(
                self._distinct.reg.tobytes() if self._distinct is not None else None
            ),
        )

    @classmethod
    def from_message(cls, msg: ColumnMessage) -> ColumnProfile:
        col = cls(msg.name)
        col._count = msg.count
        col._null_count = msg.null_count
        col._type_counts = Counter(msg.type_counts)
        col._n = msg.numeric_count
        col._mean = msg.mean
        col._m2 = msg.m2
        col._min = msg.min
        col._max = msg.max
        col._frequent = Counter(msg.frequent)
        col._dropped = msg.dropped
        if msg.distinct is not None:
            reg = np.frombuffer(msg.distinct, dtype=np.int8).copy()
            try:
                col._distinct = HyperLogLog(reg=reg)
            except ValueError as exc:
                raise CorruptFrameError(
                    f"Column {msg.name!r} carries a malformed distinct-count sketch"
                ) from exc
        return col

    def to_wire(self) -> bytes:
        return encode(self.to_message())

    @classmethod
    def from_wire(cls, payload: bytes) -> ColumnProfile:
        return cls.from_message(decode_column(payload))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ColumnProfile):
            return NotImplemented
        return self.to_message() == other.to_message()

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"ColumnProfile(name={self.name!r}, count={self._count})"


def _pick(fn: Callable[[float, float], float], a: float | None, b: float | None) -> float | None:
    if a is None:
        return b
    if b is None:
        return a
    return fn(a, b)


class ColumnStore:
    """
    Column map with race-free get-or-create.

    A store may be shared by more than one DatasetProfile (see
    DatasetProfile.with_classification_model); only one of the sharing
    profiles should keep tracking into it.
    """

    def __init__(
        self,
        columns: dict[str, Any] | None = None,
        factory: Callable[[str], Any] = ColumnProfile,
    ) -> None:
        self._columns: dict[str, Any] = dict(columns) if columns else {}
        self._factory = factory
        self._lock = threading.Lock()

    def get_or_create(self, name: str) -> Any:
        col = self._columns.get(name)
        if col is None:
            with self._lock:
                col = self._columns.get(name)
                if col is None:
                    col = self._factory(name)
                    self._columns[name] = col
        return col

    def put(self, name: str, column: Any) -> None:
        with self._lock:
            self._columns[name] = column

    def get(self, name: str) -> Any:
        return self._columns.get(name)

    def snapshot(self) -> dict[str, Any]:
        """Return a shallow copy of the name → accumulator map."""
        with self._lock:
            return dict(self._columns)

    def names(self) -> list[str]:
        with self._lock:
            return list(self._columns)

    def __contains__(self, name: object) -> bool:
        return name in self._columns

    def __len__(self) -> int:
        return len(self._columns)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())
