"""
DatasetProfileAggregator — the zero / reduce / merge / finish contract a
distributed engine drives to build one profile per logical group.

The engine owns partitioning, scheduling and retries.  It must:

- route all records of one group (see group_key()) to the same
  accumulators,
- call reduce() sequentially on any one accumulator,
- combine partial accumulators with merge() in any order and association,
- call finish() once per group to get the serialized profile.

merge() is the lenient DatasetProfile.merge with the column-less identity
shortcut, so it is commutative and associative over accumulators of one
group.
"""

from __future__ import annotations

import datetime
import logging
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

from mlprofile.core.profile import DatasetProfile
from mlprofile.core.types import format_iso_utc, to_utc
from mlprofile.errors import (
    InconsistentTagsError,
    InconsistentTimestampError,
    MissingFieldError,
)

logger = logging.getLogger(__name__)

# Epoch session timestamp of the zero accumulator; replaced on promotion.
_ZERO_TIME = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ClassificationFields:
    """Record fields feeding classification metrics."""
    prediction: str
    target: str
    score: Optional[str] = None
    additional_outputs: Tuple[str, ...] = ()


@dataclass(frozen=True)
class RegressionFields:
    """Record fields feeding regression metrics."""
    prediction: str
    target: str
    additional_outputs: Tuple[str, ...] = ()


# Keep Union[] notation for Python 3.9 runtime compatibility.
ModelFields = Union[ClassificationFields, RegressionFields]


def _new_session_id() -> str:
    return str(uuid.uuid4())


@dataclass
class AggregatorConfig:
    """
    Configuration of a profile aggregation job.

    Attributes
    ----------
    dataset_name     : stamped as session id on finished profiles and as
                       the ``name_tag`` tag on every group
    session_time     : start time of the profiling run
    time_column      : optional record field holding the data timestamp
    group_by_columns : record fields whose values form the group key
    model            : optional classification or regression fields
    session_id       : provisional session id of the partial accumulators
    name_tag         : tag key carrying the dataset name
    """
    dataset_name: str
    session_time: datetime.datetime
    time_column: Optional[str] = None
    group_by_columns: Sequence[str] = ()
    model: Optional[ModelFields] = None
    session_id: str = field(default_factory=_new_session_id)
    name_tag: str = "Name"

    def __post_init__(self) -> None:
        if not self.dataset_name:
            raise ValueError("dataset_name must be non-empty")
        if not self.session_id:
            raise ValueError("session_id must be non-empty")
        self.group_by_columns = tuple(self.group_by_columns)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _coerce_timestamp(value: Any, column: str) -> datetime.datetime:
    """Turn a time-column value into an aware UTC datetime."""
    if isinstance(value, datetime.datetime):
        return to_utc(value)
    if isinstance(value, datetime.date):
        return to_utc(datetime.datetime(value.year, value.month, value.day))
    if isinstance(value, str):
        try:
            return to_utc(datetime.datetime.fromisoformat(value))
        except ValueError as exc:
            raise TypeError(
                f"Time column {column!r} holds an unparseable timestamp {value!r}"
            ) from exc
    raise TypeError(
        f"Time column {column!r} must hold datetime, date or ISO-8601 string "
        f"values, got {type(value).__name__}"
    )


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------

class DatasetProfileAggregator:
    """
    Fold/combine contract over DatasetProfile accumulators.

    Parameters
    ----------
    config : AggregatorConfig

    Examples
    --------
    >>> agg = DatasetProfileAggregator(AggregatorConfig("sales", now))
    >>> acc = agg.zero()
    >>> for record in records:
    ...     acc = agg.reduce(acc, record)
    >>> payload = agg.finish(acc)
    """

    def __init__(self, config: AggregatorConfig) -> None:
        self.config = config
        self._grouping = frozenset(config.group_by_columns) | (
            {config.time_column} if config.time_column else frozenset()
        )

    # ------------------------------------------------------------------
    # Grouping
    # ------------------------------------------------------------------

    def _field(self, record: Mapping[str, Any], name: str) -> Any:
        if name not in record:
            raise MissingFieldError(name, record.keys())
        return record[name]

    def data_timestamp(self, record: Mapping[str, Any]) -> Optional[datetime.datetime]:
        column = self.config.time_column
        if column is None:
            return None
        return _coerce_timestamp(self._field(record, column), column)

    def tags_for(
        self,
        record: Mapping[str, Any],
        timestamp: Optional[datetime.datetime] = None,
    ) -> Dict[str, str]:
        """
        Grouping tags of *record*: group-by values, time bucket, dataset name.

        Pass *timestamp* when data_timestamp(record) is already known.
        """
        tags: Dict[str, str] = {}
        for column in self.config.group_by_columns:
            value = self._field(record, column)
            tags[column] = "" if value is None else str(value)
        if timestamp is None:
            timestamp = self.data_timestamp(record)
        if timestamp is not None:
            tags[self.config.time_column] = format_iso_utc(timestamp)  # type: ignore[index]
        tags[self.config.name_tag] = self.config.dataset_name
        return tags

    def group_key(self, record: Mapping[str, Any]) -> Tuple[Tuple[str, str], ...]:
        """Hashable key identifying the group *record* belongs to."""
        return tuple(sorted(self.tags_for(record).items()))

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    def zero(self) -> DatasetProfile:
        """Return the empty accumulator (identity of merge)."""
        return DatasetProfile(self.config.session_id, _ZERO_TIME)

    def _promote(
        self, data_timestamp: Optional[datetime.datetime], tags: Dict[str, str],
    ) -> DatasetProfile:
        profile = DatasetProfile(
            self.config.session_id,
            self.config.session_time,
            data_timestamp,
            tags=tags,
        )
        model = self.config.model
        if isinstance(model, ClassificationFields):
            profile = profile.with_classification_model(
                model.prediction, model.target, model.score, model.additional_outputs,
            )
        elif isinstance(model, RegressionFields):
            profile = profile.with_regression_model(
                model.prediction, model.target, model.additional_outputs,
            )
        logger.debug("Started accumulator for group %s", tags)
        return profile

    def reduce(self, profile: DatasetProfile, record: Mapping[str, Any]) -> DatasetProfile:
        """
        Fold *record* into *profile*; return the (possibly new) accumulator.

        Raises
        ------
        InconsistentTimestampError
            If *record* belongs to a different time bucket than *profile*.
        InconsistentTagsError
            If *record* belongs to a different group than *profile*.
        MissingFieldError
            If a group-by, time or model field is absent from *record*.
        """
        timestamp = self.data_timestamp(record)
        tags = self.tags_for(record, timestamp)

        if profile.is_empty():
            profile = self._promote(timestamp, tags)
        elif timestamp is not None and timestamp != profile.data_timestamp:
            raise InconsistentTimestampError(
                "data timestamp", profile.data_timestamp, timestamp,
            )
        elif profile.tags != tags:
            raise InconsistentTagsError("grouping columns", profile.tags, tags)

        for name, value in record.items():
            if name not in self._grouping:
                profile.track(name, value)
        if profile.model_metrics is not None:
            profile.model_metrics.track(record)
        return profile

    def merge(self, left: DatasetProfile, right: DatasetProfile) -> DatasetProfile:
        """Combine two partial accumulators; either may be the zero."""
        return left.merge(right)

    def finish(self, profile: DatasetProfile) -> bytes:
        """Stamp the dataset name as session id and serialize (non-chunked)."""
        final = DatasetProfile(
            self.config.dataset_name,
            profile.session_timestamp,
            profile.data_timestamp,
            tags=profile.tags,
            columns=profile.columns,
            metadata=profile.metadata,
            model_metrics=profile.model_metrics,
        )
        return final.to_bytes()
