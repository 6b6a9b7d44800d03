"""
ModelMetrics — the model-output block of a dataset profile.

A closed sum type: exactly one of ClassificationMetrics or
RegressionMetrics, identified by ModelType.  There is no "neither" and no
"both" state; build one with ModelMetrics.classification() or
ModelMetrics.regression().

Besides the prediction (and score) field, a model may declare additional
output fields.  They are recorded by name only, unioned on merge and
carried on the wire; no statistics are kept for them beyond their columns.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from typing import Any, Dict, Iterable, Optional, Tuple, Union

import msgspec

from mlprofile.errors import ModelTypeMismatchError
from mlprofile.metrics.classification import ClassificationMetrics
from mlprofile.metrics.regression import RegressionMetrics
from mlprofile.wire.messages import (
    ClassificationMessage,
    ModelMetricsMessage,
    RegressionMessage,
)


class ModelType(str, enum.Enum):
    # Values double as the wire tags of ModelMetricsMessage.
    CLASSIFICATION = "classification"
    REGRESSION = "regression"


ModelMetricsVariant = Union[ClassificationMetrics, RegressionMetrics]

_VARIANTS = {
    ClassificationMetrics: ModelType.CLASSIFICATION,
    RegressionMetrics: ModelType.REGRESSION,
}


class ModelMetrics:
    """
    Wraps one model-metrics variant and dispatches on its ModelType.

    Parameters
    ----------
    metrics : ClassificationMetrics or RegressionMetrics
    additional_output_fields : iterable of str, optional
        Extra model-output field names.
    """

    def __init__(
        self,
        metrics: ModelMetricsVariant,
        additional_output_fields: Optional[Iterable[str]] = None,
    ) -> None:
        model_type = _VARIANTS.get(type(metrics))
        if model_type is None:
            raise TypeError(f"Unsupported model metrics type {type(metrics).__name__!r}")
        self.model_type = model_type
        self.metrics = metrics
        self.additional_output_fields: Tuple[str, ...] = tuple(
            sorted(set(additional_output_fields or ()))
        )

    @classmethod
    def classification(
        cls,
        prediction_field: str,
        target_field: str,
        score_field: Optional[str] = None,
        additional_output_fields: Optional[Iterable[str]] = None,
    ) -> ModelMetrics:
        return cls(
            ClassificationMetrics(prediction_field, target_field, score_field),
            additional_output_fields,
        )

    @classmethod
    def regression(
        cls,
        prediction_field: str,
        target_field: str,
        additional_output_fields: Optional[Iterable[str]] = None,
    ) -> ModelMetrics:
        return cls(RegressionMetrics(prediction_field, target_field), additional_output_fields)

    # ------------------------------------------------------------------
    # Variant accessors
    # ------------------------------------------------------------------

    @property
    def classification_metrics(self) -> Optional[ClassificationMetrics]:
        if self.model_type is ModelType.CLASSIFICATION:
            return self.metrics  # type: ignore[return-value]
        return None

    @property
    def regression_metrics(self) -> Optional[RegressionMetrics]:
        if self.model_type is ModelType.REGRESSION:
            return self.metrics  # type: ignore[return-value]
        return None

    @property
    def prediction_field(self) -> str:
        return self.metrics.prediction_field

    @property
    def target_field(self) -> str:
        return self.metrics.target_field

    @property
    def score_field(self) -> Optional[str]:
        return getattr(self.metrics, "score_field", None)

    @property
    def output_fields(self) -> Tuple[str, ...]:
        """Prediction, score and additional output field names, sorted."""
        fields = {self.prediction_field, *self.additional_output_fields}
        if self.score_field is not None:
            fields.add(self.score_field)
        return tuple(sorted(fields))

    # ------------------------------------------------------------------
    # Tracking and merge
    # ------------------------------------------------------------------

    def track(self, record: Mapping[str, Any]) -> None:
        """Fold one record into the variant's accumulator."""
        self.metrics.track(record)

    def merge(self, other: Optional[ModelMetrics]) -> ModelMetrics:
        """
        Return a new ModelMetrics combining *self* and *other*.

        Merging with None yields an independent copy of *self*.

        Raises
        ------
        ModelTypeMismatchError
            If the two sides hold different variants.
        """
        if other is None:
            return self.copy()
        if self.model_type is not other.model_type:
            raise ModelTypeMismatchError(
                f"Mismatched model type: expected {self.model_type.value}, "
                f"got {other.model_type.value}"
            )
        return ModelMetrics(
            self.metrics.merge(other.metrics),  # type: ignore[arg-type]
            self.additional_output_fields + other.additional_output_fields,
        )

    def copy(self) -> ModelMetrics:
        return ModelMetrics(self.metrics.copy(), self.additional_output_fields)

    def to_summary(self) -> Dict[str, Any]:
        summary = self.metrics.to_summary()
        summary["model_type"] = self.model_type.value
        summary["output_fields"] = list(self.output_fields)
        return summary

    # ------------------------------------------------------------------
    # Wire form
    # ------------------------------------------------------------------

    def to_message(self) -> ModelMetricsMessage:
        return msgspec.structs.replace(
            self.metrics.to_message(),
            output_fields=list(self.additional_output_fields),
        )

    @classmethod
    def from_message(cls, msg: Optional[ModelMetricsMessage]) -> Optional[ModelMetrics]:
        if msg is None:
            return None
        if isinstance(msg, ClassificationMessage):
            return cls(ClassificationMetrics.from_message(msg), msg.output_fields)
        if isinstance(msg, RegressionMessage):
            return cls(RegressionMetrics.from_message(msg), msg.output_fields)
        raise TypeError(f"Unsupported model metrics message {type(msg).__name__!r}")

    def __repr__(self) -> str:
        return (
            f"ModelMetrics(model_type={self.model_type.value!r}, "
            f"prediction_field={self.prediction_field!r}, "
            f"target_field={self.target_field!r})"
        )
