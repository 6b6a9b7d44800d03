"""Regression metrics: mergeable error sums."""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any, Dict

from mlprofile.errors import MissingFieldError
from mlprofile.wire.messages import RegressionMessage


class RegressionMetrics:
    """
    Running error sums between a prediction field and a target field.

    Only sums are stored, so merge is exact addition.
    """

    def __init__(self, prediction_field: str, target_field: str) -> None:
        self.prediction_field = prediction_field
        self.target_field = target_field
        self.count = 0
        self.sum_diff = 0.0
        self.sum_abs_diff = 0.0
        self.sum2_diff = 0.0

    def track(self, record: Mapping[str, Any]) -> None:
        for name in (self.prediction_field, self.target_field):
            if name not in record:
                raise MissingFieldError(name, record.keys())

        prediction = record[self.prediction_field]
        target = record[self.target_field]
        if prediction is None or target is None:
            return
        diff = float(target) - float(prediction)
        self.count += 1
        self.sum_diff += diff
        self.sum_abs_diff += abs(diff)
        self.sum2_diff += diff * diff

    def merge(self, other: RegressionMetrics) -> RegressionMetrics:
        result = RegressionMetrics(self.prediction_field, self.target_field)
        result.count = self.count + other.count
        result.sum_diff = self.sum_diff + other.sum_diff
        result.sum_abs_diff = self.sum_abs_diff + other.sum_abs_diff
        result.sum2_diff = self.sum2_diff + other.sum2_diff
        return result

    def copy(self) -> RegressionMetrics:
        return RegressionMetrics(self.prediction_field, self.target_field).merge(self)

    def to_summary(self) -> Dict[str, Any]:
        n = self.count
        mse = self.sum2_diff / n if n else float("nan")
        return {
            "prediction_field": self.prediction_field,
            "target_field": self.target_field,
            "count": n,
            "mean_error": self.sum_diff / n if n else float("nan"),
            "mean_absolute_error": self.sum_abs_diff / n if n else float("nan"),
            "mean_squared_error": mse,
            "root_mean_squared_error": math.sqrt(mse) if n else float("nan"),
        }

    def to_message(self) -> RegressionMessage:
        return RegressionMessage(
            prediction_field=self.prediction_field,
            target_field=self.target_field,
            count=self.count,
            sum_diff=self.sum_diff,
            sum_abs_diff=self.sum_abs_diff,
            sum2_diff=self.sum2_diff,
        )

    @classmethod
    def from_message(cls, msg: RegressionMessage) -> RegressionMetrics:
        result = cls(msg.prediction_field, msg.target_field)
        result.count = msg.count
        result.sum_diff = msg.sum_diff
        result.sum_abs_diff = msg.sum_abs_diff
        result.sum2_diff = msg.sum2_diff
        return result
