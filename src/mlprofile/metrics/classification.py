"""
Classification metrics: a mergeable confusion matrix with score sums.

Labels are kept as strings so matrices from different partitions can be
aligned by label regardless of the original value types.  Rows are
predictions, columns are targets.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from mlprofile.errors import CorruptFrameError, MissingFieldError
from mlprofile.wire.messages import ClassificationMessage

DEFAULT_SCORE = 1.0


def _align(
    labels: List[str], counts: np.ndarray, scores: np.ndarray, union: List[str],
) -> Tuple[np.ndarray, np.ndarray]:
    """Re-index a square matrix pair onto the *union* label order."""
    n = len(union)
    out_counts = np.zeros((n, n), dtype=np.int64)
    out_scores = np.zeros((n, n), dtype=np.float64)
    if labels:
        idx = np.array([union.index(label) for label in labels])
        out_counts[np.ix_(idx, idx)] = counts
        out_scores[np.ix_(idx, idx)] = scores
    return out_counts, out_scores


class ClassificationMetrics:
    """
    Confusion matrix over predicted vs. target labels.

    Parameters
    ----------
    prediction_field : record field holding the predicted label
    target_field     : record field holding the ground-truth label
    score_field      : optional record field holding the prediction score;
                       every record scores 1.0 when omitted
    """

    def __init__(
        self,
        prediction_field: str,
        target_field: str,
        score_field: Optional[str] = None,
    ) -> None:
        self.prediction_field = prediction_field
        self.target_field = target_field
        self.score_field = score_field
        self.labels: List[str] = []
        self.counts = np.zeros((0, 0), dtype=np.int64)
        self.score_sums = np.zeros((0, 0), dtype=np.float64)

    @property
    def total(self) -> int:
        return int(self.counts.sum())

    def _add_labels(self, *labels: str) -> None:
        new = set(labels) - set(self.labels)
        if not new:
            return
        union = sorted(set(self.labels) | new)
        self.counts, self.score_sums = _align(
            self.labels, self.counts, self.score_sums, union,
        )
        self.labels = union

    def track(self, record: Mapping[str, Any]) -> None:
        """
        Fold one record into the matrix.

        Records whose prediction or target value is None are skipped.

        Raises
        ------
        MissingFieldError
            If a declared field is absent from *record*.
        """
        for name in (self.prediction_field, self.target_field, self.score_field):
            if name is not None and name not in record:
                raise MissingFieldError(name, record.keys())

        prediction = record[self.prediction_field]
        target = record[self.target_field]
        if prediction is None or target is None:
            return
        score = DEFAULT_SCORE
        if self.score_field is not None and record[self.score_field] is not None:
            score = float(record[self.score_field])

        prediction, target = str(prediction), str(target)
        self._add_labels(prediction, target)
        row = self.labels.index(prediction)
        col = self.labels.index(target)
        self.counts[row, col] += 1
        self.score_sums[row, col] += score

    def merge(self, other: ClassificationMetrics) -> ClassificationMetrics:
        """Return a new matrix with the union of labels and summed cells."""
        result = ClassificationMetrics(
            self.prediction_field, self.target_field, self.score_field,
        )
        union = sorted(set(self.labels) | set(other.labels))
        a_counts, a_scores = _align(self.labels, self.counts, self.score_sums, union)
        b_counts, b_scores = _align(other.labels, other.counts, other.score_sums, union)
        result.labels = union
        result.counts = a_counts + b_counts
        result.score_sums = a_scores + b_scores
        return result

    def copy(self) -> ClassificationMetrics:
        result = ClassificationMetrics(
            self.prediction_field, self.target_field, self.score_field,
        )
        result.labels = list(self.labels)
        result.counts = self.counts.copy()
        result.score_sums = self.score_sums.copy()
        return result

    def to_summary(self) -> Dict[str, Any]:
        total = self.total
        correct = int(np.trace(self.counts)) if total else 0
        return {
            "prediction_field": self.prediction_field,
            "target_field": self.target_field,
            "score_field": self.score_field,
            "labels": list(self.labels),
            "counts": self.counts.tolist(),
            "score_sums": self.score_sums.tolist(),
            "total": total,
            "accuracy": correct / total if total else float("nan"),
        }

    def to_message(self) -> ClassificationMessage:
        return ClassificationMessage(
            prediction_field=self.prediction_field,
            target_field=self.target_field,
            score_field=self.score_field,
            labels=list(self.labels),
            counts=self.counts.tolist(),
            score_sums=self.score_sums.tolist(),
        )

    @classmethod
    def from_message(cls, msg: ClassificationMessage) -> ClassificationMetrics:
        result = cls(msg.prediction_field, msg.target_field, msg.score_field)
        n = len(msg.labels)
        counts = np.array(msg.counts, dtype=np.int64)
        score_sums = np.array(msg.score_sums, dtype=np.float64)
        if counts.size != n * n or score_sums.size != n * n:
            raise CorruptFrameError(
                f"Confusion matrix does not match {n} labels"
            )
        result.labels = list(msg.labels)
        result.counts = counts.reshape(n, n)
        result.score_sums = score_sums.reshape(n, n)
        return result
