"""
Tests for ModelMetrics and its classification / regression variants.
"""

from __future__ import annotations

import math

import numpy as np
import pytest

from mlprofile.errors import MissingFieldError, ModelTypeMismatchError
from mlprofile.metrics.classification import ClassificationMetrics
from mlprofile.metrics.model import ModelMetrics, ModelType
from mlprofile.metrics.regression import RegressionMetrics


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

class TestClassificationMetrics:

    def test_confusion_counts(self) -> None:
        m = ClassificationMetrics("pred", "target", "score")
        m.track({"pred": 1, "target": 1, "score": 0.9})
        m.track({"pred": 1, "target": 0, "score": 0.6})
        m.track({"pred": 0, "target": 0, "score": 0.2})
        assert m.labels == ["0", "1"]
        # rows: prediction, columns: target
        np.testing.assert_array_equal(m.counts, [[1, 0], [1, 1]])
        assert m.score_sums[1, 1] == pytest.approx(0.9)
        assert m.to_summary()["accuracy"] == pytest.approx(2 / 3)

    def test_new_label_sorting_before_existing_keeps_cells(self) -> None:
        m = ClassificationMetrics("pred", "target")
        m.track({"pred": "b", "target": "b"})
        m.track({"pred": "b", "target": "a"})
        assert m.labels == ["a", "b"]
        np.testing.assert_array_equal(m.counts, [[0, 0], [1, 1]])

    def test_default_score_is_one(self) -> None:
        m = ClassificationMetrics("pred", "target")
        m.track({"pred": "x", "target": "x"})
        assert m.score_sums[0, 0] == 1.0

    def test_missing_field(self) -> None:
        m = ClassificationMetrics("pred", "target", "score")
        with pytest.raises(MissingFieldError, match="score"):
            m.track({"pred": 1, "target": 1})

    def test_missing_field_is_key_error(self) -> None:
        m = ClassificationMetrics("pred", "target")
        with pytest.raises(KeyError):
            m.track({"pred": 1})

    def test_none_values_skipped(self) -> None:
        m = ClassificationMetrics("pred", "target")
        m.track({"pred": None, "target": 1})
        assert m.total == 0

    def test_merge_aligns_labels(self) -> None:
        a = ClassificationMetrics("pred", "target")
        a.track({"pred": "cat", "target": "cat"})
        b = ClassificationMetrics("pred", "target")
        b.track({"pred": "dog", "target": "cat"})
        b.track({"pred": "dog", "target": "dog"})
        merged = a.merge(b)
        assert merged.labels == ["cat", "dog"]
        np.testing.assert_array_equal(merged.counts, [[1, 0], [1, 1]])
        np.testing.assert_array_equal(b.merge(a).counts, merged.counts)

    def test_copy_is_independent(self) -> None:
        a = ClassificationMetrics("pred", "target")
        a.track({"pred": 1, "target": 1})
        c = a.copy()
        c.track({"pred": 1, "target": 1})
        assert a.total == 1
        assert c.total == 2

    def test_message_round_trip(self) -> None:
        a = ClassificationMetrics("pred", "target", "score")
        a.track({"pred": 1, "target": 0, "score": 0.25})
        b = ClassificationMetrics.from_message(a.to_message())
        assert (b.prediction_field, b.target_field, b.score_field) == ("pred", "target", "score")
        np.testing.assert_array_equal(a.counts, b.counts)
        np.testing.assert_allclose(a.score_sums, b.score_sums)


# ---------------------------------------------------------------------------
# Regression
# ---------------------------------------------------------------------------

class TestRegressionMetrics:

    def test_error_sums(self) -> None:
        m = RegressionMetrics("pred", "target")
        m.track({"pred": 1.0, "target": 2.0})
        m.track({"pred": 3.0, "target": 1.0})
        s = m.to_summary()
        assert s["count"] == 2
        assert s["mean_error"] == pytest.approx(-0.5)
        assert s["mean_absolute_error"] == pytest.approx(1.5)
        assert s["mean_squared_error"] == pytest.approx(2.5)
        assert s["root_mean_squared_error"] == pytest.approx(math.sqrt(2.5))

    def test_merge_adds(self) -> None:
        a = RegressionMetrics("pred", "target")
        a.track({"pred": 1.0, "target": 2.0})
        b = RegressionMetrics("pred", "target")
        b.track({"pred": 0.0, "target": 2.0})
        merged = a.merge(b)
        assert merged.count == 2
        assert merged.sum_abs_diff == pytest.approx(3.0)

    def test_empty_summary_is_nan(self) -> None:
        s = RegressionMetrics("pred", "target").to_summary()
        assert math.isnan(s["mean_absolute_error"])

    def test_missing_field(self) -> None:
        with pytest.raises(MissingFieldError, match="target"):
            RegressionMetrics("pred", "target").track({"pred": 1.0})


# ---------------------------------------------------------------------------
# Tagged union
# ---------------------------------------------------------------------------

class TestModelMetrics:

    def test_variant_accessors(self) -> None:
        c = ModelMetrics.classification("p", "t", "s")
        assert c.model_type is ModelType.CLASSIFICATION
        assert c.classification_metrics is not None
        assert c.regression_metrics is None
        assert c.score_field == "s"

        r = ModelMetrics.regression("p", "t")
        assert r.model_type is ModelType.REGRESSION
        assert r.regression_metrics is not None
        assert r.classification_metrics is None
        assert r.score_field is None

    def test_merge_with_none_copies(self) -> None:
        m = ModelMetrics.regression("p", "t")
        m.track({"p": 1.0, "t": 1.0})
        merged = m.merge(None)
        assert merged is not m
        assert merged.regression_metrics.count == 1

    def test_merge_mismatch(self) -> None:
        with pytest.raises(ModelTypeMismatchError, match="classification"):
            ModelMetrics.classification("p", "t").merge(ModelMetrics.regression("p", "t"))

    def test_mismatch_is_type_error(self) -> None:
        with pytest.raises(TypeError):
            ModelMetrics.regression("p", "t").merge(ModelMetrics.classification("p", "t"))

    def test_unsupported_variant(self) -> None:
        with pytest.raises(TypeError):
            ModelMetrics(object())  # type: ignore[arg-type]

    def test_message_round_trip(self) -> None:
        m = ModelMetrics.classification("p", "t")
        m.track({"p": "a", "t": "b"})
        back = ModelMetrics.from_message(m.to_message())
        assert back.model_type is ModelType.CLASSIFICATION
        assert back.classification_metrics.total == 1
        assert ModelMetrics.from_message(None) is None

    def test_additional_output_fields(self) -> None:
        m = ModelMetrics.classification("p", "t", "s", additional_output_fields=["logit", "rank"])
        assert m.additional_output_fields == ("logit", "rank")
        assert m.output_fields == ("logit", "p", "rank", "s")
        assert m.to_summary()["output_fields"] == ["logit", "p", "rank", "s"]

    def test_output_fields_union_on_merge(self) -> None:
        a = ModelMetrics.regression("p", "t", ["q50"])
        b = ModelMetrics.regression("p", "t", ["q90", "q50"])
        assert a.merge(b).additional_output_fields == ("q50", "q90")
        assert a.merge(None).additional_output_fields == ("q50",)

    def test_output_fields_round_trip(self) -> None:
        m = ModelMetrics.regression("p", "t", ["q90"])
        back = ModelMetrics.from_message(m.to_message())
        assert back.additional_output_fields == ("q90",)
        assert ModelMetrics.from_message(
            ModelMetrics.classification("p", "t").to_message()
        ).additional_output_fields == ()
