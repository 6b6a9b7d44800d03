"""
Tests for JSONFormatter and the JSON rendering of profile summaries.

Plain Python dicts and numpy values only — no dataframe backend needed.
"""

from __future__ import annotations

import datetime
import json

import numpy as np

from conftest import DATA_TIME, make_profile
from mlprofile.metrics.model import ModelType
from mlprofile.reporting.formatters import JSONFormatter, to_jsonable


# ---------------------------------------------------------------------------
# JSONFormatter
# ---------------------------------------------------------------------------

class TestJSONFormatter:

    def test_nan_becomes_null(self) -> None:
        parsed = json.loads(JSONFormatter().format({"val": float("nan")}))
        assert parsed["val"] is None

    def test_inf_becomes_string(self) -> None:
        parsed = json.loads(JSONFormatter().format({"val": float("-inf")}))
        assert parsed["val"] == "-inf"

    def test_numpy_scalars_serialised(self) -> None:
        parsed = json.loads(JSONFormatter().format({"f": np.float64(3.5), "i": np.int32(7)}))
        assert parsed == {"f": 3.5, "i": 7}

    def test_numpy_matrix_with_nan(self) -> None:
        result = JSONFormatter().format({"m": np.array([[1.0, np.nan], [2.0, 3.0]])})
        assert json.loads(result)["m"] == [[1.0, None], [2.0, 3.0]]

    def test_datetime_serialised(self) -> None:
        ts = datetime.datetime(2021, 3, 4, tzinfo=datetime.timezone.utc)
        parsed = json.loads(JSONFormatter().format({"ts": ts}))
        assert parsed["ts"] == "2021-03-04T00:00:00+00:00"

    def test_sort_keys(self) -> None:
        result = JSONFormatter(sort_keys=True).format({"b": 1, "a": 2})
        assert result.index('"a"') < result.index('"b"')

    def test_enum_and_set_lowered(self) -> None:
        assert to_jsonable({"t": ModelType.REGRESSION, "s": {1}}) == {"t": "regression", "s": [1]}

    def test_write_to_file(self, tmp_path) -> None:
        path = tmp_path / "out.json"
        JSONFormatter().write({"val": float("inf")}, path)
        assert json.loads(path.read_text(encoding="utf-8")) == {"val": "inf"}


# ---------------------------------------------------------------------------
# Summary rendering
# ---------------------------------------------------------------------------

class TestSummaryJSON:

    def test_summary_structure(self) -> None:
        profile = make_profile(
            tags={"segment": "a"}, data_timestamp=DATA_TIME,
            age=[20, 30, None], city=["Oslo", "Oslo", "Rome"],
        )
        profile.with_metadata("owner", "ml")
        parsed = json.loads(profile.to_summary().to_json())
        assert parsed["session_id"] == "test"
        assert parsed["data_timestamp"] == "2021-03-04T00:00:00+00:00"
        assert parsed["tags"] == {"segment": "a"}
        assert parsed["metadata"] == {"owner": "ml"}
        assert parsed["model"] is None

        age = parsed["columns"]["age"]
        assert age["kind"] == "numeric"
        for key in ("count", "null_count", "mean", "std", "min", "max"):
            assert key in age["stats"], f"Missing key: {key}"

        city = parsed["columns"]["city"]
        assert city["kind"] == "categorical"
        assert city["stats"]["value_counts"] == {"Oslo": 2, "Rome": 1}
        assert city["stats"]["n_unique"] == 2

    def test_classification_summary(self) -> None:
        profile = make_profile().with_classification_model("p", "t")
        profile.track_record({"p": "a", "t": "a"})
        profile.track_record({"p": "b", "t": "a"})
        model = json.loads(profile.to_summary().to_json())["model"]
        assert model["model_type"] == "classification"
        assert model["labels"] == ["a", "b"]
        assert model["counts"] == [[1, 0], [1, 0]]
        assert model["accuracy"] == 0.5

    def test_format_profile_matches_summary(self) -> None:
        profile = make_profile(x=[1, 2])
        rendered = JSONFormatter(sort_keys=True).format_profile(profile)
        assert rendered == profile.to_summary().to_json()
