"""
Tests for dataframe adapters and dataframe-driven profiling.

Each backend is conditionally skipped if not installed.
"""

from __future__ import annotations

import math

import pytest

from conftest import RECORDS, SESSION_TIME
from mlprofile.adapters import get_adapter, iter_records, register_adapter
from mlprofile.adapters import _registry
from mlprofile.adapters.base import DataFrameAdapter
from mlprofile.aggregate.aggregator import AggregatorConfig
from mlprofile.aggregate.local import profile_dataframe
from mlprofile.core.profile import DatasetProfile


def _is_null(value) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def _check_records(records) -> None:
    assert len(records) == len(RECORDS)
    for got, expected in zip(records, RECORDS):
        assert set(got) == set(expected)
        for key, value in expected.items():
            if value is None:
                assert _is_null(got[key])
            else:
                assert got[key] == value


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------

class TestAdapters:

    def test_pandas(self, pandas_df) -> None:
        adapter = get_adapter(pandas_df)
        assert isinstance(adapter, DataFrameAdapter)
        assert adapter.shape(pandas_df) == (5, 3)
        assert adapter.column_names(pandas_df) == ["region", "amount", "item"]
        _check_records(list(adapter.iter_records(pandas_df)))

    def test_polars(self, polars_df) -> None:
        adapter = get_adapter(polars_df)
        assert adapter.shape(polars_df) == (5, 3)
        _check_records(list(adapter.iter_records(polars_df)))

    def test_polars_lazy(self, polars_df) -> None:
        lazy = polars_df.lazy()
        adapter = get_adapter(lazy)
        assert adapter.column_names(lazy) == ["region", "amount", "item"]
        _check_records(list(adapter.iter_records(lazy)))

    def test_arrow(self, arrow_table) -> None:
        adapter = get_adapter(arrow_table)
        assert adapter.shape(arrow_table) == (5, 3)
        _check_records(list(adapter.iter_records(arrow_table)))

    def test_unsupported_backend_raises_type_error(self) -> None:
        with pytest.raises(TypeError, match="No mlprofile adapter"):
            get_adapter({"a": [1, 2, 3]})

    def test_register_custom_adapter(self, monkeypatch) -> None:
        monkeypatch.setattr("mlprofile.adapters._registry", dict(_registry))

        class ListAdapter:
            def shape(self, df):
                return (len(df), 1)

            def column_names(self, df):
                return ["value"]

            def iter_records(self, df):
                return ({"value": v} for v in df)

        register_adapter("builtins", ListAdapter)
        assert list(iter_records([1, 2])) == [{"value": 1}, {"value": 2}]

    def test_registered_adapter_must_satisfy_protocol(self, monkeypatch) -> None:
        monkeypatch.setattr("mlprofile.adapters._registry", dict(_registry))
        register_adapter("builtins", object)
        with pytest.raises(TypeError, match="DataFrameAdapter"):
            get_adapter([1])


# ---------------------------------------------------------------------------
# Profiling dataframes
# ---------------------------------------------------------------------------

class TestDataframeProfiling:

    def test_track_dataframe(self, pandas_df) -> None:
        profile = DatasetProfile("df", SESSION_TIME)
        profile.track_dataframe(pandas_df)
        amount = profile.columns["amount"]
        assert amount.count == 5
        assert amount.null_count == 1
        assert profile.columns["item"].null_count == 1

    @pytest.mark.parametrize("frame_fixture", ["pandas_df", "polars_df", "arrow_table"])
    def test_profile_dataframe_groups(self, frame_fixture, request) -> None:
        df = request.getfixturevalue(frame_fixture)
        config = AggregatorConfig("shop", SESSION_TIME, group_by_columns=["region"])
        results = profile_dataframe(df, config, partitions=2)
        profiles = {
            p.tags["region"]: p
            for p in (DatasetProfile.from_bytes(b) for b in results.values())
        }
        assert set(profiles) == {"eu", "us"}
        eu = profiles["eu"].to_summary()
        assert eu.columns["amount"].stats.count == 3
        assert eu.columns["amount"].stats.mean == pytest.approx(25.5 / 3)
        assert eu.columns["item"].stats.value_counts == {"apple": 2, "pear": 1}
        us = profiles["us"].to_summary()
        assert us.columns["amount"].stats.null_count == 1
        assert us.columns["item"].stats.null_count == 1
