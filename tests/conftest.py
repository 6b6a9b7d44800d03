"""
Shared pytest fixtures for mlprofile tests.

Timestamps are fixed and already millisecond-aligned so wire round-trips
compare exactly.  Marker ids come from a counter so chunked output is
deterministic.

Backends are conditionally skipped if the library is not installed so the
test suite degrades gracefully in minimal environments.
"""

from __future__ import annotations

import datetime
import itertools

import pytest

from mlprofile.core.profile import DatasetProfile

# ---------------------------------------------------------------------------
# Raw values
# ---------------------------------------------------------------------------

SESSION_TIME = datetime.datetime(2021, 3, 4, 10, 30, 15, 123000, tzinfo=datetime.timezone.utc)
DATA_TIME = datetime.datetime(2021, 3, 4, tzinfo=datetime.timezone.utc)


def make_profile(tags=None, data_timestamp=None, session_id="test", **columns):
    """Build a profile and track each keyword's list of values into that column."""
    profile = DatasetProfile(session_id, SESSION_TIME, data_timestamp, tags=tags or {})
    for name, values in columns.items():
        for value in values:
            profile.track(name, value)
    return profile


def counts(profile: DatasetProfile) -> dict:
    return {name: col.count for name, col in profile.columns.items()}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def id_factory():
    counter = itertools.count()
    return lambda: f"-{next(counter)}"


@pytest.fixture()
def wide_profile() -> DatasetProfile:
    profile = DatasetProfile("wide", SESSION_TIME, DATA_TIME, tags={"segment": "a"})
    profile.with_metadata("owner", "ml-team")
    for i in range(40):
        for j in range(i % 5 + 1):
            profile.track(f"col_{i:02d}", j * 1.5 if i % 2 else f"v{j}")
    return profile


# ---------------------------------------------------------------------------
# dataframe fixtures
# ---------------------------------------------------------------------------

RECORDS = [
    {"region": "eu", "amount": 10.0, "item": "apple"},
    {"region": "eu", "amount": 12.5, "item": "pear"},
    {"region": "us", "amount": None, "item": "apple"},
    {"region": "us", "amount": 7.0, "item": None},
    {"region": "eu", "amount": 3.0, "item": "apple"},
]


@pytest.fixture()
def pandas_df():
    pd = pytest.importorskip("pandas")
    return pd.DataFrame(RECORDS)


@pytest.fixture()
def polars_df():
    pl = pytest.importorskip("polars")
    return pl.DataFrame(RECORDS)


@pytest.fixture()
def arrow_table():
    pa = pytest.importorskip("pyarrow")
    return pa.Table.from_pylist(RECORDS)
