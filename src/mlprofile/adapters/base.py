"""
DataFrameAdapter Protocol — the bridge between a backend dataframe and the
record stream a profile or aggregator consumes.

Design: structural subtyping (Protocol)
----------------------------------------
Adapter classes do not inherit from a common base class.  Any class that
implements the three required methods is a valid DataFrameAdapter, so
third-party users can write adapters for custom frame types (e.g. Dask,
cuDF) without modifying the mlprofile source.

The Protocol is runtime_checkable so isinstance() works in get_adapter().
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, Protocol, runtime_checkable


@runtime_checkable
class DataFrameAdapter(Protocol):
    """
    Protocol that every backend adapter must satisfy.

    All methods accept the raw dataframe as their first positional argument
    so adapter instances are stateless and reusable across multiple frames.
    """

    def shape(self, df: Any) -> tuple[int, int]:
        """Return (n_rows, n_cols)."""
        ...

    def column_names(self, df: Any) -> list[str]:
        """Return list of column name strings."""
        ...

    def iter_records(self, df: Any) -> Iterator[Dict[str, Any]]:
        """
        Yield one ``{column name: value}`` dict per row.

        Values are plain Python scalars.  Every null flavour of the backend
        becomes None, except float NaN which is passed through (column
        accumulators count it as null).
        """
        ...
