"""
Adapter for polars.DataFrame / polars.LazyFrame.

polars already yields plain Python values from iter_rows(), with None for
null in every dtype, so rows pass through unchanged.

LazyFrame is supported transparently — _materialise() calls .collect().
"""

from __future__ import annotations

from typing import Any, Dict, Iterator


def _materialise(df: Any) -> Any:
    """Collect a LazyFrame; return a DataFrame unchanged."""
    if type(df).__name__ == "LazyFrame":
        return df.collect()
    return df


class PolarsAdapter:
    """Stateless adapter for polars.DataFrame and polars.LazyFrame."""

    def shape(self, df: Any) -> tuple[int, int]:
        df = _materialise(df)
        return (df.height, df.width)

    def column_names(self, df: Any) -> list[str]:
        df = _materialise(df)
        return list(df.columns)

    def iter_records(self, df: Any) -> Iterator[Dict[str, Any]]:
        df = _materialise(df)
        yield from df.iter_rows(named=True)
