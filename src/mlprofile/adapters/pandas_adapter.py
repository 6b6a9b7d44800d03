"""
Adapter for pandas.DataFrame.

Null handling: pandas uses NaN for float columns, pd.NA for nullable
extension types and NaT for datetimes.  pd.NA and NaT become None; NaN is
left as a float so the column accumulator counts it as null the same way
it does for plain Python input.  numpy scalars are unwrapped with .item().
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Tuple

import numpy as np


def _to_python(value: Any) -> Any:
    import pandas as pd
    if value is pd.NA or value is pd.NaT:
        return None
    if isinstance(value, np.generic):
        return value.item()
    return value


class PandasAdapter:
    """Stateless adapter for pandas.DataFrame objects."""

    def shape(self, df: Any) -> Tuple[int, int]:
        return (int(df.shape[0]), int(df.shape[1]))

    def column_names(self, df: Any) -> List[str]:
        return [str(c) for c in df.columns]

    def iter_records(self, df: Any) -> Iterator[Dict[str, Any]]:
        names = self.column_names(df)
        for row in df.itertuples(index=False, name=None):
            yield {name: _to_python(value) for name, value in zip(names, row)}
