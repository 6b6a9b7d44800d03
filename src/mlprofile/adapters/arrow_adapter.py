"""
Adapter for pyarrow.Table.

PyArrow uses a chunked array model.  Rows are produced one record batch at
a time via RecordBatch.to_pylist(), so only a single batch is converted to
Python objects at once.  Nulls are None in to_pylist() output.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Tuple


class ArrowAdapter:
    """Stateless adapter for pyarrow.Table objects."""

    def shape(self, df: Any) -> Tuple[int, int]:
        return (int(df.num_rows), int(df.num_columns))

    def column_names(self, df: Any) -> List[str]:
        return list(df.schema.names)

    def iter_records(self, df: Any) -> Iterator[Dict[str, Any]]:
        for batch in df.to_batches():
            yield from batch.to_pylist()
