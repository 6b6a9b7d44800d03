"""
JSON rendering of profile summaries.

Summaries mix plain Python values with numpy scalars and arrays (model
metrics matrices), datetimes and float NaN / Inf (statistics of empty
columns).  to_jsonable() lowers all of those to JSON-safe values before
json.dumps sees them: NaN → null (the JS NaN literal is invalid JSON),
±Inf → "inf" / "-inf", datetimes → ISO-8601 strings.
"""

from __future__ import annotations

import datetime
import enum
import json
import math
import os
from typing import Any, Union

import numpy as np


def _safe_float(x: float) -> Any:
    if math.isnan(x):
        return None
    if math.isinf(x):
        return str(x)
    return x


def to_jsonable(obj: Any) -> Any:
    """Recursively convert *obj* into values json.dumps accepts unchanged."""
    if isinstance(obj, (bool, np.bool_)):
        return bool(obj)
    if isinstance(obj, (float, np.floating)):
        return _safe_float(float(obj))
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.ndarray):
        return to_jsonable(obj.tolist())
    if isinstance(obj, enum.Enum):
        return to_jsonable(obj.value)
    if isinstance(obj, (datetime.datetime, datetime.date)):
        return obj.isoformat()
    if isinstance(obj, dict):
        return {str(k): to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [to_jsonable(v) for v in obj]
    if hasattr(obj, "to_dict"):
        return to_jsonable(obj.to_dict())
    return obj


class JSONFormatter:
    """
    Formats summaries as JSON strings.

    Parameters
    ----------
    sort_keys : bool
        Whether to sort dict keys in the output.  Default False.
    ensure_ascii : bool
        Whether to escape non-ASCII characters.  Default False.
    """

    def __init__(
        self,
        sort_keys: bool = False,
        ensure_ascii: bool = False,
    ) -> None:
        self.sort_keys = sort_keys
        self.ensure_ascii = ensure_ascii

    def format(self, data: Any, indent: int = 2) -> str:
        """Serialise *data* to a JSON string."""
        return json.dumps(
            to_jsonable(data),
            indent=indent,
            sort_keys=self.sort_keys,
            ensure_ascii=self.ensure_ascii,
            allow_nan=False,
        )

    def format_profile(self, profile: Any, indent: int = 2) -> str:
        """Render the summary of a DatasetProfile."""
        return self.format(profile.to_summary(), indent=indent)

    def write(
        self, data: Any, path: Union[str, "os.PathLike[str]"], indent: int = 2,
    ) -> None:
        """Write the JSON rendering of *data* to *path* (UTF-8)."""
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(self.format(data, indent=indent))
            fh.write("\n")
