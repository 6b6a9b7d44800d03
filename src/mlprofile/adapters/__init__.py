"""
Dataframe adapters.

A frame is matched to an adapter by the top-level module its type lives in
(``pandas``, ``polars``, ``pyarrow``).  Built-in adapters are imported
lazily so users who have only one backend installed do not get ImportError
from the others.  Other frame libraries can be plugged in with
register_adapter().
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Callable, Iterator
from typing import Any, Dict

from mlprofile.adapters.base import DataFrameAdapter

logger = logging.getLogger(__name__)

_BUILTIN = {
    "pandas": ("mlprofile.adapters.pandas_adapter", "PandasAdapter"),
    "polars": ("mlprofile.adapters.polars_adapter", "PolarsAdapter"),
    "pyarrow": ("mlprofile.adapters.arrow_adapter", "ArrowAdapter"),
}

_registry: Dict[str, Callable[[], DataFrameAdapter]] = {}


def register_adapter(module: str, factory: Callable[[], DataFrameAdapter]) -> None:
    """
    Route frames whose type is defined under *module* to ``factory()``.

    Registered adapters take precedence over the built-in ones.
    """
    _registry[module] = factory
    logger.debug("Registered dataframe adapter for %r", module)


def get_adapter(df: Any) -> DataFrameAdapter:
    """
    Return the DataFrameAdapter for *df*.

    Raises
    ------
    TypeError
        If no adapter handles the type of *df*.
    ImportError
        If the required backend library is not installed.
    """
    module = type(df).__module__.split(".")[0]

    factory = _registry.get(module)
    if factory is not None:
        adapter = factory()
    elif module in _BUILTIN:
        path, name = _BUILTIN[module]
        adapter = getattr(importlib.import_module(path), name)()
    else:
        raise TypeError(
            f"No mlprofile adapter for dataframe type {type(df).__name__!r}. "
            f"Supported backends: {', '.join(sorted({*_BUILTIN, *_registry}))}. "
            "Install the required extra, e.g. pip install 'mlprofile[pandas]'."
        )

    if not isinstance(adapter, DataFrameAdapter):
        raise TypeError(f"Adapter for {module!r} does not implement DataFrameAdapter")
    return adapter


def iter_records(df: Any) -> Iterator[Dict[str, Any]]:
    """Yield one ``{column name: value}`` dict per row of *df*."""
    return get_adapter(df).iter_records(df)
