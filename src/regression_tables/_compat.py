"""Polars input for the table builders.

Summaries, tests and survival fits read pandas dtypes: categoricals give
the level order (and so the reference level) and ``attrs["labels"]``
gives the variable labels.  Polars frames are converted once, at the
entry of each builder, and ``Enum`` columns come back as pandas
categoricals with the same level order.

Polars stays optional; without it only pandas frames are accepted.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeAlias

import pandas as pd

if TYPE_CHECKING:
    import polars as pl

    DataFrameLike: TypeAlias = pd.DataFrame | pl.DataFrame | pl.LazyFrame
else:
    DataFrameLike: TypeAlias = pd.DataFrame

try:
    import polars as pl

    _HAS_POLARS = True
except ImportError:
    _HAS_POLARS = False


def _enum_levels(frame: pl.DataFrame) -> dict[str, list[str]]:
    """Declared level order of each ``Enum`` column of *frame*."""
    return {
        column: list(dtype.categories)
        for column, dtype in frame.schema.items()
        if isinstance(dtype, pl.Enum)
    }


def _ensure_pandas_df(obj: DataFrameLike, *, name: str = "data") -> pd.DataFrame:
    """Return *obj* as a :class:`pandas.DataFrame`.

    pandas frames pass through untouched, labels included.  A polars
    ``LazyFrame`` is collected first.

    Raises:
        TypeError: If *obj* is not a pandas or polars frame.
    """
    if isinstance(obj, pd.DataFrame):
        return obj

    if _HAS_POLARS and isinstance(obj, (pl.DataFrame, pl.LazyFrame)):
        frame = obj.collect() if isinstance(obj, pl.LazyFrame) else obj
        out = frame.to_pandas()
        for column, levels in _enum_levels(frame).items():
            out[column] = pd.Categorical(out[column], categories=levels)
        return out

    accepted = "a pandas DataFrame"
    if _HAS_POLARS:
        accepted += " or a Polars DataFrame/LazyFrame"
    raise TypeError(f"'{name}' must be {accepted}, got {type(obj).__name__}.")
