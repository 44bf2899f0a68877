"""The table object returned by every builder.

:class:`ReportTable` bundles the row data (``table_body``), per-column
display metadata (``table_header``), per-variable metadata
(``meta_data``) and an audit trail of the calls that produced it.

It offers:

* **Attribute access** - ``tbl.table_body``, ``tbl.n``, etc.
* **Dict-like access** - ``tbl["table_body"]``, ``tbl.get("key")``,
  ``"key" in tbl``.
* **Serialisation** - ``.to_dict()`` returns plain Python structures
  with NumPy scalars converted and DataFrames turned into records.
* **Chaining** - ``tbl.add_p(...)``, ``tbl.add_global_p(...)``,
  ``tbl.modify_header(...)`` each return a new table; the table they
  are called on is never modified.
* **Formatting** - ``tbl.as_dataframe()`` applies every column's
  display function and returns the publication-ready frame.
"""

from __future__ import annotations

import copy
import logging
import warnings
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, fields, replace
from typing import Any, ClassVar

import numpy as np
import pandas as pd

from .select import VariableInfo, select_variables
from .style import format_column

logger = logging.getLogger(__name__)

REFERENCE_TEXT = "—"

HEADER_COLUMNS = ["column", "label", "hide", "fmt_fun", "footnote", "footnote_abbrev"]

# ------------------------------------------------------------------ #
# Serialisation helper
# ------------------------------------------------------------------ #


def _numpy_to_python(obj: Any) -> Any:
    """Recursively convert NumPy/pandas values to Python-native types."""
    if isinstance(obj, pd.DataFrame):
        return [_numpy_to_python(r) for r in obj.to_dict(orient="records")]
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.bool_):
        return bool(obj)
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return None if np.isnan(obj) else float(obj)
    if isinstance(obj, float) and obj != obj:
        return None
    if isinstance(obj, dict):
        return {k: _numpy_to_python(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        converted = [_numpy_to_python(item) for item in obj]
        return type(obj)(converted)
    if callable(obj):
        return getattr(obj, "__name__", repr(obj))
    return obj


# ------------------------------------------------------------------ #
# Dict-compatibility mixin
# ------------------------------------------------------------------ #


class _DictAccessMixin:
    """Dict-like access convenience for table dataclasses.

    1. ``tbl["key"]``      - raises ``KeyError`` on miss
    2. ``tbl.get(key, d)`` - returns *d* on miss (default ``None``)
    3. ``"key" in tbl``    - membership test
    """

    # Fields to exclude from to_dict() serialisation.
    _EXCLUDE_FROM_DICT: ClassVar[frozenset[str]] = frozenset({"model_obj", "data", "tbls"})

    def __getitem__(self, key: str) -> Any:
        try:
            return getattr(self, key)
        except AttributeError:
            raise KeyError(key) from None

    def get(self, key: str, default: Any = None) -> Any:
        return getattr(self, key, default)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        return hasattr(self, key)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary of Python-native values."""
        result: dict[str, Any] = {}
        for f in fields(self):  # type: ignore[arg-type]
            if f.name in self._EXCLUDE_FROM_DICT:
                continue
            result[f.name] = _numpy_to_python(getattr(self, f.name))
        return result


# ------------------------------------------------------------------ #
# Header helpers
# ------------------------------------------------------------------ #


def make_table_header(columns: Iterable[str]) -> pd.DataFrame:
    """Build a header frame with one hidden, unformatted row per column."""
    columns = list(columns)
    return pd.DataFrame(
        {
            "column": columns,
            "label": columns,
            "hide": [True] * len(columns),
            "fmt_fun": [None] * len(columns),
            "footnote": [None] * len(columns),
            "footnote_abbrev": [None] * len(columns),
        },
        columns=HEADER_COLUMNS,
    )


def sync_table_header(body: pd.DataFrame, header: pd.DataFrame) -> pd.DataFrame:
    """Return *header* with a row for every column of *body*, in body order."""
    missing = [c for c in body.columns if c not in set(header["column"])]
    if missing:
        header = pd.concat([header, make_table_header(missing)], ignore_index=True)
    order = {c: i for i, c in enumerate(body.columns)}
    header = header[header["column"].isin(order)].copy()
    header["_order"] = header["column"].map(order)
    return header.sort_values("_order").drop(columns="_order").reset_index(drop=True)


def set_header(header: pd.DataFrame, column: str, **values: Any) -> pd.DataFrame:
    """Set header attributes (``label``, ``hide``, ``fmt_fun``, ...) of *column*."""
    header = header.copy()
    idx = header.index[header["column"] == column]
    if len(idx) == 0:
        msg = f"Column {column!r} is not in the table. Columns: {list(header['column'])}"
        raise KeyError(msg)
    for key, value in values.items():
        if key not in HEADER_COLUMNS:
            msg = f"Unknown header attribute {key!r}. Choose from: {HEADER_COLUMNS[1:]}"
            raise ValueError(msg)
        # object columns accept callables and None alike
        header[key] = header[key].astype(object)
        header.at[idx[0], key] = value
    return header


# ------------------------------------------------------------------ #
# ReportTable
# ------------------------------------------------------------------ #


@dataclass
class ReportTable(_DictAccessMixin):
    """A publication-style statistics table.

    Created by :func:`tbl_regression`, :func:`tbl_uvregression`,
    :func:`tbl_summary` or :func:`tbl_survfit`.
    """

    kind: str
    """Builder that produced the table (``"tbl_regression"``, ...)."""

    table_body: pd.DataFrame
    """One row per label/level/missing row, in display order."""

    table_header: pd.DataFrame
    """One row per body column: label, hide flag, display function, footnotes."""

    meta_data: pd.DataFrame
    """One row per variable: name, kind, label and any variable-level results."""

    inputs: dict[str, Any] = field(default_factory=dict)
    """Resolved configuration of the building call."""

    call_list: dict[str, dict[str, Any]] = field(default_factory=dict)
    """Ordered audit trail: operation name -> arguments it was called with."""

    n: int | None = None
    """Number of observations behind the table."""

    by: str | None = None
    """Column the summary is split by (summary and survival tables)."""

    diagnostics: list[dict[str, Any]] = field(default_factory=list)
    """Per-variable failures recorded by ``add_p`` / ``add_global_p``."""

    fmt_overrides: list[tuple[tuple[str, ...], tuple[str, ...] | None, Callable[..., Any]]] = (
        field(default_factory=list)
    )
    """``(columns, variables, fun)`` display overrides; later entries win."""

    model_obj: Any = field(default=None, repr=False, compare=False)
    """Fitted model behind a regression table."""

    data: pd.DataFrame | None = field(default=None, repr=False, compare=False)
    """Source data of summary and survival tables."""

    tbls: dict[str, ReportTable] = field(default_factory=dict, repr=False, compare=False)
    """Per-variable sub-tables of a univariate regression table."""

    # ---- Copying ---------------------------------------------------

    def copy(self) -> ReportTable:
        """Return a copy whose frames and containers can be modified freely."""
        return replace(
            self,
            table_body=self.table_body.copy(),
            table_header=self.table_header.copy(),
            meta_data=self.meta_data.copy(),
            inputs=dict(self.inputs),
            call_list=copy.copy(self.call_list),
            diagnostics=[dict(d) for d in self.diagnostics],
            fmt_overrides=list(self.fmt_overrides),
            tbls=dict(self.tbls),
        )

    def record_call(self, name: str, arguments: dict[str, Any]) -> None:
        """Append *name* to the audit trail, numbering repeated calls."""
        key = name
        i = 2
        while key in self.call_list:
            key = f"{name}_{i}"
            i += 1
        self.call_list[key] = arguments

    def record_failure(self, variable: str, operation: str, error: BaseException) -> None:
        """Record a per-variable failure in ``diagnostics`` and warn."""
        self.diagnostics.append(
            {
                "variable": variable,
                "operation": operation,
                "error": type(error).__name__,
                "message": str(error),
            }
        )
        logger.debug("%s failed for %r: %r", operation, variable, error)
        warnings.warn(
            f"{operation}(): {type(error).__name__} for variable {variable!r}: {error} "
            "The p-value is left empty.",
            UserWarning,
            stacklevel=3,
        )

    @property
    def variables(self) -> list[str]:
        """Variable names in table order."""
        return list(dict.fromkeys(self.table_body["variable"]))

    # ---- Chaining --------------------------------------------------

    def add_p(self, **kwargs: Any) -> ReportTable:
        """Shortcut for :func:`regression_tables.add_p`."""
        from .add_p import add_p

        return add_p(self, **kwargs)

    def add_global_p(self, **kwargs: Any) -> ReportTable:
        """Shortcut for :func:`regression_tables.add_global_p`."""
        from .global_p import add_global_p

        return add_global_p(self, **kwargs)

    def modify_header(self, **labels: str) -> ReportTable:
        """Return a copy with new column header labels.

        Keyword names are body columns; dotted names such as
        ``p.value`` can be passed with ``**{"p.value": "P"}``.  Labels
        may use ``{n}`` which is filled with the table's N.
        """
        out = self.copy()
        for column, label in labels.items():
            text = label.format(n=self.n) if "{n}" in label else label
            out.table_header = set_header(out.table_header, column, label=text, hide=False)
        out.record_call("modify_header", dict(labels))
        return out

    def modify_fmt_fun(
        self,
        columns: str | Iterable[str],
        fun: Callable[..., Any],
        variables: str | Iterable[str] | None = None,
    ) -> ReportTable:
        """Return a copy with a display function override.

        Args:
            columns: Body column(s) the function applies to.
            fun: Display function (vector in, strings out).
            variables: Restrict the override to these variables; all
                rows when ``None``.
        """
        if not callable(fun):
            msg = f"'fun' must be a function, got {type(fun).__name__}."
            raise TypeError(msg)
        cols = (columns,) if isinstance(columns, str) else tuple(columns)
        unknown = [c for c in cols if c not in self.table_body.columns]
        if unknown:
            msg = f"Unknown column(s) {unknown}. Columns: {list(self.table_body.columns)}"
            raise KeyError(msg)
        out = self.copy()
        if variables is None:
            for c in cols:
                out.table_header = set_header(out.table_header, c, fmt_fun=fun)
        else:
            names = tuple(select_variables(variables, variable_infos(self), "variables"))
            out.fmt_overrides.append((cols, names, fun))
        out.record_call("modify_fmt_fun", {"columns": cols, "fun": fun, "variables": variables})
        return out

    # ---- Formatting ------------------------------------------------

    def as_dataframe(self, col_labels: bool = True) -> pd.DataFrame:
        """Return the formatted table as a DataFrame of strings.

        Visible columns only; numeric columns go through their display
        function, the confidence interval is merged into one column,
        reference rows show an em dash and missing values are blank.

        Args:
            col_labels: Use header labels as column names (otherwise the
                raw column names are kept).
        """
        body = self.table_body
        header = self.table_header.set_index("column")
        formatted = pd.DataFrame(index=body.index)
        for column in body.columns:
            fun = header.at[column, "fmt_fun"] if column in header.index else None
            if fun is not None:
                formatted[column] = format_column(body[column], fun)
            else:
                formatted[column] = body[column].astype(object)

        for cols, variables, fun in self.fmt_overrides:
            rows = body["variable"].isin(variables) if variables is not None else slice(None)
            for column in cols:
                values = format_column(body.loc[rows, column], fun)
                formatted.loc[rows, column] = pd.Series(values, index=body.loc[rows].index)

        if {"conf.low", "conf.high"} <= set(body.columns):
            low, high = formatted["conf.low"], formatted["conf.high"]
            formatted["conf.low"] = [
                f"{lo}, {hi}" if lo is not None and hi is not None else None
                for lo, hi in zip(low, high, strict=True)
            ]

        if "is_reference" in body.columns:
            ref = body["is_reference"].fillna(False).astype(bool)
            for column in ("estimate", "conf.low"):
                if column in formatted.columns:
                    formatted.loc[ref, column] = REFERENCE_TEXT

        visible = header.index[~header["hide"].astype(bool)]
        visible = [c for c in body.columns if c in visible]
        out = formatted[visible].astype(object)
        out = out.where(pd.notna(out), "")
        if col_labels:
            out.columns = [header.at[c, "label"] for c in visible]
        return out.reset_index(drop=True)

    def __str__(self) -> str:
        return self.as_dataframe().to_string(index=False)


def variable_infos(tbl: ReportTable) -> list[VariableInfo]:
    """Rebuild the variable records of *tbl* from its ``meta_data``."""
    infos = []
    for row in tbl.meta_data.itertuples(index=False):
        infos.append(
            VariableInfo(
                name=row.variable,
                kind=row.var_type,
                label=getattr(row, "var_label", row.variable),
            )
        )
    return infos
