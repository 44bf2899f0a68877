"""Descriptive summary tables.

:func:`tbl_summary` summarises each column of a data frame, overall or
split by a grouping column, as one ``label`` row (continuous and
dichotomous variables) or a ``label`` row plus one ``level`` row per
level (categorical variables) or per statistic (``continuous2``
variables), with an optional ``missing`` row.

Statistics are requested with glue-style patterns; the defaults are::

    continuous     "{median} ({p25}, {p75})"
    continuous2    ["{median} ({p25}, {p75})"], one row per pattern
    categorical    "{n} ({p}%)"
    dichotomous    "{n} ({p}%)"

Continuous placeholders: ``mean``, ``sd``, ``var``, ``median``,
``min``, ``max``, ``pNN`` (any percentile, e.g. ``p25``), ``N_obs``,
``N_miss``, ``N_nonmiss``.  Categorical placeholders: ``n``, ``N``,
``p``, ``N_obs``, ``N_miss``.

Percentiles follow the "averaged inverted CDF" definition, so the
median of an even-length sample is the mean of the middle pair.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any

import numpy as np
import pandas as pd

from ._compat import DataFrameLike, _ensure_pandas_df
from .select import Selection, VariableInfo, resolve_by_variable, resolve_labels, select_variables
from .stat_tests import by_levels
from .style import style_number, style_percent
from .table import ReportTable, make_table_header, set_header

logger = logging.getLogger(__name__)

SUMMARY_TYPES = ("continuous", "continuous2", "categorical", "dichotomous")

DEFAULT_STATISTIC = {
    "continuous": "{median} ({p25}, {p75})",
    "continuous2": ["{median} ({p25}, {p75})"],
    "categorical": "{n} ({p}%)",
    "dichotomous": "{n} ({p}%)",
}

_STAT_NAMES = {
    "mean": "Mean",
    "sd": "SD",
    "var": "Variance",
    "median": "Median",
    "min": "Minimum",
    "max": "Maximum",
    "N_obs": "No. obs.",
    "N_miss": "N missing",
    "N_nonmiss": "No. non-missing",
    "n": "n",
    "N": "N",
    "p": "%",
}

_KNOWN_FOOTNOTES = {
    "{median} ({p25}, {p75})": "Median (IQR)",
    "{mean} ({sd})": "Mean (SD)",
    "{n} ({p}%)": "n (%)",
    "{n} / {N} ({p}%)": "n / N (%)",
}

_PLACEHOLDER = re.compile(r"\{([^{}]+)\}")
_PERCENTILE = re.compile(r"^p(\d{1,2})$")

_INTEGER_STATS = {"n", "N", "N_obs", "N_miss", "N_nonmiss"}


# ------------------------------------------------------------------ #
# Type inference
# ------------------------------------------------------------------ #


def dichotomous_value(values: pd.Series) -> Any | None:
    """The level a dichotomous row reports, or ``None`` if there is none.

    ``1`` for 0/1 data, ``True`` for booleans and ``"yes"`` (any case)
    for yes/no data.
    """
    observed = set(values.dropna().unique())
    if isinstance(values.dtype, pd.CategoricalDtype):
        observed = set(values.cat.categories)
    if not observed:
        return None
    if pd.api.types.is_bool_dtype(values) or all(isinstance(v, (bool, np.bool_)) for v in observed):
        return True
    if pd.api.types.is_numeric_dtype(values) and observed <= {0, 1}:
        return 1
    by_lower = {str(v).lower(): v for v in observed}
    if set(by_lower) <= {"yes", "no"} and "yes" in by_lower:
        return by_lower["yes"]
    return None


def infer_summary_type(values: pd.Series) -> str:
    """Default summary type of a column.

    Yes/no, 0/1 and True/False data are dichotomous; numeric data with
    at least ten distinct values are continuous; everything else is
    categorical.
    """
    if dichotomous_value(values) is not None:
        return "dichotomous"
    if isinstance(values.dtype, pd.CategoricalDtype):
        return "categorical"
    if pd.api.types.is_numeric_dtype(values) and values.nunique(dropna=True) >= 10:
        return "continuous"
    return "categorical"


def continuous_digits(values: pd.Series) -> int:
    """Guess how many decimals continuous statistics of *values* need."""
    values = values.dropna()
    if values.empty:
        return 0
    if np.all(np.mod(values.to_numpy(dtype=float), 1) == 0):
        return 0
    spread = float(values.max() - values.min())
    if spread < 0.15:
        return 4
    if spread < 1:
        return 3
    if spread < 10:
        return 2
    if spread < 20:
        return 1
    return 0


def _levels(values: pd.Series) -> list[Any]:
    if isinstance(values.dtype, pd.CategoricalDtype):
        return list(values.cat.categories)
    return by_levels(values)


# ------------------------------------------------------------------ #
# Statistics
# ------------------------------------------------------------------ #


def _percentile(values: np.ndarray, q: float) -> float:
    if values.size == 0:
        return np.nan
    return float(np.quantile(values, q, method="averaged_inverted_cdf"))


def continuous_stats(values: pd.Series) -> dict[str, float]:
    """Every continuous statistic a pattern may request, keyed by name."""
    present = values.dropna().to_numpy(dtype=float)
    empty = present.size == 0
    return {
        "N_obs": len(values),
        "N_miss": int(values.isna().sum()),
        "N_nonmiss": present.size,
        "mean": np.nan if empty else float(present.mean()),
        "sd": float(present.std(ddof=1)) if present.size > 1 else np.nan,
        "var": float(present.var(ddof=1)) if present.size > 1 else np.nan,
        "median": _percentile(present, 0.5),
        "min": np.nan if empty else float(present.min()),
        "max": np.nan if empty else float(present.max()),
    }


def _stat_value(stats: Mapping[str, float], name: str, present: np.ndarray, variable: str) -> float:
    if name in stats:
        return stats[name]
    match = _PERCENTILE.match(name)
    if match:
        return _percentile(present, int(match.group(1)) / 100)
    msg = f"Unknown statistic {{{name}}} requested for {variable!r}."
    raise ValueError(msg)


def _digits_for(digits: Any, names: list[str]) -> dict[str, int]:
    if isinstance(digits, int):
        return {name: digits for name in names}
    digits = list(digits)
    return {name: digits[i % len(digits)] for i, name in enumerate(names)}


def render(pattern: str, values: Mapping[str, float], digits: Mapping[str, int]) -> str:
    """Fill *pattern* with formatted statistics."""

    def fill(match: re.Match[str]) -> str:
        name = match.group(1)
        value = values[name]
        if name in _INTEGER_STATS:
            text = style_number(value, digits=0)
        elif name == "p":
            text = style_percent(value, digits=digits.get("p", 0))
        else:
            text = style_number(value, digits=digits.get(name, 0))
        return "NA" if text is None else text

    return _PLACEHOLDER.sub(fill, pattern)


def _footnote(patterns: Iterable[str]) -> str:
    notes = []
    for pattern in dict.fromkeys(patterns):
        if pattern in _KNOWN_FOOTNOTES:
            notes.append(_KNOWN_FOOTNOTES[pattern])
        else:
            notes.append(
                _PLACEHOLDER.sub(lambda m: _STAT_NAMES.get(m.group(1), m.group(1)), pattern)
            )
    return "; ".join(notes)


# ------------------------------------------------------------------ #
# Rows
# ------------------------------------------------------------------ #


def _continuous_cells(
    variable: str, groups: list[pd.Series], pattern: str, digits: Any
) -> list[str]:
    names = _PLACEHOLDER.findall(pattern)
    per_stat = _digits_for(digits, [n for n in names if n not in _INTEGER_STATS])
    cells = []
    for values in groups:
        present = values.dropna().to_numpy(dtype=float)
        stats = continuous_stats(values)
        filled = {n: _stat_value(stats, n, present, variable) for n in names}
        cells.append(render(pattern, filled, per_stat))
    return cells


def _count_cells(
    counts: list[int],
    denominators: list[int],
    groups: list[pd.Series],
    pattern: str,
    digits: Any,
) -> list[str]:
    names = _PLACEHOLDER.findall(pattern)
    per_stat = _digits_for(digits, [n for n in names if n not in _INTEGER_STATS])
    cells = []
    for n, denominator, values in zip(counts, denominators, groups, strict=True):
        filled = {
            "n": n,
            "N": denominator,
            "p": n / denominator if denominator else np.nan,
            "N_obs": len(values),
            "N_miss": int(values.isna().sum()),
            "N_nonmiss": int(values.notna().sum()),
        }
        unknown = [name for name in names if name not in filled]
        if unknown:
            msg = f"Unknown statistic {{{unknown[0]}}} for categorical summaries."
            raise ValueError(msg)
        cells.append(render(pattern, filled, per_stat))
    return cells


def _denominators(
    groups: list[pd.Series], level_counts: list[int], percent: str, total: int
) -> list[int]:
    if percent == "column":
        return [int(g.notna().sum()) for g in groups]
    if percent == "row":
        return [sum(level_counts)] * len(groups)
    return [total] * len(groups)


def _patterns(statistic: str | Iterable[str]) -> list[str]:
    return [statistic] if isinstance(statistic, str) else list(statistic)


def _row(variable: str, var_type: str, row_type: str, label: str, cells: list[Any]) -> dict:
    row = {"variable": variable, "var_type": var_type, "row_type": row_type, "label": label}
    for i, cell in enumerate(cells):
        row[f"stat_{i}"] = cell
    return row


def tbl_summary(
    data: DataFrameLike,
    by: str | None = None,
    label: Mapping[str, str] | Iterable[Any] | None = None,
    type: Mapping[str, str] | Iterable[Any] | None = None,  # noqa: A002
    statistic: Mapping[str, str] | Iterable[Any] | None = None,
    digits: Mapping[str, Any] | Iterable[Any] | None = None,
    value: Mapping[str, Any] | Iterable[Any] | None = None,
    include: Selection = None,
    exclude: Selection = None,
    missing: str = "ifany",
    missing_text: str = "Unknown",
    percent: str = "column",
) -> ReportTable:
    """Summarise the columns of a data frame, optionally split by group.

    Args:
        data: pandas (or polars) data frame.
        by: Column whose levels become the statistic columns.
        label: Label overrides; default labels come from
            ``data.attrs["labels"]``.
        type: Summary type per variable (``"continuous"``,
            ``"continuous2"``, ``"categorical"`` or ``"dichotomous"``).
        statistic: Statistic pattern per variable; ``continuous2``
            variables take a list of patterns, one row each.
        digits: Decimal places per variable, an int or one per
            non-count statistic of the pattern.
        value: Level reported by a dichotomous row.
        include: Columns to summarise.  Default all but *by*.
        exclude: Columns to leave out.
        missing: ``"ifany"``, ``"always"`` or ``"no"``: when to add a
            row counting missing values.
        missing_text: Label of the missing-value row.
        percent: ``"column"``, ``"row"`` or ``"cell"`` percentages.

    Returns:
        A ``ReportTable`` of kind ``"tbl_summary"``.

    Raises:
        ValueError: For unknown summary types, statistics, or *missing*
            / *percent* choices, or a *by* column not in *data*.
        UnknownVariableError: If a selection names an absent column.
    """
    data = _ensure_pandas_df(data)
    if missing not in ("ifany", "always", "no"):
        msg = f"'missing' must be 'ifany', 'always' or 'no', got {missing!r}."
        raise ValueError(msg)
    if percent not in ("column", "row", "cell"):
        msg = f"'percent' must be 'column', 'row' or 'cell', got {percent!r}."
        raise ValueError(msg)
    if by is not None:
        if by not in data.columns:
            msg = f"'by' column {by!r} is not in the data. Columns: {list(data.columns)}"
            raise ValueError(msg)
        dropped = int(data[by].isna().sum())
        if dropped:
            logger.info("tbl_summary: %d observations missing %r have been removed.", dropped, by)
            data = data[data[by].notna()]

    candidates = [
        VariableInfo(name=str(c), kind=infer_summary_type(data[c])) for c in data.columns if c != by
    ]
    types = {info.name: info.kind for info in candidates}
    for name, kind in resolve_by_variable(type, candidates, "type").items():
        if kind not in SUMMARY_TYPES:
            msg = f"Unknown summary type {kind!r} for {name!r}. Choose from: {SUMMARY_TYPES}"
            raise ValueError(msg)
        types[name] = kind
    candidates = [VariableInfo(name=i.name, kind=types[i.name]) for i in candidates]

    selected = select_variables(include, candidates, "include")
    if exclude is not None:
        dropped_vars = set(select_variables(exclude, candidates, "exclude"))
        selected = [name for name in selected if name not in dropped_vars]
    var_info = [i for i in candidates if i.name in selected]

    labels = resolve_labels(label, var_info, defaults=dict(data.attrs.get("labels", {})))
    statistics = {i.name: DEFAULT_STATISTIC[i.kind] for i in var_info}
    statistics.update(resolve_by_variable(statistic, var_info, "statistic"))
    digit_spec = resolve_by_variable(digits, var_info, "digits")
    values_spec = resolve_by_variable(value, var_info, "value")

    if by is None:
        group_levels: list[Any] = []
        masks = [pd.Series(True, index=data.index)]
    else:
        group_levels = by_levels(data[by])
        masks = [data[by] == level for level in group_levels]

    rows = []
    for info in var_info:
        variable, kind = info.name, info.kind
        column = data[variable]
        groups = [column[mask] for mask in masks]
        pattern = statistics[variable]
        if kind == "continuous":
            if not pd.api.types.is_numeric_dtype(column):
                msg = f"Continuous summaries need numeric data; {variable!r} is {column.dtype}."
                raise ValueError(msg)
            var_digits = digit_spec.get(variable, continuous_digits(column))
            cells = _continuous_cells(variable, groups, pattern, var_digits)
            rows.append(_row(variable, kind, "label", labels[variable], cells))
        elif kind == "continuous2":
            if not pd.api.types.is_numeric_dtype(column):
                msg = f"Continuous summaries need numeric data; {variable!r} is {column.dtype}."
                raise ValueError(msg)
            var_digits = digit_spec.get(variable, continuous_digits(column))
            rows.append(_row(variable, kind, "label", labels[variable], [None] * len(groups)))
            for line in _patterns(pattern):
                cells = _continuous_cells(variable, groups, line, var_digits)
                rows.append(_row(variable, kind, "level", _footnote([line]), cells))
        elif kind == "dichotomous":
            shown = values_spec.get(variable, dichotomous_value(column))
            if shown is None:
                msg = (
                    f"Cannot tell which level of {variable!r} a dichotomous row reports; "
                    "pass value={...}."
                )
                raise ValueError(msg)
            counts = [int((g == shown).sum()) for g in groups]
            denominators = _denominators(groups, counts, percent, int(column.notna().sum()))
            cells = _count_cells(counts, denominators, groups, pattern, digit_spec.get(variable, 0))
            rows.append(_row(variable, kind, "label", labels[variable], cells))
        else:
            rows.append(_row(variable, kind, "label", labels[variable], [None] * len(groups)))
            total = int(column.notna().sum())
            for level in _levels(column):
                counts = [int((g == level).sum()) for g in groups]
                denominators = _denominators(groups, counts, percent, total)
                cells = _count_cells(
                    counts, denominators, groups, pattern, digit_spec.get(variable, 0)
                )
                rows.append(_row(variable, kind, "level", str(level), cells))
        n_missing = [int(g.isna().sum()) for g in groups]
        if missing == "always" or (missing == "ifany" and sum(n_missing) > 0):
            cells = [style_number(n, digits=0) for n in n_missing]
            rows.append(_row(variable, kind, "missing", missing_text, cells))

    stat_columns = [f"stat_{i}" for i in range(len(masks))]
    body = pd.DataFrame(rows, columns=["variable", "var_type", "row_type", "label", *stat_columns])
    n = len(data)

    header = make_table_header(body.columns)
    header = set_header(header, "label", label="Characteristic", hide=False)
    footnote = _footnote(
        statistics[i.name] for i in var_info if i.kind != "continuous2"
    ) or None
    if by is None:
        header = set_header(header, "stat_0", label=f"N = {n}", hide=False, footnote=footnote)
    else:
        for column, level, mask in zip(stat_columns, group_levels, masks, strict=True):
            header = set_header(
                header, column, label=f"{level}, N = {int(mask.sum())}", hide=False,
                footnote=footnote,
            )

    meta = pd.DataFrame(
        {
            "variable": [i.name for i in var_info],
            "var_type": [i.kind for i in var_info],
            "var_label": [labels[i.name] for i in var_info],
            "stat_display": [
                "; ".join(_patterns(statistics[i.name])) for i in var_info
            ],
        }
    )
    inputs = {
        "by": by,
        "label": label,
        "type": type,
        "statistic": statistics,
        "digits": digits,
        "value": value,
        "include": selected,
        "missing": missing,
        "missing_text": missing_text,
        "percent": percent,
    }
    tbl = ReportTable(
        kind="tbl_summary",
        table_body=body,
        table_header=header,
        meta_data=meta,
        inputs=inputs,
        n=n,
        by=by,
        data=data,
    )
    tbl.record_call("tbl_summary", inputs)
    return tbl
