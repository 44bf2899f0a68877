"""Kaplan-Meier summary tables.

:func:`tbl_survfit` estimates a survival curve per stratum with
``statsmodels.duration.survfunc.SurvfuncRight`` and reports either

* the survival probability at chosen follow-up ``times``, shown as
  percentages ``"85% (79%, 91%)"``, or
* survival quantiles for chosen ``probs`` (``probs=[0.5]`` is the
  median survival time), shown as ``"22 (19, 24)"``.

Each stratifying variable contributes a ``label`` row and one
``level`` row per level.  Without stratifying variables the table has
a single ``Overall`` row.  Confidence intervals for probabilities use
the log transformation: ``S * exp(+-z * se(S) / S)``, capped at 1.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.duration.survfunc import SurvfuncRight

from ._compat import DataFrameLike, _ensure_pandas_df
from ._config import resolve_option
from .select import VariableInfo, resolve_labels
from .stat_tests import by_levels
from .style import style_percent, style_sigfig
from .table import ReportTable, make_table_header, set_header

logger = logging.getLogger(__name__)

OVERALL = "Overall"


def survival_at(
    fit: SurvfuncRight, times: Iterable[float], conf_level: float = 0.95
) -> pd.DataFrame:
    """Survival probability with log-scale confidence bounds at *times*.

    Times past the last observed follow-up give missing values.

    Returns:
        DataFrame with columns ``time``, ``estimate``, ``conf.low``,
        ``conf.high``.
    """
    z = stats.norm.ppf(1 - (1 - conf_level) / 2)
    last = float(np.max(fit.time))
    rows = []
    for t in times:
        if t > last:
            rows.append((t, np.nan, np.nan, np.nan))
            continue
        idx = np.searchsorted(fit.surv_times, t, side="right") - 1
        if idx < 0:
            rows.append((t, 1.0, 1.0, 1.0))
            continue
        s = float(fit.surv_prob[idx])
        se = float(fit.surv_prob_se[idx])
        if s <= 0:
            rows.append((t, 0.0, np.nan, np.nan))
            continue
        half = z * se / s
        rows.append((t, s, s * np.exp(-half), min(s * np.exp(half), 1.0)))
    return pd.DataFrame(rows, columns=["time", "estimate", "conf.low", "conf.high"])


def survival_quantiles(
    fit: SurvfuncRight, probs: Iterable[float], conf_level: float = 0.95
) -> pd.DataFrame:
    """Survival-time quantiles with confidence bounds.

    ``probs=[0.5]`` gives the median survival time.  Quantiles not
    reached during follow-up are missing.

    Returns:
        DataFrame with columns ``prob``, ``estimate``, ``conf.low``,
        ``conf.high``.
    """
    rows = []
    for p in probs:
        estimate = fit.quantile(p)
        low, high = fit.quantile_ci(p, alpha=1 - conf_level, method="log")
        rows.append((p, estimate, low, high))
    out = pd.DataFrame(rows, columns=["prob", "estimate", "conf.low", "conf.high"])
    numeric = out[["estimate", "conf.low", "conf.high"]].astype(float)
    out[["estimate", "conf.low", "conf.high"]] = numeric.where(np.isfinite(numeric))
    return out


def _cell(estimate: float, low: float, high: float, fun: Callable[..., Any]) -> str | None:
    if np.isnan(estimate):
        return None
    low_text, high_text = ("NA" if np.isnan(b) else fun(b) for b in (low, high))
    return f"{fun(estimate)} ({low_text}, {high_text})"


def tbl_survfit(
    data: DataFrameLike,
    time: str,
    event: str,
    by: str | Iterable[str] | None = None,
    times: Iterable[float] | None = None,
    probs: Iterable[float] | None = None,
    label: Mapping[str, str] | Iterable[Any] | None = None,
    conf_level: float | None = None,
    estimate_fun: Callable[..., Any] | None = None,
    label_header: str | None = None,
) -> ReportTable:
    """Tabulate Kaplan-Meier estimates by stratum.

    Args:
        data: pandas (or polars) data frame.
        time: Follow-up time column.
        event: Event indicator column (1 = event, 0 = censored).
        by: Stratifying column, or several (one block each).
        times: Follow-up times at which to report survival.
        probs: Quantile probabilities to report instead of *times*.
        label: Label overrides for the stratifying variables.
        conf_level: Confidence level.
        estimate_fun: Display function for the estimates.  Defaults to
            percentages for *times* and significant figures for *probs*.
        label_header: Header template for the statistic columns, with
            ``{time}`` or ``{prob}``.

    Returns:
        A ``ReportTable`` of kind ``"tbl_survfit"``.

    Raises:
        ValueError: Unless exactly one of *times* / *probs* is given, or
            if a column is missing.
    """
    data = _ensure_pandas_df(data)
    conf_level = resolve_option("conf_level", conf_level)
    if (times is None) == (probs is None):
        msg = "Pass exactly one of 'times' or 'probs'."
        raise ValueError(msg)
    strata = [by] if isinstance(by, str) else list(by or [])
    for column in [time, event, *strata]:
        if column not in data.columns:
            msg = f"Column {column!r} is not in the data. Columns: {list(data.columns)}"
            raise ValueError(msg)

    if times is not None:
        points = [float(t) for t in times]
        fun = estimate_fun or (lambda x: style_percent(x, symbol=True))
        template = label_header or "Time {time:g}"
    else:
        points = [float(p) for p in probs]
        fun = estimate_fun or style_sigfig
        template = label_header or "{prob:.0%} Percentile"
    stat_columns = [f"stat_{i + 1}" for i in range(len(points))]

    def summarise(subset: pd.DataFrame) -> list[str | None]:
        subset = subset[[time, event]].dropna()
        if subset.empty:
            return [None] * len(points)
        fit = SurvfuncRight(subset[time].to_numpy(dtype=float), subset[event].to_numpy(dtype=float))
        if times is not None:
            est = survival_at(fit, points, conf_level)
        else:
            est = survival_quantiles(fit, points, conf_level)
        bounds = zip(est["estimate"], est["conf.low"], est["conf.high"], strict=True)
        return [_cell(e, lo, hi, fun) for e, lo, hi in bounds]

    var_info = [VariableInfo(name=s, kind="categorical") for s in strata]
    labels = resolve_labels(label, var_info, defaults=dict(data.attrs.get("labels", {})))
    rows: list[dict[str, Any]] = []
    if not strata:
        var_info = [VariableInfo(name=OVERALL, kind="categorical")]
        labels = {OVERALL: OVERALL}
        rows.append(
            {"variable": OVERALL, "var_type": "categorical", "row_type": "label",
             "label": OVERALL, **dict(zip(stat_columns, summarise(data), strict=True))}
        )
    for variable in strata:
        rows.append(
            {"variable": variable, "var_type": "categorical", "row_type": "label",
             "label": labels[variable]}
        )
        present = data[data[variable].notna()]
        for level in by_levels(present[variable]):
            cells = summarise(present[present[variable] == level])
            rows.append(
                {"variable": variable, "var_type": "categorical", "row_type": "level",
                 "label": str(level), **dict(zip(stat_columns, cells, strict=True))}
            )

    body = pd.DataFrame(rows, columns=["variable", "var_type", "row_type", "label", *stat_columns])
    header = make_table_header(body.columns)
    header = set_header(header, "label", label="Characteristic", hide=False)
    for column, point in zip(stat_columns, points, strict=True):
        text = template.format(time=point) if times is not None else template.format(prob=point)
        header = set_header(header, column, label=text, hide=False,
                            footnote=f"{style_percent(conf_level, symbol=True)} CI")

    meta = pd.DataFrame(
        {
            "variable": [i.name for i in var_info],
            "var_type": [i.kind for i in var_info],
            "var_label": [labels[i.name] for i in var_info],
        }
    )
    inputs = {
        "time": time,
        "event": event,
        "by": strata,
        "times": times,
        "probs": probs,
        "label": label,
        "conf_level": conf_level,
        "estimate_fun": estimate_fun,
    }
    tbl = ReportTable(
        kind="tbl_survfit",
        table_body=body,
        table_header=header,
        meta_data=meta,
        inputs=inputs,
        n=len(data),
        data=data,
    )
    tbl.record_call("tbl_survfit", inputs)
    logger.debug("tbl_survfit: %d strata variables, %d rows", len(strata), len(body))
    return tbl
