"""Univariate regression tables.

:func:`tbl_uvregression` fits ``y ~ x`` once for every candidate
predictor ``x`` with a statsmodels formula constructor
(``statsmodels.formula.api.ols``, ``glm``, ``logit``, ``phreg``, ...),
turns each fit into a :func:`tbl_regression` sub-table and stacks
them.  The sub-tables, and through them the fitted models, stay
available in ``tbl.tbls`` so that :func:`add_global_p` can test each
variable against its own model.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

import pandas as pd

from ._compat import DataFrameLike, _ensure_pandas_df
from ._config import resolve_function, resolve_option
from .select import Selection, VariableInfo, resolve_labels, select_variables
from .style import style_number, style_pvalue, style_ratio, style_sigfig
from .table import ReportTable, set_header, sync_table_header
from .tbl_regression import tbl_regression
from .tbl_summary import infer_summary_type

logger = logging.getLogger(__name__)


def _formula_term(name: str) -> str:
    return name if name.isidentifier() else f"Q('{name}')"


def tbl_uvregression(
    data: DataFrameLike,
    method: Callable[..., Any],
    y: str,
    method_args: Mapping[str, Any] | None = None,
    fit_args: Mapping[str, Any] | None = None,
    exponentiate: bool = False,
    label: Mapping[str, str] | Iterable[Any] | None = None,
    include: Selection = None,
    exclude: Selection = None,
    hide_n: bool = False,
    show_yesno: Iterable[str] | None = None,
    conf_level: float | None = None,
    estimate_fun: Callable[..., Any] | None = None,
    pvalue_fun: Callable[..., Any] | None = None,
    formula: str = "{y} ~ {x}",
) -> ReportTable:
    """Fit one univariate model per variable and stack the results.

    Args:
        data: pandas (or polars) data frame.
        method: Formula model constructor called as
            ``method(formula, data=data, **method_args)``, e.g.
            ``statsmodels.formula.api.logit``.
        y: Outcome column (left-hand side of every formula).
        method_args: Extra keyword arguments for *method* (``family=``
            for GLMs, ``status=`` for Cox models, ...).
        fit_args: Keyword arguments for ``.fit()``.
        exponentiate: Exponentiate estimates and confidence bounds.
        label: Label overrides.
        include: Predictors to model.  Default every column but *y*.
        exclude: Predictors to leave out.
        hide_n: Hide the per-model observation count column.
        show_yesno: Variables whose no/yes levels are both printed.
        conf_level: Confidence level.
        estimate_fun: Display function for estimates.
        pvalue_fun: Display function for p-values.
        formula: Template with ``{y}`` and ``{x}`` placeholders.

    Returns:
        A ``ReportTable`` of kind ``"tbl_uvregression"``.

    Raises:
        ValueError: If *y* is not a column of *data*.
        UnknownVariableError: If a selection names an absent column.
    """
    data = _ensure_pandas_df(data)
    conf_level = resolve_option("conf_level", conf_level)
    pvalue_fun = resolve_function("pvalue_fun", pvalue_fun, style_pvalue)
    estimate_fun = resolve_function(
        "estimate_fun", estimate_fun, style_ratio if exponentiate else style_sigfig
    )
    if y not in data.columns:
        msg = f"Outcome {y!r} is not in the data. Columns: {list(data.columns)}"
        raise ValueError(msg)

    candidates = [
        VariableInfo(name=str(c), kind=infer_summary_type(data[c])) for c in data.columns if c != y
    ]
    selected = select_variables(include, candidates, "include")
    if exclude is not None:
        dropped = set(select_variables(exclude, candidates, "exclude"))
        selected = [name for name in selected if name not in dropped]
    var_info = [i for i in candidates if i.name in selected]
    labels = resolve_labels(label, var_info, defaults=dict(data.attrs.get("labels", {})))

    if not selected:
        msg = f"No predictors selected for outcome {y!r}."
        raise ValueError(msg)

    tbls: dict[str, ReportTable] = {}
    for variable in selected:
        text = formula.format(y=_formula_term(y), x=_formula_term(variable))
        model = method(text, data=data, **dict(method_args or {})).fit(**dict(fit_args or {}))
        sub = tbl_regression(
            model,
            label={variable: labels[variable]},
            exponentiate=exponentiate,
            include=variable,
            show_yesno=show_yesno,
            conf_level=conf_level,
            estimate_fun=estimate_fun,
            pvalue_fun=pvalue_fun,
        )
        sub.table_body["N"] = sub.n
        sub.table_body.loc[sub.table_body["row_type"] != "label", "N"] = float("nan")
        tbls[variable] = sub
        logger.debug("tbl_uvregression: fitted %r", text)

    body = pd.concat([t.table_body for t in tbls.values()], ignore_index=True)
    columns = [c for c in body.columns if c != "N"]
    columns.insert(columns.index("label") + 1, "N")
    body = body[columns]
    meta = pd.concat([t.meta_data for t in tbls.values()], ignore_index=True)
    header = next(iter(tbls.values())).table_header

    header = sync_table_header(body, header)
    header = set_header(header, "label", label="Characteristic")
    header = set_header(header, "N", label="N", hide=hide_n, fmt_fun=style_number)
    inputs = {
        "method": method,
        "y": y,
        "method_args": method_args,
        "fit_args": fit_args,
        "exponentiate": exponentiate,
        "label": label,
        "include": selected,
        "hide_n": hide_n,
        "conf_level": conf_level,
        "estimate_fun": estimate_fun,
        "pvalue_fun": pvalue_fun,
        "formula": formula,
    }
    tbl = ReportTable(
        kind="tbl_uvregression",
        table_body=body,
        table_header=header,
        meta_data=meta,
        inputs=inputs,
        n=len(data),
        data=data,
        tbls=tbls,
    )
    tbl.record_call("tbl_uvregression", inputs)
    return tbl
