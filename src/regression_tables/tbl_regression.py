"""Regression model tables.

:func:`tbl_regression` runs the extraction pipeline::

    fitted model
      -> tidy_model()        one row per coefficient
      -> parse_fit()         rows regrouped by variable / level
      -> select_variables()  include / exclude / intercept
      -> resolve_labels()    display labels
      -> ReportTable         with header labels and display functions

Settings follow the session option chain (explicit argument, then
:func:`~regression_tables.set_option`, then environment, then the
built-in default) and are resolved once, on entry.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

import pandas as pd

from ._config import resolve_function, resolve_option
from .parse import INTERCEPT_LABEL, model_frame, parse_fit
from .select import Selection, VariableInfo, resolve_labels, select_variables
from .style import style_percent, style_pvalue, style_ratio, style_sigfig
from .table import ReportTable, make_table_header, set_header
from .tidy import estimate_header, tidy_model, unwrap

logger = logging.getLogger(__name__)


def default_labels(model: Any, var_info: list[VariableInfo]) -> dict[str, str]:
    """Labels from ``data.attrs["labels"]``, composed for interactions."""
    frame = model_frame(model)
    attrs = dict(frame.attrs.get("labels", {})) if frame is not None else {}
    labels: dict[str, str] = {}
    for info in var_info:
        if info.kind == "intercept":
            labels[info.name] = INTERCEPT_LABEL
        elif info.kind == "interaction":
            labels[info.name] = " * ".join(attrs.get(p, p) for p in info.name.split(":"))
        else:
            labels[info.name] = attrs.get(info.name, info.name)
    return labels


def _model_n(model: Any) -> int | None:
    nobs = getattr(unwrap(model), "nobs", None)
    return int(nobs) if nobs is not None else None


def apply_labels(body: pd.DataFrame, labels: Mapping[str, str]) -> pd.DataFrame:
    """Write display labels into the ``label`` rows of *body*."""
    body = body.copy()
    is_label = body["row_type"] == "label"
    body.loc[is_label, "label"] = body.loc[is_label, "variable"].map(labels)
    return body


def meta_from_info(var_info: list[VariableInfo], labels: Mapping[str, str]) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "variable": [i.name for i in var_info],
            "var_type": [i.kind for i in var_info],
            "var_label": [labels.get(i.name, i.name) for i in var_info],
            "reference_level": [i.reference_level for i in var_info],
        }
    )


def regression_header(
    body: pd.DataFrame,
    model: Any,
    exponentiate: bool,
    conf_level: float,
    estimate_fun: Callable[..., Any],
    pvalue_fun: Callable[..., Any],
) -> pd.DataFrame:
    """Header for a regression body: labels, visibility, display functions."""
    header = make_table_header(body.columns)
    est_label, footnote = estimate_header(model, exponentiate)
    ci_label = f"{style_percent(conf_level, symbol=True)} CI"
    header = set_header(header, "label", label="Characteristic", hide=False)
    header = set_header(header, "estimate", label=est_label, hide=False, fmt_fun=estimate_fun,
                        footnote_abbrev=footnote)
    header = set_header(header, "conf.low", label=ci_label, hide=False, fmt_fun=estimate_fun,
                        footnote_abbrev="CI = Confidence Interval")
    header = set_header(header, "conf.high", fmt_fun=estimate_fun)
    header = set_header(header, "p.value", label="p-value", hide=False, fmt_fun=pvalue_fun)
    return header


def tbl_regression(
    x: Any,
    label: Mapping[str, str] | Iterable[Any] | None = None,
    exponentiate: bool = False,
    include: Selection = None,
    exclude: Selection = None,
    show_yesno: Iterable[str] | None = None,
    conf_level: float | None = None,
    intercept: bool = False,
    estimate_fun: Callable[..., Any] | None = None,
    pvalue_fun: Callable[..., Any] | None = None,
    show_reference: bool = True,
) -> ReportTable:
    """Display regression model results in a table.

    Args:
        x: Fitted statsmodels results (OLS, GLM, Logit, Poisson, GEE,
            PHReg, MixedLM, ...).  Formula-built models are mapped back
            to their source variables; array-built models list raw terms.
        label: Label overrides, ``{"age": "Age, yrs"}`` or ordered
            ``[(selection, label), ...]`` pairs (later pairs win).
        exponentiate: Exponentiate estimates and confidence bounds.
        include: Variables to keep (names or selectors).  Default all.
        exclude: Variables to drop.
        show_yesno: Variables whose no/yes levels are both printed.
        conf_level: Confidence level, strictly between 0 and 1.
            Default from the ``conf_level`` option (0.95).
        intercept: Show the intercept row.
        estimate_fun: Display function for estimates and bounds.
            Defaults to :func:`style_ratio` when exponentiated, else
            :func:`style_sigfig`.
        pvalue_fun: Display function for p-values.  Default
            :func:`style_pvalue`.
        show_reference: Show the blank reference-level row of
            categorical variables.

    Returns:
        A ``ReportTable`` of kind ``"tbl_regression"``.

    Raises:
        UnsupportedModelError: If the model class has no extractor.
        VariableMappingError: If a term cannot be placed.
        UnknownVariableError: If ``include``/``exclude``/``label``
            names an absent variable.
    """
    conf_level = resolve_option("conf_level", conf_level)
    pvalue_fun = resolve_function("pvalue_fun", pvalue_fun, style_pvalue)
    estimate_fun = resolve_function(
        "estimate_fun", estimate_fun, style_ratio if exponentiate else style_sigfig
    )
    inputs = {
        "x": x,
        "label": label,
        "exponentiate": exponentiate,
        "include": include,
        "exclude": exclude,
        "show_yesno": show_yesno,
        "conf_level": conf_level,
        "intercept": intercept,
        "estimate_fun": estimate_fun,
        "pvalue_fun": pvalue_fun,
        "show_reference": show_reference,
    }

    tidy = tidy_model(x, exponentiate=exponentiate, conf_level=conf_level)
    body, var_info = parse_fit(x, tidy, show_yesno=show_yesno or (), show_reference=show_reference)

    keep = select_variables(include, var_info, arg_name="include")
    drop = set(select_variables(exclude, var_info, arg_name="exclude")) if exclude is not None else set()
    if not intercept:
        drop |= {i.name for i in var_info if i.kind == "intercept"}
    keep = [name for name in keep if name not in drop]
    var_info = [i for i in var_info if i.name in keep]
    body = body[body["variable"].isin(keep)].reset_index(drop=True)

    labels = resolve_labels(label, var_info, defaults=default_labels(x, var_info))
    body = apply_labels(body, labels)
    n = _model_n(x)

    tbl = ReportTable(
        kind="tbl_regression",
        table_body=body,
        table_header=regression_header(
            body, x, exponentiate, conf_level, estimate_fun, pvalue_fun
        ),
        meta_data=meta_from_info(var_info, labels),
        inputs=inputs,
        n=n,
        model_obj=x,
    )
    tbl.record_call("tbl_regression", inputs)
    logger.debug("tbl_regression: %d variables, %d rows", len(var_info), len(body))
    return tbl
