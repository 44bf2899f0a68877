"""Global (omnibus) p-values for regression tables.

A categorical variable spans several design-matrix columns and so gets
one p-value per level.  :func:`add_global_p` replaces them with a
single joint test per variable, comparing the model with and without
all of the variable's columns:

* type ``"III"`` (default): every other term stays in the model.
  Linear models get the Wald F test from ``results.wald_test``;
  likelihood models (GLM, discrete, Cox) a likelihood-ratio test
  against the refitted reduced model; anything else a Wald chi-square.
* type ``"II"``: terms containing the variable (its interactions) are
  left out of both models.  Linear models use
  ``statsmodels.stats.anova.anova_lm(typ=2)``, likelihood models the
  same likelihood-ratio comparison.

Merge rule: the global p-value is coalesced into the variable's
``label`` row (it wins over a value already there, a missing global
value leaves the row as it was).  With ``keep=False`` the variable's
``level`` rows lose their p-values, leaving one p-value per variable.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.discrete.discrete_model import DiscreteResults
from statsmodels.duration.hazard_regression import PHRegResults
from statsmodels.genmod.generalized_estimating_equations import GEEResults
from statsmodels.genmod.generalized_linear_model import GLMResults
from statsmodels.regression.linear_model import RegressionResults
from statsmodels.stats.anova import anova_lm

from ._config import resolve_function, resolve_option
from .errors import OmnibusTestError
from .parse import factor_variable, model_frame, model_spec
from .select import Selection, select_variables
from .style import style_pvalue
from .table import ReportTable, set_header, sync_table_header, variable_infos
from .tidy import unwrap

logger = logging.getLogger(__name__)

LIKELIHOOD_RESULTS = (GLMResults, DiscreteResults, PHRegResults)

# formula bookkeeping passed to the model by from_formula; not valid for a reduced design
_FORMULA_KEYS = ("formula", "model_spec", "design_info", "missing_idx")


@dataclass(frozen=True)
class GlobalPResult:
    """Omnibus p-value of one variable."""

    variable: str
    p_value_global: float
    method_label: str = ""


def _param_names(model: Any) -> list[str]:
    params = getattr(model, "params", None)
    if isinstance(params, pd.Series):
        return [str(p) for p in params.index]
    results = unwrap(model)
    names = [str(n) for n in results.model.exog_names]
    # variance parameters (mixed models) follow the fixed effects
    return names + [f"_extra{i}" for i in range(len(np.asarray(results.params)) - len(names))]


def _term_columns(model: Any, terms: list[str], variable: str) -> list[int]:
    names = _param_names(model)
    missing = [t for t in terms if t not in names]
    if not terms or missing:
        msg = f"No model coefficients found for {variable!r} (terms: {missing or terms})."
        raise OmnibusTestError(msg)
    return [names.index(t) for t in terms]


def wald_global_p(model: Any, terms: list[str], variable: str) -> GlobalPResult:
    """Joint Wald test that the coefficients of *terms* are all zero.

    Raises:
        OmnibusTestError: If a term is not a model parameter or the
            test cannot be computed.
    """
    columns = _term_columns(model, terms, variable)
    restriction = np.zeros((len(columns), len(_param_names(model))))
    for i, column in enumerate(columns):
        restriction[i, column] = 1.0
    results = unwrap(model)
    use_f = isinstance(results, RegressionResults)
    try:
        test = results.wald_test(restriction, use_f=use_f, scalar=True)
    except (ValueError, np.linalg.LinAlgError) as exc:
        msg = f"Wald test for {variable!r} failed: {exc}"
        raise OmnibusTestError(msg) from exc
    label = "Wald F test" if use_f else "Wald chi-square test"
    return GlobalPResult(variable, float(test.pvalue), label)


def refit_loglike(results: Any, keep: list[int]) -> float:
    """Log-likelihood of *results*' model refitted on the exog columns *keep*.

    The refit reuses the fitted model's rows and its extra settings
    (family, offset, exposure, weights, status, ties).  With no columns
    left the model has no free coefficients and its log-likelihood is
    the full model's at zero.
    """
    model = results.model
    n_columns = model.exog.shape[1]
    if len(keep) == n_columns:
        return float(results.llf)
    if not keep:
        return float(model.loglike(np.zeros(n_columns)))
    kwds = {k: v for k, v in model._get_init_kwds().items() if k not in _FORMULA_KEYS}
    if hasattr(model, "ties"):
        kwds["ties"] = model.ties
    reduced = type(model)(model.endog, model.exog[:, keep], **kwds)
    return float(reduced.fit(disp=0).llf)


def lrt_global_p(
    model: Any,
    terms: list[str],
    variable: str,
    exclude: list[int] | None = None,
    label: str = "Likelihood-ratio test",
) -> GlobalPResult:
    """Likelihood-ratio test of the model with vs. without *terms*.

    Args:
        model: Fitted GLM, discrete or Cox results.
        terms: Coefficient names of the variable.
        variable: Variable name, for messages.
        exclude: Exog columns left out of both models (type II).
        label: Method label for the result.

    Raises:
        OmnibusTestError: If a term is not a model parameter or a model
            cannot be refitted.
    """
    results = unwrap(model)
    columns = _term_columns(model, terms, variable)
    dropped = set(exclude or ()) - set(columns)
    base = [i for i in range(results.model.exog.shape[1]) if i not in dropped]
    reduced = [i for i in base if i not in columns]
    try:
        llf_full = refit_loglike(results, base)
        llf_reduced = refit_loglike(results, reduced)
    except (ValueError, np.linalg.LinAlgError) as exc:
        msg = f"Likelihood-ratio test for {variable!r} failed: {exc}"
        raise OmnibusTestError(msg) from exc
    statistic = max(2 * (llf_full - llf_reduced), 0.0)
    return GlobalPResult(variable, float(stats.chi2.sf(statistic, len(columns))), label)


def _anova_term_names(model: Any) -> dict[str, str]:
    spec = model_spec(model)
    if spec is None:
        return {}
    frame = model_frame(model)
    columns = set(frame.columns) if frame is not None else None
    lookup = {}
    for term in spec.terms:
        if term.factors:
            variable = ":".join(factor_variable(f.name(), columns) for f in term.factors)
            lookup.setdefault(variable, term.name())
    return lookup


def containing_columns(model: Any, variable: str) -> list[int]:
    """Exog columns of the higher-order terms that contain *variable*."""
    spec = model_spec(model)
    if spec is None:
        return []
    frame = model_frame(model)
    columns = set(frame.columns) if frame is not None else None
    parts = set(variable.split(":"))
    out: list[int] = []
    for term, span in spec.term_slices.items():
        names = {factor_variable(f.name(), columns) for f in term.factors}
        if parts < names:
            out.extend(range(span.start, span.stop))
    return out


def anova_global_p(model: Any, variable: str, table: pd.DataFrame | None = None) -> GlobalPResult:
    """Type II ANOVA p-value of *variable* from ``anova_lm(typ=2)``.

    Raises:
        OmnibusTestError: If the model is not an OLS formula fit or the
            variable has no ANOVA row.
    """
    results = unwrap(model)
    if not isinstance(results, RegressionResults) or model_spec(model) is None:
        msg = (
            f"Type II ANOVA needs a formula-built linear model; got "
            f"{results.__class__.__name__} for {variable!r}."
        )
        raise OmnibusTestError(msg)
    if table is None:
        table = anova_lm(model, typ=2)
    row = _anova_term_names(model).get(variable, variable)
    if row not in table.index:
        msg = f"ANOVA table has no row for {variable!r}. Rows: {list(table.index)}"
        raise OmnibusTestError(msg)
    return GlobalPResult(variable, float(table.at[row, "PR(>F)"]), "Type II ANOVA F test")


def omnibus_p(
    model: Any,
    terms: list[str],
    variable: str,
    type: str = "III",  # noqa: A002
    anova_table: pd.DataFrame | None = None,
) -> GlobalPResult:
    """Pick and run the omnibus test for *variable* in *model*.

    Raises:
        OmnibusTestError: If type ``"II"`` is asked of a model that is
            neither linear nor likelihood based, or the test fails.
    """
    results = unwrap(model)
    if isinstance(results, RegressionResults):
        if type == "II":
            return anova_global_p(model, variable, anova_table)
        return wald_global_p(model, terms, variable)
    if isinstance(results, LIKELIHOOD_RESULTS) and not isinstance(results, GEEResults):
        if type == "II":
            return lrt_global_p(
                model,
                terms,
                variable,
                exclude=containing_columns(model, variable),
                label="Type II likelihood-ratio test",
            )
        return lrt_global_p(model, terms, variable)
    if type == "II":
        msg = (
            f"Type II tests need a linear or likelihood-based model; got "
            f"{results.__class__.__name__} for {variable!r}."
        )
        raise OmnibusTestError(msg)
    return wald_global_p(model, terms, variable)


def merge_global_p(
    body: pd.DataFrame, results: Mapping[str, GlobalPResult], keep: bool
) -> pd.DataFrame:
    """Coalesce global p-values into the label rows of *body*.

    A missing global value leaves the variable's rows as they were.
    """
    body = body.copy()
    if "p.value" not in body.columns:
        body["p.value"] = np.nan
    body["p.value"] = body["p.value"].astype(float)
    for variable, result in results.items():
        if np.isnan(result.p_value_global):
            continue
        rows = body["variable"] == variable
        body.loc[rows & (body["row_type"] == "label"), "p.value"] = result.p_value_global
        if not keep:
            body.loc[rows & (body["row_type"] == "level"), "p.value"] = np.nan
    return body


def _model_for(x: ReportTable, variable: str) -> Any:
    if x.kind == "tbl_uvregression":
        return x.tbls[variable].model_obj
    return x.model_obj


def add_global_p(
    x: ReportTable,
    include: Selection = None,
    type: str | None = None,  # noqa: A002
    keep: bool = False,
    quiet: bool | None = None,
    pvalue_fun: Callable[..., Any] | None = None,
) -> ReportTable:
    """Add one global p-value per variable to a regression table.

    Args:
        x: Table from :func:`tbl_regression` or :func:`tbl_uvregression`.
        include: Variables to test.  Default all.
        type: ``"III"`` (each variable against the full model) or
            ``"II"`` (interactions containing the variable left out).
            Default from the ``global_p_type`` option.
        keep: Keep the per-level p-values of the tested variables.
        quiet: Suppress the informational log message.
        pvalue_fun: Display function for the p-value column, used when
            the table does not have one yet.

    Returns:
        A new table; *x* is left untouched.

    Raises:
        TypeError: If *x* is not a regression table.
        UnknownVariableError: If *include* names an absent variable.
    """
    quiet = resolve_option("quiet", quiet)
    type = resolve_option("global_p_type", type)  # noqa: A001
    if x.kind not in ("tbl_regression", "tbl_uvregression"):
        msg = f"add_global_p() works on regression tables, not {x.kind!r}."
        raise TypeError(msg)

    include = select_variables(include, variable_infos(x), "include")
    if not include:
        if not quiet:
            logger.info("add_global_p: no variables selected; no global p-values were added.")
        return x.copy()

    out = x.copy()
    body = out.table_body
    anova_tables: dict[int, pd.DataFrame] = {}
    results: dict[str, GlobalPResult] = {}
    for variable in include:
        model = _model_for(x, variable)
        terms = body.loc[body["variable"] == variable, "term"].dropna().tolist()
        try:
            table = None
            if type == "II" and isinstance(unwrap(model), RegressionResults):
                key = id(model)
                if key not in anova_tables:
                    anova_tables[key] = anova_lm(model, typ=2)
                table = anova_tables[key]
            results[variable] = omnibus_p(model, terms, variable, type, table)
        except Exception as exc:  # noqa: BLE001
            out.record_failure(variable, "add_global_p", exc)
    if not quiet and results:
        used = sorted({r.method_label for r in results.values()})
        logger.info(
            "add_global_p: global p-values for %s calculated with: %s",
            list(results), "; ".join(used),
        )

    body = merge_global_p(body, results, keep)
    out.table_body = body

    meta = out.meta_data
    meta["p.value_global"] = meta["variable"].map(
        {v: r.p_value_global for v, r in results.items()}
    ).astype(float)
    meta["global_test"] = meta["variable"].map({v: r.method_label for v, r in results.items()})
    out.meta_data = meta

    header = sync_table_header(body, out.table_header)
    fmt = header.loc[header["column"] == "p.value", "fmt_fun"].iloc[0]
    if fmt is None:
        fmt = resolve_function("pvalue_fun", pvalue_fun, style_pvalue)
    out.table_header = set_header(header, "p.value", label="p-value", hide=False, fmt_fun=fmt)
    out.record_call(
        "add_global_p", {"include": include, "type": type, "keep": keep, "quiet": quiet}
    )
    return out
