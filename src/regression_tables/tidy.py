"""Term extraction: fitted statsmodels results to a tidy term frame.

Every supported model family has an *adapter* - a function
``(results, conf_level) -> pandas.DataFrame`` producing one row per
coefficient with the columns of :data:`TIDY_COLUMNS`, in the order the
fit reports them.  Adapters are registered against a results class and
looked up along the MRO, so subclasses (``OLSResults`` under
``RegressionResults``, ``LogitResults`` under ``DiscreteResults``)
resolve to their parent's adapter.

statsmodels hands back thin ``ResultsWrapper`` objects; the wrapped
results instance lives on ``._results`` and is what the registry is
keyed on.

Built-in adapters:

    =========================  =======================================
    results class              notes
    =========================  =======================================
    ``RegressionResults``      OLS, WLS, GLS (t statistics)
    ``GLMResults``             any family / link (z statistics)
    ``DiscreteResults``        Logit, Probit, Poisson, NegativeBinomial
    ``GEEResults``             robust covariance as fitted
    ``PHRegResults``           Cox proportional hazards (no intercept)
    ``MixedLMResults``         fixed effects only
    =========================  =======================================
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import numpy as np
import pandas as pd
from statsmodels.discrete.discrete_model import DiscreteResults, MultinomialResults
from statsmodels.duration.hazard_regression import PHRegResults
from statsmodels.genmod import families as sm_families
from statsmodels.genmod.generalized_estimating_equations import GEEResults
from statsmodels.genmod.generalized_linear_model import GLMResults
from statsmodels.regression.linear_model import RegressionResults
from statsmodels.regression.mixed_linear_model import MixedLMResults

from .errors import UnsupportedModelError

TIDY_COLUMNS = ["term", "estimate", "std.error", "statistic", "p.value", "conf.low", "conf.high"]

Tidier = Callable[[Any, float], pd.DataFrame]

_TIDIERS: dict[type, Tidier] = {}
"""Registry mapping results classes to tidy adapters."""


def unwrap(model: Any) -> Any:
    """Return the bare results instance behind a statsmodels wrapper."""
    return getattr(model, "_results", model)


def register_tidier(cls: type, tidier: Tidier) -> None:
    """Register *tidier* as the extraction adapter for *cls* and its subclasses.

    Args:
        cls: A fitted-results class (e.g. ``RegressionResults``).
        tidier: ``(results, conf_level) -> DataFrame`` with
            :data:`TIDY_COLUMNS`.

    Raises:
        TypeError: If *cls* is not a class or *tidier* is not callable.
    """
    if not isinstance(cls, type):
        msg = f"{cls!r} is not a class."
        raise TypeError(msg)
    if not callable(tidier):
        msg = f"{tidier!r} is not callable."
        raise TypeError(msg)
    _TIDIERS[cls] = tidier


def resolve_tidier(model: Any) -> Tidier:
    """Find the adapter for *model*.

    Raises:
        UnsupportedModelError: If no adapter is registered for the
            model's class or any of its bases.
    """
    results = unwrap(model)
    for klass in type(results).__mro__:
        if klass in _TIDIERS:
            return _TIDIERS[klass]
    supported = ", ".join(sorted(k.__name__ for k in _TIDIERS))
    msg = (
        f"No term extractor registered for model class {type(results).__name__!r}. "
        f"Supported classes: {supported}."
    )
    raise UnsupportedModelError(msg)


def tidy_model(model: Any, exponentiate: bool = False, conf_level: float = 0.95) -> pd.DataFrame:
    """Extract one row per model term.

    Args:
        model: Fitted statsmodels results (wrapped or bare).
        exponentiate: Exponentiate ``estimate``, ``conf.low`` and
            ``conf.high`` for every term.
        conf_level: Confidence level of the interval.

    Returns:
        DataFrame with :data:`TIDY_COLUMNS`, in the fit's term order.

    Raises:
        UnsupportedModelError: See :func:`resolve_tidier`.
    """
    tidier = resolve_tidier(model)
    tidy = tidier(unwrap(model), conf_level)
    tidy = tidy[TIDY_COLUMNS].reset_index(drop=True)
    if exponentiate:
        for column in ("estimate", "conf.low", "conf.high"):
            tidy[column] = np.exp(tidy[column].astype(float))
    return tidy


# ------------------------------------------------------------------ #
# Adapters
# ------------------------------------------------------------------ #


def _tidy_frame(
    names: list[str],
    params: Any,
    bse: Any,
    stat: Any,
    pvalues: Any,
    ci: Any,
) -> pd.DataFrame:
    ci = np.asarray(ci, dtype=float)
    return pd.DataFrame(
        {
            "term": [str(n) for n in names],
            "estimate": np.asarray(params, dtype=float),
            "std.error": np.asarray(bse, dtype=float),
            "statistic": np.asarray(stat, dtype=float),
            "p.value": np.asarray(pvalues, dtype=float),
            "conf.low": ci[:, 0],
            "conf.high": ci[:, 1],
        }
    )


def _term_names(results: Any) -> list[str]:
    params = getattr(results, "params", None)
    if isinstance(params, pd.Series):
        return list(params.index)
    return list(results.model.exog_names)


def _tidy_likelihood(results: Any, conf_level: float) -> pd.DataFrame:
    """Adapter for single-equation likelihood/least-squares results."""
    return _tidy_frame(
        _term_names(results),
        results.params,
        results.bse,
        results.tvalues,
        results.pvalues,
        results.conf_int(alpha=1 - conf_level),
    )


def _tidy_discrete(results: Any, conf_level: float) -> pd.DataFrame:
    if isinstance(results, MultinomialResults):
        msg = "Multinomial models have one coefficient set per outcome level and are not supported."
        raise UnsupportedModelError(msg)
    return _tidy_likelihood(results, conf_level)


def _tidy_mixedlm(results: Any, conf_level: float) -> pd.DataFrame:
    """Fixed effects of a linear mixed model; variance components are dropped."""
    k_fe = results.model.k_fe
    names = list(results.model.exog_names)[:k_fe]
    ci = np.asarray(results.conf_int(alpha=1 - conf_level), dtype=float)[:k_fe]
    return _tidy_frame(
        names,
        np.asarray(results.fe_params)[:k_fe],
        np.asarray(results.bse_fe)[:k_fe],
        np.asarray(results.tvalues)[:k_fe],
        np.asarray(results.pvalues)[:k_fe],
        ci,
    )


register_tidier(RegressionResults, _tidy_likelihood)
register_tidier(GLMResults, _tidy_likelihood)
register_tidier(DiscreteResults, _tidy_discrete)
register_tidier(GEEResults, _tidy_likelihood)
register_tidier(PHRegResults, _tidy_likelihood)
register_tidier(MixedLMResults, _tidy_mixedlm)


# ------------------------------------------------------------------ #
# Estimate headers
# ------------------------------------------------------------------ #


def _family_of(results: Any) -> Any:
    model = results.model
    family = getattr(model, "family", None)
    if family is not None:
        return family
    # Discrete models carry no family object; map the common ones.
    name = type(model).__name__
    if name == "Logit":
        return sm_families.Binomial()
    if name == "Poisson":
        return sm_families.Poisson()
    return None


def estimate_header(model: Any, exponentiate: bool) -> tuple[str, str | None]:
    """Return ``(header, footnote)`` for the estimate column.

    Logistic regression reports odds ratios, Poisson regression
    incidence rate ratios and Cox regression hazard ratios; other models
    report plain coefficients.

    Args:
        model: Fitted statsmodels results.
        exponentiate: Whether estimates are exponentiated.
    """
    results = unwrap(model)
    if isinstance(results, PHRegResults):
        abbrev, footnote = "HR", "HR = Hazard Ratio"
    else:
        family = _family_of(results)
        link = getattr(family, "link", None)
        if isinstance(family, sm_families.Binomial) and isinstance(link, sm_families.links.Logit):
            abbrev, footnote = "OR", "OR = Odds Ratio"
        elif isinstance(family, sm_families.Poisson) and isinstance(link, sm_families.links.Log):
            abbrev, footnote = "IRR", "IRR = Incidence Rate Ratio"
        else:
            return ("exp(Beta)" if exponentiate else "Beta"), None
    return (abbrev if exponentiate else f"log({abbrev})"), footnote
