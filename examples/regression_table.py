"""
Regression tables from statsmodels fits
Fair (1978) extramarital affairs survey (statsmodels.datasets.fair)

Demonstrates:
- ``tbl_regression`` on OLS and logistic fits (exponentiated odds ratios)
- Categorical predictors expanded into label + level rows with a
  reference row
- ``add_global_p`` with likelihood-ratio, Wald and type II ANOVA omnibus tests
- ``tbl_uvregression``: one univariate model per predictor
- ``modify_header`` / ``as_dataframe`` for handing the cells elsewhere
"""

import statsmodels.api as sm
import statsmodels.formula.api as smf

from regression_tables import (
    add_global_p,
    print_table,
    set_option,
    tbl_regression,
    tbl_uvregression,
)

# ============================================================================
# Load data
# ============================================================================

fair = sm.datasets.fair.load_pandas().data
fair["had_affair"] = (fair["affairs"] > 0).astype(int)
fair["religious"] = fair["religious"].astype(int).astype(str)
fair["rate_marriage"] = fair["rate_marriage"].astype(int).astype(str)
fair.attrs["labels"] = {
    "age": "Age (years)",
    "yrs_married": "Years Married",
    "religious": "Religiousness (1-4)",
    "rate_marriage": "Marriage Rating (1-5)",
    "had_affair": "Any Affair",
}

# ============================================================================
# Linear model
# ============================================================================

ols_fit = smf.ols("affairs ~ age + yrs_married + religious", data=fair).fit()
tbl_ols = tbl_regression(ols_fit)
print_table(tbl_ols, title="Time Spent in Affairs (OLS)")

tbl_ols_ii = add_global_p(tbl_ols, type="II")
print_table(tbl_ols_ii, title="OLS with Type II ANOVA p-values")

# ============================================================================
# Logistic model, odds ratios
# ============================================================================

logit_fit = smf.logit(
    "had_affair ~ age + yrs_married + religious + rate_marriage", data=fair
).fit(disp=0)
tbl_logit = tbl_regression(logit_fit, exponentiate=True, intercept=False)
assert tbl_logit.table_header.set_index("column").at["estimate", "label"] == "OR"
print_table(tbl_logit, title="Any Affair (logistic)")

# Likelihood-ratio p-value per variable; level p-values dropped (keep=False).
tbl_logit_global = add_global_p(tbl_logit)
print_table(tbl_logit_global, title="Any Affair, global p-values")

# ============================================================================
# Univariate screening
# ============================================================================

set_option("conf_level", 0.90)
tbl_uv = tbl_uvregression(
    fair,
    method=smf.logit,
    y="had_affair",
    include=["age", "yrs_married", "religious", "rate_marriage"],
    fit_args={"disp": 0},
    exponentiate=True,
)
tbl_uv = add_global_p(tbl_uv).modify_header(label="Predictor")
print_table(tbl_uv, title="Univariate Logistic Models (90% CI)")
print(tbl_uv.as_dataframe().to_string(index=False))
