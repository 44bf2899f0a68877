"""
Survival tables
Stanford heart transplant data (statsmodels.datasets.heart)

Demonstrates:
- ``tbl_survfit`` with Kaplan-Meier estimates at fixed times and
  survival-time quantiles
- ``add_p`` with the log-rank default and alternative weightings
- ``tbl_regression`` on a Cox proportional-hazards fit (hazard ratios)
"""

import pandas as pd
import statsmodels.api as sm
import statsmodels.formula.api as smf

from regression_tables import add_global_p, add_p, print_table, tbl_regression, tbl_survfit

# ============================================================================
# Load data
# ============================================================================

heart = sm.datasets.heart.load_pandas().data
heart["age_group"] = pd.cut(
    heart["age"], bins=[0, 40, 50, 100], labels=["<40", "40-49", "50+"], right=False
)
heart.attrs["labels"] = {"age_group": "Age Group", "age": "Age (years)"}

# ============================================================================
# Kaplan-Meier estimates
# ============================================================================

tbl_times = tbl_survfit(
    heart, time="survival", event="censors", by="age_group", times=[100, 365]
)
print_table(add_p(tbl_times), title="Survival at 100 and 365 Days (log-rank)")

tbl_quantiles = tbl_survfit(heart, time="survival", event="censors", probs=[0.5])
print_table(tbl_quantiles, title="Median Survival (days)")

tbl_weighted = add_p(
    tbl_times,
    test={"age_group": "survdiff"},
    test_args={"age_group": {"rho": 1}},
)
print_table(tbl_weighted, title="Survival by Age Group (G-rho, rho = 1)")

# ============================================================================
# Cox regression
# ============================================================================

cox_fit = smf.phreg("survival ~ age_group", data=heart, status="censors").fit()
tbl_cox = add_global_p(tbl_regression(cox_fit, exponentiate=True))
print_table(tbl_cox, title="Cox Model, Hazard Ratios")
