"""
Descriptive summary tables with group comparisons
Fair (1978) extramarital affairs survey (statsmodels.datasets.fair)

Demonstrates:
- ``tbl_summary`` with type inference (continuous / categorical /
  dichotomous) and ``by=`` grouping
- Custom statistics, digits and labels
- ``add_p`` with default tests, explicit tests and a custom test function
"""

import numpy as np
import statsmodels.api as sm
from scipy import stats

from regression_tables import (
    add_p,
    all_continuous,
    print_table,
    tbl_summary,
)

# ============================================================================
# Load data
# ============================================================================

fair = sm.datasets.fair.load_pandas().data
fair["had_affair"] = np.where(fair["affairs"] > 0, "Yes", "No")
fair["children_any"] = np.where(fair["children"] > 0, "yes", "no")
fair["religious"] = fair["religious"].astype(int)

variables = ["age", "yrs_married", "religious", "children_any", "had_affair"]

# ============================================================================
# Overall summary
# ============================================================================

tbl_overall = tbl_summary(fair, include=variables)
print_table(tbl_overall, title="Survey Respondents")

# ============================================================================
# Grouped summary with default tests
# ============================================================================

tbl_by = tbl_summary(
    fair,
    by="had_affair",
    include=variables,
    label={"yrs_married": "Years Married", "children_any": "Any Children"},
    statistic=[(all_continuous(), "{mean} ({sd})")],
    digits={"age": 1},
)
print_table(add_p(tbl_by), title="Respondents by Affair Status (default tests)")

# ============================================================================
# Explicit and custom tests
# ============================================================================


def ks_test(data, variable, by, group=None):
    """Two-sample Kolmogorov-Smirnov test."""
    a, b = (data.loc[data[by] == level, variable] for level in sorted(data[by].unique()))
    result = stats.ks_2samp(a, b)
    return {"p": result.pvalue, "test": "Kolmogorov-Smirnov test"}


tbl_tests = add_p(
    tbl_by,
    test={"age": "t.test", "yrs_married": ks_test, "religious": "kruskal.test"},
    test_args={"age": {"equal_var": True}},
)
print_table(tbl_tests, title="Respondents by Affair Status (chosen tests)")
