"""regression_tables - Publication-ready tables from statsmodels fits and data frames.

Builds regression tables (one row per variable and level, with
reference rows, labels, estimates, confidence intervals and p-values),
univariate regression tables, descriptive summaries and Kaplan-Meier
survival summaries, then adds per-variable test p-values or global
(omnibus) p-values and formats everything consistently.

Public API:
    .. autosummary::
        tbl_regression
        tbl_uvregression
        tbl_summary
        tbl_survfit
        add_p
        add_global_p
        ReportTable
        tidy_model
        register_tidier
        parse_fit
        register_test
        available_tests
        TestResult
        GlobalPResult
        style_number
        style_sigfig
        style_ratio
        style_pvalue
        style_percent
        everything
        all_continuous
        all_categorical
        all_dichotomous
        all_interaction
        contains
        starts_with
        ends_with
        matches
        get_option
        set_option
        reset_options
        print_table
"""

from ._config import get_option, reset_options, set_option
from .add_p import add_p
from .display import format_table, print_table
from .errors import (
    FormatTypeError,
    InvalidTestResultError,
    OmnibusTestError,
    PairingError,
    RegressionTablesError,
    TestArityError,
    TestExecutionError,
    UnknownVariableError,
    UnsupportedModelError,
    VariableMappingError,
)
from .global_p import GlobalPResult, add_global_p
from .parse import parse_fit
from .select import (
    VariableInfo,
    all_categorical,
    all_continuous,
    all_dichotomous,
    all_interaction,
    contains,
    ends_with,
    everything,
    matches,
    starts_with,
)
from .stat_tests import TestResult, available_tests, register_test
from .style import style_number, style_percent, style_pvalue, style_ratio, style_sigfig
from .table import ReportTable
from .tbl_regression import tbl_regression
from .tbl_summary import tbl_summary
from .tbl_survfit import tbl_survfit
from .tbl_uvregression import tbl_uvregression
from .tidy import register_tidier, tidy_model

__version__ = "0.1.0"

__all__ = [
    "tbl_regression",
    "tbl_uvregression",
    "tbl_summary",
    "tbl_survfit",
    "add_p",
    "add_global_p",
    "ReportTable",
    "VariableInfo",
    "TestResult",
    "GlobalPResult",
    "tidy_model",
    "register_tidier",
    "parse_fit",
    "register_test",
    "available_tests",
    "style_number",
    "style_sigfig",
    "style_ratio",
    "style_pvalue",
    "style_percent",
    "everything",
    "all_continuous",
    "all_categorical",
    "all_dichotomous",
    "all_interaction",
    "contains",
    "starts_with",
    "ends_with",
    "matches",
    "get_option",
    "set_option",
    "reset_options",
    "format_table",
    "print_table",
    "RegressionTablesError",
    "UnsupportedModelError",
    "VariableMappingError",
    "UnknownVariableError",
    "FormatTypeError",
    "TestExecutionError",
    "InvalidTestResultError",
    "TestArityError",
    "PairingError",
    "OmnibusTestError",
]
