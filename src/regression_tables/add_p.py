"""Per-variable p-values for summary and survival tables.

:func:`add_p` resolves one test per selected variable, runs it on
that variable's complete cases and merges the p-value into the
variable's ``label`` row and into ``meta_data``.

A failing test never aborts the table: the variable's p-value is left
empty, the failure is recorded in ``tbl.diagnostics`` and a
``UserWarning`` is emitted.  Misconfiguration (an unknown test name,
an unknown variable, a missing ``by`` column) is raised immediately.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable, Mapping
from dataclasses import replace
from numbers import Real
from typing import Any

import numpy as np
import pandas as pd

from ._config import resolve_function, resolve_option
from .errors import InvalidTestResultError
from .select import Selection, resolve_by_variable, select_variables
from .stat_tests import StatTest, TestResult, default_test, resolve_test
from .style import style_pvalue
from .table import ReportTable, set_header, sync_table_header, variable_infos

logger = logging.getLogger(__name__)

TestSpec = Mapping[str, Any] | Iterable[tuple[Selection, Any]] | None


def _as_pvalue(value: Any, variable: str, test_id: str) -> float:
    if isinstance(value, (bool, np.bool_)) or not isinstance(value, (Real, np.number, np.ndarray)):
        msg = (
            f"Test {test_id!r} for {variable!r} returned {type(value).__name__} "
            f"({value!r}); expected a single numeric p-value."
        )
        raise InvalidTestResultError(msg)
    if np.ndim(value) != 0:
        msg = (
            f"Test {test_id!r} for {variable!r} returned {np.size(value)} values; "
            "expected a single p-value."
        )
        raise InvalidTestResultError(msg)
    p = float(value)
    if not math.isnan(p) and not 0 <= p <= 1:
        msg = f"Test {test_id!r} for {variable!r} returned p = {p}, outside [0, 1]."
        raise InvalidTestResultError(msg)
    return p


def coerce_result(raw: Any, variable: str, test: StatTest) -> TestResult:
    """Validate a test's return value and convert it to a :class:`TestResult`.

    Accepted shapes: a bare number, a mapping with ``"p"`` (and
    optionally ``"test"``), or a :class:`TestResult`.

    Raises:
        InvalidTestResultError: For any other shape, non-numeric or
            multiple p-values, or a p-value outside ``[0, 1]``.
    """
    if isinstance(raw, TestResult):
        p = _as_pvalue(raw.p_value, variable, test.test_id)
        return replace(
            raw,
            variable=variable,
            p_value=p,
            method_label=raw.method_label or test.label,
            test_id=raw.test_id or test.test_id,
        )
    label = test.label
    if isinstance(raw, Mapping):
        if "p" not in raw:
            msg = (
                f"Test {test.test_id!r} for {variable!r} returned a mapping without "
                f"a 'p' entry (keys: {sorted(raw)})."
            )
            raise InvalidTestResultError(msg)
        label = raw.get("test") or label
        raw = raw["p"]
    return TestResult(variable, _as_pvalue(raw, variable, test.test_id), str(label), test.test_id)


def _resolve_tests(test: TestSpec, var_info: list[Any]) -> dict[str, StatTest]:
    # Unknown test names fail here, before any test runs.
    return {
        name: resolve_test(value)
        for name, value in resolve_by_variable(test, var_info, "test").items()
    }


def _resolve_test_args(test_args: TestSpec, var_info: list[Any]) -> dict[str, dict[str, Any]]:
    resolved = resolve_by_variable(test_args, var_info, "test_args")
    for name, value in resolved.items():
        if not isinstance(value, Mapping):
            msg = f"'test_args' for {name!r} must be a mapping, got {type(value).__name__}."
            raise TypeError(msg)
    return {name: dict(value) for name, value in resolved.items()}


def _check_column(data: pd.DataFrame, column: str, arg_name: str) -> None:
    if column not in data.columns:
        msg = f"'{arg_name}' column {column!r} is not in the data. Columns: {list(data.columns)}"
        raise ValueError(msg)


def add_p(
    x: ReportTable,
    test: TestSpec = None,
    pvalue_fun: Callable[..., Any] | None = None,
    group: str | None = None,
    include: Selection = None,
    exclude: Selection = None,
    test_args: TestSpec = None,
    continuous_test: str | None = None,
    quiet: bool | None = None,
) -> ReportTable:
    """Add a p-value column comparing the groups of a summary table.

    Args:
        x: Table from :func:`tbl_summary` (built with ``by=``) or
            :func:`tbl_survfit` (built with stratifying variables).
        test: Tests per variable, ``{"age": "t.test"}`` or ordered
            ``[(selection, test), ...]`` pairs (later pairs win).  A
            test is a registered identifier or a function following the
            contract in :mod:`regression_tables.stat_tests`.
        pvalue_fun: Display function for the p-value column.
        group: Column identifying pairs (paired tests) or clusters
            (``lme4``).
        include: Variables to test.  Default all.
        exclude: Variables not to test.
        test_args: Extra keyword arguments per variable, in the same
            shape as *test*.
        continuous_test: ``"nonparametric"`` or ``"parametric"`` choice
            of default test for continuous variables.
        quiet: Suppress the informational log message.

    Returns:
        A new table; *x* is left untouched.

    Raises:
        TypeError: If *x* is not a summary or survival table.
        ValueError: If a test name is unknown, or *x* has nothing to
            compare.
        UnknownVariableError: If a selection names an absent variable.
    """
    quiet = resolve_option("quiet", quiet)
    continuous_test = resolve_option("continuous_test", continuous_test)
    pvalue_fun = resolve_function("pvalue_fun", pvalue_fun, style_pvalue)

    if x.kind not in ("tbl_summary", "tbl_survfit"):
        msg = (
            f"add_p() works on summary and survival tables, not {x.kind!r}; "
            "use add_global_p() for regression tables."
        )
        raise TypeError(msg)
    survival = x.kind == "tbl_survfit"
    data = x.data
    if survival:
        if not x.inputs.get("by"):
            msg = "add_p() compares strata; this survival table has no stratifying variable."
            raise ValueError(msg)
    elif x.by is None:
        msg = "add_p() compares groups; build the summary table with by=."
        raise ValueError(msg)
    if group is not None:
        _check_column(data, group, "group")
        if group == x.by:
            msg = f"'group' and 'by' must be different columns, both are {group!r}."
            raise ValueError(msg)

    var_info = variable_infos(x)
    selected = select_variables(include, var_info, "include")
    if exclude is not None:
        dropped = set(select_variables(exclude, var_info, "exclude"))
        selected = [name for name in selected if name not in dropped]
    if group is not None and group in selected and not survival:
        selected.remove(group)
    tests = _resolve_tests(test, var_info)
    args = _resolve_test_args(test_args, var_info)
    kinds = {info.name: info.kind for info in var_info}

    out = x.copy()
    results: dict[str, TestResult] = {}
    for variable in selected:
        extra = dict(args.get(variable, {}))
        if survival:
            columns = [variable, x.inputs["time"], x.inputs["event"]]
            extra.setdefault("time", x.inputs["time"])
            extra.setdefault("event", x.inputs["event"])
        else:
            columns = [variable, x.by] + ([group] if group is not None else [])
        frame = data[list(dict.fromkeys(columns))].dropna()

        try:
            if variable in tests:
                entry = tests[variable]
            elif survival:
                entry = resolve_test("logrank")
            else:
                entry = resolve_test(
                    default_test(frame, variable, x.by, kinds[variable], group, continuous_test)
                )
            raw = entry.fun(frame, variable, None if survival else x.by, group=group, **extra)
            results[variable] = coerce_result(raw, variable, entry)
        except Exception as exc:  # noqa: BLE001
            # TestExecutionError subclasses and anything raised inside the test
            out.record_failure(variable, "add_p", exc)

    out = merge_p_values(out, results, pvalue_fun)
    used = sorted({r.method_label for r in results.values()})
    if not quiet and used:
        logger.info("add_p: tests used: %s", "; ".join(used))
    out.record_call(
        "add_p",
        {
            "test": test,
            "pvalue_fun": pvalue_fun,
            "group": group,
            "include": selected,
            "test_args": test_args,
            "continuous_test": continuous_test,
            "quiet": quiet,
        },
    )
    return out


def merge_p_values(
    tbl: ReportTable,
    results: Mapping[str, TestResult],
    pvalue_fun: Callable[..., Any],
) -> ReportTable:
    """Write test results into *tbl*'s label rows, ``meta_data`` and header.

    Modifies and returns *tbl*; callers pass a copy.
    """
    body = tbl.table_body
    if "p.value" not in body.columns:
        body["p.value"] = np.nan
    body["p.value"] = body["p.value"].astype(float)
    for variable, result in results.items():
        at_label = (body["variable"] == variable) & (body["row_type"] == "label")
        body.loc[at_label, "p.value"] = result.p_value

    meta = tbl.meta_data
    meta["p.value"] = meta["variable"].map({v: r.p_value for v, r in results.items()}).astype(float)
    meta["test_name"] = meta["variable"].map({v: r.test_id for v, r in results.items()})
    meta["test_result"] = meta["variable"].map({v: r.method_label for v, r in results.items()})
    tbl.table_body = body
    tbl.meta_data = meta

    labels = list(dict.fromkeys(r.method_label for r in results.values() if r.method_label))
    header = sync_table_header(body, tbl.table_header)
    tbl.table_header = set_header(
        header,
        "p.value",
        label="p-value",
        hide=False,
        fmt_fun=pvalue_fun,
        footnote="; ".join(labels) or None,
    )
    return tbl
