"""Variable mapping: tidy model terms to table rows.

The fit reports one coefficient per design-matrix *column*; a
publication table is organised by source *variable*.  This module uses
the patsy design information attached to formula-built statsmodels
models (``model.data.model_spec``, or ``model.data.design_info`` on
older statsmodels releases) to regroup the columns:

* a numeric factor becomes a single ``label`` row carrying its
  statistics;
* a categorical factor becomes a ``label`` header row followed by one
  ``level`` row per stored level, in level order, with the reference
  level present but blank (``is_reference=True``);
* a two-level no/yes factor with "no" as reference collapses to one
  row carrying the "yes" estimate (unless listed in ``show_yesno``);
* interaction terms become compound variables named ``"a:b"``.

Models built from arrays carry no design information; every term is
then its own continuous variable named by the raw term string.
"""

from __future__ import annotations

import re
from collections.abc import Collection
from typing import Any

import numpy as np
import pandas as pd
from patsy import DesignInfo

from .errors import VariableMappingError
from .select import VariableInfo
from .tidy import TIDY_COLUMNS, unwrap

INTERCEPT_TERMS = ("Intercept", "const")
INTERCEPT_LABEL = "(Intercept)"

BODY_COLUMNS = [
    "variable", "var_type", "row_type", "label", "is_reference",
    "term", "estimate", "std.error", "statistic", "conf.low", "conf.high", "p.value",
]

_C_WRAPPER = re.compile(r"^C\(\s*(.+?)\s*(?:,.*)?\)$", re.S)
_Q_WRAPPER = re.compile(r"""^Q\(\s*(['"])(.+)\1\s*\)$""")
_CONTRAST_PREFIX = re.compile(r"^[A-Z]?\.")


def model_spec(model: Any) -> DesignInfo | None:
    """Return the patsy design information of a formula-built model, if any."""
    data = getattr(unwrap(model).model, "data", None)
    for attr in ("model_spec", "design_info"):
        spec = getattr(data, attr, None)
        if isinstance(spec, DesignInfo):
            return spec
    return None


def model_frame(model: Any) -> pd.DataFrame | None:
    """Return the data frame a formula model was built from, if any."""
    frame = getattr(getattr(unwrap(model).model, "data", None), "frame", None)
    return frame if isinstance(frame, pd.DataFrame) else None


def factor_variable(code: str, columns: Collection[str] | None) -> str:
    """Map a factor's formula code to its source column.

    ``C(grade, Treatment('II'))`` and ``Q('tumor grade')`` resolve to
    the column inside the wrapper; other expressions (``np.log(age)``)
    keep their code, matching what the model frame calls them.
    """
    inner = code.strip()
    match = _C_WRAPPER.match(inner)
    if match:
        inner = match.group(1)
    match = _Q_WRAPPER.match(inner)
    if match:
        inner = match.group(2)
    if columns is None or inner in columns:
        return inner
    return code


def _level_of(column: str, factor_name: str, categories: tuple[str, ...]) -> str:
    """Extract the level label from a dummy column such as ``grade[T.II]``."""
    piece = column
    if piece.startswith(factor_name + "[") and piece.endswith("]"):
        piece = piece[len(factor_name) + 1 : -1]
    elif "[" in piece and piece.endswith("]"):
        piece = piece[piece.index("[") + 1 : -1]
    if piece in categories:
        return piece
    stripped = _CONTRAST_PREFIX.sub("", piece, count=1)
    return stripped


# ------------------------------------------------------------------ #
# Row construction
# ------------------------------------------------------------------ #


def _row(
    variable: str,
    var_type: str,
    row_type: str,
    label: str,
    stats: dict[str, Any] | None,
    is_reference: bool = False,
) -> dict[str, Any]:
    row: dict[str, Any] = {
        "variable": variable,
        "var_type": var_type,
        "row_type": row_type,
        "label": label,
        "is_reference": is_reference,
    }
    for column in TIDY_COLUMNS:
        row[column] = np.nan if stats is None else stats[column]
    if stats is None:
        row["term"] = None
    return row


def _is_yes_no(levels: tuple[str, ...], reference: str | None) -> bool:
    lowered = tuple(level.lower() for level in levels)
    return sorted(lowered) == ["no", "yes"] and reference is not None and reference.lower() == "no"


class _TermLookup:
    """Tidy rows keyed by term, tracking which terms have been placed."""

    def __init__(self, tidy: pd.DataFrame):
        self._rows = {row["term"]: row for row in tidy.to_dict(orient="records")}
        self._order = list(tidy["term"])
        self.used: set[str] = set()

    def __contains__(self, term: str) -> bool:
        return term in self._rows

    def take(self, term: str) -> dict[str, Any]:
        self.used.add(term)
        return self._rows[term]

    def unused(self) -> list[str]:
        return [t for t in self._order if t not in self.used]


def parse_fit(
    model: Any,
    tidy: pd.DataFrame,
    show_yesno: Collection[str] = (),
    show_reference: bool = True,
) -> tuple[pd.DataFrame, list[VariableInfo]]:
    """Reshape tidy terms into table rows grouped by variable.

    Args:
        model: The fitted statsmodels results the terms came from.
        tidy: Output of :func:`~regression_tables.tidy.tidy_model`.
        show_yesno: Variables whose no/yes levels should both be shown.
        show_reference: Include the blank reference-level row of
            categorical variables.

    Returns:
        ``(table_body, var_info)``.  ``table_body`` has
        :data:`BODY_COLUMNS`; labels of ``label`` rows are the variable
        names (the caller applies display labels).

    Raises:
        VariableMappingError: If a term is absent from the design
            information, or a dummy column names a level that the
            variable does not have.
    """
    lookup = _TermLookup(tidy)
    spec = model_spec(model)
    if spec is None:
        rows, infos = _parse_raw(lookup)
    else:
        frame = model_frame(model)
        columns = set(frame.columns) if frame is not None else None
        rows, infos = _parse_design(spec, columns, lookup, set(show_yesno), show_reference)

    leftover = lookup.unused()
    if leftover:
        known = ", ".join(info.name for info in infos) or "(none)"
        msg = (
            f"Model term {leftover[0]!r} could not be matched to any design-matrix "
            f"variable. Design variables: {known}."
        )
        raise VariableMappingError(msg)

    body = pd.DataFrame(rows, columns=BODY_COLUMNS)
    body["is_reference"] = body["is_reference"].astype(bool)
    return body, infos


def _parse_raw(lookup: _TermLookup) -> tuple[list[dict[str, Any]], list[VariableInfo]]:
    rows, infos = [], []
    for term in lookup.unused():
        kind = "intercept" if term in INTERCEPT_TERMS else "continuous"
        label = INTERCEPT_LABEL if kind == "intercept" else term
        rows.append(_row(term, kind, "label", label, lookup.take(term)))
        infos.append(VariableInfo(name=term, kind=kind, label=label))
    return rows, infos


def _parse_design(
    spec: DesignInfo,
    columns: set[str] | None,
    lookup: _TermLookup,
    show_yesno: set[str],
    show_reference: bool,
) -> tuple[list[dict[str, Any]], list[VariableInfo]]:
    rows: list[dict[str, Any]] = []
    infos: list[VariableInfo] = []
    seen: set[str] = set()

    for term in spec.terms:
        design_columns = spec.column_names[spec.slice(term)]
        present = [c for c in design_columns if c in lookup]
        if not present:
            # Dropped by the model (e.g. the intercept of a Cox fit).
            continue
        if len(present) < len(design_columns):
            missing = [c for c in design_columns if c not in lookup]
            msg = f"Model output lacks design column(s) {missing} of term {term.name()!r}."
            raise VariableMappingError(msg)

        factors = list(term.factors)
        if not factors:
            rows.append(_row("Intercept", "intercept", "label", INTERCEPT_LABEL,
                             lookup.take(present[0])))
            infos.append(VariableInfo(name="Intercept", kind="intercept", label=INTERCEPT_LABEL))
            continue

        names = [factor_variable(f.name(), columns) for f in factors]
        variable = ":".join(names)
        if variable in seen:
            variable = term.name()
        seen.add(variable)

        if len(factors) == 1 and spec.factor_infos[factors[0]].type == "categorical":
            new_rows, info = _categorical_rows(
                variable, factors[0], spec, design_columns, lookup, show_yesno, show_reference
            )
        elif len(factors) == 1:
            new_rows, info = _numeric_rows(variable, design_columns, lookup)
        else:
            new_rows, info = _interaction_rows(variable, factors, spec, design_columns, lookup)
        rows.extend(new_rows)
        infos.append(info)
    return rows, infos


def _numeric_rows(
    variable: str, design_columns: list[str], lookup: _TermLookup
) -> tuple[list[dict[str, Any]], VariableInfo]:
    if len(design_columns) == 1:
        row = _row(variable, "continuous", "label", variable, lookup.take(design_columns[0]))
        return [row], VariableInfo(name=variable, kind="continuous")
    # Multi-column numeric factors (splines, polynomials): one row per basis column.
    rows = [_row(variable, "continuous", "label", variable, None)]
    for column in design_columns:
        rows.append(_row(variable, "continuous", "level", column, lookup.take(column)))
    return rows, VariableInfo(name=variable, kind="continuous", levels=tuple(design_columns))


def _categorical_rows(
    variable: str,
    factor: Any,
    spec: DesignInfo,
    design_columns: list[str],
    lookup: _TermLookup,
    show_yesno: set[str],
    show_reference: bool,
) -> tuple[list[dict[str, Any]], VariableInfo]:
    categories = tuple(str(c) for c in spec.factor_infos[factor].categories)
    parsed = [_level_of(c, factor.name(), categories) for c in design_columns]
    matched = [level in categories for level in parsed]

    if not any(matched):
        # Contrasts without level labels (e.g. polynomial): keep column labels.
        rows = [_row(variable, "categorical", "label", variable, None)]
        for column, level in zip(design_columns, parsed, strict=True):
            rows.append(_row(variable, "categorical", "level", level, lookup.take(column)))
        return rows, VariableInfo(name=variable, kind="categorical", levels=tuple(parsed))

    if not all(matched):
        bad = parsed[matched.index(False)]
        msg = (
            f"Level {bad!r} of model term for {variable!r} is not among the stored "
            f"levels {list(categories)}."
        )
        raise VariableMappingError(msg)

    absent = [c for c in categories if c not in parsed]
    reference = absent[0] if len(absent) == 1 else None
    stats_by_level = {
        level: lookup.take(column) for column, level in zip(design_columns, parsed, strict=True)
    }

    if (
        len(categories) == 2
        and _is_yes_no(categories, reference)
        and variable not in show_yesno
    ):
        yes = next(c for c in categories if c != reference)
        row = _row(variable, "dichotomous", "label", variable, stats_by_level[yes])
        info = VariableInfo(name=variable, kind="dichotomous", levels=categories,
                            reference_level=reference)
        return [row], info

    rows = [_row(variable, "categorical", "label", variable, None)]
    for level in categories:
        if level in stats_by_level:
            rows.append(_row(variable, "categorical", "level", level, stats_by_level[level]))
        elif level == reference and show_reference:
            rows.append(_row(variable, "categorical", "level", level, None, is_reference=True))
    info = VariableInfo(name=variable, kind="categorical", levels=categories,
                        reference_level=reference)
    return rows, info


def _interaction_rows(
    variable: str,
    factors: list[Any],
    spec: DesignInfo,
    design_columns: list[str],
    lookup: _TermLookup,
) -> tuple[list[dict[str, Any]], VariableInfo]:
    if len(design_columns) == 1:
        row = _row(variable, "interaction", "label", variable, lookup.take(design_columns[0]))
        return [row], VariableInfo(name=variable, kind="interaction")

    rows = [_row(variable, "interaction", "label", variable, None)]
    levels = []
    for column in design_columns:
        parts = []
        for piece in column.split(":"):
            for factor in factors:
                info = spec.factor_infos[factor]
                if info.type == "categorical" and piece.startswith(factor.name() + "["):
                    categories = tuple(str(c) for c in info.categories)
                    parts.append(_level_of(piece, factor.name(), categories))
                    break
        level = " * ".join(parts) if parts else column
        levels.append(level)
        rows.append(_row(variable, "interaction", "level", level, lookup.take(column)))
    return rows, VariableInfo(name=variable, kind="interaction", levels=tuple(levels))
