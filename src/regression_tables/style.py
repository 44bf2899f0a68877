"""Display functions for numeric table columns.

Each ``style_*`` function turns numbers into display strings.  They
accept a scalar (returning ``str``, or ``None`` for a missing value)
or any 1-D array-like (returning a ``list`` of the same length).

Rounding is half-away-from-zero, matching the convention used in
published tables (``0.125 -> "0.13"``), not NumPy's banker's rounding.
A tiny epsilon absorbs binary representation error so that values
such as ``2.675`` round the way they are written.

P-value rules (``style_pvalue`` with the default ``digits=1``):

    ===================  ==========
    p                    display
    ===================  ==========
    > 0.9                ``>0.9``
    rounds to >= 0.2     1 decimal
    rounds to >= 0.1     2 decimals
    >= 0.001             3 decimals
    < 0.001              ``<0.001``
    ===================  ==========
"""

from __future__ import annotations

import math
from collections.abc import Callable
from numbers import Real
from typing import Any

import numpy as np
import pandas as pd

from .errors import FormatTypeError

_EPS = math.sqrt(np.finfo(float).eps)


def _round2(x: float, digits: int = 0) -> float:
    """Round half away from zero."""
    scale = 10.0**digits
    return math.copysign(math.trunc(abs(x) * scale + 0.5 + _EPS) / scale, x)


def _is_missing(x: Any) -> bool:
    return x is None or (isinstance(x, Real) and math.isnan(x))


def _vectorize(fun: Callable[..., str | None]) -> Callable[..., Any]:
    """Lift a scalar formatter to scalars and 1-D array-likes."""

    def wrapper(x: Any, *args: Any, **kwargs: Any) -> Any:
        if np.ndim(x) == 0:
            return fun(_as_number(x), *args, **kwargs)
        return [fun(_as_number(v), *args, **kwargs) for v in np.asarray(x, dtype=object)]

    wrapper.__name__ = fun.__name__.lstrip("_")
    wrapper.__qualname__ = wrapper.__name__
    wrapper.__doc__ = fun.__doc__
    return wrapper


def _as_number(x: Any) -> float | None:
    if x is None or x is pd.NA:
        return None
    if isinstance(x, (bool, np.bool_)) or not isinstance(x, (Real, np.number)):
        msg = f"Display functions accept numbers only, got {type(x).__name__} ({x!r})."
        raise FormatTypeError(msg)
    x = float(x)
    return None if math.isnan(x) else x


# ------------------------------------------------------------------ #
# Scalar formatters
# ------------------------------------------------------------------ #


def _style_number(
    x: float | None,
    digits: int = 0,
    big_mark: str = "",
    decimal_mark: str = ".",
    scale: float = 1,
) -> str | None:
    """Round *x* (times *scale*) to *digits* decimals and format it.

    Args:
        x: Number to format.
        digits: Decimal places.
        big_mark: Thousands separator (default none).
        decimal_mark: Decimal separator.
        scale: Multiplier applied before rounding.
    """
    if _is_missing(x):
        return None
    value = _round2(x * scale, digits)
    text = f"{value:,.{digits}f}"
    if text.startswith("-") and float(value) == 0:
        text = text[1:]
    return text.replace(",", "\0").replace(".", decimal_mark).replace("\0", big_mark)


def _style_sigfig(x: float | None, digits: int = 2, scale: float = 1) -> str | None:
    """Format *x* with at least *digits* significant figures.

    Numbers below 1 get *digits* decimals; larger numbers lose one
    decimal per order of magnitude, never going below zero decimals.
    """
    if _is_missing(x):
        return None
    value = abs(x * scale)
    for decimals in range(digits, 0, -1):
        if _round2(value, decimals) < 10 ** (digits - decimals):
            return _style_number(x, decimals, scale=scale)
    return _style_number(x, 0, scale=scale)


def _style_ratio(x: float | None, digits: int = 2) -> str | None:
    """Format a ratio (OR, HR, IRR) so values either side of 1 align.

    Ratios below 1 use *digits* significant figures, ratios of 1 or
    more use one extra, e.g. ``0.85`` and ``1.15`` rather than
    ``0.85`` and ``1.1``.
    """
    if _is_missing(x):
        return None
    if _round2(abs(x), digits) < 1:
        return _style_sigfig(x, digits)
    return _style_sigfig(x, digits + 1)


def _style_pvalue(x: float | None, digits: int = 1, prepend_p: bool = False) -> str | None:
    """Format a p-value; *digits* is 1, 2 or 3."""
    if _is_missing(x) or x < 0 or x > 1:
        return None
    if digits == 1:
        if x > 0.9:
            text = ">0.9"
        elif _round2(x, 1) >= 0.2:
            text = _style_number(x, 1)
        elif _round2(x, 2) >= 0.1:
            text = _style_number(x, 2)
        elif x >= 0.001:
            text = _style_number(x, 3)
        else:
            text = "<0.001"
    elif digits == 2:
        if x > 0.99:
            text = ">0.99"
        elif _round2(x, 2) >= 0.1:
            text = _style_number(x, 2)
        elif x >= 0.001:
            text = _style_number(x, 3)
        else:
            text = "<0.001"
    elif digits == 3:
        if x > 0.999:
            text = ">0.999"
        elif x >= 0.001:
            text = _style_number(x, 3)
        else:
            text = "<0.001"
    else:
        msg = f"'digits' must be 1, 2 or 3, got {digits!r}."
        raise ValueError(msg)
    if prepend_p:
        text = f"p{text}" if text[0] in "<>" else f"p={text}"
    return text


def _style_percent(x: float | None, symbol: bool = False, digits: int = 0) -> str | None:
    """Format a proportion as a percentage (``0.123 -> "12"``).

    Percentages under 10 gain one decimal; non-zero values that would
    round to zero are shown as ``<0.1`` (for ``digits=0``).
    """
    if _is_missing(x):
        return None
    pct = x * 100
    if pct >= 10:
        text = _style_number(pct, digits)
    elif pct >= 10 ** (-(digits + 1)):
        text = _style_number(pct, digits + 1)
    elif x > 0:
        text = "<" + _style_number(10 ** (-(digits + 1)), digits + 1)
    else:
        text = "0"
    return f"{text}%" if symbol else text


style_number = _vectorize(_style_number)
style_sigfig = _vectorize(_style_sigfig)
style_ratio = _vectorize(_style_ratio)
style_pvalue = _vectorize(_style_pvalue)
style_percent = _vectorize(_style_percent)


# ------------------------------------------------------------------ #
# Column application
# ------------------------------------------------------------------ #


def format_column(values: Any, fun: Callable[[Any], Any]) -> list[str | None]:
    """Apply display function *fun* to a numeric column.

    Args:
        values: 1-D numeric array-like (NaN allowed).
        fun: A display function taking the whole vector and returning a
            same-length sequence of strings (the ``style_*`` functions
            qualify).

    Returns:
        List of display strings, ``None`` where the input was missing.

    Raises:
        FormatTypeError: If *values* holds non-numeric entries, which
            includes a column that has already been formatted.
    """
    series = pd.Series(values, dtype=object) if not isinstance(values, pd.Series) else values
    if not (pd.api.types.is_numeric_dtype(series) or pd.api.types.is_bool_dtype(series)):
        bad = [v for v in series if not (v is None or isinstance(v, (Real, np.number)))]
        if bad:
            msg = (
                "Display functions accept numeric columns only; found "
                f"{type(bad[0]).__name__} value {bad[0]!r}. Was the column "
                "already formatted?"
            )
            raise FormatTypeError(msg)
    numeric = pd.to_numeric(series, errors="raise").astype(float).to_numpy()
    out = fun(numeric)
    if np.ndim(out) == 0:
        msg = "Display functions must return one string per input value."
        raise TypeError(msg)
    out = list(out)
    if len(out) != len(numeric):
        msg = (
            f"Display function returned {len(out)} values for a column "
            f"of length {len(numeric)}."
        )
        raise ValueError(msg)
    return [None if np.isnan(v) else o for v, o in zip(numeric, out, strict=True)]
