"""Session-level options for the regression_tables package.

Every public operation resolves its settings once, on entry, through
:func:`resolve_option`.  Resolution order (first match wins):

    1. The explicit argument passed to the operation (when not ``None``).
    2. A session override set via :func:`set_option`.
    3. The ``REGRESSION_TABLES_<NAME>`` environment variable (scalar
       options only; function-valued options cannot come from the
       environment).
    4. The built-in default.

Examples:
    Use a 90% confidence level for every table in the session::

        import regression_tables
        regression_tables.set_option("conf_level", 0.90)

    The same from the shell::

        export REGRESSION_TABLES_CONF_LEVEL=0.90

    Restore the defaults::

        regression_tables.reset_options()
"""

from __future__ import annotations

import os
from collections.abc import Callable
from typing import Any

_UNSET = object()

_DEFAULTS: dict[str, Any] = {
    "conf_level": 0.95,
    "quiet": False,
    "pvalue_fun": None,
    "estimate_fun": None,
    "global_p_type": "III",
    "continuous_test": "nonparametric",
}

_CHOICES: dict[str, set[str]] = {
    "global_p_type": {"II", "III"},
    "continuous_test": {"nonparametric", "parametric"},
}

_FUNCTION_OPTIONS = {"pvalue_fun", "estimate_fun"}

# Programmatic overrides; empty means "fall through to env / default".
_overrides: dict[str, Any] = {}


def _check_name(name: str) -> None:
    if name not in _DEFAULTS:
        msg = f"Unknown option {name!r}. Choose from: {sorted(_DEFAULTS)}"
        raise ValueError(msg)


def _validate(name: str, value: Any) -> Any:
    """Coerce and validate *value* for option *name*."""
    if value is None:
        return None
    if name == "conf_level":
        value = float(value)
        if not 0 < value < 1:
            msg = f"'conf_level' must be strictly between 0 and 1, got {value}."
            raise ValueError(msg)
    elif name == "quiet":
        if isinstance(value, str):
            value = value.strip().lower() in ("1", "true", "yes", "on")
        value = bool(value)
    elif name in _FUNCTION_OPTIONS:
        if not callable(value):
            msg = f"Option {name!r} must be a function, got {type(value).__name__}."
            raise TypeError(msg)
    elif name in _CHOICES:
        value = str(value).strip()
        if name == "global_p_type":
            value = value.upper()
        if value not in _CHOICES[name]:
            msg = (
                f"Invalid value {value!r} for option {name!r}. "
                f"Choose from: {sorted(_CHOICES[name])}"
            )
            raise ValueError(msg)
    return value


def _from_env(name: str) -> Any:
    if name in _FUNCTION_OPTIONS:
        return _UNSET
    raw = os.environ.get(f"REGRESSION_TABLES_{name.upper()}", "").strip()
    if not raw:
        return _UNSET
    return _validate(name, raw)


def get_option(name: str) -> Any:
    """Return the session value of option *name*.

    Resolution order:
        1. Value set by :func:`set_option`.
        2. ``REGRESSION_TABLES_<NAME>`` environment variable.
        3. Built-in default.

    Raises:
        ValueError: If *name* is not a known option.
    """
    _check_name(name)
    if name in _overrides:
        return _overrides[name]
    env = _from_env(name)
    if env is not _UNSET:
        return env
    return _DEFAULTS[name]


def set_option(name: str, value: Any) -> None:
    """Override option *name* for the rest of the session.

    Passing ``None`` removes the override.

    Raises:
        ValueError: If *name* is unknown or *value* is out of range.
        TypeError: If a function-valued option receives a non-callable.
    """
    _check_name(name)
    if value is None:
        _overrides.pop(name, None)
        return
    _overrides[name] = _validate(name, value)


def reset_options() -> None:
    """Drop every session override."""
    _overrides.clear()


def resolve_option(name: str, value: Any = None) -> Any:
    """Resolve an operation argument against the session options.

    An explicit (non-``None``) *value* wins; otherwise the session
    value from :func:`get_option` is returned.
    """
    _check_name(name)
    if value is not None:
        return _validate(name, value)
    return get_option(name)


def resolve_function(
    name: str,
    value: Callable[..., Any] | None,
    default: Callable[..., Any],
) -> Callable[..., Any]:
    """Resolve a function-valued option, falling back to *default*."""
    resolved = resolve_option(name, value)
    return resolved if resolved is not None else default
