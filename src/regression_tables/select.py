"""Variable selection and label resolution.

Selections are always resolved *eagerly* against a known list of
:class:`VariableInfo` records, producing a concrete ordered list of
names before any table is modified.  A selection is one of:

* ``None`` - every variable;
* a variable name (``"age"``);
* a predicate ``Callable[[VariableInfo], bool]``, including the
  helpers below (``all_categorical()``, ``contains("lab_")``, ...);
* a list/tuple mixing the above (the union, in table order).

Label overrides and per-variable settings (tests, test arguments,
summary types, digits) share one shape: either a mapping
``{name: value}`` or an ordered list of ``(selection, value)`` pairs.
Pairs are evaluated in declaration order and later matches win.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from .errors import UnknownVariableError

VARIABLE_KINDS = (
    "continuous", "continuous2", "categorical", "dichotomous", "interaction", "intercept",
)


@dataclass(frozen=True)
class VariableInfo:
    """Metadata for one variable in a table.

    Attributes:
        name: Column / variable name (interaction terms join their
            components with ``":"``).
        kind: One of ``VARIABLE_KINDS``.
        levels: Ordered level labels (categorical and dichotomous only).
        reference_level: Baseline level for model-based tables.
        label: Display label.
    """

    name: str
    kind: str
    levels: tuple[str, ...] = ()
    reference_level: str | None = None
    label: str = ""

    def __post_init__(self) -> None:
        if self.kind not in VARIABLE_KINDS:
            msg = f"Unknown variable kind {self.kind!r}. Choose from: {VARIABLE_KINDS}"
            raise ValueError(msg)


Selector = Callable[[VariableInfo], bool]
Selection = str | Selector | Sequence[Any] | None


# ------------------------------------------------------------------ #
# Selector helpers
# ------------------------------------------------------------------ #


def everything() -> Selector:
    """Select every variable."""
    return lambda info: True


def all_continuous(continuous2: bool = True) -> Selector:
    """Select continuous variables, optionally including multi-row ones."""
    kinds = {"continuous", "continuous2"} if continuous2 else {"continuous"}
    return lambda info: info.kind in kinds


def all_categorical(dichotomous: bool = True) -> Selector:
    """Select categorical variables, optionally including dichotomous ones."""
    kinds = {"categorical", "dichotomous"} if dichotomous else {"categorical"}
    return lambda info: info.kind in kinds


def all_dichotomous() -> Selector:
    """Select dichotomous variables."""
    return lambda info: info.kind == "dichotomous"


def all_interaction() -> Selector:
    """Select interaction terms."""
    return lambda info: info.kind == "interaction"


def contains(text: str) -> Selector:
    """Select variables whose name contains *text*."""
    return lambda info: text in info.name


def starts_with(prefix: str) -> Selector:
    """Select variables whose name starts with *prefix*."""
    return lambda info: info.name.startswith(prefix)


def ends_with(suffix: str) -> Selector:
    """Select variables whose name ends with *suffix*."""
    return lambda info: info.name.endswith(suffix)


def matches(pattern: str) -> Selector:
    """Select variables whose name matches the regular expression *pattern*."""
    compiled = re.compile(pattern)
    return lambda info: compiled.search(info.name) is not None


# ------------------------------------------------------------------ #
# Resolution
# ------------------------------------------------------------------ #


def select_variables(
    select: Selection,
    var_info: Sequence[VariableInfo],
    arg_name: str = "include",
) -> list[str]:
    """Resolve *select* to an ordered list of variable names.

    Args:
        select: Selection expression (see module docstring).
        var_info: Variables available, in table order.
        arg_name: Argument name used in error messages.

    Returns:
        Selected names in table order, without duplicates.

    Raises:
        UnknownVariableError: If a name is not among *var_info*.
        TypeError: If *select* is not a supported selection.
    """
    names = [info.name for info in var_info]
    if select is None:
        return names

    chosen: set[str] = set()
    items = [select] if isinstance(select, str) or callable(select) else list(select)
    for item in items:
        if isinstance(item, str):
            if item not in names:
                raise UnknownVariableError(item, names, arg_name)
            chosen.add(item)
        elif callable(item):
            chosen.update(info.name for info in var_info if item(info))
        else:
            msg = (
                f"'{arg_name}' entries must be variable names or selector "
                f"functions, got {type(item).__name__}."
            )
            raise TypeError(msg)
    return [name for name in names if name in chosen]


def _as_pairs(spec: Mapping[str, Any] | Iterable[Any]) -> list[tuple[Selection, Any]]:
    if isinstance(spec, Mapping):
        return list(spec.items())
    pairs = []
    for entry in spec:
        if not (isinstance(entry, tuple) and len(entry) == 2):
            msg = (
                "Per-variable settings must be a mapping or a list of "
                f"(selection, value) pairs, got {entry!r}."
            )
            raise TypeError(msg)
        pairs.append(entry)
    return pairs


def resolve_by_variable(
    spec: Mapping[str, Any] | Iterable[Any] | None,
    var_info: Sequence[VariableInfo],
    arg_name: str,
) -> dict[str, Any]:
    """Resolve a per-variable setting to ``{name: value}``.

    Later entries override earlier ones for the same variable.  Names
    that are not in *var_info* raise :class:`UnknownVariableError`.
    """
    if spec is None:
        return {}
    resolved: dict[str, Any] = {}
    for selection, value in _as_pairs(spec):
        for name in select_variables(selection, var_info, arg_name=arg_name):
            resolved[name] = value
    return resolved


def resolve_labels(
    label: Mapping[str, str] | Iterable[Any] | None,
    var_info: Sequence[VariableInfo],
    defaults: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Resolve label overrides to a complete ``{name: label}`` mapping.

    Args:
        label: Overrides, as a mapping or ordered ``(selection, label)``
            pairs.
        var_info: Variables in table order.
        defaults: Fallback labels (e.g. from ``DataFrame.attrs``);
            variables missing here are labelled with their name.

    Raises:
        TypeError: If a label is not a string.
        UnknownVariableError: If an override names an absent variable.
    """
    defaults = defaults or {}
    labels = {info.name: defaults.get(info.name, info.label or info.name) for info in var_info}
    for name, value in resolve_by_variable(label, var_info, "label").items():
        if not isinstance(value, str):
            msg = f"Label for {name!r} must be a string, got {type(value).__name__}."
            raise TypeError(msg)
        labels[name] = value
    return labels
