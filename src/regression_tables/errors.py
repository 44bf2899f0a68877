"""Exception hierarchy for the regression_tables package.

Two propagation classes:

* **Fatal** - configuration, selection and mapping errors.  They are
  raised straight out of the public builders because nothing built on
  top of a misplaced term or an unknown variable can be trusted.
  These subclass the builtin ``TypeError`` / ``ValueError`` so callers
  catching the builtins keep working.
* **Per-variable** - subclasses of :class:`TestExecutionError`.  The
  test dispatcher and the global p-value merger catch these, leave the
  affected p-value empty, record a diagnostic and carry on with the
  remaining variables.
"""

from __future__ import annotations

from collections.abc import Iterable


class RegressionTablesError(Exception):
    """Base class for every error raised by regression_tables."""


# ------------------------------------------------------------------ #
# Fatal errors
# ------------------------------------------------------------------ #


class UnsupportedModelError(RegressionTablesError, TypeError):
    """No extraction adapter is registered for the model's class."""


class VariableMappingError(RegressionTablesError, ValueError):
    """A model term could not be placed on a design-matrix variable."""


class UnknownVariableError(RegressionTablesError, ValueError):
    """A selection names a variable that is not present in the table.

    Attributes:
        selector: The offending name.
        valid: The variables that could have been selected, in table
            order.
    """

    def __init__(self, selector: str, valid: Iterable[str], arg_name: str = "include"):
        self.selector = selector
        self.valid = list(valid)
        self.arg_name = arg_name
        listing = ", ".join(repr(v) for v in self.valid) or "(none)"
        super().__init__(
            f"'{arg_name}' selects unknown variable {selector!r}. "
            f"Valid variables are: {listing}."
        )


class FormatTypeError(RegressionTablesError, TypeError):
    """A display function was applied to non-numeric input."""


# ------------------------------------------------------------------ #
# Per-variable errors
# ------------------------------------------------------------------ #


class TestExecutionError(RegressionTablesError, RuntimeError):
    """Base class for failures isolated to a single variable."""

    # pytest would otherwise try to collect classes named Test*.
    __test__ = False


class InvalidTestResultError(TestExecutionError, ValueError):
    """A test returned something other than a single numeric p-value."""


class TestArityError(TestExecutionError, ValueError):
    """The grouping has a number of levels the test cannot handle."""


class PairingError(TestExecutionError, ValueError):
    """Paired observations do not line up one-to-one across the arms."""


class OmnibusTestError(TestExecutionError):
    """The omnibus (global) test failed for a variable."""
