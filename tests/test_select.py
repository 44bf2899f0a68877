"""Tests for variable selection and label resolution."""

import pytest

from regression_tables import (
    UnknownVariableError,
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
from regression_tables.select import resolve_by_variable, resolve_labels, select_variables

VARS = [
    VariableInfo("age", "continuous"),
    VariableInfo("grade", "categorical", levels=("I", "II", "III")),
    VariableInfo("response", "dichotomous"),
    VariableInfo("lab_marker", "continuous"),
    VariableInfo("age:grade", "interaction"),
]


class TestSelectors:
    def test_none_selects_everything(self):
        assert select_variables(None, VARS) == [v.name for v in VARS]

    def test_everything(self):
        assert select_variables(everything(), VARS) == [v.name for v in VARS]

    def test_by_kind(self):
        assert select_variables(all_continuous(), VARS) == ["age", "lab_marker"]
        assert select_variables(all_categorical(), VARS) == ["grade", "response"]
        assert select_variables(all_categorical(dichotomous=False), VARS) == ["grade"]
        assert select_variables(all_dichotomous(), VARS) == ["response"]
        assert select_variables(all_interaction(), VARS) == ["age:grade"]

    def test_continuous2_is_continuous(self):
        infos = [VariableInfo("age", "continuous"), VariableInfo("marker", "continuous2")]
        assert select_variables(all_continuous(), infos) == ["age", "marker"]
        assert select_variables(all_continuous(continuous2=False), infos) == ["age"]

    def test_by_name_pattern(self):
        assert select_variables(contains("mark"), VARS) == ["lab_marker"]
        assert select_variables(starts_with("age"), VARS) == ["age", "age:grade"]
        assert select_variables(ends_with("grade"), VARS) == ["grade", "age:grade"]
        assert select_variables(matches(r"^r.*e$"), VARS) == ["response"]

    def test_union_keeps_table_order(self):
        selected = select_variables(["response", all_continuous()], VARS)
        assert selected == ["age", "response", "lab_marker"]

    def test_unknown_name_lists_valid_variables(self):
        with pytest.raises(UnknownVariableError) as excinfo:
            select_variables("weight", VARS, "exclude")
        err = excinfo.value
        assert err.selector == "weight"
        assert err.valid == [v.name for v in VARS]
        assert "'exclude'" in str(err)
        assert "'grade'" in str(err)

    def test_unknown_variable_is_a_value_error(self):
        with pytest.raises(ValueError):
            select_variables(["age", "weight"], VARS)

    def test_invalid_entry_type(self):
        with pytest.raises(TypeError, match="selector functions"):
            select_variables([1], VARS)

    def test_invalid_kind(self):
        with pytest.raises(ValueError, match="Unknown variable kind"):
            VariableInfo("x", "ordinal")


class TestResolveByVariable:
    def test_mapping(self):
        assert resolve_by_variable({"age": "t.test"}, VARS, "test") == {"age": "t.test"}

    def test_later_pairs_win(self):
        spec = [(all_categorical(), "chisq.test"), ("grade", "fisher.test")]
        assert resolve_by_variable(spec, VARS, "test") == {
            "grade": "fisher.test",
            "response": "chisq.test",
        }

    def test_unknown_name_raises(self):
        with pytest.raises(UnknownVariableError):
            resolve_by_variable({"weight": 1}, VARS, "digits")

    def test_malformed_pairs(self):
        with pytest.raises(TypeError, match="mapping or a list"):
            resolve_by_variable(["age"], VARS, "test")


class TestResolveLabels:
    def test_defaults_then_names(self):
        labels = resolve_labels(None, VARS, defaults={"age": "Age, yrs"})
        assert labels["age"] == "Age, yrs"
        assert labels["grade"] == "grade"

    def test_overrides(self):
        labels = resolve_labels([(all_continuous(), "Lab"), ("age", "Age")], VARS)
        assert labels["age"] == "Age"
        assert labels["lab_marker"] == "Lab"

    def test_label_must_be_string(self):
        with pytest.raises(TypeError, match="must be a string"):
            resolve_labels({"age": 1}, VARS)
