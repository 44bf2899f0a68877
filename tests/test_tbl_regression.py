"""Tests for tbl_regression() and tbl_uvregression()."""

import numpy as np
import pytest
import statsmodels.api as sm
import statsmodels.formula.api as smf

from regression_tables import (
    ReportTable,
    UnknownVariableError,
    all_categorical,
    set_option,
    style_ratio,
    style_sigfig,
    tbl_regression,
    tbl_uvregression,
)
from regression_tables.table import REFERENCE_TEXT


def _label_value(tbl, variable, column):
    body = tbl.table_body
    rows = (body["variable"] == variable) & (body["row_type"] == "label")
    return body.loc[rows, column].iloc[0]


class TestTblRegression:
    def test_returns_report_table(self, trial):
        fit = smf.ols("marker ~ age + grade", data=trial).fit()
        tbl = tbl_regression(fit)
        assert isinstance(tbl, ReportTable)
        assert tbl.kind == "tbl_regression"
        assert tbl.n == int(fit.nobs)
        assert tbl.model_obj is fit
        assert "tbl_regression" in tbl.call_list

    def test_intercept_hidden_by_default(self, trial):
        fit = smf.ols("marker ~ age + grade", data=trial).fit()
        assert "Intercept" not in tbl_regression(fit).variables
        assert "Intercept" in tbl_regression(fit, intercept=True).variables

    def test_labels_from_attrs(self, trial):
        fit = smf.ols("marker ~ age + grade", data=trial).fit()
        body = tbl_regression(fit).table_body
        labels = body.loc[body["row_type"] == "label"].set_index("variable")["label"]
        assert labels["age"] == "Age"
        assert labels["grade"] == "Grade"

    def test_label_override(self, trial):
        fit = smf.ols("marker ~ age + grade", data=trial).fit()
        tbl = tbl_regression(fit, label={"age": "Patient Age"})
        assert tbl.meta_data.set_index("variable").at["age", "var_label"] == "Patient Age"

    def test_interaction_label(self, trial):
        fit = smf.ols("marker ~ age * trt", data=trial).fit()
        tbl = tbl_regression(fit)
        label = tbl.meta_data.loc[tbl.meta_data["var_type"] == "interaction", "var_label"]
        assert set(label.iloc[0].split(" * ")) == {"Age", "Chemotherapy Treatment"}

    def test_include_exclude(self, trial):
        fit = smf.ols("marker ~ age + grade + trt", data=trial).fit()
        assert sorted(tbl_regression(fit, include=["age", "trt"]).variables) == ["age", "trt"]
        assert "grade" not in tbl_regression(fit, exclude=all_categorical()).variables

    def test_unknown_include(self, trial):
        fit = smf.ols("marker ~ age", data=trial).fit()
        with pytest.raises(UnknownVariableError, match="'weight'"):
            tbl_regression(fit, include="weight")

    def test_header_linear(self, trial):
        fit = smf.ols("marker ~ age", data=trial).fit()
        header = tbl_regression(fit).table_header.set_index("column")
        assert header.at["estimate", "label"] == "Beta"
        assert header.at["conf.low", "label"] == "95% CI"
        assert header.at["p.value", "label"] == "p-value"
        assert header.at["label", "label"] == "Characteristic"
        assert bool(header.at["conf.high", "hide"])
        assert header.at["estimate", "fmt_fun"] is style_sigfig

    def test_header_odds_ratio(self, trial):
        fit = smf.logit("response ~ age + trt", data=trial).fit(disp=0)
        tbl = tbl_regression(fit, exponentiate=True)
        header = tbl.table_header.set_index("column")
        assert header.at["estimate", "label"] == "OR"
        assert header.at["estimate", "footnote_abbrev"] == "OR = Odds Ratio"
        assert "CI = Confidence Interval" in header.at["conf.low", "footnote_abbrev"]
        assert header.at["estimate", "fmt_fun"] is style_ratio
        est = _label_value(tbl, "age", "estimate")
        assert est == pytest.approx(np.exp(fit.params["age"]))

    def test_header_hazard_ratio(self, trial):
        fit = smf.phreg("ttdeath ~ age + grade", data=trial.dropna(), status="death").fit()
        tbl = tbl_regression(fit, exponentiate=True)
        assert tbl.table_header.set_index("column").at["estimate", "label"] == "HR"

    def test_conf_level_from_session(self, trial):
        set_option("conf_level", 0.9)
        fit = smf.ols("marker ~ age", data=trial).fit()
        tbl = tbl_regression(fit)
        assert tbl.inputs["conf_level"] == 0.9
        assert tbl.table_header.set_index("column").at["conf.low", "label"] == "90% CI"
        low = _label_value(tbl, "age", "conf.low")
        assert low == pytest.approx(fit.conf_int(alpha=0.1).loc["age", 0])

    def test_invalid_conf_level(self, trial):
        fit = smf.ols("marker ~ age", data=trial).fit()
        with pytest.raises(ValueError, match="conf_level"):
            tbl_regression(fit, conf_level=95)

    def test_formatted_output(self, trial):
        fit = smf.ols("marker ~ age + grade", data=trial).fit()
        out = tbl_regression(fit).as_dataframe()
        assert list(out.columns) == ["Characteristic", "Beta", "95% CI", "p-value"]
        reference = out[out.iloc[:, 0].str.strip() == "I"]
        assert reference["Beta"].iloc[0] == REFERENCE_TEXT
        assert reference["95% CI"].iloc[0] == REFERENCE_TEXT
        assert reference["p-value"].iloc[0] == ""
        age = out[out.iloc[:, 0] == "Age"]
        lo, hi = fit.conf_int().loc["age"]
        assert age["95% CI"].iloc[0] == f"{style_sigfig(lo)}, {style_sigfig(hi)}"

    def test_raw_model(self, trial):
        df = trial[["marker", "age"]].dropna()
        fit = sm.OLS(df["marker"], sm.add_constant(df[["age"]])).fit()
        tbl = tbl_regression(fit, intercept=True)
        assert tbl.variables == ["const", "age"]
        assert tbl.table_body["label"].tolist() == ["(Intercept)", "age"]


class TestTblUvregression:
    def test_one_model_per_variable(self, trial):
        tbl = tbl_uvregression(
            trial,
            method=smf.logit,
            y="response",
            include=["age", "grade", "trt"],
            fit_args={"disp": 0},
            exponentiate=True,
        )
        assert tbl.kind == "tbl_uvregression"
        assert sorted(tbl.tbls) == ["age", "grade", "trt"]
        assert tbl.variables == ["trt", "age", "grade"]
        expected = smf.logit("response ~ age", data=trial).fit(disp=0)
        est = _label_value(tbl, "age", "estimate")
        assert est == pytest.approx(np.exp(expected.params["age"]))

    def test_n_per_model(self, trial):
        tbl = tbl_uvregression(
            trial, method=smf.ols, y="marker", include=["age", "grade"]
        )
        body = tbl.table_body
        n_age = body.loc[(body["variable"] == "age") & (body["row_type"] == "label"), "N"]
        assert n_age.iloc[0] == trial[["marker", "age"]].dropna().shape[0]
        levels = body.loc[body["row_type"] == "level", "N"]
        assert levels.isna().all()
        assert "N" in tbl.as_dataframe().columns

    def test_hide_n(self, trial):
        tbl = tbl_uvregression(trial, method=smf.ols, y="marker", include="age", hide_n=True)
        assert "N" not in tbl.as_dataframe().columns

    def test_method_args(self, trial):
        tbl = tbl_uvregression(
            trial,
            method=smf.glm,
            y="death",
            include="age",
            method_args={"family": sm.families.Poisson()},
            exponentiate=True,
        )
        assert tbl.table_header.set_index("column").at["estimate", "label"] == "IRR"

    def test_unknown_outcome(self, trial):
        with pytest.raises(ValueError, match="Outcome 'weight'"):
            tbl_uvregression(trial, method=smf.ols, y="weight")

    def test_empty_selection(self, trial):
        with pytest.raises(ValueError, match="No predictors"):
            tbl_uvregression(trial, method=smf.ols, y="marker", include=[])
