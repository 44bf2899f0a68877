"""Tests for term extraction and the term-to-variable mapping."""

import numpy as np
import pandas as pd
import pytest
import statsmodels.api as sm
import statsmodels.formula.api as smf
from patsy import ContrastMatrix

from regression_tables import (
    UnsupportedModelError,
    VariableMappingError,
    parse_fit,
    register_tidier,
    tidy_model,
)
from regression_tables.parse import factor_variable
from regression_tables.tidy import TIDY_COLUMNS, _TIDIERS, estimate_header


class TestTidyModel:
    def test_ols_columns_and_values(self, trial):
        fit = smf.ols("marker ~ age + grade", data=trial).fit()
        tidy = tidy_model(fit)
        assert list(tidy.columns) == TIDY_COLUMNS
        assert list(tidy["term"]) == list(fit.params.index)
        np.testing.assert_allclose(tidy["estimate"], fit.params.to_numpy())
        np.testing.assert_allclose(tidy["p.value"], fit.pvalues.to_numpy())
        ci = fit.conf_int(alpha=0.05).to_numpy()
        np.testing.assert_allclose(tidy["conf.low"], ci[:, 0])

    def test_conf_level(self, trial):
        fit = smf.ols("marker ~ age", data=trial).fit()
        tidy = tidy_model(fit, conf_level=0.9)
        np.testing.assert_allclose(tidy["conf.high"], fit.conf_int(alpha=0.1).to_numpy()[:, 1])

    def test_exponentiate(self, trial):
        fit = smf.logit("response ~ age + trt", data=trial).fit(disp=0)
        tidy = tidy_model(fit, exponentiate=True)
        np.testing.assert_allclose(tidy["estimate"], np.exp(fit.params.to_numpy()))
        # standard errors and p-values stay on the model scale
        np.testing.assert_allclose(tidy["std.error"], fit.bse.to_numpy())

    def test_unsupported_model(self):
        with pytest.raises(UnsupportedModelError, match="Supported classes"):
            tidy_model(object())

    def test_unsupported_model_is_a_type_error(self):
        with pytest.raises(TypeError):
            tidy_model("not a model")

    def test_register_custom_tidier(self):
        class FakeResults:
            pass

        def tidy_fake(results, conf_level):
            return pd.DataFrame(
                {
                    "term": ["x"],
                    "estimate": [1.0],
                    "std.error": [0.1],
                    "statistic": [10.0],
                    "p.value": [0.01],
                    "conf.low": [0.8],
                    "conf.high": [1.2],
                }
            )

        register_tidier(FakeResults, tidy_fake)
        try:
            assert tidy_model(FakeResults())["term"].tolist() == ["x"]
        finally:
            _TIDIERS.pop(FakeResults)

    def test_register_rejects_non_class(self):
        with pytest.raises(TypeError, match="is not a class"):
            register_tidier("OLS", lambda r, c: None)


class TestEstimateHeader:
    def test_linear(self, trial):
        fit = smf.ols("marker ~ age", data=trial).fit()
        assert estimate_header(fit, exponentiate=False) == ("Beta", None)

    def test_logistic(self, trial):
        fit = smf.logit("response ~ age", data=trial).fit(disp=0)
        assert estimate_header(fit, exponentiate=True) == ("OR", "OR = Odds Ratio")
        assert estimate_header(fit, exponentiate=False)[0] == "log(OR)"

    def test_poisson_glm(self, trial):
        fit = smf.glm("death ~ age", data=trial, family=sm.families.Poisson()).fit()
        assert estimate_header(fit, exponentiate=True) == ("IRR", "IRR = Incidence Rate Ratio")

    def test_cox(self, trial):
        fit = smf.phreg("ttdeath ~ age", data=trial.dropna(), status="death").fit()
        assert estimate_header(fit, exponentiate=True)[0] == "HR"


class TestFactorVariable:
    def test_plain_column(self):
        assert factor_variable("age", {"age"}) == "age"

    def test_c_wrapper(self):
        assert factor_variable("C(grade, Treatment('II'))", {"grade"}) == "grade"

    def test_q_wrapper(self):
        assert factor_variable("Q('tumor grade')", {"tumor grade"}) == "tumor grade"

    def test_transformation_keeps_code(self):
        assert factor_variable("np.log(age)", {"age"}) == "np.log(age)"


class TestParseFit:
    def test_categorical_rows(self, trial):
        fit = smf.ols("marker ~ age + grade", data=trial).fit()
        body, infos = parse_fit(fit, tidy_model(fit))
        grade = body[body["variable"] == "grade"]
        assert grade["row_type"].tolist() == ["label", "level", "level", "level"]
        assert grade["label"].tolist() == ["grade", "I", "II", "III"]
        assert grade["is_reference"].tolist() == [False, True, False, False]
        reference = grade[grade["is_reference"]]
        assert reference["estimate"].isna().all()
        assert reference["term"].isna().all()
        level_ii = grade[grade["label"] == "II"]
        assert level_ii["estimate"].iloc[0] == pytest.approx(fit.params["grade[T.II]"])

        info = next(i for i in infos if i.name == "grade")
        assert info.kind == "categorical"
        assert info.levels == ("I", "II", "III")
        assert info.reference_level == "I"

    def test_label_row_has_no_estimate_for_categorical(self, trial):
        fit = smf.ols("marker ~ grade", data=trial).fit()
        body, _ = parse_fit(fit, tidy_model(fit))
        label = body[(body["variable"] == "grade") & (body["row_type"] == "label")]
        assert label["estimate"].isna().all()

    def test_continuous_is_one_row(self, trial):
        fit = smf.ols("marker ~ age + grade", data=trial).fit()
        body, _ = parse_fit(fit, tidy_model(fit))
        age = body[body["variable"] == "age"]
        assert len(age) == 1
        assert age["row_type"].iloc[0] == "label"
        assert age["estimate"].iloc[0] == pytest.approx(fit.params["age"])

    def test_hide_reference(self, trial):
        fit = smf.ols("marker ~ grade", data=trial).fit()
        body, _ = parse_fit(fit, tidy_model(fit), show_reference=False)
        grade = body[body["variable"] == "grade"]
        assert grade["label"].tolist() == ["grade", "II", "III"]

    def test_custom_reference_level(self, trial):
        fit = smf.ols("marker ~ C(grade, Treatment('II'))", data=trial).fit()
        body, infos = parse_fit(fit, tidy_model(fit))
        grade = body[body["variable"] == "grade"]
        assert grade["label"].tolist() == ["grade", "I", "II", "III"]
        assert grade["is_reference"].tolist() == [False, False, True, False]
        assert next(i for i in infos if i.name == "grade").reference_level == "II"

    def test_intercept(self, trial):
        fit = smf.ols("marker ~ age", data=trial).fit()
        body, infos = parse_fit(fit, tidy_model(fit))
        assert body["variable"].iloc[0] == "Intercept"
        assert body["label"].iloc[0] == "(Intercept)"
        assert infos[0].kind == "intercept"

    def test_yes_no_collapses(self):
        rng = np.random.default_rng(0)
        df = pd.DataFrame(
            {"y": rng.normal(size=60), "smoker": rng.choice(["no", "yes"], size=60)}
        )
        fit = smf.ols("y ~ smoker", data=df).fit()
        body, infos = parse_fit(fit, tidy_model(fit))
        smoker = body[body["variable"] == "smoker"]
        assert len(smoker) == 1
        assert smoker["estimate"].iloc[0] == pytest.approx(fit.params["smoker[T.yes]"])
        assert next(i for i in infos if i.name == "smoker").kind == "dichotomous"

        body, _ = parse_fit(fit, tidy_model(fit), show_yesno=["smoker"])
        assert body[body["variable"] == "smoker"]["label"].tolist() == ["smoker", "no", "yes"]

    def test_interaction(self, trial):
        fit = smf.ols("marker ~ age * trt", data=trial).fit()
        body, infos = parse_fit(fit, tidy_model(fit))
        name = next(i.name for i in infos if i.kind == "interaction")
        assert set(name.split(":")) == {"age", "trt"}
        interaction = body[body["variable"] == name]
        assert len(interaction) == 1
        term = interaction["term"].iloc[0]
        assert interaction["estimate"].iloc[0] == pytest.approx(fit.params[term])

    def test_every_term_placed_once(self, trial):
        fit = smf.ols("marker ~ age * grade + trt", data=trial).fit()
        body, _ = parse_fit(fit, tidy_model(fit))
        placed = body["term"].dropna().tolist()
        assert sorted(placed) == sorted(fit.params.index)

    def test_raw_model_uses_term_names(self, trial):
        df = trial[["marker", "age", "ttdeath"]].dropna()
        X = sm.add_constant(df[["age", "ttdeath"]])
        fit = sm.OLS(df["marker"], X).fit()
        body, infos = parse_fit(fit, tidy_model(fit))
        assert body["variable"].tolist() == ["const", "age", "ttdeath"]
        assert [i.kind for i in infos] == ["intercept", "continuous", "continuous"]
        assert (body["row_type"] == "label").all()

    def test_cox_has_no_intercept(self, trial):
        fit = smf.phreg("ttdeath ~ age + grade", data=trial.dropna(), status="death").fit()
        body, infos = parse_fit(fit, tidy_model(fit))
        assert "Intercept" not in body["variable"].tolist()
        assert sorted(i.name for i in infos) == ["age", "grade"]


class MislabelledLevels:
    """Treatment coding whose second column names a level grade does not have."""

    def code_without_intercept(self, levels):
        matrix = np.eye(len(levels))[:, 1:]
        suffixes = ["[T.%s]" % level for level in levels[1:]]
        suffixes[-1] = "[T.IV]"
        return ContrastMatrix(matrix, suffixes)

    def code_with_intercept(self, levels):
        return ContrastMatrix(np.eye(len(levels)), ["[%s]" % level for level in levels])


class TestParseFitErrors:
    def test_unplaced_term(self, trial):
        fit = smf.ols("marker ~ age + grade", data=trial).fit()
        tidy = tidy_model(fit)
        extra = tidy.iloc[[1]].assign(term="weight")
        with pytest.raises(VariableMappingError, match="'weight' could not be matched"):
            parse_fit(fit, pd.concat([tidy, extra], ignore_index=True))

    def test_missing_design_column(self, trial):
        fit = smf.ols("marker ~ age + grade", data=trial).fit()
        tidy = tidy_model(fit)
        tidy = tidy[tidy["term"] != "grade[T.III]"]
        with pytest.raises(VariableMappingError, match=r"lacks design column.*grade\[T.III\]"):
            parse_fit(fit, tidy)

    def test_unknown_level(self, trial):
        fit = smf.ols("marker ~ C(grade, MislabelledLevels)", data=trial).fit()
        with pytest.raises(VariableMappingError, match="'IV' .* not among the stored levels"):
            parse_fit(fit, tidy_model(fit))

    def test_is_a_value_error(self, trial):
        fit = smf.ols("marker ~ age", data=trial).fit()
        tidy = tidy_model(fit)
        with pytest.raises(ValueError):
            parse_fit(fit, pd.concat([tidy, tidy.iloc[[1]].assign(term="x1")]))
