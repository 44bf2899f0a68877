"""Tests for Polars DataFrame input compatibility."""

import numpy as np
import pandas as pd
import pytest
import statsmodels.formula.api as smf

from regression_tables import add_p, tbl_summary, tbl_survfit, tbl_uvregression
from regression_tables._compat import _ensure_pandas_df

# Import polars; skip all tests in this module if not installed.
pl = pytest.importorskip("polars")


class TestEnsurePandasDf:
    def test_pandas_keeps_labels(self, trial):
        out = _ensure_pandas_df(trial)
        assert out is trial
        assert out.attrs["labels"]["trt"] == "Chemotherapy Treatment"

    def test_polars_frame(self):
        frame = pl.DataFrame({"arm": ["A", "B", "A"], "score": [1.5, None, 3.0]})
        out = _ensure_pandas_df(frame)
        assert isinstance(out, pd.DataFrame)
        assert out["arm"].tolist() == ["A", "B", "A"]
        assert out["score"].isna().sum() == 1

    def test_lazy_frame_is_collected(self):
        lazy = pl.DataFrame({"score": [2, 4, 6]}).lazy().filter(pl.col("score") > 2)
        assert _ensure_pandas_df(lazy)["score"].tolist() == [4, 6]

    def test_enum_keeps_level_order(self):
        frame = pl.DataFrame(
            {"grade": ["II", "I", "III"]}, schema={"grade": pl.Enum(["III", "II", "I"])}
        )
        out = _ensure_pandas_df(frame)
        assert isinstance(out["grade"].dtype, pd.CategoricalDtype)
        assert list(out["grade"].cat.categories) == ["III", "II", "I"]

    @pytest.mark.parametrize("obj", [[1, 2, 3], {"arm": ["A"]}, np.zeros((2, 2))])
    def test_other_types_rejected(self, obj):
        with pytest.raises(TypeError, match="must be a pandas DataFrame"):
            _ensure_pandas_df(obj)

    def test_message_names_argument(self):
        with pytest.raises(TypeError, match="'trial_data'.*got list"):
            _ensure_pandas_df([], name="trial_data")


class TestPolarsEndToEnd:
    """Verify that the table builders accept Polars DataFrames."""

    @staticmethod
    def _make_polars_data(n=120, seed=42):
        rng = np.random.default_rng(seed)
        arm = rng.choice(["A", "B"], size=n)
        return pl.DataFrame(
            {
                "arm": arm,
                "score": rng.normal(50, 10, size=n) + 3.0 * (arm == "B"),
                "site": rng.choice(["north", "south", "east"], size=n),
                "months": rng.exponential(12, size=n),
                "event": (rng.random(n) < 0.7).astype(int),
            }
        )

    def test_tbl_summary_matches_pandas(self):
        pl_df = self._make_polars_data()
        from_polars = tbl_summary(pl_df, by="arm")
        from_pandas = tbl_summary(pl_df.to_pandas(), by="arm")
        assert from_polars.table_body.equals(from_pandas.table_body)

    def test_add_p_on_polars_summary(self):
        tbl = add_p(tbl_summary(self._make_polars_data(), by="arm", include=["score", "site"]))
        assert tbl.table_body["p.value"].notna().sum() == 2

    def test_tbl_uvregression(self):
        tbl = tbl_uvregression(
            self._make_polars_data(), method=smf.ols, y="score", include=["arm", "site"]
        )
        assert tbl.variables == ["arm", "site"]

    def test_tbl_survfit_lazyframe(self):
        lf = self._make_polars_data().lazy()
        tbl = tbl_survfit(lf, time="months", event="event", by="arm", times=[6])
        assert tbl.table_body["label"].tolist() == ["arm", "A", "B"]
