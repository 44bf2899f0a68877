"""Shared synthetic data for the table tests."""

import logging

import numpy as np
import pandas as pd
import pytest

import regression_tables._config as _cfg

_SEED = 42

TRIAL_LABELS = {
    "trt": "Chemotherapy Treatment",
    "age": "Age",
    "marker": "Marker Level (ng/mL)",
    "stage": "T Stage",
    "grade": "Grade",
    "response": "Tumor Response",
    "death": "Patient Died",
    "ttdeath": "Months to Death/Censor",
}


def make_trial(n: int = 200, seed: int = _SEED) -> pd.DataFrame:
    """Two-arm trial with continuous, categorical, binary and survival columns."""
    rng = np.random.default_rng(seed)
    trt = rng.choice(["Drug A", "Drug B"], size=n)
    age = np.round(rng.normal(47, 14, size=n))
    marker = np.round(rng.gamma(2.0, 0.45, size=n), 3)
    stage = rng.choice(["T1", "T2", "T3", "T4"], size=n)
    grade = rng.choice(["I", "II", "III"], size=n)

    lin = -0.5 + 0.03 * (age - 47) + 0.6 * (trt == "Drug B")
    response = (rng.random(n) < 1 / (1 + np.exp(-lin))).astype(float)

    hazard = 0.04 * np.exp(0.5 * (grade == "III") + 0.3 * (stage == "T4"))
    event_time = rng.exponential(1 / hazard)
    ttdeath = np.round(np.minimum(event_time, 24.0), 2)
    death = (event_time <= 24.0).astype(int)

    age[rng.choice(n, size=11, replace=False)] = np.nan
    marker[rng.choice(n, size=10, replace=False)] = np.nan
    response[rng.choice(n, size=7, replace=False)] = np.nan

    df = pd.DataFrame(
        {
            "trt": trt,
            "age": age,
            "marker": marker,
            "stage": pd.Categorical(stage, categories=["T1", "T2", "T3", "T4"]),
            "grade": pd.Categorical(grade, categories=["I", "II", "III"]),
            "response": response,
            "death": death,
            "ttdeath": ttdeath,
            "id": np.arange(1, n + 1),
        }
    )
    df.attrs["labels"] = dict(TRIAL_LABELS)
    return df


def make_paired(n_pairs: int = 30, seed: int = _SEED) -> pd.DataFrame:
    """Long-format before/after measurements, one row per id and arm."""
    rng = np.random.default_rng(seed)
    before = rng.normal(10, 2, size=n_pairs)
    after = before + rng.normal(0.8, 1, size=n_pairs)
    outcome_before = rng.random(n_pairs) < 0.3
    outcome_after = rng.random(n_pairs) < 0.6
    return pd.DataFrame(
        {
            "id": np.tile(np.arange(n_pairs), 2),
            "arm": ["Before"] * n_pairs + ["After"] * n_pairs,
            "value": np.concatenate([before, after]),
            "improved": np.where(
                np.concatenate([outcome_before, outcome_after]), "yes", "no"
            ),
        }
    )


@pytest.fixture()
def trial() -> pd.DataFrame:
    return make_trial()


@pytest.fixture()
def paired() -> pd.DataFrame:
    return make_paired()


@pytest.fixture(autouse=True)
def _reset_options():
    """Every test starts from the built-in option defaults."""
    _cfg.reset_options()
    yield
    _cfg.reset_options()


@pytest.fixture()
def info_logs(caplog):
    caplog.set_level(logging.INFO, logger="regression_tables")
    return caplog
