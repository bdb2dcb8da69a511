"""
Shared synthetic datasets for the test suite.
"""

import sys
from pathlib import Path

import matplotlib
import numpy as np
import pandas as pd
import pytest

matplotlib.use("Agg")

# Make the src/ layout importable without installing the package
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


def make_ocean_heat(n_months: int = 240, rho: float = 0.5, seed: int = 42) -> pd.DataFrame:
    """Monthly AO with a linear trend, an annual cycle and AR(1) noise, rows shuffled."""
    rng = np.random.default_rng(seed)
    dates = pd.date_range("2005-01-01", periods=n_months, freq="MS")
    t = np.arange(1, n_months + 1)
    season = 0.5 * np.sin(2 * np.pi * (dates.month.to_numpy() - 1) / 12)

    noise = np.zeros(n_months)
    eps = rng.normal(0, 0.1, n_months)
    noise[0] = eps[0]
    for i in range(1, n_months):
        noise[i] = rho * noise[i - 1] + eps[i]

    df = pd.DataFrame({
        "date": dates.strftime("%Y-%m-%d"),
        "AO": 10.0 + 0.02 * t + season + noise,
    })
    # Shuffle so loaders have to sort
    return df.sample(frac=1.0, random_state=seed).reset_index(drop=True)


def make_storms(seed: int = 7) -> pd.DataFrame:
    """Storm-month rows for 2005-2023 with a log-linear AO / Max_Wind relation."""
    rng = np.random.default_rng(seed)
    years = np.repeat(np.arange(2005, 2024), 8)
    max_wind = rng.uniform(30, 150, len(years)).round(0)
    ts_h = np.where(max_wind >= 64, "H", "TS")
    ao = np.exp(2.0 + 0.002 * max_wind + 0.01 * (years - 2005) + rng.normal(0, 0.05, len(years)))
    return pd.DataFrame({
        "Year": years,
        "AO": ao,
        "Max_Wind": max_wind,
        "TS_H": ts_h,
        "Name": [f"STORM{i}" for i in range(len(years))],
    })


@pytest.fixture
def ocean_heat_raw():
    return make_ocean_heat()


@pytest.fixture
def storms_raw():
    return make_storms()


@pytest.fixture
def csv_paths(tmp_path, storms_raw, ocean_heat_raw):
    """Write both synthetic tables to CSV and return their paths."""
    storm_path = tmp_path / "merged_data_by_year_month.csv"
    ocean_path = tmp_path / "ocean_heat_processed.csv"
    storms_raw.to_csv(storm_path, index=False)
    ocean_heat_raw.to_csv(ocean_path, index=False)
    return {"storm": str(storm_path), "ocean_heat": str(ocean_path), "dir": tmp_path}


@pytest.fixture
def storms_prepared(storms_raw):
    from aohc_storms.preprocess import prepare_storm_data
    return prepare_storm_data(storms_raw)


@pytest.fixture
def ocean_heat_prepared(ocean_heat_raw):
    return _prepare_ocean_heat(ocean_heat_raw)


# Fitting is slow enough that the fitted models are shared across a session

def _prepare_ocean_heat(raw: pd.DataFrame) -> pd.DataFrame:
    from aohc_storms.data_io import coerce_numeric
    from aohc_storms.preprocess import prepare_ocean_heat_data
    df = raw.copy()
    df["date"] = pd.to_datetime(df["date"])
    df["AO"] = coerce_numeric(df, "AO")
    return prepare_ocean_heat_data(df)


@pytest.fixture(scope="session")
def ocean_heat_table():
    return _prepare_ocean_heat(make_ocean_heat())


@pytest.fixture(scope="session")
def storm_table():
    from aohc_storms.preprocess import prepare_storm_data
    return prepare_storm_data(make_storms())


@pytest.fixture(scope="session")
def model1(ocean_heat_table):
    from aohc_storms.gam_fit import fit_trend_gam
    return fit_trend_gam(ocean_heat_table)


@pytest.fixture(scope="session")
def model2(ocean_heat_table):
    from aohc_storms.gam_fit import fit_seasonal_gam
    return fit_seasonal_gam(ocean_heat_table)


@pytest.fixture(scope="session")
def model3(ocean_heat_table):
    from aohc_storms.gam_ar1 import fit_seasonal_ar1_gam
    return fit_seasonal_ar1_gam(ocean_heat_table)


@pytest.fixture(scope="session")
def model4(storm_table):
    from aohc_storms.glm_fit import fit_storm_glm
    return fit_storm_glm(storm_table)
