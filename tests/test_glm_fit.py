"""
Unit tests for glm_fit module (Model 4).
"""

import pytest
import pandas as pd
import numpy as np

from aohc_storms.errors import ModelConvergenceError, ParseError
from aohc_storms.glm_fit import fit_storm_glm, multiplicative_effects


def test_model4_basic(model4, storm_table):
    assert model4.model_id == "model4"
    assert model4.converged
    assert model4.nobs == len(storm_table)
    assert model4.statistics["nobs"] == len(storm_table)


def test_model4_coefficients(model4):
    coefs = model4.coefficients
    assert list(coefs.columns) == ["estimate", "std_err", "statistic", "p_value", "ci_lower", "ci_upper"]
    # Intercept + 18 year dummies + Max_Wind + storm type
    assert len(coefs) == 21
    assert "Intercept" in coefs.index
    assert "Max_Wind" in coefs.index
    assert "C(TS_H)[T.TS]" in coefs.index
    assert "C(Year)[T.2006]" in coefs.index
    assert (coefs["ci_lower"] < coefs["estimate"]).all()
    assert (coefs["estimate"] < coefs["ci_upper"]).all()


def test_model4_recovers_wind_effect(model4):
    """The synthetic log-AO rises by 0.002 per knot of wind."""
    assert model4.coefficients.loc["Max_Wind", "estimate"] == pytest.approx(0.002, abs=0.001)


def test_model4_fitted_positive(model4):
    assert (model4.fitted > 0).all()


def test_model4_residual_sets(model4, storm_table):
    assert set(model4.residual_sets) == {"deviance", "working", "pearson", "response"}
    pd.testing.assert_series_equal(model4.residuals, model4.residual_sets["deviance"])

    ao = storm_table["AO"].reindex(model4.fitted.index)
    np.testing.assert_allclose(model4.residual_sets["response"], ao - model4.fitted, atol=1e-10)


def test_model4_predict_matches_fitted(model4, storm_table):
    sample = storm_table.head(10)
    predicted = model4.predict(sample)
    np.testing.assert_allclose(predicted, model4.fitted.loc[sample.index], rtol=1e-10)
    assert predicted.index.equals(sample.index)


def test_multiplicative_effects(model4):
    effects = multiplicative_effects(model4)
    assert list(effects.columns) == ["effect", "ci_lower", "ci_upper", "p_value"]
    np.testing.assert_allclose(effects["effect"], np.exp(model4.coefficients["estimate"]))
    assert (effects["effect"] > 0).all()
    assert (effects["ci_lower"] < effects["effect"]).all()


def test_multiplicative_effects_requires_intervals(model1):
    with pytest.raises(ValueError):
        multiplicative_effects(model1)


def test_model4_non_positive_ao(storm_table):
    df = storm_table.copy()
    df.loc[df.index[0], "AO"] = 0.0
    with pytest.raises(ModelConvergenceError) as excinfo:
        fit_storm_glm(df)
    assert excinfo.value.model_id == "model4"


def test_model4_missing_column(storm_table):
    with pytest.raises(ParseError) as excinfo:
        fit_storm_glm(storm_table.drop(columns="TS_H"))
    assert excinfo.value.column == "TS_H"


def test_model4_drops_missing_rows(storm_table):
    """Rows with missing values are left out and come back as NaN when augmented."""
    df = storm_table.copy()
    dropped = df.index[5]
    df.loc[dropped, "Max_Wind"] = np.nan

    result = fit_storm_glm(df)
    assert result.nobs == len(df) - 1

    out = result.augment(df)
    assert np.isnan(out.loc[dropped, "fitted_model4"])
    assert out["fitted_model4"].notna().sum() == len(df) - 1


def test_model4_blank_storm_type(tmp_path, storms_raw):
    """Blank TS_H cells are dropped from the fit instead of becoming a level."""
    from aohc_storms.data_io import load_storm_data
    from aohc_storms.preprocess import prepare_storm_data

    raw = storms_raw.copy()
    raw["TS_H"] = raw["TS_H"].astype(object)
    raw.loc[[0, 10, 20], "TS_H"] = None
    path = tmp_path / "storms.csv"
    raw.to_csv(path, index=False)

    storms = prepare_storm_data(load_storm_data(str(path)))
    assert list(storms["TS_H"].cat.categories) == ["H", "TS"]

    result = fit_storm_glm(storms)
    assert result.nobs == len(storms) - 3
    assert result.fitted.index.equals(result.residuals.index)
    assert not {0, 10, 20} & set(result.fitted.index)


def test_model4_library_failure(storm_table):
    """Errors raised inside statsmodels are reported as a convergence failure."""
    df = storm_table.copy()
    df["Max_Wind"] = df["Max_Wind"].astype(float)
    df.loc[df.index[2], "Max_Wind"] = np.inf

    with pytest.raises(ModelConvergenceError) as excinfo:
        fit_storm_glm(df)
    assert excinfo.value.model_id == "model4"
