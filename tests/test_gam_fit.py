"""
Unit tests for gam_fit module (Models 1 and 2).
"""

import pytest
import pandas as pd
import numpy as np

from aohc_storms.errors import ParseError
from aohc_storms.gam_fit import (
    prepare_smooth_data, build_smoother, fit_penalized_gam, select_smoothing_weights,
    fit_trend_gam, compare_smooth_models
)


def test_prepare_smooth_data_drops_missing(ocean_heat_table):
    df = ocean_heat_table.copy()
    df.loc[3, "AO"] = np.nan
    data = prepare_smooth_data(df, ["time"])
    assert len(data) == len(df) - 1
    assert list(data.columns) == ["AO", "time"]
    assert 3 not in data.index


def test_prepare_smooth_data_missing_column(ocean_heat_table):
    with pytest.raises(ParseError) as excinfo:
        prepare_smooth_data(ocean_heat_table.drop(columns="months"), ["time", "months"])
    assert excinfo.value.column == "months"


def test_build_smoother_unknown_kind(ocean_heat_table):
    data = prepare_smooth_data(ocean_heat_table, ["time"])
    with pytest.raises(ValueError):
        build_smoother(data, [("time", "tp", 10)])


def test_fixed_weights_control_smoothness(ocean_heat_table):
    """A heavier penalty gives fewer effective degrees of freedom."""
    data = prepare_smooth_data(ocean_heat_table, ["time"])
    specs = [("time", "bs", 20)]
    rough, _ = fit_penalized_gam("model1", data, specs, alpha=[1e-6])
    smooth, _ = fit_penalized_gam("model1", data, specs, alpha=[1e6])
    assert np.sum(smooth.edf) < np.sum(rough.edf)


def test_model1_basic(model1, ocean_heat_table):
    """Model 1 converges and its residuals are AO minus fitted."""
    assert model1.model_id == "model1"
    assert model1.converged
    assert model1.nobs == len(ocean_heat_table)

    ao = ocean_heat_table["AO"].reindex(model1.fitted.index)
    np.testing.assert_allclose(model1.fitted + model1.residuals, ao)
    assert model1.fitted.index.equals(model1.residuals.index)


def test_model1_statistics(model1):
    stats = model1.statistics
    assert 1.0 < stats["edf"] <= 56.0
    assert stats["scale"] > 0
    assert stats["gcv"] > 0
    assert "alpha_time" in stats
    assert 0.0 < stats["deviance_explained"] <= 1.0


def test_model1_tracks_trend(model1, ocean_heat_table):
    ao = ocean_heat_table["AO"].reindex(model1.fitted.index)
    assert np.corrcoef(model1.fitted, ao)[0, 1] > 0.9
    # The synthetic trend rises by 0.02 per month
    assert model1.fitted.iloc[-12:].mean() > model1.fitted.iloc[:12].mean() + 3.0


def test_model1_terms(model1):
    assert list(model1.smooth_terms.index) == ["s(time)"]
    assert list(model1.components.columns) == ["s(time)"]
    assert list(model1.coefficients.index) == ["Intercept"]
    assert model1.covariate is not None


def test_model1_fitted_is_intercept_plus_smooth(model1):
    intercept = model1.coefficients.loc["Intercept", "estimate"]
    np.testing.assert_allclose(
        model1.fitted.to_numpy(),
        intercept + model1.components["s(time)"].to_numpy(),
        atol=1e-8
    )


def test_smooth_components_are_centered(model1, model2):
    for result in (model1, model2):
        for term in result.components.columns:
            assert abs(result.components[term].mean()) < 1e-6


def test_model2_terms(model2):
    assert model2.converged
    assert list(model2.smooth_terms.index) == ["s(time)", "s(months, cc)"]
    assert list(model2.components.columns) == ["s(time)", "s(months)"]
    assert {"alpha_time", "alpha_months"}.issubset(model2.statistics)


def test_model2_seasonal_component(model2, ocean_heat_table):
    """The months smooth depends on the month only and recovers the annual cycle."""
    months = ocean_heat_table["months"].reindex(model2.components.index)
    seasonal = model2.components["s(months)"]

    by_month = seasonal.groupby(months)
    assert by_month.std().max() < 1e-8

    profile = by_month.mean()
    truth = 0.5 * np.sin(2 * np.pi * (profile.index.to_numpy() - 1) / 12)
    assert np.corrcoef(profile.to_numpy(), truth)[0, 1] > 0.9


def test_model2_trend_is_smoother_than_model1(model1, model2):
    """With the season in its own smooth, the trend needs far fewer degrees of freedom."""
    assert model2.statistics["edf"] < model1.statistics["edf"]


def test_select_smoothing_weights(ocean_heat_table):
    """Weights are selected on a freshly built model and are positive."""
    data = prepare_smooth_data(ocean_heat_table, ["time"])
    smoother = build_smoother(data, [("time", "bs", 12)])
    exog = pd.DataFrame({"Intercept": np.ones(len(data))}, index=data.index)

    alpha = select_smoothing_weights("model1", data["AO"], exog, smoother)
    assert alpha.shape == (1,)
    assert alpha[0] > 0


def test_smooth_term_tests_do_not_warn(ocean_heat_table, recwarn):
    """Smooth-term significance uses the scalar Wald statistic."""
    result = fit_trend_gam(ocean_heat_table, k=12)
    assert np.isfinite(result.smooth_terms.loc["s(time)", "statistic"])
    assert 0.0 <= result.smooth_terms.loc["s(time)", "p_value"] <= 1.0
    assert not [w for w in recwarn if issubclass(w.category, FutureWarning) and "scalar" in str(w.message)]


def test_augment_adds_columns(model1, ocean_heat_table):
    out = model1.augment(ocean_heat_table)
    assert "fitted_model1" in out.columns
    assert "resid_model1" in out.columns
    assert "fitted_model1" not in ocean_heat_table.columns


def test_predict_not_supported(model1, ocean_heat_table):
    with pytest.raises(NotImplementedError):
        model1.predict(ocean_heat_table)


def test_model1_missing_time():
    df = pd.DataFrame({"AO": [1.0, 2.0, 3.0]})
    with pytest.raises(ParseError):
        fit_trend_gam(df)


def test_compare_smooth_models(model1, model2, model4):
    table = compare_smooth_models({"model1": model1, "model2": model2, "model4": model4})
    assert list(table.index) == ["model1", "model2"]
    assert list(table.columns) == ["edf", "scale", "gcv", "aic", "rho"]
    assert table["rho"].isna().all()
    assert table.loc["model1", "edf"] == pytest.approx(model1.statistics["edf"])


def test_compare_smooth_models_empty(model4):
    assert compare_smooth_models({"model4": model4}).empty
