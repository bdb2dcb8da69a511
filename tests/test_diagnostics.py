"""
Unit tests for diagnostics module.
"""

import pytest
import pandas as pd
import numpy as np
from scipy.stats import norm

from aohc_storms.diagnostics import (
    coefficient_summary, residuals_vs_fitted, normal_quantiles,
    residual_acf, build_report, format_report
)
from aohc_storms.results import ModelResult


def make_result(residuals, model_id="modelX"):
    residuals = pd.Series(residuals, dtype=float)
    fitted = pd.Series(np.linspace(1.0, 2.0, len(residuals)), index=residuals.index)
    coefs = pd.DataFrame({"estimate": [1.0], "std_err": [0.1], "statistic": [10.0], "p_value": [0.0]},
                         index=["Intercept"])
    return ModelResult(
        model_id=model_id,
        description="test model",
        coefficients=coefs,
        fitted=fitted,
        residuals=residuals,
        statistics={"nobs": len(residuals), "scale": 1.5},
    )


def test_normal_quantiles_small_sample():
    """n <= 10 uses (i - 3/8) / (n + 1/4) plotting positions."""
    result = make_result([0.3, -1.2, 0.8, 2.0, -0.4])
    qq = normal_quantiles(result)

    i = np.arange(1, 6)
    expected = norm.ppf((i - 3 / 8) / (5 + 1 / 4))
    np.testing.assert_allclose(qq["theoretical"], expected)
    assert qq["sample"].is_monotonic_increasing


def test_normal_quantiles_large_sample():
    """n > 10 uses (i - 1/2) / n plotting positions."""
    rng = np.random.default_rng(3)
    result = make_result(rng.normal(size=40))
    qq = normal_quantiles(result)

    i = np.arange(1, 41)
    np.testing.assert_allclose(qq["theoretical"], norm.ppf((i - 0.5) / 40))
    # Standardized sample
    assert qq["sample"].mean() == pytest.approx(0.0, abs=1e-12)
    assert qq["sample"].std(ddof=1) == pytest.approx(1.0)


def test_normal_quantiles_too_few():
    with pytest.raises(ValueError):
        normal_quantiles(make_result([1.0]))


def test_residual_acf_defaults():
    rng = np.random.default_rng(4)
    result = make_result(rng.normal(size=100))
    table = residual_acf(result)

    # min(10 * log10(100), 99) lags plus lag 0
    assert len(table) == 21
    assert table["lag"].tolist() == list(range(21))
    assert table["acf"].iloc[0] == pytest.approx(1.0)
    np.testing.assert_allclose(table["upper"], 0.196)
    np.testing.assert_allclose(table["lower"], -0.196)


def test_residual_acf_detects_persistence():
    e = np.zeros(200)
    rng = np.random.default_rng(5)
    for i in range(1, 200):
        e[i] = 0.8 * e[i - 1] + rng.normal()
    table = residual_acf(make_result(e), nlags=5)
    assert len(table) == 6
    assert table["acf"].iloc[1] > table["upper"].iloc[1]


def test_residual_acf_too_few():
    with pytest.raises(ValueError):
        residual_acf(make_result([1.0, 2.0]))


def test_residuals_vs_fitted_drops_missing():
    result = make_result([0.1, np.nan, -0.2, 0.3])
    pairs = residuals_vs_fitted(result)
    assert list(pairs.columns) == ["fitted", "residual"]
    assert len(pairs) == 3


def test_coefficient_summary_sections(model2, model4):
    smooth = coefficient_summary(model2)
    assert "Parametric coefficients:" in smooth
    assert "Smooth terms:" in smooth
    assert "s(months, cc)" in smooth
    assert "Fit statistics:" in smooth

    glm = coefficient_summary(model4)
    assert "Smooth terms:" not in glm
    assert "Max_Wind" in glm


def test_build_report(model3):
    report = build_report(model3)
    assert report.model_id == "model3"
    assert len(report.resid_vs_fitted) == model3.nobs
    assert len(report.qq) == model3.nobs
    assert report.acf["lag"].iloc[0] == 0

    text = format_report(report)
    assert "model3" in text
    assert "Residual ACF" in text


def test_report_is_read_only(model4):
    report = build_report(model4)
    with pytest.raises(AttributeError):
        report.model_id = "other"
