# src/aohc_storms/diagnostics.py
"""
Module: diagnostics.py
Responsibilities:
- Coefficient / smooth-term / fit-statistic summaries of a fitted model
- Residual-vs-fitted pairs
- Standardized residual quantiles for a normal probability check
- Autocorrelation function of residuals with a +/- 1.96/sqrt(n) band
"""
import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd
from statsmodels.graphics.gofplots import ProbPlot
from statsmodels.tsa.stattools import acf

from aohc_storms.results import ModelResult

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelReport:
    """Read-only diagnostics of one fitted model."""
    model_id: str
    summary: str
    resid_vs_fitted: pd.DataFrame
    qq: pd.DataFrame
    acf: pd.DataFrame


def coefficient_summary(result: ModelResult) -> str:
    """
    Text summary: parametric coefficients, smooth terms and fit statistics.
    """
    lines = [
        f"Model {result.model_id}: {result.description}",
        f"Converged: {result.converged}   n = {result.nobs}",
        "",
        "Parametric coefficients:",
        result.coefficients.to_string(float_format=lambda v: f"{v:.4g}"),
    ]
    if result.smooth_terms is not None:
        lines += [
            "",
            "Smooth terms:",
            result.smooth_terms.to_string(float_format=lambda v: f"{v:.4g}"),
        ]
    if result.statistics:
        lines += ["", "Fit statistics:"]
        for key, value in result.statistics.items():
            if isinstance(value, float):
                lines.append(f"  {key:<20s} {value:.6g}")
            else:
                lines.append(f"  {key:<20s} {value}")
    return "\n".join(lines)


def residuals_vs_fitted(result: ModelResult) -> pd.DataFrame:
    """Fitted values paired with the model's diagnostic residuals."""
    pairs = pd.DataFrame({
        'fitted': result.fitted,
        'residual': result.residuals.reindex(result.fitted.index),
    })
    return pairs.dropna()


def normal_quantiles(result: ModelResult) -> pd.DataFrame:
    """
    Standardized residual quantiles against normal theoretical quantiles.

    Plotting positions follow the usual QQ convention:
    (i - 3/8) / (n + 1/4) for n <= 10, (i - 1/2) / n otherwise.

    Returns
    -------
    pd.DataFrame
        Columns theoretical, sample (both sorted ascending)
    """
    resid = result.residuals.dropna().to_numpy(dtype=float)
    n = resid.size
    if n < 2:
        raise ValueError(f"{result.model_id}: need at least 2 residuals for a QQ check")

    sd = resid.std(ddof=1)
    standardized = (resid - resid.mean()) / sd if sd > 0 else resid - resid.mean()
    a = 3.0 / 8.0 if n <= 10 else 0.5
    pp = ProbPlot(standardized, a=a)
    return pd.DataFrame({
        'theoretical': pp.theoretical_quantiles,
        'sample': pp.sample_quantiles,
    })


def residual_acf(result: ModelResult, nlags: Optional[int] = None) -> pd.DataFrame:
    """
    Autocorrelation of residuals in model order.

    Parameters
    ----------
    result : ModelResult
        Fitted model
    nlags : int, optional
        Largest lag; defaults to min(10 * log10(n), n - 1)

    Returns
    -------
    pd.DataFrame
        Columns lag, acf, lower, upper where lower/upper are the
        +/- 1.96 / sqrt(n) white-noise band
    """
    resid = result.residuals.dropna().to_numpy(dtype=float)
    n = resid.size
    if n < 3:
        raise ValueError(f"{result.model_id}: need at least 3 residuals for an ACF")
    if nlags is None:
        nlags = int(min(np.floor(10 * np.log10(n)), n - 1))

    values = acf(resid, nlags=nlags, fft=False)
    band = 1.96 / np.sqrt(n)
    return pd.DataFrame({
        'lag': np.arange(len(values)),
        'acf': values,
        'lower': -band,
        'upper': band,
    })


def build_report(result: ModelResult, nlags: Optional[int] = None) -> ModelReport:
    """Collect all diagnostics of one model."""
    report = ModelReport(
        model_id=result.model_id,
        summary=coefficient_summary(result),
        resid_vs_fitted=residuals_vs_fitted(result),
        qq=normal_quantiles(result),
        acf=residual_acf(result, nlags=nlags),
    )
    n_outside = int(((report.acf['acf'] > report.acf['upper']) |
                     (report.acf['acf'] < report.acf['lower']))[1:].sum())
    logger.info(f"{result.model_id}: {n_outside} residual ACF lags outside the 95% band")
    return report


def format_report(report: ModelReport) -> str:
    acf_lags = report.acf.iloc[1:6]
    lines = [
        "=" * 72,
        report.summary,
        "",
        "Residual ACF (first lags):",
        acf_lags[['lag', 'acf']].to_string(index=False, float_format=lambda v: f"{v:.3f}"),
        "=" * 72,
    ]
    return "\n".join(lines)
