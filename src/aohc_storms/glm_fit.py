# src/aohc_storms/glm_fit.py
"""
Module: glm_fit.py
Responsibilities:
- Fit Model 4: Gamma GLM with log link, AO ~ Year + Max_Wind + TS_H
- Expose coefficients, response-scale fitted values and residuals
- Express coefficients as multiplicative effects (exp scale)
"""
import logging
import warnings

import numpy as np
import pandas as pd
import statsmodels.api as sm
import statsmodels.formula.api as smf
from statsmodels.tools.sm_exceptions import (
    ConvergenceWarning, MissingDataError, PerfectSeparationError
)

from aohc_storms.config import MODEL_IDS
from aohc_storms.errors import ModelConvergenceError, ParseError
from aohc_storms.results import ModelResult

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

GLM_FORMULA = 'AO ~ C(Year) + Max_Wind + C(TS_H)'
GLM_COLUMNS = ['AO', 'Year', 'Max_Wind', 'TS_H']


def _gamma_log_family():
    return sm.families.Gamma(link=sm.families.links.Log())


def fit_storm_glm(storms: pd.DataFrame, ci_level: float = 0.95) -> ModelResult:
    """
    Model 4: Gamma GLM with log link fitted by IRLS maximum likelihood.

    `Year` and `TS_H` enter as dummy-coded factors. Because of the log link
    the fitted values are always positive and exp(coef) is a multiplicative
    effect on the expected AO.

    Parameters
    ----------
    storms : pd.DataFrame
        Prepared storm table with AO, Year, Max_Wind, TS_H
    ci_level : float, optional
        Confidence level of the coefficient intervals

    Returns
    -------
    ModelResult
        residuals are deviance residuals; residual_sets also carries working,
        pearson and response residuals; predict() maps new rows to the
        response scale

    Raises
    ------
    ParseError
        If a model column is missing
    ModelConvergenceError
        If AO has non-positive values or IRLS fails or does not converge
    """
    model_id = 'model4'
    logger.info(f"Fitting {model_id}: {MODEL_IDS[model_id]}")

    missing = [col for col in GLM_COLUMNS if col not in storms.columns]
    if missing:
        raise ParseError(f"Storm table missing columns: {', '.join(missing)}", column=missing[0])

    data = storms[GLM_COLUMNS].dropna()
    if len(data) < len(storms):
        logger.warning(f"Dropped {len(storms) - len(data)} storm rows with missing values")
    if (data['AO'] <= 0).any():
        raise ModelConvergenceError(
            model_id, f"Gamma response requires AO > 0; found {(data['AO'] <= 0).sum()} non-positive values"
        )

    with warnings.catch_warnings():
        warnings.simplefilter('error', ConvergenceWarning)
        try:
            model = smf.glm(GLM_FORMULA, data=data, family=_gamma_log_family())
            res = model.fit()
        except ConvergenceWarning as e:
            raise ModelConvergenceError(model_id, f"IRLS did not converge: {e}") from e
        except (ValueError, np.linalg.LinAlgError, MissingDataError, PerfectSeparationError) as e:
            raise ModelConvergenceError(model_id, f"IRLS failed: {type(e).__name__}: {e}") from e

    if not res.converged:
        raise ModelConvergenceError(model_id, "IRLS did not converge")

    conf = res.conf_int(alpha=1.0 - ci_level)
    coefficients = pd.DataFrame({
        'estimate': res.params,
        'std_err': res.bse,
        'statistic': res.tvalues,
        'p_value': res.pvalues,
        'ci_lower': conf[0],
        'ci_upper': conf[1],
    })

    # Rows the formula layer used, which can be fewer than `data`
    index = pd.Index(res.model.data.row_labels)
    fitted = pd.Series(np.asarray(res.fittedvalues), index=index, name='fitted')
    deviance = pd.Series(np.asarray(res.resid_deviance), index=index, name='deviance_residual')
    residual_sets = {
        'deviance': deviance,
        'working': pd.Series(np.asarray(res.resid_working), index=index, name='working_residual'),
        'pearson': pd.Series(np.asarray(res.resid_pearson), index=index, name='pearson_residual'),
        'response': pd.Series(np.asarray(res.resid_response), index=index, name='residual'),
    }
    statistics = {
        'nobs': int(res.nobs),
        'df_resid': float(res.df_resid),
        'dispersion': float(res.scale),
        'deviance': float(res.deviance),
        'null_deviance': float(res.null_deviance),
        'aic': float(res.aic),
        'llf': float(res.llf),
    }

    def predictor(newdata: pd.DataFrame) -> pd.Series:
        return pd.Series(np.asarray(res.predict(newdata)), index=newdata.index, name='predicted')

    logger.info(
        f"{model_id}: {int(res.nobs)} obs, deviance={res.deviance:.4g}, "
        f"dispersion={res.scale:.4g}, AIC={res.aic:.2f}"
    )

    return ModelResult(
        model_id=model_id,
        description=MODEL_IDS[model_id],
        coefficients=coefficients,
        fitted=fitted,
        residuals=deviance,
        converged=bool(res.converged),
        statistics=statistics,
        residual_sets=residual_sets,
        predictor=predictor,
    )


def multiplicative_effects(result: ModelResult) -> pd.DataFrame:
    """
    Exponentiate log-link coefficients into multiplicative effects.

    Returns
    -------
    pd.DataFrame
        Columns effect, ci_lower, ci_upper, p_value; an effect of 1.05 means
        a 5% higher expected AO
    """
    coefs = result.coefficients
    required = ['estimate', 'ci_lower', 'ci_upper']
    if any(col not in coefs.columns for col in required):
        raise ValueError(f"{result.model_id} has no confidence intervals to exponentiate")
    return pd.DataFrame({
        'effect': np.exp(coefs['estimate']),
        'ci_lower': np.exp(coefs['ci_lower']),
        'ci_upper': np.exp(coefs['ci_upper']),
        'p_value': coefs['p_value'],
    })
