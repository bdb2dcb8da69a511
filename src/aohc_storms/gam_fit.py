# src/aohc_storms/gam_fit.py
"""
Module: gam_fit.py
Responsibilities:
- Build penalized spline smoothers (cubic B-spline trend, cyclic cubic season)
- Select smoothing weights by GCV
- Fit Model 1 (AO ~ s(time)) and Model 2 (AO ~ s(time) + s(months, cc))
- Convert statsmodels GLMGam results into ModelResult
- Compare the fitted smooth models side by side
"""
import logging
import warnings
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from statsmodels.gam.api import GLMGam
from statsmodels.gam.smooth_basis import (
    GenericSmoothers, UnivariateBSplines, UnivariateCubicCyclicSplines
)
from statsmodels.tools.sm_exceptions import ConvergenceWarning

from aohc_storms.config import (
    MODEL_IDS, MODEL1_TIME_DF, MODEL2_TIME_DF, MODEL2_MONTH_DF,
    SPLINE_DEGREE, SMOOTH_CRITERION
)
from aohc_storms.errors import ModelConvergenceError, ParseError
from aohc_storms.results import ModelResult

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# (column, kind, basis size); kind is 'bs' (cubic B-spline) or 'cc' (cyclic cubic)
SmoothSpec = Tuple[str, str, int]


def prepare_smooth_data(df: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
    """
    Select AO and the smooth covariates, dropping rows with missing values.

    Raises
    ------
    ParseError
        If a required column is missing
    """
    required = ['AO'] + list(columns)
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise ParseError(f"Ocean heat table missing columns: {', '.join(missing)}", column=missing[0])

    data = df[required].astype(float)
    n_before = len(data)
    data = data.dropna()
    if len(data) < n_before:
        logger.warning(f"Dropped {n_before - len(data)} rows with missing values before fitting")
    return data


def build_smoother(data: pd.DataFrame, specs: Sequence[SmoothSpec]) -> GenericSmoothers:
    """
    Build an additive smoother with one univariate spline per entry in `specs`.

    Every smooth is centered (sum-to-zero) so the model intercept stays
    identifiable.
    """
    smoothers = []
    for column, kind, k in specs:
        x = data[column].to_numpy(dtype=float)
        if kind == 'bs':
            smoothers.append(UnivariateBSplines(
                x, df=k, degree=SPLINE_DEGREE, include_intercept=True,
                constraints='center', variable_name=column
            ))
        elif kind == 'cc':
            smoothers.append(UnivariateCubicCyclicSplines(
                x, df=k, constraints='center', variable_name=column
            ))
        else:
            raise ValueError(f"Unknown smooth kind: {kind}")
    x_all = data[[column for column, _, _ in specs]]
    return GenericSmoothers(x_all, smoothers)


def initial_penalty_weights(smoother) -> np.ndarray:
    """
    Starting smoothing weights that put basis and penalty on a similar scale.
    """
    weights = []
    for mask, penalty in zip(smoother.mask, smoother.penalty_matrices):
        basis = smoother.basis[:, mask]
        weights.append(np.trace(basis.T @ basis) / max(np.trace(penalty), 1e-12))
    return np.asarray(weights, dtype=float)


def select_smoothing_weights(
    model_id: str,
    endog: pd.Series,
    exog: pd.DataFrame,
    smoother,
    criterion: str = SMOOTH_CRITERION
) -> np.ndarray:
    """
    Choose the smoothing weights that minimise `criterion` with Nelder-Mead.

    Returns
    -------
    np.ndarray
        One weight per smooth term
    """
    start = initial_penalty_weights(smoother)
    gam = GLMGam(endog, exog=exog, smoother=smoother, alpha=start)
    try:
        # select_penweight reads the scale of an initial fit
        gam.fit()
        alpha, fit_res, _history = gam.select_penweight(
            criterion=criterion, start_params=start, method='nm', disp=False
        )
    except (ValueError, np.linalg.LinAlgError) as e:
        raise ModelConvergenceError(model_id, f"Smoothing weight search failed: {e}") from e

    if fit_res[4] != 0:
        logger.warning(f"{model_id}: smoothing weight search hit its iteration limit")
    logger.info(
        f"{model_id}: selected smoothing weights {np.round(alpha, 4).tolist()} "
        f"after {fit_res[3]} evaluations"
    )
    return np.atleast_1d(alpha)


def fit_penalized_gam(
    model_id: str,
    data: pd.DataFrame,
    specs: Sequence[SmoothSpec],
    alpha: Optional[Sequence[float]] = None
):
    """
    Fit AO on the smooths in `specs` with a Gaussian GLMGam.

    Parameters
    ----------
    model_id : str
        Identifier used in logs and errors
    data : pd.DataFrame
        Output of prepare_smooth_data
    specs : sequence of SmoothSpec
        Smooth terms
    alpha : sequence of float, optional
        Fixed smoothing weights; selected by GCV when None

    Returns
    -------
    tuple
        (statsmodels GLMGam results, smoother)

    Raises
    ------
    ModelConvergenceError
        If the basis cannot be built, PIRLS does not converge or the
        system is singular
    """
    try:
        smoother = build_smoother(data, specs)
    except (ValueError, np.linalg.LinAlgError) as e:
        raise ModelConvergenceError(model_id, f"Could not build spline basis: {e}") from e
    endog = data['AO']
    exog = pd.DataFrame({'Intercept': np.ones(len(data))}, index=data.index)

    if alpha is None:
        alpha = select_smoothing_weights(model_id, endog, exog, smoother)

    with warnings.catch_warnings():
        warnings.simplefilter('error', ConvergenceWarning)
        try:
            res = GLMGam(endog, exog=exog, smoother=smoother, alpha=np.asarray(alpha)).fit()
        except ConvergenceWarning as e:
            raise ModelConvergenceError(model_id, f"PIRLS did not converge: {e}") from e
        except (ValueError, np.linalg.LinAlgError) as e:
            raise ModelConvergenceError(model_id, f"PIRLS failed: {e}") from e

    if not res.converged:
        raise ModelConvergenceError(model_id, "PIRLS did not converge")
    return res, smoother


def _smooth_term_table(res, smoother, specs: Sequence[SmoothSpec]) -> pd.DataFrame:
    k_linear = res.model.k_exog_linear
    k_params = len(res.params)
    edf = np.asarray(res.edf)
    rows = []
    for j, (column, kind, k) in enumerate(specs):
        idx = k_linear + np.nonzero(smoother.mask[j])[0]
        # Wald test that every coefficient of the smooth is zero, on its edf
        constraints = np.eye(len(idx), k_params, idx[0])
        test = res.wald_test(constraints, df_constraints=edf[idx].sum(), scalar=True)
        rows.append({
            'term': f's({column})' if kind == 'bs' else f's({column}, cc)',
            'k': k,
            'edf': float(edf[idx].sum()),
            'statistic': float(np.squeeze(test.statistic)),
            'p_value': float(np.squeeze(test.pvalue)),
        })
    return pd.DataFrame(rows).set_index('term')


def _parametric_table(res) -> pd.DataFrame:
    k_linear = res.model.k_exog_linear
    names = list(res.model.exog_names)[:k_linear]
    return pd.DataFrame({
        'estimate': np.asarray(res.params)[:k_linear],
        'std_err': np.asarray(res.bse)[:k_linear],
        'statistic': np.asarray(res.tvalues)[:k_linear],
        'p_value': np.asarray(res.pvalues)[:k_linear],
    }, index=names)


def gam_to_result(
    model_id: str,
    res,
    smoother,
    data: pd.DataFrame,
    specs: Sequence[SmoothSpec]
) -> ModelResult:
    """Wrap GLMGam results in a ModelResult."""
    y = data['AO'].to_numpy()
    fitted = pd.Series(np.asarray(res.fittedvalues), index=data.index, name='fitted')
    resid = pd.Series(y - fitted.to_numpy(), index=data.index, name='residual')

    components = pd.DataFrame(index=data.index)
    for j, (column, kind, _) in enumerate(specs):
        partial, _se = res.partial_values(j, include_constant=False)
        components[f's({column})'] = np.asarray(partial)

    n = len(y)
    edf_total = float(np.sum(res.edf))
    rss = float(np.sum(resid.to_numpy() ** 2))
    tss = float(np.sum((y - y.mean()) ** 2))
    statistics = {
        'nobs': n,
        'edf': edf_total,
        'scale': float(res.scale),
        'gcv': float(res.gcv),
        'aic': float(res.aic),
        'r2_adj': 1.0 - (rss / (n - edf_total)) / (tss / (n - 1)) if tss > 0 else float('nan'),
        'deviance_explained': 1.0 - rss / tss if tss > 0 else float('nan'),
    }
    for j, alpha in enumerate(np.atleast_1d(res.model.alpha)):
        statistics[f'alpha_{specs[j][0]}'] = float(alpha)

    return ModelResult(
        model_id=model_id,
        description=MODEL_IDS[model_id],
        coefficients=_parametric_table(res),
        fitted=fitted,
        residuals=resid,
        converged=bool(res.converged),
        smooth_terms=_smooth_term_table(res, smoother, specs),
        components=components,
        statistics=statistics,
        residual_sets={'response': resid},
        covariate=data['time'] if 'time' in data.columns else None,
    )


def fit_trend_gam(ocean_heat: pd.DataFrame, k: int = MODEL1_TIME_DF) -> ModelResult:
    """
    Model 1: long-term trend spline, AO ~ s(time, k=55).

    Parameters
    ----------
    ocean_heat : pd.DataFrame
        Prepared ocean heat table with `time` and `AO`
    k : int, optional
        Number of basis functions

    Returns
    -------
    ModelResult
    """
    model_id = 'model1'
    logger.info(f"Fitting {model_id}: {MODEL_IDS[model_id]}")
    specs = [('time', 'bs', k)]
    data = prepare_smooth_data(ocean_heat, ['time'])
    res, smoother = fit_penalized_gam(model_id, data, specs)
    result = gam_to_result(model_id, res, smoother, data, specs)
    logger.info(
        f"{model_id}: edf={result.statistics['edf']:.2f}, "
        f"scale={result.statistics['scale']:.4g}, gcv={result.statistics['gcv']:.4g}"
    )
    return result


def fit_seasonal_gam(
    ocean_heat: pd.DataFrame,
    k_time: int = MODEL2_TIME_DF,
    k_month: int = MODEL2_MONTH_DF
) -> ModelResult:
    """
    Model 2: trend plus cyclic seasonality, AO ~ s(time, k=45) + s(months, cc, k=12).

    The two smooths are additive with no interaction; the months smooth is
    periodic so December joins January.
    """
    model_id = 'model2'
    logger.info(f"Fitting {model_id}: {MODEL_IDS[model_id]}")
    specs = [('time', 'bs', k_time), ('months', 'cc', k_month)]
    data = prepare_smooth_data(ocean_heat, ['time', 'months'])
    res, smoother = fit_penalized_gam(model_id, data, specs)
    result = gam_to_result(model_id, res, smoother, data, specs)
    logger.info(
        f"{model_id}: edf={result.statistics['edf']:.2f}, "
        f"scale={result.statistics['scale']:.4g}, gcv={result.statistics['gcv']:.4g}"
    )
    return result


def compare_smooth_models(results: Dict[str, ModelResult]) -> pd.DataFrame:
    """
    Side-by-side fit statistics for the smooth models that were fitted.

    Parameters
    ----------
    results : dict
        ModelResult keyed by model id; models without the statistics are skipped

    Returns
    -------
    pd.DataFrame
        Indexed by model id with columns edf, scale, gcv, aic, rho
    """
    columns: List[str] = ['edf', 'scale', 'gcv', 'aic', 'rho']
    rows = {}
    for model_id, result in results.items():
        if result.smooth_terms is None:
            continue
        rows[model_id] = {col: result.statistics.get(col, np.nan) for col in columns}
    return pd.DataFrame.from_dict(rows, orient='index', columns=columns)
