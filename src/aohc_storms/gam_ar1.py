# src/aohc_storms/gam_ar1.py
"""
Module: gam_ar1.py
Responsibilities:
- Fit Model 3: AO ~ s(time, k=45) + s(months, cc, k=8) with AR(1) errors in time
- Estimate the AR(1) coefficient by maximising the profile likelihood of the
  Prais-Winsten whitened penalized fit, with smoothing weights chosen by GCV
  at every candidate coefficient
- Report normalized residuals and the separate trend / seasonal components
"""
import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import optimize
from scipy.stats import chi2, t as t_dist

from aohc_storms.config import (
    MODEL_IDS, MODEL3_TIME_DF, MODEL3_MONTH_DF,
    AR1_TOL, AR1_MAX_ITER, AR1_RHO_BOUND
)
from aohc_storms.errors import ModelConvergenceError
from aohc_storms.gam_fit import (
    SmoothSpec, build_smoother, initial_penalty_weights, prepare_smooth_data
)
from aohc_storms.results import ModelResult

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# Common multipliers (natural log) tried before the Nelder-Mead refinement
LOG_ALPHA_GRID = np.linspace(-12.0, 12.0, 25)


@dataclass
class PenalizedFit:
    beta: np.ndarray
    cov_unscaled: np.ndarray
    edf_params: np.ndarray
    rss: float
    nobs: int

    @property
    def edf(self) -> float:
        return float(self.edf_params.sum())

    @property
    def scale(self) -> float:
        return self.rss / (self.nobs - self.edf)

    @property
    def gcv(self) -> float:
        return self.nobs * self.rss / (self.nobs - self.edf) ** 2


def ar1_whiten(z: np.ndarray, rho: float) -> np.ndarray:
    """
    Prais-Winsten transform for AR(1) errors.

    The first row is scaled by sqrt(1 - rho^2), later rows become
    z[t] - rho * z[t-1]. Works on vectors and on row-major design matrices.
    """
    z = np.asarray(z, dtype=float)
    out = np.empty_like(z)
    out[0] = np.sqrt(1.0 - rho ** 2) * z[0]
    out[1:] = z[1:] - rho * z[:-1]
    return out


def estimate_rho(resid: np.ndarray, bound: float = AR1_RHO_BOUND) -> float:
    """Lag-1 autocorrelation of the residuals, clipped to (-bound, bound)."""
    resid = np.asarray(resid, dtype=float)
    denom = float(np.dot(resid, resid))
    if denom == 0.0:
        return 0.0
    rho = float(np.dot(resid[1:], resid[:-1]) / denom)
    return float(np.clip(rho, -bound, bound))


def penalty_matrix(alpha: Sequence[float], smoother, k_linear: int) -> np.ndarray:
    """Block-diagonal penalty with the parametric columns unpenalized."""
    p = k_linear + smoother.dim_basis
    S = np.zeros((p, p))
    for a, mask, P in zip(alpha, smoother.mask, smoother.penalty_matrices):
        idx = k_linear + np.nonzero(mask)[0]
        S[np.ix_(idx, idx)] += a * P
    return S


def penalized_fit(X: np.ndarray, y: np.ndarray, S: np.ndarray) -> PenalizedFit:
    """
    Penalized least squares: beta = (X'X + S)^-1 X'y.

    Raises
    ------
    np.linalg.LinAlgError
        If X'X + S is singular
    """
    XtX = X.T @ X
    A = XtX + S
    A_inv = np.linalg.inv(A)
    beta = A_inv @ (X.T @ y)
    resid = y - X @ beta
    return PenalizedFit(
        beta=beta,
        cov_unscaled=A_inv,
        edf_params=np.diag(A_inv @ XtX),
        rss=float(resid @ resid),
        nobs=len(y),
    )


def _gcv_objective(log_alpha, X, y, smoother, k_linear) -> float:
    S = penalty_matrix(np.exp(log_alpha), smoother, k_linear)
    try:
        fit = penalized_fit(X, y, S)
    except np.linalg.LinAlgError:
        return np.inf
    if fit.nobs - fit.edf <= 1.0:
        return np.inf
    return fit.gcv


def select_log_alpha(
    X: np.ndarray,
    y: np.ndarray,
    smoother,
    k_linear: int,
    start: np.ndarray
) -> np.ndarray:
    """
    Minimise GCV over the log smoothing weights.

    A coarse grid over a common multiplier of `start` picks the starting
    point, Nelder-Mead refines each weight.
    """
    scores = [_gcv_objective(start + c, X, y, smoother, k_linear) for c in LOG_ALPHA_GRID]
    x0 = start + LOG_ALPHA_GRID[int(np.argmin(scores))]

    k = len(x0)
    simplex = np.vstack([x0] + [x0 + np.eye(k)[i] for i in range(k)])
    res = optimize.minimize(
        _gcv_objective, x0, args=(X, y, smoother, k_linear), method='Nelder-Mead',
        options={'initial_simplex': simplex, 'xatol': 1e-6, 'fatol': 1e-12, 'maxiter': 2000}
    )
    if not res.success:
        logger.warning(f"GCV search stopped early: {res.message}")
    return np.asarray(res.x, dtype=float)


def _coefficient_table(fit: PenalizedFit, names: List[str], k_linear: int) -> pd.DataFrame:
    se = np.sqrt(fit.scale * np.diag(fit.cov_unscaled)[:k_linear])
    est = fit.beta[:k_linear]
    stat = est / se
    df_resid = fit.nobs - fit.edf
    return pd.DataFrame({
        'estimate': est,
        'std_err': se,
        'statistic': stat,
        'p_value': 2.0 * t_dist.sf(np.abs(stat), df_resid),
    }, index=names)


def _smooth_table(fit: PenalizedFit, smoother, specs, k_linear: int) -> pd.DataFrame:
    rows = []
    for j, (column, kind, k) in enumerate(specs):
        idx = k_linear + np.nonzero(smoother.mask[j])[0]
        b = fit.beta[idx]
        V = fit.scale * fit.cov_unscaled[np.ix_(idx, idx)]
        edf_j = float(fit.edf_params[idx].sum())
        stat = float(b @ np.linalg.pinv(V) @ b)
        rows.append({
            'term': f's({column})' if kind == 'bs' else f's({column}, cc)',
            'k': k,
            'edf': edf_j,
            'statistic': stat,
            'p_value': float(chi2.sf(stat, max(edf_j, 1.0))),
        })
    return pd.DataFrame(rows).set_index('term')



def ar1_profile_loglik(
    X: np.ndarray,
    y: np.ndarray,
    smoother,
    k_linear: int,
    rho: float,
    log_alpha_start: np.ndarray
) -> Tuple[float, PenalizedFit, np.ndarray]:
    """
    Gaussian log-likelihood of the penalized fit with AR(1) errors at `rho`.

    The data are whitened with `rho`, smoothing weights are selected by GCV
    on the whitened problem and the error variance is profiled out. The
    0.5 * log(1 - rho^2) term is the Jacobian of the Prais-Winsten transform.

    Returns
    -------
    tuple
        (log-likelihood, PenalizedFit on the whitened data, log smoothing weights)
    """
    Xw, yw = ar1_whiten(X, rho), ar1_whiten(y, rho)
    log_alpha = select_log_alpha(Xw, yw, smoother, k_linear, log_alpha_start)
    fit = penalized_fit(Xw, yw, penalty_matrix(np.exp(log_alpha), smoother, k_linear))
    n = fit.nobs
    llf = (-0.5 * n * np.log(2.0 * np.pi * fit.rss / n) - 0.5 * n
           + 0.5 * np.log(1.0 - rho ** 2))
    return float(llf), fit, log_alpha


def fit_seasonal_ar1_gam(
    ocean_heat: pd.DataFrame,
    k_time: int = MODEL3_TIME_DF,
    k_month: int = MODEL3_MONTH_DF,
    tol: float = AR1_TOL,
    max_iter: int = AR1_MAX_ITER,
    rho_bound: float = AR1_RHO_BOUND
) -> ModelResult:
    """
    Model 3: trend + cyclic seasonality with AR(1) residuals indexed by time.

    The AR(1) coefficient maximises the profile log-likelihood over
    (-rho_bound, rho_bound) with bounded Brent search; the smoothing
    weights are re-selected by GCV at every candidate coefficient.

    Parameters
    ----------
    ocean_heat : pd.DataFrame
        Prepared ocean heat table with `time`, `months` and `AO`
    k_time, k_month : int, optional
        Basis sizes of the trend and seasonal smooths
    tol : float, optional
        Absolute tolerance on the AR(1) coefficient
    max_iter : int, optional
        Maximum number of likelihood evaluations in the coefficient search
    rho_bound : float, optional
        The coefficient is searched in (-rho_bound, rho_bound)

    Returns
    -------
    ModelResult
        residuals are the normalized residuals; raw residuals are kept in
        residual_sets['response']; components hold s(time) and s(months)

    Raises
    ------
    ModelConvergenceError
        If the coefficient search does not settle within max_iter
        evaluations, or the basis or penalized system cannot be formed
    """
    model_id = 'model3'
    logger.info(f"Fitting {model_id}: {MODEL_IDS[model_id]}")

    specs: List[SmoothSpec] = [('time', 'bs', k_time), ('months', 'cc', k_month)]
    data = prepare_smooth_data(ocean_heat, ['time', 'months']).sort_values('time')

    try:
        smoother = build_smoother(data, specs)
        k_linear = 1
        X = np.column_stack([np.ones(len(data)), smoother.basis])
        y = data['AO'].to_numpy(dtype=float)
        names = ['Intercept'] + list(smoother.col_names)
        log_alpha_start = np.log(initial_penalty_weights(smoother))

        def neg_loglik(rho):
            llf, _, _ = ar1_profile_loglik(X, y, smoother, k_linear, rho, log_alpha_start)
            logger.debug(f"{model_id}: rho={rho:.5f}, llf={llf:.4f}")
            return -llf

        search = optimize.minimize_scalar(
            neg_loglik, bounds=(-rho_bound, rho_bound), method='bounded',
            options={'xatol': tol, 'maxiter': max_iter}
        )
        if not search.success:
            raise ModelConvergenceError(
                model_id,
                f"AR(1) coefficient search did not converge in {max_iter} evaluations "
                f"(rho={float(search.x):.4f}): {search.message}"
            )
        rho = float(search.x)
        llf, fit, log_alpha = ar1_profile_loglik(X, y, smoother, k_linear, rho, log_alpha_start)
    except (ValueError, np.linalg.LinAlgError) as e:
        raise ModelConvergenceError(model_id, f"Penalized AR(1) fit failed: {e}") from e

    Xw, yw = ar1_whiten(X, rho), ar1_whiten(y, rho)
    fitted_values = X @ fit.beta
    raw_resid = y - fitted_values
    whitened_resid = yw - Xw @ fit.beta
    normalized = whitened_resid / np.sqrt(fit.scale)

    index = data.index
    fitted = pd.Series(fitted_values, index=index, name='fitted')
    residuals = pd.Series(normalized, index=index, name='normalized_residual')

    components = pd.DataFrame(index=index)
    for j, (column, _, _) in enumerate(specs):
        mask = smoother.mask[j]
        components[f's({column})'] = smoother.basis[:, mask] @ fit.beta[k_linear + np.nonzero(mask)[0]]

    n = fit.nobs
    tss = float(np.sum((y - y.mean()) ** 2))
    rss_raw = float(raw_resid @ raw_resid)
    statistics = {
        'nobs': n,
        'edf': fit.edf,
        'scale': fit.scale,
        'gcv': fit.gcv,
        'llf': llf,
        # edf plus the error variance and the AR(1) coefficient
        'aic': float(-2.0 * llf + 2.0 * (fit.edf + 2.0)),
        'rho': rho,
        'iterations': int(search.nfev),
        'resid_lag1': estimate_rho(normalized),
        'r2_adj': 1.0 - (rss_raw / (n - fit.edf)) / (tss / (n - 1)) if tss > 0 else float('nan'),
    }
    for j, a in enumerate(np.exp(log_alpha)):
        statistics[f'alpha_{specs[j][0]}'] = float(a)

    logger.info(
        f"{model_id}: rho={rho:.4f} after {search.nfev} likelihood evaluations, "
        f"edf={fit.edf:.2f}, scale={fit.scale:.4g}, "
        f"lag-1 autocorrelation of normalized residuals={statistics['resid_lag1']:.3f}"
    )

    return ModelResult(
        model_id=model_id,
        description=MODEL_IDS[model_id],
        coefficients=_coefficient_table(fit, names[:k_linear], k_linear),
        fitted=fitted,
        residuals=residuals,
        converged=True,
        smooth_terms=_smooth_table(fit, smoother, specs, k_linear),
        components=components,
        statistics=statistics,
        residual_sets={
            'normalized': residuals,
            'response': pd.Series(raw_resid, index=index, name='residual'),
        },
        covariate=data['time'],
    )
