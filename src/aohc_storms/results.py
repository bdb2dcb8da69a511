# src/aohc_storms/results.py
"""
Module: results.py
Responsibilities:
- Library-independent container for a fitted model
- Attach fitted values / residuals to a copy of the input table
"""
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

import pandas as pd


@dataclass(frozen=True)
class ModelResult:
    """
    Fitted model, decoupled from the regression library that produced it.

    Attributes
    ----------
    model_id : str
        Short identifier ('model1' .. 'model4')
    description : str
        Human-readable model formula
    coefficients : pd.DataFrame
        Parametric terms, columns estimate, std_err, statistic, p_value
    fitted : pd.Series
        Fitted values on the response scale, aligned to the input rows
    residuals : pd.Series
        Residuals used for diagnostics (normalized for the AR(1) model,
        deviance residuals for the GLM, response residuals otherwise)
    converged : bool
        Whether the iterative fit reported convergence
    smooth_terms : pd.DataFrame, optional
        One row per smooth term: edf, statistic, p_value
    components : pd.DataFrame, optional
        Per-smooth contributions to the linear predictor
    statistics : dict
        Scalar fit statistics (edf, scale, gcv, aic, rho, ...)
    residual_sets : dict
        Other residual flavours keyed by name
    covariate : pd.Series, optional
        Covariate to plot the fitted curve against (e.g. `time`)
    predictor : callable, optional
        Maps a new DataFrame to predictions on the response scale
    """
    model_id: str
    description: str
    coefficients: pd.DataFrame
    fitted: pd.Series
    residuals: pd.Series
    converged: bool = True
    smooth_terms: Optional[pd.DataFrame] = None
    components: Optional[pd.DataFrame] = None
    statistics: Dict[str, float] = field(default_factory=dict)
    residual_sets: Dict[str, pd.Series] = field(default_factory=dict)
    covariate: Optional[pd.Series] = None
    predictor: Optional[Callable[[pd.DataFrame], pd.Series]] = field(default=None, repr=False)

    @property
    def nobs(self) -> int:
        return int(self.fitted.shape[0])

    def augment(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Return a copy of `df` with fitted_<id> and resid_<id> columns.

        Rows are matched on the index, so rows dropped during fitting get NaN.
        """
        out = df.copy()
        out[f'fitted_{self.model_id}'] = self.fitted.reindex(out.index)
        out[f'resid_{self.model_id}'] = self.residuals.reindex(out.index)
        return out

    def predict(self, newdata: pd.DataFrame) -> pd.Series:
        if self.predictor is None:
            raise NotImplementedError(f"{self.model_id} does not support prediction on new data")
        return self.predictor(newdata)
