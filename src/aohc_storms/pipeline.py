# src/aohc_storms/pipeline.py
"""
Module: pipeline.py
Responsibilities:
- Seed the random generators once per run
- Load -> derive -> exploratory plots -> fit four models -> report
- Keep model failures independent: a ModelConvergenceError skips that
  model's diagnostics but not the other models
"""
import random
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

from aohc_storms.config import DEFAULT_STORM_CSV, DEFAULT_OCEAN_HEAT_CSV, DEFAULT_SEED
from aohc_storms.data_io import load_inputs
from aohc_storms.diagnostics import ModelReport, build_report, format_report
from aohc_storms.errors import ModelConvergenceError
from aohc_storms.gam_ar1 import fit_seasonal_ar1_gam
from aohc_storms.gam_fit import fit_trend_gam, fit_seasonal_gam, compare_smooth_models
from aohc_storms.glm_fit import fit_storm_glm, multiplicative_effects
from aohc_storms.preprocess import prepare_storm_data, prepare_ocean_heat_data, summarize_groups
from aohc_storms.results import ModelResult
from aohc_storms import viz

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


@dataclass
class AnalysisOutcome:
    """Everything produced by one run."""
    storms: pd.DataFrame
    ocean_heat: pd.DataFrame
    results: Dict[str, ModelResult] = field(default_factory=dict)
    reports: Dict[str, ModelReport] = field(default_factory=dict)
    failures: Dict[str, str] = field(default_factory=dict)
    n_figures: int = 0


def set_seed(seed: int = DEFAULT_SEED) -> None:
    """Seed `random` and numpy's global generator."""
    random.seed(seed)
    np.random.seed(seed)
    logger.info(f"Random seed set to {seed}")


def prepare_tables(storms: pd.DataFrame, ocean_heat: pd.DataFrame) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Derive categorical fields on both tables."""
    return prepare_storm_data(storms), prepare_ocean_heat_data(ocean_heat)


def fit_all_models(
    storms: pd.DataFrame,
    ocean_heat: pd.DataFrame
) -> Tuple[Dict[str, ModelResult], Dict[str, str]]:
    """
    Fit the four models independently.

    Returns
    -------
    tuple
        (results keyed by model id, failure messages keyed by model id)
    """
    fitters: List[Tuple[str, Callable[[], ModelResult]]] = [
        ('model1', lambda: fit_trend_gam(ocean_heat)),
        ('model2', lambda: fit_seasonal_gam(ocean_heat)),
        ('model3', lambda: fit_seasonal_ar1_gam(ocean_heat)),
        ('model4', lambda: fit_storm_glm(storms)),
    ]
    results: Dict[str, ModelResult] = {}
    failures: Dict[str, str] = {}
    for model_id, fitter in fitters:
        try:
            results[model_id] = fitter()
        except ModelConvergenceError as e:
            logger.error(f"{model_id} failed to converge, skipping its diagnostics: {e}")
            failures[model_id] = str(e)
    return results, failures


def _exploratory_plots(storms, ocean_heat, output_dir, show) -> int:
    figures = [
        viz.plot_ocean_heat_series(ocean_heat, output_dir, show),
        viz.plot_ao_by_year_group(storms, output_dir, show),
        viz.plot_wind_interaction(storms, output_dir, show),
        viz.plot_wind_vs_ao(storms, output_dir, show),
        viz.plot_ao_vs_time(ocean_heat, output_dir, show),
        viz.plot_ao_density(storms, output_dir, show),
    ]
    for fig in figures:
        plt.close(fig)
    return len(figures)


def _model_plots(result, report, data, output_dir, show) -> int:
    figures = [
        viz.plot_fitted_curve(result, data, output_dir, show),
        viz.plot_residuals_vs_fitted(report, output_dir, show),
        viz.plot_qq(report, output_dir, show),
        viz.plot_residual_acf(report, output_dir, show),
    ]
    if result.components is not None:
        figures.append(viz.plot_smooth_components(result, data, output_dir, show))
    for fig in figures:
        if fig is not None:
            plt.close(fig)
    return sum(fig is not None for fig in figures)


def run_analysis(
    storm_path: str = DEFAULT_STORM_CSV,
    ocean_heat_path: str = DEFAULT_OCEAN_HEAT_CSV,
    output_dir: Optional[str] = None,
    seed: int = DEFAULT_SEED,
    show: bool = False,
    make_plots: bool = True
) -> AnalysisOutcome:
    """
    Run the whole analysis once.

    Parameters
    ----------
    storm_path : str
        Path to merged_data_by_year_month.csv
    ocean_heat_path : str
        Path to ocean_heat_processed.csv
    output_dir : str, optional
        Directory for PNG figures; nothing is saved when None
    seed : int, optional
        Random seed applied once at start
    show : bool, optional
        Display figures interactively
    make_plots : bool, optional
        Render figures at all

    Returns
    -------
    AnalysisOutcome

    Raises
    ------
    MissingFileError, ParseError
        Input problems abort the run before any model is fitted
    """
    set_seed(seed)

    storms_raw, ocean_raw = load_inputs(storm_path, ocean_heat_path)
    storms, ocean_heat = prepare_tables(storms_raw, ocean_raw)
    outcome = AnalysisOutcome(storms=storms, ocean_heat=ocean_heat)

    print("Storm groups (Year_Group x AO_bin):")
    print(summarize_groups(storms).to_string(index=False, float_format=lambda v: f"{v:.3f}"))

    if make_plots:
        viz.set_publication_style()
        outcome.n_figures += _exploratory_plots(storms, ocean_heat, output_dir, show)

    outcome.results, outcome.failures = fit_all_models(storms, ocean_heat)

    for model_id, result in outcome.results.items():
        report = build_report(result)
        outcome.reports[model_id] = report
        print(format_report(report))
        if make_plots:
            data = storms if model_id == 'model4' else ocean_heat
            outcome.n_figures += _model_plots(result, report, data, output_dir, show)

    if 'model4' in outcome.results:
        print("Model 4 multiplicative effects (exp(coef)):")
        print(multiplicative_effects(outcome.results['model4']).to_string(float_format=lambda v: f"{v:.4g}"))

    comparison = compare_smooth_models(outcome.results)
    if not comparison.empty:
        print("Smooth model comparison:")
        print(comparison.to_string(float_format=lambda v: f"{v:.4g}"))

    logger.info(
        f"Analysis complete: {len(outcome.results)} models fitted, "
        f"{len(outcome.failures)} failed, {outcome.n_figures} figures rendered"
    )
    return outcome
