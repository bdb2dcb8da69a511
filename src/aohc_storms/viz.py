# src/aohc_storms/viz.py
"""
Visualization utilities for the ocean heat content and storm analysis.

Exploratory plots of the prepared tables and per-model diagnostic plots
(fitted curve, smooth components, residuals vs fitted, QQ, ACF). Every
function returns the matplotlib Figure and saves it when `output_dir` is given.
"""
import os
import logging
from typing import Optional

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns

from aohc_storms.config import FIG_SIZES, FIG_DPI
from aohc_storms.diagnostics import ModelReport
from aohc_storms.preprocess import summarize_groups
from aohc_storms.results import ModelResult

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

AO_LABEL = 'AOHC (0-700 m)'


def set_publication_style():
    """Set matplotlib parameters for report figures."""
    plt.style.use('seaborn-v0_8-whitegrid')

    plt.rcParams['figure.figsize'] = FIG_SIZES['medium']
    plt.rcParams['savefig.dpi'] = FIG_DPI
    plt.rcParams['font.size'] = 12
    plt.rcParams['axes.titlesize'] = 14
    plt.rcParams['axes.labelsize'] = 12
    plt.rcParams['legend.fontsize'] = 10
    plt.rcParams['grid.alpha'] = 0.3
    plt.rcParams['lines.linewidth'] = 1.5


def save_figure(fig, filename, dpi=FIG_DPI, bbox_inches='tight', **kwargs):
    """
    Save a figure, adding .png when the name has no extension.

    Parameters
    ----------
    fig : matplotlib.figure.Figure
        Figure to save
    filename : str
        Output filename
    dpi : int, optional
        Resolution (dots per inch)
    bbox_inches : str, optional
        Bounding box setting
    """
    if not os.path.splitext(filename)[1]:
        filename = f"{filename}.png"

    os.makedirs(os.path.dirname(os.path.abspath(filename)), exist_ok=True)
    fig.savefig(filename, dpi=dpi, bbox_inches=bbox_inches, **kwargs)
    logger.info(f"Figure saved to {filename}")
    return filename


def _finish(fig, name: str, output_dir: Optional[str], show: bool):
    fig.tight_layout()
    if output_dir:
        save_figure(fig, os.path.join(output_dir, name))
    if show:
        plt.show()
    return fig


# ── Exploratory plots ────────────────────────────────────────────────────────

def plot_ocean_heat_series(ocean_heat: pd.DataFrame, output_dir: str = None, show: bool = False) -> plt.Figure:
    """Monthly AOHC time series."""
    fig, ax = plt.subplots(figsize=FIG_SIZES['wide'])
    ax.plot(ocean_heat['date'], ocean_heat['AO'], color='#08519C')
    ax.set_xlabel('Date')
    ax.set_ylabel(AO_LABEL)
    ax.set_title('Atlantic Ocean Heat Content')
    return _finish(fig, 'ocean_heat_series', output_dir, show)


def plot_ao_by_year_group(storms: pd.DataFrame, output_dir: str = None, show: bool = False) -> plt.Figure:
    """Boxplot of AO per decade group."""
    fig, ax = plt.subplots(figsize=FIG_SIZES['medium'])
    sns.boxplot(data=storms, x='Year_Group', y='AO', ax=ax, color='#6BAED6')
    ax.set_xlabel('Year group')
    ax.set_ylabel(AO_LABEL)
    ax.set_title('AOHC by decade')
    return _finish(fig, 'ao_by_year_group', output_dir, show)


def plot_wind_interaction(storms: pd.DataFrame, output_dir: str = None, show: bool = False) -> plt.Figure:
    """
    Interaction plot: mean Max_Wind across Year_Group, one line per AO_bin.
    """
    summary = summarize_groups(storms)
    fig, ax = plt.subplots(figsize=FIG_SIZES['medium'])
    for ao_bin, group in summary.groupby('AO_bin', observed=True):
        ax.plot(group['Year_Group'].astype(str), group['mean_Max_Wind'], marker='o', label=str(ao_bin))
    ax.set_xlabel('Year group')
    ax.set_ylabel('Mean maximum wind')
    ax.set_title('Storm intensity by decade and AOHC level')
    ax.legend(title='AO bin')
    return _finish(fig, 'wind_interaction', output_dir, show)


def plot_wind_vs_ao(storms: pd.DataFrame, output_dir: str = None, show: bool = False) -> plt.Figure:
    """Scatter of Max_Wind against AO, coloured by storm type."""
    fig, ax = plt.subplots(figsize=FIG_SIZES['medium'])
    sns.scatterplot(data=storms, x='AO', y='Max_Wind', hue='TS_H', alpha=0.7, ax=ax)
    ax.set_xlabel(AO_LABEL)
    ax.set_ylabel('Maximum wind')
    ax.set_title('Storm intensity vs AOHC')
    return _finish(fig, 'wind_vs_ao', output_dir, show)


def plot_ao_vs_time(ocean_heat: pd.DataFrame, output_dir: str = None, show: bool = False) -> plt.Figure:
    """Scatter of AO against the time index."""
    fig, ax = plt.subplots(figsize=FIG_SIZES['medium'])
    ax.scatter(ocean_heat['time'], ocean_heat['AO'], s=12, alpha=0.7, color='#2171B5')
    ax.set_xlabel('Time index (months)')
    ax.set_ylabel(AO_LABEL)
    ax.set_title('AOHC vs time')
    return _finish(fig, 'ao_vs_time', output_dir, show)


def plot_ao_density(storms: pd.DataFrame, output_dir: str = None, show: bool = False) -> plt.Figure:
    """Kernel density of AO per decade group."""
    fig, ax = plt.subplots(figsize=FIG_SIZES['medium'])
    sns.kdeplot(data=storms, x='AO', hue='Year_Group', fill=True, common_norm=False, alpha=0.4, ax=ax)
    ax.set_xlabel(AO_LABEL)
    ax.set_title('AOHC density by decade')
    return _finish(fig, 'ao_density', output_dir, show)


# ── Model plots ──────────────────────────────────────────────────────────────

def plot_fitted_curve(
    result: ModelResult,
    data: pd.DataFrame,
    output_dir: str = None,
    show: bool = False
) -> plt.Figure:
    """
    Observed AO with the fitted curve over time, or observed vs fitted when
    the model has no time covariate.
    """
    fig, ax = plt.subplots(figsize=FIG_SIZES['wide'])
    observed = data['AO'].reindex(result.fitted.index)
    if result.covariate is not None:
        x = result.covariate
        ax.scatter(x, observed, s=10, alpha=0.5, color='grey', label='Observed')
        ax.plot(x, result.fitted, color='#B2182B', label='Fitted')
        ax.set_xlabel('Time index (months)')
        ax.set_ylabel(AO_LABEL)
    else:
        ax.scatter(result.fitted, observed, s=12, alpha=0.6)
        lims = [np.nanmin([result.fitted.min(), observed.min()]),
                np.nanmax([result.fitted.max(), observed.max()])]
        ax.plot(lims, lims, color='#B2182B', linestyle='--', label='1:1')
        ax.set_xlabel('Fitted AO')
        ax.set_ylabel('Observed AO')
    ax.set_title(result.description)
    ax.legend()
    return _finish(fig, f'{result.model_id}_fitted', output_dir, show)


def plot_smooth_components(
    result: ModelResult,
    data: pd.DataFrame,
    output_dir: str = None,
    show: bool = False
) -> Optional[plt.Figure]:
    """One panel per smooth term contribution (trend, seasonal)."""
    if result.components is None or result.components.empty:
        logger.warning(f"{result.model_id} has no smooth components to plot")
        return None

    terms = list(result.components.columns)
    fig, axes = plt.subplots(1, len(terms), figsize=FIG_SIZES['wide'], squeeze=False)
    for ax, term in zip(axes[0], terms):
        covariate = term[2:-1]
        x = data[covariate].reindex(result.components.index)
        order = np.argsort(x.to_numpy(), kind='mergesort')
        ax.plot(x.to_numpy()[order], result.components[term].to_numpy()[order], color='#08519C')
        ax.axhline(0.0, color='grey', linewidth=0.8)
        ax.set_xlabel(covariate)
        ax.set_ylabel(term)
    fig.suptitle(f'{result.model_id}: smooth components')
    return _finish(fig, f'{result.model_id}_components', output_dir, show)


def plot_residuals_vs_fitted(report: ModelReport, output_dir: str = None, show: bool = False) -> plt.Figure:
    fig, ax = plt.subplots(figsize=FIG_SIZES['medium'])
    ax.scatter(report.resid_vs_fitted['fitted'], report.resid_vs_fitted['residual'], s=12, alpha=0.6)
    ax.axhline(0.0, color='#B2182B', linewidth=1)
    ax.set_xlabel('Fitted values')
    ax.set_ylabel('Residuals')
    ax.set_title(f'{report.model_id}: residuals vs fitted')
    return _finish(fig, f'{report.model_id}_resid_vs_fitted', output_dir, show)


def plot_qq(report: ModelReport, output_dir: str = None, show: bool = False) -> plt.Figure:
    fig, ax = plt.subplots(figsize=FIG_SIZES['small'])
    ax.scatter(report.qq['theoretical'], report.qq['sample'], s=12, alpha=0.7)
    lims = [report.qq.min().min(), report.qq.max().max()]
    ax.plot(lims, lims, color='#B2182B', linestyle='--')
    ax.set_xlabel('Theoretical quantiles')
    ax.set_ylabel('Standardized residuals')
    ax.set_title(f'{report.model_id}: normal QQ')
    return _finish(fig, f'{report.model_id}_qq', output_dir, show)


def plot_residual_acf(report: ModelReport, output_dir: str = None, show: bool = False) -> plt.Figure:
    fig, ax = plt.subplots(figsize=FIG_SIZES['wide_small'])
    ax.vlines(report.acf['lag'], 0.0, report.acf['acf'], color='#08519C')
    ax.axhline(0.0, color='black', linewidth=0.8)
    ax.axhline(report.acf['upper'].iloc[0], color='#2166AC', linestyle='--', linewidth=0.8)
    ax.axhline(report.acf['lower'].iloc[0], color='#2166AC', linestyle='--', linewidth=0.8)
    ax.set_xlabel('Lag')
    ax.set_ylabel('ACF')
    ax.set_title(f'{report.model_id}: residual autocorrelation')
    return _finish(fig, f'{report.model_id}_acf', output_dir, show)
