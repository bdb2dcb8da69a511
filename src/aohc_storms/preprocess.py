# src/aohc_storms/preprocess.py
"""
Module: preprocess.py
Responsibilities:
- Assign the positional time index after sorting by date
- Extract the calendar month used as the cyclic seasonal covariate
- Tercile bins of AO over the full population (Low / Medium / High)
- Decade groups from the storm year (2000s / 2010s / 2020s)
- Categorical casts of Year / TS_H for the GLM
- Group summaries used by the interaction plot

Every function returns a new DataFrame; inputs are never modified.
"""
import logging
from typing import Iterable, Sequence, Union

import numpy as np
import pandas as pd

from aohc_storms.config import (
    AO_BIN_PROBS, AO_BIN_LABELS, DEFAULT_QUANTILE_METHOD,
    YEAR_GROUP_BOUNDS, YEAR_GROUP_LABELS
)
from aohc_storms.errors import ParseError

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def assign_time_index(df: pd.DataFrame) -> pd.DataFrame:
    """
    Sort by `date` and number the rows 1..N.

    The index is positional: it has to be recomputed whenever rows are
    re-sorted or filtered.

    Parameters
    ----------
    df : pd.DataFrame
        Table with a datetime `date` column

    Returns
    -------
    pd.DataFrame
        Sorted copy with an integer `time` column and a fresh RangeIndex
    """
    if 'date' not in df.columns:
        raise ParseError("DataFrame must have a 'date' column", column='date')

    out = df.sort_values('date', kind='mergesort').reset_index(drop=True)
    out['time'] = np.arange(1, len(out) + 1, dtype=int)
    return out


def add_months(df: pd.DataFrame) -> pd.DataFrame:
    """Add `months`, the integer calendar month (1-12) of `date`."""
    if 'date' not in df.columns:
        raise ParseError("DataFrame must have a 'date' column", column='date')

    out = df.copy()
    out['months'] = pd.DatetimeIndex(out['date']).month.astype(int)
    return out


def compute_ao_breaks(
    ao: Union[pd.Series, np.ndarray],
    probs: Sequence[float] = AO_BIN_PROBS,
    method: str = DEFAULT_QUANTILE_METHOD
) -> np.ndarray:
    """
    Quantile cut points of the full AO column.

    Parameters
    ----------
    ao : pd.Series or np.ndarray
        AO values of the whole population; NaNs are ignored
    probs : sequence of float, optional
        Probabilities of the cut points, defaults to (0, 0.33, 0.66, 1)
    method : str, optional
        numpy quantile method. 'linear' is R's default type 7;
        'weibull' is type 6.

    Returns
    -------
    np.ndarray
        Cut points, one per probability

    Raises
    ------
    ValueError
        If there are no finite values or the cut points are not unique
    """
    values = np.asarray(ao, dtype=float)
    values = values[np.isfinite(values)]
    if values.size == 0:
        raise ValueError("AO contains no finite values; cannot compute bins")

    breaks = np.quantile(values, probs, method=method)
    if np.any(np.diff(breaks) <= 0):
        raise ValueError(f"AO bin breaks are not unique: {breaks.tolist()}")
    return breaks


def add_ao_bins(
    df: pd.DataFrame,
    probs: Sequence[float] = AO_BIN_PROBS,
    labels: Sequence[str] = AO_BIN_LABELS,
    method: str = DEFAULT_QUANTILE_METHOD
) -> pd.DataFrame:
    """
    Add `AO_bin`, an ordered categorical from a tercile split of AO.

    Intervals are right-closed, and the lowest one is also closed on the
    left so the minimum lands in 'Low'. A value equal to an inner cut point
    belongs to the lower bin. Bins must be derived on the full population,
    before any filtering, because subsetting moves the cut points.

    Parameters
    ----------
    df : pd.DataFrame
        Storm table with an `AO` column
    probs, labels, method
        See compute_ao_breaks

    Returns
    -------
    pd.DataFrame
        Copy with `AO_bin`
    """
    if 'AO' not in df.columns:
        raise ParseError("DataFrame must have an 'AO' column", column='AO')
    if len(labels) != len(probs) - 1:
        raise ValueError(f"Expected {len(probs) - 1} labels, got {len(labels)}")

    breaks = compute_ao_breaks(df['AO'], probs=probs, method=method)
    out = df.copy()
    out['AO_bin'] = pd.cut(
        out['AO'],
        bins=breaks,
        labels=list(labels),
        right=True,
        include_lowest=True,
        ordered=True
    )
    logger.info(f"AO bin breaks: {np.round(breaks, 4).tolist()}")
    logger.info(f"AO bin counts: {out['AO_bin'].value_counts(sort=False).to_dict()}")
    return out


def _coerce_year(year) -> int:
    try:
        return int(float(str(year).strip()))
    except (TypeError, ValueError):
        raise ParseError(f"Year value cannot be converted to an integer: {year!r}", column='Year')


def year_to_group(year) -> str:
    """
    Map a year (text or number) to its decade group.

    >>> year_to_group(2009), year_to_group('2010'), year_to_group(2020)
    ('2000s', '2010s', '2020s')
    """
    value = _coerce_year(year)
    for upper, label in YEAR_GROUP_BOUNDS:
        if value <= upper:
            return label
    return YEAR_GROUP_LABELS[-1]


def add_year_group(df: pd.DataFrame) -> pd.DataFrame:
    """Add `Year_Group`, an ordered categorical {2000s, 2010s, 2020s}."""
    if 'Year' not in df.columns:
        raise ParseError("DataFrame must have a 'Year' column", column='Year')

    out = df.copy()
    groups = [year_to_group(y) for y in out['Year']]
    out['Year_Group'] = pd.Categorical(groups, categories=YEAR_GROUP_LABELS, ordered=True)
    return out


def as_categorical(df: pd.DataFrame, columns: Iterable[str]) -> pd.DataFrame:
    """
    Cast the given columns to categoricals.

    `Year` is normalised to its integer spelling first so that '2005',
    '2005.0' and 2005 are the same level.
    """
    out = df.copy()
    for col in columns:
        if col not in out.columns:
            raise ParseError(f"DataFrame must have a '{col}' column", column=col)
        if col == 'Year':
            years = [_coerce_year(y) for y in out[col]]
            out[col] = pd.Categorical(years, categories=sorted(set(years)))
        else:
            out[col] = out[col].astype('category')
    return out


def prepare_storm_data(
    df: pd.DataFrame,
    method: str = DEFAULT_QUANTILE_METHOD
) -> pd.DataFrame:
    """
    Derive AO_bin, Year_Group and categorical Year / TS_H on the storm table.

    Bins are computed before anything else so that they always reflect the
    full population.
    """
    logger.info(f"Preparing storm data ({len(df)} rows)")
    out = add_ao_bins(df, method=method)
    out = add_year_group(out)
    out = as_categorical(out, ['Year', 'TS_H'])
    return out


def prepare_ocean_heat_data(df: pd.DataFrame) -> pd.DataFrame:
    """Re-derive the time index and add months on the ocean-heat table."""
    logger.info(f"Preparing ocean heat data ({len(df)} rows)")
    out = assign_time_index(df)
    out = add_months(out)
    return out


def summarize_groups(storms: pd.DataFrame) -> pd.DataFrame:
    """
    Count and mean AO / Max_Wind per (Year_Group, AO_bin) cell.

    Parameters
    ----------
    storms : pd.DataFrame
        Prepared storm table

    Returns
    -------
    pd.DataFrame
        One row per observed cell with columns n, mean_AO, mean_Max_Wind
    """
    missing = [c for c in ('Year_Group', 'AO_bin', 'AO', 'Max_Wind') if c not in storms.columns]
    if missing:
        raise ParseError(f"Storm table missing columns: {', '.join(missing)}", column=missing[0])

    summary = (
        storms.groupby(['Year_Group', 'AO_bin'], observed=True)
        .agg(n=('AO', 'size'), mean_AO=('AO', 'mean'), mean_Max_Wind=('Max_Wind', 'mean'))
        .reset_index()
    )
    return summary
