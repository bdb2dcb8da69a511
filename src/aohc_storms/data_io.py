# src/aohc_storms/data_io.py
"""
Module: data_io.py
Responsibilities:
- Validate the storm and ocean-heat CSV paths
- Load the storm CSV (no reordering) with numeric coercion of AO / Max_Wind
- Load the ocean-heat CSV, parse dates, sort by date and assign the time index
"""
import os
import logging
from typing import List, Tuple

import pandas as pd

from aohc_storms.config import STORM_COLUMNS, OCEAN_HEAT_COLUMNS
from aohc_storms.errors import MissingFileError, ParseError
from aohc_storms.preprocess import assign_time_index

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def _check_file(path: str, label: str) -> None:
    if not os.path.exists(path):
        raise MissingFileError(f"{label} file not found: {path}")
    if not os.path.isfile(path):
        raise MissingFileError(f"{label} path is not a file: {path}")
    if not os.access(path, os.R_OK):
        raise MissingFileError(f"{label} file is not readable: {path}")


def validate_paths(storm_path: str, ocean_heat_path: str) -> bool:
    """
    Ensure both input CSVs exist and are readable.

    Parameters
    ----------
    storm_path : str
        Path to the merged storm CSV
    ocean_heat_path : str
        Path to the ocean heat content CSV

    Returns
    -------
    bool
        True if both paths are valid

    Raises
    ------
    MissingFileError
        If either file is absent or not readable
    """
    _check_file(storm_path, "Storm")
    _check_file(ocean_heat_path, "Ocean heat")

    logger.info("Verifying paths...")
    logger.info(f"  Storm data: {storm_path}")
    logger.info(f"  Ocean heat data: {ocean_heat_path}")
    logger.info("  OK: paths are valid.")
    return True


def _read_csv(path: str, label: str) -> pd.DataFrame:
    _check_file(path, label)
    try:
        df = pd.read_csv(path)
    except pd.errors.EmptyDataError:
        raise ParseError(f"{label} file is empty: {path}")
    except pd.errors.ParserError as e:
        raise ParseError(f"Error parsing {label.lower()} file: {e}")

    if df.empty:
        raise ParseError(f"{label} file contains no data: {path}")
    return df


def _require_columns(df: pd.DataFrame, required: List[str], path: str) -> None:
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise ParseError(
            f"{path} missing required columns: {', '.join(missing)}",
            column=missing[0]
        )


def coerce_numeric(df: pd.DataFrame, column: str) -> pd.Series:
    """
    Convert a column to float, raising ParseError on non-conforming values.

    Blank cells stay NaN; anything else that is not a number is an error.
    """
    try:
        return pd.to_numeric(df[column], errors='raise').astype(float)
    except (ValueError, TypeError) as e:
        raise ParseError(f"Column '{column}' contains non-numeric values: {e}", column=column)


def load_storm_data(path: str) -> pd.DataFrame:
    """
    Load the merged storm CSV.

    Rows keep their file order. `AO` and `Max_Wind` are coerced to float,
    `TS_H` to text with blanks left missing. `Year` is kept as stored and
    coerced only when groups are derived.

    Parameters
    ----------
    path : str
        Path to merged_data_by_year_month.csv

    Returns
    -------
    pd.DataFrame
        Storm table with at least Year, AO, Max_Wind, TS_H

    Raises
    ------
    MissingFileError
        If the file does not exist
    ParseError
        If a required column is absent or not numeric where it must be
    """
    df = _read_csv(path, "Storm")
    _require_columns(df, STORM_COLUMNS, path)

    df = df.copy()
    df['AO'] = coerce_numeric(df, 'AO')
    df['Max_Wind'] = coerce_numeric(df, 'Max_Wind')
    # Blank storm types stay missing rather than becoming the text 'nan'
    ts_h = df['TS_H']
    df['TS_H'] = ts_h.where(ts_h.isna(), ts_h.astype(str)).astype(object)

    extra = [col for col in df.columns if col not in STORM_COLUMNS]
    if extra:
        logger.info(f"  Ignoring extra storm columns: {extra}")

    logger.info(f"Loaded storm data: {len(df)} rows from {os.path.basename(path)}")
    return df


def load_ocean_heat_data(path: str) -> pd.DataFrame:
    """
    Load the ocean heat content CSV, sort by date and add the `time` index.

    Parameters
    ----------
    path : str
        Path to ocean_heat_processed.csv

    Returns
    -------
    pd.DataFrame
        Table sorted by `date` with columns date, AO, time (1..N)

    Raises
    ------
    MissingFileError
        If the file does not exist
    ParseError
        If `date` cannot be parsed or `AO` is not numeric
    """
    df = _read_csv(path, "Ocean heat")
    _require_columns(df, OCEAN_HEAT_COLUMNS, path)

    df = df.copy()
    try:
        df['date'] = pd.to_datetime(df['date'], errors='raise')
    except (ValueError, TypeError) as e:
        raise ParseError(f"Column 'date' could not be parsed as dates: {e}", column='date')
    if df['date'].isna().any():
        raise ParseError("Column 'date' contains missing values", column='date')
    df['AO'] = coerce_numeric(df, 'AO')

    df = assign_time_index(df)
    logger.info(
        f"Loaded ocean heat data: {len(df)} rows, "
        f"{df['date'].min():%Y-%m} to {df['date'].max():%Y-%m}"
    )
    return df


def load_inputs(storm_path: str, ocean_heat_path: str) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Validate both paths and load the two tables."""
    validate_paths(storm_path, ocean_heat_path)
    storms = load_storm_data(storm_path)
    ocean_heat = load_ocean_heat_data(ocean_heat_path)
    return storms, ocean_heat
