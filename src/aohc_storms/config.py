# src/aohc_storms/config.py
"""
Module: config.py
Responsibilities:
- Default input locations and random seed
- Model basis sizes and convergence settings
- Labels and thresholds used when deriving categorical fields
"""

# Input files
DEFAULT_STORM_CSV = 'merged_data_by_year_month.csv'
DEFAULT_OCEAN_HEAT_CSV = 'ocean_heat_processed.csv'

# Reproducibility
DEFAULT_SEED = 123

# Required columns
STORM_COLUMNS = ['Year', 'AO', 'Max_Wind', 'TS_H']
OCEAN_HEAT_COLUMNS = ['date', 'AO']

# AO tercile bins
AO_BIN_PROBS = (0.0, 0.33, 0.66, 1.0)
AO_BIN_LABELS = ['Low', 'Medium', 'High']
DEFAULT_QUANTILE_METHOD = 'linear'

# Year groups: (upper bound inclusive, label); anything above the last bound is '2020s'
YEAR_GROUP_BOUNDS = [(2009, '2000s'), (2019, '2010s')]
YEAR_GROUP_LABELS = ['2000s', '2010s', '2020s']

# Smooth models
MODEL1_TIME_DF = 55
MODEL2_TIME_DF = 45
MODEL2_MONTH_DF = 12
MODEL3_TIME_DF = 45
MODEL3_MONTH_DF = 8
SPLINE_DEGREE = 3
SMOOTH_CRITERION = 'gcv'

# AR(1) estimation
AR1_TOL = 1e-4
AR1_MAX_ITER = 100
AR1_RHO_BOUND = 0.99

# Model identifiers
MODEL_IDS = {
    'model1': 'Long-term trend spline: AO ~ s(time, k=55)',
    'model2': 'Trend + seasonality: AO ~ s(time, k=45) + s(months, cc, k=12)',
    'model3': 'Trend + seasonality + AR(1): AO ~ s(time, k=45) + s(months, cc, k=8), corAR1(~time)',
    'model4': 'Gamma GLM (log link): AO ~ Year + Max_Wind + TS_H',
}

# Figures
FIG_SIZES = {
    'small': (6, 4),
    'medium': (8, 6),
    'wide': (12, 6),
    'wide_small': (8, 4),
    'tall': (8, 10),
}
FIG_DPI = 300
