"""
AOHC Storm Analysis.

Analysis code relating Atlantic Ocean Heat Content (0-700 m) to its own
long-term trend and seasonality, and to the intensity of Atlantic storms.
The workflow loads two CSV tables, derives categorical groupings, renders
exploratory plots and fits three penalized spline models plus one Gamma GLM.
"""

__version__ = "0.1.0"
