# src/aohc_storms/errors.py
"""
Module: errors.py
Responsibilities:
- Define the error taxonomy shared by loading, preprocessing and model fitting
"""
from typing import Optional


class MissingFileError(FileNotFoundError):
    """Raised when an input CSV does not exist or cannot be read."""


class ParseError(ValueError):
    """
    Raised when a required column is absent or cannot be coerced to its
    declared type.
    """

    def __init__(self, message: str, column: Optional[str] = None):
        super().__init__(message)
        self.column = column


class ModelConvergenceError(RuntimeError):
    """
    Raised when an iterative fitting procedure does not converge.

    Parameters
    ----------
    model_id : str
        Identifier of the model that failed (e.g. 'model3')
    message : str
        Description of the failure
    """

    def __init__(self, model_id: str, message: str):
        super().__init__(f"[{model_id}] {message}")
        self.model_id = model_id
