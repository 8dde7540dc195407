"""
Utility Functions
=================
Helper functions used across the project.

Author: [Shril Patel]
Date: [Oct 18, 2026]
"""

import pandas as pd
import numpy as np
import time
import logging

logger = logging.getLogger(__name__)


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """
    Safely divide two numbers, returning a default if division by zero.

    Args:
        numerator: The number to divide
        denominator: The number to divide by
        default: Value to return if denominator is 0

    Returns:
        Result of division or default value
    """
    if denominator == 0:
        return default
    return numerator / denominator


def percent_gain(baseline: float, error) -> float:
    """
    Percentage improvement of an error over a baseline error.

    Positive when the error is lower than the baseline. Works on scalars
    and on pandas Series.

    Args:
        baseline: Reference error (e.g. the default configuration's)
        error: Error(s) to compare

    Returns:
        (baseline - error) / baseline * 100
    """
    if baseline == 0:
        raise ValueError("Baseline error is zero, percentage gain is undefined")
    return (baseline - error) / baseline * 100


def threshold_labels(probabilities, threshold: float = 0.5) -> np.ndarray:
    """
    Convert scores to 0/1 labels. A score equal to the threshold maps to 0.

    Args:
        probabilities: Array-like of scores in [0, 1]
        threshold: Cut-off

    Returns:
        Integer array of labels
    """
    return (np.asarray(probabilities) > threshold).astype(int)


def log_dataframe_info(df: pd.DataFrame, name: str = "DataFrame") -> None:
    """
    Log summary information about a DataFrame.

    Args:
        df: DataFrame to summarize
        name: Name to use in logging
    """
    logger.info(f"\n{name} Summary:")
    logger.info(f"  Shape: {df.shape}")
    logger.info(f"  Memory: {df.memory_usage(deep=True).sum() / 1024**2:.2f} MB")
    logger.info(f"  Missing values: {df.isnull().sum().sum():,}")
    logger.info(f"  Columns: {list(df.columns)}")


class Timer:
    """
    Context manager for timing code blocks.

    Example:
        with Timer("Grid search"):
            result = trainer.grid_search(X, y, grid, default_error)
    """

    def __init__(self, name: str = "Operation"):
        self.name = name
        self.start_time = None
        self.elapsed = None

    def __enter__(self):
        self.start_time = time.time()
        logger.info(f"Starting: {self.name}")
        return self

    def __exit__(self, *args):
        self.elapsed = time.time() - self.start_time
        logger.info(f"Completed: {self.name} ({self.elapsed:.2f}s)")
