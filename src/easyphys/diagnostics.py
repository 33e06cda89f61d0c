"""Goodness-of-fit statistics over the active data."""

from __future__ import annotations

from typing import Any
from warnings import warn

import numpy as np


def studentized_residuals(y: Any, predicted: Any, yerr: Any) -> np.ndarray:
    """(observed - predicted) / |error|, element-wise."""
    y = np.asarray(y, dtype=float)
    predicted = np.broadcast_to(np.asarray(predicted, dtype=float), y.shape)
    return (y - predicted) * (1.0 / np.abs(np.asarray(yerr, dtype=float)))


def degrees_of_freedom(n_points: int, n_params: int) -> int:
    return int(n_points) - int(n_params)


def chi_squared(residuals: Any) -> float:
    r = np.asarray(residuals, dtype=float)
    return float(np.sum(r * r))


def reduced_chi_squared(residuals: Any, dof: int) -> float:
    """Sum of squared studentized residuals per degree of freedom.

    Returns inf (with a warning) when dof <= 0.
    """
    if dof <= 0:
        warn(
            f"Reduced chi-squared is undefined for {dof} degrees of freedom.",
            UserWarning,
            stacklevel=2,
        )
        return float("inf")
    return chi_squared(residuals) / dof
