"""Ready-made model functions.

Each takes the independent variable first, then its parameters, so it can be
passed straight to Fitter.
"""

from __future__ import annotations

import numpy as np


def straight_line(x, m, b):
    return m * x + b


def exponential_decay(x, amplitude, rate, offset=0.0):
    return amplitude * np.exp(-rate * x) + offset


def gaussian(x, amplitude, center, sigma, offset=0.0):
    return amplitude * np.exp(-0.5 * ((x - center) / sigma) ** 2) + offset


__all__ = ["straight_line", "exponential_decay", "gaussian"]
