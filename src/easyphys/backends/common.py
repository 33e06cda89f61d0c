from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

import numpy as np
from scipy import stats

Objective = Callable[[np.ndarray, np.ndarray], Any]


@dataclass(frozen=True)
class SolverResult:
    """Normalized result returned by any solver."""

    converged: bool
    params: np.ndarray  # free parameters, shape (P,)
    residuals: np.ndarray  # weighted (predicted - observed), shape (N,)
    dof: int
    jacobian: Optional[np.ndarray] = None  # of the weighted residuals, (N,P)
    covariance: Optional[np.ndarray] = None  # (P,P), when the solver provides it
    message: str = ""


class Solver(Protocol):
    """Solver protocol: weighted nonlinear least squares on one dataset."""

    name: str

    def solve(
        self,
        objective: Objective,
        x: np.ndarray,
        y: np.ndarray,
        weights: np.ndarray,
        p0: np.ndarray,
        options: dict[str, Any],
    ) -> SolverResult: ...

    def estimate_covariance(self, result: SolverResult) -> np.ndarray: ...

    def estimate_errors(
        self, result: SolverResult, confidence_level: float
    ) -> np.ndarray: ...


def covariance_from_jacobian(jac: np.ndarray) -> np.ndarray:
    """(JᵀJ)⁻¹ for a Jacobian of weighted residuals.

    Weights are 1/sigma, so no residual-variance rescaling is applied.
    Falls back to the pseudo-inverse when JᵀJ is singular.
    """
    jac = np.atleast_2d(np.asarray(jac, dtype=float))
    jtj = jac.T @ jac
    try:
        return np.linalg.inv(jtj)
    except np.linalg.LinAlgError:
        return np.linalg.pinv(jtj)


def t_scale(confidence_level: float, dof: int) -> float:
    """Two-sided Student-t critical value for a central confidence interval."""
    if dof <= 0:
        return float("nan")
    return float(stats.t.ppf(1.0 - (1.0 - float(confidence_level)) / 2.0, dof))


class CovarianceMixin:
    """Covariance/error estimates shared by the scipy solvers."""

    def estimate_covariance(self, result: SolverResult) -> np.ndarray:
        if result.covariance is not None:
            return np.asarray(result.covariance, dtype=float)
        if result.jacobian is None:
            n = int(np.size(result.params))
            return np.full((n, n), np.nan)
        return covariance_from_jacobian(result.jacobian)

    def estimate_errors(
        self, result: SolverResult, confidence_level: float
    ) -> np.ndarray:
        cov = self.estimate_covariance(result)
        std_errors = np.sqrt(np.abs(np.diag(cov)))
        return std_errors * t_scale(confidence_level, result.dof)
