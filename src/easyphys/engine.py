from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Tuple

import numpy as np

from .backends import get_solver
from .errors import CannotFitError
from .params import ParameterSet

logger = logging.getLogger(__name__)

__all__ = [
    "FitResult",
    "fitting_function",
    "constrained_objective",
    "run_fit",
]


@dataclass(frozen=True)
class FitResult:
    """Outcome of one solver call over the active data.

    `params`, `errors` and the covariance axes follow `free_names`, which is
    position-ordered. `residuals` are weighted (observed - predicted).
    """

    free_names: Tuple[str, ...]
    params: np.ndarray
    errors: np.ndarray
    residuals: np.ndarray
    covariance: np.ndarray
    dof: int
    n_points: int
    converged: bool
    solver: str = ""
    message: str = ""

    def as_dict(self) -> dict[str, float]:
        return dict(zip(self.free_names, (float(v) for v in self.params)))


def fitting_function(func: Callable[..., Any]) -> Callable[[Any, Any], Any]:
    """Wrap `func(x, p1, ..., pN)` as `f(x, p)` taking a flat parameter vector."""

    def f_fitting(x, p):
        return func(x, *np.asarray(p, dtype=float).reshape(-1))

    f_fitting.__name__ = f"{getattr(func, '__name__', 'model')}_fitting"
    return f_fitting


def constrained_objective(
    func: Callable[..., Any], parameters: ParameterSet
) -> Callable[[Any, np.ndarray], Any]:
    """Objective over free parameters only.

    Fixed constants and free positions are captured when the objective is
    built; later changes to `parameters` do not affect it.
    """
    template = parameters.guesses()
    free_idx = parameters.free_positions()
    if free_idx.size == 0:
        raise CannotFitError("All parameters are fixed; there is nothing to fit.")

    def objective(x, theta_free):
        full = template.copy()
        full[free_idx] = np.asarray(theta_free, dtype=float).reshape(-1)
        return func(x, *full)

    return objective


def run_fit(
    func: Callable[..., Any],
    parameters: ParameterSet,
    x: np.ndarray,
    y: np.ndarray,
    yerr: np.ndarray,
    *,
    solver: str,
    confidence_level: float,
    options: Mapping[str, Any],
) -> FitResult:
    """Fit the free parameters of `func` to (x, y, yerr)."""
    free_names = parameters.free_parameter_names()
    objective = constrained_objective(func, parameters)
    p0 = parameters.free_guesses()
    weights = 1.0 / np.abs(yerr)

    backend = get_solver(solver)
    logger.debug(
        "Fitting %s over %d points with %s; p0=%s",
        free_names,
        x.size,
        backend.name,
        p0,
    )
    res = backend.solve(objective, x, y, weights, p0, dict(options))

    if not res.converged:
        n = len(free_names)
        return FitResult(
            free_names=free_names,
            params=np.asarray(res.params, dtype=float),
            errors=np.full((n,), np.nan),
            residuals=-np.asarray(res.residuals, dtype=float),
            covariance=np.full((n, n), np.nan),
            dof=res.dof,
            n_points=int(x.size),
            converged=False,
            solver=backend.name,
            message=res.message,
        )

    return FitResult(
        free_names=free_names,
        params=np.asarray(res.params, dtype=float),
        errors=np.asarray(backend.estimate_errors(res, confidence_level), dtype=float),
        residuals=-np.asarray(res.residuals, dtype=float),
        covariance=np.asarray(backend.estimate_covariance(res), dtype=float),
        dof=res.dof,
        n_points=int(x.size),
        converged=True,
        solver=backend.name,
        message=res.message,
    )
