"""Solver implementations + registry."""

from __future__ import annotations

from typing import Dict

from .common import Solver, SolverResult
from .scipy_curve_fit import ScipyCurveFitSolver
from .scipy_least_squares import ScipyLeastSquaresSolver

_SOLVERS: Dict[str, Solver] = {
    "scipy.least_squares": ScipyLeastSquaresSolver(),
    "scipy.curve_fit": ScipyCurveFitSolver(),
}


def get_solver(name: str) -> Solver:
    """Return a solver implementation by name."""
    try:
        return _SOLVERS[name]
    except KeyError as e:
        raise ValueError(
            f"Unknown solver {name!r}. Available: {tuple(_SOLVERS.keys())}"
        ) from e


AVAILABLE_SOLVERS = tuple(_SOLVERS.keys())

__all__ = ["AVAILABLE_SOLVERS", "Solver", "SolverResult", "get_solver"]
