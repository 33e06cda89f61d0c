"""Exception and warning types raised by easyphys."""
from __future__ import annotations

__all__ = [
    "EasyPhysError",
    "CannotFitError",
    "BadDataError",
    "NoResultsError",
    "ConvergenceWarning",
]


class EasyPhysError(Exception):
    """Base class for all easyphys errors."""


class CannotFitError(EasyPhysError, ValueError):
    """The model/parameter configuration leaves nothing to optimise."""


class BadDataError(EasyPhysError, ValueError):
    """Input data is malformed or missing."""


class NoResultsError(EasyPhysError, RuntimeError):
    """A post-fit quantity was requested before a converged fit exists."""


class ConvergenceWarning(UserWarning):
    """The solver finished without converging."""
