"""easyphys public API."""
from .errors import BadDataError, CannotFitError, ConvergenceWarning, NoResultsError
from .engine import FitResult
from .fitter import FitState, Fitter
from .params import ModelParameter, ParameterKind, ParameterSet
from .settings import Settings
from . import models

__all__ = [
    "Fitter",
    "FitState",
    "FitResult",
    "ModelParameter",
    "ParameterKind",
    "ParameterSet",
    "Settings",
    "BadDataError",
    "CannotFitError",
    "NoResultsError",
    "ConvergenceWarning",
    "models",
]
