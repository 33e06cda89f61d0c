from __future__ import annotations

import inspect
from typing import Any, Callable, Tuple

import numpy as np

from .errors import BadDataError, CannotFitError


def infer_param_names(func: Callable[..., Any]) -> Tuple[str, ...]:
    """Infer fit parameter names from a model function signature.

    Conventions:
    - first arg is the independent variable (x)
    - remaining positional parameters are fit parameters, in order

    *args, **kwargs and keyword-only parameters cannot be given a position in
    the flat parameter vector and are rejected.
    """
    try:
        sig = inspect.signature(func)
    except (TypeError, ValueError) as e:
        raise CannotFitError(f"Cannot inspect model function {func!r}: {e}") from e

    params = list(sig.parameters.values())
    if not params:
        raise CannotFitError("Model function must take at least (x, p1, ...).")

    bad_kinds = {
        inspect.Parameter.VAR_POSITIONAL,
        inspect.Parameter.VAR_KEYWORD,
        inspect.Parameter.KEYWORD_ONLY,
    }
    for p in params:
        if p.kind in bad_kinds:
            raise CannotFitError(
                f"Unsupported argument {p.name!r} in model function: "
                "*args, **kwargs and keyword-only arguments cannot be fitted."
            )

    names = tuple(p.name for p in params[1:])
    if not names:
        raise CannotFitError(
            "Cannot fit to a function that takes only the independent variable."
        )
    return names


def default_guesses(func: Callable[..., Any], names: Tuple[str, ...]) -> Tuple[float, ...]:
    """Numeric signature defaults become initial guesses; everything else is 1.0."""
    sig = inspect.signature(func)
    out = []
    for n in names:
        d = sig.parameters[n].default
        if (
            d is not inspect.Parameter.empty
            and isinstance(d, (int, float, np.number))
            and not isinstance(d, bool)
        ):
            out.append(float(d))
        else:
            out.append(1.0)
    return tuple(out)


def as_1d_float(values: Any, name: str) -> np.ndarray:
    """Coerce array-like input to a 1D float array or raise BadDataError."""
    try:
        arr = np.asarray(values, dtype=float)
    except (TypeError, ValueError) as e:
        raise BadDataError(f"{name} must be numeric: {e}") from e
    if arr.ndim != 1:
        raise BadDataError(f"{name} must be one-dimensional; got shape {arr.shape}.")
    return arr
