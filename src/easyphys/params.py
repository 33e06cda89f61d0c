from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple
from warnings import warn

import numpy as np

from .errors import NoResultsError
from .util import default_guesses, infer_param_names


__all__ = [
    "ParameterKind",
    "ModelParameter",
    "ParameterSet",
]


class ParameterKind(enum.Enum):
    FREE = "free"
    FIXED = "fixed"


@dataclass(frozen=True)
class ModelParameter:
    """One model parameter, either free (fitted) or fixed (held constant).

    `value` is the initial guess of a free parameter or the constant of a
    fixed one. `fit_value` and `fit_uncertainty` exist only on free parameters
    after a converged fit, and are always set or cleared together.
    """

    name: str
    position: int  # 1-based, after the independent variable
    kind: ParameterKind
    value: float
    fit_value: Optional[float] = None
    fit_uncertainty: Optional[float] = None

    def __post_init__(self) -> None:
        if (self.fit_value is None) != (self.fit_uncertainty is None):
            raise ValueError("fit_value and fit_uncertainty must be set together.")
        if self.kind is ParameterKind.FIXED and self.fit_value is not None:
            raise ValueError(f"Fixed parameter {self.name!r} cannot carry fit results.")

    @staticmethod
    def free(name: str, position: int, guess: float) -> "ModelParameter":
        return ModelParameter(name, position, ParameterKind.FREE, float(guess))

    @staticmethod
    def fixed(name: str, position: int, value: float) -> "ModelParameter":
        return ModelParameter(name, position, ParameterKind.FIXED, float(value))

    @property
    def is_free(self) -> bool:
        return self.kind is ParameterKind.FREE

    @property
    def has_result(self) -> bool:
        return self.fit_value is not None

    def cleared(self) -> "ModelParameter":
        """Return a copy with any fit result removed."""
        if self.fit_value is None:
            return self
        return replace(self, fit_value=None, fit_uncertainty=None)


class ParameterSet:
    """Ordered name -> ModelParameter mapping for one model function.

    Every mutation clears the fit results of *all* parameters and bumps
    `revision`, so results from a previous parameter configuration can never
    leak into the next one.
    """

    def __init__(self, params: Mapping[str, ModelParameter]) -> None:
        ordered = sorted(params.values(), key=lambda p: p.position)
        positions = [p.position for p in ordered]
        if positions != list(range(1, len(ordered) + 1)):
            raise ValueError(f"Parameter positions must be 1..N; got {positions}.")
        self._params: Dict[str, ModelParameter] = {p.name: p for p in ordered}
        self.revision = 0

    @staticmethod
    def from_function(func: Callable[..., Any]) -> "ParameterSet":
        """All parameters start free, guessed at 1.0 or their signature default."""
        names = infer_param_names(func)
        guesses = default_guesses(func, names)
        return ParameterSet(
            {
                n: ModelParameter.free(n, i + 1, g)
                for i, (n, g) in enumerate(zip(names, guesses))
            }
        )

    # ---- mapping access ----
    def __getitem__(self, name: str) -> ModelParameter:
        try:
            return self._params[name]
        except KeyError:
            raise KeyError(f"Unknown parameter {name!r}.") from None

    def __contains__(self, name: object) -> bool:
        return name in self._params

    def __iter__(self) -> Iterator[str]:
        return iter(self._params)

    def __len__(self) -> int:
        return len(self._params)

    def items(self):
        return self._params.items()

    def names(self) -> Tuple[str, ...]:
        return tuple(self._params)

    def __repr__(self) -> str:
        inner = ", ".join(
            f"{p.name}={p.value!r} ({p.kind.value})" for p in self._params.values()
        )
        return f"ParameterSet({inner})"

    # ---- queries ----
    def free_parameter_names(self) -> Tuple[str, ...]:
        return tuple(p.name for p in self._params.values() if p.kind is ParameterKind.FREE)

    def fixed_values(self) -> Dict[str, float]:
        return {
            p.name: p.value
            for p in self._params.values()
            if p.kind is ParameterKind.FIXED
        }

    def free_positions(self) -> np.ndarray:
        """0-based indices of the free parameters in the full vector."""
        return np.array(
            [p.position - 1 for p in self._params.values() if p.kind is ParameterKind.FREE],
            dtype=int,
        )

    def guesses(self) -> np.ndarray:
        """Full-length vector: fixed constants and free guesses, by position."""
        return np.array([p.value for p in self._params.values()], dtype=float)

    def free_guesses(self) -> np.ndarray:
        return self.guesses()[self.free_positions()]

    def has_results(self) -> bool:
        return any(p.has_result for p in self._params.values())

    def read(self, name: str) -> float:
        """Fixed -> constant; free -> best-fit value."""
        p = self[name]
        if p.kind is ParameterKind.FIXED:
            return p.value
        if p.fit_value is None:
            raise NoResultsError(
                f"No fit result for parameter {name!r}; call fit() first."
            )
        return p.fit_value

    def uncertainty(self, name: str) -> float:
        """Fixed -> 0.0; free -> fit uncertainty."""
        p = self[name]
        if p.kind is ParameterKind.FIXED:
            return 0.0
        if p.fit_uncertainty is None:
            raise NoResultsError(
                f"No fit result for parameter {name!r}; call fit() first."
            )
        return p.fit_uncertainty

    # ---- mutators ----
    def _check_names(self, names) -> None:
        unknown = [n for n in names if n not in self._params]
        if unknown:
            raise KeyError(f"Unknown parameter(s) {unknown}; known: {self.names()}.")

    def _changed(self) -> None:
        self._params = {n: p.cleared() for n, p in self._params.items()}
        self.revision += 1

    def invalidate(self) -> None:
        """Drop every stored fit value and uncertainty."""
        if self.has_results():
            self._changed()

    def free(self, *names: str) -> "ParameterSet":
        """Make parameters free, keeping their current value as the guess."""
        self._check_names(names)
        for n in names:
            p = self[n]
            if p.kind is ParameterKind.FIXED:
                self._params[n] = ModelParameter.free(n, p.position, p.value)
        self._changed()
        return self

    def fix(self, **values: float) -> "ParameterSet":
        """Hold parameters constant at the given values."""
        self._check_names(values)
        for n, v in values.items():
            self._params[n] = ModelParameter.fixed(n, self._params[n].position, v)
        self._changed()
        return self

    def set_guess(self, *values: float, **named: float) -> "ParameterSet":
        """Update free guesses, positionally (all free params) or by name.

        Requests that target fixed parameters, or a positional vector of the
        wrong length, only warn and change nothing.
        """
        if values and named:
            raise TypeError("Pass guesses either positionally or by name, not both.")

        if len(values) == 1 and np.ndim(values[0]) == 1:
            values = tuple(values[0])

        if values:
            free_names = self.free_parameter_names()
            if len(values) != len(free_names):
                warn(
                    f"Expected {len(free_names)} guesses for free parameters "
                    f"{free_names}; got {len(values)}. Guesses unchanged.",
                    UserWarning,
                    stacklevel=2,
                )
                return self
            named = dict(zip(free_names, values))

        self._check_names(named)
        fixed = [n for n in named if self._params[n].kind is ParameterKind.FIXED]
        if fixed:
            warn(
                f"Cannot set guesses for fixed parameters {fixed}; "
                "free them first. Guesses unchanged.",
                UserWarning,
                stacklevel=2,
            )
            return self

        for n, v in named.items():
            self._params[n] = replace(self._params[n], value=float(v))
        self._changed()
        return self

    def write(self, name: str, value: float) -> "ParameterSet":
        """Set the guess of a free parameter, or the constant of a fixed one."""
        p = self[name]
        self._params[name] = replace(p, value=float(value))
        self._changed()
        return self

    def store_results(
        self, free_names: Tuple[str, ...], values: np.ndarray, errors: np.ndarray
    ) -> None:
        """Attach best-fit values/uncertainties to free parameters."""
        if tuple(free_names) != self.free_parameter_names():
            raise ValueError("Fit results do not match the current free parameters.")
        for n, v, e in zip(free_names, values, errors):
            self._params[n] = replace(
                self._params[n], fit_value=float(v), fit_uncertainty=float(e)
            )

    def best_fit_vector(self) -> np.ndarray:
        """Full-length vector: fixed constants and free best-fit values."""
        out: List[float] = []
        for p in self._params.values():
            if p.kind is ParameterKind.FIXED:
                out.append(p.value)
            else:
                out.append(self.read(p.name))
        return np.array(out, dtype=float)
