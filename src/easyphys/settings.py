from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from .backends import AVAILABLE_SOLVERS

__all__ = ["Settings", "SETTING_NAMES", "FIT_SETTINGS"]

_SCALES = ("linear", "log", "symlog", "logit")

# Settings whose change makes stored fit results stale.
FIT_SETTINGS = frozenset({"error_range", "xmin", "xmax", "solver", "solver_options"})


def _style(**kw: Any) -> Dict[str, Any]:
    return field(default_factory=lambda: dict(kw))


@dataclass
class Settings:
    """Fitter configuration.

    Fitting options:
    - error_range: confidence level for parameter uncertainties
    - xmin, xmax: optional fitting window (None -> data extremes)
    - solver, solver_options: backend name and its keyword options
      (solver_options is a read-only mapping)

    Display options (consumed by plotting only):
    - autoplot: redraw after set_data() and fit()
    - xscale, yscale: matplotlib axis scales
    - plot_curve, plot_guess, fpoints, xlabel, ylabel, style_*
    """

    error_range: float = 0.68
    xmin: Optional[float] = None
    xmax: Optional[float] = None
    solver: str = "scipy.least_squares"
    solver_options: Mapping[str, Any] = field(default_factory=dict)

    autoplot: bool = False
    xscale: str = "linear"
    yscale: str = "linear"
    plot_curve: bool = True
    plot_guess: bool = True
    fpoints: int = 1000
    xlabel: str = "x"
    ylabel: str = "f(x)"
    style_data: Dict[str, Any] = _style(marker="+", color="b", ls="")
    style_outliers: Dict[str, Any] = _style(marker="x", color="0.6", ls="")
    style_fit: Dict[str, Any] = _style(marker="", color="r", ls="-")
    style_guess: Dict[str, Any] = _style(marker="", color="k", ls="--")

    def __post_init__(self) -> None:
        # read-only; changes go through update()
        self.solver_options = MappingProxyType(dict(self.solver_options))
        self._validate()

    def _validate(self) -> None:
        if not 0.0 < float(self.error_range) < 1.0:
            raise ValueError(f"error_range must lie in (0, 1); got {self.error_range!r}.")
        for name in ("xscale", "yscale"):
            if getattr(self, name) not in _SCALES:
                raise ValueError(
                    f"{name} must be one of {_SCALES}; got {getattr(self, name)!r}."
                )
        if self.xmin is not None and self.xmax is not None and self.xmin > self.xmax:
            raise ValueError(f"xmin={self.xmin} exceeds xmax={self.xmax}.")
        if int(self.fpoints) < 2:
            raise ValueError("fpoints must be at least 2.")
        if self.solver not in AVAILABLE_SOLVERS:
            raise ValueError(
                f"Unknown solver {self.solver!r}. Available: {AVAILABLE_SOLVERS}"
            )

    def __contains__(self, key: object) -> bool:
        return key in SETTING_NAMES

    def __getitem__(self, key: str) -> Any:
        if key not in SETTING_NAMES:
            raise KeyError(f"Unknown setting {key!r}.")
        return getattr(self, key)

    def update(self, **kwargs: Any) -> Tuple[str, ...]:
        """Validate and apply new values; return the names that changed."""
        unknown = [k for k in kwargs if k not in SETTING_NAMES]
        if unknown:
            raise KeyError(f"Unknown setting(s) {unknown}.")
        candidate = replace(self, **kwargs)
        changed = tuple(k for k, v in kwargs.items() if getattr(self, k) != v)
        for k in kwargs:
            setattr(self, k, getattr(candidate, k))
        return changed

    def as_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


SETTING_NAMES = frozenset(f.name for f in fields(Settings))
