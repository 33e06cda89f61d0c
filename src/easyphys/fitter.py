from __future__ import annotations

import enum
import logging
from typing import Any, Callable, Dict, Optional, Sequence, Tuple
from warnings import warn

import numpy as np
import uncertainties

from . import diagnostics
from .data import Dataset
from .engine import FitResult, fitting_function, run_fit
from .errors import BadDataError, CannotFitError, ConvergenceWarning, NoResultsError
from .params import ParameterKind, ParameterSet
from .settings import FIT_SETTINGS, SETTING_NAMES, Settings

logger = logging.getLogger(__name__)

__all__ = ["FitState", "Fitter"]


class FitState(enum.Enum):
    NO_DATA = "no data"
    DATA_SET = "data set"
    CONVERGED = "converged"
    FAILED = "failed"


def _given(params: Any) -> bool:
    return params is not None and np.size(params) > 0


class Fitter:
    """A model function, a dataset, and the state of fitting one to the other.

    Mutators return the fitter so calls can be chained::

        Fitter(line).set_data(x, y, 0.1).fix(b=0.0).fit().read("a")

    Any change to parameters, guesses, data, masks or fitting settings drops
    the stored FitResult; post-fit queries then raise NoResultsError until
    fit() succeeds again.
    """

    def __init__(self, func: Callable[..., Any], **kwargs: Any) -> None:
        self.func = func
        self._parameters = ParameterSet.from_function(func)
        self.data = Dataset()
        self.settings = Settings()

        self._f_fitting = fitting_function(func)
        self._result: Optional[FitResult] = None
        self._failed = False
        self._fit_key: Optional[Tuple[int, int, int]] = None
        self._settings_revision = 0
        self._figure: Any = None

        clashes = sorted(set(self._parameters) & SETTING_NAMES)
        if clashes:
            warn(
                f"Model parameter(s) {clashes} share names with settings; "
                "fitter[...] addresses the setting. Use fitter.parameters instead.",
                UserWarning,
                stacklevel=2,
            )

        self.set(**kwargs)

    # ---- state ----
    def _revision_key(self) -> Tuple[int, int, int]:
        return (self._parameters.revision, self.data.revision, self._settings_revision)

    def _drop_result(self) -> None:
        self._result = None
        self._failed = False
        self._fit_key = None
        self._parameters.invalidate()

    def _current_result(self) -> Optional[FitResult]:
        """The stored FitResult, or None if absent or made stale by a change."""
        if self._fit_key is not None and self._fit_key != self._revision_key():
            logger.debug("Inputs changed since the last fit; dropping results.")
            self._drop_result()
        return self._result

    def _results_or_raise(self) -> FitResult:
        result = self._current_result()
        if result is None:
            raise NoResultsError(
                "fit() must be called (and converge) before results can be accessed."
            )
        return result

    @property
    def state(self) -> FitState:
        if self.data.is_empty:
            return FitState.NO_DATA
        if self._current_result() is not None:
            return FitState.CONVERGED
        if self._failed:
            return FitState.FAILED
        return FitState.DATA_SET

    @property
    def parameters(self) -> ParameterSet:
        """The ParameterSet, with results from a stale fit already cleared."""
        self._current_result()
        return self._parameters

    @property
    def results(self) -> FitResult:
        """The converged FitResult; NoResultsError if there is none."""
        return self._results_or_raise()

    # ---- settings / parameter dispatch ----
    def __getitem__(self, key: str) -> Any:
        if key in SETTING_NAMES:
            return self.settings[key]
        if key in self._parameters:
            return self.read(key)
        raise KeyError(f"Unknown key {key!r}: not a setting or a model parameter.")

    def __setitem__(self, key: str, value: Any) -> None:
        self.set(**{key: value})

    def set(self, **kwargs: Any) -> "Fitter":
        """Update settings and/or parameter values by name.

        Settings take precedence; other names must be model parameters, whose
        guess (free) or constant (fixed) is replaced.
        """
        settings_kw = {k: v for k, v in kwargs.items() if k in SETTING_NAMES}
        param_kw = {
            k: v
            for k, v in kwargs.items()
            if k not in SETTING_NAMES and k in self._parameters
        }
        unknown = [k for k in kwargs if k not in settings_kw and k not in param_kw]
        if unknown:
            raise KeyError(
                f"Unknown key(s) {unknown}: not settings or model parameters "
                f"{self._parameters.names()}."
            )

        if settings_kw:
            changed = self.settings.update(**settings_kw)
            if FIT_SETTINGS.intersection(changed):
                self._settings_revision += 1
                self._drop_result()
        for k, v in param_kw.items():
            self._parameters.write(k, v)
        return self

    # ---- parameters ----
    def free(self, *names: str) -> "Fitter":
        self._parameters.free(*names)
        return self

    def fix(self, **values: float) -> "Fitter":
        self._parameters.fix(**values)
        return self

    def set_guess(self, *values: float, **named: float) -> "Fitter":
        self._parameters.set_guess(*values, **named)
        return self

    @property
    def guesses(self) -> np.ndarray:
        return self._parameters.guesses()

    def read(self, name: str) -> float:
        """Fixed parameters give their constant, free ones their best-fit value."""
        self._current_result()
        return self._parameters.read(name)

    def write(self, name: str, value: float) -> "Fitter":
        self._parameters.write(name, value)
        return self

    # ---- data ----
    def set_data(self, xdata: Any, ydata: Any, eydata: Any) -> "Fitter":
        self.data.set_data(xdata, ydata, eydata)
        self._drop_result()
        if self.settings.autoplot:
            self.plot()
        return self

    @property
    def xdata(self) -> np.ndarray:
        return self.data.x

    @property
    def ydata(self) -> np.ndarray:
        return self.data.y

    @property
    def eydata(self) -> np.ndarray:
        return self.data.yerr

    def xlims(self) -> Tuple[float, float]:
        return self.data.xlims(self.settings.xmin, self.settings.xmax)

    def active_mask(self) -> np.ndarray:
        return self.data.active_mask(self.settings.xmin, self.settings.xmax)

    def active_data(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        return self.data.subset(self.active_mask())

    def excluded_data(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        return self.data.subset(~self.active_mask())

    def apply_mask(self, keep_mask: Any) -> "Fitter":
        """Exclude every point where `keep_mask` is False."""
        self.data.apply_mask(keep_mask)
        self._drop_result()
        return self

    def reset_mask(self) -> "Fitter":
        self.data.reset_mask()
        self._drop_result()
        return self

    def ignore_outliers(self, max_residual: float, params: Any = None) -> "Fitter":
        """Exclude active points with |studentized residual| > max_residual.

        Uses `params` if given, else the current fit. Does not re-fit.
        """
        resid = self.studentized_residuals(params)
        active_idx = np.flatnonzero(self.active_mask())
        keep = ~self.data.outliers
        keep[active_idx[np.abs(resid) > float(max_residual)]] = False
        logger.debug(
            "Ignoring %d outlier(s) beyond %g", int(np.sum(~keep)), max_residual
        )
        return self.apply_mask(keep)

    # ---- fitting ----
    def fit(self, p0: Optional[Sequence[float]] = None, **kwargs: Any) -> "Fitter":
        """Fit the free parameters to the active data.

        `kwargs` are applied through set() before fitting, and `p0` (if given)
        replaces the free guesses. Non-convergence is not an error: it emits a
        ConvergenceWarning and leaves the fitter in the FAILED state.
        """
        if self.data.is_empty:
            raise BadDataError(
                "xdata, ydata and eydata must all be set before calling fit()."
            )

        self.set(**kwargs)
        if _given(p0):
            self.set_guess(p0)
        self._drop_result()

        x, y, yerr = self.active_data()
        if not self._parameters.free_parameter_names():
            raise CannotFitError("All parameters are fixed; there is nothing to fit.")
        if x.size == 0:
            raise BadDataError(f"No active data inside x-limits {self.xlims()}.")

        key = self._revision_key()
        result = run_fit(
            self.func,
            self._parameters,
            x,
            y,
            yerr,
            solver=self.settings.solver,
            confidence_level=self.settings.error_range,
            options=self.settings.solver_options,
        )
        self._fit_key = key

        if result.converged:
            self._result = result
            self._parameters.store_results(result.free_names, result.params, result.errors)
            logger.debug("Fit converged: %s", result.as_dict())
        else:
            self._failed = True
            logger.warning("Fit did not converge: %s", result.message)
            warn(
                f"Fit did not converge: {result.message}",
                ConvergenceWarning,
                stacklevel=2,
            )

        if self.settings.autoplot:
            self.plot()
        return self

    # ---- diagnostics ----
    def parameter_errors(self) -> np.ndarray:
        """Uncertainties of the free parameters at `error_range` confidence."""
        return self._results_or_raise().errors.copy()

    def parameter_covariance(self) -> np.ndarray:
        return self._results_or_raise().covariance.copy()

    def correlated_values(self) -> Dict[str, Any]:
        """Best-fit free parameters as correlated `uncertainties` numbers.

        These carry one-sigma covariance, independent of `error_range`.
        """
        result = self._results_or_raise()
        values = uncertainties.correlated_values(result.params, result.covariance)
        return dict(zip(result.free_names, values))

    def apply_model(self, x: Any, params: Any = None) -> Any:
        """Evaluate the model at x with a full parameter vector or the best fit."""
        if _given(params):
            p = np.asarray(params, dtype=float).reshape(-1)
            if p.size != len(self._parameters):
                raise ValueError(
                    f"Expected {len(self._parameters)} parameters "
                    f"{self._parameters.names()}; got {p.size}."
                )
        else:
            self._results_or_raise()
            p = self._parameters.best_fit_vector()
        return self._f_fitting(x, p)

    def studentized_residuals(self, params: Any = None) -> np.ndarray:
        if not _given(params):
            return self._results_or_raise().residuals.copy()
        x, y, yerr = self.active_data()
        return diagnostics.studentized_residuals(y, self.apply_model(x, params), yerr)

    def reduced_chi_squared(self, params: Any = None) -> float:
        resid = self.studentized_residuals(params)
        if _given(params):
            dof = diagnostics.degrees_of_freedom(resid.size, np.size(params))
        else:
            result = self._results_or_raise()
            dof = diagnostics.degrees_of_freedom(result.n_points, len(result.free_names))
        return diagnostics.reduced_chi_squared(resid, dof)

    # ---- display ----
    def plot(self, **kwargs: Any) -> Tuple[Any, Any]:
        """Draw data, guess, best fit and residuals into this fitter's figure.

        Returns (fig, (ax_main, ax_resid)).
        """
        from .plotting import plot_fitter

        self.set(**kwargs)
        fig, axes = plot_fitter(self, fig=self._figure)
        self._figure = fig
        return fig, axes

    def _chi2_at(self, params: np.ndarray) -> float:
        x, y, yerr = self.active_data()
        dof = diagnostics.degrees_of_freedom(x.size, params.size)
        if dof <= 0:
            return float("nan")
        resid = diagnostics.studentized_residuals(y, self._f_fitting(x, params), yerr)
        return diagnostics.reduced_chi_squared(resid, dof)

    def summary(self) -> str:
        name = getattr(self.func, "__name__", "model")
        lines = [f"Fitter({name}) with the following settings:", ""]
        for k, v in self.settings.as_dict().items():
            lines.append(f"\t{k:<15s} => {v!r}")
        lines.append("")

        guess_chi2 = "n/a" if self.data.is_empty else f"{self._chi2_at(self.guesses):.6g}"
        lines.append(f"Guesses (reduced chi2 = {guess_chi2}):")
        lines.append("")
        for n, p in self._parameters.items():
            tag = " (fixed)" if p.kind is ParameterKind.FIXED else ""
            lines.append(f"\t{n:<15s} = {p.value!r}{tag}")
        lines.append("")

        result = self._current_result()
        if result is None:
            lines.append("Fit results not yet present.")
            return "\n".join(lines)

        dof = diagnostics.degrees_of_freedom(result.n_points, len(result.free_names))
        chi2 = float("nan") if dof <= 0 else diagnostics.chi_squared(result.residuals) / dof

        lines.append(f"Best-fit parameters (reduced chi2 = {chi2:.6g}):")
        lines.append("")
        for n, p in self._parameters.items():
            if p.kind is ParameterKind.FIXED:
                lines.append(f"\t{n:<15s} = {p.value!r} (fixed)")
            else:
                u = uncertainties.ufloat(p.fit_value, p.fit_uncertainty)
                lines.append(f"\t{n:<15s} = {u:.2uP}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.summary()

    def __repr__(self) -> str:
        name = getattr(self.func, "__name__", "model")
        return (
            f"Fitter({name}, parameters={self._parameters.names()}, "
            f"state={self.state.value!r})"
        )
