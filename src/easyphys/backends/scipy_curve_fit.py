from __future__ import annotations

from typing import Any, Dict

import numpy as np
from scipy.optimize import curve_fit

from .common import CovarianceMixin, Objective, SolverResult


class ScipyCurveFitSolver(CovarianceMixin):
    name = "scipy.curve_fit"

    def solve(
        self,
        objective: Objective,
        x: np.ndarray,
        y: np.ndarray,
        weights: np.ndarray,
        p0: np.ndarray,
        options: dict[str, Any],
    ) -> SolverResult:
        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)
        weights = np.asarray(weights, dtype=float)
        p0 = np.asarray(p0, dtype=float)
        sigma = 1.0 / weights
        dof = int(y.size - p0.size)

        kwargs: Dict[str, Any] = {}
        maxfev = options.get("maxfev", None)
        if maxfev is not None:
            kwargs["maxfev"] = int(maxfev)

        def f_wrapped(xi, *theta_free):
            return objective(xi, np.asarray(theta_free, dtype=float))

        try:
            popt, pcov, infodict, mesg, ier = curve_fit(
                f_wrapped,
                x,
                y,
                p0=p0,
                sigma=sigma,
                absolute_sigma=True,
                full_output=True,
                **kwargs,
            )
        except (RuntimeError, TypeError, ValueError) as e:
            # Soft fail: return seed point.
            return SolverResult(
                converged=False,
                params=p0,
                residuals=np.full(y.shape, np.nan),
                dof=dof,
                message=str(e),
            )

        # MINPACK reports (predicted - observed) / sigma in fvec.
        fvec = np.asarray(infodict["fvec"], dtype=float)
        return SolverResult(
            converged=ier in (1, 2, 3, 4),
            params=np.asarray(popt, dtype=float),
            residuals=fvec,
            dof=dof,
            covariance=None if pcov is None else np.asarray(pcov, dtype=float),
            message=str(mesg),
        )
