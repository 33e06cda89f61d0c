from __future__ import annotations

from typing import Any, Dict

import numpy as np
from scipy.optimize import least_squares

from .common import CovarianceMixin, Objective, SolverResult


class ScipyLeastSquaresSolver(CovarianceMixin):
    name = "scipy.least_squares"

    def solve(
        self,
        objective: Objective,
        x: np.ndarray,
        y: np.ndarray,
        weights: np.ndarray,
        p0: np.ndarray,
        options: dict[str, Any],
    ) -> SolverResult:
        """Fit using scipy.optimize.least_squares.

        Backend options (subset of scipy.optimize.least_squares):
        - method (str, default: "lm" when there are enough points, else "trf")
        - max_nfev, ftol, xtol, gtol, x_scale, loss, f_scale, diff_step
        """
        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)
        weights = np.asarray(weights, dtype=float)
        p0 = np.asarray(p0, dtype=float)
        dof = int(y.size - p0.size)

        def residual(theta: np.ndarray) -> np.ndarray:
            ym = np.asarray(objective(x, theta), dtype=float)
            return np.broadcast_to((ym - y) * weights, y.shape).reshape(-1)

        ls_kwargs: Dict[str, Any] = {}
        # MINPACK's lm needs at least as many residuals as parameters.
        ls_kwargs["method"] = str(
            options.get("method", "lm" if y.size >= p0.size else "trf")
        )
        for k in ("max_nfev", "ftol", "xtol", "gtol", "x_scale", "loss", "f_scale", "diff_step"):
            if k in options:
                ls_kwargs[k] = options[k]

        try:
            res = least_squares(residual, p0, **ls_kwargs)
        except (ValueError, np.linalg.LinAlgError) as e:
            # Soft fail: non-finite residuals or an ill-posed problem.
            return SolverResult(
                converged=False,
                params=p0,
                residuals=np.full(y.shape, np.nan),
                dof=dof,
                message=str(e),
            )

        converged = bool(res.success) and np.all(np.isfinite(res.fun))
        return SolverResult(
            converged=bool(converged),
            params=np.asarray(res.x, dtype=float),
            residuals=np.asarray(res.fun, dtype=float),
            dof=dof,
            jacobian=np.asarray(res.jac, dtype=float),
            message=str(res.message),
        )
