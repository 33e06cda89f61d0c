from __future__ import annotations

import logging
from typing import Any, Optional, Tuple

import numpy as np

from .errors import NoResultsError

logger = logging.getLogger(__name__)


def _plot_range(xmin: float, xmax: float, scale: str) -> Tuple[float, float]:
    """Pad [xmin, xmax] by 10% on each side (geometrically on log axes)."""
    if scale == "log" and xmin > 0:
        factor = (xmax / xmin) ** 0.1 if xmax > xmin else 1.1
        return xmin / factor, xmax * factor
    pad = 0.1 * (xmax - xmin) if xmax > xmin else 0.5
    return xmin - pad, xmax + pad


def plot_fitter(fitter: Any, *, fig: Optional[Any] = None) -> Tuple[Any, Any]:
    """Plot a Fitter's data, guess curve, best fit and residuals.

    Parameters
    ----------
    fitter : Fitter
        Source of data, settings and fit results. Never mutated.
    fig : matplotlib.figure.Figure, optional
        Figure to redraw into if it is still open; otherwise a new one.

    Returns
    -------
    fig, (ax_main, ax_resid)
    """
    import matplotlib.pyplot as plt

    s = fitter.settings
    if fig is None or not plt.fignum_exists(fig.number):
        fig = plt.figure()
    else:
        fig.clf()

    gs = fig.add_gridspec(4, 1)
    ax_main = fig.add_subplot(gs[:3, 0])
    ax_resid = fig.add_subplot(gs[3, 0], sharex=ax_main)
    ax_main.set_xscale(s.xscale)
    ax_main.set_yscale(s.yscale)
    ax_main.set_ylabel(s.ylabel)
    ax_main.tick_params(labelbottom=False)
    ax_resid.set_xlabel(s.xlabel)
    ax_resid.set_ylabel("Studentized residuals")

    if fitter.data.is_empty:
        return fig, (ax_main, ax_resid)

    xmin, xmax = _plot_range(*fitter.xlims(), s.xscale)
    ax_main.set_xlim(xmin, xmax)

    x_in, y_in, e_in = fitter.active_data()
    ax_main.errorbar(x_in, y_in, yerr=e_in, **s.style_data)

    x_out, y_out, e_out = fitter.excluded_data()
    if x_out.size:
        ax_main.errorbar(x_out, y_out, yerr=e_out, **s.style_outliers)

    if s.xscale == "log" and xmin > 0:
        x_plot = np.geomspace(xmin, xmax, int(s.fpoints))
    else:
        x_plot = np.linspace(xmin, xmax, int(s.fpoints))

    if s.plot_guess:
        y_guess = fitter.apply_model(x_plot, fitter.guesses)
        ax_main.plot(x_plot, y_guess, label="guess", **s.style_guess)

    try:
        residuals = fitter.studentized_residuals()
    except NoResultsError:
        logger.debug("No fit results; plotting data and guess only.")
        return fig, (ax_main, ax_resid)

    ax_resid.errorbar(x_in, residuals, yerr=np.ones_like(residuals), **s.style_data)
    if s.plot_curve:
        ax_main.plot(x_plot, fitter.apply_model(x_plot), label="fit", **s.style_fit)
        ax_resid.plot([xmin, xmax], [0.0, 0.0], **s.style_fit)

    return fig, (ax_main, ax_resid)
