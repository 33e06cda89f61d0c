from __future__ import annotations

from typing import Any, Optional, Tuple

import numpy as np

from .errors import BadDataError
from .util import as_1d_float


class Dataset:
    """x/y/error observations plus an outlier mask.

    The x-range bounds live in Settings and are passed in by the caller, so
    the same dataset can be viewed through different fitting windows.
    """

    def __init__(self) -> None:
        self.x = np.empty((0,), dtype=float)
        self.y = np.empty((0,), dtype=float)
        self.yerr = np.empty((0,), dtype=float)
        self.outliers = np.zeros((0,), dtype=bool)
        self.revision = 0

    def __len__(self) -> int:
        return int(self.x.size)

    @property
    def is_empty(self) -> bool:
        return self.x.size == 0

    def set_data(self, x: Any, y: Any, yerr: Any) -> "Dataset":
        """Replace all observations; a scalar error is broadcast to every point."""
        x_arr = as_1d_float(x, "xdata")
        y_arr = as_1d_float(y, "ydata")
        n = x_arr.size
        if y_arr.size != n:
            raise BadDataError(
                f"xdata and ydata must have the same number of data; "
                f"got {n} and {y_arr.size}."
            )

        try:
            e_arr = np.asarray(yerr, dtype=float)
        except (TypeError, ValueError) as e:
            raise BadDataError(f"eydata must be numeric: {e}") from e
        if e_arr.size == 1:
            e_arr = np.full((n,), float(e_arr.reshape(-1)[0]))
        elif e_arr.ndim != 1 or e_arr.size != n:
            raise BadDataError(
                f"eydata must be broadcastable to the size of xdata and ydata; "
                f"got shape {e_arr.shape} for {n} data."
            )

        if not np.all(np.isfinite(e_arr)) or np.any(e_arr == 0.0):
            raise BadDataError("eydata must be finite and non-zero.")

        self.x = x_arr
        self.y = y_arr
        self.yerr = e_arr
        self.outliers = np.zeros((n,), dtype=bool)
        self.revision += 1
        return self

    def xlims(
        self, xmin: Optional[float] = None, xmax: Optional[float] = None
    ) -> Tuple[float, float]:
        """Explicit bounds override the data extremes."""
        if self.is_empty and (xmin is None or xmax is None):
            raise BadDataError("No data set; cannot infer x-limits.")
        lo = float(np.min(self.x)) if xmin is None else float(xmin)
        hi = float(np.max(self.x)) if xmax is None else float(xmax)
        return (lo, hi)

    def range_mask(
        self, xmin: Optional[float] = None, xmax: Optional[float] = None
    ) -> np.ndarray:
        if self.is_empty:
            return np.zeros((0,), dtype=bool)
        lo, hi = self.xlims(xmin, xmax)
        return (lo <= self.x) & (self.x <= hi)

    def active_mask(
        self, xmin: Optional[float] = None, xmax: Optional[float] = None
    ) -> np.ndarray:
        """Points inside [xmin, xmax] that are not marked as outliers."""
        return self.range_mask(xmin, xmax) & ~self.outliers

    def apply_mask(self, keep_mask: Any) -> "Dataset":
        keep = np.asarray(keep_mask, dtype=bool)
        if keep.shape != self.x.shape:
            raise BadDataError(
                f"Mask of shape {keep.shape} does not match {len(self)} data."
            )
        self.outliers = ~keep
        self.revision += 1
        return self

    def reset_mask(self) -> "Dataset":
        return self.apply_mask(np.ones_like(self.x, dtype=bool))

    def subset(self, mask: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        return self.x[mask], self.y[mask], self.yerr[mask]
