"""Shared numerical helpers for filter stages."""

import logging
from typing import Callable, Optional, Sequence

import numpy as np
import scipy.ndimage as ndimage

from core.errors import DegenerateRangeError, InvalidParameterError
from core.structuring import StructuringElement

logger = logging.getLogger(__name__)

DEGENERATE_POLICIES = ("zero", "raise")


def make_reporter(tag: str, callback: Optional[Callable[[int, str], None]]) -> Callable[[int, str], None]:
    """Return a progress function that logs and forwards to ``callback``."""
    def report(percent: int, message: str) -> None:
        logger.debug("[%s] %s", tag, message)
        if callback:
            callback(percent, message)
    return report


def binarize(values: np.ndarray) -> np.ndarray:
    """Foreground mask: True where the value is non-zero."""
    return values != 0


def check_policy(on_degenerate: str) -> str:
    policy = str(on_degenerate).strip().lower()
    if policy not in DEGENERATE_POLICIES:
        raise InvalidParameterError(
            f"on_degenerate must be one of {DEGENERATE_POLICIES}, got {on_degenerate!r}"
        )
    return policy


def rescale_unit(values: np.ndarray, on_degenerate: str = "zero") -> np.ndarray:
    """
    Affinely map ``values`` onto [0, 1] (min -> 0, max -> 1).

    A field whose finite values are constant has no defined rescale:
    ``on_degenerate="zero"`` returns the zero field (with a warning) and
    ``"raise"`` raises DegenerateRangeError.

    The range is taken over finite values only; ``+inf`` maps to 1, ``-inf``
    to 0 and NaN stays NaN.
    """
    policy = check_policy(on_degenerate)
    finite = values[np.isfinite(values)]
    if finite.size == 0:
        vmin = vmax = 0.0
    else:
        vmin = float(finite.min())
        vmax = float(finite.max())

    if vmax == vmin:
        if policy == "raise":
            raise DegenerateRangeError(f"Cannot rescale a constant field (min == max == {vmin})")
        logger.warning("Degenerate intensity range (min == max == %s); returning zero field", vmin)
        return np.zeros_like(values, dtype=np.float64)

    return np.clip((values - vmin) / (vmax - vmin), 0.0, 1.0)


def neighborhood_extreme(values: np.ndarray, element: StructuringElement, mode: str) -> np.ndarray:
    """
    Max (``mode="max"``) or min (``mode="min"``) over a structuring element.

    Neighbours outside the array contribute the identity element of the
    reduction (-inf for max, +inf for min), so they never win.
    """
    values = np.asarray(values, dtype=np.float64)
    # Ball and box footprints are symmetric, so scipy's reflected footprint is the same set
    if mode == "max":
        return ndimage.grey_dilation(values, footprint=element.footprint(), mode="constant", cval=-np.inf)
    if mode == "min":
        return ndimage.grey_erosion(values, footprint=element.footprint(), mode="constant", cval=np.inf)
    raise ValueError(f"Unknown reduction mode: {mode}")


def neumann_laplacian(values: np.ndarray, spacing: Optional[Sequence[float]] = None) -> np.ndarray:
    """
    Discrete Laplacian with the 2D+1-point stencil and zero-flux boundaries.
    """
    lap = np.zeros_like(values, dtype=np.float64)
    padded = np.pad(values, 1, mode="edge")
    centre = tuple(slice(1, -1) for _ in range(values.ndim))
    for axis in range(values.ndim):
        fwd = list(centre)
        bwd = list(centre)
        fwd[axis] = slice(2, None)
        bwd[axis] = slice(0, -2)
        h2 = 1.0 if spacing is None else float(spacing[axis]) ** 2
        lap += (padded[tuple(fwd)] + padded[tuple(bwd)] - 2.0 * values) / h2
    return lap


__all__ = [
    "DEGENERATE_POLICIES",
    "make_reporter",
    "binarize",
    "check_policy",
    "rescale_unit",
    "neighborhood_extreme",
    "neumann_laplacian",
]
