"""
Derivative-of-Gaussian stages (Grad, Laplacian) and Laplacian sharpening.

Sigma is given in physical units and converted per axis with the grid
spacing; derivatives are returned per physical unit.
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass
from typing import ClassVar, Sequence, Tuple

import numpy as np
import scipy.ndimage as ndimage

from config import DEFAULT_SIGMA, GAUSSIAN_MODE, GAUSSIAN_TRUNCATE
from core.base import FilterStage, Operation, VoxelGrid
from core.chunker import apply_with_halo
from core.errors import InvalidParameterError
from processors.utils import make_reporter, neumann_laplacian, rescale_unit


def _voxel_sigmas(sigma: float, spacing: Sequence[float]) -> Tuple[float, ...]:
    return tuple(float(sigma) / float(s) for s in spacing)


def _kernel_halo(sigmas: Sequence[float]) -> Tuple[int, ...]:
    # Same half-width rule scipy uses for a truncated Gaussian kernel
    return tuple(int(GAUSSIAN_TRUNCATE * s + 0.5) + 1 for s in sigmas)


def _gaussian_derivative(values: np.ndarray, sigmas: Sequence[float], axis: int, order: int) -> np.ndarray:
    orders = [0] * values.ndim
    orders[axis] = order
    return ndimage.gaussian_filter(
        values.astype(np.float64, copy=False),
        sigma=list(sigmas),
        order=orders,
        mode=GAUSSIAN_MODE,
        truncate=GAUSSIAN_TRUNCATE,
    )


def gradient_magnitude(values: np.ndarray, sigma: float, spacing: Sequence[float]) -> np.ndarray:
    """Euclidean norm of the first Gaussian derivatives along every axis."""
    sigmas = _voxel_sigmas(sigma, spacing)

    def run(chunk: np.ndarray) -> np.ndarray:
        total = np.zeros(chunk.shape, dtype=np.float64)
        for axis in range(chunk.ndim):
            d = _gaussian_derivative(chunk, sigmas, axis, 1) / float(spacing[axis])
            total += d * d
        return np.sqrt(total)

    return apply_with_halo(values, run, halo=_kernel_halo(sigmas))


def laplacian_of_gaussian(values: np.ndarray, sigma: float, spacing: Sequence[float]) -> np.ndarray:
    """Sum of the unmixed second Gaussian derivatives (signed response)."""
    sigmas = _voxel_sigmas(sigma, spacing)

    def run(chunk: np.ndarray) -> np.ndarray:
        total = np.zeros(chunk.shape, dtype=np.float64)
        for axis in range(chunk.ndim):
            total += _gaussian_derivative(chunk, sigmas, axis, 2) / float(spacing[axis]) ** 2
        return total

    return apply_with_halo(values, run, halo=_kernel_halo(sigmas))


def laplacian_sharpen(values: np.ndarray) -> np.ndarray:
    """
    ``u - lap(u)`` rescaled back onto the input's intensity range.

    A constant input has nothing to sharpen and is returned as a copy.
    """
    vmin = float(values.min())
    vmax = float(values.max())
    if vmax == vmin:
        return np.array(values, dtype=np.float64)

    sharpened = values - neumann_laplacian(values)
    smin = float(sharpened.min())
    smax = float(sharpened.max())
    if smax == smin:
        return np.array(values, dtype=np.float64)
    return (sharpened - smin) / (smax - smin) * (vmax - vmin) + vmin


@dataclass(frozen=True)
class GaussianDerivativeStage(FilterStage):
    """Shared parameters: ``sigma`` (physical units, > 0) and ``normalize``."""

    sigma: float = DEFAULT_SIGMA
    normalize: bool = False

    def __post_init__(self) -> None:
        try:
            sigma = float(self.sigma)
        except (TypeError, ValueError):
            raise InvalidParameterError(f"sigma must be a number, got {self.sigma!r}") from None
        if not np.isfinite(sigma) or sigma <= 0:
            raise InvalidParameterError(f"sigma must be > 0, got {self.sigma}")
        if not isinstance(self.normalize, (bool, np.bool_)):
            raise InvalidParameterError(f"normalize must be a bool, got {self.normalize!r}")
        object.__setattr__(self, "sigma", sigma)
        object.__setattr__(self, "normalize", bool(self.normalize))

    @abstractmethod
    def _compute(self, grid: VoxelGrid) -> np.ndarray:
        """Unnormalised response for ``grid``."""

    def apply(self, grid: VoxelGrid, callback=None) -> VoxelGrid:
        report = make_reporter(self.name, callback)
        report(0, f"Convolving with derivative of Gaussian (sigma={self.sigma})...")
        result = self._compute(grid)
        if self.normalize:
            report(90, "Rescaling to [0, 1]...")
            result = rescale_unit(result, on_degenerate="zero")
        report(100, f"{self.name} complete")
        return self._emit(grid, result)


@dataclass(frozen=True)
class Grad(GaussianDerivativeStage):
    operation: ClassVar[Operation] = Operation.GRAD

    def _compute(self, grid: VoxelGrid) -> np.ndarray:
        return gradient_magnitude(grid.values, self.sigma, grid.spacing)


@dataclass(frozen=True)
class Laplacian(GaussianDerivativeStage):
    operation: ClassVar[Operation] = Operation.LAPLACIAN

    def _compute(self, grid: VoxelGrid) -> np.ndarray:
        return laplacian_of_gaussian(grid.values, self.sigma, grid.spacing)


@dataclass(frozen=True)
class Sharpen(FilterStage):
    operation: ClassVar[Operation] = Operation.SHARPEN

    def apply(self, grid: VoxelGrid, callback=None) -> VoxelGrid:
        return self._emit(grid, laplacian_sharpen(grid.values))


__all__ = [
    "gradient_magnitude",
    "laplacian_of_gaussian",
    "laplacian_sharpen",
    "GaussianDerivativeStage",
    "Grad",
    "Laplacian",
    "Sharpen",
]
