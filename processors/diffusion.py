"""
Perona-Malik anisotropic diffusion (explicit finite-difference scheme).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, ClassVar, Optional

import numpy as np

from config import DEFAULT_CONDUCTANCE, DEFAULT_DIFFUSION_ITERATIONS, DIFFUSION_TIME_STEP_FACTOR
from core.base import FilterStage, Operation, VoxelGrid
from core.errors import InvalidParameterError
from processors.utils import make_reporter


def max_stable_time_step(ndim: int) -> float:
    """Explicit-scheme stability bound for the 2D-neighbour stencil on unit spacing."""
    return 1.0 / (2.0 * ndim)


def conductance_weight(gradient: np.ndarray, conductance: float) -> np.ndarray:
    """Edge-stopping function g(d) = exp(-(d/k)^2): 1 on flat regions, -> 0 on edges."""
    return np.exp(-((gradient / conductance) ** 2))


def diffusion_step(values: np.ndarray, conductance: float, time_step: float) -> np.ndarray:
    """
    One explicit Perona-Malik update.

    Reads ``values`` only and returns a new array. Differences across the grid
    border are zero (edge replication, i.e. a Neumann boundary).
    """
    padded = np.pad(values, 1, mode="edge")
    centre = tuple(slice(1, -1) for _ in range(values.ndim))
    flux = np.zeros_like(values, dtype=np.float64)
    for axis in range(values.ndim):
        for shift in (slice(2, None), slice(0, -2)):
            neighbour = list(centre)
            neighbour[axis] = shift
            diff = padded[tuple(neighbour)] - values
            flux += conductance_weight(diff, conductance) * diff
    return values + time_step * flux


def perona_malik(
    values: np.ndarray,
    iterations: int,
    conductance: float,
    time_step: float,
    report: Optional[Callable[[int, str], None]] = None,
) -> np.ndarray:
    """
    Run ``iterations`` explicit updates.

    ``report`` is called after every iteration; it is the cooperative stop
    check, so an exception raised there aborts the loop.
    """
    current = np.array(values, dtype=np.float64)
    for i in range(iterations):
        current = diffusion_step(current, conductance, time_step)
        if report:
            report(int(100 * (i + 1) / iterations), f"Iteration {i + 1}/{iterations}")
    return current


@dataclass(frozen=True)
class PeronaMalik(FilterStage):
    """
    Edge-preserving smoothing. Parameters: ``iterations``, ``conductance``,
    ``time_step`` (defaults to a fraction of the stability bound).
    """

    operation: ClassVar[Operation] = Operation.PERONA_MALIK

    iterations: int = DEFAULT_DIFFUSION_ITERATIONS
    conductance: float = DEFAULT_CONDUCTANCE
    time_step: Optional[float] = None

    def __post_init__(self) -> None:
        if isinstance(self.iterations, bool) or not isinstance(self.iterations, (int, np.integer)):
            raise InvalidParameterError(f"iterations must be an integer, got {self.iterations!r}")
        if self.iterations < 0:
            raise InvalidParameterError(f"iterations must be >= 0, got {self.iterations}")
        object.__setattr__(self, "iterations", int(self.iterations))

        try:
            k = float(self.conductance)
        except (TypeError, ValueError):
            raise InvalidParameterError(f"conductance must be a number, got {self.conductance!r}") from None
        if not np.isfinite(k) or k <= 0:
            raise InvalidParameterError(f"conductance must be > 0, got {self.conductance}")
        object.__setattr__(self, "conductance", k)

        if self.time_step is not None:
            try:
                dt = float(self.time_step)
            except (TypeError, ValueError):
                raise InvalidParameterError(f"time_step must be a number, got {self.time_step!r}") from None
            # 2-D has the loosest bound; apply() checks the grid's own bound.
            if not np.isfinite(dt) or dt <= 0 or dt > max_stable_time_step(2):
                raise InvalidParameterError(f"time_step must be in (0, {max_stable_time_step(2)}], got {dt}")
            object.__setattr__(self, "time_step", dt)

    def resolve_time_step(self, ndim: int) -> float:
        bound = max_stable_time_step(ndim)
        if self.time_step is None:
            return DIFFUSION_TIME_STEP_FACTOR * bound
        if self.time_step > bound:
            raise InvalidParameterError(
                f"time_step {self.time_step} exceeds the stability bound {bound} for {ndim}-D grids"
            )
        return self.time_step

    def apply(self, grid: VoxelGrid, callback=None) -> VoxelGrid:
        time_step = self.resolve_time_step(grid.ndim)
        if self.iterations == 0:
            return self._emit(grid, grid.values.copy())

        report = make_reporter(self.name, callback)
        report(0, f"Diffusing: {self.iterations} iterations, k={self.conductance}, dt={time_step:.4f}")
        result = perona_malik(grid.values, self.iterations, self.conductance, time_step, report)
        return self._emit(grid, result)


__all__ = [
    "max_stable_time_step",
    "conductance_weight",
    "diffusion_step",
    "perona_malik",
    "PeronaMalik",
]
