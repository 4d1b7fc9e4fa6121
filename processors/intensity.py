"""
Intensity stages: min/max rescaling and quantile truncation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

import numpy as np

from config import DEFAULT_LOWER_QUANTILE, DEFAULT_UPPER_QUANTILE
from core.base import FilterStage, Operation, VoxelGrid
from core.errors import InvalidParameterError
from processors.utils import check_policy, make_reporter, rescale_unit


def quantile_bounds(values: np.ndarray, lower: float, upper: float):
    finite = values[np.isfinite(values)]
    if finite.size == 0:
        return 0.0, 0.0
    lo, hi = np.quantile(finite, [lower, upper])
    return float(lo), float(hi)


@dataclass(frozen=True)
class Normalize(FilterStage):
    """
    Rescale intensities onto [0, 1].

    ``on_degenerate`` decides what a constant input produces: ``"zero"``
    (default) returns the zero field, ``"raise"`` raises DegenerateRangeError.
    """

    operation: ClassVar[Operation] = Operation.NORMALIZE

    on_degenerate: str = "zero"

    def __post_init__(self) -> None:
        object.__setattr__(self, "on_degenerate", check_policy(self.on_degenerate))

    def apply(self, grid: VoxelGrid, callback=None) -> VoxelGrid:
        report = make_reporter(self.name, callback)
        report(0, "Rescaling to [0, 1]...")
        result = rescale_unit(grid.values, on_degenerate=self.on_degenerate)
        report(100, f"{self.name} complete")
        return self._emit(grid, result)


@dataclass(frozen=True)
class TruncateImageIntensity(FilterStage):
    """Clip intensities to the [lower_quantile, upper_quantile] range of the input."""

    operation: ClassVar[Operation] = Operation.TRUNCATE_INTENSITY

    lower_quantile: float = DEFAULT_LOWER_QUANTILE
    upper_quantile: float = DEFAULT_UPPER_QUANTILE

    def __post_init__(self) -> None:
        try:
            lo = float(self.lower_quantile)
            hi = float(self.upper_quantile)
        except (TypeError, ValueError):
            raise InvalidParameterError(
                f"quantiles must be numbers, got {self.lower_quantile!r}, {self.upper_quantile!r}"
            ) from None
        if not (0.0 <= lo < hi <= 1.0):
            raise InvalidParameterError(f"quantiles must satisfy 0 <= lower < upper <= 1, got {lo}, {hi}")
        object.__setattr__(self, "lower_quantile", lo)
        object.__setattr__(self, "upper_quantile", hi)

    def apply(self, grid: VoxelGrid, callback=None) -> VoxelGrid:
        report = make_reporter(self.name, callback)
        lo, hi = quantile_bounds(grid.values, self.lower_quantile, self.upper_quantile)
        report(50, f"Clipping to [{lo:.4g}, {hi:.4g}]")
        result = np.clip(grid.values, lo, hi)
        report(100, f"{self.name} complete")
        return self._emit(grid, result)


__all__ = ["quantile_bounds", "Normalize", "TruncateImageIntensity"]
