"""
Synthetic phantom generators for demos and tests.
"""

import logging
from typing import Callable, Optional, Sequence

import numpy as np

from config import PHANTOM_BACKGROUND, PHANTOM_FOREGROUND, PHANTOM_SIZE
from core.base import VoxelGrid
from core.errors import InvalidParameterError

logger = logging.getLogger(__name__)

PHANTOM_KINDS = ("spheres", "square")


class PhantomLoader:
    """Builds 2-D or 3-D synthetic grids: random balls, or a centred square / cube."""

    def __init__(self, seed: Optional[int] = 0) -> None:
        self.seed = seed

    def load(
        self,
        kind: str = "spheres",
        size: int = PHANTOM_SIZE,
        ndim: int = 3,
        spacing: Optional[Sequence[float]] = None,
        callback: Optional[Callable[[int, str], None]] = None,
    ) -> VoxelGrid:
        kind = str(kind).strip().lower()
        if kind not in PHANTOM_KINDS:
            raise InvalidParameterError(f"phantom must be one of {PHANTOM_KINDS}, got {kind!r}")
        if ndim not in (2, 3):
            raise InvalidParameterError(f"phantom ndim must be 2 or 3, got {ndim}")
        if int(size) < 4:
            raise InvalidParameterError(f"phantom size must be >= 4, got {size}")
        size = int(size)

        logger.info("Generating %s phantom (size=%d, ndim=%d)", kind, size, ndim)
        if callback:
            callback(0, f"Generating {kind} phantom...")

        if kind == "square":
            values = self._square(size, ndim)
            count = 1
        else:
            values, count = self._spheres(size, ndim, callback)

        if callback:
            callback(100, "Generation complete.")

        return VoxelGrid(
            values,
            spacing=spacing,
            metadata={
                "Type": "Synthetic",
                "Phantom": kind,
                "ObjectCount": int(count),
                "ForegroundRatio": float(np.count_nonzero(values) / values.size),
            },
            copy=False,
        )

    @staticmethod
    def _square(size: int, ndim: int) -> np.ndarray:
        values = np.full((size,) * ndim, PHANTOM_BACKGROUND, dtype=np.float64)
        lo = size // 4
        hi = size - size // 4
        values[tuple(slice(lo, hi) for _ in range(ndim))] = PHANTOM_FOREGROUND
        return values

    def _spheres(self, size: int, ndim: int, callback) -> tuple:
        rng = np.random.default_rng(self.seed)
        values = np.full((size,) * ndim, PHANTOM_BACKGROUND, dtype=np.float64)

        # Centres keep every ball inside the grid
        min_radius = max(1, size // 16)
        max_radius = max(min_radius, size // 6)
        count = max(3, size // 8)
        grid = np.ogrid[tuple(slice(0, size) for _ in range(ndim))]

        for i in range(count):
            radius = int(rng.integers(min_radius, max_radius + 1))
            centre = rng.integers(radius, size - radius, size=ndim)
            dist2 = sum((g - c) ** 2 for g, c in zip(grid, centre))
            values[dist2 <= radius ** 2] = PHANTOM_FOREGROUND
            if callback:
                callback(int(100 * (i + 1) / (count + 1)), f"Inserted ball {i + 1}/{count}")
        return values, count


__all__ = ["PHANTOM_KINDS", "PhantomLoader"]
