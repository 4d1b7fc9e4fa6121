"""
Connected-component stages on binary masks (FillHoles, GetLargestComponent).

Foreground is every non-zero voxel; outputs are 0/1 masks.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

import numpy as np
from scipy import ndimage
from skimage import measure

from core.base import FilterStage, Operation, VoxelGrid
from core.errors import InvalidParameterError
from processors.utils import binarize, make_reporter


def fill_holes(mask: np.ndarray, connectivity: int = 1) -> np.ndarray:
    """Fill background regions not connected to the grid border."""
    structure = ndimage.generate_binary_structure(mask.ndim, connectivity)
    return ndimage.binary_fill_holes(mask, structure=structure)


def largest_component(mask: np.ndarray, connectivity: int = 1) -> np.ndarray:
    """
    Keep only the largest connected foreground component.

    Ties go to the component with the lowest label (first in raster order).
    An empty mask stays empty.
    """
    labels = measure.label(mask, connectivity=connectivity)
    if labels.max() == 0:
        return np.zeros(mask.shape, dtype=bool)
    counts = np.bincount(labels.ravel())
    counts[0] = 0
    return labels == int(np.argmax(counts))


class ComponentStage(FilterStage):
    """Validates ``connectivity`` (1 = face neighbours, ndim = full neighbourhood)."""

    connectivity: int

    def __post_init__(self) -> None:
        c = self.connectivity
        if isinstance(c, bool) or not isinstance(c, (int, np.integer)) or not 1 <= c <= 3:
            raise InvalidParameterError(f"connectivity must be an integer in [1, 3], got {c!r}")
        object.__setattr__(self, "connectivity", int(c))

    def _check_connectivity(self, ndim: int) -> None:
        if self.connectivity > ndim:
            raise InvalidParameterError(
                f"connectivity {self.connectivity} is invalid for a {ndim}-D grid (max {ndim})"
            )


@dataclass(frozen=True)
class FillHoles(ComponentStage):
    operation: ClassVar[Operation] = Operation.FILL_HOLES

    connectivity: int = 1

    def apply(self, grid: VoxelGrid, callback=None) -> VoxelGrid:
        self._check_connectivity(grid.ndim)
        report = make_reporter(self.name, callback)
        report(0, "Filling enclosed background...")
        filled = fill_holes(binarize(grid.values), self.connectivity)
        report(100, f"{self.name} complete")
        return self._emit(grid, filled.astype(np.float64))


@dataclass(frozen=True)
class GetLargestComponent(ComponentStage):
    operation: ClassVar[Operation] = Operation.LARGEST_COMPONENT

    connectivity: int = 1

    def apply(self, grid: VoxelGrid, callback=None) -> VoxelGrid:
        self._check_connectivity(grid.ndim)
        report = make_reporter(self.name, callback)
        report(0, "Labelling connected components...")
        kept = largest_component(binarize(grid.values), self.connectivity)
        report(100, f"{self.name} complete")
        return self._emit(grid, kept.astype(np.float64))


__all__ = ["fill_holes", "largest_component", "ComponentStage", "FillHoles", "GetLargestComponent"]
