"""
Grayscale and binary morphology stages (GD, GE, GO, GC, MD, ME, MO, MC).

Grayscale stages take the max (dilation) or min (erosion) over a ball or box
structuring element. Binary stages follow the ITK convention: voxels equal to
the foreground value are the object, every other voxel is background and is
left untouched unless the operation claims it. Neighbours outside the grid
never take part in a reduction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, ClassVar, Tuple

import numpy as np

from config import DEFAULT_RADIUS, DEFAULT_SHAPE
from core.base import FilterStage, Operation, VoxelGrid
from core.chunker import apply_with_halo
from core.errors import InvalidParameterError
from core.structuring import SHAPES, RadiusLike, StructuringElement, resolve_radius
from processors.utils import make_reporter, neighborhood_extreme

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Array-level operations
# ---------------------------------------------------------------------------

def _reduce(values: np.ndarray, element: StructuringElement, mode: str) -> np.ndarray:
    return apply_with_halo(
        values,
        lambda chunk: neighborhood_extreme(chunk, element, mode),
        halo=element.radius,
    )


def grayscale_dilate(values: np.ndarray, element: StructuringElement) -> np.ndarray:
    if element.is_identity:
        return np.array(values, dtype=np.float64)
    return _reduce(values, element, "max")


def grayscale_erode(values: np.ndarray, element: StructuringElement) -> np.ndarray:
    if element.is_identity:
        return np.array(values, dtype=np.float64)
    return _reduce(values, element, "min")


def binary_dilate(values: np.ndarray, element: StructuringElement, foreground: float = 1.0) -> np.ndarray:
    """Set every voxel within reach of a foreground voxel to ``foreground``."""
    out = np.array(values, dtype=np.float64)
    if element.is_identity:
        return out
    mask = (values == foreground).astype(np.float64)
    reached = _reduce(mask, element, "max") > 0
    out[reached] = foreground
    return out


def binary_erode(values: np.ndarray, element: StructuringElement, foreground: float = 1.0) -> np.ndarray:
    """Clear foreground voxels that have an in-grid background neighbour."""
    out = np.array(values, dtype=np.float64)
    if element.is_identity:
        return out
    fg = values == foreground
    touches_background = _reduce((~fg).astype(np.float64), element, "max") > 0
    out[fg & touches_background] = 0.0
    return out


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------

def _normalize_radius(radius: RadiusLike) -> RadiusLike:
    if isinstance(radius, (list, tuple, np.ndarray)):
        return tuple(radius)
    return radius


class MorphologyStage(FilterStage):
    """
    Shared behaviour of morphology stages.

    Subclasses are frozen dataclasses with ``radius`` and ``shape`` fields and
    list their erode/dilate ``passes`` in execution order.
    """

    radius: RadiusLike
    shape: str

    passes: ClassVar[Tuple[str, ...]] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "radius", _normalize_radius(self.radius))
        shape = str(self.shape).strip().lower()
        if shape not in SHAPES:
            raise InvalidParameterError(f"shape must be one of {SHAPES}, got {self.shape!r}")
        object.__setattr__(self, "shape", shape)
        # Arity is checked against the grid in apply(); sign is checked now.
        ndim = len(self.radius) if isinstance(self.radius, tuple) else 1
        resolve_radius(self.radius, ndim)

    def element(self, ndim: int) -> StructuringElement:
        return StructuringElement.generate(self.shape, self.radius, ndim)

    def _pass(self, name: str) -> Callable[[np.ndarray, StructuringElement], np.ndarray]:
        return grayscale_dilate if name == "dilate" else grayscale_erode

    def apply(self, grid: VoxelGrid, callback=None) -> VoxelGrid:
        element = self.element(grid.ndim)
        report = make_reporter(self.name, callback)
        values = grid.values
        total = len(self.passes)
        for i, name in enumerate(self.passes):
            report(int(100 * i / total), f"{name} with {element.shape} radius {element.radius}")
            values = self._pass(name)(values, element)
        report(100, f"{self.name} complete")
        return self._emit(grid, np.array(values, dtype=np.float64))


@dataclass(frozen=True)
class GrayscaleMorphologyStage(MorphologyStage):
    """Base for grayscale morphology. Parameters: ``radius``, ``shape``."""

    radius: RadiusLike = DEFAULT_RADIUS
    shape: str = DEFAULT_SHAPE


@dataclass(frozen=True)
class GrayscaleDilate(GrayscaleMorphologyStage):
    operation: ClassVar[Operation] = Operation.GD
    passes: ClassVar[Tuple[str, ...]] = ("dilate",)


@dataclass(frozen=True)
class GrayscaleErode(GrayscaleMorphologyStage):
    operation: ClassVar[Operation] = Operation.GE
    passes: ClassVar[Tuple[str, ...]] = ("erode",)


@dataclass(frozen=True)
class GrayscaleOpen(GrayscaleMorphologyStage):
    operation: ClassVar[Operation] = Operation.GO
    passes: ClassVar[Tuple[str, ...]] = ("erode", "dilate")


@dataclass(frozen=True)
class GrayscaleClose(GrayscaleMorphologyStage):
    operation: ClassVar[Operation] = Operation.GC
    passes: ClassVar[Tuple[str, ...]] = ("dilate", "erode")


@dataclass(frozen=True)
class BinaryMorphologyStage(MorphologyStage):
    """Base for binary morphology. Parameters: ``radius``, ``foreground``, ``shape``."""

    radius: RadiusLike = DEFAULT_RADIUS
    foreground: float = 1.0
    shape: str = DEFAULT_SHAPE

    def __post_init__(self) -> None:
        MorphologyStage.__post_init__(self)
        try:
            fg = float(self.foreground)
        except (TypeError, ValueError):
            raise InvalidParameterError(f"foreground must be a number, got {self.foreground!r}") from None
        if not np.isfinite(fg) or fg == 0.0:
            raise InvalidParameterError(f"foreground must be finite and non-zero, got {fg}")
        object.__setattr__(self, "foreground", fg)

    def _pass(self, name: str) -> Callable[[np.ndarray, StructuringElement], np.ndarray]:
        fg = self.foreground
        if name == "dilate":
            return lambda values, element: binary_dilate(values, element, fg)
        return lambda values, element: binary_erode(values, element, fg)

    def apply(self, grid: VoxelGrid, callback=None) -> VoxelGrid:
        values = grid.values
        if not np.any(values == self.foreground) and np.any(values != 0):
            logger.warning(
                "%s: no voxel equals foreground=%s but %d voxels are non-zero; "
                "the grid is treated as all background",
                self.name, self.foreground, int(np.count_nonzero(values)),
            )
        return MorphologyStage.apply(self, grid, callback)


@dataclass(frozen=True)
class BinaryDilate(BinaryMorphologyStage):
    operation: ClassVar[Operation] = Operation.MD
    passes: ClassVar[Tuple[str, ...]] = ("dilate",)


@dataclass(frozen=True)
class BinaryErode(BinaryMorphologyStage):
    operation: ClassVar[Operation] = Operation.ME
    passes: ClassVar[Tuple[str, ...]] = ("erode",)


@dataclass(frozen=True)
class BinaryOpen(BinaryMorphologyStage):
    """Erosion then dilation; removes foreground structures smaller than the element."""

    operation: ClassVar[Operation] = Operation.MO
    passes: ClassVar[Tuple[str, ...]] = ("erode", "dilate")


@dataclass(frozen=True)
class BinaryClose(BinaryMorphologyStage):
    """Dilation then erosion; fills gaps and holes smaller than the element."""

    operation: ClassVar[Operation] = Operation.MC
    passes: ClassVar[Tuple[str, ...]] = ("dilate", "erode")


__all__ = [
    "grayscale_dilate",
    "grayscale_erode",
    "binary_dilate",
    "binary_erode",
    "MorphologyStage",
    "GrayscaleMorphologyStage",
    "GrayscaleDilate",
    "GrayscaleErode",
    "GrayscaleOpen",
    "GrayscaleClose",
    "BinaryMorphologyStage",
    "BinaryDilate",
    "BinaryErode",
    "BinaryOpen",
    "BinaryClose",
]
