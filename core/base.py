"""
Core data structures and abstract base classes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import fields
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, Optional, Sequence, Tuple

import numpy as np

from config import DIRECTION_TOLERANCE
from core.errors import (
    InvalidParameterError,
    OutOfBoundsError,
    ShapeMismatchError,
    UnknownOperationError,
)


ProgressCallback = Callable[[int, str], None]


class Operation(str, Enum):
    """Closed vocabulary of filter operations."""

    GD = "GD"                                   # Grayscale dilation
    GE = "GE"                                   # Grayscale erosion
    GO = "GO"                                   # Grayscale opening
    GC = "GC"                                   # Grayscale closing
    MD = "MD"                                   # Binary dilation
    ME = "ME"                                   # Binary erosion
    MO = "MO"                                   # Binary opening
    MC = "MC"                                   # Binary closing
    PAD_IMAGE = "PadImage"
    MAURER_DISTANCE = "MaurerDistance"
    DANIELSSON_DISTANCE = "D"
    PERONA_MALIK = "PeronaMalik"
    GRAD = "Grad"
    LAPLACIAN = "Laplacian"
    SHARPEN = "Sharpen"
    FILL_HOLES = "FillHoles"
    LARGEST_COMPONENT = "GetLargestComponent"
    NORMALIZE = "Normalize"
    TRUNCATE_INTENSITY = "TruncateImageIntensity"

    @classmethod
    def parse(cls, name: Any) -> "Operation":
        """Resolve an operation name, raising UnknownOperationError if unknown."""
        if isinstance(name, Operation):
            return name
        try:
            return cls(str(name))
        except ValueError:
            allowed = ", ".join(op.value for op in cls)
            raise UnknownOperationError(
                f"Unknown operation {name!r}. Expected one of: {allowed}."
            ) from None


def _as_float_tuple(values: Optional[Sequence[float]], ndim: int, default: float, label: str) -> Tuple[float, ...]:
    if values is None:
        return (float(default),) * ndim
    try:
        out = tuple(float(v) for v in values)
    except TypeError:
        raise InvalidParameterError(f"{label} must be a sequence of {ndim} numbers, got {values!r}") from None
    if len(out) != ndim:
        raise InvalidParameterError(f"{label} must have {ndim} components, got {len(out)}")
    if not all(np.isfinite(out)):
        raise InvalidParameterError(f"{label} components must be finite, got {out}")
    return out


class VoxelGrid:
    """
    Typed N-dimensional voxel grid with physical geometry.

    Attributes:
        values (np.ndarray): float64 samples; the array shape is the per-axis extent.
        spacing (Tuple[float, ...]): Physical voxel size per axis (positive).
        origin (Tuple[float, ...]): Physical position of voxel ``(0, ..., 0)``.
        direction (np.ndarray): D x D orthonormal direction cosines (read-only).
        metadata (Dict[str, Any]): Arbitrary metadata (Type, SampleID, ...).

    All geometry tuples follow array index order. Spacing, origin and direction
    never change after construction; geometric filters build a new grid.
    """

    def __init__(
        self,
        values: Any,
        spacing: Optional[Sequence[float]] = None,
        origin: Optional[Sequence[float]] = None,
        direction: Optional[Any] = None,
        metadata: Optional[Dict[str, Any]] = None,
        *,
        copy: bool = True,
    ) -> None:
        arr = np.array(values, dtype=np.float64, copy=True) if copy else np.asarray(values, dtype=np.float64)
        arr = np.ascontiguousarray(arr)
        if arr.ndim not in (2, 3):
            raise InvalidParameterError(f"VoxelGrid must be 2-D or 3-D, got {arr.ndim}-D")
        if arr.size == 0:
            raise InvalidParameterError(f"VoxelGrid extents must be positive, got {arr.shape}")

        ndim = arr.ndim
        spacing_t = _as_float_tuple(spacing, ndim, 1.0, "spacing")
        if any(s <= 0 for s in spacing_t):
            raise InvalidParameterError(f"spacing components must be positive, got {spacing_t}")
        origin_t = _as_float_tuple(origin, ndim, 0.0, "origin")

        if direction is None:
            dir_arr = np.eye(ndim)
        else:
            dir_arr = np.array(direction, dtype=np.float64)
            if dir_arr.shape != (ndim, ndim):
                raise InvalidParameterError(
                    f"direction must be a {ndim}x{ndim} matrix, got shape {dir_arr.shape}"
                )
            if not np.allclose(dir_arr @ dir_arr.T, np.eye(ndim), atol=DIRECTION_TOLERANCE):
                raise InvalidParameterError("direction cosines must be orthonormal")
        dir_arr.setflags(write=False)

        self._values = arr
        self._spacing = spacing_t
        self._origin = origin_t
        self._direction = dir_arr
        self.metadata: Dict[str, Any] = dict(metadata or {})

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @classmethod
    def construct(
        cls,
        extents: Sequence[int],
        spacing: Optional[Sequence[float]] = None,
        origin: Optional[Sequence[float]] = None,
        direction: Optional[Any] = None,
        fill: float = 0.0,
    ) -> "VoxelGrid":
        """Build a constant-valued grid of the given extents."""
        try:
            shape = tuple(int(e) for e in extents)
        except TypeError:
            raise InvalidParameterError(f"extents must be a sequence of integers, got {extents!r}") from None
        if any(e <= 0 for e in shape):
            raise InvalidParameterError(f"extents must be positive, got {shape}")
        values = np.full(shape, float(fill), dtype=np.float64)
        return cls(values, spacing=spacing, origin=origin, direction=direction, copy=False)

    def with_values(self, values: np.ndarray, metadata: Optional[Dict[str, Any]] = None) -> "VoxelGrid":
        """Return a new grid sharing this grid's geometry but holding ``values``."""
        arr = np.asarray(values, dtype=np.float64)
        if arr.shape != self._values.shape:
            raise ShapeMismatchError(f"Expected extents {self.extents}, got {arr.shape}")
        return VoxelGrid(
            arr,
            spacing=self._spacing,
            origin=self._origin,
            direction=self._direction,
            metadata=self.metadata if metadata is None else metadata,
            copy=False,
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def values(self) -> np.ndarray:
        return self._values

    @property
    def ndim(self) -> int:
        return self._values.ndim

    @property
    def extents(self) -> Tuple[int, ...]:
        return tuple(int(e) for e in self._values.shape)

    @property
    def size(self) -> int:
        return int(self._values.size)

    @property
    def spacing(self) -> Tuple[float, ...]:
        return self._spacing

    @property
    def origin(self) -> Tuple[float, ...]:
        return self._origin

    @property
    def direction(self) -> np.ndarray:
        return self._direction

    # ------------------------------------------------------------------
    # Voxel access
    # ------------------------------------------------------------------

    def _check_index(self, index: Sequence[int]) -> Tuple[int, ...]:
        try:
            idx = tuple(int(i) for i in index)
        except TypeError:
            raise OutOfBoundsError(f"Index must be a sequence of {self.ndim} integers, got {index!r}") from None
        if len(idx) != self.ndim:
            raise OutOfBoundsError(f"Index {idx} has {len(idx)} components, grid is {self.ndim}-D")
        for axis, (i, extent) in enumerate(zip(idx, self._values.shape)):
            if i < 0 or i >= extent:
                raise OutOfBoundsError(f"Index {idx} outside [0, {extent}) on axis {axis}")
        return idx

    def get(self, index: Sequence[int]) -> float:
        return float(self._values[self._check_index(index)])

    def set(self, index: Sequence[int], value: float) -> None:
        """Write a single voxel. This is the only mutating grid operation."""
        self._values[self._check_index(index)] = float(value)

    # ------------------------------------------------------------------
    # Functional transforms (always allocate)
    # ------------------------------------------------------------------

    def clone(self) -> "VoxelGrid":
        return VoxelGrid(
            self._values,
            spacing=self._spacing,
            origin=self._origin,
            direction=self._direction,
            metadata=dict(self.metadata),
        )

    def map(self, fn: Callable[[np.ndarray], Any]) -> "VoxelGrid":
        """Apply a vectorised unary function, returning a new grid."""
        result = np.asarray(fn(self._values.copy()), dtype=np.float64)
        if result.shape != self._values.shape:
            result = np.broadcast_to(result, self._values.shape)
        return self.with_values(np.array(result, dtype=np.float64), metadata=dict(self.metadata))

    def combine(self, other: "VoxelGrid", fn: Callable[[np.ndarray, np.ndarray], Any]) -> "VoxelGrid":
        """Apply a vectorised binary function voxel-wise, returning a new grid."""
        if other.extents != self.extents:
            raise ShapeMismatchError(f"Cannot combine extents {self.extents} and {other.extents}")
        result = np.asarray(fn(self._values.copy(), other.values.copy()), dtype=np.float64)
        if result.shape != self._values.shape:
            result = np.broadcast_to(result, self._values.shape)
        return self.with_values(np.array(result, dtype=np.float64), metadata=dict(self.metadata))

    # ------------------------------------------------------------------
    # Comparison helpers
    # ------------------------------------------------------------------

    def same_geometry(self, other: "VoxelGrid", atol: float = 1e-9) -> bool:
        return (
            self.extents == other.extents
            and np.allclose(self._spacing, other.spacing, atol=atol)
            and np.allclose(self._origin, other.origin, atol=atol)
            and np.allclose(self._direction, other.direction, atol=atol)
        )

    def allclose(self, other: "VoxelGrid", atol: float = 1e-9) -> bool:
        """True when geometry matches and values agree within ``atol``."""
        return self.same_geometry(other, atol=atol) and bool(
            np.allclose(self._values, other.values, atol=atol, rtol=0.0, equal_nan=True)
        )

    def __repr__(self) -> str:
        return (
            f"VoxelGrid(extents={self.extents}, spacing={self._spacing}, "
            f"origin={self._origin})"
        )


class FilterStage(ABC):
    """
    Abstract base class for filter stages.

    Concrete stages are frozen dataclasses holding validated parameters and
    tagged with a single ``Operation``.
    """

    operation: ClassVar[Operation]

    @abstractmethod
    def apply(self, grid: VoxelGrid, callback: Optional[ProgressCallback] = None) -> VoxelGrid:
        """
        Run the filter.

        Args:
            grid (VoxelGrid): Input grid (never modified).
            callback (Optional[Callable]): Progress callback (percent, message).

        Returns:
            VoxelGrid: New output grid.
        """
        pass

    def output_extents(self, extents: Sequence[int]) -> Tuple[int, ...]:
        """Output extents for the given input extents (identity by default)."""
        return tuple(int(e) for e in extents)

    @property
    def name(self) -> str:
        return self.operation.value

    def params(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}  # type: ignore[arg-type]

    def _emit(self, grid: VoxelGrid, values: np.ndarray) -> VoxelGrid:
        """Wrap ``values`` in a new grid with ``grid``'s geometry, tagging the metadata."""
        metadata = dict(grid.metadata)
        metadata["Type"] = f"Filtered - {self.name}"
        return grid.with_values(values, metadata=metadata)


__all__ = [
    "Operation",
    "ProgressCallback",
    "VoxelGrid",
    "FilterStage",
]
