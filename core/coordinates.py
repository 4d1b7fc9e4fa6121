"""
Coordinate conversion helpers between voxel indices and physical space.

Convention:
- Index tuples, spacing and origin all follow array axis order
- Physical point = origin + direction @ (index * spacing)
"""

from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np


def _check_spacing(spacing: Sequence[float]) -> np.ndarray:
    sp = np.asarray(spacing, dtype=np.float64)
    if np.any(np.abs(sp) < 1e-12):
        raise ValueError("Spacing components must be non-zero.")
    return sp


def index_to_physical(
    index: Sequence[float],
    spacing: Sequence[float],
    origin: Sequence[float],
    direction: np.ndarray,
) -> Tuple[float, ...]:
    """
    Convert a (possibly fractional) voxel index to a physical point.
    """
    sp = _check_spacing(spacing)
    idx = np.asarray(index, dtype=np.float64)
    point = np.asarray(origin, dtype=np.float64) + np.asarray(direction) @ (idx * sp)
    return tuple(float(v) for v in point)


def physical_to_index(
    point: Sequence[float],
    spacing: Sequence[float],
    origin: Sequence[float],
    direction: np.ndarray,
    *,
    rounding: str = "none",
) -> Tuple[float, ...]:
    """
    Convert a physical point to a voxel index.

    rounding:
    - "none" (default): fractional index
    - "round": nearest integer
    - "floor": floor toward -inf
    """
    sp = _check_spacing(spacing)
    delta = np.asarray(point, dtype=np.float64) - np.asarray(origin, dtype=np.float64)
    # Direction is orthonormal, so its inverse is its transpose
    idx = (np.asarray(direction).T @ delta) / sp

    mode = str(rounding).strip().lower()
    if mode == "none":
        return tuple(float(v) for v in idx)
    if mode == "round":
        return tuple(int(v) for v in np.rint(idx))
    if mode == "floor":
        return tuple(int(v) for v in np.floor(idx))
    raise ValueError(f"Unknown rounding mode: {rounding}")


def shifted_origin(
    origin: Sequence[float],
    spacing: Sequence[float],
    direction: np.ndarray,
    offset: Sequence[float],
) -> Tuple[float, ...]:
    """
    Origin of a grid whose voxel 0 sits at ``offset`` voxels of the old grid.

    Padding uses a negative offset (the new origin moves outward); cropping
    uses a positive one.
    """
    return index_to_physical(offset, spacing, origin, direction)


__all__ = ["index_to_physical", "physical_to_index", "shifted_origin"]
