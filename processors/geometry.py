"""
Geometric stage: symmetric padding (positive amount) or cropping (negative).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Sequence, Tuple, Union

import numpy as np

from core.base import FilterStage, Operation, VoxelGrid
from core.coordinates import shifted_origin
from core.errors import InvalidCropError, InvalidParameterError
from processors.utils import make_reporter


AmountLike = Union[int, Sequence[int]]


def resolve_amount(amount: AmountLike, ndim: int) -> Tuple[int, ...]:
    if isinstance(amount, (int, np.integer)) and not isinstance(amount, bool):
        return (int(amount),) * ndim
    if isinstance(amount, tuple) and len(amount) != ndim:
        raise InvalidParameterError(f"amount must have {ndim} components, got {len(amount)}")
    return tuple(int(a) for a in amount)  # type: ignore[union-attr]


def padded_extents(extents: Sequence[int], amounts: Sequence[int]) -> Tuple[int, ...]:
    """
    Output extents for a signed per-axis pad amount.

    Raises:
        InvalidCropError: If a crop would leave a non-positive extent.
    """
    out = []
    for axis, (extent, amount) in enumerate(zip(extents, amounts)):
        if amount < 0 and 2 * -amount >= extent:
            raise InvalidCropError(
                f"Cannot crop {-amount} voxels from both sides of axis {axis} with extent {extent}"
            )
        out.append(int(extent) + 2 * int(amount))
    return tuple(out)


def pad_or_crop(values: np.ndarray, amounts: Sequence[int], fill: float = 0.0) -> np.ndarray:
    """Pad positive axes with ``fill`` and crop negative axes, symmetrically."""
    padded_extents(values.shape, amounts)
    crop = tuple(slice(-a, n + a) if a < 0 else slice(None) for a, n in zip(amounts, values.shape))
    cropped = values[crop]
    pad_width = [(a, a) if a > 0 else (0, 0) for a in amounts]
    return np.pad(cropped, pad_width, mode="constant", constant_values=fill).astype(np.float64, copy=False)


@dataclass(frozen=True)
class PadImage(FilterStage):
    """
    Parameters: ``amount`` (int or per-axis ints; negative crops) and ``fill``.

    The new origin keeps every retained voxel at the same physical position.
    """

    operation: ClassVar[Operation] = Operation.PAD_IMAGE

    amount: AmountLike = 0
    fill: float = 0.0

    def __post_init__(self) -> None:
        amount = self.amount
        if isinstance(amount, (list, tuple, np.ndarray)):
            for a in amount:
                if isinstance(a, bool) or not isinstance(a, (int, np.integer)):
                    raise InvalidParameterError(f"amount components must be integers, got {a!r}")
            amount = tuple(int(a) for a in amount)
        elif isinstance(amount, bool) or not isinstance(amount, (int, np.integer)):
            raise InvalidParameterError(f"amount must be an int or a sequence of ints, got {amount!r}")
        else:
            amount = int(amount)
        object.__setattr__(self, "amount", amount)

        try:
            object.__setattr__(self, "fill", float(self.fill))
        except (TypeError, ValueError):
            raise InvalidParameterError(f"fill must be a number, got {self.fill!r}") from None

    def output_extents(self, extents: Sequence[int]) -> Tuple[int, ...]:
        return padded_extents(extents, resolve_amount(self.amount, len(extents)))

    def apply(self, grid: VoxelGrid, callback=None) -> VoxelGrid:
        report = make_reporter(self.name, callback)
        amounts = resolve_amount(self.amount, grid.ndim)
        new_extents = self.output_extents(grid.extents)
        report(0, f"Resizing {grid.extents} -> {new_extents}")

        values = pad_or_crop(grid.values, amounts, self.fill)
        origin = shifted_origin(grid.origin, grid.spacing, grid.direction, [-a for a in amounts])

        metadata = dict(grid.metadata)
        metadata["Type"] = f"Filtered - {self.name}"
        report(100, f"{self.name} complete")
        return VoxelGrid(
            values,
            spacing=grid.spacing,
            origin=origin,
            direction=grid.direction,
            metadata=metadata,
            copy=False,
        )


__all__ = ["resolve_amount", "padded_extents", "pad_or_crop", "PadImage"]
