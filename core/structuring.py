"""
Structuring elements (neighbourhood offset sets) for morphological stages.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Sequence, Tuple, Union

import numpy as np

from core.errors import InvalidParameterError, InvalidRadiusError


SHAPES = ("ball", "box")

RadiusLike = Union[int, Sequence[int]]


def resolve_radius(radius: RadiusLike, ndim: int) -> Tuple[int, ...]:
    """
    Expand a uniform or per-axis radius into an ``ndim`` tuple.

    Raises:
        InvalidRadiusError: If any component is negative.
        InvalidParameterError: If the radius is not integral or has the wrong arity.
    """
    if isinstance(radius, (int, np.integer)) and not isinstance(radius, bool):
        values = (int(radius),) * ndim
    else:
        try:
            values = tuple(radius)  # type: ignore[arg-type]
        except TypeError:
            raise InvalidParameterError(f"radius must be an int or a sequence of ints, got {radius!r}") from None
        if len(values) != ndim:
            raise InvalidParameterError(f"radius must have {ndim} components, got {len(values)}")
        for v in values:
            if isinstance(v, bool) or not isinstance(v, (int, np.integer)):
                raise InvalidParameterError(f"radius components must be integers, got {v!r}")
        values = tuple(int(v) for v in values)

    if any(r < 0 for r in values):
        raise InvalidRadiusError(f"radius must be non-negative, got {values}")
    return values


@dataclass(frozen=True, eq=False)
class StructuringElement:
    """
    Set of integer offset vectors within a radius.

    Attributes:
        shape (str): "ball" (ellipsoid scaled by per-axis radius) or "box".
        radius (Tuple[int, ...]): Per-axis radius.
        offsets (np.ndarray): Int array of shape (n, D), sorted lexicographically.
    """

    shape: str
    radius: Tuple[int, ...]
    offsets: np.ndarray

    @classmethod
    def generate(cls, shape: str, radius: RadiusLike, ndim: int) -> "StructuringElement":
        shape_key = str(shape).strip().lower()
        if shape_key not in SHAPES:
            raise InvalidParameterError(f"Unknown structuring element shape {shape!r}. Expected one of: {SHAPES}")
        if ndim < 1:
            raise InvalidParameterError(f"ndim must be positive, got {ndim}")
        radii = resolve_radius(radius, ndim)

        ranges = [range(-r, r + 1) for r in radii]
        selected = []
        for offset in itertools.product(*ranges):
            if shape_key == "ball":
                norm = sum((o / r) ** 2 for o, r in zip(offset, radii) if r > 0)
                if norm > 1.0 + 1e-12:
                    continue
            selected.append(offset)

        offsets = np.asarray(selected, dtype=np.int64).reshape(-1, ndim)
        offsets.setflags(write=False)
        return cls(shape=shape_key, radius=radii, offsets=offsets)

    @property
    def ndim(self) -> int:
        return len(self.radius)

    @property
    def is_identity(self) -> bool:
        return all(r == 0 for r in self.radius)

    def __len__(self) -> int:
        return int(self.offsets.shape[0])

    def footprint(self) -> np.ndarray:
        """Boolean mask of extent ``2r + 1`` per axis with the element centred."""
        mask = np.zeros(tuple(2 * r + 1 for r in self.radius), dtype=bool)
        mask[tuple((self.offsets + np.asarray(self.radius)).T)] = True
        return mask


__all__ = ["SHAPES", "StructuringElement", "resolve_radius"]
