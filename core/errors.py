"""
Error kinds raised by grids, structuring elements, stages and pipelines.

Every error derives from ``FilterError`` (itself a ``ValueError``) so callers
can catch the whole family or a single kind.
"""

from __future__ import annotations

from typing import Optional


class FilterError(ValueError):
    """Base class for all filter pipeline errors."""


class OutOfBoundsError(FilterError, IndexError):
    """A voxel index lies outside ``[0, extent)`` on some axis."""


class ShapeMismatchError(FilterError):
    """Two grids (or a grid and an array) have different extents."""


class InvalidRadiusError(FilterError):
    """A structuring element radius is negative."""


class InvalidInputError(FilterError):
    """The input grid cannot be processed (e.g. no foreground voxels)."""


class DegenerateRangeError(FilterError):
    """An intensity rescale was requested on a constant field."""


class InvalidCropError(FilterError):
    """A negative pad would remove the whole extent of an axis."""


class UnknownOperationError(FilterError):
    """An operation name is not part of the fixed vocabulary."""


class InvalidParameterError(FilterError):
    """A stage parameter has the wrong arity, type or range."""


class StageExecutionError(FilterError):
    """
    A pipeline stage failed.

    Attributes:
        index (int): Zero-based position of the failing stage.
        operation (str): Operation name of the failing stage.
        error (FilterError): The original error (also ``__cause__``).
    """

    def __init__(self, index: int, operation: str, error: Optional[BaseException] = None) -> None:
        self.index = index
        self.operation = operation
        self.error = error
        kind = type(error).__name__ if error is not None else "Error"
        super().__init__(f"Stage {index} ({operation}) failed: {kind}: {error}")


__all__ = [
    "FilterError",
    "OutOfBoundsError",
    "ShapeMismatchError",
    "InvalidRadiusError",
    "InvalidInputError",
    "DegenerateRangeError",
    "InvalidCropError",
    "UnknownOperationError",
    "InvalidParameterError",
    "StageExecutionError",
]
