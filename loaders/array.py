"""
Raw ``.npy`` array loading and saving.
"""

import logging
import os
from typing import Callable, Optional, Sequence

import numpy as np

from core.base import VoxelGrid

logger = logging.getLogger(__name__)


class ArrayLoader:
    """Wraps an already-decoded ``.npy`` array in a VoxelGrid with user-supplied geometry."""

    def load(
        self,
        path: str,
        spacing: Optional[Sequence[float]] = None,
        origin: Optional[Sequence[float]] = None,
        callback: Optional[Callable[[int, str], None]] = None,
    ) -> VoxelGrid:
        if not os.path.isfile(path):
            raise FileNotFoundError(f"No such array file: {path}")

        logger.info("Loading array from %s", path)
        if callback:
            callback(0, f"Reading {os.path.basename(path)}...")
        values = np.load(path, allow_pickle=False)
        if callback:
            callback(100, f"Loaded array {values.shape} ({values.dtype})")

        return VoxelGrid(
            values,
            spacing=spacing,
            origin=origin,
            metadata={"Type": "Array", "SourcePath": os.path.abspath(path), "SourceDType": str(values.dtype)},
        )

    @staticmethod
    def save(grid: VoxelGrid, path: str) -> str:
        """Write the grid's values to ``path`` (``.npy`` is appended by numpy if missing)."""
        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)
        np.save(path, grid.values)
        saved = path if path.endswith(".npy") else path + ".npy"
        logger.info("Saved %s grid to %s", grid.extents, saved)
        return saved


__all__ = ["ArrayLoader"]
