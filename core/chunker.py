"""
N-dimensional spatial chunker with ghost-cell (halo) support.

Design goals
------------
* Keep neighbourhood filters (morphology, Gaussian convolution) cache
  friendly on large grids by working on bounded chunks.
* Provide correct boundary handling for non-local algorithms via a per-axis
  halo overlap, so chunked output is identical to whole-grid output.
* Read every chunk from an immutable snapshot of the input and write only
  the chunk core into a separate output buffer, so chunks can run on a
  thread pool without read-after-write hazards.

No GUI imports. This module is completely headless.
"""

from __future__ import annotations

import itertools
import logging
import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Generator, Optional, Sequence, Tuple, Union

import numpy as np

from config import CHUNK_SHAPE_2D, CHUNK_SHAPE_3D, MAX_WORKERS, PARALLEL_MIN_VOXELS

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass
class ChunkDescriptor:
    """
    Describes a single spatial chunk and the surrounding halo region.

    Attributes
    ----------
    chunk_id : int
        Monotonically increasing identifier (useful for progress reporting).
    volume_shape : tuple of int
        Full grid shape.
    core_slices : tuple of slices
        Slices that select the chunk's own output region in the full grid.
    extended_slices : tuple of slices
        Slices that select the with-halo input region from the full grid.
    core_in_extended : tuple of slices
        Slices that locate the core region *within* the extended array.
        Use these to strip the halo after processing.
    halo : tuple of int
        Halo width in voxels per axis.
    """

    chunk_id:          int
    volume_shape:      Tuple[int, ...]
    core_slices:       Tuple[slice, ...]
    extended_slices:   Tuple[slice, ...]
    core_in_extended:  Tuple[slice, ...]
    halo:              Tuple[int, ...]

    # ------------------------------------------------------------------
    def __repr__(self) -> str:
        core = ", ".join(f"{s.start}:{s.stop}" for s in self.core_slices)
        return f"ChunkDescriptor(id={self.chunk_id}, core=[{core}], halo={self.halo})"

    @property
    def core_shape(self) -> Tuple[int, ...]:
        return tuple(s.stop - s.start for s in self.core_slices)

    @property
    def extended_shape(self) -> Tuple[int, ...]:
        return tuple(s.stop - s.start for s in self.extended_slices)


# ---------------------------------------------------------------------------
# SpatialChunker
# ---------------------------------------------------------------------------

def default_chunk_shape(ndim: int) -> Tuple[int, ...]:
    return tuple(CHUNK_SHAPE_3D) if ndim == 3 else tuple(CHUNK_SHAPE_2D)


class SpatialChunker:
    """
    Enumerate 2-D or 3-D chunks with optional ghost-cell borders.

    Parameters
    ----------
    volume_shape : tuple of int
        Shape of the full grid.
    chunk_shape : tuple of int, optional
        Desired shape of each core chunk. The final chunk on each axis may be
        smaller. Defaults to the config chunk shape for the dimensionality.
    halo : int or tuple of int
        Ghost-cell voxels added on both faces of every chunk, per axis.
        Extended regions are clamped at the grid boundary, so algorithms see
        the true grid edge there.
    """

    def __init__(
        self,
        volume_shape: Sequence[int],
        chunk_shape:  Optional[Sequence[int]] = None,
        halo:         Union[int, Sequence[int]] = 0,
    ) -> None:
        ndim = len(volume_shape)
        if ndim not in (2, 3):
            raise ValueError(f"volume_shape must be 2-D or 3-D, got {ndim}-D")
        if chunk_shape is None:
            chunk_shape = default_chunk_shape(ndim)
        if len(chunk_shape) != ndim:
            raise ValueError("chunk_shape must match the grid dimensionality")
        if isinstance(halo, (int, np.integer)):
            halo = (int(halo),) * ndim
        if len(halo) != ndim or any(int(h) < 0 for h in halo):
            raise ValueError("halo must be non-negative per axis")

        self.volume_shape = tuple(int(v) for v in volume_shape)
        self.chunk_shape  = tuple(max(1, int(c)) for c in chunk_shape)
        self.halo         = tuple(int(h) for h in halo)

        self._starts = [list(range(0, n, c)) for n, c in zip(self.volume_shape, self.chunk_shape)]

    # ------------------------------------------------------------------
    @property
    def num_chunks(self) -> int:
        return math.prod(len(s) for s in self._starts)

    # ------------------------------------------------------------------
    def __iter__(self) -> Generator[ChunkDescriptor, None, None]:
        """Yield ChunkDescriptor objects for every chunk in C order."""
        for chunk_id, starts in enumerate(itertools.product(*self._starts)):
            core, extended, inner = [], [], []
            for start, n, c, h in zip(starts, self.volume_shape, self.chunk_shape, self.halo):
                stop = min(start + c, n)
                e0 = max(start - h, 0)
                e1 = min(stop + h, n)
                core.append(slice(start, stop))
                extended.append(slice(e0, e1))
                inner.append(slice(start - e0, start - e0 + (stop - start)))

            yield ChunkDescriptor(
                chunk_id         = chunk_id,
                volume_shape     = self.volume_shape,
                core_slices      = tuple(core),
                extended_slices  = tuple(extended),
                core_in_extended = tuple(inner),
                halo             = self.halo,
            )

    # ------------------------------------------------------------------
    def process(
        self,
        source:      np.ndarray,
        fn:          Callable[[np.ndarray, ChunkDescriptor], np.ndarray],
        out:         Optional[np.ndarray] = None,
        max_workers: Optional[int] = None,
        progress:    Optional[Callable[[int, str], None]] = None,
    ) -> np.ndarray:
        """
        Apply *fn* to every chunk, writing halo-stripped cores into *out*.

        Parameters
        ----------
        source : ndarray, shape == self.volume_shape
            Input snapshot. Chunks receive read-only views of it.
        fn : callable(extended_chunk, desc) -> processed_chunk
            Must return an array shaped like the *extended* input.
        out : ndarray, optional
            Output buffer (allocated as float64 when omitted). Must not alias
            *source*.
        max_workers : int, optional
            Thread count (config MAX_WORKERS when omitted).
        progress : optional callable(percent: int, message: str)
            Called after each chunk with a completion percentage.
        """
        if tuple(source.shape) != self.volume_shape:
            raise ValueError(f"source shape {source.shape} != chunker shape {self.volume_shape}")
        if out is None:
            out = np.empty(self.volume_shape, dtype=np.float64)
        elif np.shares_memory(out, source):
            raise ValueError("out must not alias source")

        snapshot = source.view()
        snapshot.setflags(write=False)

        def run(desc: ChunkDescriptor) -> Tuple[ChunkDescriptor, np.ndarray]:
            return desc, fn(snapshot[desc.extended_slices], desc)

        total = self.num_chunks
        workers = max(1, int(max_workers or MAX_WORKERS))
        done = 0
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(run, desc) for desc in self]
            for future in as_completed(futures):
                desc, result = future.result()
                out[desc.core_slices] = result[desc.core_in_extended]
                done += 1
                if progress:
                    progress(int(100 * done / total), f"Chunk {done}/{total}")
        return out


# ---------------------------------------------------------------------------
# Convenience: whole-grid or chunked execution
# ---------------------------------------------------------------------------

def should_chunk(shape: Sequence[int], min_voxels: Optional[int] = None) -> bool:
    threshold = PARALLEL_MIN_VOXELS if min_voxels is None else int(min_voxels)
    return math.prod(int(s) for s in shape) >= threshold


def apply_with_halo(
    values:      np.ndarray,
    fn:          Callable[[np.ndarray], np.ndarray],
    halo:        Union[int, Sequence[int]],
    chunk_shape: Optional[Sequence[int]] = None,
    min_voxels:  Optional[int] = None,
    progress:    Optional[Callable[[int, str], None]] = None,
) -> np.ndarray:
    """
    Run a shape-preserving neighbourhood function on a whole grid.

    Small grids call ``fn(values)`` directly. Grids with at least
    ``min_voxels`` voxels are split into halo chunks processed in parallel.
    ``fn`` must only read neighbours within ``halo`` voxels of each output
    voxel and treat the array edge as the grid edge.
    """
    if not should_chunk(values.shape, min_voxels):
        return np.asarray(fn(values), dtype=np.float64)

    chunker = SpatialChunker(values.shape, chunk_shape=chunk_shape, halo=halo)
    logger.debug("Chunked execution: %d chunks, halo=%s", chunker.num_chunks, chunker.halo)
    return chunker.process(values, lambda chunk, _desc: fn(chunk), progress=progress)


__all__ = [
    "ChunkDescriptor",
    "SpatialChunker",
    "default_chunk_shape",
    "should_chunk",
    "apply_with_halo",
]
