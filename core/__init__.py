"""
Core module containing the voxel grid, stage base class and pipeline.
"""

from core.errors import (
    FilterError,
    OutOfBoundsError,
    ShapeMismatchError,
    InvalidRadiusError,
    InvalidInputError,
    DegenerateRangeError,
    InvalidCropError,
    UnknownOperationError,
    InvalidParameterError,
    StageExecutionError,
)
from core.base import Operation, VoxelGrid, FilterStage
from core.structuring import StructuringElement
from core.dto import StageDTO, PipelineDTO
from core.chunker import SpatialChunker, ChunkDescriptor, apply_with_halo
from core.progress import (
    ProgressEvent,
    ProgressObserver,
    ProgressBus,
    StageProgressMapper,
    CancelFlagObserver,
    LoggingProgressObserver,
    TerminalProgressObserver,
)
from core.pipeline import Pipeline, build_stage
from core.coordinates import index_to_physical, physical_to_index, shifted_origin

__all__ = [
    'FilterError', 'OutOfBoundsError', 'ShapeMismatchError', 'InvalidRadiusError',
    'InvalidInputError', 'DegenerateRangeError', 'InvalidCropError',
    'UnknownOperationError', 'InvalidParameterError', 'StageExecutionError',
    'Operation', 'VoxelGrid', 'FilterStage', 'StructuringElement',
    'StageDTO', 'PipelineDTO',
    'SpatialChunker', 'ChunkDescriptor', 'apply_with_halo',
    'ProgressEvent', 'ProgressObserver', 'ProgressBus', 'StageProgressMapper',
    'CancelFlagObserver', 'LoggingProgressObserver', 'TerminalProgressObserver',
    'Pipeline', 'build_stage',
    'index_to_physical', 'physical_to_index', 'shifted_origin',
]
