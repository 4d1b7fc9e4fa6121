"""
Ordered filter pipeline shared by the CLI and library callers.

A pipeline is an append-only list of configured stages. ``execute`` runs them
in order on a grid, each stage reading the previous stage's output, and
stops at the first failure.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Type, Union

from core.base import FilterStage, Operation, VoxelGrid
from core.dto import PipelineDTO, StageDTO
from core.errors import InvalidInputError, InvalidParameterError, StageExecutionError
from core.progress import ProgressBus, StageProgressMapper

logger = logging.getLogger(__name__)


def stage_table() -> Dict[Operation, Type[FilterStage]]:
    """Operation -> stage class. Importing ``processors`` checks it is exhaustive."""
    from processors import STAGES

    return STAGES


def build_stage(name: Union[str, Operation], *params: Any, **kwargs: Any) -> FilterStage:
    """
    Build a configured stage from an operation name and its parameters.

    Raises:
        UnknownOperationError: If ``name`` is not a known operation.
        InvalidParameterError: On wrong arity, type or range.
    """
    op = Operation.parse(name)
    cls = stage_table()[op]
    try:
        return cls(*params, **kwargs)
    except TypeError as exc:
        raise InvalidParameterError(f"{op.value}: {exc}") from exc


class Pipeline:
    """
    Append-only sequence of filter stages.

    Example::

        result = Pipeline().add("GD", 2).add("ME", 1).execute(grid)
    """

    def __init__(self, stages: Iterable[FilterStage] = ()) -> None:
        self._stages: List[FilterStage] = []
        self._locked = False
        for stage in stages:
            self.append(stage)

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def append(self, stage: FilterStage) -> "Pipeline":
        if self._locked:
            raise RuntimeError("Pipeline is locked once execution has started; build a new pipeline")
        if not isinstance(stage, FilterStage):
            raise InvalidParameterError(f"Expected a FilterStage, got {type(stage).__name__}")
        self._stages.append(stage)
        return self

    def add(self, name: Union[str, Operation], *params: Any, **kwargs: Any) -> "Pipeline":
        return self.append(build_stage(name, *params, **kwargs))

    @classmethod
    def from_dto(cls, dto: Union[PipelineDTO, Sequence[StageDTO]]) -> "Pipeline":
        """Build from a recipe (a PipelineDTO or a sequence of StageDTO)."""
        entries = dto.stages if isinstance(dto, PipelineDTO) else dto
        pipeline = cls()
        for entry in entries:
            pipeline.add(entry.operation, *entry.params, **entry.options)
        return pipeline

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def stages(self) -> Tuple[FilterStage, ...]:
        return tuple(self._stages)

    @property
    def locked(self) -> bool:
        return self._locked

    def __len__(self) -> int:
        return len(self._stages)

    def output_extents(self, extents: Sequence[int]) -> Tuple[int, ...]:
        """Fold every stage's extent function over ``extents``."""
        current = tuple(int(e) for e in extents)
        for stage in self._stages:
            current = stage.output_extents(current)
        return current

    def describe(self) -> List[Tuple[str, Dict[str, Any]]]:
        return [(stage.name, stage.params()) for stage in self._stages]

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute(self, grid: VoxelGrid, progress_bus: Optional[ProgressBus] = None) -> VoxelGrid:
        """
        Run every stage in order and return the final grid.

        The input grid is never modified. An empty pipeline returns a copy.

        Raises:
            StageExecutionError: The first failing stage, with its index and
                operation; no partial result is returned.
            InterruptedError: A progress observer cancelled the run.
        """
        self._locked = True
        if not isinstance(grid, VoxelGrid):
            raise InvalidInputError(f"Expected a VoxelGrid, got {type(grid).__name__}")

        keys = [f"{i}:{stage.name}" for i, stage in enumerate(self._stages)]
        mapper = StageProgressMapper(keys)
        report = progress_bus.pipeline_callback() if progress_bus else None
        total = len(self._stages)

        current = grid.clone()
        for index, (key, stage) in enumerate(zip(keys, self._stages)):
            logger.info("Stage %d/%d: %s %s", index + 1, total, stage.name, stage.params())
            if report:
                report(mapper.map(key, 0), f"Running {key}")
            callback = progress_bus.stage_callback(key) if progress_bus else None

            t0 = time.perf_counter()
            try:
                current = stage.apply(current, callback)
            except InterruptedError:
                logger.warning("Pipeline cancelled during stage %s", key)
                raise
            except Exception as exc:
                logger.error("Stage %s failed: %s", key, exc)
                raise StageExecutionError(index, stage.name, exc) from exc
            logger.debug("Stage %s finished in %.3fs, extents %s", key, time.perf_counter() - t0, current.extents)

        if report:
            report(100, f"Pipeline complete ({total} stage{'s' if total != 1 else ''})")
        return current


__all__ = ["stage_table", "build_stage", "Pipeline"]
