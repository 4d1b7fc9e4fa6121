"""
Data Transfer Objects (DTOs) for filter pipeline recipes.

Design rules
------------
* All DTOs are immutable (frozen=True).  A recipe is data only; the pipeline
  resolves operation names and validates parameters when it is built.
* ``from_dict`` / ``from_yaml`` / ``from_json`` factory methods keep
  serialisation in one place.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from config import LOG_LEVEL, PHANTOM_SIZE
from core.errors import InvalidParameterError


# ---------------------------------------------------------------------------
# Stage DTO
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StageDTO:
    """
    One recipe entry: an operation name, positional params and keyword options.

    Accepted dictionary forms::

        {"operation": "GD", "params": [2], "options": {"shape": "box"}}
        "Sharpen"
        ["PadImage", 4]
    """

    operation:  str
    params:     Tuple[Any, ...]   = ()
    options:    Dict[str, Any]    = field(default_factory=dict)

    @staticmethod
    def from_dict(d: Any) -> "StageDTO":
        if isinstance(d, str):
            return StageDTO(operation=d)
        if isinstance(d, (list, tuple)):
            if not d:
                raise InvalidParameterError("Stage entry must not be empty")
            return StageDTO(operation=str(d[0]), params=_freeze(tuple(d[1:])))
        if not isinstance(d, dict):
            raise InvalidParameterError(f"Stage entry must be a mapping, string or list, got {d!r}")
        if "operation" not in d:
            raise InvalidParameterError(f"Stage entry is missing 'operation': {d!r}")

        params = d.get("params", ())
        if not isinstance(params, (list, tuple)):
            params = (params,)
        return StageDTO(
            operation = str(d["operation"]),
            params    = _freeze(tuple(params)),
            options   = dict(d.get("options") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "params":    [list(p) if isinstance(p, tuple) else p for p in self.params],
            "options":   dict(self.options),
        }


def _freeze(params: Tuple[Any, ...]) -> Tuple[Any, ...]:
    # Per-axis radii / amounts arrive as lists from YAML and JSON
    return tuple(tuple(p) if isinstance(p, list) else p for p in params)


# ---------------------------------------------------------------------------
# Pipeline DTO
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PipelineDTO:
    """
    Immutable configuration for a headless pipeline run.

    Used by the CLI and by unit tests.
    """

    # Recipe
    stages:        Tuple[StageDTO, ...]         = ()

    # Input: a .npy path, or a synthetic phantom when input_path is empty
    input_path:    Optional[str]                = None
    phantom:       str                          = "spheres"   # "spheres" | "square"
    phantom_size:  int                          = PHANTOM_SIZE
    ndim:          int                          = 3
    spacing:       Optional[Tuple[float, ...]]  = None

    # Output
    output_path:   Optional[str]                = None
    log_level:     str                          = LOG_LEVEL

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "PipelineDTO":
        spacing_raw = d.get("spacing")
        return PipelineDTO(
            stages        = tuple(StageDTO.from_dict(s) for s in d.get("stages") or ()),
            input_path    = d.get("input_path"),
            phantom       = str(d.get("phantom",      "spheres")),
            phantom_size  = int(d.get("phantom_size", PHANTOM_SIZE)),
            ndim          = int(d.get("ndim",         3)),
            spacing       = tuple(float(s) for s in spacing_raw) if spacing_raw else None,
            output_path   = d.get("output_path"),
            log_level     = str(d.get("log_level",    LOG_LEVEL)).upper(),
        )

    @staticmethod
    def from_yaml(path: str) -> "PipelineDTO":
        """Load a recipe from a YAML file."""
        import yaml
        with open(path, encoding="utf-8") as fh:
            d = yaml.safe_load(fh)
        return PipelineDTO.from_dict(d or {})

    @staticmethod
    def from_json(path: str) -> "PipelineDTO":
        """Load a recipe from a JSON file."""
        import json
        with open(path, encoding="utf-8") as fh:
            d = json.load(fh)
        return PipelineDTO.from_dict(d)

    @staticmethod
    def from_file(path: str) -> "PipelineDTO":
        """Dispatch on extension: .json is JSON, anything else is YAML."""
        if str(path).lower().endswith(".json"):
            return PipelineDTO.from_json(path)
        return PipelineDTO.from_yaml(path)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stages":        [s.to_dict() for s in self.stages],
            "input_path":    self.input_path,
            "phantom":       self.phantom,
            "phantom_size":  self.phantom_size,
            "ndim":          self.ndim,
            "spacing":       list(self.spacing) if self.spacing else None,
            "output_path":   self.output_path,
            "log_level":     self.log_level,
        }
