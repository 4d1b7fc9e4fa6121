"""
Headless CLI entry point for the voxel filter pipeline.

Loads a grid (``.npy`` array or synthetic phantom), runs an ordered list of
filter stages on it and optionally saves the result as ``.npy``.

Examples::

    python cli.py --phantom spheres --op GD 2 --op MaurerDistance --output out.npy
    python cli.py --config recipe.yaml --dry-run
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from typing import Any, List, Optional, Sequence

from config import LOG_FORMAT, LOG_LEVEL, PHANTOM_SIZE
from core import Pipeline, PipelineDTO, StageDTO, VoxelGrid
from core.progress import LoggingProgressObserver, ProgressBus, TerminalProgressObserver
from loaders import ArrayLoader, PhantomLoader, PHANTOM_KINDS

logger = logging.getLogger("cli")


def parse_value(token: str) -> Any:
    """
    Convert one ``--op`` argument: ints, floats, booleans, ``none``, and
    comma-separated per-axis tuples (``2,2,1``). Anything else stays a string.
    """
    if "," in token:
        return tuple(parse_value(t) for t in token.split(",") if t)
    lowered = token.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    if lowered == "none":
        return None
    for convert in (int, float):
        try:
            return convert(token)
        except ValueError:
            pass
    return token


def parse_op(tokens: Sequence[str]) -> StageDTO:
    """``["GD", "2", "shape=box"]`` -> StageDTO("GD", (2,), {"shape": "box"})."""
    name, *rest = tokens
    params: List[Any] = []
    options = {}
    for token in rest:
        if "=" in token:
            key, value = token.split("=", 1)
            options[key] = parse_value(value)
        else:
            params.append(parse_value(token))
    return StageDTO(operation=name, params=tuple(params), options=options)


def load_input(dto: PipelineDTO, callback=None) -> VoxelGrid:
    if dto.input_path:
        return ArrayLoader().load(dto.input_path, spacing=dto.spacing, callback=callback)
    return PhantomLoader().load(
        kind=dto.phantom,
        size=dto.phantom_size,
        ndim=dto.ndim,
        spacing=dto.spacing,
        callback=callback,
    )


def run_batch(dto: PipelineDTO, progress_bus: Optional[ProgressBus] = None) -> VoxelGrid:
    """
    Load the input, run the recipe and save the output if requested.

    Returns:
        The final VoxelGrid.
    """
    if progress_bus is None:
        progress_bus = ProgressBus().subscribe(TerminalProgressObserver())
        if logger.isEnabledFor(logging.DEBUG):
            progress_bus.subscribe(LoggingProgressObserver())

    pipeline = Pipeline.from_dto(dto)
    grid = load_input(dto, callback=progress_bus.stage_callback("load"))
    logger.info("Input grid: %r", grid)

    t_start = time.perf_counter()
    result = pipeline.execute(grid, progress_bus=progress_bus)
    elapsed = time.perf_counter() - t_start

    print(f"\nPipeline complete in {elapsed:.2f}s: {result!r}")
    if dto.output_path:
        saved = ArrayLoader.save(result, dto.output_path)
        print(f"Saved output: {saved}")
    return result


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python cli.py",
        description="Headless voxel grid filter pipeline",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--config",
        metavar="FILE",
        help="Path to YAML or JSON recipe. Overrides other flags.",
    )
    parser.add_argument(
        "--op",
        metavar="ARG",
        nargs="+",
        action="append",
        default=None,
        help="Stage: NAME [PARAM ...] [key=value ...]. Repeat for each stage, e.g. --op GD 2 --op ME 1.",
    )
    parser.add_argument("--input", metavar="PATH", default=None, help="Input .npy array. Uses a phantom when omitted.")
    parser.add_argument("--phantom", metavar="KIND", default="spheres", choices=PHANTOM_KINDS, help="Synthetic phantom.")
    parser.add_argument("--phantom-size", metavar="N", type=int, default=PHANTOM_SIZE, help="Phantom extent per axis.")
    parser.add_argument("--ndim", metavar="D", type=int, default=3, choices=(2, 3), help="Phantom dimensionality.")
    parser.add_argument("--spacing", metavar="S", type=float, nargs="+", default=None, help="Voxel spacing per axis.")
    parser.add_argument("--output", metavar="PATH", default=None, help="Output .npy path.")
    parser.add_argument("--log-level", metavar="LEVEL", default=LOG_LEVEL, help="DEBUG | INFO | WARNING | ERROR.")
    parser.add_argument("--dry-run", action="store_true", help="Print resolved recipe without running.")
    return parser


def _resolve_dto(args: argparse.Namespace, parser: argparse.ArgumentParser) -> PipelineDTO:
    """Resolve DTO from config file or inline CLI flags."""
    if args.config:
        return PipelineDTO.from_file(args.config)

    if not args.op:
        parser.error("Provide --config FILE or at least one --op NAME [ARGS...]")

    return PipelineDTO(
        stages=tuple(parse_op(tokens) for tokens in args.op),
        input_path=args.input,
        phantom=args.phantom,
        phantom_size=args.phantom_size,
        ndim=args.ndim,
        spacing=tuple(args.spacing) if args.spacing else None,
        output_path=args.output,
        log_level=str(args.log_level).upper(),
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    dto = _resolve_dto(args, parser)

    logging.basicConfig(level=getattr(logging, dto.log_level, logging.INFO), format=LOG_FORMAT)

    if args.dry_run:
        import json

        print("Resolved PipelineDTO:")
        print(json.dumps(dto.to_dict(), indent=2, default=list))
        return 0

    print("=" * 60)
    print("Voxel Filter Pipeline - Headless Batch Processor")
    print("=" * 60)

    try:
        run_batch(dto)
    except (KeyboardInterrupt, InterruptedError):
        print("\nAborted by user.")
        return 1
    except Exception as exc:
        import traceback

        print(f"\nPipeline failed: {type(exc).__name__}: {exc}")
        traceback.print_exc()
        return 2

    return 0


if __name__ == "__main__":
    sys.exit(main())
