"""
Filter stages for voxel grids.

Modules:
- morphology: Grayscale and binary morphology (GD, GE, GO, GC, MD, ME, MO, MC)
- distance: Signed exact and propagated distance transforms (MaurerDistance, D)
- diffusion: Perona-Malik anisotropic diffusion
- derivatives: Derivative-of-Gaussian stages and Laplacian sharpening
- geometry: Symmetric pad / crop (PadImage)
- intensity: Normalize, TruncateImageIntensity
- components: FillHoles, GetLargestComponent
- utils: Shared numerical helpers
"""

from typing import Dict, Type

from core.base import FilterStage, Operation
from processors.morphology import (
    GrayscaleDilate,
    GrayscaleErode,
    GrayscaleOpen,
    GrayscaleClose,
    BinaryDilate,
    BinaryErode,
    BinaryOpen,
    BinaryClose,
)
from processors.distance import MaurerDistance, DanielssonDistance
from processors.diffusion import PeronaMalik
from processors.derivatives import Grad, Laplacian, Sharpen
from processors.geometry import PadImage
from processors.intensity import Normalize, TruncateImageIntensity
from processors.components import FillHoles, GetLargestComponent


STAGE_CLASSES = (
    GrayscaleDilate, GrayscaleErode, GrayscaleOpen, GrayscaleClose,
    BinaryDilate, BinaryErode, BinaryOpen, BinaryClose,
    PadImage,
    MaurerDistance, DanielssonDistance,
    PeronaMalik,
    Grad, Laplacian, Sharpen,
    FillHoles, GetLargestComponent,
    Normalize, TruncateImageIntensity,
)


def _build_stage_table() -> Dict[Operation, Type[FilterStage]]:
    table: Dict[Operation, Type[FilterStage]] = {}
    for cls in STAGE_CLASSES:
        if cls.operation in table:
            raise RuntimeError(
                f"Operation {cls.operation.value} is bound to both "
                f"{table[cls.operation].__name__} and {cls.__name__}"
            )
        table[cls.operation] = cls
    missing = [op.value for op in Operation if op not in table]
    if missing:
        raise RuntimeError(f"No stage class for operation(s): {', '.join(missing)}")
    return table


STAGES = _build_stage_table()

__all__ = [
    'STAGES', 'STAGE_CLASSES',
    'GrayscaleDilate', 'GrayscaleErode', 'GrayscaleOpen', 'GrayscaleClose',
    'BinaryDilate', 'BinaryErode', 'BinaryOpen', 'BinaryClose',
    'PadImage',
    'MaurerDistance', 'DanielssonDistance',
    'PeronaMalik',
    'Grad', 'Laplacian', 'Sharpen',
    'FillHoles', 'GetLargestComponent',
    'Normalize', 'TruncateImageIntensity',
]
