import numpy as np
import pytest

from core import Pipeline, VoxelGrid
from core.errors import InvalidParameterError, InvalidRadiusError
from core.structuring import StructuringElement
from processors.morphology import (
    BinaryClose,
    BinaryDilate,
    BinaryErode,
    BinaryOpen,
    GrayscaleClose,
    GrayscaleDilate,
    GrayscaleErode,
    GrayscaleOpen,
    grayscale_dilate,
    grayscale_erode,
)

ALL_MORPHOLOGY = (
    GrayscaleDilate, GrayscaleErode, GrayscaleOpen, GrayscaleClose,
    BinaryDilate, BinaryErode, BinaryOpen, BinaryClose,
)


def _random_grid(shape, seed=0, binary=False) -> VoxelGrid:
    rng = np.random.default_rng(seed)
    if binary:
        return VoxelGrid((rng.random(shape) > 0.5).astype(np.float64))
    return VoxelGrid(rng.normal(size=shape))


@pytest.mark.parametrize("stage_cls", ALL_MORPHOLOGY)
@pytest.mark.parametrize("shape", [(9, 11), (5, 6, 7)])
def test_zero_radius_is_identity(stage_cls, shape):
    grid = _random_grid(shape, binary=stage_cls.__name__.startswith("Binary"))
    result = stage_cls(0).apply(grid)
    np.testing.assert_array_equal(result.values, grid.values)
    assert result is not grid


def test_single_voxel_dilate_then_erode():
    values = np.zeros((4, 4))
    values[1, 1] = 1.0
    grid = VoxelGrid(values)

    dilated = Pipeline().add("MD", 1).execute(grid)
    expected = np.zeros((4, 4))
    expected[1, 1] = expected[0, 1] = expected[2, 1] = expected[1, 0] = expected[1, 2] = 1.0
    np.testing.assert_array_equal(dilated.values, expected)

    eroded = Pipeline().add("ME", 1).execute(dilated)
    np.testing.assert_array_equal(eroded.values, values)


@pytest.mark.parametrize("seed", range(4))
@pytest.mark.parametrize("radius", [1, 2])
def test_binary_open_close_inclusion(seed, radius):
    grid = _random_grid((16, 16), seed=seed, binary=True)
    opened = BinaryOpen(radius).apply(grid).values
    closed = BinaryClose(radius).apply(grid).values
    assert np.all(opened <= grid.values)
    assert np.all(closed >= grid.values)


def test_binary_open_close_inclusion_3d():
    grid = _random_grid((8, 9, 10), seed=7, binary=True)
    assert np.all(BinaryOpen(1).apply(grid).values <= grid.values)
    assert np.all(BinaryClose(1).apply(grid).values >= grid.values)


@pytest.mark.parametrize("shape_name", ["ball", "box"])
@pytest.mark.parametrize("radius", [1, 2, (2, 1)])
def test_grayscale_duality(shape_name, radius):
    grid = _random_grid((12, 13), seed=3)
    eroded = GrayscaleErode(radius, shape_name).apply(grid).values
    dual = -GrayscaleDilate(radius, shape_name).apply(grid.map(np.negative)).values
    np.testing.assert_allclose(eroded, dual)


def test_grayscale_open_close_bounds():
    grid = _random_grid((10, 10), seed=11)
    assert np.all(GrayscaleOpen(1).apply(grid).values <= grid.values + 1e-12)
    assert np.all(GrayscaleClose(1).apply(grid).values >= grid.values - 1e-12)


def test_grayscale_dilate_ignores_outside():
    values = np.full((3, 3), -5.0)
    values[0, 0] = 2.0
    result = GrayscaleDilate(1, "box").apply(VoxelGrid(values)).values
    assert result[0, 0] == 2.0
    assert result[1, 1] == 2.0
    assert result[2, 2] == -5.0


def test_per_axis_box_radius():
    values = np.zeros((5, 5))
    values[2, 2] = 1.0
    result = GrayscaleDilate((1, 0), "box").apply(VoxelGrid(values)).values
    expected = np.zeros((5, 5))
    expected[1:4, 2] = 1.0
    np.testing.assert_array_equal(result, expected)


def test_binary_foreground_value():
    values = np.zeros((5, 5))
    values[2, 2] = 2.0
    values[0, 0] = 5.0
    dilated = BinaryDilate(1, foreground=2.0).apply(VoxelGrid(values)).values
    assert dilated[0, 0] == 5.0
    assert dilated[1, 2] == dilated[2, 1] == dilated[3, 2] == dilated[2, 3] == 2.0
    assert dilated[1, 1] == 0.0

    eroded = BinaryErode(1, foreground=2.0).apply(VoxelGrid(dilated)).values
    assert eroded[2, 2] == 2.0
    assert eroded[1, 2] == 0.0
    assert eroded[0, 0] == 5.0


def test_binary_erode_keeps_border_foreground():
    grid = VoxelGrid(np.ones((4, 4)))
    np.testing.assert_array_equal(BinaryErode(1).apply(grid).values, np.ones((4, 4)))


def test_parameter_validation():
    with pytest.raises(InvalidRadiusError):
        GrayscaleDilate(-1)
    with pytest.raises(InvalidParameterError):
        GrayscaleDilate(1, "star")
    with pytest.raises(InvalidParameterError):
        BinaryDilate(1, foreground=0.0)
    with pytest.raises(InvalidParameterError):
        GrayscaleDilate((1, 1, 1)).apply(VoxelGrid(np.zeros((3, 3))))


def test_output_metadata_and_input_untouched():
    grid = _random_grid((6, 6), seed=2)
    before = grid.values.copy()
    result = GrayscaleDilate(1).apply(grid)
    np.testing.assert_array_equal(grid.values, before)
    assert result.metadata["Type"] == "Filtered - GD"
    assert result.same_geometry(grid)


def test_binary_warns_when_foreground_value_absent(caplog):
    values = np.zeros((6, 6))
    values[2:4, 2:4] = 5.0
    with caplog.at_level("WARNING", logger="processors.morphology"):
        result = BinaryDilate(1).apply(VoxelGrid(values)).values
    np.testing.assert_array_equal(result, values)
    assert "no voxel equals foreground=1.0" in caplog.text


def test_binary_empty_grid_does_not_warn(caplog):
    with caplog.at_level("WARNING", logger="processors.morphology"):
        BinaryErode(1).apply(VoxelGrid(np.zeros((4, 4))))
    assert caplog.text == ""


def _brute_force_extreme(values, element, reduce):
    out = np.empty_like(values)
    for index in np.ndindex(values.shape):
        picks = []
        for offset in element.offsets:
            n = tuple(int(i + o) for i, o in zip(index, offset))
            if all(0 <= c < s for c, s in zip(n, values.shape)):
                picks.append(values[n])
        out[index] = reduce(picks)
    return out


def test_grayscale_matches_brute_force_anisotropic_ball():
    values = np.random.default_rng(7).normal(size=(13, 17, 9))
    element = StructuringElement.generate("ball", (2, 1, 3), 3)
    np.testing.assert_array_equal(grayscale_dilate(values, element), _brute_force_extreme(values, element, max))
    np.testing.assert_array_equal(grayscale_erode(values, element), _brute_force_extreme(values, element, min))
