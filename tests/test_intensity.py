import numpy as np
import pytest

from core import VoxelGrid
from core.errors import DegenerateRangeError, InvalidParameterError
from processors.intensity import Normalize, TruncateImageIntensity


def test_normalize_maps_to_unit_range():
    grid = VoxelGrid(np.array([[-2.0, 0.0], [2.0, 6.0]]))
    result = Normalize().apply(grid).values
    np.testing.assert_allclose(result, [[0.0, 0.25], [0.5, 1.0]])


def test_normalize_constant_returns_zero_field(caplog):
    grid = VoxelGrid.construct((3, 3), fill=4.0)
    with caplog.at_level("WARNING"):
        result = Normalize().apply(grid).values
    np.testing.assert_array_equal(result, np.zeros((3, 3)))
    assert "Degenerate" in caplog.text


def test_normalize_constant_can_raise():
    grid = VoxelGrid.construct((3, 3), fill=4.0)
    with pytest.raises(DegenerateRangeError):
        Normalize("raise").apply(grid)


def test_normalize_policy_validation():
    with pytest.raises(InvalidParameterError):
        Normalize("clip")


def test_truncate_clips_to_quantiles():
    grid = VoxelGrid(np.arange(101.0).reshape(1, 101))
    result = TruncateImageIntensity(0.1, 0.9).apply(grid).values
    assert result.min() == pytest.approx(10.0)
    assert result.max() == pytest.approx(90.0)
    np.testing.assert_allclose(result[0, 10:91], np.arange(10.0, 91.0))


def test_truncate_full_range_is_identity():
    rng = np.random.default_rng(1)
    grid = VoxelGrid(rng.normal(size=(5, 5)))
    result = TruncateImageIntensity(0.0, 1.0).apply(grid).values
    np.testing.assert_array_equal(result, grid.values)


@pytest.mark.parametrize("lower, upper", [(0.9, 0.1), (0.5, 0.5), (-0.1, 0.5), (0.2, 1.5)])
def test_truncate_quantile_validation(lower, upper):
    with pytest.raises(InvalidParameterError):
        TruncateImageIntensity(lower, upper)


def test_normalize_maps_infinities_to_range_ends():
    values = np.array([[-np.inf, 0.0], [4.0, np.inf]])
    result = Normalize().apply(VoxelGrid(values)).values
    np.testing.assert_array_equal(result, [[0.0, 0.0], [1.0, 1.0]])
