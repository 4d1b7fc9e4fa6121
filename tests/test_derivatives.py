import numpy as np
import pytest

from core import VoxelGrid
from core.errors import InvalidParameterError
from processors.derivatives import GaussianDerivativeStage, Grad, Laplacian, Sharpen


def test_gradient_of_constant_is_zero():
    grid = VoxelGrid.construct((6, 7, 8), fill=42.0)
    result = Grad(1.0).apply(grid).values
    np.testing.assert_allclose(result, 0.0, atol=1e-9)


def test_gradient_of_ramp_uses_physical_units():
    xx = np.tile(np.arange(64, dtype=np.float64), (20, 1))
    # Values are the physical x coordinate, so the slope is 1 per unit
    grid = VoxelGrid(xx * 2.0, spacing=(1.0, 2.0))
    result = Grad(4.0).apply(grid).values
    np.testing.assert_allclose(result[:, 10:54], 1.0, rtol=1e-2)


def test_laplacian_of_parabola():
    x = np.arange(64, dtype=np.float64) - 32.0
    grid = VoxelGrid(np.tile(x ** 2, (16, 1)))
    result = Laplacian(2.0).apply(grid).values
    np.testing.assert_allclose(result[:, 28:37], 2.0, rtol=3e-2)


def test_laplacian_is_negative_at_bright_blob():
    yy, xx = np.indices((21, 21))
    blob = np.exp(-((yy - 10) ** 2 + (xx - 10) ** 2) / 8.0)
    result = Laplacian(1.0).apply(VoxelGrid(blob)).values
    assert result[10, 10] < 0
    assert result[10, 10] == result.min()


def test_normalize_option():
    rng = np.random.default_rng(0)
    grid = VoxelGrid(rng.normal(size=(12, 12)))
    result = Grad(1.0, normalize=True).apply(grid).values
    assert result.min() == pytest.approx(0.0)
    assert result.max() == pytest.approx(1.0)


def test_sigma_validation():
    with pytest.raises(InvalidParameterError):
        Grad(0.0)
    with pytest.raises(InvalidParameterError):
        Laplacian(-1.0)
    with pytest.raises(InvalidParameterError):
        Grad(1.0, normalize="yes")


def test_sharpen_keeps_intensity_range():
    rng = np.random.default_rng(5)
    grid = VoxelGrid(rng.uniform(10.0, 20.0, size=(9, 9)))
    result = Sharpen().apply(grid).values
    assert result.min() == pytest.approx(grid.values.min())
    assert result.max() == pytest.approx(grid.values.max())


def test_sharpen_constant_is_identity():
    grid = VoxelGrid.construct((4, 4), fill=7.0)
    np.testing.assert_array_equal(Sharpen().apply(grid).values, grid.values)


def test_derivative_base_is_abstract():
    with pytest.raises(TypeError):
        GaussianDerivativeStage(1.0)
