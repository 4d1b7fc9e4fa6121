import numpy as np
import pytest

from core import VoxelGrid
from core.errors import InvalidParameterError
from core.progress import CancelFlagObserver, ProgressBus
from processors.diffusion import PeronaMalik, diffusion_step, max_stable_time_step


def _noisy(shape, seed=0):
    rng = np.random.default_rng(seed)
    return VoxelGrid(rng.normal(size=shape))


@pytest.mark.parametrize("conductance", [0.1, 1.0, 50.0])
def test_zero_iterations_is_identity(conductance):
    grid = _noisy((7, 8))
    result = PeronaMalik(0, conductance).apply(grid)
    np.testing.assert_array_equal(result.values, grid.values)


def test_constant_grid_is_fixed_point():
    grid = VoxelGrid.construct((5, 6, 7), fill=3.5)
    result = PeronaMalik(10, 1.0).apply(grid)
    np.testing.assert_allclose(result.values, 3.5)


def test_smoothing_reduces_variance_and_keeps_mean():
    grid = _noisy((32, 32), seed=4)
    result = PeronaMalik(10, 10.0).apply(grid).values
    assert result.var() < 0.5 * grid.values.var()
    assert result.mean() == pytest.approx(grid.values.mean(), abs=1e-9)


def test_strong_edge_is_preserved():
    values = np.zeros((10, 10))
    values[:, 5:] = 100.0
    result = PeronaMalik(20, 1.0).apply(VoxelGrid(values)).values
    np.testing.assert_allclose(result, values, atol=1e-9)


def test_single_step_is_pure():
    values = np.arange(12.0).reshape(3, 4)
    before = values.copy()
    diffusion_step(values, 1.0, 0.1)
    np.testing.assert_array_equal(values, before)


def test_time_step_bounds():
    assert max_stable_time_step(2) == 0.25
    assert max_stable_time_step(3) == pytest.approx(1.0 / 6.0)

    with pytest.raises(InvalidParameterError):
        PeronaMalik(1, 1.0, 0.3)
    with pytest.raises(InvalidParameterError):
        PeronaMalik(1, 1.0, 0.0)

    stage = PeronaMalik(1, 1.0, 0.25)
    stage.apply(VoxelGrid.construct((4, 4)))
    with pytest.raises(InvalidParameterError):
        stage.apply(VoxelGrid.construct((4, 4, 4)))


def test_default_time_step():
    assert PeronaMalik().resolve_time_step(2) == pytest.approx(0.125)
    assert PeronaMalik().resolve_time_step(3) == pytest.approx(1.0 / 12.0)


def test_parameter_validation():
    with pytest.raises(InvalidParameterError):
        PeronaMalik(-1)
    with pytest.raises(InvalidParameterError):
        PeronaMalik(2.5)
    with pytest.raises(InvalidParameterError):
        PeronaMalik(1, 0.0)
    with pytest.raises(InvalidParameterError):
        PeronaMalik(1, "k")


def test_cancellation_stops_iterations():
    events = []
    bus = ProgressBus().subscribe(events.append)
    bus.subscribe(CancelFlagObserver(lambda: len(events) >= 3))

    with pytest.raises(InterruptedError):
        PeronaMalik(100, 1.0).apply(_noisy((8, 8)), bus.stage_callback("0:PeronaMalik"))
    assert len(events) == 3
