import numpy as np
import pytest

from config import PHANTOM_FOREGROUND
from core.errors import InvalidParameterError
from loaders import ArrayLoader, PhantomLoader


def test_square_phantom_2d():
    grid = PhantomLoader().load("square", size=16, ndim=2)
    assert grid.extents == (16, 16)
    assert np.count_nonzero(grid.values) == 8 * 8
    assert grid.values[8, 8] == PHANTOM_FOREGROUND
    assert grid.metadata["Phantom"] == "square"


def test_sphere_phantom_is_deterministic():
    a = PhantomLoader(seed=3).load("spheres", size=24, ndim=3)
    b = PhantomLoader(seed=3).load("spheres", size=24, ndim=3)
    assert a.extents == (24, 24, 24)
    np.testing.assert_array_equal(a.values, b.values)
    assert 0 < a.metadata["ForegroundRatio"] < 1


def test_phantom_spacing_and_progress():
    events = []
    grid = PhantomLoader().load("spheres", size=8, ndim=2, spacing=(0.5, 0.25), callback=lambda p, m: events.append(p))
    assert grid.spacing == (0.5, 0.25)
    assert events[0] == 0
    assert events[-1] == 100


def test_phantom_validation():
    with pytest.raises(InvalidParameterError):
        PhantomLoader().load("cylinder")
    with pytest.raises(InvalidParameterError):
        PhantomLoader().load("square", ndim=4)
    with pytest.raises(InvalidParameterError):
        PhantomLoader().load("square", size=2)


def test_array_round_trip(tmp_path):
    grid = PhantomLoader().load("square", size=8, ndim=3)
    saved = ArrayLoader.save(grid, str(tmp_path / "sub" / "grid"))
    assert saved.endswith(".npy")

    loaded = ArrayLoader().load(saved, spacing=(1.0, 2.0, 3.0))
    np.testing.assert_array_equal(loaded.values, grid.values)
    assert loaded.spacing == (1.0, 2.0, 3.0)
    assert loaded.metadata["Type"] == "Array"


def test_array_loader_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        ArrayLoader().load(str(tmp_path / "missing.npy"))


def test_array_loader_rejects_1d(tmp_path):
    path = tmp_path / "line.npy"
    np.save(path, np.arange(5.0))
    with pytest.raises(InvalidParameterError):
        ArrayLoader().load(str(path))
