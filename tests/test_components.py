import numpy as np
import pytest

from core import VoxelGrid
from core.errors import InvalidParameterError
from processors.components import FillHoles, GetLargestComponent


def test_fill_holes_fills_enclosed_background():
    values = np.zeros((7, 7))
    values[1:6, 1:6] = 3.0
    values[3, 3] = 0.0
    result = FillHoles().apply(VoxelGrid(values)).values
    expected = np.zeros((7, 7))
    expected[1:6, 1:6] = 1.0
    np.testing.assert_array_equal(result, expected)


def test_fill_holes_leaves_open_background():
    values = np.zeros((5, 5))
    values[1:4, 1:4] = 1.0
    values[2, 2] = 0.0
    values[2, 3] = 0.0
    values[2, 4] = 0.0
    result = FillHoles().apply(VoxelGrid(values)).values
    assert result[2, 2] == 0.0


def test_fill_holes_3d():
    values = np.ones((5, 5, 5))
    values[2, 2, 2] = 0.0
    result = FillHoles().apply(VoxelGrid(values)).values
    np.testing.assert_array_equal(result, np.ones((5, 5, 5)))


def test_largest_component_keeps_biggest():
    values = np.zeros((8, 8))
    values[0:2, 0:2] = 1.0
    values[4:7, 4:7] = 2.0
    result = GetLargestComponent().apply(VoxelGrid(values)).values
    expected = np.zeros((8, 8))
    expected[4:7, 4:7] = 1.0
    np.testing.assert_array_equal(result, expected)


def test_largest_component_tie_keeps_first():
    values = np.zeros((6, 6))
    values[0:2, 4:6] = 1.0
    values[4:6, 0:2] = 1.0
    result = GetLargestComponent().apply(VoxelGrid(values)).values
    expected = np.zeros((6, 6))
    expected[0:2, 4:6] = 1.0
    np.testing.assert_array_equal(result, expected)


def test_largest_component_connectivity():
    values = np.zeros((6, 6))
    values[0, 0] = values[1, 1] = values[2, 2] = 1.0
    values[5, 4] = values[5, 5] = 1.0

    face = GetLargestComponent(1).apply(VoxelGrid(values)).values
    assert face.sum() == 2.0
    assert face[5, 4] == face[5, 5] == 1.0

    full = GetLargestComponent(2).apply(VoxelGrid(values)).values
    assert full.sum() == 3.0
    assert full[0, 0] == full[1, 1] == full[2, 2] == 1.0


def test_largest_component_empty_stays_empty():
    grid = VoxelGrid(np.zeros((4, 4)))
    np.testing.assert_array_equal(GetLargestComponent().apply(grid).values, np.zeros((4, 4)))


def test_connectivity_validation():
    with pytest.raises(InvalidParameterError):
        FillHoles(0)
    with pytest.raises(InvalidParameterError):
        GetLargestComponent(4)
    with pytest.raises(InvalidParameterError):
        GetLargestComponent(3).apply(VoxelGrid(np.ones((3, 3))))
