import numpy as np
import pytest

from core.errors import InvalidParameterError, InvalidRadiusError
from core.structuring import StructuringElement, resolve_radius


@pytest.mark.parametrize(
    "shape, radius, ndim, expected",
    [
        ("ball", 1, 2, 5),
        ("box", 1, 2, 9),
        ("ball", 1, 3, 7),
        ("box", 1, 3, 27),
        ("ball", 2, 2, 13),
        ("ball", 0, 3, 1),
    ],
)
def test_element_sizes(shape, radius, ndim, expected):
    element = StructuringElement.generate(shape, radius, ndim)
    assert len(element) == expected
    assert element.offsets.shape == (expected, ndim)


def test_zero_radius_is_identity():
    element = StructuringElement.generate("ball", 0, 2)
    assert element.is_identity
    np.testing.assert_array_equal(element.offsets, [[0, 0]])


def test_per_axis_radius():
    element = StructuringElement.generate("ball", (1, 0), 2)
    assert element.radius == (1, 0)
    assert sorted(map(tuple, element.offsets)) == [(-1, 0), (0, 0), (1, 0)]


def test_ball_footprint_is_cross_at_radius_one():
    footprint = StructuringElement.generate("ball", 1, 2).footprint()
    expected = np.array([[0, 1, 0], [1, 1, 1], [0, 1, 0]], dtype=bool)
    np.testing.assert_array_equal(footprint, expected)


def test_offsets_are_read_only():
    element = StructuringElement.generate("box", 1, 2)
    with pytest.raises(ValueError):
        element.offsets[0, 0] = 5


def test_negative_radius_rejected():
    with pytest.raises(InvalidRadiusError):
        StructuringElement.generate("ball", -1, 2)
    with pytest.raises(InvalidRadiusError):
        resolve_radius((1, -2), 2)


def test_bad_arity_and_shape_rejected():
    with pytest.raises(InvalidParameterError):
        resolve_radius((1, 1, 1), 2)
    with pytest.raises(InvalidParameterError):
        resolve_radius(1.5, 2)
    with pytest.raises(InvalidParameterError):
        StructuringElement.generate("diamond", 1, 2)
