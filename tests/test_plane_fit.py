import numpy as np
import pytest

from robocal.messages import Point, PointStamped
from robocal.plane_fit import get_centroid, get_matrix, get_plane


def _stamped(x, y, z):
    return PointStamped(point=Point(x, y, z))


def test_get_matrix_columns():
    m = get_matrix([_stamped(1, 2, 3), _stamped(4, 5, 6)])
    assert m.shape == (3, 2)
    assert np.allclose(m[:, 0], [1, 2, 3])
    assert np.allclose(m[:, 1], [4, 5, 6])


def test_get_matrix_empty():
    assert get_matrix([]).shape == (3, 0)


def test_centroid():
    m = np.array([[0.0, 2.0, 4.0], [1.0, 1.0, 1.0], [-3.0, 0.0, 3.0]])
    assert np.allclose(get_centroid(m), [2.0, 1.0, 0.0])


def test_plane_through_points():
    rng = np.random.default_rng(3)
    xy = rng.uniform(-1, 1, size=(2, 20))
    z = 0.5 * xy[0] - 0.2 * xy[1] + 1.5
    m = np.vstack([xy, z])
    normal, d = get_plane(m)
    assert np.linalg.norm(normal) == pytest.approx(1.0)
    assert d >= 0
    assert np.allclose(normal @ m + d, 0.0, atol=1e-9)


def test_plane_d_positive_for_offset_plane():
    m = np.array([[0.0, 1.0, 0.0, 1.0], [0.0, 0.0, 1.0, 1.0], [2.0, 2.0, 2.0, 2.0]])
    normal, d = get_plane(m)
    assert d == pytest.approx(2.0)
    assert np.allclose(normal, [0.0, 0.0, -1.0])


def test_plane_does_not_modify_input():
    m = np.array([[0.0, 1.0, 0.0], [0.0, 0.0, 1.0], [1.0, 1.0, 1.0]])
    copy = m.copy()
    get_plane(m)
    assert np.array_equal(m, copy)