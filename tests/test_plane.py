import math

import numpy as np
import pytest

from bommie.plane import PlaneModel, PlaneSegmentation


def _wall(x=2.0):
    ys, zs = np.meshgrid(np.linspace(-1.0, 1.0, 20), np.linspace(1.0, 3.0, 20))
    return np.column_stack([np.full(ys.size, x), ys.ravel(), zs.ravel()])


def _floor():
    xs, zs = np.meshgrid(np.linspace(-1.0, 1.0, 20), np.linspace(1.0, 3.0, 20))
    return np.column_stack([xs.ravel(), np.zeros(xs.size), zs.ravel()])


def _outliers(count=60):
    rng = np.random.default_rng(7)
    return rng.uniform([-3.0, -1.0, 1.0], [-1.0, 1.0, 3.0], size=(count, 3))


def test_distances_of_unit_plane():
    model = PlaneModel(1.0, 0.0, 0.0, -1.0)
    np.testing.assert_allclose(model.distances([[3.0, 0.0, 0.0], [1.0, 5.0, 5.0]]), [2.0, 0.0])


def test_distances_invariant_to_scaling_of_coefficients():
    pts = _outliers(10)
    a = PlaneModel(1.0, 2.0, -1.0, 0.5)
    b = PlaneModel(3.0, 6.0, -3.0, 1.5)
    np.testing.assert_allclose(a.distances(pts), b.distances(pts))


def test_zero_normal_rejected():
    with pytest.raises(ValueError):
        PlaneModel(0.0, 0.0, 0.0, 1.0)


def test_segment_finds_wall_among_outliers():
    wall = _wall()
    pts = np.vstack([wall, _outliers()])
    seg = PlaneSegmentation(eps_angle=math.radians(15.0))
    model, inliers = seg.segment(pts)
    assert model is not None
    assert abs(abs(model.normal[0]) / np.linalg.norm(model.normal) - 1.0) < 1e-6
    assert model.distances(wall).max() < 1e-6
    assert set(range(len(wall))) <= set(inliers.tolist())
    assert np.all(model.distances(pts[inliers]) < seg.distance_threshold)


def test_segment_rejects_plane_with_wrong_orientation():
    seg = PlaneSegmentation(eps_angle=math.radians(15.0))
    model, inliers = seg.segment(_floor())
    assert model is None
    assert len(inliers) == 0


def test_segment_without_angle_check_accepts_floor():
    floor = _floor()
    model, inliers = PlaneSegmentation().segment(floor)
    assert model is not None
    assert abs(abs(model.normal[1]) / np.linalg.norm(model.normal) - 1.0) < 1e-6
    assert len(inliers) == len(floor)


def test_segment_is_deterministic_for_a_seed():
    pts = np.vstack([_wall(), _outliers()])
    seg = PlaneSegmentation(eps_angle=math.radians(10.0), seed=3)
    first = seg.segment(pts)
    second = seg.segment(pts)
    assert first[0] == second[0]
    assert first[1].tolist() == second[1].tolist()


def test_segment_too_few_points():
    model, inliers = PlaneSegmentation().segment([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]])
    assert model is None
    assert inliers.size == 0


def test_segment_bad_shape():
    with pytest.raises(ValueError):
        PlaneSegmentation().segment([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]])