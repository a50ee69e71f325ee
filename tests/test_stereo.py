import numpy as np
import pytest

from bommie.config import ConfigError
from bommie.stereo import (
    StereoUndistorter,
    get_camera_info,
    init_undistort_rectify_map,
    remap,
    set_camera_info,
    stereo_rectify,
)


def _config(distortion=(0.0, 0.0, 0.0, 0.0)):
    cam = {
        "intrinsics": [500.0, 500.0, 640.0, 400.0],
        "distortion_coeffs": list(distortion),
        "resolution": [1280, 800],
    }
    transform = np.eye(4)
    transform[0, 3] = -0.1
    return {"cam0": dict(cam), "cam1": dict(cam, T_cn_cnm1=transform.tolist())}


def test_get_camera_info_reads_intrinsics_and_default_transform():
    calib = get_camera_info("cam0", _config((0.1, 0.01, 0.0, 0.0)))
    assert calib.k[0, 0] == 500.0
    assert calib.k[1, 2] == 400.0
    assert calib.k[2, 2] == 1.0
    assert np.allclose(calib.d, [0.1, 0.01, 0.0, 0.0])
    assert np.array_equal(calib.transform, np.eye(4))


def test_get_camera_info_reads_transform():
    calib = get_camera_info("cam1", _config())
    assert calib.translation[0] == -0.1
    assert np.array_equal(calib.rotation, np.eye(3))


def test_get_camera_info_missing_section():
    with pytest.raises(ConfigError):
        get_camera_info("cam2", _config())


def test_get_camera_info_missing_key():
    config = _config()
    del config["cam0"]["intrinsics"]
    with pytest.raises(ConfigError):
        get_camera_info("cam0", config)


def test_set_camera_info_fields():
    p = np.arange(12, dtype=float).reshape(3, 4)
    r = np.eye(3)
    info = set_camera_info("cam1", _config(), "rig", "_optical", "plumb_bob", r, p)
    assert info.frame_id == "rig/left_optical"
    assert (info.width, info.height) == (1280, 800)
    assert info.P == tuple(p.ravel())
    assert info.K == tuple(p[:, :3].ravel())
    assert info.R == tuple(r.ravel())
    assert info.D == ()
    assert info.do_rectify is False


def test_stereo_rectify_invariants():
    k = np.array([[500.0, 0, 640], [0, 500.0, 400], [0, 0, 1]])
    d = np.array([-0.05, 0.01, 0.0, 0.0, 0.0])
    rot = np.array([[0.9998, -0.02, 0.0], [0.02, 0.9998, 0.0], [0.0, 0.0, 1.0]])
    u, _, vt = np.linalg.svd(rot)
    rot = u @ vt
    rect = stereo_rectify(k, d, k, d, (1280, 800), rot, [-0.1, 0.0, 0.0])
    for r in (rect.r1, rect.r2):
        assert np.allclose(r @ r.T, np.eye(3), atol=1e-9)
        assert np.linalg.det(r) == pytest.approx(1.0)
    assert np.allclose(rect.p1[:, :3], rect.p2[:, :3])
    assert rect.p1[0, 3] == 0.0
    assert rect.p2[1, 3] == 0.0


def test_stereo_rectify_undistorted_pair_keeps_focal():
    k = np.array([[500.0, 0, 640], [0, 500.0, 400], [0, 0, 1]])
    d = np.zeros(5)
    rect = stereo_rectify(k, d, k, d, (1280, 800), np.eye(3), [-0.1, 0.0, 0.0])
    assert np.allclose(rect.r1, np.eye(3))
    assert rect.p1[0, 0] == pytest.approx(500.0)
    assert rect.p2[0, 3] == pytest.approx(-50.0)


def test_stereo_rectify_zero_translation():
    k = np.eye(3)
    with pytest.raises(ValueError):
        stereo_rectify(k, [], k, [], (10, 10), np.eye(3), [0.0, 0.0, 0.0])


def test_identity_map():
    k = np.array([[100.0, 0, 20], [0, 100.0, 15], [0, 0, 1]])
    p = np.hstack([k, np.zeros((3, 1))])
    map_x, map_y = init_undistort_rectify_map(k, np.zeros(5), np.eye(3), p, (40, 30))
    assert map_x.shape == (30, 40)
    assert map_x.dtype == np.float32
    u, v = np.meshgrid(np.arange(40), np.arange(30))
    assert np.allclose(map_x, u, atol=1e-4)
    assert np.allclose(map_y, v, atol=1e-4)


def test_bad_distortion_length():
    k = np.eye(3)
    with pytest.raises(ValueError):
        init_undistort_rectify_map(k, [0.1, 0.2], np.eye(3), k, (4, 4))


def test_remap_identity_and_shift():
    rng = np.random.default_rng(0)
    image = rng.integers(0, 256, size=(6, 8, 3), dtype=np.uint8)
    u, v = np.meshgrid(np.arange(8, dtype=np.float32), np.arange(6, dtype=np.float32))
    assert np.array_equal(remap(image, u, v), image)
    shifted = remap(image, u + 1, v)
    assert np.array_equal(shifted[:, :-1], image[:, 1:])
    far = remap(image, u + 100, v)
    assert not far.any()


def test_undistorter_round():
    undistorter = StereoUndistorter(_config(), stereo_rig="rig", image_size=(64, 40))
    image = np.full((40, 64, 3), 200, dtype=np.uint8)
    rectified, info = undistorter.undistort_left(image, 12.5)
    assert rectified.shape == image.shape
    assert info.stamp == 12.5
    assert undistorter.cam_info_left.stamp == 12.5
    _, right_info = undistorter.undistort_right(image, 3.0)
    assert right_info.stamp == 3.0
    assert info.frame_id == "rig/left"