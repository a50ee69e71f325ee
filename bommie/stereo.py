"""Stereo rectification of a calibrated camera pair and image remapping."""

from __future__ import annotations

import math
import time
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import NamedTuple

import numpy as np

from .config import ConfigError

DEFAULT_IMAGE_SIZE = (1280, 800)
_UNDISTORT_ITERATIONS = 5
_GRID = 9


def _section(config, cam_name: str) -> Mapping:
    if not isinstance(config, Mapping) or cam_name not in config:
        raise ConfigError(f"missing camera section {cam_name!r}")
    section = config[cam_name]
    if not isinstance(section, Mapping):
        raise ConfigError(f"camera section {cam_name!r} must be a mapping")
    return section


def _numbers(section: Mapping, key: str, cam_name: str) -> list[float]:
    if key not in section or section[key] is None:
        raise ConfigError(f"missing key {key!r} in camera section {cam_name!r}")
    try:
        return [float(v) for v in section[key]]
    except (TypeError, ValueError):
        raise ConfigError(f"{cam_name}.{key} must be a list of numbers") from None


def _distortion(d_mat) -> np.ndarray:
    """Return the coefficients k1, k2, p1, p2, k3, k4, k5, k6."""
    coeffs = np.asarray(d_mat, dtype=float).reshape(-1)
    if len(coeffs) not in (0, 4, 5, 8):
        raise ValueError(f"unsupported number of distortion coefficients: {len(coeffs)}")
    return np.concatenate([coeffs, np.zeros(8 - len(coeffs))])


@dataclass(frozen=True)
class CameraCalibration:
    """Intrinsics, distortion and transform from the previous camera of the rig."""

    k: np.ndarray
    d: np.ndarray
    transform: np.ndarray

    @property
    def rotation(self) -> np.ndarray:
        return self.transform[:3, :3]

    @property
    def translation(self) -> np.ndarray:
        return self.transform[:3, 3]


def get_camera_info(cam_name, config) -> CameraCalibration:
    """Read one camera's calibration from a parsed calibration document."""
    section = _section(config, cam_name)

    intrinsics = _numbers(section, "intrinsics", cam_name)
    if len(intrinsics) < 4:
        raise ConfigError(f"{cam_name}.intrinsics needs fx, fy, cx, cy")
    fx, fy, cx, cy = intrinsics[:4]
    k = np.array([[fx, 0.0, cx], [0.0, fy, cy], [0.0, 0.0, 1.0]])

    d = np.array(_numbers(section, "distortion_coeffs", cam_name))

    transform = np.eye(4)
    if section.get("T_cn_cnm1"):
        try:
            transform = np.array(section["T_cn_cnm1"], dtype=float)
        except (TypeError, ValueError):
            raise ConfigError(f"{cam_name}.T_cn_cnm1 must be a 4x4 matrix") from None
        if transform.shape != (4, 4):
            raise ConfigError(f"{cam_name}.T_cn_cnm1 must be a 4x4 matrix")
    return CameraCalibration(k=k, d=d, transform=transform)


@dataclass(frozen=True)
class CameraInfo:
    """Calibration data published alongside rectified images."""

    frame_id: str
    stamp: float
    width: int
    height: int
    distortion_model: str
    D: tuple[float, ...] = ()
    K: tuple[float, ...] = field(default=(0.0,) * 9)
    R: tuple[float, ...] = field(default=(0.0,) * 9)
    P: tuple[float, ...] = field(default=(0.0,) * 12)
    binning_x: int = 0
    binning_y: int = 0
    do_rectify: bool = False


def set_camera_info(cam_name, config, stereo_rig, frame_id, distortion_model, r_mat, p_mat) -> CameraInfo:
    """Build the camera info of a rectified camera from its R and P matrices."""
    section = _section(config, cam_name)
    resolution = _numbers(section, "resolution", cam_name)
    if len(resolution) < 2:
        raise ConfigError(f"{cam_name}.resolution needs width and height")
    r = np.asarray(r_mat, dtype=float).reshape(3, 3)
    p = np.asarray(p_mat, dtype=float).reshape(3, 4)
    return CameraInfo(
        frame_id=f"{stereo_rig}/left{frame_id}",
        stamp=time.time(),
        width=int(resolution[0]),
        height=int(resolution[1]),
        distortion_model=distortion_model,
        K=tuple(p[:, :3].reshape(-1).tolist()),
        R=tuple(r.reshape(-1).tolist()),
        P=tuple(p.reshape(-1).tolist()),
    )


def _rodrigues_to_matrix(vector: np.ndarray) -> np.ndarray:
    theta = float(np.linalg.norm(vector))
    if theta < 1e-15:
        return np.eye(3)
    kx, ky, kz = vector / theta
    kmat = np.array([[0.0, -kz, ky], [kz, 0.0, -kx], [-ky, kx, 0.0]])
    return np.eye(3) + math.sin(theta) * kmat + (1.0 - math.cos(theta)) * (kmat @ kmat)


def _rodrigues_to_vector(matrix: np.ndarray) -> np.ndarray:
    diagonal_sum = float(matrix[0, 0] + matrix[1, 1] + matrix[2, 2])
    cosine = float(np.clip((diagonal_sum - 1.0) / 2.0, -1.0, 1.0))
    theta = math.acos(cosine)
    if theta < 1e-12:
        return np.zeros(3)
    axis = np.array([
        matrix[2, 1] - matrix[1, 2],
        matrix[0, 2] - matrix[2, 0],
        matrix[1, 0] - matrix[0, 1],
    ])
    sine = math.sin(theta)
    if sine > 1e-6:
        return axis / (2.0 * sine) * theta
    values, vectors = np.linalg.eig(matrix)
    unit = np.real(vectors[:, np.argmin(np.abs(values - 1.0))])
    return unit / np.linalg.norm(unit) * theta


def _undistort_points(points, k_mat, d_mat, r_mat, p_mat) -> np.ndarray:
    pts = np.asarray(points, dtype=float).reshape(-1, 2)
    k = np.asarray(k_mat, dtype=float)
    k1, k2, p1, p2, k3, k4, k5, k6 = _distortion(d_mat)
    x0 = (pts[:, 0] - k[0, 2]) / k[0, 0]
    y0 = (pts[:, 1] - k[1, 2]) / k[1, 1]
    x, y = x0.copy(), y0.copy()
    for _ in range(_UNDISTORT_ITERATIONS):
        r2 = x * x + y * y
        icdist = (1 + ((k6 * r2 + k5) * r2 + k4) * r2) / (1 + ((k3 * r2 + k2) * r2 + k1) * r2)
        dx = 2 * p1 * x * y + p2 * (r2 + 2 * x * x)
        dy = p1 * (r2 + 2 * y * y) + 2 * p2 * x * y
        x = (x0 - dx) * icdist
        y = (y0 - dy) * icdist
    rotated = np.asarray(r_mat, dtype=float) @ np.vstack([x, y, np.ones_like(x)])
    x = rotated[0] / rotated[2]
    y = rotated[1] / rotated[2]
    p = np.asarray(p_mat, dtype=float)
    return np.column_stack([p[0, 0] * x + p[0, 2], p[1, 1] * y + p[1, 2]])


def _rectangles(k_mat, d_mat, r_mat, p_mat, image_size):
    """Inner and outer rectangles (x, y, width, height) of the undistorted image."""
    width, height = image_size
    steps = np.arange(_GRID) / (_GRID - 1)
    gx, gy = np.meshgrid(steps * (width - 1), steps * (height - 1))
    pts = _undistort_points(np.column_stack([gx.ravel(), gy.ravel()]), k_mat, d_mat, r_mat, p_mat)
    xs = pts[:, 0].reshape(_GRID, _GRID)
    ys = pts[:, 1].reshape(_GRID, _GRID)
    ix0, ix1 = xs[:, 0].max(), xs[:, -1].min()
    iy0, iy1 = ys[0, :].max(), ys[-1, :].min()
    inner = (ix0, iy0, ix1 - ix0, iy1 - iy0)
    outer = (xs.min(), ys.min(), xs.max() - xs.min(), ys.max() - ys.min())
    return inner, outer


class Rectification(NamedTuple):
    r1: np.ndarray
    r2: np.ndarray
    p1: np.ndarray
    p2: np.ndarray
    q: np.ndarray


def stereo_rectify(k_left, d_left, k_right, d_right, image_size, rotation, translation) -> Rectification:
    """Rectify a stereo pair with zero disparity at infinity, keeping only valid pixels."""
    width, height = image_size
    rot = np.asarray(rotation, dtype=float).reshape(3, 3)
    trans = np.asarray(translation, dtype=float).reshape(3)
    if not np.linalg.norm(trans) > 0.0:
        raise ValueError("the translation between the cameras must not be zero")
    cameras = [
        (np.asarray(k_left, dtype=float), _distortion(d_left)),
        (np.asarray(k_right, dtype=float), _distortion(d_right)),
    ]

    half = _rodrigues_to_matrix(-0.5 * _rodrigues_to_vector(rot))
    t = half @ trans
    idx = 0 if abs(t[0]) > abs(t[1]) else 1
    c = t[idx]
    uu = np.zeros(3)
    uu[idx] = 1.0 if c > 0 else -1.0
    ww = np.cross(t, uu)
    nw = np.linalg.norm(ww)
    if nw > 0.0:
        ww *= math.acos(min(abs(c) / np.linalg.norm(t), 1.0)) / nw
    w_rot = _rodrigues_to_matrix(ww)
    r1 = w_rot @ half.T
    r2 = w_rot @ half
    t = r2 @ trans

    fc = math.inf
    for k, d in cameras:
        focal = k[idx ^ 1, idx ^ 1]
        if d[0] < 0.0:
            focal *= 1.0 + d[0] * (width * width + height * height) / (4.0 * focal * focal)
        fc = min(fc, focal)

    corners = np.array([[0, 0], [width - 1, 0], [0, height - 1], [width - 1, height - 1]], dtype=float)
    bare = np.array([[fc, 0.0, 0.0], [0.0, fc, 0.0], [0.0, 0.0, 1.0]])
    centers = []
    for (k, d), r in zip(cameras, (r1, r2)):
        avg = _undistort_points(corners, k, d, r, bare).mean(axis=0)
        centers.append(np.array([(width - 1) / 2.0 - avg[0], (height - 1) / 2.0 - avg[1]]))
    center = (centers[0] + centers[1]) * 0.5
    cx, cy = float(center[0]), float(center[1])

    def projection(focal: float, baseline: float) -> np.ndarray:
        p = np.array([[focal, 0.0, cx, 0.0], [0.0, focal, cy, 0.0], [0.0, 0.0, 1.0, 0.0]])
        p[idx, 3] = baseline
        return p

    p1 = projection(fc, 0.0)
    p2 = projection(fc, t[idx] * fc)

    scale = -math.inf
    for (k, d), r, p in zip(cameras, (r1, r2), (p1, p2)):
        (ix, iy, iw, ih), _ = _rectangles(k, d, r, p, image_size)
        scale = max(
            scale,
            cx / (cx - ix),
            cy / (cy - iy),
            (width - 1 - cx) / (ix + iw - cx),
            (height - 1 - cy) / (iy + ih - cy),
        )

    fc *= scale
    p1 = projection(fc, 0.0)
    p2 = projection(fc, t[idx] * fc)
    q = np.array([
        [1.0, 0.0, 0.0, -cx],
        [0.0, 1.0, 0.0, -cy],
        [0.0, 0.0, 0.0, fc],
        [0.0, 0.0, -1.0 / t[idx], 0.0],
    ])
    return Rectification(r1, r2, p1, p2, q)


def init_undistort_rectify_map(k_mat, d_mat, r_mat, p_mat, image_size):
    """Return float32 maps (map_x, map_y) from rectified pixels to source pixels."""
    width, height = image_size
    k = np.asarray(k_mat, dtype=float)
    k1, k2, p1, p2, k3, k4, k5, k6 = _distortion(d_mat)
    p = np.asarray(p_mat, dtype=float)[:3, :3]
    inverse = np.linalg.inv(p @ np.asarray(r_mat, dtype=float).reshape(3, 3))

    u, v = np.meshgrid(np.arange(width, dtype=float), np.arange(height, dtype=float))
    rays = inverse @ np.vstack([u.ravel(), v.ravel(), np.ones(u.size)])
    x = rays[0] / rays[2]
    y = rays[1] / rays[2]
    r2 = x * x + y * y
    kr = (1 + ((k3 * r2 + k2) * r2 + k1) * r2) / (1 + ((k6 * r2 + k5) * r2 + k4) * r2)
    xd = x * kr + 2 * p1 * x * y + p2 * (r2 + 2 * x * x)
    yd = y * kr + p1 * (r2 + 2 * y * y) + 2 * p2 * x * y
    map_x = (k[0, 0] * xd + k[0, 2]).reshape(height, width).astype(np.float32)
    map_y = (k[1, 1] * yd + k[1, 2]).reshape(height, width).astype(np.float32)
    return map_x, map_y


def remap(image, map_x, map_y) -> np.ndarray:
    """Bilinear resampling of ``image`` at the map positions; outside pixels read as 0."""
    img = np.asarray(image)
    mx = np.asarray(map_x, dtype=float)
    my = np.asarray(map_y, dtype=float)
    if mx.shape != my.shape:
        raise ValueError("map_x and map_y must have the same shape")
    height, width = img.shape[:2]
    bad = ~(np.isfinite(mx) & np.isfinite(my))
    mx = np.where(bad, -2.0, mx)
    my = np.where(bad, -2.0, my)

    pad = ((1, 1), (1, 1)) + ((0, 0),) * (img.ndim - 2)
    padded = np.pad(img.astype(float), pad)
    x0 = np.floor(mx).astype(np.int64)
    y0 = np.floor(my).astype(np.int64)
    wx = mx - x0
    wy = my - y0

    def sample(yy, xx):
        inside = (xx >= -1) & (xx <= width) & (yy >= -1) & (yy <= height)
        values = padded[np.clip(yy + 1, 0, height + 1), np.clip(xx + 1, 0, width + 1)]
        mask = inside.reshape(inside.shape + (1,) * (img.ndim - 2))
        return np.where(mask, values, 0.0)

    extra = (1,) * (img.ndim - 2)
    wx = wx.reshape(wx.shape + extra)
    wy = wy.reshape(wy.shape + extra)
    result = (
        sample(y0, x0) * (1 - wx) * (1 - wy)
        + sample(y0, x0 + 1) * wx * (1 - wy)
        + sample(y0 + 1, x0) * (1 - wx) * wy
        + sample(y0 + 1, x0 + 1) * wx * wy
    )
    if np.issubdtype(img.dtype, np.integer):
        info = np.iinfo(img.dtype)
        return np.clip(np.rint(result), info.min, info.max).astype(img.dtype)
    return result.astype(img.dtype)


class StereoUndistorter:
    """Rectifies the left and right images of a calibrated stereo rig."""

    def __init__(self, config, *, stereo_rig="", frame_id="", distortion_model="plumb_bob",
                 image_size=DEFAULT_IMAGE_SIZE):
        self.left = get_camera_info("cam0", config)
        self.right = get_camera_info("cam1", config)
        self.image_size = tuple(image_size)
        self.rectification = stereo_rectify(
            self.left.k, self.left.d, self.right.k, self.right.d,
            self.image_size, self.right.rotation, self.right.translation,
        )
        rect = self.rectification
        self.map_left = init_undistort_rectify_map(self.left.k, self.left.d, rect.r1, rect.p1, self.image_size)
        self.map_right = init_undistort_rectify_map(self.right.k, self.right.d, rect.r2, rect.p2, self.image_size)
        self.cam_info_left = set_camera_info("cam0", config, stereo_rig, frame_id, distortion_model, rect.r1, rect.p1)
        self.cam_info_right = set_camera_info("cam1", config, stereo_rig, frame_id, distortion_model, rect.r2, rect.p2)

    def undistort_left(self, image, stamp):
        """Return the rectified left image and its camera info stamped ``stamp``."""
        self.cam_info_left = replace(self.cam_info_left, stamp=stamp)
        return remap(image, *self.map_left), self.cam_info_left

    def undistort_right(self, image, stamp):
        """Return the rectified right image and its camera info stamped ``stamp``."""
        self.cam_info_right = replace(self.cam_info_right, stamp=stamp)
        return remap(image, *self.map_right), self.cam_info_right