"""Point cloud filtering: pass-through limits and voxel-grid downsampling."""

from __future__ import annotations

import numpy as np

_AXES = {"x": 0, "y": 1, "z": 2}


def _as_points(points) -> np.ndarray:
    array = np.asarray(points, dtype=float)
    if array.size == 0:
        return np.empty((0, 3), dtype=float)
    if array.ndim != 2 or array.shape[1] != 3:
        raise ValueError(f"expected an (N, 3) array of points, got shape {array.shape}")
    return array


def passthrough(points, axis, min_limit, max_limit) -> np.ndarray:
    """Keep the points whose coordinate on ``axis`` lies in [min_limit, max_limit].

    Points with a non-finite value on that axis are dropped; the order of the
    remaining points is preserved.
    """
    try:
        column = _AXES[axis]
    except (KeyError, TypeError):
        raise ValueError(f"unknown field name {axis!r}; expected one of x, y, z") from None
    pts = _as_points(points)
    values = pts[:, column]
    keep = np.isfinite(values) & (values >= float(min_limit)) & (values <= float(max_limit))
    return pts[keep]


def voxel_downsample(points, leaf_size) -> np.ndarray:
    """Replace the points in each cubic voxel of side ``leaf_size`` by their centroid.

    Voxels are emitted in the order of their linear index, that is sorted by
    z cell, then y cell, then x cell. Non-finite points are ignored.
    """
    leaf = float(leaf_size)
    if not leaf > 0.0:
        raise ValueError(f"leaf size must be positive, got {leaf_size!r}")
    pts = _as_points(points)
    pts = pts[np.isfinite(pts).all(axis=1)]
    if len(pts) == 0:
        return np.empty((0, 3), dtype=float)

    cells = np.floor(pts * (1.0 / leaf)).astype(np.int64)
    _, inverse, counts = np.unique(
        cells[:, ::-1], axis=0, return_inverse=True, return_counts=True
    )
    inverse = inverse.reshape(-1)
    sums = np.zeros((len(counts), 3), dtype=float)
    np.add.at(sums, inverse, pts)
    return sums / counts[:, None]