"""RANSAC segmentation of a plane whose normal is parallel to a given axis."""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np


def _as_points(points) -> np.ndarray:
    array = np.asarray(points, dtype=float)
    if array.size == 0:
        return np.empty((0, 3), dtype=float)
    if array.ndim != 2 or array.shape[1] != 3:
        raise ValueError(f"expected an (N, 3) array of points, got shape {array.shape}")
    return array


@dataclass(frozen=True)
class PlaneModel:
    """Plane ``a*x + b*y + c*z + d = 0``."""

    a: float
    b: float
    c: float
    d: float

    def __post_init__(self):
        if math.hypot(self.a, self.b, self.c) == 0.0:
            raise ValueError("plane normal must not be the zero vector")

    @property
    def normal(self) -> np.ndarray:
        return np.array([self.a, self.b, self.c], dtype=float)

    @property
    def coefficients(self) -> tuple[float, float, float, float]:
        return (self.a, self.b, self.c, self.d)

    def distances(self, points) -> np.ndarray:
        """Unsigned distance of each point to the plane."""
        pts = _as_points(points)
        normal = self.normal
        return np.abs(pts @ normal + self.d) / np.linalg.norm(normal)


def _model_from_sample(sample: np.ndarray) -> PlaneModel | None:
    p0, p1, p2 = sample
    normal = np.cross(p1 - p0, p2 - p0)
    length = np.linalg.norm(normal)
    if length < 1e-12:
        return None
    normal /= length
    return PlaneModel(*normal.tolist(), float(-normal @ p0))


def _refit(points: np.ndarray, reference: np.ndarray) -> PlaneModel:
    centroid = points.mean(axis=0)
    _, _, vt = np.linalg.svd(points - centroid, full_matrices=False)
    normal = vt[-1]
    if normal @ reference < 0.0:
        normal = -normal
    return PlaneModel(*normal.tolist(), float(-normal @ centroid))


@dataclass
class PlaneSegmentation:
    """RANSAC plane fit restricted to normals within ``eps_angle`` of ``axis``.

    An ``eps_angle`` of zero disables the orientation check.
    """

    axis: tuple[float, float, float] = (1.0, 0.0, 0.0)
    eps_angle: float = 0.0
    distance_threshold: float = 0.05
    max_iterations: int = 50
    probability: float = 0.99
    optimize_coefficients: bool = True
    seed: int = 12345

    def _is_valid(self, model: PlaneModel, axis: np.ndarray) -> bool:
        if self.eps_angle <= 0.0:
            return True
        cosine = float(np.clip(abs(model.normal @ axis), 0.0, 1.0))
        return math.acos(cosine) <= self.eps_angle

    def segment(self, points) -> tuple[PlaneModel | None, np.ndarray]:
        """Return the best plane and the indices of its inliers.

        When no plane is found the model is ``None`` and the indices are empty.
        """
        pts = _as_points(points)
        empty = np.empty(0, dtype=np.intp)
        if len(pts) < 3:
            return None, empty

        axis = np.asarray(self.axis, dtype=float)
        axis = axis / np.linalg.norm(axis)
        rng = np.random.default_rng(self.seed)
        log_probability = math.log(1.0 - self.probability)
        eps = np.finfo(float).eps

        best_model: PlaneModel | None = None
        best_count = 0
        iterations = 0
        skipped = 0
        max_skip = self.max_iterations * 10
        k = 1.0

        while iterations < k and skipped < max_skip:
            sample = pts[rng.choice(len(pts), size=3, replace=False)]
            model = _model_from_sample(sample)
            if model is None or not self._is_valid(model, axis):
                skipped += 1
                continue

            count = int(np.count_nonzero(model.distances(pts) < self.distance_threshold))
            if count > best_count:
                best_count = count
                best_model = model
                ratio = count / len(pts)
                p_no_outliers = min(max(1.0 - ratio**3, eps), 1.0 - eps)
                k = log_probability / math.log(p_no_outliers)

            iterations += 1
            if iterations > self.max_iterations:
                break

        if best_model is None:
            return None, empty

        inliers = np.flatnonzero(best_model.distances(pts) < self.distance_threshold)
        if self.optimize_coefficients and len(inliers) >= 3:
            best_model = _refit(pts[inliers], best_model.normal)
            inliers = np.flatnonzero(best_model.distances(pts) < self.distance_threshold)
        return best_model, inliers