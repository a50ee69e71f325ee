"""Wall-following planner: finds wall planes ahead and goals at a standoff distance."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field, replace

import numpy as np

from .cloud import passthrough, voxel_downsample
from .config import FollowWall, PlannerConfig
from .plane import PlaneSegmentation

FAR_POINT = 1000.0
MIN_POINTS_PER_PLANE = 1000
INLIERS_PERC_PER_PLANE = 0.25
MAX_NUM_TRIALS = 3
DISTANCE_THRESHOLD = 0.05
IMAGE_SIZE = 720
MARKER_SCALE = 0.1
RED = (1.0, 0.0, 0.0)
GREEN = (0.0, 1.0, 0.0)

_SEGMENTATION_AXIS = np.array([1.0, 0.0, 0.0])
_PLANE_ZX = np.array([0.0, 1.0, 0.0])


@dataclass(frozen=True)
class Marker:
    """A sphere marker placed in the x-z plane of the camera frame."""

    position: tuple[float, float, float]
    color: tuple[float, float, float, float]
    scale: tuple[float, float, float] = (MARKER_SCALE, MARKER_SCALE, MARKER_SCALE)
    orientation: tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0)
    marker_id: int = 0
    shape: str = "sphere"


def make_marker(point, color) -> Marker:
    """Build an opaque sphere marker at the 2-D point ``(x, z)``."""
    x, z = (float(v) for v in point)
    r, g, b = (float(c) for c in color)
    return Marker(position=(x, 0.0, z), color=(r, g, b, 1.0))


@dataclass
class PlaneGoal:
    """The wall found in one forward section and the goal derived from it."""

    index: int
    points: np.ndarray
    normal: np.ndarray
    closest_point: np.ndarray
    goal: np.ndarray

    @property
    def closest_marker(self) -> Marker:
        return make_marker(self.closest_point, RED)

    @property
    def goal_marker(self) -> Marker:
        return make_marker(self.goal, GREEN)


@dataclass
class PlanResult:
    """Everything one planning step produces."""

    cloud: np.ndarray
    contour: np.ndarray
    closest_point: np.ndarray
    goals: list[PlaneGoal] = field(default_factory=list)
    timings: dict[str, float] = field(default_factory=dict)


def _points(points) -> np.ndarray:
    array = np.asarray(points, dtype=float)
    if array.size == 0:
        return np.empty((0, 3), dtype=float)
    if array.ndim != 2 or array.shape[1] != 3:
        raise ValueError(f"expected an (N, 3) array of points, got shape {array.shape}")
    return array


def _normalized(vector: np.ndarray) -> np.ndarray:
    length = np.linalg.norm(vector)
    return vector / length if length > 0.0 else vector


def _rotation(angle: float) -> np.ndarray:
    c, s = math.cos(angle), math.sin(angle)
    return np.array([[c, -s], [s, c]])


def _divide(numerator: float, denominator: float) -> float:
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(np.float64(numerator) / np.float64(denominator))


def _projected_normal(normal: np.ndarray) -> np.ndarray:
    """Project a 3-D normal onto the z-x plane and return its (x, z) part."""
    projected = _normalized(normal - (normal @ _PLANE_ZX) * _PLANE_ZX)
    return projected[[0, 2]]


def _reachable(goal: np.ndarray, m_plane: float, q_plane: float) -> bool:
    """True when the wall line does not cut the ray before the goal."""
    # The ray's angle stands in for its slope here.
    m_ray = math.atan2(goal[1], goal[0])
    x = _divide(q_plane, m_ray - m_plane)
    y = m_plane * x + q_plane
    return math.hypot(x, y) > math.hypot(goal[0], goal[1])


class BommiePlanner:
    """Finds the followed wall in a point cloud and places goals beside it."""

    def __init__(self, config: PlannerConfig, *, seed: int = 12345):
        self.config = config
        self._segmentation = PlaneSegmentation(
            axis=tuple(_SEGMENTATION_AXIS),
            eps_angle=math.radians(config.angle_tolerance),
            distance_threshold=DISTANCE_THRESHOLD,
            seed=seed,
        )

    def estimate_best_plane(self, points):
        """Return ``(plane_points, normal)`` of a wall fit to follow, or None."""
        cloud = _points(points)
        standoff = self.config.standoff_distance

        for trial in range(MAX_NUM_TRIALS):
            if len(cloud) <= MIN_POINTS_PER_PLANE:
                break
            segmentation = replace(self._segmentation, seed=self._segmentation.seed + trial)
            model, inliers = segmentation.segment(cloud)
            if model is None or len(inliers) / len(cloud) <= INLIERS_PERC_PER_PLANE:
                continue

            candidate_plane = cloud[inliers]
            normal = _normalized(model.normal)
            # The sign of a fitted normal is arbitrary; keep it along the
            # segmentation axis so the outcome does not depend on the sample.
            if normal @ _SEGMENTATION_AXIS < 0.0:
                normal = -normal
            norm_prj = _projected_normal(normal)

            centroid = candidate_plane[:, [0, 2]].mean(axis=0)
            goal1 = centroid + norm_prj * standoff
            goal2 = centroid - norm_prj * standoff

            grad1 = np.array([-norm_prj[1], norm_prj[0]])
            grad2 = -grad1
            pt1 = centroid + grad1 * standoff
            pt2 = centroid + grad2 * standoff
            if np.linalg.norm(pt1) < np.linalg.norm(pt2):
                grad, pt = grad1, pt1
            else:
                grad, pt = grad2, pt2
            angle_plane = math.atan2(grad[1], grad[0])
            m_plane = math.tan(angle_plane)
            q_plane = pt[1] - m_plane * pt[0]

            valid1 = _reachable(goal1, m_plane, q_plane)
            valid2 = _reachable(goal2, m_plane, q_plane)
            candidate_goal = goal1 if valid1 else goal2

            centroid_in_goal = _rotation(angle_plane).T @ (centroid - candidate_goal)
            if centroid_in_goal[1] < -0.1 and (valid1 or valid2):
                return candidate_plane, normal

            keep = np.ones(len(cloud), dtype=bool)
            keep[inliers] = False
            cloud = cloud[keep]

        return None

    def project_contour(self, points):
        """Rasterise the cloud from above and trace the wall-side contour.

        Returns the contour as (N, 3) points with y = 0 and the 2-D point
        ``(left_most_x, z_of_closest)``.
        """
        pts = _points(points)
        size = IMAGE_SIZE
        left = self.config.follow_wall is FollowWall.LEFT
        init_x = size - 1 if left else 0
        init_z = size - 1
        step_x = -1 if left else 1
        res_x = self.config.max_view_side / size
        res_z = self.config.max_view_forward / size

        occupied = np.zeros((size, size), dtype=bool)
        if len(pts):
            with np.errstate(all="ignore"):
                cols = init_x + pts[:, 0] / res_x
                rows = init_z - pts[:, 2] / res_z
            finite = np.isfinite(cols) & np.isfinite(rows)
            cols = np.trunc(cols[finite]).astype(np.int64)
            rows = np.trunc(rows[finite]).astype(np.int64)
            valid = (cols >= 0) & (cols < size) & (rows >= 0) & (rows < size)
            occupied[rows[valid], cols[valid]] = True

        scan = occupied[:, ::-1] if left else occupied
        first = scan.argmax(axis=1)

        contour = []
        closest = np.array([FAR_POINT, FAR_POINT])
        left_most = -FAR_POINT
        for row in range(size - 1, 0, -1):
            j = int(first[row])
            if not scan[row, j]:
                continue
            pt = np.array([step_x * j * res_x, (init_z - row) * res_z])
            left_most = max(left_most, float(pt[0]))
            if np.linalg.norm(pt) < np.linalg.norm(closest):
                closest = pt
            contour.append((pt[0], 0.0, pt[1]))

        closest_point = np.array([left_most, closest[1]])
        return np.array(contour, dtype=float).reshape(-1, 3), closest_point

    def wall_following(self, points):
        """Run one planning step; return a PlanResult, or None if no wall is found."""
        cfg = self.config
        begin = time.perf_counter()

        cloud = passthrough(points, "y", -cfg.height_plane, cfg.height_plane)
        cloud = passthrough(cloud, "z", cfg.min_view_forward, cfg.max_view_forward)
        filtering = time.perf_counter()

        cloud = voxel_downsample(cloud, cfg.leaf_size)
        downsampling = time.perf_counter()

        cloud = passthrough(cloud, "x", -cfg.max_view_side, cfg.max_view_side)
        division = time.perf_counter()

        planes = []
        for index in range(cfg.number_of_planes):
            low = cfg.min_view_forward + index * cfg.plane_length
            section = passthrough(cloud, "z", low, low + cfg.plane_length)
            found = self.estimate_best_plane(section)
            if found is not None:
                planes.append((index, *found))
        estimation = time.perf_counter()

        if not planes:
            return None

        contour, closest = self.project_contour(cloud)
        projection = time.perf_counter()

        direction = np.array([1.0 if cfg.follow_wall is FollowWall.LEFT else -1.0, 0.0])
        goals = []
        for index, plane_points, normal in planes:
            plane_contour, closest_wall = self.project_contour(plane_points)
            norm_prj = _projected_normal(normal)
            if direction @ norm_prj < 0.0:
                norm_prj = -norm_prj
            goal = closest_wall + norm_prj * cfg.standoff_distance
            goals.append(
                PlaneGoal(
                    index=index,
                    points=plane_points if cfg.debug else plane_contour,
                    normal=normal,
                    closest_point=closest_wall,
                    goal=goal,
                )
            )
        end = time.perf_counter()

        def ms(start: float, stop: float) -> float:
            return (stop - start) * 1000.0

        timings = {
            "total": ms(begin, end),
            "filtering": ms(begin, filtering),
            "downsampling": ms(filtering, downsampling),
            "left_division": ms(downsampling, division),
            "plane_estimation": ms(division, estimation),
            "projection": ms(estimation, projection),
        }
        return PlanResult(
            cloud=cloud,
            contour=contour,
            closest_point=closest,
            goals=goals,
            timings=timings,
        )