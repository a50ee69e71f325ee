# bommie

Tools for following a wall at a fixed distance using a forward-looking point
cloud, plus helpers for rectifying images from a calibrated stereo pair.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Wall-following planner

Points are given in camera coordinates (x to the side, y vertical, z
forward) as an `(N, 3)` array. `BommiePlanner.wall_following` then:

1. keeps the points with `-height_plane <= y <= height_plane` and
   `min_view_forward <= z <= max_view_forward` (`bommie.cloud.passthrough`),
2. replaces the points of each cubic voxel of side `leaf_size` by their
   centroid (`bommie.cloud.voxel_downsample`),
3. keeps the points with `-max_view_side <= x <= max_view_side`,
4. cuts the cloud into `number_of_planes` consecutive sections of length
   `plane_length` along z, starting at `min_view_forward`, and calls
   `estimate_best_plane` on each. That method makes up to three attempts on
   a section of more than 1000 points: it fits a plane whose normal lies
   within `angle_tolerance` degrees of the x axis with RANSAC
   (`bommie.plane.PlaneSegmentation`, 5 cm inlier threshold), accepts it when
   more than a quarter of the points are inliers and a goal beside it is
   reachable on the wall side, and otherwise removes the inliers and tries
   again,
5. for every section with a plane, rasterises the plane points from above
   onto a 720 x 720 grid (`project_contour`), traces the first occupied cell
   of each row from the followed side, and takes as the wall point the
   contour's outermost x together with the z of its point nearest the
   camera. The goal is that point moved by `standoff_distance` along the
   plane normal projected onto the ground, pointing away from the followed
   side.

`wall_following` returns `None` when no section holds a plane. Otherwise it
returns a `PlanResult` with the filtered cloud, the ground contour of the
whole cloud, its wall point, a `PlaneGoal` for each plane found (section
index, points, normal, closest wall point, goal, and the red and green
sphere `Marker`s for them, see `make_marker`) and the time in milliseconds
spent in each stage. With `debug: true` a `PlaneGoal` holds the plane's
points; otherwise it holds the plane's contour.

### Configuration

`bommie.config.load_config` reads a YAML file; every key below is required.

```yaml
follow_wall: left          # "left"; any other value means right
topic_pcl: /points
standoff_distance: 1.0
eps_error: 0.1
max_view_forward: 6.0
min_view_forward: 0.5
max_view_side: 4.0
min_view_side: 0.0
number_of_planes: 3
plane_length: 1.5
height_plane: 1.0
angle_tolerance: 15.0
leaf_size: 0.05
debug: false
cuda: false
```

A missing key or a value of the wrong kind raises `ConfigError`. Booleans
also accept `yes`/`no`, `on`/`off` and `y`/`n`. `topic_pcl`, `eps_error`,
`min_view_side` and `cuda` are read and kept on `PlannerConfig` but do not
change what the planner computes.

### Command

```
bommie-planner config.yaml cloud.txt [more.npy ...]
```

Each point file is either a `.npy` array of shape `(N, 3)` or a text file
with one `x y z` point per line (whitespace or commas between the numbers;
blank lines and lines starting with `#` are skipped; see `load_points`).
For each file it prints the closest wall point and goal of every plane and
the stage timings, or `No plane found!`.

From Python:

```python
from bommie.config import load_config
from bommie.planner import BommiePlanner
from bommie.cli import load_points

planner = BommiePlanner(load_config("config.yaml"))
result = planner.wall_following(load_points("cloud.txt"))
if result is not None:
    for goal in result.goals:
        print(goal.index, goal.closest_point, goal.goal)
```

## Stereo rectification

`bommie.stereo` reads a stereo calibration in the camera-chain YAML layout:
`cam0` and `cam1`, each with `intrinsics` (fx, fy, cx, cy),
`distortion_coeffs` (0, 4, 5 or 8 values), `resolution` (width, height)
and optionally `T_cn_cnm1` (a 4x4 transform from the previous camera).

- `get_camera_info` returns a `CameraCalibration` (K, distortion, transform).
- `stereo_rectify` computes the rectifying rotations and projections with
  zero disparity at infinity, scaled so that only valid pixels remain.
- `init_undistort_rectify_map` builds float32 per-pixel lookup maps.
- `remap` resamples an image through those maps with bilinear
  interpolation; pixels that fall outside read as 0.
- `set_camera_info` builds the `CameraInfo` of a rectified camera; its
  frame id is `<stereo_rig>/left<frame_id>` for both cameras.

`StereoUndistorter(config, stereo_rig=..., frame_id=...,
distortion_model="plumb_bob", image_size=(1280, 800))` does all of this for
the pair; `undistort_left(image, stamp)` and `undistort_right(image, stamp)`
return the rectified image and its `CameraInfo` carrying that stamp.

```
bommie-stereo-undistorter stereo.yaml [--stereo-rig NAME] [--frame-id ID] [--distortion-model MODEL]
```

loads the calibration, builds the undistorter and prints the intrinsics,
distortion and transforms of both cameras and their rectified projections.

## What it does not do

The package works on arrays and files only. It does not subscribe to or
publish on any message bus: the planner is given point arrays and returns
its goals and markers as values, and the stereo command does not read or
write images; rectifying images is done by calling `StereoUndistorter` from
Python. There is no GPU path; all filtering runs with NumPy.