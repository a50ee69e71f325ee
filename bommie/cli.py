"""Command line entry point running the wall-following planner on point files."""

from __future__ import annotations

import sys
from pathlib import Path

import numpy as np

from .config import ConfigError, load_config
from .planner import BommiePlanner

_PROG = "bommie"

_TIMING_LABELS = {
    "total": "Total Time (with publishing)",
    "filtering": "Filtering Time:",
    "downsampling": "Downsampling Time:",
    "left_division": "Left Division Time:",
    "plane_estimation": "Plane Estimation Time:",
    "projection": "Projection Time:",
}


def load_points(path) -> np.ndarray:
    """Read an (N, 3) point array from a ``.npy`` file or a text file.

    Text files hold one ``x y z`` point per line, separated by whitespace or
    commas; blank lines and lines starting with ``#`` are ignored.
    """
    path = Path(path)
    if path.suffix == ".npy":
        data = np.load(path, allow_pickle=False)
    else:
        text = path.read_text(encoding="utf-8").replace(",", " ")
        rows = [
            line.split()
            for line in text.splitlines()
            if line.strip() and not line.lstrip().startswith("#")
        ]
        data = np.array(rows, dtype=float) if rows else np.empty((0, 3))
    data = np.asarray(data, dtype=float)
    if data.size == 0:
        return np.empty((0, 3), dtype=float)
    if data.ndim != 2 or data.shape[1] != 3:
        raise ValueError(f"{path}: expected three coordinates per point, got shape {data.shape}")
    return data


def _report(result) -> None:
    if result is None:
        print("No plane found!")
        return
    for goal in result.goals:
        cx, cz = goal.closest_point
        gx, gz = goal.goal
        print(f"Plane {goal.index}: closest ({cx:.3f}, {cz:.3f}) goal ({gx:.3f}, {gz:.3f})")
    for key, label in _TIMING_LABELS.items():
        print(f"{label} {result.timings[key]} [ms]")
    print("#######################")


def main(argv=None) -> int:
    """Plan on each given point file using the given configuration."""
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        print(f"Usage: {_PROG} <config_file> [<points_file> ...]", file=sys.stderr)
        return 1

    try:
        config = load_config(args[0])
    except (OSError, ConfigError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    planner = BommiePlanner(config)
    print("Bommie planner initialized.")

    for path in args[1:]:
        try:
            points = load_points(path)
        except (OSError, ValueError) as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 1
        _report(planner.wall_following(points))
    return 0


if __name__ == "__main__":
    sys.exit(main())