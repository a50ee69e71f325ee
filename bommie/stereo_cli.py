"""Command line entry point that loads a stereo calibration and rectifies the rig."""

from __future__ import annotations

import argparse
import sys

import numpy as np
import yaml

from .config import ConfigError
from .stereo import StereoUndistorter

_PROG = "bommie-stereo"


def main(argv=None) -> int:
    """Load a stereo calibration file and print the rectification it gives."""
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        print(f"Usage: {_PROG} <stereo yaml>", file=sys.stderr)
        return 1

    parser = argparse.ArgumentParser(prog=_PROG)
    parser.add_argument("calibration")
    parser.add_argument("--stereo-rig", default="")
    parser.add_argument("--frame-id", default="")
    parser.add_argument("--distortion-model", default="plumb_bob")
    options = parser.parse_args(args)

    print(f"Loading stereo calibration file: {options.calibration}")
    try:
        with open(options.calibration, encoding="utf-8") as stream:
            config = yaml.safe_load(stream)
        undistorter = StereoUndistorter(
            config,
            stereo_rig=options.stereo_rig,
            frame_id=options.frame_id,
            distortion_model=options.distortion_model,
        )
    except (OSError, yaml.YAMLError, ConfigError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    with np.printoptions(precision=6, suppress=True):
        print(f"Left camera intrinsics: {undistorter.left.k}")
        print(f"Left camera distortion: {undistorter.left.d}")
        print(f"Right camera intrinsics: {undistorter.right.k}")
        print(f"Right camera distortion: {undistorter.right.d}")
        print(f"Left camera transformation: {undistorter.left.transform}")
        print(f"Right camera transformation: {undistorter.right.transform}")
        print(f"Left rectified projection: {undistorter.rectification.p1}")
        print(f"Right rectified projection: {undistorter.rectification.p2}")
    return 0


if __name__ == "__main__":
    sys.exit(main())