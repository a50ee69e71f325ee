[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bommie"
version = "0.1.0"
description = "Wall-following goal planning from point clouds and stereo image rectification"
requires-python = ">=3.10"
keywords = ["point cloud", "wall following", "plane segmentation", "ransac", "stereo", "rectification"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering :: Image Processing",
]
dependencies = [
    "numpy",
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
bommie-planner = "bommie.cli:main"
bommie-stereo-undistorter = "bommie.stereo_cli:main"

[tool.hatch.build.targets.wheel]
packages = ["bommie"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
