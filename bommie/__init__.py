"""Wall-following goal planning from point clouds and stereo image rectification."""

__version__ = "0.1.0"