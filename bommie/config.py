"""Planner configuration loaded from a YAML file."""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass

import yaml


class ConfigError(ValueError):
    """Raised when a configuration is missing a key or holds a bad value."""


class FollowWall(enum.IntEnum):
    LEFT = 0
    RIGHT = 1

    @classmethod
    def parse(cls, name: str) -> "FollowWall":
        """Return LEFT for ``"left"``, RIGHT for anything else."""
        return cls.LEFT if name == "left" else cls.RIGHT


_TRUE_WORDS = {"y", "yes", "true", "on"}
_FALSE_WORDS = {"n", "no", "false", "off"}


def _require(data: Mapping, key: str):
    if key not in data or data[key] is None:
        raise ConfigError(f"missing configuration key {key!r}")
    return data[key]


def _as_str(data: Mapping, key: str) -> str:
    value = _require(data, key)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise ConfigError(f"{key!r} must be a scalar, got {type(value).__name__}")


def _as_float(data: Mapping, key: str) -> float:
    value = _require(data, key)
    if isinstance(value, bool):
        raise ConfigError(f"{key!r} must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key!r} must be a number, got {value!r}") from None


def _as_int(data: Mapping, key: str) -> int:
    value = _require(data, key)
    if isinstance(value, bool) or isinstance(value, float):
        raise ConfigError(f"{key!r} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key!r} must be an integer, got {value!r}") from None


def _as_bool(data: Mapping, key: str) -> bool:
    value = _require(data, key)
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    raise ConfigError(f"{key!r} must be a boolean, got {value!r}")


@dataclass(frozen=True)
class PlannerConfig:
    """Parameters of the wall-following planner."""

    follow_wall: FollowWall
    topic: str
    standoff_distance: float
    eps: float
    max_view_forward: float
    min_view_forward: float
    max_view_side: float
    min_view_side: float
    number_of_planes: int
    plane_length: float
    height_plane: float
    angle_tolerance: float
    leaf_size: float
    debug: bool
    cuda: bool

    @classmethod
    def from_mapping(cls, data) -> "PlannerConfig":
        """Build a configuration from the keys of a parsed YAML document."""
        if not isinstance(data, Mapping):
            raise ConfigError("configuration must be a mapping")
        return cls(
            follow_wall=FollowWall.parse(_as_str(data, "follow_wall")),
            topic=_as_str(data, "topic_pcl"),
            standoff_distance=_as_float(data, "standoff_distance"),
            eps=_as_float(data, "eps_error"),
            max_view_forward=_as_float(data, "max_view_forward"),
            min_view_forward=_as_float(data, "min_view_forward"),
            max_view_side=_as_float(data, "max_view_side"),
            min_view_side=_as_float(data, "min_view_side"),
            number_of_planes=_as_int(data, "number_of_planes"),
            plane_length=_as_float(data, "plane_length"),
            height_plane=_as_float(data, "height_plane"),
            angle_tolerance=_as_float(data, "angle_tolerance"),
            leaf_size=_as_float(data, "leaf_size"),
            debug=_as_bool(data, "debug"),
            cuda=_as_bool(data, "cuda"),
        )


def load_config(path) -> PlannerConfig:
    """Read a planner configuration from a YAML file."""
    with open(path, encoding="utf-8") as stream:
        try:
            data = yaml.safe_load(stream)
        except yaml.YAMLError as exc:
            raise ConfigError(f"cannot parse {path}: {exc}") from exc
    return PlannerConfig.from_mapping(data)