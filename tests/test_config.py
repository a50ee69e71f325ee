import pytest

from bommie.config import ConfigError, FollowWall, PlannerConfig, load_config


def _sample():
    return {
        "follow_wall": "left",
        "topic_pcl": "/stereo/points2",
        "standoff_distance": 1.5,
        "eps_error": 0.1,
        "max_view_forward": 6.0,
        "min_view_forward": 0.5,
        "max_view_side": 4.0,
        "min_view_side": 0.2,
        "number_of_planes": 3,
        "plane_length": 1.0,
        "height_plane": 0.75,
        "angle_tolerance": 20,
        "leaf_size": 0.05,
        "debug": True,
        "cuda": False,
    }


YAML_TEXT = """\
follow_wall: right
topic_pcl: /cloud
standoff_distance: 2.0
eps_error: 0.2
max_view_forward: 8.0
min_view_forward: 1.0
max_view_side: 5.0
min_view_side: 0.5
number_of_planes: 4
plane_length: 1.25
height_plane: 0.5
angle_tolerance: 10.0
leaf_size: 0.1
debug: false
cuda: false
"""


def test_from_mapping_reads_every_key():
    cfg = PlannerConfig.from_mapping(_sample())
    assert cfg.follow_wall is FollowWall.LEFT
    assert cfg.topic == "/stereo/points2"
    assert cfg.standoff_distance == 1.5
    assert cfg.eps == 0.1
    assert (cfg.max_view_forward, cfg.min_view_forward) == (6.0, 0.5)
    assert (cfg.max_view_side, cfg.min_view_side) == (4.0, 0.2)
    assert cfg.number_of_planes == 3
    assert cfg.plane_length == 1.0
    assert cfg.height_plane == 0.75
    assert cfg.angle_tolerance == 20.0
    assert cfg.leaf_size == 0.05
    assert cfg.debug is True
    assert cfg.cuda is False


@pytest.mark.parametrize("name, expected", [("left", FollowWall.LEFT), ("right", FollowWall.RIGHT), ("LEFT", FollowWall.RIGHT), ("other", FollowWall.RIGHT)])
def test_follow_wall_only_exact_left_is_left(name, expected):
    data = _sample()
    data["follow_wall"] = name
    assert PlannerConfig.from_mapping(data).follow_wall is expected


@pytest.mark.parametrize("key", sorted(_sample()))
def test_missing_key_raises(key):
    data = _sample()
    del data[key]
    with pytest.raises(ConfigError):
        PlannerConfig.from_mapping(data)


@pytest.mark.parametrize(
    "key, value",
    [("standoff_distance", "far"), ("number_of_planes", 2.5), ("debug", "maybe"), ("topic_pcl", [1, 2])],
)
def test_bad_values_raise(key, value):
    data = _sample()
    data[key] = value
    with pytest.raises(ConfigError):
        PlannerConfig.from_mapping(data)


def test_boolean_words_accepted():
    data = _sample()
    data["debug"] = "yes"
    data["cuda"] = "Off"
    cfg = PlannerConfig.from_mapping(data)
    assert (cfg.debug, cfg.cuda) == (True, False)


def test_from_mapping_rejects_non_mapping():
    with pytest.raises(ConfigError):
        PlannerConfig.from_mapping(["follow_wall"])


def test_load_config_from_file(tmp_path):
    path = tmp_path / "planner.yaml"
    path.write_text(YAML_TEXT)
    cfg = load_config(path)
    assert cfg.follow_wall is FollowWall.RIGHT
    assert cfg.topic == "/cloud"
    assert cfg.number_of_planes == 4
    assert cfg.plane_length == 1.25
    assert cfg.debug is False


def test_load_config_non_mapping_document(tmp_path):
    path = tmp_path / "planner.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError):
        load_config(path)


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.yaml")