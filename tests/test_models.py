import math

import pytest

from robocal.kinematics import Frame, Joint, JointType, Segment, Tree
from robocal.messages import (
    CalibrationData,
    CameraInfo,
    CameraParameter,
    ExtendedCameraInfo,
    JointState,
    Observation,
    Point,
    PointStamped,
)
from robocal.models import Camera3dModel, ChainModel, position_from_msg

P_MATRIX = [525.0, 0.0, 319.5, 0.0, 0.0, 525.0, 239.5, 0.0, 0.0, 0.0, 1.0, 0.0]


class _Offsets:
    def __init__(self, values=None, frames=None):
        self.values = dict(values or {})
        self.frames = dict(frames or {})

    def get(self, name):
        return self.values.get(name, 0.0)

    def get_frame(self, name):
        return self.frames.get(name)


def _tree(camera_origin=(0.0, 0.0, 0.5)):
    tree = Tree("base_link")
    arm = Joint("joint1", JointType.ROTATIONAL, (0.0, 0.0, 1.0), Frame(p=(1.0, 0.0, 0.0)))
    tree.add_segment(Segment("link1", arm, Frame(p=(1.0, 0.0, 0.0))), "base_link")
    camera = Joint("camera_joint", JointType.NONE, origin=Frame(p=camera_origin))
    tree.add_segment(Segment("camera_link", camera, Frame(p=camera_origin)), "link1")
    return tree


def _data(sensor, points, frame_id, position=0.0, parameters=()):
    features = [PointStamped(frame_id, Point(*p)) for p in points]
    info = ExtendedCameraInfo(CameraInfo(P=list(P_MATRIX)), list(parameters))
    return CalibrationData(
        JointState(["joint1"], [position]),
        [Observation(sensor, features, info)],
    )


def _coords(points):
    return [(p.point.x, p.point.y, p.point.z) for p in points]


def _flat(coords):
    return [value for point in coords for value in point]


def _close(a, b):
    return all(math.isclose(x, y, abs_tol=1e-9) for pa, pb in zip(a, b) for x, y in zip(pa, pb))


def test_position_from_msg():
    state = JointState(["a", "b"], [0.25, -1.5])
    assert position_from_msg("b", state) == -1.5
    assert position_from_msg("missing", state) == 0.0


def test_project_applies_joint_position():
    model = ChainModel("arm", _tree(), "base_link", "link1")
    points = model.project(_data("arm", [(1.0, 0.0, 0.0)], "link1", math.pi / 2), _Offsets())
    assert [p.frame_id for p in points] == ["base_link"]
    assert _close(_coords(points), [(1.0, 1.0, 0.0)])


def test_joint_offset_adds_to_position():
    model = ChainModel("arm", _tree(), "base_link", "camera_link")
    features = [(0.1, 0.2, 0.3), (-0.4, 0.0, 1.0)]
    with_offset = model.project(
        _data("arm", features, "camera_link", 0.3), _Offsets({"joint1": 0.2})
    )
    direct = model.project(_data("arm", features, "camera_link", 0.5), _Offsets())
    assert len(with_offset) == 2
    assert _close(_coords(with_offset), _coords(direct))


def test_missing_joint_state_is_zero():
    model = ChainModel("arm", _tree(), "base_link", "link1")
    data = _data("arm", [(0.3, 0.1, 0.0)], "link1", 0.0)
    empty = CalibrationData(JointState(), data.observations)
    result = _flat(_coords(model.project(empty, _Offsets())))
    assert result == pytest.approx([1.3, 0.1, 0.0], abs=1e-9)
    assert result == pytest.approx(_flat(_coords(model.project(data, _Offsets()))), abs=1e-9)


def test_missing_sensor_projects_nothing():
    model = ChainModel("arm", _tree(), "base_link", "link1")
    assert model.project(_data("other", [(1.0, 0.0, 0.0)], "link1"), _Offsets()) == []


def test_frame_correction_moves_joint_origin():
    features = [(0.2, 0.0, 0.1)]
    corrected = ChainModel("cam", _tree(), "base_link", "camera_link").project(
        _data("cam", features, "camera_link", math.pi / 2),
        _Offsets(frames={"camera_joint": Frame(p=(0.1, 0.0, 0.0))}),
    )
    moved = ChainModel("cam", _tree((0.1, 0.0, 0.5)), "base_link", "camera_link").project(
        _data("cam", features, "camera_link", math.pi / 2), _Offsets()
    )
    assert _flat(_coords(corrected)) == pytest.approx([1.0, 0.3, 0.6], abs=1e-9)
    assert _flat(_coords(moved)) == pytest.approx([1.0, 0.3, 0.6], abs=1e-9)


def test_feature_frame_offset_applied_before_fk():
    model = ChainModel("arm", _tree(), "base_link", "link1")
    offsets = _Offsets(frames={"checkerboard": Frame(p=(0.0, 0.0, 0.2))})
    in_board = model.project(_data("arm", [(0.0, 0.0, 0.0)], "checkerboard", 0.7), offsets)
    in_tip = model.project(_data("arm", [(0.0, 0.0, 0.2)], "link1", 0.7), offsets)
    assert _flat(_coords(in_board)) == pytest.approx([1.0, 0.0, 0.2], abs=1e-9)
    assert _flat(_coords(in_tip)) == pytest.approx([1.0, 0.0, 0.2], abs=1e-9)

    unknown = model.project(_data("arm", [(0.0, 0.0, 0.2)], "elsewhere", 0.7), offsets)
    assert _flat(_coords(unknown)) == pytest.approx([1.0, 0.0, 0.2], abs=1e-9)


def test_bad_chain_raises():
    with pytest.raises(ValueError, match="Failed to build a chain model"):
        ChainModel("arm", _tree(), "base_link", "no_such_link")


def test_camera_without_offsets_is_identity():
    model = Camera3dModel("camera", "camera", _tree(), "base_link", "base_link")
    features = [(0.2, -0.1, 1.5), (-0.3, 0.25, 2.0)]
    points = model.project(_data("camera", features, "base_link"), _Offsets())
    assert model.model_type == "Camera3dModel"
    assert [p.frame_id for p in points] == ["base_link", "base_link"]
    assert _close(_coords(points), features)


def test_camera_focal_length_offset():
    model = Camera3dModel("camera", "camera", _tree(), "base_link", "base_link")
    x, y, z = 0.2, -0.1, 1.5
    offset = 0.05
    (point,) = model.project(
        _data("camera", [(x, y, z)], "base_link"), _Offsets({"camera_fx": offset})
    )
    assert math.isclose(point.point.z, z)
    assert math.isclose(point.point.y, y)
    assert math.isclose((point.point.x - (-319.5 * offset * z / 525.0)) * (1 + offset), x)


def test_camera_driver_z_scaling():
    model = Camera3dModel("camera", "camera", _tree(), "base_link", "base_link")
    x, y, z = 0.2, -0.1, 1.5
    params = [CameraParameter("z_scaling", 2.0), CameraParameter("z_offset_mm", 0.0)]
    (point,) = model.project(_data("camera", [(x, y, z)], "base_link", parameters=params), _Offsets())
    assert math.isclose(point.point.z * 2.0, z)
    assert math.isclose(point.point.x / point.point.z, x / z)
    assert math.isclose(point.point.y / point.point.z, y / z)


def test_camera_uses_param_name_for_offsets():
    model = Camera3dModel("camera", "head", _tree(), "base_link", "base_link")
    x, y, z = 0.0, 0.0, 1.0
    data = _data("camera", [(x, y, z)], "base_link")
    (shifted,) = model.project(data, _Offsets({"head_z_offset": 0.1}))
    (ignored,) = model.project(data, _Offsets({"camera_z_offset": 0.1}))
    assert math.isclose(shifted.point.z - 0.1, z)
    assert math.isclose(ignored.point.z, z)


def test_camera_missing_sensor():
    model = Camera3dModel("camera", "camera", _tree(), "base_link", "base_link")
    assert model.project(_data("arm", [(0.1, 0.1, 1.0)], "base_link"), _Offsets()) == []