import numpy as np
import pytest

from robocal.kinematics import Frame, Joint, JointType, Segment, Tree
from robocal.messages import CalibrationData, JointState, Observation, Point, PointStamped
from robocal.models import ChainModel
from robocal.plane_errors import PlaneToPlaneError

GRID = [(0.0, 0.0), (0.1, 0.0), (0.0, 0.1), (0.1, 0.1), (0.05, 0.2)]


class FakeOffsets:
    def __init__(self, names=()):
        self.names = list(names)
        self.values = {}

    def update(self, free_params):
        self.values = dict(zip(self.names, (float(v) for v in free_params)))

    def get(self, name):
        return self.values.get(name, 0.0)

    def get_frame(self, name):
        return None


@pytest.fixture
def models():
    tree = Tree("base_link")
    arm_joint = Joint("arm_joint", JointType.ROTATIONAL, (0.0, 0.0, 1.0), Frame(p=(1.0, 0.0, 0.0)))
    tree.add_segment(Segment("arm", arm_joint, Frame(p=(1.0, 0.0, 0.0))), "base_link")
    cam_joint = Joint("cam_joint", JointType.NONE, origin=Frame(p=(0.0, 0.0, 1.0)))
    tree.add_segment(Segment("cam", cam_joint, Frame(p=(0.0, 0.0, 1.0))), "base_link")
    return (
        ChainModel("arm", tree, "base_link", "arm"),
        ChainModel("camera", tree, "base_link", "cam"),
    )


def make_data(arm_z, cam_z):
    arm = [PointStamped("arm", Point(x, y, arm_z(x))) for x, y in GRID]
    cam = [PointStamped("cam", Point(x + 1.0, y, cam_z(x))) for x, y in GRID]
    return CalibrationData(
        JointState(["arm_joint"], [0.0]),
        [Observation("arm", arm), Observation("camera", cam)],
    )


def test_coincident_planes_have_zero_residual(models):
    a, b = models
    data = make_data(lambda x: 0.2, lambda x: -0.8)
    error = PlaneToPlaneError(a, b, FakeOffsets(["arm_joint"]), data)
    residuals = error([0.0])
    assert residuals.shape == (4,)
    assert np.allclose(residuals, 0.0, atol=1e-9)


def test_parallel_planes_offset(models):
    a, b = models
    data = make_data(lambda x: 0.2, lambda x: -0.7)
    error = PlaneToPlaneError(a, b, FakeOffsets(["arm_joint"]), data, scale_offset=2.0)
    residuals = error([0.0])
    assert np.allclose(residuals[:3], 0.0, atol=1e-9)
    assert residuals[3] == pytest.approx(0.2)


def test_normal_residual_scales(models):
    a, b = models
    data = make_data(lambda x: 0.2, lambda x: -0.8 + 0.5 * x)
    one = PlaneToPlaneError(a, b, FakeOffsets(["arm_joint"]), data, scale_normal=1.0)
    three = PlaneToPlaneError(a, b, FakeOffsets(["arm_joint"]), data, scale_normal=3.0)
    r1 = one([0.0])
    r3 = three([0.0])
    assert np.linalg.norm(r1[:3]) > 1e-3
    assert r3[:3] == pytest.approx(3.0 * r1[:3])
    assert r3[3] == pytest.approx(r1[3])


def test_rotation_about_normal_keeps_planes_coincident(models):
    a, b = models
    data = make_data(lambda x: 0.2, lambda x: -0.8)
    error = PlaneToPlaneError(a, b, FakeOffsets(["arm_joint"]), data)
    assert np.allclose(error([0.7]), 0.0, atol=1e-9)


def test_tilted_planes_give_non_negative_residuals(models):
    a, b = models
    data = make_data(lambda x: 0.1 - x, lambda x: -0.6 + 2.0 * x)
    error = PlaneToPlaneError(a, b, FakeOffsets(["arm_joint"]), data)
    residuals = error([0.0])
    assert residuals.min() >= 0.0
    assert residuals[1] == pytest.approx(0.0, abs=1e-9)
    assert residuals[0] > 0.1
    assert residuals[2] > 1.0