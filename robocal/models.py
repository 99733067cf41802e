"""Models that project sensor observations into the root frame of a chain."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from robocal.camera_info import P_CX_INDEX, P_CY_INDEX, P_FX_INDEX, P_FY_INDEX
from robocal.kinematics import Frame, JointType, Tree
from robocal.messages import (
    CalibrationData,
    JointState,
    Point,
    PointStamped,
    get_sensor_index,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class CalibrationOffsets(Protocol):
    """Offsets the solver is trying: scalar offsets by name and frame corrections."""

    def get(self, name: str) -> float:
        """Offset for ``name``, 0.0 when there is none."""
        ...

    def get_frame(self, name: str) -> Frame | None:
        """Frame correction for ``name``, or None when there is none."""
        ...


def position_from_msg(name: str, msg: JointState) -> float:
    """Position of joint ``name`` in ``msg``; 0.0 (with a warning) if it is absent."""
    for joint_name, position in zip(msg.name, msg.position):
        if joint_name == name:
            return position
    logger.warning("Unable to find %s in JointState", name)
    return 0.0


class ChainModel:
    """A kinematic chain from ``root`` to ``tip`` carrying a sensor called ``name``."""

    model_type = "ChainModel"

    def __init__(self, name: str, tree: Tree, root: str, tip: str):
        self.name = name
        self.root = root
        self.tip = tip
        try:
            self.chain = tree.get_chain(root, tip)
        except ValueError as exc:
            message = (
                f"Failed to build a chain model from {root} to {tip}, check the link names"
            )
            logger.error(message)
            raise ValueError(message) from exc

    def _observation(self, data: CalibrationData):
        index = get_sensor_index(data, self.name)
        return None if index is None else data.observations[index]

    def project(self, data: CalibrationData, offsets: CalibrationOffsets) -> list[PointStamped]:
        """Positions of this sensor's features in the root frame."""
        observation = self._observation(data)
        if observation is None:
            return []

        fk = self.get_chain_fk(offsets, data.joint_states)
        points = []
        for feature in observation.features:
            p = Frame(p=(feature.point.x, feature.point.y, feature.point.z))
            # Features given in another frame (e.g. a checkerboard) get that
            # frame's offset applied before the forward kinematics.
            if feature.frame_id != self.tip:
                frame_offset = offsets.get_frame(feature.frame_id)
                if frame_offset is not None:
                    p = frame_offset @ p
            p = fk @ p
            points.append(PointStamped(self.root, Point(*(float(c) for c in p.p))))
        return points

    def get_chain_fk(self, offsets: CalibrationOffsets, state: JointState) -> Frame:
        """Forward kinematics from root to tip with the offsets applied."""
        p_out = Frame.identity()
        for segment in self.chain:
            name = segment.joint.name
            correction = offsets.get_frame(name)
            if correction is None:
                correction = Frame.identity()

            if segment.joint.type is not JointType.NONE:
                position = position_from_msg(name, state) + offsets.get(name)
                pose = segment.pose(position)
            else:
                pose = segment.pose(0.0)

            totip = segment.tip
            p_out = p_out @ Frame(p=pose.p + totip.M @ correction.p)
            p_out = p_out @ Frame(totip.M @ correction.M @ totip.M.inverse() @ pose.M)
        return p_out

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, {self.root!r} -> {self.tip!r})"


class Camera3dModel(ChainModel):
    """A depth camera on a kinematic chain whose intrinsics are also calibrated.

    ``param_name`` prefixes the offsets of the intrinsics, e.g. ``<param_name>_fx``.
    """

    model_type = "Camera3dModel"

    def __init__(self, name: str, param_name: str, tree: Tree, root: str, tip: str):
        super().__init__(name, tree, root, tip)
        self.param_name = param_name

    def project(self, data: CalibrationData, offsets: CalibrationOffsets) -> list[PointStamped]:
        """Reproject observed points through calibrated intrinsics, then into the root frame."""
        observation = self._observation(data)
        if observation is None:
            return []

        info = observation.ext_camera_info
        P = info.camera_info.P
        if len(P) != 12:
            logger.warning("Unexpected CameraInfo projection matrix size")
        camera_fx = P[P_FX_INDEX]
        camera_fy = P[P_FY_INDEX]
        camera_cx = P[P_CX_INDEX]
        camera_cy = P[P_CY_INDEX]

        # new_depth = (depth + z_offset) * z_scaling, as applied by the depth driver
        z_offset = 0.0
        z_scaling = 1.0
        for parameter in info.parameters:
            if parameter.name == "z_scaling":
                z_scaling = parameter.value
            elif parameter.name == "z_offset_mm":
                z_offset = parameter.value / 1000.0

        prefix = self.param_name
        new_fx = camera_fx * (1.0 + offsets.get(prefix + "_fx"))
        new_fy = camera_fy * (1.0 + offsets.get(prefix + "_fy"))
        new_cx = camera_cx * (1.0 + offsets.get(prefix + "_cx"))
        new_cy = camera_cy * (1.0 + offsets.get(prefix + "_cy"))
        new_z_offset = offsets.get(prefix + "_z_offset")
        new_z_scaling = 1.0 + offsets.get(prefix + "_z_scaling")

        fk = self.get_chain_fk(offsets, data.joint_states)
        points = []
        for feature in observation.features:
            x, y, z = feature.point.x, feature.point.y, feature.point.z
            u = x * camera_fx / z + camera_cx
            v = y * camera_fy / z + camera_cy
            depth = z / z_scaling - z_offset

            new_z = (depth + new_z_offset) * new_z_scaling
            new_x = (u - new_cx) * new_z / new_fx
            new_y = (v - new_cy) * new_z / new_fy

            p = fk @ Frame(p=(new_x, new_y, new_z))
            points.append(PointStamped(self.root, Point(*(float(c) for c in p.p))))
        return points