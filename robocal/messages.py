"""Message types carrying calibration samples."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Point:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


@dataclass
class PointStamped:
    frame_id: str = ""
    point: Point = field(default_factory=Point)


@dataclass
class JointState:
    name: list[str] = field(default_factory=list)
    position: list[float] = field(default_factory=list)


@dataclass
class CameraInfo:
    height: int = 0
    width: int = 0
    distortion_model: str = ""
    D: list[float] = field(default_factory=list)
    K: list[float] = field(default_factory=lambda: [0.0] * 9)
    R: list[float] = field(default_factory=lambda: [0.0] * 9)
    P: list[float] = field(default_factory=lambda: [0.0] * 12)


@dataclass
class CameraParameter:
    name: str = ""
    value: float = 0.0


@dataclass
class ExtendedCameraInfo:
    camera_info: CameraInfo = field(default_factory=CameraInfo)
    parameters: list[CameraParameter] = field(default_factory=list)


@dataclass
class Observation:
    sensor_name: str = ""
    features: list[PointStamped] = field(default_factory=list)
    ext_camera_info: ExtendedCameraInfo = field(default_factory=ExtendedCameraInfo)


@dataclass
class CalibrationData:
    joint_states: JointState = field(default_factory=JointState)
    observations: list[Observation] = field(default_factory=list)


def get_sensor_index(msg: CalibrationData, sensor: str) -> int | None:
    """Index of the first observation from ``sensor``, or None if there is none."""
    return next(
        (i for i, obs in enumerate(msg.observations) if obs.sensor_name == sensor),
        None,
    )


def has_sensor(msg: CalibrationData, sensor: str) -> bool:
    """Whether the sample holds an observation from ``sensor``."""
    return get_sensor_index(msg, sensor) is not None