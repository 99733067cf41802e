"""Rotations, rigid frames and kinematic trees of joints and segments."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Sequence

import numpy as np

_EPSILON = 1e-12


def _vector(values: Sequence[float] | np.ndarray) -> np.ndarray:
    return np.array(values, dtype=float).reshape(3)


class Rotation:
    """A 3x3 rotation matrix."""

    __slots__ = ("matrix",)

    def __init__(self, matrix: Sequence[Sequence[float]] | np.ndarray | None = None):
        self.matrix = np.eye(3) if matrix is None else np.array(matrix, dtype=float).reshape(3, 3)

    @classmethod
    def identity(cls) -> Rotation:
        return cls()

    @classmethod
    def from_quaternion(cls, x: float, y: float, z: float, w: float) -> Rotation:
        """Build a rotation from quaternion components (not normalised)."""
        x2, y2, z2, w2 = x * x, y * y, z * z, w * w
        return cls(
            [
                [w2 + x2 - y2 - z2, 2 * x * y - 2 * w * z, 2 * x * z + 2 * w * y],
                [2 * w * z + 2 * x * y, w2 - x2 + y2 - z2, 2 * y * z - 2 * w * x],
                [2 * x * z - 2 * w * y, 2 * y * z + 2 * w * x, w2 - x2 - y2 + z2],
            ]
        )

    @classmethod
    def from_rpy(cls, roll: float, pitch: float, yaw: float) -> Rotation:
        """Rotation about fixed axes: X by roll, then Y by pitch, then Z by yaw."""
        ca, sa = math.cos(yaw), math.sin(yaw)
        cb, sb = math.cos(pitch), math.sin(pitch)
        cc, sc = math.cos(roll), math.sin(roll)
        return cls(
            [
                [ca * cb, ca * sb * sc - sa * cc, ca * sb * cc + sa * sc],
                [sa * cb, sa * sb * sc + ca * cc, sa * sb * cc - ca * sc],
                [-sb, cb * sc, cb * cc],
            ]
        )

    def to_quaternion(self) -> tuple[float, float, float, float]:
        """Return the quaternion (x, y, z, w) of this rotation."""
        m = self.matrix
        trace = m[0, 0] + m[1, 1] + m[2, 2]
        if trace > _EPSILON:
            s = 0.5 / math.sqrt(trace + 1.0)
            w = 0.25 / s
            x = (m[2, 1] - m[1, 2]) * s
            y = (m[0, 2] - m[2, 0]) * s
            z = (m[1, 0] - m[0, 1]) * s
        elif m[0, 0] > m[1, 1] and m[0, 0] > m[2, 2]:
            s = 2.0 * math.sqrt(1.0 + m[0, 0] - m[1, 1] - m[2, 2])
            w = (m[2, 1] - m[1, 2]) / s
            x = 0.25 * s
            y = (m[0, 1] + m[1, 0]) / s
            z = (m[0, 2] + m[2, 0]) / s
        elif m[1, 1] > m[2, 2]:
            s = 2.0 * math.sqrt(1.0 + m[1, 1] - m[0, 0] - m[2, 2])
            w = (m[0, 2] - m[2, 0]) / s
            x = (m[0, 1] + m[1, 0]) / s
            y = 0.25 * s
            z = (m[1, 2] + m[2, 1]) / s
        else:
            s = 2.0 * math.sqrt(1.0 + m[2, 2] - m[0, 0] - m[1, 1])
            w = (m[1, 0] - m[0, 1]) / s
            x = (m[0, 2] + m[2, 0]) / s
            y = (m[1, 2] + m[2, 1]) / s
            z = 0.25 * s
        return float(x), float(y), float(z), float(w)

    def to_rpy(self) -> tuple[float, float, float]:
        """Return (roll, pitch, yaw) of this rotation."""
        m = self.matrix
        pitch = math.atan2(-m[2, 0], math.sqrt(m[0, 0] ** 2 + m[1, 0] ** 2))
        if abs(pitch) > math.pi / 2.0 - _EPSILON:
            yaw = math.atan2(-m[0, 1], m[1, 1])
            roll = 0.0
        else:
            roll = math.atan2(m[2, 1], m[2, 2])
            yaw = math.atan2(m[1, 0], m[0, 0])
        return roll, pitch, yaw

    def inverse(self) -> Rotation:
        return Rotation(self.matrix.T)

    def __matmul__(self, other):
        if isinstance(other, Rotation):
            return Rotation(self.matrix @ other.matrix)
        if isinstance(other, Frame):
            return Frame(self @ other.M, self.matrix @ other.p)
        return self.matrix @ _vector(other)

    def __repr__(self) -> str:
        return f"Rotation({self.matrix.tolist()!r})"


def _about_axis(axis: Sequence[float] | np.ndarray, angle: float) -> Rotation:
    """Rotation by ``angle`` about ``axis`` (Rodrigues' formula)."""
    a = _vector(axis)
    norm = float(np.linalg.norm(a))
    if norm == 0.0:
        return Rotation()
    a = a / norm
    k = np.array([[0.0, -a[2], a[1]], [a[2], 0.0, -a[0]], [-a[1], a[0], 0.0]])
    return Rotation(np.eye(3) + math.sin(angle) * k + (1.0 - math.cos(angle)) * (k @ k))


class Frame:
    """A rigid transform: rotation ``M`` followed by translation ``p``."""

    __slots__ = ("M", "p")

    def __init__(self, M: Rotation | None = None, p: Sequence[float] | np.ndarray | None = None):
        self.M = Rotation() if M is None else M
        self.p = np.zeros(3) if p is None else _vector(p)

    @classmethod
    def identity(cls) -> Frame:
        return cls()

    def inverse(self) -> Frame:
        inv = self.M.inverse()
        return Frame(inv, -(inv.matrix @ self.p))

    def __matmul__(self, other):
        if isinstance(other, Frame):
            return Frame(self.M @ other.M, self.M.matrix @ other.p + self.p)
        if isinstance(other, Rotation):
            return Frame(self.M @ other, self.p)
        return self.M.matrix @ _vector(other) + self.p

    def __repr__(self) -> str:
        return f"Frame(M={self.M!r}, p={self.p.tolist()!r})"


class JointType(Enum):
    NONE = "none"
    ROTATIONAL = "rotational"
    TRANSLATIONAL = "translational"


@dataclass
class Joint:
    """A joint placed at ``origin`` moving along or about ``axis`` (in the joint frame)."""

    name: str
    type: JointType = JointType.NONE
    axis: tuple[float, float, float] = (0.0, 0.0, 1.0)
    origin: Frame = field(default_factory=Frame)

    def pose(self, q: float) -> Frame:
        """Transform from the parent frame to the moved joint frame."""
        if self.type is JointType.ROTATIONAL:
            return self.origin @ Frame(_about_axis(self.axis, q))
        if self.type is JointType.TRANSLATIONAL:
            a = _vector(self.axis)
            norm = float(np.linalg.norm(a))
            direction = a / norm if norm else a
            return self.origin @ Frame(p=direction * q)
        return Frame(self.origin.M, self.origin.p)


@dataclass
class Segment:
    """A joint with the frame reached at its tip; ``tip`` is that frame at q = 0."""

    name: str
    joint: Joint
    tip: Frame = field(default_factory=Frame)

    def __post_init__(self) -> None:
        self._relative_tip = self.joint.pose(0.0).inverse() @ self.tip

    def pose(self, q: float) -> Frame:
        """Transform from the segment's base to its tip at joint position ``q``."""
        return self.joint.pose(q) @ self._relative_tip

    def _reversed(self, name: str) -> Segment:
        relative_inverse = self._relative_tip.inverse()
        joint = Joint(
            self.joint.name,
            self.joint.type,
            tuple(-c for c in self.joint.axis),
            relative_inverse,
        )
        return Segment(name, joint, self.tip.inverse())


@dataclass
class Chain:
    """An ordered list of segments."""

    segments: list[Segment] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.segments)

    def __iter__(self) -> Iterator[Segment]:
        return iter(self.segments)

    def __getitem__(self, index: int) -> Segment:
        return self.segments[index]


class Tree:
    """A tree of segments hanging from a named root frame."""

    def __init__(self, root_name: str = "root"):
        self.root_name = root_name
        self._segments: dict[str, Segment] = {}
        self._parents: dict[str, str] = {}

    def __contains__(self, name: object) -> bool:
        return name == self.root_name or name in self._segments

    def __len__(self) -> int:
        return len(self._segments)

    def add_segment(self, segment: Segment, parent_name: str) -> None:
        if parent_name not in self:
            raise ValueError(f"parent {parent_name!r} is not in the tree")
        if segment.name in self:
            raise ValueError(f"segment {segment.name!r} is already in the tree")
        self._segments[segment.name] = segment
        self._parents[segment.name] = parent_name

    def _path_to_root(self, name: str) -> list[str]:
        path = [name]
        while path[-1] != self.root_name:
            path.append(self._parents[path[-1]])
        return path

    def get_chain(self, root: str, tip: str) -> Chain:
        """Chain of segments leading from frame ``root`` to frame ``tip``."""
        for name in (root, tip):
            if name not in self:
                raise ValueError(f"{name!r} is not in the tree")
        up = self._path_to_root(root)
        down = self._path_to_root(tip)
        down_set = set(down)
        common = next(name for name in up if name in down_set)
        segments = [
            self._segments[name]._reversed(self._parents[name])
            for name in up[: up.index(common)]
        ]
        segments.extend(self._segments[name] for name in reversed(down[: down.index(common)]))
        return Chain(segments)


def rotation_from_axis_magnitude(x: float, y: float, z: float) -> Rotation:
    """Rotation from an axis whose length is the rotation angle."""
    magnitude = math.sqrt(x * x + y * y + z * z)
    if magnitude == 0.0:
        return Rotation.from_quaternion(0.0, 0.0, 0.0, 1.0)
    s = math.sin(magnitude / 2.0)
    return Rotation.from_quaternion(
        x / magnitude * s,
        y / magnitude * s,
        z / magnitude * s,
        math.cos(magnitude / 2.0),
    )


def axis_magnitude_from_rotation(r: Rotation) -> tuple[float, float, float]:
    """Axis scaled by the rotation angle, the inverse of ``rotation_from_axis_magnitude``."""
    qx, qy, qz, qw = r.to_quaternion()
    if qw >= 1.0:
        return 0.0, 0.0, 0.0
    qw = max(qw, -1.0)
    magnitude = 2 * math.acos(qw)
    k = math.sqrt(1 - qw * qw)
    return (qx / k) * magnitude, (qy / k) * magnitude, (qz / k) * magnitude