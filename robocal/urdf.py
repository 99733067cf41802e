"""Reading robot descriptions: links, collision geometry and joints."""

from __future__ import annotations

import xml.etree.ElementTree as ElementTree
from collections import deque
from dataclasses import dataclass, field

from robocal.kinematics import Frame, Joint, JointType, Rotation, Segment, Tree

_JOINT_TYPES = {
    "revolute": JointType.ROTATIONAL,
    "continuous": JointType.ROTATIONAL,
    "prismatic": JointType.TRANSLATIONAL,
    "fixed": JointType.NONE,
    "floating": JointType.NONE,
    "planar": JointType.NONE,
}


class UrdfError(ValueError):
    """The robot description cannot be understood."""


@dataclass(frozen=True)
class MeshGeometry:
    """A mesh resource and the scale applied to its vertices."""

    filename: str
    scale: tuple[float, float, float] = (1.0, 1.0, 1.0)


@dataclass
class Collision:
    """Collision geometry of a link, placed at ``origin`` in the link frame."""

    origin: Frame = field(default_factory=Frame)
    geometry_type: str | None = None
    mesh: MeshGeometry | None = None


@dataclass
class Link:
    name: str
    collision: Collision | None = None


@dataclass
class _JointDescription:
    name: str
    type: JointType
    parent: str
    child: str
    origin: Frame
    axis: tuple[float, float, float]


def _floats(text: str | None, default: tuple[float, ...], what: str) -> tuple[float, ...]:
    if text is None:
        return default
    try:
        values = tuple(float(v) for v in text.split())
    except ValueError as exc:
        raise UrdfError(f"malformed {what}: {text!r}") from exc
    if len(values) != len(default):
        raise UrdfError(f"{what} needs {len(default)} values, got {text!r}")
    return values


def _parse_origin(element: ElementTree.Element) -> Frame:
    origin = element.find("origin")
    if origin is None:
        return Frame()
    xyz = _floats(origin.get("xyz"), (0.0, 0.0, 0.0), "origin xyz")
    rpy = _floats(origin.get("rpy"), (0.0, 0.0, 0.0), "origin rpy")
    return Frame(Rotation.from_rpy(*rpy), xyz)


def _parse_collision(element: ElementTree.Element) -> Collision:
    origin = _parse_origin(element)
    geometry = element.find("geometry")
    shape = None if geometry is None else next(iter(geometry), None)
    if shape is None:
        return Collision(origin)
    if shape.tag == "mesh":
        filename = shape.get("filename")
        if not filename:
            raise UrdfError("mesh geometry without a filename")
        scale = _floats(shape.get("scale"), (1.0, 1.0, 1.0), "mesh scale")
        return Collision(origin, "mesh", MeshGeometry(filename, scale))
    return Collision(origin, shape.tag)


def _parse_joint(element: ElementTree.Element) -> _JointDescription:
    name = element.get("name")
    if not name:
        raise UrdfError("joint without a name")
    kind = element.get("type")
    if kind not in _JOINT_TYPES:
        raise UrdfError(f"joint {name!r} has unknown type {kind!r}")
    parent = element.find("parent")
    child = element.find("child")
    if parent is None or child is None or not parent.get("link") or not child.get("link"):
        raise UrdfError(f"joint {name!r} needs a parent and a child link")
    axis_element = element.find("axis")
    axis = _floats(
        None if axis_element is None else axis_element.get("xyz"),
        (1.0, 0.0, 0.0),
        "joint axis",
    )
    return _JointDescription(
        name, _JOINT_TYPES[kind], parent.get("link"), child.get("link"), _parse_origin(element), axis
    )


class UrdfModel:
    """Links and joints of a robot description."""

    def __init__(self, name: str, links: dict[str, Link], joints: list[_JointDescription]):
        self.name = name
        self.links = links
        self.joints = joints
        children = {joint.child for joint in joints}
        roots = [link for link in links if link not in children]
        if len(roots) != 1:
            raise UrdfError(f"expected exactly one root link, found {len(roots)}")
        self.root = roots[0]

    @classmethod
    def from_string(cls, text: str) -> UrdfModel:
        try:
            robot = ElementTree.fromstring(text)
        except ElementTree.ParseError as exc:
            raise UrdfError(f"invalid XML: {exc}") from exc
        if robot.tag != "robot":
            raise UrdfError(f"root element is <{robot.tag}>, not <robot>")

        links: dict[str, Link] = {}
        for element in robot.findall("link"):
            name = element.get("name")
            if not name:
                raise UrdfError("link without a name")
            if name in links:
                raise UrdfError(f"link {name!r} is defined twice")
            collision = element.find("collision")
            links[name] = Link(name, None if collision is None else _parse_collision(collision))

        joints = [_parse_joint(element) for element in robot.findall("joint")]
        seen_children: set[str] = set()
        for joint in joints:
            for link in (joint.parent, joint.child):
                if link not in links:
                    raise UrdfError(f"joint {joint.name!r} refers to unknown link {link!r}")
            if joint.child in seen_children:
                raise UrdfError(f"link {joint.child!r} has more than one parent joint")
            seen_children.add(joint.child)
        return cls(robot.get("name", ""), links, joints)

    def get_link(self, name: str) -> Link:
        """The link called ``name``; KeyError if there is none."""
        return self.links[name]

    def to_tree(self) -> Tree:
        """Kinematic tree with one segment per child link."""
        tree = Tree(self.root)
        by_parent: dict[str, list[_JointDescription]] = {}
        for joint in self.joints:
            by_parent.setdefault(joint.parent, []).append(joint)
        pending = deque([self.root])
        while pending:
            parent = pending.popleft()
            for joint in by_parent.get(parent, []):
                kinematic_joint = Joint(joint.name, joint.type, joint.axis, joint.origin)
                origin = Frame(joint.origin.M, joint.origin.p)
                tree.add_segment(Segment(joint.child, kinematic_joint, origin), parent)
                pending.append(joint.child)
        return tree