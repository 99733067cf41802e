"""Loading the collision meshes of links, placed in their link frames."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence

import numpy as np

from robocal.urdf import UrdfModel

logger = logging.getLogger(__name__)

_BINARY_TRIANGLE = np.dtype([("normal", "<f4", (3,)), ("v", "<f4", (3, 3)), ("attr", "<u2")])


class MeshLoadError(Exception):
    """A collision mesh cannot be found or read."""


@dataclass
class Mesh:
    """Vertices as an Nx3 array and triangles as an Mx3 array of vertex indices."""

    vertices: np.ndarray
    triangles: np.ndarray

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def triangle_count(self) -> int:
        return len(self.triangles)


def _index_corners(corners: np.ndarray) -> Mesh:
    """Merge identical corners into shared vertices."""
    index: dict[tuple[float, float, float], int] = {}
    ids = [index.setdefault(tuple(float(c) for c in corner), len(index)) for corner in corners]
    vertices = np.array(list(index), dtype=float).reshape(-1, 3)
    triangles = np.array(ids, dtype=int).reshape(-1, 3)
    return Mesh(vertices, triangles)


def _ascii_corners(data: bytes) -> np.ndarray:
    tokens = data.decode("ascii", errors="replace").split()
    corners = []
    position = 0
    while position < len(tokens):
        if tokens[position] == "vertex":
            values = tokens[position + 1 : position + 4]
            if len(values) != 3:
                raise MeshLoadError("truncated vertex in ASCII STL")
            try:
                corners.append([float(v) for v in values])
            except ValueError as exc:
                raise MeshLoadError(f"malformed vertex in ASCII STL: {values}") from exc
            position += 4
        else:
            position += 1
    if len(corners) % 3:
        raise MeshLoadError("ASCII STL vertex count is not a multiple of three")
    return np.array(corners, dtype=float).reshape(-1, 3)


def read_stl(path: str | Path, scale: Sequence[float] = (1.0, 1.0, 1.0)) -> Mesh:
    """Read an ASCII or binary STL file, merging shared vertices and applying ``scale``."""
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        raise MeshLoadError(f"cannot read {path}: {exc}") from exc

    count = int.from_bytes(data[80:84], "little") if len(data) >= 84 else -1
    if count >= 0 and len(data) == 84 + _BINARY_TRIANGLE.itemsize * count:
        records = np.frombuffer(data, dtype=_BINARY_TRIANGLE, count=count, offset=84)
        corners = records["v"].reshape(-1, 3).astype(float)
    elif data.lstrip().startswith(b"solid"):
        corners = _ascii_corners(data)
    else:
        raise MeshLoadError(f"{path} is not an STL file")

    mesh = _index_corners(corners)
    mesh.vertices = mesh.vertices * np.asarray(scale, dtype=float).reshape(3)
    return mesh


class MeshLoader:
    """Loads and caches link collision meshes, transformed into the link frame.

    ``package_paths`` maps package names to directories, used to resolve
    ``package://name/...`` resources.
    """

    def __init__(self, model: UrdfModel, package_paths: Mapping[str, str | Path] | None = None):
        self.model = model
        self.package_paths = dict(package_paths or {})
        self._meshes: dict[str, Mesh] = {}

    def _resolve(self, resource: str) -> Path:
        if resource.startswith("package://"):
            package, _, relative = resource[len("package://") :].partition("/")
            if package not in self.package_paths:
                raise MeshLoadError(f"unknown package {package!r} in {resource}")
            return Path(self.package_paths[package]) / relative
        if resource.startswith("file://"):
            return Path(resource[len("file://") :])
        return Path(resource)

    def get_collision_mesh(self, link_name: str) -> Mesh:
        """The collision mesh of ``link_name``; MeshLoadError if it has none."""
        if link_name in self._meshes:
            return self._meshes[link_name]

        try:
            link = self.model.get_link(link_name)
        except KeyError:
            raise MeshLoadError(f"Cannot find {link_name} in URDF") from None
        collision = link.collision
        if collision is None or collision.geometry_type is None:
            raise MeshLoadError(f"{link_name} does not have collision geometry description.")
        if collision.mesh is None:
            raise MeshLoadError(f"{link_name} does not have mesh geometry")

        path = self._resolve(collision.mesh.filename)
        if path.suffix.lower() != ".stl":
            raise MeshLoadError(f"unsupported mesh format: {path}")
        mesh = read_stl(path, collision.mesh.scale)
        logger.info("Loaded %s with %d vertices", collision.mesh.filename, mesh.vertex_count)

        origin = collision.origin
        mesh.vertices = mesh.vertices @ origin.M.matrix.T + origin.p
        self._meshes[link_name] = mesh
        return mesh