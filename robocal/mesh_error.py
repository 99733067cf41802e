"""Residual between projected points and the edges of a collision mesh."""

from __future__ import annotations

import sys
from typing import Sequence

import numpy as np

from robocal.chain_errors import UpdatableOffsets
from robocal.mesh_loader import Mesh
from robocal.messages import CalibrationData, get_sensor_index
from robocal.models import ChainModel


def dist_to_line(a: Sequence[float], b: Sequence[float], c: Sequence[float]) -> float:
    """Squared distance from point ``c`` to the line segment ``a``-``b``."""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    c = np.asarray(c, dtype=float)
    ab = b - a
    ac = c - a
    bc = c - b

    e = float(ac @ ab)
    if e <= 0.0:
        # A is the closest point of the segment
        return float(ac @ ac)
    f = float(ab @ ab)
    if e >= f:
        # B is the closest point of the segment
        return float(bc @ bc)
    # C projects between A and B
    return float(ac @ ac) - e * e / f


def _squared_distances(starts: np.ndarray, ends: np.ndarray, point: np.ndarray) -> np.ndarray:
    """Squared distances from ``point`` to many segments at once."""
    ab = ends - starts
    ac = point - starts
    bc = point - ends
    e = np.einsum("ij,ij->i", ac, ab)
    f = np.einsum("ij,ij->i", ab, ab)
    ac2 = np.einsum("ij,ij->i", ac, ac)
    bc2 = np.einsum("ij,ij->i", bc, bc)
    with np.errstate(divide="ignore", invalid="ignore"):
        between = ac2 - np.where(f > 0.0, e * e / np.where(f > 0.0, f, 1.0), 0.0)
    return np.where(e <= 0.0, ac2, np.where(e >= f, bc2, between))


class Chain3dToMesh:
    """Distance of each projected feature to the nearest edge of a mesh triangle.

    Yields one residual per feature of ``chain_model``'s observation.
    """

    def __init__(
        self,
        chain_model: ChainModel,
        offsets: UpdatableOffsets,
        data: CalibrationData,
        mesh: Mesh,
    ):
        index = get_sensor_index(data, chain_model.name)
        if index is None:
            raise ValueError(
                f"Sensor name {chain_model.name!r} doesn't match any of the existing finders"
            )
        self.chain_model = chain_model
        self.offsets = offsets
        self.data = data
        self.mesh = mesh
        self.num_residuals = len(data.observations[index].features)

        vertices = np.asarray(mesh.vertices, dtype=float).reshape(-1, 3)
        triangles = np.asarray(mesh.triangles, dtype=int).reshape(-1, 3)
        a, b, c = (vertices[triangles[:, k]] for k in range(3))
        # Edges A-B, B-C and C-A of every triangle
        self._starts = np.concatenate([a, b, c])
        self._ends = np.concatenate([b, c, a])

    def __call__(self, free_params: Sequence[float]) -> np.ndarray:
        self.offsets.update(free_params)
        points = self.chain_model.project(self.data, self.offsets)
        residuals = np.empty(len(points))
        for i, stamped in enumerate(points):
            p = np.array([stamped.point.x, stamped.point.y, stamped.point.z])
            if len(self._starts):
                dist = float(_squared_distances(self._starts, self._ends, p).min())
            else:
                dist = sys.float_info.max
            residuals[i] = np.sqrt(dist)
        return residuals