"""Residuals between two projected point sets, and between points and a plane."""

from __future__ import annotations

import logging
import math
from typing import Protocol, Sequence

import numpy as np

from robocal.messages import CalibrationData, get_sensor_index
from robocal.models import CalibrationOffsets, ChainModel

logger = logging.getLogger(__name__)


class UpdatableOffsets(CalibrationOffsets, Protocol):
    """Offsets that can be refreshed from the solver's free parameters."""

    def update(self, free_params: Sequence[float]) -> None:
        ...


def _feature_count(model: ChainModel, data: CalibrationData) -> int:
    index = get_sensor_index(data, model.name)
    if index is None:
        raise ValueError(
            f"Sensor name {model.name!r} doesn't match any of the existing finders"
        )
    return len(data.observations[index].features)


class Chain3dToChain3d:
    """Residual between the same features seen through two models.

    Yields three residuals (x, y, z differences) per feature of ``a_model``.
    """

    def __init__(
        self,
        a_model: ChainModel,
        b_model: ChainModel,
        offsets: UpdatableOffsets,
        data: CalibrationData,
    ):
        self.a_model = a_model
        self.b_model = b_model
        self.offsets = offsets
        self.data = data
        self.num_residuals = 3 * _feature_count(a_model, data)

    def __call__(self, free_params: Sequence[float]) -> np.ndarray:
        self.offsets.update(free_params)
        a_pts = self.a_model.project(self.data, self.offsets)
        b_pts = self.b_model.project(self.data, self.offsets)
        if len(a_pts) != len(b_pts):
            raise ValueError("Observations do not match in size.")

        residuals = np.zeros(3 * len(a_pts))
        for i, (a, b) in enumerate(zip(a_pts, b_pts)):
            if a.frame_id != b.frame_id:
                logger.warning("Projected observation frame_ids do not match.")
            residuals[3 * i : 3 * i + 3] = (
                a.point.x - b.point.x,
                a.point.y - b.point.y,
                a.point.z - b.point.z,
            )
        return residuals


class Chain3dToPlane:
    """Scaled distance of each projected feature to the plane ``ax + by + cz + d = 0``."""

    def __init__(
        self,
        chain_model: ChainModel,
        offsets: UpdatableOffsets,
        data: CalibrationData,
        a: float = 0.0,
        b: float = 0.0,
        c: float = 1.0,
        d: float = 0.0,
        scale: float = 1.0,
    ):
        self.chain_model = chain_model
        self.offsets = offsets
        self.data = data
        self.a, self.b, self.c, self.d = a, b, c, d

        denom = math.sqrt(a * a + b * b + c * c)
        if denom == 0.0:
            raise ValueError("Plane normal is zero")
        if denom < 0.1:
            logger.warning("Plane normal is extremely small: %g", denom)
        self.scale = scale / denom
        self.num_residuals = _feature_count(chain_model, data)

    def __call__(self, free_params: Sequence[float]) -> np.ndarray:
        self.offsets.update(free_params)
        points = self.chain_model.project(self.data, self.offsets)
        return np.array(
            [
                abs(self.a * p.point.x + self.b * p.point.y + self.c * p.point.z + self.d)
                * self.scale
                for p in points
            ],
            dtype=float,
        )