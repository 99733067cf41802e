"""Residual that keeps calibration offsets from growing outrageously large."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from robocal.chain_errors import UpdatableOffsets
from robocal.kinematics import axis_magnitude_from_rotation


class OutrageousError:
    """Seven residuals: the scaled joint offset, frame translation and frame rotation."""

    num_residuals = 7

    def __init__(
        self,
        offsets: UpdatableOffsets,
        name: str,
        joint_scaling: float = 1.0,
        position_scaling: float = 1.0,
        rotation_scaling: float = 1.0,
    ):
        self.offsets = offsets
        self.name = name
        self.joint = joint_scaling
        self.position = position_scaling
        self.rotation = rotation_scaling

    def __call__(self, free_params: Sequence[float]) -> np.ndarray:
        self.offsets.update(free_params)
        residuals = np.zeros(7)
        residuals[0] = self.joint * self.offsets.get(self.name)
        frame = self.offsets.get_frame(self.name)
        if frame is not None:
            residuals[1:4] = self.position * frame.p
            residuals[4:7] = self.rotation * np.abs(axis_magnitude_from_rotation(frame.M))
        return residuals