"""Residual between planes fitted to two projected point sets."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from robocal.chain_errors import UpdatableOffsets
from robocal.messages import CalibrationData
from robocal.models import ChainModel
from robocal.plane_fit import get_centroid, get_matrix, get_plane


class PlaneToPlaneError:
    """Difference of plane normals (three residuals) and offset of A's centroid from B's plane."""

    num_residuals = 4

    def __init__(
        self,
        model_a: ChainModel,
        model_b: ChainModel,
        offsets: UpdatableOffsets,
        data: CalibrationData,
        scale_normal: float = 1.0,
        scale_offset: float = 1.0,
    ):
        self.model_a = model_a
        self.model_b = model_b
        self.offsets = offsets
        self.data = data
        self.scale_normal = scale_normal
        self.scale_offset = scale_offset

    def __call__(self, free_params: Sequence[float]) -> np.ndarray:
        self.offsets.update(free_params)

        matrix_a = get_matrix(self.model_a.project(self.data, self.offsets))
        normal_a, _ = get_plane(matrix_a)

        matrix_b = get_matrix(self.model_b.project(self.data, self.offsets))
        normal_b, d_b = get_plane(matrix_b)

        residuals = np.empty(4)
        residuals[:3] = np.abs(normal_a - normal_b) * self.scale_normal
        centroid_a = get_centroid(matrix_a)
        residuals[3] = abs(float(normal_b @ centroid_a) + d_b) * self.scale_offset
        return residuals