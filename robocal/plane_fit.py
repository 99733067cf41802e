"""Point matrices, centroids and least-squares plane fitting."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from robocal.messages import PointStamped


def get_matrix(points: Sequence[PointStamped]) -> np.ndarray:
    """Stack points as the columns of a 3xN matrix."""
    matrix = np.empty((3, len(points)))
    for column, stamped in enumerate(points):
        matrix[:, column] = (stamped.point.x, stamped.point.y, stamped.point.z)
    return matrix


def get_centroid(points: np.ndarray) -> np.ndarray:
    """Mean of the columns of a 3xN matrix."""
    return np.asarray(points, dtype=float).mean(axis=1)


def get_plane(points: np.ndarray) -> tuple[np.ndarray, float]:
    """Fit ``n . p + d = 0`` to the columns of a 3xN matrix; d is never negative."""
    points = np.asarray(points, dtype=float)
    centroid = get_centroid(points)
    centered = points - centroid[:, np.newaxis]
    u, _, _ = np.linalg.svd(centered, full_matrices=False)
    normal = u[:, -1].copy()
    d = -float(normal @ centroid)
    if d < 0:
        d = -d
        normal = -normal
    return normal, d