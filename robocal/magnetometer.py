"""Hard iron calibration of a magnetometer from a set of field samples."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np
from scipy.optimize import least_squares

INITIAL_FIELD_STRENGTH = 0.45


def _as_array(samples: Iterable) -> np.ndarray:
    """Samples as an Nx3 array; each sample is (x, y, z) or has x, y, z attributes."""
    rows = [
        (s.x, s.y, s.z) if hasattr(s, "x") else tuple(s)
        for s in samples
    ]
    if not rows:
        return np.zeros((0, 3))
    array = np.asarray(rows, dtype=float)
    if array.ndim != 2 or array.shape[1] != 3:
        raise ValueError("each sample needs three components")
    return array


class HardIronOffsetError:
    """Residual of one sample for parameters (field strength, bias x, bias y, bias z)."""

    num_residuals = 1

    def __init__(self, x: float, y: float, z: float):
        self.x = x
        self.y = y
        self.z = z

    def __call__(self, params: Sequence[float]) -> np.ndarray:
        strength, bx, by, bz = params
        return np.array(
            [
                (self.x - bx) ** 2
                + (self.y - by) ** 2
                + (self.z - bz) ** 2
                - strength * strength
            ]
        )


@dataclass(frozen=True)
class HardIronCalibration:
    """Result of a hard iron calibration."""

    field_strength: float
    bias: tuple[float, float, float]
    initial_bias: tuple[float, float, float]
    cost: float
    converged: bool
    message: str

    def __str__(self) -> str:
        return "\n".join(
            f"mag_bias_{axis}: {value:g}" for axis, value in zip("xyz", self.bias)
        )


def initial_bias(samples: Iterable) -> tuple[float, float, float]:
    """Mean of the samples, the starting estimate of the hard iron offsets."""
    array = _as_array(samples)
    if not len(array):
        raise ValueError("no magnetometer samples")
    mean = array.mean(axis=0)
    return float(mean[0]), float(mean[1]), float(mean[2])


def calibrate_hard_iron(samples: Iterable, max_num_iterations: int = 1000) -> HardIronCalibration:
    """Fit a sphere to the samples: its radius is the field strength, its centre the bias."""
    array = _as_array(samples)
    start_bias = initial_bias(array)
    x0 = np.array([INITIAL_FIELD_STRENGTH, *start_bias])

    def residuals(params: np.ndarray) -> np.ndarray:
        diff = array - params[1:]
        return np.einsum("ij,ij->i", diff, diff) - params[0] ** 2

    def jacobian(params: np.ndarray) -> np.ndarray:
        jac = np.empty((len(array), 4))
        jac[:, 0] = -2.0 * params[0]
        jac[:, 1:] = -2.0 * (array - params[1:])
        return jac

    method = "lm" if len(array) >= 4 else "trf"
    result = least_squares(
        residuals,
        x0,
        jac=jacobian,
        method=method,
        ftol=1e-10,
        max_nfev=max_num_iterations,
    )
    strength, bx, by, bz = (float(v) for v in result.x)
    return HardIronCalibration(
        field_strength=strength,
        bias=(bx, by, bz),
        initial_bias=start_bias,
        cost=float(result.cost),
        converged=bool(result.success),
        message=str(result.message),
    )