"""Indices into camera matrices and applying calibrated intrinsics offsets."""

from __future__ import annotations

from dataclasses import replace

from robocal.messages import CameraInfo

P_FX_INDEX = 0
P_FY_INDEX = 5
P_CX_INDEX = 2
P_CY_INDEX = 6

K_FX_INDEX = 0
K_FY_INDEX = 4
K_CX_INDEX = 2
K_CY_INDEX = 5

D_1 = 0
D_2 = 1
D_3 = 2
D_4 = 3
D_5 = 4

PARAMS_CX_INDEX = 0
PARAMS_CY_INDEX = 1
PARAMS_FX_INDEX = 2
PARAMS_FY_INDEX = 3
PARAMS_Z_SCALE_INDEX = 4
PARAMS_Z_OFFSET_INDEX = 5


def update_camera_info(
    camera_fx: float,
    camera_fy: float,
    camera_cx: float,
    camera_cy: float,
    info: CameraInfo,
) -> CameraInfo:
    """Return a copy of ``info`` with focal lengths and centres scaled by (1 + offset)."""
    P = list(info.P)
    K = list(info.K)
    for matrix, indices in (
        (P, (P_CX_INDEX, P_CY_INDEX, P_FX_INDEX, P_FY_INDEX)),
        (K, (K_CX_INDEX, K_CY_INDEX, K_FX_INDEX, K_FY_INDEX)),
    ):
        for index, offset in zip(indices, (camera_cx, camera_cy, camera_fx, camera_fy)):
            matrix[index] *= offset + 1.0
    return replace(info, P=P, K=K, D=list(info.D), R=list(info.R))