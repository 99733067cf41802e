"""Running a calibration: build models and error blocks, then solve for the offsets."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Sequence

import numpy as np
from scipy.optimize import least_squares

from robocal.chain_errors import Chain3dToChain3d, Chain3dToPlane
from robocal.kinematics import (
    Frame,
    Rotation,
    Tree,
    axis_magnitude_from_rotation,
    rotation_from_axis_magnitude,
)
from robocal.mesh_error import Chain3dToMesh
from robocal.mesh_loader import MeshLoader, MeshLoadError
from robocal.messages import CalibrationData, has_sensor
from robocal.models import Camera3dModel, ChainModel
from robocal.optimization_params import OptimizationParams, Params
from robocal.outrageous_error import OutrageousError
from robocal.plane_errors import PlaneToPlaneError
from robocal.urdf import UrdfError, UrdfModel

logger = logging.getLogger(__name__)

_FRAME_SUFFIXES = ("x", "y", "z", "a", "b", "c")


class OptimizationError(Exception):
    """The calibration cannot be set up or run."""


@dataclass(frozen=True)
class OptimizationSummary:
    """Outcome of the last solve."""

    initial_cost: float
    final_cost: float
    iterations: int
    converged: bool
    message: str

    def brief_report(self) -> str:
        termination = "CONVERGENCE" if self.converged else "NO_CONVERGENCE"
        return (
            f"Solver Report: Iterations: {self.iterations}, "
            f"Initial cost: {self.initial_cost:e}, Final cost: {self.final_cost:e}, "
            f"Termination: {termination}"
        )


class _OffsetParser:
    """Free parameters of a calibration and the offsets they stand for.

    Values are kept across resets, so a multi-step calibration builds on the
    offsets found earlier.
    """

    def __init__(self) -> None:
        self._free: list[str] = []
        self._frames: set[str] = set()
        self._values: dict[str, float] = {}

    def add(self, name: str) -> None:
        if name not in self._free:
            self._free.append(name)
        self._values.setdefault(name, 0.0)

    def add_frame(self, name: str, x: bool, y: bool, z: bool,
                  roll: bool, pitch: bool, yaw: bool) -> None:
        self._frames.add(name)
        for suffix, free in zip(_FRAME_SUFFIXES, (x, y, z, roll, pitch, yaw)):
            if free:
                self.add(f"{name}_{suffix}")

    def set(self, name: str, value: float) -> None:
        self._values[name] = float(value)

    def set_frame(self, name: str, x: float, y: float, z: float,
                  roll: float, pitch: float, yaw: float) -> None:
        if name not in self._frames:
            raise KeyError(name)
        a, b, c = axis_magnitude_from_rotation(Rotation.from_rpy(roll, pitch, yaw))
        for suffix, value in zip(_FRAME_SUFFIXES, (x, y, z, a, b, c)):
            self.set(f"{name}_{suffix}", value)

    def initialize(self) -> np.ndarray:
        return np.array([self._values[name] for name in self._free], dtype=float)

    def update(self, free_params: Sequence[float]) -> None:
        for name, value in zip(self._free, free_params):
            self._values[name] = float(value)

    def get(self, name: str) -> float:
        return self._values.get(name, 0.0)

    def get_frame(self, name: str) -> Frame | None:
        if name not in self._frames:
            return None
        x, y, z, a, b, c = (self.get(f"{name}_{s}") for s in _FRAME_SUFFIXES)
        return Frame(rotation_from_axis_magnitude(a, b, c), (x, y, z))

    def size(self) -> int:
        return len(self._free)

    def __len__(self) -> int:
        return len(self._free)

    @property
    def names(self) -> list[str]:
        return list(self._free)

    def reset(self) -> None:
        self._free.clear()


def _print_row(label: str, values: Sequence[float]) -> str:
    return f"  {label}: " + "".join(f"  {v:10.6f}" for v in values)


class Optimizer:
    """Calibrates a robot described by a URDF from samples of calibration data."""

    def __init__(self, robot_description: str,
                 package_paths: Mapping[str, str | Path] | None = None):
        self.model: UrdfModel | None
        try:
            self.model = UrdfModel.from_string(robot_description)
        except UrdfError as exc:
            logger.error("Failed to parse URDF: %s", exc)
            self.model = None
        self.offsets = _OffsetParser()
        self.mesh_loader = (
            MeshLoader(self.model, package_paths) if self.model is not None else None
        )
        self.models: dict[str, ChainModel] = {}
        self.tree: Tree | None = None
        self.summary: OptimizationSummary | None = None
        self.num_parameters = 0
        self.num_residuals = 0

    def _create_models(self, params: OptimizationParams) -> None:
        for block in params.models:
            if block.type not in ("chain", "camera3d"):
                continue
            frame = block.params.get("frame")
            if not isinstance(frame, str) or not frame:
                raise OptimizationError(f"model {block.name!r} needs a 'frame'")
            try:
                if block.type == "chain":
                    logger.info("Creating chain '%s' from %s to %s",
                                block.name, params.base_link, frame)
                    model = ChainModel(block.name, self.tree, params.base_link, frame)
                else:
                    logger.info("Creating camera3d '%s' in frame %s", block.name, frame)
                    param_name = block.params.get("param_name") or block.name
                    model = Camera3dModel(block.name, param_name, self.tree,
                                          params.base_link, frame)
            except ValueError as exc:
                raise OptimizationError(str(exc)) from exc
            self.models[block.name] = model

    def _model(self, name: str) -> ChainModel:
        try:
            return self.models[name]
        except KeyError:
            raise OptimizationError(f"unknown model {name!r}") from None

    def _setup_offsets(self, params: OptimizationParams) -> None:
        self.offsets.reset()
        for name in params.free_params:
            self.offsets.add(name)
        for frame in params.free_frames:
            self.offsets.add_frame(frame.name, frame.x, frame.y, frame.z,
                                   frame.roll, frame.pitch, frame.yaw)
        for value in params.free_frames_initial_values:
            try:
                self.offsets.set_frame(value.name, value.x, value.y, value.z,
                                       value.roll, value.pitch, value.yaw)
            except KeyError:
                logger.error("Error setting initial value for %s", value.name)

    def _make_block(self, params: OptimizationParams, block: Params, index: int,
                    sample: CalibrationData, free_params: np.ndarray,
                    progress_to_stdout: bool) -> Callable | None:
        kind = block.type
        if kind in ("chain3d_to_chain3d", "plane_to_plane"):
            a_name = str(block.params.get("model_a", ""))
            b_name = str(block.params.get("model_b", ""))
            if not a_name or not b_name or a_name == b_name:
                raise OptimizationError(
                    f"{kind} improperly configured: model_a and model_b params must be set!"
                )
            if not has_sensor(sample, a_name) or not has_sensor(sample, b_name):
                return None
            if kind == "chain3d_to_chain3d":
                cost = Chain3dToChain3d(self._model(a_name), self._model(b_name),
                                        self.offsets, sample)
                if progress_to_stdout:
                    r = cost(free_params)
                    print(f"INITIAL COST ({index})")
                    for axis in range(3):
                        print(_print_row("xyz"[axis], r[axis::3]))
                    print()
            else:
                cost = PlaneToPlaneError(
                    self._model(a_name), self._model(b_name), self.offsets, sample,
                    params.get_param(block, "scale_normal", 1.0),
                    params.get_param(block, "scale_offset", 1.0),
                )
                if progress_to_stdout:
                    r = cost(free_params)
                    print(f"INITIAL COST ({index})")
                    for label, value in zip("abcd", r):
                        print(_print_row(label, [value]))
                    print()
            return cost

        if kind in ("chain3d_to_plane", "chain3d_to_mesh"):
            chain_name = str(block.params.get("model_a", ""))
            if not chain_name:
                raise OptimizationError(
                    f"{kind} improperly configured: model_a param must be set!"
                )
            if not has_sensor(sample, chain_name):
                return None
            model = self._model(chain_name)
            if kind == "chain3d_to_plane":
                try:
                    cost = Chain3dToPlane(
                        model, self.offsets, sample,
                        params.get_param(block, "a", 0.0),
                        params.get_param(block, "b", 0.0),
                        params.get_param(block, "c", 1.0),
                        params.get_param(block, "d", 0.0),
                        params.get_param(block, "scale", 1.0),
                    )
                except ValueError as exc:
                    raise OptimizationError(str(exc)) from exc
            else:
                link_name = params.get_param(block, "link_name", "")
                if self.mesh_loader is None:
                    raise OptimizationError("no robot description to load meshes from")
                try:
                    mesh = self.mesh_loader.get_collision_mesh(link_name)
                except MeshLoadError as exc:
                    raise OptimizationError(
                        f"chain3d_to_mesh improperly configured: "
                        f"cannot load mesh for {link_name}: {exc}"
                    ) from exc
                cost = Chain3dToMesh(model, self.offsets, sample, mesh)
            if progress_to_stdout:
                r = cost(free_params)
                print(f"INITIAL COST ({index})")
                print(_print_row("d", r))
                print()
            return cost

        if kind == "outrageous":
            name = block.params.get("param")
            if not isinstance(name, str):
                raise OptimizationError("outrageous error block needs a 'param' name")
            return OutrageousError(
                self.offsets, name,
                params.get_param(block, "joint_scale", 1.0),
                params.get_param(block, "position_scale", 1.0),
                params.get_param(block, "rotation_scale", 1.0),
            )

        raise OptimizationError(f"Unknown error block: {kind}")

    def optimize(self, params: OptimizationParams, data: Sequence[CalibrationData],
                 progress_to_stdout: bool = False) -> OptimizationSummary:
        """Solve for the free parameters; the offsets keep the result."""
        if self.model is None:
            raise OptimizationError("Failed to construct KDL tree")
        self.tree = self.model.to_tree()
        self._create_models(params)
        self._setup_offsets(params)

        free_params = self.offsets.initialize()
        blocks = []
        for index, sample in enumerate(data):
            for block in params.error_blocks:
                cost = self._make_block(params, block, index, sample,
                                        free_params, progress_to_stdout)
                if cost is not None:
                    blocks.append(cost)

        def residuals(x: np.ndarray) -> np.ndarray:
            if not blocks:
                return np.zeros(0)
            return np.concatenate([np.asarray(block(x), dtype=float) for block in blocks])

        initial = residuals(free_params)
        initial_cost = 0.5 * float(initial @ initial)

        if progress_to_stdout:
            print("\nSolver output:")

        if len(free_params) and len(initial):
            result = least_squares(
                residuals,
                free_params,
                method="trf",
                ftol=1e-10,
                max_nfev=params.max_num_iterations,
                verbose=2 if progress_to_stdout else 0,
            )
            solution = result.x
            self.summary = OptimizationSummary(
                initial_cost, float(result.cost), int(result.nfev),
                bool(result.success), str(result.message),
            )
        else:
            solution = free_params
            self.summary = OptimizationSummary(
                initial_cost, initial_cost, 0, True, "nothing to optimize"
            )
        self.offsets.update(solution)

        if progress_to_stdout:
            print("\n" + self.summary.brief_report())

        self.num_parameters = len(free_params)
        self.num_residuals = len(initial)
        if not math.isfinite(self.summary.final_cost):
            raise OptimizationError("optimization produced a non-finite cost")
        return self.summary

    def get_camera_names(self) -> list[str]:
        """Names of all camera models, in sorted order."""
        return [
            name for name, model in sorted(self.models.items())
            if model.model_type == "Camera3dModel"
        ]