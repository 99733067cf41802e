# robocal

robocal calibrates robots from recorded samples. It estimates joint offsets,
frame offsets and depth camera intrinsics. Each calibration sample holds joint
states and sensor observations. robocal projects every sample through
kinematic chain models, builds residual blocks from the projections and solves
them with SciPy's non-linear least-squares solver. It also fits hard-iron
offsets for a magnetometer.

## Installation

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Modules

- `robocal.kinematics`: `Rotation` and `Frame`, which compose with the `@`
  operator, and `Joint`, `JointType`, `Segment`, `Chain` and `Tree`.
  `Tree.get_chain(root, tip)` returns the chain of segments between two frames.
  `rotation_from_axis_magnitude` and `axis_magnitude_from_rotation` convert
  between rotations and axis vectors whose length is the rotation angle.
- `robocal.messages`: data classes for calibration samples. These are
  `CalibrationData`, `Observation`, `JointState`, `PointStamped`, `Point`,
  `CameraInfo`, `CameraParameter` and `ExtendedCameraInfo`. The module also has
  `get_sensor_index`, which returns `None` when the sensor is absent, and
  `has_sensor`.
- `robocal.plane_fit`: `get_matrix`, `get_centroid` and `get_plane`.
  `get_plane` fits `n · p + d = 0` to a 3xN point matrix and always returns
  `d >= 0`.
- `robocal.camera_info`: index constants for the K and P matrices, and
  `update_camera_info`. That function returns a copy of a `CameraInfo` with
  fx, fy, cx and cy each scaled by `1 + offset`.
- `robocal.urdf`: `UrdfModel.from_string` reads a robot description.
  `get_link` looks up a link, and `to_tree` builds a kinematic `Tree`.
  Malformed descriptions raise `UrdfError`.
- `robocal.mesh_loader`: `MeshLoader.get_collision_mesh(link_name)` loads a
  link's collision mesh and transforms it into the link frame. Meshes are
  cached per link. `package://` resources are resolved through the
  `package_paths` mapping given to the loader. Only STL files are read, both
  ASCII and binary (`read_stl`). Failures raise `MeshLoadError`.
- `robocal.models`: `ChainModel` and `Camera3dModel` project a sensor's
  features into the chain's root frame. `Camera3dModel` also reprojects the
  features through calibrated intrinsics. The offsets these models take follow
  the `CalibrationOffsets` protocol, which provides `get(name)` and
  `get_frame(name)`.
- Residual blocks, each a callable taking the free parameter vector:
  - `robocal.chain_errors.Chain3dToChain3d` compares the same features as seen
    by two models.
  - `robocal.chain_errors.Chain3dToPlane` gives the distance of features to a
    fixed plane.
  - `robocal.plane_errors.PlaneToPlaneError` compares the planes fitted to two
    models' points.
  - `robocal.mesh_error.Chain3dToMesh` gives the distance of features to the
    nearest mesh edge; see also `dist_to_line`.
  - `robocal.outrageous_error.OutrageousError` penalises large offsets.
- `robocal.magnetometer`: `initial_bias`, `calibrate_hard_iron` and the
  per-sample residual `HardIronOffsetError`.
- `robocal.optimization_params`: `OptimizationParams` holds the
  configuration, and `load(config)` reads it from a plain mapping. It has
  `base_link`, `free_params`, `free_frames`, `free_frames_initial_values`,
  `models`, `error_blocks` and `max_num_iterations`.
- `robocal.optimizer`: `Optimizer` builds the models and residual blocks and
  then runs the solve.

## Calibrating a robot

```python
from robocal.optimization_params import OptimizationParams
from robocal.optimizer import Optimizer

params = OptimizationParams()
params.load({
    "base_link": "base_link",
    "free_params": ["shoulder_pan_joint"],
    "models": [
        {"name": "arm", "type": "chain", "frame": "wrist_roll_link"},
        {"name": "camera", "type": "camera3d", "frame": "head_camera_rgb_optical_frame"},
    ],
    "error_blocks": [
        {"name": "hand_eye", "type": "chain3d_to_chain3d",
         "model_a": "camera", "model_b": "arm"},
    ],
})

optimizer = Optimizer(urdf_text)
summary = optimizer.optimize(params, samples)
print(summary.brief_report())
print(optimizer.offsets.get("shoulder_pan_joint"))
print(optimizer.get_camera_names())
```

In this example, `urdf_text` is the robot description as a string.
`samples` is a list of `robocal.messages.CalibrationData`.

The supported error block types are:

- `chain3d_to_chain3d`
- `chain3d_to_plane`
- `chain3d_to_mesh`
- `plane_to_plane`
- `outrageous`

A block that is configured wrongly, or has an unknown type, raises
`OptimizationError`. Offset values are kept on the optimizer between calls to
`optimize`, so a calibration can be run in several steps. After a run,
`optimizer.summary`, `optimizer.num_parameters` and `optimizer.num_residuals`
describe the last solve.

## Magnetometer hard-iron calibration

```python
from robocal.magnetometer import calibrate_hard_iron

result = calibrate_hard_iron(samples)  # (x, y, z) tuples or objects with x, y, z
print(result.field_strength)
print(result)  # mag_bias_x: ..., mag_bias_y: ..., mag_bias_z: ...
```

## Command line

`robocal-to-rpy` converts an axis-magnitude rotation vector to roll, pitch and
yaw:

```
robocal-to-rpy 0.0 0.0 1.5707
```

## What robocal does not do

robocal works only on data that is already in memory. It does not:

- drive a robot, read live sensors, or record or read bag files;
- find features such as checkerboards, LEDs or planes in images;
- write a calibrated robot description or camera files.

The magnetometer calibration is available only as a library function, not as
a command. Collision meshes can be loaded only from STL files.