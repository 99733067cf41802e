"""Robot kinematic, depth camera and magnetometer calibration by non-linear least squares."""

__version__ = "0.1.0"