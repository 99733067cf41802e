[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "robocal"
version = "0.1.0"
description = "Kinematic chain, depth camera and magnetometer calibration by non-linear least squares"
requires-python = ">=3.10"
keywords = ["robotics", "calibration", "kinematics", "urdf", "least-squares", "magnetometer"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering",
]
dependencies = [
    "numpy",
    "scipy",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
robocal-to-rpy = "robocal.to_rpy:main"

[tool.hatch.build.targets.wheel]
packages = ["robocal"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
