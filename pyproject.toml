[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sadslam"
version = "0.1.0"
description = "Inertial navigation, error-state Kalman filtering, IMU preintegration and point-cloud nearest-neighbour search"
requires-python = ">=3.10"
dependencies = [
    "numpy",
    "pillow",
]
keywords = [
    "slam",
    "imu",
    "eskf",
    "preintegration",
    "kd-tree",
    "octree",
    "point-cloud",
    "lie-group",
    "navigation",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering",
    "Topic :: Scientific/Engineering :: Mathematics",
]

[project.optional-dependencies]
test = [
    "pytest",
    "hypothesis",
]

[project.scripts]
sadslam-motion = "sadslam.motion:main"

[tool.hatch.build.targets.wheel]
packages = ["sadslam"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
