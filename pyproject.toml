[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "slamkit"
version = "0.1.0"
description = "Visual SLAM building blocks: Lie groups, triangulation, depth filtering, point clouds, pose graphs, map structures and feature tracking."
requires-python = ">=3.10"
keywords = [
    "slam",
    "lie-groups",
    "se3",
    "pose-graph",
    "triangulation",
    "point-cloud",
    "optical-flow",
    "computer-vision",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering",
    "Topic :: Scientific/Engineering :: Image Processing",
    "Topic :: Scientific/Engineering :: Mathematics",
]
dependencies = [
    "numpy",
    "scipy",
    "pyyaml",
    "imageio",
]

[project.optional-dependencies]
test = [
    "pytest",
    "numpy",
]

[project.scripts]
slamkit-trajectory-error = "slamkit.trajectory:main"
slamkit-dense-depth = "slamkit.dense_depth:main"
slamkit-undistort = "slamkit.undistort:main"
slamkit-join-map = "slamkit.pointcloud:main"
slamkit-pose-graph = "slamkit.pose_graph:main"

[tool.hatch.build.targets.wheel]
packages = ["slamkit"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
