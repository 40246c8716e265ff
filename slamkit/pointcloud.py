"""Point clouds from RGB-D frames with known camera poses.

Depth pixels are back-projected through a pinhole model, moved into the
world frame and coloured from the matching colour image. The clouds can be
cleaned with a statistical outlier filter, thinned on a voxel grid and
saved as binary PCD.
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import imageio.v3 as iio
import numpy as np
from scipy.spatial import cKDTree

from slamkit.lie import SE3

POSE_VALUES = 7
OUTLIER_MEAN_K = 50
OUTLIER_STD_MUL = 1.0
VOXEL_RESOLUTION = 0.03


@dataclass(frozen=True)
class _Preset:
    data_dir: str
    depth_ext: str
    fx: float
    fy: float
    cx: float
    cy: float
    depth_scale: float
    filtered: bool


PRESETS = {
    "rgbd": _Preset(".", "pgm", 518.0, 519.0, 325.5, 253.5, 1000.0, False),
    "dense": _Preset("./data", "png", 481.2, -480.0, 319.5, 239.5, 5000.0, True),
}


def parse_poses(lines: Iterable[str], count: int) -> list[SE3]:
    """Read ``count`` poses of ``tx ty tz qx qy qz qw`` from whitespace-separated text."""
    if count < 0:
        raise ValueError("count must not be negative")
    needed = count * POSE_VALUES
    tokens: list[str] = []
    for line in lines:
        tokens.extend(line.split())
        if len(tokens) >= needed:
            break
    if len(tokens) < needed:
        raise ValueError(f"expected {needed} pose values, got {len(tokens)}")
    try:
        values = [float(t) for t in tokens[:needed]]
    except ValueError as exc:
        raise ValueError(f"bad pose value: {exc}") from None
    poses = []
    for start in range(0, needed, POSE_VALUES):
        tx, ty, tz, qx, qy, qz, qw = values[start : start + POSE_VALUES]
        poses.append(SE3.from_quaternion(qw, qx, qy, qz, (tx, ty, tz)))
    return poses


def backproject(color, depth, pose: SE3, fx, fy, cx, cy, depth_scale) -> np.ndarray:
    """World points ``(x, y, z, r, g, b)`` of every pixel with non-zero depth.

    ``color`` is an RGB (or grey) image, ``depth`` raw depth units divided
    by ``depth_scale`` to give metres, ``pose`` the camera-to-world
    transform. Points come in row-major pixel order.
    """
    color = np.asarray(color)
    depth = np.asarray(depth)
    if depth.ndim != 2:
        raise ValueError("depth must be a 2D array")
    if color.shape[:2] != depth.shape:
        raise ValueError("colour and depth images must have the same size")
    if color.ndim == 2:
        color = np.repeat(color[..., None], 3, axis=2)
    else:
        color = color[..., :3]
    v, u = np.nonzero(depth)
    z = depth[v, u].astype(float) / depth_scale
    camera = np.column_stack([(u - cx) * z / fx, (v - cy) * z / fy, z])
    world = pose * camera
    return np.column_stack([world.reshape(-1, 3), color[v, u].astype(float)])


def statistical_outlier_removal(points, mean_k=OUTLIER_MEAN_K, std_mul=OUTLIER_STD_MUL) -> np.ndarray:
    """Drop points whose mean distance to their ``mean_k`` neighbours is unusually large.

    A point is kept when that distance is at most the mean over all points
    plus ``std_mul`` sample standard deviations.
    """
    pts = np.asarray(points, dtype=float)
    if pts.ndim != 2 or pts.shape[1] < 3:
        raise ValueError("points must be an (N, 3+) array")
    if mean_k < 1:
        raise ValueError("mean_k must be at least 1")
    if len(pts) < 3:
        return pts.copy()
    k = min(int(mean_k), len(pts) - 1)
    distances, _ = cKDTree(pts[:, :3]).query(pts[:, :3], k=k + 1)
    mean_distance = distances[:, 1:].mean(axis=1)
    threshold = mean_distance.mean() + std_mul * mean_distance.std(ddof=1)
    return pts[mean_distance <= threshold]


def voxel_downsample(points, leaf_size=VOXEL_RESOLUTION) -> np.ndarray:
    """Replace the points in each cubic voxel by their mean (all columns averaged)."""
    pts = np.asarray(points, dtype=float)
    if pts.ndim != 2 or pts.shape[1] < 3:
        raise ValueError("points must be an (N, 3+) array")
    if leaf_size <= 0:
        raise ValueError("leaf_size must be positive")
    if len(pts) == 0:
        return pts.copy()
    keys = np.floor(pts[:, :3] / leaf_size).astype(np.int64)
    unique, inverse = np.unique(keys[:, ::-1], axis=0, return_inverse=True)
    inverse = np.asarray(inverse).reshape(-1)
    sums = np.zeros((len(unique), pts.shape[1]))
    np.add.at(sums, inverse, pts)
    counts = np.bincount(inverse, minlength=len(unique))
    return sums / counts[:, None]


def write_pcd(path, points) -> None:
    """Save ``(x, y, z)`` or ``(x, y, z, r, g, b)`` points as a binary PCD file."""
    pts = np.asarray(points, dtype=float)
    if pts.ndim != 2 or pts.shape[1] not in (3, 6):
        raise ValueError("points must be an (N, 3) or (N, 6) array")
    n = len(pts)
    record = np.zeros(n, dtype=[("x", "<f4"), ("y", "<f4"), ("z", "<f4"), ("rgb", "<u4")])
    record["x"], record["y"], record["z"] = pts[:, 0], pts[:, 1], pts[:, 2]
    if pts.shape[1] == 6:
        rgb = np.clip(np.rint(pts[:, 3:6]), 0, 255).astype(np.uint32)
        record["rgb"] = (rgb[:, 0] << 16) | (rgb[:, 1] << 8) | rgb[:, 2]
    header = (
        "# .PCD v0.7 - Point Cloud Data file format\n"
        "VERSION 0.7\n"
        "FIELDS x y z rgb\n"
        "SIZE 4 4 4 4\n"
        "TYPE F F F F\n"
        "COUNT 1 1 1 1\n"
        f"WIDTH {n}\n"
        "HEIGHT 1\n"
        "VIEWPOINT 0 0 0 1 0 0 0\n"
        f"POINTS {n}\n"
        "DATA binary\n"
    )
    with open(path, "wb") as handle:
        handle.write(header.encode("ascii"))
        handle.write(record.tobytes())


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="pointcloud", description="Join RGB-D frames into one point cloud."
    )
    parser.add_argument("--preset", choices=sorted(PRESETS), default="dense")
    parser.add_argument("--data-dir")
    parser.add_argument("--frames", type=int, default=5)
    parser.add_argument("-o", "--output", default="map.pcd")
    args = parser.parse_args(argv)
    preset = PRESETS[args.preset]
    root = Path(args.data_dir if args.data_dir is not None else preset.data_dir)

    try:
        with open(root / "pose.txt", encoding="utf-8") as handle:
            poses = parse_poses(handle, args.frames)
    except FileNotFoundError:
        print("cannot find pose file", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"bad pose file: {exc}", file=sys.stderr)
        return 1

    clouds = []
    for i, pose in enumerate(poses, start=1):
        print(f"Converting image: {i}")
        color_path = root / "color" / f"{i}.png"
        depth_path = root / "depth" / f"{i}.{preset.depth_ext}"
        try:
            color = np.asarray(iio.imread(color_path))
            depth = np.asarray(iio.imread(depth_path))
        except (OSError, ValueError):
            print(f"cannot read images of frame {i}", file=sys.stderr)
            return 1
        if depth.ndim == 3:
            depth = depth[..., 0]
        try:
            cloud = backproject(
                color, depth, pose, preset.fx, preset.fy, preset.cx, preset.cy, preset.depth_scale
            )
        except ValueError as exc:
            print(f"frame {i}: {exc}", file=sys.stderr)
            return 1
        if preset.filtered:
            cloud = statistical_outlier_removal(cloud)
        clouds.append(cloud)

    pointcloud = np.vstack(clouds) if clouds else np.zeros((0, 6))
    print(f"Point cloud has {len(pointcloud)} points.")
    if preset.filtered:
        pointcloud = voxel_downsample(pointcloud, VOXEL_RESOLUTION)
        print(f"After filtering, point cloud has {len(pointcloud)} points.")
    write_pcd(args.output, pointcloud)
    return 0


if __name__ == "__main__":
    sys.exit(main())