"""Dense monocular depth estimation along epipolar lines.

Depth of every pixel of a reference image is tracked as a Gaussian. Each
new image with a known pose is searched along the epipolar line with
zero-mean NCC, the best match is triangulated and the depth fused.
"""

from __future__ import annotations

import argparse
import math
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import NamedTuple

import imageio.v3 as iio
import numpy as np

from slamkit.lie import SE3

BORDER = 20
WIDTH = 640
HEIGHT = 480
FX = float(np.float32(481.2))
FY = float(np.float32(-480.0))
CX = float(np.float32(319.5))
CY = float(np.float32(239.5))
NCC_WINDOW_SIZE = 3
NCC_AREA = (2 * NCC_WINDOW_SIZE + 1) ** 2
MIN_COV = 0.1
MAX_COV = 10.0
INIT_DEPTH = 3.0
INIT_COV2 = 3.0

SEQUENCE_FILE = "first_200_frames_traj_over_table_input_sequence.txt"
REFERENCE_DEPTH_FILE = Path("depthmaps") / "scene_000.depth"

_SEARCH_STEP = 0.7
_MAX_HALF_LENGTH = 100.0
_MIN_SEARCH_DEPTH = 0.1
_NCC_THRESHOLD = float(np.float32(0.85))
_OFFSETS = np.arange(-NCC_WINDOW_SIZE, NCC_WINDOW_SIZE + 1)
_OFFSET_X, _OFFSET_Y = np.meshgrid(_OFFSETS, _OFFSETS, indexing="ij")


@dataclass
class RemodeDataset:
    """Images, camera-to-world poses and reference depth of a sequence."""

    color_image_files: list[str] = field(default_factory=list)
    poses: list[SE3] = field(default_factory=list)
    ref_depth: np.ndarray = field(default_factory=lambda: np.zeros((HEIGHT, WIDTH)))


class DepthError(NamedTuple):
    mean_error: float
    mean_squared_error: float


def read_dataset(path) -> RemodeDataset:
    """Read the image list, ``T_W_C`` poses and reference depth map of a dataset."""
    root = Path(path)
    dataset = RemodeDataset()
    with open(root / SEQUENCE_FILE, encoding="utf-8") as handle:
        for number, line in enumerate(handle, start=1):
            fields = line.split()
            if not fields:
                continue
            if len(fields) != 8:
                raise ValueError(f"line {number}: expected an image name and 7 values")
            try:
                tx, ty, tz, qx, qy, qz, qw = (float(f) for f in fields[1:])
            except ValueError as exc:
                raise ValueError(f"line {number}: {exc}") from None
            dataset.color_image_files.append(str(root / "images" / fields[0]))
            dataset.poses.append(SE3.from_quaternion(qw, qx, qy, qz, (tx, ty, tz)))

    with open(root / REFERENCE_DEPTH_FILE, encoding="utf-8") as handle:
        tokens = handle.read().split()[: HEIGHT * WIDTH]
    values = np.zeros(HEIGHT * WIDTH)
    values[: len(tokens)] = np.array(tokens, dtype=float)
    dataset.ref_depth = values.reshape(HEIGHT, WIDTH) / 100.0
    return dataset


def pixel_to_camera(px) -> np.ndarray:
    """Pixel to a point on the normalised image plane (z = 1)."""
    u, v = float(px[0]), float(px[1])
    return np.array([(u - CX) / FX, (v - CY) / FY, 1.0])


def camera_to_pixel(p_cam) -> np.ndarray:
    """Camera-frame point to pixel."""
    x, y, z = (float(c) for c in np.asarray(p_cam, dtype=float).reshape(3))
    return np.array([x * FX / z + CX, y * FY / z + CY])


def inside(pt) -> bool:
    """Whether a pixel lies inside the image minus its border."""
    x, y = float(pt[0]), float(pt[1])
    return x >= BORDER and y >= BORDER and x + BORDER < WIDTH and y + BORDER <= HEIGHT


def _bilinear_many(image, xs, ys) -> np.ndarray:
    xs = np.asarray(xs, dtype=float)
    ys = np.asarray(ys, dtype=float)
    ix = xs.astype(int)
    iy = ys.astype(int)
    xx = xs - np.floor(xs)
    yy = ys - np.floor(ys)
    img = np.asarray(image)
    return (
        (1 - xx) * (1 - yy) * img[iy, ix]
        + xx * (1 - yy) * img[iy, ix + 1]
        + (1 - xx) * yy * img[iy + 1, ix]
        + xx * yy * img[iy + 1, ix + 1]
    ) / 255.0


def bilinear(image, pt) -> float:
    """Bilinearly interpolated grey value at ``pt = (x, y)``, scaled to [0, 1]."""
    return float(_bilinear_many(image, float(pt[0]), float(pt[1])))


def ncc(ref, curr, pt_ref, pt_curr) -> float:
    """Zero-mean normalised cross-correlation of two windows."""
    ref = np.asarray(ref)
    rx = (_OFFSET_X + float(pt_ref[0])).astype(int)
    ry = (_OFFSET_Y + float(pt_ref[1])).astype(int)
    values_ref = ref[ry, rx].astype(float) / 255.0
    values_curr = _bilinear_many(
        curr, _OFFSET_X + float(pt_curr[0]), _OFFSET_Y + float(pt_curr[1])
    )
    d_ref = values_ref - values_ref.sum() / NCC_AREA
    d_curr = values_curr - values_curr.sum() / NCC_AREA
    numerator = float((d_ref * d_curr).sum())
    denominator = float((d_ref * d_ref).sum()) * float((d_curr * d_curr).sum())
    return numerator / math.sqrt(denominator + 1e-10)


def epipolar_search(ref, curr, T_C_R: SE3, pt_ref, depth_mu: float, depth_cov: float):
    """Search the epipolar line for the match of ``pt_ref``.

    Returns ``(pt_curr, epipolar_direction)`` or ``None`` when no candidate
    reaches the NCC threshold.
    """
    f_ref = pixel_to_camera(pt_ref)
    f_ref /= np.linalg.norm(f_ref)
    px_mean_curr = camera_to_pixel(T_C_R * (f_ref * depth_mu))
    d_min = depth_mu - 3 * depth_cov
    d_max = depth_mu + 3 * depth_cov
    if d_min < _MIN_SEARCH_DEPTH:
        d_min = _MIN_SEARCH_DEPTH
    px_min_curr = camera_to_pixel(T_C_R * (f_ref * d_min))
    px_max_curr = camera_to_pixel(T_C_R * (f_ref * d_max))

    epipolar_line = px_max_curr - px_min_curr
    length = float(np.linalg.norm(epipolar_line))
    direction = epipolar_line / length if length > 0 else epipolar_line.copy()
    half_length = min(0.5 * length, _MAX_HALF_LENGTH)

    best_ncc = -1.0
    best_px = None
    step = -half_length
    while step <= half_length:
        px_curr = px_mean_curr + step * direction
        if inside(px_curr):
            score = ncc(ref, curr, pt_ref, px_curr)
            if score > best_ncc:
                best_ncc = score
                best_px = px_curr
        step += _SEARCH_STEP
    if best_px is None or best_ncc < _NCC_THRESHOLD:
        return None
    return best_px, direction


def _angle(cosine: float) -> float:
    return math.acos(max(-1.0, min(1.0, cosine)))


def update_depth_filter(pt_ref, pt_curr, T_C_R: SE3, epipolar_direction, depth, depth_cov2):
    """Triangulate a match and fuse it into the depth maps, in place.

    Returns the fused ``(depth, variance)`` of the reference pixel.
    """
    T_R_C = T_C_R.inverse()
    f_ref = pixel_to_camera(pt_ref)
    f_ref /= np.linalg.norm(f_ref)
    f_curr = pixel_to_camera(pt_curr)
    f_curr /= np.linalg.norm(f_curr)

    t = T_R_C.translation
    f2 = T_R_C.rotation * f_curr
    b = np.array([t @ f_ref, t @ f2])
    a01 = -(f_ref @ f2)
    system = np.array([[f_ref @ f_ref, a01], [-a01, -(f2 @ f2)]])
    ans = np.linalg.inv(system) @ b
    xm = ans[0] * f_ref
    xn = t + ans[1] * f2
    depth_estimation = float(np.linalg.norm((xm + xn) / 2.0))

    p = f_ref * depth_estimation
    a = p - t
    t_norm = float(np.linalg.norm(t))
    a_norm = float(np.linalg.norm(a))
    alpha = _angle(float(f_ref @ t) / t_norm)
    _beta = _angle(float(-(a @ t)) / (a_norm * t_norm))
    f_curr_prime = pixel_to_camera(np.asarray(pt_curr, dtype=float) + np.asarray(epipolar_direction))
    f_curr_prime /= np.linalg.norm(f_curr_prime)
    beta_prime = _angle(float(f_curr_prime @ -t) / t_norm)
    gamma = math.pi - alpha - beta_prime
    p_prime = t_norm * math.sin(beta_prime) / math.sin(gamma)
    d_cov = p_prime - depth_estimation
    d_cov2 = d_cov * d_cov

    x, y = int(pt_ref[0]), int(pt_ref[1])
    mu = float(depth[y, x])
    sigma2 = float(depth_cov2[y, x])
    mu_fuse = (d_cov2 * mu + sigma2 * depth_estimation) / (sigma2 + d_cov2)
    sigma_fuse2 = (sigma2 * d_cov2) / (sigma2 + d_cov2)
    depth[y, x] = mu_fuse
    depth_cov2[y, x] = sigma_fuse2
    return mu_fuse, sigma_fuse2


def update(ref, curr, T_C_R: SE3, depth, depth_cov2) -> int:
    """Update every unconverged pixel of the depth maps; returns how many were fused."""
    region = depth_cov2[BORDER : HEIGHT - BORDER, BORDER : WIDTH - BORDER]
    active = ~((region < MIN_COV) | (region > MAX_COV))
    ys, xs = np.nonzero(active)
    order = np.lexsort((ys, xs))
    updated = 0
    for x, y in zip(xs[order] + BORDER, ys[order] + BORDER):
        pt_ref = np.array([float(x), float(y)])
        match = epipolar_search(
            ref, curr, T_C_R, pt_ref, float(depth[y, x]), math.sqrt(depth_cov2[y, x])
        )
        if match is None:
            continue
        pt_curr, direction = match
        update_depth_filter(pt_ref, pt_curr, T_C_R, direction, depth, depth_cov2)
        updated += 1
    return updated


def evaluate_depth(depth_truth, depth_estimate) -> DepthError:
    """Mean and mean squared error of the estimate, ignoring the border."""
    truth = np.asarray(depth_truth, dtype=float)
    estimate = np.asarray(depth_estimate, dtype=float)
    rows, cols = truth.shape
    error = (truth - estimate[: rows, : cols])[BORDER : rows - BORDER, BORDER : cols - BORDER]
    if error.size == 0:
        raise ValueError("depth map is smaller than its border")
    return DepthError(float(error.mean()), float((error * error).mean()))


def _load_gray(path):
    try:
        return np.asarray(iio.imread(path, mode="L"))
    except (OSError, ValueError):
        return None


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="dense_mapping", description="Dense monocular depth estimation."
    )
    parser.add_argument("dataset", nargs="?")
    parser.add_argument("-o", "--output", default="depth.png")
    args = parser.parse_args(argv)
    if args.dataset is None:
        print("Usage: dense_mapping path_to_test_dataset")
        return 1

    try:
        dataset = read_dataset(args.dataset)
    except (OSError, ValueError):
        print("Reading image files failed!")
        return 1
    print(f"read total {len(dataset.color_image_files)} files.")
    if not dataset.color_image_files:
        print("Reading image files failed!")
        return 1

    ref = _load_gray(dataset.color_image_files[0])
    if ref is None:
        print(f"cannot read image {dataset.color_image_files[0]}")
        return 1
    pose_ref = dataset.poses[0]
    depth = np.full((HEIGHT, WIDTH), INIT_DEPTH)
    depth_cov2 = np.full((HEIGHT, WIDTH), INIT_COV2)

    for index in range(1, len(dataset.color_image_files)):
        print(f"*** loop {index} ***")
        curr = _load_gray(dataset.color_image_files[index])
        if curr is None:
            continue
        T_C_R = dataset.poses[index].inverse() * pose_ref
        update(ref, curr, T_C_R, depth, depth_cov2)
        error = evaluate_depth(dataset.ref_depth, depth)
        print(
            f"Average squared error = {error.mean_squared_error:g}, "
            f"average error: {error.mean_error:g}"
        )

    print("estimation returns, saving depth map ...")
    iio.imwrite(args.output, np.clip(np.rint(depth), 0, 255).astype(np.uint8))
    print("done.")
    return 0


if __name__ == "__main__":
    sys.exit(main())