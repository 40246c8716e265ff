"""Shi-Tomasi corner detection and pyramidal Lucas-Kanade optical flow."""

from __future__ import annotations

import numpy as np
from scipy import ndimage

from slamkit.feature import KeyPoint

BLOCK_SIZE = 3
_MIN_EIGEN = 1e-4


def detect_good_features(image, max_corners=200, quality_level=0.01, min_distance=20.0, mask=None) -> list[KeyPoint]:
    """Strongest Shi-Tomasi corners, at least ``min_distance`` apart.

    Only pixels where ``mask`` is non-zero are considered. ``max_corners``
    of zero or less means no limit. Corners come strongest first.
    """
    img = np.asarray(image, dtype=float)
    if img.ndim != 2:
        raise ValueError("image must be a 2D grey-scale array")
    if mask is not None and np.shape(mask) != img.shape:
        raise ValueError("mask must have the shape of the image")
    gx = ndimage.sobel(img, axis=1)
    gy = ndimage.sobel(img, axis=0)
    sxx = ndimage.uniform_filter(gx * gx, BLOCK_SIZE)
    syy = ndimage.uniform_filter(gy * gy, BLOCK_SIZE)
    sxy = ndimage.uniform_filter(gx * gy, BLOCK_SIZE)
    half_trace = 0.5 * (sxx + syy)
    response = half_trace - np.sqrt(np.maximum(0.25 * (sxx - syy) ** 2 + sxy * sxy, 0.0))
    top = float(response.max()) if response.size else 0.0
    if top <= 0:
        return []
    candidates = (response > quality_level * top) & (response == ndimage.maximum_filter(response, 3))
    if mask is not None:
        candidates &= np.asarray(mask) != 0
    ys, xs = np.nonzero(candidates)
    order = np.argsort(-response[ys, xs], kind="stable")
    accepted: list[tuple[float, float]] = []
    min_sq = float(min_distance) ** 2
    for idx in order:
        x, y = float(xs[idx]), float(ys[idx])
        if any((x - ax) ** 2 + (y - ay) ** 2 < min_sq for ax, ay in accepted):
            continue
        accepted.append((x, y))
        if max_corners > 0 and len(accepted) >= max_corners:
            break
    return [KeyPoint(x, y, float(BLOCK_SIZE)) for x, y in accepted]


def _pyramid(image: np.ndarray, levels: int) -> list[np.ndarray]:
    out = [image]
    for _ in range(levels):
        blurred = ndimage.gaussian_filter(out[-1], 1.0)
        out.append(blurred[::2, ::2])
    return out


def _sample(image: np.ndarray, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
    return ndimage.map_coordinates(image, [ys.ravel(), xs.ravel()], order=1, mode="nearest").reshape(xs.shape)


def track_pyramidal_lk(
    prev,
    curr,
    points,
    initial=None,
    window=(11, 11),
    levels=3,
    max_iterations=30,
    epsilon=0.01,
):
    """Track ``points`` from ``prev`` into ``curr``.

    ``initial`` are starting guesses in ``curr`` (default: the points
    themselves). Returns ``(positions, status)`` as an (N, 2) array and a
    boolean array; status is false where tracking failed.
    """
    prev = np.asarray(prev, dtype=float)
    curr = np.asarray(curr, dtype=float)
    if prev.ndim != 2 or prev.shape != curr.shape:
        raise ValueError("images must be 2D arrays of the same shape")
    pts = np.asarray(points, dtype=float).reshape(-1, 2)
    guess = pts.copy() if initial is None else np.asarray(initial, dtype=float).reshape(-1, 2)
    if guess.shape != pts.shape:
        raise ValueError("initial must match points")
    half_w, half_h = (int(window[0]) - 1) // 2, (int(window[1]) - 1) // 2
    off_y, off_x = np.mgrid[-half_h : half_h + 1, -half_w : half_w + 1].astype(float)

    prev_pyr = _pyramid(prev, levels)
    curr_pyr = _pyramid(curr, levels)
    grads = [(np.gradient(level, axis=1), np.gradient(level, axis=0)) for level in prev_pyr]

    rows, cols = prev.shape
    positions = np.zeros_like(pts)
    status = np.ones(len(pts), dtype=bool)
    for n, (p, g) in enumerate(zip(pts, guess)):
        flow = (g - p) / (2.0**levels)
        ok = True
        for level in range(levels, -1, -1):
            scale = 2.0**level
            px, py = p / scale
            tx, ty = off_x + px, off_y + py
            template = _sample(prev_pyr[level], tx, ty)
            ix = _sample(grads[level][0], tx, ty)
            iy = _sample(grads[level][1], tx, ty)
            gmat = np.array([[np.sum(ix * ix), np.sum(ix * iy)], [np.sum(ix * iy), np.sum(iy * iy)]])
            min_eig = float(np.linalg.eigvalsh(gmat)[0]) / off_x.size
            if min_eig < _MIN_EIGEN:
                if level == 0:
                    ok = False
                if level > 0:
                    flow = flow * 2.0
                continue
            ginv = np.linalg.inv(gmat)
            for _ in range(max_iterations):
                warped = _sample(curr_pyr[level], tx + flow[0], ty + flow[1])
                diff = template - warped
                delta = ginv @ np.array([np.sum(diff * ix), np.sum(diff * iy)])
                flow = flow + delta
                if float(np.hypot(*delta)) < epsilon:
                    break
            if level > 0:
                flow = flow * 2.0
        final = p + flow
        positions[n] = final
        inside = 0 <= final[0] <= cols - 1 and 0 <= final[1] <= rows - 1
        status[n] = ok and inside and bool(np.all(np.isfinite(final)))
    return positions, status