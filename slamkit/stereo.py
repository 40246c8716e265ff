"""Point clouds from a rectified stereo disparity map."""

from __future__ import annotations

import numpy as np

FX = 718.856
FY = 718.856
CX = 607.1928
CY = 185.2157
BASELINE = 0.573
MAX_DISPARITY = 96.0


def disparity_to_pointcloud(
    left,
    disparity,
    fx=FX,
    fy=FY,
    cx=CX,
    cy=CY,
    baseline=BASELINE,
    max_disparity=MAX_DISPARITY,
) -> np.ndarray:
    """Points ``(x, y, z, grey)`` for every pixel with ``0 < disparity < max_disparity``.

    ``grey`` is the left image intensity scaled to [0, 1]. Points come in
    row-major pixel order.
    """
    left = np.asarray(left)
    disp = np.asarray(disparity, dtype=float)
    if left.ndim != 2 or left.shape != disp.shape:
        raise ValueError("left image and disparity must be 2D arrays of the same shape")
    skip = (disp <= 0.0) | (disp >= max_disparity)
    v, u = np.nonzero(~skip)
    d = disp[v, u]
    depth = fx * baseline / d
    x = (u - cx) / fx
    y = (v - cy) / fy
    return np.column_stack([x * depth, y * depth, depth, left[v, u] / 255.0])