"""Linear triangulation of a point seen from several camera poses."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from slamkit.lie import SE3

_RELIABILITY_RATIO = 1e-2


def triangulate(poses: Sequence[SE3], points) -> np.ndarray | None:
    """Triangulate one point from its observations by SVD.

    ``poses`` are world-to-camera transforms and ``points`` the matching
    observations on the normalised image plane (only their first two
    coordinates are used). Returns the point in world coordinates, or
    ``None`` when the solution is at infinity or not well determined.
    """
    poses = list(poses)
    observations = [np.asarray(p, dtype=float).reshape(-1) for p in points]
    if len(poses) != len(observations):
        raise ValueError("need exactly one observation per pose")
    if len(poses) < 2:
        raise ValueError("need at least two observations to triangulate")
    if any(obs.size < 2 for obs in observations):
        raise ValueError("each observation needs at least two coordinates")

    rows = []
    for pose, obs in zip(poses, observations):
        m = pose.matrix3x4()
        rows.append(obs[0] * m[2] - m[0])
        rows.append(obs[1] * m[2] - m[1])
    _, singular, vh = np.linalg.svd(np.vstack(rows))
    homogeneous = vh[3]

    if homogeneous[3] == 0.0:
        return None
    if singular[2] == 0.0 or singular[3] / singular[2] >= _RELIABILITY_RATIO:
        return None
    return homogeneous[:3] / homogeneous[3]