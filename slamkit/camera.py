"""Pinhole camera with a stereo-rig extrinsic."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from slamkit.lie import SE3


@dataclass
class Camera:
    """Pinhole camera; ``pose`` maps the rig frame into this camera's frame."""

    fx: float
    fy: float
    cx: float
    cy: float
    baseline: float = 0.0
    pose: SE3 = field(default_factory=SE3)
    pose_inv: SE3 = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.pose_inv = self.pose.inverse()

    def intrinsics(self) -> np.ndarray:
        """The 3x3 intrinsic matrix K."""
        return np.array(
            [[self.fx, 0.0, self.cx], [0.0, self.fy, self.cy], [0.0, 0.0, 1.0]]
        )

    def world_to_camera(self, p_w, T_c_w: SE3) -> np.ndarray:
        return self.pose * (T_c_w * np.asarray(p_w, dtype=float))

    def camera_to_world(self, p_c, T_c_w: SE3) -> np.ndarray:
        return T_c_w.inverse() * (self.pose_inv * np.asarray(p_c, dtype=float))

    def camera_to_pixel(self, p_c) -> np.ndarray:
        x, y, z = np.asarray(p_c, dtype=float).reshape(3)
        return np.array([self.fx * x / z + self.cx, self.fy * y / z + self.cy])

    def pixel_to_camera(self, p_p, depth: float = 1.0) -> np.ndarray:
        u, v = np.asarray(p_p, dtype=float).reshape(2)
        return np.array(
            [(u - self.cx) * depth / self.fx, (v - self.cy) * depth / self.fy, depth]
        )

    def pixel_to_world(self, p_p, T_c_w: SE3, depth: float) -> np.ndarray:
        return self.camera_to_world(self.pixel_to_camera(p_p, depth), T_c_w)

    def world_to_pixel(self, p_w, T_c_w: SE3) -> np.ndarray:
        return self.camera_to_pixel(self.world_to_camera(p_w, T_c_w))