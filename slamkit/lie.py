"""Rotations and rigid-body transforms: SO(3), SE(3) and their Lie algebras.

Tangent vectors of SE(3) are ordered translation first, rotation second:
``xi = (rho_x, rho_y, rho_z, phi_x, phi_y, phi_z)``.
Quaternions are always given and returned as ``(w, x, y, z)``.
"""

from __future__ import annotations

import math

import numpy as np

_SMALL = 1e-10
_ORTHO_TOLERANCE = 1e-6


def _vector(value, size: int, name: str) -> np.ndarray:
    array = np.asarray(value, dtype=float).reshape(-1)
    if array.shape != (size,):
        raise ValueError(f"{name} must have {size} elements, got shape {np.shape(value)}")
    return array


def _square(value, size: int, name: str) -> np.ndarray:
    array = np.asarray(value, dtype=float)
    if array.shape != (size, size):
        raise ValueError(f"{name} must be a {size}x{size} matrix, got shape {array.shape}")
    return array


def hat(v) -> np.ndarray:
    """Skew-symmetric matrix of a 3-vector, so that ``hat(v) @ w == v x w``."""
    x, y, z = _vector(v, 3, "v")
    return np.array([[0.0, -z, y], [z, 0.0, -x], [-y, x, 0.0]])


def vee(m) -> np.ndarray:
    """Inverse of :func:`hat`: the 3-vector of a skew-symmetric matrix."""
    m = _square(m, 3, "m")
    return np.array([m[2, 1], m[0, 2], m[1, 0]])


def se3_hat(xi) -> np.ndarray:
    """4x4 matrix of a twist ``(rho, phi)``."""
    xi = _vector(xi, 6, "xi")
    out = np.zeros((4, 4))
    out[:3, :3] = hat(xi[3:])
    out[:3, 3] = xi[:3]
    return out


def se3_vee(m) -> np.ndarray:
    """Inverse of :func:`se3_hat`."""
    m = _square(m, 4, "m")
    return np.concatenate([m[:3, 3], vee(m[:3, :3])])


def angle_axis_matrix(angle: float, axis) -> np.ndarray:
    """Rotation matrix of a rotation by ``angle`` radians about ``axis``."""
    axis = _vector(axis, 3, "axis")
    norm = np.linalg.norm(axis)
    if norm == 0.0:
        raise ValueError("rotation axis must not be zero")
    k = hat(axis / norm)
    return np.eye(3) + math.sin(angle) * k + (1.0 - math.cos(angle)) * (k @ k)


def quaternion_to_matrix(w: float, x: float, y: float, z: float) -> np.ndarray:
    """Rotation matrix of a quaternion; the quaternion is normalised first."""
    norm = math.sqrt(w * w + x * x + y * y + z * z)
    if norm == 0.0:
        raise ValueError("quaternion must not be zero")
    w, x, y, z = w / norm, x / norm, y / norm, z / norm
    return np.array(
        [
            [1 - 2 * (y * y + z * z), 2 * (x * y - w * z), 2 * (x * z + w * y)],
            [2 * (x * y + w * z), 1 - 2 * (x * x + z * z), 2 * (y * z - w * x)],
            [2 * (x * z - w * y), 2 * (y * z + w * x), 1 - 2 * (x * x + y * y)],
        ]
    )


def matrix_to_quaternion(rotation) -> tuple[float, float, float, float]:
    """Quaternion ``(w, x, y, z)`` of a rotation matrix."""
    r = _square(rotation, 3, "rotation")
    trace = r[0, 0] + r[1, 1] + r[2, 2]
    if trace > 0.0:
        s = math.sqrt(trace + 1.0)
        w = 0.5 * s
        s = 0.5 / s
        return (
            float(w),
            float((r[2, 1] - r[1, 2]) * s),
            float((r[0, 2] - r[2, 0]) * s),
            float((r[1, 0] - r[0, 1]) * s),
        )
    i = 0
    if r[1, 1] > r[0, 0]:
        i = 1
    if r[2, 2] > r[i, i]:
        i = 2
    j = (i + 1) % 3
    k = (j + 1) % 3
    s = math.sqrt(r[i, i] - r[j, j] - r[k, k] + 1.0)
    imag = [0.0, 0.0, 0.0]
    imag[i] = 0.5 * s
    s = 0.5 / s
    w = (r[k, j] - r[j, k]) * s
    imag[j] = (r[j, i] + r[i, j]) * s
    imag[k] = (r[k, i] + r[i, k]) * s
    return float(w), float(imag[0]), float(imag[1]), float(imag[2])


def euler_angles_zyx(rotation) -> np.ndarray:
    """Yaw, pitch, roll of a rotation matrix (Z-Y-X order), yaw in [0, pi]."""
    m = _square(rotation, 3, "rotation")
    # Axis indices for the (2, 1, 0) sequence.
    i, j, k = 2, 1, 0
    yaw = math.atan2(m[j, i], m[i, i]) if False else math.atan2(m[j, k], m[k, k])
    c2 = math.hypot(m[i, i], m[i, j])
    if yaw < 0.0:
        yaw += math.pi
        pitch = math.atan2(-m[i, k], -c2)
    else:
        pitch = math.atan2(-m[i, k], c2)
    s1, c1 = math.sin(yaw), math.cos(yaw)
    roll = math.atan2(s1 * m[k, i] - c1 * m[j, i], c1 * m[j, j] - s1 * m[k, j])
    return np.array([yaw, pitch, roll])


class SO3:
    """A 3D rotation."""

    def __init__(self, matrix=None):
        if matrix is None:
            matrix = np.eye(3)
        r = _square(matrix, 3, "matrix")
        if not np.allclose(r.T @ r, np.eye(3), atol=_ORTHO_TOLERANCE) or np.linalg.det(r) <= 0:
            raise ValueError("matrix is not a rotation matrix")
        self.matrix = r.copy()

    @classmethod
    def from_quaternion(cls, w: float, x: float, y: float, z: float) -> "SO3":
        return cls(quaternion_to_matrix(w, x, y, z))

    @classmethod
    def exp(cls, omega) -> "SO3":
        """Rotation of the rotation vector ``omega``."""
        omega = _vector(omega, 3, "omega")
        theta = float(np.linalg.norm(omega))
        half = 0.5 * theta
        if theta < _SMALL:
            theta_sq = theta * theta
            imag_factor = 0.5 - theta_sq / 48.0 + theta_sq * theta_sq / 3840.0
            real = 1.0 - theta_sq / 8.0 + theta_sq * theta_sq / 384.0
        else:
            imag_factor = math.sin(half) / theta
            real = math.cos(half)
        x, y, z = imag_factor * omega
        return cls.from_quaternion(real, x, y, z)

    def log(self) -> np.ndarray:
        """Rotation vector of this rotation, with angle in [-pi, pi]."""
        w, x, y, z = self.quaternion()
        vec = np.array([x, y, z])
        n = float(np.linalg.norm(vec))
        if n < _SMALL:
            factor = 2.0 / w - (2.0 / 3.0) * n * n / (w * w * w)
        elif abs(w) < _SMALL:
            factor = (math.pi if w > 0 else -math.pi) / n
        else:
            factor = 2.0 * math.atan(n / w) / n
        return factor * vec

    def inverse(self) -> "SO3":
        return SO3(self.matrix.T)

    def quaternion(self) -> tuple[float, float, float, float]:
        """Unit quaternion ``(w, x, y, z)`` of this rotation."""
        return matrix_to_quaternion(self.matrix)

    def __mul__(self, other):
        if isinstance(other, SO3):
            return SO3(self.matrix @ other.matrix)
        points = np.asarray(other, dtype=float)
        if points.shape[-1:] != (3,):
            raise ValueError("points must have 3 coordinates on their last axis")
        return points @ self.matrix.T

    def __repr__(self) -> str:
        return f"SO3({self.matrix.tolist()!r})"


class SE3:
    """A rigid-body transform: a rotation followed by a translation."""

    def __init__(self, rotation=None, translation=None):
        if rotation is None:
            rotation = SO3()
        elif not isinstance(rotation, SO3):
            rotation = SO3(rotation)
        self.rotation = rotation
        self.translation = (
            np.zeros(3) if translation is None else _vector(translation, 3, "translation").copy()
        )

    @classmethod
    def from_quaternion(cls, w: float, x: float, y: float, z: float, translation) -> "SE3":
        return cls(SO3.from_quaternion(w, x, y, z), translation)

    @classmethod
    def exp(cls, xi) -> "SE3":
        """Transform of the twist ``xi = (rho, phi)``."""
        xi = _vector(xi, 6, "xi")
        rho, phi = xi[:3], xi[3:]
        rotation = SO3.exp(phi)
        theta = float(np.linalg.norm(phi))
        omega = hat(phi)
        omega_sq = omega @ omega
        if theta < _SMALL:
            v = np.eye(3) + 0.5 * omega + omega_sq / 6.0
        else:
            theta_sq = theta * theta
            v = (
                np.eye(3)
                + (1.0 - math.cos(theta)) / theta_sq * omega
                + (theta - math.sin(theta)) / (theta_sq * theta) * omega_sq
            )
        return cls(rotation, v @ rho)

    def log(self) -> np.ndarray:
        """Twist ``(rho, phi)`` of this transform."""
        phi = self.rotation.log()
        theta = float(np.linalg.norm(phi))
        omega = hat(phi)
        omega_sq = omega @ omega
        if abs(theta) < _SMALL:
            v_inv = np.eye(3) - 0.5 * omega + omega_sq / 12.0
        else:
            half = 0.5 * theta
            v_inv = (
                np.eye(3)
                - 0.5 * omega
                + (1.0 - 0.5 * theta * math.cos(half) / math.sin(half)) / (theta * theta) * omega_sq
            )
        return np.concatenate([v_inv @ self.translation, phi])

    def inverse(self) -> "SE3":
        inv_rotation = self.rotation.inverse()
        return SE3(inv_rotation, -(inv_rotation.matrix @ self.translation))

    def matrix(self) -> np.ndarray:
        """Homogeneous 4x4 matrix."""
        out = np.eye(4)
        out[:3, :3] = self.rotation.matrix
        out[:3, 3] = self.translation
        return out

    def matrix3x4(self) -> np.ndarray:
        """Top three rows of the homogeneous matrix."""
        return self.matrix()[:3, :]

    def adjoint(self) -> np.ndarray:
        """6x6 adjoint matrix acting on twists ``(rho, phi)``."""
        r = self.rotation.matrix
        out = np.zeros((6, 6))
        out[:3, :3] = r
        out[3:, 3:] = r
        out[:3, 3:] = hat(self.translation) @ r
        return out

    def __mul__(self, other):
        if isinstance(other, SE3):
            return SE3(
                self.rotation * other.rotation,
                self.rotation.matrix @ other.translation + self.translation,
            )
        points = np.asarray(other, dtype=float)
        if points.shape[-1:] != (3,):
            raise ValueError("points must have 3 coordinates on their last axis")
        return points @ self.rotation.matrix.T + self.translation

    def __repr__(self) -> str:
        return f"SE3(rotation={self.rotation.matrix.tolist()!r}, translation={self.translation.tolist()!r})"