"""Rotation and rigid-motion helpers on SO(3) and SE(3)."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np

_SMALL = 1e-10


def _vec3(v) -> np.ndarray:
    return np.asarray(v, dtype=float).reshape(3)


def hat(v) -> np.ndarray:
    """Skew-symmetric matrix such that hat(v) @ w == cross(v, w)."""
    x, y, z = _vec3(v)
    return np.array([[0.0, -z, y], [z, 0.0, -x], [-y, x, 0.0]])


def exp(omega) -> np.ndarray:
    """Rotation matrix of the rotation vector ``omega``."""
    w = _vec3(omega)
    theta = float(np.linalg.norm(w))
    k = hat(w)
    if theta < _SMALL:
        return np.eye(3) + k + 0.5 * (k @ k)
    return (
        np.eye(3)
        + (math.sin(theta) / theta) * k
        + ((1.0 - math.cos(theta)) / (theta * theta)) * (k @ k)
    )


def to_quaternion(rotation) -> np.ndarray:
    """Unit quaternion (w, x, y, z) with w >= 0 for a rotation matrix."""
    r = np.asarray(rotation, dtype=float)
    trace = r[0, 0] + r[1, 1] + r[2, 2]
    if trace > 0.0:
        s = math.sqrt(trace + 1.0) * 2.0
        q = np.array([0.25 * s, (r[2, 1] - r[1, 2]) / s, (r[0, 2] - r[2, 0]) / s, (r[1, 0] - r[0, 1]) / s])
    elif r[0, 0] > r[1, 1] and r[0, 0] > r[2, 2]:
        s = math.sqrt(1.0 + r[0, 0] - r[1, 1] - r[2, 2]) * 2.0
        q = np.array([(r[2, 1] - r[1, 2]) / s, 0.25 * s, (r[0, 1] + r[1, 0]) / s, (r[0, 2] + r[2, 0]) / s])
    elif r[1, 1] > r[2, 2]:
        s = math.sqrt(1.0 + r[1, 1] - r[0, 0] - r[2, 2]) * 2.0
        q = np.array([(r[0, 2] - r[2, 0]) / s, (r[0, 1] + r[1, 0]) / s, 0.25 * s, (r[1, 2] + r[2, 1]) / s])
    else:
        s = math.sqrt(1.0 + r[2, 2] - r[0, 0] - r[1, 1]) * 2.0
        q = np.array([(r[1, 0] - r[0, 1]) / s, (r[0, 2] + r[2, 0]) / s, (r[1, 2] + r[2, 1]) / s, 0.25 * s])
    q /= np.linalg.norm(q)
    if q[0] < 0.0:
        q = -q
    return q


def from_quaternion(q) -> np.ndarray:
    """Rotation matrix of a quaternion (w, x, y, z); the quaternion is normalised first."""
    w, x, y, z = np.asarray(q, dtype=float).reshape(4) / np.linalg.norm(q)
    return np.array(
        [
            [1 - 2 * (y * y + z * z), 2 * (x * y - w * z), 2 * (x * z + w * y)],
            [2 * (x * y + w * z), 1 - 2 * (x * x + z * z), 2 * (y * z - w * x)],
            [2 * (x * z - w * y), 2 * (y * z + w * x), 1 - 2 * (x * x + y * y)],
        ]
    )


def log(rotation) -> np.ndarray:
    """Rotation vector of a rotation matrix, with angle in [0, pi]."""
    w, x, y, z = to_quaternion(rotation)
    n = math.sqrt(x * x + y * y + z * z)
    if n < _SMALL:
        scale = 2.0 / w - (2.0 / 3.0) * (n * n) / (w * w * w)
    elif abs(w) < _SMALL:
        scale = math.pi / n if w > 0 else -math.pi / n
    else:
        scale = 2.0 * math.atan(n / w) / n
    return scale * np.array([x, y, z])


def right_jacobian(omega) -> np.ndarray:
    """Right Jacobian of SO(3) at rotation vector ``omega``."""
    w = _vec3(omega)
    theta = float(np.linalg.norm(w))
    k = hat(w)
    if theta < _SMALL:
        return np.eye(3) - 0.5 * k
    t2 = theta * theta
    return np.eye(3) - ((1.0 - math.cos(theta)) / t2) * k + ((theta - math.sin(theta)) / (t2 * theta)) * (k @ k)


def right_jacobian_inv(omega) -> np.ndarray:
    """Inverse of the right Jacobian of SO(3) at rotation vector ``omega``."""
    w = _vec3(omega)
    theta = float(np.linalg.norm(w))
    k = hat(w)
    if theta < _SMALL:
        return np.eye(3) + 0.5 * k
    coeff = 1.0 / (theta * theta) - (1.0 + math.cos(theta)) / (2.0 * theta * math.sin(theta))
    return np.eye(3) + 0.5 * k + coeff * (k @ k)


def rot_z(angle: float) -> np.ndarray:
    """Rotation about the z axis by ``angle`` radians."""
    c, s = math.cos(angle), math.sin(angle)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


@dataclass
class SE3:
    """Rigid transform made of a rotation matrix and a translation."""

    rotation: np.ndarray = field(default_factory=lambda: np.eye(3))
    translation: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self) -> None:
        self.rotation = np.array(self.rotation, dtype=float).reshape(3, 3)
        self.translation = np.array(self.translation, dtype=float).reshape(3)

    @classmethod
    def from_matrix(cls, matrix) -> "SE3":
        m = np.asarray(matrix, dtype=float)
        return cls(m[:3, :3], m[:3, 3])

    def inverse(self) -> "SE3":
        rt = self.rotation.T
        return SE3(rt, -rt @ self.translation)

    def compose(self, other: "SE3") -> "SE3":
        return SE3(self.rotation @ other.rotation, self.rotation @ other.translation + self.translation)

    def __matmul__(self, other: "SE3") -> "SE3":
        return self.compose(other)

    def apply(self, point) -> np.ndarray:
        return self.rotation @ _vec3(point) + self.translation

    def matrix(self) -> np.ndarray:
        m = np.eye(4)
        m[:3, :3] = self.rotation
        m[:3, 3] = self.translation
        return m