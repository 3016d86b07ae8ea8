"""IMU readings, navigation states and plain IMU dead reckoning."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from sadslam.lie import SE3, exp


def _zeros() -> np.ndarray:
    return np.zeros(3)


@dataclass
class IMU:
    """A single IMU reading: angular rate and specific force."""

    timestamp: float = 0.0
    gyro: np.ndarray = field(default_factory=_zeros)
    acce: np.ndarray = field(default_factory=_zeros)

    def __post_init__(self) -> None:
        self.gyro = np.array(self.gyro, dtype=float).reshape(3)
        self.acce = np.array(self.acce, dtype=float).reshape(3)


@dataclass
class NavState:
    """Navigation state: rotation, position, velocity and IMU biases."""

    timestamp: float = 0.0
    rotation: np.ndarray = field(default_factory=lambda: np.eye(3))
    position: np.ndarray = field(default_factory=_zeros)
    velocity: np.ndarray = field(default_factory=_zeros)
    bg: np.ndarray = field(default_factory=_zeros)
    ba: np.ndarray = field(default_factory=_zeros)

    def __post_init__(self) -> None:
        self.rotation = np.array(self.rotation, dtype=float).reshape(3, 3)
        self.position = np.array(self.position, dtype=float).reshape(3)
        self.velocity = np.array(self.velocity, dtype=float).reshape(3)
        self.bg = np.array(self.bg, dtype=float).reshape(3)
        self.ba = np.array(self.ba, dtype=float).reshape(3)

    def pose(self) -> SE3:
        return SE3(self.rotation, self.position)


class IMUIntegration:
    """Integrates IMU readings directly, with fixed known biases."""

    def __init__(self, gravity, init_bg, init_ba) -> None:
        self.gravity = np.array(gravity, dtype=float).reshape(3)
        self.bg = np.array(init_bg, dtype=float).reshape(3)
        self.ba = np.array(init_ba, dtype=float).reshape(3)
        self.rotation = np.eye(3)
        self.velocity = np.zeros(3)
        self.position = np.zeros(3)
        self.timestamp = 0.0

    def add_imu(self, imu: IMU) -> None:
        """Integrate one reading; gaps outside (0, 0.1) s only move the clock."""
        dt = imu.timestamp - self.timestamp
        if 0.0 < dt < 0.1:
            acc_world = self.rotation @ (imu.acce - self.ba)
            self.position = (
                self.position
                + self.velocity * dt
                + 0.5 * self.gravity * dt * dt
                + 0.5 * acc_world * dt * dt
            )
            self.velocity = self.velocity + acc_world * dt + self.gravity * dt
            self.rotation = self.rotation @ exp((imu.gyro - self.bg) * dt)
        self.timestamp = imu.timestamp

    def nav_state(self) -> NavState:
        return NavState(self.timestamp, self.rotation, self.position, self.velocity, self.bg, self.ba)