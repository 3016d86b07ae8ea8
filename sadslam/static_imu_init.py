"""Static IMU initialisation: estimate biases, noise and gravity while at rest."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass

import numpy as np

from sadslam.imu_integration import IMU

logger = logging.getLogger(__name__)


@dataclass
class Odom:
    """Wheel encoder reading: pulses of the left and right wheel."""

    timestamp: float = 0.0
    left_pulse: float = 0.0
    right_pulse: float = 0.0


@dataclass
class StaticIMUInitOptions:
    init_time_seconds: float = 10.0
    init_imu_queue_max_size: int = 2000
    static_odom_pulse: int = 5
    max_static_gyro_var: float = 0.5
    max_static_acce_var: float = 0.05
    gravity_norm: float = 9.81
    use_speed_for_static_checking: bool = True


def _mean_and_cov_diag(values) -> tuple[np.ndarray, np.ndarray]:
    arr = np.array(list(values), dtype=float)
    return arr.mean(axis=0), arr.var(axis=0, ddof=1)


class StaticIMUInit:
    """Collects IMU readings while the vehicle is still and estimates initial parameters."""

    def __init__(self, options: StaticIMUInitOptions | None = None) -> None:
        self.options = options if options is not None else StaticIMUInitOptions()
        self.init_success = False
        self.cov_gyro = np.zeros(3)
        self.cov_acce = np.zeros(3)
        self.init_bg = np.zeros(3)
        self.init_ba = np.zeros(3)
        self.gravity = np.zeros(3)
        self.is_static = False
        self._queue: deque[IMU] = deque()
        self.current_time = 0.0
        self.init_start_time = 0.0

    def add_imu(self, imu: IMU) -> bool:
        """Add a reading; returns True only once initialisation has already succeeded."""
        if self.init_success:
            return True

        if self.options.use_speed_for_static_checking and not self.is_static:
            logger.warning("waiting for the vehicle to stand still")
            self._queue.clear()
            return False

        if not self._queue:
            self.init_start_time = imu.timestamp

        self._queue.append(imu)

        if imu.timestamp - self.init_start_time > self.options.init_time_seconds:
            self._try_init()

        while len(self._queue) > self.options.init_imu_queue_max_size:
            self._queue.popleft()

        self.current_time = imu.timestamp
        return False

    def add_odom(self, odom: Odom) -> bool:
        """Use wheel pulses to decide whether the vehicle is static."""
        if self.init_success:
            return True
        limit = self.options.static_odom_pulse
        self.is_static = odom.left_pulse < limit and odom.right_pulse < limit
        self.current_time = odom.timestamp
        return True

    def _try_init(self) -> bool:
        if len(self._queue) < 10:
            return False

        mean_gyro, self.cov_gyro = _mean_and_cov_diag(imu.gyro for imu in self._queue)
        mean_acce, self.cov_acce = _mean_and_cov_diag(imu.acce for imu in self._queue)

        logger.info("mean acce: %s", mean_acce)
        self.gravity = -mean_acce / np.linalg.norm(mean_acce) * self.options.gravity_norm

        mean_acce, self.cov_acce = _mean_and_cov_diag(imu.acce + self.gravity for imu in self._queue)

        gyro_norm = float(np.linalg.norm(self.cov_gyro))
        if gyro_norm > self.options.max_static_gyro_var:
            logger.error("gyro noise too large: %s > %s", gyro_norm, self.options.max_static_gyro_var)
            return False

        acce_norm = float(np.linalg.norm(self.cov_acce))
        if acce_norm > self.options.max_static_acce_var:
            logger.error("accelerometer noise too large: %s > %s", acce_norm, self.options.max_static_acce_var)
            return False

        self.init_bg = mean_gyro
        self.init_ba = mean_acce
        logger.info(
            "IMU initialised after %.3f s, bg=%s, ba=%s, gyro cov=%s, acce cov=%s, gravity=%s",
            self.current_time - self.init_start_time,
            self.init_bg,
            self.init_ba,
            self.cov_gyro,
            self.cov_acce,
            self.gravity,
        )
        self.init_success = True
        return True