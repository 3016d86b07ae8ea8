"""Error-state Kalman filter fusing IMU, wheel odometry, GNSS and pose observations."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

import numpy as np

from sadslam.imu_integration import IMU, NavState
from sadslam.lie import SE3, exp, hat, log
from sadslam.static_imu_init import Odom

logger = logging.getLogger(__name__)

DEFAULT_GRAVITY = (0.0, 0.0, -9.8)


@dataclass
class GNSS:
    """A GNSS fix already converted to a pose in the map frame."""

    unix_time: float = 0.0
    utm_pose: SE3 = field(default_factory=SE3)
    heading_valid: bool = False


@dataclass
class ESKFOptions:
    imu_dt: float = 0.01
    gyro_var: float = 1e-5
    acce_var: float = 1e-2
    bias_gyro_var: float = 1e-6
    bias_acce_var: float = 1e-4

    odom_var: float = 0.5
    odom_span: float = 0.1
    wheel_radius: float = 0.155
    circle_pulse: float = 1024.0

    gnss_pos_noise: float = 0.1
    gnss_height_noise: float = 0.1
    gnss_ang_noise: float = math.radians(1.0)

    update_bias_gyro: bool = True
    update_bias_acce: bool = True


class ESKF:
    """18-dimensional error-state Kalman filter; state order p, v, R, bg, ba, g."""

    def __init__(self, options: ESKFOptions | None = None) -> None:
        self.options = options if options is not None else ESKFOptions()
        self.current_time = 0.0
        self.position = np.zeros(3)
        self.velocity = np.zeros(3)
        self.rotation = np.eye(3)
        self.bg = np.zeros(3)
        self.ba = np.zeros(3)
        self.gravity = np.array(DEFAULT_GRAVITY)
        self.dx = np.zeros(18)
        self.cov = np.eye(18)
        self.process_noise = np.zeros((18, 18))
        self.odom_noise = np.zeros((3, 3))
        self.gnss_noise = np.zeros((6, 6))
        self._first_gnss = True
        self._build_noise(self.options)

    def set_initial_conditions(self, options: ESKFOptions, init_bg, init_ba, gravity=DEFAULT_GRAVITY) -> None:
        self._build_noise(options)
        self.options = options
        self.bg = np.array(init_bg, dtype=float).reshape(3)
        self.ba = np.array(init_ba, dtype=float).reshape(3)
        self.gravity = np.array(gravity, dtype=float).reshape(3)
        self.cov = np.eye(18) * 1e-4

    def predict(self, imu: IMU) -> bool:
        """Propagate with one IMU reading; returns False when the time gap is unusable."""
        if imu.timestamp < self.current_time:
            raise ValueError(f"IMU timestamp {imu.timestamp} is older than filter time {self.current_time}")

        dt = imu.timestamp - self.current_time
        if dt > 5 * self.options.imu_dt:
            logger.info("skip this imu because dt = %s", dt)
            self.current_time = imu.timestamp
            return False

        acc_body = imu.acce - self.ba
        acc_world = self.rotation @ acc_body
        new_p = (
            self.position
            + self.velocity * dt
            + 0.5 * acc_world * dt * dt
            + 0.5 * self.gravity * dt * dt
        )
        new_v = self.velocity + acc_world * dt + self.gravity * dt
        new_r = self.rotation @ exp((imu.gyro - self.bg) * dt)

        self.rotation = new_r
        self.velocity = new_v
        self.position = new_p

        eye3 = np.eye(3)
        f = np.eye(18)
        f[0:3, 3:6] = eye3 * dt
        f[3:6, 6:9] = -self.rotation @ hat(acc_body) * dt
        f[3:6, 12:15] = -self.rotation * dt
        f[3:6, 15:18] = eye3 * dt
        f[6:9, 6:9] = exp(-(imu.gyro - self.bg) * dt)
        f[6:9, 9:12] = -eye3 * dt

        self.dx = f @ self.dx
        self.cov = f @ self.cov @ f.T + self.process_noise
        self.current_time = imu.timestamp
        return True

    def observe_wheel_speed(self, odom: Odom) -> bool:
        """Correct velocity with the mean wheel speed along the body x axis."""
        if odom.timestamp < self.current_time:
            raise ValueError(f"odom timestamp {odom.timestamp} is older than filter time {self.current_time}")

        h = np.zeros((3, 18))
        h[:, 3:6] = np.eye(3)
        k = self.cov @ h.T @ np.linalg.inv(h @ self.cov @ h.T + self.odom_noise)

        opts = self.options
        scale = opts.wheel_radius / opts.circle_pulse * 2 * math.pi / opts.odom_span
        average_vel = 0.5 * (odom.left_pulse * scale + odom.right_pulse * scale)
        vel_world = self.rotation @ np.array([average_vel, 0.0, 0.0])

        self.dx = k @ (vel_world - self.velocity)
        self.cov = (np.eye(18) - k @ h) @ self.cov
        self._update_and_reset()
        return True

    def observe_gps(self, gnss: GNSS) -> bool:
        """Use a GNSS pose; the first one sets the state directly."""
        if gnss.unix_time < self.current_time:
            raise ValueError(f"GNSS time {gnss.unix_time} is older than filter time {self.current_time}")

        if self._first_gnss:
            self.rotation = gnss.utm_pose.rotation.copy()
            self.position = gnss.utm_pose.translation.copy()
            self._first_gnss = False
            self.current_time = gnss.unix_time
            return True

        if not gnss.heading_valid:
            raise ValueError("GNSS observation requires a valid heading")
        self.observe_se3(gnss.utm_pose, self.options.gnss_pos_noise, self.options.gnss_ang_noise)
        self.current_time = gnss.unix_time
        return True

    def observe_se3(self, pose: SE3, trans_noise: float = 0.1, ang_noise: float = math.radians(1.0)) -> bool:
        """Correct position and rotation with an observed pose."""
        h = np.zeros((6, 18))
        h[0:3, 0:3] = np.eye(3)
        h[3:6, 6:9] = np.eye(3)

        noise = np.diag([trans_noise] * 3 + [ang_noise] * 3)
        k = self.cov @ h.T @ np.linalg.inv(h @ self.cov @ h.T + noise)

        innov = np.concatenate(
            [pose.translation - self.position, log(self.rotation.T @ pose.rotation)]
        )
        self.dx = k @ innov
        self.cov = (np.eye(18) - k @ h) @ self.cov
        self._update_and_reset()
        return True

    def nominal_state(self) -> NavState:
        return NavState(self.current_time, self.rotation, self.position, self.velocity, self.bg, self.ba)

    def nominal_se3(self) -> SE3:
        return SE3(self.rotation, self.position)

    def set_state(self, state: NavState, gravity) -> None:
        self.current_time = state.timestamp
        self.rotation = np.array(state.rotation, dtype=float)
        self.position = np.array(state.position, dtype=float)
        self.velocity = np.array(state.velocity, dtype=float)
        self.bg = np.array(state.bg, dtype=float)
        self.ba = np.array(state.ba, dtype=float)
        self.gravity = np.array(gravity, dtype=float).reshape(3)

    def set_cov(self, cov) -> None:
        self.cov = np.array(cov, dtype=float).reshape(18, 18)

    def _build_noise(self, options: ESKFOptions) -> None:
        ev, et = options.acce_var, options.gyro_var
        eg, ea = options.bias_gyro_var, options.bias_acce_var
        self.process_noise = np.diag([0.0] * 3 + [ev] * 3 + [et] * 3 + [eg] * 3 + [ea] * 3 + [0.0] * 3)

        # odometry noise follows the options currently held by the filter
        o2 = self.options.odom_var * self.options.odom_var
        self.odom_noise = np.diag([o2] * 3)

        gp2 = options.gnss_pos_noise**2
        gh2 = options.gnss_height_noise**2
        ga2 = options.gnss_ang_noise**2
        self.gnss_noise = np.diag([gp2, gp2, gh2, ga2, ga2, ga2])

    def _update_and_reset(self) -> None:
        dx = self.dx
        self.position = self.position + dx[0:3]
        self.velocity = self.velocity + dx[3:6]
        self.rotation = self.rotation @ exp(dx[6:9])
        if self.options.update_bias_gyro:
            self.bg = self.bg + dx[9:12]
        if self.options.update_bias_acce:
            self.ba = self.ba + dx[12:15]
        self.gravity = self.gravity + dx[15:18]

        j = np.eye(18)
        j[6:9, 6:9] = np.eye(3) - 0.5 * hat(dx[6:9])
        self.cov = j @ self.cov @ j.T
        self.dx = np.zeros(18)