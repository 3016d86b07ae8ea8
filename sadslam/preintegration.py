"""IMU preintegration between two keyframes, with bias Jacobians and noise propagation."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from sadslam.imu_integration import IMU, NavState
from sadslam.lie import exp, hat, right_jacobian

DEFAULT_GRAVITY = (0.0, 0.0, -9.81)


def _zeros() -> np.ndarray:
    return np.zeros(3)


@dataclass
class PreintegrationOptions:
    """Initial biases and measurement noise (standard deviations)."""

    init_bg: np.ndarray = field(default_factory=_zeros)
    init_ba: np.ndarray = field(default_factory=_zeros)
    noise_gyro: float = 1e-2
    noise_acce: float = 1e-1


class IMUPreintegration:
    """Accumulates IMU readings into relative rotation, velocity and position increments.

    Feed readings with :meth:`integrate`; the increments, corrected to first order
    for a change of bias, come from the ``delta_*`` methods.
    """

    def __init__(self, options: PreintegrationOptions | None = None) -> None:
        opts = options if options is not None else PreintegrationOptions()
        self.dt = 0.0
        self.cov = np.zeros((9, 9))
        ng2 = opts.noise_gyro * opts.noise_gyro
        na2 = opts.noise_acce * opts.noise_acce
        self.noise_gyro_acce = np.diag([ng2] * 3 + [na2] * 3)

        self.bg = np.array(opts.init_bg, dtype=float).reshape(3)
        self.ba = np.array(opts.init_ba, dtype=float).reshape(3)

        self.dr = np.eye(3)
        self.dv = np.zeros(3)
        self.dp = np.zeros(3)

        self.dr_dbg = np.zeros((3, 3))
        self.dv_dbg = np.zeros((3, 3))
        self.dv_dba = np.zeros((3, 3))
        self.dp_dbg = np.zeros((3, 3))
        self.dp_dba = np.zeros((3, 3))

    def integrate(self, imu: IMU, dt: float) -> None:
        """Add one reading held for ``dt`` seconds."""
        gyr = imu.gyro - self.bg
        acc = imu.acce - self.ba
        dr = self.dr
        eye3 = np.eye(3)

        self.dp = self.dp + self.dv * dt + 0.5 * (dr @ acc) * dt * dt
        self.dv = self.dv + (dr @ acc) * dt

        a = np.eye(9)
        b = np.zeros((9, 6))
        acc_hat = hat(acc)
        dt2 = dt * dt

        a[3:6, 0:3] = -(dr * dt) @ acc_hat
        a[6:9, 0:3] = -0.5 * (dr @ acc_hat) * dt2
        a[6:9, 3:6] = dt * eye3

        b[3:6, 3:6] = dr * dt
        b[6:9, 3:6] = 0.5 * dr * dt2

        self.dp_dba = self.dp_dba + self.dv_dba * dt - 0.5 * dr * dt2
        self.dp_dbg = self.dp_dbg + self.dv_dbg * dt - (0.5 * dr * dt2) @ acc_hat @ self.dr_dbg
        self.dv_dba = self.dv_dba - dr * dt
        self.dv_dbg = self.dv_dbg - (dr * dt) @ acc_hat @ self.dr_dbg

        omega = gyr * dt
        right_j = right_jacobian(omega)
        delta_r = exp(omega)
        self.dr = dr @ delta_r

        a[0:3, 0:3] = delta_r.T
        b[0:3, 0:3] = right_j * dt

        self.cov = a @ self.cov @ a.T + b @ self.noise_gyro_acce @ b.T
        self.dr_dbg = delta_r.T @ self.dr_dbg - right_j * dt
        self.dt += dt

    def predict(self, start: NavState, gravity=DEFAULT_GRAVITY) -> NavState:
        """State reached from ``start`` after the integrated interval."""
        g = np.asarray(gravity, dtype=float).reshape(3)
        r = start.rotation
        rj = r @ self.dr
        vj = r @ self.dv + start.velocity + g * self.dt
        pj = r @ self.dp + start.position + start.velocity * self.dt + 0.5 * g * self.dt * self.dt
        return NavState(start.timestamp + self.dt, rj, pj, vj, self.bg, self.ba)

    def delta_rotation(self, bg) -> np.ndarray:
        return self.dr @ exp(self.dr_dbg @ (np.asarray(bg, dtype=float) - self.bg))

    def delta_velocity(self, bg, ba) -> np.ndarray:
        dbg = np.asarray(bg, dtype=float) - self.bg
        dba = np.asarray(ba, dtype=float) - self.ba
        return self.dv + self.dv_dbg @ dbg + self.dv_dba @ dba

    def delta_position(self, bg, ba) -> np.ndarray:
        dbg = np.asarray(bg, dtype=float) - self.bg
        dba = np.asarray(ba, dtype=float) - self.ba
        return self.dp + self.dp_dbg @ dbg + self.dp_dba @ dba