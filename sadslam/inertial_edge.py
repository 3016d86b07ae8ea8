"""Preintegration residual between two navigation states, with its Jacobians."""

from __future__ import annotations

import numpy as np

from sadslam.lie import SE3, hat, log, right_jacobian, right_jacobian_inv
from sadslam.preintegration import IMUPreintegration


class InertialEdge:
    """Nine-dimensional residual (rotation, velocity, position) linking six variables.

    Variables are, in order: pose1, v1, bg1, ba1, pose2, v2. Pose Jacobian columns
    are the right-multiplied rotation perturbation followed by the translation.
    """

    def __init__(self, preinteg: IMUPreintegration, gravity, weight: float = 1.0) -> None:
        self.preinteg = preinteg
        self.dt = preinteg.dt
        self.gravity = np.array(gravity, dtype=float).reshape(3)
        try:
            self.information = np.linalg.inv(preinteg.cov) * weight
        except np.linalg.LinAlgError as exc:
            raise ValueError("preintegration covariance is singular") from exc

    def error(self, pose1: SE3, v1, bg1, ba1, pose2: SE3, v2) -> np.ndarray:
        pre = self.preinteg
        v1 = np.asarray(v1, dtype=float)
        v2 = np.asarray(v2, dtype=float)
        dr = pre.delta_rotation(bg1)
        dv = pre.delta_velocity(bg1, ba1)
        dp = pre.delta_position(bg1, ba1)
        g, dt = self.gravity, self.dt

        er = log(dr.T @ pose1.rotation.T @ pose2.rotation)
        r1t = pose1.rotation.T
        ev = r1t @ (v2 - v1 - g * dt) - dv
        ep = r1t @ (pose2.translation - pose1.translation - v1 * dt - g * dt * dt / 2) - dp
        return np.concatenate([er, ev, ep])

    def jacobians(self, pose1: SE3, v1, bg1, ba1, pose2: SE3, v2) -> list[np.ndarray]:
        """Jacobians of the residual with respect to each of the six variables."""
        pre = self.preinteg
        vi = np.asarray(v1, dtype=float)
        vj = np.asarray(v2, dtype=float)
        dbg = np.asarray(bg1, dtype=float) - pre.bg
        g, dt = self.gravity, self.dt

        r1 = pose1.rotation
        r1t = r1.T
        r2 = pose2.rotation
        pi, pj = pose1.translation, pose2.translation

        dr = pre.delta_rotation(bg1)
        e_r = dr.T @ r1t @ r2
        er = log(e_r)
        inv_jr = right_jacobian_inv(er)

        j_pose1 = np.zeros((9, 6))
        j_pose1[0:3, 0:3] = -inv_jr @ (r2.T @ r1)
        j_pose1[3:6, 0:3] = hat(r1t @ (vj - vi - g * dt))
        j_pose1[6:9, 0:3] = hat(r1t @ (pj - pi - vi * dt - 0.5 * g * dt * dt))
        j_pose1[6:9, 3:6] = -r1t

        j_v1 = np.zeros((9, 3))
        j_v1[3:6] = -r1t
        j_v1[6:9] = -r1t * dt

        j_bg1 = np.zeros((9, 3))
        j_bg1[0:3] = -inv_jr @ e_r.T @ right_jacobian(pre.dr_dbg @ dbg) @ pre.dr_dbg
        j_bg1[3:6] = -pre.dv_dbg
        j_bg1[6:9] = -pre.dp_dbg

        j_ba1 = np.zeros((9, 3))
        j_ba1[3:6] = -pre.dv_dba
        j_ba1[6:9] = -pre.dp_dba

        j_pose2 = np.zeros((9, 6))
        j_pose2[0:3, 0:3] = inv_jr
        j_pose2[6:9, 3:6] = r1t

        j_v2 = np.zeros((9, 3))
        j_v2[3:6] = r1t

        return [j_pose1, j_v1, j_bg1, j_ba1, j_pose2, j_v2]

    def hessian(self, pose1: SE3, v1, bg1, ba1, pose2: SE3, v2) -> np.ndarray:
        """24x24 Gauss-Newton Hessian J^T * information * J."""
        j = np.hstack(self.jacobians(pose1, v1, bg1, ba1, pose2, v2))
        return j.T @ self.information @ j