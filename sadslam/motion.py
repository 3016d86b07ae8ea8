"""Simulation of a vehicle driving in a circle at constant speed and yaw rate."""

from __future__ import annotations

import argparse
import itertools
import logging
import math
import time
from collections.abc import Iterator

import numpy as np

from sadslam.imu_integration import NavState
from sadslam.lie import exp, from_quaternion, to_quaternion

logger = logging.getLogger(__name__)


def _quat_mul(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    w1, x1, y1, z1 = a
    w2, x2, y2, z2 = b
    return np.array(
        [
            w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2,
            w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2,
            w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2,
            w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2,
        ]
    )


def simulate_motion(
    angular_velocity_deg: float = 10.0,
    linear_velocity: float = 5.0,
    use_quaternion: bool = False,
    dt: float = 0.05,
) -> Iterator[NavState]:
    """Yield the vehicle state after each step of ``dt`` seconds, without end."""
    omega = np.array([0.0, 0.0, math.radians(angular_velocity_deg)])
    v_body = np.array([linear_velocity, 0.0, 0.0])
    rotation = np.eye(3)
    position = np.zeros(3)
    elapsed = 0.0

    while True:
        v_world = rotation @ v_body
        position = position + v_world * dt

        if use_quaternion:
            half = 0.5 * omega * dt
            q = _quat_mul(to_quaternion(rotation), np.array([1.0, half[0], half[1], half[2]]))
            rotation = from_quaternion(q)
        else:
            rotation = rotation @ exp(omega * dt)

        elapsed += dt
        yield NavState(elapsed, rotation, position, v_world)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Simulate a vehicle moving on a circle.")
    parser.add_argument("--angular_velocity", type=float, default=10.0, help="yaw rate in degrees per second")
    parser.add_argument("--linear_velocity", type=float, default=5.0, help="forward speed in m/s")
    parser.add_argument("--use_quaternion", action="store_true", help="update rotation with quaternions")
    parser.add_argument("--steps", type=int, default=None, help="stop after this many steps")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    dt = 0.05
    states = simulate_motion(args.angular_velocity, args.linear_velocity, args.use_quaternion, dt)
    if args.steps is not None:
        states = itertools.islice(states, args.steps)

    try:
        for state in states:
            logger.info("pose: %s", " ".join(f"{x:.6g}" for x in state.position))
            time.sleep(dt)
    except KeyboardInterrupt:
        pass
    return 0