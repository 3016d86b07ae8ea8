import itertools
import logging
import math

import numpy as np
import pytest

from sadslam.lie import log
from sadslam.motion import main, simulate_motion


def _take(n, **kwargs):
    return list(itertools.islice(simulate_motion(**kwargs), n))


@pytest.mark.parametrize("use_quaternion", [False, True])
def test_speed_is_constant(use_quaternion):
    for state in _take(200, use_quaternion=use_quaternion):
        assert np.linalg.norm(state.velocity) == pytest.approx(5.0)


@pytest.mark.parametrize("use_quaternion", [False, True])
def test_rotations_stay_orthonormal(use_quaternion):
    for state in _take(300, use_quaternion=use_quaternion):
        assert np.allclose(state.rotation.T @ state.rotation, np.eye(3), atol=1e-9)
        assert np.linalg.det(state.rotation) == pytest.approx(1.0)


def test_first_step_moves_along_body_x():
    first = _take(1, linear_velocity=5.0, dt=0.05)[0]
    assert np.allclose(first.velocity, (5.0, 0.0, 0.0))
    assert np.allclose(first.position, (5.0 * 0.05, 0.0, 0.0))
    assert first.timestamp == pytest.approx(0.05)


def test_quaternion_and_exponential_updates_agree():
    a = _take(100, use_quaternion=False)[-1]
    b = _take(100, use_quaternion=True)[-1]
    assert np.allclose(a.rotation, b.rotation, atol=1e-4)
    assert np.allclose(a.position, b.position, atol=1e-3)


def test_heading_grows_linearly():
    dt = 0.05
    rate = 10.0
    for n, state in enumerate(_take(100, angular_velocity_deg=rate, dt=dt), start=1):
        assert log(state.rotation)[2] == pytest.approx(math.radians(rate) * dt * n, abs=1e-9)


def test_full_revolution_returns_to_start():
    # 10 deg/s over 36 s is one turn: 720 steps of 0.05 s
    states = _take(720, angular_velocity_deg=10.0, dt=0.05)
    assert np.allclose(states[-1].position, 0.0, atol=1e-6)
    farthest = max(np.linalg.norm(s.position) for s in states)
    assert farthest > 1.0


def test_zero_rate_drives_straight():
    states = _take(10, angular_velocity_deg=0.0, linear_velocity=2.0, dt=0.1)
    assert np.allclose(states[-1].position, (2.0 * 0.1 * 10, 0.0, 0.0))
    assert np.allclose(states[-1].rotation, np.eye(3))


def test_main_logs_each_step(caplog):
    caplog.set_level(logging.INFO, logger="sadslam.motion")
    assert main(["--steps", "3", "--use_quaternion"]) == 0
    pose_lines = [r for r in caplog.records if r.getMessage().startswith("pose:")]
    assert len(pose_lines) == 3