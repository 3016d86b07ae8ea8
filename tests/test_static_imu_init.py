import numpy as np

from sadslam.imu_integration import IMU
from sadslam.static_imu_init import Odom, StaticIMUInit, StaticIMUInitOptions

GYRO_BIAS = np.array([0.01, -0.02, 0.005])
UP = np.array([0.0, 0.0, 9.81])


def _feed(init, seconds, gyro_noise=1e-3, acce_noise=1e-3, odom_pulse=None, seed=0):
    rng = np.random.default_rng(seed)
    steps = int(round(seconds * 100))
    results = []
    for i in range(steps + 1):
        t = i * 0.01
        if odom_pulse is not None:
            init.add_odom(Odom(t, odom_pulse, odom_pulse))
        gyro = GYRO_BIAS + rng.normal(0.0, gyro_noise, 3)
        acce = UP + rng.normal(0.0, acce_noise, 3)
        results.append(init.add_imu(IMU(t, gyro, acce)))
    return results


def test_init_without_odom_succeeds():
    options = StaticIMUInitOptions(use_speed_for_static_checking=False)
    init = StaticIMUInit(options)
    _feed(init, 10.5)
    assert init.init_success
    assert abs(np.linalg.norm(init.gravity) - options.gravity_norm) < 1e-9
    np.testing.assert_allclose(init.gravity / options.gravity_norm, -UP / np.linalg.norm(UP), atol=1e-3)
    np.testing.assert_allclose(init.init_bg, GYRO_BIAS, atol=1e-3)
    np.testing.assert_allclose(init.init_ba, np.zeros(3), atol=1e-3)


def test_add_imu_returns_true_after_success():
    init = StaticIMUInit(StaticIMUInitOptions(use_speed_for_static_checking=False))
    _feed(init, 10.5)
    assert init.add_imu(IMU(20.0, GYRO_BIAS, UP)) is True
    assert init.add_odom(Odom(20.0, 100, 100)) is True


def test_not_initialised_before_init_time():
    init = StaticIMUInit(StaticIMUInitOptions(use_speed_for_static_checking=False))
    results = _feed(init, 5.0)
    assert not any(results)
    assert not init.init_success


def test_waits_for_static_odom_by_default():
    init = StaticIMUInit()
    _feed(init, 10.5)
    assert not init.init_success


def test_static_odom_allows_init():
    init = StaticIMUInit()
    _feed(init, 10.5, odom_pulse=0)
    assert init.is_static
    assert init.init_success


def test_moving_odom_prevents_init():
    init = StaticIMUInit()
    _feed(init, 10.5, odom_pulse=10)
    assert not init.is_static
    assert not init.init_success


def test_noisy_gyro_rejected():
    init = StaticIMUInit(StaticIMUInitOptions(use_speed_for_static_checking=False))
    _feed(init, 10.5, gyro_noise=1.0)
    assert not init.init_success
    assert np.linalg.norm(init.cov_gyro) > init.options.max_static_gyro_var


def test_noisy_accelerometer_rejected():
    init = StaticIMUInit(StaticIMUInitOptions(use_speed_for_static_checking=False))
    _feed(init, 10.5, acce_noise=0.5)
    assert not init.init_success
    assert np.linalg.norm(init.cov_acce) > init.options.max_static_acce_var