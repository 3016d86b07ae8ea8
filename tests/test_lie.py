import math

import numpy as np
from hypothesis import given, settings
from hypothesis import strategies as st

from sadslam import lie

small_vectors = st.lists(
    st.floats(-1.7, 1.7, allow_nan=False, allow_infinity=False), min_size=3, max_size=3
).map(np.array)


def test_hat_matches_cross_product():
    v = np.array([1.0, 2.0, 3.0])
    w = np.array([-0.5, 0.25, 4.0])
    np.testing.assert_allclose(lie.hat(v) @ w, np.cross(v, w))


def test_hat_is_skew_symmetric():
    h = lie.hat([0.3, -1.2, 2.5])
    np.testing.assert_allclose(h, -h.T)


@settings(max_examples=50)
@given(small_vectors)
def test_exp_is_rotation(omega):
    r = lie.exp(omega)
    np.testing.assert_allclose(r @ r.T, np.eye(3), atol=1e-9)
    assert abs(np.linalg.det(r) - 1.0) < 1e-9


@settings(max_examples=50)
@given(small_vectors)
def test_exp_log_round_trip(omega):
    np.testing.assert_allclose(lie.log(lie.exp(omega)), omega, atol=1e-7)


def test_log_at_half_turn_has_angle_pi():
    r = lie.exp([0.0, 0.0, math.pi])
    assert abs(np.linalg.norm(lie.log(r)) - math.pi) < 1e-7


@settings(max_examples=50)
@given(small_vectors)
def test_quaternion_round_trip(omega):
    r = lie.exp(omega)
    q = lie.to_quaternion(r)
    assert q[0] >= 0.0
    assert abs(np.linalg.norm(q) - 1.0) < 1e-12
    np.testing.assert_allclose(lie.from_quaternion(q), r, atol=1e-9)


def test_identity_quaternion_is_identity_matrix():
    np.testing.assert_allclose(lie.from_quaternion([1.0, 0.0, 0.0, 0.0]), np.eye(3))


def test_rot_z_quarter_turn():
    np.testing.assert_allclose(lie.rot_z(math.pi / 2) @ np.array([1.0, 0.0, 0.0]), [0.0, 1.0, 0.0], atol=1e-12)


def test_rot_z_equals_exp_about_z():
    np.testing.assert_allclose(lie.rot_z(0.7), lie.exp([0.0, 0.0, 0.7]), atol=1e-12)


@settings(max_examples=50)
@given(small_vectors)
def test_right_jacobian_and_inverse(omega):
    np.testing.assert_allclose(lie.right_jacobian(omega) @ lie.right_jacobian_inv(omega), np.eye(3), atol=1e-8)


def test_right_jacobian_first_order():
    omega = np.array([0.4, -0.3, 0.9])
    delta = np.array([1e-5, -2e-5, 1.5e-5])
    lhs = lie.exp(omega + delta)
    rhs = lie.exp(omega) @ lie.exp(lie.right_jacobian(omega) @ delta)
    np.testing.assert_allclose(lhs, rhs, atol=1e-8)


def test_right_jacobian_at_zero_is_identity():
    np.testing.assert_allclose(lie.right_jacobian(np.zeros(3)), np.eye(3))
    np.testing.assert_allclose(lie.right_jacobian_inv(np.zeros(3)), np.eye(3))


def test_se3_inverse_compose_is_identity():
    t = lie.SE3(lie.exp([0.1, 0.2, -0.3]), [1.0, -2.0, 0.5])
    ident = t.compose(t.inverse())
    np.testing.assert_allclose(ident.matrix(), np.eye(4), atol=1e-12)


def test_se3_apply_matches_matrix():
    t = lie.SE3(lie.exp([0.5, 0.0, 0.2]), [3.0, 1.0, -1.0])
    p = np.array([0.3, 0.4, 0.5])
    homogeneous = t.matrix() @ np.append(p, 1.0)
    np.testing.assert_allclose(t.apply(p), homogeneous[:3])


def test_se3_compose_is_function_composition():
    a = lie.SE3(lie.exp([0.1, 0.0, 0.4]), [1.0, 0.0, 0.0])
    b = lie.SE3(lie.exp([0.0, -0.3, 0.2]), [0.0, 2.0, 1.0])
    p = np.array([1.0, 1.0, 1.0])
    np.testing.assert_allclose((a @ b).apply(p), a.apply(b.apply(p)))


def test_se3_from_matrix_round_trip():
    t = lie.SE3(lie.exp([0.2, 0.3, 0.4]), [4.0, 5.0, 6.0])
    back = lie.SE3.from_matrix(t.matrix())
    np.testing.assert_allclose(back.rotation, t.rotation)
    np.testing.assert_allclose(back.translation, t.translation)