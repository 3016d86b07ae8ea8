# sadslam

Building blocks for vehicle localisation with an IMU, wheel odometry, GNSS
and lidar point clouds, written on top of NumPy.

## What is inside

- `sadslam.lie`: rotation tools on SO(3) (`hat`, `exp`, `log`,
  `right_jacobian`, `right_jacobian_inv`, `rot_z`, `to_quaternion`,
  `from_quaternion`) and the rigid transform `SE3` (`inverse`, `compose` or
  the `@` operator, `apply`, `matrix`, `SE3.from_matrix`). Rotations are
  3x3 NumPy matrices; quaternions are ordered (w, x, y, z).
- `sadslam.imu_integration`: the `IMU` reading, the `NavState` navigation
  state and `IMUIntegration`, which dead-reckons from raw IMU data alone with
  fixed, known biases. Readings more than 0.1 s apart only move its clock.
- `sadslam.static_imu_init`: `StaticIMUInit` (configured by
  `StaticIMUInitOptions`) estimates the initial gyro and accelerometer biases,
  their noise and the gravity vector while the vehicle stands still; `Odom`
  readings tell it whether the wheels are turning. Check `init_success`, then
  read `init_bg`, `init_ba`, `cov_gyro`, `cov_acce` and `gravity`.
- `sadslam.eskf`: an 18-state error-state Kalman filter (`ESKF`, configured by
  `ESKFOptions`, state order p, v, R, bg, ba, g) that predicts with the IMU
  and corrects with wheel speed, `GNSS` poses or any SE(3) observation.
  Observations older than the filter's clock raise `ValueError`.
- `sadslam.preintegration`: `IMUPreintegration` (configured by
  `PreintegrationOptions`) accumulates IMU readings between two key frames,
  keeps the bias Jacobians for first-order correction
  (`delta_rotation`, `delta_velocity`, `delta_position`) and predicts the end
  state from a start state.
- `sadslam.inertial_edge`: `InertialEdge`, the nine-dimensional
  preintegration residual with its analytic Jacobians and 24x24 Gauss-Newton
  Hessian.
- `sadslam.motion`: `simulate_motion` yields the states of a vehicle driving
  along a circle; `main` is the `sadslam-motion` command.
- `sadslam.bfnn`: brute-force nearest neighbours (`bfnn_point`,
  `bfnn_point_k`, `bfnn_cloud`, `bfnn_cloud_mt`, `bfnn_cloud_mt_k`).
- `sadslam.kdtree`: `KdTree`, a k-d tree with exact or approximate
  k-nearest-neighbour search (`set_enable_ann`).
- `sadslam.octree`: `OctoTree`, an octree with exact or approximate search
  (`set_approximate`), built from `Box3D` boxes.
- `sadslam.bird_eye`: `generate_bev_image` renders a point cloud as a
  top-down BGR image; `save_image` writes it to a file with Pillow.
- `sadslam.range_image`: `generate_range_image` turns a lidar scan into an
  HSV range image; `hsv_to_bgr` converts it for display.

Point clouds are plain NumPy arrays of shape `(N, 3)`. Match lists are pairs
`(index in the reference cloud, index in the query cloud)`; where a tree finds
fewer than `k` neighbours the missing entries carry `sadslam.bfnn.INVALID_ID`.

## Installing

    pip install .

To run the tests:

    pip install ".[test]"
    pytest

## Example: nearest neighbours

    import numpy as np
    from sadslam.bfnn import bfnn_cloud
    from sadslam.kdtree import KdTree

    reference = np.random.default_rng(0).random((1000, 3))
    query = np.random.default_rng(1).random((200, 3))

    tree = KdTree()
    tree.build_tree(reference)
    tree.set_enable_ann(False, 1.0)
    neighbours = tree.get_closest_point(query[0], 5)

    exact = bfnn_cloud(reference, query)

## Example: IMU preintegration

    import numpy as np
    from sadslam.imu_integration import IMU, NavState
    from sadslam.preintegration import IMUPreintegration, PreintegrationOptions

    gravity = np.array([0.0, 0.0, -9.8])
    preinteg = IMUPreintegration(PreintegrationOptions())
    for i in range(1, 101):
        imu = IMU(0.01 * i, np.array([0.0, 0.0, np.pi]), -gravity)
        preinteg.integrate(imu, 0.01)

    end = preinteg.predict(NavState(0.0), gravity)

## Example: bird's-eye view

    import numpy as np
    from sadslam.bird_eye import generate_bev_image, save_image

    cloud = np.random.default_rng(0).random((5000, 3)) * [50.0, 50.0, 3.0]
    image = generate_bev_image(cloud, resolution=0.1, min_z=0.2, max_z=2.5)
    save_image(image, "bev.png")

## Command line

The circular-motion demonstration logs the simulated vehicle position every
0.05 s until interrupted:

    sadslam-motion

Options: `--angular_velocity` (degrees per second, default 10),
`--linear_velocity` (m/s, default 5), `--use_quaternion` (update the rotation
with quaternions) and `--steps N` (stop after N steps).

## What it does not do

- It reads no sensor logs and no point-cloud files: readings and clouds are
  handed in as Python objects and NumPy arrays.
- `InertialEdge` supplies residuals, Jacobians and a Hessian, but the package
  contains no graph optimiser that solves over them.
- It has no viewer or window; the motion command only logs, and images are
  returned as arrays or written to files.
- Nearest-neighbour search is by brute force, k-d tree or octree only; there
  is no grid-based search.