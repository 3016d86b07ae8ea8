import numpy as np
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from sadslam.bfnn import INVALID_ID, bfnn_cloud_mt_k, bfnn_point_k
from sadslam.octree import Box3D, OctoTree


def _square():
    return np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [1.0, 1.0, 0.0]])


def test_basics_four_leaves():
    cloud = _square()
    tree = OctoTree()
    assert tree.build_tree(cloud)
    tree.set_approximate(False)
    assert len(tree) == len(cloud)


def test_root_box_is_bounding_box():
    tree = OctoTree()
    tree.build_tree(_square())
    np.testing.assert_allclose(tree.root.box.min_corner, [0.0, 0.0, 0.0])
    np.testing.assert_allclose(tree.root.box.max_corner, [1.0, 1.0, 0.0])
    assert tree.root.point_idx == -1
    assert len(tree.root.children) == 8


def test_empty_cloud_not_built():
    tree = OctoTree()
    assert tree.build_tree(np.empty((0, 3))) is False
    assert len(tree) == 0


def test_clear_resets_size():
    tree = OctoTree()
    tree.build_tree(_square())
    tree.clear()
    assert len(tree) == 0
    assert tree.root is None


def test_k_larger_than_size_raises():
    tree = OctoTree()
    tree.build_tree(_square())
    with pytest.raises(ValueError):
        tree.get_closest_point([0.0, 0.0, 0.0], k=5)


def test_mt_fills_invalid_when_k_too_large():
    tree = OctoTree()
    tree.build_tree(_square())
    matches = tree.get_closest_point_mt(np.array([[0.1, 0.1, 0.0]]), k=5)
    assert matches == [(INVALID_ID, 0)] * 5


def test_nearest_of_square_corner():
    tree = OctoTree()
    tree.build_tree(_square())
    assert tree.get_closest_point([0.9, 0.95, 0.0], k=1) == [3]
    assert tree.get_closest_point([-5.0, -5.0, 0.0], k=1) == [0]


def test_identical_points_build_terminates():
    cloud = np.array([[1.0, 2.0, 3.0]] * 4 + [[0.0, 0.0, 0.0]])
    tree = OctoTree()
    assert tree.build_tree(cloud)
    assert len(tree) == 2
    assert tree.get_closest_point([0.0, 0.0, 0.1], k=1) == [4]


def test_knn_matches_brute_force():
    rng = np.random.default_rng(7)
    first = rng.uniform(-5, 5, size=(300, 3))
    second = rng.uniform(-5, 5, size=(50, 3))
    tree = OctoTree()
    tree.build_tree(first)
    tree.set_approximate(True, 1.0)
    assert len(tree) == len(first)

    matches = tree.get_closest_point_mt(second, 5)
    truth = bfnn_cloud_mt_k(first, second, 5)
    assert matches == truth


def test_approximate_returns_k_distinct_indices():
    rng = np.random.default_rng(3)
    cloud = rng.uniform(0, 10, size=(200, 3))
    tree = OctoTree()
    tree.build_tree(cloud)
    tree.set_approximate(True, 0.1)
    found = tree.get_closest_point([5.0, 5.0, 5.0], k=5)
    assert len(found) == 5
    assert len(set(found)) == 5
    assert all(0 <= i < 200 for i in found)


def test_box_inside_and_distance():
    box = Box3D([0.0, 0.0, 0.0], [1.0, 2.0, 3.0])
    assert box.inside([1.0, 2.0, 3.0])
    assert box.inside([0.5, 0.5, 0.5])
    assert not box.inside([1.5, 0.5, 0.5])
    assert box.distance([0.5, 0.5, 0.5]) == 0.0
    assert box.distance([4.0, 0.5, -1.0]) == pytest.approx(3.0)


@settings(max_examples=40, deadline=None)
@given(
    st.lists(
        st.tuples(*[st.integers(-20, 20)] * 3), min_size=5, max_size=40, unique=True
    ),
    st.tuples(*[st.floats(-25, 25)] * 3),
)
def test_knn_distances_equal_brute_force(points, query):
    cloud = np.array(points, dtype=float) * 0.5
    q = np.array(query)
    tree = OctoTree()
    tree.build_tree(cloud)
    found = tree.get_closest_point(q, k=5)
    expected = bfnn_point_k(cloud, q, 5)
    d_found = np.sort(np.sum((cloud[found] - q) ** 2, axis=1))
    d_expected = np.sort(np.sum((cloud[expected] - q) ** 2, axis=1))
    np.testing.assert_allclose(d_found, d_expected)