"""Brute-force nearest neighbour search over point clouds."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import numpy as np

INVALID_ID = -1
_CHUNK = 256


def _as_cloud(cloud) -> np.ndarray:
    arr = np.asarray(cloud, dtype=float)
    if arr.size == 0:
        return np.empty((0, 3))
    return arr.reshape(len(arr), -1)[:, :3]


def _as_point(point) -> np.ndarray:
    return np.asarray(point, dtype=float).reshape(-1)[:3]


def _squared_distances(cloud: np.ndarray, queries: np.ndarray) -> np.ndarray:
    diff = queries[:, None, :] - cloud[None, :, :]
    return np.einsum("ijk,ijk->ij", diff, diff)


def _require_points(cloud: np.ndarray) -> None:
    if len(cloud) == 0:
        raise ValueError("cannot search an empty point cloud")


def _chunks(n: int):
    return [(start, min(start + _CHUNK, n)) for start in range(0, n, _CHUNK)]


def bfnn_point(cloud, point) -> int:
    """Index of the point in ``cloud`` closest to ``point``; the first one on ties."""
    pts = _as_cloud(cloud)
    _require_points(pts)
    d2 = np.sum((pts - _as_point(point)) ** 2, axis=1)
    return int(np.argmin(d2))


def bfnn_point_k(cloud, point, k: int = 5) -> list[int]:
    """Indices of the ``k`` closest points, nearest first."""
    pts = _as_cloud(cloud)
    _require_points(pts)
    if k > len(pts):
        raise ValueError(f"k = {k} is larger than the cloud size {len(pts)}")
    d2 = np.sum((pts - _as_point(point)) ** 2, axis=1)
    return np.argsort(d2, kind="stable")[:k].tolist()


def bfnn_cloud(cloud1, cloud2) -> list[tuple[int, int]]:
    """For each point of ``cloud2``, the pair (nearest index in ``cloud1``, own index)."""
    ref = _as_cloud(cloud1)
    query = _as_cloud(cloud2)
    if len(query) == 0:
        return []
    _require_points(ref)
    return [(bfnn_point(ref, q), i) for i, q in enumerate(query)]


def bfnn_cloud_mt(cloud1, cloud2) -> list[tuple[int, int]]:
    """Same result as :func:`bfnn_cloud`, computed in parallel chunks."""
    ref = _as_cloud(cloud1)
    query = _as_cloud(cloud2)
    if len(query) == 0:
        return []
    _require_points(ref)

    def work(bounds: tuple[int, int]) -> np.ndarray:
        start, end = bounds
        return np.argmin(_squared_distances(ref, query[start:end]), axis=1)

    with ThreadPoolExecutor() as pool:
        nearest = np.concatenate(list(pool.map(work, _chunks(len(query)))))
    return [(int(n), i) for i, n in enumerate(nearest)]


def bfnn_cloud_mt_k(cloud1, cloud2, k: int = 5) -> list[tuple[int, int]]:
    """``k`` nearest matches for each query point, grouped by query, nearest first."""
    ref = _as_cloud(cloud1)
    query = _as_cloud(cloud2)
    if len(query) == 0:
        return []
    _require_points(ref)
    if k > len(ref):
        raise ValueError(f"k = {k} is larger than the cloud size {len(ref)}")

    def work(bounds: tuple[int, int]) -> np.ndarray:
        start, end = bounds
        d2 = _squared_distances(ref, query[start:end])
        return np.argsort(d2, axis=1, kind="stable")[:, :k]

    with ThreadPoolExecutor() as pool:
        nearest = np.concatenate(list(pool.map(work, _chunks(len(query)))))
    return [(int(n), i) for i, row in enumerate(nearest) for n in row]