"""K-d tree with exact and approximate k-nearest-neighbour search."""

from __future__ import annotations

import heapq
import itertools
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import numpy as np

from sadslam.bfnn import INVALID_ID

logger = logging.getLogger(__name__)


def _as_cloud(cloud) -> np.ndarray:
    arr = np.asarray(cloud, dtype=float)
    if arr.size == 0:
        return np.empty((0, 3))
    return arr.reshape(len(arr), -1)[:, :3]


@dataclass(eq=False)
class KdTreeNode:
    """Tree node: a split plane for inner nodes, a point index for leaves."""

    id: int = -1
    point_idx: int = 0
    axis_index: int = 0
    split_thresh: float = 0.0
    left: KdTreeNode | None = None
    right: KdTreeNode | None = None

    @property
    def is_leaf(self) -> bool:
        return self.left is None and self.right is None


class KdTree:
    """Splits along the axis of largest variance at its mean."""

    def __init__(self) -> None:
        self.root: KdTreeNode | None = None
        self._cloud = np.empty((0, 3))
        self._nodes: dict[int, KdTreeNode] = {}
        self._size = 0
        self._next_id = 0
        self.approximate = True
        self.alpha = 0.1

    def build_tree(self, cloud) -> bool:
        """Build the tree; returns False for an empty cloud."""
        pts = _as_cloud(cloud)
        if len(pts) == 0:
            return False
        self._cloud = pts
        self.clear()
        self.root = KdTreeNode()

        stack = [(self.root, np.arange(len(pts)))]
        while stack:
            node, idx = stack.pop()
            node.id = self._next_id
            self._next_id += 1
            self._nodes[node.id] = node

            if len(idx) == 1:
                self._size += 1
                node.point_idx = int(idx[0])
                continue

            split = self._find_split(idx)
            if split is None:
                self._size += 1
                node.point_idx = int(idx[0])
                continue

            node.axis_index, node.split_thresh, left, right = split
            node.left = KdTreeNode()
            node.right = KdTreeNode()
            stack.append((node.right, right))
            stack.append((node.left, left))
        return True

    def _find_split(self, idx: np.ndarray):
        sub = self._cloud[idx]
        mean = sub.mean(axis=0)
        var = sub.var(axis=0, ddof=1)
        axis = int(np.argmax(var))
        th = float(mean[axis])
        mask = sub[:, axis] < th
        left, right = idx[mask], idx[~mask]
        if len(left) == 0 or len(right) == 0:
            return None
        return axis, th, left, right

    def get_closest_point(self, pt, k: int = 5) -> list[int]:
        """Indices of the ``k`` nearest points, nearest first."""
        if k < 1:
            raise ValueError(f"k must be positive, got {k}")
        if k > self._size:
            raise ValueError(f"cannot set k larger than cloud size: {k}, {self._size}")
        query = np.asarray(pt, dtype=float).reshape(-1)[:3]
        heap: list[tuple[float, int, int]] = []
        self._knn(query, self.root, heap, k, itertools.count())
        return [item[2] for item in sorted(heap, reverse=True)]

    def get_closest_point_mt(self, cloud, k: int = 5) -> list[tuple[int, int]]:
        """``k`` matches per query point; missing ones are INVALID_ID."""
        pts = _as_cloud(cloud)

        def work(pt) -> list[int]:
            try:
                return self.get_closest_point(pt, k)
            except ValueError:
                return []

        with ThreadPoolExecutor() as pool:
            results = list(pool.map(work, pts))

        matches = []
        for qi, found in enumerate(results):
            for i in range(k):
                matches.append((found[i] if i < len(found) else INVALID_ID, qi))
        return matches

    def set_enable_ann(self, use_ann: bool = True, alpha: float = 0.1) -> None:
        self.approximate = use_ann
        self.alpha = alpha

    def __len__(self) -> int:
        return self._size

    def clear(self) -> None:
        self._nodes = {}
        self.root = None
        self._size = 0
        self._next_id = 0

    def describe(self) -> list[str]:
        """One line per node, in id order."""
        lines = []
        for node_id in sorted(self._nodes):
            node = self._nodes[node_id]
            if node.is_leaf:
                lines.append(f"leaf node: {node.id}, idx: {node.point_idx}")
            else:
                lines.append(f"node: {node.id}, axis: {node.axis_index}, th: {node.split_thresh}")
        for line in lines:
            logger.info(line)
        return lines

    def _knn(self, pt: np.ndarray, node: KdTreeNode, heap, k: int, counter) -> None:
        if node.is_leaf:
            self._compute_dis_for_leaf(pt, node, heap, k, counter)
            return
        if pt[node.axis_index] < node.split_thresh:
            this_side, that_side = node.left, node.right
        else:
            this_side, that_side = node.right, node.left
        self._knn(pt, this_side, heap, k, counter)
        if self._need_expand(pt, node, heap, k):
            self._knn(pt, that_side, heap, k, counter)

    def _need_expand(self, pt: np.ndarray, node: KdTreeNode, heap, k: int) -> bool:
        if len(heap) < k:
            return True
        d = pt[node.axis_index] - node.split_thresh
        worst = -heap[0][0]
        limit = worst * self.alpha if self.approximate else worst
        return d * d < limit

    def _compute_dis_for_leaf(self, pt: np.ndarray, node: KdTreeNode, heap, k: int, counter) -> None:
        diff = pt - self._cloud[node.point_idx]
        dis2 = float(diff @ diff)
        if len(heap) < k:
            heapq.heappush(heap, (-dis2, next(counter), node.point_idx))
        elif dis2 < -heap[0][0]:
            heapq.heapreplace(heap, (-dis2, next(counter), node.point_idx))