"""Octree with exact and approximate k-nearest-neighbour search."""

from __future__ import annotations

import heapq
import itertools
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

import numpy as np

from sadslam.bfnn import INVALID_ID

logger = logging.getLogger(__name__)


def _as_cloud(cloud) -> np.ndarray:
    arr = np.asarray(cloud, dtype=float)
    if arr.size == 0:
        return np.empty((0, 3))
    return arr.reshape(len(arr), -1)[:, :3]


def _zeros() -> np.ndarray:
    return np.zeros(3)


@dataclass
class Box3D:
    """Axis-aligned box given by its minimum and maximum corners."""

    min_corner: np.ndarray = field(default_factory=_zeros)
    max_corner: np.ndarray = field(default_factory=_zeros)

    def __post_init__(self) -> None:
        self.min_corner = np.array(self.min_corner, dtype=float).reshape(3)
        self.max_corner = np.array(self.max_corner, dtype=float).reshape(3)

    def inside(self, pt) -> bool:
        """True if ``pt`` lies in the box, borders included."""
        p = np.asarray(pt, dtype=float).reshape(-1)[:3]
        return bool(np.all(p <= self.max_corner) and np.all(p >= self.min_corner))

    def distance(self, pt) -> float:
        """Largest per-axis gap between ``pt`` and the box; zero inside."""
        p = np.asarray(pt, dtype=float).reshape(-1)[:3]
        gaps = np.maximum(self.min_corner - p, p - self.max_corner)
        return float(max(0.0, gaps.max()))

    def _inside_mask(self, pts: np.ndarray) -> np.ndarray:
        return np.all((pts <= self.max_corner) & (pts >= self.min_corner), axis=1)


@dataclass(eq=False)
class OctoTreeNode:
    """Tree node; ``point_idx`` is -1 unless the node is a leaf holding a point."""

    id: int = -1
    point_idx: int = -1
    box: Box3D = field(default_factory=Box3D)
    children: list[OctoTreeNode] = field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return not self.children


class OctoTree:
    """Splits each node with more than one point into eight equal boxes."""

    def __init__(self) -> None:
        self.root: OctoTreeNode | None = None
        self._cloud = np.empty((0, 3))
        self._nodes: dict[int, OctoTreeNode] = {}
        self._size = 0
        self._next_id = 0
        self.approximate = False
        self.alpha = 1.0

    def build_tree(self, cloud) -> bool:
        """Build the tree; returns False for an empty cloud."""
        pts = _as_cloud(cloud)
        if len(pts) == 0:
            return False
        self._cloud = pts
        self.clear()

        self.root = OctoTreeNode(id=self._new_id(), box=Box3D(pts.min(axis=0), pts.max(axis=0)))
        stack = [(self.root, np.arange(len(pts)))]
        while stack:
            node, idx = stack.pop()
            self._nodes[node.id] = node
            if len(idx) == 0:
                continue
            sub = pts[idx]
            if len(idx) == 1 or np.all(sub == sub[0]):
                # identical points cannot be separated; keep the first
                self._size += 1
                node.point_idx = int(idx[0])
                continue
            for child, child_idx in zip(node.children or self._expand_node(node), self._split(node, idx)):
                stack.append((child, child_idx))
        return True

    def _new_id(self) -> int:
        node_id = self._next_id
        self._next_id += 1
        return node_id

    def _expand_node(self, node: OctoTreeNode) -> list[OctoTreeNode]:
        lo, hi = node.box.min_corner, node.box.max_corner
        c = 0.5 * (lo + hi)
        children = []
        for z_half in (0, 1):
            for y_half in (0, 1):
                for x_half in (0, 1):
                    halves = (x_half, y_half, z_half)
                    mins = [lo[a] if h == 0 else c[a] for a, h in enumerate(halves)]
                    maxs = [c[a] if h == 0 else hi[a] for a, h in enumerate(halves)]
                    children.append(OctoTreeNode(id=self._new_id(), box=Box3D(mins, maxs)))
        node.children = children
        return children

    def _split(self, node: OctoTreeNode, idx: np.ndarray) -> list[np.ndarray]:
        pts = self._cloud[idx]
        unassigned = np.ones(len(idx), dtype=bool)
        parts = []
        for child in node.children:
            mask = unassigned & child.box._inside_mask(pts)
            parts.append(idx[mask])
            unassigned &= ~mask
        return parts

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
        """``k`` matches (tree index, query index) per query point; missing ones are INVALID_ID."""
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

    def set_approximate(self, use_ann: bool = True, alpha: float = 0.1) -> None:
        self.approximate = use_ann
        self.alpha = alpha

    def __len__(self) -> int:
        return self._size

    def clear(self) -> None:
        self._nodes = {}
        self.root = None
        self._size = 0
        self._next_id = 0

    def _knn(self, pt: np.ndarray, node: OctoTreeNode, heap, k: int, counter) -> None:
        if node.is_leaf:
            if node.point_idx != -1:
                self._compute_dis_for_leaf(pt, node, heap, k, counter)
            return

        first = -1
        min_dis = float("inf")
        for i, child in enumerate(node.children):
            if child.box.inside(pt):
                first = i
                break
            d = child.box.distance(pt)
            if d < min_dis:
                first, min_dis = i, d

        self._knn(pt, node.children[first], heap, k, counter)
        for i, child in enumerate(node.children):
            if i != first and self._need_expand(pt, child, heap, k):
                self._knn(pt, child, heap, k, counter)

    def _need_expand(self, pt: np.ndarray, node: OctoTreeNode, heap, k: int) -> bool:
        if len(heap) < k:
            return True
        d = node.box.distance(pt)
        worst = -heap[0][0]
        limit = worst * self.alpha if self.approximate else worst
        return d * d < limit

    def _compute_dis_for_leaf(self, pt: np.ndarray, node: OctoTreeNode, heap, k: int, counter) -> None:
        diff = pt - self._cloud[node.point_idx]
        dis2 = float(diff @ diff)
        if len(heap) < k:
            heapq.heappush(heap, (-dis2, next(counter), node.point_idx))
        elif dis2 < -heap[0][0]:
            heapq.heapreplace(heap, (-dis2, next(counter), node.point_idx))