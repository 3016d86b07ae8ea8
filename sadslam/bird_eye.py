"""Bird's-eye-view images of point clouds."""

from __future__ import annotations

import numpy as np
from PIL import Image

BEV_COLOR = (227, 143, 79)


def _as_cloud(points) -> np.ndarray:
    arr = np.asarray(points, dtype=float)
    if arr.size == 0:
        return np.empty((0, 3))
    return arr.reshape(len(arr), -1)[:, :3]


def generate_bev_image(points, resolution: float = 0.1, min_z: float = 0.2, max_z: float = 2.5) -> np.ndarray:
    """Top-down image (rows, cols, 3) in BGR order: white background, points in the height band marked."""
    pts = _as_cloud(points)
    if len(pts) == 0:
        raise ValueError("cannot build an image from an empty point cloud")
    if resolution <= 0:
        raise ValueError(f"resolution must be positive, got {resolution}")

    x, y, z = pts[:, 0], pts[:, 1], pts[:, 2]
    min_x, max_x = float(x.min()), float(x.max())
    min_y, max_y = float(y.min()), float(y.max())
    inv_r = 1.0 / resolution

    rows = int((max_y - min_y) * inv_r)
    cols = int((max_x - min_x) * inv_r)
    x_center = 0.5 * (max_x + min_x)
    y_center = 0.5 * (max_y + min_y)
    x_center_image = cols // 2
    y_center_image = rows // 2

    image = np.full((rows, cols, 3), 255, dtype=np.uint8)

    finite = np.all(np.isfinite(pts), axis=1)
    px = np.zeros(len(pts), dtype=np.int64)
    py = np.zeros(len(pts), dtype=np.int64)
    px[finite] = np.trunc((x[finite] - x_center) * inv_r + x_center_image).astype(np.int64)
    py[finite] = np.trunc((y[finite] - y_center) * inv_r + y_center_image).astype(np.int64)

    ok = (
        finite
        & (px >= 0)
        & (px < cols)
        & (py >= 0)
        & (py < rows)
        & (z >= min_z)
        & (z <= max_z)
    )
    image[py[ok], px[ok]] = BEV_COLOR
    return image


def save_image(image, path) -> None:
    """Write a BGR image to ``path``; the format follows the file extension."""
    arr = np.asarray(image, dtype=np.uint8)
    if arr.ndim != 3 or arr.shape[2] != 3 or arr.shape[0] == 0 or arr.shape[1] == 0:
        raise ValueError(f"expected a non-empty (rows, cols, 3) image, got shape {arr.shape}")
    Image.fromarray(np.ascontiguousarray(arr[..., ::-1])).save(path)