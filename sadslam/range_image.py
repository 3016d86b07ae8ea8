"""Range images of a single lidar scan."""

from __future__ import annotations

import math

import numpy as np

_SECTORS = np.array([[1, 3, 0], [1, 0, 2], [3, 0, 1], [0, 2, 1], [0, 1, 3], [2, 1, 0]])


def _as_cloud(points) -> np.ndarray:
    arr = np.asarray(points, dtype=float)
    if arr.size == 0:
        return np.empty((0, 3))
    return arr.reshape(len(arr), -1)[:, :3]


def generate_range_image(
    points,
    azimuth_resolution_deg: float = 0.3,
    elevation_rows: int = 16,
    elevation_range: float = 15.0,
    lidar_height: float = 1.128,
) -> np.ndarray:
    """HSV range image (hue 0-180 scale), flipped so that up is up.

    Columns index azimuth, rows index elevation; the hue encodes horizontal range.
    Convert with :func:`hsv_to_bgr` for display.
    """
    if azimuth_resolution_deg <= 0:
        raise ValueError(f"azimuth resolution must be positive, got {azimuth_resolution_deg}")
    if elevation_rows <= 0:
        raise ValueError(f"elevation rows must be positive, got {elevation_rows}")

    cols = int(360 / azimuth_resolution_deg)
    rows = int(elevation_rows)
    image = np.zeros((rows, cols, 3), dtype=np.uint8)
    ele_resolution = elevation_range * 2 / elevation_rows

    pts = _as_cloud(points)
    x, y, z = pts[:, 0], pts[:, 1], pts[:, 2]
    with np.errstate(all="ignore"):
        azimuth = np.arctan2(y, x) * 180 / math.pi
        rng = np.sqrt(x * x + y * y)
        elevation = np.arcsin((z - lidar_height) / rng) * 180 / math.pi
    azimuth = np.where(azimuth < 0, azimuth + 360, azimuth)

    finite = np.isfinite(azimuth) & np.isfinite(elevation) & np.isfinite(rng)
    col = np.full(len(pts), -1, dtype=np.int64)
    row = np.full(len(pts), -1, dtype=np.int64)
    col[finite] = np.trunc(azimuth[finite] / azimuth_resolution_deg).astype(np.int64)
    row[finite] = np.trunc((elevation[finite] + elevation_range) / ele_resolution + 0.5).astype(np.int64)

    ok = finite & (col >= 0) & (col < cols) & (row >= 0) & (row < rows)
    col, row, rng = col[ok], row[ok], rng[ok]
    if len(col):
        # later points overwrite earlier ones in the same pixel
        flat = row * cols + col
        _, last_rev = np.unique(flat[::-1], return_index=True)
        keep = len(flat) - 1 - last_rev
        hue = (np.trunc(rng[keep] / 100 * 255.0).astype(np.int64) & 0xFF).astype(np.uint8)
        image[row[keep], col[keep], 0] = hue
        image[row[keep], col[keep], 1] = 255
        image[row[keep], col[keep], 2] = 127

    return image[::-1].copy()


def hsv_to_bgr(image) -> np.ndarray:
    """Convert an 8-bit HSV image (hue 0-180 scale) to BGR."""
    img = np.asarray(image, dtype=float)
    if img.shape[-1] != 3:
        raise ValueError(f"expected three channels, got shape {img.shape}")

    h = img[..., 0] * (6.0 / 180.0)
    s = img[..., 1] / 255.0
    v = img[..., 2] / 255.0

    h = np.where(h < 0, h + 6, h)
    h = np.where(h >= 6, h - 6, h)
    sector = np.floor(h).astype(np.int64)
    frac = h - sector
    bad = (sector < 0) | (sector >= 6)
    sector = np.where(bad, 0, sector)
    frac = np.where(bad, 0.0, frac)

    tab = np.stack([v, v * (1 - s), v * (1 - s * frac), v * (1 - s * (1 - frac))], axis=-1)
    bgr = np.take_along_axis(tab, _SECTORS[sector], axis=-1)
    gray = (s == 0)[..., None]
    bgr = np.where(gray, v[..., None], bgr)
    return np.clip(np.rint(bgr * 255.0), 0, 255).astype(np.uint8)