"""Pixel heuristics comparing a stage's input and output images.

These are coarse proxies, not object detectors. Both images are decoded
with Pillow, resized to a common working size and compared as numpy arrays.
"""
from __future__ import annotations
import io
from dataclasses import dataclass
from functools import cached_property
import numpy as np
from PIL import Image, UnidentifiedImageError
from virtual_staging.core.errors import ImageDecodeError

WORK_SIZE = (256, 192)
EDGE_THRESHOLD = 40.0
PIXEL_CHANGE_THRESHOLD = 30.0

COLOR_DRIFT_LIMIT = 0.15
WALL_DENSITY_LIMIT = 0.04
WALL_HORIZONTAL_LIMIT = 0.02
WINDOW_VERTICAL_LIMIT = 0.03
CIRCULATION_LIMIT = 0.85

GRID = (16, 12)
CELL_CHANGE_FRACTION = 0.25

# (top, bottom, left, right) as fractions of the frame
WALL_BAND = (0.10, 0.50, 0.10, 0.90)
WINDOW_BAND = (0.0, 0.80, 0.0, 1.0)
WALKWAY = (0.80, 1.0, 0.30, 0.70)


def decode(data: bytes) -> np.ndarray:
    try:
        with Image.open(io.BytesIO(data)) as img:
            rgb = img.convert("RGB").resize(WORK_SIZE, Image.BILINEAR)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageDecodeError(f"Cannot decode image: {e}") from e
    return np.asarray(rgb, dtype=np.float32)


def _region(arr: np.ndarray, box: tuple[float, float, float, float]) -> np.ndarray:
    h, w = arr.shape[:2]
    top, bottom, left, right = box
    return arr[int(h * top):int(h * bottom), int(w * left):int(w * right)]


@dataclass(frozen=True)
class EdgeStats:
    density: float
    vertical: float
    horizontal: float


def _edges(pixels: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    gray = pixels @ np.array([0.299, 0.587, 0.114], dtype=np.float32)
    gx = np.zeros_like(gray)
    gy = np.zeros_like(gray)
    gx[:, 1:] = np.abs(np.diff(gray, axis=1))
    gy[1:, :] = np.abs(np.diff(gray, axis=0))
    # gx marks vertical edges (intensity changing left to right)
    return gx > EDGE_THRESHOLD, gy > EDGE_THRESHOLD


def edge_stats(vertical: np.ndarray, horizontal: np.ndarray, box) -> EdgeStats:
    v = _region(vertical, box)
    h = _region(horizontal, box)
    if v.size == 0:
        return EdgeStats(0.0, 0.0, 0.0)
    return EdgeStats(
        density=float(np.mean(v | h)),
        vertical=float(np.mean(v)),
        horizontal=float(np.mean(h)),
    )


def count_blobs(mask: np.ndarray) -> int:
    """Number of 4-connected True components in a small boolean grid."""
    rows, cols = mask.shape
    seen = np.zeros_like(mask, dtype=bool)
    blobs = 0
    for r in range(rows):
        for c in range(cols):
            if not mask[r, c] or seen[r, c]:
                continue
            blobs += 1
            stack = [(r, c)]
            seen[r, c] = True
            while stack:
                y, x = stack.pop()
                for ny, nx in ((y - 1, x), (y + 1, x), (y, x - 1), (y, x + 1)):
                    if 0 <= ny < rows and 0 <= nx < cols and mask[ny, nx] and not seen[ny, nx]:
                        seen[ny, nx] = True
                        stack.append((ny, nx))
    return blobs


class ImageComparison:
    """Lazily computed before/after metrics shared by all checks."""

    def __init__(self, before: np.ndarray, after: np.ndarray):
        self.before = before
        self.after = after

    @classmethod
    def from_bytes(cls, before: bytes, after: bytes) -> "ImageComparison":
        return cls(decode(before), decode(after))

    @cached_property
    def color_drift(self) -> float:
        mb = self.before.reshape(-1, 3).mean(axis=0)
        ma = self.after.reshape(-1, 3).mean(axis=0)
        return float(np.mean(np.abs(ma - mb) / np.maximum(mb, 1.0)))

    @cached_property
    def _before_edges(self):
        return _edges(self.before)

    @cached_property
    def _after_edges(self):
        return _edges(self.after)

    def edge_delta(self, box) -> EdgeStats:
        b = edge_stats(*self._before_edges, box)
        a = edge_stats(*self._after_edges, box)
        return EdgeStats(
            density=a.density - b.density,
            vertical=a.vertical - b.vertical,
            horizontal=a.horizontal - b.horizontal,
        )

    @cached_property
    def changed(self) -> np.ndarray:
        return np.abs(self.after - self.before).max(axis=2) > PIXEL_CHANGE_THRESHOLD

    @cached_property
    def wall_decor_signal(self) -> EdgeStats:
        return self.edge_delta(WALL_BAND)

    @cached_property
    def window_signal(self) -> EdgeStats:
        return self.edge_delta(WINDOW_BAND)

    @property
    def has_wall_decor(self) -> bool:
        d = self.wall_decor_signal
        return d.density > WALL_DENSITY_LIMIT and d.horizontal > WALL_HORIZONTAL_LIMIT

    @property
    def has_window_treatment(self) -> bool:
        d = self.window_signal
        return d.vertical > WINDOW_VERTICAL_LIMIT and d.vertical > 2 * max(d.horizontal, 0.0)

    @cached_property
    def walkway_occupancy(self) -> float:
        region = _region(self.changed, WALKWAY)
        return float(region.mean()) if region.size else 0.0

    @cached_property
    def item_count(self) -> int:
        cols, rows = GRID
        h, w = self.changed.shape
        ch, cw = h // rows, w // cols
        cells = self.changed[:ch * rows, :cw * cols].reshape(rows, ch, cols, cw).mean(axis=(1, 3))
        return count_blobs(cells > CELL_CHANGE_FRACTION)
