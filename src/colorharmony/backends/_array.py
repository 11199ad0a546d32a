"""Shared array-module implementation of the backend operations.

The vectorized (NumPy) and GPU (CuPy) tiers run the very same code with
a different array module bound to ``xp``.  Work is split into fixed-size
chunks so peak memory stays bounded regardless of image size.
"""

from __future__ import annotations

import numpy as np

from colorharmony.backends._base import Backend, lut_grid_points
from colorharmony.color import lab_to_rgb_array, rgb_to_lab_array
from colorharmony.constants import VECTOR_CHUNK_PIXELS


class ArrayBackend(Backend):
    """Backend whose operations are expressed over an array module ``xp``."""

    chunk_size: int = VECTOR_CHUNK_PIXELS

    @property
    def xp(self):
        raise NotImplementedError

    def to_host(self, array) -> np.ndarray:
        return np.asarray(array)

    def _nearest(self, points, palette: np.ndarray):
        """Nearest palette index for device-resident ``points``.

        Scans the palette one entry at a time so memory is ``O(n)``; the
        strict comparison keeps the lowest index on ties.
        """
        xp = self.xp
        p0 = points[:, 0]
        p1 = points[:, 1]
        p2 = points[:, 2]
        best_distance = xp.full(points.shape[0], xp.inf, dtype=xp.float64)
        best = xp.zeros(points.shape[0], dtype=xp.int64)
        for index, (c0, c1, c2) in enumerate(palette.tolist()):
            d0 = p0 - c0
            d1 = p1 - c1
            d2 = p2 - c2
            distance = d0 * d0 + d1 * d1 + d2 * d2
            closer = distance < best_distance
            best_distance = xp.where(closer, distance, best_distance)
            best = xp.where(closer, index, best)
        return best

    def nearest_indices(self, points: np.ndarray, palette: np.ndarray) -> np.ndarray:
        xp = self.xp
        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        palette = np.asarray(palette, dtype=np.float64).reshape(-1, 3)
        out = np.empty(len(points), dtype=np.int64)
        for start in range(0, len(points), self.chunk_size):
            block = xp.asarray(points[start : start + self.chunk_size])
            out[start : start + len(block)] = self.to_host(self._nearest(block, palette))
        return out

    def build_lut(self, palette: np.ndarray, bits: int) -> np.ndarray:
        return self.nearest_indices(lut_grid_points(bits), palette).astype(np.uint16)

    def map_pixels(
        self,
        packed: np.ndarray,
        palette: np.ndarray,
        output_colors: np.ndarray,
        lut: np.ndarray | None = None,
        lut_bits: int = 6,
    ) -> np.ndarray:
        xp = self.xp
        packed = np.asarray(packed, dtype=np.uint32).ravel()
        palette = np.asarray(palette, dtype=np.float64).reshape(-1, 3)
        colors = xp.asarray(np.asarray(output_colors, dtype=np.uint32))
        table = xp.asarray(lut) if lut is not None else None
        shift = 8 - lut_bits

        out = np.empty(len(packed), dtype=np.uint32)
        for start in range(0, len(packed), self.chunk_size):
            block = xp.asarray(packed[start : start + self.chunk_size])
            r = (block >> 16) & 0xFF
            g = (block >> 8) & 0xFF
            b = block & 0xFF
            if table is not None:
                cell = ((r >> shift) << (2 * lut_bits)) | ((g >> shift) << lut_bits) | (b >> shift)
                index = table[cell.astype(xp.int64)]
            else:
                points = xp.stack([r, g, b], axis=1).astype(xp.float64)
                index = self._nearest(points, palette)
            out[start : start + len(block)] = self.to_host(colors[index])
        return out

    def rgb_to_lab(self, rgb: np.ndarray) -> np.ndarray:
        rgb = np.asarray(rgb, dtype=np.float64).reshape(-1, 3)
        return self.to_host(rgb_to_lab_array(self.xp.asarray(rgb), xp=self.xp))

    def lab_to_rgb(self, lab: np.ndarray) -> np.ndarray:
        lab = np.asarray(lab, dtype=np.float64).reshape(-1, 3)
        return self.to_host(lab_to_rgb_array(self.xp.asarray(lab), xp=self.xp))
