"""Pure-Python reference backend.

Slow, but every operation is a straightforward per-element loop.  It is
always available and serves as the oracle the other tiers are checked
against.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np

from colorharmony.backends._base import Backend, lut_dimension, lut_grid_values
from colorharmony.color import lab_to_rgb, rgb_to_lab
from colorharmony.models import BackendKind, ColorPoint


def nearest_index(
    point: Sequence[float], candidates: Sequence[Sequence[float]]
) -> int:
    """Linear scan for the closest candidate; the first minimum wins."""
    p0, p1, p2 = point
    best = 0
    best_distance = math.inf
    for index, (c0, c1, c2) in enumerate(candidates):
        d0 = p0 - c0
        d1 = p1 - c1
        d2 = p2 - c2
        distance = d0 * d0 + d1 * d1 + d2 * d2
        if distance < best_distance:
            best_distance = distance
            best = index
    return best


def _rows(array: np.ndarray) -> list[list[float]]:
    return np.asarray(array, dtype=np.float64).reshape(-1, 3).tolist()


class ReferenceBackend(Backend):
    """Per-element loops over plain Python floats."""

    kind = BackendKind.REFERENCE

    def is_available(self) -> bool:
        return True

    def nearest_indices(self, points: np.ndarray, palette: np.ndarray) -> np.ndarray:
        candidates = _rows(palette)
        return np.array(
            [nearest_index(p, candidates) for p in _rows(points)], dtype=np.int64
        )

    def build_lut(self, palette: np.ndarray, bits: int) -> np.ndarray:
        candidates = _rows(palette)
        values = lut_grid_values(bits).tolist()
        dim = lut_dimension(bits)
        lut = np.empty(dim**3, dtype=np.uint16)
        cell = 0
        for r in values:
            for g in values:
                for b in values:
                    lut[cell] = nearest_index((r, g, b), candidates)
                    cell += 1
        return lut

    def map_pixels(
        self,
        packed: np.ndarray,
        palette: np.ndarray,
        output_colors: np.ndarray,
        lut: np.ndarray | None = None,
        lut_bits: int = 6,
    ) -> np.ndarray:
        candidates = _rows(palette)
        colors = [int(c) for c in output_colors]
        shift = 8 - lut_bits
        out = np.empty(len(packed), dtype=np.uint32)
        for i, value in enumerate(np.asarray(packed, dtype=np.uint32).tolist()):
            r = (value >> 16) & 0xFF
            g = (value >> 8) & 0xFF
            b = value & 0xFF
            if lut is not None:
                cell = ((r >> shift) << (2 * lut_bits)) | ((g >> shift) << lut_bits) | (b >> shift)
                index = int(lut[cell])
            else:
                index = nearest_index((float(r), float(g), float(b)), candidates)
            out[i] = colors[index]
        return out

    def rgb_to_lab(self, rgb: np.ndarray) -> np.ndarray:
        return np.array(
            [rgb_to_lab(ColorPoint(*p)).as_tuple() for p in _rows(rgb)], dtype=np.float64
        ).reshape(-1, 3)

    def lab_to_rgb(self, lab: np.ndarray) -> np.ndarray:
        return np.array(
            [lab_to_rgb(ColorPoint(*p)).as_tuple() for p in _rows(lab)], dtype=np.float64
        ).reshape(-1, 3)
