"""Base class for compute backends and the lookup-table grid they share."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager

import numpy as np

from colorharmony.models import BackendKind


def lut_dimension(bits: int) -> int:
    """Cells per channel of a lookup table with *bits* bits per channel."""
    return 1 << bits


def lut_grid_values(bits: int) -> np.ndarray:
    """Channel value represented by each lookup-table cell.

    Cell ``q`` covers channel values ``[q * step, (q + 1) * step)`` with
    ``step = 2 ** (8 - bits)`` and is represented by the middle of that
    range.  With 8 bits every cell is an exact channel value.
    """
    step = 1 << (8 - bits)
    return np.arange(lut_dimension(bits), dtype=np.float64) * step + (step - 1) / 2.0


def lut_grid_points(bits: int) -> np.ndarray:
    """All lookup-table cell colors as a ``(dim ** 3, 3)`` array, red-major."""
    values = lut_grid_values(bits)
    r, g, b = np.meshgrid(values, values, values, indexing="ij")
    return np.stack([r.ravel(), g.ravel(), b.ravel()], axis=1)


class Backend(ABC):
    """Abstract compute backend.

    All tiers implement the same operations with the same float64
    arithmetic and tie-breaking (lowest palette index wins), so any
    tier may stand in for any other.  Arrays crossing this interface
    are always host (NumPy) arrays.
    """

    kind: BackendKind

    @property
    def name(self) -> str:
        return self.kind.value

    @abstractmethod
    def is_available(self) -> bool:
        """Return True if this backend can run in the current process."""

    @contextmanager
    def acquire(self) -> Iterator[Backend]:
        """Hold whatever device or resources the backend needs.

        Raises:
            ResourceUnavailableError: If the resources cannot be obtained
                or are lost while in use.
        """
        yield self

    @abstractmethod
    def nearest_indices(self, points: np.ndarray, palette: np.ndarray) -> np.ndarray:
        """Index of the nearest palette entry (squared Euclidean) per point.

        Args:
            points: ``(n, 3)`` float array.
            palette: ``(k, 3)`` float array.

        Returns:
            ``(n,)`` int64 array; ties resolve to the lowest index.
        """

    @abstractmethod
    def build_lut(self, palette: np.ndarray, bits: int) -> np.ndarray:
        """Precompute nearest palette indices for every lookup-table cell.

        Returns:
            ``(2 ** (3 * bits),)`` uint16 array indexed by
            ``r_cell << 2*bits | g_cell << bits | b_cell``.
        """

    @abstractmethod
    def map_pixels(
        self,
        packed: np.ndarray,
        palette: np.ndarray,
        output_colors: np.ndarray,
        lut: np.ndarray | None = None,
        lut_bits: int = 6,
    ) -> np.ndarray:
        """Replace each packed pixel with the output color of its nearest entry.

        Args:
            packed: ``(n,)`` uint32 ``0xRRGGBB`` pixels.
            palette: ``(k, 3)`` RGB palette searched for the nearest entry.
            output_colors: ``(k,)`` uint32 color written for each entry.
            lut: Table from :meth:`build_lut`, or None for direct search.
            lut_bits: Bits per channel the table was built with.

        Returns:
            ``(n,)`` uint32 array of output pixels.
        """

    @abstractmethod
    def rgb_to_lab(self, rgb: np.ndarray) -> np.ndarray:
        """Convert an ``(n, 3)`` sRGB array to L*a*b*."""

    @abstractmethod
    def lab_to_rgb(self, lab: np.ndarray) -> np.ndarray:
        """Convert an ``(n, 3)`` L*a*b* array to sRGB in [0, 255]."""
