"""Immutable color palettes: nearest-color queries, ordering and matching."""

from __future__ import annotations

import re
from collections.abc import Iterator, Sequence

import numpy as np
from pydantic import BaseModel, field_validator
from scipy.optimize import linear_sum_assignment

from colorharmony.backends.reference import nearest_index
from colorharmony.color import (
    array_to_points,
    lab_to_rgb_array,
    points_to_array,
    rgb_to_lab_array,
)
from colorharmony.constants import LUMA_WEIGHTS
from colorharmony.errors import PaletteError
from colorharmony.models import ColorPoint, ColorSpace

_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{6})$")

# Dummy rows/columns cost this many times the largest real pairing cost
_PADDING_COST_FACTOR = 10.0


class Palette(BaseModel):
    """An ordered, immutable set of representative colors.

    Order is creation order (cluster output order); derived orderings
    such as :meth:`sort_by_luminance` return new palettes.

    Attributes:
        colors: Palette entries, at least one.
        space: Color space the entries are expressed in.
    """

    colors: tuple[ColorPoint, ...]
    space: ColorSpace = ColorSpace.RGB

    model_config = {"frozen": True}

    @field_validator("colors", mode="before")
    @classmethod
    def _coerce_colors(cls, v: object) -> object:
        if isinstance(v, np.ndarray):
            return tuple(array_to_points(v.reshape(-1, 3)))
        if isinstance(v, (list, tuple)):
            return tuple(
                item if isinstance(item, ColorPoint) else ColorPoint(*item) for item in v
            )
        return v

    @field_validator("colors")
    @classmethod
    def _must_not_be_empty(cls, v: tuple[ColorPoint, ...]) -> tuple[ColorPoint, ...]:
        if not v:
            raise ValueError("palette must contain at least one color")
        return v

    # -- construction -------------------------------------------------------

    @classmethod
    def from_array(cls, array: np.ndarray, space: ColorSpace = ColorSpace.RGB) -> Palette:
        return cls(colors=np.asarray(array, dtype=np.float64), space=space)

    @classmethod
    def from_hex_strings(cls, values: Sequence[str]) -> Palette:
        """Build an RGB palette from ``#RRGGBB`` strings (the ``#`` is optional).

        Raises:
            PaletteError: If any string is not a six-digit hex color.
        """
        colors = []
        for value in values:
            match = _HEX_RE.match(value.strip())
            if match is None:
                raise PaletteError(f"Invalid hex color: {value!r}")
            colors.append(ColorPoint.from_rgb_int(int(match.group(1), 16)))
        if not colors:
            raise PaletteError("No colors given")
        return cls(colors=colors)

    # -- sequence protocol ---------------------------------------------------

    def __len__(self) -> int:
        return len(self.colors)

    def __iter__(self) -> Iterator[ColorPoint]:  # type: ignore[override]
        return iter(self.colors)

    def __getitem__(self, index: int) -> ColorPoint:
        return self.colors[index]

    # -- queries -------------------------------------------------------------

    def nearest_index(self, point: ColorPoint) -> int:
        """Index of the closest entry by squared Euclidean distance.

        Ties resolve to the lowest index.
        """
        return nearest_index(point.as_tuple(), [c.as_tuple() for c in self.colors])

    def sort_by_luminance(self) -> Palette:
        """Return a copy ordered by ascending luma; equal luma keeps input order."""
        return Palette(
            colors=sorted(self.colors, key=lambda c: c.luminance), space=self.space
        )

    def compute_mapping(self, target: Palette) -> tuple[int, ...]:
        """Pair every entry of this palette with an entry of *target*.

        Solves a minimum-cost assignment over a square cost matrix padded
        to ``max(len(self), len(target))``.  The pairing cost is a
        red-weighted squared RGB distance plus half the squared luma
        difference.  Entries paired with padding map to index 0.

        Returns:
            One index into *target* per entry of this palette.
        """
        own = self.to_array()
        other = target.to_array()
        n, m = len(own), len(other)
        size = max(n, m)

        diff = own[:, None, :] - other[None, :, :]
        mean_red = (own[:, None, 0] + other[None, :, 0]) * 0.5
        low_red = mean_red < 128.0
        w_red = np.where(low_red, 2.0, 3.0)
        w_blue = np.where(low_red, 3.0, 2.0)
        luma = np.asarray(LUMA_WEIGHTS, dtype=np.float64)
        luma_diff = (own @ luma)[:, None] - (other @ luma)[None, :]
        real = (
            w_red * diff[..., 0] ** 2
            + 4.0 * diff[..., 1] ** 2
            + w_blue * diff[..., 2] ** 2
            + 0.5 * luma_diff**2
        )

        cost = np.full((size, size), float(real.max()) * _PADDING_COST_FACTOR)
        cost[:n, :m] = real
        rows, cols = linear_sum_assignment(cost)
        assignment = dict(zip(rows.tolist(), cols.tolist()))
        return tuple(assignment[i] if assignment[i] < m else 0 for i in range(n))

    # -- conversion ----------------------------------------------------------

    def to_array(self) -> np.ndarray:
        """Return the entries as a ``(k, 3)`` float64 array."""
        return points_to_array(self.colors)

    def output_colors(self) -> np.ndarray:
        """Entries rounded to packed ``0xRRGGBB`` ``uint32`` values (RGB only)."""
        self._require_rgb("output_colors")
        return np.array([c.to_rgb_int() for c in self.colors], dtype=np.uint32)

    def to_hex_strings(self) -> list[str]:
        self._require_rgb("to_hex_strings")
        return [c.to_hex() for c in self.colors]

    def to_space(self, space: ColorSpace) -> Palette:
        """Return this palette converted to *space* (same order)."""
        if space is self.space:
            return self
        if space is ColorSpace.LAB:
            converted = rgb_to_lab_array(self.to_array())
        else:
            converted = lab_to_rgb_array(self.to_array())
        return Palette.from_array(converted, space=space)

    def _require_rgb(self, operation: str) -> None:
        if self.space is not ColorSpace.RGB:
            raise PaletteError(f"{operation} needs an RGB palette, got {self.space.value}")

    def __str__(self) -> str:
        lines = [f"  {i}: {c}" for i, c in enumerate(self.colors)]
        return "Palette[\n" + "\n".join(lines) + "\n]"
