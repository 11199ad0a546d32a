"""Pixel source/sink adapters.

The engine never touches files; it reads and writes pixels through the
:class:`RGBImage` interface, one horizontal band at a time, as packed
``0xRRGGBB`` ``uint32`` values.  Adapters are provided for PIL images
and for in-memory numpy arrays.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from typing import Any

import numpy as np
from PIL import Image

from colorharmony.errors import ImageError


def pack_rgb(rgb: np.ndarray) -> np.ndarray:
    """Pack a ``(..., 3)`` channel array into ``0xRRGGBB`` ``uint32`` values."""
    rgb = np.asarray(rgb)
    if rgb.shape[-1:] != (3,):
        raise ImageError(f"Expected trailing RGB axis of size 3, got shape {rgb.shape}")
    channels = np.clip(rgb, 0, 255).astype(np.uint32)
    return (channels[..., 0] << 16) | (channels[..., 1] << 8) | channels[..., 2]


def unpack_rgb(packed: np.ndarray) -> np.ndarray:
    """Split ``0xRRGGBB`` values into a ``(..., 3)`` ``uint8`` channel array."""
    packed = np.asarray(packed, dtype=np.uint32)
    r = (packed >> 16) & 0xFF
    g = (packed >> 8) & 0xFF
    b = packed & 0xFF
    return np.stack([r, g, b], axis=-1).astype(np.uint8)


class RGBImage(ABC):
    """Abstract pixel source and sink with random and band access."""

    @property
    @abstractmethod
    def width(self) -> int:
        """Image width in pixels."""

    @property
    @abstractmethod
    def height(self) -> int:
        """Image height in pixels."""

    @abstractmethod
    def get_rgb(self, x: int, y: int) -> int:
        """Return the packed ``0xRRGGBB`` value at ``(x, y)``."""

    @abstractmethod
    def set_rgb(self, x: int, y: int, rgb: int) -> None:
        """Store a packed ``0xRRGGBB`` value at ``(x, y)``."""

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    def read_band(self, y0: int, y1: int) -> np.ndarray:
        """Return rows ``[y0, y1)`` as a ``(y1 - y0, width)`` ``uint32`` array."""
        band = np.empty((y1 - y0, self.width), dtype=np.uint32)
        for y in range(y0, y1):
            for x in range(self.width):
                band[y - y0, x] = self.get_rgb(x, y)
        return band

    def write_band(self, y0: int, band: np.ndarray) -> None:
        """Write a ``(rows, width)`` ``uint32`` array starting at row *y0*."""
        for dy, row in enumerate(np.asarray(band, dtype=np.uint32)):
            for x, value in enumerate(row):
                self.set_rgb(x, y0 + dy, int(value))

    def iter_bands(self, rows: int) -> Iterator[tuple[int, int]]:
        """Yield ``(y0, y1)`` row ranges of at most *rows* rows covering the image."""
        if rows < 1:
            raise ValueError(f"rows must be >= 1, got {rows}")
        for y0 in range(0, self.height, rows):
            yield y0, min(y0 + rows, self.height)

    def new_like(self) -> RGBImage:
        """Create a blank image of the same size to receive output."""
        return ArrayImage.blank(self.width, self.height)

    def unwrap(self) -> Any:
        """Return the native object this adapter wraps."""
        return self


class ArrayImage(RGBImage):
    """Image backed by a ``(height, width)`` ``uint32`` numpy array.

    Args:
        packed: Packed pixel array.  It is used in place, not copied.
        native_rgb: When True, :meth:`unwrap` returns a ``(h, w, 3)``
            ``uint8`` array instead of the packed array.
    """

    def __init__(self, packed: np.ndarray, native_rgb: bool = False) -> None:
        if packed.ndim != 2 or packed.dtype != np.uint32:
            raise ImageError(
                f"ArrayImage needs a 2-D uint32 array, got {packed.ndim}-D {packed.dtype}"
            )
        self.packed = packed
        self._native_rgb = native_rgb

    @classmethod
    def blank(cls, width: int, height: int, native_rgb: bool = False) -> ArrayImage:
        return cls(np.zeros((height, width), dtype=np.uint32), native_rgb)

    @classmethod
    def from_rgb_array(cls, rgb: np.ndarray) -> ArrayImage:
        """Wrap a ``(height, width, 3)`` channel array."""
        rgb = np.asarray(rgb)
        if rgb.ndim != 3 or rgb.shape[2] != 3:
            raise ImageError(f"Expected an (h, w, 3) array, got shape {rgb.shape}")
        return cls(pack_rgb(rgb), native_rgb=True)

    @property
    def width(self) -> int:
        return int(self.packed.shape[1])

    @property
    def height(self) -> int:
        return int(self.packed.shape[0])

    def get_rgb(self, x: int, y: int) -> int:
        return int(self.packed[y, x])

    def set_rgb(self, x: int, y: int, rgb: int) -> None:
        self.packed[y, x] = rgb & 0xFFFFFF

    def read_band(self, y0: int, y1: int) -> np.ndarray:
        return self.packed[y0:y1].copy()

    def write_band(self, y0: int, band: np.ndarray) -> None:
        band = np.asarray(band, dtype=np.uint32)
        self.packed[y0 : y0 + band.shape[0]] = band

    def to_rgb_array(self) -> np.ndarray:
        return unpack_rgb(self.packed)

    def new_like(self) -> ArrayImage:
        return ArrayImage.blank(self.width, self.height, self._native_rgb)

    def unwrap(self) -> np.ndarray:
        return self.to_rgb_array() if self._native_rgb else self.packed


class PillowImage(RGBImage):
    """Adapter over a ``PIL.Image.Image``.

    Non-RGB modes are converted to RGB on wrap; alpha is discarded.
    """

    def __init__(self, image: Image.Image) -> None:
        self.image = image if image.mode == "RGB" else image.convert("RGB")

    @classmethod
    def blank(cls, width: int, height: int) -> PillowImage:
        return cls(Image.new("RGB", (width, height)))

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    def get_rgb(self, x: int, y: int) -> int:
        r, g, b = self.image.getpixel((x, y))
        return (r << 16) | (g << 8) | b

    def set_rgb(self, x: int, y: int, rgb: int) -> None:
        self.image.putpixel((x, y), ((rgb >> 16) & 0xFF, (rgb >> 8) & 0xFF, rgb & 0xFF))

    def read_band(self, y0: int, y1: int) -> np.ndarray:
        band = np.asarray(self.image.crop((0, y0, self.width, y1)), dtype=np.uint8)
        return pack_rgb(band.reshape(y1 - y0, self.width, 3))

    def write_band(self, y0: int, band: np.ndarray) -> None:
        rgb = unpack_rgb(band)
        self.image.paste(Image.fromarray(rgb), (0, y0))

    def new_like(self) -> PillowImage:
        return PillowImage.blank(self.width, self.height)

    def unwrap(self) -> Image.Image:
        return self.image


def as_image(obj: Any) -> RGBImage:
    """Wrap a PIL image, numpy array or existing adapter as an :class:`RGBImage`.

    Accepted arrays are ``(h, w)`` packed ``uint32`` or ``(h, w, 3)`` channels.

    Raises:
        ImageError: If *obj* is not a supported image type.
    """
    if isinstance(obj, RGBImage):
        return obj
    if isinstance(obj, Image.Image):
        return PillowImage(obj)
    if isinstance(obj, np.ndarray):
        if obj.ndim == 2 and obj.dtype == np.uint32:
            return ArrayImage(obj)
        if obj.ndim == 3 and obj.shape[2] == 3:
            return ArrayImage.from_rgb_array(obj)
        raise ImageError(f"Unsupported array shape {obj.shape} / dtype {obj.dtype}")
    raise ImageError(f"Unsupported image type: {type(obj).__name__}")
