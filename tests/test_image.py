"""Tests for colorharmony.image and colorharmony.image_io."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from colorharmony.errors import ImageError
from colorharmony.image import ArrayImage, PillowImage, RGBImage, as_image, pack_rgb, unpack_rgb
from colorharmony.image_io import load_image, save_image


class _DictImage(RGBImage):
    """Minimal adapter implementing only per-pixel access."""

    def __init__(self, width: int, height: int) -> None:
        self._w, self._h = width, height
        self.pixels: dict[tuple[int, int], int] = {}

    @property
    def width(self) -> int:
        return self._w

    @property
    def height(self) -> int:
        return self._h

    def get_rgb(self, x: int, y: int) -> int:
        return self.pixels.get((x, y), 0)

    def set_rgb(self, x: int, y: int, rgb: int) -> None:
        self.pixels[(x, y)] = rgb


class TestPacking:
    """Tests for packed 0xRRGGBB helpers."""

    def test_pack_and_unpack(self) -> None:
        rgb = np.array([[[255, 0, 16], [1, 2, 3]]], dtype=np.uint8)
        packed = pack_rgb(rgb)
        assert packed.dtype == np.uint32
        assert packed.tolist() == [[0xFF0010, 0x010203]]
        np.testing.assert_array_equal(unpack_rgb(packed), rgb)

    def test_pack_rejects_wrong_shape(self) -> None:
        with pytest.raises(ImageError):
            pack_rgb(np.zeros((4, 4)))


class TestArrayImage:
    """Tests for the numpy-backed adapter."""

    def test_dimensions(self, gradient_array: np.ndarray) -> None:
        image = ArrayImage.from_rgb_array(gradient_array)
        assert (image.width, image.height) == (40, 32)
        assert image.pixel_count == 1280

    def test_pixel_access(self) -> None:
        image = ArrayImage.blank(3, 2)
        image.set_rgb(2, 1, 0xABCDEF)
        assert image.get_rgb(2, 1) == 0xABCDEF
        assert image.packed[1, 2] == 0xABCDEF

    def test_band_round_trip(self, gradient_array: np.ndarray) -> None:
        image = ArrayImage.from_rgb_array(gradient_array)
        copy = image.new_like()
        for y0, y1 in image.iter_bands(5):
            copy.write_band(y0, image.read_band(y0, y1))
        np.testing.assert_array_equal(copy.unwrap(), gradient_array)

    def test_unwrap_keeps_input_layout(self) -> None:
        packed = np.zeros((2, 2), dtype=np.uint32)
        assert ArrayImage(packed).unwrap() is packed

    def test_rejects_bad_array(self) -> None:
        with pytest.raises(ImageError):
            ArrayImage(np.zeros((2, 2), dtype=np.uint8))


class TestPillowImage:
    """Tests for the PIL adapter."""

    def test_read_band_matches_getpixel(self, striped_image: Image.Image) -> None:
        image = PillowImage(striped_image)
        band = image.read_band(14, 18)
        assert band.shape == (4, 64)
        assert band[0, 0] == image.get_rgb(0, 14)
        assert band[3, 63] == image.get_rgb(63, 17)

    def test_write_band(self) -> None:
        image = PillowImage.blank(4, 4)
        image.write_band(2, np.full((2, 4), 0x102030, dtype=np.uint32))
        assert image.unwrap().getpixel((3, 3)) == (0x10, 0x20, 0x30)
        assert image.unwrap().getpixel((0, 0)) == (0, 0, 0)

    def test_converts_rgba(self) -> None:
        image = PillowImage(Image.new("RGBA", (2, 2), (1, 2, 3, 0)))
        assert image.unwrap().mode == "RGB"
        assert image.get_rgb(1, 1) == 0x010203


class TestBaseBandAccess:
    """Default band access built on per-pixel methods."""

    def test_default_band_methods(self) -> None:
        image = _DictImage(3, 3)
        image.write_band(1, np.array([[1, 2, 3], [4, 5, 6]], dtype=np.uint32))
        assert image.read_band(0, 3).tolist() == [[0, 0, 0], [1, 2, 3], [4, 5, 6]]
        assert isinstance(image.new_like(), ArrayImage)

    def test_iter_bands_covers_image(self) -> None:
        assert list(_DictImage(1, 10).iter_bands(4)) == [(0, 4), (4, 8), (8, 10)]


class TestAsImage:
    """Tests for wrapping native images."""

    def test_wraps_supported_types(self, striped_image: Image.Image) -> None:
        assert isinstance(as_image(striped_image), PillowImage)
        assert isinstance(as_image(np.zeros((2, 2, 3), dtype=np.uint8)), ArrayImage)
        assert isinstance(as_image(np.zeros((2, 2), dtype=np.uint32)), ArrayImage)
        adapter = ArrayImage.blank(1, 1)
        assert as_image(adapter) is adapter

    def test_rejects_unknown(self) -> None:
        with pytest.raises(ImageError):
            as_image("not an image")
        with pytest.raises(ImageError):
            as_image(np.zeros((2, 2, 4), dtype=np.uint8))


class TestImageIO:
    """Tests for file loading and saving."""

    def test_save_and_load(self, tmp_path: Path, striped_image: Image.Image) -> None:
        path = save_image(striped_image, tmp_path / "out" / "stripes.png")
        assert path.is_file()
        loaded = load_image(path)
        assert loaded.mode == "RGB"
        assert loaded.getpixel((0, 0)) == (200, 30, 40)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ImageError, match="not found"):
            load_image(tmp_path / "nope.png")

    def test_corrupt_file(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.png"
        path.write_bytes(b"not a png")
        with pytest.raises(ImageError, match="Cannot open"):
            load_image(path)

    def test_palette_mode_is_converted(self, tmp_path: Path, striped_image: Image.Image) -> None:
        path = tmp_path / "indexed.png"
        striped_image.convert("P").save(path)
        assert load_image(path).mode == "RGB"
