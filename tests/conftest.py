"""Shared fixtures for colorharmony tests."""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
import pytest
from dotenv import load_dotenv
from PIL import Image

# Auto-load .env from project root (gitignored), e.g. COLORHARMONY_DISABLE_GPU.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJECT_ROOT / ".env", override=False)

from colorharmony.backends import GpuBackend, reset_backends
from colorharmony.models import BackendConfig, BackendKind, EngineConfig, TransferConfig
from colorharmony.palette import Palette

# ---------------------------------------------------------------------------
# Auto-skip GPU tests when CuPy or a CUDA device is unavailable
# ---------------------------------------------------------------------------

_GPU_AVAILABLE: bool | None = None


def _is_gpu_available() -> bool:
    global _GPU_AVAILABLE  # noqa: PLW0603
    if _GPU_AVAILABLE is None:
        _GPU_AVAILABLE = GpuBackend().is_available()
    return _GPU_AVAILABLE


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Auto-skip gpu tests when no CUDA device can be used."""
    if _is_gpu_available():
        return
    skip_marker = pytest.mark.skip(
        reason="GPU test skipped: install colorharmony[gpu] and make a CUDA device visible."
    )
    for item in items:
        if "gpu" in item.keywords:
            item.add_marker(skip_marker)


@pytest.fixture(autouse=True)
def _fresh_backend_detection():
    """Each test starts with no cached backend detection or shared dispatcher."""
    reset_backends()
    yield
    reset_backends()


@pytest.fixture()
def clean_logger():
    """Strip handlers from the colorharmony logger before and after a test."""
    logger = logging.getLogger("colorharmony")
    logger.handlers.clear()
    yield logger
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# Image fixtures
# ---------------------------------------------------------------------------

STRIPE_COLORS = [
    (200, 30, 40),
    (30, 160, 60),
    (40, 60, 200),
    (240, 230, 120),
]


@pytest.fixture()
def red_blue_image() -> Image.Image:
    """A 2x1 image with one pure red and one pure blue pixel."""
    img = Image.new("RGB", (2, 1))
    img.putpixel((0, 0), (255, 0, 0))
    img.putpixel((1, 0), (0, 0, 255))
    return img


@pytest.fixture()
def striped_image() -> Image.Image:
    """A 64x64 image of four horizontal bands in well-separated colors."""
    img = Image.new("RGB", (64, 64))
    for band, color in enumerate(STRIPE_COLORS):
        img.paste(color, (0, band * 16, 64, (band + 1) * 16))
    return img


@pytest.fixture()
def noisy_striped_array() -> np.ndarray:
    """A 48x48 (h, w, 3) array of the stripe colors with small seeded noise."""
    rng = np.random.default_rng(7)
    rows = []
    for color in STRIPE_COLORS:
        band = np.tile(np.array(color, dtype=np.int16), (12, 48, 1))
        band = band + rng.integers(-6, 7, size=band.shape)
        rows.append(band)
    return np.clip(np.concatenate(rows, axis=0), 0, 255).astype(np.uint8)


@pytest.fixture()
def gradient_array() -> np.ndarray:
    """A 32x40 (h, w, 3) array sweeping red across x and green across y."""
    ys, xs = np.mgrid[0:32, 0:40]
    rgb = np.stack([xs * 6, ys * 8, np.full_like(xs, 90)], axis=-1)
    return rgb.astype(np.uint8)


@pytest.fixture()
def stripe_palette() -> Palette:
    """The four stripe colors as an RGB palette."""
    return Palette(colors=STRIPE_COLORS)


# ---------------------------------------------------------------------------
# Engine configuration fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def vectorized_config() -> EngineConfig:
    """Engine config pinned to the NumPy backend."""
    return EngineConfig(backend=BackendConfig(preferred=BackendKind.VECTORIZED))


@pytest.fixture()
def reference_config() -> EngineConfig:
    """Engine config pinned to the pure-Python backend with a small LUT."""
    return EngineConfig(
        backend=BackendConfig(preferred=BackendKind.REFERENCE),
        transfer=TransferConfig(lut_bits=4),
    )
