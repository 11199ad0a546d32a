"""Tests for colorharmony.backends: parity between tiers and dispatch."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import numpy as np
import pytest

from colorharmony.backends import (
    Backend,
    BackendDispatcher,
    GpuBackend,
    ReferenceBackend,
    VectorizedBackend,
    get_dispatcher,
    lut_grid_values,
    detect_backends,
)
from colorharmony.errors import ResourceUnavailableError
from colorharmony.image import pack_rgb
from colorharmony.models import BackendConfig, BackendKind

PALETTE = np.array(
    [
        [12.0, 12.0, 12.0],
        [220.5, 40.0, 35.0],
        [40.0, 190.0, 70.25],
        [60.0, 70.0, 220.0],
        [235.0, 225.0, 190.0],
        [128.0, 128.0, 128.0],
    ]
)


@pytest.fixture()
def pixels() -> np.ndarray:
    """Packed pixels covering corners, ties and random colors."""
    rng = np.random.default_rng(21)
    rgb = rng.integers(0, 256, size=(400, 3))
    extra = np.array([[0, 0, 0], [255, 255, 255], [70, 70, 70], [128, 128, 128]])
    return pack_rgb(np.vstack([rgb, extra]))


class _BrokenBackend(Backend):
    """Stand-in tier whose resources are never available."""

    kind = BackendKind.GPU

    def __init__(self) -> None:
        self.attempts = 0

    def is_available(self) -> bool:
        return True

    @contextmanager
    def acquire(self) -> Iterator[Backend]:
        self.attempts += 1
        raise ResourceUnavailableError("device lost")
        yield self  # pragma: no cover

    def nearest_indices(self, points, palette):  # pragma: no cover
        raise AssertionError

    def build_lut(self, palette, bits):  # pragma: no cover
        raise AssertionError

    def map_pixels(self, packed, palette, output_colors, lut=None, lut_bits=6):  # pragma: no cover
        raise AssertionError

    def rgb_to_lab(self, rgb):  # pragma: no cover
        raise AssertionError

    def lab_to_rgb(self, lab):  # pragma: no cover
        raise AssertionError


# ---------------------------------------------------------------------------
# Lookup-table grid
# ---------------------------------------------------------------------------


class TestLutGrid:
    """Tests for the lookup-table cell values."""

    def test_eight_bits_is_exact(self) -> None:
        np.testing.assert_array_equal(lut_grid_values(8), np.arange(256))

    def test_cells_are_centered(self) -> None:
        values = lut_grid_values(6)
        assert len(values) == 64
        assert values[0] == 1.5
        assert values[-1] == 253.5


# ---------------------------------------------------------------------------
# Parity between reference and vectorized tiers
# ---------------------------------------------------------------------------


class TestBackendParity:
    """The NumPy tier must reproduce the reference tier exactly."""

    def test_nearest_indices(self) -> None:
        rng = np.random.default_rng(4)
        points = rng.uniform(0, 255, size=(300, 3))
        points[:3] = [[70.0, 70.0, 70.0], [0.0, 0.0, 0.0], [128.0, 128.0, 128.0]]
        ref = ReferenceBackend().nearest_indices(points, PALETTE)
        vec = VectorizedBackend().nearest_indices(points, PALETTE)
        np.testing.assert_array_equal(ref, vec)

    def test_tie_breaks_to_lowest_index(self) -> None:
        palette = np.array([[0.0, 0.0, 0.0], [10.0, 0.0, 0.0], [0.0, 0.0, 0.0]])
        point = np.array([[5.0, 0.0, 0.0]])
        for backend in (ReferenceBackend(), VectorizedBackend()):
            assert backend.nearest_indices(point, palette).tolist() == [0]

    def test_build_lut(self) -> None:
        ref = ReferenceBackend().build_lut(PALETTE, 4)
        vec = VectorizedBackend().build_lut(PALETTE, 4)
        assert ref.dtype == np.uint16
        assert ref.shape == (16**3,)
        np.testing.assert_array_equal(ref, vec)

    @pytest.mark.parametrize("use_lut", [True, False])
    def test_map_pixels(self, pixels: np.ndarray, use_lut: bool) -> None:
        colors = pack_rgb(np.round(PALETTE)).astype(np.uint32)
        results = []
        for backend in (ReferenceBackend(), VectorizedBackend()):
            lut = backend.build_lut(PALETTE, 4) if use_lut else None
            results.append(backend.map_pixels(pixels, PALETTE, colors, lut, 4))
        np.testing.assert_array_equal(results[0], results[1])
        assert set(results[0].tolist()) <= set(colors.tolist())

    def test_direct_search_is_exact_nearest(self, pixels: np.ndarray) -> None:
        colors = np.arange(len(PALETTE), dtype=np.uint32)
        mapped = VectorizedBackend().map_pixels(pixels, PALETTE, colors)
        rgb = np.stack([(pixels >> 16) & 0xFF, (pixels >> 8) & 0xFF, pixels & 0xFF], axis=1)
        d = ((rgb[:, None, :].astype(np.float64) - PALETTE[None, :, :]) ** 2).sum(axis=2)
        np.testing.assert_array_equal(mapped, d.argmin(axis=1))

    def test_small_chunks_match_single_chunk(self, pixels: np.ndarray) -> None:
        colors = pack_rgb(np.round(PALETTE)).astype(np.uint32)
        chunked = VectorizedBackend()
        chunked.chunk_size = 7
        np.testing.assert_array_equal(
            chunked.map_pixels(pixels, PALETTE, colors),
            VectorizedBackend().map_pixels(pixels, PALETTE, colors),
        )

    def test_color_conversion(self) -> None:
        rgb = np.array([[0.0, 0.0, 0.0], [255.0, 128.0, 3.0], [17.0, 200.0, 99.0]])
        ref, vec = ReferenceBackend(), VectorizedBackend()
        np.testing.assert_allclose(ref.rgb_to_lab(rgb), vec.rgb_to_lab(rgb), atol=1e-9)
        lab = vec.rgb_to_lab(rgb)
        np.testing.assert_allclose(ref.lab_to_rgb(lab), vec.lab_to_rgb(lab), atol=1e-9)


@pytest.mark.gpu
class TestGpuParity:
    """The CuPy tier against the NumPy tier (needs a CUDA device)."""

    def test_map_pixels_within_one(self, pixels: np.ndarray) -> None:
        gpu = GpuBackend()
        colors = pack_rgb(np.round(PALETTE)).astype(np.uint32)
        expected = VectorizedBackend().map_pixels(pixels, PALETTE, colors)
        with gpu.acquire():
            actual = gpu.map_pixels(pixels, PALETTE, colors)
        for shift in (16, 8, 0):
            diff = np.abs(
                ((actual >> shift) & 0xFF).astype(int) - ((expected >> shift) & 0xFF).astype(int)
            )
            assert diff.max() <= 1

    def test_build_lut_matches(self) -> None:
        gpu = GpuBackend()
        with gpu.acquire():
            lut = gpu.build_lut(PALETTE, 5)
        agreement = (lut == VectorizedBackend().build_lut(PALETTE, 5)).mean()
        assert agreement > 0.999


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


class TestBackendDispatcher:
    """Tests for tier selection and fallback."""

    def _backends(self, gpu: Backend | None = None) -> dict[BackendKind, Backend]:
        found: dict[BackendKind, Backend] = {
            BackendKind.VECTORIZED: VectorizedBackend(),
            BackendKind.REFERENCE: ReferenceBackend(),
        }
        if gpu is not None:
            found[BackendKind.GPU] = gpu
        return found

    def test_detection_always_has_cpu_tiers(self) -> None:
        found = detect_backends()
        assert BackendKind.VECTORIZED in found
        assert BackendKind.REFERENCE in found

    def test_detection_is_cached(self) -> None:
        assert detect_backends() is detect_backends()

    def test_disable_gpu_env_skips_gpu(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("COLORHARMONY_DISABLE_GPU", "1")
        assert BackendKind.GPU not in detect_backends()

    def test_auto_prefers_vectorized_on_cpu(self) -> None:
        dispatcher = BackendDispatcher(backends=self._backends())
        assert dispatcher.select(10).kind is BackendKind.VECTORIZED
        assert dispatcher.available_kinds == (BackendKind.VECTORIZED, BackendKind.REFERENCE)

    def test_gpu_only_above_threshold(self) -> None:
        gpu = _BrokenBackend()
        dispatcher = BackendDispatcher(
            BackendConfig(gpu_min_pixels=1000), backends=self._backends(gpu)
        )
        assert dispatcher.select(999).kind is BackendKind.VECTORIZED
        assert dispatcher.select(1000) is gpu

    def test_allow_gpu_false(self) -> None:
        dispatcher = BackendDispatcher(
            BackendConfig(allow_gpu=False, gpu_min_pixels=0),
            backends=self._backends(_BrokenBackend()),
        )
        assert dispatcher.select(10**9).kind is BackendKind.VECTORIZED

    @pytest.mark.parametrize("preferred", [BackendKind.AUTO, BackendKind.GPU])
    def test_allow_gpu_false_keeps_found_gpu_out_of_candidates(
        self, preferred: BackendKind
    ) -> None:
        dispatcher = BackendDispatcher(
            BackendConfig(preferred=preferred, allow_gpu=False, gpu_min_pixels=0),
            backends=self._backends(_BrokenBackend()),
        )
        assert BackendKind.GPU in dispatcher.available_kinds
        kinds = [b.kind for b in dispatcher.candidates(10**9)]
        assert kinds == [BackendKind.VECTORIZED, BackendKind.REFERENCE]

    def test_forced_reference(self) -> None:
        dispatcher = BackendDispatcher(
            BackendConfig(preferred=BackendKind.REFERENCE), backends=self._backends()
        )
        assert [b.kind for b in dispatcher.candidates(10**7)] == [BackendKind.REFERENCE]

    def test_forced_unavailable_tier_falls_back(self) -> None:
        dispatcher = BackendDispatcher(
            BackendConfig(preferred=BackendKind.GPU), backends=self._backends()
        )
        assert dispatcher.select(10).kind is BackendKind.VECTORIZED

    def test_run_falls_back_on_resource_error(self, caplog: pytest.LogCaptureFixture) -> None:
        gpu = _BrokenBackend()
        dispatcher = BackendDispatcher(
            BackendConfig(gpu_min_pixels=0), backends=self._backends(gpu)
        )
        with caplog.at_level("WARNING", logger="colorharmony"):
            used = dispatcher.run(100, lambda backend: backend.kind)
        assert used is BackendKind.VECTORIZED
        assert gpu.attempts == 1
        assert "falling back" in caplog.text

    def test_run_propagates_other_errors(self) -> None:
        dispatcher = BackendDispatcher(backends=self._backends())

        def boom(backend: Backend) -> None:
            raise ValueError("bad input")

        with pytest.raises(ValueError, match="bad input"):
            dispatcher.run(1, boom)

    def test_get_unknown_tier(self) -> None:
        dispatcher = BackendDispatcher(backends=self._backends())
        with pytest.raises(ResourceUnavailableError):
            dispatcher.get(BackendKind.GPU)

    def test_shared_dispatcher(self) -> None:
        assert get_dispatcher() is get_dispatcher()
        assert get_dispatcher(BackendConfig()) is not get_dispatcher()


class TestGpuBackendWithoutDevice:
    """GPU tier behaviour on machines without CUDA."""

    def test_unavailable_gpu_refuses_acquire(self) -> None:
        gpu = GpuBackend()
        if gpu.is_available():
            pytest.skip("CUDA device present")
        with pytest.raises(ResourceUnavailableError):
            with gpu.acquire():
                pass
