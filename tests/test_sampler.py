"""Tests for colorharmony.sampler: reservoir sampling."""

from __future__ import annotations

import numpy as np
import pytest
from PIL import Image

from colorharmony.errors import InvalidArgumentError
from colorharmony.image import ArrayImage, PillowImage
from colorharmony.models import ColorPoint
from colorharmony.sampler import ReservoirSampler, reservoir_sample, sample_image


def _distinct_points(n: int) -> np.ndarray:
    """n points whose first channel is their stream index."""
    points = np.zeros((n, 3), dtype=np.float64)
    points[:, 0] = np.arange(n)
    return points


class TestReservoirSampler:
    """Tests for the streaming sampler."""

    def test_keeps_everything_below_capacity(self) -> None:
        points = _distinct_points(50)
        sampler = ReservoirSampler(100, seed=1)
        sampler.extend(points)
        np.testing.assert_array_equal(sampler.result(), points)
        assert sampler.seen == 50

    def test_size_is_capped(self) -> None:
        sampler = ReservoirSampler(64, seed=1)
        sampler.extend(_distinct_points(10_000))
        assert sampler.result().shape == (64, 3)
        assert sampler.seen == 10_000

    def test_sample_is_subset_without_repeats(self) -> None:
        sampler = ReservoirSampler(200, seed=5)
        sampler.extend(_distinct_points(5_000))
        ids = sampler.result()[:, 0]
        assert len(np.unique(ids)) == 200
        assert ids.min() >= 0 and ids.max() < 5_000

    def test_deterministic_for_same_seed(self) -> None:
        a = ReservoirSampler(100, seed=42)
        b = ReservoirSampler(100, seed=42)
        a.extend(_distinct_points(3_000))
        b.extend(_distinct_points(3_000))
        np.testing.assert_array_equal(a.result(), b.result())

    def test_different_seeds_differ(self) -> None:
        a = ReservoirSampler(100, seed=1)
        b = ReservoirSampler(100, seed=2)
        a.extend(_distinct_points(3_000))
        b.extend(_distinct_points(3_000))
        assert not np.array_equal(a.result(), b.result())

    def test_chunking_does_not_change_result(self) -> None:
        points = _distinct_points(4_000)
        whole = ReservoirSampler(150, seed=9)
        whole.extend(points)
        chunked = ReservoirSampler(150, seed=9)
        for start in range(0, len(points), 333):
            chunked.extend(points[start : start + 333])
        np.testing.assert_array_equal(whole.result(), chunked.result())

    def test_late_points_can_be_sampled(self) -> None:
        sampler = ReservoirSampler(500, seed=3)
        sampler.extend(_distinct_points(5_000))
        assert (sampler.result()[:, 0] >= 2_500).sum() > 100

    def test_roughly_uniform(self) -> None:
        """Each half of the stream contributes about half the sample."""
        counts = []
        for seed in range(20):
            sampler = ReservoirSampler(100, seed=seed)
            sampler.extend(_distinct_points(2_000))
            counts.append(int((sampler.result()[:, 0] < 1_000).sum()))
        assert 40 <= np.mean(counts) <= 60

    def test_empty_chunk_is_ignored(self) -> None:
        sampler = ReservoirSampler(10, seed=1)
        sampler.extend(np.empty((0, 3)))
        assert sampler.result().shape == (0, 3)
        assert sampler.seen == 0

    def test_invalid_size(self) -> None:
        with pytest.raises(InvalidArgumentError):
            ReservoirSampler(0)


class TestReservoirSample:
    """Tests for the one-shot helper."""

    def test_array_in_array_out(self) -> None:
        sample = reservoir_sample(_distinct_points(500), 50, seed=4)
        assert isinstance(sample, np.ndarray)
        assert sample.shape == (50, 3)

    def test_points_in_points_out(self) -> None:
        points = [ColorPoint(float(i), 0.0, 0.0) for i in range(30)]
        sample = reservoir_sample(points, 10, seed=4)
        assert len(sample) == 10
        assert all(isinstance(p, ColorPoint) for p in sample)
        assert set(sample) <= set(points)

    def test_default_seed_is_stable(self) -> None:
        a = reservoir_sample(_distinct_points(500), 20)
        b = reservoir_sample(_distinct_points(500), 20)
        np.testing.assert_array_equal(a, b)


class TestSampleImage:
    """Tests for streaming an image through the sampler."""

    def test_small_image_returns_every_pixel(self, striped_image: Image.Image) -> None:
        sample = sample_image(PillowImage(striped_image), 10_000, seed=1)
        assert sample.shape == (64 * 64, 3)

    def test_values_are_image_colors(self, striped_image: Image.Image) -> None:
        sample = sample_image(PillowImage(striped_image), 100, seed=1)
        colors = {tuple(int(c) for c in row) for row in sample}
        assert colors <= {(200, 30, 40), (30, 160, 60), (40, 60, 200), (240, 230, 120)}

    def test_band_size_does_not_change_result(self, gradient_array: np.ndarray) -> None:
        image = ArrayImage.from_rgb_array(gradient_array)
        a = sample_image(image, 200, seed=11, band_rows=3)
        b = sample_image(image, 200, seed=11, band_rows=32)
        np.testing.assert_array_equal(a, b)

    def test_pillow_and_array_sources_agree(self, gradient_array: np.ndarray) -> None:
        from_array = sample_image(ArrayImage.from_rgb_array(gradient_array), 300, seed=2)
        from_pillow = sample_image(PillowImage(Image.fromarray(gradient_array)), 300, seed=2)
        np.testing.assert_array_equal(from_array, from_pillow)
