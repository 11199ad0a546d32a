"""Deterministic uniform reservoir sampling of color points.

The reservoir keeps the first ``max_size`` points and then replaces slot
``j`` with the i-th point (0-based) whenever a uniform draw ``j`` in
``[0, i]`` lands inside the reservoir (Algorithm R).  Points arrive in
chunks so an image can be streamed band by band without ever holding
all of its pixels.  One uniform double is drawn per point past the fill
phase, so the result depends only on the seed and the point order, not
on how the input was chunked.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import numpy as np

from colorharmony.color import array_to_points, points_to_array
from colorharmony.constants import DEFAULT_SEED
from colorharmony.errors import InvalidArgumentError
from colorharmony.image import RGBImage, unpack_rgb
from colorharmony.logging import get_logger
from colorharmony.models import ColorPoint

logger = get_logger("sampler")

DEFAULT_BAND_ROWS = 256


class ReservoirSampler:
    """Streaming reservoir over ``(n, 3)`` point chunks.

    Args:
        max_size: Reservoir capacity.
        seed: Seed for the uniform draws; ``None`` selects the default seed.
    """

    def __init__(self, max_size: int, seed: int | None = None) -> None:
        if max_size < 1:
            raise InvalidArgumentError(f"max_size must be >= 1, got {max_size}")
        self.max_size = max_size
        self._rng = np.random.default_rng(DEFAULT_SEED if seed is None else seed)
        self._buffer = np.empty((max_size, 3), dtype=np.float64)
        self._filled = 0
        self._seen = 0

    @property
    def seen(self) -> int:
        """Number of points offered so far."""
        return self._seen

    def extend(self, chunk: np.ndarray) -> None:
        """Offer the next chunk of points, in stream order."""
        points = np.asarray(chunk, dtype=np.float64).reshape(-1, 3)
        n = len(points)
        if n == 0:
            return

        pos = 0
        if self._filled < self.max_size:
            take = min(self.max_size - self._filled, n)
            self._buffer[self._filled : self._filled + take] = points[:take]
            self._filled += take
            self._seen += take
            pos = take
            if pos == n:
                return

        rest = points[pos:]
        # Stream positions of the remaining points; slot j is uniform in [0, i]
        positions = np.arange(self._seen, self._seen + len(rest), dtype=np.int64)
        draws = self._rng.random(len(rest))
        slots = np.minimum((draws * (positions + 1)).astype(np.int64), positions)
        self._seen += len(rest)

        hits = np.nonzero(slots < self.max_size)[0]
        if hits.size == 0:
            return
        # Within a chunk the last point written to a slot wins
        hit_slots = slots[hits][::-1]
        unique_slots, first = np.unique(hit_slots, return_index=True)
        self._buffer[unique_slots] = rest[hits[::-1][first]]

    def result(self) -> np.ndarray:
        """Return a copy of the current sample, ``min(seen, max_size)`` rows."""
        return self._buffer[: self._filled].copy()


def reservoir_sample(
    points: np.ndarray | Sequence[ColorPoint],
    max_size: int,
    seed: int | None = None,
) -> np.ndarray | list[ColorPoint]:
    """Uniformly sample at most ``max_size`` points.

    Args:
        points: ``(n, 3)`` array or sequence of :class:`ColorPoint`.
        max_size: Maximum sample size.
        seed: Seed for the draws (default seed when ``None``).

    Returns:
        A sample of ``min(n, max_size)`` points, of the same kind as the
        input (array in, array out; points in, points out).
    """
    as_array = isinstance(points, np.ndarray)
    data = points if as_array else points_to_array(points)
    sampler = ReservoirSampler(max_size, seed)
    sampler.extend(data)
    sample = sampler.result()
    return sample if as_array else array_to_points(sample)


def iter_image_points(
    image: RGBImage, band_rows: int = DEFAULT_BAND_ROWS
) -> Iterable[np.ndarray]:
    """Yield the pixels of *image* as ``(n, 3)`` float arrays, band by band."""
    for y0, y1 in image.iter_bands(band_rows):
        packed = image.read_band(y0, y1)
        yield unpack_rgb(packed.ravel()).astype(np.float64)


def sample_image(
    image: RGBImage,
    max_size: int,
    seed: int | None = None,
    band_rows: int = DEFAULT_BAND_ROWS,
) -> np.ndarray:
    """Reservoir-sample the pixels of an image without materializing them all.

    Args:
        image: Image source.
        max_size: Maximum sample size.
        seed: Seed for the draws (default seed when ``None``).
        band_rows: Rows read per band.

    Returns:
        ``(min(width * height, max_size), 3)`` float64 array of RGB values.
    """
    sampler = ReservoirSampler(max_size, seed)
    for chunk in iter_image_points(image, band_rows):
        sampler.extend(chunk)
    logger.debug(
        "Sampled %d of %d pixels (seed=%s)",
        min(sampler.seen, max_size),
        sampler.seen,
        DEFAULT_SEED if seed is None else seed,
    )
    return sampler.result()
