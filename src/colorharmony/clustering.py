"""Color clustering: density-seeded hybrid and plain K-Means++.

Both strategies share K-Means++ initialization and Lloyd refinement;
they differ in which points initialization draws from.  The hybrid
strategy first runs DBSCAN on fixed-size blocks of the input and uses
the resulting cluster centroids as candidate seeds, which keeps
initialization cheap on large samples and biased toward dense color
regions.

All randomness comes from a seeded ``numpy.random.Generator`` so a given
seed, input order and ``k`` always yield the same centroids.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Sequence

import numpy as np
from pydantic import BaseModel
from sklearn.cluster import DBSCAN
from sklearn.neighbors import NearestNeighbors

from colorharmony.backends import Backend, VectorizedBackend
from colorharmony.color import array_to_points, points_to_array
from colorharmony.constants import (
    DEFAULT_BLOCK_SIZE,
    DEFAULT_MIN_PTS,
    DEFAULT_SEED,
    EPS_FALLBACK,
    EPS_MAX,
    EPS_MIN,
    EPS_SAMPLE_BLOCKS,
    EPS_SAMPLE_POINTS,
    HYBRID_CONVERGENCE_THRESHOLD,
    HYBRID_MAX_ITERATIONS,
    KMEANS_CONVERGENCE_THRESHOLD,
    KMEANS_MAX_ITERATIONS,
)
from colorharmony.errors import InvalidArgumentError
from colorharmony.logging import get_logger
from colorharmony.models import ClusterConfig, ClusteringMode, ColorPoint

logger = get_logger("clustering")


class ClusterResult(BaseModel):
    """Outcome of a clustering run.

    Attributes:
        centroids: Exactly ``k`` centroids in the input's color space.
        iterations: Refinement iterations performed.
        converged: False when the iteration cap was hit first.
        seed_count: Candidate seeds K-Means++ initialization drew from.
        eps: DBSCAN radius used for seeding, None when no density
            seeding ran.
    """

    centroids: tuple[ColorPoint, ...]
    iterations: int
    converged: bool
    seed_count: int = 0
    eps: float | None = None

    model_config = {"frozen": True}

    def to_array(self) -> np.ndarray:
        return points_to_array(self.centroids)


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _as_array(points: np.ndarray | Sequence[ColorPoint]) -> np.ndarray:
    if isinstance(points, np.ndarray):
        return np.asarray(points, dtype=np.float64).reshape(-1, 3)
    return points_to_array(points)


def _squared_distances(points: np.ndarray, center: np.ndarray) -> np.ndarray:
    d = points - center
    return d[:, 0] * d[:, 0] + d[:, 1] * d[:, 1] + d[:, 2] * d[:, 2]


def kmeans_plus_plus(points: np.ndarray, k: int, rng: np.random.Generator) -> np.ndarray:
    """Pick *k* initial centroids with D^2-weighted sampling.

    The first centroid is uniform; each next one is drawn with probability
    proportional to its squared distance to the nearest chosen centroid.
    When every remaining weight is zero (duplicated points) the draw
    falls back to uniform.
    """
    n = len(points)
    centroids = np.empty((k, 3), dtype=np.float64)
    first = int(rng.integers(n))
    centroids[0] = points[first]
    min_distances = _squared_distances(points, centroids[0])

    for c in range(1, k):
        total = float(min_distances.sum())
        if total <= 0.0:
            chosen = int(rng.integers(n))
        else:
            cumulative = np.cumsum(min_distances)
            threshold = rng.random() * total
            chosen = min(int(np.searchsorted(cumulative, threshold, side="right")), n - 1)
        centroids[c] = points[chosen]
        np.minimum(min_distances, _squared_distances(points, centroids[c]), out=min_distances)
    return centroids


def lloyd_refine(
    points: np.ndarray,
    centroids: np.ndarray,
    max_iterations: int,
    threshold: float,
    rng: np.random.Generator,
    backend: Backend,
) -> tuple[np.ndarray, int, bool]:
    """Alternate assignment and mean update until centroids settle.

    Stops when no assignment changes or the largest centroid movement
    drops below *threshold*.  A cluster that loses all its points is
    re-seeded with a randomly chosen input point; that alone does not
    prevent convergence, since with more clusters than distinct colors
    some clusters stay empty for good.

    Returns:
        ``(centroids, iterations, converged)``.
    """
    k = len(centroids)
    centroids = centroids.copy()
    assignments = np.full(len(points), -1, dtype=np.int64)

    for iteration in range(1, max_iterations + 1):
        new_assignments = backend.nearest_indices(points, centroids)
        changed = int(np.count_nonzero(new_assignments != assignments))
        assignments = new_assignments

        counts = np.bincount(assignments, minlength=k)
        updated = np.empty_like(centroids)
        for channel in range(3):
            sums = np.bincount(assignments, weights=points[:, channel], minlength=k)
            updated[:, channel] = np.divide(
                sums, counts, out=np.zeros(k, dtype=np.float64), where=counts > 0
            )
        empty = np.flatnonzero(counts == 0)
        for c in empty:
            updated[c] = points[int(rng.integers(len(points)))]

        shift = float(np.sqrt(np.max(np.sum((updated - centroids) ** 2, axis=1))))
        centroids = updated
        if changed == 0 or shift < threshold:
            return centroids, iteration, True

    return centroids, max_iterations, False


def _check_k(n: int, k: int) -> None:
    if n == 0:
        raise InvalidArgumentError("Cannot cluster an empty point set")
    if k < 1:
        raise InvalidArgumentError(f"k must be >= 1, got {k}")
    if k > n:
        raise InvalidArgumentError(f"k={k} exceeds the number of points ({n})")


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


class ClusteringStrategy(ABC):
    """Abstract clustering strategy.

    Args:
        seed: Seed for every random choice.
        backend: Backend used for nearest-centroid assignment.
    """

    mode: ClusteringMode

    def __init__(self, seed: int | None = None, backend: Backend | None = None) -> None:
        self.seed = DEFAULT_SEED if seed is None else seed
        self.backend = backend or VectorizedBackend()

    @abstractmethod
    def cluster(self, points: np.ndarray | Sequence[ColorPoint], k: int) -> ClusterResult:
        """Partition *points* into exactly *k* clusters.

        Raises:
            InvalidArgumentError: If the input is empty or ``k`` is not in
                ``[1, len(points)]``.
        """

    def _finish(
        self,
        points: np.ndarray,
        seeds: np.ndarray,
        k: int,
        rng: np.random.Generator,
        max_iterations: int,
        threshold: float,
        eps: float | None = None,
    ) -> ClusterResult:
        initial = kmeans_plus_plus(seeds, k, rng)
        centroids, iterations, converged = lloyd_refine(
            points, initial, max_iterations, threshold, rng, self.backend
        )
        if not converged:
            logger.warning(
                "%s clustering hit the iteration cap (%d) before converging",
                self.mode.value,
                max_iterations,
            )
        logger.debug(
            "%s clustering: k=%d n=%d iterations=%d", self.mode.value, k, len(points), iterations
        )
        return ClusterResult(
            centroids=tuple(array_to_points(centroids)),
            iterations=iterations,
            converged=converged,
            seed_count=len(seeds),
            eps=eps,
        )

    @staticmethod
    def _trivial(points: np.ndarray) -> ClusterResult:
        return ClusterResult(
            centroids=tuple(array_to_points(points)),
            iterations=0,
            converged=True,
            seed_count=len(points),
        )


class KMeansClusterer(ClusteringStrategy):
    """K-Means++ initialization over all points followed by Lloyd iterations."""

    mode = ClusteringMode.KMEANS

    def __init__(
        self,
        max_iterations: int = KMEANS_MAX_ITERATIONS,
        threshold: float = KMEANS_CONVERGENCE_THRESHOLD,
        seed: int | None = None,
        backend: Backend | None = None,
    ) -> None:
        super().__init__(seed, backend)
        self.max_iterations = max_iterations
        self.threshold = threshold

    def cluster(self, points: np.ndarray | Sequence[ColorPoint], k: int) -> ClusterResult:
        data = _as_array(points)
        _check_k(len(data), k)
        if k == len(data):
            return self._trivial(data)
        rng = np.random.default_rng(self.seed)
        return self._finish(data, data, k, rng, self.max_iterations, self.threshold)


class HybridClusterer(ClusteringStrategy):
    """Block-wise DBSCAN seeding, then K-Means++ and Lloyd refinement.

    Args:
        block_size: Points per DBSCAN block.
        min_pts: Neighbours (the point itself included) that make a core point.
        max_iterations: Refinement iteration cap.
        threshold: Centroid movement below which refinement stops.
        seed: Seed for every random choice.
        backend: Backend used for nearest-centroid assignment.
    """

    mode = ClusteringMode.HYBRID

    def __init__(
        self,
        block_size: int = DEFAULT_BLOCK_SIZE,
        min_pts: int = DEFAULT_MIN_PTS,
        max_iterations: int = HYBRID_MAX_ITERATIONS,
        threshold: float = HYBRID_CONVERGENCE_THRESHOLD,
        seed: int | None = None,
        backend: Backend | None = None,
    ) -> None:
        super().__init__(seed, backend)
        self.block_size = block_size
        self.min_pts = min_pts
        self.max_iterations = max_iterations
        self.threshold = threshold

    def estimate_eps(self, points: np.ndarray, rng: np.random.Generator | None = None) -> float:
        """Estimate the DBSCAN radius from k-th nearest-neighbour distances.

        Samples a few random blocks, takes the median k-distance of a few
        random points in each, averages the medians and clamps the result
        to ``[EPS_MIN, EPS_MAX]``.
        """
        points = _as_array(points)
        n = len(points)
        if n <= self.min_pts:
            return EPS_FALLBACK
        rng = rng or np.random.default_rng(self.seed)
        kth = max(1, min(self.min_pts - 1, n - 1))

        num_blocks = math.ceil(n / self.block_size)
        sample_blocks = min(EPS_SAMPLE_BLOCKS, num_blocks)
        total = 0.0
        for _ in range(sample_blocks):
            start = int(rng.integers(num_blocks)) * self.block_size
            block = points[start : start + self.block_size]
            if len(block) <= kth:
                total += EPS_FALLBACK
                continue
            picks = rng.integers(0, len(block), size=min(EPS_SAMPLE_POINTS, len(block)))
            nn = NearestNeighbors(n_neighbors=kth + 1).fit(block)
            # Column 0 is the query point itself
            distances, _ = nn.kneighbors(block[picks])
            k_distances = np.sort(distances[:, kth])
            total += float(k_distances[len(k_distances) // 2])

        eps = total / sample_blocks
        return float(min(EPS_MAX, max(EPS_MIN, eps)))

    def dbscan_block(self, block: np.ndarray, eps: float) -> np.ndarray:
        """Label a block with DBSCAN; returns cluster ids, ``-1`` for noise.

        A core point has at least ``min_pts`` points, itself included,
        within *eps*.  Border points join the first cluster that reaches
        them but do not expand it.
        """
        dbscan = DBSCAN(eps=eps, min_samples=self.min_pts)
        return dbscan.fit(block).labels_.astype(np.int64)

    def extract_seeds(self, points: np.ndarray, eps: float) -> np.ndarray:
        """Run DBSCAN per block and return the centroids of all found clusters."""
        points = _as_array(points)
        seeds: list[np.ndarray] = []
        for start in range(0, len(points), self.block_size):
            block = points[start : start + self.block_size]
            labels = self.dbscan_block(block, eps)
            for label in range(int(labels.max()) + 1 if len(labels) else 0):
                seeds.append(block[labels == label].mean(axis=0))
        if not seeds:
            return np.empty((0, 3), dtype=np.float64)
        return np.vstack(seeds)

    def cluster(self, points: np.ndarray | Sequence[ColorPoint], k: int) -> ClusterResult:
        data = _as_array(points)
        n = len(data)
        _check_k(n, k)
        if k == n:
            return self._trivial(data)
        rng = np.random.default_rng(self.seed)

        eps = None
        if n <= 2 * self.block_size:
            seeds = data
        else:
            eps = self.estimate_eps(data, rng)
            seeds = self.extract_seeds(data, eps)
            logger.debug("DBSCAN eps=%.2f produced %d seeds from %d points", eps, len(seeds), n)
            if len(seeds) < k:
                padding = data[rng.integers(0, n, size=k - len(seeds))]
                seeds = np.vstack([seeds, padding]) if len(seeds) else padding

        return self._finish(data, seeds, k, rng, self.max_iterations, self.threshold, eps)


def create_clusterer(
    mode: ClusteringMode,
    config: ClusterConfig | None = None,
    seed: int | None = None,
    backend: Backend | None = None,
) -> ClusteringStrategy:
    """Build the clustering strategy for *mode* from *config*."""
    config = config or ClusterConfig()
    if mode is ClusteringMode.KMEANS:
        return KMeansClusterer(
            max_iterations=config.kmeans_max_iterations,
            threshold=config.kmeans_convergence_threshold,
            seed=seed,
            backend=backend,
        )
    return HybridClusterer(
        block_size=config.block_size,
        min_pts=config.min_pts,
        max_iterations=config.hybrid_max_iterations,
        threshold=config.hybrid_convergence_threshold,
        seed=seed,
        backend=backend,
    )
