"""Data models for colors, engine modes and engine configuration."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from colorharmony.constants import (
    DEFAULT_BLOCK_SIZE,
    DEFAULT_GPU_MIN_PIXELS,
    DEFAULT_LUT_BITS,
    DEFAULT_LUT_MAX_COLORS,
    DEFAULT_MIN_PTS,
    DEFAULT_SEED,
    DEFAULT_TILE_THRESHOLD_PIXELS,
    HYBRID_CONVERGENCE_THRESHOLD,
    HYBRID_MAX_ITERATIONS,
    HYBRID_SAMPLE_CAP,
    KMEANS_CONVERGENCE_THRESHOLD,
    KMEANS_MAX_ITERATIONS,
    KMEANS_SAMPLE_CAP,
    LUMA_WEIGHTS,
)


def _clamp_channel(value: float) -> int:
    return max(0, min(255, int(math.floor(value + 0.5))))


@dataclass(frozen=True)
class ColorPoint:
    """A point in a three-channel color space.

    For RGB: ``c1=R, c2=G, c3=B`` in [0, 255].
    For CIELAB: ``c1=L, c2=a, c3=b`` with L in [0, 100] and a/b roughly
    in [-128, 127].
    """

    c1: float
    c2: float
    c3: float

    @classmethod
    def from_rgb_int(cls, rgb: int) -> ColorPoint:
        """Build an RGB point from a packed ``0xRRGGBB`` integer."""
        return cls(float((rgb >> 16) & 0xFF), float((rgb >> 8) & 0xFF), float(rgb & 0xFF))

    def to_rgb_int(self) -> int:
        """Pack this RGB point into ``0xRRGGBB`` (rounded and clamped)."""
        r = _clamp_channel(self.c1)
        g = _clamp_channel(self.c2)
        b = _clamp_channel(self.c3)
        return (r << 16) | (g << 8) | b

    def to_hex(self) -> str:
        """Return this RGB point as an ``#RRGGBB`` string."""
        return f"#{self.to_rgb_int():06X}"

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.c1, self.c2, self.c3)

    def rounded(self) -> tuple[int, int, int]:
        """Return the channels rounded and clamped to 0-255 integers."""
        return (_clamp_channel(self.c1), _clamp_channel(self.c2), _clamp_channel(self.c3))

    def distance_squared_to(self, other: ColorPoint) -> float:
        d1 = self.c1 - other.c1
        d2 = self.c2 - other.c2
        d3 = self.c3 - other.c3
        return d1 * d1 + d2 * d2 + d3 * d3

    def distance_to(self, other: ColorPoint) -> float:
        return math.sqrt(self.distance_squared_to(other))

    @property
    def luminance(self) -> float:
        """Rec. 601 luma computed on the raw channels."""
        wr, wg, wb = LUMA_WEIGHTS
        return wr * self.c1 + wg * self.c2 + wb * self.c3

    def __str__(self) -> str:
        return f"ColorPoint[{self.c1:.2f}, {self.c2:.2f}, {self.c3:.2f}]"


class ColorSpace(str, Enum):
    """Space a palette's channels are expressed in."""

    RGB = "rgb"
    LAB = "lab"


class ColorModel(str, Enum):
    """Working space used for clustering during analysis."""

    RGB = "rgb"
    CIELAB = "cielab"

    @property
    def space(self) -> ColorSpace:
        return ColorSpace.RGB if self is ColorModel.RGB else ColorSpace.LAB


class ClusteringMode(str, Enum):
    """Clustering algorithm used by analysis.

    * **HYBRID**: density-based seeding followed by K-Means refinement.
    * **KMEANS**: plain K-Means++ over a larger sample.
    """

    HYBRID = "hybrid"
    KMEANS = "kmeans"


class CorrespondenceStrategy(str, Enum):
    """How target palette colors are paired with source palette colors.

    * **LUMINANCE_RANK**: both palettes sorted by luma, paired by rank.
    * **OPTIMAL_ASSIGNMENT**: minimum-cost bipartite matching.
    """

    LUMINANCE_RANK = "luminance_rank"
    OPTIMAL_ASSIGNMENT = "optimal_assignment"


class BackendKind(str, Enum):
    """Compute backend tiers, fastest first when selected automatically."""

    AUTO = "auto"
    GPU = "gpu"
    VECTORIZED = "vectorized"
    REFERENCE = "reference"


class ClusterConfig(BaseModel):
    """Clustering parameters.

    Attributes:
        block_size: Points per density-seeding block.
        min_pts: Neighbours (including the point itself) that make a core point.
        hybrid_max_iterations: Refinement iteration cap in HYBRID mode.
        hybrid_convergence_threshold: Max centroid movement that counts as
            converged in HYBRID mode.
        kmeans_max_iterations: Iteration cap in KMEANS mode.
        kmeans_convergence_threshold: Convergence threshold in KMEANS mode.
        hybrid_sample_cap: Pixels sampled for HYBRID analysis.
        kmeans_sample_cap: Pixels sampled for KMEANS analysis.
    """

    block_size: int = Field(default=DEFAULT_BLOCK_SIZE, ge=16)
    min_pts: int = Field(default=DEFAULT_MIN_PTS, ge=1)
    hybrid_max_iterations: int = Field(default=HYBRID_MAX_ITERATIONS, ge=1)
    hybrid_convergence_threshold: float = Field(
        default=HYBRID_CONVERGENCE_THRESHOLD, ge=0.0
    )
    kmeans_max_iterations: int = Field(default=KMEANS_MAX_ITERATIONS, ge=1)
    kmeans_convergence_threshold: float = Field(
        default=KMEANS_CONVERGENCE_THRESHOLD, ge=0.0
    )
    hybrid_sample_cap: int = Field(default=HYBRID_SAMPLE_CAP, ge=2)
    kmeans_sample_cap: int = Field(default=KMEANS_SAMPLE_CAP, ge=2)

    model_config = {"frozen": True}


class TransferConfig(BaseModel):
    """Resynthesis parameters.

    Attributes:
        lut_bits: Bits per channel of the lookup-table grid (6 -> 64^3 cells).
        lut_max_colors: Largest palette that still uses a lookup table;
            bigger palettes fall back to direct nearest-color search.
        tile_threshold_pixels: Images with more pixels are processed in
            horizontal bands.
        tile_rows: Rows per band; 0 picks a size from the image width.
    """

    lut_bits: int = Field(default=DEFAULT_LUT_BITS, ge=3, le=8)
    lut_max_colors: int = Field(default=DEFAULT_LUT_MAX_COLORS, ge=0, le=4096)
    tile_threshold_pixels: int = Field(default=DEFAULT_TILE_THRESHOLD_PIXELS, ge=1)
    tile_rows: int = Field(default=0, ge=0)

    model_config = {"frozen": True}


class BackendConfig(BaseModel):
    """Backend selection parameters.

    Attributes:
        preferred: Force a tier, or AUTO to pick the best available one.
        allow_gpu: When False the GPU tier is never selected, even if
            the process found a working device.
        gpu_min_pixels: Smallest image that is worth sending to the GPU.
    """

    preferred: BackendKind = BackendKind.AUTO
    allow_gpu: bool = True
    gpu_min_pixels: int = Field(default=DEFAULT_GPU_MIN_PIXELS, ge=0)

    model_config = {"frozen": True}


class EngineConfig(BaseModel):
    """Top-level configuration for the transfer engine.

    Attributes:
        color_model: Working space for clustering.
        clustering_mode: HYBRID or KMEANS.
        seed: Seed for sampling and centroid initialization.
        correspondence: Default palette pairing for resynthesis.
        cluster: Clustering parameters.
        transfer: Resynthesis parameters.
        backend: Backend selection parameters.
    """

    color_model: ColorModel = ColorModel.CIELAB
    clustering_mode: ClusteringMode = ClusteringMode.HYBRID
    seed: int = Field(default=DEFAULT_SEED, ge=0, lt=2**64)
    correspondence: CorrespondenceStrategy = CorrespondenceStrategy.LUMINANCE_RANK
    cluster: ClusterConfig = ClusterConfig()
    transfer: TransferConfig = TransferConfig()
    backend: BackendConfig = BackendConfig()

    model_config = {"frozen": True}

    @field_validator("color_model", "clustering_mode", "correspondence", mode="before")
    @classmethod
    def _lowercase_enum_values(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @property
    def sample_cap(self) -> int:
        """Sample size used by analysis for the configured clustering mode."""
        if self.clustering_mode is ClusteringMode.KMEANS:
            return self.cluster.kmeans_sample_cap
        return self.cluster.hybrid_sample_cap
