"""Shared numeric constants for color conversion, clustering and transfer.

Conversion constants follow the sRGB / CIE 1976 L*a*b* definitions with
the D65 reference white.  Engine defaults are the values used when a
config does not override them.
"""

# ---------------------------------------------------------------------------
# sRGB <-> XYZ <-> L*a*b*
# ---------------------------------------------------------------------------

# D65 reference white, XYZ scaled to Y = 100
REF_X: float = 95.047
REF_Y: float = 100.000
REF_Z: float = 108.883

# CIE f(t) breakpoint and slope
LAB_EPSILON: float = 0.008856
LAB_KAPPA: float = 903.3

# Inverse f(t) breakpoint
LAB_DELTA: float = 6.0 / 29.0

# sRGB companding thresholds
SRGB_GAMMA_THRESHOLD: float = 0.04045
SRGB_LINEAR_THRESHOLD: float = 0.0031308

RGB_TO_XYZ: tuple[tuple[float, float, float], ...] = (
    (0.4124564, 0.3575761, 0.1804375),
    (0.2126729, 0.7151522, 0.0721750),
    (0.0193339, 0.1191920, 0.9503041),
)

XYZ_TO_RGB: tuple[tuple[float, float, float], ...] = (
    (3.2404542, -1.5371385, -0.4985314),
    (-0.9692660, 1.8760108, 0.0415560),
    (0.0556434, -0.2040259, 1.0572252),
)

# Rec. 601 luma weights
LUMA_WEIGHTS: tuple[float, float, float] = (0.299, 0.587, 0.114)

# ---------------------------------------------------------------------------
# Engine defaults
# ---------------------------------------------------------------------------

DEFAULT_SEED: int = 42

MIN_PALETTE_SIZE: int = 2
MAX_PALETTE_SIZE: int = 512

# Sample caps per clustering mode
HYBRID_SAMPLE_CAP: int = 10_000
KMEANS_SAMPLE_CAP: int = 50_000

# Hybrid clusterer
DEFAULT_BLOCK_SIZE: int = 1000
DEFAULT_MIN_PTS: int = 3
HYBRID_MAX_ITERATIONS: int = 50
HYBRID_CONVERGENCE_THRESHOLD: float = 1.0
EPS_FALLBACK: float = 15.0
EPS_MIN: float = 8.0
EPS_MAX: float = 30.0
EPS_SAMPLE_BLOCKS: int = 10
EPS_SAMPLE_POINTS: int = 20

# Pure centroid clusterer
KMEANS_MAX_ITERATIONS: int = 100
KMEANS_CONVERGENCE_THRESHOLD: float = 0.001

# Resynthesis lookup table
DEFAULT_LUT_BITS: int = 6
DEFAULT_LUT_MAX_COLORS: int = 256

# Tiling: bands are used above this many pixels
DEFAULT_TILE_THRESHOLD_PIXELS: int = 4_000_000
TILE_TARGET_BYTES: int = 64 * 1024 * 1024
TILE_ROW_ALIGNMENT: int = 64

# GPU backend is preferred above this many pixels
DEFAULT_GPU_MIN_PIXELS: int = 1_000_000

# Rows of packed pixels processed per vectorized chunk
VECTOR_CHUNK_PIXELS: int = 262_144

# Environment variables overriding backend selection
BACKEND_ENV: str = "COLORHARMONY_BACKEND"
DISABLE_GPU_ENV: str = "COLORHARMONY_DISABLE_GPU"
