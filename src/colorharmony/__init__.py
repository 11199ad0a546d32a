"""colorharmony: palette extraction and palette transfer for images."""

from colorharmony.backends import (
    Backend,
    BackendDispatcher,
    GpuBackend,
    ReferenceBackend,
    VectorizedBackend,
    get_dispatcher,
)
from colorharmony.clustering import (
    ClusterResult,
    ClusteringStrategy,
    HybridClusterer,
    KMeansClusterer,
    create_clusterer,
)
from colorharmony.color import (
    delta_e_2000,
    delta_e_2000_array,
    lab_to_rgb,
    lab_to_rgb_array,
    rgb_to_lab,
    rgb_to_lab_array,
)
from colorharmony.config import load_config
from colorharmony.errors import (
    ColorHarmonyError,
    ConfigError,
    ExportError,
    ImageError,
    InvalidArgumentError,
    PaletteError,
    ResourceUnavailableError,
)
from colorharmony.export import ExportFormat, export_palette
from colorharmony.image import ArrayImage, PillowImage, RGBImage, as_image
from colorharmony.logging import get_logger, setup_logging
from colorharmony.models import (
    BackendConfig,
    BackendKind,
    ClusterConfig,
    ClusteringMode,
    ColorModel,
    ColorPoint,
    ColorSpace,
    CorrespondenceStrategy,
    EngineConfig,
    TransferConfig,
)
from colorharmony.palette import Palette
from colorharmony.sampler import ReservoirSampler, reservoir_sample, sample_image
from colorharmony.transfer import AnalysisResult, TransferEngine

__all__ = [
    "AnalysisResult",
    "ArrayImage",
    "Backend",
    "BackendConfig",
    "BackendDispatcher",
    "BackendKind",
    "ClusterConfig",
    "ClusterResult",
    "ClusteringMode",
    "ClusteringStrategy",
    "ColorHarmonyError",
    "ColorModel",
    "ColorPoint",
    "ColorSpace",
    "ConfigError",
    "CorrespondenceStrategy",
    "EngineConfig",
    "ExportError",
    "ExportFormat",
    "GpuBackend",
    "HybridClusterer",
    "ImageError",
    "InvalidArgumentError",
    "KMeansClusterer",
    "Palette",
    "PaletteError",
    "PillowImage",
    "RGBImage",
    "ReferenceBackend",
    "ReservoirSampler",
    "ResourceUnavailableError",
    "TransferConfig",
    "TransferEngine",
    "VectorizedBackend",
    "as_image",
    "create_clusterer",
    "delta_e_2000",
    "delta_e_2000_array",
    "export_palette",
    "get_dispatcher",
    "get_logger",
    "lab_to_rgb",
    "lab_to_rgb_array",
    "load_config",
    "reservoir_sample",
    "rgb_to_lab",
    "rgb_to_lab_array",
    "sample_image",
    "setup_logging",
]
