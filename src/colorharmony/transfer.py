"""Palette analysis, palette transfer and posterization.

:class:`TransferEngine` ties the other components together:

* **analyze**: sample the image, convert to the working color space,
  cluster, and convert the centroids back to an RGB palette.
* **resynthesize**: recolor an image by swapping each pixel's nearest
  target-palette color for its corresponding source-palette color.
* **posterize**: quantize an image to a palette (identity mapping).

Pixel remapping uses a precomputed lookup table for palettes up to
``lut_max_colors`` entries and a direct nearest-color search beyond
that.  Large images are processed in horizontal bands.  The actual
arithmetic runs on whichever backend the dispatcher selects.
"""

from __future__ import annotations

from typing import Any

import numpy as np
from pydantic import BaseModel

from colorharmony.backends import Backend, BackendDispatcher, get_dispatcher
from colorharmony.clustering import create_clusterer
from colorharmony.constants import (
    MAX_PALETTE_SIZE,
    MIN_PALETTE_SIZE,
    TILE_ROW_ALIGNMENT,
    TILE_TARGET_BYTES,
)
from colorharmony.errors import InvalidArgumentError
from colorharmony.image import RGBImage, as_image
from colorharmony.logging import get_logger
from colorharmony.models import (
    ClusteringMode,
    ColorModel,
    ColorSpace,
    CorrespondenceStrategy,
    EngineConfig,
)
from colorharmony.palette import Palette
from colorharmony.sampler import sample_image

logger = get_logger("transfer")


class AnalysisResult(BaseModel):
    """Palette extracted from an image plus clustering diagnostics.

    Attributes:
        palette: Exactly ``k`` RGB colors in cluster order.
        pixel_count: Pixels in the analyzed image.
        sample_size: Pixels that went into clustering.
        iterations: Refinement iterations performed.
        converged: False when clustering stopped at its iteration cap.
        color_model: Space the clustering ran in.
        clustering_mode: Clustering strategy used.
    """

    palette: Palette
    pixel_count: int
    sample_size: int
    iterations: int
    converged: bool
    color_model: ColorModel
    clustering_mode: ClusteringMode

    model_config = {"frozen": True}


def validate_k(k: int) -> None:
    """Raise :class:`InvalidArgumentError` unless ``k`` is a valid palette size."""
    if not MIN_PALETTE_SIZE <= k <= MAX_PALETTE_SIZE:
        raise InvalidArgumentError(
            f"k must be between {MIN_PALETTE_SIZE} and {MAX_PALETTE_SIZE}, got {k}"
        )


def _require_pixels(image: RGBImage) -> None:
    if image.width <= 0 or image.height <= 0:
        raise InvalidArgumentError(f"Image is empty ({image.width}x{image.height})")


def _require_palette(palette: Palette | None, name: str) -> Palette:
    if palette is None or len(palette) == 0:
        raise InvalidArgumentError(f"{name} palette is empty")
    return palette.to_space(ColorSpace.RGB)


def luminance_rank_correspondence(source: Palette, target: Palette) -> tuple[Palette, Palette]:
    """Pair palettes by luminance rank.

    Both palettes are sorted by luma; the i-th darkest target color is
    replaced by the ``(i mod len(source))``-th darkest source color.

    Returns:
        ``(lookup, output)``: the palette searched per pixel and the
        color written for each of its entries.
    """
    lookup = target.sort_by_luminance()
    ranked = source.sort_by_luminance()
    output = Palette(colors=[ranked[i % len(ranked)] for i in range(len(lookup))])
    return lookup, output


def optimal_assignment_correspondence(
    source: Palette, target: Palette
) -> tuple[Palette, Palette]:
    """Pair palettes by minimum-cost assignment (see :meth:`Palette.compute_mapping`)."""
    mapping = target.compute_mapping(source)
    output = Palette(colors=[source[j] for j in mapping])
    return target, output


class TransferEngine:
    """Palette extraction and transfer over pluggable image sources.

    Args:
        config: Engine configuration.  Defaults to :class:`EngineConfig`.
        dispatcher: Backend dispatcher.  Defaults to one over the
            process-wide backend detection using ``config.backend``.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        dispatcher: BackendDispatcher | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.dispatcher = dispatcher or get_dispatcher(self.config.backend)

    # -- analysis ------------------------------------------------------------

    def analyze(self, image: Any, k: int, seed: int | None = None) -> Palette:
        """Extract a palette of exactly *k* colors from *image*."""
        return self.analyze_detailed(image, k, seed).palette

    def analyze_detailed(self, image: Any, k: int, seed: int | None = None) -> AnalysisResult:
        """Like :meth:`analyze` but also report clustering diagnostics.

        Args:
            image: PIL image, numpy array or :class:`RGBImage`.
            k: Palette size, 2 to 512.
            seed: Overrides the configured seed.

        Raises:
            InvalidArgumentError: If ``k`` is out of range, the image is
                empty or has fewer pixels than ``k``.
        """
        validate_k(k)
        source = as_image(image)
        _require_pixels(source)
        if source.pixel_count < k:
            raise InvalidArgumentError(
                f"Image has {source.pixel_count} pixels, fewer than k={k}"
            )
        cfg = self.config
        seed = cfg.seed if seed is None else seed

        sample = sample_image(source, cfg.sample_cap, seed)
        lab = cfg.color_model is ColorModel.CIELAB

        def run(backend: Backend) -> tuple[np.ndarray, int, bool]:
            working = backend.rgb_to_lab(sample) if lab else sample
            clusterer = create_clusterer(cfg.clustering_mode, cfg.cluster, seed, backend)
            result = clusterer.cluster(working, k)
            centroids = result.to_array()
            rgb = backend.lab_to_rgb(centroids) if lab else np.clip(centroids, 0.0, 255.0)
            return rgb, result.iterations, result.converged

        rgb, iterations, converged = self.dispatcher.run(len(sample), run)
        palette = Palette.from_array(rgb)
        logger.info(
            "Extracted %d colors from %dx%d image (%s/%s, %d samples, %d iterations)",
            k,
            source.width,
            source.height,
            cfg.color_model.value,
            cfg.clustering_mode.value,
            len(sample),
            iterations,
            extra={"k": k, "converged": converged},
        )
        return AnalysisResult(
            palette=palette,
            pixel_count=source.pixel_count,
            sample_size=len(sample),
            iterations=iterations,
            converged=converged,
            color_model=cfg.color_model,
            clustering_mode=cfg.clustering_mode,
        )

    # -- remapping -----------------------------------------------------------

    def correspondence(
        self,
        source_palette: Palette,
        target_palette: Palette,
        strategy: CorrespondenceStrategy | None = None,
    ) -> tuple[Palette, Palette]:
        """Resolve the ``(lookup, output)`` palettes for a resynthesis."""
        source = _require_palette(source_palette, "Source")
        target = _require_palette(target_palette, "Target")
        strategy = CorrespondenceStrategy(strategy or self.config.correspondence)
        if strategy is CorrespondenceStrategy.OPTIMAL_ASSIGNMENT:
            return optimal_assignment_correspondence(source, target)
        return luminance_rank_correspondence(source, target)

    def resynthesize(
        self,
        target_image: Any,
        source_palette: Palette,
        target_palette: Palette,
        strategy: CorrespondenceStrategy | None = None,
        sink: RGBImage | None = None,
    ) -> Any:
        """Recolor *target_image* with the colors of *source_palette*.

        Each pixel is matched to its nearest *target_palette* color and
        replaced by that color's counterpart in *source_palette*.  Every
        output pixel is one of the source colors (rounded).

        Args:
            target_image: Image to recolor.
            source_palette: Palette providing the new colors.
            target_palette: Palette describing *target_image*.
            strategy: How the palettes are paired; defaults to the
                configured strategy.
            sink: Destination image.  Defaults to a new image of the same
                kind as *target_image*.

        Returns:
            *sink* when given, otherwise a new PIL image or array.
        """
        lookup, output = self.correspondence(source_palette, target_palette, strategy)
        return self._remap(target_image, lookup, output, sink)

    def posterize(self, image: Any, palette: Palette, sink: RGBImage | None = None) -> Any:
        """Quantize every pixel of *image* to its nearest *palette* color."""
        palette = _require_palette(palette, "Posterize")
        return self._remap(image, palette, palette, sink)

    def plan_bands(self, width: int, height: int) -> list[tuple[int, int]]:
        """Row ranges an image of this size is processed in."""
        cfg = self.config.transfer
        if width * height <= cfg.tile_threshold_pixels:
            return [(0, height)]
        rows = cfg.tile_rows or self._auto_tile_rows(width)
        return [(y0, min(y0 + rows, height)) for y0 in range(0, height, rows)]

    @staticmethod
    def _auto_tile_rows(width: int) -> int:
        # Input and output bands are both held, 4 bytes per packed pixel
        rows = TILE_TARGET_BYTES // (width * 4 * 2)
        rows -= rows % TILE_ROW_ALIGNMENT
        return max(TILE_ROW_ALIGNMENT, rows)

    def _remap(
        self, image: Any, lookup: Palette, output: Palette, sink: RGBImage | None
    ) -> Any:
        source = as_image(image)
        _require_pixels(source)
        destination = sink if sink is not None else source.new_like()
        if (destination.width, destination.height) != (source.width, source.height):
            raise InvalidArgumentError(
                f"Sink is {destination.width}x{destination.height}, "
                f"image is {source.width}x{source.height}"
            )

        cfg = self.config.transfer
        palette = lookup.to_array()
        colors = output.output_colors()
        use_lut = len(lookup) <= cfg.lut_max_colors
        bands = self.plan_bands(source.width, source.height)

        def run(backend: Backend) -> None:
            lut = backend.build_lut(palette, cfg.lut_bits) if use_lut else None
            for y0, y1 in bands:
                packed = source.read_band(y0, y1).ravel()
                mapped = backend.map_pixels(packed, palette, colors, lut, cfg.lut_bits)
                destination.write_band(y0, mapped.reshape(y1 - y0, source.width))

        self.dispatcher.run(source.pixel_count, run)
        logger.debug(
            "Remapped %dx%d image to %d colors (%s, %d band(s))",
            source.width,
            source.height,
            len(lookup),
            f"{cfg.lut_bits}-bit LUT" if use_lut else "direct search",
            len(bands),
        )
        if sink is not None or isinstance(image, RGBImage):
            return destination
        return destination.unwrap()
