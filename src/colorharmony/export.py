"""Palette export: GIMP palette, L*a*b* CSV and PNG swatch sheet.

Every format lists colors in ascending luminance order.  The "optimal"
format depends on the color model the palette was extracted in: GIMP
palettes for RGB, L*a*b* CSV for CIELAB.
"""

from __future__ import annotations

import math
from enum import Enum
from pathlib import Path

from PIL import Image, ImageDraw, ImageFont

from colorharmony.errors import ExportError
from colorharmony.logging import get_logger
from colorharmony.models import ColorModel, ColorSpace
from colorharmony.palette import Palette

logger = get_logger("export")

SWATCH_SIZE = 100
SWATCH_BACKGROUND = (30, 30, 30)
SWATCH_BORDER = (60, 60, 60)
GPL_MAX_COLUMNS = 16


class ExportFormat(str, Enum):
    """Palette file formats."""

    GPL = "gpl"
    CSV = "csv"
    PNG = "png"


def optimal_format(color_model: ColorModel) -> ExportFormat:
    """Preferred text format for palettes extracted in *color_model*."""
    return ExportFormat.CSV if color_model is ColorModel.CIELAB else ExportFormat.GPL


def swatch_columns(n: int) -> int:
    """Columns of the swatch sheet for *n* colors."""
    if n <= 4:
        return n
    for limit, columns in ((16, 4), (25, 5), (36, 6), (64, 8), (100, 10), (144, 12)):
        if n <= limit:
            return columns
    return math.ceil(math.sqrt(n))


def _sorted_rgb(palette: Palette) -> Palette:
    if len(palette) == 0:
        raise ExportError("Palette is empty")
    return palette.to_space(ColorSpace.RGB).sort_by_luminance()


def render_gpl(palette: Palette, name: str = "colorharmony") -> str:
    """Render *palette* as GIMP palette text."""
    ordered = _sorted_rgb(palette)
    lines = [
        "GIMP Palette",
        f"Name: {name}",
        f"Columns: {min(len(ordered), GPL_MAX_COLUMNS)}",
        "#",
    ]
    for i, color in enumerate(ordered, start=1):
        r, g, b = color.rounded()
        lines.append(f"{r:3d} {g:3d} {b:3d}\tColor {i}")
    return "\n".join(lines) + "\n"


def render_csv(palette: Palette) -> str:
    """Render *palette* as ``Index,L,a,b,Hex`` rows."""
    ordered = _sorted_rgb(palette)
    lab = ordered.to_space(ColorSpace.LAB)
    lines = ["Index,L,a,b,Hex"]
    for i, (rgb, color) in enumerate(zip(ordered, lab), start=1):
        lines.append(f"{i},{color.c1:.2f},{color.c2:.2f},{color.c3:.2f},{rgb.to_hex()}")
    return "\n".join(lines) + "\n"


def render_swatches(palette: Palette) -> Image.Image:
    """Draw one labelled square per color on a dark sheet."""
    ordered = _sorted_rgb(palette)
    n = len(ordered)
    columns = swatch_columns(n)
    rows = (n + columns - 1) // columns

    sheet = Image.new("RGB", (columns * SWATCH_SIZE, rows * SWATCH_SIZE), SWATCH_BACKGROUND)
    draw = ImageDraw.Draw(sheet)
    font = ImageFont.load_default()

    for i, color in enumerate(ordered):
        x = (i % columns) * SWATCH_SIZE
        y = (i // columns) * SWATCH_SIZE
        rgb = color.rounded()
        box = (x + 2, y + 2, x + SWATCH_SIZE - 3, y + SWATCH_SIZE - 3)
        draw.rectangle(box, fill=rgb, outline=SWATCH_BORDER)

        label = color.to_hex()
        left, top, right, bottom = draw.textbbox((0, 0), label, font=font)
        text_x = x + (SWATCH_SIZE - (right - left)) // 2
        text_y = y + SWATCH_SIZE - 10 - (bottom - top)
        text_color = (30, 30, 30) if color.luminance > 128 else (240, 240, 240)
        draw.text((text_x, text_y), label, fill=text_color, font=font)

    return sheet


def export_palette(
    palette: Palette,
    path: str | Path,
    fmt: ExportFormat | str | None = None,
    color_model: ColorModel = ColorModel.RGB,
    name: str = "colorharmony",
) -> Path:
    """Write *palette* to *path*.

    Args:
        palette: Palette to export.
        path: Destination file.  Parent directories are created.
        fmt: Output format; when None it is taken from the file extension,
            falling back to :func:`optimal_format` for *color_model*.
        color_model: Color model the palette was extracted in.
        name: Palette name written into GIMP palettes.

    Returns:
        The path written.

    Raises:
        ExportError: If the palette is empty, the format is unknown or
            the file cannot be written.
    """
    dest = Path(path)
    if fmt is None:
        suffix = dest.suffix.lstrip(".").lower()
        fmt = suffix if suffix in {f.value for f in ExportFormat} else optimal_format(color_model)
    try:
        fmt = ExportFormat(fmt)
    except ValueError:
        raise ExportError(f"Unknown export format: {fmt!r}") from None

    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        if fmt is ExportFormat.PNG:
            render_swatches(palette).save(str(dest), format="PNG")
        elif fmt is ExportFormat.CSV:
            dest.write_text(render_csv(palette), encoding="utf-8")
        else:
            dest.write_text(render_gpl(palette, name), encoding="utf-8")
    except OSError as exc:
        raise ExportError(f"Cannot write palette to {dest}: {exc}") from exc

    logger.info("Exported %d colors to %s (%s)", len(palette), dest, fmt.value)
    return dest
