"""Image file loading and saving for the command line."""

from __future__ import annotations

from pathlib import Path

from PIL import Image

from colorharmony.errors import ImageError


def load_image(image_path: str | Path) -> Image.Image:
    """Open an image file and return it in RGB mode.

    Raises:
        ImageError: If the file is missing or cannot be decoded.
    """
    path = Path(image_path)
    if not path.is_file():
        raise ImageError(f"Image not found: {path}")

    try:
        img = Image.open(path)
        img.load()
    except (OSError, Image.DecompressionBombError) as exc:
        raise ImageError(f"Cannot open image: {path}") from exc

    if img.width == 0 or img.height == 0:
        raise ImageError(f"Image is empty: {path}")
    if img.mode != "RGB":
        img = img.convert("RGB")
    return img


def save_image(image: Image.Image, output_path: str | Path) -> Path:
    """Write *image* to *output_path*; the format follows the file extension.

    Parent directories are created as needed.

    Raises:
        ImageError: If the image cannot be encoded or written.
    """
    dest = Path(output_path)
    dest.parent.mkdir(parents=True, exist_ok=True)
    try:
        image.save(str(dest))
    except (OSError, ValueError) as exc:
        raise ImageError(f"Cannot write image to {dest}: {exc}") from exc
    return dest
