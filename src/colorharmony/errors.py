"""colorharmony error hierarchy.

All custom exceptions inherit from ColorHarmonyError, enabling callers
to catch the base class for blanket error handling or specific
subclasses for targeted recovery.
"""


class ColorHarmonyError(Exception):
    """Base exception for all colorharmony errors."""


class InvalidArgumentError(ColorHarmonyError, ValueError):
    """Raised when a caller passes an out-of-range or inconsistent argument.

    Covers k outside [2, 512], more clusters than input points, empty
    images and empty palettes.  Always raised before any work is done.
    """


class ResourceUnavailableError(ColorHarmonyError):
    """Raised when a compute backend cannot be used (no GPU, no device).

    Backend dispatch absorbs this error and falls back to the next tier;
    it never reaches callers of the transfer engine.
    """


class ConfigError(ColorHarmonyError):
    """Raised when configuration loading or validation fails."""


class PaletteError(ColorHarmonyError):
    """Raised when palette operations fail (bad hex strings, space mismatch)."""


class ImageError(ColorHarmonyError):
    """Raised when an image cannot be opened, decoded or written."""


class ExportError(ColorHarmonyError):
    """Raised when a palette cannot be exported."""
