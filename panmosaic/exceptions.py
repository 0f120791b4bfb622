"""
Exception types raised for configuration problems and archive failures.

Data sparsity (no scenes, no valid observations) is never an exception; it
flows through the pipeline as NaN.
"""


class ConfigurationError(ValueError):
    """Invalid pipeline configuration (bad date range, parameters, ...)."""


class MissingBandError(ConfigurationError):
    """A band required by a stage is not present on the input."""

    def __init__(self, band: str, available=None):
        self.band = band
        self.available = list(available) if available is not None else []
        msg = f"Required band '{band}' not found"
        if self.available:
            msg += f" (available: {', '.join(self.available)})"
        super().__init__(msg)


class PixelLimitExceeded(ConfigurationError):
    """The export grid holds more pixels than the configured safety cap."""

    def __init__(self, pixel_count: int, max_pixels: int):
        self.pixel_count = pixel_count
        self.max_pixels = max_pixels
        super().__init__(
            f"Export grid has {pixel_count} pixels, exceeding maxPixels={max_pixels}"
        )


class DownloadError(RuntimeError):
    """A pixel block could not be fetched from the archive after all retries."""
