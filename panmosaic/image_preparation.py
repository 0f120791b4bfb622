"""
Pan-sharpening: HSV intensity substitution of the panchromatic band into RGB.
"""
import logging

import numpy as np
from skimage.color import hsv2rgb, rgb2hsv

from .config import PAN_BAND, RGB_BANDS
from .exceptions import ConfigurationError
from .models import Composite


def stack_rgb(red: np.ndarray, green: np.ndarray, blue: np.ndarray) -> np.ndarray:
    """Stack three co-registered bands into a (height, width, 3) float32 image."""
    if not (red.shape == green.shape == blue.shape):
        raise ConfigurationError(
            f"RGB bands must share one grid, got {red.shape}, {green.shape}, {blue.shape}"
        )
    return np.stack([red, green, blue], axis=-1).astype(np.float32)


def pan_sharpen(rgb: np.ndarray, intensity: np.ndarray) -> np.ndarray:
    """
    Replace the HSV value channel of ``rgb`` with ``intensity``.

    The colour image is converted to hue/saturation/value, its value channel is
    discarded, the intensity band takes its place and the result is converted
    back to RGB. Inputs must already be on the same pixel grid; misaligned bands
    produce colour fringing, which is not detected here.

    Args:
        rgb: (height, width, 3) reflectance image
        intensity: (height, width) high-acuity band (pan)

    Returns:
        (height, width, 3) float32 image, NaN wherever any input is NaN
    """
    if rgb.ndim != 3 or rgb.shape[-1] != 3:
        raise ConfigurationError(f"Expected a (height, width, 3) image, got {rgb.shape}")
    if intensity.shape != rgb.shape[:2]:
        raise ConfigurationError(
            f"Intensity band shape {intensity.shape} does not match RGB grid {rgb.shape[:2]}"
        )

    valid = np.all(np.isfinite(rgb), axis=-1) & np.isfinite(intensity)
    out = np.full(rgb.shape, np.nan, dtype=np.float32)
    if not valid.any():
        return out

    # rgb2hsv/hsv2rgb cannot take NaN, convert defined pixels only
    rgb_valid = rgb[valid].astype(np.float64)[np.newaxis, :, :]
    hsv = rgb2hsv(rgb_valid)
    hsv[..., 2] = intensity[valid].astype(np.float64)
    out[valid] = hsv2rgb(hsv)[0]

    logging.debug(f"Pan-sharpened {int(valid.sum())} of {valid.size} pixels")
    return out


def pan_sharpen_composite(composite: Composite, rgb_bands=RGB_BANDS, pan_band: str = PAN_BAND) -> np.ndarray:
    """Pan-sharpen a composite using its red/green/blue surrogate bands and pan band."""
    red, green, blue = (composite.band(b) for b in rgb_bands)
    return pan_sharpen(stack_rgb(red, green, blue), composite.band(pan_band))
