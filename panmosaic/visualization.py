"""
Display colour correction and 8-bit quantization for export.
"""
from typing import Sequence, Tuple

import numpy as np

from .config import DEFAULT_GAMMA, PAN_SCALE_FACTOR
from .exceptions import ConfigurationError


def color_correct(image: np.ndarray, vmin: float, vmax: float,
                  gamma: Sequence[float] = DEFAULT_GAMMA) -> np.ndarray:
    """
    Stretch ``image`` from [vmin, vmax] to the [0, 1] display range and apply
    per-channel gamma.

    Values at or below ``vmin`` map to 0.0, values at or above ``vmax`` map to
    1.0, and each channel c is raised to 1 / gamma[c] (gamma > 1 brightens).
    NaN pixels stay NaN.

    Args:
        image: (height, width, channels) array, or (height, width) for one channel
        vmin, vmax: Normalization window
        gamma: One exponent per channel

    Returns:
        float32 array of the same shape
    """
    if not vmax > vmin:
        raise ConfigurationError(f"Normalization window is empty: min={vmin}, max={vmax}")
    single = image.ndim == 2
    img = image[..., np.newaxis] if single else image
    gamma = np.asarray(gamma, dtype=np.float64).reshape(-1)
    if gamma.size != img.shape[-1]:
        raise ConfigurationError(f"Need {img.shape[-1]} gamma values, got {gamma.size}")
    if np.any(gamma <= 0):
        raise ConfigurationError(f"Gamma values must be positive: {gamma.tolist()}")

    with np.errstate(invalid="ignore"):
        scaled = np.clip((img.astype(np.float64) - vmin) / (vmax - vmin), 0.0, 1.0)
        out = np.power(scaled, 1.0 / gamma)
    out = out.astype(np.float32)
    return out[..., 0] if single else out


def pan_to_uint8(pan: np.ndarray, factor: float = PAN_SCALE_FACTOR) -> Tuple[np.ndarray, np.ndarray]:
    """
    8-bit panchromatic product: reflectance * factor, truncated and clipped to [0, 255].

    Returns:
        (uint8 array, boolean validity mask); no-data pixels hold 0 and are
        False in the mask
    """
    valid = np.isfinite(pan)
    out = np.zeros(pan.shape, dtype=np.uint8)
    out[valid] = np.clip(np.floor(pan[valid].astype(np.float64) * factor), 0, 255).astype(np.uint8)
    return out, valid
