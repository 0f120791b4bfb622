"""
Land/water compositing: buffer an auxiliary water mask and paint water with a flat colour.
"""
import logging
import math
from typing import Tuple

import numpy as np
from scipy.ndimage import distance_transform_edt

from .config import AUX_WATER_VALUE, WATER_FILL_COLOR
from .exceptions import ConfigurationError
from .mosaic_builder import mosaic_layers

BUFFER_TARGETS = ("land", "water")


def fill_color_rgb(hex_color: str = WATER_FILL_COLOR) -> Tuple[float, float, float]:
    """Parse 'RRGGBB' (optionally '#'-prefixed) into display-range [0, 1] floats."""
    value = hex_color.lstrip("#")
    if len(value) != 6:
        raise ConfigurationError(f"Fill colour must be RRGGBB, got {hex_color!r}")
    try:
        r, g, b = (int(value[i:i + 2], 16) for i in (0, 2, 4))
    except ValueError:
        raise ConfigurationError(f"Fill colour must be hexadecimal, got {hex_color!r}")
    return r / 255.0, g / 255.0, b / 255.0


def buffer_radius_pixels(buffer_m: float, pixel_size_m: float) -> int:
    """Buffer distance in whole pixels."""
    if buffer_m < 0:
        raise ConfigurationError(f"Buffer radius must be >= 0, got {buffer_m}")
    if pixel_size_m <= 0:
        raise ConfigurationError(f"Pixel size must be positive, got {pixel_size_m}")
    return int(math.floor(buffer_m / pixel_size_m + 0.5))


def water_from_auxiliary(aux: np.ndarray, water_value: int = AUX_WATER_VALUE) -> np.ndarray:
    """
    Boolean water raster from an auxiliary land/water band.

    Pixels where the auxiliary band has no data are treated as land, so the
    composite (or its own absence) shows through there.
    """
    aux = np.asarray(aux)
    if np.issubdtype(aux.dtype, np.floating):
        return np.isfinite(aux) & (aux == water_value)
    return aux == water_value


def buffer_mask(mask: np.ndarray, radius_px: int) -> np.ndarray:
    """
    Circular morphological maximum filter of a boolean mask.

    A pixel is set when some set pixel lies within ``radius_px`` (Euclidean
    pixel distance), from the exact distance transform. A radius of 0 returns
    the mask unchanged.
    """
    mask = np.asarray(mask, dtype=bool)
    if radius_px < 0:
        raise ConfigurationError(f"Buffer radius must be >= 0, got {radius_px}")
    if radius_px == 0:
        return mask.copy()
    if not mask.any():
        return np.zeros_like(mask)
    return distance_transform_edt(~mask) <= radius_px


def buffered_water(water: np.ndarray, radius_px: int, grow: str = "land") -> np.ndarray:
    """
    Water mask after buffering.

    ``grow="land"`` dilates the land side so land and ice features next to
    water that the coarse mask misses are kept (water shrinks by the radius).
    ``grow="water"`` dilates the water side instead.
    """
    if grow not in BUFFER_TARGETS:
        raise ConfigurationError(f"grow must be one of {BUFFER_TARGETS}, got {grow!r}")
    water = np.asarray(water, dtype=bool)
    if grow == "water":
        return buffer_mask(water, radius_px)
    return ~buffer_mask(~water, radius_px)


def composite_land_water(image: np.ndarray, water: np.ndarray,
                         fill_color: str = WATER_FILL_COLOR,
                         fill_gaps: bool = False) -> np.ndarray:
    """
    Paint water pixels with ``fill_color`` over a display image.

    The fill layer wins on every water pixel whatever the image holds there,
    including no data. On land the image wins; with ``fill_gaps`` the fill
    colour also covers land pixels the image leaves undefined, otherwise those
    stay no data.

    Args:
        image: (height, width, 3) display image, NaN = no data
        water: (height, width) boolean water mask (already buffered)

    Returns:
        (height, width, 3) float32 image
    """
    if water.shape != image.shape[:2]:
        raise ConfigurationError(f"Water mask shape {water.shape} does not match image {image.shape[:2]}")
    color = np.asarray(fill_color_rgb(fill_color), dtype=np.float32)

    water_layer = np.full(image.shape, np.nan, dtype=np.float32)
    water_layer[water] = color
    layers = [water_layer, image]
    if fill_gaps:
        layers.append(np.broadcast_to(color, image.shape))
    out = mosaic_layers(layers)

    logging.debug(f"Water fill applied to {int(water.sum())} of {water.size} pixels")
    return out
