"""
Temporal reduction of masked observation sets and priority mosaicking of layers.
"""
import logging
import warnings
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .config import DEFAULT_PARALLEL_SCALE
from .exceptions import ConfigurationError, MissingBandError
from .models import Composite, Scene


def _row_chunks(height: int, parts: int) -> List[Tuple[int, int]]:
    """Split ``height`` rows into at most ``parts`` contiguous (start, stop) chunks."""
    parts = max(1, min(parts, height)) if height > 0 else 1
    bounds = np.linspace(0, height, parts + 1).astype(int)
    return [(int(a), int(b)) for a, b in zip(bounds[:-1], bounds[1:]) if b > a]


def _nanmedian_rows(stack: np.ndarray, start: int, stop: int) -> np.ndarray:
    with warnings.catch_warnings():
        # All-NaN columns are expected where no scene was clear
        warnings.simplefilter("ignore", category=RuntimeWarning)
        return np.nanmedian(stack[:, start:stop, :], axis=0)


def median_composite(scenes: Sequence[Scene], bands: Sequence[str],
                     shape: Optional[Tuple[int, int]] = None,
                     parallel_scale: int = DEFAULT_PARALLEL_SCALE) -> Composite:
    """
    Per-pixel, per-band median over the valid observations of a masked scene set.

    Args:
        scenes: Scenes already passed through ``mask_scene`` (NaN = invalid)
        bands: Band names to reduce
        shape: (height, width) of the output; required when ``scenes`` is empty
        parallel_scale: Number of row chunks reduced concurrently. Only affects
            speed and memory, never the result.

    Returns:
        Composite with one float32 array per band; NaN where no scene contributed.
    """
    if parallel_scale < 1:
        raise ConfigurationError(f"parallel_scale must be >= 1, got {parallel_scale}")

    if shape is None:
        if not scenes:
            raise ConfigurationError("Output shape is required to reduce an empty observation set")
        shape = scenes[0].band(bands[0]).shape
    height, width = shape

    if not scenes:
        logging.debug("Empty observation set, composite is no data everywhere")
        empty = {b: np.full(shape, np.nan, dtype=np.float32) for b in bands}
        return Composite(bands=empty, observations=np.zeros(shape, dtype=np.uint16), shape=shape)

    out: Dict[str, np.ndarray] = {}
    observations = np.zeros(shape, dtype=np.uint16)
    chunks = _row_chunks(height, parallel_scale)

    for band in bands:
        layers = []
        for scene in scenes:
            if band not in scene.bands:
                raise MissingBandError(band, scene.bands.keys())
            arr = scene.bands[band]
            if arr.shape != tuple(shape):
                raise ConfigurationError(
                    f"Scene {scene.scene_id} band {band} has shape {arr.shape}, expected {tuple(shape)}"
                )
            layers.append(arr)
        stack = np.stack(layers, axis=0).astype(np.float32, copy=False)

        result = np.empty(shape, dtype=np.float32)
        if len(chunks) == 1:
            result[:] = _nanmedian_rows(stack, 0, height)
        else:
            with ThreadPoolExecutor(max_workers=len(chunks)) as executor:
                futures = {executor.submit(_nanmedian_rows, stack, a, b): (a, b) for a, b in chunks}
                for future, (a, b) in futures.items():
                    result[a:b] = future.result()
        out[band] = result

        count = np.isfinite(stack).sum(axis=0).astype(np.uint16)
        observations = np.maximum(observations, count)

    valid_frac = float(np.isfinite(out[bands[0]]).mean()) if out else 0.0
    logging.debug(f"Median composite of {len(scenes)} scenes: {valid_frac * 100:.1f}% pixels defined")
    return Composite(bands=out, observations=observations, shape=tuple(shape))


def mosaic_layers(layers: Sequence[np.ndarray]) -> np.ndarray:
    """
    Priority mosaic: each pixel takes the first layer that is defined there.

    Layers are (height, width, channels) float arrays; a pixel is defined when
    all its channels are finite. Pixels undefined in every layer stay NaN.
    """
    if not layers:
        raise ConfigurationError("mosaic_layers needs at least one layer")
    shape = layers[0].shape
    out = np.full(shape, np.nan, dtype=np.float32)
    filled = np.zeros(shape[:2], dtype=bool)
    for layer in layers:
        if layer.shape != shape:
            raise ConfigurationError(f"Layer shape {layer.shape} does not match {shape}")
        defined = np.all(np.isfinite(layer), axis=-1) & ~filled
        out[defined] = layer[defined]
        filled |= defined
    return out
