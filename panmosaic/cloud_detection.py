"""
Cloud detection and masking from the packed BQA quality bitfield.
"""
import logging
from typing import Dict, Iterable, Mapping, Optional

import numpy as np

from .config import QA_BITS, DEFAULT_QA_FLAGS
from .exceptions import ConfigurationError
from .models import Scene


def qa_flag_mask(flags: Iterable[str], bit_table: Optional[Mapping[str, int]] = None) -> int:
    """
    Combine named QA flags into one integer bitmask.

    Args:
        flags: Flag names, e.g. ("cloud", "cirrus")
        bit_table: Mapping of flag name to bit position (defaults to config.QA_BITS)

    Returns:
        Integer with every monitored bit set
    """
    table = QA_BITS if bit_table is None else bit_table
    mask = 0
    for flag in flags:
        if flag not in table:
            raise ConfigurationError(
                f"Unknown QA flag '{flag}' (known: {', '.join(sorted(table))})"
            )
        mask |= 1 << int(table[flag])
    return mask


def clear_mask(qa: np.ndarray, flags: Iterable[str] = DEFAULT_QA_FLAGS,
               bit_table: Optional[Mapping[str, int]] = None) -> np.ndarray:
    """
    Per-pixel clear-sky predicate: True where all monitored bits are zero.

    Pixels without quality data (NaN in float arrays, masked entries in masked
    arrays) are never clear.
    """
    bitmask = qa_flag_mask(flags, bit_table)

    missing = np.zeros(np.shape(qa), dtype=bool)
    if np.ma.isMaskedArray(qa):
        missing |= np.ma.getmaskarray(qa)
        qa = qa.filled(0)
    qa = np.asarray(qa)
    if np.issubdtype(qa.dtype, np.floating):
        missing |= ~np.isfinite(qa)
        bits = np.where(missing, 0, qa).astype(np.int64)
    else:
        bits = qa.astype(np.int64)

    return ((bits & bitmask) == 0) & ~missing


def mask_scene(scene: Scene, flags: Iterable[str] = DEFAULT_QA_FLAGS,
               bit_table: Optional[Mapping[str, int]] = None) -> Scene:
    """
    Mark every non-clear pixel of every band as no data (NaN).

    Returns a new Scene; the input is not modified. A scene without a QA array
    has no quality data anywhere and comes back fully masked.
    """
    if scene.qa is None:
        logging.debug(f"Scene {scene.scene_id} has no QA band, masking all pixels")
        shape = next(iter(scene.bands.values())).shape if scene.bands else ()
        clear = np.zeros(shape, dtype=bool)
    else:
        clear = clear_mask(scene.qa, flags, bit_table)

    masked: Dict[str, np.ndarray] = {}
    for name, arr in scene.bands.items():
        masked[name] = np.where(clear, arr, np.nan).astype(np.float32)

    if logging.getLogger().isEnabledFor(logging.DEBUG) and clear.size:
        logging.debug(f"Scene {scene.scene_id}: {100.0 * clear.mean():.1f}% clear")
    return scene.with_pixels(masked, scene.qa)
