"""
Per-region pipeline variants.

Each variant is one parameter set for the shared pipeline: source collections,
acquisition seasons, scene filters, colour window, water masking and export
products.
"""
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from .config import (
    DEFAULT_GAMMA, DEFAULT_PARALLEL_SCALE, DEFAULT_SCALE, DEFAULT_WATER_BUFFER_M,
    EE_L8_TOA_T1, EE_L8_TOA_T2, MAX_PIXELS, WATER_FILL_COLOR,
)
from .exceptions import ConfigurationError
from .models import DateRange
from .scene_filter import TilePredicate, date_ranges_from_pairs, wrs_row_outside

PAN_EXPORTS = ("uint8", "float")
RGB_EXPORTS = ("rgb", "split")
SPLIT_CHANNELS = ("red", "green", "blue")


@dataclass(frozen=True)
class PipelineVariant:
    name: str
    prefix: str  # export description prefix
    region: str  # built-in region name
    collections: Tuple[str, ...] = (EE_L8_TOA_T1,)
    date_ranges: Tuple[DateRange, ...] = ()
    min_sun_elevation: Optional[float] = None
    qa_flags: Tuple[str, ...] = ("fill", "cloud", "cirrus")
    tile_predicate: Optional[TilePredicate] = None
    norm_window: Tuple[float, float] = (0.01, 0.38)
    gamma: Tuple[float, float, float] = DEFAULT_GAMMA
    crs: str = "EPSG:3857"
    scale: float = DEFAULT_SCALE
    water_buffer_m: Optional[float] = None  # None disables land/water compositing
    water_fill: str = WATER_FILL_COLOR
    fill_gaps: bool = False
    buffer_grow: str = "land"
    pan_export: Optional[str] = None  # "uint8", "float" or None
    rgb_export: Optional[str] = "rgb"  # "rgb", "split" or None
    pan_folder: str = ""
    rgb_folder: str = ""
    use_region_bounds: bool = False
    parallel_scale: int = DEFAULT_PARALLEL_SCALE
    max_pixels: int = MAX_PIXELS

    def __post_init__(self):
        if self.pan_export not in PAN_EXPORTS + (None,):
            raise ConfigurationError(f"pan_export must be one of {PAN_EXPORTS} or None, got {self.pan_export!r}")
        if self.rgb_export not in RGB_EXPORTS + (None,):
            raise ConfigurationError(f"rgb_export must be one of {RGB_EXPORTS} or None, got {self.rgb_export!r}")
        if self.pan_export is None and self.rgb_export is None:
            raise ConfigurationError(f"Variant '{self.name}' exports nothing")
        if not self.norm_window[1] > self.norm_window[0]:
            raise ConfigurationError(f"Normalization window is empty: {self.norm_window}")
        if self.parallel_scale < 1:
            raise ConfigurationError(f"parallel_scale must be >= 1, got {self.parallel_scale}")

    @property
    def epsg(self) -> str:
        return self.crs.split(":")[-1]

    def description(self, product: str) -> str:
        """Export description, e.g. ak_l8_pan_3857_15m."""
        scale = int(self.scale) if float(self.scale).is_integer() else self.scale
        return f"{self.prefix}_l8_{product}_{self.epsg}_{scale}m"


def _seasons(years, start_md: str, end_mds: Sequence[str]):
    return date_ranges_from_pairs(
        (f"{year}-{start_md}", f"{year}-{end_md}") for year, end_md in zip(years, end_mds)
    )


# Season ends follow the last above-freezing days at Utqiagvik (Barrow), AK.
# All ends are inclusive: the last acquisition day kept.
ALASKA_SEASONS = _seasons(range(2013, 2019), "05-20",
                          ["09-14", "09-17", "09-06", "09-07", "09-09", "09-14"])
PANARCTIC_SEASONS = _seasons(range(2013, 2021), "05-20",
                             ["09-14", "09-17", "09-06", "09-07", "09-09", "09-14", "09-14", "09-14"])

VARIANTS: Dict[str, PipelineVariant] = {
    "alaska": PipelineVariant(
        name="alaska",
        prefix="ak",
        region="alaska",
        date_ranges=ALASKA_SEASONS,
        min_sun_elevation=35.0,
        norm_window=(0.01, 0.38),
        crs="EPSG:3857",
        pan_export="uint8",
        rgb_export="rgb",
        pan_folder="ak_pan",
        rgb_folder="ak_rgb",
    ),
    "greenland": PipelineVariant(
        name="greenland",
        prefix="grl",
        region="greenland",
        collections=(EE_L8_TOA_T1, EE_L8_TOA_T2),
        min_sun_elevation=20.0,
        norm_window=(0.1, 0.85),
        crs="EPSG:3413",
        rgb_export="rgb",
        rgb_folder="grl_rgb",
    ),
    "hma": PipelineVariant(
        name="hma",
        prefix="hma",
        region="hma",
        date_ranges=date_ranges_from_pairs([("2013-01-01", "2018-03-20")]),
        qa_flags=("fill", "cloud", "cloud_shadow"),
        norm_window=(0.05, 0.6),
        crs="EPSG:3857",
        pan_export="float",
        rgb_export="rgb",
        pan_folder="hma_pan",
        rgb_folder="hma_multi",
    ),
    "panarctic": PipelineVariant(
        name="panarctic",
        prefix="panarctic",
        region="panarctic",
        date_ranges=PANARCTIC_SEASONS,
        min_sun_elevation=35.0,
        tile_predicate=wrs_row_outside(26, 218),
        norm_window=(0.01, 0.38),
        crs="EPSG:3413",
        water_buffer_m=DEFAULT_WATER_BUFFER_M,
        water_fill=WATER_FILL_COLOR,
        rgb_export="split",
        rgb_folder="panarctic_rgb_watermask",
        use_region_bounds=True,
        parallel_scale=16,
    ),
}


def get_variant(name: str) -> PipelineVariant:
    if name not in VARIANTS:
        raise ConfigurationError(f"Unknown variant '{name}' (known: {', '.join(sorted(VARIANTS))})")
    return VARIANTS[name]
