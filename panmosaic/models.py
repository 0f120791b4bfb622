"""
Data model: date ranges, scenes, composites, output grids and regions.
"""
import math
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Dict, List, Mapping, Optional, Tuple

import numpy as np
import pyproj
from rasterio.transform import Affine
from rasterio.warp import transform_bounds
from shapely.geometry import box
from shapely.ops import transform as shp_transform

from .config import REGION_SEGMENT_DEG
from .exceptions import ConfigurationError, MissingBandError


@dataclass(frozen=True)
class DateRange:
    """Inclusive acquisition date window."""
    start: date
    end: date

    def __post_init__(self):
        if self.end < self.start:
            raise ConfigurationError(
                f"Date range ends before it starts: {self.start.isoformat()} > {self.end.isoformat()}"
            )

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def __str__(self):
        return f"{self.start.isoformat()}/{self.end.isoformat()}"


@dataclass(frozen=True, eq=False)
class Scene:
    """
    One satellite observation.

    Metadata comes from the archive listing; ``bands`` and ``qa`` are filled in
    when the archive loads pixels for a grid. Reflectance arrays are float32 with
    NaN marking no data. Scenes are never modified in place: masking and loading
    return new instances.
    """
    scene_id: str
    acquired: date
    sun_elevation: float
    wrs_path: int
    wrs_row: int
    collection: str = ""
    sources: Mapping[str, str] = field(default_factory=dict)
    reflectance_scale: float = 1.0
    reflectance_offset: float = 0.0
    footprint: Optional[object] = None  # shapely geometry in EPSG:4326, None = unknown
    bands: Mapping[str, np.ndarray] = field(default_factory=dict)
    qa: Optional[np.ndarray] = None

    def with_pixels(self, bands: Mapping[str, np.ndarray], qa: Optional[np.ndarray]) -> "Scene":
        return replace(self, bands=dict(bands), qa=qa)

    def band(self, name: str) -> np.ndarray:
        if name not in self.bands:
            raise MissingBandError(name, self.bands.keys())
        return self.bands[name]

    def overlaps(self, geometry) -> bool:
        """True when the footprint shares area with the lon/lat ``geometry``; unknown footprints always do."""
        if self.footprint is None:
            return True
        return self.footprint.intersects(geometry) and not self.footprint.touches(geometry)


def lonlat_envelope(crs: str, bounds: Tuple[float, float, float, float]):
    """
    EPSG:4326 box around ``bounds`` given in ``crs``.

    Edges are densified before transforming. An envelope crossing the
    antimeridian comes back as two boxes.
    """
    left, bottom, right, top = transform_bounds(crs, "EPSG:4326", *bounds, densify_pts=21)
    if left > right:
        return box(left, bottom, 180.0, top).union(box(-180.0, bottom, right, top))
    return box(left, bottom, right, top)


# Scenes sharing one band schema, sorted by (acquired, scene_id)
ObservationSet = List[Scene]


@dataclass(frozen=True, eq=False)
class Composite:
    """Per-pixel reduction of an observation set. NaN marks pixels with no valid observation."""
    bands: Dict[str, np.ndarray]
    observations: np.ndarray
    shape: Tuple[int, int]

    def band(self, name: str) -> np.ndarray:
        if name not in self.bands:
            raise MissingBandError(name, self.bands.keys())
        return self.bands[name]


@dataclass(frozen=True)
class Grid:
    """Output pixel grid: CRS, affine transform and dimensions."""
    crs: str
    transform: Affine
    width: int
    height: int

    @property
    def shape(self) -> Tuple[int, int]:
        return self.height, self.width

    @property
    def pixel_size(self) -> float:
        return abs(self.transform.a)

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        left, top = self.transform * (0, 0)
        right, bottom = self.transform * (self.width, self.height)
        return min(left, right), min(top, bottom), max(left, right), max(top, bottom)

    def window_grid(self, row_off: int, col_off: int, height: int, width: int) -> "Grid":
        """Sub-grid covering rows/cols starting at (row_off, col_off)."""
        return Grid(
            crs=self.crs,
            transform=self.transform * Affine.translation(col_off, row_off),
            width=width,
            height=height,
        )

    def pixel_size_m(self) -> float:
        """Pixel size in metres (approximate for geographic CRSs)."""
        crs = pyproj.CRS.from_user_input(self.crs)
        if crs.is_geographic:
            left, bottom, right, top = self.bounds
            center_lat = (bottom + top) / 2.0
            return self.pixel_size * 111320 * math.cos(math.radians(center_lat))
        return self.pixel_size

    def footprint(self):
        """Lon/lat envelope of the grid."""
        return lonlat_envelope(self.crs, self.bounds)


@dataclass(frozen=True)
class Region:
    """Named boundary geometry in EPSG:4326 (lon/lat)."""
    name: str
    geometry: object  # shapely geometry

    def bounds(self) -> "Region":
        """Envelope of the region, used to simplify export geometry."""
        return Region(name=f"{self.name}_bounds", geometry=box(*self.geometry.bounds))

    def project(self, crs: str):
        """Geometry reprojected to ``crs``; edges are densified first so they bend correctly."""
        target = pyproj.CRS.from_user_input(crs)
        if target == pyproj.CRS("EPSG:4326"):
            return self.geometry
        dense = self.geometry.segmentize(REGION_SEGMENT_DEG)
        to_target = pyproj.Transformer.from_crs("EPSG:4326", target, always_xy=True).transform
        return shp_transform(to_target, dense)
