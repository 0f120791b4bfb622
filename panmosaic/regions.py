"""
Mosaic boundaries: built-in approximate domains and boundary files.
"""
import os
import logging
from typing import Dict

import fiona
import pyproj
from shapely.geometry import box, shape
from shapely.ops import transform as shp_transform, unary_union

from .exceptions import ConfigurationError
from .models import Region

# Approximate lon/lat envelopes of the four mosaic domains
BUILTIN_REGIONS: Dict[str, tuple] = {
    "alaska": (-170.0, 51.0, -129.0, 72.0),
    "greenland": (-74.0, 59.0, -11.0, 84.0),
    "hma": (65.0, 25.0, 105.0, 46.0),  # High Mountain Asia
    "panarctic": (-180.0, 55.0, 180.0, 84.0),
}


def get_region(name: str) -> Region:
    """Built-in region by name."""
    if name not in BUILTIN_REGIONS:
        raise ConfigurationError(f"Unknown region '{name}' (known: {', '.join(sorted(BUILTIN_REGIONS))})")
    return Region(name=name, geometry=box(*BUILTIN_REGIONS[name]))


def load_region(path: str, name: str = None) -> Region:
    """
    Read a boundary file (shapefile, GeoJSON, GeoPackage, ...) as one region.

    All features are dissolved into a single geometry and reprojected to
    EPSG:4326 when the file declares another CRS.
    """
    if not os.path.exists(path):
        raise ConfigurationError(f"Boundary file not found: {path}")
    with fiona.open(path) as src:
        geoms = [shape(feat["geometry"]) for feat in src if feat["geometry"] is not None]
        src_crs = src.crs_wkt
    if not geoms:
        raise ConfigurationError(f"Boundary file {path} has no geometries")

    geometry = unary_union(geoms)
    if src_crs:
        crs = pyproj.CRS.from_wkt(src_crs)
        if crs != pyproj.CRS("EPSG:4326"):
            to_wgs84 = pyproj.Transformer.from_crs(crs, "EPSG:4326", always_xy=True).transform
            geometry = shp_transform(to_wgs84, geometry)

    region_name = name or os.path.splitext(os.path.basename(path))[0]
    logging.info(f"Loaded region '{region_name}' from {path} ({len(geoms)} features)")
    return Region(name=region_name, geometry=geometry)
