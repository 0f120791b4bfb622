"""
Earth Engine adapters: Landsat 8 TOA scene archive and the MOD44W water mask.
"""
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

import ee
import numpy as np
from shapely.geometry import Polygon, shape

from .archive import SceneArchive
from .config import (
    AUX_WATER_VALUE, EE_L8_TOA_T1, EE_WATER_MASK_ASSET, EE_WATER_MASK_BAND,
    MAX_DOWNLOAD_SIZE_BYTES, NODATA_SENTINEL, QA_BAND, QA_BITS,
)
from .download import fetch_array
from .exceptions import ConfigurationError
from .models import DateRange, Grid, Region, Scene

# QA value given to pixels Earth Engine reports as masked: the designated fill bit
QA_FILL_VALUE = 1 << QA_BITS["fill"]


def initialize_earth_engine(project: Optional[str] = None, key_file: Optional[str] = None):
    """
    Initialize Earth Engine with a service account key file or a cloud project.

    Raises:
        ConfigurationError: the key file does not exist
    """
    if key_file:
        try:
            with open(key_file, "r") as f:
                key_data = json.load(f)
        except FileNotFoundError:
            raise ConfigurationError(f"Service account key not found: {key_file}")
        credentials = ee.ServiceAccountCredentials(key_data.get("client_email"), key_file)
        project = project or key_data.get("project_id")
        if project:
            ee.Initialize(credentials, project=project)
        else:
            ee.Initialize(credentials)
        logging.info(f"Initialized Earth Engine with service account from {key_file} (project: {project})")
        return

    if project:
        ee.Initialize(project=project)
        logging.info(f"Initialized Earth Engine with project: {project}")
    else:
        ee.Initialize()
        logging.info("Initialized Earth Engine with default credentials")


def _region_geometry(region: Region):
    """Region as a planar (non-geodesic) Earth Engine geometry; lon/lat edges follow parallels and meridians."""
    return ee.Geometry(region.geometry.__geo_interface__, None, False)


def _footprint_geometry(geojson):
    """Shapely polygon from a ``system:footprint`` value (a GeoJSON LinearRing)."""
    if not geojson:
        return None
    if geojson.get("type") == "LinearRing":
        geom = Polygon(geojson["coordinates"])
    else:
        geom = shape(geojson)
    return geom if geom.is_valid else geom.envelope


def _grid_params(grid: Grid) -> dict:
    t = grid.transform
    return {
        "format": "NPY",
        "crs": grid.crs,
        "crs_transform": [t.a, t.b, t.c, t.d, t.e, t.f],
        "dimensions": f"{grid.width}x{grid.height}",
    }


def download_grid(image, band_names: Sequence[str], grid: Grid, label: str = "block") -> Dict[str, np.ndarray]:
    """
    Fetch ``band_names`` of an Earth Engine image on ``grid`` as float32 arrays.

    Requests larger than the getDownloadURL size limit are split into row
    halves. Sentinel values become NaN.
    """
    est_bytes = grid.width * grid.height * len(band_names) * 4
    if est_bytes > MAX_DOWNLOAD_SIZE_BYTES and grid.height > 1:
        top = grid.height // 2
        upper = download_grid(image, band_names, grid.window_grid(0, 0, top, grid.width), f"{label}/top")
        lower = download_grid(image, band_names, grid.window_grid(top, 0, grid.height - top, grid.width),
                              f"{label}/bottom")
        return {b: np.concatenate([upper[b], lower[b]], axis=0) for b in band_names}

    url = image.select(list(band_names)).toFloat().getDownloadURL(_grid_params(grid))
    block = fetch_array(url, label=label)
    out = {}
    for band in band_names:
        arr = np.asarray(block[band], dtype=np.float32).reshape(grid.shape)
        out[band] = np.where(arr == NODATA_SENTINEL, np.nan, arr).astype(np.float32)
    return out


class EarthEngineArchive(SceneArchive):
    """
    Landsat 8 TOA scenes from one or more Earth Engine collections.

    Scenes are listed inside ``region``; pixel blocks are fetched per grid
    window. Pixels Earth Engine reports as masked come back as NaN reflectance
    and a QA value with the fill bit set.
    """

    def __init__(self, collections: Sequence[str] = (EE_L8_TOA_T1,), region: Optional[Region] = None):
        self.collections = list(collections)
        self.region = region

    def _filtered(self, collection: str, date_ranges: Sequence[DateRange], region: Optional[Region] = None):
        col = ee.ImageCollection(collection)
        if region is not None:
            col = col.filterBounds(_region_geometry(region))
        if date_ranges:
            # Earth Engine end dates are exclusive, DateRange is inclusive
            filters = [
                ee.Filter.date(r.start.isoformat(), (r.end + timedelta(days=1)).isoformat())
                for r in date_ranges
            ]
            col = col.filter(ee.Filter.Or(*filters) if len(filters) > 1 else filters[0])
        return col

    def list_scenes(self, date_ranges: Sequence[DateRange] = (),
                    collections: Optional[Sequence[str]] = None,
                    region: Optional[Region] = None) -> List[Scene]:
        region = region or self.region
        scenes: List[Scene] = []
        for collection in self.collections:
            if collections and collection not in collections:
                continue
            col = self._filtered(collection, date_ranges, region)
            info = ee.Dictionary({
                "ids": col.aggregate_array("system:index"),
                "times": col.aggregate_array("system:time_start"),
                "sun": col.aggregate_array("SUN_ELEVATION"),
                "paths": col.aggregate_array("WRS_PATH"),
                "rows": col.aggregate_array("WRS_ROW"),
                "footprints": col.aggregate_array("system:footprint"),
            }).getInfo()
            for scene_id, ms, sun, path, row, footprint in zip(info["ids"], info["times"], info["sun"],
                                                               info["paths"], info["rows"], info["footprints"]):
                scenes.append(Scene(
                    scene_id=scene_id,
                    acquired=datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc).date(),
                    sun_elevation=float(sun),
                    wrs_path=int(path),
                    wrs_row=int(row),
                    collection=collection,
                    sources={"asset": f"{collection}/{scene_id}"},
                    footprint=_footprint_geometry(footprint),
                ))
            logging.info(f"Listed {len(info['ids'])} scenes from {collection}")
        return scenes

    def load_scene(self, scene: Scene, bands: Sequence[str], grid: Grid) -> Scene:
        image = ee.Image(scene.sources.get("asset", f"{scene.collection}/{scene.scene_id}"))
        reflectance = image.select(list(bands)).unmask(NODATA_SENTINEL)
        qa = image.select(QA_BAND).unmask(QA_FILL_VALUE)
        pixels = download_grid(reflectance.addBands(qa), list(bands) + [QA_BAND], grid, label=scene.scene_id)
        qa_arr = pixels.pop(QA_BAND)
        return scene.with_pixels(pixels, qa_arr)


class EarthEngineWaterMask:
    """MOD44W land/water band from Earth Engine (1 = water, 0 = land)."""

    def __init__(self, asset: str = EE_WATER_MASK_ASSET, band: str = EE_WATER_MASK_BAND,
                 water_value: int = AUX_WATER_VALUE):
        self.asset = asset
        self.band = band
        self.water_value = water_value

    def load(self, grid: Grid) -> np.ndarray:
        image = ee.Image(self.asset).select(self.band).unmask(NODATA_SENTINEL)
        return download_grid(image, [self.band], grid, label=f"{self.asset}:{self.band}")[self.band]
