import os
from datetime import date

import numpy as np
import pytest
import rasterio
from rasterio.transform import from_origin
from shapely.geometry import box

from panmosaic.archive import SceneArchive
from panmosaic.config import COMPOSITE_BANDS, QA_BITS
from panmosaic.models import Grid, Region, Scene

# Absolute tolerance for comparing exported float rasters with in-memory results
EXPORT_TOLERANCE = 1e-6

CLOUD = 1 << QA_BITS["cloud"]
CIRRUS = 1 << QA_BITS["cirrus"]

# 8 x 6 pixels of 0.25 degrees
TEST_REGION_BOUNDS = (10.0, 20.0, 12.0, 21.5)
TEST_SCALE = 0.25
TEST_CRS = "EPSG:4326"


def make_scene(scene_id, acquired, bands=None, qa=None, sun_elevation=45.0, wrs_path=70, wrs_row=14,
               collection="LANDSAT/LC08/C01/T1_TOA", footprint=None):
    if isinstance(acquired, str):
        acquired = date.fromisoformat(acquired)
    return Scene(scene_id=scene_id, acquired=acquired, sun_elevation=sun_elevation,
                 wrs_path=wrs_path, wrs_row=wrs_row, collection=collection,
                 footprint=footprint, bands=bands or {}, qa=qa)


def uniform_bands(shape, values):
    """One constant float32 array per band; ``values`` maps band -> value (or a single float for all)."""
    if not isinstance(values, dict):
        values = {b: values for b in COMPOSITE_BANDS}
    return {b: np.full(shape, v, dtype=np.float32) for b, v in values.items()}


class MemoryArchive(SceneArchive):
    """In-memory archive: scenes hold full-grid pixels, loads slice out the requested window."""

    def __init__(self, base_grid, scenes):
        self.base_grid = base_grid
        self.scenes = list(scenes)
        self.loads = 0

    def list_scenes(self, date_ranges=(), collections=None, region=None):
        return list(self.scenes)

    def load_scene(self, scene, bands, grid):
        self.loads += 1
        col = int(round((grid.transform.c - self.base_grid.transform.c) / self.base_grid.transform.a))
        row = int(round((grid.transform.f - self.base_grid.transform.f) / self.base_grid.transform.e))
        rows, cols = slice(row, row + grid.height), slice(col, col + grid.width)
        pixels = {b: scene.bands[b][rows, cols].copy() for b in bands}
        return scene.with_pixels(pixels, scene.qa[rows, cols].copy())


class ArrayWaterSource:
    """Auxiliary water band held in memory on a base grid."""

    def __init__(self, base_grid, aux, water_value=1):
        self.base_grid = base_grid
        self.aux = aux
        self.water_value = water_value

    def load(self, grid):
        col = int(round((grid.transform.c - self.base_grid.transform.c) / self.base_grid.transform.a))
        row = int(round((grid.transform.f - self.base_grid.transform.f) / self.base_grid.transform.e))
        return self.aux[row:row + grid.height, col:col + grid.width].astype(np.float32)


@pytest.fixture
def test_region():
    return Region(name="test", geometry=box(*TEST_REGION_BOUNDS))


@pytest.fixture
def test_grid():
    minx, miny, maxx, maxy = TEST_REGION_BOUNDS
    return Grid(crs=TEST_CRS, transform=from_origin(minx, maxy, TEST_SCALE, TEST_SCALE), width=8, height=6)


@pytest.fixture
def small_grid():
    """4 x 3 grid in polar stereographic metres at 15 m."""
    return Grid(crs="EPSG:3413", transform=from_origin(-2000000.0, 1000000.0, 15.0, 15.0), width=4, height=3)


@pytest.fixture
def write_geotiff(tmp_path):
    """Factory writing a single-band GeoTIFF on a Grid and returning its path."""

    def _write(name, array, grid, nodata=None):
        path = os.path.join(str(tmp_path), name)
        with rasterio.open(path, "w", driver="GTiff", width=grid.width, height=grid.height, count=1,
                           dtype=array.dtype.name, crs=grid.crs, transform=grid.transform,
                           nodata=nodata) as dst:
            dst.write(array, 1)
        return path

    return _write
