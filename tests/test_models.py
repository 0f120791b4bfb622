import numpy as np
import pyproj
import pytest
from shapely.geometry import Point, box

from panmosaic.models import Region

from conftest import make_scene


def test_window_grid_offsets_transform(test_grid):
    window = test_grid.window_grid(2, 3, 2, 4)
    assert window.shape == (2, 4)
    assert window.transform.c == pytest.approx(10.0 + 3 * 0.25)
    assert window.transform.f == pytest.approx(21.5 - 2 * 0.25)
    assert window.crs == test_grid.crs


def test_grid_properties(test_grid):
    assert test_grid.pixel_count == 48
    assert test_grid.pixel_size == 0.25
    # 0.25 degrees of longitude at ~20.75N
    assert test_grid.pixel_size_m() == pytest.approx(0.25 * 111320 * np.cos(np.radians(20.75)))


def test_region_bounds_is_envelope():
    triangle = Region("tri", box(0, 0, 2, 2).union(box(2, 0, 4, 1)))
    env = triangle.bounds()
    assert env.name == "tri_bounds"
    assert env.geometry.bounds == (0.0, 0.0, 4.0, 2.0)
    assert env.geometry.area == pytest.approx(8.0)


def test_region_project_to_polar_stereographic():
    region = Region("arctic", box(-50.0, 70.0, -40.0, 75.0))
    projected = region.project("EPSG:3413")
    assert projected.is_valid
    minx, miny, maxx, maxy = projected.bounds
    # EPSG:3413 coordinates are metres, well outside the lon/lat range
    assert max(abs(minx), abs(maxx), abs(miny), abs(maxy)) > 1000.0
    # densified edges follow the parallels, so more vertices than the input box
    assert len(projected.exterior.coords) > 5
    assert region.project("EPSG:4326") is region.geometry


def test_grid_footprint_in_lonlat(test_grid, small_grid):
    np.testing.assert_allclose(test_grid.footprint().bounds, (10.0, 20.0, 12.0, 21.5))

    to_lonlat = pyproj.Transformer.from_crs(small_grid.crs, "EPSG:4326", always_xy=True)
    left, bottom, right, top = small_grid.bounds
    centre = Point(*to_lonlat.transform((left + right) / 2.0, (bottom + top) / 2.0))
    assert small_grid.footprint().contains(centre)


def test_scene_overlap_needs_shared_area():
    tile = box(10.0, 20.0, 11.0, 21.0)
    assert make_scene("s", "2016-07-01").overlaps(tile)  # footprint unknown
    assert make_scene("s", "2016-07-01", footprint=box(10.5, 20.5, 12.0, 22.0)).overlaps(tile)
    assert not make_scene("s", "2016-07-01", footprint=box(11.0, 20.0, 12.0, 21.0)).overlaps(tile)
    assert not make_scene("s", "2016-07-01", footprint=box(30.0, 30.0, 31.0, 31.0)).overlaps(tile)
