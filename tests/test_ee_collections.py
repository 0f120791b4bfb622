import numpy as np

from panmosaic import ee_collections
from panmosaic.config import NODATA_SENTINEL
from panmosaic.regions import get_region


class FakeImage:
    """Stands in for ee.Image: records download requests instead of calling the service."""

    def __init__(self):
        self.requests = []

    def select(self, bands):
        self.bands = list(bands)
        return self

    def toFloat(self):
        return self

    def getDownloadURL(self, params):
        self.requests.append(params)
        return f"fake://{len(self.requests) - 1}"


def _fake_fetch(image):
    def fetch(url, label=None):
        params = image.requests[int(url.split("://")[1])]
        width, height = (int(v) for v in params["dimensions"].split("x"))
        block = np.zeros((height, width), dtype=[(b, "<f4") for b in image.bands])
        for b in image.bands:
            block[b] = params["crs_transform"][5]  # top edge, identifies the row block
        block[image.bands[0]][0, 0] = NODATA_SENTINEL
        return block
    return fetch


def test_download_grid_requests_npy_on_grid(monkeypatch, test_grid):
    image = FakeImage()
    monkeypatch.setattr(ee_collections, "fetch_array", _fake_fetch(image))

    out = ee_collections.download_grid(image, ["B8", "BQA"], test_grid)

    assert len(image.requests) == 1
    params = image.requests[0]
    assert params["format"] == "NPY"
    assert params["crs"] == test_grid.crs
    assert params["dimensions"] == "8x6"
    assert params["crs_transform"] == [0.25, 0.0, 10.0, 0.0, -0.25, 21.5]
    assert np.isnan(out["B8"][0, 0])
    assert out["BQA"][0, 0] == 21.5


def test_download_grid_splits_large_requests(monkeypatch, test_grid):
    image = FakeImage()
    monkeypatch.setattr(ee_collections, "fetch_array", _fake_fetch(image))
    # 8 x 6 x 2 bands x 4 bytes = 384 bytes; force a split into row blocks
    monkeypatch.setattr(ee_collections, "MAX_DOWNLOAD_SIZE_BYTES", 200)

    out = ee_collections.download_grid(image, ["B8", "BQA"], test_grid)

    assert len(image.requests) > 1
    assert out["BQA"].shape == test_grid.shape
    # each row block carries its own top edge
    assert out["BQA"][0, 1] == 21.5
    assert out["BQA"][-1, 1] < 21.5


class FakeCollection:
    """Stands in for ee.ImageCollection: keeps the bounds geometry it was filtered with."""

    def __init__(self, asset):
        self.asset = asset
        self.bounds = None

    def filterBounds(self, geometry):
        self.bounds = geometry
        return self


def test_region_filter_uses_planar_geometry(monkeypatch):
    monkeypatch.setattr(ee_collections.ee, "ImageCollection", FakeCollection)
    monkeypatch.setattr(ee_collections.ee, "Geometry", lambda *args: args)
    panarctic = get_region("panarctic")

    col = ee_collections.EarthEngineArchive(region=panarctic)._filtered("LANDSAT/LC08/C01/T1_TOA", ())

    geo_json, proj, geodesic = col.bounds
    assert geo_json == panarctic.geometry.__geo_interface__
    assert proj is None
    assert geodesic is False


def test_footprint_from_linear_ring():
    ring = {"type": "LinearRing", "coordinates": [[10, 20], [11, 20], [11, 21], [10, 21], [10, 20]]}
    footprint = ee_collections._footprint_geometry(ring)
    assert footprint.bounds == (10.0, 20.0, 11.0, 21.0)
    assert footprint.area == 1.0
    assert ee_collections._footprint_geometry(None) is None
