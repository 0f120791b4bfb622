"""
Local raster processing: output grids, resampling onto a grid, region clipping and GeoTIFF export.
"""
import math
import os
import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np
import rasterio
from rasterio.errors import RasterioIOError
from rasterio.features import geometry_mask
from rasterio.transform import from_origin
from rasterio.warp import Resampling, reproject
from shapely.geometry import mapping

from .config import AUX_WATER_VALUE, GEOTIFF_PROFILE, MAX_PIXELS
from .exceptions import ConfigurationError, PixelLimitExceeded
from .models import Grid, Region, lonlat_envelope


def make_grid(region: Region, crs: str, scale: float) -> Grid:
    """
    Compute the output grid covering ``region`` in ``crs`` at ``scale`` units per pixel.

    The grid origin is snapped to a multiple of ``scale`` so grids built for
    overlapping regions line up.
    """
    if scale <= 0:
        raise ConfigurationError(f"Scale must be positive, got {scale}")
    geom = region.project(crs)
    if geom.is_empty:
        raise ConfigurationError(f"Region '{region.name}' is empty in {crs}")
    minx, miny, maxx, maxy = geom.bounds
    minx = math.floor(minx / scale) * scale
    maxy = math.ceil(maxy / scale) * scale
    width = max(1, int(math.ceil((maxx - minx) / scale)))
    height = max(1, int(math.ceil((maxy - miny) / scale)))
    transform = from_origin(minx, maxy, scale, scale)
    logging.info(f"Grid for {region.name}: {width}x{height} px at {scale} in {crs}")
    return Grid(crs=crs, transform=transform, width=width, height=height)


def check_pixel_limit(grid: Grid, max_pixels: int = MAX_PIXELS):
    """Raise PixelLimitExceeded when the grid is larger than the export cap."""
    if grid.pixel_count > max_pixels:
        raise PixelLimitExceeded(grid.pixel_count, max_pixels)


def read_band_to_grid(path: str, grid: Grid, band_index: int = 1,
                      resampling: Resampling = Resampling.bilinear,
                      scale: float = 1.0, offset: float = 0.0) -> np.ndarray:
    """
    Read one raster band resampled onto ``grid``.

    Source nodata pixels and pixels outside the source footprint come back as
    NaN. ``scale``/``offset`` convert stored values to reflectance.
    """
    dst = np.full(grid.shape, np.nan, dtype=np.float32)
    with rasterio.open(path) as src:
        src_nodata = src.nodata
        reproject(
            source=rasterio.band(src, band_index),
            destination=dst,
            src_transform=src.transform,
            src_crs=src.crs,
            src_nodata=src_nodata,
            dst_transform=grid.transform,
            dst_crs=grid.crs,
            dst_nodata=np.nan,
            resampling=resampling,
        )
    if scale != 1.0 or offset != 0.0:
        dst = dst * np.float32(scale) + np.float32(offset)
    return dst


def raster_footprint(path: str):
    """Lon/lat envelope of a raster file."""
    try:
        with rasterio.open(path) as src:
            return lonlat_envelope(src.crs, tuple(src.bounds))
    except RasterioIOError as e:
        raise ConfigurationError(f"Cannot read raster {path}: {e}")


class LocalWaterMask:
    """Auxiliary land/water mask read from a local raster (e.g. a MOD44W GeoTIFF)."""

    def __init__(self, path: str, band_index: int = 1, water_value: int = AUX_WATER_VALUE):
        if not os.path.exists(path):
            raise ConfigurationError(f"Water mask not found: {path}")
        self.path = path
        self.band_index = band_index
        self.water_value = water_value

    def load(self, grid: Grid) -> np.ndarray:
        """Auxiliary band on ``grid`` (nearest resampling, NaN outside the mask)."""
        return read_band_to_grid(self.path, grid, self.band_index, resampling=Resampling.nearest)


def clip_to_region(grid: Grid, region: Optional[Region]) -> np.ndarray:
    """Boolean array, True for pixels whose centre lies inside ``region``. No region keeps everything."""
    if region is None:
        return np.ones(grid.shape, dtype=bool)
    geom = region.project(grid.crs)
    if geom.is_empty:
        return np.zeros(grid.shape, dtype=bool)
    return geometry_mask([mapping(geom)], out_shape=grid.shape, transform=grid.transform, invert=True)


@dataclass
class ExportTask:
    """
    One raster handed to the export sink.

    ``image`` is (bands, height, width) or (height, width). ``valid`` marks the
    pixels that hold data; when omitted it is derived from NaN in float images.
    """
    image: np.ndarray
    description: str
    folder: str
    grid: Grid
    scale: float
    crs: str
    region: Optional[Region] = None
    max_pixels: int = MAX_PIXELS
    band_names: Sequence[str] = field(default_factory=list)
    valid: Optional[np.ndarray] = None


class GeoTiffExporter:
    """Export sink writing each task to ``<out_dir>/<folder>/<description>.tif``."""

    def __init__(self, out_dir: str):
        self.out_dir = out_dir

    def export(self, task: ExportTask) -> str:
        """
        Write ``task`` as a GeoTIFF with an internal dataset mask for no-data pixels.

        Raises:
            PixelLimitExceeded: the grid is larger than ``task.max_pixels``
            ConfigurationError: the image does not match the grid, CRS or scale
        """
        grid = task.grid
        check_pixel_limit(grid, task.max_pixels)
        if str(task.crs) != str(grid.crs):
            raise ConfigurationError(f"Export CRS {task.crs} does not match grid CRS {grid.crs}")
        if not math.isclose(task.scale, grid.pixel_size, rel_tol=1e-9):
            raise ConfigurationError(f"Export scale {task.scale} does not match grid pixel size {grid.pixel_size}")

        image = task.image[np.newaxis, ...] if task.image.ndim == 2 else task.image
        if image.shape[1:] != grid.shape:
            raise ConfigurationError(f"Image shape {image.shape[1:]} does not match grid {grid.shape}")

        if task.valid is not None:
            valid = task.valid if task.valid.ndim == 2 else np.all(task.valid, axis=0)
        elif np.issubdtype(image.dtype, np.floating):
            valid = np.all(np.isfinite(image), axis=0)
        else:
            valid = np.ones(grid.shape, dtype=bool)
        valid = valid & clip_to_region(grid, task.region)

        if np.issubdtype(image.dtype, np.floating):
            image = np.where(valid[np.newaxis, ...], image, np.nan).astype(np.float32)
            nodata = np.nan
        else:
            image = np.where(valid[np.newaxis, ...], image, 0).astype(image.dtype)
            nodata = None

        folder = os.path.join(self.out_dir, task.folder)
        os.makedirs(folder, exist_ok=True)
        out_path = os.path.join(folder, f"{task.description}.tif")

        profile = dict(GEOTIFF_PROFILE)
        profile.update({
            "width": grid.width,
            "height": grid.height,
            "count": image.shape[0],
            "dtype": image.dtype.name,
            "crs": grid.crs,
            "transform": grid.transform,
            "nodata": nodata,
        })
        if grid.width < profile["blockxsize"] or grid.height < profile["blockysize"]:
            profile["tiled"] = False
            profile.pop("blockxsize")
            profile.pop("blockysize")

        with rasterio.Env(GDAL_TIFF_INTERNAL_MASK=True):
            with rasterio.open(out_path, "w", **profile) as dst:
                dst.write(image)
                dst.write_mask(valid.astype(np.uint8) * 255)
                for idx, name in enumerate(task.band_names, start=1):
                    dst.set_band_description(idx, name)
                dst.update_tags(description=task.description)

        logging.info(f"Exported {task.description} ({image.shape[0]} band(s), "
                     f"{100.0 * valid.mean():.1f}% valid) to {out_path}")
        return out_path
