"""
Main processing pipeline: run one variant over its region, tile by tile, and export the products.
"""
import os
import logging
import concurrent.futures
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
from tqdm import tqdm

from .archive import SceneArchive
from .cloud_detection import mask_scene
from .config import COMPOSITE_BANDS, DEFAULT_TILE_PIX, DEFAULT_WORKERS, PAN_BAND
from .exceptions import ConfigurationError
from .image_preparation import pan_sharpen_composite
from .models import Grid, ObservationSet, Region
from .mosaic_builder import median_composite
from .raster_processing import ExportTask, GeoTiffExporter, check_pixel_limit, make_grid
from .regions import get_region
from .scene_filter import filter_scenes
from .utils import TileWindow, tile_windows
from .variants import SPLIT_CHANNELS, PipelineVariant
from .visualization import color_correct, pan_to_uint8
from .water_mask import buffer_radius_pixels, buffered_water, composite_land_water, water_from_auxiliary


@dataclass
class PipelineResult:
    """Stitched products of one variant run."""
    grid: Grid
    pan: np.ndarray  # (height, width) float32 composite pan band
    rgb: np.ndarray  # (height, width, 3) float32 display image
    observations: np.ndarray  # (height, width) uint16
    scene_count: int
    paths: List[str] = field(default_factory=list)


@dataclass
class TileResult:
    window: TileWindow
    pan: np.ndarray
    rgb: np.ndarray
    observations: np.ndarray


def process_tile(window: TileWindow, grid: Grid, scenes: ObservationSet, archive: SceneArchive,
                 variant: PipelineVariant, water_source=None, buffer_px: int = 0) -> TileResult:
    """
    Composite, sharpen, colour-correct and (optionally) water-mask one tile.

    Only scenes whose footprint overlaps the tile are loaded, on the inner
    window. The auxiliary water mask is loaded on the padded window so the
    buffer sees pixels across tile edges.
    """
    tile_grid = grid.window_grid(window.row, window.col, window.height, window.width)
    shape = tile_grid.shape
    tile_footprint = tile_grid.footprint()
    overlapping = [scene for scene in scenes if scene.overlaps(tile_footprint)]

    masked = [
        mask_scene(archive.load_scene(scene, COMPOSITE_BANDS, tile_grid), variant.qa_flags)
        for scene in overlapping
    ]
    composite = median_composite(masked, COMPOSITE_BANDS, shape=shape, parallel_scale=variant.parallel_scale)

    sharpened = pan_sharpen_composite(composite)
    display = color_correct(sharpened, variant.norm_window[0], variant.norm_window[1], variant.gamma)

    if variant.water_buffer_m is not None:
        padded_grid = grid.window_grid(window.pad_row, window.pad_col, window.pad_height, window.pad_width)
        water = water_from_auxiliary(water_source.load(padded_grid), water_source.water_value)
        water = buffered_water(water, buffer_px, grow=variant.buffer_grow)[window.inner_slice]
        display = composite_land_water(display, water, variant.water_fill, fill_gaps=variant.fill_gaps)

    logging.debug(f"Tile {window.index}: {len(overlapping)} of {len(scenes)} scenes, "
                  f"{100.0 * np.isfinite(composite.band(PAN_BAND)).mean():.1f}% composited")
    return TileResult(window=window, pan=composite.band(PAN_BAND), rgb=display,
                      observations=composite.observations)


def build_export_tasks(variant: PipelineVariant, grid: Grid, pan: np.ndarray, rgb: np.ndarray,
                       region: Optional[Region]) -> List[ExportTask]:
    """Export tasks for the variant's products; ``region`` (None = grid rectangle) clips each raster."""
    common = dict(grid=grid, scale=variant.scale, crs=variant.crs, region=region, max_pixels=variant.max_pixels)
    tasks = []
    if variant.pan_export == "uint8":
        pan8, valid = pan_to_uint8(pan)
        tasks.append(ExportTask(image=pan8, description=variant.description("pan"), folder=variant.pan_folder,
                                band_names=["pan"], valid=valid, **common))
    elif variant.pan_export == "float":
        tasks.append(ExportTask(image=pan, description=variant.description("pan"), folder=variant.pan_folder,
                                band_names=["pan"], **common))

    if variant.rgb_export == "rgb":
        tasks.append(ExportTask(image=np.moveaxis(rgb, -1, 0), description=variant.description("rgb"),
                                folder=variant.rgb_folder, band_names=list(SPLIT_CHANNELS), **common))
    elif variant.rgb_export == "split":
        for idx, channel in enumerate(SPLIT_CHANNELS):
            tasks.append(ExportTask(image=rgb[..., idx], description=variant.description(channel),
                                    folder=variant.rgb_folder, band_names=[channel], **common))
    return tasks


def run_variant(variant: PipelineVariant, archive: SceneArchive, out_dir: str,
                water_source=None, region: Optional[Region] = None,
                tile_size: int = DEFAULT_TILE_PIX, workers: int = DEFAULT_WORKERS,
                exporter: Optional[GeoTiffExporter] = None) -> PipelineResult:
    """
    Run one variant end to end and export its products.

    Args:
        variant: Pipeline parameters
        archive: Scene source (local manifest or Earth Engine)
        out_dir: Output directory (products go to <out_dir>/<folder>/<description>.tif)
        water_source: Object with ``load(grid)`` returning the auxiliary
            land/water band and a ``water_value`` attribute (the band value
            meaning water); required when the variant buffers water
        region: Boundary override; defaults to the variant's built-in region
        tile_size: Tile side in pixels; never changes the result
        workers: Concurrent tiles

    Returns:
        PipelineResult with the stitched arrays and the written paths
    """
    if workers < 1:
        raise ConfigurationError(f"workers must be >= 1, got {workers}")
    if variant.water_buffer_m is not None and water_source is None:
        raise ConfigurationError(f"Variant '{variant.name}' needs an auxiliary water mask")

    region = region or get_region(variant.region)
    export_region = region.bounds() if variant.use_region_bounds else region
    grid = make_grid(export_region, variant.crs, variant.scale)
    check_pixel_limit(grid, variant.max_pixels)

    os.makedirs(out_dir, exist_ok=True)
    run_log_path = os.path.join(out_dir, f"processing_{variant.name}.log")
    run_file_handler = logging.FileHandler(run_log_path, encoding="utf-8", mode="w")
    run_file_handler.setLevel(logging.DEBUG)
    run_file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] [%(filename)s:%(lineno)d] %(message)s"))
    logger = logging.getLogger()
    logger.addHandler(run_file_handler)
    logging.info(f"Processing log file: {run_log_path}")

    try:
        listed = archive.list_scenes(variant.date_ranges, variant.collections, export_region)
        scenes = filter_scenes(listed, variant.date_ranges, variant.min_sun_elevation,
                               variant.tile_predicate, variant.collections)

        buffer_px = 0
        if variant.water_buffer_m is not None:
            buffer_px = buffer_radius_pixels(variant.water_buffer_m, grid.pixel_size_m())
            logging.info(f"Water buffer: {variant.water_buffer_m} m = {buffer_px} px")

        tiles = tile_windows(grid, tile_size, halo=buffer_px)
        pan = np.full(grid.shape, np.nan, dtype=np.float32)
        rgb = np.full(grid.shape + (3,), np.nan, dtype=np.float32)
        observations = np.zeros(grid.shape, dtype=np.uint16)

        logging.info(f"Processing {variant.name}: {len(scenes)} scenes, {len(tiles)} tiles, {workers} workers")
        pbar = tqdm(total=len(tiles), desc=variant.name, unit="tile", ncols=100)
        with concurrent.futures.ThreadPoolExecutor(max_workers=min(workers, len(tiles))) as ex:
            futures = {
                ex.submit(process_tile, tile, grid, scenes, archive, variant, water_source, buffer_px): tile.index
                for tile in tiles
            }
            for fut in concurrent.futures.as_completed(futures):
                res = fut.result()
                rows, cols = res.window.grid_slice
                pan[rows, cols] = res.pan
                rgb[rows, cols] = res.rgb
                observations[rows, cols] = res.observations
                pbar.update(1)
        pbar.close()

        exporter = exporter or GeoTiffExporter(out_dir)
        clip_region = None if variant.use_region_bounds else region
        paths = [exporter.export(task) for task in build_export_tasks(variant, grid, pan, rgb, clip_region)]
        logging.info(f"Variant {variant.name} complete: {len(paths)} product(s) written")
        return PipelineResult(grid=grid, pan=pan, rgb=rgb, observations=observations,
                              scene_count=len(scenes), paths=paths)
    finally:
        logger.removeHandler(run_file_handler)
        run_file_handler.close()
