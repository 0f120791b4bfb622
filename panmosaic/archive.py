"""
Scene archives: list scene metadata and load per-band pixels onto an output grid.
"""
import logging
from dataclasses import replace
from typing import Dict, List, Optional, Sequence

import numpy as np
from rasterio.warp import Resampling

from .config import QA_BAND
from .exceptions import MissingBandError
from .manifest import read_scene_manifest
from .models import DateRange, Grid, Region, Scene
from .raster_processing import raster_footprint, read_band_to_grid
from .scene_filter import in_date_ranges


class SceneArchive:
    """
    Source of scenes for a composite.

    ``list_scenes`` returns metadata only; ``load_scene`` returns a copy of the
    scene with float32 reflectance bands (NaN = no data) and its QA band on
    ``grid``. Archives that know scene footprints skip scenes not overlapping
    ``region``.
    """

    def list_scenes(self, date_ranges: Sequence[DateRange] = (),
                    collections: Optional[Sequence[str]] = None,
                    region: Optional[Region] = None) -> List[Scene]:
        raise NotImplementedError

    def load_scene(self, scene: Scene, bands: Sequence[str], grid: Grid) -> Scene:
        raise NotImplementedError


class LocalArchive(SceneArchive):
    """
    Scenes stored as local rasters and described by a scene manifest CSV.

    Each scene's footprint is the lon/lat envelope of its QA raster.
    """

    def __init__(self, manifest_path: str):
        self.manifest_path = manifest_path
        self._scenes = [
            replace(s, footprint=raster_footprint(s.sources[QA_BAND])) if QA_BAND in s.sources else s
            for s in read_scene_manifest(manifest_path)
        ]
        logging.info(f"Loaded {len(self._scenes)} scenes from manifest {manifest_path}")

    def list_scenes(self, date_ranges: Sequence[DateRange] = (),
                    collections: Optional[Sequence[str]] = None,
                    region: Optional[Region] = None) -> List[Scene]:
        return [
            s for s in self._scenes
            if in_date_ranges(s.acquired, date_ranges)
            and (not collections or s.collection in collections)
            and (region is None or s.overlaps(region.geometry))
        ]

    def load_scene(self, scene: Scene, bands: Sequence[str], grid: Grid) -> Scene:
        """
        Resample the scene's bands onto ``grid``.

        Reflectance bands use bilinear resampling and the scene's reflectance
        scale/offset; the QA band uses nearest resampling so bit flags survive.

        Raises:
            MissingBandError: a requested band (or the QA band) has no raster
        """
        for band in list(bands) + [QA_BAND]:
            if band not in scene.sources:
                raise MissingBandError(band, scene.sources.keys())

        pixels: Dict[str, np.ndarray] = {}
        for band in bands:
            pixels[band] = read_band_to_grid(
                scene.sources[band], grid,
                resampling=Resampling.bilinear,
                scale=scene.reflectance_scale,
                offset=scene.reflectance_offset,
            )
        qa = read_band_to_grid(scene.sources[QA_BAND], grid, resampling=Resampling.nearest)
        logging.debug(f"Loaded scene {scene.scene_id} ({', '.join(bands)}) on {grid.width}x{grid.height} grid")
        return scene.with_pixels(pixels, qa)
