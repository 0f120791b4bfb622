"""
Landsat 8 Pan-Sharpened Mosaic Package

Builds cloud-free, pan-sharpened Landsat 8 TOA composite mosaics over large
regions: scene selection, BQA cloud masking, per-pixel median compositing,
HSV pan-sharpening, colour correction, buffered land/water fill and GeoTIFF
export.
"""

__version__ = "1.0.0"

# Main entry points
from .processing import run_variant, process_tile
from .variants import VARIANTS, get_variant

# Core functions
from .cloud_detection import clear_mask, mask_scene
from .scene_filter import filter_scenes
from .mosaic_builder import median_composite, mosaic_layers
from .image_preparation import pan_sharpen
from .visualization import color_correct
from .water_mask import composite_land_water

__all__ = [
    'run_variant',
    'process_tile',
    'VARIANTS',
    'get_variant',
    'clear_mask',
    'mask_scene',
    'filter_scenes',
    'median_composite',
    'mosaic_layers',
    'pan_sharpen',
    'color_correct',
    'composite_land_water',
]
