"""
Command line interface: list variants and run one variant end to end.
"""
import os
import sys
import logging
import argparse
from dataclasses import replace
from datetime import datetime
from typing import List, Optional

from .config import AUX_WATER_VALUE, DEFAULT_TILE_PIX, DEFAULT_WORKERS, OUTDIR_DEFAULT
from .exceptions import ConfigurationError, DownloadError
from .scene_filter import parse_date_range
from .variants import VARIANTS, get_variant


def setup_logging(log_dir: str = "logs") -> str:
    """
    Console handler at INFO, timestamped file handler at DEBUG; third-party
    libraries quieted to WARNING.

    Returns:
        Path of the log file
    """
    os.makedirs(log_dir, exist_ok=True)
    log_filepath = os.path.join(log_dir, f"panmosaic_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log")

    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG)
    for name in ("rasterio", "rasterio._env", "urllib3", "urllib3.connectionpool",
                 "google.auth", "google.auth.transport", "fiona"):
        logging.getLogger(name).setLevel(logging.WARNING)
    for name in ("googleapiclient", "googleapiclient.http", "googleapiclient.discovery"):
        logging.getLogger(name).setLevel(logging.ERROR)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s: %(message)s"))

    file_handler = logging.FileHandler(log_filepath, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] [%(filename)s:%(lineno)d] %(message)s"))

    logger.addHandler(console_handler)
    logger.addHandler(file_handler)
    logging.info(f"Logging initialized. Log file: {log_filepath}")
    return log_filepath


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="panmosaic",
                                description="Cloud-free pan-sharpened Landsat 8 composite mosaics")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("list", help="List the built-in variants")

    p_run = sub.add_parser("run", help="Build and export one variant")
    p_run.add_argument("variant", choices=sorted(VARIANTS))
    source = p_run.add_mutually_exclusive_group(required=True)
    source.add_argument("--manifest", help="Scene manifest CSV for a local archive")
    source.add_argument("--earth-engine", action="store_true", dest="earth_engine",
                        help="Read scenes from Earth Engine")
    p_run.add_argument("--project", help="Earth Engine cloud project (default: $GEE_PROJECT or $GOOGLE_CLOUD_PROJECT)")
    p_run.add_argument("--key-file", dest="key_file", help="Earth Engine service account key (JSON)")
    p_run.add_argument("--water-mask", dest="water_mask",
                       help="Local land/water raster; defaults to MOD44W with --earth-engine")
    p_run.add_argument("--water-value", type=int, default=AUX_WATER_VALUE, dest="water_value",
                       help=f"Water mask value meaning water (default {AUX_WATER_VALUE})")
    p_run.add_argument("--region", help="Boundary file (shapefile, GeoJSON, ...) replacing the built-in region")
    p_run.add_argument("--out", default=OUTDIR_DEFAULT, help=f"Output directory (default {OUTDIR_DEFAULT})")
    p_run.add_argument("--workers", type=int, default=DEFAULT_WORKERS)
    p_run.add_argument("--tile-size", type=int, default=DEFAULT_TILE_PIX, dest="tile_size")
    p_run.add_argument("--scale", type=float, help="Pixel size in CRS units")
    p_run.add_argument("--crs", help="Output CRS, e.g. EPSG:3413")
    p_run.add_argument("--date-range", action="append", dest="date_ranges", metavar="START/END",
                       help="Acquisition window (repeatable); replaces the variant's seasons")
    return p


def _cmd_list():
    for name in sorted(VARIANTS):
        v = VARIANTS[name]
        products = [p for p in (v.pan_export and f"pan:{v.pan_export}", v.rgb_export) if p]
        print(f"{name:10s} {v.crs:10s} {v.scale:g}m window={v.norm_window} "
              f"scenes>{v.min_sun_elevation} products={','.join(products)}")


def _cmd_run(args) -> int:
    from .processing import run_variant
    from .raster_processing import LocalWaterMask
    from .regions import load_region

    variant = get_variant(args.variant)
    overrides = {}
    if args.scale is not None:
        overrides["scale"] = args.scale
    if args.crs:
        overrides["crs"] = args.crs
    if args.date_ranges:
        overrides["date_ranges"] = tuple(parse_date_range(text) for text in args.date_ranges)
    if overrides:
        variant = replace(variant, **overrides)
        logging.info(f"Variant overrides: {overrides}")

    region = load_region(args.region) if args.region else None

    if args.earth_engine:
        from .ee_collections import EarthEngineArchive, EarthEngineWaterMask, initialize_earth_engine
        from .regions import get_region

        project = args.project or os.environ.get("GEE_PROJECT") or os.environ.get("GOOGLE_CLOUD_PROJECT")
        initialize_earth_engine(project=project, key_file=args.key_file)
        archive = EarthEngineArchive(variant.collections, region or get_region(variant.region))
        water_source = (LocalWaterMask(args.water_mask, water_value=args.water_value) if args.water_mask
                        else EarthEngineWaterMask(water_value=args.water_value))
    else:
        from .archive import LocalArchive

        archive = LocalArchive(args.manifest)
        water_source = LocalWaterMask(args.water_mask, water_value=args.water_value) if args.water_mask else None

    result = run_variant(variant, archive, args.out, water_source=water_source, region=region,
                         tile_size=args.tile_size, workers=args.workers)
    for path in result.paths:
        print(path)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.cmd == "list":
        _cmd_list()
        return 0

    setup_logging()
    try:
        return _cmd_run(args)
    except ConfigurationError as e:
        logging.error(f"Configuration error: {e}")
        return 2
    except DownloadError as e:
        logging.error(f"Archive download failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
