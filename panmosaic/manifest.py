"""
Scene manifest CSV: one row per scene with its metadata and per-band raster paths.

Columns: scene_id, collection, acquired (YYYY-MM-DD), sun_elevation, wrs_path,
wrs_row, one column per band (B2, B3, B4, B8, BQA, ...) holding a raster path
relative to the manifest, and optional reflectance_scale / reflectance_offset.
"""
import os
import csv
from typing import Dict, List

from .exceptions import ConfigurationError
from .models import Scene
from .scene_filter import _parse_date

METADATA_COLUMNS = ["scene_id", "collection", "acquired", "sun_elevation", "wrs_path", "wrs_row",
                    "reflectance_scale", "reflectance_offset"]
REQUIRED_COLUMNS = ["scene_id", "acquired", "sun_elevation", "wrs_path", "wrs_row"]


def read_scene_manifest(path: str) -> List[Scene]:
    """Read a scene manifest; band paths are resolved relative to the manifest's directory."""
    if not os.path.exists(path):
        raise ConfigurationError(f"Scene manifest not found: {path}")
    base_dir = os.path.dirname(os.path.abspath(path))
    scenes = []
    with open(path, newline="") as f:
        reader = csv.DictReader(f)
        missing = [c for c in REQUIRED_COLUMNS if c not in (reader.fieldnames or [])]
        if missing:
            raise ConfigurationError(f"Scene manifest {path} is missing columns: {', '.join(missing)}")
        band_columns = [c for c in reader.fieldnames if c not in METADATA_COLUMNS]
        for line_no, row in enumerate(reader, start=2):
            try:
                sources: Dict[str, str] = {}
                for band in band_columns:
                    value = (row.get(band) or "").strip()
                    if value:
                        sources[band] = value if os.path.isabs(value) else os.path.join(base_dir, value)
                scenes.append(Scene(
                    scene_id=row["scene_id"].strip(),
                    acquired=_parse_date(row["acquired"]),
                    sun_elevation=float(row["sun_elevation"]),
                    wrs_path=int(row["wrs_path"]),
                    wrs_row=int(row["wrs_row"]),
                    collection=(row.get("collection") or "").strip(),
                    sources=sources,
                    reflectance_scale=float((row.get("reflectance_scale") or "").strip() or 1.0),
                    reflectance_offset=float((row.get("reflectance_offset") or "").strip() or 0.0),
                ))
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"{path}:{line_no}: invalid manifest row: {e}")
    return scenes

