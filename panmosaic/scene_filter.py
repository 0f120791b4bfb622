"""
Scene selection by acquisition date windows, sun elevation and WRS tile.
"""
import logging
from datetime import date, datetime
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

from .exceptions import ConfigurationError
from .models import DateRange, ObservationSet, Scene

TilePredicate = Callable[[Scene], bool]


def _parse_date(value: Union[str, date]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value).strip()).date()
    except ValueError:
        raise ConfigurationError(f"Malformed date: {value!r} (expected YYYY-MM-DD)")


def parse_date_range(text: str) -> DateRange:
    """Parse 'YYYY-MM-DD/YYYY-MM-DD' (or 'start,end') into an inclusive DateRange."""
    sep = "/" if "/" in text else ","
    parts = text.split(sep)
    if len(parts) != 2:
        raise ConfigurationError(f"Malformed date range: {text!r} (expected START/END)")
    return DateRange(_parse_date(parts[0]), _parse_date(parts[1]))


def date_ranges_from_pairs(pairs: Iterable[Tuple[Union[str, date], Union[str, date]]]) -> Tuple[DateRange, ...]:
    """Build DateRanges from (start, end) pairs of ISO strings or dates."""
    return tuple(DateRange(_parse_date(start), _parse_date(end)) for start, end in pairs)


def in_date_ranges(day: date, date_ranges: Sequence[DateRange]) -> bool:
    """True if ``day`` falls in any of the ranges. No ranges means no date restriction."""
    if not date_ranges:
        return True
    return any(r.contains(day) for r in date_ranges)


def wrs_row_outside(low: int, high: int) -> TilePredicate:
    """
    Tile predicate keeping scenes whose WRS row is below ``low`` or above ``high``.

    Used to drop a band of WRS rows that produces seam artifacts.
    """
    if low > high:
        raise ConfigurationError(f"WRS row exclusion band is empty: low={low} > high={high}")

    def predicate(scene: Scene) -> bool:
        return scene.wrs_row < low or scene.wrs_row > high

    predicate.__name__ = f"wrs_row_outside_{low}_{high}"
    return predicate


def filter_scenes(scenes: Iterable[Scene],
                  date_ranges: Sequence[DateRange] = (),
                  min_sun_elevation: Optional[float] = None,
                  tile_predicate: Optional[TilePredicate] = None,
                  collections: Optional[Sequence[str]] = None) -> ObservationSet:
    """
    Select the observation set for a composite.

    A scene is kept when its acquisition date falls in the union of
    ``date_ranges``, its sun elevation is strictly greater than
    ``min_sun_elevation`` (when given), ``tile_predicate`` accepts it (when
    given) and it belongs to one of ``collections`` (when given).

    Returns:
        Matching scenes sorted by (acquired, scene_id). May be empty.
    """
    kept: List[Scene] = []
    rejected = {"date": 0, "sun": 0, "tile": 0, "collection": 0}
    for scene in scenes:
        if collections and scene.collection not in collections:
            rejected["collection"] += 1
            continue
        if not in_date_ranges(scene.acquired, date_ranges):
            rejected["date"] += 1
            continue
        if min_sun_elevation is not None and not scene.sun_elevation > min_sun_elevation:
            rejected["sun"] += 1
            continue
        if tile_predicate is not None and not tile_predicate(scene):
            rejected["tile"] += 1
            continue
        kept.append(scene)

    kept.sort(key=lambda s: (s.acquired, s.scene_id))
    logging.info("Scene filter kept %d scenes (rejected: date=%d, sun=%d, tile=%d, collection=%d)",
                 len(kept), rejected["date"], rejected["sun"], rejected["tile"], rejected["collection"])
    if not kept:
        logging.warning("No scenes matched the filter; the composite will be empty (no data everywhere)")
    return kept
