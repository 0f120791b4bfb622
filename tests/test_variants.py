from dataclasses import replace
from datetime import date

import pytest

from panmosaic.config import EE_L8_TOA_T1, EE_L8_TOA_T2
from panmosaic.exceptions import ConfigurationError
from panmosaic.variants import VARIANTS, get_variant

from conftest import make_scene


def test_all_variants_registered():
    assert set(VARIANTS) == {"alaska", "greenland", "hma", "panarctic"}
    for variant in VARIANTS.values():
        assert variant.gamma == (1.05, 1.08, 0.8)
        assert variant.scale == 15.0
        assert variant.max_pixels == 10 ** 13


def test_export_descriptions():
    assert get_variant("alaska").description("pan") == "ak_l8_pan_3857_15m"
    assert get_variant("greenland").description("rgb") == "grl_l8_rgb_3413_15m"
    assert get_variant("panarctic").description("red") == "panarctic_l8_red_3413_15m"
    assert replace(get_variant("hma"), scale=7.5).description("pan") == "hma_l8_pan_3857_7.5m"


def test_alaska_seasons():
    alaska = get_variant("alaska")
    assert len(alaska.date_ranges) == 6
    assert alaska.date_ranges[0].start == date(2013, 5, 20)
    assert alaska.date_ranges[0].end == date(2013, 9, 14)
    assert alaska.date_ranges[-1].end == date(2018, 9, 14)
    assert alaska.min_sun_elevation == 35.0


def test_panarctic_parameters():
    arctic = get_variant("panarctic")
    assert len(arctic.date_ranges) == 8
    assert arctic.water_buffer_m == 2000.0
    assert arctic.water_fill == "000044"
    assert arctic.use_region_bounds
    assert arctic.rgb_export == "split"
    assert arctic.parallel_scale == 16
    assert arctic.tile_predicate(make_scene("a", "2015-06-01", wrs_row=10))
    assert not arctic.tile_predicate(make_scene("b", "2015-06-01", wrs_row=100))


def test_greenland_merges_tiers():
    greenland = get_variant("greenland")
    assert greenland.collections == (EE_L8_TOA_T1, EE_L8_TOA_T2)
    assert greenland.date_ranges == ()
    assert greenland.norm_window == (0.1, 0.85)


def test_hma_masks_cloud_shadow_and_exports_float_pan():
    hma = get_variant("hma")
    assert "cloud_shadow" in hma.qa_flags and "cirrus" not in hma.qa_flags
    assert hma.min_sun_elevation is None
    assert hma.pan_export == "float"


@pytest.mark.parametrize("kwargs", [
    {"pan_export": "int16"},
    {"rgb_export": "rgba"},
    {"pan_export": None, "rgb_export": None},
    {"norm_window": (0.5, 0.5)},
    {"parallel_scale": 0},
])
def test_invalid_variant(kwargs):
    with pytest.raises(ConfigurationError):
        replace(get_variant("alaska"), **kwargs)


def test_unknown_variant():
    with pytest.raises(ConfigurationError):
        get_variant("antarctica")


@pytest.mark.parametrize("name,last_kept,first_dropped", [
    ("alaska", date(2013, 9, 14), date(2013, 9, 15)),
    ("alaska", date(2014, 9, 17), date(2014, 9, 18)),
    ("panarctic", date(2020, 9, 14), date(2020, 9, 15)),
    ("hma", date(2018, 3, 20), date(2018, 3, 21)),
])
def test_season_ends_keep_last_day_and_drop_cutoff(name, last_kept, first_dropped):
    ranges = get_variant(name).date_ranges
    assert any(r.contains(last_kept) for r in ranges)
    assert not any(r.contains(first_dropped) for r in ranges)
