import itertools

import numpy as np
import pytest

from panmosaic.cloud_detection import mask_scene
from panmosaic.exceptions import ConfigurationError, MissingBandError
from panmosaic.mosaic_builder import median_composite, mosaic_layers

from conftest import CLOUD, make_scene, uniform_bands

BANDS = ("B2", "B3", "B4", "B8")


def _masked_scene(scene_id, value, cloudy=False, shape=(2, 2)):
    qa = np.full(shape, CLOUD if cloudy else 0, dtype=np.uint16)
    scene = make_scene(scene_id, "2016-07-01", bands=uniform_bands(shape, value), qa=qa)
    return mask_scene(scene, flags=("cloud", "cirrus"))


def test_median_ignores_masked_observation():
    scenes = [_masked_scene("a", 0.10), _masked_scene("b", 0.12), _masked_scene("c", 0.50, cloudy=True)]
    composite = median_composite(scenes, BANDS)
    for band in BANDS:
        np.testing.assert_allclose(composite.band(band), 0.11, rtol=1e-6)
    np.testing.assert_array_equal(composite.observations, 2)


def test_median_is_order_independent():
    rng = np.random.default_rng(7)
    shape = (5, 4)
    scenes = []
    for i in range(4):
        bands = {b: rng.random(shape).astype(np.float32) for b in BANDS}
        qa = np.where(rng.random(shape) < 0.3, CLOUD, 0).astype(np.uint16)
        scenes.append(mask_scene(make_scene(f"s{i}", "2016-07-01", bands=bands, qa=qa)))

    reference = median_composite(scenes, BANDS)
    for perm in itertools.permutations(scenes):
        result = median_composite(list(perm), BANDS)
        for band in BANDS:
            np.testing.assert_array_equal(result.band(band), reference.band(band))


def test_all_masked_pixel_is_no_data():
    scenes = [_masked_scene("a", 0.3, cloudy=True), _masked_scene("b", 0.4, cloudy=True)]
    composite = median_composite(scenes, BANDS)
    assert np.all(np.isnan(composite.band("B8")))
    assert np.all(composite.observations == 0)


def test_empty_observation_set_gives_no_data_everywhere():
    composite = median_composite([], BANDS, shape=(3, 2))
    assert composite.shape == (3, 2)
    assert all(np.all(np.isnan(composite.band(b))) for b in BANDS)


def test_empty_observation_set_needs_shape():
    with pytest.raises(ConfigurationError):
        median_composite([], BANDS)


def test_parallel_scale_does_not_change_result():
    rng = np.random.default_rng(3)
    shape = (17, 5)
    scenes = []
    for i in range(5):
        bands = {b: rng.random(shape).astype(np.float32) for b in BANDS}
        bands["B8"][rng.random(shape) < 0.4] = np.nan
        scenes.append(make_scene(f"s{i}", "2016-07-01", bands=bands, qa=np.zeros(shape, np.uint16)))

    serial = median_composite(scenes, BANDS, parallel_scale=1)
    for scale in (2, 4, 16, 64):
        parallel = median_composite(scenes, BANDS, parallel_scale=scale)
        for band in BANDS:
            np.testing.assert_array_equal(parallel.band(band), serial.band(band))


def test_invalid_parallel_scale():
    with pytest.raises(ConfigurationError):
        median_composite([_masked_scene("a", 0.1)], BANDS, parallel_scale=0)


def test_missing_band_raises():
    scene = make_scene("a", "2016-07-01", bands={"B2": np.zeros((2, 2), np.float32)}, qa=np.zeros((2, 2)))
    with pytest.raises(MissingBandError):
        median_composite([scene], ("B2", "B8"))


def test_composite_band_lookup_raises_for_unknown_band():
    composite = median_composite([_masked_scene("a", 0.1)], BANDS)
    with pytest.raises(MissingBandError):
        composite.band("B10")


def test_mosaic_layers_first_defined_layer_wins():
    top = np.full((1, 3, 3), np.nan, dtype=np.float32)
    top[0, 0] = (1.0, 1.0, 1.0)
    middle = np.full((1, 3, 3), np.nan, dtype=np.float32)
    middle[0, 0] = (0.5, 0.5, 0.5)
    middle[0, 1] = (0.5, 0.5, 0.5)
    # partly defined pixels count as undefined
    middle[0, 2] = (0.5, np.nan, 0.5)

    out = mosaic_layers([top, middle])
    np.testing.assert_array_equal(out[0, 0], (1.0, 1.0, 1.0))
    np.testing.assert_array_equal(out[0, 1], (0.5, 0.5, 0.5))
    assert np.all(np.isnan(out[0, 2]))
