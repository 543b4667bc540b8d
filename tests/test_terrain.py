import os

import numpy as np
import pytest
from rasterio.transform import from_origin

from nepal_landslides.rasters import open_geotiff
from nepal_landslides.terrain import (
    TERRAIN_LAYERS,
    cell_size_meters,
    compute_terrain_derivatives,
    d8_flow_accumulation,
    derive_terrain,
    fill_nodata,
)

CELL = 30.0


def _grid(elevation):
    return from_origin(500000.0, 3000000.0, CELL, CELL)


def test_slope_and_aspect_of_a_plane_rising_east():
    cols = np.arange(8, dtype=np.float64)
    elevation = np.tile(cols * CELL * 0.1, (6, 1))
    valid = np.ones_like(elevation, dtype=bool)
    out = compute_terrain_derivatives(elevation, _grid(elevation), valid)

    interior = (slice(1, -1), slice(1, -1))
    np.testing.assert_allclose(out["slope"][interior], np.degrees(np.arctan(0.1)), rtol=1e-5)
    # Surface falls toward the west.
    np.testing.assert_allclose(out["aspect"][interior], 270.0, atol=1e-4)
    np.testing.assert_allclose(out["plan_curvature"][interior], 0.0, atol=1e-6)


def test_aspect_of_a_plane_rising_south_faces_north():
    rows = np.arange(6, dtype=np.float64)
    elevation = np.tile((rows * CELL * 0.2)[:, np.newaxis], (1, 8))
    out = compute_terrain_derivatives(elevation, _grid(elevation), np.ones_like(elevation, dtype=bool))
    np.testing.assert_allclose(out["aspect"][1:-1, 1:-1], 0.0, atol=1e-4)


def test_flow_accumulates_along_the_slope():
    elevation = np.tile(np.array([4.0, 3.0, 2.0, 1.0]), (3, 1))
    flow = d8_flow_accumulation(elevation, np.ones_like(elevation, dtype=bool), CELL, CELL)
    np.testing.assert_array_equal(flow, np.tile([1.0, 2.0, 3.0, 4.0], (3, 1)))


def test_flow_converges_into_a_pit():
    r, c = np.indices((3, 3))
    elevation = ((r - 1) ** 2 + (c - 1) ** 2).astype(np.float64)
    flow = d8_flow_accumulation(elevation, np.ones((3, 3), dtype=bool), CELL, CELL)
    assert flow[1, 1] == 9.0
    assert flow[0, 0] == 1.0


def test_invalid_cells_are_nan_and_do_not_contribute_flow():
    elevation = np.tile(np.array([4.0, 3.0, 2.0, 1.0]), (3, 1))
    valid = np.tile(np.array([False, True, True, True]), (3, 1))
    out = compute_terrain_derivatives(elevation, _grid(elevation), valid)
    assert np.isnan(out["slope"][0, 0])
    assert out["flow_accumulation"][0, 3] == 3.0


def test_fill_nodata_uses_nearest_valid_value():
    array = np.array([[1.0, 0.0, 5.0]])
    filled = fill_nodata(array, np.array([[False, True, False]]))
    assert filled[0, 1] in (1.0, 5.0)
    with pytest.raises(ValueError):
        fill_nodata(array, np.ones_like(array, dtype=bool))


def test_geographic_cell_size_is_scaled_to_meters():
    transform = from_origin(85.0, 28.0, 0.001, 0.001)
    cx, cy = cell_size_meters(transform, (0, 0), "EPSG:4326")
    assert cy == pytest.approx(110.574)
    assert cx == pytest.approx(111.32 * np.cos(np.radians(28.0)))
    assert cell_size_meters(transform, (10, 10), None) == (0.001, 0.001)


def test_derive_terrain_writes_one_raster_per_layer(tmp_path, geotiff_writer):
    rng = np.random.default_rng(0)
    yy, xx = np.mgrid[0:20, 0:20]
    dem = (1000.0 + 50.0 * np.sin(xx / 4.0) + 30.0 * yy + rng.normal(0, 1, (20, 20))).astype(np.float32)
    dem[0, 0] = -32768.0
    dem_path = geotiff_writer(tmp_path / "dem.tif", dem, 85.0, 28.0, 0.001, nodata=-32768.0)

    paths = derive_terrain(dem_path, str(tmp_path / "terrain"), sink_fill_kernel=3)
    assert sorted(paths) == sorted(TERRAIN_LAYERS)
    for name, path in paths.items():
        assert os.path.exists(path)
        layer = open_geotiff(path, name=name)
        assert layer.shape == (20, 20)
        assert not layer.valid_mask()[0, 0]
        assert layer.valid_mask()[1:, 1:].all()
