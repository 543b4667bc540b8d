import numpy as np
import pytest
from rasterio.transform import from_origin
from rasterio.warp import transform as warp_transform

from nepal_landslides.errors import MissingFeatureValue, RasterExtentMismatch
from nepal_landslides.geometry import GeoPoint
from nepal_landslides.rasters import ArrayLayer, open_geotiff, raster_profile, save_geotiff


def test_sample_reads_the_containing_cell(two_by_two_layer):
    assert two_by_two_layer.sample(GeoPoint(1.0, 1.0)) == 12.5
    assert two_by_two_layer.sample(GeoPoint(1.0, 0.0)) == 3.0
    assert two_by_two_layer.sample(GeoPoint(0.0, 1.0)) == 7.0


def test_nodata_cell_is_missing(two_by_two_layer):
    with pytest.raises(MissingFeatureValue):
        two_by_two_layer.sample(GeoPoint(0.0, 0.0))
    assert two_by_two_layer.value_at(GeoPoint(0.0, 0.0)) is None


def test_point_outside_extent_is_missing(two_by_two_layer):
    with pytest.raises(RasterExtentMismatch):
        two_by_two_layer.sample(GeoPoint(5.0, 5.0))
    assert two_by_two_layer.value_at(GeoPoint(-3.0, 0.0)) is None


def test_nan_cells_are_missing():
    layer = ArrayLayer("p", np.array([[np.nan, 1.0]]), from_origin(0.0, 1.0, 1.0, 1.0))
    assert layer.value_at(GeoPoint(0.5, 0.5)) is None
    assert layer.value_at(GeoPoint(0.5, 1.5)) == 1.0


def test_values_at_marks_missing_with_nan(two_by_two_layer):
    values = two_by_two_layer.values_at(np.array([0.0, 1.0, 9.0]), np.array([0.0, 1.0, 9.0]))
    assert np.isnan(values[0])
    assert values[1] == 12.5
    assert np.isnan(values[2])


def test_maximum_ignores_nodata(two_by_two_layer):
    assert two_by_two_layer.maximum() == 12.5


def test_maximum_of_empty_layer_raises():
    layer = ArrayLayer("empty", np.full((2, 2), -1.0), from_origin(0, 2, 1, 1), nodata=-1.0)
    with pytest.raises(MissingFeatureValue):
        layer.maximum()


def test_geotiff_round_trip(tmp_path, two_by_two_layer):
    path = str(tmp_path / "out" / "value.tif")
    save_geotiff(path, two_by_two_layer.data, raster_profile(two_by_two_layer), dtype="float32", nodata=-9999.0)
    layer = open_geotiff(path)
    assert layer.name == "value"
    assert layer.sample(GeoPoint(1.0, 1.0)) == 12.5
    assert layer.value_at(GeoPoint(0.0, 0.0)) is None


def test_open_missing_geotiff_names_the_path(tmp_path):
    path = str(tmp_path / "missing.tif")
    with pytest.raises(FileNotFoundError, match="missing.tif"):
        open_geotiff(path)


def test_projected_layer_reprojects_lookups(tmp_path, geotiff_writer):
    xs, ys = warp_transform("EPSG:4326", "EPSG:32645", [85.30], [27.70])
    west = np.floor(xs[0] / 1000.0) * 1000.0 - 1000.0
    north = np.floor(ys[0] / 1000.0) * 1000.0 + 2000.0
    data = np.arange(9, dtype=np.float32).reshape(3, 3)
    path = geotiff_writer(tmp_path / "utm.tif", data, west, north, 1000.0, crs="EPSG:32645")

    layer = open_geotiff(path)
    row = int((north - ys[0]) // 1000.0)
    col = int((xs[0] - west) // 1000.0)
    assert layer.sample(GeoPoint(27.70, 85.30)) == data[row, col]
