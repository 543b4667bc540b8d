import numpy as np
import pytest
import rasterio
from rasterio.transform import from_origin

from nepal_landslides.rasters import ArrayLayer



@pytest.fixture
def two_by_two_layer():
    """Cells centred on integer lon/lat: (0, 0) is no-data, (1, 1) holds 12.5."""
    data = np.array([[3.0, 12.5], [-9999.0, 7.0]], dtype=np.float32)
    return ArrayLayer("value", data, from_origin(-0.5, 1.5, 1.0, 1.0), nodata=-9999.0, crs="EPSG:4326")


def write_geotiff(path, data, west, north, res, nodata=None, crs="EPSG:4326"):
    profile = {
        "driver": "GTiff",
        "height": data.shape[0],
        "width": data.shape[1],
        "count": 1,
        "dtype": data.dtype.name,
        "crs": crs,
        "transform": from_origin(west, north, res, res),
    }
    if nodata is not None:
        profile["nodata"] = nodata
    with rasterio.open(path, "w", **profile) as dst:
        dst.write(data, 1)
    return str(path)


@pytest.fixture
def geotiff_writer():
    return write_geotiff
