"""Raster layers queried by geographic coordinate, and GeoTIFF helpers."""

import logging
import math
import os
from typing import Dict, Optional, Tuple

import numpy as np
import rasterio
from rasterio.crs import CRS
from rasterio.errors import RasterioIOError
from rasterio.transform import Affine
from rasterio.warp import transform as warp_transform

from nepal_landslides.errors import MissingFeatureValue, RasterExtentMismatch
from nepal_landslides.geometry import GeoPoint

logger = logging.getLogger(__name__)

WGS84 = CRS.from_epsg(4326)


class ArrayLayer:
    """
    A single-band grid held in memory.

    Lookups take WGS84 longitude/latitude; when the layer has a projected or
    otherwise non-WGS84 CRS the coordinates are reprojected first. A point
    outside the grid raises ``RasterExtentMismatch``; a cell equal to
    ``nodata`` (or NaN) raises ``MissingFeatureValue``.
    """

    def __init__(
        self,
        name: str,
        data: np.ndarray,
        transform: Affine,
        nodata: Optional[float] = None,
        crs=None,
    ):
        if data.ndim != 2:
            raise ValueError(f"Layer '{name}' must be 2-D, got shape {data.shape}")
        self.name = name
        self.data = data
        self.transform = transform
        self.nodata = nodata
        self.crs = CRS.from_user_input(crs) if crs is not None else None
        self._inverse = ~transform

    @property
    def shape(self) -> Tuple[int, int]:
        return self.data.shape

    def _needs_reprojection(self) -> bool:
        return self.crs is not None and self.crs != WGS84

    def _valid(self, values: np.ndarray) -> np.ndarray:
        valid = np.isfinite(values)
        if self.nodata is not None and not math.isnan(self.nodata):
            valid &= values != self.nodata
        return valid

    def valid_mask(self) -> np.ndarray:
        return self._valid(self.data.astype(np.float64))

    def _grid_index(self, lons: np.ndarray, lats: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        xs = np.asarray(lons, dtype=np.float64)
        ys = np.asarray(lats, dtype=np.float64)
        if self._needs_reprojection():
            xs, ys = warp_transform(WGS84, self.crs, xs.ravel().tolist(), ys.ravel().tolist())
            xs = np.asarray(xs, dtype=np.float64)
            ys = np.asarray(ys, dtype=np.float64)
        inv = self._inverse
        cols = np.floor(inv.a * xs + inv.b * ys + inv.c)
        rows = np.floor(inv.d * xs + inv.e * ys + inv.f)
        return rows, cols

    def values_at(self, lons: np.ndarray, lats: np.ndarray) -> np.ndarray:
        """Vectorised lookup; NaN marks points off the grid or on no-data cells."""
        rows, cols = self._grid_index(lons, lats)
        height, width = self.data.shape
        inside = (rows >= 0) & (rows < height) & (cols >= 0) & (cols < width)
        out = np.full(rows.shape, np.nan, dtype=np.float64)
        r = rows[inside].astype(np.int64)
        c = cols[inside].astype(np.int64)
        values = self.data[r, c].astype(np.float64)
        values[~self._valid(values)] = np.nan
        out[inside] = values
        return out

    def sample(self, point: GeoPoint) -> float:
        """Value at ``point``; raises when the layer has nothing there."""
        rows, cols = self._grid_index(
            np.array([point.longitude]), np.array([point.latitude])
        )
        row, col = rows[0], cols[0]
        height, width = self.data.shape
        if not (0 <= row < height and 0 <= col < width):
            raise RasterExtentMismatch(self.name, point.latitude, point.longitude)
        value = float(self.data[int(row), int(col)])
        if not self._valid(np.array([value]))[0]:
            raise MissingFeatureValue(self.name, point.latitude, point.longitude)
        return value

    def value_at(self, point: GeoPoint) -> Optional[float]:
        try:
            return self.sample(point)
        except MissingFeatureValue:
            return None

    def maximum(self) -> float:
        """Global maximum over valid cells."""
        values = self.data.astype(np.float64)
        valid = self._valid(values)
        if not np.any(valid):
            raise MissingFeatureValue(self.name, float("nan"), float("nan"), reason="no valid cells")
        return float(values[valid].max())

    def cell_centers(self, row_start: int = 0, row_stop: Optional[int] = None, stride: int = 1):
        """WGS84 lon/lat of cell centres for a block of rows (every ``stride``-th cell)."""
        height, width = self.data.shape
        row_stop = height if row_stop is None else min(row_stop, height)
        rows = np.arange(row_start, row_stop, stride, dtype=np.float64) + 0.5
        cols = np.arange(0, width, stride, dtype=np.float64) + 0.5
        cc, rr = np.meshgrid(cols, rows)
        t = self.transform
        xs = t.a * cc + t.b * rr + t.c
        ys = t.d * cc + t.e * rr + t.f
        if self._needs_reprojection():
            lons, lats = warp_transform(self.crs, WGS84, xs.ravel().tolist(), ys.ravel().tolist())
            xs = np.asarray(lons, dtype=np.float64).reshape(cc.shape)
            ys = np.asarray(lats, dtype=np.float64).reshape(cc.shape)
        return xs, ys


def open_geotiff(path: str, name: Optional[str] = None, band: int = 1) -> ArrayLayer:
    """Read one band of a GeoTIFF into an ``ArrayLayer``."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"Raster does not exist: {path}")
    layer_name = name or os.path.splitext(os.path.basename(path))[0]
    try:
        with rasterio.open(path) as src:
            data = src.read(band)
            transform = src.transform
            nodata = src.nodata
            crs = src.crs
    except RasterioIOError as exc:
        raise OSError(f"Failed to read raster {path}: {exc}") from exc
    logger.info(
        f"[open_geotiff] Loaded '{layer_name}' from {path} "
        f"({data.shape[0]}x{data.shape[1]}, nodata={nodata})"
    )
    return ArrayLayer(layer_name, data, transform, nodata=nodata, crs=crs)


def open_layers(paths: Dict[str, str]) -> Dict[str, ArrayLayer]:
    return {name: open_geotiff(path, name=name) for name, path in paths.items()}


def raster_profile(layer: ArrayLayer) -> Dict:
    """Minimal GeoTIFF profile matching a layer's grid."""
    height, width = layer.shape
    return {
        "driver": "GTiff",
        "height": height,
        "width": width,
        "count": 1,
        "crs": layer.crs,
        "transform": layer.transform,
    }


def save_geotiff(
    path: str,
    array: np.ndarray,
    reference_profile: Dict,
    dtype: Optional[str] = None,
    nodata: Optional[float] = None,
) -> None:
    """Persist a numpy array to GeoTIFF using a reference profile for spatial metadata."""
    data = array
    if data.ndim == 2:
        data = data[np.newaxis, ...]
    profile = reference_profile.copy()
    profile.update(
        {
            "driver": "GTiff",
            "count": data.shape[0],
            "dtype": dtype or data.dtype.name,
        }
    )
    if nodata is not None:
        profile["nodata"] = nodata
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    try:
        with rasterio.open(path, "w", **profile) as dst:
            dst.write(data.astype(profile["dtype"]))
    except RasterioIOError as exc:
        raise OSError(f"Failed to write raster {path}: {exc}") from exc
    logger.info(f"[save_geotiff] Saved {path}")
