"""
Terrain derivatives computed from a digital elevation model.

Produces the slope, aspect, profile/plan curvature and D8 flow accumulation
rasters that the feature joiner samples at landslide and pseudo-absence points.
"""

import logging
import math
import os
from typing import Dict, Optional, Tuple

import numpy as np
from rasterio.crs import CRS
from rasterio.transform import Affine
from scipy.ndimage import distance_transform_edt, maximum_filter, minimum_filter

from nepal_landslides.rasters import open_geotiff, raster_profile, save_geotiff

logger = logging.getLogger(__name__)

TERRAIN_NODATA = -9999.0

TERRAIN_LAYERS = (
    "slope",
    "aspect",
    "profile_curvature",
    "plan_curvature",
    "flow_accumulation",
)

# Row/column offsets of the eight D8 neighbours.
D8_OFFSETS = [(-1, -1), (-1, 0), (-1, 1),
              (0, -1),           (0, 1),
              (1, -1),  (1, 0),  (1, 1)]

METERS_PER_DEGREE_LAT = 110_574.0
METERS_PER_DEGREE_LON_EQUATOR = 111_320.0


def fill_nodata(array: np.ndarray, invalid_mask: np.ndarray) -> np.ndarray:
    """Fill invalid cells by nearest-neighbour propagation."""
    if not np.any(invalid_mask):
        return array
    if np.all(invalid_mask):
        raise ValueError("DEM has no valid cells")
    filled = array.copy()
    _, indices = distance_transform_edt(invalid_mask, return_indices=True)
    filled[invalid_mask] = array[tuple(indices[:, invalid_mask])]
    return filled


def simple_sink_fill(array: np.ndarray, kernel_size: int) -> np.ndarray:
    if kernel_size < 3:
        return array
    size = (kernel_size, kernel_size)
    return minimum_filter(maximum_filter(array, size=size), size=size)


def cell_size_meters(transform: Affine, shape: Tuple[int, int], crs=None) -> Tuple[float, float]:
    """(x, y) cell size in metres; geographic grids are scaled at their centre latitude."""
    cellsize_x = abs(transform.a)
    cellsize_y = abs(transform.e)
    if crs is not None and CRS.from_user_input(crs).is_geographic:
        center_lat = transform.f + transform.e * shape[0] / 2.0
        cellsize_x *= METERS_PER_DEGREE_LON_EQUATOR * math.cos(math.radians(center_lat))
        cellsize_y *= METERS_PER_DEGREE_LAT
    return cellsize_x, cellsize_y


def d8_receivers(
    elevation: np.ndarray, valid_mask: np.ndarray, cellsize_x: float, cellsize_y: float
) -> np.ndarray:
    """
    Flat index of the steepest-descent neighbour of every cell, -1 for pits,
    flats and invalid cells. Ties go to the first neighbour in ``D8_OFFSETS``.
    """
    nrows, ncols = elevation.shape
    padded = np.pad(
        np.where(valid_mask, elevation, np.inf), 1, mode="constant", constant_values=np.inf
    )
    drops = np.empty((len(D8_OFFSETS), nrows, ncols), dtype=np.float64)
    for k, (dr, dc) in enumerate(D8_OFFSETS):
        dist = math.hypot(dr * cellsize_y, dc * cellsize_x)
        neighbour = padded[1 + dr : 1 + dr + nrows, 1 + dc : 1 + dc + ncols]
        with np.errstate(invalid="ignore"):
            drops[k] = (elevation - neighbour) / dist
    drops[~np.isfinite(drops)] = -np.inf

    best = np.argmax(drops, axis=0)
    best_drop = np.take_along_axis(drops, best[np.newaxis], axis=0)[0]
    offsets = np.array(D8_OFFSETS)
    rows, cols = np.indices((nrows, ncols))
    target = (rows + offsets[best, 0]) * ncols + (cols + offsets[best, 1])
    return np.where((best_drop > 0) & valid_mask, target, -1).ravel()


def d8_flow_accumulation(
    elevation: np.ndarray, valid_mask: np.ndarray, cellsize_x: float, cellsize_y: float
) -> np.ndarray:
    """Upstream cell count (including the cell itself) along D8 flow paths."""
    receivers = d8_receivers(elevation, valid_mask, cellsize_x, cellsize_y)
    flow = valid_mask.astype(np.float64).ravel()
    donors = receivers >= 0
    indegree = np.bincount(receivers[donors], minlength=flow.size)

    # Process cells in waves: a cell passes its flow on once all of its donors have.
    frontier = np.flatnonzero((indegree == 0) & valid_mask.ravel())
    while frontier.size:
        downstream = receivers[frontier]
        has_receiver = downstream >= 0
        src = frontier[has_receiver]
        dst = downstream[has_receiver]
        np.add.at(flow, dst, flow[src])
        np.subtract.at(indegree, dst, 1)
        frontier = np.unique(dst[indegree[dst] == 0])
    return flow.reshape(elevation.shape)


def compute_terrain_derivatives(
    elevation: np.ndarray,
    transform: Affine,
    valid_mask: np.ndarray,
    crs=None,
) -> Dict[str, np.ndarray]:
    """Derive slope, aspect, curvature and flow accumulation; invalid cells are NaN."""
    cellsize_x, cellsize_y = cell_size_meters(transform, elevation.shape, crs)
    logger.info(
        f"[compute_terrain_derivatives] Grid {elevation.shape[0]}x{elevation.shape[1]}, "
        f"cell size {cellsize_x:.1f} x {cellsize_y:.1f} m"
    )
    # Rows increase southward, so dz_drow is the negative northward gradient.
    dz_drow, dz_dx = np.gradient(elevation, cellsize_y, cellsize_x)
    slope = np.degrees(np.arctan(np.sqrt(dz_dx**2 + dz_drow**2)))
    aspect = (np.degrees(np.arctan2(-dz_dx, dz_drow)) + 360.0) % 360.0

    d_p_dy, d_p_dx = np.gradient(dz_dx, cellsize_y, cellsize_x)
    d_q_dy, d_q_dx = np.gradient(dz_drow, cellsize_y, cellsize_x)
    r = d_p_dx
    t = d_q_dy
    s = 0.5 * (d_p_dy + d_q_dx)

    denom = dz_dx**2 + dz_drow**2
    denom_safe = np.where(denom == 0.0, 1e-6, denom)
    plan_curvature = (dz_dx**2 * t - 2.0 * dz_dx * dz_drow * s + dz_drow**2 * r) / (
        denom_safe * np.sqrt(1.0 + denom_safe)
    )
    profile_curvature = (dz_dx**2 * r + 2.0 * dz_dx * dz_drow * s + dz_drow**2 * t) / (
        denom_safe * (1.0 + denom_safe) ** 1.5
    )

    flow = d8_flow_accumulation(elevation, valid_mask, cellsize_x, cellsize_y)
    logger.info(
        f"[compute_terrain_derivatives] Max flow accumulation: {flow[valid_mask].max() if valid_mask.any() else 0:.0f} cells"
    )

    derivatives = {
        "slope": slope,
        "aspect": aspect,
        "profile_curvature": profile_curvature,
        "plan_curvature": plan_curvature,
        "flow_accumulation": flow,
    }
    for key, value in derivatives.items():
        value = value.astype(np.float32)
        value[~valid_mask] = np.nan
        derivatives[key] = value
    return derivatives


def derive_terrain(
    dem_path: str, output_dir: str, sink_fill_kernel: int = 3
) -> Dict[str, str]:
    """Compute terrain derivatives for a DEM GeoTIFF and write one GeoTIFF each."""
    dem = open_geotiff(dem_path, name="elevation")
    valid_mask = dem.valid_mask()
    if not np.any(valid_mask):
        raise ValueError(f"DEM has no valid cells: {dem_path}")

    elevation = dem.data.astype(np.float64)
    elevation = fill_nodata(elevation, ~valid_mask)
    elevation = simple_sink_fill(elevation, sink_fill_kernel)
    logger.info(f"[derive_terrain] Conditioned DEM (sink fill kernel={sink_fill_kernel})")

    derivatives = compute_terrain_derivatives(elevation, dem.transform, valid_mask, dem.crs)
    profile = raster_profile(dem)

    paths: Dict[str, str] = {}
    for name, array in derivatives.items():
        out = np.where(np.isfinite(array), array, TERRAIN_NODATA).astype(np.float32)
        path = os.path.join(output_dir, f"{name}.tif")
        save_geotiff(path, out, profile, dtype="float32", nodata=TERRAIN_NODATA)
        paths[name] = path
    return paths


def terrain_paths(output_dir: str, layers: Optional[Tuple[str, ...]] = None) -> Dict[str, str]:
    """Expected paths of previously derived terrain layers."""
    names = layers or TERRAIN_LAYERS
    return {name: os.path.join(output_dir, f"{name}.tif") for name in names}
