"""Susceptibility raster: classifier probabilities evaluated over the DEM grid."""

import logging
import os
from typing import Sequence

import numpy as np
from rasterio.transform import Affine
from tqdm import tqdm

from nepal_landslides.config import PipelineConfig
from nepal_landslides.features import FeatureSpec
from nepal_landslides.modeling import load_model, model_path
from nepal_landslides.rasters import ArrayLayer, raster_profile, save_geotiff

logger = logging.getLogger(__name__)

SUSCEPTIBILITY_NODATA = -9999.0


def predict_susceptibility(
    model,
    specs: Sequence[FeatureSpec],
    reference: ArrayLayer,
    block_rows: int = 256,
    stride: int = 1,
) -> np.ndarray:
    """
    Landslide probability at the centre of every ``stride``-th cell of ``reference``.

    Feature values are looked up and transformed exactly as for the point
    dataset; cells with any missing feature are left as NaN.
    """
    if block_rows < 1 or stride < 1:
        raise ValueError("block_rows and stride must be >= 1")
    height, width = reference.shape
    out_rows = len(range(0, height, stride))
    out_cols = len(range(0, width, stride))
    result = np.full((out_rows, out_cols), np.nan, dtype=np.float32)
    logger.info(
        f"[predict_susceptibility] Grid {height}x{width}, stride {stride}, "
        f"output {out_rows}x{out_cols}, {len(specs)} features"
    )

    step = block_rows * stride
    predicted = 0
    for start in tqdm(range(0, height, step), desc="Susceptibility blocks", unit="block"):
        lons, lats = reference.cell_centers(start, start + step, stride)
        block_shape = lons.shape
        flat_lons = lons.ravel()
        flat_lats = lats.ravel()
        columns = [spec.apply(spec.layer.values_at(flat_lons, flat_lats)) for spec in specs]
        X = np.column_stack(columns)
        complete = np.all(np.isfinite(X), axis=1)

        probs = np.full(X.shape[0], np.nan, dtype=np.float32)
        if np.any(complete):
            probs[complete] = model.predict_proba(X[complete])[:, 1]
            predicted += int(complete.sum())
        row0 = start // stride
        result[row0 : row0 + block_shape[0], :] = probs.reshape(block_shape)

    logger.info(f"[predict_susceptibility] Predicted {predicted} of {result.size} cells")
    return result


def strided_transform(transform: Affine, stride: int) -> Affine:
    return transform * Affine.scale(stride, stride)


def run_susceptibility(config: PipelineConfig, specs: Sequence[FeatureSpec], reference: ArrayLayer) -> str:
    """Predict with the configured saved model and write the susceptibility GeoTIFF."""
    cfg = config.susceptibility
    model, feature_names = load_model(model_path(config.paths.models_dir, cfg.model))
    spec_names = [spec.name for spec in specs]
    if spec_names != feature_names:
        raise ValueError(
            f"Model '{cfg.model}' was trained on {feature_names}, but the configured features are {spec_names}"
        )

    probs = predict_susceptibility(model, specs, reference, cfg.block_rows, cfg.stride)
    profile = raster_profile(reference)
    profile.update(
        height=probs.shape[0],
        width=probs.shape[1],
        transform=strided_transform(reference.transform, cfg.stride),
    )
    out = np.where(np.isfinite(probs), probs, SUSCEPTIBILITY_NODATA).astype(np.float32)
    path = os.path.join(config.paths.outputs_dir, "nepal_landslide_susceptibility.tif")
    save_geotiff(path, out, profile, dtype="float32", nodata=SUSCEPTIBILITY_NODATA)
    return path
