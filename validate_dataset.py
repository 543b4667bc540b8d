#!/usr/bin/env python3
"""
Validate a prepared landslide dataset before model fitting.
Checks completeness, labels, region containment and the minimum distance
between pseudo-absence points and catalogued landslides.
"""

import sys
from pathlib import Path

import numpy as np
import pandas as pd

from nepal_landslides.catalog import load_catalog
from nepal_landslides.config import load_config
from nepal_landslides.dataset import feature_columns
from nepal_landslides.geometry import haversine_distance


def min_distance_to_positives(positives: pd.DataFrame, negatives: pd.DataFrame):
    """
    Minimum haversine distance (metres) between any negative and any positive.
    Returns the distance and the closest (negative, positive) row indices.
    """
    min_distance = float("inf")
    closest_pair = (None, None)
    if positives.empty or negatives.empty:
        return min_distance, closest_pair

    pos_lats = positives["latitude"].to_numpy()
    pos_lons = positives["longitude"].to_numpy()
    for idx, row in negatives.iterrows():
        d = haversine_distance(row["latitude"], row["longitude"], pos_lats, pos_lons)
        j = int(np.argmin(d))
        if d[j] < min_distance:
            min_distance = float(d[j])
            closest_pair = (idx, positives.index[j])
    return min_distance, closest_pair


def catalog_landslides(config):
    """
    All catalogued landslides the sampler kept away from, including those later
    dropped from the dataset for missing features. None if the catalog is absent.
    """
    if not Path(config.paths.catalog).exists():
        return None
    records = load_catalog(
        config.paths.catalog,
        country=config.catalog.country,
        bbox=config.sampling.bbox if config.catalog.clip_to_region else None,
        latitude_column=config.catalog.latitude_column,
        longitude_column=config.catalog.longitude_column,
        trigger_column=config.catalog.trigger_column,
        country_column=config.catalog.country_column,
    )
    return pd.DataFrame(
        {"latitude": [r.latitude for r in records], "longitude": [r.longitude for r in records]}
    )


def validate_dataset(dataset_path, config_path="config.yaml"):
    """Validate a written dataset; returns True when every check passes."""
    config = load_config(config_path)
    bbox = config.sampling.bbox
    min_distance_m = config.sampling.min_distance_m

    print("=" * 80)
    print("LANDSLIDE DATASET VALIDATION")
    print("=" * 80)
    print()

    df = pd.read_csv(dataset_path, keep_default_na=False, na_values=[""])
    features = feature_columns(df)
    positives = df[df["label"] == 1]
    negatives = df[df["label"] == 0]
    all_valid = True

    print(f"Rows: {len(df)}")
    print(f"  Landslides (label 1):      {len(positives)}")
    print(f"  Pseudo-absences (label 0): {len(negatives)}")
    print(f"  Features: {', '.join(features)}")
    print()

    print("Checking completeness...")
    missing = int(df[features].isna().sum().sum())
    if missing:
        print(f"  ❌ {missing} missing feature values")
        all_valid = False
    else:
        print("  ✅ No missing feature values")

    print("Checking labels...")
    labels = sorted(df["label"].unique().tolist())
    if set(labels) <= {0, 1}:
        print(f"  ✅ Labels: {labels}")
    else:
        print(f"  ❌ Unexpected labels: {labels}")
        all_valid = False

    print("Checking pseudo-absence containment...")
    outside = negatives[
        (negatives["longitude"] < bbox.xmin) | (negatives["longitude"] > bbox.xmax)
        | (negatives["latitude"] < bbox.ymin) | (negatives["latitude"] > bbox.ymax)
    ]
    if len(outside):
        print(f"  ❌ {len(outside)} pseudo-absences outside {bbox.as_list()}")
        all_valid = False
    else:
        print(f"  ✅ All pseudo-absences inside {bbox.as_list()}")

    print("Checking pseudo-absence separation...")
    landslides = catalog_landslides(config)
    if landslides is None:
        print(f"  ⚠️  Catalog not found ({config.paths.catalog}); checking against dataset landslides only")
        landslides = positives
    else:
        print(f"  Reference: {len(landslides)} catalogued landslides from {config.paths.catalog}")
    dist, pair = min_distance_to_positives(landslides, negatives)
    print(f"  Minimum distance: {dist:.1f} m (required {min_distance_m:.1f} m)")
    if pair[0] is not None:
        print(f"  Closest pair: negative row {pair[0]}, landslide row {pair[1]}")
    if dist < min_distance_m:
        print("  ❌ Pseudo-absence too close to a landslide")
        all_valid = False
    else:
        print("  ✅ Sufficient separation")

    print()
    print("=" * 80)
    print("VALIDATION PASSED" if all_valid else "VALIDATION FAILED")
    print("=" * 80)
    return all_valid


if __name__ == "__main__":
    dataset_path = sys.argv[1] if len(sys.argv) > 1 else "data/processed/nepal_landslide_dataset.csv"
    config_path = sys.argv[2] if len(sys.argv) > 2 else "config.yaml"

    if not Path(dataset_path).exists():
        print(f"ERROR: Dataset not found: {dataset_path}")
        print("Run the dataset stage first: python -m nepal_landslides.main_pipeline --stage dataset")
        sys.exit(1)

    sys.exit(0 if validate_dataset(dataset_path, config_path) else 1)
