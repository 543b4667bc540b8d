"""
End-to-end Nepal landslide pipeline: terrain derivatives, labelled dataset,
classifier comparison and susceptibility map.

Usage:
    python -m nepal_landslides.main_pipeline --config config.yaml --stage all
"""

import argparse
import logging
import os
import sys
from dataclasses import replace
from typing import Dict, List, Optional, Sequence

from nepal_landslides.catalog import load_catalog
from nepal_landslides.config import PipelineConfig, load_config
from nepal_landslides.dataset import AssembledDataset, assemble_dataset, write_dataset
from nepal_landslides.errors import LandslideDataError
from nepal_landslides.features import FeatureSpec, build_feature_specs, join_records
from nepal_landslides.modeling import train_models
from nepal_landslides.rasters import ArrayLayer, open_geotiff, open_layers
from nepal_landslides.sampling import sample_pseudo_absences
from nepal_landslides.susceptibility import run_susceptibility
from nepal_landslides.terrain import TERRAIN_LAYERS, derive_terrain, terrain_paths

logger = logging.getLogger(__name__)

STAGES = ("terrain", "dataset", "train", "map")


def run_terrain(config: PipelineConfig, force_recreate: bool = False) -> Dict[str, str]:
    paths = terrain_paths(config.paths.terrain_dir)
    if not force_recreate and all(os.path.exists(p) for p in paths.values()):
        logger.info(f"[run_terrain] Terrain layers already exist in {config.paths.terrain_dir}, skipping")
        return paths
    return derive_terrain(config.paths.dem, config.paths.terrain_dir, config.sink_fill_kernel)


def open_feature_layers(config: PipelineConfig) -> Dict[str, ArrayLayer]:
    """DEM, terrain derivatives and optional precipitation rasters, keyed by layer name."""
    layers = {"elevation": open_geotiff(config.paths.dem, name="elevation")}
    layers.update(open_layers(terrain_paths(config.paths.terrain_dir, TERRAIN_LAYERS)))
    layers.update(open_layers(config.precipitation))
    return layers


def feature_specs(config: PipelineConfig, layers: Optional[Dict[str, ArrayLayer]] = None) -> List[FeatureSpec]:
    layers = layers if layers is not None else open_feature_layers(config)
    return build_feature_specs(layers, config.precipitation_names)


def prepare_dataset(
    config: PipelineConfig, specs: Optional[Sequence[FeatureSpec]] = None
) -> AssembledDataset:
    """Catalog -> pseudo-absences -> feature join -> assembled dataset on disk."""
    bbox = config.sampling.bbox
    positives = load_catalog(
        config.paths.catalog,
        country=config.catalog.country,
        bbox=bbox if config.catalog.clip_to_region else None,
        latitude_column=config.catalog.latitude_column,
        longitude_column=config.catalog.longitude_column,
        trigger_column=config.catalog.trigger_column,
        country_column=config.catalog.country_column,
    )
    if not positives:
        raise ValueError(f"No landslide records left in {config.paths.catalog} after filtering")

    target = config.sampling.target_count or len(positives)
    negatives = sample_pseudo_absences(
        bbox,
        [r.point for r in positives],
        config.sampling.min_distance_m,
        target,
        config.seed,
        candidate_multiplier=config.sampling.candidate_multiplier,
        max_batches=config.sampling.max_batches,
    )

    specs = list(specs) if specs is not None else feature_specs(config)
    feature_names = [spec.name for spec in specs]
    joined_pos = join_records(positives, specs, desc="Landslide features")
    joined_neg = join_records(negatives, specs, desc="Pseudo-absence features")

    dataset = assemble_dataset(joined_pos, joined_neg, feature_names)
    write_dataset(dataset, config.paths.dataset)
    return dataset


def run_stages(config: PipelineConfig, stages: Sequence[str], force_recreate: bool = False) -> None:
    if "terrain" in stages:
        run_terrain(config, force_recreate=force_recreate)

    specs = None
    if "dataset" in stages or "map" in stages:
        specs = feature_specs(config)

    if "dataset" in stages:
        prepare_dataset(config, specs)
    if "train" in stages:
        train_models(config)
    if "map" in stages:
        if not config.susceptibility.enabled:
            logger.info("[run_stages] Susceptibility map disabled in configuration")
        else:
            reference = next(spec.layer for spec in specs if spec.name == "elevation")
            run_susceptibility(config, specs, reference)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Nepal landslide dataset preparation and susceptibility modelling",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m nepal_landslides.main_pipeline                      # All stages
  python -m nepal_landslides.main_pipeline --stage dataset      # Rebuild the labelled dataset only
  python -m nepal_landslides.main_pipeline --stage train --seed 7
        """,
    )
    parser.add_argument("--config", default="config.yaml", help="Path to YAML configuration.")
    parser.add_argument(
        "--stage",
        choices=STAGES + ("all",),
        action="append",
        help="Stage to run; repeatable. Defaults to all stages.",
    )
    parser.add_argument("--seed", type=int, default=None, help="Override seed from config.")
    parser.add_argument(
        "--force_recreate",
        action="store_true",
        help="Recompute terrain layers even if they already exist",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, ...).")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="[%(levelname)s] %(message)s")

    stages = args.stage or ["all"]
    if "all" in stages:
        stages = list(STAGES)

    try:
        config = load_config(args.config)
        if args.seed is not None:
            config = replace(config, seed=args.seed)
        logger.info(f"[main] Running stages {stages} (seed={config.seed})")
        run_stages(config, stages, force_recreate=args.force_recreate)
    except (LandslideDataError, OSError, ValueError, KeyError) as exc:
        logger.error(f"[main] {type(exc).__name__}: {exc}")
        return 1
    logger.info("[main] Pipeline finished successfully")
    return 0


if __name__ == "__main__":
    sys.exit(main())
