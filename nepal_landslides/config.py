"""Pipeline configuration loaded from YAML."""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from nepal_landslides.geometry import BoundingBox

NEPAL_BBOX = [80.0, 26.3, 88.2, 30.5]


@dataclass
class PathsConfig:
    catalog: str = "data/raw/Global_Landslide_Catalog_Export.csv"
    dem: str = "data/raw/nepal_dem.tif"
    terrain_dir: str = "data/processed/terrain"
    dataset: str = "data/processed/nepal_landslide_dataset.csv"
    models_dir: str = "artifacts/models"
    outputs_dir: str = "outputs"


@dataclass
class CatalogConfig:
    country: Optional[str] = "Nepal"
    clip_to_region: bool = True
    latitude_column: str = "latitude"
    longitude_column: str = "longitude"
    trigger_column: str = "landslide_trigger"
    country_column: str = "country_name"


@dataclass
class SamplingConfig:
    bbox: BoundingBox = field(default_factory=lambda: BoundingBox.from_sequence(NEPAL_BBOX))
    min_distance_m: float = 1000.0
    # None means one pseudo-absence per catalogued landslide.
    target_count: Optional[int] = None
    candidate_multiplier: int = 10
    max_batches: int = 20


@dataclass
class ModelingConfig:
    test_size: float = 0.3
    logistic_regression: Dict[str, Any] = field(default_factory=lambda: {"C": 1.0, "max_iter": 1000})
    random_forest: Dict[str, Any] = field(default_factory=lambda: {"n_estimators": 500})


@dataclass
class SusceptibilityConfig:
    enabled: bool = True
    model: str = "random_forest"
    stride: int = 1
    block_rows: int = 256


@dataclass
class PipelineConfig:
    seed: int = 10
    paths: PathsConfig = field(default_factory=PathsConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    # Precipitation feature name -> GeoTIFF path.
    precipitation: Dict[str, str] = field(default_factory=dict)
    sink_fill_kernel: int = 3
    modeling: ModelingConfig = field(default_factory=ModelingConfig)
    susceptibility: SusceptibilityConfig = field(default_factory=SusceptibilityConfig)

    @property
    def precipitation_names(self) -> List[str]:
        return list(self.precipitation.keys())


def _section(raw: Dict, key: str) -> Dict:
    value = raw.get(key) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Configuration section '{key}' must be a mapping")
    return value


def _build(cls, values: Dict, section: str):
    known = set(cls.__dataclass_fields__)
    unknown = sorted(set(values) - known)
    if unknown:
        raise ValueError(f"Unknown keys in configuration section '{section}': {unknown}")
    return cls(**values)


def _positive_int(values: Dict, key: str, section: str) -> None:
    """Coerce ``values[key]`` to a positive int in place; whole floats like 5.0 are accepted."""
    value = values.get(key)
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not float(value).is_integer():
        raise ValueError(f"{section}.{key} must be a whole number, got {value!r}")
    if int(value) <= 0:
        raise ValueError(f"{section}.{key} must be positive, got {value}")
    values[key] = int(value)


def config_from_dict(raw: Dict) -> PipelineConfig:
    """Build a ``PipelineConfig`` from the parsed YAML mapping."""
    raw = raw or {}
    sampling_raw = dict(_section(raw, "sampling"))
    region = _section(raw, "region")
    bbox = BoundingBox.from_sequence(region.get("bbox", NEPAL_BBOX))

    for key in ("target_count", "candidate_multiplier", "max_batches"):
        _positive_int(sampling_raw, key, "sampling")
    if float(sampling_raw.get("min_distance_m", 1000.0)) <= 0:
        raise ValueError("sampling.min_distance_m must be positive")

    terrain = _section(raw, "terrain")
    features = _section(raw, "features")
    return PipelineConfig(
        seed=int(_section(raw, "reproducibility").get("seed", 10)),
        paths=_build(PathsConfig, _section(raw, "paths"), "paths"),
        catalog=_build(CatalogConfig, _section(raw, "catalog"), "catalog"),
        sampling=_build(SamplingConfig, {**sampling_raw, "bbox": bbox}, "sampling"),
        precipitation=dict(features.get("precipitation") or {}),
        sink_fill_kernel=int(terrain.get("sink_fill_kernel", 3)),
        modeling=_build(ModelingConfig, _section(raw, "modeling"), "modeling"),
        susceptibility=_build(SusceptibilityConfig, _section(raw, "susceptibility"), "susceptibility"),
    )


def load_config(config_path: str = "config.yaml") -> PipelineConfig:
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file does not exist: {config_path}")
    with open(config_path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    return config_from_dict(raw)
