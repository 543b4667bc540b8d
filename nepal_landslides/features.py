"""Joining raster values onto points as named, transformed features."""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np
from tqdm import tqdm

from nepal_landslides.errors import MissingFeatureValue
from nepal_landslides.geometry import GeoPoint, LandslideRecord

logger = logging.getLogger(__name__)

Transform = Callable[[np.ndarray], np.ndarray]

TERRAIN_FEATURES = [
    "elevation",
    "normalized_elevation",
    "slope",
    "aspect",
    "profile_curvature",
    "plan_curvature",
    "log_flow_accumulation",
]


def identity(values: np.ndarray) -> np.ndarray:
    return np.asarray(values, dtype=np.float64)


def log10_transform(values: np.ndarray) -> np.ndarray:
    """log10; non-positive inputs have no logarithm and come back as NaN (missing)."""
    values = np.asarray(values, dtype=np.float64)
    out = np.full(values.shape, np.nan)
    positive = values > 0
    out[positive] = np.log10(values[positive])
    return out


def max_normalizer(maximum: float) -> Transform:
    """Divide by a layer's global maximum."""
    if not maximum > 0:
        raise ValueError(f"Cannot normalise by a non-positive maximum ({maximum})")

    def normalize(values: np.ndarray) -> np.ndarray:
        return np.asarray(values, dtype=np.float64) / maximum

    return normalize


@dataclass
class FeatureSpec:
    """A named feature: which layer to query and how to transform the raw value."""

    name: str
    layer: object
    transform: Transform = identity

    def apply(self, raw: np.ndarray) -> np.ndarray:
        with np.errstate(divide="ignore", invalid="ignore"):
            out = self.transform(raw)
        out = np.asarray(out, dtype=np.float64)
        out[~np.isfinite(out)] = np.nan
        return out


@dataclass
class FeatureRecord:
    """A labelled point with its feature values; ``None`` marks a missing value."""

    record: LandslideRecord
    values: Dict[str, Optional[float]] = field(default_factory=dict)

    @property
    def is_complete(self) -> bool:
        return all(v is not None for v in self.values.values())

    def missing_features(self) -> List[str]:
        return [name for name, v in self.values.items() if v is None]

    def as_row(self, feature_names: Sequence[str]) -> Dict[str, object]:
        row: Dict[str, object] = {
            "label": self.record.label,
            "latitude": self.record.latitude,
            "longitude": self.record.longitude,
            "trigger": self.record.trigger,
        }
        for name in feature_names:
            row[name] = self.values.get(name)
        return row


def join_features(point: GeoPoint, specs: Sequence[FeatureSpec]) -> Dict[str, Optional[float]]:
    """
    Look up every feature at ``point``: raw raster value, then transform, then store.

    No-data cells and points outside a layer's extent yield ``None`` for that
    feature, as does a transform without a finite result (e.g. log10 of 0).
    """
    values: Dict[str, Optional[float]] = {}
    for spec in specs:
        try:
            raw = spec.layer.sample(point)
        except MissingFeatureValue as exc:
            logger.debug(f"[join_features] {exc}")
            values[spec.name] = None
            continue
        transformed = spec.apply(np.array([raw]))[0]
        values[spec.name] = float(transformed) if np.isfinite(transformed) else None
    return values


def join_records(
    records: Sequence[LandslideRecord], specs: Sequence[FeatureSpec], desc: str = "Joining features"
) -> List[FeatureRecord]:
    joined = [
        FeatureRecord(record=record, values=join_features(record.point, specs))
        for record in tqdm(records, desc=desc, unit="point")
    ]
    incomplete = sum(1 for r in joined if not r.is_complete)
    logger.info(
        f"[join_records] Joined {len(specs)} features onto {len(joined)} points "
        f"({incomplete} with missing values)"
    )
    return joined


def build_feature_specs(
    layers: Dict[str, object], precipitation: Sequence[str] = ()
) -> List[FeatureSpec]:
    """
    Default feature set. ``layers`` must hold ``elevation`` and the terrain
    layers (``slope``, ``aspect``, ``profile_curvature``, ``plan_curvature``,
    ``flow_accumulation``) plus one entry per name in ``precipitation``.
    """
    required = ["elevation", "slope", "aspect", "profile_curvature", "plan_curvature",
                "flow_accumulation", *precipitation]
    missing = [name for name in required if name not in layers]
    if missing:
        raise KeyError(f"Missing raster layers for features: {missing}")

    dem = layers["elevation"]
    specs = [
        FeatureSpec("elevation", dem),
        FeatureSpec("normalized_elevation", dem, max_normalizer(dem.maximum())),
        FeatureSpec("slope", layers["slope"]),
        FeatureSpec("aspect", layers["aspect"]),
        FeatureSpec("profile_curvature", layers["profile_curvature"]),
        FeatureSpec("plan_curvature", layers["plan_curvature"]),
        FeatureSpec("log_flow_accumulation", layers["flow_accumulation"], log10_transform),
    ]
    specs.extend(FeatureSpec(name, layers[name]) for name in precipitation)
    return specs
