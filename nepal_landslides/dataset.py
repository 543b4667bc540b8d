"""Assembling, writing and reading the labelled landslide dataset."""

import json
import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Sequence

import pandas as pd

from nepal_landslides.features import FeatureRecord

logger = logging.getLogger(__name__)

ID_COLUMNS = ["label", "latitude", "longitude", "trigger"]


@dataclass
class AssembledDataset:
    frame: pd.DataFrame
    feature_names: List[str]
    positives_total: int
    negatives_total: int
    positives_dropped: int
    negatives_dropped: int

    def summary(self) -> Dict:
        return {
            "rows": int(len(self.frame)),
            "feature_names": list(self.feature_names),
            "positives": {
                "total": self.positives_total,
                "dropped_missing_features": self.positives_dropped,
                "kept": self.positives_total - self.positives_dropped,
            },
            "negatives": {
                "total": self.negatives_total,
                "dropped_missing_features": self.negatives_dropped,
                "kept": self.negatives_total - self.negatives_dropped,
            },
        }


def _check_labels(records: Sequence[FeatureRecord], expected: int, kind: str) -> None:
    wrong = [r for r in records if r.record.label != expected]
    if wrong:
        raise ValueError(f"{len(wrong)} {kind} records do not carry label {expected}")


def assemble_dataset(
    positives: Sequence[FeatureRecord],
    negatives: Sequence[FeatureRecord],
    feature_names: Sequence[str],
) -> AssembledDataset:
    """
    Merge positive and negative feature records into one table.

    Rows keep insertion order (positives first). Any row with a missing
    feature value is dropped, so the result has no missing features.
    """
    _check_labels(positives, 1, "positive")
    _check_labels(negatives, 0, "negative")
    feature_names = list(feature_names)

    kept_pos = [r for r in positives if r.is_complete]
    kept_neg = [r for r in negatives if r.is_complete]
    rows = [r.as_row(feature_names) for r in kept_pos + kept_neg]
    frame = pd.DataFrame(rows, columns=ID_COLUMNS + feature_names)
    frame["label"] = frame["label"].astype(int)
    for name in feature_names:
        frame[name] = frame[name].astype(float)

    # Records can be complete over extra values yet lack a requested column.
    complete = frame[feature_names].notna().all(axis=1)
    dropped_late = frame.loc[~complete, "label"]
    frame = frame[complete].reset_index(drop=True)

    dataset = AssembledDataset(
        frame=frame,
        feature_names=feature_names,
        positives_total=len(positives),
        negatives_total=len(negatives),
        positives_dropped=len(positives) - len(kept_pos) + int((dropped_late == 1).sum()),
        negatives_dropped=len(negatives) - len(kept_neg) + int((dropped_late == 0).sum()),
    )
    logger.info(
        f"[assemble_dataset] {len(frame)} rows "
        f"({len(positives) - dataset.positives_dropped} positive, "
        f"{len(negatives) - dataset.negatives_dropped} negative); "
        f"dropped {dataset.positives_dropped} positive and "
        f"{dataset.negatives_dropped} negative rows with missing features"
    )
    return dataset


def summary_path_for(path: str) -> str:
    stem, _ = os.path.splitext(path)
    return f"{stem}_summary.json"


def write_dataset(dataset: AssembledDataset, path: str) -> str:
    """Write the dataset CSV (overwriting) and a JSON summary next to it."""
    parent = os.path.dirname(path)
    try:
        if parent:
            os.makedirs(parent, exist_ok=True)
        dataset.frame.to_csv(path, index=False)
        summary_path = summary_path_for(path)
        with open(summary_path, "w", encoding="utf-8") as f:
            json.dump(dataset.summary(), f, indent=2)
    except OSError as exc:
        raise OSError(f"Failed to write dataset to {path}: {exc}") from exc
    logger.info(f"[write_dataset] Saved {len(dataset.frame)} rows to {path}")
    return path


def read_dataset(path: str) -> pd.DataFrame:
    """Load a written dataset, re-checking that it has no missing values and binary labels."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"Dataset does not exist: {path}")
    frame = pd.read_csv(path, keep_default_na=False, na_values=[""])
    missing_cols = [c for c in ID_COLUMNS if c not in frame.columns]
    if missing_cols:
        raise ValueError(f"Dataset {path} is missing columns: {missing_cols}")
    features = feature_columns(frame)
    if frame[features].isna().any().any():
        raise ValueError(f"Dataset {path} contains missing feature values")
    labels = set(frame["label"].unique().tolist())
    if not labels <= {0, 1}:
        raise ValueError(f"Dataset {path} has labels outside {{0, 1}}: {sorted(labels)}")
    return frame


def feature_columns(frame: pd.DataFrame) -> List[str]:
    return [c for c in frame.columns if c not in ID_COLUMNS]
