"""Fitting and comparing logistic regression and random forest on the landslide dataset."""

import json
import logging
import os
from typing import Dict, List, Sequence, Tuple

import joblib
import numpy as np
import pandas as pd
from sklearn.base import ClassifierMixin
from sklearn.ensemble import RandomForestClassifier
from sklearn.linear_model import LogisticRegression
from sklearn.model_selection import train_test_split
from sklearn.pipeline import make_pipeline
from sklearn.preprocessing import StandardScaler

from nepal_landslides.config import ModelingConfig, PipelineConfig
from nepal_landslides.dataset import feature_columns, read_dataset
from nepal_landslides.metrics import summarize_classifier

logger = logging.getLogger(__name__)

MODEL_NAMES = ("logistic_regression", "random_forest")


def split_dataset(
    frame: pd.DataFrame, feature_names: Sequence[str], test_size: float, seed: int
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Stratified train/test split of the feature matrix and labels."""
    X = frame[list(feature_names)].to_numpy(dtype=np.float64)
    y = frame["label"].to_numpy(dtype=int)
    if len(np.unique(y)) < 2:
        raise ValueError("Dataset needs both landslide and non-landslide rows to fit classifiers")
    return train_test_split(X, y, test_size=test_size, random_state=seed, stratify=y)


def build_classifiers(cfg: ModelingConfig, seed: int) -> Dict[str, ClassifierMixin]:
    lr_params = dict(cfg.logistic_regression)
    lr_params.setdefault("random_state", seed)
    rf_params = dict(cfg.random_forest)
    rf_params.setdefault("random_state", seed)
    return {
        "logistic_regression": make_pipeline(
            StandardScaler(), LogisticRegression(**lr_params)
        ),
        "random_forest": RandomForestClassifier(**rf_params),
    }


def describe_model(name: str, model, feature_names: Sequence[str]) -> Dict[str, float]:
    """Per-feature coefficients (logistic regression) or importances (random forest)."""
    if name == "logistic_regression":
        weights = model[-1].coef_.ravel()
    else:
        weights = model.feature_importances_
    return {feature: float(w) for feature, w in zip(feature_names, weights)}


def compare_classifiers(
    frame: pd.DataFrame, feature_names: Sequence[str], cfg: ModelingConfig, seed: int
) -> Tuple[Dict[str, ClassifierMixin], Dict]:
    """Fit both classifiers on the same split and evaluate them on the held-out rows."""
    feature_names = list(feature_names)
    X_train, X_test, y_train, y_test = split_dataset(frame, feature_names, cfg.test_size, seed)
    logger.info(
        f"[compare_classifiers] Train rows: {len(y_train)}, test rows: {len(y_test)}, "
        f"features: {feature_names}"
    )

    models = build_classifiers(cfg, seed)
    report: Dict = {
        "feature_names": feature_names,
        "test_size": cfg.test_size,
        "seed": seed,
        "models": {},
    }
    for name, model in models.items():
        logger.info(f"[compare_classifiers] Fitting {name}")
        model.fit(X_train, y_train)
        probs = model.predict_proba(X_test)[:, 1]
        metrics = summarize_classifier(y_test, probs)
        metrics["train_accuracy"] = float(model.score(X_train, y_train))
        metrics["feature_weights"] = describe_model(name, model, feature_names)
        report["models"][name] = metrics
        logger.info(
            f"[compare_classifiers] {name}: AUROC={metrics['auroc']:.4f} "
            f"AUPRC={metrics['auprc']:.4f} accuracy@0.5={metrics['at_0.5']['accuracy']:.4f}"
        )

    report["best_model"] = max(
        report["models"],
        key=lambda n: np.nan_to_num(report["models"][n]["auroc"], nan=-1.0),
    )
    return models, report


def model_path(models_dir: str, name: str) -> str:
    return os.path.join(models_dir, f"{name}.joblib")


def train_models(config: PipelineConfig) -> Dict[str, str]:
    """Read the prepared dataset, compare both classifiers and persist models and report."""
    frame = read_dataset(config.paths.dataset)
    feature_names: List[str] = feature_columns(frame)
    models, report = compare_classifiers(frame, feature_names, config.modeling, config.seed)

    models_dir = config.paths.models_dir
    os.makedirs(models_dir, exist_ok=True)
    paths: Dict[str, str] = {}
    for name, model in models.items():
        path = model_path(models_dir, name)
        joblib.dump({"model": model, "feature_names": feature_names}, path)
        paths[name] = path
        logger.info(f"[train_models] Saved {name} to {path}")

    report_path = os.path.join(models_dir, "model_comparison.json")
    with open(report_path, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=2)
    logger.info(f"[train_models] Best model by AUROC: {report['best_model']} ({report_path})")
    paths["report"] = report_path
    return paths


def load_model(path: str) -> Tuple[ClassifierMixin, List[str]]:
    if not os.path.exists(path):
        raise FileNotFoundError(f"Model file does not exist: {path}")
    bundle = joblib.load(path)
    return bundle["model"], list(bundle["feature_names"])
