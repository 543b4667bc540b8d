import json
import os

import numpy as np
import pandas as pd
import pytest

from nepal_landslides.config import ModelingConfig, PathsConfig, PipelineConfig
from nepal_landslides.modeling import build_classifiers, compare_classifiers, load_model, train_models


def _synthetic_frame(n=200, seed=0):
    rng = np.random.default_rng(seed)
    label = np.repeat([1, 0], n // 2)
    slope = np.where(label == 1, rng.normal(35, 5, n), rng.normal(10, 5, n))
    aspect = rng.uniform(0, 360, n)
    return pd.DataFrame(
        {
            "label": label,
            "latitude": rng.uniform(26.3, 30.5, n),
            "longitude": rng.uniform(80.0, 88.2, n),
            "trigger": np.where(label == 1, "monsoon", "None"),
            "slope": slope,
            "aspect": aspect,
        }
    )


FAST = ModelingConfig(
    test_size=0.3,
    logistic_regression={"max_iter": 500},
    random_forest={"n_estimators": 20},
)


def test_both_classifiers_learn_a_separable_signal():
    models, report = compare_classifiers(_synthetic_frame(), ["slope", "aspect"], FAST, seed=10)
    assert set(models) == {"logistic_regression", "random_forest"}
    for name in models:
        metrics = report["models"][name]
        assert metrics["auroc"] > 0.9
        assert set(metrics["feature_weights"]) == {"slope", "aspect"}
    assert report["best_model"] in models


def test_random_forest_ranks_the_informative_feature_first():
    _, report = compare_classifiers(_synthetic_frame(), ["slope", "aspect"], FAST, seed=10)
    weights = report["models"]["random_forest"]["feature_weights"]
    assert weights["slope"] > weights["aspect"]


def test_single_class_dataset_is_rejected():
    frame = _synthetic_frame()
    frame["label"] = 1
    with pytest.raises(ValueError):
        compare_classifiers(frame, ["slope"], FAST, seed=1)


def test_train_models_persists_models_and_report(tmp_path):
    dataset_path = tmp_path / "dataset.csv"
    _synthetic_frame().to_csv(dataset_path, index=False)
    config = PipelineConfig(
        seed=3,
        paths=PathsConfig(dataset=str(dataset_path), models_dir=str(tmp_path / "models")),
        modeling=FAST,
    )
    paths = train_models(config)

    model, features = load_model(paths["random_forest"])
    assert features == ["slope", "aspect"]
    assert model.predict_proba(np.array([[40.0, 90.0]])).shape == (1, 2)
    with open(paths["report"]) as f:
        report = json.load(f)
    assert set(report["models"]) == {"logistic_regression", "random_forest"}
    assert os.path.exists(paths["logistic_regression"])


def test_configured_random_state_overrides_the_seed():
    cfg = ModelingConfig(logistic_regression={"C": 1.0, "random_state": 3}, random_forest={"random_state": 4})
    models = build_classifiers(cfg, seed=1)
    assert models["logistic_regression"][-1].random_state == 3
    assert models["random_forest"].random_state == 4


def test_seed_is_used_when_random_state_is_not_configured():
    models = build_classifiers(ModelingConfig(), seed=9)
    assert models["logistic_regression"][-1].random_state == 9
    assert models["random_forest"].random_state == 9
