import math

import numpy as np
import pytest

from nepal_landslides.metrics import f1_threshold, summarize_classifier, threshold_metrics, youden_threshold


def test_perfect_separation():
    y = np.array([0, 0, 0, 1, 1, 1])
    p = np.array([0.1, 0.2, 0.3, 0.7, 0.8, 0.9])
    summary = summarize_classifier(y, p)
    assert summary["auroc"] == pytest.approx(1.0)
    assert summary["auprc"] == pytest.approx(1.0)
    assert summary["at_0.5"]["accuracy"] == 1.0
    assert summary["youden"]["youden_j"] == pytest.approx(1.0)
    assert summary["f1_optimal"]["f1"] == pytest.approx(1.0)


def test_single_class_yields_nan():
    y = np.array([1, 1, 1])
    p = np.array([0.2, 0.6, 0.9])
    summary = summarize_classifier(y, p)
    assert math.isnan(summary["auroc"])
    threshold, metrics = youden_threshold(y, p)
    assert threshold == 0.5 and math.isnan(metrics["youden_j"])
    threshold, metrics = f1_threshold(y, p)
    assert threshold == 0.5 and math.isnan(metrics["f1"])


def test_threshold_metrics_confusion():
    y = np.array([0, 0, 1, 1])
    p = np.array([0.6, 0.1, 0.4, 0.9])
    metrics = threshold_metrics(y, p, 0.5)
    assert metrics["confusion"] == {"tn": 1, "fp": 1, "fn": 1, "tp": 1}
    assert metrics["precision"] == 0.5
    assert metrics["recall"] == 0.5
    assert metrics["specificity"] == 0.5
