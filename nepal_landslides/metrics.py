"""Metrics for comparing landslide classifiers on the held-out split."""

from typing import Dict, Tuple

import numpy as np
from sklearn.metrics import (
    average_precision_score,
    brier_score_loss,
    confusion_matrix,
    precision_recall_curve,
    roc_auc_score,
    roc_curve,
)

NAN = float("nan")


def _single_class(y_true: np.ndarray) -> bool:
    return len(np.unique(y_true)) < 2


def youden_threshold(y_true: np.ndarray, y_scores: np.ndarray) -> Tuple[float, Dict[str, float]]:
    """
    Threshold maximising Youden's J (sensitivity + specificity - 1).

    Args:
        y_true: Binary labels (0 = pseudo-absence, 1 = landslide)
        y_scores: Predicted landslide probabilities

    Returns:
        Tuple of (threshold, metrics) where metrics holds threshold,
        sensitivity, specificity and youden_j
    """
    if _single_class(y_true):
        return 0.5, {"threshold": 0.5, "sensitivity": NAN, "specificity": NAN, "youden_j": NAN}

    fpr, tpr, thresholds = roc_curve(y_true, y_scores)
    j_scores = tpr - fpr
    idx = int(np.argmax(j_scores))
    # roc_curve prepends an infinite threshold for the "predict nothing" point.
    threshold = float(min(thresholds[idx], 1.0))
    return threshold, {
        "threshold": threshold,
        "sensitivity": float(tpr[idx]),
        "specificity": float(1.0 - fpr[idx]),
        "youden_j": float(j_scores[idx]),
    }


def f1_threshold(y_true: np.ndarray, y_scores: np.ndarray) -> Tuple[float, Dict[str, float]]:
    """Threshold maximising F1 on the precision-recall curve."""
    if _single_class(y_true):
        return 0.5, {"threshold": 0.5, "precision": NAN, "recall": NAN, "f1": NAN}

    precision, recall, thresholds = precision_recall_curve(y_true, y_scores)
    denom = precision + recall
    f1_scores = np.zeros_like(precision)
    mask = denom > 0
    f1_scores[mask] = 2 * precision[mask] * recall[mask] / denom[mask]

    # The last precision/recall pair has no threshold.
    idx = int(np.argmax(f1_scores[:-1])) if len(thresholds) else 0
    threshold = float(thresholds[idx]) if len(thresholds) else 0.5
    return threshold, {
        "threshold": threshold,
        "precision": float(precision[idx]),
        "recall": float(recall[idx]),
        "f1": float(f1_scores[idx]),
    }


def threshold_metrics(y_true: np.ndarray, y_scores: np.ndarray, threshold: float) -> Dict[str, float]:
    """Confusion-matrix metrics after thresholding the probabilities."""
    y_pred = (np.asarray(y_scores) >= threshold).astype(int)
    tn, fp, fn, tp = confusion_matrix(y_true, y_pred, labels=[0, 1]).ravel()
    total = tn + fp + fn + tp
    precision = tp / (tp + fp) if (tp + fp) > 0 else 0.0
    recall = tp / (tp + fn) if (tp + fn) > 0 else 0.0
    specificity = tn / (tn + fp) if (tn + fp) > 0 else 0.0
    f1 = 2 * precision * recall / (precision + recall) if (precision + recall) > 0 else 0.0
    return {
        "threshold": float(threshold),
        "accuracy": float((tp + tn) / total) if total > 0 else 0.0,
        "precision": float(precision),
        "recall": float(recall),
        "specificity": float(specificity),
        "f1": float(f1),
        "confusion": {"tn": int(tn), "fp": int(fp), "fn": int(fn), "tp": int(tp)},
    }


def summarize_classifier(y_true: np.ndarray, y_scores: np.ndarray) -> Dict:
    """AUROC, AUPRC, Brier score, metrics at 0.5 and the two optimal thresholds."""
    y_true = np.asarray(y_true).astype(int)
    y_scores = np.asarray(y_scores, dtype=np.float64)
    if _single_class(y_true):
        auroc = auprc = brier = NAN
    else:
        auroc = float(roc_auc_score(y_true, y_scores))
        auprc = float(average_precision_score(y_true, y_scores))
        brier = float(brier_score_loss(y_true, y_scores))

    _, youden = youden_threshold(y_true, y_scores)
    _, f1_opt = f1_threshold(y_true, y_scores)
    return {
        "n_samples": int(y_true.size),
        "n_positive": int(y_true.sum()),
        "auroc": auroc,
        "auprc": auprc,
        "brier": brier,
        "at_0.5": threshold_metrics(y_true, y_scores, 0.5),
        "youden": youden,
        "f1_optimal": f1_opt,
    }
