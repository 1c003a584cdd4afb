"""
Validation report — per-class precision / recall / F1 and confusion matrix.

Computed on the validation tail that Keras held out during ``fit`` and
returned as part of the training result.  Nothing here is persisted: the
artifact layout is fixed to ``model/``, ``labels.json`` and ``info.json``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Sequence

import numpy as np
from sklearn.metrics import classification_report, confusion_matrix

logger = logging.getLogger(__name__)


def evaluate_predictions(
    y_true: Sequence[int],
    probabilities: np.ndarray,
    class_names: Sequence[str],
) -> Dict[str, Any]:
    """Summarise predictions against the true label indices.

    Parameters
    ----------
    y_true : sequence of int
        True label indices.
    probabilities : np.ndarray
        (n, num_classes) softmax outputs.
    class_names : sequence of str
        Ordered class names matching label indices.

    Returns
    -------
    dict
        Keys: accuracy, macro_f1, per_class (list), confusion_matrix
        (nested list), support.
    """
    y_true = [int(i) for i in y_true]
    y_pred = np.argmax(probabilities, axis=1).tolist()
    all_labels = list(range(len(class_names)))

    report = classification_report(
        y_true, y_pred,
        target_names=list(class_names),
        labels=all_labels,
        output_dict=True,
        zero_division=0,
    )

    per_class = []
    for name in class_names:
        stats = report.get(name, {})
        per_class.append({
            "class": name,
            "precision": round(stats.get("precision", 0), 4),
            "recall": round(stats.get("recall", 0), 4),
            "f1": round(stats.get("f1-score", 0), 4),
            "support": int(stats.get("support", 0)),
        })

    correct = sum(int(t == p) for t, p in zip(y_true, y_pred))
    metrics = {
        "accuracy": round(correct / len(y_true), 4) if y_true else 0.0,
        "macro_f1": round(report.get("macro avg", {}).get("f1-score", 0), 4),
        "per_class": per_class,
        "confusion_matrix": confusion_matrix(y_true, y_pred, labels=all_labels).tolist(),
        "support": len(y_true),
    }

    logger.info(
        "Validation: accuracy=%.4f, macro_f1=%.4f on %d samples",
        metrics["accuracy"], metrics["macro_f1"], metrics["support"],
    )
    return metrics
