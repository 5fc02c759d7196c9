"""Evaluation metrics for multiclass classification"""

from typing import Dict, Tuple
import numpy as np
from sklearn.metrics import accuracy_score, f1_score, precision_score, recall_score

from .base import Evaluator, MetricFunction, ScoredData


def _compute_macro_metric_with_support(y_true: np.ndarray, y_pred: np.ndarray, metric_func, **kwargs) -> float:
    """
    Compute macro-averaged metric considering only labels with support > 0

    Args:
        y_true: True labels
        y_pred: Predicted labels
        metric_func: Metric function (precision_score, recall_score, f1_score)
        **kwargs: Additional arguments for metric function

    Returns:
        Macro-averaged metric excluding classes with 0 support
    """
    scores = []
    for label in np.unique(y_true):
        y_true_binary = (y_true == label).astype(int)
        y_pred_binary = (y_pred == label).astype(int)
        scores.append(metric_func(y_true_binary, y_pred_binary, zero_division=0, **kwargs))
    return float(np.mean(scores)) if scores else 0.0


def weighted_precision(data: ScoredData) -> float:
    return precision_score(data.labels, data.predictions, average="weighted", zero_division=0)


def weighted_recall(data: ScoredData) -> float:
    return recall_score(data.labels, data.predictions, average="weighted", zero_division=0)


def weighted_f1(data: ScoredData) -> float:
    return f1_score(data.labels, data.predictions, average="weighted", zero_division=0)


def macro_f1(data: ScoredData) -> float:
    return _compute_macro_metric_with_support(data.labels, data.predictions, f1_score)


def error(data: ScoredData) -> float:
    if len(data) == 0:
        raise ValueError("Cannot compute error on an empty dataset")
    return 1.0 - accuracy_score(data.labels, data.predictions)


class MultiClassificationEvaluator(Evaluator):
    """Weighted precision, recall and F1, macro F1 over supported classes and error rate"""

    NAME = "multiEval"

    def __init__(self, default_metric: str = "F1"):
        if default_metric not in self._METRICS:
            raise ValueError(f"Unknown metric: {default_metric}. Available: {list(self._METRICS)}")
        _, is_larger_better = self._METRICS[default_metric]
        super().__init__(self.NAME, default_metric, is_larger_better=is_larger_better)

    # metric name -> (function, larger is better)
    _METRICS: Dict[str, Tuple[MetricFunction, bool]] = {
        "Precision": (weighted_precision, True),
        "Recall": (weighted_recall, True),
        "F1": (weighted_f1, True),
        "MacroF1": (macro_f1, True),
        "Error": (error, False),
    }

    def _metric_functions(self) -> Dict[str, MetricFunction]:
        return {name: fn for name, (fn, _) in self._METRICS.items()}


class SingleMetricEvaluator(Evaluator):
    """Evaluator exposing exactly one metric, named like the evaluator itself"""

    def __init__(self, metric_name: str, metric_fn: MetricFunction, is_larger_better: bool):
        super().__init__(metric_name, metric_name, is_larger_better)
        self._metric_fn = metric_fn

    def _metric_functions(self) -> Dict[str, MetricFunction]:
        return {self.default_metric: self._metric_fn}
