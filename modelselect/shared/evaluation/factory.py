from typing import Dict, Callable

from .base import Evaluator, MetricFunction
from .custom import CustomEvaluator
from .multiclass import (
    MultiClassificationEvaluator,
    SingleMetricEvaluator,
    error as error_rate,
    weighted_f1,
    weighted_precision,
    weighted_recall,
)


class Evaluators:
    """Constructors for the available evaluators"""

    class MultiClassification:
        @staticmethod
        def full(default_metric: str = "F1") -> MultiClassificationEvaluator:
            """All multiclass metrics in one evaluator"""
            return MultiClassificationEvaluator(default_metric)

        @staticmethod
        def precision() -> Evaluator:
            """Weighted precision"""
            return SingleMetricEvaluator("Precision", weighted_precision, is_larger_better=True)

        @staticmethod
        def recall() -> Evaluator:
            """Weighted recall"""
            return SingleMetricEvaluator("Recall", weighted_recall, is_larger_better=True)

        @staticmethod
        def f1() -> Evaluator:
            """Weighted F1"""
            return SingleMetricEvaluator("F1", weighted_f1, is_larger_better=True)

        @staticmethod
        def error() -> Evaluator:
            """Misclassification rate (1 - accuracy)"""
            return SingleMetricEvaluator("Error", error_rate, is_larger_better=False)

        @staticmethod
        def custom(metric_name: str, is_larger_better: bool, evaluate_fn: MetricFunction) -> Evaluator:
            """User defined metric"""
            return CustomEvaluator(metric_name, is_larger_better, evaluate_fn)

    _by_name: Dict[str, Callable[[], Evaluator]] = {
        "multieval": MultiClassification.full,
        "multi": MultiClassification.full,
        "precision": MultiClassification.precision,
        "recall": MultiClassification.recall,
        "f1": MultiClassification.f1,
        "error": MultiClassification.error,
    }

    @classmethod
    def from_name(cls, name: str) -> Evaluator:
        """
        Create a built-in evaluator from its configuration name

        Args:
            name: One of multiEval, precision, recall, f1, error (case-insensitive)

        Returns:
            Evaluator instance

        Raises:
            ValueError: If the name is unknown
        """
        key = name.lower()
        if key not in cls._by_name:
            raise ValueError(f"Unknown evaluator: {name}. Available: {sorted(cls._by_name)}")
        return cls._by_name[key]()
