"""Evaluators scoring classification predictions"""

from .base import Evaluator, EvaluationWarning, ScoredData
from .custom import CustomEvaluator
from .factory import Evaluators
from .multiclass import MultiClassificationEvaluator, SingleMetricEvaluator

__all__ = [
    "Evaluator",
    "EvaluationWarning",
    "ScoredData",
    "CustomEvaluator",
    "Evaluators",
    "MultiClassificationEvaluator",
    "SingleMetricEvaluator",
]
