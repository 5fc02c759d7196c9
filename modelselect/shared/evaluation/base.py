"""Common evaluator interface shared by all metric families"""

import logging
import math
import warnings
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import numpy as np


logger = logging.getLogger(__name__)


class EvaluationWarning(UserWarning):
    """Emitted when an evaluator cannot compute one of its metrics; the metric is left out"""


@dataclass
class ScoredData:
    """
    Everything an evaluator may look at for one scored dataset.

    ``raw_scores`` and ``probabilities`` have one column per entry of ``classes``.
    """

    labels: np.ndarray
    predictions: np.ndarray
    raw_scores: Optional[np.ndarray] = None
    probabilities: Optional[np.ndarray] = None
    classes: Optional[np.ndarray] = None

    def __post_init__(self):
        self.labels = np.asarray(self.labels, dtype=float)
        self.predictions = np.asarray(self.predictions, dtype=float)
        if self.labels.shape != self.predictions.shape:
            raise ValueError(
                f"Shape mismatch: labels {self.labels.shape} vs predictions {self.predictions.shape}"
            )

    def __len__(self) -> int:
        return len(self.labels)


MetricFunction = Callable[[ScoredData], float]


class Evaluator(ABC):
    """
    Computes a fixed set of named scalar metrics from scored data.

    The optimization direction is declared by ``is_larger_better`` and applies to
    ``default_metric``, the value returned by ``evaluate``.
    """

    def __init__(self, name: str, default_metric: str, is_larger_better: bool):
        self.name = name
        self.default_metric = default_metric
        self.is_larger_better = is_larger_better

    @abstractmethod
    def _metric_functions(self) -> Dict[str, MetricFunction]:
        """Ordered mapping of metric name to the function computing it"""
        pass

    @property
    def metric_names(self) -> List[str]:
        return list(self._metric_functions().keys())

    def evaluate_all(self, data: ScoredData) -> Dict[str, float]:
        """
        Compute every metric of this evaluator

        Args:
            data: Labels, predictions and scores of one dataset

        Returns:
            Dictionary of metric name to value. Metrics that raise or produce a
            non-finite value are omitted after an EvaluationWarning.
        """
        metrics = {}
        for metric_name, metric_fn in self._metric_functions().items():
            try:
                value = float(metric_fn(data))
            except Exception as e:
                self._warn(f"Evaluator '{self.name}' failed to compute '{metric_name}': {e}")
                continue

            if not math.isfinite(value):
                self._warn(f"Evaluator '{self.name}' produced non-finite '{metric_name}' ({value})")
                continue

            metrics[metric_name] = value
        return metrics

    def evaluate(self, data: ScoredData) -> float:
        """
        Compute the default metric

        Returns:
            The metric value, or NaN when it could not be computed
        """
        return self.evaluate_all(data).get(self.default_metric, float("nan"))

    def is_better(self, candidate: float, incumbent: Optional[float]) -> bool:
        """Strict improvement in the declared direction"""
        if incumbent is None:
            return True
        return candidate > incumbent if self.is_larger_better else candidate < incumbent

    @staticmethod
    def _warn(message: str) -> None:
        logger.warning(message)
        warnings.warn(message, EvaluationWarning, stacklevel=3)

    def __repr__(self) -> str:
        direction = "larger" if self.is_larger_better else "smaller"
        return f"{self.__class__.__name__}(name={self.name!r}, metric={self.default_metric!r}, {direction} is better)"
