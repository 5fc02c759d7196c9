from typing import Dict

from .base import Evaluator, MetricFunction


class CustomEvaluator(Evaluator):
    """
    Evaluator backed by a user supplied scoring function.

    Args:
        metric_name: Name of the metric, also used as the evaluator name
        is_larger_better: Optimization direction of the metric
        evaluate_fn: Function mapping ScoredData to a scalar
    """

    def __init__(self, metric_name: str, is_larger_better: bool, evaluate_fn: MetricFunction):
        if not callable(evaluate_fn):
            raise ValueError("evaluate_fn must be callable")
        super().__init__(metric_name, metric_name, is_larger_better)
        self._evaluate_fn = evaluate_fn

    def _metric_functions(self) -> Dict[str, MetricFunction]:
        return {self.default_metric: self._evaluate_fn}
