"""Selection summary and train / holdout metrics attached to a fitted selector"""

import json
import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from pydantic import Field
from pydantic.dataclasses import dataclass

from modelselect.shared.evaluation import Evaluator, ScoredData
from modelselect.shared.utils.numpy_helpers import convert_to_primitives_nested

TRAINING_EVAL = "TrainingEval"
HOLDOUT_EVAL = "HoldOutEval"
SUMMARY = "summary"

logger = logging.getLogger(__name__)

_SUMMARY_KEYS = {
    "best_model_name": "bestModelName",
    "best_model_type": "bestModelType",
    "best_model_params": "bestModelParams",
    "validation_type": "validationType",
    "validation_parameters": "validationParameters",
    "validation_metric": "validationMetric",
    "data_prep": "dataPrep",
    "validation_results": "validationResults",
    "training_eval_source": "trainingEvalSource",
    "trials_executed": "trialsExecuted",
    "timed_out": "timedOut",
}
RESERVED_SUMMARY_KEYS = frozenset(_SUMMARY_KEYS.values())


class MetricsRecord:
    """
    Scalar metrics keyed by (evaluator name, metric name).

    Flattened keys have the form ``(<evaluatorName>)_<metricName>``.
    """

    def __init__(self, values: Optional[Dict[Tuple[str, str], float]] = None):
        self._values: Dict[Tuple[str, str], float] = dict(values or {})

    @staticmethod
    def key(evaluator_name: str, metric_name: str) -> str:
        return f"({evaluator_name})_{metric_name}"

    @classmethod
    def compute(cls, evaluators: Sequence[Evaluator], data: ScoredData) -> "MetricsRecord":
        """Evaluate every evaluator on the same scored data"""
        record = cls()
        for evaluator in evaluators:
            for metric_name, value in evaluator.evaluate_all(data).items():
                record[evaluator.name, metric_name] = value
        return record

    def flatten(self) -> Dict[str, float]:
        return {self.key(evaluator, metric): value for (evaluator, metric), value in self._values.items()}

    def __setitem__(self, key: Tuple[str, str], value: float) -> None:
        self._values[key] = float(value)

    def __getitem__(self, key: Tuple[str, str]) -> float:
        return self._values[key]

    def __contains__(self, key: Tuple[str, str]) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[Tuple[str, str]]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)


@dataclass
class SelectorSummary:
    """Provenance of the selected model"""

    best_model_name: str
    best_model_type: Optional[str] = None
    best_model_params: Dict[str, Any] = Field(default_factory=dict)
    validation_type: Optional[str] = None
    validation_parameters: Dict[str, Any] = Field(default_factory=dict)
    validation_metric: Optional[str] = None
    data_prep: Dict[str, Any] = Field(default_factory=dict)
    validation_results: List[Dict[str, Any]] = Field(default_factory=list)
    training_eval_source: Optional[str] = None
    trials_executed: int = 0
    timed_out: bool = False
    extra: Dict[str, Any] = Field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """camelCase mapping; entries of ``extra`` are merged at the top level"""
        out = {camel: getattr(self, name) for name, camel in _SUMMARY_KEYS.items()}
        for key, value in self.extra.items():
            if key in out:
                logger.warning("Dropping summary entry %r, the key is reserved", key)
                continue
            out[key] = value
        return convert_to_primitives_nested(out)

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "SelectorSummary":
        by_camel = {camel: name for name, camel in _SUMMARY_KEYS.items()}
        kwargs: Dict[str, Any] = {}
        extra: Dict[str, Any] = {}
        for key, value in values.items():
            if key in by_camel:
                kwargs[by_camel[key]] = value
            else:
                extra[key] = value
        return cls(**kwargs, extra=extra)


@dataclass
class ModelSelectorMetadata:
    """Summary plus the training and holdout metrics of a fitted selector"""

    summary: SelectorSummary
    training_eval: Dict[str, float] = Field(default_factory=dict)
    holdout_eval: Optional[Dict[str, float]] = None

    def to_dict(self) -> Dict[str, Any]:
        out = {SUMMARY: self.summary.to_dict(), TRAINING_EVAL: dict(self.training_eval)}
        if self.holdout_eval is not None:
            out[HOLDOUT_EVAL] = dict(self.holdout_eval)
        return convert_to_primitives_nested(out)

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "ModelSelectorMetadata":
        return cls(
            summary=SelectorSummary.from_dict(values[SUMMARY]),
            training_eval=dict(values.get(TRAINING_EVAL, {})),
            holdout_eval=values.get(HOLDOUT_EVAL),
        )

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, text: str) -> "ModelSelectorMetadata":
        return cls.from_dict(json.loads(text))
