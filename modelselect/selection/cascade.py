"""
Three stage output of a model selector.

Stage 1 predicts the class id, stage 2 re-invokes the selected model's raw scoring and
stage 3 maps the raw scores to probabilities. Each stage takes the outputs of the
previous ones as inputs, so the three output columns always describe the same model.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence, Tuple

import numpy as np

from modelselect.dataset import FeatureRef, FeatureType
from modelselect.shared.classification import ClassificationModel
from .errors import ConfigurationError


logger = logging.getLogger(__name__)

PREDICTION_SUFFIX = "prediction"
RAW_PREDICTION_SUFFIX = "rawPrediction"
PROBABILITY_SUFFIX = "probability"


class OutputStage(ABC):
    """Stage with a fixed, ordered list of input features and one output feature"""

    arity: int = 0
    output_suffix: str = ""
    output_type: FeatureType = FeatureType.VECTOR

    def __init__(self, inputs: Sequence[FeatureRef]):
        inputs = tuple(inputs)
        if len(inputs) != self.arity:
            raise ConfigurationError(
                f"{self.__class__.__name__} takes {self.arity} inputs, got {len(inputs)}: {[f.name for f in inputs]}"
            )
        self._check_inputs(inputs)
        self.inputs: Tuple[FeatureRef, ...] = inputs
        self.uid = f"{self.__class__.__name__}_{self.label.name}"
        self.output = self.label.derived(f"{self.label.name}_{self.output_suffix}", self.output_type, self.uid)

    @property
    def label(self) -> FeatureRef:
        return self.inputs[0]

    @property
    def features(self) -> FeatureRef:
        return self.inputs[1]

    @abstractmethod
    def _check_inputs(self, inputs: Tuple[FeatureRef, ...]) -> None:
        pass

    @staticmethod
    def _expect_output_of(stage: "OutputStage", ref: FeatureRef, position: int) -> None:
        if ref != stage.output:
            raise ConfigurationError(
                f"Input {position} must be the output '{stage.output.name}' of {stage.uid}, got '{ref.name}'"
            )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({', '.join(f.name for f in self.inputs)} -> {self.output.name})"


class SelectorStage(OutputStage):
    """Stage 1: (label, features) -> predicted class id"""

    arity = 2
    output_suffix = PREDICTION_SUFFIX
    output_type = FeatureType.REAL_NN

    def __init__(self, label: FeatureRef, features: FeatureRef):
        super().__init__((label, features))
        self.model: Optional[ClassificationModel] = None

    def _check_inputs(self, inputs: Tuple[FeatureRef, ...]) -> None:
        label, features = inputs
        if label.feature_type != FeatureType.REAL_NN or not label.is_response:
            raise ConfigurationError(
                f"Label '{label.name}' must be a non-nullable numeric response, got {label.feature_type.value}"
                f"{'' if label.is_response else ' predictor'}"
            )
        if features.feature_type != FeatureType.VECTOR or features.is_response:
            raise ConfigurationError(
                f"Features '{features.name}' must be a vector predictor, got {features.feature_type.value}"
            )

    def fitted_model(self) -> ClassificationModel:
        if self.model is None or not self.model.is_fitted:
            raise ConfigurationError(f"{self.uid} has no fitted model")
        return self.model

    def transform(self, features: np.ndarray) -> np.ndarray:
        return self.fitted_model().predict(features)


class RawScoresStage(OutputStage):
    """Stage 2: (label, features, prediction) -> per-class raw scores"""

    arity = 3
    output_suffix = RAW_PREDICTION_SUFFIX

    def __init__(self, inputs: Sequence[FeatureRef], selector: SelectorStage):
        self.selector = selector
        super().__init__(inputs)

    def _check_inputs(self, inputs: Tuple[FeatureRef, ...]) -> None:
        if inputs[:2] != self.selector.inputs:
            raise ConfigurationError(f"{self.__class__.__name__} must start with the inputs of {self.selector.uid}")
        self._expect_output_of(self.selector, inputs[2], 2)

    def transform(self, features: np.ndarray) -> np.ndarray:
        return self.selector.fitted_model().predict_raw(features)


class ProbabilityStage(OutputStage):
    """Stage 3: (label, features, prediction, raw scores) -> per-class probabilities"""

    arity = 4
    output_suffix = PROBABILITY_SUFFIX

    def __init__(self, inputs: Sequence[FeatureRef], raw_stage: RawScoresStage):
        self.raw_stage = raw_stage
        super().__init__(inputs)

    def _check_inputs(self, inputs: Tuple[FeatureRef, ...]) -> None:
        selector = self.raw_stage.selector
        if inputs[:2] != selector.inputs:
            raise ConfigurationError(f"{self.__class__.__name__} must start with the inputs of {selector.uid}")
        self._expect_output_of(selector, inputs[2], 2)
        self._expect_output_of(self.raw_stage, inputs[3], 3)

    def transform(self, raw_scores: np.ndarray) -> np.ndarray:
        return self.raw_stage.selector.fitted_model().raw_to_probability(raw_scores)


def build_cascade(label: FeatureRef, features: FeatureRef) -> Tuple[SelectorStage, RawScoresStage, ProbabilityStage]:
    """Wire the three stages for a label and feature vector"""
    stage1 = SelectorStage(label, features)
    stage2 = RawScoresStage((label, features, stage1.output), stage1)
    stage3 = ProbabilityStage((label, features, stage1.output, stage2.output), stage2)
    logger.debug(f"Built output cascade {stage1}, {stage2}, {stage3}")
    return stage1, stage2, stage3
