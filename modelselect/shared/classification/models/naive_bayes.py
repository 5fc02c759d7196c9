from typing import Literal
import numpy as np
from pydantic.dataclasses import dataclass
from pydantic import Field
from sklearn.naive_bayes import BernoulliNB, GaussianNB, MultinomialNB

from ..base import ClassificationModel, ClassificationConfig
from modelselect.shared.utils.numpy_helpers import softmax_rows


@dataclass
class NaiveBayesConfig(ClassificationConfig):
    """Configuration for Naive Bayes classifier"""
    model_type: Literal["gaussian", "multinomial", "bernoulli"] = Field(
        "gaussian", description="Event model of the classifier"
    )
    alpha: float = Field(1.0, description="Additive smoothing for multinomial and bernoulli models")
    var_smoothing: float = Field(1e-9, description="Variance smoothing for the gaussian model")


class NaiveBayesModel(ClassificationModel):
    """Naive Bayes classifier; raw scores are the joint log-likelihoods"""

    missing_raw_value = -np.inf

    def __init__(self, config: NaiveBayesConfig):
        super().__init__(config)
        self.config: NaiveBayesConfig = config

    def _build_estimator(self, n_classes: int):
        if self.config.model_type == "multinomial":
            return MultinomialNB(alpha=self.config.alpha)
        elif self.config.model_type == "bernoulli":
            return BernoulliNB(alpha=self.config.alpha)
        return GaussianNB(var_smoothing=self.config.var_smoothing)

    def _raw_scores(self, features: np.ndarray) -> np.ndarray:
        return self._model.predict_joint_log_proba(features)

    def raw_to_probability(self, raw_scores: np.ndarray) -> np.ndarray:
        return softmax_rows(raw_scores)
