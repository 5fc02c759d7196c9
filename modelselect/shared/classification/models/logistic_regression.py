from typing import Optional
import numpy as np
from pydantic.dataclasses import dataclass
from pydantic import Field
from sklearn.linear_model import LogisticRegression
from sklearn.pipeline import make_pipeline
from sklearn.preprocessing import StandardScaler

from ..base import ClassificationModel, ClassificationConfig
from modelselect.shared.utils.numpy_helpers import softmax_rows


@dataclass
class LogisticRegressionConfig(ClassificationConfig):
    """Configuration for Logistic Regression classifier"""
    C: float = Field(1.0, description="Inverse of regularization strength")
    l1_ratio: float = Field(0.0, description="Elastic net mixing, 0 is pure L2 and 1 is pure L1")
    max_iter: int = Field(100, description="Maximum number of solver iterations")
    fit_intercept: bool = Field(True, description="Whether to fit an intercept term")
    tol: float = Field(1e-4, description="Tolerance for stopping criteria")
    standardization: bool = Field(True, description="Standardize features before fitting")
    solver: Optional[str] = Field(None, description="Solver, chosen from l1_ratio when not set")


class LogisticRegressionModel(ClassificationModel):
    """Multinomial Logistic Regression classifier; raw scores are the decision margins"""

    missing_raw_value = -np.inf

    def __init__(self, config: LogisticRegressionConfig):
        super().__init__(config)
        self.config: LogisticRegressionConfig = config

    def _build_estimator(self, n_classes: int):
        params = dict(
            C=self.config.C,
            max_iter=self.config.max_iter,
            fit_intercept=self.config.fit_intercept,
            tol=self.config.tol,
            random_state=self.config.random_state,
        )
        if self.config.l1_ratio > 0:
            params.update(penalty="elasticnet", l1_ratio=self.config.l1_ratio, solver=self.config.solver or "saga")
        else:
            params["solver"] = self.config.solver or "lbfgs"

        estimator = LogisticRegression(**params)
        if self.config.standardization:
            return make_pipeline(StandardScaler(), estimator)
        return estimator

    def _raw_scores(self, features: np.ndarray) -> np.ndarray:
        margins = self._model.decision_function(features)
        if margins.ndim == 1:
            # Binary case: a single margin for the positive class
            return np.column_stack([np.zeros_like(margins), margins])
        return margins

    def raw_to_probability(self, raw_scores: np.ndarray) -> np.ndarray:
        return softmax_rows(raw_scores)
