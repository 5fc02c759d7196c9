from typing import Optional
import numpy as np
from pydantic.dataclasses import dataclass
from pydantic import Field
import xgboost as xgb

from ..base import ClassificationModel, ClassificationConfig
from modelselect.shared.utils.numpy_helpers import softmax_rows


@dataclass
class XGBoostConfig(ClassificationConfig):
    """Gradient boosted trees hyperparameters, named as in the xgboost sklearn API"""
    n_estimators: int = Field(100, description="Boosting rounds")
    max_depth: int = Field(6, description="Depth limit per tree")
    learning_rate: float = Field(0.3, description="Shrinkage applied to every round")
    subsample: float = Field(1.0, description="Fraction of rows sampled per round")
    colsample_bytree: float = Field(1.0, description="Fraction of columns sampled per tree")
    reg_alpha: float = Field(0.0, description="L1 penalty on leaf weights")
    reg_lambda: float = Field(1.0, description="L2 penalty on leaf weights")
    gamma: float = Field(0.0, description="Loss reduction a split must reach")
    min_child_weight: float = Field(1.0, description="Hessian sum needed in a child")
    eval_metric: Optional[str] = Field(None, description="Metric tracked by xgboost during training")
    n_jobs: Optional[int] = Field(1, description="Threads per model")


class XGBoostModel(ClassificationModel):
    """XGBoost classifier; raw scores are the untransformed output margins"""

    missing_raw_value = -np.inf

    def __init__(self, config: XGBoostConfig):
        super().__init__(config)
        self.config: XGBoostConfig = config

    def _build_estimator(self, n_classes: int):
        objective = "binary:logistic" if n_classes <= 2 else "multi:softprob"
        return xgb.XGBClassifier(objective=objective, **self.estimator_params())

    def _raw_scores(self, features: np.ndarray) -> np.ndarray:
        margins = self._model.predict(features, output_margin=True)
        if margins.ndim == 1:
            # binary margins are log-odds of the second class
            return np.column_stack([np.zeros_like(margins), margins])
        return margins

    def raw_to_probability(self, raw_scores: np.ndarray) -> np.ndarray:
        return softmax_rows(raw_scores)
