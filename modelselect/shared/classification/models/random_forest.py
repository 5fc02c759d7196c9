from typing import Optional
import numpy as np
from pydantic.dataclasses import dataclass
from pydantic import Field
from sklearn.ensemble import RandomForestClassifier

from ..base import ClassificationModel, ClassificationConfig
from modelselect.shared.utils.numpy_helpers import normalize_rows


@dataclass
class RandomForestConfig(ClassificationConfig):
    """Random forest hyperparameters, named as in scikit-learn"""
    n_estimators: int = Field(100, description="Trees in the forest, also the vote total per row")
    criterion: str = Field("gini", description="Split quality measure: gini, entropy or log_loss")
    max_depth: Optional[int] = Field(None, description="Depth limit per tree")
    min_samples_split: int = Field(2, description="Rows needed before a node may split")
    min_samples_leaf: int = Field(1, description="Rows needed in every leaf")
    max_features: Optional[str] = Field("sqrt", description="Features examined per split: sqrt, log2 or all")
    max_leaf_nodes: Optional[int] = Field(None, description="Leaf limit per tree")
    min_impurity_decrease: float = Field(0.0, description="Impurity gain a split must reach")
    bootstrap: bool = Field(True, description="Train each tree on a bootstrap sample")
    max_samples: Optional[float] = Field(None, description="Bootstrap sample size as a fraction of the rows")
    n_jobs: Optional[int] = Field(None, description="Threads used to grow and query the trees")


class RandomForestModel(ClassificationModel):
    """Random Forest classifier; raw scores are the per-class tree votes"""

    def __init__(self, config: RandomForestConfig):
        super().__init__(config)
        self.config: RandomForestConfig = config

    def _build_estimator(self, n_classes: int):
        params = self.estimator_params()
        if not params["bootstrap"]:
            # scikit-learn rejects max_samples without bootstrapping
            params["max_samples"] = None
        return RandomForestClassifier(**params)

    def _raw_scores(self, features: np.ndarray) -> np.ndarray:
        return self._model.predict_proba(features) * self.config.n_estimators

    def raw_to_probability(self, raw_scores: np.ndarray) -> np.ndarray:
        return normalize_rows(raw_scores)
