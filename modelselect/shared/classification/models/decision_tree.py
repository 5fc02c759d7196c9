from typing import Optional
import numpy as np
from pydantic.dataclasses import dataclass
from pydantic import Field
from sklearn.tree import DecisionTreeClassifier

from ..base import ClassificationModel, ClassificationConfig
from modelselect.shared.utils.numpy_helpers import normalize_rows


@dataclass
class DecisionTreeConfig(ClassificationConfig):
    """Decision tree hyperparameters, named as in scikit-learn"""
    criterion: str = Field("gini", description="Split quality measure: gini, entropy or log_loss")
    max_depth: Optional[int] = Field(None, description="Depth limit, None grows until leaves are pure")
    min_samples_split: int = Field(2, description="Rows needed before a node may split")
    min_samples_leaf: int = Field(1, description="Rows needed in every leaf")
    max_features: Optional[str] = Field(None, description="Features examined per split: sqrt, log2 or all")
    max_leaf_nodes: Optional[int] = Field(None, description="Leaf limit, grown best-first")
    min_impurity_decrease: float = Field(0.0, description="Impurity gain a split must reach")


class DecisionTreeModel(ClassificationModel):
    """Decision Tree classifier; raw scores are the class distribution of the reached leaf"""

    def __init__(self, config: DecisionTreeConfig):
        super().__init__(config)
        self.config: DecisionTreeConfig = config

    def _build_estimator(self, n_classes: int):
        return DecisionTreeClassifier(**self.estimator_params())

    def _raw_scores(self, features: np.ndarray) -> np.ndarray:
        return self._model.predict_proba(features)

    def raw_to_probability(self, raw_scores: np.ndarray) -> np.ndarray:
        return normalize_rows(raw_scores)
