"""Classification models for the model selector"""

from .base import ClassificationModel, ClassificationConfig
from .factory import ClassificationFactory, ModelType
from .models import (
    DecisionTreeModel,
    DecisionTreeConfig,
    LogisticRegressionModel,
    LogisticRegressionConfig,
    NaiveBayesModel,
    NaiveBayesConfig,
    RandomForestModel,
    RandomForestConfig,
    XGBoostModel,
    XGBoostConfig,
)

__all__ = [
    "ClassificationModel",
    "ClassificationConfig",
    "ClassificationFactory",
    "ModelType",
    "DecisionTreeModel",
    "DecisionTreeConfig",
    "LogisticRegressionModel",
    "LogisticRegressionConfig",
    "NaiveBayesModel",
    "NaiveBayesConfig",
    "RandomForestModel",
    "RandomForestConfig",
    "XGBoostModel",
    "XGBoostConfig",
]
