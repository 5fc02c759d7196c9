"""Classification models package"""

from .decision_tree import DecisionTreeModel, DecisionTreeConfig
from .logistic_regression import LogisticRegressionModel, LogisticRegressionConfig
from .naive_bayes import NaiveBayesModel, NaiveBayesConfig
from .random_forest import RandomForestModel, RandomForestConfig
from .xgboost import XGBoostModel, XGBoostConfig

__all__ = [
    'DecisionTreeModel',
    'DecisionTreeConfig',
    'LogisticRegressionModel',
    'LogisticRegressionConfig',
    'NaiveBayesModel',
    'NaiveBayesConfig',
    'RandomForestModel',
    'RandomForestConfig',
    'XGBoostModel',
    'XGBoostConfig'
]
