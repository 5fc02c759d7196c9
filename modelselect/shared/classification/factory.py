from enum import Enum
from typing import Dict, Type, Union, Any
from .base import ClassificationModel, ClassificationConfig
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


class ModelType(Enum):
    """Candidate algorithms known to the model selector"""

    LOGISTIC_REGRESSION = "logistic_regression"
    RANDOM_FOREST = "random_forest"
    DECISION_TREE = "decision_tree"
    NAIVE_BAYES = "naive_bayes"
    XGBOOST = "xgboost"


_ALIASES: Dict[str, ModelType] = {
    "logistic_regression": ModelType.LOGISTIC_REGRESSION,
    "logistic-regression": ModelType.LOGISTIC_REGRESSION,
    "logisticregression": ModelType.LOGISTIC_REGRESSION,
    "lr": ModelType.LOGISTIC_REGRESSION,
    "random_forest": ModelType.RANDOM_FOREST,
    "random-forest": ModelType.RANDOM_FOREST,
    "randomforest": ModelType.RANDOM_FOREST,
    "rf": ModelType.RANDOM_FOREST,
    "decision_tree": ModelType.DECISION_TREE,
    "decision-tree": ModelType.DECISION_TREE,
    "decisiontree": ModelType.DECISION_TREE,
    "dt": ModelType.DECISION_TREE,
    "naive_bayes": ModelType.NAIVE_BAYES,
    "naive-bayes": ModelType.NAIVE_BAYES,
    "naivebayes": ModelType.NAIVE_BAYES,
    "nb": ModelType.NAIVE_BAYES,
    "xgboost": ModelType.XGBOOST,
    "xgb": ModelType.XGBOOST,
}


class ClassificationFactory:
    """Factory for creating classification models"""

    _models: Dict[str, Type[ClassificationModel]] = {
        ModelType.LOGISTIC_REGRESSION.value: LogisticRegressionModel,
        ModelType.RANDOM_FOREST.value: RandomForestModel,
        ModelType.DECISION_TREE.value: DecisionTreeModel,
        ModelType.NAIVE_BAYES.value: NaiveBayesModel,
        ModelType.XGBOOST.value: XGBoostModel,
    }

    _configs: Dict[str, Type[ClassificationConfig]] = {
        ModelType.LOGISTIC_REGRESSION.value: LogisticRegressionConfig,
        ModelType.RANDOM_FOREST.value: RandomForestConfig,
        ModelType.DECISION_TREE.value: DecisionTreeConfig,
        ModelType.NAIVE_BAYES.value: NaiveBayesConfig,
        ModelType.XGBOOST.value: XGBoostConfig,
    }

    @classmethod
    def resolve_name(cls, model: Union[str, ModelType]) -> str:
        """
        Map a model type or any accepted alias to its canonical registry name

        Args:
            model: ModelType member, canonical name or alias (case-insensitive)

        Returns:
            Canonical model name

        Raises:
            ValueError: If the model is unknown
        """
        if isinstance(model, ModelType):
            return model.value

        name = str(model).lower()
        if name in _ALIASES:
            return _ALIASES[name].value
        if name in cls._models:
            return name

        available = sorted(set(_ALIASES) | set(cls._models))
        raise ValueError(f"Unknown model: {model}. Available: {available}")

    @classmethod
    def create(
        cls, model: Union[str, ModelType], config: Union[Dict[str, Any], ClassificationConfig]
    ) -> ClassificationModel:
        """
        Create classification model instance

        Args:
            model: Model type or name of the classification model
            config: Configuration dictionary or config object

        Returns:
            Configured classification model instance

        Raises:
            ValueError: If model name is unknown
        """
        model_name = cls.resolve_name(model)
        model_class = cls._models[model_name]
        config_class = cls._configs[model_name]

        # Convert dict to config object if needed
        if isinstance(config, dict):
            config = config_class(**config)
        elif not isinstance(config, ClassificationConfig):
            raise ValueError(f"Config must be dict or ClassificationConfig, got {type(config)}")

        return model_class(config)

    @classmethod
    def get_available_models(cls) -> Dict[str, Type[ClassificationModel]]:
        """Get dictionary of available models"""
        return cls._models.copy()

    @classmethod
    def get_model_config_class(cls, model: Union[str, ModelType]) -> Type[ClassificationConfig]:
        """Get configuration class for a specific model"""
        return cls._configs[cls.resolve_name(model)]

    @classmethod
    def register_model(
        cls, name: str, model_class: Type[ClassificationModel], config_class: Type[ClassificationConfig]
    ) -> None:
        """
        Register a new classification model

        Args:
            name: Name for the model
            model_class: Model implementation class
            config_class: Configuration class for the model
        """
        name = name.lower()
        cls._models[name] = model_class
        cls._configs[name] = config_class

    @classmethod
    def create_with_defaults(cls, model: Union[str, ModelType], **kwargs) -> ClassificationModel:
        """
        Create model with default config, overriding specific parameters

        Args:
            model: Model type or name
            **kwargs: Parameters to override in default config

        Returns:
            Configured classification model instance
        """
        config_class = cls.get_model_config_class(model)
        config = config_class(**kwargs)
        return cls.create(model, config)
