import pytest
from pydantic import ValidationError

from modelselect.shared.classification import (
    ClassificationFactory,
    DecisionTreeConfig,
    DecisionTreeModel,
    ModelType,
    NaiveBayesModel,
    RandomForestConfig,
    XGBoostModel,
)


class TestClassificationFactory:
    @pytest.mark.parametrize(
        "alias,expected",
        [
            ("lr", "logistic_regression"),
            ("Random-Forest", "random_forest"),
            ("dt", "decision_tree"),
            ("nb", "naive_bayes"),
            ("XGB", "xgboost"),
            (ModelType.RANDOM_FOREST, "random_forest"),
        ],
    )
    def test_resolve_name(self, alias, expected):
        assert ClassificationFactory.resolve_name(alias) == expected

    def test_unknown_model(self):
        with pytest.raises(ValueError):
            ClassificationFactory.create("svm", {})

    def test_create_from_dict(self):
        model = ClassificationFactory.create("naive_bayes", {"model_type": "bernoulli", "alpha": 0.5})
        assert isinstance(model, NaiveBayesModel)
        assert model.config.alpha == 0.5

    def test_create_rejects_other_config_types(self):
        with pytest.raises(ValueError):
            ClassificationFactory.create("rf", ["n_estimators", 10])

    def test_invalid_value_fails_validation(self):
        with pytest.raises(ValidationError):
            ClassificationFactory.create("nb", {"model_type": "poisson"})

    def test_config_class(self):
        assert ClassificationFactory.get_model_config_class("rf") is RandomForestConfig
        assert ClassificationFactory.get_model_config_class(ModelType.DECISION_TREE) is DecisionTreeConfig

    def test_create_with_defaults(self):
        model = ClassificationFactory.create_with_defaults(ModelType.XGBOOST, max_depth=2)
        assert isinstance(model, XGBoostModel)
        assert model.config.max_depth == 2

    def test_register_model(self):
        ClassificationFactory.register_model("shallow_tree", DecisionTreeModel, DecisionTreeConfig)
        try:
            model = ClassificationFactory.create("Shallow_Tree", {"max_depth": 1})
            assert isinstance(model, DecisionTreeModel)
        finally:
            ClassificationFactory._models.pop("shallow_tree")
            ClassificationFactory._configs.pop("shallow_tree")
