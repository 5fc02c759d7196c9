import json
import os

import numpy as np
import pytest

from modelselect.dataset import FeatureBuilder, FeatureRef, FeatureType
from modelselect.shared.classification import (
    DecisionTreeConfig,
    DecisionTreeModel,
    LogisticRegressionModel,
    ModelType,
)
from modelselect.shared.evaluation import Evaluators
from modelselect.selection import (
    BestEstimator,
    ConfigurationError,
    DataCutter,
    FitError,
    FittedModelSelector,
    MultiClassificationModelSelector,
)

MULTI_METRICS = ["Precision", "Recall", "F1", "MacroF1", "Error"]


def cross_entropy(data):
    columns = np.searchsorted(data.classes, data.labels)
    picked = data.probabilities[np.arange(len(data)), columns]
    return float(-np.mean(np.log(np.clip(picked, 1e-15, 1.0))))


@pytest.fixture
def cross_entropy_evaluator():
    return Evaluators.MultiClassification.custom("cross entropy", False, cross_entropy)


@pytest.fixture
def inputs(cluster_frame):
    label, predictors = FeatureBuilder.from_dataframe(cluster_frame, response="label")
    return label, predictors[0]


def _selector(inputs, **kwargs):
    label, features = inputs
    return (
        MultiClassificationModelSelector.with_cross_validation(**kwargs)
        .set_models_to_try(ModelType.LOGISTIC_REGRESSION, ModelType.RANDOM_FOREST)
        .set_param(ModelType.LOGISTIC_REGRESSION, "C", 0.1, 10.0)
        .set_param(ModelType.RANDOM_FOREST, "n_estimators", 10)
        .set_param(ModelType.RANDOM_FOREST, "max_depth", 5)
        .set_input(label, features)
    )


class TestConfiguration:
    def test_outputs(self, inputs):
        selector = _selector(inputs)
        prediction, raw, probability = selector.get_output()
        assert (prediction.name, raw.name, probability.name) == (
            "label_prediction",
            "label_rawPrediction",
            "label_probability",
        )
        assert prediction.origin_stage == selector.stage1.uid
        assert raw.origin_stage == selector.stage2.uid
        assert probability.origin_stage == selector.stage3.uid

    def test_get_output_requires_input(self):
        with pytest.raises(ConfigurationError):
            MultiClassificationModelSelector.with_cross_validation().get_output()

    def test_fit_requires_input(self, cluster_frame):
        with pytest.raises(ConfigurationError):
            MultiClassificationModelSelector.with_cross_validation().fit(cluster_frame)

    def test_invalid_input_types(self, inputs):
        label, features = inputs
        with pytest.raises(ConfigurationError):
            MultiClassificationModelSelector.with_cross_validation().set_input(features, label)

    def test_default_splitter_and_none(self):
        assert isinstance(MultiClassificationModelSelector.with_cross_validation().splitter, DataCutter)
        assert MultiClassificationModelSelector.with_train_validation_split(splitter=None).splitter is None

    def test_evaluators_unique_by_name(self, cross_entropy_evaluator):
        selector = MultiClassificationModelSelector.with_cross_validation(
            validation_metric=Evaluators.MultiClassification.precision(),
            train_test_evaluators=[cross_entropy_evaluator, Evaluators.MultiClassification.full()],
        )
        assert [e.name for e in selector.evaluators] == ["multiEval", "cross entropy", "Precision"]
        assert cross_entropy_evaluator in selector.evaluators

    def test_unknown_param(self, inputs):
        with pytest.raises(ConfigurationError):
            _selector(inputs).set_param(ModelType.RANDOM_FOREST, "numTrees", 10)

    def test_no_models(self, inputs, cluster_frame):
        selector = _selector(inputs).set_models_to_try()
        with pytest.raises(ConfigurationError):
            selector.fit(cluster_frame)


class TestFit:
    def test_cross_validation_end_to_end(self, inputs, cluster_frame):
        selector = _selector(
            inputs,
            splitter=DataCutter(seed=42, max_label_categories=1000000, min_label_fraction=0.0),
            num_folds=4,
            validation_metric=Evaluators.MultiClassification.precision(),
            seed=10,
        )
        model = selector.fit(cluster_frame)

        training_eval = model.metadata.training_eval
        for metric in MULTI_METRICS:
            assert f"(multiEval)_{metric}" in training_eval

        model.evaluate_model(cluster_frame)
        for metric in MULTI_METRICS:
            assert f"(multiEval)_{metric}" in model.metadata.holdout_eval
        assert model.metadata.holdout_eval["(multiEval)_Error"] == pytest.approx(0.0)

        scored = model.transform(cluster_frame)
        assert np.array_equal(scored["label_prediction"].to_numpy(), cluster_frame["label"].to_numpy())

    def test_train_validation_split_without_holdout(self, inputs, cluster_frame, cross_entropy_evaluator):
        label, features = inputs
        selector = (
            MultiClassificationModelSelector.with_train_validation_split(
                None, train_ratio=0.8, validation_metric=cross_entropy_evaluator, seed=10
            )
            .set_models_to_try(ModelType.LOGISTIC_REGRESSION, ModelType.RANDOM_FOREST)
            .set_param(ModelType.LOGISTIC_REGRESSION, "C", 0.001, 10.0)
            .set_param(ModelType.RANDOM_FOREST, "max_depth", 0)
            .set_input(label, features)
        )
        model = selector.fit(cluster_frame)

        assert isinstance(model.model, LogisticRegressionModel)
        assert model.model.config.C == 10.0
        summary = model.metadata.summary
        assert summary.training_eval_source == "train"
        assert any(row["status"] == "failed" for row in summary.validation_results)
        assert "(cross entropy)_cross entropy" in model.metadata.training_eval

        model.evaluate_model(cluster_frame)
        assert "(cross entropy)_cross entropy" in model.metadata.holdout_eval

        scored = model.transform(cluster_frame)
        missed = np.sum(scored["label_prediction"].to_numpy() != cluster_frame["label"].to_numpy())
        assert missed <= 2

    def test_all_evaluators_recorded(self, inputs, cluster_frame, cross_entropy_evaluator):
        label, features = inputs
        selector = (
            MultiClassificationModelSelector.with_cross_validation(
                DataCutter(42, reserve_test_fraction=0.2, max_label_categories=1000000, min_label_fraction=0.0),
                num_folds=4,
                validation_metric=Evaluators.MultiClassification.precision(),
                train_test_evaluators=[cross_entropy_evaluator],
                seed=10,
            )
            .set_models_to_try(ModelType.DECISION_TREE, ModelType.RANDOM_FOREST)
            .set_params(ModelType.DECISION_TREE, max_depth=[5], min_samples_leaf=[1, 2])
            .set_params(ModelType.RANDOM_FOREST, max_depth=[5], n_estimators=[10])
            .set_input(label, features)
        )
        model = selector.fit(cluster_frame)
        model.evaluate_model(cluster_frame)

        assert model.metadata.summary.training_eval_source == "test"
        for section in (model.metadata.training_eval, model.metadata.holdout_eval):
            for metric in MULTI_METRICS:
                assert f"(multiEval)_{metric}" in section
            assert "(cross entropy)_cross entropy" in section
            assert "(Precision)_Precision" in section

    def test_summary(self, inputs, cluster_frame):
        model = _selector(inputs, num_folds=2, seed=3).fit(cluster_frame)
        summary = model.metadata.to_dict()["summary"]

        assert summary["bestModelName"] in ("logistic_regression", "random_forest")
        assert summary["validationType"] == "CrossValidation"
        assert summary["validationParameters"]["numFolds"] == 2
        assert summary["validationMetric"] == "F1"
        assert summary["dataPrep"]["splitter"] == "DataCutter"
        # two C values for logistic regression, one random forest assignment
        assert summary["trialsExecuted"] == 3 * 2
        assert len(summary["validationResults"]) == 3
        assert summary["timedOut"] is False

    def test_summary_records_timeout(self, inputs, cluster_frame):
        model = _selector(inputs, num_folds=2, max_wait=1e-9).fit(cluster_frame)
        summary = model.metadata.to_dict()["summary"]

        assert summary["timedOut"] is True
        assert summary["trialsExecuted"] == 2
        assert "not run" in [row["status"] for row in summary["validationResults"]]

    def test_deterministic(self, inputs, cluster_frame):
        first = _selector(inputs, seed=7).fit(cluster_frame)
        second = _selector(inputs, seed=7).fit(cluster_frame)

        assert first.metadata.summary.best_model_name == second.metadata.summary.best_model_name
        assert first.metadata.summary.best_model_params == second.metadata.summary.best_model_params
        assert first.metadata.training_eval == second.metadata.training_eval
        _, raw_first, _ = first.predict_all(cluster_frame)
        _, raw_second, _ = second.predict_all(cluster_frame)
        assert np.allclose(raw_first, raw_second)

    def test_refit_leaves_earlier_selector_unchanged(self, inputs, cluster_frame):
        selector = _selector(inputs).set_models_to_try(ModelType.LOGISTIC_REGRESSION)
        first = selector.fit(cluster_frame)
        first_model = first.model
        _, raw_before, probability_before = first.predict_all(cluster_frame)

        second = selector.set_models_to_try(ModelType.DECISION_TREE).fit(cluster_frame)

        assert first.stage1 is not second.stage1
        assert first.model is first_model
        assert isinstance(first.model, LogisticRegressionModel)
        assert isinstance(second.model, DecisionTreeModel)
        _, raw_after, probability_after = first.predict_all(cluster_frame)
        assert np.allclose(raw_before, raw_after)
        assert np.allclose(probability_before, probability_after)

    def test_output_shapes(self, inputs, cluster_frame):
        model = _selector(inputs).fit(cluster_frame)
        scored = model.transform(cluster_frame)

        for raw, probability in zip(scored["label_rawPrediction"], scored["label_probability"]):
            assert len(raw) == len(probability) == 3
            assert np.sum(probability) == pytest.approx(1.0, abs=1e-6)

    def test_fewer_than_two_classes(self, inputs, cluster_frame):
        single = cluster_frame[cluster_frame["label"] == 2.0]
        with pytest.raises(FitError):
            _selector(inputs).fit(single)

    def test_thresholds(self, inputs, cluster_frame):
        model = _selector(inputs).set_model_thresholds([0.5, 0.5, 0.5]).fit(cluster_frame)
        assert model.model.config.thresholds == [0.5, 0.5, 0.5]

    def test_thresholds_wrong_length_fail_every_trial(self, inputs, cluster_frame):
        selector = _selector(inputs).set_model_thresholds([1.0, 2.0])
        with pytest.raises(FitError) as excinfo:
            selector.fit(cluster_frame)
        assert "thresholds" in str(excinfo.value)

    def test_holdout_last_call_wins(self, inputs, cluster_frame):
        model = _selector(inputs).fit(cluster_frame)
        model.evaluate_model(cluster_frame)

        flipped = cluster_frame.copy()
        flipped["label"] = (flipped["label"] + 1.0) % 3
        model.evaluate_model(flipped)
        assert model.metadata.holdout_eval["(multiEval)_Error"] == pytest.approx(1.0)


class TestBestEstimator:
    def test_preset_estimator(self, inputs, cluster_frame):
        label, features = inputs
        selector = MultiClassificationModelSelector.with_cross_validation().set_input(label, features)
        estimator = DecisionTreeModel(DecisionTreeConfig(criterion="entropy"))
        selector.best_estimator = BestEstimator(
            "myEstimatorIsAwesome", estimator, {"myMeta": "This is a string metadata"}
        )
        fitted = selector.fit(cluster_frame)

        assert fitted.model is estimator
        assert fitted.model.config.criterion == "entropy"
        assert selector.validator.trials_executed == 0

        summary = fitted.metadata.to_dict()["summary"]
        assert summary["bestModelName"] == "myEstimatorIsAwesome"
        assert summary["bestModelType"] == "decision_tree"
        assert summary["myMeta"] == "This is a string metadata"
        assert summary["trialsExecuted"] == 0
        assert "(multiEval)_F1" in fitted.metadata.training_eval

    def test_already_fitted_estimator_is_kept(self, inputs, cluster_frame, cluster_arrays):
        label, features = inputs
        x, y = cluster_arrays
        estimator = DecisionTreeModel(DecisionTreeConfig(max_depth=1)).fit(x, y)
        importance = estimator.get_feature_importance().copy()

        selector = MultiClassificationModelSelector.with_cross_validation().set_input(label, features)
        selector.best_estimator = BestEstimator("stump", estimator)
        fitted = selector.fit(cluster_frame)

        assert np.array_equal(fitted.model.get_feature_importance(), importance)

    def test_thresholds_rejected(self, inputs, cluster_frame):
        label, features = inputs
        selector = (
            MultiClassificationModelSelector.with_cross_validation()
            .set_input(label, features)
            .set_model_thresholds([1.0, 1.0, 1.0])
        )
        selector.best_estimator = BestEstimator("tree", DecisionTreeModel(DecisionTreeConfig()))
        with pytest.raises(ConfigurationError):
            selector.fit(cluster_frame)

    def test_reserved_metadata_keys_rejected(self, inputs, cluster_frame):
        label, features = inputs
        selector = MultiClassificationModelSelector.with_cross_validation().set_input(label, features)
        selector.best_estimator = BestEstimator(
            "tree", DecisionTreeModel(DecisionTreeConfig()), {"bestModelName": "other", "myMeta": 1}
        )
        with pytest.raises(ConfigurationError) as excinfo:
            selector.fit(cluster_frame)
        assert "bestModelName" in str(excinfo.value)


class TestPersistence:
    def test_save_and_load(self, inputs, cluster_frame, cross_entropy_evaluator, tmp_path):
        model = _selector(inputs, train_test_evaluators=[cross_entropy_evaluator]).fit(cluster_frame)
        directory = str(tmp_path / "selector")
        model.save(directory)

        assert os.path.exists(os.path.join(directory, "model.pkl"))
        with open(os.path.join(directory, "metadata.json")) as fp:
            assert json.load(fp) == model.metadata.to_dict()

        restored = FittedModelSelector.load(directory, evaluators=[cross_entropy_evaluator])
        assert np.allclose(restored.predict_all(cluster_frame)[2], model.predict_all(cluster_frame)[2])
        assert restored.metadata.to_dict() == model.metadata.to_dict()

        restored.evaluate_model(cluster_frame)
        assert list(restored.metadata.holdout_eval) == ["(cross entropy)_cross entropy"]

    def test_load_default_evaluators(self, inputs, cluster_frame, tmp_path):
        model = _selector(inputs).fit(cluster_frame)
        model.save(str(tmp_path))

        restored = FittedModelSelector.load(str(tmp_path))
        assert [e.name for e in restored.evaluators] == ["multiEval"]
        assert model.evaluators

    def test_load_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            FittedModelSelector.load(str(tmp_path))

    def test_transform_without_label(self, inputs, cluster_frame):
        model = _selector(inputs).fit(cluster_frame)
        scored = model.transform(cluster_frame.drop(columns=["label"]))
        assert "label_probability" in scored.columns
