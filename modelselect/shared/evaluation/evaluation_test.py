import warnings

import numpy as np
import pytest

from modelselect.shared.evaluation import (
    EvaluationWarning,
    Evaluators,
    MultiClassificationEvaluator,
    ScoredData,
)


@pytest.fixture
def perfect_data():
    labels = np.array([0.0, 1.0, 2.0, 2.0])
    return ScoredData(labels=labels, predictions=labels.copy())


@pytest.fixture
def mixed_data():
    labels = np.array([0.0, 0.0, 1.0, 1.0])
    predictions = np.array([0.0, 1.0, 1.0, 1.0])
    probabilities = np.array([[0.9, 0.1], [0.4, 0.6], [0.2, 0.8], [0.3, 0.7]])
    return ScoredData(
        labels=labels,
        predictions=predictions,
        probabilities=probabilities,
        classes=np.array([0.0, 1.0]),
    )


class TestScoredData:
    def test_shape_mismatch_raises(self):
        with pytest.raises(ValueError):
            ScoredData(labels=np.array([0.0, 1.0]), predictions=np.array([0.0]))


class TestMultiClassificationEvaluator:
    def test_metric_names(self):
        evaluator = MultiClassificationEvaluator()
        assert evaluator.name == "multiEval"
        assert evaluator.metric_names == ["Precision", "Recall", "F1", "MacroF1", "Error"]
        assert evaluator.default_metric == "F1"
        assert evaluator.is_larger_better

    def test_perfect_predictions(self, perfect_data):
        metrics = MultiClassificationEvaluator().evaluate_all(perfect_data)
        assert metrics["Precision"] == pytest.approx(1.0)
        assert metrics["Recall"] == pytest.approx(1.0)
        assert metrics["F1"] == pytest.approx(1.0)
        assert metrics["MacroF1"] == pytest.approx(1.0)
        assert metrics["Error"] == pytest.approx(0.0)

    def test_error_rate(self, mixed_data):
        metrics = MultiClassificationEvaluator().evaluate_all(mixed_data)
        assert metrics["Error"] == pytest.approx(0.25)
        assert 0.0 < metrics["F1"] < 1.0

    def test_error_as_default_metric_is_smaller_better(self):
        evaluator = MultiClassificationEvaluator(default_metric="Error")
        assert not evaluator.is_larger_better

    @pytest.mark.parametrize(
        "metric, larger_better",
        [("Precision", True), ("Recall", True), ("F1", True), ("MacroF1", True), ("Error", False)],
    )
    def test_direction_declared_per_metric(self, metric, larger_better):
        assert MultiClassificationEvaluator(default_metric=metric).is_larger_better is larger_better

    def test_direction_drives_is_better(self):
        evaluator = MultiClassificationEvaluator(default_metric="Error")
        assert evaluator.is_better(0.1, 0.2)
        assert not evaluator.is_better(0.2, 0.1)

    def test_unknown_default_metric(self):
        with pytest.raises(ValueError):
            MultiClassificationEvaluator(default_metric="AuROC")


class TestSingleMetricEvaluators:
    def test_error_direction(self, mixed_data):
        evaluator = Evaluators.MultiClassification.error()
        assert not evaluator.is_larger_better
        assert evaluator.evaluate_all(mixed_data) == {"Error": pytest.approx(0.25)}

    def test_f1_single_entry(self, perfect_data):
        evaluator = Evaluators.MultiClassification.f1()
        assert evaluator.is_larger_better
        assert list(evaluator.evaluate_all(perfect_data)) == ["F1"]
        assert evaluator.evaluate(perfect_data) == pytest.approx(1.0)

    def test_is_better_is_strict(self):
        larger = Evaluators.MultiClassification.precision()
        smaller = Evaluators.MultiClassification.error()
        assert larger.is_better(0.5, None)
        assert larger.is_better(0.6, 0.5)
        assert not larger.is_better(0.5, 0.5)
        assert smaller.is_better(0.1, 0.2)
        assert not smaller.is_better(0.2, 0.2)


class TestCustomEvaluator:
    def test_cross_entropy(self, mixed_data):
        def cross_entropy(data):
            columns = np.searchsorted(data.classes, data.labels)
            picked = data.probabilities[np.arange(len(data)), columns]
            return float(-np.mean(np.log(picked)))

        evaluator = Evaluators.MultiClassification.custom("CrossEntropy", False, cross_entropy)
        expected = -np.mean(np.log([0.9, 0.4, 0.8, 0.7]))
        assert evaluator.name == "CrossEntropy"
        assert evaluator.evaluate_all(mixed_data) == {"CrossEntropy": pytest.approx(expected)}

    def test_failing_metric_is_omitted_with_warning(self, mixed_data):
        def broken(data):
            raise RuntimeError("boom")

        evaluator = Evaluators.MultiClassification.custom("Broken", True, broken)
        with pytest.warns(EvaluationWarning):
            assert evaluator.evaluate_all(mixed_data) == {}

    def test_non_finite_metric_is_omitted(self, mixed_data):
        evaluator = Evaluators.MultiClassification.custom("Nan", True, lambda data: float("nan"))
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            assert np.isnan(evaluator.evaluate(mixed_data))
        assert any(issubclass(w.category, EvaluationWarning) for w in caught)

    def test_not_callable(self):
        with pytest.raises(ValueError):
            Evaluators.MultiClassification.custom("X", True, "not a function")


class TestFromName:
    @pytest.mark.parametrize(
        "name,expected",
        [("multiEval", "multiEval"), ("F1", "F1"), ("error", "Error"), ("Precision", "Precision")],
    )
    def test_resolves(self, name, expected):
        assert Evaluators.from_name(name).name == expected

    def test_unknown(self):
        with pytest.raises(ValueError):
            Evaluators.from_name("auroc")
