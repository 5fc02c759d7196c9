"""Multiclass model selector: searches candidate models and packages the winner"""

import logging
import os
import pickle
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from modelselect.dataset import FeatureRef, LabeledDataset
from modelselect.shared.classification import ClassificationFactory, ClassificationModel
from modelselect.shared.evaluation import Evaluator, Evaluators, MultiClassificationEvaluator
from .candidates import CandidateRegistry, ModelLike
from .cascade import ProbabilityStage, RawScoresStage, SelectorStage, build_cascade
from .errors import ConfigurationError, FitError
from .metadata import RESERVED_SUMMARY_KEYS, MetricsRecord, ModelSelectorMetadata, SelectorSummary
from .splitter import DataCutter, DataSplitter
from .validator import CrossValidation, TrainValidationSplit, Validator, score_dataset


logger = logging.getLogger(__name__)

MODEL_FILE = "model.pkl"
METADATA_FILE = "metadata.json"

# Marks "no splitter given" so that None can mean "no holdout split"
_DEFAULT_SPLITTER = object()

DataLike = Union[LabeledDataset, pd.DataFrame]


@dataclass
class BestEstimator:
    """
    A model chosen up front instead of searched for.

    Args:
        name: Display name recorded as ``bestModelName``
        model: Fitted or unfitted model; unfitted models are fitted on the training data
        metadata: Extra provenance merged into the summary; summary keys such as ``bestModelName`` are reserved
    """

    name: str
    model: ClassificationModel
    metadata: Dict[str, Any] = field(default_factory=dict)


def _unique_by_name(evaluators: Sequence[Evaluator]) -> List[Evaluator]:
    unique: Dict[str, Evaluator] = {}
    for evaluator in evaluators:
        unique.setdefault(evaluator.name, evaluator)
    return list(unique.values())


class MultiClassificationModelSelector:
    """
    Trains, tunes and selects the best multiclass classifier.

    Use ``with_cross_validation`` or ``with_train_validation_split`` to create a selector,
    configure the candidates, call ``set_input`` and then ``fit``.
    """

    def __init__(
        self,
        validator: Validator,
        splitter: Optional[DataSplitter] = None,
        train_test_evaluators: Sequence[Evaluator] = (),
    ):
        self.validator = validator
        self.splitter = splitter
        self.train_test_evaluators = list(train_test_evaluators)
        self.registry = CandidateRegistry()
        self.best_estimator: Optional[BestEstimator] = None

        self.stage1: Optional[SelectorStage] = None
        self.stage2: Optional[RawScoresStage] = None
        self.stage3: Optional[ProbabilityStage] = None

    @classmethod
    def with_cross_validation(
        cls,
        splitter: Optional[DataSplitter] = _DEFAULT_SPLITTER,
        num_folds: int = 3,
        validation_metric: Optional[Evaluator] = None,
        train_test_evaluators: Sequence[Evaluator] = (),
        seed: int = 42,
        stratify: bool = False,
        parallelism: int = 1,
        max_wait: Optional[float] = None,
    ) -> "MultiClassificationModelSelector":
        """
        Selector validating grid points with k-fold cross validation

        Args:
            splitter: Holdout splitter, defaults to ``DataCutter(seed)``; None disables the holdout
            num_folds: Number of folds
            validation_metric: Evaluator used for selection, defaults to weighted F1
            train_test_evaluators: Extra evaluators for reporting
            seed: Seed of the fold assignment
            stratify: Use stratified folds
            parallelism: Number of trials run concurrently
            max_wait: Seconds after which untried trials are abandoned

        Returns:
            Unconfigured selector
        """
        validator = CrossValidation(
            validation_metric or Evaluators.MultiClassification.f1(),
            num_folds=num_folds,
            seed=seed,
            stratify=stratify,
            parallelism=parallelism,
            max_wait=max_wait,
        )
        if splitter is _DEFAULT_SPLITTER:
            splitter = DataCutter(seed=seed)
        return cls(validator, splitter, train_test_evaluators)

    @classmethod
    def with_train_validation_split(
        cls,
        splitter: Optional[DataSplitter] = _DEFAULT_SPLITTER,
        train_ratio: float = 0.75,
        validation_metric: Optional[Evaluator] = None,
        train_test_evaluators: Sequence[Evaluator] = (),
        seed: int = 42,
        stratify: bool = False,
        parallelism: int = 1,
        max_wait: Optional[float] = None,
    ) -> "MultiClassificationModelSelector":
        """
        Selector validating grid points on a single train / validation split

        Args:
            splitter: Holdout splitter, defaults to ``DataCutter(seed)``; None disables the holdout
            train_ratio: Fraction of the training data used for fitting trials
            validation_metric: Evaluator used for selection, defaults to weighted F1
            train_test_evaluators: Extra evaluators for reporting
            seed: Seed of the split
            stratify: Keep label proportions in both parts
            parallelism: Number of trials run concurrently
            max_wait: Seconds after which untried trials are abandoned

        Returns:
            Unconfigured selector
        """
        validator = TrainValidationSplit(
            validation_metric or Evaluators.MultiClassification.f1(),
            train_ratio=train_ratio,
            seed=seed,
            stratify=stratify,
            parallelism=parallelism,
            max_wait=max_wait,
        )
        if splitter is _DEFAULT_SPLITTER:
            splitter = DataCutter(seed=seed)
        return cls(validator, splitter, train_test_evaluators)

    @property
    def evaluators(self) -> List[Evaluator]:
        """Every evaluator recorded in TrainingEval and HoldOutEval, unique by name"""
        return _unique_by_name(
            [MultiClassificationEvaluator()] + self.train_test_evaluators + [self.validator.evaluator]
        )

    def set_input(self, label: FeatureRef, features: FeatureRef) -> "MultiClassificationModelSelector":
        """
        Bind the label and feature vector and build the output stages

        Raises:
            ConfigurationError: If the label is not a numeric non-nullable response or the
                features are not a vector predictor
        """
        self.stage1, self.stage2, self.stage3 = build_cascade(label, features)
        return self

    def get_output(self) -> Tuple[FeatureRef, FeatureRef, FeatureRef]:
        """Prediction, raw scores and probability features"""
        if self.stage1 is None:
            raise ConfigurationError("set_input must be called first")
        return self.stage1.output, self.stage2.output, self.stage3.output

    def set_models_to_try(self, *model_types: ModelLike) -> "MultiClassificationModelSelector":
        self.registry.set_models_to_try(*model_types)
        return self

    def set_param(self, model_type: ModelLike, name: str, *values: Any) -> "MultiClassificationModelSelector":
        self.registry.set_param(model_type, name, *values)
        return self

    def set_params(self, model_type: ModelLike, **params: Sequence[Any]) -> "MultiClassificationModelSelector":
        self.registry.set_params(model_type, **params)
        return self

    def set_model_thresholds(self, thresholds: Optional[Sequence[float]]) -> "MultiClassificationModelSelector":
        """Per-class thresholds applied identically to every candidate"""
        self.registry.set_thresholds(thresholds)
        return self

    def _to_dataset(self, data: DataLike) -> LabeledDataset:
        if isinstance(data, LabeledDataset):
            return data
        return LabeledDataset.from_dataframe(data, label=self.stage1.label.name, features=self.stage1.features.name)

    def _split(self, data: LabeledDataset) -> Tuple[LabeledDataset, LabeledDataset]:
        if self.splitter is None:
            return data, data.subset([])
        train, test = self.splitter.split(data)
        return self.splitter.prepare(train), test

    def fit(self, data: DataLike) -> "FittedModelSelector":
        """
        Select and fit the best model

        Args:
            data: Labeled data, a LabeledDataset or a DataFrame with the input columns

        Returns:
            FittedModelSelector with TrainingEval metrics recorded

        Raises:
            ConfigurationError: If the selector is not fully configured
            FitError: If there are fewer than two classes or no candidate could be fitted
        """
        if self.stage1 is None:
            raise ConfigurationError("set_input must be called before fit")
        if self.best_estimator is not None and self.registry.thresholds is not None:
            raise ConfigurationError("Model thresholds cannot be combined with a preset best estimator")
        if self.best_estimator is not None:
            reserved = sorted(RESERVED_SUMMARY_KEYS.intersection(self.best_estimator.metadata))
            if reserved:
                raise ConfigurationError(f"Preset estimator metadata uses reserved summary keys: {reserved}")

        candidates = self.registry.snapshot() if self.best_estimator is None else []
        dataset = self._to_dataset(data)
        if len(dataset.distinct_labels()) < 2:
            logger.error(f"Found {len(dataset.distinct_labels())} label classes")
            raise FitError(f"At least two label classes are required, got {dataset.distinct_labels().tolist()}")

        train, test = self._split(dataset)
        if len(train.distinct_labels()) < 2:
            raise FitError(
                f"At least two label classes are required in the training data, got {train.distinct_labels().tolist()}"
            )
        logger.info(f"Fitting on {len(train)} training rows, {len(test)} rows held out")

        if self.best_estimator is not None:
            model, summary = self._fit_best_estimator(train)
        else:
            model, summary = self._search(candidates, train)
        stage1, stage2, stage3 = build_cascade(self.stage1.label, self.stage1.features)
        stage1.model = model

        if len(test):
            eval_data, summary.training_eval_source = test, "test"
        else:
            eval_data, summary.training_eval_source = train, "train"
        training_eval = MetricsRecord.compute(self.evaluators, score_dataset(model, eval_data)).flatten()
        logger.info(f"Training evaluation on {summary.training_eval_source} data: {training_eval}")

        metadata = ModelSelectorMetadata(summary=summary, training_eval=training_eval)
        return FittedModelSelector(stage1, stage2, stage3, metadata, self.evaluators)

    def _search(self, candidates, train: LabeledDataset) -> Tuple[ClassificationModel, SelectorSummary]:
        result = self.validator.validate(candidates, train, aux_evaluators=self.train_test_evaluators)
        best = result.best
        summary = SelectorSummary(
            best_model_name=best.name,
            best_model_type=best.candidate.model_type.value,
            best_model_params=best.model.get_hyperparameters(),
            validation_type=self.validator.validation_type,
            validation_parameters=self.validator.get_params(),
            validation_metric=self.validator.evaluator.name,
            data_prep=self.splitter.summary() if self.splitter is not None else {},
            validation_results=result.table,
            trials_executed=result.trials_executed,
            timed_out=result.timed_out,
        )
        return best.model, summary

    def _fit_best_estimator(self, train: LabeledDataset) -> Tuple[ClassificationModel, SelectorSummary]:
        estimator = self.best_estimator
        model = estimator.model
        if not model.is_fitted:
            logger.info(f"Fitting preset estimator '{estimator.name}' on the training data")
            try:
                model.fit(train.features, train.labels, classes=train.distinct_labels())
            except Exception as e:
                logger.error(f"Preset estimator '{estimator.name}' failed: {e}")
                raise FitError(f"Preset estimator '{estimator.name}' could not be fitted: {e}") from e
        else:
            logger.info(f"Using already fitted preset estimator '{estimator.name}'")

        self.validator.trials_executed = 0
        summary = SelectorSummary(
            best_model_name=estimator.name,
            best_model_type=_model_type_name(model),
            best_model_params=model.get_hyperparameters(),
            data_prep=self.splitter.summary() if self.splitter is not None else {},
            trials_executed=0,
            extra=dict(estimator.metadata),
        )
        return model, summary


def _model_type_name(model: ClassificationModel) -> str:
    for name, model_class in ClassificationFactory.get_available_models().items():
        if type(model) is model_class:
            return name
    return model.__class__.__name__


class FittedModelSelector:
    """
    Fitted stage 1 together with its output cascade and metadata.

    ``transform`` adds the prediction, raw score and probability columns to a frame.
    """

    def __init__(
        self,
        stage1: SelectorStage,
        stage2: RawScoresStage,
        stage3: ProbabilityStage,
        metadata: ModelSelectorMetadata,
        evaluators: Sequence[Evaluator],
    ):
        self.stage1 = stage1
        self.stage2 = stage2
        self.stage3 = stage3
        self.metadata = metadata
        self.evaluators = list(evaluators)

    @property
    def model(self) -> ClassificationModel:
        return self.stage1.fitted_model()

    @property
    def classes(self) -> np.ndarray:
        return self.model.classes

    def get_output(self) -> Tuple[FeatureRef, FeatureRef, FeatureRef]:
        return self.stage1.output, self.stage2.output, self.stage3.output

    def _features(self, data: DataLike) -> np.ndarray:
        if isinstance(data, LabeledDataset):
            return data.features
        column = self.stage1.features.name
        if column not in data.columns:
            raise ValueError(f"Missing features column '{column}'. Available columns: {list(data.columns)}")
        return np.vstack([np.asarray(v, dtype=float) for v in data[column]])

    def predict_all(self, data: DataLike) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Predictions, raw scores and probabilities computed through the three stages"""
        features = self._features(data)
        predictions = self.stage1.transform(features)
        raw = self.stage2.transform(features)
        probabilities = self.stage3.transform(raw)
        return predictions, raw, probabilities

    def transform(self, data: pd.DataFrame) -> pd.DataFrame:
        """
        Score a frame

        Args:
            data: Frame holding the features column; the label column is optional

        Returns:
            Copy of ``data`` with the three output columns added
        """
        predictions, raw, probabilities = self.predict_all(data)
        prediction_ref, raw_ref, probability_ref = self.get_output()

        out = data.copy()
        out[prediction_ref.name] = predictions
        out[raw_ref.name] = list(raw)
        out[probability_ref.name] = list(probabilities)
        return out

    def evaluate_model(self, data: DataLike) -> Dict[str, float]:
        """
        Evaluate on holdout data and record the result as HoldOutEval

        Returns:
            Flattened holdout metrics; a later call replaces them
        """
        if isinstance(data, LabeledDataset):
            dataset = data
        else:
            dataset = LabeledDataset.from_dataframe(
                data, label=self.stage1.label.name, features=self.stage1.features.name
            )
        holdout_eval = MetricsRecord.compute(self.evaluators, score_dataset(self.model, dataset)).flatten()
        self.metadata.holdout_eval = holdout_eval
        logger.info(f"Holdout evaluation on {len(dataset)} rows: {holdout_eval}")
        return holdout_eval

    def save(self, directory: str) -> None:
        """Write the fitted selector and its metadata into a directory"""
        os.makedirs(directory, exist_ok=True)
        with open(os.path.join(directory, MODEL_FILE), "wb") as fp:
            pickle.dump(self, fp, pickle.HIGHEST_PROTOCOL)
        with open(os.path.join(directory, METADATA_FILE), "w") as fp:
            fp.write(self.metadata.to_json())
        logger.info(f"Saved model selector to {directory}")

    @classmethod
    def load(cls, directory: str, evaluators: Optional[Sequence[Evaluator]] = None) -> "FittedModelSelector":
        """
        Restore a selector written by ``save``

        Args:
            directory: Directory passed to ``save``
            evaluators: Evaluators for later ``evaluate_model`` calls. Evaluators are not
                persisted; the multiclass evaluator is used when none are given.
        """
        model_file = os.path.join(directory, MODEL_FILE)
        if not os.path.exists(model_file):
            raise FileNotFoundError(f"Model file not found: {model_file}")
        with open(model_file, "rb") as fp:
            selector = pickle.load(fp)
        if not isinstance(selector, cls):
            raise ValueError(f"{model_file} does not contain a {cls.__name__}")

        selector.evaluators = list(evaluators) if evaluators is not None else [MultiClassificationEvaluator()]
        return selector

    def __getstate__(self) -> Dict[str, Any]:
        state = self.__dict__.copy()
        # user supplied evaluators may wrap unpicklable functions
        state["evaluators"] = []
        return state

    def __setstate__(self, state: Dict[str, Any]) -> None:
        self.__dict__.update(state)
