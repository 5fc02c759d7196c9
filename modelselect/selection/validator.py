"""Cross validation and train/validation split over candidate grids"""

import logging
import math
import time
from abc import ABC, abstractmethod
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
from sklearn.model_selection import KFold, StratifiedKFold, train_test_split
from tqdm import tqdm

from modelselect.dataset import LabeledDataset
from modelselect.shared.classification import ClassificationModel
from modelselect.shared.evaluation import Evaluator, ScoredData
from .candidates import CandidateSpec
from .errors import ConfigurationError, FitError, TrialFailure
from .metadata import MetricsRecord


logger = logging.getLogger(__name__)

Fold = Tuple[np.ndarray, np.ndarray]


def score_dataset(model: ClassificationModel, data: LabeledDataset) -> ScoredData:
    """Run the full raw -> probability -> prediction path of a fitted model on a dataset"""
    raw = model.predict_raw(data.features)
    probabilities = model.raw_to_probability(raw)
    predictions = model.probability_to_prediction(probabilities)
    return ScoredData(
        labels=data.labels,
        predictions=predictions,
        raw_scores=raw,
        probabilities=probabilities,
        classes=model.classes,
    )


@dataclass
class TrialResult:
    """Outcome of one grid point over all of its folds"""

    candidate: CandidateSpec
    params: Dict[str, Any]
    metric: float
    fold_metrics: List[float]
    aux_metrics: Dict[str, float] = field(default_factory=dict)
    model: Optional[ClassificationModel] = None

    @property
    def name(self) -> str:
        return self.candidate.name


@dataclass
class ValidationResult:
    """Best grid point, the per grid point metric table and everything that failed"""

    best: TrialResult
    table: List[Dict[str, Any]]
    failures: List[TrialFailure]
    trials_executed: int
    timed_out: bool = False


@dataclass
class _Trial:
    grid_point: int
    fold: int
    candidate: CandidateSpec
    params: Dict[str, Any]


class Validator(ABC):
    """
    Scores every (candidate, hyperparameter assignment, fold) trial with the validation
    evaluator and keeps the best grid point.

    Args:
        evaluator: Validation evaluator, its declared direction decides what is best
        seed: Seed of the fold assignment
        stratify: Keep label proportions in every fold
        parallelism: Number of trials run concurrently, 1 runs them in a plain loop
        max_wait: Seconds after which untried trials are abandoned once at least one
            grid point has completed
    """

    validation_type: str = "Validator"

    def __init__(
        self,
        evaluator: Evaluator,
        seed: int = 42,
        stratify: bool = False,
        parallelism: int = 1,
        max_wait: Optional[float] = None,
    ):
        if parallelism < 1:
            raise ConfigurationError(f"parallelism must be at least 1, got {parallelism}")
        if max_wait is not None and max_wait <= 0:
            raise ConfigurationError(f"max_wait must be positive, got {max_wait}")
        self.evaluator = evaluator
        self.seed = seed
        self.stratify = stratify
        self.parallelism = parallelism
        self.max_wait = max_wait
        self.trials_executed = 0

    @abstractmethod
    def _folds(self, data: LabeledDataset) -> List[Fold]:
        """(train indices, validation indices) pairs"""
        pass

    def get_params(self) -> Dict[str, Any]:
        return {
            "seed": self.seed,
            "stratify": self.stratify,
            "parallelism": self.parallelism,
            "maxWait": self.max_wait,
        }

    def validate(
        self,
        candidates: Sequence[CandidateSpec],
        data: LabeledDataset,
        aux_evaluators: Sequence[Evaluator] = (),
    ) -> ValidationResult:
        """
        Search all candidate grids and refit the winner on all of ``data``

        Args:
            candidates: Frozen candidates to search
            data: Training data
            aux_evaluators: Evaluators computed per grid point for reporting only

        Returns:
            ValidationResult whose ``best.model`` is fitted on ``data``

        Raises:
            FitError: If a grid value is invalid, folding fails or every grid point failed
        """
        for candidate in candidates:
            candidate.validate_grid()

        classes = data.distinct_labels()
        try:
            folds = self._folds(data)
        except ValueError as e:
            raise FitError(f"Could not create validation folds: {e}") from e

        grid_points = [(candidate, params) for candidate in candidates for params in candidate.expand()]
        trials = [
            _Trial(grid_point=i, fold=fold, candidate=candidate, params=params)
            for i, (candidate, params) in enumerate(grid_points)
            for fold in range(len(folds))
        ]
        logger.info(
            f"{self.validation_type}: {len(grid_points)} grid points x {len(folds)} folds = {len(trials)} trials"
        )

        runner = _TrialRunner(self, data, folds, classes, aux_evaluators)
        if self.parallelism == 1:
            outcomes, timed_out = runner.run_serial(trials)
        else:
            outcomes, timed_out = runner.run_parallel(trials)
        self.trials_executed = len(outcomes)

        best, table, failures = self._reduce(grid_points, len(folds), outcomes)
        if best is None:
            logger.error(f"All {len(grid_points)} grid points failed")
            raise FitError("No candidate model could be fitted", failures)

        logger.info(
            f"Best model: {best.name} {best.params} with {self.evaluator.default_metric}={best.metric:.6f}"
        )

        try:
            best.model = best.candidate.create_model(best.params).fit(data.features, data.labels, classes=classes)
        except Exception as e:
            failure = TrialFailure(best.name, best.params, None, f"refit on full training data: {e}")
            logger.error(str(failure))
            raise FitError("Best model could not be refitted", [failure]) from e

        return ValidationResult(
            best=best, table=table, failures=failures, trials_executed=self.trials_executed, timed_out=timed_out
        )

    def _reduce(
        self,
        grid_points: List[Tuple[CandidateSpec, Dict[str, Any]]],
        n_folds: int,
        outcomes: Dict[Tuple[int, int], Union[Tuple[float, Dict[str, float]], TrialFailure]],
    ) -> Tuple[Optional[TrialResult], List[Dict[str, Any]], List[TrialFailure]]:
        best: Optional[TrialResult] = None
        table = []
        failures = []

        for i, (candidate, params) in enumerate(grid_points):
            row = {"modelName": candidate.name, "modelParameters": dict(params)}
            results = [outcomes.get((i, fold)) for fold in range(n_folds)]
            failed = [r for r in results if isinstance(r, TrialFailure)]
            failures.extend(failed)

            if failed:
                row.update(status="failed", reason="; ".join(f.reason for f in failed))
            elif any(r is None for r in results):
                row.update(status="not run")
            else:
                fold_metrics = [r[0] for r in results]
                aux = _mean_metrics([r[1] for r in results])
                result = TrialResult(
                    candidate=candidate,
                    params=dict(params),
                    metric=float(np.mean(fold_metrics)),
                    fold_metrics=fold_metrics,
                    aux_metrics=aux,
                )
                row.update(
                    status="ok",
                    metricValues={self.evaluator.default_metric: result.metric, **aux},
                    foldMetrics=fold_metrics,
                )
                if self.evaluator.is_better(result.metric, None if best is None else best.metric):
                    best = result
            table.append(row)

        return best, table, failures

    def __repr__(self) -> str:
        params = ", ".join(f"{k}={v}" for k, v in self.get_params().items())
        return f"{self.__class__.__name__}({params})"


def _mean_metrics(per_fold: List[Dict[str, float]]) -> Dict[str, float]:
    keys = []
    for metrics in per_fold:
        keys.extend(k for k in metrics if k not in keys)
    return {k: float(np.mean([m[k] for m in per_fold if k in m])) for k in keys}


class _TrialRunner:
    """Executes trials serially or on a thread pool and collects their outcomes"""

    def __init__(
        self,
        validator: Validator,
        data: LabeledDataset,
        folds: List[Fold],
        classes: np.ndarray,
        aux_evaluators: Sequence[Evaluator],
    ):
        self.validator = validator
        self.data = data
        self.folds = folds
        self.classes = classes
        self.aux_evaluators = list(aux_evaluators)
        self.n_folds = len(folds)

    def run_trial(self, trial: _Trial) -> Union[Tuple[float, Dict[str, float]], TrialFailure]:
        train_idx, val_idx = self.folds[trial.fold]
        train = self.data.subset(train_idx)
        validation = self.data.subset(val_idx)

        try:
            model = trial.candidate.create_model(trial.params)
            model.fit(train.features, train.labels, classes=self.classes)
            scored = score_dataset(model, validation)
        except Exception as e:
            failure = TrialFailure(trial.candidate.name, trial.params, trial.fold, f"{type(e).__name__}: {e}")
            logger.warning(f"Trial failed: {failure}")
            return failure

        metric = self.validator.evaluator.evaluate(scored)
        if not math.isfinite(metric):
            failure = TrialFailure(
                trial.candidate.name,
                trial.params,
                trial.fold,
                f"validation metric '{self.validator.evaluator.default_metric}' could not be computed",
            )
            logger.warning(f"Trial failed: {failure}")
            return failure

        aux = MetricsRecord.compute(self.aux_evaluators, scored).flatten()
        logger.debug(f"{trial.candidate.name} {trial.params} fold {trial.fold}: {metric:.6f}")
        return metric, aux

    def _has_completed_grid_point(self, outcomes) -> bool:
        succeeded: Dict[int, int] = {}
        for (grid_point, _), outcome in outcomes.items():
            if not isinstance(outcome, TrialFailure):
                succeeded[grid_point] = succeeded.get(grid_point, 0) + 1
        return any(count == self.n_folds for count in succeeded.values())

    def _deadline(self) -> Optional[float]:
        if self.validator.max_wait is None:
            return None
        return time.monotonic() + self.validator.max_wait

    def run_serial(self, trials: List[_Trial]):
        outcomes = {}
        deadline = self._deadline()
        timed_out = False

        for trial in tqdm(trials, desc="Validating", unit="trials"):
            if deadline is not None and time.monotonic() > deadline and self._has_completed_grid_point(outcomes):
                logger.warning(
                    f"max_wait of {self.validator.max_wait}s exceeded, skipping {len(trials) - len(outcomes)} trials"
                )
                timed_out = True
                break
            outcomes[(trial.grid_point, trial.fold)] = self.run_trial(trial)

        return outcomes, timed_out

    def run_parallel(self, trials: List[_Trial]):
        outcomes = {}
        deadline = self._deadline()
        timed_out = False

        executor = ThreadPoolExecutor(max_workers=self.validator.parallelism)
        try:
            pending: Dict[Future, _Trial] = {executor.submit(self.run_trial, trial): trial for trial in trials}
            with tqdm(total=len(trials), desc="Validating", unit="trials") as pbar:
                while pending:
                    timeout = None
                    if deadline is not None and self._has_completed_grid_point(outcomes):
                        timeout = max(0.0, deadline - time.monotonic())

                    done, _ = wait(pending, timeout=timeout, return_when=FIRST_COMPLETED)
                    for future in done:
                        trial = pending.pop(future)
                        outcomes[(trial.grid_point, trial.fold)] = future.result()
                        pbar.update(1)

                    if (
                        pending
                        and deadline is not None
                        and time.monotonic() >= deadline
                        and self._has_completed_grid_point(outcomes)
                    ):
                        logger.warning(
                            f"max_wait of {self.validator.max_wait}s exceeded, abandoning {len(pending)} trials"
                        )
                        timed_out = True
                        break
        finally:
            executor.shutdown(wait=not timed_out, cancel_futures=True)

        return outcomes, timed_out


class CrossValidation(Validator):
    """
    K-fold cross validation; a grid point is scored by its mean validation metric.

    Args:
        evaluator: Validation evaluator
        num_folds: Number of folds, at least 2
        seed: Seed of the fold assignment
        stratify: Use stratified folds
        parallelism: Number of trials run concurrently
        max_wait: Seconds after which untried trials are abandoned
    """

    validation_type = "CrossValidation"

    def __init__(
        self,
        evaluator: Evaluator,
        num_folds: int = 3,
        seed: int = 42,
        stratify: bool = False,
        parallelism: int = 1,
        max_wait: Optional[float] = None,
    ):
        if num_folds < 2:
            raise ConfigurationError(f"num_folds must be at least 2, got {num_folds}")
        super().__init__(evaluator, seed=seed, stratify=stratify, parallelism=parallelism, max_wait=max_wait)
        self.num_folds = num_folds

    def _folds(self, data: LabeledDataset) -> List[Fold]:
        if self.stratify:
            splitter = StratifiedKFold(n_splits=self.num_folds, shuffle=True, random_state=self.seed)
        else:
            splitter = KFold(n_splits=self.num_folds, shuffle=True, random_state=self.seed)
        return list(splitter.split(data.features, data.labels))

    def get_params(self) -> Dict[str, Any]:
        return {"numFolds": self.num_folds, **super().get_params()}


class TrainValidationSplit(Validator):
    """
    Single seed-determined split into a training and a validation part.

    Args:
        evaluator: Validation evaluator
        train_ratio: Fraction of rows used for training, in (0, 1)
        seed: Seed of the split
        stratify: Keep label proportions in both parts
        parallelism: Number of trials run concurrently
        max_wait: Seconds after which untried trials are abandoned
    """

    validation_type = "TrainValidationSplit"

    def __init__(
        self,
        evaluator: Evaluator,
        train_ratio: float = 0.75,
        seed: int = 42,
        stratify: bool = False,
        parallelism: int = 1,
        max_wait: Optional[float] = None,
    ):
        if not 0.0 < train_ratio < 1.0:
            raise ConfigurationError(f"train_ratio must be in (0, 1), got {train_ratio}")
        super().__init__(evaluator, seed=seed, stratify=stratify, parallelism=parallelism, max_wait=max_wait)
        self.train_ratio = train_ratio

    def _folds(self, data: LabeledDataset) -> List[Fold]:
        indices = np.arange(len(data))
        train_idx, val_idx = train_test_split(
            indices,
            train_size=self.train_ratio,
            random_state=self.seed,
            shuffle=True,
            stratify=data.labels if self.stratify else None,
        )
        return [(np.sort(train_idx), np.sort(val_idx))]

    def get_params(self) -> Dict[str, Any]:
        return {"trainRatio": self.train_ratio, **super().get_params()}
