from abc import ABC, abstractmethod
from dataclasses import asdict
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from pydantic.dataclasses import dataclass

from modelselect.shared.utils.numpy_helpers import expand_columns


@dataclass
class ClassificationConfig:
    """Base configuration for classification models"""

    random_state: int = 42
    thresholds: Optional[List[float]] = None


class ClassificationModel(ABC):
    """
    Abstract base class for multiclass classification models.

    Every model exposes the same scoring path: raw per-class scores, a mapping from raw scores to
    probabilities and a final prediction derived from the probabilities (optionally rescaled by
    per-class thresholds). Columns are always indexed by ``classes``, which may be wider than the
    set of labels seen during training.
    """

    # Raw score used for classes that were not present in the training labels
    missing_raw_value: float = 0.0

    def __init__(self, config: ClassificationConfig):
        self.config = config
        self._is_fitted = False
        self._model = None
        self._classes: Optional[np.ndarray] = None
        self._trained_classes: Optional[np.ndarray] = None

    def _validate_labels(self, labels: np.ndarray) -> np.ndarray:
        """
        Validate labels

        Args:
            labels: Input labels

        Returns:
            Validated 1D float label array
        """
        labels = np.asarray(labels, dtype=float)

        if labels.ndim != 1:
            raise ValueError(f"Labels must be a 1D array, got {labels.ndim}D")
        if not np.all(np.isfinite(labels)):
            raise ValueError("Labels contain NaN or infinite values")

        return labels

    def _resolve_classes(self, trained: np.ndarray, classes: Optional[Sequence[float]]) -> np.ndarray:
        if classes is None:
            return trained

        resolved = np.unique(np.asarray(classes, dtype=float))
        unknown = np.setdiff1d(trained, resolved)
        if unknown.size:
            raise ValueError(f"Training labels {unknown.tolist()} are not part of classes {resolved.tolist()}")
        return resolved

    def fit(
        self, features: np.ndarray, labels: np.ndarray, classes: Optional[Sequence[float]] = None
    ) -> "ClassificationModel":
        """
        Fit the classification model to the features and labels

        Args:
            features: Input features of shape (n_samples, n_features)
            labels: Target class ids of shape (n_samples,)
            classes: Full list of class ids the outputs are indexed by. Defaults to the distinct
                training labels. Classes missing from ``labels`` get zero probability.

        Returns:
            Self for method chaining
        """
        labels = self._validate_labels(labels)
        features = np.asarray(features, dtype=float)

        trained = np.unique(labels)
        resolved = self._resolve_classes(trained, classes)

        thresholds = self.config.thresholds
        if thresholds is not None:
            if len(thresholds) != len(resolved):
                raise ValueError(
                    f"Got {len(thresholds)} thresholds for {len(resolved)} classes, they must match in length"
                )
            if any(t < 0 for t in thresholds):
                raise ValueError("Thresholds must be non-negative")

        self._model = self._build_estimator(len(trained))
        self._fit_estimator(features, np.searchsorted(trained, labels))

        self._trained_classes = trained
        self._classes = resolved
        self._is_fitted = True

        return self

    @abstractmethod
    def _build_estimator(self, n_classes: int) -> Any:
        """
        Create the underlying, unfitted estimator

        Args:
            n_classes: Number of distinct labels present in the training data

        Returns:
            Estimator exposing ``fit(features, encoded_labels)``
        """
        pass

    def _fit_estimator(self, features: np.ndarray, encoded_labels: np.ndarray) -> None:
        self._model.fit(features, encoded_labels)

    @abstractmethod
    def _raw_scores(self, features: np.ndarray) -> np.ndarray:
        """
        Native raw scores of the underlying estimator

        Args:
            features: Input features of shape (n_samples, n_features)

        Returns:
            Raw scores of shape (n_samples, n_trained_classes)
        """
        pass

    @abstractmethod
    def raw_to_probability(self, raw_scores: np.ndarray) -> np.ndarray:
        """
        Convert raw scores into class probabilities

        Args:
            raw_scores: Raw scores of shape (n_samples, n_classes)

        Returns:
            Probabilities of shape (n_samples, n_classes), rows summing to 1
        """
        pass

    def _check_fitted(self) -> None:
        if not self._is_fitted:
            raise ValueError("Model must be fitted before making predictions")

    def predict_raw(self, features: np.ndarray) -> np.ndarray:
        """
        Predict raw per-class scores

        Args:
            features: Input features of shape (n_samples, n_features)

        Returns:
            Raw scores of shape (n_samples, n_classes)
        """
        self._check_fitted()
        raw = self._raw_scores(np.asarray(features, dtype=float))
        return expand_columns(raw, self._trained_classes, self._classes, self.missing_raw_value)

    def predict_proba(self, features: np.ndarray) -> np.ndarray:
        """
        Predict class probabilities for the features

        Args:
            features: Input features of shape (n_samples, n_features)

        Returns:
            Class probabilities of shape (n_samples, n_classes)
        """
        return self.raw_to_probability(self.predict_raw(features))

    def probability_to_prediction(self, probabilities: np.ndarray) -> np.ndarray:
        """
        Pick the predicted class id per row, applying thresholds if configured

        Args:
            probabilities: Probabilities of shape (n_samples, n_classes)

        Returns:
            Predicted class ids of shape (n_samples,)
        """
        self._check_fitted()
        probabilities = np.asarray(probabilities, dtype=float)

        if self.config.thresholds is not None:
            thresholds = np.asarray(self.config.thresholds, dtype=float)
            with np.errstate(divide="ignore", invalid="ignore"):
                scaled = probabilities / thresholds
            scaled = np.nan_to_num(scaled, nan=0.0, posinf=np.finfo(float).max)
        else:
            scaled = probabilities

        return self._classes[np.argmax(scaled, axis=1)]

    def predict(self, features: np.ndarray) -> np.ndarray:
        """
        Predict class ids for the features

        Args:
            features: Input features of shape (n_samples, n_features)

        Returns:
            Predicted class ids of shape (n_samples,)
        """
        return self.probability_to_prediction(self.predict_proba(features))

    def score(self, features: np.ndarray, labels: np.ndarray) -> float:
        """
        Compute accuracy score for the predictions

        Args:
            features: Input features of shape (n_samples, n_features)
            labels: True labels

        Returns:
            Accuracy score
        """
        return float(np.mean(self.predict(features) == np.asarray(labels, dtype=float)))

    @property
    def is_fitted(self) -> bool:
        """Check if the model has been fitted"""
        return self._is_fitted

    @property
    def classes(self) -> Optional[np.ndarray]:
        """Class ids indexing the raw score and probability columns"""
        return self._classes

    @property
    def n_classes(self) -> Optional[int]:
        """Get number of classes"""
        return None if self._classes is None else len(self._classes)

    def get_hyperparameters(self) -> Dict[str, Any]:
        """All hyperparameters of the model, defaults included"""
        return asdict(self.config)

    def estimator_params(self) -> Dict[str, Any]:
        """Hyperparameters passed through to the underlying estimator"""
        params = self.get_hyperparameters()
        params.pop("thresholds", None)
        return params

    def get_feature_importance(self) -> Optional[np.ndarray]:
        """
        Get feature importance if available

        Returns:
            Feature importance array or None if not available
        """
        estimator = self._model
        if hasattr(estimator, "steps"):
            estimator = estimator.steps[-1][1]

        if hasattr(estimator, "feature_importances_"):
            return estimator.feature_importances_
        elif hasattr(estimator, "coef_"):
            # For linear models, use absolute coefficients as importance
            coef = estimator.coef_
            if coef.ndim == 1:
                return np.abs(coef)
            else:
                return np.mean(np.abs(coef), axis=0)
        return None

    def __getstate__(self) -> Dict[str, Any]:
        """Support for pickle serialization"""
        return self.__dict__.copy()

    def __setstate__(self, state: Dict[str, Any]) -> None:
        """Support for pickle deserialization"""
        self.__dict__.update(state)
