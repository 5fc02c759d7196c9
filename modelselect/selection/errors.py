"""Errors raised while configuring and fitting a model selector"""

from typing import Any, Dict, Optional, Sequence

from modelselect.shared.evaluation import EvaluationWarning


class ModelSelectionError(Exception):
    """Base class of all model selection errors"""


class ConfigurationError(ModelSelectionError, ValueError):
    """Invalid selector, splitter, validator, grid or stage configuration"""


class TrialFailure(ModelSelectionError):
    """
    One (candidate, hyperparameters, fold) trial that could not be completed.

    Failures are recorded and reported, a failed trial excludes its grid point from selection.
    """

    def __init__(self, candidate: str, params: Dict[str, Any], fold: Optional[int], reason: str):
        self.candidate = candidate
        self.params = dict(params)
        self.fold = fold
        self.reason = reason
        super().__init__(str(self))

    def __str__(self) -> str:
        fold = "" if self.fold is None else f", fold {self.fold}"
        return f"{self.candidate} {self.params}{fold}: {self.reason}"


class FitError(ModelSelectionError, RuntimeError):
    """Fitting could not produce a model"""

    def __init__(self, message: str, failures: Sequence[TrialFailure] = ()):
        self.failures = list(failures)
        if self.failures:
            message = message + "\n" + "\n".join(f"  - {failure}" for failure in self.failures)
        super().__init__(message)


__all__ = [
    "ModelSelectionError",
    "ConfigurationError",
    "TrialFailure",
    "FitError",
    "EvaluationWarning",
]
