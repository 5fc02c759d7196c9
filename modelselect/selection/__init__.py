"""Model selection: splitting, candidate search, validation and the fitted selector"""

from .candidates import CandidateRegistry, CandidateSpec, HyperparameterGrid
from .cascade import ProbabilityStage, RawScoresStage, SelectorStage, build_cascade
from .errors import ConfigurationError, EvaluationWarning, FitError, ModelSelectionError, TrialFailure
from .metadata import MetricsRecord, ModelSelectorMetadata, SelectorSummary
from .selector import BestEstimator, FittedModelSelector, MultiClassificationModelSelector
from .splitter import DataCutter, DataSplitter
from .validator import CrossValidation, TrialResult, TrainValidationSplit, ValidationResult, Validator

__all__ = [
    "CandidateRegistry",
    "CandidateSpec",
    "HyperparameterGrid",
    "ProbabilityStage",
    "RawScoresStage",
    "SelectorStage",
    "build_cascade",
    "ConfigurationError",
    "EvaluationWarning",
    "FitError",
    "ModelSelectionError",
    "TrialFailure",
    "MetricsRecord",
    "ModelSelectorMetadata",
    "SelectorSummary",
    "BestEstimator",
    "FittedModelSelector",
    "MultiClassificationModelSelector",
    "DataCutter",
    "DataSplitter",
    "CrossValidation",
    "TrialResult",
    "TrainValidationSplit",
    "ValidationResult",
    "Validator",
]
