import os
from dataclasses import asdict
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import Field
from pydantic.dataclasses import dataclass

from modelselect.params import OpParams
from modelselect.shared.classification import ClassificationFactory
from modelselect.shared.evaluation import Evaluators

# Stage name looked up in OpParams.stage_params
SELECTOR_STAGE = "modelSelector"


@dataclass(frozen=True)
class SplitterConfig:
    """Configuration of the holdout split taken before model selection"""

    enabled: bool = Field(default=True, description="Hold out test data before selection")
    kind: Literal["cutter", "splitter"] = Field(
        default="cutter", description="'cutter' also drops rare labels, 'splitter' only splits"
    )
    reserve_test_fraction: float = Field(default=0.1, description="Fraction of rows held out")
    max_label_categories: int = Field(default=100, description="Maximum number of labels kept by the cutter")
    min_label_fraction: float = Field(default=0.0, description="Minimum label frequency kept by the cutter")


@dataclass(frozen=True)
class ModelConfig:
    """Candidate model and the values to search for each hyperparameter"""

    name: str  # "logistic_regression", "random_forest", etc.
    hyperparameters: Dict[str, Any] = Field(default_factory=dict)
    enabled: bool = True


@dataclass(frozen=True)
class ModelSelectionConfig:
    """Configuration for a model selection run"""

    # Data
    dataset_path: str
    label_column: str
    output_dir: str
    feature_columns: Optional[List[str]] = None
    holdout_path: Optional[str] = None
    score_path: Optional[str] = None
    predictions_path: Optional[str] = None

    # Validation
    validation_type: Literal["cv", "tvs"] = "cv"
    num_folds: int = 3
    train_ratio: float = 0.75
    stratify: bool = False
    parallelism: int = 1
    max_wait: Optional[float] = None
    validation_metric: str = "f1"
    evaluators: List[str] = Field(default_factory=list)
    splitter: SplitterConfig = Field(default_factory=SplitterConfig)

    # Candidates
    models: List[ModelConfig] = Field(default_factory=list)
    thresholds: Optional[List[float]] = None

    random_state: int = 42

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "ModelSelectionConfig":
        required_fields = ["dataset_path", "label_column", "output_dir"]
        for field in required_fields:
            if field not in config_dict:
                raise ValueError(f"Missing required field '{field}' in config file")

        values = dict(config_dict)
        # Convert relative paths to absolute
        for key in ("dataset_path", "output_dir", "holdout_path", "score_path", "predictions_path"):
            if values.get(key) and not os.path.isabs(values[key]):
                values[key] = os.path.abspath(values[key])

        values["splitter"] = SplitterConfig(**(values.get("splitter") or {}))
        values["models"] = [
            ModelConfig(
                name=model_dict["name"],
                hyperparameters=model_dict.get("hyperparameters") or {},
                enabled=model_dict.get("enabled", True),
            )
            for model_dict in values.get("models") or []
        ]
        return cls(**values)

    @classmethod
    def from_yaml(cls, config_file: str) -> "ModelSelectionConfig":
        """Load configuration from YAML file"""
        if not os.path.exists(config_file):
            raise ValueError(f"Config file does not exist: {config_file}")

        with open(config_file, "r") as f:
            config_dict = yaml.safe_load(f)

        return cls.from_dict(config_dict or {})

    def with_params(self, params: OpParams) -> "ModelSelectionConfig":
        """
        Apply run parameters on top of this configuration

        Reader params named ``train``, ``holdout`` and ``score`` replace the respective paths,
        ``model_location`` replaces the output directory, ``write_location`` the predictions
        path and the ``modelSelector`` stage params override any top level field.

        Args:
            params: Run parameters

        Returns:
            New configuration
        """
        values = asdict(self)
        values.update(params.stage_params.get(SELECTOR_STAGE, {}))

        for reader, key in (("train", "dataset_path"), ("holdout", "holdout_path"), ("score", "score_path")):
            if reader in params.reader_params and params.reader_params[reader].path:
                values[key] = params.reader_params[reader].path
        if params.model_location:
            values["output_dir"] = params.model_location
        if params.write_location:
            values["predictions_path"] = params.write_location

        return type(self).from_dict(values)

    def get_enabled_models(self) -> List[ModelConfig]:
        """Get only enabled models"""
        return [model for model in self.models if model.enabled]

    def validate(self) -> None:
        """Validate configuration"""
        for path in (self.dataset_path, self.holdout_path, self.score_path):
            if path and not os.path.exists(path):
                raise ValueError(f"Data file does not exist: {path}")

        if self.models and not self.get_enabled_models():
            raise ValueError("No models are enabled")
        for model in self.get_enabled_models():
            ClassificationFactory.resolve_name(model.name)

        Evaluators.from_name(self.validation_metric)
        for name in self.evaluators:
            Evaluators.from_name(name)

        if self.validation_type == "cv" and self.num_folds < 2:
            raise ValueError(f"num_folds must be at least 2, got {self.num_folds}")
        if self.validation_type == "tvs" and not 0.0 < self.train_ratio < 1.0:
            raise ValueError(f"train_ratio must be in (0, 1), got {self.train_ratio}")
        if self.parallelism < 1:
            raise ValueError(f"parallelism must be at least 1, got {self.parallelism}")
        if self.thresholds is not None and any(t < 0 for t in self.thresholds):
            raise ValueError("Thresholds must be non-negative")
