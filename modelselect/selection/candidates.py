"""Candidate algorithms and their hyperparameter grids"""

import itertools
import logging
from dataclasses import fields
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple, Union

from pydantic import ValidationError
from pydantic.dataclasses import dataclass

from modelselect.shared.classification import ClassificationFactory, ClassificationModel, ModelType
from .errors import ConfigurationError, FitError


logger = logging.getLogger(__name__)

ModelLike = Union[str, ModelType]

# Set through set_model_thresholds, never part of a grid
RESERVED_PARAMS = ("thresholds",)

DEFAULT_GRIDS: Dict[ModelType, Dict[str, List[Any]]] = {
    ModelType.LOGISTIC_REGRESSION: {
        "C": [0.1, 1.0, 10.0],
        "max_iter": [200],
    },
    ModelType.RANDOM_FOREST: {
        "max_depth": [3, 6, 12],
        "criterion": ["gini", "entropy"],
        "n_estimators": [50],
    },
    ModelType.DECISION_TREE: {
        "max_depth": [3, 6, 12],
        "criterion": ["gini", "entropy"],
    },
    ModelType.NAIVE_BAYES: {
        "model_type": ["gaussian"],
    },
    ModelType.XGBOOST: {
        "max_depth": [3, 6],
        "learning_rate": [0.1, 0.3],
        "n_estimators": [100],
    },
}

DEFAULT_ENABLED: Tuple[ModelType, ...] = (ModelType.LOGISTIC_REGRESSION, ModelType.RANDOM_FOREST)


def to_model_type(model: ModelLike) -> ModelType:
    """Resolve a ModelType member, name or alias"""
    if isinstance(model, ModelType):
        return model
    try:
        return ModelType(ClassificationFactory.resolve_name(model))
    except ValueError as e:
        raise ConfigurationError(str(e)) from e


def tunable_params(model_type: ModelType) -> List[str]:
    """Hyperparameter names of a candidate that may appear in its grid"""
    config_class = ClassificationFactory.get_model_config_class(model_type)
    return [f.name for f in fields(config_class) if f.name not in RESERVED_PARAMS]


class HyperparameterGrid:
    """
    Ordered mapping of hyperparameter name to the list of values to try.

    Names are checked against the candidate's config when they are set. Parameters keep
    the order in which they were first set; setting a parameter again replaces its values.
    """

    def __init__(self, model_type: ModelLike, values: Optional[Dict[str, Sequence[Any]]] = None):
        self.model_type = to_model_type(model_type)
        self._allowed = tunable_params(self.model_type)
        self._values: Dict[str, List[Any]] = {}
        for name, param_values in (values or {}).items():
            self.set(name, param_values)

    def set(self, name: str, values: Sequence[Any]) -> "HyperparameterGrid":
        if name not in self._allowed:
            raise ConfigurationError(
                f"Unknown hyperparameter '{name}' for {self.model_type.value}. Available: {self._allowed}"
            )
        if isinstance(values, (str, bytes)) or not isinstance(values, Iterable):
            values = [values]
        values = list(values)
        if not values:
            raise ConfigurationError(f"Hyperparameter '{name}' of {self.model_type.value} needs at least one value")
        self._values[name] = values
        return self

    @property
    def size(self) -> int:
        """Number of hyperparameter assignments in the cross product"""
        size = 1
        for values in self._values.values():
            size *= len(values)
        return size

    def items(self) -> Tuple[Tuple[str, Tuple[Any, ...]], ...]:
        return tuple((name, tuple(values)) for name, values in self._values.items())

    def to_dict(self) -> Dict[str, List[Any]]:
        return {name: list(values) for name, values in self._values.items()}

    def copy(self) -> "HyperparameterGrid":
        return HyperparameterGrid(self.model_type, self.to_dict())

    def __repr__(self) -> str:
        return f"HyperparameterGrid({self.model_type.value}, {self._values})"


@dataclass(frozen=True)
class CandidateSpec:
    """Frozen view of one enabled candidate, taken when fitting starts"""

    model_type: ModelType
    grid: Tuple[Tuple[str, Tuple[Any, ...]], ...] = ()
    thresholds: Optional[Tuple[float, ...]] = None
    enabled: bool = True

    @property
    def name(self) -> str:
        return self.model_type.value

    def expand(self) -> List[Dict[str, Any]]:
        """
        All hyperparameter assignments of the grid

        Returns:
            List of assignments, in ``itertools.product`` order over the parameter order
        """
        if not self.grid:
            return [{}]

        param_names = [name for name, _ in self.grid]
        param_values = [values for _, values in self.grid]
        return [dict(zip(param_names, combination)) for combination in itertools.product(*param_values)]

    def build_config(self, params: Dict[str, Any]):
        config_class = ClassificationFactory.get_model_config_class(self.model_type)
        thresholds = list(self.thresholds) if self.thresholds is not None else None
        return config_class(**params, thresholds=thresholds)

    def validate_grid(self) -> None:
        """
        Check every assignment against the candidate's typed config

        Raises:
            FitError: If a value is outside the declared type domain
        """
        for params in self.expand():
            try:
                self.build_config(params)
            except ValidationError as e:
                raise FitError(f"Invalid hyperparameters {params} for {self.name}: {e}") from e

    def create_model(self, params: Dict[str, Any]) -> ClassificationModel:
        """Unfitted model for one assignment"""
        return ClassificationFactory.create(self.model_type, self.build_config(params))


class CandidateRegistry:
    """
    Mutable set of candidates, their grids and the shared thresholds.

    Logistic regression and random forest are enabled by default. A candidate searches its
    default grid until the first ``set_param`` or ``set_params`` call for it, which starts
    its grid from scratch.
    """

    def __init__(self):
        self._grids: Dict[ModelType, HyperparameterGrid] = {
            model_type: HyperparameterGrid(model_type, grid) for model_type, grid in DEFAULT_GRIDS.items()
        }
        self._enabled: List[ModelType] = list(DEFAULT_ENABLED)
        self._customized: Set[ModelType] = set()
        self._thresholds: Optional[Tuple[float, ...]] = None

    def set_models_to_try(self, *model_types: ModelLike) -> "CandidateRegistry":
        """Enable exactly the given candidates"""
        resolved = []
        for model in model_types:
            model_type = to_model_type(model)
            if model_type not in resolved:
                resolved.append(model_type)
        self._enabled = resolved
        return self

    def set_param(self, model_type: ModelLike, name: str, *values: Any) -> "CandidateRegistry":
        """Set the values to try for one hyperparameter of one candidate"""
        return self.set_params(model_type, **{name: list(values)})

    def set_params(self, model_type: ModelLike, **params: Sequence[Any]) -> "CandidateRegistry":
        """Set the values to try for several hyperparameters of one candidate"""
        model_type = to_model_type(model_type)
        grid = self.grid(model_type).copy() if model_type in self._customized else HyperparameterGrid(model_type)
        for name, values in params.items():
            grid.set(name, values)
        self._grids[model_type] = grid
        self._customized.add(model_type)
        return self

    def set_thresholds(self, thresholds: Optional[Sequence[float]]) -> "CandidateRegistry":
        """Thresholds applied identically to every candidate"""
        if thresholds is None:
            self._thresholds = None
            return self
        thresholds = tuple(float(t) for t in thresholds)
        if any(t < 0 for t in thresholds):
            raise ConfigurationError(f"Thresholds must be non-negative, got {list(thresholds)}")
        self._thresholds = thresholds
        return self

    def grid(self, model_type: ModelLike) -> HyperparameterGrid:
        model_type = to_model_type(model_type)
        if model_type not in self._grids:
            self._grids[model_type] = HyperparameterGrid(model_type)
        return self._grids[model_type]

    @property
    def enabled(self) -> List[ModelType]:
        return list(self._enabled)

    @property
    def thresholds(self) -> Optional[Tuple[float, ...]]:
        return self._thresholds

    def snapshot(self) -> List[CandidateSpec]:
        """
        Freeze the enabled candidates for one fit

        Raises:
            ConfigurationError: If no candidate is enabled
        """
        if not self._enabled:
            raise ConfigurationError("No candidate models are enabled")
        return [
            CandidateSpec(model_type=model_type, grid=self._grids[model_type].items(), thresholds=self._thresholds)
            for model_type in self._enabled
        ]
