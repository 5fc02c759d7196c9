"""Holdout splitting and label filtering ahead of model selection"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from modelselect.dataset import LabeledDataset
from .errors import ConfigurationError


logger = logging.getLogger(__name__)


class DataSplitter:
    """
    Reserves a seed-determined random fraction of the rows as a holdout test set.

    Args:
        seed: Seed of the row permutation
        reserve_test_fraction: Fraction of rows put into the test set, in [0, 1)
    """

    def __init__(self, seed: int = 42, reserve_test_fraction: float = 0.1):
        if not 0.0 <= reserve_test_fraction < 1.0:
            raise ConfigurationError(f"reserve_test_fraction must be in [0, 1), got {reserve_test_fraction}")
        self.seed = seed
        self.reserve_test_fraction = reserve_test_fraction
        self._summary: Dict[str, Any] = {}

    def prepare(self, data: LabeledDataset) -> LabeledDataset:
        """Pre-validation step applied to the training data before folding"""
        return data

    def split(self, data: LabeledDataset) -> Tuple[LabeledDataset, LabeledDataset]:
        """
        Split the dataset into training and holdout test data

        Args:
            data: Full dataset

        Returns:
            Tuple of (train, test); together they contain every row exactly once
        """
        n_rows = len(data)
        n_test = int(round(self.reserve_test_fraction * n_rows))
        permutation = np.random.default_rng(self.seed).permutation(n_rows)

        test_idx = np.sort(permutation[:n_test])
        train_idx = np.sort(permutation[n_test:])

        logger.info(f"Split {n_rows} rows into {len(train_idx)} train / {len(test_idx)} test rows")
        self._summary.update({"trainRows": int(len(train_idx)), "testRows": int(len(test_idx))})
        return data.subset(train_idx), data.subset(test_idx)

    def get_params(self) -> Dict[str, Any]:
        return {"seed": self.seed, "reserveTestFraction": self.reserve_test_fraction}

    def summary(self) -> Dict[str, Any]:
        """Parameters and outcome of the last split, recorded as ``dataPrep`` in the metadata"""
        return {"splitter": self.__class__.__name__, **self.get_params(), **self._summary}

    def __repr__(self) -> str:
        params = ", ".join(f"{k}={v}" for k, v in self.get_params().items())
        return f"{self.__class__.__name__}({params})"


class DataCutter(DataSplitter):
    """
    Splitter that additionally keeps only the most frequent labels.

    At most ``max_label_categories`` labels are kept, each of them covering at least
    ``min_label_fraction`` of the rows; rows with any other label are dropped.

    Args:
        seed: Seed of the row permutation
        reserve_test_fraction: Fraction of rows put into the test set, in [0, 1)
        max_label_categories: Maximum number of labels to keep
        min_label_fraction: Minimum fraction of rows a label needs to be kept, in [0, 0.5)
    """

    def __init__(
        self,
        seed: int = 42,
        reserve_test_fraction: float = 0.1,
        max_label_categories: int = 100,
        min_label_fraction: float = 0.0,
    ):
        super().__init__(seed=seed, reserve_test_fraction=reserve_test_fraction)
        if max_label_categories < 1:
            raise ConfigurationError(f"max_label_categories must be at least 1, got {max_label_categories}")
        if not 0.0 <= min_label_fraction < 0.5:
            raise ConfigurationError(f"min_label_fraction must be in [0, 0.5), got {min_label_fraction}")
        self.max_label_categories = max_label_categories
        self.min_label_fraction = min_label_fraction
        self._labels_kept: Optional[List[float]] = None

    def _estimate(self, data: LabeledDataset) -> None:
        counts = data.label_counts()
        total = sum(counts.values())

        # Most frequent first, ties broken by the smaller class id
        ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        kept = [
            label for label, count in ranked[: self.max_label_categories]
            if total and count / total >= self.min_label_fraction
        ]
        dropped = [label for label in counts if label not in kept]

        if dropped:
            logger.info(f"Dropping {len(dropped)} labels: {sorted(dropped)}")
        self._labels_kept = sorted(kept)
        self._summary.update(
            {
                "labelsKept": self._labels_kept,
                "labelsDropped": sorted(dropped),
                "labelFractions": {str(label): count / total for label, count in counts.items()},
            }
        )

    def _filter(self, data: LabeledDataset) -> LabeledDataset:
        keep = np.isin(data.labels, self._labels_kept)
        return data.subset(np.flatnonzero(keep))

    def prepare(self, data: LabeledDataset) -> LabeledDataset:
        """Keep only rows whose label is among the selected labels"""
        if self._labels_kept is None:
            self._estimate(data)
        return self._filter(data)

    def split(self, data: LabeledDataset) -> Tuple[LabeledDataset, LabeledDataset]:
        self._estimate(data)
        return super().split(self._filter(data))

    @property
    def labels_kept(self) -> Optional[List[float]]:
        return self._labels_kept

    def get_params(self) -> Dict[str, Any]:
        return {
            **super().get_params(),
            "maxLabelCategories": self.max_label_categories,
            "minLabelFraction": self.min_label_fraction,
        }
