from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd


class LabeledDataset:
    """
    Rows of (id, numeric class label, fixed-width feature vector).

    All feature vectors share one dimensionality. Labels are stored as floats so that
    class ids read from CSV files or produced by other stages compare equal.
    """

    def __init__(
        self,
        labels: Union[np.ndarray, Sequence[float]],
        features: Union[np.ndarray, Sequence[Sequence[float]]],
        ids: Optional[Union[np.ndarray, Sequence]] = None,
    ):
        """
        Args:
            labels: Class id per row
            features: Feature matrix of shape (n_rows, n_features)
            ids: Optional row ids, defaults to 0..n_rows-1

        Raises:
            ValueError: If the shapes are inconsistent or labels are not finite
        """
        self.labels = np.asarray(labels, dtype=float)
        try:
            self.features = np.asarray(features, dtype=float)
        except ValueError as e:
            raise ValueError(f"All feature vectors must have the same dimensionality: {e}") from e

        if self.labels.ndim != 1:
            raise ValueError(f"Labels must be a 1D array, got {self.labels.ndim}D")
        if self.features.ndim == 1 and len(self.features) == 0:
            self.features = self.features.reshape(0, 0)
        if self.features.ndim != 2:
            raise ValueError(f"Features must be a 2D array, got {self.features.ndim}D")
        if len(self.labels) != len(self.features):
            raise ValueError(
                f"Got {len(self.labels)} labels but {len(self.features)} feature vectors, they must match"
            )
        if not np.all(np.isfinite(self.labels)):
            raise ValueError("Labels contain NaN or infinite values")

        if ids is None:
            self.ids = np.arange(len(self.labels))
        else:
            self.ids = np.asarray(ids)
            if len(self.ids) != len(self.labels):
                raise ValueError(f"Got {len(self.ids)} ids for {len(self.labels)} rows")

    @classmethod
    def from_dataframe(
        cls,
        df: pd.DataFrame,
        label: str = "label",
        features: Union[str, List[str]] = "features",
        id_column: Optional[str] = None,
    ) -> "LabeledDataset":
        """
        Build a dataset from a DataFrame

        Args:
            df: Input frame
            label: Name of the numeric label column
            features: Either the name of one column holding array-like vectors, or a
                list of numeric column names that are stacked into the feature matrix
            id_column: Optional column with row ids

        Returns:
            LabeledDataset with the rows of ``df`` in order
        """
        required = [label] + ([features] if isinstance(features, str) else list(features))
        if id_column is not None:
            required.append(id_column)
        missing = [column for column in required if column not in df.columns]
        if missing:
            raise ValueError(f"Missing columns: {missing}. Available columns: {list(df.columns)}")

        if isinstance(features, str):
            vectors = [np.asarray(v, dtype=float) for v in df[features]]
            if any(v.shape != vectors[0].shape for v in vectors):
                raise ValueError(f"All vectors in column '{features}' must have the same dimensionality")
            matrix = np.vstack(vectors) if vectors else np.empty((0, 0))
        else:
            matrix = df[list(features)].to_numpy(dtype=float)

        ids = df[id_column].to_numpy() if id_column is not None else None
        return cls(labels=df[label].to_numpy(dtype=float), features=matrix, ids=ids)

    def subset(self, indices: Union[np.ndarray, Sequence[int]]) -> "LabeledDataset":
        """Rows at the given positions, in the given order"""
        indices = np.asarray(indices, dtype=int)
        return LabeledDataset(labels=self.labels[indices], features=self.features[indices], ids=self.ids[indices])

    def distinct_labels(self) -> np.ndarray:
        """Sorted distinct class ids"""
        return np.unique(self.labels)

    def label_counts(self) -> Dict[float, int]:
        """Number of rows per class id, ordered by class id"""
        values, counts = np.unique(self.labels, return_counts=True)
        return {float(v): int(c) for v, c in zip(values, counts)}

    @property
    def n_features(self) -> int:
        return self.features.shape[1]

    def __len__(self) -> int:
        return len(self.labels)

    def __repr__(self) -> str:
        return f"LabeledDataset(rows={len(self)}, features={self.n_features}, classes={len(self.distinct_labels())})"
