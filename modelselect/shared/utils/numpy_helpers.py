from typing import Sequence
import numpy as np


def softmax_rows(scores: np.ndarray) -> np.ndarray:
    """
    Row-wise softmax that tolerates -inf entries (they map to probability 0).

    Args:
        scores (np.ndarray): 2D array of shape (n_samples, n_classes) in log/margin space.

    Returns:
        np.ndarray: Probabilities of the same shape, each row summing to 1.
    """
    scores = np.asarray(scores, dtype=float)
    row_max = np.max(scores, axis=1, keepdims=True)
    row_max[~np.isfinite(row_max)] = 0.0
    exp = np.exp(scores - row_max)
    return exp / np.sum(exp, axis=1, keepdims=True)


def normalize_rows(scores: np.ndarray) -> np.ndarray:
    """
    Normalize non-negative scores (votes, counts) into probabilities per row.

    Rows summing to zero are mapped to the uniform distribution.

    Args:
        scores (np.ndarray): 2D array of non-negative scores of shape (n_samples, n_classes).

    Returns:
        np.ndarray: Probabilities of the same shape, each row summing to 1.
    """
    scores = np.asarray(scores, dtype=float)
    totals = np.sum(scores, axis=1, keepdims=True)
    n_classes = scores.shape[1]
    uniform = np.full_like(scores, 1.0 / n_classes) if n_classes else scores
    with np.errstate(invalid="ignore", divide="ignore"):
        normalized = scores / totals
    return np.where(totals > 0, normalized, uniform)


def expand_columns(
    values: np.ndarray, present: Sequence[float], classes: Sequence[float], fill_value: float
) -> np.ndarray:
    """
    Scatter per-class columns computed for a subset of classes into the full class layout.

    Args:
        values (np.ndarray): 2D array whose columns follow ``present``.
        present (Sequence[float]): Class ids the columns of ``values`` correspond to.
        classes (Sequence[float]): Full, ordered list of class ids of the output.
        fill_value (float): Value used for classes missing from ``present``.

    Returns:
        np.ndarray: Array of shape (n_samples, len(classes)).
    """
    values = np.asarray(values, dtype=float)
    if list(present) == list(classes):
        return values
    position = {label: i for i, label in enumerate(classes)}
    out = np.full((values.shape[0], len(classes)), fill_value, dtype=float)
    for column, label in enumerate(present):
        if label not in position:
            raise ValueError(f"Class {label} is not part of the output classes {list(classes)}")
        out[:, position[label]] = values[:, column]
    return out


def convert_to_primitives_nested(obj: list | dict | tuple | np.ndarray | np.number) -> list | dict:
    """
    Convert numpy arrays in a nested structure (list or dict) to Python primitives.

    Args:
        obj (list | dict | tuple | np.ndarray): The input object which can be a list, dict, or numpy array.

    Returns:
        list | dict: The input object with numpy arrays converted to Python primitives.
    """
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    elif isinstance(obj, (list, tuple)):
        return [convert_to_primitives_nested(item) for item in obj]
    elif isinstance(obj, dict):
        return {key: convert_to_primitives_nested(value) for key, value in obj.items()}
    elif isinstance(obj, np.bool_):
        return bool(obj)
    elif isinstance(obj, np.number):
        return obj.item()
    else:
        return obj  # Return as is if it's neither a list, dict, nor numpy array
