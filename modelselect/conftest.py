import numpy as np
import pandas as pd
import pytest

from modelselect.dataset import LabeledDataset

CLUSTER_SIZES = (5, 7, 10)
CLUSTER_CENTERS = (-100.0, 0.0, 100.0)


@pytest.fixture
def cluster_arrays():
    """Three well separated 3-D clusters with 5, 7 and 10 points (labels 0, 1, 2)"""
    rng = np.random.default_rng(42)
    features = np.vstack(
        [rng.normal(center, 1.0, size=(size, 3)) for center, size in zip(CLUSTER_CENTERS, CLUSTER_SIZES)]
    )
    labels = np.concatenate([np.full(size, float(label)) for label, size in enumerate(CLUSTER_SIZES)])
    return features, labels


@pytest.fixture
def cluster_dataset(cluster_arrays):
    features, labels = cluster_arrays
    return LabeledDataset(labels=labels, features=features)


@pytest.fixture
def cluster_frame(cluster_arrays):
    features, labels = cluster_arrays
    return pd.DataFrame({"label": labels, "features": list(features)})
