import numpy as np
import pytest

from modelselect.dataset import LabeledDataset
from modelselect.selection.errors import ConfigurationError
from modelselect.selection.splitter import DataCutter, DataSplitter


@pytest.fixture
def skewed_dataset():
    labels = np.array([0.0] * 50 + [1.0] * 30 + [2.0] * 15 + [3.0] * 5)
    features = np.arange(len(labels), dtype=float).reshape(-1, 1)
    return LabeledDataset(labels=labels, features=features)


class TestDataSplitter:
    @pytest.mark.parametrize("fraction", [0.0, 0.1, 0.2, 0.5, 0.9])
    def test_split_sizes(self, skewed_dataset, fraction):
        train, test = DataSplitter(seed=1, reserve_test_fraction=fraction).split(skewed_dataset)
        assert len(test) == round(fraction * len(skewed_dataset))
        assert len(train) + len(test) == len(skewed_dataset)

    def test_partition_is_disjoint_and_complete(self, skewed_dataset):
        train, test = DataSplitter(reserve_test_fraction=0.3).split(skewed_dataset)
        assert not set(train.ids) & set(test.ids)
        assert set(train.ids) | set(test.ids) == set(skewed_dataset.ids)

    def test_seed_determines_split(self, skewed_dataset):
        _, first = DataSplitter(seed=7, reserve_test_fraction=0.2).split(skewed_dataset)
        _, second = DataSplitter(seed=7, reserve_test_fraction=0.2).split(skewed_dataset)
        _, other = DataSplitter(seed=8, reserve_test_fraction=0.2).split(skewed_dataset)
        assert np.array_equal(first.ids, second.ids)
        assert not np.array_equal(first.ids, other.ids)

    @pytest.mark.parametrize("fraction", [-0.1, 1.0, 1.5])
    def test_invalid_fraction(self, fraction):
        with pytest.raises(ConfigurationError):
            DataSplitter(reserve_test_fraction=fraction)

    def test_prepare_is_identity(self, skewed_dataset):
        assert DataSplitter().prepare(skewed_dataset) is skewed_dataset

    def test_summary(self, skewed_dataset):
        splitter = DataSplitter(seed=3, reserve_test_fraction=0.1)
        splitter.split(skewed_dataset)
        summary = splitter.summary()
        assert summary["splitter"] == "DataSplitter"
        assert summary["seed"] == 3
        assert summary["trainRows"] == 90
        assert summary["testRows"] == 10


class TestDataCutter:
    def test_max_label_categories(self, skewed_dataset):
        cutter = DataCutter(reserve_test_fraction=0.0, max_label_categories=2)
        train, test = cutter.split(skewed_dataset)
        assert len(test) == 0
        assert set(train.labels) == {0.0, 1.0}
        assert cutter.summary()["labelsDropped"] == [2.0, 3.0]

    def test_min_label_fraction(self, skewed_dataset):
        cutter = DataCutter(reserve_test_fraction=0.0, min_label_fraction=0.1)
        train, _ = cutter.split(skewed_dataset)
        assert set(train.labels) == {0.0, 1.0, 2.0}
        assert cutter.labels_kept == [0.0, 1.0, 2.0]

    def test_prepare_filters(self, skewed_dataset):
        cutter = DataCutter(max_label_categories=3)
        prepared = cutter.prepare(skewed_dataset)
        assert len(prepared) == 95

    def test_keeps_everything_by_default(self, skewed_dataset):
        train, test = DataCutter(reserve_test_fraction=0.2).split(skewed_dataset)
        assert len(train) + len(test) == len(skewed_dataset)

    def test_invalid_parameters(self):
        with pytest.raises(ConfigurationError):
            DataCutter(max_label_categories=0)
        with pytest.raises(ConfigurationError):
            DataCutter(min_label_fraction=0.7)
