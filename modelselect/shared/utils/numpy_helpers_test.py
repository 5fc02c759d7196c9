import numpy as np
import pytest

from modelselect.shared.utils.numpy_helpers import (
    convert_to_primitives_nested,
    expand_columns,
    normalize_rows,
    softmax_rows,
)


class TestSoftmaxRows:
    def test_rows_sum_to_one(self):
        result = softmax_rows(np.array([[1.0, 2.0, 3.0], [0.0, 0.0, 0.0]]))
        assert np.allclose(result.sum(axis=1), 1.0)

    def test_uniform_for_equal_scores(self):
        result = softmax_rows(np.array([[5.0, 5.0]]))
        assert np.allclose(result, [[0.5, 0.5]])

    def test_large_margins_are_stable(self):
        result = softmax_rows(np.array([[1000.0, 0.0]]))
        assert np.allclose(result, [[1.0, 0.0]])

    def test_negative_infinity_maps_to_zero(self):
        result = softmax_rows(np.array([[0.0, -np.inf, 0.0]]))
        assert np.allclose(result, [[0.5, 0.0, 0.5]])

    def test_binary_margin_matches_sigmoid(self):
        margin = 1.3
        result = softmax_rows(np.array([[0.0, margin]]))
        assert result[0, 1] == pytest.approx(1.0 / (1.0 + np.exp(-margin)))


class TestNormalizeRows:
    def test_votes(self):
        result = normalize_rows(np.array([[2.0, 6.0, 2.0]]))
        assert np.allclose(result, [[0.2, 0.6, 0.2]])

    def test_zero_row_is_uniform(self):
        result = normalize_rows(np.array([[0.0, 0.0, 0.0, 0.0]]))
        assert np.allclose(result, [[0.25, 0.25, 0.25, 0.25]])


class TestExpandColumns:
    def test_identity_when_all_present(self):
        values = np.array([[1.0, 2.0]])
        result = expand_columns(values, [0.0, 1.0], [0.0, 1.0], fill_value=0.0)
        assert np.array_equal(result, values)

    def test_missing_class_is_filled(self):
        values = np.array([[1.0, 2.0], [3.0, 4.0]])
        result = expand_columns(values, [0.0, 2.0], [0.0, 1.0, 2.0], fill_value=-np.inf)
        assert result.shape == (2, 3)
        assert np.array_equal(result[:, 0], [1.0, 3.0])
        assert np.all(np.isneginf(result[:, 1]))
        assert np.array_equal(result[:, 2], [2.0, 4.0])

    def test_unknown_class_raises(self):
        with pytest.raises(ValueError):
            expand_columns(np.array([[1.0]]), [5.0], [0.0, 1.0], fill_value=0.0)


class TestConvertToPrimitivesNested:
    def test_numpy_scalars(self):
        result = convert_to_primitives_nested({"a": np.float64(0.5), "b": np.int64(3), "c": np.bool_(True)})
        assert result == {"a": 0.5, "b": 3, "c": True}
        assert type(result["a"]) is float
        assert type(result["b"]) is int
        assert type(result["c"]) is bool

    def test_nested_arrays(self):
        result = convert_to_primitives_nested({"x": [np.array([1, 2]), {"y": np.array([0.5])}]})
        assert result == {"x": [[1, 2], {"y": [0.5]}]}

    def test_tuples_become_lists(self):
        assert convert_to_primitives_nested((1, np.int32(2))) == [1, 2]

    def test_plain_values_untouched(self):
        assert convert_to_primitives_nested("text") == "text"
        assert convert_to_primitives_nested(None) is None
