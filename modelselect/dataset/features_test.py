import numpy as np
import pandas as pd
import pytest

from modelselect.dataset import FeatureBuilder, FeatureRef, FeatureType


@pytest.fixture
def mixed_frame():
    return pd.DataFrame(
        {
            "survived": [0.0, 1.0, 1.0],
            "age": [22.0, np.nan, 35.0],
            "fare": [7.25, 71.3, 8.05],
            "name": ["a", "b", "c"],
        }
    )


class TestFeatureBuilder:
    def test_from_dataframe(self, mixed_frame):
        response, predictors = FeatureBuilder.from_dataframe(mixed_frame, response="survived")

        assert response == FeatureRef("survived", FeatureType.REAL_NN, is_response=True)
        assert [p.name for p in predictors] == ["age", "fare", "name"]
        assert [p.feature_type for p in predictors] == [FeatureType.REAL, FeatureType.REAL_NN, FeatureType.TEXT]
        assert not any(p.is_response for p in predictors)

    def test_vector_column(self, cluster_frame):
        response, predictors = FeatureBuilder.from_dataframe(cluster_frame, response="label")
        assert response.feature_type == FeatureType.REAL_NN
        assert predictors[0].feature_type == FeatureType.VECTOR

    def test_text_response_rejected(self, mixed_frame):
        with pytest.raises(ValueError):
            FeatureBuilder.from_dataframe(mixed_frame, response="name")

    def test_nullable_declared_non_nullable(self, mixed_frame):
        with pytest.raises(ValueError):
            FeatureBuilder.from_dataframe(mixed_frame, response="survived", non_nullable=["age"])

    def test_missing_response(self, mixed_frame):
        with pytest.raises(ValueError):
            FeatureBuilder.from_dataframe(mixed_frame, response="label")

    def test_vectorize(self, mixed_frame):
        _, predictors = FeatureBuilder.from_dataframe(mixed_frame, response="survived")
        out, ref = FeatureBuilder.vectorize(mixed_frame, predictors[:2], output_name="vec")

        assert ref.feature_type == FeatureType.VECTOR
        assert ref.name == "vec"
        assert np.allclose(out["vec"].iloc[1], [0.0, 71.3])
        assert "vec" not in mixed_frame.columns

    def test_vectorize_rejects_text(self, mixed_frame):
        _, predictors = FeatureBuilder.from_dataframe(mixed_frame, response="survived")
        with pytest.raises(ValueError):
            FeatureBuilder.vectorize(mixed_frame, predictors)
