from enum import Enum
from typing import Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd
from pandas.api import types as ptypes
from pydantic.dataclasses import dataclass


class FeatureType(Enum):
    """Semantic type of a feature column"""

    REAL_NN = "RealNN"  # numeric, never null
    REAL = "Real"  # numeric, nullable
    VECTOR = "OPVector"
    TEXT = "Text"

    @property
    def is_numeric(self) -> bool:
        return self in (FeatureType.REAL_NN, FeatureType.REAL)


@dataclass(frozen=True)
class FeatureRef:
    """Reference to a named column together with its semantic type"""

    name: str
    feature_type: FeatureType
    is_response: bool = False
    origin_stage: Optional[str] = None

    def derived(self, name: str, feature_type: FeatureType, origin_stage: str) -> "FeatureRef":
        """Reference to a column produced by ``origin_stage`` from this one"""
        return FeatureRef(name=name, feature_type=feature_type, is_response=False, origin_stage=origin_stage)


class FeatureBuilder:
    """Infers feature references from the columns of a DataFrame"""

    @staticmethod
    def infer_type(series: pd.Series, non_nullable: bool = False) -> FeatureType:
        """
        Infer the semantic type of one column

        Args:
            series: Column values
            non_nullable: Treat a numeric column as non-nullable even if it is empty

        Returns:
            FeatureType of the column
        """
        if ptypes.is_bool_dtype(series) or ptypes.is_numeric_dtype(series):
            if non_nullable or not series.isna().any():
                return FeatureType.REAL_NN
            return FeatureType.REAL

        non_null = series.dropna()
        if len(non_null) and isinstance(non_null.iloc[0], (list, tuple, np.ndarray)):
            return FeatureType.VECTOR
        return FeatureType.TEXT

    @classmethod
    def from_dataframe(
        cls, df: pd.DataFrame, response: str, non_nullable: Iterable[str] = ()
    ) -> Tuple[FeatureRef, List[FeatureRef]]:
        """
        Create the response and predictor references for every column of a frame

        Args:
            df: Input frame
            response: Name of the response (label) column
            non_nullable: Names of numeric columns that must not contain nulls

        Returns:
            Tuple of (response reference, predictor references in column order)

        Raises:
            ValueError: If the response column is missing or not numeric, or a
                non-nullable column contains nulls
        """
        if response not in df.columns:
            raise ValueError(f"Response column '{response}' not found. Available columns: {list(df.columns)}")

        non_nullable = set(non_nullable) | {response}
        refs = {}
        for column in df.columns:
            feature_type = cls.infer_type(df[column], non_nullable=column in non_nullable)
            if column in non_nullable:
                if not feature_type.is_numeric:
                    raise ValueError(f"Column '{column}' must be numeric, got {feature_type.value}")
                if df[column].isna().any():
                    raise ValueError(f"Column '{column}' is declared non-nullable but contains nulls")
            refs[column] = FeatureRef(name=column, feature_type=feature_type, is_response=column == response)

        predictors = [ref for name, ref in refs.items() if name != response]
        return refs[response], predictors

    @staticmethod
    def vectorize(
        df: pd.DataFrame, predictors: List[FeatureRef], output_name: str = "features", fill_value: float = 0.0
    ) -> Tuple[pd.DataFrame, FeatureRef]:
        """
        Assemble numeric predictors into one vector column

        Args:
            df: Input frame
            predictors: Numeric predictor references, in output order
            output_name: Name of the vector column to add
            fill_value: Replacement for nulls of nullable predictors

        Returns:
            Tuple of (copy of ``df`` with the vector column, reference to the vector column)
        """
        non_numeric = [ref.name for ref in predictors if not ref.feature_type.is_numeric]
        if non_numeric:
            raise ValueError(f"Only numeric predictors can be vectorized, got {non_numeric}")
        if not predictors:
            raise ValueError("At least one predictor is required")

        matrix = df[[ref.name for ref in predictors]].to_numpy(dtype=float)
        matrix = np.where(np.isnan(matrix), fill_value, matrix)

        out = df.copy()
        out[output_name] = list(matrix)
        return out, FeatureRef(name=output_name, feature_type=FeatureType.VECTOR, origin_stage="vectorize")
