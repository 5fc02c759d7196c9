"""Labeled datasets and feature references"""

from .features import FeatureBuilder, FeatureRef, FeatureType
from .labeled import LabeledDataset

__all__ = ["FeatureBuilder", "FeatureRef", "FeatureType", "LabeledDataset"]
