"""Run parameters"""

from .op_params import OpParams, ReaderParams

__all__ = ["OpParams", "ReaderParams"]
