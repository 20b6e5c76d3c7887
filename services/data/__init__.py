"""
Training data loading and preprocessing (plaintext, before encryption).
"""

from .dataset import (
    Dataset,
    StandardScaler,
    load_csv,
    make_linearly_separable,
)

__all__ = [
    "Dataset",
    "StandardScaler",
    "load_csv",
    "make_linearly_separable",
]
