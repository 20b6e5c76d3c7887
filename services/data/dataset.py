"""
Training Data Preparation

Plaintext preprocessing that runs BEFORE encryption:
- CSV ingestion with a designated binary label column
- z-score standardization (keeps logits inside the surrogate's domain)
- Shape and slot-capacity validation
- Synthetic linearly separable data for demos and tests
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

import numpy as np

from services.fhe.errors import DimensionMismatch

logger = logging.getLogger(__name__)


@dataclass
class Dataset:
    """Feature matrix (R x W) plus binary labels (R)."""
    features: np.ndarray
    labels: np.ndarray
    feature_names: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.features = np.asarray(self.features, dtype=np.float64)
        self.labels = np.asarray(self.labels, dtype=np.float64).flatten()
        if self.features.ndim == 1:
            self.features = self.features.reshape(-1, 1)

    @property
    def num_rows(self) -> int:
        return self.features.shape[0]

    @property
    def num_features(self) -> int:
        return self.features.shape[1] if self.features.ndim == 2 else 0

    def validate(self, slot_count: Optional[int] = None):
        """
        Check shapes before anything is encrypted.

        Args:
            slot_count: CKKS slot count; rows and columns are packed into
                windows that need 2 * max(R, W) slots

        Raises:
            DimensionMismatch: On empty data, label count mismatch, non-binary
                labels or insufficient slot capacity
        """
        if self.features.ndim != 2:
            raise DimensionMismatch(
                f"Features must be a 2-D matrix, got shape {self.features.shape}"
            )
        if self.num_rows == 0 or self.num_features == 0:
            raise DimensionMismatch(f"Empty dataset: shape {self.features.shape}")
        if self.labels.shape[0] != self.num_rows:
            raise DimensionMismatch(
                f"{self.labels.shape[0]} labels for {self.num_rows} rows"
            )
        if not np.all(np.isin(self.labels, (0.0, 1.0))):
            raise DimensionMismatch("Labels must be binary (0 or 1)")
        if slot_count is not None:
            needed = 2 * max(self.num_rows, self.num_features)
            if needed > slot_count:
                raise DimensionMismatch(
                    f"Dataset of {self.num_rows} x {self.num_features} needs {needed} "
                    f"slots, only {slot_count} available"
                )


class StandardScaler:
    """z-score standardization with population standard deviation."""

    def __init__(self):
        self.mean_: Optional[np.ndarray] = None
        self.scale_: Optional[np.ndarray] = None

    def fit(self, X: np.ndarray) -> "StandardScaler":
        X = np.asarray(X, dtype=np.float64)
        self.mean_ = X.mean(axis=0)
        std = X.std(axis=0)
        # Constant columns are centred but not scaled
        self.scale_ = np.where(std == 0, 1.0, std)
        return self

    def transform(self, X: np.ndarray) -> np.ndarray:
        if self.mean_ is None:
            raise RuntimeError("StandardScaler is not fitted")
        return (np.asarray(X, dtype=np.float64) - self.mean_) / self.scale_

    def fit_transform(self, X: np.ndarray) -> np.ndarray:
        return self.fit(X).transform(X)


def load_csv(
    path: Union[str, Path],
    label_column: int = -1,
    has_header: bool = True,
    delimiter: str = ",",
) -> Dataset:
    """
    Load a CSV file with one row per observation and one label column.

    Args:
        path: CSV file
        label_column: Index of the label column (negative indexes allowed)
        has_header: Whether the first line holds column names
        delimiter: Field separator

    Returns:
        Dataset (not standardized)
    """
    path = Path(path)
    with path.open() as f:
        header = f.readline().strip().split(delimiter) if has_header else []
        data = np.loadtxt(f, delimiter=delimiter, ndmin=2)

    if data.size == 0:
        raise DimensionMismatch(f"No data rows in {path}")

    n_columns = data.shape[1]
    label_idx = label_column % n_columns
    feature_idx = [i for i in range(n_columns) if i != label_idx]
    names = [header[i].strip() for i in feature_idx] if header else []

    logger.info(
        f"Loaded {path.name}: {data.shape[0]} rows, {len(feature_idx)} features, "
        f"label column {label_idx}"
    )
    return Dataset(
        features=data[:, feature_idx],
        labels=data[:, label_idx],
        feature_names=names,
    )


def make_linearly_separable(
    n_rows: int = 16,
    n_features: int = 2,
    seed: int = 42,
    margin: float = 0.5,
) -> Dataset:
    """
    Synthetic (approximately standardized) data labelled by a random
    hyperplane through the origin.

    Points closer than ``margin`` to the hyperplane are pushed away from it
    so the classes are separable.
    """
    rng = np.random.default_rng(seed)
    direction = rng.normal(size=n_features)
    direction /= np.linalg.norm(direction)

    X = StandardScaler().fit_transform(rng.normal(size=(n_rows, n_features)))
    distance = X @ direction
    sign = np.where(distance >= 0, 1.0, -1.0)
    X += np.outer(sign * np.maximum(margin - np.abs(distance), 0.0), direction)
    y = (sign > 0).astype(np.float64)

    return Dataset(
        features=X,
        labels=y,
        feature_names=[f"x{i}" for i in range(n_features)],
    )
