"""
Plaintext Reference Trainer

Runs exactly the update rule of the encrypted trainer on cleartext numpy
arrays, using either the same polynomial surrogate or the exact sigmoid.
Used to check that encrypted training converges to the same weights.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from services.evaluation.surrogates import PolynomialApprox, get_sigmoid_surrogate, sigmoid

logger = logging.getLogger(__name__)

# Probabilities are clipped away from 0 and 1 before taking logs
LOG_EPSILON = 1e-12


def log_loss(y_true: np.ndarray, probabilities: np.ndarray) -> float:
    """Mean binary cross-entropy."""
    p = np.clip(np.asarray(probabilities, dtype=np.float64), LOG_EPSILON, 1 - LOG_EPSILON)
    y = np.asarray(y_true, dtype=np.float64)
    return float(-np.mean(y * np.log(p) + (1 - y) * np.log(1 - p)))


def accuracy(y_true: np.ndarray, probabilities: np.ndarray, threshold: float = 0.5) -> float:
    predictions = (np.asarray(probabilities) >= threshold).astype(np.float64)
    return float(np.mean(predictions == np.asarray(y_true, dtype=np.float64)))


@dataclass
class PlaintextHistory:
    """Per-iteration weights and losses."""
    weights: List[np.ndarray] = field(default_factory=list)
    losses: List[float] = field(default_factory=list)


class PlaintextLogisticRegression:
    """
    Gradient-descent logistic regression in cleartext.

    w <- w - (learning_rate / R) * X^T (sigma(X w) - y)

    Example:
        ```python
        model = PlaintextLogisticRegression(learning_rate=0.5, iterations=10, degree=3)
        model.fit(X, y)
        model.accuracy(X, y)
        ```
    """

    def __init__(
        self,
        learning_rate: float = 0.1,
        iterations: int = 10,
        degree: Optional[int] = 3,
    ):
        """
        Args:
            learning_rate: Step size
            iterations: Number of full-batch gradient steps
            degree: Sigmoid surrogate degree (3, 5 or 7); None for the exact sigmoid
        """
        self.learning_rate = learning_rate
        self.iterations = iterations
        self.surrogate: Optional[PolynomialApprox] = (
            get_sigmoid_surrogate(degree) if degree is not None else None
        )
        self.weights: Optional[np.ndarray] = None
        self.history = PlaintextHistory()

    def activation(self, logits: np.ndarray) -> np.ndarray:
        if self.surrogate is None:
            return sigmoid(logits)
        return self.surrogate.evaluate(logits)

    def fit(
        self,
        X: np.ndarray,
        y: np.ndarray,
        initial_weights: Optional[np.ndarray] = None,
    ) -> "PlaintextLogisticRegression":
        X = np.asarray(X, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        n_rows, n_features = X.shape

        weights = (
            np.zeros(n_features)
            if initial_weights is None
            else np.asarray(initial_weights, dtype=np.float64).copy()
        )
        self.history = PlaintextHistory()

        for i in range(self.iterations):
            error = self.activation(X @ weights) - y
            weights = weights - (self.learning_rate / n_rows) * (X.T @ error)
            self.history.weights.append(weights.copy())
            self.history.losses.append(log_loss(y, sigmoid(X @ weights)))

        self.weights = weights
        if self.history.losses:
            logger.debug(
                f"Plaintext training finished: {self.iterations} iterations, "
                f"loss={self.history.losses[-1]:.6f}"
            )
        return self

    def _require_fitted(self):
        if self.weights is None:
            raise RuntimeError("Model is not fitted")

    def predict_proba(self, X: np.ndarray) -> np.ndarray:
        """Probabilities under the exact sigmoid."""
        self._require_fitted()
        return sigmoid(np.asarray(X, dtype=np.float64) @ self.weights)

    def log_loss(self, X: np.ndarray, y: np.ndarray) -> float:
        return log_loss(y, self.predict_proba(X))

    def accuracy(self, X: np.ndarray, y: np.ndarray) -> float:
        return accuracy(y, self.predict_proba(X))
