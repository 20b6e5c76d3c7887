"""
Encrypted Logistic Regression Training

Full-batch gradient descent where features, labels, weights, predictions and
gradients stay CKKS-encrypted throughout.

One iteration:
1. PREDICT: per-row dot product with the weights, gather the R logits into
   one packed vector, apply the sigmoid surrogate
2. LOSS: error = predictions - labels
3. GRADIENT: per-feature dot product of the feature column with the error,
   gather into one vector scaled by learning_rate / R
4. UPDATE: weights <- weights - gradient
5. REFRESH: the secret-key holder decrypts and re-encrypts the weights at
   full level (stands in for bootstrapping)

The depth of one iteration is fixed by the surrogate degree and evaluation
strategy and is checked against the scheme before any data is encrypted.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from services.data.dataset import Dataset
from services.evaluation.polynomial import evaluate_surrogate
from services.evaluation.surrogates import get_sigmoid_surrogate
from services.evaluation.vector_algebra import aggregate_selected, dot_product, select_slot
from services.fhe.ckks_backend import (
    CKKSAlgebra,
    CKKSSchemeContext,
    EncryptedVector,
    SecretKeyHolder,
)
from services.fhe.depth_budget import DepthPlan, LevelTracker, plan_iteration_depth
from services.fhe.errors import DimensionMismatch

from .plaintext import log_loss

logger = logging.getLogger(__name__)


class TrainerState(Enum):
    """Training state machine."""
    INIT = "init"
    PREDICT = "predict"
    LOSS = "loss"
    GRADIENT = "gradient"
    UPDATE = "update"
    REFRESH = "refresh"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS = {
    TrainerState.INIT: {TrainerState.PREDICT, TrainerState.DONE},
    TrainerState.PREDICT: {TrainerState.LOSS},
    TrainerState.LOSS: {TrainerState.GRADIENT},
    TrainerState.GRADIENT: {TrainerState.UPDATE},
    TrainerState.UPDATE: {TrainerState.REFRESH},
    TrainerState.REFRESH: {TrainerState.PREDICT, TrainerState.DONE},
    TrainerState.DONE: set(),
    TrainerState.FAILED: set(),
}


@dataclass
class TrainingConfig:
    """Training hyperparameters."""
    learning_rate: float = 0.1
    iterations: int = 10
    degree: int = 3                  # Sigmoid surrogate degree: 3, 5 or 7
    strategy: str = "horner"         # "horner" or "tree"
    report_every: int = 5            # Weight snapshot interval (iterations)

    # Initial weights: zeros, or uniform in [-range, range] when range > 0
    initial_weight_range: float = 0.0
    random_seed: int = 42

    track_levels: bool = False


@dataclass
class WeightSnapshot:
    """Decoded weights after a refresh."""
    iteration: int
    weights: np.ndarray
    loss: Optional[float] = None
    elapsed_seconds: float = 0.0


@dataclass
class TrainingHistory:
    """Periodic weight snapshots (monitoring only)."""
    snapshots: List[WeightSnapshot] = field(default_factory=list)

    @property
    def losses(self) -> List[float]:
        return [s.loss for s in self.snapshots if s.loss is not None]

    def latest(self) -> Optional[WeightSnapshot]:
        return self.snapshots[-1] if self.snapshots else None


@dataclass
class EncryptedDataset:
    """Encrypted training data: rows, transposed columns and labels."""
    rows: List[EncryptedVector]
    columns: List[EncryptedVector]
    labels: EncryptedVector
    num_rows: int
    num_features: int


@dataclass
class TrainingResult:
    """Outcome of a training run."""
    weights: EncryptedVector
    num_features: int
    iterations: int
    history: TrainingHistory
    refresh_count: int
    depth_plan: DepthPlan
    training_time_seconds: float = 0.0


class EncryptedLogisticRegressionTrainer:
    """
    Gradient-descent trainer over CKKS ciphertexts.

    Example:
        ```python
        context = CKKSSchemeContext(CKKSConfig())
        trainer = EncryptedLogisticRegressionTrainer(
            context,
            TrainingConfig(learning_rate=0.5, iterations=10, degree=3),
        )
        result = trainer.train(X_train, y_train)
        weights = trainer.decrypt_weights(result)
        ```
    """

    def __init__(
        self,
        context: CKKSSchemeContext,
        config: Optional[TrainingConfig] = None,
        key_holder: Optional[SecretKeyHolder] = None,
        job_id: Optional[str] = None,
    ):
        self.config = config or TrainingConfig()
        self.context = context
        self.job_id = job_id or f"train-{int(time.time() * 1000)}"

        # Validates the degree before anything else
        self.surrogate = get_sigmoid_surrogate(self.config.degree)
        if self.config.iterations < 0:
            raise ValueError("iterations must be >= 0")
        if self.config.report_every < 1:
            raise ValueError("report_every must be >= 1")

        self.depth_plan = plan_iteration_depth(
            self.config.degree, self.config.strategy, context.top_level
        )
        self.depth_plan.require()

        self.tracker = LevelTracker(context.top_level) if self.config.track_levels else None
        self.algebra = CKKSAlgebra(context, tracker=self.tracker)
        self.key_holder = key_holder or SecretKeyHolder(context)

        self.state = TrainerState.INIT
        self.iteration = 0
        self.refresh_count = 0
        self._progress_callbacks: List[Callable[[WeightSnapshot], None]] = []

        logger.info(
            f"Initialized trainer {self.job_id}: degree={self.config.degree}, "
            f"strategy={self.config.strategy}, depth per iteration="
            f"{self.depth_plan.total}/{self.depth_plan.available}"
        )

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _transition(self, new_state: TrainerState):
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Illegal trainer transition {self.state.value} -> {new_state.value}"
            )
        logger.debug(f"[{self.job_id}] {self.state.value} -> {new_state.value}")
        self.state = new_state

    # ------------------------------------------------------------------
    # Encryption of inputs
    # ------------------------------------------------------------------

    def encrypt_dataset(self, dataset: Dataset) -> EncryptedDataset:
        """Validate and encrypt rows, transposed columns and labels."""
        dataset.validate(self.algebra.slot_count)
        X = dataset.features
        rows = [self.algebra.encrypt(row) for row in X]
        columns = [self.algebra.encrypt(column) for column in X.T]
        labels = self.algebra.encrypt(dataset.labels)
        logger.info(
            f"Encrypted {dataset.num_rows} rows x {dataset.num_features} features "
            f"({len(rows) + len(columns) + 1} ciphertexts)"
        )
        return EncryptedDataset(
            rows=rows,
            columns=columns,
            labels=labels,
            num_rows=dataset.num_rows,
            num_features=dataset.num_features,
        )

    def initial_weights(self, num_features: int) -> np.ndarray:
        if self.config.initial_weight_range > 0:
            rng = np.random.default_rng(self.config.random_seed)
            r = self.config.initial_weight_range
            return rng.uniform(-r, r, size=num_features)
        return np.zeros(num_features)

    # ------------------------------------------------------------------
    # Iteration stages
    # ------------------------------------------------------------------

    def predict(self, data: EncryptedDataset, weights: EncryptedVector) -> EncryptedVector:
        """Encrypted surrogate probabilities, slot i for row i."""
        W = data.num_features
        selected = [
            select_slot(self.algebra, dot_product(self.algebra, row, weights, W), i, W)
            for i, row in enumerate(data.rows)
        ]
        logits = aggregate_selected(self.algebra, selected)
        return evaluate_surrogate(
            self.algebra,
            logits,
            self.config.degree,
            coefficients=self.surrogate.coefficients,
            strategy=self.config.strategy,
            raw_input=True,
        )

    def loss(self, data: EncryptedDataset, predictions: EncryptedVector) -> EncryptedVector:
        """error = predictions - labels."""
        labels = self.algebra.mod_switch_to(data.labels, predictions.level)
        return self.algebra.subtract(predictions, labels)

    def gradient(self, data: EncryptedDataset, error: EncryptedVector) -> EncryptedVector:
        """(learning_rate / R) * X^T error, slot j for weight j."""
        R = data.num_rows
        step = self.config.learning_rate / R
        selected = []
        for j, column in enumerate(data.columns):
            column = self.algebra.mod_switch_to(column, error.level)
            product = dot_product(self.algebra, column, error, R)
            selected.append(select_slot(self.algebra, product, j, R, weight=step))
        return aggregate_selected(self.algebra, selected)

    def update(self, weights: EncryptedVector, gradient: EncryptedVector) -> EncryptedVector:
        weights, gradient = self.algebra.align_levels(weights, gradient)
        return self.algebra.subtract(weights, gradient)

    def refresh(self, weights: EncryptedVector, num_features: int):
        """Decrypt and re-encrypt through the secret-key holder."""
        fresh, values = self.key_holder.refresh(weights, num_features)
        self.refresh_count += 1
        if self.tracker is not None:
            self.tracker.record_refresh()
        logger.debug(
            f"[{self.job_id}] refresh #{self.refresh_count}: "
            f"level {weights.level} -> {fresh.level}"
        )
        return fresh, values

    # ------------------------------------------------------------------
    # Training loop
    # ------------------------------------------------------------------

    def train(
        self,
        X: np.ndarray,
        y: np.ndarray,
        initial_weights: Optional[np.ndarray] = None,
    ) -> TrainingResult:
        """
        Train on plaintext data that is encrypted before the first iteration.

        Args:
            X: Feature matrix (R x W), standardized
            y: Binary labels (R)
            initial_weights: Starting weights (defaults per TrainingConfig)

        Returns:
            TrainingResult with the final encrypted weights

        Raises:
            DimensionMismatch: If data or initial weights have the wrong
                shape (nothing is encrypted in that case)
        """
        dataset = Dataset(features=X, labels=y)
        dataset.validate(self.algebra.slot_count)

        if initial_weights is None:
            initial_weights = self.initial_weights(dataset.num_features)
        initial_weights = np.asarray(initial_weights, dtype=np.float64)
        if initial_weights.shape != (dataset.num_features,):
            raise DimensionMismatch(
                f"initial_weights must have shape ({dataset.num_features},), "
                f"got {initial_weights.shape}"
            )

        data = self.encrypt_dataset(dataset)
        weights = self.algebra.encrypt(initial_weights)
        return self.train_encrypted(data, weights, dataset)

    def train_encrypted(
        self,
        data: EncryptedDataset,
        weights: EncryptedVector,
        dataset: Optional[Dataset] = None,
    ) -> TrainingResult:
        """
        Run the iterations on already encrypted data.

        Args:
            data: Encrypted rows, columns and labels
            weights: Encrypted initial weights at full level
            dataset: Plaintext data, only used to report the loss in snapshots
        """
        if self.state != TrainerState.INIT:
            raise RuntimeError(f"Trainer already used (state={self.state.value})")

        history = TrainingHistory()
        start_time = time.time()
        iterations = self.config.iterations

        logger.info(f"Starting encrypted training for job {self.job_id}: {iterations} iterations")

        try:
            for i in range(iterations):
                self._transition(TrainerState.PREDICT)
                predictions = self.predict(data, weights)

                self._transition(TrainerState.LOSS)
                error = self.loss(data, predictions)

                self._transition(TrainerState.GRADIENT)
                gradient = self.gradient(data, error)

                self._transition(TrainerState.UPDATE)
                weights = self.update(weights, gradient)

                self._transition(TrainerState.REFRESH)
                weights, values = self.refresh(weights, data.num_features)
                self.iteration = i + 1

                if i % self.config.report_every == 0 or i == iterations - 1:
                    snapshot = self._snapshot(values, dataset, start_time)
                    history.snapshots.append(snapshot)

            self._transition(TrainerState.DONE)

        except Exception as e:
            self.state = TrainerState.FAILED
            logger.error(f"Training failed for job {self.job_id} at iteration {self.iteration}: {e}")
            raise

        elapsed = time.time() - start_time
        logger.info(
            f"Training completed for job {self.job_id}: {self.iteration} iterations, "
            f"{self.refresh_count} refreshes, {elapsed:.2f}s"
        )

        return TrainingResult(
            weights=weights,
            num_features=data.num_features,
            iterations=self.iteration,
            history=history,
            refresh_count=self.refresh_count,
            depth_plan=self.depth_plan,
            training_time_seconds=elapsed,
        )

    def _snapshot(
        self, values: np.ndarray, dataset: Optional[Dataset], start_time: float
    ) -> WeightSnapshot:
        loss = None
        if dataset is not None:
            logits = dataset.features @ values
            loss = log_loss(dataset.labels, 1.0 / (1.0 + np.exp(-logits)))

        snapshot = WeightSnapshot(
            iteration=self.iteration,
            weights=values.copy(),
            loss=loss,
            elapsed_seconds=time.time() - start_time,
        )
        loss_str = f", loss={loss:.6f}" if loss is not None else ""
        logger.info(
            f"Iteration {self.iteration}: weights={np.round(values, 6).tolist()}{loss_str}"
        )
        for callback in self._progress_callbacks:
            callback(snapshot)
        return snapshot

    def decrypt_weights(self, result: TrainingResult) -> np.ndarray:
        """Final weights, decrypted by the secret-key holder."""
        return self.key_holder.decrypt_values(result.weights, result.num_features)

    def register_progress_callback(self, callback: Callable[[WeightSnapshot], None]):
        """Register callback for weight snapshots."""
        self._progress_callbacks.append(callback)

    def get_status(self) -> Dict[str, Any]:
        """Get training status."""
        return {
            "job_id": self.job_id,
            "state": self.state.value,
            "iteration": self.iteration,
            "iterations": self.config.iterations,
            "refresh_count": self.refresh_count,
            "depth_plan": self.depth_plan.to_dict(),
            "operations": self.algebra.get_stats(),
            "levels": self.tracker.get_summary() if self.tracker is not None else None,
        }
