"""
Encrypted Logistic Regression Training Service

This module provides:
- Gradient-descent training over CKKS ciphertexts with per-iteration refresh
- A plaintext reference trainer using the same update rule
"""

from .trainer import (
    EncryptedLogisticRegressionTrainer,
    EncryptedDataset,
    TrainerState,
    TrainingConfig,
    TrainingHistory,
    TrainingResult,
    WeightSnapshot,
)

from .plaintext import (
    PlaintextLogisticRegression,
    accuracy,
    log_loss,
)

__all__ = [
    # Encrypted trainer
    "EncryptedLogisticRegressionTrainer",
    "EncryptedDataset",
    "TrainerState",
    "TrainingConfig",
    "TrainingHistory",
    "TrainingResult",
    "WeightSnapshot",
    # Plaintext reference
    "PlaintextLogisticRegression",
    "accuracy",
    "log_loss",
]
