"""
Configuration package for encrypted logistic-regression training.
"""

from .settings import (
    Settings,
    ObservabilityConfig,
    DeploymentEnvironment,
    ENV_PREFIX,
    validate_and_log_config,
)

__all__ = [
    "Settings",
    "ObservabilityConfig",
    "DeploymentEnvironment",
    "ENV_PREFIX",
    "validate_and_log_config",
]
