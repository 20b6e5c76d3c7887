"""
Runtime Configuration

Scheme parameters, training hyperparameters and logging settings for
encrypted logistic-regression training, with environment overrides.

Usage:
    from config.settings import Settings
    settings = Settings.from_env()
    issues = settings.validate()
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Optional, List, Dict
from enum import Enum

from services.evaluation.surrogates import SUPPORTED_DEGREES
from services.fhe.ckks_backend import CKKSConfig
from services.fhe.depth_budget import POLYNOMIAL_STRATEGIES, plan_iteration_depth
from services.training.trainer import TrainingConfig

logger = logging.getLogger(__name__)

ENV_PREFIX = "HE_LOGREG_"
DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class DeploymentEnvironment(Enum):
    """Deployment environment types."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"


@dataclass
class ObservabilityConfig:
    """Logging configuration."""
    log_level: str = "INFO"
    log_format: str = DEFAULT_LOG_FORMAT


def _env(name: str) -> Optional[str]:
    return os.getenv(f"{ENV_PREFIX}{name}")


def _parse_bit_sizes(value: str) -> List[int]:
    return [int(part) for part in value.replace(" ", "").split(",") if part]


@dataclass
class Settings:
    """Complete configuration."""

    environment: DeploymentEnvironment = DeploymentEnvironment.PRODUCTION

    scheme: CKKSConfig = field(default_factory=CKKSConfig)
    training: TrainingConfig = field(default_factory=TrainingConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls, base: Optional["Settings"] = None) -> "Settings":
        """
        Load configuration from HE_LOGREG_* environment variables.

        Args:
            base: Settings to override (defaults are used when omitted)
        """
        config = base or cls()
        if _env("ENV"):
            config.environment = DeploymentEnvironment(_env("ENV").lower())

        # Scheme
        if _env("POLY_MODULUS_DEGREE"):
            config.scheme.poly_modulus_degree = int(_env("POLY_MODULUS_DEGREE"))
        if _env("COEFF_MOD_BIT_SIZES"):
            config.scheme.coeff_mod_bit_sizes = _parse_bit_sizes(_env("COEFF_MOD_BIT_SIZES"))
        if _env("SCALE_BITS"):
            config.scheme.scale_bits = int(_env("SCALE_BITS"))

        # Training
        config.training.learning_rate = float(_env("LEARNING_RATE") or config.training.learning_rate)
        config.training.iterations = int(_env("ITERATIONS") or config.training.iterations)
        config.training.degree = int(_env("DEGREE") or config.training.degree)
        config.training.strategy = (_env("STRATEGY") or config.training.strategy).lower()
        config.training.report_every = int(_env("REPORT_EVERY") or config.training.report_every)

        # Observability
        config.observability.log_level = (_env("LOG_LEVEL") or config.observability.log_level).upper()
        config.observability.log_format = _env("LOG_FORMAT") or config.observability.log_format

        if config.environment == DeploymentEnvironment.DEVELOPMENT:
            config = cls._apply_dev_defaults(config)

        return config

    @staticmethod
    def _apply_dev_defaults(config: "Settings") -> "Settings":
        """Apply development environment defaults."""
        config.observability.log_level = "DEBUG"
        config.training.track_levels = True
        return config

    def validate(self) -> List[str]:
        """Validate configuration and return list of warnings/errors."""
        issues = list(self.scheme.validate())

        if self.training.degree not in SUPPORTED_DEGREES:
            issues.append(
                f"ERROR: Surrogate degree must be one of {SUPPORTED_DEGREES}"
            )
        if self.training.strategy not in POLYNOMIAL_STRATEGIES:
            issues.append(
                f"ERROR: Strategy must be one of {POLYNOMIAL_STRATEGIES}"
            )
        if self.training.learning_rate <= 0:
            issues.append("ERROR: Learning rate must be positive")
        if self.training.iterations < 0:
            issues.append("ERROR: Iterations must be >= 0")
        if self.training.report_every < 1:
            issues.append("ERROR: report_every must be >= 1")

        if not any(issue.startswith("ERROR") for issue in issues):
            plan = plan_iteration_depth(
                self.training.degree, self.training.strategy, self.scheme.max_depth
            )
            if not plan.feasible:
                issues.append(
                    f"ERROR: One iteration needs {plan.total} levels, "
                    f"scheme provides {plan.available}"
                )
            elif plan.headroom > 0:
                issues.append(
                    f"WARNING: {plan.headroom} unused level(s) per iteration; "
                    "a shorter modulus chain would be faster"
                )

        if self.training.learning_rate > 5:
            issues.append("WARNING: Large learning rate may push logits outside the surrogate domain")

        return issues

    def to_dict(self) -> Dict:
        """Convert configuration to dictionary (for logging/debugging)."""
        return {
            "environment": self.environment.value,
            "poly_modulus_degree": self.scheme.poly_modulus_degree,
            "coeff_mod_bit_sizes": list(self.scheme.coeff_mod_bit_sizes),
            "scale_bits": self.scheme.scale_bits,
            "learning_rate": self.training.learning_rate,
            "iterations": self.training.iterations,
            "degree": self.training.degree,
            "strategy": self.training.strategy,
            "report_every": self.training.report_every,
            "log_level": self.observability.log_level,
            "log_format": self.observability.log_format,
        }


def validate_and_log_config() -> Settings:
    """Load, validate, and log configuration."""
    config = Settings.from_env()

    issues = config.validate()
    for issue in issues:
        if issue.startswith("ERROR"):
            logger.error(issue)
        else:
            logger.warning(issue)

    logger.info(f"Configuration loaded: {config.to_dict()}")

    return config
