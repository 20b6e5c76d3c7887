"""
Configuration file handling for the he-logreg CLI.

Settings are merged from (highest to lowest priority):
1. Command line options
2. Environment variables (HE_LOGREG_*)
3. YAML config file (--config)
4. Defaults
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError

from config.settings import DEFAULT_LOG_FORMAT, ENV_PREFIX, Settings
from services.fhe.ckks_backend import CKKSConfig


class SchemeFileConfig(BaseModel):
    """CKKS parameters; omit to let the CLI choose them from the depth plan."""

    poly_modulus_degree: int = Field(default=16384, description="Ring dimension")
    coeff_mod_bit_sizes: List[int] = Field(
        default_factory=lambda: [60, 40, 40, 40, 40, 40, 40, 40, 60],
        description="Bit sizes of the coefficient modulus primes",
    )
    scale_bits: int = Field(default=40, description="Canonical scale as a power of two")


class TrainingFileConfig(BaseModel):
    """Training hyperparameters."""

    learning_rate: float = Field(default=0.1, gt=0, description="Gradient step size")
    iterations: int = Field(default=10, ge=0, description="Number of iterations")
    degree: int = Field(default=3, description="Sigmoid surrogate degree (3, 5 or 7)")
    strategy: str = Field(default="horner", description="Polynomial strategy (horner/tree)")
    report_every: int = Field(default=5, ge=1, description="Snapshot interval")
    initial_weight_range: float = Field(default=0.0, ge=0, description="Uniform init range")
    random_seed: int = Field(default=42, description="Seed for initial weights")


class CLIConfig(BaseModel):
    """Main configuration model."""

    scheme: Optional[SchemeFileConfig] = None
    training: TrainingFileConfig = Field(default_factory=TrainingFileConfig)
    output_format: str = Field(default="table", description="Default output format (json/table)")
    log_level: str = Field(default="WARNING", description="Log level for library logging")
    log_format: str = Field(default=DEFAULT_LOG_FORMAT, description="Format string for library logging")

    class Config:
        extra = "forbid"


class ConfigError(Exception):
    """Configuration-related error."""

    pass


def load_config(path: Optional[Union[str, Path]] = None) -> CLIConfig:
    """Load a YAML config file (defaults when no path is given)."""
    if path is None:
        return CLIConfig()

    path = Path(path)
    try:
        with open(path, "r") as f:
            data: Dict[str, Any] = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}")
    except IOError as e:
        raise ConfigError(f"Failed to read config file: {e}")

    try:
        return CLIConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config file {path}: {e}")


def build_settings(config: CLIConfig, overrides: Optional[Dict[str, Any]] = None) -> Settings:
    """
    Merge file config, environment and CLI overrides into Settings.

    Args:
        config: Parsed config file
        overrides: Training fields given on the command line (None values ignored)
    """
    settings = Settings()
    if config.scheme is not None:
        settings.scheme = CKKSConfig(**config.scheme.model_dump())
    for key, value in config.training.model_dump().items():
        setattr(settings.training, key, value)
    settings.observability.log_level = config.log_level.upper()
    settings.observability.log_format = config.log_format

    settings = Settings.from_env(settings)

    for key, value in (overrides or {}).items():
        if value is not None:
            setattr(settings.training, key, value)
    return settings


def scheme_is_explicit(config: CLIConfig) -> bool:
    """True when CKKS parameters come from the config file or environment."""
    return config.scheme is not None or bool(os.getenv(f"{ENV_PREFIX}POLY_MODULUS_DEGREE"))
