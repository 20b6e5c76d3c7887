"""CLI commands for he-logreg."""

from . import plan, sigmoid, train

__all__ = ["plan", "sigmoid", "train"]
