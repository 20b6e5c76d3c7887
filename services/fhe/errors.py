"""
Typed failures for encrypted evaluation.

Every failure aborts the current computation; nothing here is meant to be
caught and retried. Depth and dimension problems are reported before any
ciphertext work starts, scale/level mismatches indicate a bug in the calling
code.
"""

from typing import Optional


class HEAlgebraError(Exception):
    """Base class for encrypted-evaluation errors."""


class InsufficientDepth(HEAlgebraError):
    """An operation needs more remaining level than the ciphertext has."""

    def __init__(self, required: int, available: int, operation: Optional[str] = None):
        self.required = required
        self.available = available
        self.operation = operation
        where = f" for {operation}" if operation else ""
        super().__init__(
            f"Insufficient depth{where}: requires {required} level(s), "
            f"{available} available"
        )


class LevelMismatch(HEAlgebraError):
    """Binary operation attempted on operands at different levels."""

    def __init__(self, left: int, right: int, operation: str = "add"):
        self.left = left
        self.right = right
        super().__init__(
            f"Level mismatch in {operation}: {left} != {right}"
        )


class ScaleMismatch(HEAlgebraError):
    """Binary operation attempted on operands with different scales."""

    def __init__(self, left: float, right: float, operation: str = "add"):
        self.left = left
        self.right = right
        super().__init__(
            f"Scale mismatch in {operation}: {left!r} != {right!r}"
        )


class InvalidDegree(HEAlgebraError):
    """Unsupported polynomial degree or coefficient table of the wrong length."""

    def __init__(self, degree: int, message: Optional[str] = None):
        self.degree = degree
        super().__init__(message or f"Unsupported polynomial degree: {degree}")


class DimensionMismatch(HEAlgebraError):
    """Training data shapes disagree with each other or with the slot capacity."""
