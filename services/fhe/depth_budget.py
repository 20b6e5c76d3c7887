"""
Multiplicative Depth Budgeting

CKKS ciphertexts carry a finite number of levels; every rescale spends one.
This module plans how many levels one training iteration needs and tracks
level consumption while the computation runs.

Key Features:
- Closed-form level cost of polynomial evaluation (tree / Horner)
- Per-iteration depth plan checked before any ciphertext work
- Scheme recommendation for a required depth
- Level tracking with warnings before a ciphertext runs out of levels
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .ckks_backend import CKKSConfig, recommend_config
from .errors import InsufficientDepth

logger = logging.getLogger(__name__)

# Level costs of the packed-vector stages
DOT_PRODUCT_DEPTH = 1
SELECTION_DEPTH = 1

POLYNOMIAL_STRATEGIES = ("horner", "tree")


def polynomial_depth(degree: int, strategy: str = "horner") -> int:
    """
    Levels consumed by evaluating a polynomial of the given degree.

    Args:
        degree: Polynomial degree (>= 1)
        strategy: "tree" (power tree + plaintext coefficients) or "horner"

    Returns:
        ceil(log2 d) + 1 for the tree strategy, d for Horner
    """
    if degree < 1:
        raise ValueError(f"Polynomial degree must be >= 1, got {degree}")
    if strategy == "tree":
        return math.ceil(math.log2(degree)) + 1
    if strategy == "horner":
        return degree
    raise ValueError(
        f"Unknown polynomial strategy '{strategy}', expected one of {POLYNOMIAL_STRATEGIES}"
    )


@dataclass
class DepthPlan:
    """Level cost of one gradient-descent iteration."""
    degree: int
    strategy: str
    available: int
    predict_dot: int = DOT_PRODUCT_DEPTH
    predict_select: int = SELECTION_DEPTH
    sigmoid: int = 0
    gradient_dot: int = DOT_PRODUCT_DEPTH
    gradient_select: int = SELECTION_DEPTH

    @property
    def total(self) -> int:
        return (
            self.predict_dot + self.predict_select + self.sigmoid
            + self.gradient_dot + self.gradient_select
        )

    @property
    def headroom(self) -> int:
        return self.available - self.total

    @property
    def feasible(self) -> bool:
        return self.headroom >= 0

    def stages(self) -> List[Tuple[str, int]]:
        """(stage, levels) pairs in execution order."""
        return [
            ("predict: dot product", self.predict_dot),
            ("predict: row selection", self.predict_select),
            (f"sigmoid: degree {self.degree} ({self.strategy})", self.sigmoid),
            ("gradient: dot product", self.gradient_dot),
            ("gradient: weight selection", self.gradient_select),
        ]

    def require(self):
        """Raise InsufficientDepth when the plan does not fit."""
        if not self.feasible:
            raise InsufficientDepth(self.total, self.available, "training iteration")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "degree": self.degree,
            "strategy": self.strategy,
            "stages": dict(self.stages()),
            "total": self.total,
            "available": self.available,
            "headroom": self.headroom,
        }


def plan_iteration_depth(
    degree: int,
    strategy: str = "horner",
    available: Optional[int] = None,
) -> DepthPlan:
    """
    Plan the depth of one training iteration.

    Args:
        degree: Sigmoid surrogate degree
        strategy: Polynomial evaluation strategy
        available: Levels of a fresh ciphertext (defaults to exactly the total)

    Returns:
        DepthPlan
    """
    plan = DepthPlan(
        degree=degree,
        strategy=strategy,
        available=0,
        sigmoid=polynomial_depth(degree, strategy),
    )
    plan.available = plan.total if available is None else available
    return plan


def recommend_scheme(degree: int, strategy: str = "horner") -> Tuple[DepthPlan, CKKSConfig]:
    """Depth plan plus the smallest standard parameter set that fits it."""
    plan = plan_iteration_depth(degree, strategy)
    config = recommend_config(plan.total)
    plan.available = config.max_depth
    return plan, config


class LevelHealth(Enum):
    """Remaining-level health of a ciphertext."""
    HEALTHY = "healthy"      # more than one level left
    WARNING = "warning"      # one level left
    CRITICAL = "critical"    # last level, no multiply possible
    EXHAUSTED = "exhausted"  # level consumed below zero (should never happen)


@dataclass
class LevelTrackerState:
    """Level consumption history."""
    top_level: int
    lowest_level: int
    operations_history: List[Tuple[str, int, int]] = field(default_factory=list)
    warnings_issued: int = 0
    refreshes: int = 0

    @property
    def levels_consumed(self) -> int:
        return sum(before - after for _, before, after in self.operations_history)


def level_health(level: int) -> LevelHealth:
    if level < 0:
        return LevelHealth.EXHAUSTED
    elif level == 0:
        return LevelHealth.CRITICAL
    elif level == 1:
        return LevelHealth.WARNING
    else:
        return LevelHealth.HEALTHY


class LevelTracker:
    """
    Tracks level consumption reported by the ciphertext algebra.

    Example:
        ```python
        tracker = LevelTracker(top_level=7)
        algebra = CKKSAlgebra(context, tracker=tracker)
        ...
        print(tracker.get_summary()["levels_consumed"])
        ```
    """

    def __init__(self, top_level: int, auto_warnings: bool = True):
        self._state = LevelTrackerState(top_level=top_level, lowest_level=top_level)
        self._auto_warnings = auto_warnings
        self._callbacks: List[Callable[[str, int, LevelHealth], None]] = []

    def record(self, operation: str, before: int, after: int) -> LevelHealth:
        """
        Record a level-changing operation.

        Args:
            operation: Operation name (e.g. "rescale")
            before: Level of the input
            after: Level of the output

        Returns:
            Health of the output level
        """
        self._state.operations_history.append((operation, before, after))
        self._state.lowest_level = min(self._state.lowest_level, after)
        health = level_health(after)
        logger.debug(f"{operation}: level {before} -> {after} ({health.value})")

        self._check_and_warn(operation, after, health)

        for callback in self._callbacks:
            callback(operation, after, health)
        return health

    def record_refresh(self):
        self._state.refreshes += 1

    def _check_and_warn(self, operation: str, level: int, health: LevelHealth):
        if not self._auto_warnings:
            return

        if health == LevelHealth.EXHAUSTED:
            logger.error(f"Level exhausted after {operation}: results are invalid")
            self._state.warnings_issued += 1
        elif health == LevelHealth.CRITICAL:
            logger.warning(
                f"Ciphertext reached level 0 after {operation}; "
                "no further multiplications possible before refresh"
            )
            self._state.warnings_issued += 1

    def add_callback(self, callback: Callable[[str, int, LevelHealth], None]):
        self._callbacks.append(callback)

    def get_state(self) -> LevelTrackerState:
        return self._state

    def get_summary(self) -> Dict[str, Any]:
        """Get summary statistics."""
        ops_by_type: Dict[str, int] = {}
        for op, _, _ in self._state.operations_history:
            ops_by_type[op] = ops_by_type.get(op, 0) + 1

        return {
            "top_level": self._state.top_level,
            "lowest_level": self._state.lowest_level,
            "levels_consumed": self._state.levels_consumed,
            "operations_by_type": ops_by_type,
            "warnings_issued": self._state.warnings_issued,
            "refreshes": self._state.refreshes,
        }
