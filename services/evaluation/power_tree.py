"""
Power-Tree Evaluator

Computes x^1..x^d from one ciphertext with the minimum multiplicative depth.

Each x^i is the product of two previously computed powers x^j * x^(i-j).
The split j is chosen to minimise max(level[j], level[i-j]) + 1 (smallest j
on ties), which gives level[d] = ceil(log2 d). Operands at different levels
are aligned by mod-switching the higher one down before multiplying.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List

from services.fhe.ckks_backend import CKKSAlgebra, EncryptedVector
from services.fhe.errors import InsufficientDepth

logger = logging.getLogger(__name__)


@dataclass
class PowerTreePlan:
    """Levels consumed by each power and the split used to build it."""
    degree: int
    levels: List[int] = field(default_factory=list)
    splits: Dict[int, int] = field(default_factory=dict)

    def __post_init__(self):
        if self.degree < 1:
            raise ValueError(f"Power tree degree must be >= 1, got {self.degree}")
        if not self.levels:
            self._plan()

    def _plan(self):
        # levels[0] is unused; x^1 costs nothing
        self.levels = [0] * (self.degree + 1)
        for i in range(2, self.degree + 1):
            best_cost = None
            best_split = 1
            for j in range(1, i // 2 + 1):
                cost = max(self.levels[j], self.levels[i - j]) + 1
                if best_cost is None or cost < best_cost:
                    best_cost = cost
                    best_split = j
            self.levels[i] = best_cost
            self.splits[i] = best_split

    @property
    def depth(self) -> int:
        """Levels consumed by the highest power."""
        return self.levels[self.degree]


@dataclass
class PowerTable:
    """Ciphertexts x^1..x^d together with the plan that produced them."""
    plan: PowerTreePlan
    powers: Dict[int, EncryptedVector]

    def __getitem__(self, exponent: int) -> EncryptedVector:
        return self.powers[exponent]

    def __len__(self) -> int:
        return len(self.powers)

    def level_consumed(self, exponent: int) -> int:
        return self.plan.levels[exponent]

    @property
    def lowest_level(self) -> int:
        return min(ct.level for ct in self.powers.values())


def compute_powers(algebra: CKKSAlgebra, x: EncryptedVector, degree: int) -> PowerTable:
    """
    Build the power table for ``x`` up to ``degree``.

    Args:
        algebra: Ciphertext algebra
        x: Ciphertext at canonical scale
        degree: Highest power (>= 1)

    Returns:
        PowerTable with x^i at level ``x.level - plan.levels[i]``

    Raises:
        InsufficientDepth: If x has fewer levels than ceil(log2 degree)
    """
    plan = PowerTreePlan(degree)
    if x.level < plan.depth:
        raise InsufficientDepth(plan.depth, x.level, f"powers up to x^{degree}")

    powers = {1: x}
    for i in range(2, degree + 1):
        j = plan.splits[i]
        powers[i] = algebra.multiply_and_rescale(powers[j], powers[i - j])
        logger.debug(
            f"x^{i} = x^{j} * x^{i - j}: level {powers[i].level}, "
            f"consumed {plan.levels[i]}"
        )

    return PowerTable(plan=plan, powers=powers)
