"""
Sigmoid Surrogates

Fixed low-degree polynomials standing in for the logistic sigmoid under
encryption. The presets approximate sigma(x) as a polynomial in t = x/8, so
they are valid for logits in [-8, 8] (sigma(+-8) ~ 0.9997/0.0003).

Presets (coefficients a_0..a_d in t):
- degree 3: 0.5, 1.20069, 0.00001, -0.81562
- degree 5: 0.5, 1.53048, 0.00001, -2.3533056, 0.00001, 1.3511295
- degree 7: 0.5, 1.73496, 0.00001, -4.19407, 0.00001, 5.43402, 0.00001, -2.50739

The near-zero even coefficients are kept as given; they are the fitted
values, not padding.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np

from services.fhe.errors import InvalidDegree

logger = logging.getLogger(__name__)

SUPPORTED_DEGREES = (3, 5, 7)

SIGMOID_INPUT_SCALE = 1.0 / 8.0
SIGMOID_DOMAIN = (-8.0, 8.0)

_SIGMOID_COEFFICIENTS: Dict[int, List[float]] = {
    3: [0.5, 1.20069, 0.00001, -0.81562],
    5: [0.5, 1.53048, 0.00001, -2.3533056, 0.00001, 1.3511295],
    7: [0.5, 1.73496, 0.00001, -4.19407, 0.00001, 5.43402, 0.00001, -2.50739],
}


def sigmoid(x: np.ndarray) -> np.ndarray:
    """Exact logistic sigmoid."""
    return 1.0 / (1.0 + np.exp(-np.asarray(x, dtype=np.float64)))


@dataclass(frozen=True)
class PolynomialApprox:
    """A polynomial approximation of the sigmoid."""
    coefficients: Tuple[float, ...]     # [a0, a1, ..., ad] in the scaled input
    domain: Tuple[float, float]         # Valid raw input range [lo, hi]
    input_scale: float = 1.0            # Polynomial variable t = input_scale * x

    @property
    def degree(self) -> int:
        return len(self.coefficients) - 1

    def coefficients_for_raw_input(self) -> List[float]:
        """Coefficients b_i = a_i * s^i so that p(s*x) = sum b_i x^i."""
        return [a * self.input_scale ** i for i, a in enumerate(self.coefficients)]

    def evaluate(self, x: np.ndarray) -> np.ndarray:
        """Evaluate on raw inputs using Horner's method."""
        t = np.asarray(x, dtype=np.float64) * self.input_scale
        result = np.full_like(t, self.coefficients[-1], dtype=np.float64)
        for i in range(len(self.coefficients) - 2, -1, -1):
            result = result * t + self.coefficients[i]
        return result

    def max_error(self, n_samples: int = 1000) -> float:
        """Maximum absolute error against the exact sigmoid on the domain."""
        x = np.linspace(self.domain[0], self.domain[1], n_samples)
        return float(np.max(np.abs(self.evaluate(x) - sigmoid(x))))


def get_sigmoid_surrogate(degree: int) -> PolynomialApprox:
    """
    Preset sigmoid surrogate for a supported degree.

    Args:
        degree: One of 3, 5, 7

    Returns:
        PolynomialApprox in t = x/8

    Raises:
        InvalidDegree: For any other degree
    """
    if degree not in _SIGMOID_COEFFICIENTS:
        raise InvalidDegree(
            degree,
            f"Sigmoid surrogate degree must be one of {SUPPORTED_DEGREES}, got {degree}",
        )
    return PolynomialApprox(
        coefficients=tuple(_SIGMOID_COEFFICIENTS[degree]),
        domain=SIGMOID_DOMAIN,
        input_scale=SIGMOID_INPUT_SCALE,
    )
