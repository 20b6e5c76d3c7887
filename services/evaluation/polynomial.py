"""
Polynomial Evaluation on Ciphertexts

Evaluates f(x) = sum a_i x^i on a CKKS ciphertext with one of two strategies:

- "tree": build x^1..x^d with the power tree, multiply each power by its
  plaintext coefficient, bring every term to the output level and sum.
  Depth ceil(log2 d) + 1.
- "horner": acc = a_d; acc = acc * x + a_i for i = d-1..0. Depth d, but
  one ciphertext multiply per degree and no power table.

Horner is the default; the sigmoid surrogates are low degree, where the
difference in depth is small and Horner keeps fewer ciphertexts alive.
"""

import logging
from typing import List, Optional, Sequence

from services.fhe.ckks_backend import CKKSAlgebra, EncryptedVector
from services.fhe.depth_budget import POLYNOMIAL_STRATEGIES, polynomial_depth
from services.fhe.errors import InsufficientDepth, InvalidDegree

from .power_tree import compute_powers
from .surrogates import SUPPORTED_DEGREES, PolynomialApprox, get_sigmoid_surrogate

logger = logging.getLogger(__name__)

__all__ = [
    "evaluate_polynomial",
    "evaluate_surrogate",
    "polynomial_depth",
]


def evaluate_polynomial(
    algebra: CKKSAlgebra,
    x: EncryptedVector,
    coefficients: Sequence[float],
    strategy: str = "horner",
) -> EncryptedVector:
    """
    Evaluate a polynomial slot-wise on a ciphertext.

    Args:
        algebra: Ciphertext algebra
        x: Input ciphertext at canonical scale
        coefficients: [a0, a1, ..., ad], d in SUPPORTED_DEGREES
        strategy: "horner" or "tree"

    Returns:
        Ciphertext at level ``x.level - polynomial_depth(d, strategy)``

    Raises:
        InvalidDegree: If d is not one of SUPPORTED_DEGREES
        InsufficientDepth: If x does not have enough levels (checked before
            any ciphertext work)
    """
    coefficients = [float(a) for a in coefficients]
    degree = len(coefficients) - 1
    if degree not in SUPPORTED_DEGREES:
        raise InvalidDegree(
            degree,
            f"Polynomial degree must be one of {SUPPORTED_DEGREES}, got {degree}",
        )
    if strategy not in POLYNOMIAL_STRATEGIES:
        raise ValueError(
            f"Unknown polynomial strategy '{strategy}', expected one of {POLYNOMIAL_STRATEGIES}"
        )

    required = polynomial_depth(degree, strategy)
    if x.level < required:
        raise InsufficientDepth(required, x.level, f"degree-{degree} polynomial ({strategy})")

    if strategy == "tree":
        result = _evaluate_tree(algebra, x, coefficients)
    else:
        result = _evaluate_horner(algebra, x, coefficients)

    logger.debug(
        f"Evaluated degree-{degree} polynomial ({strategy}): "
        f"level {x.level} -> {result.level}"
    )
    return result


def _evaluate_tree(
    algebra: CKKSAlgebra, x: EncryptedVector, coefficients: List[float]
) -> EncryptedVector:
    degree = len(coefficients) - 1
    target = x.level - polynomial_depth(degree, "tree")
    table = compute_powers(algebra, x, degree)

    terms = []
    for i in range(1, degree + 1):
        if coefficients[i] == 0.0:
            continue
        terms.append(algebra.multiply_plain_and_rescale(table[i], coefficients[i]))

    if not terms:
        return algebra.mod_switch_to(algebra.encrypt(coefficients[0]), target)

    # All terms land on the planned output level, also when a_d is zero
    terms = [algebra.snap_scale(algebra.mod_switch_to(term, target)) for term in terms]
    result = algebra.add_many(terms)

    if coefficients[0] != 0.0:
        result = algebra.add_plain(result, coefficients[0])
    return result


def _evaluate_horner(
    algebra: CKKSAlgebra, x: EncryptedVector, coefficients: List[float]
) -> EncryptedVector:
    degree = len(coefficients) - 1
    acc = algebra.encrypt(coefficients[degree])

    for i in range(degree - 1, -1, -1):
        acc = algebra.multiply_and_rescale(acc, x)
        if coefficients[i] != 0.0:
            acc = algebra.add_plain(acc, coefficients[i])

    return acc


def evaluate_surrogate(
    algebra: CKKSAlgebra,
    x: EncryptedVector,
    degree: int,
    coefficients: Optional[Sequence[float]] = None,
    strategy: str = "horner",
    raw_input: bool = True,
) -> EncryptedVector:
    """
    Evaluate a sigmoid surrogate of a supported degree.

    Args:
        algebra: Ciphertext algebra
        x: Input ciphertext
        degree: One of 3, 5, 7
        coefficients: Explicit coefficients (defaults to the preset)
        strategy: "horner" or "tree"
        raw_input: If True, x holds raw logits and the preset's 1/8 input
            scale is folded into the coefficients; otherwise x already holds
            t = x/8

    Raises:
        InvalidDegree: For unsupported degrees or a coefficient list of the
            wrong length
    """
    if degree not in SUPPORTED_DEGREES:
        raise InvalidDegree(
            degree,
            f"Sigmoid surrogate degree must be one of {SUPPORTED_DEGREES}, got {degree}",
        )

    if coefficients is None:
        surrogate = get_sigmoid_surrogate(degree)
    else:
        if len(coefficients) != degree + 1:
            raise InvalidDegree(
                degree,
                f"Degree {degree} needs {degree + 1} coefficients, got {len(coefficients)}",
            )
        preset = get_sigmoid_surrogate(degree)
        surrogate = PolynomialApprox(
            coefficients=tuple(float(a) for a in coefficients),
            domain=preset.domain,
            input_scale=preset.input_scale,
        )

    if raw_input:
        effective = surrogate.coefficients_for_raw_input()
    else:
        effective = list(surrogate.coefficients)

    return evaluate_polynomial(algebra, x, effective, strategy)
