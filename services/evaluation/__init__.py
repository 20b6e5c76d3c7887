"""
Encrypted Evaluation Module

Level-aware evaluation primitives on top of the CKKS backend:
- Power tree (x^1..x^d at minimum depth)
- Polynomial evaluation (tree and Horner strategies)
- Sigmoid surrogates of degree 3, 5 and 7
- Packed vector algebra (dot product, masked selection, diagonal transforms)
"""

from .surrogates import (
    PolynomialApprox,
    SUPPORTED_DEGREES,
    get_sigmoid_surrogate,
    sigmoid,
)

from .power_tree import (
    PowerTreePlan,
    PowerTable,
    compute_powers,
)

from .polynomial import (
    evaluate_polynomial,
    evaluate_surrogate,
    polynomial_depth,
)

from .vector_algebra import (
    dot_product,
    select_slot,
    aggregate_selected,
    generalized_diagonals,
    linear_transform,
    linear_transform_encrypted,
    encrypt_diagonals,
    pack_rows,
    unpack_rows,
)

__all__ = [
    # Surrogates
    "PolynomialApprox",
    "SUPPORTED_DEGREES",
    "get_sigmoid_surrogate",
    "sigmoid",
    # Power tree
    "PowerTreePlan",
    "PowerTable",
    "compute_powers",
    # Polynomial
    "evaluate_polynomial",
    "evaluate_surrogate",
    "polynomial_depth",
    # Vector algebra
    "dot_product",
    "select_slot",
    "aggregate_selected",
    "generalized_diagonals",
    "linear_transform",
    "linear_transform_encrypted",
    "encrypt_diagonals",
    "pack_rows",
    "unpack_rows",
]
