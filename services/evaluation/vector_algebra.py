"""
Packed Vector Algebra

Slot-packed building blocks for encrypted linear algebra:

- dot_product: elementwise multiply, then rotate-and-reduce so that every
  slot of the window holds the full inner product
- select_slot / aggregate_selected: one-hot masking to gather scalars from
  several ciphertexts into one packed vector
- linear_transform: matrix-vector product from generalized diagonals
- pack_rows / unpack_rows: several short vectors in one ciphertext

Level cost: dot_product, aggregate_selected, linear_transform and
unpack_rows each spend one level; rotations and packing are free.
"""

import logging
from typing import List, Sequence

import numpy as np

from services.fhe.ckks_backend import CKKSAlgebra, EncryptedVector
from services.fhe.errors import DimensionMismatch

logger = logging.getLogger(__name__)


def _check_window(algebra: CKKSAlgebra, n: int, operation: str):
    if n < 1:
        raise ValueError(f"{operation}: window length must be >= 1, got {n}")
    if 2 * n > algebra.slot_count:
        raise DimensionMismatch(
            f"{operation}: window of {n} needs {2 * n} slots, "
            f"only {algebra.slot_count} available"
        )


def duplicate_window(algebra: CKKSAlgebra, ct: EncryptedVector, n: int) -> EncryptedVector:
    """Copy slots [0, n) to [n, 2n); slots [n, 2n) must be zero on input."""
    return algebra.add(ct, algebra.rotate(ct, -n))


def dot_product(
    algebra: CKKSAlgebra, a: EncryptedVector, b: EncryptedVector, n: int
) -> EncryptedVector:
    """
    Inner product of the first ``n`` slots of ``a`` and ``b``.

    Slots beyond ``n`` must be zero in at least one operand. After the call,
    each of slots 0..n-1 holds sum(a_i * b_i).

    Args:
        algebra: Ciphertext algebra
        a: First operand
        b: Second operand
        n: Window length (2n <= slot count)

    Returns:
        Ciphertext one level below the lower operand
    """
    _check_window(algebra, n, "dot_product")

    product = algebra.multiply_and_rescale(a, b)
    shifted = duplicate_window(algebra, product, n)

    result = product
    for _ in range(n - 1):
        shifted = algebra.rotate(shifted, 1)
        result = algebra.add(result, shifted)
    return result


def one_hot_mask(slot_count: int, slot: int, weight: float = 1.0) -> np.ndarray:
    mask = np.zeros(slot_count)
    mask[slot] = weight
    return mask


def select_slot(
    algebra: CKKSAlgebra,
    ct: EncryptedVector,
    slot: int,
    window: int,
    weight: float = 1.0,
) -> EncryptedVector:
    """
    Keep only slot ``slot`` of a dot-product result, scaled by ``weight``.

    Only slots [0, window) of a dot product hold the full sum, so for
    ``slot >= window`` the value at ``slot % window`` is first rotated into
    place.

    Returns:
        Ciphertext at scale (scale * canonical), level unchanged; combine with
        :func:`aggregate_selected`
    """
    if not 0 <= slot < algebra.slot_count:
        raise ValueError(f"Slot {slot} outside [0, {algebra.slot_count})")
    source = slot % window
    if slot != source:
        ct = algebra.rotate(ct, -(slot - source))
    return algebra.multiply_plain(ct, one_hot_mask(algebra.slot_count, slot, weight))


def aggregate_selected(
    algebra: CKKSAlgebra, selected: Sequence[EncryptedVector]
) -> EncryptedVector:
    """Sum masked ciphertexts, then rescale and snap (one level)."""
    total = algebra.add_many(list(selected))
    return algebra.snap_scale(algebra.rescale(total))


def generalized_diagonals(matrix: np.ndarray) -> List[np.ndarray]:
    """
    Generalized diagonals of a square matrix.

    diag_k[i] = U[i][(i + k) mod n] for k = 0..n-1.
    """
    matrix = np.asarray(matrix, dtype=np.float64)
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise DimensionMismatch(f"Expected a square matrix, got shape {matrix.shape}")
    n = matrix.shape[0]
    rows = np.arange(n)
    return [matrix[rows, (rows + k) % n] for k in range(n)]


def linear_transform(
    algebra: CKKSAlgebra, ct: EncryptedVector, diagonals: Sequence[np.ndarray]
) -> EncryptedVector:
    """
    Matrix-vector product U*v with plaintext diagonals of U.

    ``ct`` holds v in slots [0, n) and zeros elsewhere. Spends one level.
    """
    n = len(diagonals)
    _check_window(algebra, n, "linear_transform")

    doubled = duplicate_window(algebra, ct, n)
    terms = [
        algebra.multiply_plain(algebra.rotate(doubled, k), diagonal)
        for k, diagonal in enumerate(diagonals)
    ]
    return algebra.snap_scale(algebra.rescale(algebra.add_many(terms)))


def encrypt_diagonals(algebra: CKKSAlgebra, matrix: np.ndarray) -> List[EncryptedVector]:
    return [algebra.encrypt(diagonal) for diagonal in generalized_diagonals(matrix)]


def linear_transform_encrypted(
    algebra: CKKSAlgebra,
    ct: EncryptedVector,
    encrypted_diagonals: Sequence[EncryptedVector],
) -> EncryptedVector:
    """
    Matrix-vector product U*v with encrypted diagonals of U.

    Products are accumulated before a single relinearize and rescale.
    Spends one level below the lower of ``ct`` and the diagonals.
    """
    n = len(encrypted_diagonals)
    _check_window(algebra, n, "linear_transform_encrypted")

    doubled = duplicate_window(algebra, ct, n)
    terms = []
    for k, diagonal in enumerate(encrypted_diagonals):
        rotated, diagonal = algebra.align_levels(algebra.rotate(doubled, k), diagonal)
        terms.append(algebra.multiply(rotated, diagonal))

    total = algebra.relinearize(algebra.add_many(terms))
    return algebra.snap_scale(algebra.rescale(total))


def pack_rows(
    algebra: CKKSAlgebra, rows: Sequence[EncryptedVector], n: int
) -> EncryptedVector:
    """
    Pack encrypted rows of length ``n`` into one ciphertext.

    Row i lands in slots [i*n, (i+1)*n). No level is spent.
    """
    if not rows:
        raise ValueError("pack_rows requires at least one row")
    if len(rows) * n > algebra.slot_count:
        raise DimensionMismatch(
            f"{len(rows)} rows of length {n} exceed {algebra.slot_count} slots"
        )
    shifted = [algebra.rotate(row, -(i * n)) for i, row in enumerate(rows)]
    return algebra.add_many(shifted)


def unpack_rows(
    algebra: CKKSAlgebra, packed: EncryptedVector, n: int, num_rows: int
) -> List[EncryptedVector]:
    """Inverse of :func:`pack_rows`; every returned row starts at slot 0. Spends one level."""
    if num_rows * n > algebra.slot_count:
        raise DimensionMismatch(
            f"{num_rows} rows of length {n} exceed {algebra.slot_count} slots"
        )
    rows = []
    for i in range(num_rows):
        mask = np.zeros(algebra.slot_count)
        mask[i * n:(i + 1) * n] = 1.0
        row = algebra.multiply_plain_and_rescale(packed, mask)
        rows.append(algebra.rotate(row, i * n))
    return rows
