"""
Shared fixtures.

Key generation dominates test time, so CKKS contexts are created once per
session:
- small_context: N=8192, primes [40, 30, 30, 30, 30, 40], scale 2^30, depth 4
- training_context: N=16384, primes [60, 40 x 7, 60], scale 2^40, depth 7
"""

import sys
from pathlib import Path

import pytest

# Add project root and CLI package to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(project_root / "cli"))


@pytest.fixture(scope="session")
def small_context():
    from services.fhe.ckks_backend import CKKSConfig, CKKSSchemeContext

    return CKKSSchemeContext(CKKSConfig(
        poly_modulus_degree=8192,
        coeff_mod_bit_sizes=[40, 30, 30, 30, 30, 40],
        scale_bits=30,
    ))


@pytest.fixture(scope="session")
def training_context():
    from services.fhe.ckks_backend import CKKSConfig, CKKSSchemeContext

    return CKKSSchemeContext(CKKSConfig())


@pytest.fixture
def algebra(small_context):
    from services.fhe.ckks_backend import CKKSAlgebra

    return CKKSAlgebra(small_context)


@pytest.fixture
def key_holder(small_context):
    from services.fhe.ckks_backend import SecretKeyHolder

    return SecretKeyHolder(small_context)


@pytest.fixture
def training_algebra(training_context):
    from services.fhe.ckks_backend import CKKSAlgebra

    return CKKSAlgebra(training_context)


@pytest.fixture
def training_key_holder(training_context):
    from services.fhe.ckks_backend import SecretKeyHolder

    return SecretKeyHolder(training_context)
