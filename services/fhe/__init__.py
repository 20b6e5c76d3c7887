"""
FHE Backend Module

CKKS arithmetic over Microsoft SEAL (via TenSEAL) with explicit level and
scale tracking.

Usage:
    from services.fhe import CKKSSchemeContext, CKKSAlgebra, SecretKeyHolder
    context = create_scheme_context(depth=7)
    algebra = CKKSAlgebra(context)
    encrypted = algebra.encrypt([1.0, 2.0, 3.0])
    SecretKeyHolder(context).decrypt_values(encrypted, 3)
"""

from .errors import (
    HEAlgebraError,
    InsufficientDepth,
    LevelMismatch,
    ScaleMismatch,
    InvalidDegree,
    DimensionMismatch,
)

from .ckks_backend import (
    CKKSConfig,
    CKKSSchemeContext,
    CKKSAlgebra,
    EncryptedVector,
    EncodedVector,
    SecretKeyHolder,
    recommend_config,
    create_scheme_context,
)

from .depth_budget import (
    DepthPlan,
    LevelHealth,
    LevelTracker,
    plan_iteration_depth,
    polynomial_depth,
    recommend_scheme,
)

__all__ = [
    # Errors
    "HEAlgebraError",
    "InsufficientDepth",
    "LevelMismatch",
    "ScaleMismatch",
    "InvalidDegree",
    "DimensionMismatch",
    # CKKS
    "CKKSConfig",
    "CKKSSchemeContext",
    "CKKSAlgebra",
    "EncryptedVector",
    "EncodedVector",
    "SecretKeyHolder",
    "recommend_config",
    "create_scheme_context",
    # Depth budget
    "DepthPlan",
    "LevelHealth",
    "LevelTracker",
    "plan_iteration_depth",
    "polynomial_depth",
    "recommend_scheme",
]
