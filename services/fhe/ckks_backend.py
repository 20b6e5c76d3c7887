"""
CKKS Backend using TenSEAL / Microsoft SEAL

Level- and scale-aware wrapper around the low-level SEAL evaluator exposed by
TenSEAL (``tenseal.sealapi``). TenSEAL builds the context and keys; every
arithmetic primitive goes straight to SEAL so that level and scale stay under
the caller's control (no automatic rescaling or mod-switching).

Contracts enforced here:
- add/subtract require equal level and equal scale
- multiply requires equal level and a level above zero
- rescale is the only operation that lowers the level by one
- every operation returns a new value; inputs are never modified

References:
- TenSEAL: https://github.com/OpenMined/TenSEAL
- Microsoft SEAL: https://github.com/microsoft/SEAL
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import tenseal as ts
import tenseal.sealapi as sealapi

from .errors import InsufficientDepth, LevelMismatch, ScaleMismatch

logger = logging.getLogger(__name__)

# Relative tolerance when comparing the scales of two operands
SCALE_TOLERANCE = 1e-12

# Maximum total coefficient modulus bits for 128-bit security
MAX_COEFF_BITS = {
    4096: 109,
    8192: 218,
    16384: 438,
    32768: 881,
}


@dataclass
class CKKSConfig:
    """Configuration for the CKKS scheme context."""

    poly_modulus_degree: int = 16384  # Ring dimension (power of 2)
    coeff_mod_bit_sizes: List[int] = field(
        default_factory=lambda: [60, 40, 40, 40, 40, 40, 40, 40, 60]
    )
    scale_bits: int = 40  # Canonical scale = 2**scale_bits

    # Galois keys are needed for rotations (dot products, linear transforms)
    generate_galois_keys: bool = True

    @property
    def global_scale(self) -> float:
        return float(2 ** self.scale_bits)

    @property
    def max_depth(self) -> int:
        """Number of rescales a fresh ciphertext can undergo."""
        # First prime holds the result, last prime is the special key-switching prime
        return len(self.coeff_mod_bit_sizes) - 2

    @property
    def num_slots(self) -> int:
        return self.poly_modulus_degree // 2

    def validate(self) -> List[str]:
        """Return a list of configuration issues (empty when valid)."""
        issues = []
        if self.poly_modulus_degree not in MAX_COEFF_BITS:
            issues.append(
                f"ERROR: poly_modulus_degree must be one of {sorted(MAX_COEFF_BITS)}"
            )
        else:
            total_bits = sum(self.coeff_mod_bit_sizes)
            limit = MAX_COEFF_BITS[self.poly_modulus_degree]
            if total_bits > limit:
                issues.append(
                    f"ERROR: coeff modulus uses {total_bits} bits, "
                    f"limit for N={self.poly_modulus_degree} is {limit}"
                )
        if len(self.coeff_mod_bit_sizes) < 3:
            issues.append("ERROR: coeff_mod_bit_sizes needs at least one rescaling prime")
        if self.coeff_mod_bit_sizes and self.scale_bits >= self.coeff_mod_bit_sizes[0]:
            issues.append(
                "ERROR: scale_bits must be smaller than the first prime's bit size"
            )
        return issues


@dataclass(frozen=True)
class EncryptedVector:
    """A slot-packed ciphertext tagged with its level and scale."""

    data: Any  # sealapi.Ciphertext
    level: int
    scale: float

    @property
    def log_scale(self) -> float:
        return math.log2(self.scale)


@dataclass(frozen=True)
class EncodedVector:
    """An encoded (not encrypted) slot vector tagged with its level and scale."""

    data: Any  # sealapi.Plaintext
    level: int
    scale: float


PlainOperand = Union[EncodedVector, float, Sequence[float], np.ndarray]


class CKKSSchemeContext:
    """
    Process-wide CKKS parameters and keys.

    Created once before training and shared read-only afterwards. Public
    evaluation material (public, relinearization and Galois keys) is handed to
    :class:`CKKSAlgebra`; the secret key is only read by
    :class:`SecretKeyHolder`.

    Example:
        ```python
        context = CKKSSchemeContext(CKKSConfig())
        algebra = CKKSAlgebra(context)
        ct = algebra.encrypt([1.0, 2.0, 3.0])
        ```
    """

    def __init__(self, config: Optional[CKKSConfig] = None):
        self.config = config or CKKSConfig()
        issues = [i for i in self.config.validate() if i.startswith("ERROR")]
        if issues:
            raise ValueError("; ".join(issues))

        self._ts_context = self._create_context()
        self.seal_context = self._ts_context.seal_context().data
        self._parms_by_level = self._index_levels()
        self.top_level = max(self._parms_by_level)

        logger.info(
            f"CKKS context created: poly_degree={self.config.poly_modulus_degree}, "
            f"coeff_mod_bits={self.config.coeff_mod_bit_sizes}, "
            f"scale=2^{self.config.scale_bits}, depth={self.top_level}"
        )

    def _create_context(self) -> ts.Context:
        """Create the TenSEAL context and generate keys."""
        context = ts.context(
            ts.SCHEME_TYPE.CKKS,
            poly_modulus_degree=self.config.poly_modulus_degree,
            coeff_mod_bit_sizes=self.config.coeff_mod_bit_sizes,
        )
        context.global_scale = self.config.global_scale

        if self.config.generate_galois_keys:
            context.generate_galois_keys()
        context.generate_relin_keys()

        return context

    def _index_levels(self) -> Dict[int, Any]:
        """Map chain index (remaining level) to SEAL parms_id."""
        levels = {}
        context_data = self.seal_context.first_context_data()
        while context_data is not None:
            levels[context_data.chain_index()] = context_data.parms_id()
            context_data = context_data.next_context_data()
        return levels

    @property
    def canonical_scale(self) -> float:
        return self.config.global_scale

    @property
    def slot_count(self) -> int:
        return self.config.num_slots

    @property
    def public_key(self):
        return self._ts_context.public_key().data

    @property
    def relin_keys(self):
        return self._ts_context.relin_keys().data

    @property
    def galois_keys(self):
        return self._ts_context.galois_keys().data

    @property
    def secret_key(self):
        return self._ts_context.secret_key().data

    def parms_id_at(self, level: int):
        """SEAL parms_id for a given remaining level."""
        if level not in self._parms_by_level:
            raise ValueError(
                f"Level {level} outside the modulus chain [0, {self.top_level}]"
            )
        return self._parms_by_level[level]

    def level_of(self, seal_object) -> int:
        """Remaining level of a SEAL ciphertext or plaintext."""
        return self.seal_context.get_context_data(seal_object.parms_id()).chain_index()

    def describe(self) -> Dict[str, Any]:
        """Parameter summary for logging and reporting."""
        return {
            "poly_modulus_degree": self.config.poly_modulus_degree,
            "coeff_mod_bit_sizes": list(self.config.coeff_mod_bit_sizes),
            "total_coeff_bits": sum(self.config.coeff_mod_bit_sizes),
            "scale_bits": self.config.scale_bits,
            "slots": self.slot_count,
            "depth": self.top_level,
        }


class CKKSAlgebra:
    """
    Ciphertext algebra with explicit level and scale discipline.

    Holds only public evaluation material. All methods are pure with respect
    to their inputs.

    Example:
        ```python
        algebra = CKKSAlgebra(context)
        a = algebra.encrypt([1.0, 2.0])
        b = algebra.encrypt([3.0, 4.0])
        c = algebra.multiply_and_rescale(a, b)   # level drops by one
        ```
    """

    def __init__(self, context: CKKSSchemeContext, tracker=None):
        self.context = context
        seal_ctx = context.seal_context
        self._encoder = sealapi.CKKSEncoder(seal_ctx)
        self._encryptor = sealapi.Encryptor(seal_ctx, context.public_key)
        self._evaluator = sealapi.Evaluator(seal_ctx)
        self._relin_keys = context.relin_keys
        self._galois_keys = context.galois_keys
        self.tracker = tracker
        self._operation_stats = {
            "encryptions": 0,
            "additions": 0,
            "multiplications": 0,
            "rescales": 0,
            "rotations": 0,
            "mod_switches": 0,
        }

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def slot_count(self) -> int:
        return self.context.slot_count

    @property
    def top_level(self) -> int:
        return self.context.top_level

    @property
    def canonical_scale(self) -> float:
        return self.context.canonical_scale

    # ------------------------------------------------------------------
    # Encoding / encryption
    # ------------------------------------------------------------------

    def _slot_values(self, values) -> List[float]:
        if isinstance(values, (int, float)):
            return np.full(self.slot_count, float(values)).tolist()
        arr = np.asarray(values, dtype=np.float64).flatten()
        if arr.size > self.slot_count:
            raise ValueError(
                f"Vector of length {arr.size} exceeds {self.slot_count} slots"
            )
        return arr.tolist()

    def encode(
        self,
        values,
        level: Optional[int] = None,
        scale: Optional[float] = None,
    ) -> EncodedVector:
        """
        Encode values (zero padded) at the given level and scale.

        Scalars are broadcast to every slot. The plaintext is encoded at the
        top level and mod-switched down to ``level``.
        """
        scale = scale or self.canonical_scale
        plain = sealapi.Plaintext()
        self._encoder.encode(self._slot_values(values), scale, plain)
        encoded = EncodedVector(data=plain, level=self.top_level, scale=scale)
        if level is not None and level != self.top_level:
            encoded = self.mod_switch_to(encoded, level)
        return encoded

    def encrypt(self, values) -> EncryptedVector:
        """Encrypt values (or an EncodedVector) at full level."""
        encoded = values if isinstance(values, EncodedVector) else self.encode(values)
        ct = sealapi.Ciphertext()
        self._encryptor.encrypt(encoded.data, ct)
        self._operation_stats["encryptions"] += 1
        return self._wrap(ct)

    def _wrap(self, ct) -> EncryptedVector:
        return EncryptedVector(data=ct, level=self.context.level_of(ct), scale=ct.scale)

    # ------------------------------------------------------------------
    # Precondition checks
    # ------------------------------------------------------------------

    @staticmethod
    def _check_compatible(a, b, operation: str):
        if a.level != b.level:
            raise LevelMismatch(a.level, b.level, operation)
        if not math.isclose(a.scale, b.scale, rel_tol=SCALE_TOLERANCE):
            raise ScaleMismatch(a.scale, b.scale, operation)

    @staticmethod
    def _check_multipliable(ct: EncryptedVector, operation: str):
        if ct.level <= 0:
            raise InsufficientDepth(1, ct.level, operation)

    def _plain_operand(
        self, ct: EncryptedVector, operand: PlainOperand, scale: float, operation: str
    ) -> EncodedVector:
        if isinstance(operand, EncodedVector):
            if operand.level != ct.level:
                raise LevelMismatch(ct.level, operand.level, operation)
            return operand
        return self.encode(operand, level=ct.level, scale=scale)

    # ------------------------------------------------------------------
    # Additive operations
    # ------------------------------------------------------------------

    def add(self, a: EncryptedVector, b: EncryptedVector) -> EncryptedVector:
        self._check_compatible(a, b, "add")
        out = sealapi.Ciphertext()
        self._evaluator.add(a.data, b.data, out)
        self._operation_stats["additions"] += 1
        return self._wrap(out)

    def subtract(self, a: EncryptedVector, b: EncryptedVector) -> EncryptedVector:
        self._check_compatible(a, b, "subtract")
        out = sealapi.Ciphertext()
        self._evaluator.sub(a.data, b.data, out)
        self._operation_stats["additions"] += 1
        return self._wrap(out)

    def negate(self, ct: EncryptedVector) -> EncryptedVector:
        out = sealapi.Ciphertext()
        self._evaluator.negate(ct.data, out)
        return self._wrap(out)

    def add_plain(self, ct: EncryptedVector, plain: PlainOperand) -> EncryptedVector:
        """Add a plaintext; raw values are encoded at the ciphertext's level and scale."""
        encoded = self._plain_operand(ct, plain, ct.scale, "add_plain")
        self._check_compatible(ct, encoded, "add_plain")
        out = sealapi.Ciphertext()
        self._evaluator.add_plain(ct.data, encoded.data, out)
        self._operation_stats["additions"] += 1
        return self._wrap(out)

    def sub_plain(self, ct: EncryptedVector, plain: PlainOperand) -> EncryptedVector:
        encoded = self._plain_operand(ct, plain, ct.scale, "sub_plain")
        self._check_compatible(ct, encoded, "sub_plain")
        out = sealapi.Ciphertext()
        self._evaluator.sub_plain(ct.data, encoded.data, out)
        self._operation_stats["additions"] += 1
        return self._wrap(out)

    def add_many(self, cts: Sequence[EncryptedVector]) -> EncryptedVector:
        """Sum ciphertexts that all share one level and one scale."""
        if not cts:
            raise ValueError("add_many requires at least one ciphertext")
        first = cts[0]
        for other in cts[1:]:
            self._check_compatible(first, other, "add_many")
        if len(cts) == 1:
            return first
        out = sealapi.Ciphertext()
        self._evaluator.add_many([ct.data for ct in cts], out)
        self._operation_stats["additions"] += len(cts) - 1
        return self._wrap(out)

    # ------------------------------------------------------------------
    # Multiplicative operations
    # ------------------------------------------------------------------

    def multiply(self, a: EncryptedVector, b: EncryptedVector) -> EncryptedVector:
        """
        Ciphertext product. Scale becomes the product of scales, level is
        unchanged; relinearize and rescale must follow immediately.
        """
        if a.level != b.level:
            raise LevelMismatch(a.level, b.level, "multiply")
        self._check_multipliable(a, "multiply")
        out = sealapi.Ciphertext()
        self._evaluator.multiply(a.data, b.data, out)
        self._operation_stats["multiplications"] += 1
        return self._wrap(out)

    def multiply_plain(self, ct: EncryptedVector, plain: PlainOperand) -> EncryptedVector:
        """Plaintext product; raw values are encoded at the canonical scale."""
        self._check_multipliable(ct, "multiply_plain")
        encoded = self._plain_operand(ct, plain, self.canonical_scale, "multiply_plain")
        out = sealapi.Ciphertext()
        self._evaluator.multiply_plain(ct.data, encoded.data, out)
        self._operation_stats["multiplications"] += 1
        return self._wrap(out)

    def relinearize(self, ct: EncryptedVector) -> EncryptedVector:
        out = sealapi.Ciphertext()
        self._evaluator.relinearize(ct.data, self._relin_keys, out)
        return self._wrap(out)

    def rescale(self, ct: EncryptedVector) -> EncryptedVector:
        """
        Divide by the current level's prime and drop one level.

        The resulting scale drifts away from the canonical value because the
        prime is not an exact power of two; see :meth:`snap_scale`.
        """
        if ct.level <= 0:
            raise InsufficientDepth(1, ct.level, "rescale")
        out = sealapi.Ciphertext()
        self._evaluator.rescale_to_next(ct.data, out)
        self._operation_stats["rescales"] += 1
        result = self._wrap(out)
        if self.tracker is not None:
            self.tracker.record("rescale", ct.level, result.level)
        return result

    def snap_scale(
        self, ct: EncryptedVector, scale: Optional[float] = None
    ) -> EncryptedVector:
        """Return a copy of ``ct`` re-tagged with the canonical (or given) scale."""
        target = scale or self.canonical_scale
        if ct.scale == target:
            return ct
        # sealapi has no copy constructor; a double negation yields a fresh copy
        out = sealapi.Ciphertext()
        self._evaluator.negate(ct.data, out)
        self._evaluator.negate_inplace(out)
        out.scale = target
        return EncryptedVector(data=out, level=ct.level, scale=target)

    def multiply_and_rescale(self, a: EncryptedVector, b: EncryptedVector) -> EncryptedVector:
        """Align levels, multiply, relinearize, rescale and snap the scale."""
        a, b = self.align_levels(a, b)
        product = self.relinearize(self.multiply(a, b))
        return self.snap_scale(self.rescale(product))

    def multiply_plain_and_rescale(
        self, ct: EncryptedVector, plain: PlainOperand
    ) -> EncryptedVector:
        return self.snap_scale(self.rescale(self.multiply_plain(ct, plain)))

    # ------------------------------------------------------------------
    # Slot movement and level management
    # ------------------------------------------------------------------

    def rotate(self, ct: EncryptedVector, steps: int) -> EncryptedVector:
        """
        Cyclic shift of the slot vector: positive steps move slot ``i + steps``
        into slot ``i``. Level and scale are unchanged.
        """
        half = self.slot_count // 2
        steps = steps % self.slot_count
        if steps > half:
            steps -= self.slot_count
        if steps == 0:
            return ct
        out = sealapi.Ciphertext()
        self._evaluator.rotate_vector(ct.data, steps, self._galois_keys, out)
        self._operation_stats["rotations"] += 1
        return self._wrap(out)

    def mod_switch_to(self, value, level: int):
        """Drop a ciphertext or plaintext to ``level`` without rescaling."""
        if level > value.level:
            raise ValueError(
                f"Cannot mod-switch up from level {value.level} to {level}"
            )
        if level == value.level:
            return value
        parms_id = self.context.parms_id_at(level)
        self._operation_stats["mod_switches"] += 1
        if isinstance(value, EncodedVector):
            out = sealapi.Plaintext()
            self._evaluator.mod_switch_to(value.data, parms_id, out)
            return EncodedVector(data=out, level=level, scale=value.scale)
        out = sealapi.Ciphertext()
        self._evaluator.mod_switch_to(value.data, parms_id, out)
        return self._wrap(out)

    def align_levels(
        self, a: EncryptedVector, b: EncryptedVector
    ) -> Tuple[EncryptedVector, EncryptedVector]:
        """Mod-switch the higher-level operand down to the lower one."""
        if a.level > b.level:
            return self.mod_switch_to(a, b.level), b
        if b.level > a.level:
            return a, self.mod_switch_to(b, a.level)
        return a, b

    def get_stats(self) -> Dict[str, Any]:
        """Get operation statistics."""
        return {
            **self._operation_stats,
            "slots": self.slot_count,
            "top_level": self.top_level,
        }


class SecretKeyHolder:
    """
    The party that owns the decryption key.

    Refreshing a ciphertext (decrypt, then re-encrypt at full level) is the
    substitute for bootstrapping. It requires this holder's cooperation at
    every iteration boundary: whoever calls :meth:`refresh` sees the
    plaintext values.
    """

    def __init__(self, context: CKKSSchemeContext):
        self.context = context
        seal_ctx = context.seal_context
        self._decryptor = sealapi.Decryptor(seal_ctx, context.secret_key)
        self._encoder = sealapi.CKKSEncoder(seal_ctx)
        self._encryptor = sealapi.Encryptor(seal_ctx, context.public_key)
        self.decryptions = 0
        self.refreshes = 0

    def decrypt(self, ct: EncryptedVector) -> EncodedVector:
        plain = sealapi.Plaintext()
        self._decryptor.decrypt(ct.data, plain)
        self.decryptions += 1
        return EncodedVector(data=plain, level=ct.level, scale=ct.scale)

    def decode(self, encoded: EncodedVector, length: Optional[int] = None) -> np.ndarray:
        values = np.array(self._encoder.decode_double(encoded.data))
        return values[:length] if length is not None else values

    def decrypt_values(self, ct: EncryptedVector, length: Optional[int] = None) -> np.ndarray:
        """Decrypt and decode in one step."""
        return self.decode(self.decrypt(ct), length)

    def refresh(
        self, ct: EncryptedVector, length: Optional[int] = None
    ) -> Tuple[EncryptedVector, np.ndarray]:
        """
        Decrypt and re-encrypt at full level and canonical scale.

        Only the first ``length`` slots are carried over (the rest are reset
        to zero). Returns the fresh ciphertext and the decoded values.
        """
        values = self.decrypt_values(ct, length)
        plain = sealapi.Plaintext()
        self._encoder.encode(values.tolist(), self.context.canonical_scale, plain)
        fresh = sealapi.Ciphertext()
        self._encryptor.encrypt(plain, fresh)
        self.refreshes += 1
        logger.debug(
            f"Refreshed ciphertext: level {ct.level} -> {self.context.top_level}"
        )
        return (
            EncryptedVector(
                data=fresh,
                level=self.context.level_of(fresh),
                scale=fresh.scale,
            ),
            values,
        )


# Convenience functions

def recommend_config(depth: int) -> CKKSConfig:
    """
    Smallest standard parameter set that supports ``depth`` rescales.

    Note:
        Limits follow SEAL's 128-bit security table:
        - poly_degree=8192: max 218 bits (depth <= 4 with 30-bit primes)
        - poly_degree=16384: max 438 bits (depth <= 7 with 40-bit primes)
        - poly_degree=32768: max 881 bits (depth <= 19 with 40-bit primes)
    """
    if depth < 1:
        raise ValueError("depth must be >= 1")

    if depth <= 4:
        return CKKSConfig(
            poly_modulus_degree=8192,
            coeff_mod_bit_sizes=[40] + [30] * depth + [40],
            scale_bits=30,
        )

    total_bits_needed = 60 + 40 * depth + 60
    for poly_degree in (16384, 32768):
        if total_bits_needed <= MAX_COEFF_BITS[poly_degree]:
            return CKKSConfig(
                poly_modulus_degree=poly_degree,
                coeff_mod_bit_sizes=[60] + [40] * depth + [60],
                scale_bits=40,
            )

    max_supported = (MAX_COEFF_BITS[32768] - 120) // 40
    raise InsufficientDepth(depth, max_supported, "scheme selection")


def create_scheme_context(depth: int) -> CKKSSchemeContext:
    """Create a context supporting ``depth`` rescales per fresh ciphertext."""
    return CKKSSchemeContext(recommend_config(depth))
