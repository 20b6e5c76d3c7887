"""
Integration tests for encrypted power tables and polynomial evaluation.
"""

import numpy as np
import pytest


X_VALUES = [0.5, -0.75, 0.25, 1.0, -1.0, 0.0]


class TestComputePowers:
    """Power tree on real ciphertexts."""

    def test_powers_and_levels(self, algebra, key_holder):
        from services.evaluation.power_tree import compute_powers

        x = algebra.encrypt(X_VALUES)
        table = compute_powers(algebra, x, 7)
        assert len(table) == 7

        expected_levels = [0, 1, 2, 2, 3, 3, 3]
        for i in range(1, 8):
            assert table[i].level == x.level - expected_levels[i - 1]
            assert table.level_consumed(i) == expected_levels[i - 1]
            np.testing.assert_allclose(
                key_holder.decrypt_values(table[i], len(X_VALUES)),
                np.array(X_VALUES) ** i,
                atol=2e-2,
            )
        assert table.lowest_level == x.level - 3

    def test_degree_one(self, algebra):
        from services.evaluation.power_tree import compute_powers

        x = algebra.encrypt([2.0])
        table = compute_powers(algebra, x, 1)
        assert table[1] is x

    def test_insufficient_depth(self, algebra):
        from services.evaluation.power_tree import compute_powers
        from services.fhe.errors import InsufficientDepth

        x = algebra.encrypt([1.0])
        with pytest.raises(InsufficientDepth) as exc_info:
            compute_powers(algebra, x, 32)
        assert exc_info.value.required == 5
        assert exc_info.value.available == 4


class TestEvaluatePolynomial:
    """Tree and Horner strategies against numpy."""

    @pytest.mark.parametrize("strategy", ["tree", "horner"])
    def test_degree_three(self, algebra, key_holder, strategy):
        from services.evaluation.polynomial import evaluate_polynomial, polynomial_depth

        coefficients = [0.5, 0.3, -0.2, 0.1]
        x = algebra.encrypt(X_VALUES)
        result = evaluate_polynomial(algebra, x, coefficients, strategy)

        assert result.level == x.level - polynomial_depth(3, strategy)
        np.testing.assert_allclose(
            key_holder.decrypt_values(result, len(X_VALUES)),
            np.polynomial.polynomial.polyval(X_VALUES, coefficients),
            atol=1e-2,
        )

    @pytest.mark.parametrize("degree", [5, 7])
    @pytest.mark.parametrize("strategy", ["tree", "horner"])
    def test_higher_degrees(self, training_algebra, training_key_holder, degree, strategy):
        from services.evaluation.polynomial import evaluate_polynomial

        rng = np.random.default_rng(degree)
        coefficients = rng.uniform(-1, 1, size=degree + 1)
        x = training_algebra.encrypt(X_VALUES)
        result = evaluate_polynomial(training_algebra, x, coefficients, strategy)

        np.testing.assert_allclose(
            training_key_holder.decrypt_values(result, len(X_VALUES)),
            np.polynomial.polynomial.polyval(X_VALUES, coefficients),
            atol=1e-3,
        )

    def test_strategies_agree(self, training_algebra, training_key_holder):
        from services.evaluation.polynomial import evaluate_polynomial

        coefficients = [0.1, -0.4, 0.0, 0.25, 0.0, -0.05]
        x = training_algebra.encrypt(X_VALUES)
        tree = evaluate_polynomial(training_algebra, x, coefficients, "tree")
        horner = evaluate_polynomial(training_algebra, x, coefficients, "horner")

        np.testing.assert_allclose(
            training_key_holder.decrypt_values(tree, len(X_VALUES)),
            training_key_holder.decrypt_values(horner, len(X_VALUES)),
            atol=1e-3,
        )

    def test_only_constant_term(self, algebra, key_holder):
        from services.evaluation.polynomial import evaluate_polynomial

        x = algebra.encrypt(X_VALUES)
        result = evaluate_polynomial(algebra, x, [0.75, 0.0, 0.0, 0.0], "tree")
        assert result.level == x.level - 3
        np.testing.assert_allclose(key_holder.decrypt_values(result, 3), 0.75, atol=1e-3)

    def test_tree_zero_leading_coefficient_keeps_planned_level(self, algebra, key_holder):
        from services.evaluation.polynomial import evaluate_polynomial, polynomial_depth

        coefficients = [0.5, 0.3, -0.2, 0.0]
        x = algebra.encrypt(X_VALUES)
        result = evaluate_polynomial(algebra, x, coefficients, "tree")

        assert result.level == x.level - polynomial_depth(3, "tree")
        assert result.scale == algebra.canonical_scale
        np.testing.assert_allclose(
            key_holder.decrypt_values(result, len(X_VALUES)),
            np.polynomial.polynomial.polyval(X_VALUES, coefficients),
            atol=1e-2,
        )

    def test_input_too_low(self, algebra):
        from services.evaluation.polynomial import evaluate_polynomial
        from services.fhe.errors import InsufficientDepth

        x = algebra.mod_switch_to(algebra.encrypt([0.5]), 2)
        with pytest.raises(InsufficientDepth):
            evaluate_polynomial(algebra, x, [0.5, 1.0, 0.0, -1.0], "horner")
        with pytest.raises(InsufficientDepth):
            evaluate_polynomial(algebra, x, [0.5, 1.0, 0.0, 0.0, 0.0, -1.0], "tree")

    @pytest.mark.parametrize("strategy", ["tree", "horner"])
    @pytest.mark.parametrize("n_coefficients", [1, 2, 3, 5, 9])
    def test_unsupported_degree(self, algebra, strategy, n_coefficients):
        from services.evaluation.polynomial import evaluate_polynomial
        from services.fhe.errors import InvalidDegree

        x = algebra.encrypt([0.5])
        with pytest.raises(InvalidDegree) as exc_info:
            evaluate_polynomial(algebra, x, [0.1] * n_coefficients, strategy)
        assert exc_info.value.degree == n_coefficients - 1
        assert algebra.get_stats()["rescales"] == 0

    def test_unknown_strategy(self, algebra):
        from services.evaluation.polynomial import evaluate_polynomial

        x = algebra.encrypt([0.5])
        with pytest.raises(ValueError):
            evaluate_polynomial(algebra, x, [1.0, 2.0, 0.0, 1.0], strategy="paterson")


class TestEvaluateSurrogate:
    """Sigmoid surrogates on ciphertexts."""

    def test_scaled_input_at_point_one(self, algebra, key_holder):
        from services.evaluation.polynomial import evaluate_surrogate

        x = algebra.encrypt([0.1])
        result = evaluate_surrogate(algebra, x, 3, raw_input=False)
        assert key_holder.decrypt_values(result, 1)[0] == pytest.approx(0.61925, abs=1e-2)

    @pytest.mark.parametrize("degree", [3, 5, 7])
    def test_raw_logits(self, training_algebra, training_key_holder, degree):
        from services.evaluation.polynomial import evaluate_surrogate
        from services.evaluation.surrogates import get_sigmoid_surrogate

        logits = np.array([-6.0, -2.0, -0.5, 0.0, 0.5, 2.0, 6.0])
        x = training_algebra.encrypt(logits)
        strategy = "tree" if degree == 7 else "horner"
        result = evaluate_surrogate(training_algebra, x, degree, strategy=strategy)

        np.testing.assert_allclose(
            training_key_holder.decrypt_values(result, len(logits)),
            get_sigmoid_surrogate(degree).evaluate(logits),
            atol=1e-3,
        )

    def test_wrong_coefficient_count(self, algebra):
        from services.evaluation.polynomial import evaluate_surrogate
        from services.fhe.errors import InvalidDegree

        x = algebra.encrypt([0.1])
        with pytest.raises(InvalidDegree):
            evaluate_surrogate(algebra, x, 3, coefficients=[0.5, 1.0])
        with pytest.raises(InvalidDegree):
            evaluate_surrogate(algebra, x, 4)
