"""
Depth budget planning tests (no key generation).
"""

import logging

import pytest


class TestPolynomialDepth:
    """Closed-form level cost of polynomial evaluation."""

    @pytest.mark.parametrize("degree,tree,horner", [
        (1, 1, 1),
        (2, 2, 2),
        (3, 3, 3),
        (4, 3, 4),
        (5, 4, 5),
        (7, 4, 7),
        (8, 4, 8),
    ])
    def test_costs(self, degree, tree, horner):
        from services.fhe.depth_budget import polynomial_depth

        assert polynomial_depth(degree, "tree") == tree
        assert polynomial_depth(degree, "horner") == horner

    def test_unknown_strategy(self):
        from services.fhe.depth_budget import polynomial_depth

        with pytest.raises(ValueError):
            polynomial_depth(3, "chebyshev")


class TestDepthPlan:
    """Per-iteration depth plans."""

    @pytest.mark.parametrize("degree,strategy,total", [
        (3, "horner", 7),
        (3, "tree", 7),
        (5, "horner", 9),
        (5, "tree", 8),
        (7, "horner", 11),
        (7, "tree", 8),
    ])
    def test_iteration_totals(self, degree, strategy, total):
        from services.fhe.depth_budget import plan_iteration_depth

        plan = plan_iteration_depth(degree, strategy)
        assert plan.total == total
        assert plan.available == total
        assert plan.headroom == 0
        assert [levels for _, levels in plan.stages()] == [1, 1, total - 4, 1, 1]

    def test_require_raises_when_infeasible(self):
        from services.fhe.depth_budget import plan_iteration_depth
        from services.fhe.errors import InsufficientDepth

        plan = plan_iteration_depth(5, "horner", available=7)
        assert not plan.feasible
        with pytest.raises(InsufficientDepth) as exc_info:
            plan.require()
        assert exc_info.value.required == 9
        assert exc_info.value.available == 7

    def test_to_dict(self):
        from services.fhe.depth_budget import plan_iteration_depth

        data = plan_iteration_depth(3, "horner", available=8).to_dict()
        assert data["total"] == 7
        assert data["headroom"] == 1
        assert sum(data["stages"].values()) == 7


class TestSchemeRecommendation:
    """Parameter selection under the 128-bit security limits."""

    def test_small_depth_uses_8192(self):
        from services.fhe.ckks_backend import recommend_config

        config = recommend_config(3)
        assert config.poly_modulus_degree == 8192
        assert config.coeff_mod_bit_sizes == [40, 30, 30, 30, 40]
        assert config.scale_bits == 30
        assert config.max_depth == 3
        assert config.validate() == []

    def test_training_depth_matches_reference_parameters(self):
        from services.fhe.ckks_backend import recommend_config

        config = recommend_config(7)
        assert config.poly_modulus_degree == 16384
        assert config.coeff_mod_bit_sizes == [60] + [40] * 7 + [60]
        assert config.scale_bits == 40
        assert config.validate() == []

    def test_deeper_plans_need_32768(self):
        from services.fhe.depth_budget import recommend_scheme

        plan, config = recommend_scheme(7, "horner")
        assert plan.total == 11
        assert config.poly_modulus_degree == 32768
        assert config.max_depth == 11
        assert plan.feasible

    def test_depth_beyond_security_limit(self):
        from services.fhe.ckks_backend import recommend_config
        from services.fhe.errors import InsufficientDepth

        assert recommend_config(19).poly_modulus_degree == 32768
        with pytest.raises(InsufficientDepth):
            recommend_config(20)

    def test_config_validation(self):
        from services.fhe.ckks_backend import CKKSConfig

        too_many_bits = CKKSConfig(poly_modulus_degree=8192, coeff_mod_bit_sizes=[60] * 5)
        assert any("limit" in issue for issue in too_many_bits.validate())

        bad_ring = CKKSConfig(poly_modulus_degree=1000)
        assert any("poly_modulus_degree" in issue for issue in bad_ring.validate())

        big_scale = CKKSConfig(coeff_mod_bit_sizes=[40, 40, 40], scale_bits=40)
        assert any("scale_bits" in issue for issue in big_scale.validate())


class TestLevelTracker:
    """Level consumption tracking."""

    def test_records_consumption(self):
        from services.fhe.depth_budget import LevelHealth, LevelTracker

        tracker = LevelTracker(top_level=4)
        assert tracker.record("rescale", 4, 3) == LevelHealth.HEALTHY
        assert tracker.record("rescale", 3, 2) == LevelHealth.HEALTHY
        assert tracker.record("rescale", 2, 1) == LevelHealth.WARNING
        tracker.record_refresh()

        summary = tracker.get_summary()
        assert summary["levels_consumed"] == 3
        assert summary["lowest_level"] == 1
        assert summary["operations_by_type"] == {"rescale": 3}
        assert summary["refreshes"] == 1
        assert summary["warnings_issued"] == 0

    def test_warns_at_level_zero(self, caplog):
        from services.fhe.depth_budget import LevelHealth, LevelTracker

        tracker = LevelTracker(top_level=1)
        seen = []
        tracker.add_callback(lambda op, level, health: seen.append((op, level, health)))

        with caplog.at_level(logging.WARNING, logger="services.fhe.depth_budget"):
            health = tracker.record("rescale", 1, 0)

        assert health == LevelHealth.CRITICAL
        assert seen == [("rescale", 0, LevelHealth.CRITICAL)]
        assert tracker.get_state().warnings_issued == 1
        assert "level 0" in caplog.text
