"""
Configuration tests.
"""

import pytest


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    import os

    for name in list(os.environ):
        if name.startswith("HE_LOGREG_"):
            monkeypatch.delenv(name)


class TestSettings:
    """Settings defaults, environment overrides and validation."""

    def test_defaults_are_valid(self):
        from config.settings import Settings

        settings = Settings()
        assert settings.scheme.poly_modulus_degree == 16384
        assert settings.scheme.max_depth == 7
        assert settings.training.degree == 3
        assert settings.training.strategy == "horner"
        assert settings.validate() == []

    def test_env_overrides(self, monkeypatch):
        from config.settings import Settings

        monkeypatch.setenv("HE_LOGREG_POLY_MODULUS_DEGREE", "32768")
        monkeypatch.setenv("HE_LOGREG_COEFF_MOD_BIT_SIZES", "60, 40,40,40,40,40,40,40,40,40,60")
        monkeypatch.setenv("HE_LOGREG_DEGREE", "5")
        monkeypatch.setenv("HE_LOGREG_STRATEGY", "HORNER")
        monkeypatch.setenv("HE_LOGREG_LEARNING_RATE", "0.25")
        monkeypatch.setenv("HE_LOGREG_ITERATIONS", "3")

        settings = Settings.from_env()
        assert settings.scheme.poly_modulus_degree == 32768
        assert settings.scheme.max_depth == 9
        assert settings.training.degree == 5
        assert settings.training.strategy == "horner"
        assert settings.training.learning_rate == 0.25
        assert settings.training.iterations == 3
        assert settings.validate() == []

    def test_env_overrides_a_base(self, monkeypatch):
        from config.settings import Settings

        base = Settings()
        base.training.iterations = 42
        monkeypatch.setenv("HE_LOGREG_LEARNING_RATE", "2.0")

        settings = Settings.from_env(base)
        assert settings.training.iterations == 42
        assert settings.training.learning_rate == 2.0

    def test_development_defaults(self, monkeypatch):
        from config.settings import DeploymentEnvironment, Settings

        monkeypatch.setenv("HE_LOGREG_ENV", "development")
        settings = Settings.from_env()
        assert settings.environment == DeploymentEnvironment.DEVELOPMENT
        assert settings.observability.log_level == "DEBUG"
        assert settings.training.track_levels

    def test_log_settings_from_env(self, monkeypatch):
        from config.settings import DEFAULT_LOG_FORMAT, Settings

        assert Settings.from_env().observability.log_format == DEFAULT_LOG_FORMAT

        monkeypatch.setenv("HE_LOGREG_LOG_LEVEL", "warning")
        monkeypatch.setenv("HE_LOGREG_LOG_FORMAT", "%(levelname)s %(message)s")
        settings = Settings.from_env()
        assert settings.observability.log_level == "WARNING"
        assert settings.observability.log_format == "%(levelname)s %(message)s"
        assert settings.to_dict()["log_format"] == "%(levelname)s %(message)s"

    def test_insufficient_depth_is_an_error(self):
        from config.settings import Settings

        settings = Settings()
        settings.training.degree = 5
        issues = settings.validate()
        assert any(i.startswith("ERROR") and "needs 9 levels" in i for i in issues)

    def test_unused_levels_are_a_warning(self):
        from config.settings import Settings

        settings = Settings()
        settings.training.strategy = "tree"
        settings.training.degree = 3
        issues = settings.validate()
        assert issues == []

        settings.scheme.coeff_mod_bit_sizes = [60] + [40] * 8 + [60]
        settings.scheme.poly_modulus_degree = 32768
        issues = settings.validate()
        assert len(issues) == 1
        assert issues[0].startswith("WARNING")

    @pytest.mark.parametrize("field_name,value", [
        ("degree", 4),
        ("strategy", "newton"),
        ("learning_rate", 0.0),
        ("iterations", -1),
        ("report_every", 0),
    ])
    def test_invalid_training_values(self, field_name, value):
        from config.settings import Settings

        settings = Settings()
        setattr(settings.training, field_name, value)
        assert any(i.startswith("ERROR") for i in settings.validate())

    def test_validate_and_log_config(self, caplog):
        import logging

        from config.settings import validate_and_log_config

        with caplog.at_level(logging.INFO, logger="config.settings"):
            settings = validate_and_log_config()
        assert settings.training.degree == 3
        assert "Configuration loaded" in caplog.text
