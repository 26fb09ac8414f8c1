"""Tests for settings and logging configuration."""

import pytest
import structlog
from pydantic import ValidationError

from py_citygen.config.settings import Settings
from py_citygen.engine import BlockManagerOptions
from py_citygen.utils.logging import configure_logging


class TestSettings:
    """Test environment driven settings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("CITYGEN_MIN_LOT_AREA", raising=False)
        settings = Settings()
        assert settings.default_street_width == 10.0
        assert settings.rebuild_debounce_ms == 300

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("CITYGEN_MIN_LOT_AREA", "150")
        monkeypatch.setenv("CITYGEN_LOT_JITTER_SEED", "harbour")

        settings = Settings()
        assert settings.min_lot_area == 150.0
        assert settings.lot_jitter_seed == "harbour"

    def test_invalid_environment_value(self, monkeypatch):
        monkeypatch.setenv("CITYGEN_DEFAULT_STREET_WIDTH", "0")
        with pytest.raises(ValidationError):
            Settings()

    def test_options_from_settings(self, monkeypatch):
        monkeypatch.setenv("CITYGEN_TARGET_LOT_WIDTH", "30")
        monkeypatch.setenv("CITYGEN_REBUILD_DEBOUNCE_MS", "50")

        options = BlockManagerOptions.from_settings(Settings())
        assert options.target_lot_width == 30.0
        assert options.rebuild_debounce_ms == 50

        rules = options.subdivision_rules()
        assert rules.target_lot_width == 30.0
        assert rules.jitter_seed == options.lot_jitter_seed


class TestLogging:
    """Test logging configuration."""

    @pytest.mark.parametrize("log_format", ["console", "json"])
    def test_configure(self, log_format):
        configure_logging("DEBUG", log_format)
        structlog.get_logger("py_citygen.test").info("Configured", log_format=log_format)
