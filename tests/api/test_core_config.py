"""
Tests for Core Configuration Modules.

Tests cover:
- Settings defaults and environment overrides
- Logging setup utilities
"""
import logging

import pytest

from authserver.core.settings import Settings
from authserver.utils.logging_setup import (
    NOISY_LOGGERS,
    configure_basic_logging,
    resolve_level,
    setup_logging,
)


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, monkeypatch):
        """Should expose the protocol endpoint and CORS defaults."""
        monkeypatch.delenv("DATABASE_URL", raising=False)
        s = Settings(_env_file=None)

        assert s.protocol_endpoint_prefix == "/oauth2/"
        assert s.cors_allowed_methods == ["GET", "POST", "OPTIONS"]
        assert s.cors_max_age_seconds == 3600
        assert s.geoip_enabled is False
        assert s.unknown_client_label == "Unknown client"

    def test_environment_override(self, monkeypatch):
        """Should read values from the environment."""
        monkeypatch.setenv("DATABASE_URL", "postgresql://auth@db/authserver")
        monkeypatch.setenv("REDIS_URL", "redis://cache:6379/2")
        monkeypatch.setenv("GEOIP_ENABLED", "true")

        s = Settings(_env_file=None)

        assert s.database_url == "postgresql://auth@db/authserver"
        assert s.redis_url == "redis://cache:6379/2"
        assert s.geoip_enabled is True

    def test_generated_secret(self, monkeypatch):
        """Should generate a JWT secret when none is configured."""
        monkeypatch.delenv("JWT_SECRET_KEY", raising=False)

        assert len(Settings(_env_file=None).jwt_secret_key) >= 32


class TestResolveLevel:
    """Tests for resolve_level."""

    @pytest.mark.parametrize(
        "level,expected",
        [("debug", logging.DEBUG), ("INFO", logging.INFO), (" warning ", logging.WARNING), (logging.ERROR, logging.ERROR)],
    )
    def test_known_levels(self, level, expected):
        """Should accept level names in any case and numeric levels."""
        assert resolve_level(level) == expected

    def test_unknown_name(self):
        """Should fall back to INFO for an unknown name."""
        assert resolve_level("chatty") == logging.INFO


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_console_handler(self):
        """Should attach a single console handler at the requested level."""
        logger = setup_logging("authserver.test.console", level="debug")

        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1

    def test_no_duplicate_handlers(self):
        """Should replace handlers when called again."""
        setup_logging("authserver.test.reload")
        logger = setup_logging("authserver.test.reload")

        assert len(logger.handlers) == 1

    def test_file_handler(self, tmp_path):
        """Should also write to a log file when asked."""
        log_file = tmp_path / "logs" / "authserver.log"
        logger = setup_logging("authserver.test.file", log_file=log_file)

        logger.info("authorization revoked")
        for handler in logger.handlers:
            handler.flush()

        assert "authorization revoked" in log_file.read_text()
        for handler in logger.handlers:
            handler.close()

    def test_quiets_noisy_loggers(self):
        """Should keep third-party loggers at WARNING or above."""
        setup_logging("authserver.test.noisy", level=logging.DEBUG)

        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level >= logging.WARNING


class TestConfigureBasicLogging:
    """Tests for configure_basic_logging."""

    def test_does_not_raise(self):
        """Should configure the root logger without error."""
        configure_basic_logging(level="info")
