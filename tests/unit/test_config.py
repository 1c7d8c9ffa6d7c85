"""
Unit tests for the static Config singleton.

Covers environment loading with range-checked fallbacks, the config summary,
and validation of backend settings.
"""

import pytest

from promo_engine.core.config import Config, StorageBackend
from promo_engine.core.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def reload_config():
    """Reload from the restored environment once monkeypatch has undone its changes."""
    yield
    Config.load()


@pytest.mark.unit
class TestConfigLoad:
    """Environment parsing with safe fallbacks."""

    def test_defaults(self, monkeypatch):
        """Unset keys take their documented defaults."""
        for key in ("STORAGE_BACKEND", "PLAYER_LOG_RETENTION", "REDIS_KEY_PREFIX"):
            monkeypatch.delenv(key, raising=False)

        Config.load()

        assert Config.storage_backend() is StorageBackend.MEMORY
        assert Config.PLAYER_LOG_RETENTION == 100
        assert Config.REDIS_KEY_PREFIX == "promo:"

    def test_reads_environment(self, monkeypatch):
        """Values are read case-insensitively and coerced."""
        # Arrange
        monkeypatch.setenv("STORAGE_BACKEND", "Redis")
        monkeypatch.setenv("PLAYER_LOG_RETENTION", "25")
        monkeypatch.setenv("DATABASE_ECHO", "yes")

        # Act
        Config.load()

        # Assert
        assert Config.storage_backend() is StorageBackend.REDIS
        assert Config.PLAYER_LOG_RETENTION == 25
        assert Config.DATABASE_ECHO is True

    def test_out_of_range_int_falls_back(self, monkeypatch):
        """Out-of-range integers fall back and are recorded."""
        monkeypatch.setenv("PLAYER_LOG_RETENTION", "0")

        Config.load()

        assert Config.PLAYER_LOG_RETENTION == 100
        assert "PLAYER_LOG_RETENTION" in Config.get_metrics().validation_errors

    def test_invalid_bool_falls_back(self, monkeypatch):
        """Unrecognized booleans fall back to the default."""
        monkeypatch.setenv("DATABASE_ECHO", "maybe")

        Config.load()

        assert Config.DATABASE_ECHO is False

    def test_unknown_backend_falls_back_to_memory(self, monkeypatch):
        """An unknown backend reads as memory until validated."""
        monkeypatch.setenv("STORAGE_BACKEND", "cassandra")

        Config.load()

        assert Config.storage_backend() is StorageBackend.MEMORY

    def test_testing_environment(self):
        """The suite runs in the testing environment."""
        assert Config.is_testing() is True
        assert Config.is_production() is False

    def test_summary_hides_database_url(self, monkeypatch):
        """The summary reports the URL presence, never its value."""
        monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://user:secret@db/promo")

        Config.load()
        summary = Config.get_config_summary()

        assert summary["database_url_set"] is True
        assert "secret" not in str(summary)


@pytest.mark.unit
class TestConfigValidate:
    """Startup validation."""

    def test_unknown_backend_rejected(self, monkeypatch):
        """validate rejects an unknown backend."""
        monkeypatch.setenv("STORAGE_BACKEND", "cassandra")

        with pytest.raises(ConfigurationError) as exc_info:
            Config.validate()

        assert exc_info.value.config_key == "STORAGE_BACKEND"
        assert exc_info.value.error_code == "CONFIG_ERROR"

    def test_database_requires_url(self, monkeypatch):
        """The database backend needs DATABASE_URL."""
        monkeypatch.setenv("STORAGE_BACKEND", "database")
        monkeypatch.delenv("DATABASE_URL", raising=False)

        with pytest.raises(ConfigurationError) as exc_info:
            Config.validate()

        assert exc_info.value.config_key == "DATABASE_URL"

    def test_invalid_log_level_is_reset(self, monkeypatch):
        """An invalid log level is reset to INFO."""
        monkeypatch.setenv("STORAGE_BACKEND", "memory")
        monkeypatch.setenv("LOG_LEVEL", "LOUD")

        Config.validate()

        assert Config.LOG_LEVEL == "INFO"
