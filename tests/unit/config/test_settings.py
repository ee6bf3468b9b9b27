"""
Unit tests for environment-driven settings.
"""

from pathlib import Path

import pytest

from geolens.config.settings import Settings, get_settings

ENV_NAMES = [
    "GEOLENS_DATA_DIR",
    "GEOLENS_GEO_BASE_URL",
    "GEOLENS_CONNECT_TIMEOUT",
    "GEOLENS_READ_TIMEOUT",
    "GEOLENS_MAX_RETRIES",
    "GEOLENS_CHUNK_SIZE",
    "GEOLENS_SSL_VERIFY",
    "GEOLENS_ROW_CAP",
    "GEOLENS_PREVIEW_ROWS",
    "GEOLENS_RAW_PREVIEW_LINES",
    "GEOLENS_CACHE_TTL_SECONDS",
    "GEOLENS_CACHE_MAX_ENTRIES",
    "GEOLENS_LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestSettings:
    def test_defaults(self, clean_env):
        settings = Settings()

        assert settings.DATA_DIR == Path("./data")
        assert settings.GEO_BASE_URL == "https://ftp.ncbi.nlm.nih.gov/geo/series"
        assert settings.timeout == (30.0, 60.0)
        assert settings.MAX_RETRIES == 2
        assert settings.CHUNK_SIZE == 32768
        assert settings.ROW_CAP == 1000
        assert settings.PREVIEW_ROWS == 100
        assert settings.RAW_PREVIEW_LINES == 100
        assert settings.CACHE_TTL_SECONDS is None
        assert settings.CACHE_MAX_ENTRIES is None
        assert settings.SSL_VERIFY is True
        assert settings.config_error is None

    def test_environment_overrides(self, clean_env):
        clean_env.setenv("GEOLENS_ROW_CAP", "50")
        clean_env.setenv("GEOLENS_GEO_BASE_URL", "http://mirror.local/geo/")
        clean_env.setenv("GEOLENS_CACHE_TTL_SECONDS", "300")
        clean_env.setenv("GEOLENS_CACHE_MAX_ENTRIES", "4")
        clean_env.setenv("GEOLENS_SSL_VERIFY", "false")

        settings = Settings()

        assert settings.ROW_CAP == 50
        assert settings.GEO_BASE_URL == "http://mirror.local/geo"
        assert settings.CACHE_TTL_SECONDS == 300.0
        assert settings.CACHE_MAX_ENTRIES == 4
        assert settings.SSL_VERIFY is False

    def test_invalid_limits_are_reported(self, clean_env):
        clean_env.setenv("GEOLENS_ROW_CAP", "0")
        clean_env.setenv("GEOLENS_MAX_RETRIES", "-1")

        settings = Settings()

        assert "GEOLENS_ROW_CAP must be positive" in settings.config_error
        assert "GEOLENS_MAX_RETRIES cannot be negative" in settings.config_error

    def test_get_setting(self, clean_env):
        settings = Settings()
        assert settings.get_setting("ROW_CAP") == 1000
        assert settings.get_setting("NOPE", "fallback") == "fallback"
        assert "ROW_CAP" in settings.get_all_settings()
        assert "_config_error" not in settings.get_all_settings()

    def test_singleton(self):
        assert get_settings() is get_settings()
