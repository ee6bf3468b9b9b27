"""
Application settings and configuration.

This module centralizes all configuration settings for geolens. Every value
can be overridden through environment variables (or a ``.env`` file).
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv


def _optional_int(name: str) -> Optional[int]:
    raw = os.environ.get(name, "").strip()
    return int(raw) if raw else None


def _optional_float(name: str) -> Optional[float]:
    raw = os.environ.get(name, "").strip()
    return float(raw) if raw else None


class Settings:
    """
    Application settings with environment variable support.

    This class manages application-wide settings with fallbacks
    and environment variable overrides for easier configuration
    in different environments, especially in containers.
    """

    def __init__(self):
        """Initialize application settings."""
        load_dotenv()

        # Workspace
        self.DATA_DIR = Path(os.environ.get("GEOLENS_DATA_DIR", "./data"))

        # Remote GEO layout
        self.GEO_BASE_URL = os.environ.get(
            "GEOLENS_GEO_BASE_URL", "https://ftp.ncbi.nlm.nih.gov/geo/series"
        ).rstrip("/")

        # Network settings
        self.CONNECT_TIMEOUT = float(os.environ.get("GEOLENS_CONNECT_TIMEOUT", "30"))
        self.READ_TIMEOUT = float(os.environ.get("GEOLENS_READ_TIMEOUT", "60"))
        self.MAX_RETRIES = int(os.environ.get("GEOLENS_MAX_RETRIES", "2"))
        self.CHUNK_SIZE = int(os.environ.get("GEOLENS_CHUNK_SIZE", "32768"))
        self.SSL_VERIFY = os.environ.get("GEOLENS_SSL_VERIFY", "true").lower() == "true"

        # Parsing limits
        self.ROW_CAP = int(os.environ.get("GEOLENS_ROW_CAP", "1000"))
        self.PREVIEW_ROWS = int(os.environ.get("GEOLENS_PREVIEW_ROWS", "100"))
        self.RAW_PREVIEW_LINES = int(
            os.environ.get("GEOLENS_RAW_PREVIEW_LINES", "100")
        )

        # Parsed dataset cache (unset means process lifetime / unbounded)
        self.CACHE_TTL_SECONDS = _optional_float("GEOLENS_CACHE_TTL_SECONDS")
        self.CACHE_MAX_ENTRIES = _optional_int("GEOLENS_CACHE_MAX_ENTRIES")

        # Logging settings
        self.LOG_LEVEL = os.environ.get("GEOLENS_LOG_LEVEL", "WARNING").upper()

        is_valid, error_msg = self.validate_configuration()
        # Don't raise here - let the CLI report it
        self._config_error = None if is_valid else error_msg

    @property
    def timeout(self) -> tuple:
        """(connect, read) timeout tuple in the form requests expects."""
        return (self.CONNECT_TIMEOUT, self.READ_TIMEOUT)

    def get_all_settings(self) -> Dict[str, Any]:
        """
        Get all public settings as a dictionary.

        Returns:
            dict: Upper-case settings and their values
        """
        return {
            key: value
            for key, value in self.__dict__.items()
            if key.isupper() and not key.startswith("_")
        }

    def get_setting(self, name: str, default: Any = None) -> Any:
        """
        Get a setting by name.

        Args:
            name: Name of the setting
            default: Value returned when the setting does not exist

        Returns:
            Any: Setting value
        """
        return getattr(self, name, default)

    def validate_configuration(self) -> tuple:
        """
        Validate numeric limits.

        Returns:
            tuple: (is_valid, error_message)
        """
        problems = []
        if self.ROW_CAP <= 0:
            problems.append("GEOLENS_ROW_CAP must be positive")
        if self.PREVIEW_ROWS <= 0:
            problems.append("GEOLENS_PREVIEW_ROWS must be positive")
        if self.CHUNK_SIZE <= 0:
            problems.append("GEOLENS_CHUNK_SIZE must be positive")
        if self.CONNECT_TIMEOUT <= 0 or self.READ_TIMEOUT <= 0:
            problems.append("Network timeouts must be positive")
        if self.MAX_RETRIES < 0:
            problems.append("GEOLENS_MAX_RETRIES cannot be negative")
        if self.CACHE_MAX_ENTRIES is not None and self.CACHE_MAX_ENTRIES <= 0:
            problems.append("GEOLENS_CACHE_MAX_ENTRIES must be positive when set")

        if problems:
            return False, "; ".join(problems)
        return True, ""

    @property
    def config_error(self) -> Optional[str]:
        return self._config_error


# Create singleton instance
settings = Settings()


def get_settings() -> Settings:
    """
    Get the application settings.

    Returns:
        Settings: Application settings
    """
    return settings
