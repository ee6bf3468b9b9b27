"""
Pytest configuration and fixtures for the geolens test suite.

This module provides the core fixtures, mock configurations, and test
utilities shared by unit and integration tests.
"""

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Generator

import pytest

from geolens.config.settings import Settings
from geolens.services.data_access.geo_service import GEOService
from tests.mock_data import (
    MEDIUM_DATASET_CONFIG,
    SMALL_DATASET_CONFIG,
    MockDataConfig,
    write_downloaded_dataset,
)

# Keep library logging quiet during testing
logging.getLogger("geolens").setLevel(logging.ERROR)

# Test constants
TEST_WORKSPACE_PREFIX = "geolens_test_"
MOCK_GEO_BASE_URL = "https://geo.mock-ncbi.test/geo/series"


# ==============================================================================
# Pytest Configuration Hooks
# ==============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)


# ==============================================================================
# Core Infrastructure Fixtures
# ==============================================================================


@pytest.fixture(scope="session")
def test_config() -> Dict[str, Any]:
    """Global test configuration."""
    return {
        "workspace_prefix": TEST_WORKSPACE_PREFIX,
        "mock_geo_base_url": MOCK_GEO_BASE_URL,
        "cleanup_workspaces": True,
    }


@pytest.fixture(scope="function")
def temp_workspace(test_config: Dict[str, Any]) -> Generator[Path, None, None]:
    """Create isolated temporary workspace for each test."""
    workspace_path = Path(tempfile.mkdtemp(prefix=test_config["workspace_prefix"]))
    (workspace_path / "data").mkdir(exist_ok=True)

    try:
        yield workspace_path
    finally:
        if test_config["cleanup_workspaces"] and workspace_path.exists():
            shutil.rmtree(workspace_path, ignore_errors=True)


@pytest.fixture(scope="function")
def data_dir(temp_workspace: Path) -> Path:
    """Dataset root inside the temporary workspace."""
    return temp_workspace / "data"


@pytest.fixture(scope="function")
def test_settings(
    data_dir: Path, monkeypatch, test_config: Dict[str, Any]
) -> Settings:
    """Settings pointing at the temporary workspace with fast network limits."""
    monkeypatch.setenv("GEOLENS_DATA_DIR", str(data_dir))
    monkeypatch.setenv("GEOLENS_GEO_BASE_URL", test_config["mock_geo_base_url"])
    monkeypatch.setenv("GEOLENS_MAX_RETRIES", "0")
    monkeypatch.setenv("GEOLENS_CONNECT_TIMEOUT", "1")
    monkeypatch.setenv("GEOLENS_READ_TIMEOUT", "1")
    monkeypatch.setenv("GEOLENS_ROW_CAP", "1000")
    monkeypatch.setenv("GEOLENS_PREVIEW_ROWS", "100")
    monkeypatch.delenv("GEOLENS_CACHE_TTL_SECONDS", raising=False)
    monkeypatch.delenv("GEOLENS_CACHE_MAX_ENTRIES", raising=False)
    return Settings()


@pytest.fixture(scope="function")
def geo_service(data_dir: Path, test_settings: Settings) -> GEOService:
    """GEOService bound to the temporary workspace."""
    return GEOService(data_dir=data_dir, settings=test_settings)


# ==============================================================================
# Mock Data Fixtures
# ==============================================================================


@pytest.fixture(scope="function")
def small_config() -> MockDataConfig:
    return SMALL_DATASET_CONFIG


@pytest.fixture(scope="function")
def downloaded_dataset(data_dir: Path) -> Path:
    """A medium synthetic dataset already present on disk."""
    return write_downloaded_dataset(data_dir, MEDIUM_DATASET_CONFIG)
