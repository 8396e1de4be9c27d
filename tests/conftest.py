"""Pytest configuration and shared fixtures."""
import os
import sys

import pytest

# Ensure the project root is on sys.path so 'netlog' is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from netlog.config.settings import NetlogSettings, get_settings
from netlog.persistence.manager import PersistenceManager


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings(tmp_path):
    return NetlogSettings(data_dir=str(tmp_path / "data"), log_format="text")


@pytest.fixture
def make_manager(settings):
    """Factory for unloaded managers sharing the same data directory."""
    def _make(**kwargs) -> PersistenceManager:
        return PersistenceManager.from_settings(settings, **kwargs)
    return _make
