"""
netlog -- Centralised configuration via pydantic-settings.

Every tunable knob lives here.  Environment variables override defaults
using the ``NETLOG_`` prefix (e.g. ``NETLOG_BACKUP_INTERVAL_SECONDS=600``).

Usage:
    from netlog.config.settings import get_settings
    settings = get_settings()          # cached singleton
    print(settings.db_path)
"""

from __future__ import annotations

import os
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class NetlogSettings(BaseSettings):
    """Top-level configuration for the network connectivity logger."""

    # ------------------------------------------------------------------
    # Storage layout
    # ------------------------------------------------------------------
    data_dir: str = "./data"
    db_filename: str = "network_log.db"
    backup_dirname: str = "network_backups"

    # ------------------------------------------------------------------
    # Scheduled flush + archive
    # ------------------------------------------------------------------
    backup_interval_seconds: float = Field(default=3600.0, gt=0)

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------
    log_level: str = "INFO"
    log_format: str = "json"  # json | text
    metrics_enabled: bool = False
    prometheus_port: int = 8000

    # ------------------------------------------------------------------
    # Pydantic-settings config
    # ------------------------------------------------------------------
    model_config = SettingsConfigDict(
        env_prefix="NETLOG_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    @property
    def db_path(self) -> str:
        """Path of the canonical persistent file."""
        return os.path.join(self.data_dir, self.db_filename)

    @property
    def backup_dir(self) -> str:
        """Directory holding timestamped archive copies."""
        return os.path.join(self.data_dir, self.backup_dirname)


@lru_cache(maxsize=1)
def get_settings() -> NetlogSettings:
    """Return a cached singleton of the application settings.

    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    return NetlogSettings()
