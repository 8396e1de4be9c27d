"""netlog -- configuration package."""

from netlog.config.settings import NetlogSettings, get_settings

__all__ = ["NetlogSettings", "get_settings"]
