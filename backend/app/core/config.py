"""
Settings access point.

Import ``settings`` from here; tests that change the environment call
``get_settings.cache_clear()`` before re-reading.
"""
from app.core.settings import Settings, get_settings

settings: Settings = get_settings()

__all__ = ["settings", "get_settings", "Settings"]
