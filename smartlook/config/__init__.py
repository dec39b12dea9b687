"""Configuration helpers."""

from .settings import ConfigurationError, SmartLookSettings, get_settings

__all__ = ["ConfigurationError", "SmartLookSettings", "get_settings"]
