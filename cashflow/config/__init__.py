"""Configuration package."""

from cashflow.config.settings import (
    AppSettings,
    ConfigError,
    GeminiSettings,
    GoogleSheetsSettings,
    Settings,
    get_settings,
    load_backend_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "ConfigError",
    "GeminiSettings",
    "GoogleSheetsSettings",
    "Settings",
    "get_settings",
    "load_backend_settings",
    "validate_all_settings",
]
