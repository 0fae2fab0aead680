"""Configuration package."""

from finyvo_auth.config.settings import (
    AppSettings,
    AuthSettings,
    Settings,
    StorageSettings,
    SupabaseSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "AuthSettings",
    "Settings",
    "StorageSettings",
    "SupabaseSettings",
    "get_settings",
    "validate_all_settings",
]
