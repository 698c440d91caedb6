"""Configuration package."""

from smallearns.config.settings import (
    RecurrenceSettings,
    Settings,
    StorageSettings,
    WriterSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "RecurrenceSettings",
    "Settings",
    "StorageSettings",
    "WriterSettings",
    "get_settings",
    "validate_all_settings",
]
