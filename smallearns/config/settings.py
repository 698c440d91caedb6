"""
Configuration Management for the SmallEarns data store

Uses pydantic-settings for type-safe configuration from environment variables.

All tunables of the local store (where data lives, how long the write
debounce waits, how far ahead recurring appointments are generated) are
declared here and validated when first accessed.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Durable key-value storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SMALLEARNS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    data_dir: Path = Field(
        default=Path.home() / ".smallearns",
        description="Directory holding one JSON file per storage key"
    )
    key_namespace: str = Field(
        default="smallearns_",
        min_length=1,
        description="Prefix for every collection key"
    )

    # Retry policy for durable writes
    write_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="How many times a failed file write is attempted"
    )
    write_retry_wait_seconds: float = Field(
        default=0.05,
        ge=0.0,
        le=5.0,
        description="Base wait between write attempts (exponential)"
    )

    @field_validator('key_namespace')
    @classmethod
    def validate_key_namespace(cls, v: str) -> str:
        """Keys become file names, so keep them free of path separators."""
        if "/" in v or "\\" in v:
            raise ValueError(f"Key namespace cannot contain path separators: {v!r}")
        return v


class WriterSettings(BaseSettings):
    """Debounced writer configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SMALLEARNS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    debounce_ms: int = Field(
        default=500,
        ge=0,
        le=5000,
        description="Quiet interval before a collection is written"
    )

    @property
    def debounce_seconds(self) -> float:
        """Quiet interval in seconds, as asyncio timers expect."""
        return self.debounce_ms / 1000


class RecurrenceSettings(BaseSettings):
    """Recurring appointment generation configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SMALLEARNS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    generation_horizon_months: int = Field(
        default=3,
        ge=1,
        le=24,
        description="How many calendar months ahead occurrences are materialized"
    )
    generated_note_suffix: str = Field(
        default="(Recurring)",
        description="Marker appended to the notes of generated appointments"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def writer(self) -> WriterSettings:
        return WriterSettings()

    @property
    def recurrence(self) -> RecurrenceSettings:
        return RecurrenceSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings sections.

    Returns a dict of {section_name: is_valid}, plus a
    `<section>_error` entry for every section that failed.
    """
    results: dict = {}
    settings = get_settings()

    for section in ("storage", "writer", "recurrence"):
        try:
            getattr(settings, section)
            results[section] = True
        except Exception as e:
            results[section] = False
            results[f"{section}_error"] = str(e)

    return results
