"""Runtime configuration for the class scheduling service."""

from __future__ import annotations

from datetime import tzinfo
from functools import lru_cache

from dateutil import tz
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from ``CLASSBOOK_*`` environment variables or ``.env``."""

    app_title: str = "Class Scheduling Service"
    log_level: str = "INFO"

    # Weekday and time-of-day of absolute commitments are read in this zone.
    timezone: str = "UTC"

    # Session generation normally drops occurrences that already started.
    generate_past_sessions: bool = False

    model_config = SettingsConfigDict(env_prefix="CLASSBOOK_", env_file=".env")

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        if tz.gettz(value) is None:
            raise ValueError(f"Unknown timezone: {value}")
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    @property
    def tzinfo(self) -> tzinfo:
        return tz.gettz(self.timezone)


@lru_cache
def get_settings() -> Settings:
    return Settings()


def scheduling_tz() -> tzinfo:
    """Return the configured scheduling timezone."""
    return get_settings().tzinfo
