"""
config.py
Application settings, read from GYM_* environment variables or a local .env file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="GYM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    db_file: Path = Field(default_factory=lambda: Path(__file__).with_name("gym.db"))
    log_level: str = "INFO"

    # Hours from UTC used to decide which calendar day "today" is for the gym
    business_timezone_offset: int = -6

    currency_symbol: str = "$"

    # Created on first run; the owner is forced to change the password on first login
    default_admin_username: str = "admin"
    default_admin_password: str = "admin123"


_cached_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Return the settings singleton, building it on first use so that importing
    this module never fails on a bad environment.
    """
    global _cached_settings
    if _cached_settings is None:
        _cached_settings = Settings()
    return _cached_settings
