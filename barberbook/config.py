"""Default configuration for the barberbook backend."""
from __future__ import annotations

import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


class Config:
    """Settings read from the environment with sensible local defaults."""

    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///barberbook.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Comma separated list, "*" allows every origin.
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Directory where cached weekly hours are mirrored as JSON; unset keeps the cache in memory only.
    HOURS_CACHE_DIR = os.environ.get("HOURS_CACHE_DIR") or None

    BASE_SLOT_MINUTES = _env_int("BASE_SLOT_MINUTES", 15)
    MAX_AVAILABILITY_DAYS = _env_int("MAX_AVAILABILITY_DAYS", 62)
    WAITLIST_DEFAULT_DAYS = _env_int("WAITLIST_DEFAULT_DAYS", 30)
    HAIR_PROFILE_MAX_AGE_MONTHS = _env_int("HAIR_PROFILE_MAX_AGE_MONTHS", 6)
