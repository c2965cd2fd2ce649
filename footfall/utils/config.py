"""Environment-driven application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


DEFAULT_FOOTFALL_API_BASE_URL = "https://njs-01.optimuslab.space/lnu-footfall"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    log_level: str
    footfall_api_base_url: str
    footfall_request_timeout_seconds: float
    display_offset_hours: int
    default_display_ceiling: int
    display_ceiling_headroom: float
    default_max_capacity: int
    dashboard_api_base_url: str


def validate_settings(settings: Settings) -> None:
    if not settings.footfall_api_base_url.startswith(("http://", "https://")):
        raise ValueError("footfall_api_base_url must be an http(s) URL")
    if settings.footfall_request_timeout_seconds <= 0:
        raise ValueError("footfall_request_timeout_seconds must be > 0")
    if not -23 <= settings.display_offset_hours <= 23:
        raise ValueError("display_offset_hours must be between -23 and 23")
    if settings.default_display_ceiling <= 0:
        raise ValueError("default_display_ceiling must be > 0")
    if settings.display_ceiling_headroom < 1.0:
        raise ValueError("display_ceiling_headroom must be >= 1")
    if settings.default_max_capacity <= 0:
        raise ValueError("default_max_capacity must be > 0")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process from FOOTFALL_* environment variables."""
    settings = Settings(
        app_name=os.getenv("FOOTFALL_APP_NAME", "Footfall Occupancy Reports"),
        app_version=os.getenv("FOOTFALL_APP_VERSION", "0.1.0"),
        log_level=os.getenv("FOOTFALL_LOG_LEVEL", "INFO"),
        footfall_api_base_url=os.getenv(
            "FOOTFALL_API_BASE_URL",
            DEFAULT_FOOTFALL_API_BASE_URL,
        ).rstrip("/"),
        footfall_request_timeout_seconds=_env_float("FOOTFALL_REQUEST_TIMEOUT_SECONDS", 10.0),
        display_offset_hours=_env_int("FOOTFALL_DISPLAY_OFFSET_HOURS", 8),
        default_display_ceiling=_env_int("FOOTFALL_DEFAULT_DISPLAY_CEILING", 50),
        display_ceiling_headroom=_env_float("FOOTFALL_DISPLAY_CEILING_HEADROOM", 1.2),
        default_max_capacity=_env_int("FOOTFALL_DEFAULT_MAX_CAPACITY", 50),
        dashboard_api_base_url=os.getenv(
            "FOOTFALL_DASHBOARD_API_BASE_URL",
            "http://127.0.0.1:8000",
        ).rstrip("/"),
    )
    validate_settings(settings)
    return settings
