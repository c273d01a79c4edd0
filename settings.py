from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import time
from functools import lru_cache
from typing import Optional, Sequence


_DATABASE_URL_ENVS = (
    "DATABASE_URL",
    "DB_CONNECTION_STRING",
    "AZURE_DB_CONNECTION",
)
_SOURCE_URL_ENV = "POOL_SOURCE_URL"
_POLL_INTERVAL_ENV = "POLL_INTERVAL_SECONDS"
_FETCH_TIMEOUT_ENV = "FETCH_TIMEOUT_SECONDS"
_USER_AGENT_ENV = "FETCH_USER_AGENT"
_OPENS_AT_ENV = "WINDOW_OPENS_AT"
_LATE_OPENS_AT_ENV = "WINDOW_LATE_OPENS_AT"
_LATE_WEEKDAY_ENV = "WINDOW_LATE_WEEKDAY"
_CLOSES_AT_ENV = "WINDOW_CLOSES_AT"
_TIMEZONE_ENV = "WINDOW_TIMEZONE"
_LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_SOURCE_URL = "https://samk.cz/aquapark-kladno"
DEFAULT_USER_AGENT = "pool-occupancy/0.1"

_WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


@dataclass(frozen=True)
class Settings:
    database_url: Optional[str]
    source_url: str
    poll_interval_seconds: float
    fetch_timeout_seconds: float
    user_agent: str
    opens_at: time
    late_opens_at: time
    late_opening_weekday: Optional[int]
    closes_at: time
    timezone: str
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_first_env(names: Sequence[str]) -> Optional[str]:
    for name in names:
        value = os.getenv(name)
        if value and value.strip():
            return value.strip()
    return None


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_time(name: str, default: time) -> time:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        return time.fromisoformat(candidate)
    except ValueError:
        return default


def _read_weekday(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if not candidate:
        return default
    if candidate in {"none", "off", "-"}:
        return None
    if candidate in _WEEKDAYS:
        return _WEEKDAYS.index(candidate)
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if 0 <= parsed <= 6 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        database_url=_read_first_env(_DATABASE_URL_ENVS),
        source_url=_read_str_env(_SOURCE_URL_ENV, DEFAULT_SOURCE_URL),
        poll_interval_seconds=_read_positive_float(_POLL_INTERVAL_ENV, 300.0),
        fetch_timeout_seconds=_read_positive_float(_FETCH_TIMEOUT_ENV, 20.0),
        user_agent=_read_str_env(_USER_AGENT_ENV, DEFAULT_USER_AGENT),
        opens_at=_read_time(_OPENS_AT_ENV, time(8, 30)),
        late_opens_at=_read_time(_LATE_OPENS_AT_ENV, time(11, 0)),
        late_opening_weekday=_read_weekday(_LATE_WEEKDAY_ENV, 0),
        closes_at=_read_time(_CLOSES_AT_ENV, time(20, 30)),
        timezone=_read_str_env(_TIMEZONE_ENV, "UTC"),
        log_level=_read_log_level("INFO"),
    )


def database_url_env_names() -> tuple[str, ...]:
    return _DATABASE_URL_ENVS
