"""Runtime settings for the refresh engine."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Optional

from tracker.core.config import Config
from tracker.core.errors import ConfigError

MIN_CHECK_FREQUENCY_MINUTES = 0.167  # 10 seconds
MAX_CHECK_FREQUENCY_MINUTES = 43200.0  # 30 days
DEFAULT_CHECK_FREQUENCY_MINUTES = 60.0

MIN_ENDED_GRACE_PERIOD_DAYS = 1
MAX_ENDED_GRACE_PERIOD_DAYS = 30
DEFAULT_ENDED_GRACE_PERIOD_DAYS = 3

RATE_LIMIT_RETRY_MINUTES = 1.0
MIN_TIMER_DELAY_MINUTES = 0.1
DEFAULT_REQUEST_DELAY_SECONDS = 2.0


def clamp_frequency(minutes: float) -> float:
    return max(MIN_CHECK_FREQUENCY_MINUTES, min(float(minutes), MAX_CHECK_FREQUENCY_MINUTES))


def clamp_grace_days(days: int) -> int:
    return max(MIN_ENDED_GRACE_PERIOD_DAYS, min(int(days), MAX_ENDED_GRACE_PERIOD_DAYS))


@dataclass(slots=True)
class RefreshSettings:
    """Snapshot of the user-tunable refresh settings."""

    check_frequency_minutes: float = DEFAULT_CHECK_FREQUENCY_MINUTES
    ended_grace_period_days: int = DEFAULT_ENDED_GRACE_PERIOD_DAYS
    api_key: Optional[str] = None
    rate_limit_retry_minutes: float = RATE_LIMIT_RETRY_MINUTES
    request_delay_seconds: float = DEFAULT_REQUEST_DELAY_SECONDS

    def __post_init__(self) -> None:
        self.check_frequency_minutes = clamp_frequency(self.check_frequency_minutes)
        self.ended_grace_period_days = clamp_grace_days(self.ended_grace_period_days)
        self.rate_limit_retry_minutes = max(float(self.rate_limit_retry_minutes), MIN_TIMER_DELAY_MINUTES)
        self.request_delay_seconds = max(float(self.request_delay_seconds), 0.0)
        self.api_key = self.api_key or None

    @property
    def api_key_configured(self) -> bool:
        return bool(self.api_key)


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None and value != "":
            return value
    return None


def _number(value: Any, cast, key: str):
    try:
        return cast(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for {key}: {value!r}", key=key) from e


def load_refresh_settings() -> RefreshSettings:
    """Read settings fresh from environment and settings.yaml.

    Environment variables win over the YAML ``refresh`` section so deployments
    can override without touching the file. Called at the start of every run.
    """

    frequency = _first(
        os.getenv("TRACKER_CHECK_FREQUENCY_MINUTES"),
        Config.get("refresh", "check_frequency_minutes"),
        DEFAULT_CHECK_FREQUENCY_MINUTES,
    )
    grace_days = _first(
        os.getenv("TRACKER_GRACE_PERIOD_DAYS"),
        Config.get("refresh", "ended_grace_period_days"),
        DEFAULT_ENDED_GRACE_PERIOD_DAYS,
    )
    return RefreshSettings(
        check_frequency_minutes=_number(frequency, float, "check_frequency_minutes"),
        ended_grace_period_days=_number(grace_days, int, "ended_grace_period_days"),
        api_key=_first(os.getenv("GEMINI_API_KEY"), Config.get("inference", "api_key")),
        rate_limit_retry_minutes=_number(
            Config.get("refresh", "rate_limit_retry_minutes", default=RATE_LIMIT_RETRY_MINUTES),
            float,
            "rate_limit_retry_minutes",
        ),
        request_delay_seconds=_number(
            Config.get("refresh", "request_delay_seconds", default=DEFAULT_REQUEST_DELAY_SECONDS),
            float,
            "request_delay_seconds",
        ),
    )


__all__ = [
    "RefreshSettings",
    "load_refresh_settings",
    "clamp_frequency",
    "clamp_grace_days",
    "MIN_CHECK_FREQUENCY_MINUTES",
    "MAX_CHECK_FREQUENCY_MINUTES",
    "DEFAULT_CHECK_FREQUENCY_MINUTES",
    "MIN_ENDED_GRACE_PERIOD_DAYS",
    "MAX_ENDED_GRACE_PERIOD_DAYS",
    "DEFAULT_ENDED_GRACE_PERIOD_DAYS",
    "RATE_LIMIT_RETRY_MINUTES",
    "MIN_TIMER_DELAY_MINUTES",
]
