"""Next-run interval policy."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from tracker.core.settings import MIN_TIMER_DELAY_MINUTES, RefreshSettings

MINUTES_PER_HOUR = 60
MINUTES_PER_DAY = 24 * 60


def next_delay_minutes(settings: RefreshSettings, *, rate_limited: bool) -> float:
    if rate_limited:
        return settings.rate_limit_retry_minutes
    return settings.check_frequency_minutes


def timer_delay_minutes(minutes: float) -> float:
    """Clamp a delay to the smallest interval the timer can honor."""
    return max(MIN_TIMER_DELAY_MINUTES, float(minutes))


def next_run_time(minutes: float, *, now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now + timedelta(minutes=minutes)


def format_interval(minutes: float) -> str:
    if minutes < 1:
        seconds = round(minutes * 60)
        return f"{seconds} seconds"
    if minutes < MINUTES_PER_HOUR:
        value = round(minutes, 1) if minutes % 1 else int(minutes)
        return f"{value} minute{'s' if value != 1 else ''}"
    if minutes < MINUTES_PER_DAY:
        hours = round(minutes / MINUTES_PER_HOUR)
        return f"{hours} hour{'s' if hours != 1 else ''}"
    days = round(minutes / MINUTES_PER_DAY)
    return f"{days} day{'s' if days != 1 else ''}"


__all__ = ["next_delay_minutes", "timer_delay_minutes", "next_run_time", "format_interval"]
