"""Refresh orchestration helpers for background listing checks."""

from .grace import filter_listings_for_refresh, is_eligible
from .policy import format_interval, next_delay_minutes, next_run_time, timer_delay_minutes
from .price_history import consolidate, date_key, update_daily
from .priority import sort_by_refresh_priority
from .refresher import ListingRefresher, RefreshOutcome

__all__ = [
    "is_eligible",
    "filter_listings_for_refresh",
    "sort_by_refresh_priority",
    "update_daily",
    "consolidate",
    "date_key",
    "next_delay_minutes",
    "timer_delay_minutes",
    "next_run_time",
    "format_interval",
    "ListingRefresher",
    "RefreshOutcome",
]
