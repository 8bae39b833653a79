"""Refresh ordering for the listing set."""

from __future__ import annotations

from typing import Iterable, List, Tuple

from models.listing import REFRESH_SUCCESS, Listing


def _sort_key(listing: Listing) -> Tuple[int, float]:
    if listing.never_refreshed:
        tier = 0
    elif listing.last_refresh_status == REFRESH_SUCCESS:
        tier = 1
    else:
        tier = 2

    last_seen = listing.last_seen_datetime()
    seen_ts = last_seen.timestamp() if last_seen else 0.0
    return (tier, seen_ts)


def sort_by_refresh_priority(listings: Iterable[Listing]) -> List[Listing]:
    """Never-refreshed first, then successes before errors, oldest first within a tier."""
    return sorted(listings, key=_sort_key)


__all__ = ["sort_by_refresh_priority"]
