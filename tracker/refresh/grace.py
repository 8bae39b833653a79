"""Grace period handling for ended listings."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from models.listing import Listing, ListingStatus
from tracker.core.settings import DEFAULT_ENDED_GRACE_PERIOD_DAYS


def is_eligible(
    listing: Listing,
    grace_days: int = DEFAULT_ENDED_GRACE_PERIOD_DAYS,
    *,
    now: Optional[datetime] = None,
) -> bool:
    """Return True when ``listing`` should still be refreshed automatically.

    Ended listings keep being checked for ``grace_days`` after they ended so a
    transient "not found" page does not bury a live listing. Records from before
    status-change tracking fall back to ``last_seen_at``; an ended listing with
    neither timestamp stays eligible.
    """
    if listing.status != ListingStatus.ENDED:
        return True

    reference = listing.status_changed_datetime() or listing.last_seen_datetime()
    if reference is None:
        return True

    now = now or datetime.now(timezone.utc)
    return now - reference < timedelta(days=grace_days)


def filter_listings_for_refresh(
    listings: Iterable[Listing],
    grace_days: int = DEFAULT_ENDED_GRACE_PERIOD_DAYS,
    *,
    now: Optional[datetime] = None,
) -> List[Listing]:
    now = now or datetime.now(timezone.utc)
    return [listing for listing in listings if is_eligible(listing, grace_days, now=now)]


__all__ = ["is_eligible", "filter_listings_for_refresh"]
