"""Daily price history consolidation.

A listing keeps at most one price point per calendar day. A refresh on a day
that already has a point replaces it so the day's entry always reflects the
latest observation, and ``consolidate`` repairs histories written before that
rule existed.
"""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from typing import Dict, List, Optional, Sequence

from models.price_point import PricePoint, parse_iso8601


def date_key(value: str | datetime, tz: Optional[tzinfo] = None) -> str:
    """Return the ``YYYY-MM-DD`` day of a timestamp in ``tz`` (UTC by default)."""
    moment = value if isinstance(value, datetime) else parse_iso8601(value)
    if moment is None:
        raise ValueError(f"Invalid timestamp: {value!r}")
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz or timezone.utc).date().isoformat()


def update_daily(
    history: Sequence[PricePoint],
    price: float,
    currency: str,
    *,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> List[PricePoint]:
    """Merge a new observation into ``history`` and return a new list."""
    now = now or datetime.now(timezone.utc)
    point = PricePoint(date=now.isoformat(), price=price, currency=currency)

    if not history:
        return [point]

    updated = list(history)
    if date_key(updated[-1].date, tz) == date_key(now, tz):
        updated[-1] = point
    else:
        updated.append(point)
    return updated


def consolidate(history: Sequence[PricePoint], *, tz: Optional[tzinfo] = None) -> List[PricePoint]:
    """Keep only the chronologically latest point for each day."""
    if len(history) <= 1:
        return list(history)

    ordered = sorted(history, key=lambda point: point.timestamp())
    by_day: Dict[str, PricePoint] = {}
    for point in ordered:
        by_day[date_key(point.date, tz)] = point

    return sorted(by_day.values(), key=lambda point: point.timestamp())


__all__ = [
    "date_key",
    "update_daily",
    "consolidate",
]
