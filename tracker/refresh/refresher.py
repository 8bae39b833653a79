"""Single listing refresh: fetch, infer, merge."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Optional, Protocol

from models.listing import Listing, ListingStatus
from tracker.core.errors import FetchError, RateLimitError, TrackerError
from tracker.core.fetcher import PageResult
from tracker.inference.schema import ListingInference
from tracker.refresh.price_history import consolidate, update_daily
from tracker.utils.logger import get_logger

log = get_logger(__name__)


class PageFetcherLike(Protocol):
    async def fetch(self, url: str) -> PageResult: ...


class InferenceLike(Protocol):
    async def infer(self, url: str, page_text: str, page_title: str) -> ListingInference: ...


@dataclass(slots=True)
class RefreshOutcome:
    listing: Listing
    success: bool
    error: Optional[str] = None
    rate_limited: bool = False
    price_changed: bool = False


class ListingRefresher:
    """One pass over one listing. Never raises; every failure becomes an outcome."""

    def __init__(self, fetcher: PageFetcherLike, inference: InferenceLike, *, tz: Optional[tzinfo] = None) -> None:
        self.fetcher = fetcher
        self.inference = inference
        self.tz = tz

    async def refresh(self, listing: Listing, *, now: Optional[datetime] = None) -> RefreshOutcome:
        url = listing.source_url
        try:
            page = await self.fetcher.fetch(url)

            if page.expired:
                return self._expired(listing, page, now=now)

            if not page.ok:
                return self._failure(listing, f"HTTP {page.status}", error=f"HTTP error: {page.status}")

            inference = await self.inference.infer(
                url,
                page.text_content or "",
                page.page_title or listing.title,
            )
        except RateLimitError as exc:
            log.warning(f"Rate limited while refreshing {listing.id}: {exc.message}")
            return RefreshOutcome(listing=listing, success=False, error=exc.message, rate_limited=True)
        except FetchError as exc:
            log.warning(f"Fetch failed for {listing.id} ({url}): {exc.message}")
            return self._failure(listing, exc.message)
        except TrackerError as exc:
            log.error(f"Refresh failed for {listing.id} ({url}): {exc.message}")
            return self._failure(listing, exc.message)
        except Exception as exc:  # noqa: BLE001
            log.exception(f"Unexpected error refreshing {listing.id} ({url})")
            return self._failure(listing, str(exc) or exc.__class__.__name__)

        return self._merge(listing, inference, now=now)

    def _expired(self, listing: Listing, page: PageResult, *, now: Optional[datetime]) -> RefreshOutcome:
        timestamp = (now or datetime.now(timezone.utc)).isoformat()
        updated = listing.copy()
        updated.set_status(ListingStatus.ENDED, timestamp=timestamp)
        updated.record_success(timestamp=timestamp)
        log.info(f"Listing {listing.id} expired (HTTP {page.status})")
        return RefreshOutcome(listing=updated, success=True)

    def _failure(self, listing: Listing, reason: str, *, error: Optional[str] = None) -> RefreshOutcome:
        updated = listing.copy()
        updated.record_failure(reason)
        return RefreshOutcome(listing=updated, success=False, error=error or reason)

    def _merge(self, listing: Listing, inference: ListingInference, *, now: Optional[datetime]) -> RefreshOutcome:
        now = now or datetime.now(timezone.utc)
        timestamp = now.isoformat()
        updated = listing.copy()

        currency = inference.currency or listing.currency
        price_to_record = inference.price if inference.price > 0 else listing.current_price
        history = consolidate(listing.price_history, tz=self.tz)
        updated.price_history = update_daily(history, price_to_record, currency, now=now, tz=self.tz)

        price_changed = inference.price > 0 and inference.price != listing.current_price
        if inference.price > 0:
            updated.current_price = inference.price
        updated.currency = currency

        updated.set_status(inference.status, timestamp=timestamp)
        updated.record_success(timestamp=timestamp)

        if price_changed:
            log.info(f"Price change for {listing.id}: {listing.current_price} -> {inference.price} {currency}")
        return RefreshOutcome(listing=updated, success=True, price_changed=price_changed)


__all__ = ["ListingRefresher", "RefreshOutcome", "PageFetcherLike", "InferenceLike"]
