"""Batch refresh run over all tracked listings.

One run loads the listing set, drops archived listings and ended listings past
their grace period, orders the rest by refresh priority and refreshes them one
at a time. Progress is written to the ``RefreshStatusStore`` after every step so
observers can follow the run live. A rate-limit signal from the inference
service ends the run early and shortens the delay before the next one.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional

from models.listing import Listing
from models.refresh_status import (
    ERROR,
    PENDING,
    REFRESHING,
    SUCCESS,
    PendingItem,
    RefreshedItem,
    RefreshErrorInfo,
    RefreshStatus,
)
from tracker.core.errors import PersistenceError
from tracker.core.events import LISTING_UPDATED
from tracker.core.repository import ListingRepository
from tracker.core.settings import RefreshSettings, load_refresh_settings
from tracker.core.state import RefreshStatusStore
from tracker.refresh.grace import filter_listings_for_refresh
from tracker.refresh.policy import format_interval, next_delay_minutes, next_run_time
from tracker.refresh.priority import sort_by_refresh_priority
from tracker.refresh.refresher import ListingRefresher, RefreshOutcome
from tracker.utils.logger import get_logger

log = get_logger(__name__)


@dataclass(slots=True)
class BatchResult:
    total: int
    succeeded: int
    failed: int
    rate_limited: bool
    next_delay_minutes: float
    skipped_reason: Optional[str] = None


class RefreshOrchestrator:
    def __init__(
        self,
        repository: ListingRepository,
        refresher: ListingRefresher,
        status_store: RefreshStatusStore,
        *,
        settings_provider: Callable[[], RefreshSettings] = load_refresh_settings,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.repository = repository
        self.refresher = refresher
        self.status_store = status_store
        self.settings_provider = settings_provider
        self.sleep = sleep
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def notifier(self):
        return self.status_store.notifier

    def select_listings(self, listings: List[Listing], settings: RefreshSettings) -> List[Listing]:
        """Eligible listings in the order they should be refreshed."""
        candidates = [listing for listing in listings if not listing.is_archived]
        eligible = filter_listings_for_refresh(candidates, settings.ended_grace_period_days, now=self.clock())
        excluded = len(listings) - len(eligible)
        if excluded:
            log.info(f"[refresh] SKIP {excluded} archived or ended listings")
        return sort_by_refresh_priority(eligible)

    async def run_batch(self) -> Optional[BatchResult]:
        """
        Run one refresh batch.

        Returns:
            BatchResult, or None when another run already holds the guard
        """
        if self.status_store.is_refreshing:
            log.info("Refresh already in progress, skipping")
            return None

        status = self.status_store.snapshot()
        status.is_refreshing = True

        settings: Optional[RefreshSettings] = None
        try:
            # The store holds the guard in memory even if this write fails.
            self.status_store.save(status)
            settings = self.settings_provider()
            return await self._run(status, settings)
        except asyncio.CancelledError:
            log.warning("Refresh run cancelled, releasing guard")
            self._release_guard(settings)
            raise
        except Exception:
            log.exception("Refresh run crashed, releasing guard")
            self._release_guard(settings)
            raise

    def _release_guard(self, settings: Optional[RefreshSettings]) -> None:
        try:
            self._finalize(
                self.status_store.snapshot(),
                settings or RefreshSettings(),
                succeeded=0,
                rate_limited=False,
                total=0,
                failed=0,
            )
        except (PersistenceError, OSError) as exc:
            log.error(f"Failed to persist released refresh state: {exc}")

    async def _run(self, status: RefreshStatus, settings: RefreshSettings) -> BatchResult:
        if not settings.api_key_configured:
            log.info("No inference API key configured, skipping background refresh")
            return self._finalize(
                status, settings, succeeded=0, failed=0, total=0, rate_limited=False,
                skipped_reason="missing_api_key",
            )

        ordered = self.select_listings(self.repository.list_listings(), settings)
        if not ordered:
            log.info("No listings eligible for refresh")
            return self._finalize(
                status, settings, succeeded=0, failed=0, total=0, rate_limited=False,
                skipped_reason="no_eligible_listings",
            )

        status.pending_items = [
            PendingItem(id=listing.id, title=listing.title, url=listing.source_url) for listing in ordered
        ]
        status.total_count = len(ordered)
        status.current_index = 0
        status.current_listing_title = None
        self.status_store.save(status)
        log.info(f"[refresh] START {len(ordered)} listings")

        succeeded = 0
        failed = 0
        rate_limited = False

        for index, listing in enumerate(ordered):
            status.current_index = index + 1
            status.current_listing_title = listing.title
            status.pending_items[index].status = REFRESHING
            self.status_store.save(status)

            start = time.perf_counter()
            outcome = await self.refresher.refresh(listing, now=self.clock())
            duration_ms = int((time.perf_counter() - start) * 1000)

            if outcome.rate_limited:
                # Interrupted item goes back to pending; the listing is not written.
                status.pending_items[index].status = PENDING
                self.status_store.save(status)
                rate_limited = True
                log.warning(
                    f"[refresh] STOP rate limited at {listing.id}, "
                    f"{len(ordered) - index} listings left for the next run"
                )
                break

            self._persist_listing(outcome)
            self._record_outcome(status, index, listing, outcome)
            if outcome.success:
                succeeded += 1
            else:
                failed += 1

            log.info(
                f"[refresh] {'OK' if outcome.success else 'FAIL'} {listing.id} "
                f"({index + 1}/{len(ordered)}) {duration_ms}ms"
                + (f" error={outcome.error}" if outcome.error else "")
            )
            self.status_store.save(status)
            self.notifier.publish(LISTING_UPDATED, {"id": listing.id, "success": outcome.success})

            if index < len(ordered) - 1 and settings.request_delay_seconds > 0:
                await self.sleep(settings.request_delay_seconds)

        return self._finalize(
            status,
            settings,
            succeeded=succeeded,
            failed=failed,
            total=len(ordered),
            rate_limited=rate_limited,
        )

    def _persist_listing(self, outcome: RefreshOutcome) -> None:
        try:
            self.repository.save(outcome.listing)
        except (PersistenceError, OSError) as exc:
            log.error(f"Failed to save listing {outcome.listing.id}: {exc}")

    def _record_outcome(
        self,
        status: RefreshStatus,
        index: int,
        listing: Listing,
        outcome: RefreshOutcome,
    ) -> None:
        timestamp = self.clock().isoformat()
        state = SUCCESS if outcome.success else ERROR
        status.pending_items[index].status = state
        status.push_recent(
            RefreshedItem(
                id=listing.id,
                title=listing.title,
                url=listing.source_url,
                status=state,
                timestamp=timestamp,
                error=outcome.error,
            )
        )
        if not outcome.success:
            status.push_error(
                RefreshErrorInfo(
                    id=listing.id,
                    title=listing.title,
                    url=listing.source_url,
                    error=outcome.error or "Unknown error",
                    timestamp=timestamp,
                )
            )

    def _finalize(
        self,
        status: RefreshStatus,
        settings: RefreshSettings,
        *,
        succeeded: int,
        failed: int,
        total: int,
        rate_limited: bool,
        skipped_reason: Optional[str] = None,
    ) -> BatchResult:
        now = self.clock()
        delay = next_delay_minutes(settings, rate_limited=rate_limited)

        status.last_refresh_count = succeeded
        status.pending_items = []
        status.current_index = 0
        status.total_count = 0
        status.current_listing_title = None
        status.last_refresh_time = now.isoformat()
        status.next_refresh_time = next_run_time(delay, now=now).isoformat()
        status.is_refreshing = False
        self.status_store.save(status)
        self.notifier.publish(LISTING_UPDATED, {"refreshed": succeeded, "failed": failed})

        summary = f"Refreshed {succeeded} listing{'s' if succeeded != 1 else ''}"
        if failed:
            summary += f", {failed} failed"
        if rate_limited:
            summary += f". Rate limited - retrying in {format_interval(delay)}."
        else:
            summary += f". Next refresh in {format_interval(delay)}."
        log.info(f"[refresh] DONE {summary}")

        return BatchResult(
            total=total,
            succeeded=succeeded,
            failed=failed,
            rate_limited=rate_limited,
            next_delay_minutes=delay,
            skipped_reason=skipped_reason,
        )


__all__ = ["RefreshOrchestrator", "BatchResult"]
