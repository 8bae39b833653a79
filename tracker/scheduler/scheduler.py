"""Single-timer scheduler for background refresh runs.

Only one pending timer exists at a time: every re-arm replaces the job with id
``listing_refresh``. The planned wake-up is also persisted as
``next_refresh_time`` so a restarted process can pick up where it left off.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from models.price_point import parse_iso8601
from tracker.core.settings import RefreshSettings, clamp_frequency, load_refresh_settings
from tracker.core.state import RefreshStatusStore
from tracker.jobs.refresh import BatchResult, RefreshOrchestrator
from tracker.refresh.policy import format_interval, timer_delay_minutes
from tracker.utils.logger import get_logger, log_execution_time

log = get_logger(__name__)

REFRESH_JOB_ID = "listing_refresh"
ALREADY_RUNNING_MESSAGE = "Refresh already in progress"


@dataclass(slots=True)
class TriggerResult:
    success: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success}
        if self.error is not None:
            payload["error"] = self.error
        return payload


class RefreshScheduler:
    def __init__(
        self,
        orchestrator: RefreshOrchestrator,
        status_store: RefreshStatusStore,
        *,
        settings_provider: Callable[[], RefreshSettings] = load_refresh_settings,
        scheduler: Optional[AsyncIOScheduler] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.status_store = status_store
        self.settings_provider = settings_provider
        self.scheduler = scheduler or AsyncIOScheduler(timezone="UTC")
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._tasks: set[asyncio.Task] = set()

    async def start(self) -> None:
        """Recover stale run state, start the timer backend and arm the first run."""
        self.status_store.recover_stale()
        if not self.scheduler.running:
            self.scheduler.start()
        self.initialize_timer()

    def initialize_timer(self) -> Optional[asyncio.Task]:
        """
        Arm the timer from the persisted ``next_refresh_time``.

        An overdue wake-up runs straight away, a future one is kept, and with
        nothing persisted the configured frequency is used.
        """
        now = self.clock()
        raw_next = self.status_store.snapshot().next_refresh_time
        planned = parse_iso8601(raw_next)
        if raw_next and planned is None:
            log.warning(f"Ignoring unreadable next_refresh_time {raw_next!r}")

        if planned is not None and planned <= now:
            log.info("Scheduled refresh is overdue, running now")
            task = asyncio.get_running_loop().create_task(self.on_timer_fire())
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            return task

        if planned is not None:
            remaining = (planned - now).total_seconds() / 60
            self._arm(remaining, now=now)
            log.info(f"Restored refresh timer, next run in {format_interval(remaining)}")
            return None

        self.schedule(self.settings_provider().check_frequency_minutes)
        return None

    def schedule(self, minutes: float) -> datetime:
        """Persist the next wake-up and replace the pending timer."""
        now = self.clock()
        next_time = now + timedelta(minutes=minutes)
        self.status_store.update(next_refresh_time=next_time.isoformat())
        self._arm(minutes, now=now)
        log.info(f"Next refresh in {format_interval(minutes)}")
        return next_time

    def _arm(self, minutes: float, *, now: datetime) -> None:
        delay = timer_delay_minutes(minutes)
        self.scheduler.add_job(
            self.on_timer_fire,
            trigger=DateTrigger(run_date=now + timedelta(minutes=delay)),
            id=REFRESH_JOB_ID,
            replace_existing=True,
            max_instances=1,
            misfire_grace_time=None,
            coalesce=True,
        )

    @log_execution_time
    async def _run_and_reschedule(self) -> Optional[BatchResult]:
        try:
            result = await self.orchestrator.run_batch()
        except Exception:
            self.schedule(self.settings_provider().check_frequency_minutes)
            raise
        # None means another run owns the guard and will re-arm when it ends.
        if result is not None:
            self.schedule(result.next_delay_minutes)
        return result

    async def on_timer_fire(self) -> Optional[BatchResult]:
        try:
            return await self._run_and_reschedule()
        except Exception as exc:
            log.exception(f"[Scheduler] Refresh run failed | Error: {exc}")
            raise

    async def on_manual_trigger(self) -> TriggerResult:
        if self.status_store.is_refreshing:
            return TriggerResult(success=False, error=ALREADY_RUNNING_MESSAGE)
        try:
            result = await self._run_and_reschedule()
        except Exception as exc:  # noqa: BLE001
            log.error(f"Manual refresh failed: {exc}")
            return TriggerResult(success=False, error=str(exc) or exc.__class__.__name__)
        if result is None:
            return TriggerResult(success=False, error=ALREADY_RUNNING_MESSAGE)
        return TriggerResult(success=True)

    def on_settings_changed(self, minutes: float) -> datetime:
        return self.schedule(clamp_frequency(minutes))

    async def shutdown(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)


__all__ = ["RefreshScheduler", "TriggerResult", "REFRESH_JOB_ID", "ALREADY_RUNNING_MESSAGE"]
