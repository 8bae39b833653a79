"""Wiring of the refresh engine components from configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from tracker.core.config import Config
from tracker.core.events import Notifier
from tracker.core.fetcher import PageFetcher
from tracker.core.repository import ListingRepository
from tracker.core.state import RefreshStatusStore
from tracker.inference.gemini import GeminiInference
from tracker.jobs.refresh import RefreshOrchestrator
from tracker.refresh.refresher import ListingRefresher
from tracker.scheduler.scheduler import RefreshScheduler
from tracker.utils.logger import get_logger

log = get_logger(__name__)


@dataclass
class RefreshEngine:
    repository: ListingRepository
    status_store: RefreshStatusStore
    fetcher: PageFetcher
    inference: GeminiInference
    orchestrator: RefreshOrchestrator
    scheduler: RefreshScheduler

    @property
    def notifier(self) -> Notifier:
        return self.status_store.notifier

    async def close(self) -> None:
        await self.scheduler.shutdown()
        await self.fetcher.close()


def build_engine(data_dir: Optional[Path | str] = None) -> RefreshEngine:
    storage_cfg = Config.get("storage", default={}) or {}
    base = Path(data_dir or os.getenv("TRACKER_DATA_DIR") or storage_cfg.get("data_dir", "data"))
    listings_path = base / storage_cfg.get("listings_file", "listings.json")
    status_path = base / storage_cfg.get("status_file", "refresh_status.json")

    repository = ListingRepository(listings_path)
    status_store = RefreshStatusStore(status_path, Notifier())
    fetcher = PageFetcher()
    inference = GeminiInference()
    orchestrator = RefreshOrchestrator(repository, ListingRefresher(fetcher, inference), status_store)
    scheduler = RefreshScheduler(orchestrator, status_store)

    log.info(f"Refresh engine ready, data_dir={base}")
    return RefreshEngine(
        repository=repository,
        status_store=status_store,
        fetcher=fetcher,
        inference=inference,
        orchestrator=orchestrator,
        scheduler=scheduler,
    )


__all__ = ["RefreshEngine", "build_engine"]
