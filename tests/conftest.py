from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Union

import pytest

from models.listing import Listing
from tracker.core.config import Config
from tracker.core.errors import RateLimitError
from tracker.core.fetcher import PageResult
from tracker.core.settings import RefreshSettings
from tracker.inference.schema import ListingInference

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def ago(**delta) -> str:
    return (NOW - timedelta(**delta)).isoformat()


def make_listing(listing_id: str = "item-1", **overrides) -> Listing:
    data = {
        "id": listing_id,
        "source_url": f"https://market.example.com/item/{listing_id}",
        "title": f"Listing {listing_id}",
        "current_price": 100.0,
        "currency": "USD",
        "status": "ACTIVE",
        "first_seen_at": ago(days=10),
        "last_seen_at": ago(days=1),
        "last_refresh_status": "success",
    }
    data.update(overrides)
    return Listing.from_dict(data)


def inference(price: float = 100.0, currency: str = "USD", available: bool = True, sold: bool = False):
    return ListingInference(price=price, currency=currency, is_available=available, is_sold=sold)


class FakeFetcher:
    """Returns canned pages keyed by URL; unknown URLs get a plain 200 page."""

    def __init__(self, pages: Optional[Dict[str, Union[PageResult, Exception]]] = None):
        self.pages = pages or {}
        self.calls: List[str] = []

    async def fetch(self, url: str) -> PageResult:
        self.calls.append(url)
        page = self.pages.get(url)
        if isinstance(page, Exception):
            raise page
        if page is None:
            return PageResult(expired=False, status=200, text_content=f"Page for {url}", page_title="Item")
        return page

    async def close(self):
        return None


class FakeInference:
    """Returns canned inference results keyed by URL."""

    def __init__(self, results: Optional[Dict[str, Union[ListingInference, Exception]]] = None, default=None):
        self.results = results or {}
        self.default = default or inference()
        self.calls: List[str] = []

    async def infer(self, url: str, page_text: str, page_title: str) -> ListingInference:
        self.calls.append(url)
        result = self.results.get(url, self.default)
        if isinstance(result, Exception):
            raise result
        return result


def rate_limited() -> RateLimitError:
    return RateLimitError("429 Resource has been exhausted", model="test-model")


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep tests off the real settings.yaml and environment."""
    monkeypatch.setenv("TRACKER_CONFIG", str(tmp_path / "missing-settings.yaml"))
    for name in ("GEMINI_API_KEY", "TRACKER_CHECK_FREQUENCY_MINUTES", "TRACKER_GRACE_PERIOD_DAYS"):
        monkeypatch.delenv(name, raising=False)
    Config.reset()
    yield
    Config.reset()


@pytest.fixture
def settings() -> RefreshSettings:
    return RefreshSettings(
        check_frequency_minutes=60,
        ended_grace_period_days=3,
        api_key="test-key",
        rate_limit_retry_minutes=1,
        request_delay_seconds=2,
    )


class FakeJob:
    def __init__(self, func, trigger, job_id):
        self.func = func
        self.trigger = trigger
        self.id = job_id
        self.next_run_time = trigger.run_date


class FakeAPScheduler:
    """Stands in for AsyncIOScheduler: keeps jobs in a dict, never fires them."""

    def __init__(self):
        self.running = False
        self.jobs = {}
        self.add_calls = 0

    def start(self):
        self.running = True

    def shutdown(self, wait=True):
        self.running = False

    def add_job(self, func, trigger=None, id=None, replace_existing=False, **kwargs):
        assert replace_existing
        assert kwargs["max_instances"] == 1
        self.add_calls += 1
        self.jobs[id] = FakeJob(func, trigger, id)

    def get_job(self, job_id):
        return self.jobs.get(job_id)