import asyncio
from datetime import timedelta

import pytest

from conftest import NOW, FakeFetcher, FakeInference, ago, inference, make_listing, rate_limited
from models.listing import ListingStatus
from models.refresh_status import ERROR, PENDING, REFRESHING, SUCCESS, RefreshStatus
from tracker.core.errors import PersistenceError
from tracker.core.events import LISTING_UPDATED
from tracker.core.fetcher import PageResult
from tracker.core.repository import ListingRepository
from tracker.core.settings import RefreshSettings
from tracker.core import state as state_module
from tracker.core.state import RefreshStatusStore
from tracker.jobs.refresh import RefreshOrchestrator
from tracker.refresh.refresher import ListingRefresher


class Harness:
    def __init__(self, tmp_path, settings, listings, fetcher=None, infer=None):
        self.repository = ListingRepository(tmp_path / "listings.json")
        self.repository.save_all(listings)
        self.store = RefreshStatusStore(tmp_path / "refresh_status.json")
        self.fetcher = fetcher or FakeFetcher()
        self.infer = infer or FakeInference()
        self.sleeps = []
        self.snapshots = []
        self.store.notifier.add_listener(lambda event: self.snapshots.append(self.store.snapshot()))

        async def fake_sleep(seconds):
            self.sleeps.append(seconds)
            await asyncio.sleep(0)

        self.orchestrator = RefreshOrchestrator(
            self.repository,
            ListingRefresher(self.fetcher, self.infer),
            self.store,
            settings_provider=lambda: settings,
            sleep=fake_sleep,
            clock=lambda: NOW,
        )

    def run(self):
        return asyncio.run(self.orchestrator.run_batch())


def _five_listings():
    # Sorted order is i1..i5: all successful, oldest last_seen first.
    return [make_listing(f"i{n}", last_seen_at=ago(days=10 - n)) for n in range(1, 6)]


def test_batch_refreshes_all_eligible_listings(tmp_path, settings):
    harness = Harness(tmp_path, settings, _five_listings(), infer=FakeInference(default=inference(price=42.0)))
    result = harness.run()

    assert result.total == 5
    assert result.succeeded == 5
    assert result.failed == 0
    assert not result.rate_limited
    assert result.next_delay_minutes == 60
    assert all(listing.current_price == 42.0 for listing in harness.repository.list_listings())

    status = harness.store.snapshot()
    assert not status.is_refreshing
    assert status.pending_items == []
    assert status.last_refresh_count == 5
    assert status.last_refresh_time == NOW.isoformat()
    assert status.next_refresh_time == (NOW + timedelta(minutes=60)).isoformat()
    assert len(status.recently_refreshed) == 5
    assert status.recently_refreshed[0].id == "i5", "most recent first"


def test_request_delay_between_items_only(tmp_path, settings):
    harness = Harness(tmp_path, settings, _five_listings())
    harness.run()
    assert harness.sleeps == [2, 2, 2, 2]


def test_rate_limit_aborts_batch(tmp_path, settings):
    listings = _five_listings()
    third = listings[2]
    infer = FakeInference({third.source_url: rate_limited()}, default=inference(price=77.0))
    harness = Harness(tmp_path, settings, listings, infer=infer)

    result = harness.run()

    assert result.rate_limited
    assert result.succeeded == 2
    assert result.next_delay_minutes == settings.rate_limit_retry_minutes
    assert infer.calls == [listing.source_url for listing in listings[:3]]

    stored = {listing.id: listing for listing in harness.repository.list_listings()}
    assert stored["i1"].current_price == 77.0
    assert stored["i2"].current_price == 77.0
    for untouched in ("i3", "i4", "i5"):
        original = next(listing for listing in listings if listing.id == untouched)
        assert stored[untouched].to_dict() == original.to_dict()

    status = harness.store.snapshot()
    assert status.pending_items == []
    assert not status.is_refreshing
    assert [item.id for item in status.recently_refreshed] == ["i2", "i1"]
    assert status.next_refresh_time == (NOW + timedelta(minutes=1)).isoformat()
    assert harness.sleeps == [2, 2]


def test_rate_limited_item_reverts_to_pending_during_run(tmp_path, settings):
    listings = _five_listings()
    infer = FakeInference({listings[2].source_url: rate_limited()})
    harness = Harness(tmp_path, settings, listings, infer=infer)
    harness.run()

    running = [s for s in harness.snapshots if s.is_refreshing and s.pending_items]
    statuses = [item.status for item in running[-1].pending_items]
    assert statuses == [SUCCESS, SUCCESS, PENDING, PENDING, PENDING]
    assert any(
        [item.status for item in s.pending_items][2] == REFRESHING for s in running
    ), "item 3 was started before the rate limit hit"


def test_progress_invariants_hold_while_running(tmp_path, settings):
    harness = Harness(tmp_path, settings, _five_listings())
    harness.run()

    running = [s for s in harness.snapshots if s.is_refreshing and s.total_count]
    assert running
    for snapshot in running:
        assert 0 <= snapshot.current_index <= snapshot.total_count
        assert len(snapshot.pending_items) == snapshot.total_count


def test_single_flight_runs_once(tmp_path, settings):
    harness = Harness(tmp_path, settings, _five_listings())

    async def both():
        return await asyncio.gather(harness.orchestrator.run_batch(), harness.orchestrator.run_batch())

    first, second = asyncio.run(both())

    assert first is not None and first.succeeded == 5
    assert second is None
    assert len(harness.fetcher.calls) == 5


def test_guard_held_returns_immediately(tmp_path, settings):
    harness = Harness(tmp_path, settings, _five_listings())
    harness.store.update(is_refreshing=True)

    assert harness.run() is None
    assert harness.fetcher.calls == []


def test_errors_are_recorded_and_run_continues(tmp_path, settings):
    listings = _five_listings()
    fetcher = FakeFetcher({listings[1].source_url: PageResult(expired=False, status=500)})
    harness = Harness(tmp_path, settings, listings, fetcher=fetcher)

    result = harness.run()

    assert result.succeeded == 4
    assert result.failed == 1
    status = harness.store.snapshot()
    assert status.refresh_errors[0].id == "i2"
    assert status.refresh_errors[0].error == "HTTP error: 500"
    assert any(item.status == ERROR for item in status.recently_refreshed)
    assert harness.repository.get("i2").last_refresh_status == "error"


def test_expired_listing_is_ended(tmp_path, settings):
    listing = make_listing("gone")
    fetcher = FakeFetcher({listing.source_url: PageResult(expired=True, status=410)})
    harness = Harness(tmp_path, settings, [listing], fetcher=fetcher)

    result = harness.run()

    assert result.succeeded == 1
    stored = harness.repository.get("gone")
    assert stored.status == ListingStatus.ENDED
    assert stored.status_changed_at == NOW.isoformat()


def test_archived_and_expired_grace_listings_skipped(tmp_path, settings):
    listings = [
        make_listing("keep"),
        make_listing("archived", is_archived=True),
        make_listing("old-ended", status="ENDED", status_changed_at=ago(days=5)),
    ]
    harness = Harness(tmp_path, settings, listings)

    result = harness.run()

    assert result.total == 1
    assert harness.fetcher.calls == [listings[0].source_url]


def test_empty_set_still_finalizes(tmp_path, settings):
    harness = Harness(tmp_path, settings, [])
    result = harness.run()

    assert result.total == 0
    assert result.skipped_reason == "no_eligible_listings"
    status = harness.store.snapshot()
    assert status.last_refresh_time == NOW.isoformat()
    assert not status.is_refreshing


def test_missing_api_key_skips_run(tmp_path):
    harness = Harness(tmp_path, RefreshSettings(api_key=None), _five_listings())
    result = harness.run()

    assert result.skipped_reason == "missing_api_key"
    assert result.next_delay_minutes == 60
    assert harness.fetcher.calls == []
    assert not harness.store.is_refreshing


def test_listing_save_failure_does_not_abort(tmp_path, settings, monkeypatch):
    harness = Harness(tmp_path, settings, _five_listings())

    def failing_save(listing):
        raise PersistenceError("disk full", operation="write")

    monkeypatch.setattr(harness.repository, "save", failing_save)
    result = harness.run()

    assert result.succeeded == 5
    assert not harness.store.is_refreshing


def test_crash_releases_guard(tmp_path, settings, monkeypatch):
    harness = Harness(tmp_path, settings, _five_listings())

    def broken_list():
        raise PersistenceError("Listings file is not a list", operation="read")

    monkeypatch.setattr(harness.repository, "list_listings", broken_list)

    with pytest.raises(PersistenceError):
        harness.run()
    assert not harness.store.is_refreshing
    assert harness.store.snapshot().pending_items == []


def test_failed_first_status_write_releases_guard(tmp_path, settings, monkeypatch):
    harness = Harness(tmp_path, settings, _five_listings())
    real_write = state_module.atomic_write_json
    failures = []

    def flaky_write(path, payload, *, prefix):
        if prefix == "refresh_status_" and not failures:
            failures.append(path)
            raise PersistenceError("disk full", path=str(path), operation="write")
        real_write(path, payload, prefix=prefix)

    monkeypatch.setattr(state_module, "atomic_write_json", flaky_write)

    with pytest.raises(PersistenceError):
        harness.run()
    assert not harness.store.is_refreshing
    assert harness.fetcher.calls == []

    result = harness.run()
    assert result is not None
    assert result.succeeded == 5


class StalledFetcher(FakeFetcher):
    def __init__(self):
        super().__init__()
        self.started = None

    async def fetch(self, url):
        self.calls.append(url)
        self.started.set()
        await asyncio.sleep(3600)


def test_cancelled_run_releases_guard(tmp_path, settings):
    fetcher = StalledFetcher()
    harness = Harness(tmp_path, settings, _five_listings(), fetcher=fetcher)

    async def scenario():
        fetcher.started = asyncio.Event()
        task = asyncio.create_task(harness.orchestrator.run_batch())
        await fetcher.started.wait()
        assert harness.store.is_refreshing
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())

    status = harness.store.snapshot()
    assert not status.is_refreshing
    assert status.pending_items == []
    assert status.next_refresh_time == (NOW + timedelta(minutes=60)).isoformat()

    harness.orchestrator.refresher.fetcher = FakeFetcher()
    result = harness.run()
    assert result.succeeded == 5


def test_listing_updated_events_published(tmp_path, settings):
    harness = Harness(tmp_path, settings, _five_listings()[:2])
    seen = []
    harness.store.notifier.add_listener(lambda event: seen.append(event.type))

    harness.run()

    assert seen.count(LISTING_UPDATED) == 3


def test_recent_items_survive_across_runs(tmp_path, settings):
    harness = Harness(tmp_path, settings, _five_listings()[:2])
    harness.run()
    harness.run()

    status = RefreshStatusStore(tmp_path / "refresh_status.json").snapshot()
    assert isinstance(status, RefreshStatus)
    assert len(status.recently_refreshed) == 4
