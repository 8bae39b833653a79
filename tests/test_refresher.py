import asyncio

from conftest import NOW, FakeFetcher, FakeInference, ago, inference, make_listing, rate_limited
from models.listing import ListingStatus
from models.price_point import PricePoint
from tracker.core.errors import FetchError, InvalidInferenceResponse, LOGIN_REQUIRED_MESSAGE
from tracker.core.fetcher import PageResult
from tracker.refresh.refresher import ListingRefresher


def _refresh(listing, fetcher=None, infer=None):
    refresher = ListingRefresher(fetcher or FakeFetcher(), infer or FakeInference())
    return asyncio.run(refresher.refresh(listing, now=NOW))


def test_successful_refresh_updates_price_and_history():
    listing = make_listing(price_history=[{"date": ago(days=1), "price": 100.0, "currency": "USD"}])
    outcome = _refresh(listing, infer=FakeInference(default=inference(price=80.0)))

    assert outcome.success
    assert outcome.price_changed
    assert outcome.listing.current_price == 80.0
    assert [p.price for p in outcome.listing.price_history] == [100.0, 80.0]
    assert outcome.listing.last_seen_at == NOW.isoformat()
    assert outcome.listing.last_refresh_status == "success"
    assert outcome.listing.last_refresh_error is None
    assert listing.current_price == 100.0, "input listing must not be mutated"


def test_zero_price_keeps_previous_price():
    listing = make_listing(current_price=55.0)
    outcome = _refresh(listing, infer=FakeInference(default=inference(price=0.0, currency="")))

    assert outcome.success
    assert not outcome.price_changed
    assert outcome.listing.current_price == 55.0
    assert outcome.listing.currency == "USD"
    assert outcome.listing.price_history[-1] == PricePoint(date=NOW.isoformat(), price=55.0, currency="USD")


def test_sold_listing_becomes_ended_and_stamps_change():
    listing = make_listing()
    outcome = _refresh(listing, infer=FakeInference(default=inference(sold=True)))

    assert outcome.listing.status == ListingStatus.ENDED
    assert outcome.listing.status_changed_at == NOW.isoformat()


def test_unchanged_status_keeps_change_timestamp():
    listing = make_listing(status_changed_at=ago(days=4))
    outcome = _refresh(listing)

    assert outcome.listing.status == ListingStatus.ACTIVE
    assert outcome.listing.status_changed_at == ago(days=4)


def test_expired_page_ends_listing_without_touching_history():
    listing = make_listing(price_history=[{"date": ago(days=2), "price": 100.0, "currency": "USD"}])
    fetcher = FakeFetcher({listing.source_url: PageResult(expired=True, status=404)})
    infer = FakeInference()
    outcome = _refresh(listing, fetcher, infer)

    assert outcome.success
    assert outcome.listing.status == ListingStatus.ENDED
    assert outcome.listing.price_history == listing.price_history
    assert outcome.listing.current_price == 100.0
    assert infer.calls == []


def test_http_error_is_failure_without_last_seen_update():
    listing = make_listing(last_seen_at=ago(days=2))
    fetcher = FakeFetcher({listing.source_url: PageResult(expired=False, status=503)})
    outcome = _refresh(listing, fetcher)

    assert not outcome.success
    assert outcome.error == "HTTP error: 503"
    assert outcome.listing.last_refresh_status == "error"
    assert outcome.listing.last_refresh_error == "HTTP 503"
    assert outcome.listing.last_seen_at == ago(days=2)


def test_network_error_reports_login_hint():
    listing = make_listing()
    error = FetchError(LOGIN_REQUIRED_MESSAGE, is_network_error=True, url=listing.source_url)
    outcome = _refresh(listing, FakeFetcher({listing.source_url: error}))

    assert not outcome.success
    assert outcome.error == LOGIN_REQUIRED_MESSAGE
    assert outcome.listing.last_refresh_error == LOGIN_REQUIRED_MESSAGE


def test_invalid_inference_is_failure():
    listing = make_listing()
    infer = FakeInference({listing.source_url: InvalidInferenceResponse("No response from AI")})
    outcome = _refresh(listing, infer=infer)

    assert not outcome.success
    assert not outcome.rate_limited
    assert outcome.error == "No response from AI"


def test_rate_limit_leaves_listing_untouched():
    listing = make_listing()
    infer = FakeInference({listing.source_url: rate_limited()})
    outcome = _refresh(listing, infer=infer)

    assert outcome.rate_limited
    assert not outcome.success
    assert outcome.listing.to_dict() == listing.to_dict()


def test_unexpected_exception_is_contained():
    listing = make_listing()
    infer = FakeInference({listing.source_url: RuntimeError("boom")})
    outcome = _refresh(listing, infer=infer)

    assert not outcome.success
    assert outcome.error == "boom"


def test_legacy_duplicate_days_are_consolidated_on_refresh():
    listing = make_listing(
        price_history=[
            {"date": ago(days=2, hours=3), "price": 110.0, "currency": "USD"},
            {"date": ago(days=2), "price": 105.0, "currency": "USD"},
            {"date": ago(days=1), "price": 100.0, "currency": "USD"},
        ]
    )
    outcome = _refresh(listing, infer=FakeInference(default=inference(price=100.0)))

    assert [p.price for p in outcome.listing.price_history] == [105.0, 100.0, 100.0]
