import asyncio

import pytest
from google.api_core import exceptions as google_exceptions

from models.listing import ListingStatus
from tracker.core.errors import InferenceError, InvalidInferenceResponse, RateLimitError
from tracker.inference.gemini import GeminiInference
from tracker.inference.history import InferenceHistory
from tracker.inference.prompts import build_refresh_prompt
from tracker.inference.schema import parse_inference

URL = "https://market.example.com/item/1"


class FakeResponse:
    def __init__(self, text=None, error=None):
        self._text = text
        self._error = error

    @property
    def text(self):
        if self._error:
            raise self._error
        return self._text


class FakeModel:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.prompts = []

    async def generate_content_async(self, prompt, **kwargs):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.response


def _client(monkeypatch, model, history=None):
    client = GeminiInference(api_key="test-key", model_name="test-model", history=history or InferenceHistory(5))
    monkeypatch.setattr(client, "_get_model", lambda: model)
    return client


def test_parse_inference_accepts_camel_case_payload():
    result = parse_inference('{"price": 149.99, "currency": " pln ", "isAvailable": true}')
    assert result.price == 149.99
    assert result.currency == "PLN"
    assert result.status == ListingStatus.ACTIVE


def test_parse_inference_sold_or_unavailable_is_ended():
    assert parse_inference('{"price": 10, "currency": "EUR", "isAvailable": true, "isSold": true}').status == (
        ListingStatus.ENDED
    )
    assert parse_inference('{"price": 10, "currency": "EUR", "isAvailable": false}').status == ListingStatus.ENDED


def test_parse_inference_negative_price_becomes_zero():
    assert parse_inference('{"price": -5, "currency": "EUR", "isAvailable": true}').price == 0.0


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "not json",
        '{"currency": "EUR", "isAvailable": true}',
        '{"price": "12", "currency": "EUR", "isAvailable": true}',
        '{"price": 12, "currency": "EUR", "isAvailable": "yes"}',
    ],
)
def test_parse_inference_rejects_bad_shapes(raw):
    with pytest.raises(InvalidInferenceResponse):
        parse_inference(raw)


def test_prompt_truncates_page_text():
    prompt = build_refresh_prompt("Lamp", URL, "a" * 50, max_chars=10)
    assert "a" * 10 + "..." in prompt
    assert "a" * 11 not in prompt
    assert "isAvailable" in prompt


def test_infer_returns_validated_result(monkeypatch):
    model = FakeModel(FakeResponse('{"price": 20, "currency": "usd", "isAvailable": true, "isSold": false}'))
    client = _client(monkeypatch, model)

    result = asyncio.run(client.infer(URL, "Lamp for sale 20 USD", "Lamp"))

    assert result.price == 20
    assert result.currency == "USD"
    assert URL in model.prompts[0]
    assert client.history.stats() == {"total_calls": 1, "success_count": 1, "error_count": 0}


def test_infer_maps_quota_errors_to_rate_limit(monkeypatch):
    client = _client(monkeypatch, FakeModel(error=google_exceptions.ResourceExhausted("quota exceeded")))

    with pytest.raises(RateLimitError):
        asyncio.run(client.infer(URL, "text", "title"))
    assert client.history.entries()[0].status == "error"


def test_infer_other_api_errors_are_not_rate_limits(monkeypatch):
    client = _client(monkeypatch, FakeModel(error=google_exceptions.InternalServerError("backend down")))

    with pytest.raises(InferenceError) as excinfo:
        asyncio.run(client.infer(URL, "text", "title"))
    assert not isinstance(excinfo.value, RateLimitError)


def test_infer_blocked_response_is_invalid(monkeypatch):
    client = _client(monkeypatch, FakeModel(FakeResponse(error=ValueError("blocked"))))

    with pytest.raises(InvalidInferenceResponse) as excinfo:
        asyncio.run(client.infer(URL, "text", "title"))
    assert excinfo.value.message == "No response from AI"


def test_infer_rejects_empty_page(monkeypatch):
    model = FakeModel()
    client = _client(monkeypatch, model)

    with pytest.raises(InferenceError):
        asyncio.run(client.infer(URL, "   ", "title"))
    assert model.prompts == []


def test_missing_api_key_is_an_inference_error():
    client = GeminiInference(api_key=None, api_key_provider=lambda: None)
    with pytest.raises(InferenceError):
        client._get_model()


def test_history_is_bounded_and_most_recent_first():
    history = InferenceHistory(max_entries=3)
    for n in range(5):
        history.record_success(f"u{n}", "prompt", "{}")
    history.record_error("bad", "prompt", "boom")

    entries = history.entries()
    assert [entry.url for entry in entries] == ["bad", "u4", "u3"]
    assert history.stats() == {"total_calls": 6, "success_count": 5, "error_count": 1}

    assert history.clear() == 3
    assert history.entries() == []
    assert history.stats() == {"total_calls": 0, "success_count": 0, "error_count": 0}
