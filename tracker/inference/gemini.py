"""Gemini inference client for listing refreshes."""

from __future__ import annotations

from typing import Callable, Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from tracker.core.config import Config
from tracker.core.errors import InferenceError, InvalidInferenceResponse, RateLimitError
from tracker.core.settings import load_refresh_settings
from tracker.inference.history import DEFAULT_HISTORY_SIZE, InferenceHistory
from tracker.inference.prompts import DEFAULT_MAX_PAGE_CHARS, build_refresh_prompt
from tracker.inference.schema import REFRESH_RESPONSE_SCHEMA, ListingInference, parse_inference
from tracker.utils.logger import get_logger

log = get_logger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"
REQUEST_TIMEOUT_SECONDS = 60

_RATE_LIMIT_ERRORS = (google_exceptions.ResourceExhausted, google_exceptions.TooManyRequests)


def _settings_api_key() -> Optional[str]:
    return load_refresh_settings().api_key


class GeminiInference:
    """Turns listing page text into a validated ``ListingInference``."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        *,
        api_key_provider: Callable[[], Optional[str]] = _settings_api_key,
        history: Optional[InferenceHistory] = None,
    ) -> None:
        self._api_key = api_key
        self._api_key_provider = api_key_provider
        self._configured_key: Optional[str] = None
        self._model: Optional[genai.GenerativeModel] = None
        self.model_name = model_name or Config.get("inference", "model", default=DEFAULT_MODEL)
        self.max_page_chars = int(Config.get("inference", "max_page_chars", default=DEFAULT_MAX_PAGE_CHARS))
        self.history = history or InferenceHistory(
            int(Config.get("inference", "history_size", default=DEFAULT_HISTORY_SIZE))
        )

    def _get_model(self) -> genai.GenerativeModel:
        api_key = self._api_key or self._api_key_provider()
        if not api_key:
            raise InferenceError("API Key is missing. Please configure your GEMINI_API_KEY in settings.")

        if self._model is None or api_key != self._configured_key:
            genai.configure(api_key=api_key)
            self._model = genai.GenerativeModel(
                self.model_name,
                generation_config={
                    "response_mime_type": "application/json",
                    "response_schema": REFRESH_RESPONSE_SCHEMA,
                },
            )
            self._configured_key = api_key
            log.debug(f"Gemini model {self.model_name} configured")
        return self._model

    async def infer(self, url: str, page_text: str, page_title: str) -> ListingInference:
        """
        Extract price, currency and availability from a listing page.

        Raises:
            RateLimitError: quota exhausted (HTTP 429 / RESOURCE_EXHAUSTED)
            InvalidInferenceResponse: empty or malformed model output
            InferenceError: any other inference failure
        """
        if not page_text or not page_text.strip():
            raise InferenceError("Page content is empty or invalid", url=url)

        model = self._get_model()
        prompt = build_refresh_prompt(page_title, url, page_text, self.max_page_chars)

        try:
            response = await model.generate_content_async(
                prompt,
                request_options={"timeout": REQUEST_TIMEOUT_SECONDS},
            )
        except _RATE_LIMIT_ERRORS as e:
            self.history.record_error(url, prompt, str(e))
            log.warning(f"Gemini rate limit hit for {url}: {e}")
            raise RateLimitError(str(e), url=url, model=self.model_name) from e
        except google_exceptions.GoogleAPIError as e:
            self.history.record_error(url, prompt, str(e))
            log.error(f"Gemini call failed for {url}: {e}")
            raise InferenceError(str(e), url=url, model=self.model_name) from e

        try:
            raw = response.text
        except ValueError as e:
            # Raised by the SDK when the candidate was blocked or empty.
            self.history.record_error(url, prompt, str(e))
            raise InvalidInferenceResponse("No response from AI", url=url, model=self.model_name) from e

        try:
            result = parse_inference(raw, model=self.model_name)
        except InvalidInferenceResponse as e:
            self.history.record_error(url, prompt, e.message)
            raise

        self.history.record_success(url, prompt, raw)
        return result


__all__ = ["GeminiInference", "DEFAULT_MODEL"]
