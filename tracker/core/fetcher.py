"""
Page Fetcher - Listing Page Retrieval
=====================================

Async HTTP client that retrieves a listing page and reduces it to what the
inference step needs:
- Expired detection (404/410)
- Plain text and title extraction
- Browser-like headers
- Retry of transient transport errors
- Login-wall detection
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Tuple

import httpx
from bs4 import BeautifulSoup
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from tracker.core.config import Config
from tracker.core.errors import LOGIN_REQUIRED_MESSAGE, FetchError
from tracker.utils.headers import HeaderManager
from tracker.utils.logger import get_logger

log = get_logger(__name__)

EXPIRED_STATUS_CODES = {404, 410}
BLOCKED_STATUS_CODES = {403, 429}
DEFAULT_MAX_TEXT_CHARS = 20000
_LOGIN_PATH = re.compile(r"/(login|signin|sign-in|logowanie|auth)\b", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


@dataclass(slots=True)
class PageResult:
    """Outcome of a single page retrieval."""

    expired: bool
    status: int
    text_content: Optional[str] = None
    page_title: Optional[str] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def extract_page_text(html: str, max_chars: int = DEFAULT_MAX_TEXT_CHARS) -> Tuple[str, str]:
    """Return ``(text, title)`` with scripts and styles stripped."""
    soup = BeautifulSoup(html, "html.parser")
    title = soup.title.get_text(strip=True) if soup.title else ""
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    text = _WHITESPACE.sub(" ", soup.get_text(" ")).strip()
    return text[:max_chars], title


class PageFetcher:
    """
    HTTP client for listing pages. One request per call, sequential use.
    """

    def __init__(
        self,
        header_manager: Optional[HeaderManager] = None,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        max_text_chars: Optional[int] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.header_manager = header_manager or HeaderManager()
        self.timeout = timeout or float(Config.get("fetcher", "timeout_seconds", default=30))
        self.max_attempts = max_attempts or int(Config.get("fetcher", "max_attempts", default=2))
        self.max_text_chars = max_text_chars or int(
            Config.get("fetcher", "max_text_chars", default=DEFAULT_MAX_TEXT_CHARS)
        )
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            follow_redirects=True,
        )
        log.info(f"PageFetcher initialized, timeout={self.timeout}s, max_attempts={self.max_attempts}")

    async def close(self):
        await self.client.aclose()
        log.info("PageFetcher client closed")

    async def _get(self, url: str) -> httpx.Response:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=8),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        ):
            with attempt:
                log.debug(f"Attempt {attempt.retry_state.attempt_number}/{self.max_attempts} fetching {url}")
                return await self.client.get(url, headers=self.header_manager.get_headers(url))

    async def fetch(self, url: str) -> PageResult:
        """
        Fetch a listing page.

        Returns:
            PageResult; ``expired`` for 404/410, bare status for other non-2xx codes

        Raises:
            FetchError: transport failure or redirect to a login page
        """
        try:
            response = await self._get(url)
        except httpx.TransportError as e:
            log.warning(f"Network error fetching {url}: {e}")
            raise FetchError(LOGIN_REQUIRED_MESSAGE, is_network_error=True, url=url) from e
        except httpx.HTTPError as e:
            raise FetchError(str(e) or e.__class__.__name__, url=url) from e

        if response.status_code in EXPIRED_STATUS_CODES:
            log.info(f"Listing expired ({response.status_code}): {url}")
            return PageResult(expired=True, status=response.status_code)

        if not response.is_success:
            log.warning(f"HTTP {response.status_code} for {url}")
            if response.status_code in BLOCKED_STATUS_CODES:
                self.header_manager.rotate_ua()
            return PageResult(expired=False, status=response.status_code)

        if response.history and _LOGIN_PATH.search(response.url.path):
            log.warning(f"Redirected to login page for {url}: {response.url}")
            raise FetchError(
                LOGIN_REQUIRED_MESSAGE,
                is_network_error=True,
                status_code=response.status_code,
                url=url,
            )

        text, title = extract_page_text(response.text, self.max_text_chars)
        return PageResult(
            expired=False,
            status=response.status_code,
            text_content=text,
            page_title=title,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


__all__ = ["PageFetcher", "PageResult", "extract_page_text", "EXPIRED_STATUS_CODES"]
