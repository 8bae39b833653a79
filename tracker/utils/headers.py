"""
Headers Manager - Browser-like HTTP Headers
============================================

Builds browser-like request headers for listing pages with User-Agent
rotation and an optional referer pointing at the marketplace root.
"""

import random
from typing import Dict, List, Optional
from urllib.parse import urlparse

from tracker.utils.logger import get_logger

log = get_logger(__name__)

USER_AGENTS = [
    # Chrome on Windows
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36",
    # Chrome on macOS
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    # Firefox
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:125.0) Gecko/20100101 Firefox/125.0",
    # Safari on macOS
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Safari/605.1.15",
]

ACCEPT_LANGUAGES = [
    "en-US,en;q=0.9",
    "en-GB,en;q=0.8",
    "pl-PL,pl;q=0.9,en;q=0.8",
    "de-DE,de;q=0.9,en;q=0.8",
]


class HeaderManager:
    """
    Generates and rotates HTTP headers to mimic real browsers
    """

    def __init__(self, user_agents: Optional[List[str]] = None):
        self.user_agents = user_agents or USER_AGENTS
        self.current_ua = random.choice(self.user_agents)
        log.debug("HeaderManager initialized")

    def get_headers(self, url: Optional[str] = None, additional_headers: Optional[Dict] = None) -> Dict[str, str]:
        """Fresh navigation headers, with the marketplace root as referer when ``url`` is given."""
        headers = {
            "User-Agent": self.current_ua,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
            "Accept-Language": random.choice(ACCEPT_LANGUAGES),
            "Accept-Encoding": "gzip, deflate",
            "Connection": "keep-alive",
            "DNT": "1",
            "Sec-Fetch-Mode": "navigate",
            "Sec-Fetch-Dest": "document",
            "Sec-Fetch-Site": "none",
            "Sec-Fetch-User": "?1",
            "Upgrade-Insecure-Requests": "1",
        }

        if url:
            parsed = urlparse(url)
            if parsed.scheme and parsed.netloc:
                headers["Referer"] = f"{parsed.scheme}://{parsed.netloc}/"

        if additional_headers:
            headers.update(additional_headers)

        return headers

    def rotate_ua(self):
        """Explicitly rotate the current user agent"""
        self.current_ua = random.choice(self.user_agents)
        log.debug(f"Rotated User-Agent to: {self.current_ua[:50]}...")
