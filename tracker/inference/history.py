"""Bounded log of inference calls for diagnostics."""

from __future__ import annotations

import uuid
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

DEFAULT_HISTORY_SIZE = 50
PROMPT_PREVIEW_CHARS = 500


@dataclass(slots=True)
class InferenceCall:
    id: str
    url: str
    prompt_preview: str
    status: str
    timestamp: str
    raw_response: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "prompt_preview": self.prompt_preview,
            "status": self.status,
            "timestamp": self.timestamp,
            "raw_response": self.raw_response,
            "error": self.error,
        }


class InferenceHistory:
    """Most recent calls first, plus running counters."""

    def __init__(self, max_entries: int = DEFAULT_HISTORY_SIZE) -> None:
        self._entries: Deque[InferenceCall] = deque(maxlen=max_entries)
        self.total_calls = 0
        self.success_count = 0
        self.error_count = 0

    def _record(self, url: str, prompt: str, status: str, **fields: Any) -> InferenceCall:
        entry = InferenceCall(
            id=uuid.uuid4().hex,
            url=url,
            prompt_preview=prompt[:PROMPT_PREVIEW_CHARS],
            status=status,
            timestamp=datetime.now(timezone.utc).isoformat(),
            **fields,
        )
        self._entries.appendleft(entry)
        self.total_calls += 1
        return entry

    def record_success(self, url: str, prompt: str, raw_response: Optional[str]) -> InferenceCall:
        self.success_count += 1
        return self._record(url, prompt, "success", raw_response=raw_response)

    def record_error(self, url: str, prompt: str, error: str) -> InferenceCall:
        self.error_count += 1
        return self._record(url, prompt, "error", error=error)

    def entries(self) -> List[InferenceCall]:
        return list(self._entries)

    def clear(self) -> int:
        """Drop all entries and counters, returning how many entries were removed."""
        removed = len(self._entries)
        self._entries.clear()
        self.total_calls = 0
        self.success_count = 0
        self.error_count = 0
        return removed

    def stats(self) -> Dict[str, int]:
        return {
            "total_calls": self.total_calls,
            "success_count": self.success_count,
            "error_count": self.error_count,
        }


__all__ = ["InferenceCall", "InferenceHistory"]
