"""Domain model for a tracked marketplace listing."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from models.price_point import PricePoint, parse_iso8601

REFRESH_SUCCESS = "success"
REFRESH_ERROR = "error"
_REFRESH_STATUSES = {REFRESH_SUCCESS, REFRESH_ERROR}


class ListingStatus(str, Enum):
    ACTIVE = "ACTIVE"
    ENDED = "ENDED"

    @classmethod
    def parse(cls, value: Any) -> "ListingStatus":
        # SOLD and EXPIRED were folded into ENDED.
        raw = str(value or "").upper()
        if raw in {"ENDED", "SOLD", "EXPIRED"}:
            return cls.ENDED
        return cls.ACTIVE


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(slots=True)
class Listing:
    """Snapshot of a tracked listing."""

    id: str
    source_url: str
    title: str = ""
    current_price: float = 0.0
    currency: str = ""
    price_history: List[PricePoint] = field(default_factory=list)
    status: ListingStatus = ListingStatus.ACTIVE
    status_changed_at: Optional[str] = None
    first_seen_at: Optional[str] = None
    last_seen_at: Optional[str] = None
    last_refresh_status: Optional[str] = None
    last_refresh_error: Optional[str] = None
    is_archived: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.id = str(self.id).strip()
        if not self.id:
            raise ValueError("Listing id is required")
        if not isinstance(self.status, ListingStatus):
            self.status = ListingStatus.parse(self.status)
        if self.last_refresh_status not in _REFRESH_STATUSES:
            self.last_refresh_status = None
        if self.last_refresh_status != REFRESH_ERROR:
            self.last_refresh_error = None
        self.price_history = _load_history(self.price_history)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source_url": self.source_url,
            "title": self.title,
            "current_price": self.current_price,
            "currency": self.currency,
            "price_history": [point.to_dict() for point in self.price_history],
            "status": self.status.value,
            "status_changed_at": self.status_changed_at,
            "first_seen_at": self.first_seen_at,
            "last_seen_at": self.last_seen_at,
            "last_refresh_status": self.last_refresh_status,
            "last_refresh_error": self.last_refresh_error,
            "is_archived": self.is_archived,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Listing":
        return cls(
            id=str(payload.get("id", "")),
            source_url=str(payload.get("source_url") or payload.get("url") or ""),
            title=str(payload.get("title", "") or ""),
            current_price=float(payload.get("current_price", 0) or 0),
            currency=str(payload.get("currency", "") or ""),
            price_history=_load_history(payload.get("price_history", [])),
            status=ListingStatus.parse(payload.get("status")),
            status_changed_at=payload.get("status_changed_at"),
            first_seen_at=payload.get("first_seen_at"),
            last_seen_at=payload.get("last_seen_at"),
            last_refresh_status=payload.get("last_refresh_status"),
            last_refresh_error=payload.get("last_refresh_error"),
            is_archived=bool(payload.get("is_archived", False)),
            metadata=dict(payload.get("metadata", {}) or {}),
        )

    def copy(self) -> "Listing":
        return copy.deepcopy(self)

    @property
    def never_refreshed(self) -> bool:
        return not self.last_seen_at or not self.last_refresh_status

    def last_seen_datetime(self) -> Optional[datetime]:
        return parse_iso8601(self.last_seen_at)

    def status_changed_datetime(self) -> Optional[datetime]:
        return parse_iso8601(self.status_changed_at)

    def set_status(self, status: ListingStatus, *, timestamp: Optional[str] = None) -> bool:
        """Apply a status, stamping ``status_changed_at`` only on a real change."""
        if status == self.status:
            return False
        self.status = status
        self.status_changed_at = timestamp or _utc_now_iso()
        return True

    def record_success(self, *, timestamp: Optional[str] = None) -> None:
        self.last_seen_at = timestamp or _utc_now_iso()
        self.last_refresh_status = REFRESH_SUCCESS
        self.last_refresh_error = None

    def record_failure(self, error: str) -> None:
        self.last_refresh_status = REFRESH_ERROR
        self.last_refresh_error = error


def _load_history(items: Iterable[Any]) -> List[PricePoint]:
    history: List[PricePoint] = []
    for item in items or []:
        if isinstance(item, PricePoint):
            history.append(item)
            continue
        if isinstance(item, Mapping):
            try:
                history.append(PricePoint.from_dict(item))
            except ValueError:
                continue
    return history


__all__ = ["Listing", "ListingStatus", "REFRESH_SUCCESS", "REFRESH_ERROR"]
