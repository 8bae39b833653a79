"""Run-state record for the background refresh engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

MAX_RECENT_ITEMS = 50
MAX_ERROR_ITEMS = 50

PENDING = "pending"
REFRESHING = "refreshing"
SUCCESS = "success"
ERROR = "error"
_PENDING_STATES = {PENDING, REFRESHING, SUCCESS, ERROR}


@dataclass(slots=True)
class PendingItem:
    id: str
    title: str
    url: str
    status: str = PENDING

    def __post_init__(self) -> None:
        if self.status not in _PENDING_STATES:
            self.status = PENDING

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title, "url": self.url, "status": self.status}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PendingItem":
        return cls(
            id=str(payload.get("id", "")),
            title=str(payload.get("title", "") or ""),
            url=str(payload.get("url", "") or ""),
            status=str(payload.get("status", PENDING)),
        )


@dataclass(slots=True)
class RefreshedItem:
    id: str
    title: str
    url: str
    status: str
    timestamp: str
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "status": self.status,
            "timestamp": self.timestamp,
        }
        if self.error:
            payload["error"] = self.error
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "RefreshedItem":
        return cls(
            id=str(payload.get("id", "")),
            title=str(payload.get("title", "") or ""),
            url=str(payload.get("url", "") or ""),
            status=str(payload.get("status", SUCCESS)),
            timestamp=str(payload.get("timestamp", "")),
            error=payload.get("error"),
        )


@dataclass(slots=True)
class RefreshErrorInfo:
    id: str
    title: str
    url: str
    error: str
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "error": self.error,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "RefreshErrorInfo":
        return cls(
            id=str(payload.get("id", "")),
            title=str(payload.get("title", "") or ""),
            url=str(payload.get("url", "") or ""),
            error=str(payload.get("error", "") or ""),
            timestamp=str(payload.get("timestamp", "")),
        )


@dataclass(slots=True)
class RefreshStatus:
    """Progress and schedule of the background refresh engine."""

    is_refreshing: bool = False
    current_index: int = 0
    total_count: int = 0
    current_listing_title: Optional[str] = None
    pending_items: List[PendingItem] = field(default_factory=list)
    recently_refreshed: List[RefreshedItem] = field(default_factory=list)
    refresh_errors: List[RefreshErrorInfo] = field(default_factory=list)
    last_refresh_time: Optional[str] = None
    next_refresh_time: Optional[str] = None
    last_refresh_count: int = 0

    def push_recent(self, item: RefreshedItem) -> None:
        self.recently_refreshed = [item, *self.recently_refreshed][:MAX_RECENT_ITEMS]

    def push_error(self, item: RefreshErrorInfo) -> None:
        self.refresh_errors = [item, *self.refresh_errors][:MAX_ERROR_ITEMS]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_refreshing": self.is_refreshing,
            "current_index": self.current_index,
            "total_count": self.total_count,
            "current_listing_title": self.current_listing_title,
            "pending_items": [item.to_dict() for item in self.pending_items],
            "recently_refreshed": [item.to_dict() for item in self.recently_refreshed],
            "refresh_errors": [item.to_dict() for item in self.refresh_errors],
            "last_refresh_time": self.last_refresh_time,
            "next_refresh_time": self.next_refresh_time,
            "last_refresh_count": self.last_refresh_count,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "RefreshStatus":
        return cls(
            is_refreshing=bool(payload.get("is_refreshing", False)),
            current_index=int(payload.get("current_index", 0) or 0),
            total_count=int(payload.get("total_count", 0) or 0),
            current_listing_title=payload.get("current_listing_title"),
            pending_items=[PendingItem.from_dict(item) for item in payload.get("pending_items", []) or []],
            recently_refreshed=[
                RefreshedItem.from_dict(item) for item in payload.get("recently_refreshed", []) or []
            ][:MAX_RECENT_ITEMS],
            refresh_errors=[
                RefreshErrorInfo.from_dict(item) for item in payload.get("refresh_errors", []) or []
            ][:MAX_ERROR_ITEMS],
            last_refresh_time=payload.get("last_refresh_time"),
            next_refresh_time=payload.get("next_refresh_time"),
            last_refresh_count=int(payload.get("last_refresh_count", 0) or 0),
        )


__all__ = [
    "RefreshStatus",
    "PendingItem",
    "RefreshedItem",
    "RefreshErrorInfo",
    "MAX_RECENT_ITEMS",
    "MAX_ERROR_ITEMS",
    "PENDING",
    "REFRESHING",
    "SUCCESS",
    "ERROR",
]
