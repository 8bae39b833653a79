from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from tracker.core.settings import MAX_CHECK_FREQUENCY_MINUTES, MIN_CHECK_FREQUENCY_MINUTES


class TriggerResponse(BaseModel):
    success: bool
    error: Optional[str] = None


class RescheduleRequest(BaseModel):
    minutes: float = Field(..., ge=MIN_CHECK_FREQUENCY_MINUTES, le=MAX_CHECK_FREQUENCY_MINUTES)


class RescheduleResponse(BaseModel):
    success: bool
    next_refresh_time: str


class PendingItemRead(BaseModel):
    id: str
    title: str
    url: str
    status: str


class RefreshedItemRead(BaseModel):
    id: str
    title: str
    url: str
    status: str
    timestamp: str
    error: Optional[str] = None


class RefreshErrorRead(BaseModel):
    id: str
    title: str
    url: str
    error: str
    timestamp: str


class RefreshStatusRead(BaseModel):
    is_refreshing: bool
    current_index: int
    total_count: int
    current_listing_title: Optional[str] = None
    pending_items: List[PendingItemRead] = []
    recently_refreshed: List[RefreshedItemRead] = []
    refresh_errors: List[RefreshErrorRead] = []
    last_refresh_time: Optional[str] = None
    next_refresh_time: Optional[str] = None
    last_refresh_count: int = 0


class PricePointRead(BaseModel):
    date: str
    price: float
    currency: str


class ListingRead(BaseModel):
    id: str
    source_url: str
    title: str
    current_price: float
    currency: str
    status: str
    price_history: List[PricePointRead] = []
    status_changed_at: Optional[str] = None
    first_seen_at: Optional[str] = None
    last_seen_at: Optional[str] = None
    last_refresh_status: Optional[str] = None
    last_refresh_error: Optional[str] = None
    is_archived: bool = False
    metadata: Dict[str, Any] = {}


class InferenceHistoryRead(BaseModel):
    stats: Dict[str, Any]
    calls: List[Dict[str, Any]]


class ClearHistoryResponse(BaseModel):
    success: bool
    cleared: int
