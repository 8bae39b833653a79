"""Model exports for the listing tracker."""

from .listing import REFRESH_ERROR, REFRESH_SUCCESS, Listing, ListingStatus
from .price_point import PricePoint, parse_iso8601
from .refresh_status import (
    MAX_ERROR_ITEMS,
    MAX_RECENT_ITEMS,
    PendingItem,
    RefreshedItem,
    RefreshErrorInfo,
    RefreshStatus,
)

__all__ = [
    "Listing",
    "ListingStatus",
    "REFRESH_SUCCESS",
    "REFRESH_ERROR",
    "PricePoint",
    "parse_iso8601",
    "RefreshStatus",
    "PendingItem",
    "RefreshedItem",
    "RefreshErrorInfo",
    "MAX_RECENT_ITEMS",
    "MAX_ERROR_ITEMS",
]
