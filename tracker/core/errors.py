"""
Error hierarchy for the listing tracker, used for classification in logs,
per-item refresh outcomes and API responses.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

LOGIN_REQUIRED_MESSAGE = "Network error - you may need to log in to the marketplace site"


class TrackerError(Exception):
    """Base class for all listing tracker errors."""

    def __init__(
        self,
        message: str,
        *,
        listing_id: Optional[str] = None,
        url: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.listing_id = listing_id
        self.url = url
        self.details = details or {}

    def as_dict(self) -> Dict[str, Any]:
        """Serializable representation for logs/API."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "listing_id": self.listing_id,
            "url": self.url,
            "details": self.details,
        }


class FetchError(TrackerError):
    """Raised by the page fetcher when a listing page cannot be retrieved at all.

    ``is_network_error`` marks transport-level failures (connection refused,
    timeouts, redirects to a login wall) that usually need user action rather
    than another attempt.
    """

    def __init__(
        self,
        message: str,
        *,
        is_network_error: bool = False,
        status_code: Optional[int] = None,
        **kwargs,
    ) -> None:
        super().__init__(message, **kwargs)
        self.is_network_error = is_network_error
        self.status_code = status_code
        self.details["is_network_error"] = is_network_error
        if status_code is not None:
            self.details["status_code"] = status_code


class InferenceError(TrackerError):
    """Raised when the inference service fails to interpret a page."""

    def __init__(self, message: str, *, model: Optional[str] = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.model = model
        if model is not None:
            self.details["model"] = model


class RateLimitError(InferenceError):
    """Inference quota exhausted. Stops the current batch."""


class InvalidInferenceResponse(InferenceError):
    """Inference payload missing fields or carrying the wrong types."""

    def __init__(self, message: str, *, field: Optional[str] = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.field = field
        if field is not None:
            self.details["field"] = field


class PersistenceError(TrackerError):
    """Raised during read/write of listings or run state."""

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs,
    ) -> None:
        super().__init__(message, **kwargs)
        self.path = path
        self.operation = operation
        if path is not None:
            self.details["path"] = path
        if operation is not None:
            self.details["operation"] = operation


class ConfigError(TrackerError):
    """Raised on missing/invalid configuration values."""

    def __init__(self, message: str, *, key: Optional[str] = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.key = key
        if key is not None:
            self.details["key"] = key


__all__ = [
    "LOGIN_REQUIRED_MESSAGE",
    "TrackerError",
    "FetchError",
    "InferenceError",
    "RateLimitError",
    "InvalidInferenceResponse",
    "PersistenceError",
    "ConfigError",
]
