"""Core infrastructure shared by the refresh engine and the API."""

from .errors import (
    ConfigError,
    FetchError,
    InferenceError,
    InvalidInferenceResponse,
    PersistenceError,
    RateLimitError,
    TrackerError,
)
from .settings import RefreshSettings, load_refresh_settings

__all__ = [
    "TrackerError",
    "FetchError",
    "InferenceError",
    "RateLimitError",
    "InvalidInferenceResponse",
    "PersistenceError",
    "ConfigError",
    "RefreshSettings",
    "load_refresh_settings",
]
