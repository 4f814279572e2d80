"""Client library for the Isma Sports Complex point-of-sale backend."""
from __future__ import annotations

from .api_client import ApiClient
from .dedup import RequestDeduplicator, request_key
from .errors import ApiError, NetworkError, PosClientError, UnauthorizedError, error_message
from .models import Page
from .session import Session, SessionStore

__version__ = "0.1.0"

__all__ = [
    "ApiClient",
    "ApiError",
    "NetworkError",
    "Page",
    "PosClientError",
    "RequestDeduplicator",
    "Session",
    "SessionStore",
    "UnauthorizedError",
    "error_message",
    "request_key",
]
