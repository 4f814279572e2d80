"""Exception hierarchy for the backend client."""
from __future__ import annotations

from typing import Any

DEFAULT_ERROR_MESSAGE = "Something went wrong. Please try again."


class PosClientError(Exception):
    """Base exception for client errors."""


class NetworkError(PosClientError):
    """Raised when the backend cannot be reached."""


class ApiError(PosClientError):
    """Backend answered with a non-2xx status."""

    def __init__(self, status_code: int, payload: Any = None, message: str | None = None):
        self.status_code = status_code
        self.payload = payload
        super().__init__(message or f"Backend returned HTTP {status_code}")


class UnauthorizedError(ApiError):
    """Backend rejected the credentials; the session has been terminated."""


def error_message(exc: BaseException, fallback: str = DEFAULT_ERROR_MESSAGE) -> str:
    """Return the message a user should see for ``exc``."""

    payload = getattr(exc, "payload", None)
    if isinstance(payload, dict):
        for key in ("error", "message"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value
    return fallback
