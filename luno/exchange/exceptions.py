"""Typed exception hierarchy for Luno API operations.

Lets callers tell local argument mistakes apart from upstream HTTP failures,
and branch on the common HTTP failure classes without inspecting status codes.
Transport failures are not wrapped: ``httpx.TransportError`` reaches the caller
as raised.
"""

from __future__ import annotations

from typing import Dict, Type


class LunoError(Exception):
    """Base class for all client errors."""


class LunoArgumentError(LunoError, ValueError):
    """A required argument is missing or an enum-like argument is out of range.

    Raised synchronously, before any request is built.
    """

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation}: {message}")
        self.operation = operation


class LunoAPIError(LunoError):
    """Non-2xx HTTP response. ``message`` is the transport's status text."""

    def __init__(self, status: int, message: str):
        super().__init__(f"{status} {message}".strip())
        self.status = status
        self.message = message

    def to_dict(self) -> Dict[str, object]:
        return {"status": self.status, "message": self.message}


class AuthenticationError(LunoAPIError):
    """Missing or rejected API credentials (401/403)."""


class NotFoundError(LunoAPIError):
    """Unknown resource, e.g. an order or quote id (404)."""


class RateLimitError(LunoAPIError):
    """Luno rate limit hit (429). Not retried by the client."""


class ServerError(LunoAPIError):
    """Upstream failure (5xx)."""


_STATUS_ERRORS: Dict[int, Type[LunoAPIError]] = {
    401: AuthenticationError,
    403: AuthenticationError,
    404: NotFoundError,
    429: RateLimitError,
}


def api_error_for_status(status: int, message: str) -> LunoAPIError:
    """Build the most specific ``LunoAPIError`` for an HTTP status."""
    cls = _STATUS_ERRORS.get(status)
    if cls is None:
        cls = ServerError if status >= 500 else LunoAPIError
    return cls(status, message)
