"""
Error taxonomy for registry operations.

Every failure of a registry call is a RegistryError so callers can treat them
as one "operation failed" shape, while the subclasses keep the kinds apart:

- RegistryTransportError: DNS, connect and stream failures
- RegistryStatusError: non-2xx HTTP status
- RegistryHtmlResponseError: HTML where JSON was expected (login redirect,
  wrong endpoint)
- RegistryInvalidJsonError: body that is not valid JSON (server bug)
- RegistryLogicalError: 2xx JSON body carrying an "error" field
"""

from __future__ import annotations


class RegistryError(Exception):
    """Base exception for registry operations."""


class RegistryTransportError(RegistryError):
    """Raised when the request could not be sent or the stream broke."""


class RegistryStatusError(RegistryError):
    """Raised when the registry responds with a status outside 200-299."""

    def __init__(self, message: str, status: int, reason: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.reason = reason

    @classmethod
    def from_status(cls, status: int, reason: str | None = None) -> RegistryStatusError:
        """Build the generic message used when the body carries no detail."""
        if reason:
            message = f"The server responded with status {status}: {reason}"
        else:
            message = f"The server responded with status {status}."
        return cls(message, status=status, reason=reason)


class RegistryHtmlResponseError(RegistryError):
    """Raised when an HTML page is returned instead of JSON.

    The message is the raw body so the page content stays visible.
    """

    def __init__(self, body: str, status: int) -> None:
        super().__init__(body)
        self.body = body
        self.status = status


class RegistryInvalidJsonError(RegistryError):
    """Raised when a 2xx body cannot be parsed as JSON."""

    def __init__(self, message: str, body: str, status: int) -> None:
        super().__init__(message)
        self.body = body
        self.status = status


class RegistryLogicalError(RegistryError):
    """Raised when a successful response reports an application error."""

    def __init__(self, message: str, status: int) -> None:
        super().__init__(message)
        self.status = status


class PayloadTooLargeError(RegistryError):
    """Raised locally when a body exceeds the configured upload limit."""

    def __init__(self, message: str, size: int, limit: int) -> None:
        super().__init__(message)
        self.size = size
        self.limit = limit
