"""
Decoding of registry response bodies.

decode_response() is a pure function from (status, body text) to a tagged
DecodedResponse; it never touches a socket. The branches, in order:

1. status outside 200-299: error message from the ErrorResponse body, or a
   generic status message
2. 2xx body that is an HTML page: failure carrying the raw HTML
3. 2xx body: JSON, failing on parse errors and on a non-empty "error" field
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

import orjson
from pydantic import ValidationError

from ovsx.registry.errors import (
    RegistryError,
    RegistryHtmlResponseError,
    RegistryInvalidJsonError,
    RegistryLogicalError,
    RegistryStatusError,
)
from ovsx.registry.types import ErrorResponse

HTML_DOCTYPE = "<!doctype html"


class DecodeKind(str, Enum):
    """Outcome of decoding a response body."""

    JSON = "json"
    ERROR_MESSAGE = "error_message"  # non-2xx with a structured message
    STATUS_ERROR = "status_error"  # non-2xx without usable detail
    HTML = "html"
    INVALID_JSON = "invalid_json"
    LOGICAL_ERROR = "logical_error"  # 2xx JSON with "error" set


@dataclass(frozen=True)
class DecodedResponse:
    """
    Tagged result of decode_response().

    Attributes:
        kind: Which branch the body fell into.
        status: HTTP status code.
        data: Parsed JSON (JSON kind only).
        message: Failure text (failure kinds only).
        body: Raw body text.
        reason: HTTP reason phrase, if any.
    """

    kind: DecodeKind
    status: int
    data: Any = None
    message: str | None = None
    body: str = ""
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.kind == DecodeKind.JSON

    def to_error(self) -> RegistryError:
        """Map a failure kind to the matching exception."""
        message = self.message or ""
        if self.kind == DecodeKind.ERROR_MESSAGE:
            return RegistryStatusError(message, status=self.status, reason=self.reason)
        if self.kind == DecodeKind.STATUS_ERROR:
            return RegistryStatusError.from_status(self.status, self.reason)
        if self.kind == DecodeKind.HTML:
            return RegistryHtmlResponseError(self.body, status=self.status)
        if self.kind == DecodeKind.INVALID_JSON:
            return RegistryInvalidJsonError(message, body=self.body, status=self.status)
        if self.kind == DecodeKind.LOGICAL_ERROR:
            return RegistryLogicalError(message, status=self.status)
        msg = f"Response with status {self.status} is not a failure"
        raise ValueError(msg)

    def unwrap(self) -> Any:
        """Return the parsed JSON, or raise the mapped RegistryError."""
        if self.ok:
            return self.data
        raise self.to_error()


def is_success_status(status: int) -> bool:
    return 200 <= status <= 299


def _error_message(body: str) -> str | None:
    """Extract message (or error) from an ErrorResponse body, if parseable."""
    if not body.lstrip().startswith("{"):
        return None
    try:
        parsed = ErrorResponse.model_validate(orjson.loads(body))
    except (orjson.JSONDecodeError, ValidationError):
        return None
    return parsed.message or parsed.error or None


def _is_html(body: str) -> bool:
    return body.lstrip()[: len(HTML_DOCTYPE)].lower() == HTML_DOCTYPE


def decode_response(status: int, body: str, reason: str | None = None) -> DecodedResponse:
    """
    Decode a complete response body.

    Args:
        status: HTTP status code.
        body: Full response body text.
        reason: HTTP reason phrase, used in the generic status message.

    Returns:
        DecodedResponse tagged with the branch taken.
    """
    if not is_success_status(status):
        message = _error_message(body)
        if message:
            return DecodedResponse(
                kind=DecodeKind.ERROR_MESSAGE,
                status=status,
                message=message,
                body=body,
                reason=reason,
            )
        return DecodedResponse(
            kind=DecodeKind.STATUS_ERROR,
            status=status,
            message=RegistryStatusError.from_status(status, reason).args[0],
            body=body,
            reason=reason,
        )

    if _is_html(body):
        return DecodedResponse(
            kind=DecodeKind.HTML, status=status, message=body, body=body, reason=reason
        )

    try:
        data = orjson.loads(body)
    except orjson.JSONDecodeError as e:
        return DecodedResponse(
            kind=DecodeKind.INVALID_JSON,
            status=status,
            message=f"Invalid JSON in registry response: {e}",
            body=body,
            reason=reason,
        )

    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, str) and error:
            return DecodedResponse(
                kind=DecodeKind.LOGICAL_ERROR,
                status=status,
                data=data,
                message=error,
                body=body,
                reason=reason,
            )

    return DecodedResponse(kind=DecodeKind.JSON, status=status, data=data, body=body, reason=reason)
