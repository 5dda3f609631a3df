"""
Structured logging configuration for ovsx.

Personal access tokens travel as a query parameter and are kept in the
credential store, so every formatter here:
- drops fields whose names look like credentials (BLOCKED_FIELDS)
- reduces URLs to their path, which removes the ?token=... query
- masks token-like fragments in free-form text

Usage:
    from ovsx.logging_config import setup_logging

    setup_logging(json_format=False)  # Call once at startup
    logger = logging.getLogger(__name__)
    logger.info("message", extra={"namespace": "redhat"})
"""

from __future__ import annotations

import logging
import re
import sys
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlsplit

import orjson

# Matches URLs: https://open-vsx.org/api/-/publish?token=...
_URL_PATTERN = re.compile(r"(https?://[^\s\"'<>]+)")
_SENSITIVE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    # token=..., pat=... in query strings or key/value text
    (re.compile(r"\b(token|pat)=[^\s&\"']+", re.I), r"\1=[TOKEN]"),
    # Bearer credentials
    (re.compile(r"\bbearer\s+[\w\-\.]+", re.I), "Bearer [TOKEN]"),
    # Authorization headers
    (re.compile(r"\b(authorization)[=:]\s*['\"]?[\w\-\.\s]+['\"]?", re.I), "[AUTH]"),
]

# Fields that must never appear in logs
BLOCKED_FIELDS: frozenset[str] = frozenset(
    {
        "token",
        "pat",
        "secret",
        "password",
        "value",
        "auth",
        "authorization",
        "bearer",
        "credential",
    }
)

# Fields that are replaced wholesale (url is reduced to its path)
HIGH_CARDINALITY_FIELDS: dict[str, str] = {
    "url": "endpoint",
    "body": "[BODY]",
    "params": "[PARAMS]",
    "headers": "[HEADERS]",
}

# Attributes every LogRecord carries; anything else came from extra={...}
_RECORD_ATTRS: frozenset[str] = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "message",
        "taskName",
    }
)


def _normalize_url(url: str) -> str:
    """Extract the endpoint path from a URL, dropping host and query string."""
    return urlsplit(url).path or "/"


def _sanitize_url_in_text(match: re.Match[str]) -> str:
    path = _normalize_url(match.group(1))
    return path if path != "/" else "[URL]"


def redact_secrets(text: str) -> str:
    """Mask token-like fragments, leaving URLs readable."""
    for pattern, replacement in _SENSITIVE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def _sanitize_text(text: str) -> str:
    """Remove tokens and query strings from free-form text (msg, exc)."""
    if not text:
        return text

    return redact_secrets(_URL_PATTERN.sub(_sanitize_url_in_text, text))


def _is_blocked(key: str) -> bool:
    key_lower = key.lower()
    if key_lower in BLOCKED_FIELDS:
        return True
    # Partial matches: user_token, pat_value, ...
    return any(blocked in key_lower.split("_") for blocked in BLOCKED_FIELDS)


def _filter_log_record(record: dict[str, Any], *, _depth: int = 0) -> dict[str, Any]:
    """Filter credential and high-cardinality fields from a log record.

    Nested dicts are filtered recursively up to depth 3.
    """
    if _depth > 3:
        return {"_truncated": "max depth exceeded"}

    filtered: dict[str, Any] = {}

    for key, value in record.items():
        if _is_blocked(key):
            continue

        key_lower = key.lower()
        if key_lower in HIGH_CARDINALITY_FIELDS:
            if key_lower == "url" and isinstance(value, str):
                filtered["endpoint"] = _normalize_url(value)
            else:
                filtered[key] = HIGH_CARDINALITY_FIELDS[key_lower]
            continue

        if isinstance(value, (int, float, bool, type(None))):
            filtered[key] = value
        elif isinstance(value, str):
            filtered[key] = _sanitize_text(value)
        elif isinstance(value, (list, tuple)):
            if len(value) <= 10:
                filtered[key] = [_sanitize_text(str(v)) for v in value]
            else:
                filtered[key] = f"[list:{len(value)} items]"
        elif isinstance(value, dict):
            filtered[key] = _filter_log_record(value, _depth=_depth + 1)
        else:
            filtered[key] = _sanitize_text(str(value))

    return filtered


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    extra = {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS}
    return _filter_log_record(extra) if extra else {}


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for CI log collectors.

    Output format:
    {"ts":"2024-01-01T00:00:00.000+00:00","level":"INFO","logger":"ovsx.cli","msg":"...", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_dict: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": _sanitize_text(record.getMessage()),
        }

        if record.levelno >= logging.WARNING:
            log_dict["file"] = record.filename
            log_dict["line"] = record.lineno

        if record.exc_info:
            log_dict["exc"] = _sanitize_text(self.formatException(record.exc_info))

        log_dict.update(_extra_fields(record))

        return orjson.dumps(log_dict, default=str).decode()


class SimpleFormatter(logging.Formatter):
    """Human-readable console output.

    INFO lines print the bare message; warnings and errors carry the level.
    """

    def format(self, record: logging.LogRecord) -> str:
        message = _sanitize_text(record.getMessage())
        base = message if record.levelno == logging.INFO else f"{record.levelname}: {message}"

        filtered = _extra_fields(record)
        if filtered and record.levelno != logging.INFO:
            extra_str = " ".join(f"{k}={v}" for k, v in filtered.items())
            base = f"{base} | {extra_str}"

        if record.exc_info and record.levelno <= logging.DEBUG:
            base = f"{base}\n{_sanitize_text(self.formatException(record.exc_info))}"

        return base


def setup_logging(
    *,
    level: int | str = logging.INFO,
    json_format: bool = False,
    stream: Any = None,
) -> None:
    """Configure logging for the CLI. Call once at startup.

    Args:
        level: Log level (default INFO).
        json_format: Use JSON formatter instead of human-readable lines.
        stream: Output stream (default stderr).
    """
    if stream is None:
        stream = sys.stderr

    handler = logging.StreamHandler(stream)
    handler.setFormatter(JsonFormatter() if json_format else SimpleFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    # Suppress noisy third-party loggers
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("keyring").setLevel(logging.WARNING)
