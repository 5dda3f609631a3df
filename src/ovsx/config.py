"""
Configuration for the ovsx client.

Settings come from explicit arguments first and from the environment second:

- OVSX_REGISTRY_URL: base URL of the registry API
- OVSX_PAT: personal access token used when none is given explicitly
- OVSX_STORE: set to "file" to keep tokens in a clear-text file instead of the
  system credential manager
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from urllib.parse import urlsplit

DEFAULT_URL = "https://open-vsx.org"
DEFAULT_NAMESPACE_SIZE = 1024
DEFAULT_PUBLISH_SIZE = 512 * 1024 * 1024

ENV_REGISTRY_URL = "OVSX_REGISTRY_URL"
ENV_PAT = "OVSX_PAT"
ENV_STORE = "OVSX_STORE"

# Env vars whose values must never be logged
REDACTED_ENV_VARS = frozenset({ENV_PAT})

# Variables set by common CI providers
_CI_ENV_VARS = ("CI", "CONTINUOUS_INTEGRATION", "BUILD_NUMBER", "RUN_ID", "TF_BUILD")

_FILE_STORE_RE = re.compile(r"^file$", re.I)


@dataclass
class RegistryConfig:
    """
    Connection settings for a registry.

    Attributes:
        url: Base URL of the registry API (trailing slash is stripped).
        max_namespace_size: Maximum request body size for namespace creation.
        max_publish_size: Maximum artifact size accepted for upload.
        timeout_s: Total request timeout. None keeps the transport default.
        request_headers: Extra headers sent with every request.
    """

    url: str = DEFAULT_URL
    max_namespace_size: int = DEFAULT_NAMESPACE_SIZE
    max_publish_size: int = DEFAULT_PUBLISH_SIZE
    timeout_s: float | None = None
    request_headers: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.url:
            self.url = DEFAULT_URL
        if self.url.endswith("/"):
            self.url = self.url[:-1]

        scheme = urlsplit(self.url).scheme
        if scheme not in ("http", "https"):
            msg = f"Registry URL must use http or https, got {self.url!r}"
            raise ValueError(msg)
        if self.max_namespace_size <= 0:
            msg = f"max_namespace_size must be > 0, got {self.max_namespace_size}"
            raise ValueError(msg)
        if self.max_publish_size <= 0:
            msg = f"max_publish_size must be > 0, got {self.max_publish_size}"
            raise ValueError(msg)
        if self.timeout_s is not None and self.timeout_s <= 0:
            msg = f"timeout_s must be > 0, got {self.timeout_s}"
            raise ValueError(msg)

    @classmethod
    def from_env(cls, url: str | None = None) -> RegistryConfig:
        """Build a config, taking the URL from OVSX_REGISTRY_URL when not given."""
        return cls(url=url or os.environ.get(ENV_REGISTRY_URL, "") or DEFAULT_URL)


def pat_from_env(pat: str | None = None) -> str | None:
    """Return the explicit token, or OVSX_PAT when unset."""
    return pat or os.environ.get(ENV_PAT) or None


def use_file_store() -> bool:
    """Check whether OVSX_STORE forces the clear-text file store."""
    return bool(_FILE_STORE_RE.match(os.environ.get(ENV_STORE, "")))


def is_ci() -> bool:
    """Detect a continuous integration environment (no interactive prompts)."""
    for name in _CI_ENV_VARS:
        value = os.environ.get(name)
        if value and value.lower() not in ("0", "false"):
            return True
    return False
