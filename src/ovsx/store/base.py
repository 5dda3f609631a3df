"""
Credential store interface.

A store maps namespace names to personal access tokens. Reads are served from
memory; add() and delete() persist immediately and are serialized per store,
so concurrent publish jobs may add tokens for different namespaces safely.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


class StoreError(Exception):
    """Base exception for credential store operations."""


class StoreConfigError(StoreError):
    """Raised when the persisted store cannot be read (corrupt file)."""


class StoreUnavailableError(StoreError):
    """Raised when a backend cannot be opened on this system."""


class CredentialNotFoundError(StoreError):
    """Raised when removing a namespace that has no stored token."""


@dataclass(frozen=True)
class StoreEntry:
    """
    One stored credential.

    Attributes:
        name: Namespace name (unique within a store).
        value: Personal access token.
    """

    name: str
    value: str

    def __repr__(self) -> str:
        return f"StoreEntry(name={self.name!r}, value='***')"


class CredentialStore(ABC):
    """Abstract base class for credential stores."""

    def __init__(self, entries: list[StoreEntry] | None = None) -> None:
        self._entries: dict[str, StoreEntry] = {e.name: e for e in entries or []}

    @property
    @abstractmethod
    def location(self) -> str:
        """Where the secrets live, for user-facing messages."""
        ...

    @property
    def size(self) -> int:
        """Number of stored credentials."""
        return len(self._entries)

    def __len__(self) -> int:
        return self.size

    def __iter__(self) -> Iterator[StoreEntry]:
        return iter(list(self._entries.values()))

    def get(self, name: str) -> str | None:
        """Return the token for a namespace, or None."""
        entry = self._entries.get(name)
        return entry.value if entry else None

    @abstractmethod
    async def add(self, name: str, value: str) -> None:
        """Store (or overwrite) the token for a namespace."""
        ...

    @abstractmethod
    async def delete(self, name: str) -> None:
        """Remove the token for a namespace. Missing names are ignored."""
        ...

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(location={self.location!r}, size={self.size})"
