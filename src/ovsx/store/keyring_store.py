"""
System credential manager store (macOS Keychain, Windows Credential Locker,
Secret Service on Linux) through the keyring library.

keyring cannot enumerate the secrets of a service, so the list of stored
namespaces is kept as one more secret under the account ":index" (a JSON
array). A colon never occurs in a namespace name.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import keyring
import orjson
from keyring.errors import KeyringError, PasswordDeleteError

from ovsx.store.base import CredentialStore, StoreEntry, StoreUnavailableError

if TYPE_CHECKING:
    from keyring.backend import KeyringBackend

logger = logging.getLogger(__name__)

SERVICE_NAME = "ovsx"
INDEX_ACCOUNT = ":index"


def _load_entries(backend: KeyringBackend, service: str) -> list[StoreEntry]:
    raw_index = backend.get_password(service, INDEX_ACCOUNT)
    names: list[str] = orjson.loads(raw_index) if raw_index else []

    entries = []
    for name in names:
        value = backend.get_password(service, name)
        if value is not None:
            entries.append(StoreEntry(name=name, value=value))
    return entries


class KeyringStore(CredentialStore):
    """Credential store backed by the operating system's secret service."""

    def __init__(
        self,
        backend: KeyringBackend,
        service_name: str = SERVICE_NAME,
        entries: list[StoreEntry] | None = None,
    ) -> None:
        super().__init__(entries)
        self._backend = backend
        self._service_name = service_name
        self._lock = asyncio.Lock()

    @classmethod
    async def open(
        cls,
        service_name: str = SERVICE_NAME,
        backend: KeyringBackend | None = None,
    ) -> KeyringStore:
        """
        Connect to the secret service and load existing credentials.

        Args:
            service_name: Service under which secrets are stored.
            backend: keyring backend (default: keyring.get_keyring()).

        Raises:
            StoreUnavailableError: If no usable backend exists or it fails.
        """
        kr = backend or keyring.get_keyring()
        try:
            entries = await asyncio.to_thread(_load_entries, kr, service_name)
        except (KeyringError, RuntimeError, orjson.JSONDecodeError) as e:
            msg = f"System credential manager unavailable: {e}"
            raise StoreUnavailableError(msg) from e

        logger.debug("Opened system credential store", extra={"entries": len(entries)})
        return cls(kr, service_name, entries)

    @property
    def location(self) -> str:
        return f"{self._backend.name} ({self._service_name})"

    def _write_index(self) -> None:
        names = sorted(self._entries)
        self._backend.set_password(
            self._service_name, INDEX_ACCOUNT, orjson.dumps(names).decode()
        )

    def _set(self, name: str, value: str) -> None:
        self._backend.set_password(self._service_name, name, value)
        self._write_index()

    def _remove(self, name: str) -> None:
        try:
            self._backend.delete_password(self._service_name, name)
        except PasswordDeleteError:
            logger.debug("No secret to delete", extra={"namespace": name})
        self._write_index()

    async def add(self, name: str, value: str) -> None:
        async with self._lock:
            self._entries[name] = StoreEntry(name=name, value=value)
            await asyncio.to_thread(self._set, name, value)

    async def delete(self, name: str) -> None:
        async with self._lock:
            self._entries.pop(name, None)
            await asyncio.to_thread(self._remove, name)
