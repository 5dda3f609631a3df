"""
Clear-text file credential store.

Format (~/.ovsx, mode 0600):
    {"entries": [{"name": "redhat", "value": "<token>"}, ...]}

A missing file is an empty store; a file that cannot be parsed is a
configuration error.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

import orjson

from ovsx.store.base import CredentialStore, StoreConfigError, StoreEntry

logger = logging.getLogger(__name__)

STORE_FILE_NAME = ".ovsx"
FILE_MODE = 0o600


def default_store_path() -> Path:
    """~/.ovsx, resolved at call time."""
    return Path.home() / STORE_FILE_NAME


def _parse_entries(raw: bytes, path: Path) -> list[StoreEntry]:
    try:
        document = orjson.loads(raw)
        entries = document["entries"]
        return [StoreEntry(name=str(e["name"]), value=str(e["value"])) for e in entries]
    except (orjson.JSONDecodeError, KeyError, TypeError) as e:
        msg = f"Error parsing file store: {path}."
        raise StoreConfigError(msg) from e


class FileStore(CredentialStore):
    """Credential store persisted as a JSON document with owner-only permissions."""

    def __init__(self, path: Path, entries: list[StoreEntry] | None = None) -> None:
        super().__init__(entries)
        self._path = path
        self._lock = asyncio.Lock()

    @classmethod
    def open(cls, path: str | Path | None = None) -> FileStore:
        """
        Load the store from disk.

        Args:
            path: Store file (default ~/.ovsx).

        Raises:
            StoreConfigError: If the file exists but is not a valid store.
        """
        store_path = Path(path) if path is not None else default_store_path()
        try:
            raw = store_path.read_bytes()
        except FileNotFoundError:
            return cls(store_path, [])
        return cls(store_path, _parse_entries(raw, store_path))

    @property
    def path(self) -> Path:
        return self._path

    @property
    def location(self) -> str:
        return str(self._path)

    def _save(self) -> None:
        document = {"entries": [{"name": e.name, "value": e.value} for e in self._entries.values()]}
        fd = os.open(self._path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, FILE_MODE)
        with os.fdopen(fd, "wb") as f:
            f.write(orjson.dumps(document))
        # O_CREAT mode does not apply to an existing file
        os.chmod(self._path, FILE_MODE)

    async def add(self, name: str, value: str) -> None:
        async with self._lock:
            self._entries[name] = StoreEntry(name=name, value=value)
            self._save()
        logger.debug("Stored token", extra={"namespace": name, "store": "file"})

    async def delete(self, name: str) -> None:
        async with self._lock:
            self._entries.pop(name, None)
            self._save()

    async def delete_store(self) -> None:
        """Remove the backing file. Used after migrating to the system vault."""
        async with self._lock:
            self._path.unlink(missing_ok=True)
