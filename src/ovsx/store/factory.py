"""
Selection of the credential store backend.

Policy:
1. OVSX_STORE=file forces the clear-text file store.
2. Otherwise the system credential manager is used. If it cannot be opened for
   any reason, fall back to the file store and warn with its path.
3. When the system store opens and a non-empty file store exists, every entry
   is copied into the system store and the file is deleted. An empty file
   store triggers nothing, so the migration runs at most once.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ovsx.config import use_file_store
from ovsx.store.file_store import FileStore
from ovsx.store.keyring_store import KeyringStore

if TYPE_CHECKING:
    from pathlib import Path

    from keyring.backend import KeyringBackend

    from ovsx.store.base import CredentialStore

logger = logging.getLogger(__name__)


async def migrate_file_store(file_store: FileStore, target: CredentialStore) -> int:
    """
    Move all entries of a file store into another store.

    Returns:
        Number of migrated entries (0 when the file store was empty).
    """
    count = file_store.size
    if not count:
        return 0

    for entry in file_store:
        await target.add(entry.name, entry.value)

    await file_store.delete_store()
    logger.info(
        f"Migrated {count} namespaces to the system credential manager. "
        f"Deleted local store '{file_store.path}'.",
        extra={"migrated": count},
    )
    return count


async def open_default_store(
    *,
    file_path: str | Path | None = None,
    keyring_backend: KeyringBackend | None = None,
) -> CredentialStore:
    """
    Open the credential store configured for this machine.

    Args:
        file_path: Location of the file store (default ~/.ovsx).
        keyring_backend: keyring backend override (default: system keyring).

    Raises:
        StoreConfigError: If the file store exists but cannot be parsed.
    """
    if use_file_store():
        return FileStore.open(file_path)

    try:
        vault = await KeyringStore.open(backend=keyring_backend)
    except Exception as e:
        store = FileStore.open(file_path)
        logger.warning(
            "Failed to open credential store. "
            f"Falling back to storing secrets clear-text in: {store.path}.",
            extra={"error": str(e)},
        )
        return store

    file_store = FileStore.open(file_path)
    await migrate_file_store(file_store, vault)
    return vault
