"""Credential storage: namespace -> personal access token.

Two interchangeable backends (clear-text file, system credential manager)
behind CredentialStore, chosen by open_default_store().
"""

from ovsx.store.base import (
    CredentialNotFoundError,
    CredentialStore,
    StoreConfigError,
    StoreEntry,
    StoreError,
    StoreUnavailableError,
)
from ovsx.store.factory import migrate_file_store, open_default_store
from ovsx.store.file_store import FileStore, default_store_path
from ovsx.store.keyring_store import KeyringStore

__all__ = [
    "CredentialNotFoundError",
    "CredentialStore",
    "FileStore",
    "KeyringStore",
    "StoreConfigError",
    "StoreEntry",
    "StoreError",
    "StoreUnavailableError",
    "default_store_path",
    "migrate_file_store",
    "open_default_store",
]
