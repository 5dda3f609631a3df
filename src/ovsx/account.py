"""
Namespace and token management: create-namespace, login, logout, verify-pat.

All operations take their collaborators explicitly; the CLI wires the
default store, client and console prompt.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from ovsx.config import pat_from_env
from ovsx.manifest import ManifestError, read_source_manifest
from ovsx.store.base import CredentialNotFoundError

if TYPE_CHECKING:
    from pathlib import Path

    from ovsx.publish.pat import PatResolver
    from ovsx.registry.client import RegistryClient
    from ovsx.registry.types import RegistryResponse
    from ovsx.store.base import CredentialStore

logger = logging.getLogger(__name__)


async def create_namespace(
    client: RegistryClient,
    resolver: PatResolver,
    name: str,
    pat: str | None = None,
) -> RegistryResponse:
    """
    Create a namespace on the registry.

    A token entered interactively is not verified first: verification needs
    the namespace to exist.

    Raises:
        RegistryError: If the registry refuses the namespace.
    """
    token = await resolver.get_pat(name, pat_from_env(pat), verify=False)
    result = await client.create_namespace(name, token)
    logger.info(f"\U0001f680  Created namespace {name}")
    if result.warning:
        logger.warning(result.warning)
    return result


async def login(resolver: PatResolver, namespace: str, pat: str | None = None) -> None:
    """
    Verify a token for the namespace and remember it.

    Without an explicit token the user is asked for one, even when a token is
    already stored (re-login replaces it).
    """
    if pat:
        await resolver.verify_pat(namespace, pat)
        await resolver.store.add(namespace, pat)
    else:
        await resolver.request_pat(namespace, reuse_stored=False)
    logger.info(f"Logged in to namespace {namespace}", extra={"store": resolver.store.location})


async def logout(store: CredentialStore, namespace: str) -> None:
    """
    Forget the stored token of a namespace.

    Raises:
        CredentialNotFoundError: If no token is stored for the namespace.
    """
    if store.get(namespace) is None:
        msg = f"No credentials found for namespace '{namespace}'."
        raise CredentialNotFoundError(msg)
    await store.delete(namespace)
    logger.info(f"Logged out of namespace {namespace}")


async def verify_pat(
    resolver: PatResolver,
    namespace: str | None = None,
    pat: str | None = None,
    package_path: str | Path | None = None,
) -> str:
    """
    Check with the registry that a token may publish to a namespace.

    Args:
        resolver: Supplies a stored or entered token when none is given.
        namespace: Namespace to check (default: publisher in package.json).
        pat: Token to check (default: OVSX_PAT, stored or entered token).
        package_path: Extension directory holding package.json.

    Returns:
        The verified namespace.

    Raises:
        ManifestError: If no namespace is given and package.json has no publisher.
        RegistryError: If the token is rejected.
    """
    if not namespace:
        manifest = await asyncio.to_thread(read_source_manifest, package_path)
        if not manifest.publisher:
            raise ManifestError("Missing required field 'publisher'.")
        namespace = manifest.publisher

    token = pat_from_env(pat) or resolver.store.get(namespace)
    if token:
        await resolver.verify_pat(namespace, token)
    else:
        # entered tokens are verified before they are stored
        await resolver.request_pat(namespace, verify=True)
    logger.info(f"PAT valid to publish at {namespace}")
    return namespace
