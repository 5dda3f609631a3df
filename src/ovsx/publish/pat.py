"""
Personal access token resolution per namespace.

States:
- known: a token was given explicitly; it is used as-is and never re-verified
- lookup: the credential store has a token for the namespace; same as known
- interactive: the user is asked for a token, which is verified against the
  registry (unless the caller suppresses verification) and then stored

A failed verification fails the operation; there is no retry.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ovsx.registry.errors import RegistryLogicalError

if TYPE_CHECKING:
    from ovsx.prompt import Prompt
    from ovsx.registry.client import RegistryClient
    from ovsx.store.base import CredentialStore

logger = logging.getLogger(__name__)


class PatResolver:
    """Resolves, verifies and remembers tokens for namespaces."""

    def __init__(self, store: CredentialStore, client: RegistryClient, prompt: Prompt) -> None:
        self._store = store
        self._client = client
        self._prompt = prompt

    @property
    def store(self) -> CredentialStore:
        return self._store

    async def get_pat(self, namespace: str, pat: str | None = None, *, verify: bool = True) -> str:
        """
        Return a token for the namespace.

        Args:
            namespace: Namespace to publish to.
            pat: Explicit token; returned unchanged when given.
            verify: Verify a token entered interactively before storing it.

        Raises:
            RegistryError: If verification of an entered token fails.
        """
        if pat:
            return pat

        stored = self._store.get(namespace)
        if stored:
            logger.debug("Using stored token", extra={"namespace": namespace})
            return stored

        return await self.request_pat(namespace, verify=verify)

    async def request_pat(
        self,
        namespace: str,
        *,
        verify: bool = True,
        reuse_stored: bool = True,
    ) -> str:
        """
        Ask the user for a token, verify it and store it.

        Prompts are serialized. With reuse_stored, a token stored for the same
        namespace by a concurrent job while this one waited for the prompt is
        returned instead, so the user is asked once per namespace.
        """
        async with self._prompt.lock:
            stored = self._store.get(namespace) if reuse_stored else None
            if stored:
                return stored

            pat = await self._prompt.secret(f"Personal Access Token for namespace '{namespace}':")
            if not pat:
                msg = f"No personal access token given for namespace '{namespace}'."
                raise ValueError(msg)

            if verify:
                await self.verify_pat(namespace, pat)

            await self._store.add(namespace, pat)
            return pat

    async def verify_pat(self, namespace: str, pat: str) -> None:
        """
        Check with the registry that the token may publish to the namespace.

        Raises:
            RegistryError: If the registry rejects the token.
        """
        result = await self._client.verify_pat(namespace, pat)
        if result.error:
            raise RegistryLogicalError(result.error, status=200)
        logger.debug("Token verified", extra={"namespace": namespace})
