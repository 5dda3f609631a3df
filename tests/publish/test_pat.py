"""Tests for personal access token resolution."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from ovsx.publish.pat import PatResolver
from ovsx.registry.errors import RegistryLogicalError, RegistryStatusError
from ovsx.registry.types import RegistryResponse
from ovsx.store.file_store import FileStore

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path


@pytest.fixture
def store(tmp_path: Path) -> FileStore:
    return FileStore.open(tmp_path / ".ovsx")


@pytest.fixture
def client() -> MagicMock:
    client = MagicMock()
    client.verify_pat = AsyncMock(return_value=RegistryResponse(success="Valid"))
    return client


class TestGetPat:
    @pytest.mark.asyncio
    async def test_explicit_token_is_used_as_is(
        self,
        store: FileStore,
        client: MagicMock,
        make_prompt: Callable[..., Any],
    ) -> None:
        prompt = make_prompt()
        resolver = PatResolver(store, client, prompt)

        assert await resolver.get_pat("ns", "explicit") == "explicit"

        client.verify_pat.assert_not_called()
        assert prompt.asked == []
        assert store.get("ns") is None

    @pytest.mark.asyncio
    async def test_stored_token_is_used(
        self,
        store: FileStore,
        client: MagicMock,
        make_prompt: Callable[..., Any],
    ) -> None:
        await store.add("ns", "stored")
        prompt = make_prompt()
        resolver = PatResolver(store, client, prompt)

        assert await resolver.get_pat("ns") == "stored"

        client.verify_pat.assert_not_called()
        assert prompt.asked == []

    @pytest.mark.asyncio
    async def test_entered_token_is_verified_and_stored(
        self,
        store: FileStore,
        client: MagicMock,
        make_prompt: Callable[..., Any],
    ) -> None:
        prompt = make_prompt(secrets=["entered"])
        resolver = PatResolver(store, client, prompt)

        assert await resolver.get_pat("ns") == "entered"

        client.verify_pat.assert_awaited_once_with("ns", "entered")
        assert store.get("ns") == "entered"
        assert prompt.asked == ["Personal Access Token for namespace 'ns':"]

    @pytest.mark.asyncio
    async def test_rejected_token_is_not_stored(
        self,
        store: FileStore,
        client: MagicMock,
        make_prompt: Callable[..., Any],
    ) -> None:
        client.verify_pat = AsyncMock(
            side_effect=RegistryStatusError("Insufficient access rights.", status=403)
        )
        resolver = PatResolver(store, client, make_prompt(secrets=["bad"]))

        with pytest.raises(RegistryStatusError, match="Insufficient access rights."):
            await resolver.get_pat("ns")

        assert store.get("ns") is None

    @pytest.mark.asyncio
    async def test_verification_can_be_suppressed(
        self,
        store: FileStore,
        client: MagicMock,
        make_prompt: Callable[..., Any],
    ) -> None:
        resolver = PatResolver(store, client, make_prompt(secrets=["entered"]))

        assert await resolver.get_pat("ns", verify=False) == "entered"

        client.verify_pat.assert_not_called()
        assert store.get("ns") == "entered"

    @pytest.mark.asyncio
    async def test_empty_input_fails(
        self,
        store: FileStore,
        client: MagicMock,
        make_prompt: Callable[..., Any],
    ) -> None:
        resolver = PatResolver(store, client, make_prompt(secrets=[""]))

        with pytest.raises(ValueError, match="No personal access token"):
            await resolver.get_pat("ns")

    @pytest.mark.asyncio
    async def test_concurrent_requests_prompt_once_per_namespace(
        self,
        store: FileStore,
        client: MagicMock,
        make_prompt: Callable[..., Any],
    ) -> None:
        prompt = make_prompt(secrets=["tok-a", "tok-b"])
        resolver = PatResolver(store, client, prompt)

        tokens = await asyncio.gather(
            resolver.get_pat("a"),
            resolver.get_pat("a"),
            resolver.get_pat("b"),
        )

        assert tokens == ["tok-a", "tok-a", "tok-b"]
        assert len(prompt.asked) == 2
        assert store.get("a") == "tok-a"
        assert store.get("b") == "tok-b"


class TestRequestPat:
    @pytest.mark.asyncio
    async def test_relogin_replaces_stored_token(
        self,
        store: FileStore,
        client: MagicMock,
        make_prompt: Callable[..., Any],
    ) -> None:
        await store.add("ns", "old")
        prompt = make_prompt(secrets=["new"])
        resolver = PatResolver(store, client, prompt)

        assert await resolver.request_pat("ns", reuse_stored=False) == "new"

        assert store.get("ns") == "new"
        assert len(prompt.asked) == 1


class TestVerifyPat:
    @pytest.mark.asyncio
    async def test_error_field_fails(
        self,
        store: FileStore,
        client: MagicMock,
        make_prompt: Callable[..., Any],
    ) -> None:
        client.verify_pat = AsyncMock(return_value=RegistryResponse(error="Unknown namespace."))
        resolver = PatResolver(store, client, make_prompt())

        with pytest.raises(RegistryLogicalError, match="Unknown namespace."):
            await resolver.verify_pat("ns", "tok")
