"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence


class ScriptedPrompt:
    """Prompt answering from prepared lists and recording the questions."""

    def __init__(
        self,
        secrets: Iterable[str] = (),
        texts: Iterable[str] = (),
        choices: Iterable[str] = (),
    ) -> None:
        self._lock = asyncio.Lock()
        self.secrets = list(secrets)
        self.texts = list(texts)
        self.choices = list(choices)
        self.asked: list[str] = []

    @property
    def lock(self) -> asyncio.Lock:
        return self._lock

    async def secret(self, text: str) -> str:
        self.asked.append(text)
        await asyncio.sleep(0)
        return self.secrets.pop(0)

    async def text(self, text: str) -> str:
        self.asked.append(text)
        return self.texts.pop(0)

    async def choice(self, text: str, choices: Sequence[str], default: str) -> str:
        self.asked.append(text)
        return self.choices.pop(0)


@pytest.fixture
def make_prompt() -> Callable[..., ScriptedPrompt]:
    """Factory for scripted prompts."""
    return ScriptedPrompt


@pytest.fixture(autouse=True)
def clean_ovsx_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Tests never see the developer's registry settings."""
    for name in ("OVSX_REGISTRY_URL", "OVSX_PAT", "OVSX_STORE"):
        monkeypatch.delenv(name, raising=False)
