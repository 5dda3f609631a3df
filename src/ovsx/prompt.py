"""
Interactive console prompts.

Publish jobs run concurrently, so prompts go through one lock: a question is
asked and answered completely before the next one is printed.
"""

from __future__ import annotations

import asyncio
import getpass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence


class Prompt(Protocol):
    """Protocol for asking the user questions.

    Callers hold `lock` for the whole exchange (a question and its follow-ups).
    """

    @property
    def lock(self) -> asyncio.Lock: ...

    async def secret(self, text: str) -> str:
        """Ask for a hidden value (token)."""
        ...

    async def text(self, text: str) -> str:
        """Ask for a free-form value."""
        ...

    async def choice(self, text: str, choices: Sequence[str], default: str) -> str:
        """Ask for one of several answers; prefixes are accepted."""
        ...


def match_choice(answer: str, choices: Sequence[str], default: str) -> str | None:
    """
    Resolve a typed answer against the allowed choices.

    An empty answer selects the default; otherwise the first choice starting
    with the (case-insensitive) answer wins. Returns None when nothing matches.
    """
    answer = answer.strip().lower()
    if not answer:
        return default
    for choice in choices:
        if choice.lower().startswith(answer):
            return choice
    return None


class ConsolePrompt:
    """Prompt implementation reading from the terminal."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()

    @property
    def lock(self) -> asyncio.Lock:
        return self._lock

    async def secret(self, text: str) -> str:
        return (await asyncio.to_thread(getpass.getpass, f"{text} ")).strip()

    async def text(self, text: str) -> str:
        return (await asyncio.to_thread(input, text)).strip()

    async def choice(self, text: str, choices: Sequence[str], default: str) -> str:
        options = "/".join(f"[{c}]" if c == default else c for c in choices)
        while True:
            answer = await asyncio.to_thread(input, f"{text}\n{options}: ")
            selected = match_choice(answer, choices, default)
            if selected is not None:
                return selected
