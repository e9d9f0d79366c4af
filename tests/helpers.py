"""Deterministic model clients and builders shared by the tests."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, List, Optional

from collective.models import Analysis


class ScriptedModel:
    """Model client that records prompts and answers through ``respond``.

    ``fail_on`` is the 1-based call number that raises instead of answering.
    """

    def __init__(self, respond: Optional[Callable[[int, str], str]] = None, *, fail_on: Optional[int] = None) -> None:
        self.prompts: List[str] = []
        self._respond = respond or (lambda call, prompt: f"response #{call}")
        self._fail_on = fail_on

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        call = len(self.prompts)
        if call == self._fail_on:
            raise RuntimeError(f"quota exceeded on call {call}")
        return self._respond(call, prompt)


def make_analysis(role: str, text: str, query: str = "test") -> Analysis:
    return Analysis(
        role=role,
        query=query,
        text=text,
        produced_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        prompt_size=0,
    )
