"""
Shared fixtures: in-memory backends that stand in for OpenAI and Ollama.
"""

import asyncio
from typing import Optional

import pytest

from invoice_checker.backends import Backend


class FakeBackend(Backend):
    """Backend that returns a canned answer, raises, or stalls."""

    def __init__(
        self,
        name: str = "Fake",
        model: str = "test",
        answer: str = "",
        error: Optional[Exception] = None,
        delay: float = 0.0,
        available: bool = True,
    ):
        super().__init__(model)
        self.name = name
        self.answer = answer
        self.error = error
        self.delay = delay
        self.available = available
        self.prompts: list[str] = []
        self.max_tokens: list[Optional[int]] = []
        self.probe_calls = 0

    async def probe(self) -> bool:
        self.probe_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.available

    async def generate(self, prompt, timeout_ms, *, model=None, max_tokens=None) -> str:
        self.prompts.append(prompt)
        self.max_tokens.append(max_tokens)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.answer


@pytest.fixture
def make_backend():
    """Factory for FakeBackend instances."""
    return FakeBackend


SAMPLE_TEXT = (
    "Rechnungsnummer: INV-2024-001\n"
    "Datum: 15.03.2024\n"
    "Netto: 100,00\n"
    "MwSt: 19,00\n"
    "Brutto: 119,00"
)


@pytest.fixture
def sample_text() -> str:
    return SAMPLE_TEXT
