from __future__ import annotations

from typing import AsyncIterator, Protocol


DEFAULT_SYSTEM_PROMPT = (
    "You are a C++ expert specializing in language standard migrations. "
    "Only provide answers based on official C++ standard documentation. "
    "If uncertain, say so."
)


class LLMProvider(Protocol):
    name: str
    model: str

    async def generate(self, prompt: str, *, system: str | None = None) -> str:
        ...

    def stream(self, messages: list[dict], *, system: str | None = None) -> AsyncIterator[str]:
        ...
