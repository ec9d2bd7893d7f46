from __future__ import annotations

from typing import AsyncIterator


class FakeLLMProvider:
    name = "fake"
    model = "fake-model"

    def __init__(self, response: str = "This is a fake response.") -> None:
        # Deterministic response keeps tests stable without external calls.
        self._response = response
        self.calls: list[dict] = []

    async def generate(self, prompt: str, *, system: str | None = None) -> str:
        self.calls.append({"prompt": prompt, "system": system})
        return self._response

    async def stream(self, messages: list[dict], *, system: str | None = None) -> AsyncIterator[str]:
        self.calls.append({"messages": messages, "system": system})
        # Yield word tokens so streaming consumers see several deltas.
        for token in self._response.split():
            yield f"{token} "
