from __future__ import annotations

import logging
import time
from typing import AsyncIterator

import anthropic

from shuguridan.core.config import get_settings
from shuguridan.core.errors import LLMAuthError, LLMError, ProviderConfigError
from shuguridan.providers.llm.base import DEFAULT_SYSTEM_PROMPT


logger = logging.getLogger(__name__)


class AnthropicClaudeProvider:
    """Claude via the official async SDK."""

    name = "anthropic"

    def __init__(self, client: anthropic.AsyncAnthropic | None = None) -> None:
        self._settings = get_settings()
        self._owns_client = client is None
        if client is None:
            if not self._settings.anthropic_api_key:
                raise ProviderConfigError("ANTHROPIC_API_KEY is required for the Anthropic provider")
            client = anthropic.AsyncAnthropic(api_key=self._settings.anthropic_api_key)
        self._client = client
        self.model = self._settings.anthropic_model
        self._max_tokens = self._settings.anthropic_max_tokens

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.close()

    async def generate(self, prompt: str, *, system: str | None = None) -> str:
        start = time.monotonic()
        try:
            response = await self._client.messages.create(
                model=self.model,
                max_tokens=self._max_tokens,
                system=system or DEFAULT_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.AuthenticationError as exc:
            logger.warning("anthropic_auth_error model=%s", self.model)
            raise LLMAuthError("Anthropic auth error: check ANTHROPIC_API_KEY.") from exc
        except anthropic.APIError as exc:
            logger.error("anthropic_generate_error model=%s error=%s", self.model, type(exc).__name__)
            raise LLMError("Anthropic request failed.") from exc

        logger.info(
            "anthropic_generate model=%s latency_ms=%.1f",
            self.model,
            (time.monotonic() - start) * 1000.0,
        )
        # Only the first text block carries the answer; tool blocks are not requested.
        for block in response.content:
            if block.type == "text":
                return block.text
        return ""

    async def stream(self, messages: list[dict], *, system: str | None = None) -> AsyncIterator[str]:
        payload = [{"role": m["role"], "content": m["content"]} for m in messages]
        try:
            async with self._client.messages.stream(
                model=self.model,
                max_tokens=self._max_tokens,
                system=system or DEFAULT_SYSTEM_PROMPT,
                messages=payload,
            ) as stream:
                async for text in stream.text_stream:
                    if text:
                        yield text
        except anthropic.AuthenticationError as exc:
            logger.warning("anthropic_stream_auth_error model=%s", self.model)
            raise LLMAuthError("Anthropic auth error: check ANTHROPIC_API_KEY.") from exc
        except anthropic.APIError as exc:
            logger.error("anthropic_stream_error model=%s error=%s", self.model, type(exc).__name__)
            raise LLMError("Anthropic stream failed.") from exc
