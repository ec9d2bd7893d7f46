from __future__ import annotations

import json
import logging
import time
from typing import AsyncIterator

import httpx

from shuguridan.core.config import get_settings
from shuguridan.core.errors import LLMAuthError, LLMError, ProviderConfigError
from shuguridan.providers.llm.base import DEFAULT_SYSTEM_PROMPT
from shuguridan.services.resilience import is_transient_http_error, retry_async


logger = logging.getLogger(__name__)


class OpenAIChatProvider:
    name = "openai"

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._settings = get_settings()
        if not self._settings.openai_api_key:
            raise ProviderConfigError("OPENAI_API_KEY is required for the OpenAI provider")
        self._client = client
        self._owns_client = client is None
        self.model = self._settings.openai_model

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        timeout_s = self._settings.ext_call_timeout_ms / 1000.0
        self._client = httpx.AsyncClient(timeout=timeout_s)
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def _url(self) -> str:
        return f"{self._settings.openai_base_url.rstrip('/')}/chat/completions"

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._settings.openai_api_key}"}

    def _payload(self, messages: list[dict], system: str | None, *, stream: bool) -> dict:
        return {
            "model": self.model,
            "max_tokens": self._settings.openai_max_tokens,
            "messages": [{"role": "system", "content": system or DEFAULT_SYSTEM_PROMPT}, *messages],
            "stream": stream,
        }

    @staticmethod
    def _check_status(response: httpx.Response) -> None:
        if response.status_code in {401, 403}:
            raise LLMAuthError("OpenAI auth error: check OPENAI_API_KEY.")
        if response.status_code >= 400:
            raise LLMError(f"OpenAI chat error: {response.status_code}")

    async def generate(self, prompt: str, *, system: str | None = None) -> str:
        client = self._get_client()
        payload = self._payload([{"role": "user", "content": prompt}], system, stream=False)

        async def _call() -> httpx.Response:
            response = await client.post(self._url(), json=payload, headers=self._headers())
            if response.status_code >= 500:
                response.raise_for_status()
            return response

        start = time.monotonic()
        try:
            response = await retry_async(_call, retryable=is_transient_http_error, name="llm.openai")
        except (httpx.HTTPError, TimeoutError) as exc:
            raise LLMError("OpenAI request failed.") from exc
        self._check_status(response)
        logger.info(
            "openai_generate model=%s latency_ms=%.1f",
            self.model,
            (time.monotonic() - start) * 1000.0,
        )
        choices = response.json().get("choices") or []
        if not choices:
            return ""
        return (choices[0].get("message") or {}).get("content") or ""

    async def stream(self, messages: list[dict], *, system: str | None = None) -> AsyncIterator[str]:
        client = self._get_client()
        payload = self._payload(
            [{"role": m["role"], "content": m["content"]} for m in messages],
            system,
            stream=True,
        )
        try:
            async with client.stream("POST", self._url(), json=payload, headers=self._headers()) as response:
                if response.status_code >= 400:
                    await response.aread()
                    self._check_status(response)
                async for line in response.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    data = line[len("data:"):].strip()
                    if data == "[DONE]":
                        break
                    chunk = json.loads(data)
                    for choice in chunk.get("choices", []):
                        delta = (choice.get("delta") or {}).get("content")
                        if delta:
                            yield delta
        except httpx.HTTPError as exc:
            logger.error("openai_stream_error model=%s error=%s", self.model, type(exc).__name__)
            raise LLMError("OpenAI stream failed.") from exc
