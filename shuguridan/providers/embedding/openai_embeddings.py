from __future__ import annotations

import logging
import time

import httpx

from shuguridan.core.config import EMBED_DIM, get_settings
from shuguridan.core.errors import EmbeddingAuthError, EmbeddingError, ProviderConfigError
from shuguridan.services.resilience import is_transient_http_error, retry_async


logger = logging.getLogger(__name__)


class OpenAIEmbeddingProvider:
    name = "openai"

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._settings = get_settings()
        self._client = client
        self._owns_client = client is None
        self.dimensions = EMBED_DIM

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        # Reuse a single client per provider for connection pooling.
        timeout_s = self._settings.ext_call_timeout_ms / 1000.0
        self._client = httpx.AsyncClient(timeout=timeout_s)
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def embed(self, text: str) -> list[float]:
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        api_key = self._settings.openai_api_key
        if not api_key:
            raise ProviderConfigError("OPENAI_API_KEY is required for OpenAI embeddings")

        payload = {
            "model": self._settings.openai_embedding_model,
            "input": texts,
            "dimensions": self.dimensions,
        }
        headers = {"Authorization": f"Bearer {api_key}"}
        url = f"{self._settings.openai_base_url.rstrip('/')}/embeddings"
        client = self._get_client()

        async def _call() -> httpx.Response:
            response = await client.post(url, json=payload, headers=headers)
            if response.status_code >= 500:
                # Surface 5xx as an exception so the retry helper can see it.
                response.raise_for_status()
            return response

        start = time.monotonic()
        try:
            response = await retry_async(_call, retryable=is_transient_http_error, name="embedding.openai")
        except (httpx.HTTPError, TimeoutError) as exc:
            # retry_async enforces its own deadline and raises the builtin TimeoutError.
            raise EmbeddingError("OpenAI embedding request failed.") from exc
        finally:
            logger.debug(
                "embedding_batch provider=openai size=%s latency_ms=%.1f",
                len(texts),
                (time.monotonic() - start) * 1000.0,
            )

        if response.status_code in {401, 403}:
            raise EmbeddingAuthError("OpenAI embedding auth error: check OPENAI_API_KEY.")
        if response.status_code >= 400:
            raise EmbeddingError(f"OpenAI embedding error: {response.status_code}")

        items = response.json().get("data", [])
        # The API may return items out of order; the index field is authoritative.
        ordered = sorted(items, key=lambda item: item["index"])
        return [item["embedding"] for item in ordered]
