from __future__ import annotations

from shuguridan.core.config import get_settings
from shuguridan.core.errors import ProviderConfigError
from shuguridan.providers.embedding.base import EmbeddingProvider
from shuguridan.providers.embedding.local import LocalEmbeddingProvider
from shuguridan.providers.embedding.openai_embeddings import OpenAIEmbeddingProvider


def get_embedding_provider() -> EmbeddingProvider | None:
    """Return the configured embedding provider, or None when RAG is unavailable."""
    settings = get_settings()
    provider = (settings.embedding_provider or "auto").lower()

    if provider == "none":
        return None
    if provider == "local":
        return LocalEmbeddingProvider()
    if provider == "openai":
        return OpenAIEmbeddingProvider()
    if provider == "auto":
        return OpenAIEmbeddingProvider() if settings.openai_api_key else None
    raise ProviderConfigError(f"Unknown EMBEDDING_PROVIDER: {settings.embedding_provider}")

