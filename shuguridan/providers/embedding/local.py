from __future__ import annotations

import hashlib
import math
import re

from shuguridan.core.config import EMBED_DIM


# Identifiers, numbers and the scope operator so "std::optional" keeps its parts together.
_TOKEN_RE = re.compile(r"[a-z_][a-z0-9_]*(?:::[a-z_][a-z0-9_]*)*|\d+")


def _hash_feature(feature: str, dim: int) -> tuple[int, float]:
    digest = hashlib.sha256(feature.encode("utf-8")).hexdigest()
    # Hash to a stable index within the fixed embedding dimension.
    idx = int(digest[:8], 16) % dim
    sign = 1.0 if int(digest[8:12], 16) % 2 == 0 else -1.0
    magnitude = (int(digest[12:20], 16) % 1000) / 1000.0
    return idx, sign * (0.2 + magnitude)


def _features(text: str) -> list[str]:
    tokens = _TOKEN_RE.findall(text.lower())
    features = list(tokens)
    # Qualified names also contribute their last component ("std::optional" -> "optional").
    features.extend(token.rsplit("::", 1)[-1] for token in tokens if "::" in token)
    # Adjacent pairs give phrases like "range based" some weight of their own.
    features.extend(f"{left} {right}" for left, right in zip(tokens, tokens[1:]))
    return features


def hash_embedding(text: str, dim: int = EMBED_DIM) -> list[float]:
    """Deterministic bag-of-features embedding, L2-normalized."""
    vector = [0.0] * dim
    for feature in _features(text):
        idx, value = _hash_feature(feature, dim)
        vector[idx] += value

    norm = math.sqrt(sum(v * v for v in vector))
    if norm == 0:
        return vector
    return [v / norm for v in vector]


class LocalEmbeddingProvider:
    """Offline embedding provider for development and tests."""

    name = "local"

    def __init__(self, dimensions: int = EMBED_DIM) -> None:
        self.dimensions = dimensions

    async def embed(self, text: str) -> list[float]:
        return hash_embedding(text, self.dimensions)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [hash_embedding(text, self.dimensions) for text in texts]
