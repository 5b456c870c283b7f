"""Embedding clients and vector similarity.

The embedding model itself is a black box: anything implementing
EmbeddingClient can back the embedding retrieval strategy.
"""

import hashlib
import logging
import math
import re
from typing import Protocol

from openai import AsyncOpenAI

from tecassist.errors import ValidationError

logger = logging.getLogger(__name__)

_WORD = re.compile(r"\w+", re.UNICODE)


class EmbeddingClient(Protocol):
    """Protocol for embedding client implementations."""

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed each text into a vector of fixed dimension."""
        ...


class HashingEmbeddingClient:
    """Deterministic bag-of-words hashing embedder (no network, no API key)."""

    def __init__(self, dimensions: int = 256) -> None:
        self.dimensions = dimensions

    def _embed_one(self, text: str) -> list[float]:
        vector = [0.0] * self.dimensions
        for word in _WORD.findall(text.casefold()):
            digest = hashlib.sha1(word.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:4], "big") % self.dimensions
            sign = 1.0 if digest[4] % 2 == 0 else -1.0
            vector[bucket] += sign
        return vector

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed texts deterministically."""
        return [self._embed_one(t) for t in texts]


class OpenAIEmbeddingClient:
    """OpenAI-backed embedding client."""

    def __init__(self, api_key: str, model: str = "text-embedding-3-small"):
        """Initialize OpenAI embedding client.

        Args:
            api_key: OpenAI API key (read from environment)
            model: Embedding model name
        """
        self.client = AsyncOpenAI(api_key=api_key)
        self.model = model

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed texts with one API call."""
        if not texts:
            return []
        response = await self.client.embeddings.create(model=self.model, input=texts)
        data = sorted(response.data, key=lambda item: item.index)
        return [list(item.embedding) for item in data]


async def embed_in_batches(
    client: EmbeddingClient, texts: list[str], batch_size: int = 10
) -> list[list[float]]:
    """Embed texts in fixed-size batches to stay under provider rate limits."""
    vectors: list[list[float]] = []
    for start in range(0, len(texts), batch_size):
        batch = texts[start : start + batch_size]
        vectors.extend(await client.embed(batch))
    if len(vectors) != len(texts):
        raise ValidationError(
            "embedding client returned a different number of vectors",
            {"expected": len(texts), "got": len(vectors)},
        )
    return vectors


def cosine_similarity(vec_a: list[float], vec_b: list[float]) -> float:
    """Cosine similarity; 0.0 when either vector has zero norm.

    Raises:
        ValidationError: If the vectors have different dimensions
    """
    if len(vec_a) != len(vec_b):
        raise ValidationError(
            "vectors must have the same length", {"a": len(vec_a), "b": len(vec_b)}
        )

    dot = sum(a * b for a, b in zip(vec_a, vec_b))
    norm_a = math.sqrt(sum(a * a for a in vec_a))
    norm_b = math.sqrt(sum(b * b for b in vec_b))

    if norm_a == 0 or norm_b == 0:
        return 0.0

    return dot / (norm_a * norm_b)
