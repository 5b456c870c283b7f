"""Unit tests for embedding helpers."""

import pytest

from tecassist.docs.embeddings import HashingEmbeddingClient, cosine_similarity, embed_in_batches
from tecassist.errors import ValidationError


class CountingClient:
    def __init__(self, drop_last: bool = False) -> None:
        self.batches: list[int] = []
        self.drop_last = drop_last

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.batches.append(len(texts))
        vectors = [[float(len(t)), 1.0] for t in texts]
        return vectors[:-1] if self.drop_last else vectors


def test_cosine_similarity() -> None:
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)


def test_cosine_similarity_zero_vector() -> None:
    assert cosine_similarity([0.0, 0.0], [1.0, 2.0]) == 0.0


def test_cosine_similarity_dimension_mismatch() -> None:
    with pytest.raises(ValidationError):
        cosine_similarity([1.0], [1.0, 2.0])


@pytest.mark.asyncio
async def test_hashing_client_is_deterministic() -> None:
    client = HashingEmbeddingClient(dimensions=64)

    first = await client.embed(["seladora de indução"])
    second = await client.embed(["Seladora de Indução"])

    assert len(first[0]) == 64
    assert first == second


@pytest.mark.asyncio
async def test_embed_in_batches_splits_requests() -> None:
    client = CountingClient()

    vectors = await embed_in_batches(client, [f"t{i}" for i in range(23)], batch_size=10)

    assert client.batches == [10, 10, 3]
    assert len(vectors) == 23


@pytest.mark.asyncio
async def test_embed_in_batches_detects_missing_vectors() -> None:
    with pytest.raises(ValidationError):
        await embed_in_batches(CountingClient(drop_last=True), ["a", "b"])
