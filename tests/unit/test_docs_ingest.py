"""Unit tests for document ingestion."""

import pytest

from tecassist.db.inmemory import InMemoryDocumentStore
from tecassist.docs.chunker import ChunkerConfig
from tecassist.docs.embeddings import HashingEmbeddingClient
from tecassist.docs.ingest import Ingestor
from tecassist.errors import NotFoundError, ValidationError

SHEET = "\n\n".join(
    [
        "Seladora de indução SI-500. " + "Veda tampas de alumínio em frascos plásticos. " * 8,
        "Alimentação 220V monofásica, potência 1,5 kW. " * 6,
        "Manutenção: limpar a bobina semanalmente e verificar o sensor. " * 5,
    ]
)


@pytest.mark.asyncio
async def test_ingest_creates_and_indexes_document(document_store: InMemoryDocumentStore) -> None:
    ingestor = Ingestor(document_store)

    document = await ingestor.ingest_document("doc-1", "ficha-si500.pdf", SHEET)

    chunks = await document_store.list_by_document("doc-1")
    assert document.indexed
    assert document.chunk_count == len(chunks) > 1
    assert [c.index for c in chunks] == list(range(len(chunks)))
    assert all(c.length <= 800 for c in chunks)
    assert document.total_tokens > 0
    assert document.processing_error is None


@pytest.mark.asyncio
async def test_ingest_assigns_catalog_item(document_store: InMemoryDocumentStore) -> None:
    item = await document_store.create_item("SI-500", "Seladora SI-500", "seladoras")

    await Ingestor(document_store).ingest_document(
        "doc-1", "ficha.pdf", SHEET, catalog_item_id=item.item_id
    )

    assert await document_store.document_ids_for(item.item_id) == ["doc-1"]


@pytest.mark.asyncio
async def test_ingest_unknown_catalog_item_raises(document_store: InMemoryDocumentStore) -> None:
    with pytest.raises(NotFoundError):
        await Ingestor(document_store).ingest_document(
            "doc-1", "ficha.pdf", SHEET, catalog_item_id="missing"
        )


@pytest.mark.asyncio
async def test_empty_text_records_error_and_stays_unindexed(
    document_store: InMemoryDocumentStore,
) -> None:
    """A scanned PDF with no text layer never becomes retrievable."""
    with pytest.raises(ValidationError):
        await Ingestor(document_store).ingest_document("doc-1", "scan.pdf", "   \n ")

    document = await document_store.get_document("doc-1")
    assert not document.indexed
    assert document.processing_error == "no extractable text"
    assert await document_store.list_by_document("doc-1") == []


@pytest.mark.asyncio
async def test_reindex_replaces_chunk_set(document_store: InMemoryDocumentStore) -> None:
    ingestor = Ingestor(document_store)
    await ingestor.ingest_document("doc-1", "ficha.pdf", SHEET)

    document = await ingestor.reindex_document("doc-1", "Ficha revisada da SI-500.")

    chunks = await document_store.list_by_document("doc-1")
    assert document.chunk_count == 1
    assert [c.content for c in chunks] == ["Ficha revisada da SI-500."]


@pytest.mark.asyncio
async def test_reindex_unknown_document_raises(document_store: InMemoryDocumentStore) -> None:
    with pytest.raises(NotFoundError):
        await Ingestor(document_store).reindex_document("nope", SHEET)


@pytest.mark.asyncio
async def test_failed_reindex_keeps_previous_chunks_out_of_retrieval(
    document_store: InMemoryDocumentStore,
) -> None:
    ingestor = Ingestor(document_store)
    await ingestor.ingest_document("doc-1", "ficha.pdf", SHEET)

    with pytest.raises(ValidationError):
        await ingestor.reindex_document("doc-1", "")

    assert await document_store.candidates(["doc-1"]) == []


@pytest.mark.asyncio
async def test_deactivate_excludes_document_from_candidates(
    document_store: InMemoryDocumentStore,
) -> None:
    ingestor = Ingestor(document_store)
    await ingestor.ingest_document("doc-1", "ficha.pdf", SHEET)

    document = await ingestor.deactivate_document("doc-1")

    assert not document.is_active
    assert await document_store.candidates(None) == []
    assert await document_store.list_by_document("doc-1") != []


@pytest.mark.asyncio
async def test_embedding_client_attaches_vectors(document_store: InMemoryDocumentStore) -> None:
    ingestor = Ingestor(document_store, embedding_client=HashingEmbeddingClient(dimensions=32))

    await ingestor.ingest_document("doc-1", "ficha.pdf", SHEET)

    chunks = await document_store.list_by_document("doc-1")
    assert all(c.embedding is not None and len(c.embedding) == 32 for c in chunks)


def test_invalid_chunker_config_is_rejected(document_store: InMemoryDocumentStore) -> None:
    with pytest.raises(ValidationError):
        Ingestor(document_store, chunker_config=ChunkerConfig(max_chars=100, overlap=100))
