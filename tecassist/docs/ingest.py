"""Document ingestion - chunk, optionally embed, and store extracted text."""

import logging
from typing import Protocol

from tecassist.db.repositories import ChunkStore, DocumentRepository
from tecassist.docs.chunker import ChunkerConfig, chunk_document
from tecassist.docs.embeddings import EmbeddingClient, embed_in_batches
from tecassist.errors import CoreError, NotFoundError, ValidationError
from tecassist.models.documents import Document

logger = logging.getLogger(__name__)


class DocumentStore(DocumentRepository, ChunkStore, Protocol):
    """Document metadata plus chunk operations, as both stores implement."""


class Ingestor:
    """Turns extracted text into stored chunks and flips indexed=True."""

    def __init__(
        self,
        store: DocumentStore,
        *,
        chunker_config: ChunkerConfig | None = None,
        embedding_client: EmbeddingClient | None = None,
        embedding_batch_size: int = 10,
    ) -> None:
        self.store = store
        self.chunker_config = chunker_config or ChunkerConfig()
        self.chunker_config.validate()
        self.embedding_client = embedding_client
        self.embedding_batch_size = embedding_batch_size

    async def ingest_document(
        self,
        document_id: str,
        file_name: str,
        extracted_text: str,
        *,
        catalog_item_id: str | None = None,
    ) -> Document:
        """Register the document if needed, then chunk and store it.

        Args:
            document_id: ID assigned by the upload boundary
            file_name: Original file name, used to label chunks
            extracted_text: Text already extracted from the file
            catalog_item_id: Optional owning catalog item

        Returns:
            The indexed Document

        Raises:
            ValidationError: If the text is empty (document keeps indexed=False)
            NotFoundError: If catalog_item_id does not exist
        """
        try:
            await self.store.get_document(document_id)
        except NotFoundError:
            await self.store.create_document(
                file_name, catalog_item_id=catalog_item_id, document_id=document_id
            )
        return await self._index(document_id, extracted_text)

    async def reindex_document(self, document_id: str, extracted_text: str) -> Document:
        """Re-chunk an existing document; the old chunk set is replaced atomically.

        Raises:
            NotFoundError: If the document does not exist
        """
        await self.store.get_document(document_id)
        return await self._index(document_id, extracted_text)

    async def deactivate_document(self, document_id: str) -> Document:
        """Exclude a document from retrieval without deleting its chunks."""
        document = await self.store.deactivate_document(document_id)
        logger.info(f"Deactivated document {document_id}")
        return document

    async def _index(self, document_id: str, extracted_text: str) -> Document:
        if not extracted_text or not extracted_text.strip():
            await self.store.mark_processing_error(document_id, "no extractable text")
            raise ValidationError(
                "extracted text is empty", {"document_id": document_id}
            )

        try:
            drafts = chunk_document(extracted_text, self.chunker_config)
            if self.embedding_client is not None:
                vectors = await embed_in_batches(
                    self.embedding_client,
                    [d.content for d in drafts],
                    batch_size=self.embedding_batch_size,
                )
                drafts = [
                    d.model_copy(update={"embedding": v}) for d, v in zip(drafts, vectors)
                ]
        except CoreError as e:
            await self.store.mark_processing_error(document_id, e.message)
            raise

        document = await self.store.put(document_id, drafts)
        logger.info(
            f"Indexed document {document_id}: {document.chunk_count} chunks, "
            f"~{document.total_tokens} tokens"
        )
        return document
