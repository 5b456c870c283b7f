"""Repository protocol interfaces for data access."""

from dataclasses import dataclass
from typing import Any, Protocol

from tecassist.docs.query_analyzer import fold
from tecassist.errors import ConflictError, ValidationError
from tecassist.models.chat import ConversationTurn, Role, UserProfile
from tecassist.models.documents import CatalogItem, ChunkDraft, DocChunk, Document


@dataclass
class ChunkWithSource:
    """Stored chunk joined with its document's file name."""

    chunk: DocChunk
    file_name: str


def check_chunk_sequence(chunks: list[ChunkDraft]) -> None:
    """Validate that chunk indices form exactly 0..n-1.

    Raises:
        ConflictError: If an index appears twice
        ValidationError: If indices have gaps or do not start at 0
    """
    seen: set[int] = set()
    for draft in chunks:
        if draft.index in seen:
            raise ConflictError(
                f"duplicate chunk index {draft.index}", {"chunk_index": draft.index}
            )
        seen.add(draft.index)

    if seen != set(range(len(chunks))):
        raise ValidationError(
            "chunk indices must be contiguous starting at 0",
            {"indices": sorted(seen)},
        )


def matches_terms(content: str, terms: list[str], *, match_all: bool = False) -> bool:
    """Case- and accent-insensitive substring match of one or all terms."""
    haystack = fold(content)
    needles = [fold(t) for t in terms if t.strip()]
    if not needles:
        return False
    if match_all:
        return all(n in haystack for n in needles)
    return any(n in haystack for n in needles)


class DocumentRepository(Protocol):
    """Document metadata operations (upload transport is external)."""

    async def create_document(
        self,
        file_name: str,
        *,
        catalog_item_id: str | None = None,
        document_id: str | None = None,
    ) -> Document:
        """Register an uploaded document (indexed=False, active).

        Raises:
            NotFoundError: If catalog_item_id does not exist
            ConflictError: If document_id is already taken
        """
        ...

    async def get_document(self, document_id: str) -> Document:
        """Get document by ID.

        Raises:
            NotFoundError: If the document does not exist
        """
        ...

    async def list_documents(
        self, *, catalog_item_id: str | None = None, active_only: bool = True
    ) -> list[Document]:
        """List documents, optionally restricted to one catalog item."""
        ...

    async def mark_processing_error(self, document_id: str, error: str) -> Document:
        """Record an ingestion failure; leaves indexed=False."""
        ...

    async def deactivate_document(self, document_id: str) -> Document:
        """Soft-deactivate; chunks are kept but no longer retrieved."""
        ...

    async def delete_document(self, document_id: str) -> None:
        """Hard delete; cascades to the document's chunks."""
        ...


class ChunkStore(Protocol):
    """Durable mapping from document to its ordered chunks."""

    async def put(self, document_id: str, chunks: list[ChunkDraft]) -> Document:
        """Atomically replace all chunks for a document.

        Also recomputes chunk_count/total_tokens and flips indexed=True in
        the same transaction. Mutually exclusive with other puts/deletes on
        the same document.

        Raises:
            NotFoundError: If the document does not exist
            ConflictError: If two drafts share an index
            ValidationError: If indices are not exactly 0..n-1
        """
        ...

    async def list_by_document(self, document_id: str) -> list[DocChunk]:
        """Chunks of one document in index order.

        Raises:
            NotFoundError: If the document does not exist
        """
        ...

    async def candidates(self, document_ids: list[str] | None) -> list[ChunkWithSource]:
        """All chunks of active, indexed documents in scope (None = global)."""
        ...

    async def search(
        self,
        terms: list[str],
        document_ids: list[str] | None,
        *,
        match_all: bool = False,
    ) -> list[ChunkWithSource]:
        """Full-content scan: chunks containing any (or all) terms."""
        ...

    async def delete_by_document(self, document_id: str) -> int:
        """Remove all chunks of a document; returns the number removed.

        Raises:
            NotFoundError: If the document does not exist
        """
        ...


class CatalogRepository(Protocol):
    """Catalog item lookups used to scope retrieval."""

    async def create_item(
        self, code: str, name: str, category: str, description: str | None = None
    ) -> CatalogItem:
        """Create a catalog item.

        Raises:
            ConflictError: If the code already exists
        """
        ...

    async def get_item(self, item_id: str) -> CatalogItem:
        """Get catalog item by ID.

        Raises:
            NotFoundError: If the item does not exist
        """
        ...

    async def document_ids_for(self, item_id: str, *, active_only: bool = True) -> list[str]:
        """IDs of documents owned by the item.

        Raises:
            NotFoundError: If the item does not exist
        """
        ...

    async def delete_item(self, item_id: str) -> None:
        """Delete an item that owns no active documents.

        Inactive documents are detached (catalog_item_id=None).

        Raises:
            NotFoundError: If the item does not exist
            ConflictError: If active documents still reference it
        """
        ...


# (role, content, metadata) of a turn not yet persisted
NewTurn = tuple[Role, str, dict[str, Any] | None]


class ConversationStore(Protocol):
    """Persistence for users and their conversation turns."""

    async def get_user(self, user_id: str) -> UserProfile:
        """Get user profile.

        Raises:
            NotFoundError: If the user does not exist
        """
        ...

    async def upsert_user(self, profile: UserProfile) -> UserProfile:
        """Create or update a user profile."""
        ...

    async def insert_turn(
        self,
        user_id: str,
        role: Role,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> ConversationTurn:
        """Persist a turn with the next sequence number for the user.

        Raises:
            NotFoundError: If the user does not exist
            ConflictError: If the sequence number was taken concurrently
        """
        ...

    async def insert_turns(
        self,
        user_id: str,
        turns: list[NewTurn],
    ) -> list[ConversationTurn]:
        """Persist several turns with consecutive sequence numbers, all or none.

        Raises:
            NotFoundError: If the user does not exist
            ConflictError: If a sequence number was taken concurrently
        """
        ...

    async def recent_turns(self, user_id: str, limit: int) -> list[ConversationTurn]:
        """Most recent `limit` turns, oldest first."""
        ...

    async def clear_turns(self, user_id: str) -> int:
        """Delete all turns of a user (explicit admin path only)."""
        ...
