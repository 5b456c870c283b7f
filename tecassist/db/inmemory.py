"""In-memory implementations of repository interfaces."""

import uuid
from datetime import datetime, timezone
from typing import Any

from tecassist.db.locks import KeyedLocks
from tecassist.db.repositories import (
    ChunkWithSource,
    NewTurn,
    check_chunk_sequence,
    matches_terms,
)
from tecassist.docs.chunker import estimate_tokens
from tecassist.errors import ConflictError, NotFoundError
from tecassist.models.chat import ConversationTurn, Role, UserProfile
from tecassist.models.documents import CatalogItem, ChunkDraft, DocChunk, Document


class InMemoryDocumentStore:
    """In-memory implementation of DocumentRepository, ChunkStore and CatalogRepository.

    Documents, chunks and catalog items share one object so that document
    deletes cascade and catalog lookups see the same documents.
    """

    def __init__(self, *, chars_per_token: int = 4) -> None:
        self._chars_per_token = chars_per_token
        self._documents: dict[str, Document] = {}
        self._chunks: dict[str, list[DocChunk]] = {}
        self._items: dict[str, CatalogItem] = {}
        self._locks = KeyedLocks()

    # Catalog

    async def create_item(
        self, code: str, name: str, category: str, description: str | None = None
    ) -> CatalogItem:
        """Create a catalog item."""
        if any(item.code == code for item in self._items.values()):
            raise ConflictError(f"catalog code already exists: {code}", {"code": code})

        item = CatalogItem(
            item_id=uuid.uuid4().hex,
            code=code,
            name=name,
            category=category,
            description=description,
        )
        self._items[item.item_id] = item
        return item

    async def get_item(self, item_id: str) -> CatalogItem:
        """Get catalog item by ID."""
        item = self._items.get(item_id)
        if item is None:
            raise NotFoundError(f"catalog item not found: {item_id}", {"item_id": item_id})
        return item

    async def document_ids_for(self, item_id: str, *, active_only: bool = True) -> list[str]:
        """IDs of documents owned by the item."""
        await self.get_item(item_id)
        return [
            doc.document_id
            for doc in self._documents.values()
            if doc.catalog_item_id == item_id and (doc.is_active or not active_only)
        ]

    async def delete_item(self, item_id: str) -> None:
        """Delete item, blocking while active documents reference it."""
        await self.get_item(item_id)

        owned = [d for d in self._documents.values() if d.catalog_item_id == item_id]
        active = [d.document_id for d in owned if d.is_active]
        if active:
            raise ConflictError(
                "catalog item still owns active documents",
                {"item_id": item_id, "document_ids": active},
            )

        for doc in owned:
            self._documents[doc.document_id] = doc.model_copy(update={"catalog_item_id": None})
        del self._items[item_id]

    # Documents

    async def create_document(
        self,
        file_name: str,
        *,
        catalog_item_id: str | None = None,
        document_id: str | None = None,
    ) -> Document:
        """Register an uploaded document."""
        if catalog_item_id is not None:
            await self.get_item(catalog_item_id)

        document_id = document_id or uuid.uuid4().hex
        if document_id in self._documents:
            raise ConflictError(
                f"document already exists: {document_id}", {"document_id": document_id}
            )

        doc = Document(
            document_id=document_id,
            file_name=file_name,
            catalog_item_id=catalog_item_id,
        )
        self._documents[document_id] = doc
        self._chunks[document_id] = []
        return doc

    async def get_document(self, document_id: str) -> Document:
        """Get document by ID."""
        doc = self._documents.get(document_id)
        if doc is None:
            raise NotFoundError(f"document not found: {document_id}", {"document_id": document_id})
        return doc

    async def list_documents(
        self, *, catalog_item_id: str | None = None, active_only: bool = True
    ) -> list[Document]:
        """List documents, optionally restricted to one catalog item."""
        docs = list(self._documents.values())
        if catalog_item_id is not None:
            docs = [d for d in docs if d.catalog_item_id == catalog_item_id]
        if active_only:
            docs = [d for d in docs if d.is_active]
        return docs

    async def mark_processing_error(self, document_id: str, error: str) -> Document:
        """Record an ingestion failure."""
        doc = await self.get_document(document_id)
        updated = doc.model_copy(update={"processing_error": error, "indexed": False})
        self._documents[document_id] = updated
        return updated

    async def deactivate_document(self, document_id: str) -> Document:
        """Soft-deactivate a document."""
        doc = await self.get_document(document_id)
        updated = doc.model_copy(update={"is_active": False})
        self._documents[document_id] = updated
        return updated

    async def delete_document(self, document_id: str) -> None:
        """Hard delete, cascading to chunks."""
        async with self._locks.hold(document_id):
            await self.get_document(document_id)
            del self._documents[document_id]
            self._chunks.pop(document_id, None)

    # Chunks

    async def put(self, document_id: str, chunks: list[ChunkDraft]) -> Document:
        """Atomically replace all chunks for a document."""
        async with self._locks.hold(document_id):
            doc = await self.get_document(document_id)
            check_chunk_sequence(chunks)

            new_chunks = [
                DocChunk(
                    document_id=document_id,
                    index=draft.index,
                    content=draft.content,
                    length=len(draft.content),
                    embedding=draft.embedding,
                )
                for draft in sorted(chunks, key=lambda d: d.index)
            ]
            total_tokens = sum(estimate_tokens(c.content, self._chars_per_token) for c in new_chunks)

            # Single swap: readers see either the old list or the new one
            self._chunks[document_id] = new_chunks
            updated = doc.model_copy(
                update={
                    "chunk_count": len(new_chunks),
                    "total_tokens": total_tokens,
                    "indexed": bool(new_chunks),
                    "indexed_at": datetime.now(timezone.utc) if new_chunks else None,
                    "processing_error": None,
                }
            )
            self._documents[document_id] = updated
            return updated

    async def list_by_document(self, document_id: str) -> list[DocChunk]:
        """Chunks of one document in index order."""
        await self.get_document(document_id)
        return list(self._chunks.get(document_id, []))

    async def candidates(self, document_ids: list[str] | None) -> list[ChunkWithSource]:
        """All chunks of active, indexed documents in scope."""
        if document_ids is None:
            docs = list(self._documents.values())
        else:
            docs = [self._documents[d] for d in document_ids if d in self._documents]

        results: list[ChunkWithSource] = []
        for doc in docs:
            if not (doc.is_active and doc.indexed):
                continue
            for chunk in self._chunks.get(doc.document_id, []):
                results.append(ChunkWithSource(chunk=chunk, file_name=doc.file_name))
        return results

    async def search(
        self,
        terms: list[str],
        document_ids: list[str] | None,
        *,
        match_all: bool = False,
    ) -> list[ChunkWithSource]:
        """Chunks containing any (or all) terms."""
        return [
            c
            for c in await self.candidates(document_ids)
            if matches_terms(c.chunk.content, terms, match_all=match_all)
        ]

    async def delete_by_document(self, document_id: str) -> int:
        """Remove all chunks of a document."""
        async with self._locks.hold(document_id):
            doc = await self.get_document(document_id)
            removed = len(self._chunks.get(document_id, []))
            self._chunks[document_id] = []
            self._documents[document_id] = doc.model_copy(
                update={"chunk_count": 0, "total_tokens": 0, "indexed": False, "indexed_at": None}
            )
            return removed


class InMemoryConversationStore:
    """In-memory implementation of ConversationStore."""

    def __init__(self) -> None:
        self._users: dict[str, UserProfile] = {}
        self._turns: dict[str, list[ConversationTurn]] = {}

    async def get_user(self, user_id: str) -> UserProfile:
        """Get user profile."""
        profile = self._users.get(user_id)
        if profile is None:
            raise NotFoundError(f"user not found: {user_id}", {"user_id": user_id})
        return profile

    async def upsert_user(self, profile: UserProfile) -> UserProfile:
        """Create or update a user profile."""
        self._users[profile.user_id] = profile
        self._turns.setdefault(profile.user_id, [])
        return profile

    async def insert_turn(
        self,
        user_id: str,
        role: Role,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> ConversationTurn:
        """Persist a turn with the next sequence number."""
        (turn,) = await self.insert_turns(user_id, [(role, content, metadata)])
        return turn

    async def insert_turns(
        self,
        user_id: str,
        turns: list[NewTurn],
    ) -> list[ConversationTurn]:
        """Persist turns with consecutive sequence numbers, all or none."""
        await self.get_user(user_id)
        history = self._turns.setdefault(user_id, [])
        first_seq = history[-1].seq + 1 if history else 0
        created_at = datetime.now(timezone.utc)
        # Build every turn before touching the history
        new_turns = [
            ConversationTurn(
                user_id=user_id,
                seq=first_seq + offset,
                role=role,
                content=content,
                created_at=created_at,
                metadata=metadata,
            )
            for offset, (role, content, metadata) in enumerate(turns)
        ]
        history.extend(new_turns)
        return new_turns

    async def recent_turns(self, user_id: str, limit: int) -> list[ConversationTurn]:
        """Most recent `limit` turns, oldest first."""
        if limit <= 0:
            return []
        return list(self._turns.get(user_id, [])[-limit:])

    async def clear_turns(self, user_id: str) -> int:
        """Delete all turns of a user."""
        removed = len(self._turns.get(user_id, []))
        self._turns[user_id] = []
        return removed
