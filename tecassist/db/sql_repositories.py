"""SQL implementations of repository interfaces."""

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError

from tecassist.db.engine import Database
from tecassist.db.locks import KeyedLocks
from tecassist.db.models import AppUser, ChatMessage, DocumentChunk
from tecassist.db.models import CatalogItem as CatalogItemRow
from tecassist.db.models import Document as DocumentRow
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

logger = logging.getLogger(__name__)


def _to_document(row: DocumentRow) -> Document:
    return Document(
        document_id=row.document_id,
        file_name=row.file_name,
        indexed=row.indexed,
        is_active=row.is_active,
        catalog_item_id=row.catalog_item_id,
        chunk_count=row.chunk_count,
        total_tokens=row.total_tokens,
        processing_error=row.processing_error,
        indexed_at=row.indexed_at,
    )


def _to_chunk(row: DocumentChunk) -> DocChunk:
    return DocChunk(
        document_id=row.document_id,
        index=row.chunk_index,
        content=row.content,
        length=row.length,
        embedding=row.embedding,
    )


def _to_item(row: CatalogItemRow) -> CatalogItem:
    return CatalogItem(
        item_id=row.item_id,
        code=row.code,
        name=row.name,
        category=row.category,
        description=row.description,
    )


class SqlDocumentStore:
    """SQL implementation of DocumentRepository, ChunkStore and CatalogRepository."""

    def __init__(self, db: Database, *, chars_per_token: int = 4) -> None:
        self._db = db
        self._chars_per_token = chars_per_token
        self._locks = KeyedLocks()

    # Catalog

    async def create_item(
        self, code: str, name: str, category: str, description: str | None = None
    ) -> CatalogItem:
        """Create a catalog item."""
        try:
            async with self._db.session() as session:
                async with session.begin():
                    existing = await session.scalar(
                        select(CatalogItemRow).where(CatalogItemRow.code == code)
                    )
                    if existing is not None:
                        raise ConflictError(f"catalog code already exists: {code}", {"code": code})

                    row = CatalogItemRow(
                        code=code, name=name, category=category, description=description
                    )
                    session.add(row)
                return _to_item(row)
        except IntegrityError as e:
            raise ConflictError(f"catalog code already exists: {code}", {"code": code}) from e

    async def get_item(self, item_id: str) -> CatalogItem:
        """Get catalog item by ID."""
        async with self._db.session() as session:
            row = await session.get(CatalogItemRow, item_id)
            if row is None:
                raise NotFoundError(f"catalog item not found: {item_id}", {"item_id": item_id})
            return _to_item(row)

    async def document_ids_for(self, item_id: str, *, active_only: bool = True) -> list[str]:
        """IDs of documents owned by the item."""
        async with self._db.session() as session:
            if await session.get(CatalogItemRow, item_id) is None:
                raise NotFoundError(f"catalog item not found: {item_id}", {"item_id": item_id})

            stmt = select(DocumentRow.document_id).where(DocumentRow.catalog_item_id == item_id)
            if active_only:
                stmt = stmt.where(DocumentRow.is_active.is_(True))
            result = await session.execute(stmt.order_by(DocumentRow.created_at))
            return list(result.scalars().all())

    async def delete_item(self, item_id: str) -> None:
        """Delete item, blocking while active documents reference it."""
        async with self._db.session() as session:
            async with session.begin():
                row = await session.get(CatalogItemRow, item_id)
                if row is None:
                    raise NotFoundError(f"catalog item not found: {item_id}", {"item_id": item_id})

                result = await session.execute(
                    select(DocumentRow.document_id).where(
                        DocumentRow.catalog_item_id == item_id,
                        DocumentRow.is_active.is_(True),
                    )
                )
                active = list(result.scalars().all())
                if active:
                    raise ConflictError(
                        "catalog item still owns active documents",
                        {"item_id": item_id, "document_ids": active},
                    )

                await session.execute(
                    update(DocumentRow)
                    .where(DocumentRow.catalog_item_id == item_id)
                    .values(catalog_item_id=None)
                )
                await session.delete(row)

        logger.info(f"Deleted catalog item {item_id}")

    # Documents

    async def create_document(
        self,
        file_name: str,
        *,
        catalog_item_id: str | None = None,
        document_id: str | None = None,
    ) -> Document:
        """Register an uploaded document."""
        try:
            async with self._db.session() as session:
                async with session.begin():
                    if catalog_item_id is not None:
                        if await session.get(CatalogItemRow, catalog_item_id) is None:
                            raise NotFoundError(
                                f"catalog item not found: {catalog_item_id}",
                                {"item_id": catalog_item_id},
                            )
                    if document_id is not None and await session.get(DocumentRow, document_id):
                        raise ConflictError(
                            f"document already exists: {document_id}",
                            {"document_id": document_id},
                        )

                    row = DocumentRow(
                        file_name=file_name,
                        catalog_item_id=catalog_item_id,
                        indexed=False,
                        is_active=True,
                        chunk_count=0,
                        total_tokens=0,
                    )
                    if document_id is not None:
                        row.document_id = document_id
                    session.add(row)
                return _to_document(row)
        except IntegrityError as e:
            raise ConflictError(
                f"document already exists: {document_id}", {"document_id": document_id}
            ) from e

    async def get_document(self, document_id: str) -> Document:
        """Get document by ID."""
        async with self._db.session() as session:
            row = await session.get(DocumentRow, document_id)
            if row is None:
                raise NotFoundError(f"document not found: {document_id}", {"document_id": document_id})
            return _to_document(row)

    async def list_documents(
        self, *, catalog_item_id: str | None = None, active_only: bool = True
    ) -> list[Document]:
        """List documents, optionally restricted to one catalog item."""
        stmt = select(DocumentRow)
        if catalog_item_id is not None:
            stmt = stmt.where(DocumentRow.catalog_item_id == catalog_item_id)
        if active_only:
            stmt = stmt.where(DocumentRow.is_active.is_(True))

        async with self._db.session() as session:
            result = await session.execute(stmt.order_by(DocumentRow.created_at))
            return [_to_document(row) for row in result.scalars().all()]

    async def _update_document(self, document_id: str, **values: object) -> Document:
        async with self._db.session() as session:
            async with session.begin():
                row = await session.get(DocumentRow, document_id)
                if row is None:
                    raise NotFoundError(
                        f"document not found: {document_id}", {"document_id": document_id}
                    )
                for key, value in values.items():
                    setattr(row, key, value)
            return _to_document(row)

    async def mark_processing_error(self, document_id: str, error: str) -> Document:
        """Record an ingestion failure."""
        return await self._update_document(document_id, processing_error=error, indexed=False)

    async def deactivate_document(self, document_id: str) -> Document:
        """Soft-deactivate a document."""
        return await self._update_document(document_id, is_active=False)

    async def delete_document(self, document_id: str) -> None:
        """Hard delete, cascading to chunks."""
        async with self._locks.hold(document_id):
            async with self._db.session() as session:
                async with session.begin():
                    row = await session.get(DocumentRow, document_id)
                    if row is None:
                        raise NotFoundError(
                            f"document not found: {document_id}", {"document_id": document_id}
                        )
                    await session.execute(
                        delete(DocumentChunk).where(DocumentChunk.document_id == document_id)
                    )
                    await session.execute(
                        delete(DocumentRow).where(DocumentRow.document_id == document_id)
                    )

    # Chunks

    async def put(self, document_id: str, chunks: list[ChunkDraft]) -> Document:
        """Atomically replace all chunks for a document."""
        async with self._locks.hold(document_id):
            try:
                async with self._db.session() as session:
                    async with session.begin():
                        row = await session.get(DocumentRow, document_id)
                        if row is None:
                            raise NotFoundError(
                                f"document not found: {document_id}",
                                {"document_id": document_id},
                            )
                        check_chunk_sequence(chunks)

                        await session.execute(
                            delete(DocumentChunk).where(DocumentChunk.document_id == document_id)
                        )
                        session.add_all(
                            [
                                DocumentChunk(
                                    document_id=document_id,
                                    chunk_index=draft.index,
                                    content=draft.content,
                                    length=len(draft.content),
                                    embedding=draft.embedding,
                                )
                                for draft in sorted(chunks, key=lambda d: d.index)
                            ]
                        )

                        row.chunk_count = len(chunks)
                        row.total_tokens = sum(
                            estimate_tokens(d.content, self._chars_per_token) for d in chunks
                        )
                        row.indexed = bool(chunks)
                        row.indexed_at = datetime.now(timezone.utc) if chunks else None
                        row.processing_error = None
                    return _to_document(row)
            except IntegrityError as e:
                raise ConflictError(
                    "chunk index conflict while replacing chunks", {"document_id": document_id}
                ) from e

    async def list_by_document(self, document_id: str) -> list[DocChunk]:
        """Chunks of one document in index order."""
        async with self._db.session() as session:
            if await session.get(DocumentRow, document_id) is None:
                raise NotFoundError(f"document not found: {document_id}", {"document_id": document_id})

            result = await session.execute(
                select(DocumentChunk)
                .where(DocumentChunk.document_id == document_id)
                .order_by(DocumentChunk.chunk_index)
            )
            return [_to_chunk(row) for row in result.scalars().all()]

    async def candidates(self, document_ids: list[str] | None) -> list[ChunkWithSource]:
        """All chunks of active, indexed documents in scope."""
        stmt = (
            select(DocumentChunk, DocumentRow.file_name)
            .join(DocumentRow, DocumentRow.document_id == DocumentChunk.document_id)
            .where(DocumentRow.is_active.is_(True), DocumentRow.indexed.is_(True))
        )
        if document_ids is not None:
            stmt = stmt.where(DocumentChunk.document_id.in_(document_ids))
        stmt = stmt.order_by(DocumentChunk.document_id, DocumentChunk.chunk_index)

        async with self._db.session() as session:
            result = await session.execute(stmt)
            return [
                ChunkWithSource(chunk=_to_chunk(row), file_name=file_name)
                for row, file_name in result.all()
            ]

    async def search(
        self,
        terms: list[str],
        document_ids: list[str] | None,
        *,
        match_all: bool = False,
    ) -> list[ChunkWithSource]:
        """Chunks containing any (or all) terms.

        Matching runs in Python with accent folding so Portuguese terms
        compare the same on every backend (SQLite's lower() is ASCII-only).
        """
        return [
            c
            for c in await self.candidates(document_ids)
            if matches_terms(c.chunk.content, terms, match_all=match_all)
        ]

    async def delete_by_document(self, document_id: str) -> int:
        """Remove all chunks of a document."""
        async with self._locks.hold(document_id):
            async with self._db.session() as session:
                async with session.begin():
                    row = await session.get(DocumentRow, document_id)
                    if row is None:
                        raise NotFoundError(
                            f"document not found: {document_id}", {"document_id": document_id}
                        )
                    result = await session.execute(
                        delete(DocumentChunk).where(DocumentChunk.document_id == document_id)
                    )
                    row.chunk_count = 0
                    row.total_tokens = 0
                    row.indexed = False
                    row.indexed_at = None
                    return result.rowcount or 0


class SqlConversationStore:
    """SQL implementation of ConversationStore."""

    def __init__(self, db: Database) -> None:
        self._db = db

    async def get_user(self, user_id: str) -> UserProfile:
        """Get user profile."""
        async with self._db.session() as session:
            row = await session.get(AppUser, user_id)
            if row is None:
                raise NotFoundError(f"user not found: {user_id}", {"user_id": user_id})
            return UserProfile(
                user_id=row.user_id,
                name=row.name,
                job_title=row.job_title,
                department=row.department,
                technical_level=row.technical_level,
                communication_style=row.communication_style,
            )

    async def upsert_user(self, profile: UserProfile) -> UserProfile:
        """Create or update a user profile."""
        async with self._db.session() as session:
            async with session.begin():
                row = await session.get(AppUser, profile.user_id)
                if row is None:
                    row = AppUser(user_id=profile.user_id)
                    session.add(row)
                row.name = profile.name
                row.job_title = profile.job_title
                row.department = profile.department
                row.technical_level = profile.technical_level
                row.communication_style = profile.communication_style
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
        """Persist turns with consecutive sequence numbers in one transaction.

        Callers serialize appends per user; the (user_id, seq) unique
        constraint catches writers in other processes.
        """
        created_at = datetime.now(timezone.utc)
        try:
            async with self._db.session() as session:
                async with session.begin():
                    if await session.get(AppUser, user_id) is None:
                        raise NotFoundError(f"user not found: {user_id}", {"user_id": user_id})

                    max_seq = await session.scalar(
                        select(func.max(ChatMessage.seq)).where(ChatMessage.user_id == user_id)
                    )
                    first_seq = 0 if max_seq is None else max_seq + 1
                    session.add_all(
                        [
                            ChatMessage(
                                user_id=user_id,
                                seq=first_seq + offset,
                                role=role.value,
                                content=content,
                                metadata_=metadata,
                                created_at=created_at,
                            )
                            for offset, (role, content, metadata) in enumerate(turns)
                        ]
                    )
        except IntegrityError as e:
            raise ConflictError(
                "conversation sequence conflict", {"user_id": user_id}
            ) from e

        return [
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

    async def recent_turns(self, user_id: str, limit: int) -> list[ConversationTurn]:
        """Most recent `limit` turns, oldest first."""
        if limit <= 0:
            return []

        async with self._db.session() as session:
            result = await session.execute(
                select(ChatMessage)
                .where(ChatMessage.user_id == user_id)
                .order_by(ChatMessage.seq.desc())
                .limit(limit)
            )
            rows = list(result.scalars().all())

        rows.reverse()
        return [
            ConversationTurn(
                user_id=row.user_id,
                seq=row.seq,
                role=Role(row.role),
                content=row.content,
                created_at=row.created_at,
                metadata=row.metadata_,
            )
            for row in rows
        ]

    async def clear_turns(self, user_id: str) -> int:
        """Delete all turns of a user."""
        async with self._db.session() as session:
            async with session.begin():
                result = await session.execute(
                    delete(ChatMessage).where(ChatMessage.user_id == user_id)
                )
                return result.rowcount or 0
