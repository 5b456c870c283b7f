"""Document, chunk and catalog domain models."""

from datetime import datetime

from pydantic import BaseModel, Field


class CatalogItem(BaseModel):
    """Piece of equipment in the catalog; optionally owns documents."""

    item_id: str
    code: str
    name: str
    category: str
    description: str | None = None


class Document(BaseModel):
    """Uploaded source document metadata."""

    document_id: str
    file_name: str
    indexed: bool = False
    is_active: bool = True
    catalog_item_id: str | None = None
    chunk_count: int = 0
    total_tokens: int = 0
    processing_error: str | None = None
    indexed_at: datetime | None = None


class ChunkDraft(BaseModel):
    """Chunk produced by the chunker, not yet persisted."""

    index: int = Field(..., ge=0)
    content: str = Field(..., min_length=1)
    embedding: list[float] | None = None


class DocChunk(BaseModel):
    """Persisted chunk record."""

    document_id: str
    index: int  # 0-based, contiguous per document
    content: str
    length: int
    embedding: list[float] | None = None


class ScoredChunk(BaseModel):
    """Chunk with relevance score and the source file name for labeling."""

    chunk: DocChunk
    file_name: str
    score: float
