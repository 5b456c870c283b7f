"""Document endpoints - ingest, reindex, status, deactivate, delete, chunks."""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field

from tecassist.api.dependencies import Container, get_container
from tecassist.models.documents import DocChunk, Document

router = APIRouter(prefix="/documents", tags=["documents"])


class IngestRequest(BaseModel):
    """Request body for POST /documents (text already extracted upstream)."""

    document_id: str | None = Field(None, description="ID from the upload boundary")
    file_name: str = Field(..., min_length=1, max_length=255)
    extracted_text: str = Field(..., description="Text extracted from the uploaded file")
    catalog_item_id: str | None = None


class ReindexRequest(BaseModel):
    extracted_text: str


class DocumentListResponse(BaseModel):
    documents: list[Document]


class ChunkListResponse(BaseModel):
    document_id: str
    chunks: list[DocChunk]


@router.post("", response_model=Document, status_code=status.HTTP_201_CREATED)
async def ingest_document(
    request: IngestRequest,
    container: Annotated[Container, Depends(get_container)],
) -> Document:
    """Chunk and store a document's extracted text; returns it with indexed=True."""
    return await container.ingestor.ingest_document(
        request.document_id or uuid.uuid4().hex,
        request.file_name,
        request.extracted_text,
        catalog_item_id=request.catalog_item_id,
    )


@router.get("", response_model=DocumentListResponse)
async def list_documents(
    container: Annotated[Container, Depends(get_container)],
    catalog_item_id: Annotated[str | None, Query()] = None,
    active_only: Annotated[bool, Query()] = True,
) -> DocumentListResponse:
    documents = await container.documents.list_documents(
        catalog_item_id=catalog_item_id, active_only=active_only
    )
    return DocumentListResponse(documents=documents)


@router.get("/{document_id}", response_model=Document)
async def get_document(
    document_id: str,
    container: Annotated[Container, Depends(get_container)],
) -> Document:
    """Indexing status and counters for one document."""
    return await container.documents.get_document(document_id)


@router.post("/{document_id}/reindex", response_model=Document)
async def reindex_document(
    document_id: str,
    request: ReindexRequest,
    container: Annotated[Container, Depends(get_container)],
) -> Document:
    return await container.ingestor.reindex_document(document_id, request.extracted_text)


@router.post("/{document_id}/deactivate", response_model=Document)
async def deactivate_document(
    document_id: str,
    container: Annotated[Container, Depends(get_container)],
) -> Document:
    return await container.ingestor.deactivate_document(document_id)


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    document_id: str,
    container: Annotated[Container, Depends(get_container)],
) -> Response:
    await container.documents.delete_document(document_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{document_id}/chunks", response_model=ChunkListResponse)
async def list_chunks(
    document_id: str,
    container: Annotated[Container, Depends(get_container)],
) -> ChunkListResponse:
    chunks = await container.documents.list_by_document(document_id)
    return ChunkListResponse(document_id=document_id, chunks=chunks)
