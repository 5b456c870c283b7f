"""Catalog endpoints - item lookup and deletion."""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from tecassist.api.dependencies import Container, get_container
from tecassist.models.documents import CatalogItem

router = APIRouter(prefix="/catalog", tags=["catalog"])


class CatalogItemResponse(BaseModel):
    item: CatalogItem
    document_ids: list[str]


@router.get("/{item_id}", response_model=CatalogItemResponse)
async def get_item(
    item_id: str,
    container: Annotated[Container, Depends(get_container)],
) -> CatalogItemResponse:
    """Item plus the IDs of its active documents (the retrieval scope)."""
    item = await container.documents.get_item(item_id)
    document_ids = await container.documents.document_ids_for(item_id)
    return CatalogItemResponse(item=item, document_ids=document_ids)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_item(
    item_id: str,
    container: Annotated[Container, Depends(get_container)],
) -> Response:
    """Delete an item; 409 while it still owns active documents."""
    await container.documents.delete_item(item_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
