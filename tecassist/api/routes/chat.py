"""Chat endpoints - ask, history, suggestions."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from tecassist.api.dependencies import Container, get_container, get_current_user
from tecassist.docs.retriever import RetrievalScope
from tecassist.errors import ValidationError
from tecassist.models.chat import AnswerMode, ChatRequest, ChatResponse, ConversationTurn

router = APIRouter(prefix="/chat", tags=["chat"])
logger = logging.getLogger(__name__)


class AskRequest(BaseModel):
    """Request body for POST /chat; the user comes from X-User-Id."""

    question: str = Field(..., min_length=1, max_length=4000)
    scope_catalog_item_id: str | None = None
    allow_global: bool = False
    mode: AnswerMode = AnswerMode.educational
    table_mode: bool = False


class HistoryResponse(BaseModel):
    turns: list[ConversationTurn]


class SuggestionsResponse(BaseModel):
    questions: list[str]


@router.post("", response_model=ChatResponse)
async def ask(
    request: AskRequest,
    user_id: Annotated[str, Depends(get_current_user)],
    container: Annotated[Container, Depends(get_container)],
) -> ChatResponse:
    """Answer a question grounded in the scoped catalog documents.

    Errors:
        404 unknown user or catalog item
        413 retrieved context cannot fit the prompt ceiling
        422 no scope and allow_global not set
        503 every provider failed or the request timed out
    """
    return await container.chat.answer(
        ChatRequest(user_id=user_id, **request.model_dump())
    )


@router.get("/history", response_model=HistoryResponse)
async def history(
    user_id: Annotated[str, Depends(get_current_user)],
    container: Annotated[Container, Depends(get_container)],
    limit: Annotated[int, Query(ge=1, le=200)] = 20,
) -> HistoryResponse:
    await container.conversations.user_profile(user_id)
    turns = await container.conversations.recent_history(user_id, limit)
    return HistoryResponse(turns=turns)


@router.get("/suggestions", response_model=SuggestionsResponse)
async def suggestions(
    user_id: Annotated[str, Depends(get_current_user)],
    container: Annotated[Container, Depends(get_container)],
    catalog_item_id: Annotated[str | None, Query()] = None,
    allow_global: Annotated[bool, Query()] = False,
    count: Annotated[int, Query(ge=1, le=10)] = 3,
) -> SuggestionsResponse:
    """Suggested starter questions for the scoped documents."""
    if catalog_item_id:
        scope = RetrievalScope.for_catalog_item(catalog_item_id)
    elif allow_global:
        scope = RetrievalScope.everything()
    else:
        raise ValidationError("catalog_item_id is required unless allow_global is set")

    questions = await container.chat.suggest_questions(scope, count)
    logger.info(f"Generated {len(questions)} suggestions for user {user_id}")
    return SuggestionsResponse(questions=questions)
