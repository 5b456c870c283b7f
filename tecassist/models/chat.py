"""Conversation and chat request/response models."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Author of a conversation turn."""

    user = "user"
    assistant = "assistant"


class AnswerMode(str, Enum):
    """Tone/shape of the generated answer."""

    direct = "direct"
    casual = "casual"
    educational = "educational"
    professional = "professional"


class ConversationTurn(BaseModel):
    """Single persisted message in a user's conversation."""

    user_id: str
    seq: int
    role: Role
    content: str
    created_at: datetime
    metadata: dict[str, Any] | None = None


class UserProfile(BaseModel):
    """Optional profile data used to personalize the preamble."""

    user_id: str
    name: str | None = None
    job_title: str | None = None
    department: str | None = None
    technical_level: str | None = None
    communication_style: str | None = None


class SourceRef(BaseModel):
    """Chunk that grounded an answer."""

    document_id: str
    chunk_index: int
    file_name: str | None = None
    score: float | None = None


class ChatRequest(BaseModel):
    """Incoming chat question."""

    user_id: str
    question: str = Field(..., min_length=1)
    scope_catalog_item_id: str | None = None
    allow_global: bool = False
    mode: AnswerMode = AnswerMode.educational
    table_mode: bool = False


class ChatResponse(BaseModel):
    """Answer returned to the caller; provider identity is metadata only."""

    answer_text: str
    sources_used: list[SourceRef] = Field(default_factory=list)
    provider_used: str | None = None
    grounded: bool = True
