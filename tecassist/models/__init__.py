"""Models package - re-exports for convenience."""

from tecassist.models.chat import (
    AnswerMode,
    ChatRequest,
    ChatResponse,
    ConversationTurn,
    Role,
    SourceRef,
    UserProfile,
)
from tecassist.models.documents import (
    CatalogItem,
    ChunkDraft,
    DocChunk,
    Document,
    ScoredChunk,
)

__all__ = [
    "AnswerMode",
    "CatalogItem",
    "ChatRequest",
    "ChatResponse",
    "ChunkDraft",
    "ConversationTurn",
    "DocChunk",
    "Document",
    "Role",
    "ScoredChunk",
    "SourceRef",
    "UserProfile",
]
