"""Component wiring and request dependencies.

Settings are read once here and passed into components as plain values;
nothing below the API layer reads global settings.
"""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Header, HTTPException, Request, status

from tecassist.chat.conversation import ConversationManager
from tecassist.chat.service import ChatConfig, ChatService
from tecassist.config import Settings
from tecassist.db.engine import Database
from tecassist.db.sql_repositories import SqlConversationStore, SqlDocumentStore
from tecassist.docs.chunker import ChunkerConfig
from tecassist.docs.embeddings import EmbeddingClient, HashingEmbeddingClient, OpenAIEmbeddingClient
from tecassist.docs.ingest import Ingestor
from tecassist.docs.retriever import EmbeddingStrategy, LexicalStrategy, RetrievalStrategy, Retriever
from tecassist.llm.gateway import ProviderGateway
from tecassist.llm.providers import build_providers


@dataclass
class Container:
    """Everything a request handler needs, built once per app."""

    settings: Settings
    db: Database
    documents: SqlDocumentStore
    conversation_store: SqlConversationStore
    conversations: ConversationManager
    ingestor: Ingestor
    retriever: Retriever
    gateway: ProviderGateway
    chat: ChatService


def build_embedding_client(settings: Settings) -> EmbeddingClient | None:
    """Embedding client for the embedding strategy; None for lexical retrieval."""
    if settings.retrieval_strategy != "embedding":
        return None
    if settings.openai_api_key:
        return OpenAIEmbeddingClient(
            settings.openai_api_key.get_secret_value(), settings.embedding_model
        )
    return HashingEmbeddingClient()


def build_strategy(settings: Settings, embedding_client: EmbeddingClient | None) -> RetrievalStrategy:
    if embedding_client is not None:
        return EmbeddingStrategy(embedding_client, relevance_floor=settings.retrieval_embedding_floor)
    return LexicalStrategy(relevance_floor=settings.retrieval_relevance_floor)


def build_container(settings: Settings, db: Database) -> Container:
    """Compose stores, retrieval, gateway and services over an open Database."""
    documents = SqlDocumentStore(db, chars_per_token=settings.chars_per_token)
    conversation_store = SqlConversationStore(db)
    conversations = ConversationManager(conversation_store)

    embedding_client = build_embedding_client(settings)
    ingestor = Ingestor(
        documents,
        chunker_config=ChunkerConfig(
            max_chars=settings.chunk_max_chars,
            overlap=settings.chunk_overlap_chars,
            min_chars=settings.chunk_min_chars,
            strategy=settings.chunk_strategy,
        ),
        embedding_client=embedding_client,
        embedding_batch_size=settings.embedding_batch_size,
    )
    retriever = Retriever(
        documents,
        documents,
        build_strategy(settings, embedding_client),
        default_top_k=settings.retrieval_default_top_k,
    )
    gateway = ProviderGateway(
        build_providers(settings),
        attempt_timeout_s=settings.provider_attempt_timeout_s,
    )
    chat = ChatService(
        retriever,
        conversations,
        gateway,
        ChatConfig(
            retrieval_budget=settings.retrieval_budget_chars,
            max_prompt_chars=settings.assembler_max_chars,
            history_window=settings.history_window_turns,
            request_timeout_s=settings.chat_request_timeout_s,
        ),
    )
    return Container(
        settings=settings,
        db=db,
        documents=documents,
        conversation_store=conversation_store,
        conversations=conversations,
        ingestor=ingestor,
        retriever=retriever,
        gateway=gateway,
        chat=chat,
    )


def get_container(request: Request) -> Container:
    return request.app.state.container


async def get_current_user(
    x_user_id: Annotated[str | None, Header()] = None,
) -> str:
    """Caller identity from the X-User-Id header.

    Authentication happens upstream; this only reads the forwarded id.

    Raises:
        HTTPException: 401 if the header is missing or blank
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    return x_user_id.strip()
