"""Chat service - answer a question from scoped catalog documents."""

import logging
import re
import uuid
from dataclasses import dataclass

from tecassist.chat.assembler import PromptPayload, assemble
from tecassist.chat.conversation import ConversationManager
from tecassist.chat.prompts import (
    FALLBACK_SUGGESTIONS,
    NO_DOCUMENT_SUGGESTIONS,
    NO_GROUNDING_ANSWER,
    SUGGESTION_PREAMBLE,
    build_preamble,
    build_suggestion_prompt,
)
from tecassist.docs.query_analyzer import analyze_query
from tecassist.docs.retriever import RetrievalScope, Retriever
from tecassist.errors import BudgetExceededError, ProviderFailure, ValidationError
from tecassist.llm.gateway import ProviderGateway
from tecassist.models.chat import ChatRequest, ChatResponse, SourceRef
from tecassist.utils.metrics import chat_requests_total

logger = logging.getLogger(__name__)

SUGGESTION_SAMPLE_DOCS = 5
_LIST_PREFIX = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")


@dataclass(frozen=True)
class ChatConfig:
    """Limits applied to every chat request."""

    retrieval_budget: int = 12000
    max_prompt_chars: int = 24000
    history_window: int = 6
    request_timeout_s: float = 90.0


class ChatService:
    """Retrieve, assemble, complete, then persist the exchange."""

    def __init__(
        self,
        retriever: Retriever,
        conversations: ConversationManager,
        gateway: ProviderGateway,
        config: ChatConfig | None = None,
    ) -> None:
        self.retriever = retriever
        self.conversations = conversations
        self.gateway = gateway
        self.config = config or ChatConfig()

    def scope_for(self, request: ChatRequest) -> RetrievalScope:
        """Catalog scope when named; global only when explicitly allowed."""
        if request.scope_catalog_item_id:
            return RetrievalScope.for_catalog_item(request.scope_catalog_item_id)
        if request.allow_global:
            return RetrievalScope.everything()
        raise ValidationError(
            "a catalog item scope is required unless allow_global is set",
            {"user_id": request.user_id},
        )

    async def answer(self, request: ChatRequest) -> ChatResponse:
        """Answer one question.

        Flow:
        1. Check the user exists and load the profile
        2. Analyze the query; greetings skip retrieval
        3. Retrieve within the scope and budget, fusing any sub-queries; no
           grounding short-circuits
        4. Assemble the payload and run provider failover under the outer timeout
        5. Persist question and answer only after a confirmed completion

        Raises:
            NotFoundError: Unknown user or catalog item
            ValidationError: Missing scope without allow_global
            BudgetExceededError: Retrieved chunks cannot fit the prompt ceiling
            ProviderFailure: Every provider failed or the request timed out
        """
        request_id = uuid.uuid4().hex
        profile = await self.conversations.user_profile(request.user_id)
        analysis = analyze_query(request.question)

        retrieved = []
        if analysis.needs_retrieval:
            scope = self.scope_for(request)
            retrieved = await self.retriever.retrieve(
                request.question,
                scope,
                self.config.retrieval_budget,
                top_k=analysis.top_k,
                sub_queries=analysis.suggested_queries,
                full_scan=analysis.requires_full_scan,
            )
            if not retrieved:
                logger.info(f"No grounding for request {request_id}; returning fixed answer")
                await self.conversations.append_exchange(
                    request.user_id, request.question, NO_GROUNDING_ANSWER
                )
                chat_requests_total.labels(outcome="no_grounding").inc()
                return ChatResponse(answer_text=NO_GROUNDING_ANSWER, grounded=False)

        history = await self.conversations.recent_history(
            request.user_id, self.config.history_window
        )
        preamble = build_preamble(request.mode, table_mode=request.table_mode, profile=profile)
        payload = assemble(
            retrieved,
            history,
            preamble,
            request.question,
            self.config.max_prompt_chars,
            history_window=self.config.history_window,
        )
        if retrieved and not payload.sources:
            chat_requests_total.labels(outcome="budget_exceeded").inc()
            raise BudgetExceededError(
                "no retrieved chunk fits the prompt size ceiling",
                {"max_prompt_chars": self.config.max_prompt_chars, "retrieved": len(retrieved)},
            )

        try:
            result = await self.gateway.complete_within(
                payload, self.config.request_timeout_s, request_id=request_id
            )
        except ProviderFailure:
            chat_requests_total.labels(outcome="provider_failure").inc()
            raise

        sources = [
            SourceRef(
                document_id=s.chunk.document_id,
                chunk_index=s.chunk.index,
                file_name=s.file_name,
                score=s.score,
            )
            for s in payload.sources
        ]
        await self.conversations.append_exchange(
            request.user_id,
            request.question,
            result.text,
            answer_metadata={
                "provider_used": result.provider_used,
                "sources": [s.model_dump() for s in sources],
            },
        )
        chat_requests_total.labels(outcome="answered").inc()

        return ChatResponse(
            answer_text=result.text,
            sources_used=sources,
            provider_used=result.provider_used,
            grounded=analysis.needs_retrieval,
        )

    async def suggest_questions(self, scope: RetrievalScope, count: int = 3) -> list[str]:
        """Short technical questions about the scoped documents.

        Falls back to fixed questions when the scope has no indexed
        documents or every provider fails.
        """
        if count <= 0:
            raise ValidationError("count must be positive", {"count": count})

        document_ids = await self.retriever.resolve_scope(scope)
        candidates = await self.retriever.store.candidates(document_ids)
        samples = [c.chunk.content for c in candidates if c.chunk.index == 0]
        samples = samples[:SUGGESTION_SAMPLE_DOCS]
        if not samples:
            return NO_DOCUMENT_SUGGESTIONS[:count]

        payload = PromptPayload(
            system_preamble=SUGGESTION_PREAMBLE,
            question=build_suggestion_prompt(samples, count),
        )
        try:
            result = await self.gateway.complete_within(payload, self.config.request_timeout_s)
        except ProviderFailure as e:
            logger.warning(f"Suggestion generation failed, using fallback questions: {e}")
            return FALLBACK_SUGGESTIONS[:count]

        questions = [
            _LIST_PREFIX.sub("", line).strip()
            for line in result.text.splitlines()
            if "?" in line
        ]
        questions = [q for q in questions if q][:count]
        return questions or FALLBACK_SUGGESTIONS[:count]
