"""Context assembler - build a bounded, provider-agnostic prompt payload."""

import logging

from pydantic import BaseModel, Field

from tecassist.errors import ValidationError
from tecassist.models.chat import ConversationTurn, Role
from tecassist.models.documents import ScoredChunk

logger = logging.getLogger(__name__)

CHUNK_SEPARATOR = "\n\n---\n\n"
CONTEXT_HEADER = "DOCUMENTOS DE REFERÊNCIA:"


class PromptMessage(BaseModel):
    """One message in provider-neutral chat form."""

    role: Role
    content: str


class PromptPayload(BaseModel):
    """Assembled prompt; order is preamble, context, history, question."""

    system_preamble: str
    context_block: str = ""
    history: list[PromptMessage] = Field(default_factory=list)
    question: str
    sources: list[ScoredChunk] = Field(default_factory=list)
    dropped_chunks: int = 0
    dropped_turns: int = 0
    over_budget: bool = False

    @property
    def system_text(self) -> str:
        """Preamble followed by the labeled reference chunks."""
        if not self.context_block:
            return self.system_preamble
        return f"{self.system_preamble}\n\n{self.context_block}"

    def size(self) -> int:
        """Character size used for budgeting."""
        return payload_size(self.system_preamble, self.context_block, self.history, self.question)

    def to_messages(self) -> list[dict[str, str]]:
        """OpenAI-style message list."""
        messages = [{"role": "system", "content": self.system_text}]
        messages.extend({"role": m.role.value, "content": m.content} for m in self.history)
        messages.append({"role": "user", "content": self.question})
        return messages


def label_chunk(item: ScoredChunk) -> str:
    """Label a chunk with its source file and sequence index for traceability."""
    return f"[Fonte: {item.file_name} | Trecho {item.chunk.index}]\n{item.chunk.content}"


def render_context(chunks: list[ScoredChunk]) -> str:
    if not chunks:
        return ""
    return CONTEXT_HEADER + "\n\n" + CHUNK_SEPARATOR.join(label_chunk(c) for c in chunks)


def payload_size(
    preamble: str, context_block: str, history: list[PromptMessage], question: str
) -> int:
    return len(preamble) + len(context_block) + sum(len(m.content) for m in history) + len(question)


def assemble(
    retrieved_chunks: list[ScoredChunk],
    history: list[ConversationTurn],
    system_preamble: str,
    question: str,
    max_size: int,
    *,
    history_window: int | None = None,
) -> PromptPayload:
    """Merge chunks, history and instructions into one payload under max_size.

    Args:
        retrieved_chunks: Ranked chunks from the retriever
        history: Conversation turns, oldest first
        system_preamble: Persona and grounding instructions
        question: Current user question
        max_size: Hard ceiling on payload characters
        history_window: Keep at most this many trailing turns

    Returns:
        PromptPayload. The preamble and question are always present
        verbatim; over_budget is set when they alone exceed max_size.

    Truncation order when over max_size:
        1. Drop the lowest-scored retrieved chunk, repeatedly
        2. Then drop the oldest history turn, repeatedly
        3. Never drop the question or the preamble
    """
    if max_size <= 0:
        raise ValidationError("max_size must be positive", {"max_size": max_size})

    chunks = sorted(retrieved_chunks, key=lambda c: (-c.score, c.chunk.index))
    turns = list(history)
    if history_window is not None:
        turns = turns[-history_window:] if history_window > 0 else []
    messages = [PromptMessage(role=t.role, content=t.content) for t in turns]

    dropped_chunks = 0
    dropped_turns = 0
    context_block = render_context(chunks)

    while payload_size(system_preamble, context_block, messages, question) > max_size:
        if chunks:
            chunks.pop()
            dropped_chunks += 1
            context_block = render_context(chunks)
        elif messages:
            messages.pop(0)
            dropped_turns += 1
        else:
            break

    over_budget = payload_size(system_preamble, context_block, messages, question) > max_size
    if dropped_chunks or dropped_turns:
        logger.info(
            f"Context truncated: dropped {dropped_chunks} chunks and {dropped_turns} turns "
            f"(max_size={max_size})"
        )
    if over_budget:
        logger.warning(
            f"Preamble and question alone exceed max_size={max_size}; emitting them anyway"
        )

    return PromptPayload(
        system_preamble=system_preamble,
        context_block=context_block,
        history=messages,
        question=question,
        sources=chunks,
        dropped_chunks=dropped_chunks,
        dropped_turns=dropped_turns,
        over_budget=over_budget,
    )
