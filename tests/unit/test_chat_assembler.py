"""Unit tests for the context assembler truncation policy."""

from datetime import datetime, timezone

import pytest

from tecassist.chat.assembler import assemble, label_chunk
from tecassist.errors import ValidationError
from tecassist.models.chat import ConversationTurn, Role
from tecassist.models.documents import DocChunk, ScoredChunk

PREAMBLE = "Você é a IA da Tec I.A. Responda apenas com base nos documentos."
QUESTION = "Qual a voltagem da seladora SI-500?"


def _chunk(index: int, score: float, size: int = 100) -> ScoredChunk:
    content = f"#{index} " + "v" * (size - len(f"#{index} "))
    return ScoredChunk(
        chunk=DocChunk(document_id="d1", index=index, content=content, length=len(content)),
        file_name="ficha-si500.pdf",
        score=score,
    )


def _turns(*contents: str) -> list[ConversationTurn]:
    now = datetime.now(timezone.utc)
    return [
        ConversationTurn(
            user_id="u1",
            seq=i,
            role=Role.user if i % 2 == 0 else Role.assistant,
            content=c,
            created_at=now,
        )
        for i, c in enumerate(contents)
    ]


def test_payload_order_is_preamble_chunks_history_question() -> None:
    payload = assemble([_chunk(3, 2.0)], _turns("oi", "olá!"), PREAMBLE, QUESTION, 10_000)

    messages = payload.to_messages()

    assert messages[0]["role"] == "system"
    assert messages[0]["content"].startswith(PREAMBLE)
    assert "[Fonte: ficha-si500.pdf | Trecho 3]" in messages[0]["content"]
    assert [m["content"] for m in messages[1:3]] == ["oi", "olá!"]
    assert messages[-1] == {"role": "user", "content": QUESTION}


def test_chunks_are_labeled_with_source_and_index() -> None:
    assert label_chunk(_chunk(7, 1.0)).startswith("[Fonte: ficha-si500.pdf | Trecho 7]\n#7 ")


def test_lowest_scored_chunks_are_dropped_first() -> None:
    chunks = [_chunk(0, 1.0), _chunk(1, 3.0), _chunk(2, 2.0)]
    history = _turns("pergunta antiga", "resposta antiga")
    full = assemble(chunks, history, PREAMBLE, QUESTION, 100_000)

    payload = assemble(chunks, history, PREAMBLE, QUESTION, full.size() - 50)

    assert [s.chunk.index for s in payload.sources] == [1, 2]
    assert payload.dropped_chunks == 1
    assert payload.dropped_turns == 0
    assert len(payload.history) == 2


def test_oldest_history_is_dropped_after_all_chunks() -> None:
    history = _turns("a" * 40, "b" * 40, "c" * 40)
    base = len(PREAMBLE) + len(QUESTION)

    payload = assemble([_chunk(0, 1.0)], history, PREAMBLE, QUESTION, base + 85)

    assert payload.sources == []
    assert [m.content for m in payload.history] == ["b" * 40, "c" * 40]
    assert payload.dropped_chunks == 1
    assert payload.dropped_turns == 1
    assert payload.size() <= base + 85


def test_preamble_and_question_survive_maximum_pressure() -> None:
    """Even when nothing fits, the preamble and question are emitted verbatim."""
    payload = assemble([_chunk(0, 1.0)], _turns("x" * 500), PREAMBLE, QUESTION, max_size=10)

    assert payload.system_preamble == PREAMBLE
    assert payload.question == QUESTION
    assert payload.context_block == ""
    assert payload.history == []
    assert payload.over_budget


def test_history_window_keeps_most_recent_turns() -> None:
    history = _turns("t0", "t1", "t2", "t3", "t4")

    payload = assemble([], history, PREAMBLE, QUESTION, 10_000, history_window=2)

    assert [m.content for m in payload.history] == ["t3", "t4"]


def test_no_chunks_means_no_context_block() -> None:
    payload = assemble([], [], PREAMBLE, QUESTION, 10_000)

    assert payload.system_text == PREAMBLE
    assert not payload.over_budget


def test_non_positive_max_size_is_rejected() -> None:
    with pytest.raises(ValidationError):
        assemble([], [], PREAMBLE, QUESTION, 0)
