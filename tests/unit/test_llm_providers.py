"""Unit tests for provider adapters and failure classification.

The openai client is replaced with AsyncMock and Gemini runs against an
httpx.MockTransport, so nothing leaves the process.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from tecassist.chat.assembler import PromptMessage, PromptPayload
from tecassist.config import Settings
from tecassist.errors import FailureReason, ProviderError
from tecassist.llm.gateway import ProviderGateway
from tecassist.llm.providers import (
    DeterministicStubProvider,
    GeminiProvider,
    OpenAICompatibleProvider,
    ProviderName,
    build_providers,
    classify_openai_error,
    reason_for_status,
)
from tecassist.models.chat import Role

REQUEST = httpx.Request("POST", "https://api.test/v1/chat/completions")


def _status_error(cls: type[openai.APIStatusError], status: int) -> openai.APIStatusError:
    return cls("refused", response=httpx.Response(status, request=REQUEST), body=None)


def _payload(turns: int = 0) -> PromptPayload:
    history = [
        PromptMessage(role=Role.user if i % 2 == 0 else Role.assistant, content=f"turno {i}")
        for i in range(turns)
    ]
    return PromptPayload(
        system_preamble="Você é a IA da Tec I.A.",
        history=history,
        question="Qual a voltagem?",
    )


def _openai_provider(create: AsyncMock, name: ProviderName = ProviderName.openai):
    client = MagicMock()
    client.chat.completions.create = create
    return OpenAICompatibleProvider(name, "sk-test", "gpt-4o-mini", client=client)


def _completion(text: str | None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


@pytest.mark.parametrize(
    ("status", "reason"),
    [
        (401, FailureReason.auth),
        (403, FailureReason.auth),
        (429, FailureReason.quota),
        (400, FailureReason.invalid_request),
        (422, FailureReason.invalid_request),
        (500, FailureReason.unknown),
        (404, FailureReason.unknown),
    ],
)
def test_reason_for_status(status: int, reason: FailureReason) -> None:
    assert reason_for_status(status) == reason


def test_classify_openai_errors() -> None:
    assert classify_openai_error(_status_error(openai.AuthenticationError, 401)) == FailureReason.auth
    assert classify_openai_error(_status_error(openai.RateLimitError, 429)) == FailureReason.quota
    assert (
        classify_openai_error(_status_error(openai.BadRequestError, 400))
        == FailureReason.invalid_request
    )
    assert classify_openai_error(openai.APIConnectionError(request=REQUEST)) == FailureReason.network
    assert classify_openai_error(openai.APITimeoutError(request=REQUEST)) == FailureReason.network
    assert classify_openai_error(RuntimeError("?")) == FailureReason.unknown


@pytest.mark.asyncio
async def test_openai_provider_returns_completion_text() -> None:
    create = AsyncMock(return_value=_completion("220V monofásico"))
    provider = _openai_provider(create)

    text = await provider.complete(_payload())

    assert text == "220V monofásico"
    kwargs = create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["messages"][-1] == {"role": "user", "content": "Qual a voltagem?"}


@pytest.mark.asyncio
async def test_openai_provider_classifies_rate_limit() -> None:
    provider = _openai_provider(AsyncMock(side_effect=_status_error(openai.RateLimitError, 429)))

    with pytest.raises(ProviderError) as exc_info:
        await provider.complete(_payload())

    assert exc_info.value.provider == "openai"
    assert exc_info.value.reason == FailureReason.quota


@pytest.mark.asyncio
async def test_openai_provider_empty_completion_is_unknown() -> None:
    provider = _openai_provider(AsyncMock(return_value=_completion("  ")))

    with pytest.raises(ProviderError) as exc_info:
        await provider.complete(_payload())

    assert exc_info.value.reason == FailureReason.unknown


@pytest.mark.asyncio
async def test_groq_receives_fewer_history_turns() -> None:
    create = AsyncMock(return_value=_completion("ok"))
    provider = _openai_provider(create, ProviderName.groq)

    await provider.complete(_payload(turns=10))

    messages = create.call_args.kwargs["messages"]
    # system + 4 history turns + question
    assert len(messages) == 6
    assert messages[1]["content"] == "turno 6"


def _gemini(handler) -> GeminiProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GeminiProvider("g-test", "gemini-2.5-flash", base_url="https://gemini.test/v1beta", http_client=client)


@pytest.mark.asyncio
async def test_gemini_success_joins_parts() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"candidates": [{"content": {"parts": [{"text": "220V "}, {"text": "60Hz"}]}}]},
        )

    text = await _gemini(handler).complete(_payload(turns=2))

    assert text == "220V 60Hz"
    assert seen[0].url.path == "/v1beta/models/gemini-2.5-flash:generateContent"
    assert seen[0].url.params["key"] == "g-test"


def test_gemini_body_maps_assistant_to_model_role() -> None:
    body = GeminiProvider("g-test").build_body(_payload(turns=2))

    assert [c["role"] for c in body["contents"]] == ["user", "model", "user"]
    assert body["systemInstruction"]["parts"][0]["text"].startswith("Você é a IA")
    assert body["generationConfig"]["maxOutputTokens"] == 4096


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "reason"),
    [
        (401, FailureReason.auth),
        (429, FailureReason.quota),
        (400, FailureReason.invalid_request),
        (500, FailureReason.unknown),
    ],
)
async def test_gemini_http_status_is_classified(status: int, reason: FailureReason) -> None:
    provider = _gemini(lambda request: httpx.Response(status, json={"error": {}}))

    with pytest.raises(ProviderError) as exc_info:
        await provider.complete(_payload())

    assert exc_info.value.provider == "gemini"
    assert exc_info.value.reason == reason


@pytest.mark.asyncio
async def test_gemini_connection_error_is_network() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ProviderError) as exc_info:
        await _gemini(handler).complete(_payload())

    assert exc_info.value.reason == FailureReason.network


@pytest.mark.asyncio
async def test_gemini_without_candidates_is_unknown() -> None:
    provider = _gemini(lambda request: httpx.Response(200, json={"candidates": []}))

    with pytest.raises(ProviderError) as exc_info:
        await provider.complete(_payload())

    assert exc_info.value.reason == FailureReason.unknown


@pytest.mark.asyncio
async def test_stub_provider_is_deterministic() -> None:
    stub = DeterministicStubProvider()

    first = await stub.complete(_payload())
    second = await stub.complete(_payload())

    assert first == second
    assert "Qual a voltagem?" in first


def test_build_providers_skips_unconfigured_in_order() -> None:
    settings = Settings(
        _env_file=None,
        provider_order="gemini,groq,openai",
        gemini_api_key="g-test",
        groq_api_key=None,
        openai_api_key="sk-test",
    )

    providers = build_providers(settings)

    assert list(providers) == ["gemini", "openai"]


def test_build_providers_falls_back_to_stub() -> None:
    settings = Settings(
        _env_file=None,
        provider_order="gemini,groq",
        gemini_api_key=None,
        groq_api_key=None,
        openai_api_key=None,
    )

    providers = build_providers(settings)

    assert list(providers) == ["stub"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"candidates": [{"content": "oops"}]},
        [1, 2],
        {"candidates": "none"},
    ],
)
async def test_gemini_malformed_body_is_classified(body: object) -> None:
    provider = _gemini(lambda request: httpx.Response(200, json=body))

    with pytest.raises(ProviderError) as exc_info:
        await provider.complete(_payload())

    assert exc_info.value.reason == FailureReason.unknown
    assert exc_info.value.message == "malformed response"


@pytest.mark.asyncio
async def test_malformed_gemini_response_fails_over_to_next_provider() -> None:
    gemini = _gemini(lambda request: httpx.Response(200, json={"candidates": [{"content": "oops"}]}))
    gateway = ProviderGateway({"gemini": gemini, "stub": DeterministicStubProvider()})

    result = await gateway.complete(_payload(), ["gemini", "stub"])

    assert result.provider_used == "stub"
