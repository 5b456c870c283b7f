"""Unit tests for provider gateway failover.

All providers are in-process fakes; no network calls.
"""

import asyncio

import pytest

from tecassist.chat.assembler import PromptPayload
from tecassist.errors import FailureReason, ProviderError, ProviderFailure, ValidationError
from tecassist.llm.gateway import ProviderGateway
from tecassist.llm.providers import DeterministicStubProvider


class FakeProvider:
    """Returns a fixed text or raises a classified failure."""

    def __init__(
        self,
        name: str,
        *,
        text: str = "",
        reason: FailureReason | None = None,
        delay_s: float = 0.0,
    ) -> None:
        self.name = name
        self.text = text
        self.reason = reason
        self.delay_s = delay_s
        self.calls = 0

    async def complete(self, payload: PromptPayload) -> str:
        self.calls += 1
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.reason is not None:
            raise ProviderError(self.name, self.reason, f"{self.name} refused")
        return self.text


class RecordingMetrics:
    def __init__(self) -> None:
        self.latencies: list[tuple[str, str]] = []
        self.failures: list[tuple[str, str]] = []

    def record_latency(self, provider: str, outcome: str, latency_ms: float) -> None:
        self.latencies.append((provider, outcome))

    def inc_failure(self, provider: str, reason: str) -> None:
        self.failures.append((provider, reason))


@pytest.fixture
def payload() -> PromptPayload:
    return PromptPayload(system_preamble="Você é a IA da Tec I.A.", question="Qual a voltagem?")


@pytest.mark.asyncio
async def test_failover_uses_next_provider(payload: PromptPayload) -> None:
    """A fails with a retryable reason, B succeeds: providerUsed is B."""
    a = FakeProvider("a", text="resposta parcial de A", reason=FailureReason.network)
    b = FakeProvider("b", text="220V monofásico")
    metrics = RecordingMetrics()
    gateway = ProviderGateway({"a": a, "b": b}, metrics=metrics)

    result = await gateway.complete(payload)

    assert result.provider_used == "b"
    assert result.text == "220V monofásico"
    assert "parcial" not in result.text
    assert result.attempts == 2
    assert metrics.failures == [("a", "network")]
    assert metrics.latencies == [("a", "failure"), ("b", "success")]


@pytest.mark.asyncio
async def test_first_success_stops_failover(payload: PromptPayload) -> None:
    a = FakeProvider("a", text="ok")
    b = FakeProvider("b", text="nunca chamado")
    gateway = ProviderGateway({"a": a, "b": b}, metrics=RecordingMetrics())

    result = await gateway.complete(payload)

    assert result.provider_used == "a"
    assert b.calls == 0


@pytest.mark.asyncio
async def test_all_quota_failures_give_composite_error(payload: PromptPayload) -> None:
    """Three quota failures produce one ProviderFailure naming all three."""
    providers = {
        name: FakeProvider(name, reason=FailureReason.quota) for name in ("gemini", "groq", "openai")
    }
    gateway = ProviderGateway(providers, metrics=RecordingMetrics())

    with pytest.raises(ProviderFailure) as exc_info:
        await gateway.complete(payload)

    error = exc_info.value
    assert [f.provider for f in error.failures] == ["gemini", "groq", "openai"]
    assert error.reasons == [FailureReason.quota] * 3
    assert not error.timed_out
    assert "gemini=quota" in error.message
    assert error.to_dict()["code"] == "provider_failure"


@pytest.mark.asyncio
async def test_invalid_request_still_advances(payload: PromptPayload) -> None:
    a = FakeProvider("a", reason=FailureReason.invalid_request)
    b = FakeProvider("b", text="ok")
    gateway = ProviderGateway({"a": a, "b": b}, metrics=RecordingMetrics())

    result = await gateway.complete(payload)

    assert result.provider_used == "b"


@pytest.mark.asyncio
async def test_empty_completion_counts_as_failure(payload: PromptPayload) -> None:
    a = FakeProvider("a", text="   ")
    b = FakeProvider("b", text="ok")
    metrics = RecordingMetrics()
    gateway = ProviderGateway({"a": a, "b": b}, metrics=metrics)

    result = await gateway.complete(payload)

    assert result.provider_used == "b"
    assert metrics.failures == [("a", "unknown")]


@pytest.mark.asyncio
async def test_attempt_timeout_triggers_failover(payload: PromptPayload) -> None:
    """Exceeding the per-attempt timeout fails that provider only."""
    slow = FakeProvider("slow", text="tarde demais", delay_s=1.0)
    fast = FakeProvider("fast", text="ok")
    metrics = RecordingMetrics()
    gateway = ProviderGateway({"slow": slow, "fast": fast}, attempt_timeout_s=0.05, metrics=metrics)

    result = await gateway.complete(payload)

    assert result.provider_used == "fast"
    assert metrics.failures == [("slow", "timeout")]


@pytest.mark.asyncio
async def test_outer_timeout_aborts_remaining_attempts(payload: PromptPayload) -> None:
    a = FakeProvider("a", text="ok", delay_s=0.5)
    b = FakeProvider("b", text="ok")
    gateway = ProviderGateway({"a": a, "b": b}, attempt_timeout_s=5.0, metrics=RecordingMetrics())

    with pytest.raises(ProviderFailure) as exc_info:
        await gateway.complete_within(payload, timeout_s=0.05)

    assert exc_info.value.timed_out
    assert b.calls == 0


@pytest.mark.asyncio
async def test_explicit_order_overrides_default(payload: PromptPayload) -> None:
    a = FakeProvider("a", text="de A")
    b = FakeProvider("b", text="de B")
    gateway = ProviderGateway({"a": a, "b": b}, metrics=RecordingMetrics())

    result = await gateway.complete(payload, ["b", "a"])

    assert result.provider_used == "b"


@pytest.mark.asyncio
async def test_unconfigured_provider_in_order_is_skipped(payload: PromptPayload) -> None:
    gateway = ProviderGateway({"stub": DeterministicStubProvider()}, metrics=RecordingMetrics())

    result = await gateway.complete(payload, ["gemini", "stub"])

    assert result.provider_used == "stub"
    assert payload.question in result.text


def test_non_positive_attempt_timeout_is_rejected() -> None:
    with pytest.raises(ValidationError):
        ProviderGateway({}, attempt_timeout_s=0)


class BrokenProvider:
    name = "broken"

    async def complete(self, payload: PromptPayload) -> str:
        raise AttributeError("'str' object has no attribute 'get'")


@pytest.mark.asyncio
async def test_unclassified_exception_fails_over(payload: PromptPayload) -> None:
    """An adapter raising something other than ProviderError still advances."""
    metrics = RecordingMetrics()
    gateway = ProviderGateway(
        {"broken": BrokenProvider(), "stub": DeterministicStubProvider()}, metrics=metrics
    )

    result = await gateway.complete(payload)

    assert result.provider_used == "stub"
    assert metrics.failures == [("broken", "unknown")]


@pytest.mark.asyncio
async def test_outer_timeout_keeps_earlier_failures(payload: PromptPayload) -> None:
    a = FakeProvider("a", reason=FailureReason.quota)
    b = FakeProvider("b", text="ok", delay_s=0.5)
    gateway = ProviderGateway({"a": a, "b": b}, attempt_timeout_s=5.0, metrics=RecordingMetrics())

    with pytest.raises(ProviderFailure) as exc_info:
        await gateway.complete_within(payload, timeout_s=0.1)

    error = exc_info.value
    assert error.timed_out
    assert [(f.provider, f.reason) for f in error.failures] == [("a", FailureReason.quota)]
    assert error.to_dict()["details"]["failures"][0]["reason"] == "quota"
