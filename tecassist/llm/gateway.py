"""Provider gateway with ordered failover.

Tries providers in priority order with a hard per-attempt timeout. The
first non-empty completion wins; every failure is classified, logged and
counted. When all providers fail the caller gets one ProviderFailure
listing each attempt.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Protocol

from tecassist.chat.assembler import PromptPayload
from tecassist.errors import (
    FailureReason,
    ProviderAttemptFailure,
    ProviderError,
    ProviderFailure,
    ValidationError,
)
from tecassist.llm.providers import ProviderAdapter
from tecassist.utils.logging import StructuredProviderLogger
from tecassist.utils.metrics import PrometheusProviderMetrics

logger = logging.getLogger(__name__)


class ProviderMetrics(Protocol):
    def record_latency(self, provider: str, outcome: str, latency_ms: float) -> None: ...

    def inc_failure(self, provider: str, reason: str) -> None: ...


@dataclass(frozen=True)
class CompletionResult:
    """Winning completion and the provider that produced it."""

    text: str
    provider_used: str
    attempts: int


class ProviderGateway:
    """Ordered failover across provider adapters."""

    def __init__(
        self,
        providers: dict[str, ProviderAdapter],
        *,
        order: list[str] | None = None,
        attempt_timeout_s: float = 30.0,
        metrics: ProviderMetrics | None = None,
        structured_logger: StructuredProviderLogger | None = None,
    ) -> None:
        if attempt_timeout_s <= 0:
            raise ValidationError(
                "attempt timeout must be positive", {"attempt_timeout_s": attempt_timeout_s}
            )
        self.providers = providers
        self.order = order or list(providers)
        self.attempt_timeout_s = attempt_timeout_s
        self.metrics = metrics or PrometheusProviderMetrics()
        self.structured_logger = structured_logger or StructuredProviderLogger()

    async def complete(
        self,
        payload: PromptPayload,
        provider_order: list[str] | None = None,
        *,
        request_id: str | None = None,
        failures: list[ProviderAttemptFailure] | None = None,
    ) -> CompletionResult:
        """Return the first successful completion in priority order.

        Failed attempts are appended to `failures` as they happen, so a
        caller that cancels this call still sees what was tried.

        Raises:
            ProviderFailure: If every provider failed (or none is configured)
        """
        request_id = request_id or uuid.uuid4().hex
        order = provider_order or self.order
        failures = [] if failures is None else failures

        for attempt, name in enumerate(order, start=1):
            provider = self.providers.get(name)
            if provider is None:
                failures.append(
                    ProviderAttemptFailure(name, FailureReason.invalid_request, "not configured")
                )
                continue

            start = time.perf_counter()
            try:
                text = await asyncio.wait_for(
                    provider.complete(payload), timeout=self.attempt_timeout_s
                )
            except asyncio.TimeoutError:
                failure = ProviderAttemptFailure(
                    name, FailureReason.timeout, f"no response within {self.attempt_timeout_s}s"
                )
            except ProviderError as e:
                failure = ProviderAttemptFailure(name, e.reason, e.message)
            except Exception as e:
                # Unclassified adapter bug or malformed payload; still fail over
                logger.exception(f"Provider {name} raised an unclassified error")
                failure = ProviderAttemptFailure(
                    name, FailureReason.unknown, f"{type(e).__name__}: {e}"
                )
            else:
                if text and text.strip():
                    latency_ms = (time.perf_counter() - start) * 1000
                    self.metrics.record_latency(name, "success", latency_ms)
                    self.structured_logger.log_attempt(
                        request_id, name, attempt, "success", latency_ms
                    )
                    return CompletionResult(text=text, provider_used=name, attempts=attempt)
                failure = ProviderAttemptFailure(name, FailureReason.unknown, "empty completion")

            latency_ms = (time.perf_counter() - start) * 1000
            failures.append(failure)
            self.metrics.record_latency(name, "failure", latency_ms)
            self.metrics.inc_failure(name, failure.reason.value)
            self.structured_logger.log_attempt(
                request_id, name, attempt, "failure", latency_ms, failure.reason.value
            )

        logger.error(f"All providers failed for request {request_id}: {len(failures)} attempts")
        raise ProviderFailure(failures)

    async def complete_within(
        self,
        payload: PromptPayload,
        timeout_s: float,
        *,
        request_id: str | None = None,
    ) -> CompletionResult:
        """Run complete() under an overall deadline.

        Raises:
            ProviderFailure: timed_out=True when the deadline passes first
        """
        failures: list[ProviderAttemptFailure] = []
        try:
            return await asyncio.wait_for(
                self.complete(payload, request_id=request_id, failures=failures),
                timeout=timeout_s,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Chat request {request_id} exceeded {timeout_s}s overall timeout")
            raise ProviderFailure(failures, timed_out=True) from e
