"""Prometheus metrics for retrieval, provider calls and chat requests."""

from prometheus_client import Counter, Histogram

provider_latency_ms = Histogram(
    "provider_latency_ms",
    "Provider completion latency in milliseconds",
    ["provider", "outcome"],
    buckets=[100, 250, 500, 1000, 2000, 4000, 8000, 16000, 32000, 64000],
)

provider_failures_total = Counter(
    "provider_failures_total",
    "Total failed provider attempts",
    ["provider", "reason"],
)

retrieval_chunks_returned = Histogram(
    "retrieval_chunks_returned",
    "Chunks returned per retrieval after budgeting",
    ["strategy"],
    buckets=[0, 1, 2, 5, 10, 20, 40, 80],
)

chat_requests_total = Counter(
    "chat_requests_total",
    "Total chat requests by outcome",
    ["outcome"],
)


class PrometheusProviderMetrics:
    """Prometheus-based provider metrics implementation."""

    def record_latency(self, provider: str, outcome: str, latency_ms: float) -> None:
        """Record provider attempt latency."""
        provider_latency_ms.labels(provider=provider, outcome=outcome).observe(latency_ms)

    def inc_failure(self, provider: str, reason: str) -> None:
        """Increment provider failure counter."""
        provider_failures_total.labels(provider=provider, reason=reason).inc()
