"""Error taxonomy for the assistant core.

Storage and chunking errors propagate to the caller unchanged. Provider
errors are absorbed by the gateway's failover loop and only surface as a
single ProviderFailure once every configured provider has failed.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class FailureReason(str, Enum):
    """Classified reason a provider attempt failed."""

    auth = "auth"
    quota = "quota"
    network = "network"
    invalid_request = "invalid_request"
    timeout = "timeout"
    unknown = "unknown"


class CoreError(Exception):
    """Base class for all assistant core errors."""

    code = "core_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to a JSON-safe dict for API responses."""
        return {"code": self.code, "message": self.message, "details": self.details}


class NotFoundError(CoreError):
    """Referenced document, user, catalog item or conversation does not exist."""

    code = "not_found"


class ConflictError(CoreError):
    """Duplicate chunk index, duplicate catalog code, or blocked deletion."""

    code = "conflict"


class ValidationError(CoreError):
    """Malformed input or configuration (e.g. overlap >= max chunk size)."""

    code = "validation_error"


class BudgetExceededError(CoreError):
    """Mandatory prompt parts alone do not fit the size ceiling."""

    code = "budget_exceeded"


class ProviderError(Exception):
    """Single provider adapter failure with a classified reason."""

    def __init__(self, provider: str, reason: FailureReason, message: str) -> None:
        self.provider = provider
        self.reason = reason
        self.message = message
        super().__init__(f"{provider}: {reason.value}: {message}")


@dataclass(frozen=True)
class ProviderAttemptFailure:
    """One failed attempt recorded by the gateway."""

    provider: str
    reason: FailureReason
    message: str


class ProviderFailure(CoreError):
    """Every provider failed, or the overall request timed out."""

    code = "provider_failure"

    def __init__(self, failures: list[ProviderAttemptFailure], *, timed_out: bool = False) -> None:
        self.failures = list(failures)
        self.timed_out = timed_out
        if timed_out:
            summary = "chat request timed out"
        else:
            summary = "all providers failed"
        if failures:
            reasons = "; ".join(f"{f.provider}={f.reason.value}" for f in failures)
            summary = f"{summary} ({reasons})"
        super().__init__(
            summary,
            details={
                "timed_out": timed_out,
                "failures": [
                    {"provider": f.provider, "reason": f.reason.value, "message": f.message}
                    for f in failures
                ],
            },
        )

    @property
    def reasons(self) -> list[FailureReason]:
        """Reasons in the order providers were tried."""
        return [f.reason for f in self.failures]
