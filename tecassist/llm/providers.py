"""LLM provider adapters behind one completion interface.

Security: API keys come from settings (environment) only. Providers
without a key are simply not built, so the gateway never tries them.
"""

import logging
from enum import Enum
from typing import Protocol

import httpx
import openai
from openai import AsyncOpenAI

from tecassist.chat.assembler import PromptPayload
from tecassist.config import Settings
from tecassist.errors import FailureReason, ProviderError

logger = logging.getLogger(__name__)


class ProviderName(str, Enum):
    """Known provider adapters."""

    gemini = "gemini"
    groq = "groq"
    openai = "openai"
    stub = "stub"


# History turns forwarded per provider; smaller-context models get fewer.
HISTORY_TURNS = {
    ProviderName.gemini: 6,
    ProviderName.groq: 4,
    ProviderName.openai: 6,
    ProviderName.stub: 6,
}


class ProviderAdapter(Protocol):
    """Protocol for provider adapters."""

    name: str

    async def complete(self, payload: PromptPayload) -> str:
        """Return the completion text.

        Raises:
            ProviderError: With a classified FailureReason
        """
        ...


def reason_for_status(status_code: int) -> FailureReason:
    """Map an HTTP status from a provider to a failure reason."""
    if status_code in (401, 403):
        return FailureReason.auth
    if status_code == 429:
        return FailureReason.quota
    if status_code in (400, 413, 422):
        return FailureReason.invalid_request
    return FailureReason.unknown


def classify_openai_error(exc: Exception) -> FailureReason:
    """Classify an exception raised by the openai SDK."""
    # APITimeoutError subclasses APIConnectionError
    if isinstance(exc, openai.APIConnectionError):
        return FailureReason.network
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return FailureReason.auth
    if isinstance(exc, openai.RateLimitError):
        return FailureReason.quota
    if isinstance(exc, openai.APIStatusError):
        return reason_for_status(exc.status_code)
    return FailureReason.unknown


def classify_httpx_error(exc: Exception) -> FailureReason:
    """Classify an exception raised by httpx."""
    if isinstance(exc, httpx.HTTPStatusError):
        return reason_for_status(exc.response.status_code)
    if isinstance(exc, httpx.TransportError):
        return FailureReason.network
    return FailureReason.unknown


def trim_history(payload: PromptPayload, provider: ProviderName) -> PromptPayload:
    limit = HISTORY_TURNS[provider]
    if len(payload.history) <= limit:
        return payload
    return payload.model_copy(update={"history": payload.history[-limit:]})


class OpenAICompatibleProvider:
    """Chat completions through the openai SDK (OpenAI itself or Groq)."""

    def __init__(
        self,
        name: ProviderName,
        api_key: str,
        model: str,
        *,
        base_url: str | None = None,
        temperature: float = 0.3,
        max_tokens: int = 4096,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.name = name.value
        self._provider = name
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        # Retries are the gateway's job; the SDK must fail fast.
        self.client = client or AsyncOpenAI(api_key=api_key, base_url=base_url, max_retries=0)

    async def complete(self, payload: PromptPayload) -> str:
        payload = trim_history(payload, self._provider)
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=payload.to_messages(),
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except openai.OpenAIError as e:
            raise ProviderError(self.name, classify_openai_error(e), str(e)) from e

        text = response.choices[0].message.content if response.choices else None
        if not text or not text.strip():
            raise ProviderError(self.name, FailureReason.unknown, "empty completion")
        return text


class GeminiProvider:
    """Gemini generateContent over its REST API."""

    name = ProviderName.gemini.value

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        *,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        temperature: float = 0.3,
        max_tokens: int = 4096,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.http_client = http_client

    def build_body(self, payload: PromptPayload) -> dict:
        """Gemini uses 'model' for the assistant role and a separate system instruction."""
        contents = [
            {
                "role": "model" if m.role.value == "assistant" else "user",
                "parts": [{"text": m.content}],
            }
            for m in payload.history
        ]
        contents.append({"role": "user", "parts": [{"text": payload.question}]})
        return {
            "systemInstruction": {"parts": [{"text": payload.system_text}]},
            "contents": contents,
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_tokens,
            },
        }

    async def complete(self, payload: PromptPayload) -> str:
        payload = trim_history(payload, ProviderName.gemini)
        url = f"{self.base_url}/models/{self.model}:generateContent"
        body = self.build_body(payload)
        try:
            if self.http_client is not None:
                response = await self.http_client.post(url, params={"key": self.api_key}, json=body)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(url, params={"key": self.api_key}, json=body)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise ProviderError(self.name, classify_httpx_error(e), str(e)) from e
        except ValueError as e:
            raise ProviderError(self.name, FailureReason.unknown, f"invalid JSON: {e}") from e

        try:
            candidates = data.get("candidates") or []
            parts = candidates[0].get("content", {}).get("parts", []) if candidates else []
            text = "".join(p.get("text", "") for p in parts)
        except (AttributeError, TypeError, KeyError, IndexError) as e:
            raise ProviderError(self.name, FailureReason.unknown, "malformed response") from e
        if not text.strip():
            raise ProviderError(self.name, FailureReason.unknown, "empty completion")
        return text


class DeterministicStubProvider:
    """Deterministic stub provider for testing (no API key required)."""

    name = ProviderName.stub.value

    async def complete(self, payload: PromptPayload) -> str:
        sources = ", ".join(
            f"{s.file_name}#{s.chunk.index}" for s in payload.sources
        ) or "nenhuma"
        return (
            f"Resposta de teste para: {payload.question}\n\n"
            f"Trechos considerados: {sources}.\n\n"
            "*Resposta gerada sem modelo de linguagem.*"
        )


def build_providers(settings: Settings) -> dict[str, ProviderAdapter]:
    """Build adapters for every provider in the configured order that has credentials.

    Falls back to the deterministic stub when no real provider is usable.
    """
    providers: dict[str, ProviderAdapter] = {}
    for name in settings.provider_names:
        if name == ProviderName.gemini.value and settings.gemini_api_key:
            providers[name] = GeminiProvider(
                settings.gemini_api_key.get_secret_value(),
                settings.gemini_model,
                base_url=settings.gemini_base_url,
                temperature=settings.provider_temperature,
                max_tokens=settings.provider_max_output_tokens,
            )
        elif name == ProviderName.groq.value and settings.groq_api_key:
            providers[name] = OpenAICompatibleProvider(
                ProviderName.groq,
                settings.groq_api_key.get_secret_value(),
                settings.groq_model,
                base_url=settings.groq_base_url,
                temperature=settings.provider_temperature,
                max_tokens=settings.provider_max_output_tokens,
            )
        elif name == ProviderName.openai.value and settings.openai_api_key:
            providers[name] = OpenAICompatibleProvider(
                ProviderName.openai,
                settings.openai_api_key.get_secret_value(),
                settings.openai_model,
                temperature=settings.provider_temperature,
                max_tokens=settings.provider_max_output_tokens,
            )
        elif name == ProviderName.stub.value:
            providers[name] = DeterministicStubProvider()
        else:
            logger.info(f"Provider '{name}' skipped: not configured")

    if not providers:
        logger.warning("No LLM provider configured, using deterministic stub provider")
        providers[ProviderName.stub.value] = DeterministicStubProvider()
    return providers
