"""Typed settings configuration - single source of truth."""

from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = "sqlite+aiosqlite:///./tecassist.db"
    database_echo: bool = False
    # Create tables at startup (tests and local dev; production runs Alembic)
    database_auto_create: bool = False

    # Chunking (values used by the production ingestion pipeline)
    chunk_max_chars: int = 800
    chunk_overlap_chars: int = 150
    chunk_min_chars: int = 80
    chunk_strategy: str = "semantic"
    chars_per_token: int = 4

    # Retrieval
    retrieval_strategy: str = "lexical"
    retrieval_budget_chars: int = 12000
    retrieval_relevance_floor: float = 0.0
    retrieval_embedding_floor: float = 0.25
    retrieval_default_top_k: int = 15

    # Embeddings
    embedding_model: str = "text-embedding-3-small"
    embedding_batch_size: int = 10

    # Context assembly
    assembler_max_chars: int = 24000
    history_window_turns: int = 6

    # Providers
    provider_order: str = "gemini,groq,openai"
    provider_attempt_timeout_s: float = 30.0
    chat_request_timeout_s: float = 90.0
    provider_temperature: float = 0.3
    provider_max_output_tokens: int = 4096

    gemini_api_key: SecretStr | None = None
    gemini_model: str = "gemini-2.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"

    groq_api_key: SecretStr | None = None
    groq_model: str = "llama-3.3-70b-versatile"
    groq_base_url: str = "https://api.groq.com/openai/v1"

    openai_api_key: SecretStr | None = None
    openai_model: str = "gpt-4o-mini"

    @property
    def provider_names(self) -> list[str]:
        """Configured provider priority order, trimmed and lowercased."""
        return [p.strip().lower() for p in self.provider_order.split(",") if p.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
