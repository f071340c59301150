"""
Settings - Application configuration using Pydantic Settings.

Loads from environment variables and .env files.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class BreakerConfig(BaseModel):
    """Circuit breaker tuning for a single model role."""

    failure_threshold: int = 3
    window_seconds: float = 60.0
    recovery_timeout: float = 30.0

    model_config = {"frozen": True}


class Settings(BaseSettings):
    """Application settings."""

    # Model endpoint (Ollama-compatible, local or cloud)
    ollama_url: str = "https://ollama.com"
    ollama_api_key: str | None = None
    ollama_timeout: float = 120.0

    # Model per role
    router_model: str = "qwen:3.5"
    router_temperature: float = 0.7
    reasoner_model: str = "deepseek-v3.1:671b-cloud"
    reasoner_temperature: float = 0.2
    synthesis_model: str = "qwen:3.5"
    synthesis_temperature: float = 0.7

    # Curriculum retrieval
    embedding_model: str = "nomic-embed-text"
    supabase_url: str | None = None
    supabase_key: str | None = None
    retrieval_top_k: int = 5

    # Web search
    searxng_url: str | None = None
    duckduckgo_fallback: bool = True
    web_search_timeout: float = 10.0
    web_search_max_results: int = 3
    web_search_cache_ttl: float = 300.0

    # Concurrency gate
    max_concurrent_llm_calls: int = 5
    gate_timeout_seconds: float = 30.0

    # Circuit breakers (defaults, overridable per role)
    breaker_failure_threshold: int = 3
    breaker_window_seconds: float = 60.0
    breaker_recovery_timeout: float = 30.0
    breaker_overrides: dict[str, BreakerConfig] = {}

    # Response cache (seconds)
    cache_ttl_router: int = 3600
    cache_ttl_reasoner: int = 7200
    cache_ttl_synthesis: int = 3600
    cache_max_size: int = 1000

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False
    chat_rate_limit_rpm: int = 30

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def breaker_config(self, role: str) -> BreakerConfig:
        """Breaker tuning for a role, falling back to the shared defaults."""
        if role in self.breaker_overrides:
            return self.breaker_overrides[role]
        return BreakerConfig(
            failure_threshold=self.breaker_failure_threshold,
            window_seconds=self.breaker_window_seconds,
            recovery_timeout=self.breaker_recovery_timeout,
        )

    def cache_ttl(self, role: str) -> int:
        """Default cache TTL for a role's responses."""
        return {
            "router": self.cache_ttl_router,
            "reasoner": self.cache_ttl_reasoner,
            "synthesis": self.cache_ttl_synthesis,
        }.get(role, self.cache_ttl_router)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
