"""Runtime configuration for the corpusqa services."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed configuration model."""

    model_config = SettingsConfigDict(env_prefix="corpusqa_", env_file=".env", case_sensitive=False)

    environment: Literal["dev", "test", "prod"] = "dev"
    log_level: str = "INFO"

    # Document index
    chroma_persist_dir: Path | None = Path("./.chroma")
    chroma_collection: str = "corpusqa-documents"
    chroma_host: str | None = None
    chroma_port: int | None = None
    chroma_ssl: bool = False

    # Collector
    collector_worker_count: int = 5
    collector_retry_attempts: int = 3
    collector_retry_delay_seconds: float = 30.0
    collector_interval_seconds: float = 10.0
    collector_refresh_interval_seconds: float = 60.0
    collector_enabled: bool = False

    # Providers
    provider_timeout_seconds: float = 30.0

    # Search / RAG
    search_limit: int = 10
    processor_batch_size: int = 10
    interactions_per_page: int = 10

    # CORS
    cors_allow_origins: tuple[str, ...] = ()
    cors_allow_credentials: bool = False
    cors_allow_methods: tuple[str, ...] = ("GET", "POST", "PUT", "DELETE", "OPTIONS")
    cors_allow_headers: tuple[str, ...] = ("*",)

    @property
    def is_test(self) -> bool:
        return self.environment == "test"


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return Settings()


def get_settings(override: Optional[dict[str, object]] = None) -> Settings:
    """Return settings, optionally overriding values without mutating cache."""

    if override:
        return Settings(**override)
    return _cached_settings()
