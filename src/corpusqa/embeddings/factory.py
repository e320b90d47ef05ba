"""Construct the active embedding provider from stored configuration."""

from __future__ import annotations

from typing import Any, Callable, Mapping

import httpx

from corpusqa.errors import (
    InvalidProviderSettingsError,
    ProviderLookupError,
    ProviderValidationError,
    UnsupportedProviderError,
)
from corpusqa.metrics.observability import get_logger
from corpusqa.models import (
    ContentPart,
    EmbeddingProviderConfig,
    EmbeddingProviderSettings,
    EmbeddingProviderType,
    FilterOption,
    HashEmbeddingSettings,
    NoOpSettings,
    OpenAISettings,
    ProviderFilter,
    ProviderStatus,
)
from corpusqa.embeddings.service import (
    DEFAULT_TIMEOUT_SECONDS,
    EmbeddingProvider,
    HashEmbeddingProvider,
    NoOpEmbeddingProvider,
    OpenAIEmbeddingProvider,
)
from corpusqa.storage.base import Storage

_logger = get_logger("embedding.factory")

Builder = Callable[[EmbeddingProviderConfig, float, "httpx.Client | None"], EmbeddingProvider]

# Every supported type tag maps to the settings type it requires and a builder.
_REGISTRY: Mapping[EmbeddingProviderType, tuple[type, Builder]] = {
    EmbeddingProviderType.OPENAI: (
        OpenAISettings,
        lambda config, timeout, client: OpenAIEmbeddingProvider(
            config.uuid, config.configuration, client=client, timeout=timeout
        ),
    ),
    EmbeddingProviderType.NOOP: (
        NoOpSettings,
        lambda config, timeout, client: NoOpEmbeddingProvider(config.configuration),
    ),
    EmbeddingProviderType.HASH: (
        HashEmbeddingSettings,
        lambda config, timeout, client: HashEmbeddingProvider(config.uuid, config.configuration),
    ),
}


def build_embedding_provider(
    config: EmbeddingProviderConfig,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    client: httpx.Client | None = None,
) -> EmbeddingProvider:
    try:
        provider_type = EmbeddingProviderType(config.provider)
    except ValueError:
        raise UnsupportedProviderError("embedding", str(config.provider)) from None
    settings_type, builder = _REGISTRY[provider_type]
    if not isinstance(config.configuration, settings_type):
        raise InvalidProviderSettingsError(f"invalid settings type for {provider_type.value} embedding provider")
    return builder(config, timeout, client)


def initialize_embedding_provider(
    storage: Storage,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    client: httpx.Client | None = None,
) -> EmbeddingProvider | None:
    """Return the active embedding provider, or ``None`` when none is active."""

    try:
        active = storage.get_all_embedding_providers(
            ProviderFilter(status=ProviderStatus.ACTIVE.value),
            FilterOption(limit=1, page=1),
        )
    except Exception as exc:
        _logger.error("embedding_provider.lookup_failed", error=str(exc))
        raise ProviderLookupError(f"failed to get active embedding provider: {exc}") from exc

    if active.total == 0 or not active.items:
        _logger.warning("embedding_provider.none_active")
        return None

    config = active.items[0]
    provider = build_embedding_provider(config, timeout=timeout, client=client)
    _logger.info("embedding_provider.initialized", provider=str(config.provider), provider_uuid=str(config.uuid))
    return provider


def parse_embedding_provider_settings(provider_type: str, raw: Mapping[str, Any] | None) -> EmbeddingProviderSettings:
    """Build typed settings for ``provider_type`` from a JSON payload."""

    raw = dict(raw or {})
    try:
        tag = EmbeddingProviderType(provider_type)
    except ValueError:
        raise UnsupportedProviderError("embedding", provider_type) from None

    if tag is EmbeddingProviderType.OPENAI:
        if not raw.get("api_key"):
            raise ProviderValidationError("API key is required for OpenAI settings")
        if not raw.get("model_id"):
            raise ProviderValidationError("Model ID is required for OpenAI settings")
        return OpenAISettings(
            api_key=str(raw["api_key"]),
            model_id=str(raw["model_id"]),
            api_endpoint=raw.get("api_endpoint") or None,
        )
    if tag is EmbeddingProviderType.NOOP:
        try:
            parts = tuple(ContentPart.from_dict(part) for part in raw.get("content_parts") or ())
        except (TypeError, ValueError, AttributeError) as exc:
            raise ProviderValidationError(f"invalid content parts for noop settings: {exc}") from exc
        return NoOpSettings(content_parts=parts)
    try:
        dim = int(raw.get("dim", HashEmbeddingSettings.dim))
    except (TypeError, ValueError) as exc:
        raise ProviderValidationError(f"invalid dim for hash settings: {exc}") from exc
    if dim <= 0:
        raise ProviderValidationError("dim must be positive for hash settings")
    return HashEmbeddingSettings(dim=dim, normalize=bool(raw.get("normalize", True)))


def embedding_settings_to_dict(settings: object) -> dict[str, Any]:
    if isinstance(settings, OpenAISettings):
        data: dict[str, Any] = {"api_key": settings.api_key, "model_id": settings.model_id}
        if settings.api_endpoint:
            data["api_endpoint"] = settings.api_endpoint
        return data
    if isinstance(settings, NoOpSettings):
        return {"content_parts": [part.to_dict() for part in settings.content_parts]}
    if isinstance(settings, HashEmbeddingSettings):
        return {"dim": settings.dim, "normalize": settings.normalize}
    return {}
