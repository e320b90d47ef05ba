"""Construct the active LLM provider from stored configuration."""

from __future__ import annotations

from typing import Any, Callable, Mapping

import httpx

from corpusqa.errors import (
    InvalidProviderSettingsError,
    ProviderLookupError,
    ProviderValidationError,
    UnsupportedProviderError,
)
from corpusqa.llm.service import DEFAULT_TIMEOUT_SECONDS, LLMProvider, NoOpLLM, OpenAILLM
from corpusqa.metrics.observability import get_logger
from corpusqa.models import (
    FilterOption,
    LLMProviderConfig,
    LLMProviderSettings,
    LLMProviderType,
    NoOpLLMSettings,
    OpenAILLMSettings,
    ProviderFilter,
    ProviderStatus,
)
from corpusqa.storage.base import Storage

_logger = get_logger("llm.factory")

Builder = Callable[[LLMProviderConfig, float, "httpx.Client | None"], LLMProvider]

_REGISTRY: Mapping[LLMProviderType, tuple[type, Builder]] = {
    LLMProviderType.OPENAI: (
        OpenAILLMSettings,
        lambda config, timeout, client: OpenAILLM(config.configuration, client=client, timeout=timeout),
    ),
    LLMProviderType.NOOP: (
        NoOpLLMSettings,
        lambda config, timeout, client: NoOpLLM(config.configuration),
    ),
}


def build_llm_provider(
    config: LLMProviderConfig,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    client: httpx.Client | None = None,
) -> LLMProvider:
    try:
        provider_type = LLMProviderType(config.provider)
    except ValueError:
        raise UnsupportedProviderError("LLM", str(config.provider)) from None
    settings_type, builder = _REGISTRY[provider_type]
    if not isinstance(config.configuration, settings_type):
        raise InvalidProviderSettingsError(f"invalid settings type for {provider_type.value} LLM provider")
    return builder(config, timeout, client)


def initialize_llm_provider(
    storage: Storage,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    client: httpx.Client | None = None,
) -> LLMProvider | None:
    """Return the active LLM provider, or ``None`` when none is active."""

    try:
        active = storage.get_all_llm_providers(
            ProviderFilter(status=ProviderStatus.ACTIVE.value),
            FilterOption(limit=1, page=1),
        )
    except Exception as exc:
        _logger.error("llm_provider.lookup_failed", error=str(exc))
        raise ProviderLookupError(f"failed to get active LLM provider: {exc}") from exc

    if active.total == 0 or not active.items:
        _logger.warning("llm_provider.none_active")
        return None

    config = active.items[0]
    provider = build_llm_provider(config, timeout=timeout, client=client)
    _logger.info("llm_provider.initialized", provider=str(config.provider), provider_uuid=str(config.uuid))
    return provider


def parse_llm_provider_settings(provider_type: str, raw: Mapping[str, Any] | None) -> LLMProviderSettings:
    raw = dict(raw or {})
    try:
        tag = LLMProviderType(provider_type)
    except ValueError:
        raise UnsupportedProviderError("LLM", provider_type) from None

    if tag is LLMProviderType.OPENAI:
        if not raw.get("api_key"):
            raise ProviderValidationError("API key is required for OpenAI settings")
        if not raw.get("model_id"):
            raise ProviderValidationError("Model ID is required for OpenAI settings")
        return OpenAILLMSettings(
            api_key=str(raw["api_key"]),
            model_id=str(raw["model_id"]),
            api_endpoint=raw.get("api_endpoint") or None,
        )
    return NoOpLLMSettings(response_to_return=str(raw.get("response_to_return", "")))


def llm_settings_to_dict(settings: object) -> dict[str, Any]:
    if isinstance(settings, OpenAILLMSettings):
        data: dict[str, Any] = {"api_key": settings.api_key, "model_id": settings.model_id}
        if settings.api_endpoint:
            data["api_endpoint"] = settings.api_endpoint
        return data
    if isinstance(settings, NoOpLLMSettings):
        return {"response_to_return": settings.response_to_return}
    return {}
