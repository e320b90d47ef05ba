from __future__ import annotations

from uuid import uuid4

import pytest

from corpusqa.embeddings.factory import (
    build_embedding_provider,
    embedding_settings_to_dict,
    initialize_embedding_provider,
    parse_embedding_provider_settings,
)
from corpusqa.embeddings.service import HashEmbeddingProvider, NoOpEmbeddingProvider, OpenAIEmbeddingProvider
from corpusqa.errors import (
    InvalidProviderSettingsError,
    ProviderLookupError,
    ProviderValidationError,
    UnsupportedProviderError,
)
from corpusqa.llm.factory import (
    build_llm_provider,
    initialize_llm_provider,
    llm_settings_to_dict,
    parse_llm_provider_settings,
)
from corpusqa.llm.service import NoOpLLM, OpenAILLM
from corpusqa.models import (
    EmbeddingProviderConfig,
    HashEmbeddingSettings,
    LLMProviderConfig,
    NoOpLLMSettings,
    NoOpSettings,
    OpenAILLMSettings,
    OpenAISettings,
    ProviderStatus,
)
from corpusqa.storage import InMemoryStorage


class BrokenStorage:
    def get_all_embedding_providers(self, filter, option):
        raise ConnectionError("database unavailable")

    def get_all_llm_providers(self, filter, option):
        raise ConnectionError("database unavailable")


def test_no_active_provider_returns_none(storage: InMemoryStorage):
    storage.create_embedding_provider(
        EmbeddingProviderConfig(uuid=uuid4(), name="idle", provider="noop", configuration=NoOpSettings())
    )

    assert initialize_embedding_provider(storage) is None
    assert initialize_llm_provider(storage) is None


def test_active_embedding_provider_is_built(storage: InMemoryStorage):
    provider_id = uuid4()
    storage.create_embedding_provider(
        EmbeddingProviderConfig(
            uuid=provider_id,
            name="hash",
            provider="hash",
            configuration=HashEmbeddingSettings(dim=8),
            status=ProviderStatus.ACTIVE,
        )
    )

    provider = initialize_embedding_provider(storage)

    assert isinstance(provider, HashEmbeddingProvider)
    assert provider.get_id() == provider_id


def test_active_llm_provider_is_built(storage: InMemoryStorage):
    storage.create_llm_provider(
        LLMProviderConfig(
            uuid=uuid4(),
            name="openai",
            provider="openai",
            configuration=OpenAILLMSettings(api_key="sk", model_id="gpt-4o-mini"),
            status=ProviderStatus.ACTIVE,
        )
    )

    assert isinstance(initialize_llm_provider(storage), OpenAILLM)


def test_lookup_failure_is_wrapped():
    with pytest.raises(ProviderLookupError, match="database unavailable"):
        initialize_embedding_provider(BrokenStorage())
    with pytest.raises(ProviderLookupError, match="database unavailable"):
        initialize_llm_provider(BrokenStorage())


def test_unknown_type_tags_are_rejected():
    with pytest.raises(UnsupportedProviderError) as embedding_error:
        build_embedding_provider(
            EmbeddingProviderConfig(uuid=uuid4(), name="x", provider="cohere", configuration=NoOpSettings())
        )
    with pytest.raises(UnsupportedProviderError) as llm_error:
        build_llm_provider(LLMProviderConfig(uuid=uuid4(), name="x", provider="claude", configuration=NoOpLLMSettings()))

    assert embedding_error.value.provider_type == "cohere"
    assert "unsupported LLM provider type: claude" in str(llm_error.value)


def test_mismatched_settings_are_rejected():
    with pytest.raises(InvalidProviderSettingsError):
        build_embedding_provider(
            EmbeddingProviderConfig(uuid=uuid4(), name="x", provider="openai", configuration=NoOpSettings())
        )
    with pytest.raises(InvalidProviderSettingsError):
        build_llm_provider(
            LLMProviderConfig(uuid=uuid4(), name="x", provider="noop", configuration={"response_to_return": "hi"})
        )


def test_build_each_supported_embedding_type():
    openai = build_embedding_provider(
        EmbeddingProviderConfig(
            uuid=uuid4(), name="o", provider="openai", configuration=OpenAISettings(api_key="k", model_id="m")
        )
    )
    noop = build_embedding_provider(
        EmbeddingProviderConfig(uuid=uuid4(), name="n", provider="noop", configuration=NoOpSettings())
    )

    assert isinstance(openai, OpenAIEmbeddingProvider)
    assert isinstance(noop, NoOpEmbeddingProvider)
    assert isinstance(
        build_llm_provider(LLMProviderConfig(uuid=uuid4(), name="n", provider="noop", configuration=NoOpLLMSettings())),
        NoOpLLM,
    )


def test_parse_openai_settings_requires_key_and_model():
    with pytest.raises(ProviderValidationError, match="API key"):
        parse_embedding_provider_settings("openai", {"model_id": "m"})
    with pytest.raises(ProviderValidationError, match="Model ID"):
        parse_llm_provider_settings("openai", {"api_key": "k"})

    settings = parse_embedding_provider_settings(
        "openai", {"api_key": "k", "model_id": "m", "api_endpoint": "http://localhost/v1/embeddings"}
    )
    assert settings == OpenAISettings(api_key="k", model_id="m", api_endpoint="http://localhost/v1/embeddings")
    assert embedding_settings_to_dict(settings)["api_endpoint"] == "http://localhost/v1/embeddings"


def test_parse_noop_settings():
    settings = parse_embedding_provider_settings("noop", {"content_parts": [{"content": "c", "embedding": [0.03]}]})

    assert isinstance(settings, NoOpSettings)
    assert settings.content_parts[0].embedding == (0.03,)
    assert embedding_settings_to_dict(settings)["content_parts"][0]["embedding"] == [0.03]

    llm_settings = parse_llm_provider_settings("noop", {"response_to_return": "Thank you"})
    assert llm_settings_to_dict(llm_settings) == {"response_to_return": "Thank you"}


def test_parse_hash_settings_rejects_non_positive_dim():
    with pytest.raises(ProviderValidationError):
        parse_embedding_provider_settings("hash", {"dim": 0})

    assert parse_embedding_provider_settings("hash", {"dim": "16"}) == HashEmbeddingSettings(dim=16)


def test_parse_rejects_unknown_tag():
    with pytest.raises(UnsupportedProviderError):
        parse_embedding_provider_settings("cohere", {})
    with pytest.raises(UnsupportedProviderError):
        parse_llm_provider_settings("claude", {})
