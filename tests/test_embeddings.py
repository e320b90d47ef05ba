from __future__ import annotations

import json
import math
from uuid import uuid4

import httpx
import pytest

from corpusqa.embeddings.service import (
    HashEmbeddingProvider,
    NoOpEmbeddingProvider,
    OpenAIEmbeddingProvider,
    content_parts_vector,
)
from corpusqa.errors import (
    EmptyProviderResponseError,
    ProviderDecodeError,
    ProviderRequestBuildError,
    ProviderStatusError,
    ProviderTransportError,
)
from corpusqa.models import NIL_UUID, ContentPart, Document, HashEmbeddingSettings, NoOpSettings, OpenAISettings


def _openai(handler, *, endpoint: str | None = None) -> OpenAIEmbeddingProvider:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    settings = OpenAISettings(api_key="sk-test", model_id="text-embedding-3-small", api_endpoint=endpoint)
    return OpenAIEmbeddingProvider(uuid4(), settings, client=client)


def test_noop_provider_returns_configured_parts():
    part = ContentPart(content="fixed", embedding=(0.03,))
    provider = NoOpEmbeddingProvider(NoOpSettings(content_parts=(part,)))

    assert provider.get_embedding("anything") == [part]
    assert provider.get_id() == NIL_UUID

    document = Document(body="text")
    provider.process(document)
    assert document.embedding.embedding == [part]


def test_hash_embedding_dim_matches_config():
    provider = HashEmbeddingProvider(uuid4(), HashEmbeddingSettings(dim=64))
    parts = provider.get_embedding("hello world")

    assert len(parts) == 1
    assert len(parts[0].embedding) == 64
    assert parts[0].embedding_prompt_token == 2
    assert math.isclose(sum(value * value for value in parts[0].embedding), 1.0, rel_tol=1e-9)


def test_hash_embedding_is_deterministic():
    provider_id = uuid4()
    first = HashEmbeddingProvider(provider_id).get_embedding("alpha")[0]
    second = HashEmbeddingProvider(provider_id).get_embedding("alpha")[0]
    other = HashEmbeddingProvider(provider_id).get_embedding("beta")[0]

    assert first.embedding == second.embedding
    assert first.embedding != other.embedding
    assert first.embedding_provider_uuid == provider_id


def test_openai_provider_sends_bearer_request_and_parses_vector():
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers["Authorization"]
        captured["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"data": [{"embedding": [0.1, 0.2, 0.3]}], "usage": {"prompt_tokens": 4, "total_tokens": 4}},
        )

    provider = _openai(handler)
    parts = provider.get_embedding("what is corpusqa")

    assert captured["url"] == "https://api.openai.com/v1/embeddings"
    assert captured["auth"] == "Bearer sk-test"
    assert captured["body"] == {"input": "what is corpusqa", "model": "text-embedding-3-small"}
    assert parts[0].content == "what is corpusqa"
    assert list(parts[0].embedding) == [0.1, 0.2, 0.3]
    assert parts[0].embedding_prompt_token == 4
    assert parts[0].embedding_provider_uuid == provider.get_id()


def test_openai_provider_honours_custom_endpoint():
    urls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        urls.append(str(request.url))
        return httpx.Response(200, json={"data": [{"embedding": [1.0]}], "usage": {"prompt_tokens": 1}})

    _openai(handler, endpoint="http://localhost:9999/v1/embeddings").get_embedding("q")

    assert urls == ["http://localhost:9999/v1/embeddings"]


def test_openai_provider_raises_on_error_status():
    provider = _openai(lambda request: httpx.Response(500, text="upstream exploded"))

    with pytest.raises(ProviderStatusError) as excinfo:
        provider.get_embedding("q")

    assert excinfo.value.status_code == 500
    assert "upstream exploded" in str(excinfo.value)


def test_openai_provider_raises_on_empty_data():
    provider = _openai(lambda request: httpx.Response(200, json={"data": [], "usage": {}}))

    with pytest.raises(EmptyProviderResponseError):
        provider.get_embedding("q")


def test_openai_provider_raises_on_undecodable_body():
    provider = _openai(lambda request: httpx.Response(200, text="not json"))

    with pytest.raises(ProviderDecodeError):
        provider.get_embedding("q")


def test_openai_provider_wraps_transport_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ProviderTransportError) as excinfo:
        _openai(handler).get_embedding("q")

    assert not isinstance(excinfo.value, ProviderRequestBuildError)


@pytest.mark.parametrize("endpoint", ["not-a-url", "ftp://example.com/embeddings", "http:///embeddings"])
def test_openai_provider_rejects_unusable_endpoint_before_sending(endpoint):
    sent: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(request)
        return httpx.Response(200, json={"data": [{"embedding": [1.0]}]})

    with pytest.raises(ProviderRequestBuildError, match="failed to create request"):
        _openai(handler, endpoint=endpoint).get_embedding("q")

    assert sent == []


def test_openai_process_sets_document_embedding():
    provider = _openai(
        lambda request: httpx.Response(200, json={"data": [{"embedding": [0.5, 0.5]}], "usage": {"prompt_tokens": 2}})
    )
    document = Document(title="doc", body="two words")

    provider.process(document)

    assert [part.content for part in document.embedding.embedding] == ["two words"]


def test_content_parts_vector_uses_first_part():
    parts = [ContentPart(content="a", embedding=(1.0, 0.0)), ContentPart(content="b", embedding=(0.0, 1.0))]

    assert content_parts_vector(parts) == (1.0, 0.0)
    assert content_parts_vector([]) == ()
