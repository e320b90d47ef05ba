"""Embedding providers for corpusqa."""

from __future__ import annotations

import hashlib
import math
from typing import Protocol, Sequence
from uuid import UUID

import httpx

from corpusqa.errors import (
    EmptyProviderResponseError,
    ProviderDecodeError,
    ProviderRequestBuildError,
    ProviderStatusError,
    ProviderTransportError,
)
from corpusqa.metrics.observability import PipelineMetrics, TimedSection, get_logger
from corpusqa.models import (
    NIL_UUID,
    ContentPart,
    Document,
    HashEmbeddingSettings,
    NoOpSettings,
    OpenAISettings,
    new_content_part,
)

DEFAULT_OPENAI_EMBEDDING_URL = "https://api.openai.com/v1/embeddings"
DEFAULT_TIMEOUT_SECONDS = 30.0


class EmbeddingProvider(Protocol):
    """Protocol describing embedding behaviour."""

    def get_embedding(self, text: str) -> list[ContentPart]:
        """Return the content parts embedding ``text``."""

    def process(self, document: Document) -> None:
        """Embed ``document.body`` and store the result on the document."""

    def get_id(self) -> UUID:
        """Return the identifier of the provider configuration."""

    def health_check(self) -> None:
        """Raise when the provider cannot serve requests."""


class NoOpEmbeddingProvider:
    """Returns preconfigured content parts; used for tests and offline mode."""

    def __init__(self, settings: NoOpSettings) -> None:
        self._settings = settings

    def get_embedding(self, text: str) -> list[ContentPart]:
        return list(self._settings.content_parts)

    def process(self, document: Document) -> None:
        document.embedding.embedding = list(self._settings.content_parts)

    def get_id(self) -> UUID:
        return NIL_UUID

    def health_check(self) -> None:
        return None


class HashEmbeddingProvider:
    """Deterministic lightweight embeddings derived from a SHA-256 digest."""

    def __init__(self, provider_id: UUID, settings: HashEmbeddingSettings | None = None) -> None:
        self._provider_id = provider_id
        self._settings = settings or HashEmbeddingSettings()

    def _hash_to_vector(self, text: str) -> tuple[float, ...]:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        repeat = (self._settings.dim + len(digest) - 1) // len(digest)
        raw = (digest * repeat)[: self._settings.dim]
        vector = [byte / 255.0 for byte in raw]
        if self._settings.normalize:
            norm = math.sqrt(sum(value * value for value in vector)) or 1.0
            vector = [value / norm for value in vector]
        return tuple(vector)

    def get_embedding(self, text: str) -> list[ContentPart]:
        tokens = len(text.split())
        return [new_content_part(text, self._hash_to_vector(text), self._provider_id, tokens)]

    def process(self, document: Document) -> None:
        document.embedding.embedding = self.get_embedding(document.body)

    def get_id(self) -> UUID:
        return self._provider_id

    def health_check(self) -> None:
        return None


class OpenAIEmbeddingProvider:
    """Embedding provider calling an OpenAI-compatible embeddings endpoint."""

    def __init__(
        self,
        provider_id: UUID,
        settings: OpenAISettings,
        *,
        client: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._provider_id = provider_id
        self._api_key = settings.api_key
        self._model = settings.model_id
        self._url = settings.api_endpoint or DEFAULT_OPENAI_EMBEDDING_URL
        self._client = client or httpx.Client(timeout=timeout)
        self._timeout = timeout
        self._logger = get_logger("embedding.openai")

    def health_check(self) -> None:
        return None

    def get_id(self) -> UUID:
        return self._provider_id

    def get_embedding(self, text: str) -> list[ContentPart]:
        self._logger.info("embedding.request", provider="openai", model=self._model)
        try:
            request = self._client.build_request(
                "POST",
                endpoint_url(self._url),
                json={"input": text, "model": self._model},
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self._timeout,
            )
        except (httpx.InvalidURL, httpx.UnsupportedProtocol, TypeError, ValueError) as exc:
            raise ProviderRequestBuildError(f"failed to create request: {exc}") from exc

        with TimedSection(lambda duration: PipelineMetrics.observe_provider_request("embedding", "openai", duration)):
            try:
                response = self._client.send(request)
            except httpx.HTTPError as exc:
                self._logger.error("embedding.transport_error", provider="openai", error=str(exc))
                raise ProviderTransportError(f"failed to send request: {exc}") from exc

        if response.status_code != httpx.codes.OK:
            self._logger.error("embedding.unexpected_status", provider="openai", status_code=response.status_code)
            raise ProviderStatusError(response.status_code, response.text)

        try:
            payload = response.json()
            data = payload.get("data") or []
            usage = payload.get("usage") or {}
            vector = data[0]["embedding"] if data else None
            prompt_tokens = int(usage.get("prompt_tokens", 0))
        except (ValueError, AttributeError, KeyError, TypeError) as exc:
            raise ProviderDecodeError(f"failed to decode response: {exc}") from exc

        if vector is None:
            raise EmptyProviderResponseError("no embedding data in response")

        self._logger.info(
            "embedding.complete",
            provider="openai",
            prompt_tokens=prompt_tokens,
            total_tokens=usage.get("total_tokens"),
        )
        return [new_content_part(text, [float(value) for value in vector], self._provider_id, prompt_tokens)]

    def process(self, document: Document) -> None:
        self._logger.info("embedding.process", document_uuid=str(document.uuid))
        document.embedding.embedding = self.get_embedding(document.body)


def endpoint_url(raw: str) -> httpx.URL:
    """Parse a provider endpoint, rejecting anything but absolute http(s) URLs."""

    url = httpx.URL(raw)
    if url.scheme not in ("http", "https"):
        raise httpx.UnsupportedProtocol(f"request URL must use http or https: {raw!r}")
    if not url.host:
        raise httpx.InvalidURL(f"request URL is missing a host: {raw!r}")
    return url


def content_parts_vector(parts: Sequence[ContentPart]) -> Sequence[float]:
    """Return the vector of the first content part, or an empty vector."""

    if not parts:
        return ()
    return parts[0].embedding
