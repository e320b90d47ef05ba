"""LLM providers for corpusqa."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import httpx

from corpusqa.embeddings.service import endpoint_url
from corpusqa.errors import (
    EmptyProviderResponseError,
    ProviderDecodeError,
    ProviderRequestBuildError,
    ProviderStatusError,
    ProviderTransportError,
)
from corpusqa.metrics.observability import PipelineMetrics, TimedSection, get_logger
from corpusqa.models import NoOpLLMSettings, OpenAILLMSettings

DEFAULT_OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_TIMEOUT_SECONDS = 30.0
SYSTEM_MESSAGE = "You are a helpful assistant."


@dataclass(frozen=True)
class Prompt:
    text: str


class LLMProvider(Protocol):
    """Protocol describing generation behaviour."""

    def get_response(self, prompt: Prompt) -> str:
        """Return the model's answer to ``prompt``."""

    def health_check(self) -> None:
        """Raise when the provider cannot serve requests."""


class NoOpLLM:
    """Returns a fixed response; used for tests and offline environments."""

    def __init__(self, settings: NoOpLLMSettings) -> None:
        self._response = settings.response_to_return

    def get_response(self, prompt: Prompt) -> str:
        return self._response

    def health_check(self) -> None:
        return None


class OpenAILLM:
    """LLM provider calling an OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        settings: OpenAILLMSettings,
        *,
        client: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._api_key = settings.api_key
        self._model = settings.model_id
        self._url = settings.api_endpoint or DEFAULT_OPENAI_CHAT_URL
        self._client = client or httpx.Client(timeout=timeout)
        self._timeout = timeout
        self._logger = get_logger("llm.openai")

    def health_check(self) -> None:
        return None

    def _request_body(self, prompt: Prompt) -> dict[str, object]:
        return {
            "model": self._model,
            "messages": [
                {"role": "system", "content": SYSTEM_MESSAGE},
                {"role": "user", "content": prompt.text},
            ],
        }

    def get_response(self, prompt: Prompt) -> str:
        self._logger.info("llm.request", provider="openai", model=self._model, endpoint=self._url)
        try:
            request = self._client.build_request(
                "POST",
                endpoint_url(self._url),
                json=self._request_body(prompt),
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self._timeout,
            )
        except (httpx.InvalidURL, httpx.UnsupportedProtocol, TypeError, ValueError) as exc:
            raise ProviderRequestBuildError(f"error creating request: {exc}") from exc

        with TimedSection(lambda duration: PipelineMetrics.observe_provider_request("llm", "openai", duration)):
            try:
                response = self._client.send(request)
            except httpx.HTTPError as exc:
                self._logger.error("llm.transport_error", provider="openai", error=str(exc))
                raise ProviderTransportError(f"error sending request: {exc}") from exc

        if response.status_code != httpx.codes.OK:
            self._logger.error("llm.unexpected_status", provider="openai", status_code=response.status_code)
            raise ProviderStatusError(response.status_code, response.text)

        try:
            choices = response.json().get("choices") or []
            content = choices[0]["message"]["content"] if choices else None
        except (ValueError, AttributeError, KeyError, TypeError, IndexError) as exc:
            raise ProviderDecodeError(f"error decoding response: {exc}") from exc

        if content is None:
            raise EmptyProviderResponseError("no choices in response")

        self._logger.info("llm.complete", provider="openai", response_length=len(content))
        return str(content)
