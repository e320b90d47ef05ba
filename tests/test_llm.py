from __future__ import annotations

import json

import httpx
import pytest

from corpusqa.errors import (
    EmptyProviderResponseError,
    ProviderRequestBuildError,
    ProviderStatusError,
    ProviderTransportError,
)
from corpusqa.llm.prompt import ContextDocument, PromptBuilder, PromptTemplateData
from corpusqa.llm.service import SYSTEM_MESSAGE, NoOpLLM, OpenAILLM, Prompt
from corpusqa.models import Conversation, InteractionRole, NoOpLLMSettings, OpenAILLMSettings


def _openai(handler, *, endpoint: str | None = None) -> OpenAILLM:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    settings = OpenAILLMSettings(api_key="sk-test", model_id="gpt-4o-mini", api_endpoint=endpoint)
    return OpenAILLM(settings, client=client)


def test_noop_llm_returns_configured_response():
    llm = NoOpLLM(NoOpLLMSettings(response_to_return="Thank you for your message"))

    assert llm.get_response(Prompt(text="anything")) == "Thank you for your message"


def test_openai_llm_sends_system_and_user_messages():
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers["Authorization"]
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": "42"}}]})

    answer = _openai(handler).get_response(Prompt(text="What is the answer?"))

    assert answer == "42"
    assert captured["url"] == "https://api.openai.com/v1/chat/completions"
    assert captured["auth"] == "Bearer sk-test"
    assert captured["body"] == {
        "model": "gpt-4o-mini",
        "messages": [
            {"role": "system", "content": SYSTEM_MESSAGE},
            {"role": "user", "content": "What is the answer?"},
        ],
    }


def test_openai_llm_raises_without_choices():
    llm = _openai(lambda request: httpx.Response(200, json={"choices": []}))

    with pytest.raises(EmptyProviderResponseError, match="no choices"):
        llm.get_response(Prompt(text="q"))


def test_openai_llm_raises_on_error_status():
    llm = _openai(lambda request: httpx.Response(429, text="rate limited"))

    with pytest.raises(ProviderStatusError) as excinfo:
        llm.get_response(Prompt(text="q"))

    assert excinfo.value.status_code == 429
    assert excinfo.value.body == "rate limited"


def test_openai_llm_rejects_endpoint_without_scheme():
    sent: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(request)
        return httpx.Response(200, json={"choices": []})

    with pytest.raises(ProviderRequestBuildError, match="error creating request"):
        _openai(handler, endpoint="localhost-chat").get_response(Prompt(text="q"))

    assert sent == []


def test_openai_llm_connection_failure_is_a_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ProviderTransportError, match="error sending request") as excinfo:
        _openai(handler).get_response(Prompt(text="q"))

    assert not isinstance(excinfo.value, ProviderRequestBuildError)


def test_prompt_without_documents_is_the_query():
    prompt = PromptBuilder().generate_prompt(PromptTemplateData(query="plain question"))

    assert prompt == Prompt(text="plain question")


def test_prompt_renders_contexts_and_conversations():
    data = PromptTemplateData(
        query="Where is the config?",
        documents=[
            ContextDocument(content="Config lives in settings.toml", metadata={"uuid": "doc-1"}),
            ContextDocument(title="Guide", content="See the guide", metadata={"uuid": "doc-2", "source": "wiki"}),
        ],
        conversation_histories=[Conversation(role=InteractionRole.USER, text="hello")],
    )

    text = PromptBuilder().generate_prompt(data).text

    assert "Where is the config?" in text
    assert "Content: Config lives in settings.toml\nUUID: doc-1" in text
    assert "Title: Guide" in text
    assert "Source: wiki" in text
    assert "Role: user\nMessage: hello" in text
    assert "<answer></answer>" in text
    assert text.index("Config lives") < text.index("See the guide")


def test_prompt_builder_accepts_custom_template():
    builder = PromptBuilder("Q={query} C={contexts} H={conversations}")

    text = builder.generate_prompt(
        PromptTemplateData(query="q", documents=[ContextDocument(content="c", metadata={"uuid": "u"})])
    ).text

    assert text.startswith("Q=q C=")
    assert "Content: c" in text
