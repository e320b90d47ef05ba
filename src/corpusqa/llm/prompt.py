"""Prompt construction for the LLM provider."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Sequence

from langchain_core.prompts import PromptTemplate

from corpusqa.llm.service import Prompt
from corpusqa.metrics.observability import get_logger
from corpusqa.models import Conversation

DEFAULT_PROMPT_TEMPLATE = """
Please provide the answers of the following question based on the context provided. The contexts contains documents and the recent conversations.
Always provide answer in <answer></answer> tag.

Question:
------------
{query}
-----------

Contexts:
-----------
{contexts}
-----------
Recent conversations
-----------
{conversations}
-----------
"""

_CONTEXT_BLOCK = "\nTitle: {title}\nContent: {content}\nUUID: {uuid}\nSource: {source}\n"
_CONVERSATION_BLOCK = "\nRole: {role}\nMessage: {message}\n"


@dataclass(frozen=True)
class ContextDocument:
    """A search hit rendered into the prompt context."""

    title: str = ""
    content: str = ""
    metadata: Mapping[str, str] = field(default_factory=dict)
    url: str = ""


@dataclass(frozen=True)
class PromptTemplateData:
    query: str
    documents: Sequence[ContextDocument] = ()
    conversation_histories: Sequence[Conversation] = ()


class PromptBuilder:
    """Renders :class:`PromptTemplateData` into a :class:`Prompt`."""

    def __init__(self, template: str | None = None) -> None:
        self._template = PromptTemplate.from_template(template or DEFAULT_PROMPT_TEMPLATE)
        self._logger = get_logger("prompt")

    def generate_prompt(self, data: PromptTemplateData) -> Prompt:
        if not data.documents:
            self._logger.warning("prompt.no_context", query=data.query)
            return Prompt(text=data.query)

        contexts = "".join(
            _CONTEXT_BLOCK.format(
                title=document.title,
                content=document.content,
                uuid=document.metadata.get("uuid", ""),
                source=document.metadata.get("source", ""),
            )
            for document in data.documents
        )
        conversations = "".join(
            _CONVERSATION_BLOCK.format(role=getattr(turn.role, "value", turn.role), message=turn.text)
            for turn in data.conversation_histories
        )
        text = self._template.format(query=data.query, contexts=contexts, conversations=conversations)
        return Prompt(text=text)
