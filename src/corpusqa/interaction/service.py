"""Interaction management and the retrieval-augmented answer flow."""

from __future__ import annotations

import time
from uuid import UUID

import httpx

from corpusqa.errors import NoActiveProviderError
from corpusqa.llm.factory import initialize_llm_provider
from corpusqa.llm.prompt import PromptBuilder, PromptTemplateData
from corpusqa.llm.service import DEFAULT_TIMEOUT_SECONDS
from corpusqa.metrics.observability import PipelineMetrics, get_logger
from corpusqa.models import Conversation, Interaction, InteractionRole, Paginated
from corpusqa.search.service import SearchRequest, SearchSystem
from corpusqa.storage.base import Storage


class InteractionManager:
    """Creates interactions and answers messages posted to them.

    ``send_message`` runs strictly in sequence: resolve the active LLM
    provider, persist the user turn, search, render the prompt, call the
    provider and persist the system turn. A failure after the user turn is
    stored leaves that turn in place without a reply.
    """

    def __init__(
        self,
        storage: Storage,
        search_system: SearchSystem,
        prompt_builder: PromptBuilder | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.Client | None = None,
    ) -> None:
        self._storage = storage
        self._search_system = search_system
        self._prompt_builder = prompt_builder or PromptBuilder()
        self._timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)
        self._logger = get_logger("interaction")

    def create_interaction(self, query: str) -> Interaction:
        interaction = self._storage.create_interaction(Interaction(query=query))
        self._logger.info("interaction.created", interaction_uuid=str(interaction.uuid))
        return interaction

    def get_interaction(self, interaction_id: UUID) -> Interaction:
        return self._storage.get_interaction(interaction_id)

    def get_interactions(self, page: int = 1, per_page: int = 10) -> Paginated[Interaction]:
        return self._storage.get_all_interactions(page, per_page)

    def add_user_conversation(self, interaction_id: UUID, text: str) -> Conversation:
        return self._storage.add_conversation(interaction_id, InteractionRole.USER, text)

    def add_system_conversation(self, interaction_id: UUID, text: str) -> Conversation:
        return self._storage.add_conversation(interaction_id, InteractionRole.SYSTEM, text)

    def send_message(self, interaction_id: UUID, query: str) -> str:
        llm = initialize_llm_provider(self._storage, timeout=self._timeout, client=self._client)
        if llm is None:
            self._logger.error("interaction.no_llm_provider", interaction_uuid=str(interaction_id))
            raise NoActiveProviderError("no active LLM provider")

        self.add_user_conversation(interaction_id, query)

        contexts = self._search_system.generate_llm_context(SearchRequest(query=query))
        prompt = self._prompt_builder.generate_prompt(
            PromptTemplateData(query=query, documents=contexts, conversation_histories=[])
        )

        generation_start = time.perf_counter()
        try:
            response = llm.get_response(prompt)
        except Exception as exc:
            self._logger.error(
                "generation.failed",
                interaction_uuid=str(interaction_id),
                error=str(exc),
            )
            raise
        generation_duration = time.perf_counter() - generation_start
        PipelineMetrics.observe_generation(generation_duration)
        self._logger.info(
            "generation.complete",
            interaction_uuid=str(interaction_id),
            context_count=len(contexts),
            duration_seconds=generation_duration,
        )

        self.add_system_conversation(interaction_id, response)
        return response
