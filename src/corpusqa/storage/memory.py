"""In-process reference implementation of the storage contract."""

from __future__ import annotations

import dataclasses
import threading
from typing import Callable, Iterable, TypeVar
from uuid import UUID

from corpusqa.errors import (
    DatasourceNotFoundError,
    EmbeddingProviderNotFoundError,
    InteractionNotFoundError,
    LLMProviderNotFoundError,
    NotFoundError,
)
from corpusqa.models import (
    Conversation,
    DatasourceConfig,
    DatasourceSettings,
    DatasourceState,
    Document,
    DocumentStatus,
    EmbeddingProviderConfig,
    FilterOption,
    Interaction,
    InteractionRole,
    LLMProviderConfig,
    Paginated,
    ProviderFilter,
    ProviderStatus,
    SearchConfig,
    SearchResults,
    utcnow,
)
from corpusqa.storage.base import DocumentIndex

T = TypeVar("T")


def _paginate(items: Iterable[T], page: int, per_page: int) -> Paginated[T]:
    ordered = list(items)
    page = max(page, 1)
    per_page = max(per_page, 1)
    start = (page - 1) * per_page
    return Paginated(items=ordered[start : start + per_page], total=len(ordered), page=page, per_page=per_page)


class _ProviderTable:
    """Provider records keyed by UUID with a single active entry."""

    def __init__(self, not_found: Callable[[UUID], NotFoundError]) -> None:
        self._records: dict[UUID, object] = {}
        self._not_found = not_found

    def put(self, record) -> None:
        if record.status == ProviderStatus.ACTIVE:
            self._deactivate_all()
        self._records[record.uuid] = record

    def get(self, provider_id: UUID):
        try:
            return self._records[provider_id]
        except KeyError:
            raise self._not_found(provider_id) from None

    def delete(self, provider_id: UUID) -> None:
        self.get(provider_id)
        del self._records[provider_id]

    def find(self, filter: ProviderFilter, option: FilterOption) -> Paginated:
        matching = [
            record
            for record in self._records.values()
            if not filter.status or record.status.value == filter.status
        ]
        return _paginate(matching, option.page, option.limit)

    def set_status(self, provider_id: UUID, status: ProviderStatus) -> None:
        record = self.get(provider_id)
        if status == ProviderStatus.ACTIVE:
            self._deactivate_all()
        record.status = status

    def _deactivate_all(self) -> None:
        for record in self._records.values():
            record.status = ProviderStatus.INACTIVE


class InMemoryStorage:
    """Thread-safe dictionary-backed storage.

    Documents and vector search are delegated to a :class:`DocumentIndex`.
    Activating a provider deactivates every other provider of the same kind.
    """

    def __init__(self, index: DocumentIndex) -> None:
        self._index = index
        self._lock = threading.RLock()
        self._datasources: dict[UUID, DatasourceConfig] = {}
        self._interactions: dict[UUID, Interaction] = {}
        self._embedding_providers = _ProviderTable(
            lambda pid: EmbeddingProviderNotFoundError(f"embedding provider not found: {pid}")
        )
        self._llm_providers = _ProviderTable(lambda pid: LLMProviderNotFoundError(f"LLM provider not found: {pid}"))

    def health_check(self) -> None:
        return None

    # Documents

    def store(self, document: Document) -> None:
        document.updated_at = utcnow()
        self._index.store(document)

    def update(self, document: Document) -> None:
        document.updated_at = utcnow()
        self._index.update(document)

    def get_document(self, document_id: UUID) -> Document:
        return self._index.get(document_id)

    def get_for_processing(self, status: DocumentStatus, limit: int) -> list[Document]:
        return self._index.get_for_processing(status, limit)

    def search(self, config: SearchConfig) -> SearchResults:
        return self._index.search(config)

    # Datasources

    def add_datasource(self, config: DatasourceConfig) -> None:
        with self._lock:
            self._datasources[config.uuid] = dataclasses.replace(config, state=dict(config.state))

    def get_datasource(self, datasource_id: UUID) -> DatasourceConfig:
        with self._lock:
            try:
                config = self._datasources[datasource_id]
            except KeyError:
                raise DatasourceNotFoundError(f"datasource not found: {datasource_id}") from None
            return dataclasses.replace(config, state=dict(config.state))

    def get_all_datasources(self, page: int, per_page: int) -> Paginated[DatasourceConfig]:
        with self._lock:
            return _paginate(self._datasources.values(), page, per_page)

    def update_datasource(self, datasource_id: UUID, settings: DatasourceSettings, state: DatasourceState) -> None:
        with self._lock:
            current = self.get_datasource(datasource_id)
            self._datasources[datasource_id] = dataclasses.replace(current, settings=settings, state=dict(state))

    # Embedding providers

    def create_embedding_provider(self, provider: EmbeddingProviderConfig) -> None:
        with self._lock:
            self._embedding_providers.put(provider)

    def update_embedding_provider(self, provider: EmbeddingProviderConfig) -> None:
        with self._lock:
            self._embedding_providers.get(provider.uuid)
            self._embedding_providers.put(provider)

    def delete_embedding_provider(self, provider_id: UUID) -> None:
        with self._lock:
            self._embedding_providers.delete(provider_id)

    def get_embedding_provider(self, provider_id: UUID) -> EmbeddingProviderConfig:
        with self._lock:
            return self._embedding_providers.get(provider_id)

    def get_all_embedding_providers(
        self, filter: ProviderFilter, option: FilterOption
    ) -> Paginated[EmbeddingProviderConfig]:
        with self._lock:
            return self._embedding_providers.find(filter, option)

    def set_active_embedding_provider(self, provider_id: UUID) -> None:
        with self._lock:
            self._embedding_providers.set_status(provider_id, ProviderStatus.ACTIVE)

    def set_disable_embedding_provider(self, provider_id: UUID) -> None:
        with self._lock:
            self._embedding_providers.set_status(provider_id, ProviderStatus.INACTIVE)

    # LLM providers

    def create_llm_provider(self, provider: LLMProviderConfig) -> None:
        with self._lock:
            self._llm_providers.put(provider)

    def update_llm_provider(self, provider: LLMProviderConfig) -> None:
        with self._lock:
            self._llm_providers.get(provider.uuid)
            self._llm_providers.put(provider)

    def delete_llm_provider(self, provider_id: UUID) -> None:
        with self._lock:
            self._llm_providers.delete(provider_id)

    def get_llm_provider(self, provider_id: UUID) -> LLMProviderConfig:
        with self._lock:
            return self._llm_providers.get(provider_id)

    def get_all_llm_providers(self, filter: ProviderFilter, option: FilterOption) -> Paginated[LLMProviderConfig]:
        with self._lock:
            return self._llm_providers.find(filter, option)

    def set_active_llm_provider(self, provider_id: UUID) -> None:
        with self._lock:
            self._llm_providers.set_status(provider_id, ProviderStatus.ACTIVE)

    def set_disable_llm_provider(self, provider_id: UUID) -> None:
        with self._lock:
            self._llm_providers.set_status(provider_id, ProviderStatus.INACTIVE)

    # Interactions

    def create_interaction(self, interaction: Interaction) -> Interaction:
        with self._lock:
            self._interactions[interaction.uuid] = interaction
            return interaction

    def get_interaction(self, interaction_id: UUID) -> Interaction:
        with self._lock:
            try:
                return self._interactions[interaction_id]
            except KeyError:
                raise InteractionNotFoundError(f"interaction not found: {interaction_id}") from None

    def get_all_interactions(self, page: int, per_page: int) -> Paginated[Interaction]:
        with self._lock:
            ordered = sorted(self._interactions.values(), key=lambda item: item.created_at, reverse=True)
            return _paginate(ordered, page, per_page)

    def add_conversation(self, interaction_id: UUID, role: InteractionRole, text: str) -> Conversation:
        with self._lock:
            interaction = self.get_interaction(interaction_id)
            conversation = Conversation(role=InteractionRole(role), text=text)
            interaction.conversations.append(conversation)
            return conversation
