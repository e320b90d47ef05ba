"""Storage contract consumed by the corpusqa core."""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

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
    SearchConfig,
    SearchResults,
)


class DocumentIndex(Protocol):
    """Persistence for documents and their content part vectors."""

    def store(self, document: Document) -> None:
        """Persist a document and index its content parts."""

    def update(self, document: Document) -> None:
        """Replace a stored document and re-index its content parts."""

    def get(self, document_id: UUID) -> Document:
        """Return a stored document."""

    def get_for_processing(self, status: DocumentStatus, limit: int) -> list[Document]:
        """Return up to ``limit`` documents in the given status."""

    def search(self, config: SearchConfig) -> SearchResults:
        """Return content parts ranked by similarity to ``config.embedding``."""


class Storage(Protocol):
    """Operations the collector, provider factories and orchestrator rely on.

    Lookups of missing records raise a :class:`corpusqa.errors.NotFoundError`
    subclass.
    """

    # Documents

    def store(self, document: Document) -> None: ...

    def update(self, document: Document) -> None: ...

    def get_document(self, document_id: UUID) -> Document: ...

    def get_for_processing(self, status: DocumentStatus, limit: int) -> list[Document]: ...

    def search(self, config: SearchConfig) -> SearchResults: ...

    # Datasources

    def add_datasource(self, config: DatasourceConfig) -> None: ...

    def get_datasource(self, datasource_id: UUID) -> DatasourceConfig: ...

    def get_all_datasources(self, page: int, per_page: int) -> Paginated[DatasourceConfig]: ...

    def update_datasource(self, datasource_id: UUID, settings: DatasourceSettings, state: DatasourceState) -> None: ...

    # Embedding providers

    def create_embedding_provider(self, provider: EmbeddingProviderConfig) -> None: ...

    def update_embedding_provider(self, provider: EmbeddingProviderConfig) -> None: ...

    def delete_embedding_provider(self, provider_id: UUID) -> None: ...

    def get_embedding_provider(self, provider_id: UUID) -> EmbeddingProviderConfig: ...

    def get_all_embedding_providers(
        self, filter: ProviderFilter, option: FilterOption
    ) -> Paginated[EmbeddingProviderConfig]: ...

    def set_active_embedding_provider(self, provider_id: UUID) -> None: ...

    def set_disable_embedding_provider(self, provider_id: UUID) -> None: ...

    # LLM providers

    def create_llm_provider(self, provider: LLMProviderConfig) -> None: ...

    def update_llm_provider(self, provider: LLMProviderConfig) -> None: ...

    def delete_llm_provider(self, provider_id: UUID) -> None: ...

    def get_llm_provider(self, provider_id: UUID) -> LLMProviderConfig: ...

    def get_all_llm_providers(self, filter: ProviderFilter, option: FilterOption) -> Paginated[LLMProviderConfig]: ...

    def set_active_llm_provider(self, provider_id: UUID) -> None: ...

    def set_disable_llm_provider(self, provider_id: UUID) -> None: ...

    # Interactions

    def create_interaction(self, interaction: Interaction) -> Interaction: ...

    def get_interaction(self, interaction_id: UUID) -> Interaction: ...

    def get_all_interactions(self, page: int, per_page: int) -> Paginated[Interaction]: ...

    def add_conversation(self, interaction_id: UUID, role: InteractionRole, text: str) -> Conversation: ...
