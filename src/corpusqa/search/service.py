"""Search over stored content parts using the active embedding provider."""

from __future__ import annotations

import time
from dataclasses import dataclass

import httpx

from corpusqa.embeddings.factory import initialize_embedding_provider
from corpusqa.embeddings.service import DEFAULT_TIMEOUT_SECONDS, content_parts_vector
from corpusqa.errors import NoActiveProviderError
from corpusqa.llm.prompt import ContextDocument
from corpusqa.metrics.observability import PipelineMetrics, get_logger
from corpusqa.models import SearchConfig, SearchResults
from corpusqa.storage.base import Storage


@dataclass(frozen=True)
class SearchRequest:
    query: str
    status: str = ""
    source_type: str = ""


class SearchSystem:
    """Embeds a query with the active provider and searches storage."""

    def __init__(
        self,
        storage: Storage,
        *,
        limit: int = 10,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.Client | None = None,
    ) -> None:
        self._storage = storage
        self._limit = limit
        self._timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)
        self._logger = get_logger("search")

    def health_check(self) -> None:
        return None

    def search_document(self, request: SearchRequest) -> SearchResults:
        start = time.perf_counter()
        provider = initialize_embedding_provider(self._storage, timeout=self._timeout, client=self._client)
        if provider is None:
            raise NoActiveProviderError("no active embedding provider")
        parts = provider.get_embedding(request.query)
        config = SearchConfig(
            query_text=request.query,
            embedding=content_parts_vector(parts),
            status=request.status,
            source_type=request.source_type,
            limit=self._limit,
            page=1,
        )
        results = self._storage.search(config)
        duration = time.perf_counter() - start

        PipelineMetrics.observe_retrieval(
            duration,
            len(results.documents),
            (document.relevant_score for document in results.documents),
        )
        self._logger.info(
            "retrieval.complete",
            query=request.query,
            result_count=len(results.documents),
            duration_seconds=duration,
            limit=self._limit,
        )
        return results

    def generate_llm_context(self, request: SearchRequest) -> list[ContextDocument]:
        results = self.search_document(request)
        return [
            ContextDocument(
                content=document.content_part,
                metadata={"uuid": str(document.original_document_uuid)},
            )
            for document in results.documents
        ]
