"""Embed pending documents with the active embedding provider."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from uuid import UUID

import httpx

from corpusqa.embeddings.factory import initialize_embedding_provider
from corpusqa.embeddings.service import DEFAULT_TIMEOUT_SECONDS
from corpusqa.errors import CorpusQAError, ProviderRequestError
from corpusqa.metrics.observability import get_logger
from corpusqa.models import DocumentStatus
from corpusqa.storage.base import Storage


@dataclass
class ProcessingReport:
    processed: list[UUID] = field(default_factory=list)
    failed: list[UUID] = field(default_factory=list)


class EmbeddingProcessor:
    """Moves documents from ``pending`` to ``ready_to_search``."""

    def __init__(
        self,
        storage: Storage,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.Client | None = None,
    ) -> None:
        self._storage = storage
        self._timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)
        self._logger = get_logger("embedding.processor")

    def process_pending(self, limit: int = 10) -> ProcessingReport:
        report = ProcessingReport()
        provider = initialize_embedding_provider(self._storage, timeout=self._timeout, client=self._client)
        if provider is None:
            self._logger.warning("embedding.processor.skipped", reason="no active embedding provider")
            return report

        documents = self._storage.get_for_processing(DocumentStatus.PENDING, limit)
        for document in documents:
            try:
                provider.process(document)
            except ProviderRequestError as exc:
                self._logger.error("embedding.processor.failed", document_uuid=str(document.uuid), error=str(exc))
                document.status = DocumentStatus.ERROR_PROCESSING
                report.failed.append(document.uuid)
            else:
                document.status = DocumentStatus.READY_TO_SEARCH
                report.processed.append(document.uuid)
            self._storage.update(document)

        self._logger.info(
            "embedding.processor.complete",
            processed=len(report.processed),
            failed=len(report.failed),
        )
        return report

    def run_forever(self, stop_event: threading.Event, *, interval_seconds: float = 10.0, limit: int = 10) -> None:
        while not stop_event.is_set():
            try:
                self.process_pending(limit)
            except CorpusQAError as exc:
                self._logger.error("embedding.processor.cycle_failed", error=str(exc))
            if stop_event.wait(interval_seconds):
                break
