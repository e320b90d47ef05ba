"""Collection of documents from a single datasource."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Sequence, TypeVar
from uuid import UUID

from corpusqa.collector.datasource import Datasource
from corpusqa.errors import CollectionCancelledError, CollectionFailedError
from corpusqa.metrics.observability import PipelineMetrics, get_logger
from corpusqa.models import DatasourceState, Document, Source, utcnow
from corpusqa.storage.base import Storage

T = TypeVar("T")

# Returns True when the cancel event was set while waiting.
Wait = Callable[[float, threading.Event], bool]


def _event_wait(delay_seconds: float, cancel: threading.Event) -> bool:
    return cancel.wait(delay_seconds)


@dataclass(frozen=True)
class WorkerConfig:
    """Retry settings for a collection run."""

    retry_attempts: int = 3
    retry_delay_seconds: float = 30.0

    def __post_init__(self) -> None:
        if self.retry_attempts < 1:
            raise ValueError("retry_attempts must be a positive integer")
        if self.retry_delay_seconds < 0:
            raise ValueError("retry_delay_seconds must not be negative")


class RetryPolicy:
    """Bounded retry loop with a fixed delay between attempts.

    The policy is single-use: ``attempts`` and ``last_error`` describe the
    most recent :meth:`call`. Waiting is delegated to ``wait`` so callers can
    replace the blocking delay.
    """

    def __init__(self, max_attempts: int, delay_seconds: float, *, wait: Wait | None = None) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be a positive integer")
        self.max_attempts = max_attempts
        self.delay_seconds = delay_seconds
        self.attempts = 0
        self.last_error: Exception | None = None
        self._wait = wait or _event_wait

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    def call(
        self,
        operation: Callable[[], T],
        *,
        subject: object,
        cancel: threading.Event | None = None,
        on_failure: Callable[[int, Exception], None] | None = None,
    ) -> T:
        cancel = cancel or threading.Event()
        while True:
            if cancel.is_set():
                raise CollectionCancelledError(f"collection from {subject} cancelled")
            self.attempts += 1
            try:
                return operation()
            except Exception as exc:
                self.last_error = exc
                if on_failure is not None:
                    on_failure(self.attempts, exc)
                if self.exhausted:
                    raise CollectionFailedError(subject, self.attempts, exc) from exc
            if self._wait(self.delay_seconds, cancel):
                raise CollectionCancelledError(f"collection from {subject} cancelled while waiting to retry")


@dataclass(frozen=True)
class DocumentOutcome:
    document_uuid: UUID
    stored: bool
    error: str | None = None


@dataclass(frozen=True)
class CollectionReport:
    datasource_id: UUID
    attempts: int
    outcomes: Sequence[DocumentOutcome] = field(default_factory=tuple)
    duration_seconds: float = 0.0

    @property
    def stored(self) -> list[DocumentOutcome]:
        return [outcome for outcome in self.outcomes if outcome.stored]

    @property
    def failed(self) -> list[DocumentOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.stored]


class CollectorWorker:
    """Fetches one batch from a datasource and stores its documents.

    The advanced cursor is written before any document is stored, so a
    crash between the two steps skips the fetched batch on the next run.
    Callers must not run two collections for the same datasource at once.
    """

    def __init__(self, storage: Storage, config: WorkerConfig | None = None, *, wait: Wait | None = None) -> None:
        self._storage = storage
        self._config = config or WorkerConfig()
        self._wait = wait
        self._logger = get_logger("collector.worker")

    def collect_from_datasource(
        self,
        datasource: Datasource,
        *,
        cancel: threading.Event | None = None,
    ) -> CollectionReport:
        datasource_id = datasource.get_id()
        logger = self._logger.bind(datasource_id=str(datasource_id))
        start = time.perf_counter()

        try:
            config = self._storage.get_datasource(datasource_id)
        except Exception as exc:
            PipelineMetrics.record_collection_error(datasource_id)
            logger.error("collection.state_load_failed", error=str(exc))
            raise

        def log_failure(attempt: int, exc: Exception) -> None:
            logger.warning(
                "collection.retry",
                attempt=attempt,
                max_attempts=self._config.retry_attempts,
                retry_delay_seconds=self._config.retry_delay_seconds,
                error=str(exc),
            )

        policy = RetryPolicy(self._config.retry_attempts, self._config.retry_delay_seconds, wait=self._wait)
        state: DatasourceState = dict(config.state)
        try:
            documents, new_state = policy.call(
                lambda: datasource.get_data(state),
                subject=datasource_id,
                cancel=cancel,
                on_failure=log_failure,
            )
        except CollectionCancelledError:
            logger.warning("collection.cancelled", attempts=policy.attempts)
            raise
        except CollectionFailedError as exc:
            PipelineMetrics.record_collection_error(datasource_id)
            logger.error("collection.failed", attempts=exc.attempts, error=str(exc.last_error))
            raise

        try:
            self._storage.update_datasource(datasource_id, config.settings, new_state)
        except Exception as exc:
            PipelineMetrics.record_collection_error(datasource_id)
            logger.error("collection.state_update_failed", error=str(exc))
            raise

        source = Source(uuid=config.uuid, name=config.name, source_type=config.source_type)
        outcomes = [self._store_document(datasource_id, document, source, logger) for document in documents]

        duration = time.perf_counter() - start
        PipelineMetrics.observe_collection(datasource_id, duration)
        report = CollectionReport(
            datasource_id=datasource_id,
            attempts=policy.attempts,
            outcomes=tuple(outcomes),
            duration_seconds=duration,
        )
        logger.info(
            "collection.complete",
            attempts=report.attempts,
            stored=len(report.stored),
            failed=len(report.failed),
            duration_seconds=duration,
        )
        return report

    def _store_document(self, datasource_id: UUID, document: Document, source: Source, logger) -> DocumentOutcome:
        document.source = source
        document.fetched_at = utcnow()
        try:
            self._storage.store(document)
        except Exception as exc:
            PipelineMetrics.record_collection_error(datasource_id)
            logger.error("collection.document_store_failed", document_uuid=str(document.uuid), error=str(exc))
            return DocumentOutcome(document_uuid=document.uuid, stored=False, error=str(exc))
        PipelineMetrics.record_collected(datasource_id)
        return DocumentOutcome(document_uuid=document.uuid, stored=True)
