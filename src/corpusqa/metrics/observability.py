"""Observability helpers for corpusqa."""

from __future__ import annotations

import logging
import time
from contextvars import ContextVar
from typing import Iterable

import structlog
from prometheus_client import Counter, Histogram

_logger_configured = False
_correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="-")


def configure_logging(level: int | str = logging.INFO) -> None:
    global _logger_configured  # noqa: PLW0603 - module-level guard
    if _logger_configured:
        return
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format="%(message)s")
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _logger_configured = True


def bind_correlation_id(correlation_id: str) -> None:
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    structlog.contextvars.clear_contextvars()
    _correlation_id_var.set("-")


def get_correlation_id() -> str:
    return _correlation_id_var.get()


def get_logger(name: str = "corpusqa") -> structlog.BoundLogger:
    configure_logging()
    return structlog.get_logger(name)


def _clamp_score(score: float) -> float:
    if score < 0.0:
        return 0.0
    if score > 1.0:
        return 1.0
    return score


class PipelineMetrics:
    """Prometheus metrics for collection, search and generation."""

    documents_collected = Counter(
        "corpusqa_collector_documents_collected_total",
        "Documents stored by the collector.",
        ["datasource_id"],
    )
    collection_errors = Counter(
        "corpusqa_collector_collection_errors_total",
        "Failures during datasource collection.",
        ["datasource_id"],
    )
    collection_latency = Histogram(
        "corpusqa_collector_collection_duration_seconds",
        "Time spent on a successful collection run.",
        ["datasource_id"],
        buckets=(0.05, 0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0),
    )
    provider_latency = Histogram(
        "corpusqa_provider_request_duration_seconds",
        "Time spent waiting on remote providers.",
        ["kind", "provider"],
        buckets=(0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
    )
    retrieval_latency = Histogram(
        "corpusqa_retrieval_duration_seconds",
        "Time spent embedding the query and searching.",
        buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0),
    )
    retrieved_document_count = Histogram(
        "corpusqa_retrieved_document_count",
        "Number of search results used as context.",
        buckets=(0, 1, 2, 3, 5, 8, 13),
    )
    relevance_score = Histogram(
        "corpusqa_relevance_score",
        "Relevance score of search results used as context.",
        buckets=(0.0, 0.25, 0.5, 0.75, 1.0),
    )
    generation_latency = Histogram(
        "corpusqa_generation_duration_seconds",
        "Time spent generating answers.",
        buckets=(0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0),
    )

    @classmethod
    def record_collected(cls, datasource_id: object) -> None:
        cls.documents_collected.labels(datasource_id=str(datasource_id)).inc()

    @classmethod
    def record_collection_error(cls, datasource_id: object) -> None:
        cls.collection_errors.labels(datasource_id=str(datasource_id)).inc()

    @classmethod
    def observe_collection(cls, datasource_id: object, duration_seconds: float) -> None:
        cls.collection_latency.labels(datasource_id=str(datasource_id)).observe(duration_seconds)

    @classmethod
    def observe_provider_request(cls, kind: str, provider: str, duration_seconds: float) -> None:
        cls.provider_latency.labels(kind=kind, provider=provider).observe(duration_seconds)

    @classmethod
    def observe_retrieval(
        cls,
        duration_seconds: float,
        document_count: int,
        scores: Iterable[float],
    ) -> None:
        cls.retrieval_latency.observe(duration_seconds)
        cls.retrieved_document_count.observe(document_count)
        for score in scores:
            cls.relevance_score.observe(_clamp_score(score))

    @classmethod
    def observe_generation(cls, duration_seconds: float) -> None:
        cls.generation_latency.observe(duration_seconds)


class TimedSection:
    """Context manager capturing elapsed time for metrics."""

    def __init__(self, callback) -> None:
        self._callback = callback
        self._start = 0.0
        self.duration = 0.0

    def __enter__(self) -> "TimedSection":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        self.duration = time.perf_counter() - self._start
        self._callback(self.duration)


__all__ = [
    "PipelineMetrics",
    "TimedSection",
    "bind_correlation_id",
    "clear_correlation_id",
    "configure_logging",
    "get_correlation_id",
    "get_logger",
]
