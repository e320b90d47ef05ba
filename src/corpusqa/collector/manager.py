"""Scheduling of collection runs across registered datasources."""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from uuid import UUID

from corpusqa.collector.datasource import Datasource, create_datasource_from_config
from corpusqa.collector.worker import CollectionReport, CollectorWorker
from corpusqa.errors import CollectionInProgressError, CorpusQAError
from corpusqa.metrics.observability import get_logger
from corpusqa.models import DatasourceStatus
from corpusqa.storage.base import Storage

REFRESH_PAGE_SIZE = 1000


@dataclass(frozen=True)
class CollectorConfig:
    worker_count: int = 5
    collection_interval_seconds: float = 10.0
    refresh_interval_seconds: float = 60.0


class DatasourceRegistry:
    """Thread-safe set of datasources the collector runs against."""

    def __init__(self, storage: Storage) -> None:
        self._storage = storage
        self._datasources: dict[UUID, Datasource] = {}
        self._lock = threading.Lock()
        self._logger = get_logger("collector.registry")

    def register(self, datasource: Datasource) -> None:
        with self._lock:
            datasource_id = datasource.get_id()
            if datasource_id in self._datasources:
                raise ValueError(f"datasource with ID {datasource_id} already exists")
            self._datasources[datasource_id] = datasource

    def unregister(self, datasource_id: UUID) -> None:
        with self._lock:
            self._datasources.pop(datasource_id, None)

    def get(self, datasource_id: UUID) -> Datasource | None:
        with self._lock:
            return self._datasources.get(datasource_id)

    def get_all(self) -> list[Datasource]:
        with self._lock:
            return list(self._datasources.values())

    def refresh(self) -> None:
        """Replace the registered datasources with the active stored ones."""

        self._logger.info("registry.refresh")
        configs = self._storage.get_all_datasources(1, REFRESH_PAGE_SIZE)
        datasources: dict[UUID, Datasource] = {}
        for config in configs.items:
            if config.status != DatasourceStatus.ACTIVE:
                continue
            try:
                datasources[config.uuid] = create_datasource_from_config(config)
            except CorpusQAError as exc:
                self._logger.error("registry.datasource_invalid", datasource_name=config.name, error=str(exc))
        with self._lock:
            self._datasources = datasources
        self._logger.info("registry.refreshed", datasource_count=len(datasources))


class Collector:
    """Runs collection cycles on a thread pool.

    Runs for the same datasource are serialised with a per-datasource lock;
    a datasource still being collected when the next cycle starts is skipped.
    """

    def __init__(
        self,
        registry: DatasourceRegistry,
        worker: CollectorWorker,
        config: CollectorConfig | None = None,
    ) -> None:
        self._registry = registry
        self._worker = worker
        self._config = config or CollectorConfig()
        self._locks: dict[UUID, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._logger = get_logger("collector")

    def _lock_for(self, datasource_id: UUID) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(datasource_id, threading.Lock())

    def collect(self, datasource: Datasource, *, cancel: threading.Event | None = None) -> CollectionReport:
        """Run one collection for ``datasource`` under its lock.

        Raises :class:`CollectionInProgressError` when another run for the
        same datasource holds the lock.
        """

        datasource_id = datasource.get_id()
        lock = self._lock_for(datasource_id)
        if not lock.acquire(blocking=False):
            raise CollectionInProgressError(f"collection for datasource {datasource_id} is already running")
        try:
            return self._worker.collect_from_datasource(datasource, cancel=cancel)
        finally:
            lock.release()

    def _collect(self, datasource: Datasource, cancel: threading.Event | None) -> CollectionReport | None:
        datasource_id = datasource.get_id()
        try:
            return self.collect(datasource, cancel=cancel)
        except CollectionInProgressError:
            self._logger.info("collection.skipped", datasource_id=str(datasource_id), reason="already running")
            return None
        except Exception as exc:
            self._logger.error("collection.error", datasource_id=str(datasource_id), error=str(exc))
            return None

    def run_once(self, cancel: threading.Event | None = None) -> list[CollectionReport]:
        start = time.perf_counter()
        datasources = self._registry.get_all()
        self._logger.info("collection.cycle_start", datasource_count=len(datasources))
        with ThreadPoolExecutor(max_workers=max(self._config.worker_count, 1)) as executor:
            results = list(executor.map(lambda ds: self._collect(ds, cancel), datasources))
        reports = [report for report in results if report is not None]
        self._logger.info(
            "collection.cycle_complete",
            completed=len(reports),
            duration_seconds=time.perf_counter() - start,
        )
        return reports

    def run_forever(self, stop_event: threading.Event) -> None:
        last_refresh = float("-inf")
        while not stop_event.is_set():
            now = time.monotonic()
            if now - last_refresh >= self._config.refresh_interval_seconds:
                try:
                    self._registry.refresh()
                except Exception as exc:
                    self._logger.error("registry.refresh_failed", error=str(exc))
                last_refresh = now
            self.run_once(stop_event)
            if stop_event.wait(self._config.collection_interval_seconds):
                break
        self._logger.info("collector.stopped")
