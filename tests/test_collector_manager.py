from __future__ import annotations

import threading
from pathlib import Path
from uuid import UUID, uuid4

import pytest

from corpusqa.collector.datasource import DirectoryDatasource
from corpusqa.collector.manager import Collector, CollectorConfig, DatasourceRegistry
from corpusqa.collector.worker import CollectorWorker, WorkerConfig
from corpusqa.errors import CollectionInProgressError
from corpusqa.models import DatasourceConfig, DatasourceStatus, DirectorySettings
from corpusqa.storage import InMemoryStorage


class StaticDatasource:
    def __init__(self, datasource_id: UUID) -> None:
        self._id = datasource_id
        self.calls = 0

    def get_id(self) -> UUID:
        return self._id

    def validate(self) -> None:
        return None

    def get_data(self, state):
        self.calls += 1
        return [], dict(state)


def _add_directory(storage: InMemoryStorage, path: Path, status: DatasourceStatus) -> DatasourceConfig:
    config = DatasourceConfig(
        uuid=uuid4(),
        name=path.name,
        source_type="directory",
        settings=DirectorySettings(path=str(path)),
        status=status,
    )
    storage.add_datasource(config)
    return config


def test_refresh_registers_only_active_valid_datasources(storage: InMemoryStorage, tmp_path: Path) -> None:
    active = _add_directory(storage, tmp_path, DatasourceStatus.ACTIVE)
    _add_directory(storage, tmp_path, DatasourceStatus.INACTIVE)
    storage.add_datasource(
        DatasourceConfig(
            uuid=uuid4(),
            name="chat",
            source_type="chat-export",
            settings={},
            status=DatasourceStatus.ACTIVE,
        )
    )

    registry = DatasourceRegistry(storage)
    registry.refresh()

    registered = registry.get_all()
    assert [datasource.get_id() for datasource in registered] == [active.uuid]
    assert isinstance(registered[0], DirectoryDatasource)


def test_register_rejects_duplicate_ids(storage: InMemoryStorage) -> None:
    registry = DatasourceRegistry(storage)
    datasource = StaticDatasource(uuid4())
    registry.register(datasource)

    with pytest.raises(ValueError):
        registry.register(StaticDatasource(datasource.get_id()))

    registry.unregister(datasource.get_id())
    assert registry.get(datasource.get_id()) is None


def test_run_once_collects_every_registered_datasource(storage: InMemoryStorage) -> None:
    registry = DatasourceRegistry(storage)
    datasources = []
    for _ in range(3):
        config = DatasourceConfig(uuid=uuid4(), name="static", source_type="static", settings={})
        storage.add_datasource(config)
        datasource = StaticDatasource(config.uuid)
        registry.register(datasource)
        datasources.append(datasource)

    collector = Collector(registry, CollectorWorker(storage), CollectorConfig(worker_count=2))
    reports = collector.run_once()

    assert len(reports) == 3
    assert all(datasource.calls == 1 for datasource in datasources)


def test_run_once_skips_datasource_already_being_collected(storage: InMemoryStorage) -> None:
    registry = DatasourceRegistry(storage)
    config = DatasourceConfig(uuid=uuid4(), name="static", source_type="static", settings={})
    storage.add_datasource(config)
    datasource = StaticDatasource(config.uuid)
    registry.register(datasource)
    collector = Collector(registry, CollectorWorker(storage))

    lock = collector._lock_for(config.uuid)
    with lock:
        reports = collector.run_once()

    assert reports == []
    assert datasource.calls == 0


def test_run_once_logs_and_continues_after_failure(storage: InMemoryStorage) -> None:
    registry = DatasourceRegistry(storage)
    healthy_config = DatasourceConfig(uuid=uuid4(), name="ok", source_type="static", settings={})
    storage.add_datasource(healthy_config)
    healthy = StaticDatasource(healthy_config.uuid)
    registry.register(healthy)
    # Not stored, so loading its state fails.
    registry.register(StaticDatasource(uuid4()))

    collector = Collector(registry, CollectorWorker(storage, WorkerConfig(retry_attempts=1, retry_delay_seconds=0)))
    reports = collector.run_once()

    assert [report.datasource_id for report in reports] == [healthy_config.uuid]


def test_run_forever_stops_when_event_is_set(storage: InMemoryStorage) -> None:
    registry = DatasourceRegistry(storage)
    collector = Collector(registry, CollectorWorker(storage), CollectorConfig(collection_interval_seconds=0.01))
    stop_event = threading.Event()
    thread = threading.Thread(target=collector.run_forever, args=(stop_event,))
    thread.start()
    stop_event.set()
    thread.join(timeout=5)

    assert not thread.is_alive()


def test_collect_refuses_concurrent_run_for_same_datasource(storage: InMemoryStorage) -> None:
    config = DatasourceConfig(uuid=uuid4(), name="static", source_type="static", settings={})
    storage.add_datasource(config)
    datasource = StaticDatasource(config.uuid)
    collector = Collector(DatasourceRegistry(storage), CollectorWorker(storage))

    with collector._lock_for(config.uuid):
        with pytest.raises(CollectionInProgressError, match="already running"):
            collector.collect(datasource)
    assert datasource.calls == 0

    report = collector.collect(datasource)

    assert report.datasource_id == config.uuid
    assert datasource.calls == 1
    assert collector._lock_for(config.uuid).acquire(blocking=False)
