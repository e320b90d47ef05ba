"""Datasource collection."""

from .datasource import Datasource, DirectoryDatasource, create_datasource_from_config, parse_datasource_settings
from .manager import Collector, CollectorConfig, DatasourceRegistry
from .worker import CollectionReport, CollectorWorker, DocumentOutcome, RetryPolicy, WorkerConfig

__all__ = [
    "CollectionReport",
    "Collector",
    "CollectorConfig",
    "CollectorWorker",
    "Datasource",
    "DatasourceRegistry",
    "DirectoryDatasource",
    "DocumentOutcome",
    "RetryPolicy",
    "WorkerConfig",
    "create_datasource_from_config",
    "parse_datasource_settings",
]
