"""Datasources the collector pulls documents from."""

from __future__ import annotations

import dataclasses
import re
import unicodedata
from pathlib import Path
from typing import Any, Mapping, Protocol, Sequence
from uuid import NAMESPACE_URL, UUID, uuid5

from langchain_community.document_loaders import Docx2txtLoader, PyPDFLoader, TextLoader
from langchain_community.document_loaders.base import BaseLoader

from corpusqa.errors import DatasourceConfigurationError
from corpusqa.metrics.observability import get_logger
from corpusqa.models import DatasourceConfig, DatasourceSettings, DatasourceState, DirectorySettings, Document

DIRECTORY_SOURCE_TYPE = "directory"
CURSOR_KEY = "last_modified"


class Datasource(Protocol):
    """A pull-based source of documents keyed by an opaque cursor."""

    def get_id(self) -> UUID:
        """Return the identifier of the stored datasource configuration."""

    def get_data(self, state: DatasourceState) -> tuple[Sequence[Document], DatasourceState]:
        """Return documents newer than ``state`` and the advanced cursor."""

    def validate(self) -> None:
        """Raise :class:`DatasourceConfigurationError` for unusable settings."""


def _normalize_text(raw: str) -> str:
    normalized = unicodedata.normalize("NFKC", raw)
    normalized = normalized.replace("\u00a0", " ")
    normalized = re.sub(r"[ \t]+", " ", normalized)
    return normalized.strip()


class DirectoryDatasource:
    """Reads files below a directory through LangChain document loaders.

    The cursor is the highest modification time seen so far; each run
    returns only files modified after it.
    """

    _LOADERS: Mapping[str, type[BaseLoader]] = {
        ".pdf": PyPDFLoader,
        ".docx": Docx2txtLoader,
        ".txt": TextLoader,
        ".md": TextLoader,
    }

    def __init__(self, config: DatasourceConfig, *, encoding: str = "utf-8") -> None:
        if not isinstance(config.settings, DirectorySettings):
            raise DatasourceConfigurationError("invalid settings type for directory datasource")
        self._config = config
        self._settings = config.settings
        self._encoding = encoding
        self._logger = get_logger("datasource.directory")

    def get_id(self) -> UUID:
        return self._config.uuid

    def validate(self) -> None:
        try:
            self._settings.validate()
        except ValueError as exc:
            raise DatasourceConfigurationError(str(exc)) from exc
        unsupported = [ext for ext in self._settings.extensions if ext.lower() not in self._LOADERS]
        if unsupported:
            raise DatasourceConfigurationError(f"unsupported file extensions: {', '.join(unsupported)}")

    def get_data(self, state: DatasourceState) -> tuple[Sequence[Document], DatasourceState]:
        root = Path(self._settings.path)
        if not root.is_dir():
            raise FileNotFoundError(f"datasource directory not found: {root}")

        last_modified = float(state.get(CURSOR_KEY, 0.0) or 0.0)
        high_water = last_modified
        extensions = {ext.lower() for ext in self._settings.extensions}
        documents: list[Document] = []
        for path in sorted(root.rglob("*")):
            if not path.is_file() or path.suffix.lower() not in extensions:
                continue
            modified = path.stat().st_mtime
            if modified <= last_modified:
                continue
            documents.append(self._load(path))
            high_water = max(high_water, modified)

        self._logger.info(
            "datasource.fetched",
            datasource_id=str(self._config.uuid),
            document_count=len(documents),
            last_modified=high_water,
        )
        new_state: dict[str, Any] = dict(state)
        new_state[CURSOR_KEY] = high_water
        return documents, new_state

    def _load(self, path: Path) -> Document:
        suffix = path.suffix.lower()
        loader = self._build_loader(self._LOADERS[suffix], path)
        pages = loader.load()
        body = "\n\n".join(_normalize_text(page.page_content) for page in pages)
        resolved = path.resolve()
        return Document(
            uuid=uuid5(NAMESPACE_URL, str(resolved)),
            title=path.name,
            body=body,
            url=resolved.as_uri(),
            metadata={"path": str(resolved), "media_type": suffix.lstrip(".")},
        )

    def _build_loader(self, loader_cls: type[BaseLoader], path: Path) -> BaseLoader:
        if loader_cls is TextLoader:
            return loader_cls(str(path), encoding=self._encoding)
        return loader_cls(str(path))


def parse_datasource_settings(source_type: str, settings: DatasourceSettings) -> DirectorySettings:
    """Return typed settings for ``source_type`` from a stored or JSON payload."""

    if source_type != DIRECTORY_SOURCE_TYPE:
        raise DatasourceConfigurationError(f"unsupported datasource type: {source_type}")
    if isinstance(settings, DirectorySettings):
        return settings
    if not isinstance(settings, Mapping):
        raise DatasourceConfigurationError("invalid settings type for directory datasource")
    if not settings.get("path"):
        raise DatasourceConfigurationError("directory datasource requires a path")
    extensions = settings.get("extensions") or DirectorySettings.extensions
    return DirectorySettings(path=str(settings["path"]), extensions=tuple(str(ext) for ext in extensions))


def create_datasource_from_config(config: DatasourceConfig) -> Datasource:
    settings = parse_datasource_settings(config.source_type, config.settings)
    datasource = DirectoryDatasource(dataclasses.replace(config, settings=settings))
    datasource.validate()
    return datasource
