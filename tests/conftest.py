from __future__ import annotations

from typing import Any
from uuid import uuid4

import chromadb
import pytest

from corpusqa.storage import ChromaDocumentIndex, InMemoryStorage


class RecordingStorage:
    """Wraps a storage and records every method call made through it."""

    def __init__(self, inner: Any) -> None:
        self._inner = inner
        self.calls: list[tuple[str, tuple, dict]] = []

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._inner, name)
        if not callable(attr):
            return attr

        def wrapper(*args: Any, **kwargs: Any) -> Any:
            self.calls.append((name, args, kwargs))
            return attr(*args, **kwargs)

        return wrapper

    def called(self, name: str) -> list[tuple[tuple, dict]]:
        return [(args, kwargs) for called_name, args, kwargs in self.calls if called_name == name]


def make_index() -> ChromaDocumentIndex:
    # Ephemeral clients share state within a process; keep collections unique per test.
    return ChromaDocumentIndex(f"test-{uuid4().hex}", client=chromadb.EphemeralClient())


@pytest.fixture()
def index() -> ChromaDocumentIndex:
    return make_index()


@pytest.fixture()
def storage(index: ChromaDocumentIndex) -> InMemoryStorage:
    return InMemoryStorage(index)


@pytest.fixture()
def recording_storage(storage: InMemoryStorage) -> RecordingStorage:
    return RecordingStorage(storage)
