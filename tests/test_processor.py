from __future__ import annotations

import threading
from uuid import uuid4

from corpusqa.embeddings.processor import EmbeddingProcessor
from corpusqa.errors import ProviderTransportError
from corpusqa.models import (
    Document,
    DocumentStatus,
    EmbeddingProviderConfig,
    HashEmbeddingSettings,
    OpenAISettings,
    ProviderStatus,
    SearchConfig,
)


def _activate(storage, provider: str, configuration) -> None:
    storage.create_embedding_provider(
        EmbeddingProviderConfig(
            uuid=uuid4(),
            name=provider,
            provider=provider,
            configuration=configuration,
            status=ProviderStatus.ACTIVE,
        )
    )


def test_pending_documents_become_searchable(storage):
    _activate(storage, "hash", HashEmbeddingSettings(dim=16))
    documents = [Document(title=f"doc-{i}", body=f"body number {i}") for i in range(3)]
    for document in documents:
        storage.store(document)

    report = EmbeddingProcessor(storage).process_pending(limit=10)

    assert sorted(report.processed) == sorted(document.uuid for document in documents)
    assert report.failed == []
    for document in documents:
        stored = storage.get_document(document.uuid)
        assert stored.status == DocumentStatus.READY_TO_SEARCH
        assert len(stored.embedding.embedding) == 1

    query = storage.get_document(documents[0].uuid).embedding.embedding[0].embedding
    results = storage.search(SearchConfig(query_text="body number 0", embedding=query, status="ready_to_search"))
    assert results.documents[0].original_document_uuid == documents[0].uuid


def test_limit_bounds_each_batch(storage):
    _activate(storage, "hash", HashEmbeddingSettings(dim=8))
    for index in range(5):
        storage.store(Document(body=f"doc {index}"))

    report = EmbeddingProcessor(storage).process_pending(limit=2)

    assert len(report.processed) == 2
    assert len(storage.get_for_processing(DocumentStatus.PENDING, 10)) == 3


def test_without_active_provider_nothing_is_processed(storage):
    storage.store(Document(body="waiting"))

    report = EmbeddingProcessor(storage).process_pending()

    assert report.processed == []
    assert len(storage.get_for_processing(DocumentStatus.PENDING, 10)) == 1


def test_provider_failure_marks_document(storage, monkeypatch):
    _activate(storage, "openai", OpenAISettings(api_key="sk", model_id="text-embedding-3-small"))
    document = Document(body="unreachable")
    storage.store(document)

    def fail(self, text):
        raise ProviderTransportError("failed to send request: connection refused")

    monkeypatch.setattr("corpusqa.embeddings.service.OpenAIEmbeddingProvider.get_embedding", fail)

    report = EmbeddingProcessor(storage).process_pending()

    assert report.failed == [document.uuid]
    assert storage.get_document(document.uuid).status == DocumentStatus.ERROR_PROCESSING


def test_run_forever_stops_on_event(storage):
    stop_event = threading.Event()
    processor = EmbeddingProcessor(storage)
    thread = threading.Thread(target=processor.run_forever, args=(stop_event,), kwargs={"interval_seconds": 0.01})
    thread.start()
    stop_event.set()
    thread.join(timeout=5)

    assert not thread.is_alive()
