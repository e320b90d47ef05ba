"""Chroma-backed document index."""

from __future__ import annotations

import math
import threading
from pathlib import Path
from typing import Mapping, MutableMapping, Sequence
from uuid import UUID

import chromadb
from chromadb.api import ClientAPI

from corpusqa.errors import NotFoundError
from corpusqa.models import Document, DocumentStatus, SearchConfig, SearchResults, SearchResultsDocument


class ChromaDocumentIndex:
    """Stores documents in memory and their content part vectors in Chroma.

    Vectors are supplied by the embedding provider that processed the
    document; Chroma never computes embeddings itself.
    """

    def __init__(
        self,
        collection_name: str = "corpusqa",
        *,
        client: ClientAPI | None = None,
        persist_directory: str | Path | None = None,
    ) -> None:
        if client is not None:
            self._client = client
        elif persist_directory is not None:
            self._client = chromadb.PersistentClient(path=str(persist_directory))
        else:
            self._client = chromadb.EphemeralClient()
        self._collection = self._client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
        )
        self._documents: dict[UUID, Document] = {}
        self._lock = threading.Lock()

    def store(self, document: Document) -> None:
        with self._lock:
            self._documents[document.uuid] = document
        self._collection.delete(where={"document_uuid": str(document.uuid)})
        self._index_content_parts(document)

    def update(self, document: Document) -> None:
        with self._lock:
            if document.uuid not in self._documents:
                raise NotFoundError(f"document not found: {document.uuid}")
            self._documents[document.uuid] = document
        self._collection.delete(where={"document_uuid": str(document.uuid)})
        self._index_content_parts(document)

    def get(self, document_id: UUID) -> Document:
        with self._lock:
            try:
                return self._documents[document_id]
            except KeyError:
                raise NotFoundError(f"document not found: {document_id}") from None

    def get_for_processing(self, status: DocumentStatus, limit: int) -> list[Document]:
        with self._lock:
            matching = [doc for doc in self._documents.values() if doc.status == status]
        return matching[: max(limit, 0)]

    def count(self) -> int:
        return int(self._collection.count())

    def search(self, config: SearchConfig) -> SearchResults:
        limit = max(config.limit, 1)
        page = max(config.page, 1)
        where = self._build_where(config)
        total = self._count_matching(where)
        if total == 0 or not config.embedding:
            return SearchResults(documents=[], query_text=config.query_text, limit=limit, page=page)
        results = self._collection.query(
            query_embeddings=[list(config.embedding)],
            n_results=min(limit * page, total),
            where=where,
        )
        rows = self._deserialize_results(results)
        return SearchResults(
            documents=rows[(page - 1) * limit : page * limit],
            query_text=config.query_text,
            limit=limit,
            page=page,
            total_pages=math.ceil(total / limit),
            total_results=total,
        )

    def _count_matching(self, where: dict | None) -> int:
        if where is None:
            return self.count()
        return len(self._collection.get(where=where, include=[])["ids"])

    def _index_content_parts(self, document: Document) -> None:
        parts = document.embedding.embedding
        if not parts:
            return
        self._collection.upsert(
            ids=[f"{document.uuid}-{index}" for index in range(len(parts))],
            documents=[part.content for part in parts],
            embeddings=[list(part.embedding) for part in parts],
            metadatas=[self._serialize_part(document, index) for index in range(len(parts))],
        )

    @staticmethod
    def _serialize_part(document: Document, index: int) -> MutableMapping[str, object]:
        metadata: MutableMapping[str, object] = {
            "document_uuid": str(document.uuid),
            "content_part_id": index,
            "status": document.status.value,
            "title": document.title,
        }
        if document.source is not None:
            metadata["source_uuid"] = str(document.source.uuid)
            metadata["source_type"] = document.source.source_type
        return metadata

    @staticmethod
    def _build_where(config: SearchConfig) -> dict | None:
        conditions = []
        if config.status:
            conditions.append({"status": config.status})
        if config.source_type:
            conditions.append({"source_type": config.source_type})
        if not conditions:
            return None
        if len(conditions) == 1:
            return conditions[0]
        return {"$and": conditions}

    def _deserialize_results(self, results: Mapping[str, object]) -> list[SearchResultsDocument]:
        documents = self._first(results.get("documents", []))
        metadatas = self._first(results.get("metadatas", []))
        distances = self._first(results.get("distances", []))
        rows: list[SearchResultsDocument] = []
        for index, (content, metadata) in enumerate(zip(documents, metadatas, strict=False)):
            distance = distances[index] if index < len(distances) else None
            rows.append(
                SearchResultsDocument(
                    content_part=content or "",
                    content_part_id=int(metadata.get("content_part_id", 0)),
                    original_document_uuid=UUID(str(metadata.get("document_uuid"))),
                    relevant_score=1.0 - float(distance) if distance is not None else 0.0,
                ),
            )
        return rows

    @staticmethod
    def _first(value: object) -> Sequence:
        if isinstance(value, list):
            return value[0] if value and value[0] is not None else []
        return []

