"""Shared domain models used across the corpusqa pipeline."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, Mapping, MutableMapping, Sequence, TypeVar, Union
from uuid import UUID, uuid4

NIL_UUID = UUID(int=0)

T = TypeVar("T")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    READY_TO_SEARCH = "ready_to_search"
    ERROR_PROCESSING = "error_processing"


class ProviderStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class DatasourceStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class InteractionRole(str, Enum):
    USER = "user"
    SYSTEM = "system"


class EmbeddingProviderType(str, Enum):
    OPENAI = "openai"
    NOOP = "noop"
    HASH = "hash"


class LLMProviderType(str, Enum):
    OPENAI = "openai"
    NOOP = "noop"


@dataclass(frozen=True)
class ContentPart:
    """One embedded unit of text together with its provenance."""

    content: str
    embedding: Sequence[float]
    embedding_provider_uuid: UUID = NIL_UUID
    embedding_prompt_token: int = 0
    generated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "embedding": list(self.embedding),
            "embedding_provider_uuid": str(self.embedding_provider_uuid),
            "embedding_prompt_token": self.embedding_prompt_token,
            "generated_at": self.generated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ContentPart":
        generated_at = data.get("generated_at")
        return cls(
            content=str(data.get("content", "")),
            embedding=tuple(float(value) for value in data.get("embedding") or ()),
            embedding_provider_uuid=UUID(str(data.get("embedding_provider_uuid") or NIL_UUID)),
            embedding_prompt_token=int(data.get("embedding_prompt_token") or 0),
            generated_at=datetime.fromisoformat(generated_at) if isinstance(generated_at, str) else utcnow(),
        )


def new_content_part(content: str, embedding: Sequence[float], provider_uuid: UUID, prompt_tokens: int) -> ContentPart:
    return ContentPart(
        content=content,
        embedding=tuple(embedding),
        embedding_provider_uuid=provider_uuid,
        embedding_prompt_token=prompt_tokens,
        generated_at=utcnow(),
    )


@dataclass
class Embedding:
    embedding: list[ContentPart] = field(default_factory=list)


@dataclass(frozen=True)
class Source:
    """Attribution of a document to the datasource it was collected from."""

    uuid: UUID
    name: str
    source_type: str


@dataclass
class Document:
    """Document collected from a datasource.

    Documents are stored once; afterwards only ``embedding`` is rewritten
    when the document is re-embedded.
    """

    uuid: UUID = field(default_factory=uuid4)
    title: str = ""
    body: str = ""
    url: str | None = None
    status: DocumentStatus = DocumentStatus.PENDING
    metadata: MutableMapping[str, str] = field(default_factory=dict)
    embedding: Embedding = field(default_factory=Embedding)
    source: Source | None = None
    fetched_at: datetime | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


# Datasources

DatasourceState = MutableMapping[str, Any]


@dataclass(frozen=True)
class DirectorySettings:
    path: str
    extensions: tuple[str, ...] = (".txt", ".md", ".pdf", ".docx")

    def validate(self) -> None:
        if not self.path:
            raise ValueError("directory path is required")


DatasourceSettings = Union[DirectorySettings, Mapping[str, Any]]


@dataclass
class DatasourceConfig:
    uuid: UUID
    name: str
    source_type: str
    settings: DatasourceSettings
    state: DatasourceState = field(default_factory=dict)
    status: DatasourceStatus = DatasourceStatus.INACTIVE


# Provider settings. Each provider kind is a closed set of tagged variants.


@dataclass(frozen=True)
class OpenAISettings:
    api_key: str
    model_id: str
    api_endpoint: str | None = None


@dataclass(frozen=True)
class NoOpSettings:
    content_parts: tuple[ContentPart, ...] = ()


@dataclass(frozen=True)
class HashEmbeddingSettings:
    dim: int = 384
    normalize: bool = True


@dataclass(frozen=True)
class OpenAILLMSettings:
    api_key: str
    model_id: str
    api_endpoint: str | None = None


@dataclass(frozen=True)
class NoOpLLMSettings:
    response_to_return: str = ""


EmbeddingProviderSettings = Union[OpenAISettings, NoOpSettings, HashEmbeddingSettings]
LLMProviderSettings = Union[OpenAILLMSettings, NoOpLLMSettings]


@dataclass
class EmbeddingProviderConfig:
    uuid: UUID
    name: str
    provider: str
    configuration: Any
    status: ProviderStatus = ProviderStatus.INACTIVE


@dataclass
class LLMProviderConfig:
    uuid: UUID
    name: str
    provider: str
    configuration: Any
    status: ProviderStatus = ProviderStatus.INACTIVE


@dataclass(frozen=True)
class ProviderFilter:
    status: str = ""


@dataclass(frozen=True)
class FilterOption:
    limit: int = 10
    page: int = 1


@dataclass
class Paginated(Generic[T]):
    items: list[T]
    total: int
    page: int
    per_page: int

    @property
    def total_pages(self) -> int:
        if self.per_page <= 0:
            return 0
        return math.ceil(self.total / self.per_page)


# Interactions


@dataclass(frozen=True)
class Conversation:
    role: InteractionRole
    text: str
    uuid: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Interaction:
    query: str
    uuid: UUID = field(default_factory=uuid4)
    conversations: list[Conversation] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)


# Search


@dataclass(frozen=True)
class SearchConfig:
    query_text: str
    embedding: Sequence[float]
    status: str = ""
    source_type: str = ""
    limit: int = 10
    page: int = 1


@dataclass(frozen=True)
class SearchResultsDocument:
    content_part: str
    content_part_id: int
    original_document_uuid: UUID
    relevant_score: float


@dataclass(frozen=True)
class SearchResults:
    documents: Sequence[SearchResultsDocument]
    query_text: str
    limit: int
    page: int
    total_pages: int = 0
    total_results: int = 0
