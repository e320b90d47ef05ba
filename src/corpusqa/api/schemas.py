"""Pydantic models for the corpusqa API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field


class MessageResponse(BaseModel):
    message: str


class ProviderRequest(BaseModel):
    name: str = Field(..., min_length=1, description="Display name of the provider configuration")
    provider: str = Field(..., min_length=1, description="Provider type tag, e.g. openai or noop")
    configuration: Dict[str, Any] = Field(default_factory=dict, description="Type specific settings")
    status: Optional[Literal["active", "inactive"]] = Field(
        default=None,
        description="Initial status; new providers are inactive unless stated",
    )


class ProviderModel(BaseModel):
    uuid: UUID
    name: str
    provider: str
    configuration: Dict[str, Any]
    status: str


class ProviderListResponse(BaseModel):
    items: List[ProviderModel]
    total: int
    page: int
    per_page: int
    total_pages: int


class QueryRequest(BaseModel):
    query: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("query", "text"),
        description="End-user message",
    )


class QueryResponse(BaseModel):
    response: str


class ConversationModel(BaseModel):
    uuid: UUID
    role: str
    text: str
    created_at: datetime


class InteractionModel(BaseModel):
    uuid: UUID
    query: str
    conversations: List[ConversationModel]
    created_at: datetime


class InteractionListResponse(BaseModel):
    items: List[InteractionModel]
    total: int
    page: int
    per_page: int
    total_pages: int


class SearchRequestModel(BaseModel):
    query: str = Field(..., min_length=1)
    status: str = ""
    source_type: str = ""


class SearchResultModel(BaseModel):
    content_part: str
    content_part_id: int
    original_document_uuid: UUID
    relevant_score: float


class SearchResponse(BaseModel):
    documents: List[SearchResultModel]
    query_text: str
    limit: int
    page: int
    total_pages: int
    total_results: int


class DatasourceRequest(BaseModel):
    name: str = Field(..., min_length=1)
    source_type: str = Field(default="directory")
    settings: Dict[str, Any] = Field(default_factory=dict)
    status: Literal["active", "inactive"] = "active"


class DatasourceModel(BaseModel):
    uuid: UUID
    name: str
    source_type: str
    settings: Dict[str, Any]
    state: Dict[str, Any]
    status: str


class DatasourceListResponse(BaseModel):
    items: List[DatasourceModel]
    total: int
    page: int
    per_page: int
    total_pages: int


class CollectionReportModel(BaseModel):
    datasource_id: UUID
    attempts: int
    stored: int
    failed: int
    duration_seconds: float


class ProcessingReportModel(BaseModel):
    processed: List[UUID]
    failed: List[UUID]
