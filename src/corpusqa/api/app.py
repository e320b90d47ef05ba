"""FastAPI application exposing corpusqa services."""

from __future__ import annotations

import threading
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Callable, Mapping
from uuid import UUID, uuid4

import chromadb
import httpx
from fastapi import APIRouter, Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from corpusqa.api.schemas import (
    CollectionReportModel,
    ConversationModel,
    DatasourceListResponse,
    DatasourceModel,
    DatasourceRequest,
    InteractionListResponse,
    InteractionModel,
    MessageResponse,
    ProcessingReportModel,
    ProviderListResponse,
    ProviderModel,
    ProviderRequest,
    QueryRequest,
    QueryResponse,
    SearchRequestModel,
    SearchResponse,
    SearchResultModel,
)
from corpusqa.collector.datasource import create_datasource_from_config, parse_datasource_settings
from corpusqa.collector.manager import Collector, CollectorConfig, DatasourceRegistry
from corpusqa.collector.worker import CollectorWorker, WorkerConfig
from corpusqa.config import Settings, get_settings
from corpusqa.embeddings.factory import embedding_settings_to_dict, parse_embedding_provider_settings
from corpusqa.embeddings.processor import EmbeddingProcessor
from corpusqa.errors import (
    CollectionInProgressError,
    CorpusQAError,
    DatasourceConfigurationError,
    NotFoundError,
    ProviderValidationError,
    UnsupportedProviderError,
)
from corpusqa.interaction.service import InteractionManager
from corpusqa.llm.factory import llm_settings_to_dict, parse_llm_provider_settings
from corpusqa.metrics.observability import bind_correlation_id, clear_correlation_id, configure_logging, get_logger
from corpusqa.models import (
    DatasourceConfig,
    DatasourceStatus,
    DirectorySettings,
    EmbeddingProviderConfig,
    FilterOption,
    Interaction,
    LLMProviderConfig,
    ProviderFilter,
    ProviderStatus,
)
from corpusqa.search.service import SearchRequest, SearchSystem
from corpusqa.storage import ChromaDocumentIndex, InMemoryStorage, Storage

DEFAULT_PER_PAGE = 10


@dataclass(frozen=True)
class AppDependencies:
    storage: Storage
    search_system: SearchSystem
    interaction_manager: InteractionManager
    worker: CollectorWorker
    collector: Collector
    processor: EmbeddingProcessor
    http_client: httpx.Client


def build_dependencies(
    settings: Settings,
    storage: Storage | None = None,
    *,
    http_client: httpx.Client | None = None,
) -> AppDependencies:
    """Wire the services around one storage and one shared provider HTTP client."""

    if storage is None:
        chroma_client = None
        if settings.chroma_host:
            chroma_client = chromadb.HttpClient(
                host=settings.chroma_host,
                port=settings.chroma_port or 8000,
                ssl=settings.chroma_ssl,
            )
        index = ChromaDocumentIndex(
            settings.chroma_collection,
            client=chroma_client,
            persist_directory=None if chroma_client else settings.chroma_persist_dir,
        )
        storage = InMemoryStorage(index)

    timeout = settings.provider_timeout_seconds
    http_client = http_client or httpx.Client(timeout=timeout)
    search_system = SearchSystem(storage, limit=settings.search_limit, timeout=timeout, client=http_client)
    worker = CollectorWorker(
        storage,
        WorkerConfig(
            retry_attempts=settings.collector_retry_attempts,
            retry_delay_seconds=settings.collector_retry_delay_seconds,
        ),
    )
    collector = Collector(
        DatasourceRegistry(storage),
        worker,
        CollectorConfig(
            worker_count=settings.collector_worker_count,
            collection_interval_seconds=settings.collector_interval_seconds,
            refresh_interval_seconds=settings.collector_refresh_interval_seconds,
        ),
    )
    return AppDependencies(
        storage=storage,
        search_system=search_system,
        interaction_manager=InteractionManager(storage, search_system, timeout=timeout, client=http_client),
        worker=worker,
        collector=collector,
        processor=EmbeddingProcessor(storage, timeout=timeout, client=http_client),
        http_client=http_client,
    )


def get_dependencies(request: Request) -> AppDependencies:
    return request.app.state.dependencies


def get_storage(dep: AppDependencies = Depends(get_dependencies)) -> Storage:
    return dep.storage


def get_interaction_manager(dep: AppDependencies = Depends(get_dependencies)) -> InteractionManager:
    return dep.interaction_manager


def _page_args(page: int, per_page: int) -> tuple[int, int]:
    return (page if page >= 1 else 1, per_page if per_page >= 1 else DEFAULT_PER_PAGE)


@dataclass(frozen=True)
class _ProviderKind:
    """Storage operations and settings codecs for one provider kind."""

    name: str
    label: str
    config_cls: type
    parse: Callable[[str, Mapping[str, Any]], object]
    to_dict: Callable[[object], dict[str, Any]]

    def op(self, storage: Storage, action: str) -> Callable[..., Any]:
        return getattr(storage, f"{action}_{self.name}_provider")


EMBEDDING_PROVIDERS = _ProviderKind(
    name="embedding",
    label="Embedding provider",
    config_cls=EmbeddingProviderConfig,
    parse=parse_embedding_provider_settings,
    to_dict=embedding_settings_to_dict,
)
LLM_PROVIDERS = _ProviderKind(
    name="llm",
    label="LLM provider",
    config_cls=LLMProviderConfig,
    parse=parse_llm_provider_settings,
    to_dict=llm_settings_to_dict,
)


def _provider_model(kind: _ProviderKind, config: Any) -> ProviderModel:
    return ProviderModel(
        uuid=config.uuid,
        name=config.name,
        provider=str(config.provider),
        configuration=kind.to_dict(config.configuration),
        status=ProviderStatus(config.status).value,
    )


def _parse_provider_settings(kind: _ProviderKind, payload: ProviderRequest) -> object:
    try:
        return kind.parse(payload.provider, payload.configuration)
    except UnsupportedProviderError as exc:
        raise ProviderValidationError(str(exc)) from exc


def provider_router(prefix: str, kind: _ProviderKind) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[f"{kind.name}-provider"])

    @router.post("", response_model=ProviderModel, status_code=status.HTTP_201_CREATED)
    def create_provider(payload: ProviderRequest, storage: Storage = Depends(get_storage)) -> ProviderModel:
        settings = _parse_provider_settings(kind, payload)
        config = kind.config_cls(
            uuid=uuid4(),
            name=payload.name,
            provider=payload.provider,
            configuration=settings,
            status=ProviderStatus(payload.status or ProviderStatus.INACTIVE.value),
        )
        kind.op(storage, "create")(config)
        return _provider_model(kind, config)

    @router.get("", response_model=ProviderListResponse)
    def list_providers(
        page: int = 1,
        per_page: int = DEFAULT_PER_PAGE,
        status_filter: str = Query(default="", alias="status"),
        storage: Storage = Depends(get_storage),
    ) -> ProviderListResponse:
        page, per_page = _page_args(page, per_page)
        result = getattr(storage, f"get_all_{kind.name}_providers")(
            ProviderFilter(status=status_filter),
            FilterOption(limit=per_page, page=page),
        )
        return ProviderListResponse(
            items=[_provider_model(kind, item) for item in result.items],
            total=result.total,
            page=result.page,
            per_page=result.per_page,
            total_pages=result.total_pages,
        )

    @router.get("/{provider_id}", response_model=ProviderModel)
    def get_provider(provider_id: UUID, storage: Storage = Depends(get_storage)) -> ProviderModel:
        return _provider_model(kind, kind.op(storage, "get")(provider_id))

    @router.put("/{provider_id}", response_model=ProviderModel)
    def update_provider(
        provider_id: UUID,
        payload: ProviderRequest,
        storage: Storage = Depends(get_storage),
    ) -> ProviderModel:
        existing = kind.op(storage, "get")(provider_id)
        settings = _parse_provider_settings(kind, payload)
        config = kind.config_cls(
            uuid=provider_id,
            name=payload.name,
            provider=payload.provider,
            configuration=settings,
            status=ProviderStatus(payload.status) if payload.status else existing.status,
        )
        kind.op(storage, "update")(config)
        return _provider_model(kind, config)

    @router.delete("/{provider_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_provider(provider_id: UUID, storage: Storage = Depends(get_storage)) -> Response:
        kind.op(storage, "delete")(provider_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.put("/{provider_id}/activate", response_model=MessageResponse)
    def activate_provider(provider_id: UUID, storage: Storage = Depends(get_storage)) -> MessageResponse:
        kind.op(storage, "set_active")(provider_id)
        return MessageResponse(message=f"{kind.label} activated successfully")

    @router.put("/{provider_id}/deactivate", response_model=MessageResponse)
    def deactivate_provider(provider_id: UUID, storage: Storage = Depends(get_storage)) -> MessageResponse:
        kind.op(storage, "set_disable")(provider_id)
        return MessageResponse(message=f"{kind.label} deactivated successfully")

    return router


def _interaction_model(interaction: Interaction) -> InteractionModel:
    return InteractionModel(
        uuid=interaction.uuid,
        query=interaction.query,
        conversations=[
            ConversationModel(uuid=turn.uuid, role=turn.role.value, text=turn.text, created_at=turn.created_at)
            for turn in interaction.conversations
        ],
        created_at=interaction.created_at,
    )


def _datasource_model(config: DatasourceConfig) -> DatasourceModel:
    if isinstance(config.settings, DirectorySettings):
        settings = {"path": config.settings.path, "extensions": list(config.settings.extensions)}
    else:
        settings = dict(config.settings)
    return DatasourceModel(
        uuid=config.uuid,
        name=config.name,
        source_type=config.source_type,
        settings=settings,
        state=dict(config.state),
        status=DatasourceStatus(config.status).value,
    )


def _error_response(status_code: int, message: str, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message, "error": error})


def create_app(*, settings: Settings | None = None, dependencies: AppDependencies | None = None) -> FastAPI:
    settings = settings or get_settings()
    deps = dependencies or build_dependencies(settings)

    configure_logging(settings.log_level)
    logger = get_logger("api")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        stop_event = threading.Event()
        threads: list[threading.Thread] = []
        if settings.collector_enabled:
            threads = [
                threading.Thread(target=deps.collector.run_forever, args=(stop_event,), name="collector", daemon=True),
                threading.Thread(
                    target=deps.processor.run_forever,
                    args=(stop_event,),
                    kwargs={
                        "interval_seconds": settings.collector_interval_seconds,
                        "limit": settings.processor_batch_size,
                    },
                    name="embedding-processor",
                    daemon=True,
                ),
            ]
            for thread in threads:
                thread.start()
            logger.info("background.started", threads=[thread.name for thread in threads])
        try:
            yield
        finally:
            stop_event.set()
            for thread in threads:
                thread.join(timeout=10.0)
            deps.http_client.close()

    app = FastAPI(title="corpusqa API", version="0.1.0", lifespan=lifespan)
    app.state.dependencies = deps

    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_allow_origins),
            allow_credentials=settings.cors_allow_credentials,
            allow_methods=list(settings.cors_allow_methods),
            allow_headers=list(settings.cors_allow_headers),
        )

    @app.middleware("http")
    async def add_correlation_id(request: Request, call_next):  # type: ignore[override]
        correlation_id = request.headers.get("X-Request-ID", uuid4().hex)
        request.state.correlation_id = correlation_id
        bind_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            clear_correlation_id()
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        detail = "; ".join(
            f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', '')}" for error in exc.errors()
        )
        logger.warning("request.invalid", path=request.url.path, detail=detail)
        return _error_response(status.HTTP_400_BAD_REQUEST, "Invalid request body", detail)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": str(exc)})

    @app.exception_handler(ProviderValidationError)
    async def handle_provider_validation(request: Request, exc: ProviderValidationError) -> JSONResponse:
        return _error_response(status.HTTP_400_BAD_REQUEST, "Invalid provider settings", str(exc))

    @app.exception_handler(DatasourceConfigurationError)
    async def handle_datasource_configuration(request: Request, exc: DatasourceConfigurationError) -> JSONResponse:
        return _error_response(status.HTTP_400_BAD_REQUEST, "Invalid datasource settings", str(exc))

    @app.exception_handler(CollectionInProgressError)
    async def handle_collection_in_progress(request: Request, exc: CollectionInProgressError) -> JSONResponse:
        return _error_response(status.HTTP_409_CONFLICT, "Collection already running", str(exc))

    @app.exception_handler(CorpusQAError)
    async def handle_corpusqa_error(request: Request, exc: CorpusQAError) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", uuid4().hex)
        logger.error(
            "request.failed",
            correlation_id=correlation_id,
            path=request.url.path,
            error_type=type(exc).__name__,
            detail=str(exc),
        )
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Request failed", str(exc))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", uuid4().hex)
        logger.error(
            "request.unhandled",
            correlation_id=correlation_id,
            path=request.url.path,
            error_type=type(exc).__name__,
            detail=str(exc),
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Internal server error", "error": "unexpected error", "correlation_id": correlation_id},
        )

    app.include_router(provider_router("/embedding-provider", EMBEDDING_PROVIDERS))
    app.include_router(provider_router("/api/v1/llm-provider", LLM_PROVIDERS))

    @app.post("/api/v1/interactions", response_model=InteractionModel)
    def create_interaction(
        payload: QueryRequest,
        manager: InteractionManager = Depends(get_interaction_manager),
    ) -> InteractionModel:
        return _interaction_model(manager.create_interaction(payload.query))

    @app.get("/api/v1/interactions", response_model=InteractionListResponse)
    def list_interactions(
        page: int = 1,
        per_page: int = settings.interactions_per_page,
        manager: InteractionManager = Depends(get_interaction_manager),
    ) -> InteractionListResponse:
        page, per_page = _page_args(page, per_page)
        result = manager.get_interactions(page, per_page)
        return InteractionListResponse(
            items=[_interaction_model(item) for item in result.items],
            total=result.total,
            page=result.page,
            per_page=result.per_page,
            total_pages=result.total_pages,
        )

    @app.get("/api/v1/interactions/{interaction_id}", response_model=InteractionModel)
    def get_interaction(
        interaction_id: UUID,
        manager: InteractionManager = Depends(get_interaction_manager),
    ) -> InteractionModel:
        return _interaction_model(manager.get_interaction(interaction_id))

    @app.post("/api/v1/interactions/{interaction_id}/message", response_model=QueryResponse)
    def send_message(
        interaction_id: UUID,
        payload: QueryRequest,
        manager: InteractionManager = Depends(get_interaction_manager),
    ) -> QueryResponse:
        return QueryResponse(response=manager.send_message(interaction_id, payload.query))

    @app.post("/api/v1/search", response_model=SearchResponse)
    def search(payload: SearchRequestModel, dep: AppDependencies = Depends(get_dependencies)) -> SearchResponse:
        results = dep.search_system.search_document(
            SearchRequest(query=payload.query, status=payload.status, source_type=payload.source_type)
        )
        return SearchResponse(
            documents=[
                SearchResultModel(
                    content_part=row.content_part,
                    content_part_id=row.content_part_id,
                    original_document_uuid=row.original_document_uuid,
                    relevant_score=row.relevant_score,
                )
                for row in results.documents
            ],
            query_text=results.query_text,
            limit=results.limit,
            page=results.page,
            total_pages=results.total_pages,
            total_results=results.total_results,
        )

    @app.post("/api/v1/datasource", response_model=DatasourceModel, status_code=status.HTTP_201_CREATED)
    def create_datasource(payload: DatasourceRequest, storage: Storage = Depends(get_storage)) -> DatasourceModel:
        config = DatasourceConfig(
            uuid=uuid4(),
            name=payload.name,
            source_type=payload.source_type,
            settings=parse_datasource_settings(payload.source_type, payload.settings),
            status=DatasourceStatus(payload.status),
        )
        create_datasource_from_config(config)
        storage.add_datasource(config)
        return _datasource_model(config)

    @app.get("/api/v1/datasource", response_model=DatasourceListResponse)
    def list_datasources(
        page: int = 1,
        per_page: int = DEFAULT_PER_PAGE,
        storage: Storage = Depends(get_storage),
    ) -> DatasourceListResponse:
        page, per_page = _page_args(page, per_page)
        result = storage.get_all_datasources(page, per_page)
        return DatasourceListResponse(
            items=[_datasource_model(item) for item in result.items],
            total=result.total,
            page=result.page,
            per_page=result.per_page,
            total_pages=result.total_pages,
        )

    @app.get("/api/v1/datasource/{datasource_id}", response_model=DatasourceModel)
    def get_datasource(datasource_id: UUID, storage: Storage = Depends(get_storage)) -> DatasourceModel:
        return _datasource_model(storage.get_datasource(datasource_id))

    @app.post("/api/v1/datasource/{datasource_id}/collect", response_model=CollectionReportModel)
    def collect_datasource(
        datasource_id: UUID,
        dep: AppDependencies = Depends(get_dependencies),
    ) -> CollectionReportModel:
        datasource = create_datasource_from_config(dep.storage.get_datasource(datasource_id))
        report = dep.collector.collect(datasource)
        return CollectionReportModel(
            datasource_id=report.datasource_id,
            attempts=report.attempts,
            stored=len(report.stored),
            failed=len(report.failed),
            duration_seconds=report.duration_seconds,
        )

    @app.post("/api/v1/documents/process", response_model=ProcessingReportModel)
    def process_documents(
        limit: int = settings.processor_batch_size,
        dep: AppDependencies = Depends(get_dependencies),
    ) -> ProcessingReportModel:
        report = dep.processor.process_pending(max(limit, 1))
        return ProcessingReportModel(processed=report.processed, failed=report.failed)

    @app.get("/metrics")
    async def metrics() -> Response:
        payload = generate_latest()
        return Response(content=payload, media_type=CONTENT_TYPE_LATEST)

    @app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        from corpusqa import __version__

        return {"status": "ok", "version": __version__, "environment": settings.environment}

    return app


app = create_app()
