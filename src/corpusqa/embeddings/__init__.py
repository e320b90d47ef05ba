"""Embedding providers and their factory."""

from .factory import (
    build_embedding_provider,
    initialize_embedding_provider,
    parse_embedding_provider_settings,
)
from .processor import EmbeddingProcessor, ProcessingReport
from .service import EmbeddingProvider, HashEmbeddingProvider, NoOpEmbeddingProvider, OpenAIEmbeddingProvider

__all__ = [
    "EmbeddingProcessor",
    "EmbeddingProvider",
    "HashEmbeddingProvider",
    "NoOpEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "ProcessingReport",
    "build_embedding_provider",
    "initialize_embedding_provider",
    "parse_embedding_provider_settings",
]
