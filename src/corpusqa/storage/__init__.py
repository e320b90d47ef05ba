"""Storage contract and reference implementations."""

from .base import DocumentIndex, Storage
from .index import ChromaDocumentIndex
from .memory import InMemoryStorage

__all__ = ["ChromaDocumentIndex", "DocumentIndex", "InMemoryStorage", "Storage"]
