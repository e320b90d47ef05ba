"""Query embedding and similarity search."""

from .service import SearchRequest, SearchSystem

__all__ = ["SearchRequest", "SearchSystem"]
