"""Interactions and the retrieval-augmented message flow."""

from .service import InteractionManager

__all__ = ["InteractionManager"]
