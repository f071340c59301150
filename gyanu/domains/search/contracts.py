"""
Search Contracts - Interfaces for knowledge acquisition collaborators.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from .models import ChunkResult, SearchFilters, WebResult


@runtime_checkable
class SimilaritySearch(Protocol):
    """Contract for curriculum vector search."""

    async def search(
        self,
        query: str,
        top_k: int,
        filters: SearchFilters,
    ) -> list[ChunkResult]:
        """Return the top_k chunks most similar to query within filters."""
        ...


@runtime_checkable
class WebSearchEngine(Protocol):
    """Contract for web search implementations."""

    async def search(
        self,
        query: str,
        categories: list[str] | None = None,
    ) -> list[WebResult]:
        """Execute a web search and return unranked results."""
        ...
