"""
Supabase Chunk Store - Curriculum similarity search over PostgREST.

Queries are embedded through the model endpoint and matched by the
`match_chapter_chunks` database function, which filters by subject, grade
and chapter when those are given.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from gyanu.adapters.ollama.client import OllamaClient
from gyanu.config.errors import ConfigurationError, RetrievalError
from gyanu.domains.search.models import ChunkResult, SearchFilters

logger = logging.getLogger(__name__)

__all__ = ["SupabaseChunkStore"]

MATCH_FUNCTION = "match_chapter_chunks"


class SupabaseChunkStore:
    """
    Vector search against chapter chunks stored in Supabase.

    Example:
        >>> store = SupabaseChunkStore(url, key, embedder=ollama, embedding_model="nomic-embed-text")
        >>> chunks = await store.search("photosynthesis", 5, SearchFilters(grade=7))
    """

    def __init__(
        self,
        url: str | None,
        key: str | None,
        embedder: OllamaClient,
        embedding_model: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not url or not key:
            raise ConfigurationError(
                "Supabase URL and key are required for curriculum retrieval",
                {"settings": ["SUPABASE_URL", "SUPABASE_KEY"]},
            )
        self.url = url.rstrip("/")
        self._key = key
        self._embedder = embedder
        self._embedding_model = embedding_model
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=f"{self.url}/rest/v1",
                timeout=self._timeout,
                headers={
                    "apikey": self._key,
                    "Authorization": f"Bearer {self._key}",
                },
                transport=self._transport,
            )
        return self._client

    async def search(
        self,
        query: str,
        top_k: int,
        filters: SearchFilters,
    ) -> list[ChunkResult]:
        """
        Find the chunks most similar to a query.

        Raises:
            RetrievalError: Embedding or RPC failed
        """
        try:
            embedding = await self._embedder.embed(self._embedding_model, query)
        except Exception as e:
            raise RetrievalError(f"Query embedding failed: {e}") from e

        payload: dict[str, Any] = {
            "query_embedding": embedding,
            "match_count": top_k,
            "filter_subject": filters.subject,
            "filter_grade": filters.grade,
            "filter_chapter": filters.chapter,
        }

        client = await self._get_client()
        try:
            response = await client.post(f"/rpc/{MATCH_FUNCTION}", json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise RetrievalError(f"{MATCH_FUNCTION} failed: {e}") from e

        rows = response.json() or []
        logger.debug("Similarity search returned %d chunks for %r", len(rows), query[:50])
        return [
            ChunkResult(
                id=str(row["id"]) if row.get("id") is not None else None,
                content=row.get("content", ""),
                heading_hierarchy=row.get("heading_hierarchy") or [],
                similarity=row.get("similarity", 0.0),
                subject=row.get("subject"),
                grade=row.get("grade"),
                chapter=row.get("chapter"),
            )
            for row in rows
        ]

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
