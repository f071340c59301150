"""
SearXNG Client - Web search with a DuckDuckGo instant-answer fallback.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from gyanu.config.errors import WebSearchError
from gyanu.domains.search.models import WebResult

logger = logging.getLogger(__name__)

__all__ = ["SearXNGClient"]

DUCKDUCKGO_URL = "https://api.duckduckgo.com/"


class SearXNGClient:
    """
    Web search against a SearXNG instance.

    When SearXNG errors and the fallback is enabled, the DuckDuckGo instant
    answer API is queried instead.

    Example:
        >>> client = SearXNGClient("http://localhost:8080")
        >>> results = await client.search("monsoon 2024", ["general"])
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        duckduckgo_fallback: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.duckduckgo_fallback = duckduckgo_fallback
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={"Accept": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def search(
        self,
        query: str,
        categories: list[str] | None = None,
    ) -> list[WebResult]:
        """
        Search the web.

        Raises:
            WebSearchError: SearXNG failed and no fallback succeeded
        """
        try:
            return await self._search_searxng(query, categories or ["general"])
        except httpx.HTTPError as e:
            if not self.duckduckgo_fallback:
                raise WebSearchError(f"SearXNG search failed: {e}") from e
            logger.warning("SearXNG failed, falling back to DuckDuckGo: %s", e)

        try:
            return await self._search_duckduckgo(query)
        except httpx.HTTPError as e:
            raise WebSearchError(f"DuckDuckGo search failed: {e}") from e

    async def _search_searxng(self, query: str, categories: list[str]) -> list[WebResult]:
        client = await self._get_client()
        response = await client.get(
            f"{self.base_url}/search",
            params={"q": query, "format": "json", "categories": ",".join(categories)},
        )
        response.raise_for_status()

        data: dict[str, Any] = response.json()
        return [
            WebResult(
                title=item.get("title") or "",
                content=item.get("content") or "",
                url=item.get("url") or "",
            )
            for item in data.get("results", [])
        ]

    async def _search_duckduckgo(self, query: str) -> list[WebResult]:
        client = await self._get_client()
        response = await client.get(
            DUCKDUCKGO_URL,
            params={"q": query, "format": "json", "no_html": "1"},
        )
        response.raise_for_status()

        data: dict[str, Any] = response.json()
        results: list[WebResult] = []

        if data.get("AbstractText"):
            results.append(
                WebResult(
                    title=data.get("Heading") or query,
                    content=data["AbstractText"],
                    url=data.get("AbstractURL") or "",
                )
            )

        for topic in data.get("RelatedTopics", [])[:4]:
            text = topic.get("Text")
            url = topic.get("FirstURL")
            if text and url:
                results.append(WebResult(title=text[:100], content=text, url=url))

        return results

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
