"""
Search Formatting - Ranking, summarising and rendering acquisition results.

Both textbook chunks and web hits end up as plain text inside the
synthesis prompt; this module owns that rendering.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable
from urllib.parse import urlparse

from .models import ChunkResult, WebResult

logger = logging.getLogger(__name__)

__all__ = [
    "EDUCATIONAL_DOMAINS",
    "WebResultCache",
    "categories_for_subject",
    "format_chunks",
    "format_web_results",
    "rank_results",
    "summarize_content",
    "validate_search_url",
]

MAX_SUMMARY_LENGTH = 200

# Ranking boost for trusted learning resources (higher is better)
EDUCATIONAL_DOMAINS: dict[str, float] = {
    "ncert.nic.in": 10,
    "wikipedia.org": 10,
    "khanacademy.org": 9,
    "britannica.com": 8,
    "education.gov": 7,
    "scholarpedia.org": 7,
    "byjus.com": 6,
    "toppr.com": 6,
}

_SCIENCE_SUBJECTS = {"science", "physics", "chemistry", "biology"}
_ART_SUBJECTS = {"art", "drawing", "painting"}
_TRAILING_WORD = re.compile(r"\s+\S*$")


def format_chunks(chunks: list[ChunkResult]) -> str:
    """Render chunks as numbered passages prefixed with their heading path."""
    parts = []
    for i, chunk in enumerate(chunks, 1):
        heading = f" ({' > '.join(chunk.heading_hierarchy)})" if chunk.heading_hierarchy else ""
        parts.append(f"[{i}]{heading}: {chunk.content}")
    return "\n\n".join(parts)


def rank_results(results: list[WebResult]) -> list[WebResult]:
    """Boost educational domains, then sort by score (stable for ties)."""
    boosted = []
    for result in results:
        bonus = 0.0
        for domain, weight in EDUCATIONAL_DOMAINS.items():
            if domain in result.url:
                bonus = weight
                break
        boosted.append(result.model_copy(update={"score": result.score + bonus}))
    return sorted(boosted, key=lambda r: r.score, reverse=True)


def summarize_content(content: str, max_length: int = MAX_SUMMARY_LENGTH) -> str:
    """Truncate on a word boundary, marking the cut with an ellipsis."""
    if not content or len(content) <= max_length:
        return content or ""
    return _TRAILING_WORD.sub("", content[:max_length]) + "..."


def categories_for_subject(subject: str | None) -> list[str]:
    """SearXNG categories suited to the learner's subject."""
    if not subject:
        return ["general"]
    s = subject.lower()
    if s in _SCIENCE_SUBJECTS:
        return ["general", "science"]
    if s in _ART_SUBJECTS:
        return ["general", "images"]
    return ["general"]


def format_web_results(results: list[WebResult], max_results: int = 3) -> str:
    """Rank, truncate and render web hits with source attribution."""
    if not results:
        return "No results found on the web."

    lines = []
    for result in rank_results(results)[:max_results]:
        summary = summarize_content(result.content)
        line = f"- {result.title}"
        if summary:
            line += f": {summary}"
        if result.url:
            line += f" (Source: {result.url})"
        lines.append(line)

    return "Top Web Search Results:\n" + "\n".join(lines)


def validate_search_url(url: str | None) -> tuple[bool, str]:
    """Check a configured search endpoint, returning (valid, guidance)."""
    if not url:
        return False, (
            "SEARXNG_URL is not configured. To enable web search: install SearXNG "
            "(https://docs.searxng.org/admin/installation.html), set SEARXNG_URL in .env "
            "(e.g. SEARXNG_URL=http://localhost:8080) and restart the service."
        )

    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False, f'SEARXNG_URL "{url}" is not a valid URL (e.g. http://localhost:8080).'

    return True, "Search configuration is valid."


class WebResultCache:
    """Short-lived cache of raw web results keyed by normalized query."""

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        max_size: int = 256,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._max_size = max_size
        self._clock = clock
        self._entries: dict[str, tuple[float, list[WebResult]]] = {}

    def get(self, query: str) -> list[WebResult] | None:
        key = query.lower().strip()
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, results = entry
        if self._clock() - stored_at > self._ttl:
            del self._entries[key]
            return None
        return results

    def set(self, query: str, results: list[WebResult]) -> None:
        key = query.lower().strip()
        if key not in self._entries and len(self._entries) >= self._max_size:
            self._evict()
        self._entries[key] = (self._clock(), results)

    def _evict(self) -> None:
        """Drop expired entries, then the oldest tenth if still full."""
        now = self._clock()
        for key in [k for k, (stored_at, _) in self._entries.items() if now - stored_at > self._ttl]:
            del self._entries[key]
        if len(self._entries) < self._max_size:
            return

        oldest = sorted(self._entries, key=lambda k: self._entries[k][0])
        for key in oldest[: max(1, len(oldest) // 10)]:
            del self._entries[key]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
