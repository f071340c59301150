"""
Response Cache - In-memory caching of model responses with TTL support.

Keys are partitioned by model role and scope so identical questions asked
in different chapters (or conversations) never share an answer.
"""

from __future__ import annotations

import hashlib
import logging
import re
import time
from collections.abc import Callable
from typing import Any

from .models import CacheEntry, ModelRole

logger = logging.getLogger(__name__)

__all__ = ["ResponseCacheImpl", "normalize_query", "generate_key"]

_WHITESPACE = re.compile(r"\s+")


def normalize_query(query: str) -> str:
    """Trim, case-fold and collapse internal whitespace."""
    return _WHITESPACE.sub(" ", query.strip().casefold())


def generate_key(role: ModelRole | str, scope: str, query: str) -> str:
    """Deterministic cache key for (role, scope, normalized query)."""
    role_name = role.value if isinstance(role, ModelRole) else role
    digest = hashlib.sha256(normalize_query(query).encode()).hexdigest()[:32]
    return f"{role_name}:{scope}:{digest}"


class ResponseCacheImpl:
    """
    In-memory response cache with TTL.

    Features:
    - Lazy TTL expiration on read
    - Regex and prefix invalidation
    - Oldest-first eviction at capacity
    - Hit tracking for analytics
    """

    def __init__(
        self,
        max_size: int = 1000,
        default_ttl: int = 3600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize cache.

        Args:
            max_size: Maximum number of cached entries
            default_ttl: Default TTL in seconds
            clock: Time source in seconds
        """
        self._cache: dict[str, CacheEntry] = {}
        self._max_size = max_size
        self._default_ttl = default_ttl
        self._clock = clock
        self._hits = 0
        self._misses = 0

    async def get(self, key: str) -> Any | None:
        """Get cached value if present and not expired."""
        entry = self._cache.get(key)
        if entry is None:
            self._misses += 1
            return None

        if self._clock() > entry.expires_at:
            del self._cache[key]
            self._misses += 1
            logger.debug("Cache entry expired: %s", key)
            return None

        entry.hit_count += 1
        self._hits += 1
        logger.debug("Cache hit: %s (hits: %d)", key, entry.hit_count)
        return entry.value

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """Cache a value. A TTL of zero or less stores nothing and drops any existing entry."""
        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            self._cache.pop(key, None)
            return

        if key not in self._cache and len(self._cache) >= self._max_size:
            self._evict_oldest()

        now = self._clock()
        self._cache[key] = CacheEntry(
            key=key,
            value=value,
            created_at=now,
            expires_at=now + ttl,
        )
        logger.debug("Cached response: %s (TTL: %ds)", key, ttl)

    async def delete(self, key: str) -> bool:
        return self._cache.pop(key, None) is not None

    async def invalidate(self, pattern: str) -> int:
        """Invalidate cache entries matching a regex pattern."""
        regex = re.compile(pattern)
        keys_to_delete = [k for k in self._cache if regex.search(k)]

        for key in keys_to_delete:
            del self._cache[key]

        logger.info("Invalidated %d cache entries matching: %s", len(keys_to_delete), pattern)
        return len(keys_to_delete)

    async def invalidate_prefix(self, prefix: str) -> int:
        """Invalidate every entry whose key starts with prefix."""
        keys_to_delete = [k for k in self._cache if k.startswith(prefix)]

        for key in keys_to_delete:
            del self._cache[key]

        logger.info("Invalidated %d cache entries with prefix: %s", len(keys_to_delete), prefix)
        return len(keys_to_delete)

    async def clear(self) -> None:
        """Clear all cache entries."""
        count = len(self._cache)
        self._cache.clear()
        logger.info("Cleared %d cache entries", count)

    def _evict_oldest(self) -> None:
        """Evict the oldest 10% of entries to make room."""
        if not self._cache:
            return

        sorted_keys = sorted(self._cache, key=lambda k: self._cache[k].created_at)
        evict_count = max(1, len(sorted_keys) // 10)

        for key in sorted_keys[:evict_count]:
            del self._cache[key]

        logger.debug("Evicted %d oldest cache entries", evict_count)

    def stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        now = self._clock()
        by_role: dict[str, int] = {}
        expired = 0
        for key, entry in self._cache.items():
            role = key.split(":", 1)[0]
            by_role[role] = by_role.get(role, 0) + 1
            if now > entry.expires_at:
                expired += 1

        lookups = self._hits + self._misses
        return {
            "size": len(self._cache),
            "max_size": self._max_size,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / lookups, 3) if lookups else 0.0,
            "expired": expired,
            "by_role": by_role,
        }
