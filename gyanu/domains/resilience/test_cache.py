"""
Tests for the response cache and key generation.
"""

from __future__ import annotations

import pytest

from .cache import ResponseCacheImpl, generate_key, normalize_query
from .models import ModelRole


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> ResponseCacheImpl:
    return ResponseCacheImpl(max_size=10, default_ttl=3600, clock=clock)


# --- Keys ---


def test_normalize_query() -> None:
    """Test trimming, case-folding and whitespace collapsing."""
    assert normalize_query("  What IS\n\tPhotosynthesis?  ") == "what is photosynthesis?"


def test_key_ignores_formatting_differences() -> None:
    """Test equivalent queries share a key."""
    a = generate_key(ModelRole.SYNTHESIS, "chapter:7", "What is light?")
    b = generate_key("synthesis", "chapter:7", "  what is   LIGHT? ")
    assert a == b
    assert a.startswith("synthesis:chapter:7:")


def test_key_partitions_by_role_and_scope() -> None:
    """Test role and scope produce distinct keys."""
    base = generate_key(ModelRole.ROUTER, "global", "light")
    assert generate_key(ModelRole.REASONER, "global", "light") != base
    assert generate_key(ModelRole.ROUTER, "chapter:3", "light") != base


# --- Get / Set ---


async def test_set_then_get(cache: ResponseCacheImpl) -> None:
    """Test a stored value is returned before expiry."""
    await cache.set("router:global:abc", "value", ttl_seconds=60)
    assert await cache.get("router:global:abc") == "value"


async def test_get_missing_returns_none(cache: ResponseCacheImpl) -> None:
    assert await cache.get("nope") is None


async def test_entry_expires_after_ttl(cache: ResponseCacheImpl, clock: FakeClock) -> None:
    """Test entries are evicted lazily once past their TTL."""
    await cache.set("k", "v", ttl_seconds=60)
    clock.now = 60.0
    assert await cache.get("k") == "v"

    clock.now = 60.5
    assert await cache.get("k") is None
    assert cache.stats()["size"] == 0


async def test_default_ttl_used(cache: ResponseCacheImpl, clock: FakeClock) -> None:
    await cache.set("k", "v")
    clock.now = 3599.0
    assert await cache.get("k") == "v"
    clock.now = 3601.0
    assert await cache.get("k") is None


async def test_zero_ttl_is_not_replaced_by_default(cache: ResponseCacheImpl) -> None:
    """Test an explicit zero TTL skips caching instead of using the default."""
    await cache.set("k", "old")
    await cache.set("k", "new", ttl_seconds=0)

    assert await cache.get("k") is None
    assert cache.stats()["size"] == 0


async def test_eviction_at_capacity(clock: FakeClock) -> None:
    """Test the oldest entry goes first when the cache is full."""
    cache = ResponseCacheImpl(max_size=3, clock=clock)
    for i in range(3):
        clock.now = float(i)
        await cache.set(f"k{i}", i)

    clock.now = 10.0
    await cache.set("k3", 3)

    assert await cache.get("k0") is None
    assert await cache.get("k3") == 3
    assert cache.stats()["size"] == 3


# --- Invalidation ---


async def test_invalidate_prefix(cache: ResponseCacheImpl) -> None:
    """Test dropping every entry in one chapter scope."""
    await cache.set(generate_key("synthesis", "chapter:1", "a"), "a")
    await cache.set(generate_key("reasoner", "chapter:1", "b"), "b")
    await cache.set(generate_key("synthesis", "chapter:2", "c"), "c")

    removed = await cache.invalidate(r"^\w+:chapter:1:")
    assert removed == 2

    removed = await cache.invalidate_prefix("synthesis:chapter:2:")
    assert removed == 1
    assert cache.stats()["size"] == 0


async def test_delete_and_clear(cache: ResponseCacheImpl) -> None:
    await cache.set("a", 1)
    await cache.set("b", 2)

    assert await cache.delete("a") is True
    assert await cache.delete("a") is False

    await cache.clear()
    assert await cache.get("b") is None


async def test_stats_by_role(cache: ResponseCacheImpl) -> None:
    """Test stats count entries per role and track hits."""
    await cache.set(generate_key("router", "global", "x"), "r")
    await cache.set(generate_key("synthesis", "global", "x"), "s")
    await cache.get(generate_key("router", "global", "x"))
    await cache.get("missing")

    stats = cache.stats()
    assert stats["by_role"] == {"router": 1, "synthesis": 1}
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["hit_rate"] == 0.5
