"""
Tests for embedding cache.
"""

from __future__ import annotations

import pytest

from .cache import EmbeddingCacheImpl, create_cache_key, normalize_text


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> EmbeddingCacheImpl:
    return EmbeddingCacheImpl(clock=clock)


# --- Keys ---


def test_normalize_text() -> None:
    assert normalize_text("  Teach \t Kids\n\nProgramming  ") == "teach kids programming"


def test_cache_key_format() -> None:
    assert create_cache_key("a") == "embedding:2p"
    assert create_cache_key("ab") == "embedding:2e9"


def test_cache_key_uses_normalized_text() -> None:
    assert create_cache_key("  Volunteer   IN Paris ") == create_cache_key("volunteer in paris")
    assert create_cache_key("volunteer in paris") != create_cache_key("volunteer in lyon")


def test_cache_key_wraps_to_signed_32_bits() -> None:
    key = create_cache_key("a long query that overflows a thirty-two bit accumulator")
    value = int(key.removeprefix("embedding:"), 36)
    assert -(2**31) <= value < 2**31


# --- TTL behavior ---


async def test_set_then_get(cache: EmbeddingCacheImpl) -> None:
    await cache.set("k", [0.1, 0.2], ttl_seconds=1)
    assert await cache.get("k") == [0.1, 0.2]


async def test_expired_entry_is_removed(cache: EmbeddingCacheImpl, clock: FakeClock) -> None:
    await cache.set("k", [0.1, 0.2], ttl_seconds=1)

    clock.advance(1.5)

    assert await cache.get("k") is None
    assert len(cache) == 0


async def test_entry_valid_at_exact_expiry(cache: EmbeddingCacheImpl, clock: FakeClock) -> None:
    await cache.set("k", [1.0], ttl_seconds=10)
    clock.advance(10)
    assert await cache.get("k") == [1.0]


async def test_default_ttl_applies(clock: FakeClock) -> None:
    cache = EmbeddingCacheImpl(default_ttl=5, clock=clock)
    await cache.set("k", [1.0])

    clock.advance(6)

    assert await cache.get("k") is None


async def test_no_ttl_never_expires(cache: EmbeddingCacheImpl, clock: FakeClock) -> None:
    await cache.set("k", [1.0])
    clock.advance(10**9)
    assert await cache.get("k") == [1.0]


async def test_set_overwrites(cache: EmbeddingCacheImpl) -> None:
    await cache.set("k", [1.0])
    await cache.set("k", [2.0])
    assert await cache.get("k") == [2.0]


async def test_get_returns_a_copy(cache: EmbeddingCacheImpl) -> None:
    await cache.set("k", [1.0, 2.0])

    vector = await cache.get("k")
    vector.append(3.0)
    vector[0] = 9.0

    assert await cache.get("k") == [1.0, 2.0]


async def test_missing_key(cache: EmbeddingCacheImpl) -> None:
    assert await cache.get("nope") is None


async def test_delete_and_clear(cache: EmbeddingCacheImpl) -> None:
    await cache.set("a", [1.0])
    await cache.set("b", [2.0])

    await cache.delete("a")
    await cache.delete("a")
    assert await cache.get("a") is None
    assert len(cache) == 1

    await cache.clear()
    assert len(cache) == 0


async def test_stats_track_hits(cache: EmbeddingCacheImpl) -> None:
    await cache.set("k", [1.0])
    await cache.get("k")
    await cache.get("k")

    stats = cache.stats()

    assert stats["size"] == 1
    assert stats["total_hits"] == 2
