"""
Embedding Cache - In-memory query embedding cache with TTL support.

Avoids repeated embedding provider calls for identical (normalized)
query text. One instance is created at startup and injected into the
search orchestrator.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel

logger = logging.getLogger(__name__)

__all__ = ["CachedEmbedding", "EmbeddingCacheImpl", "create_cache_key", "normalize_text"]

_WHITESPACE = re.compile(r"\s+")


class CachedEmbedding(BaseModel):
    """Cached query embedding."""

    key: str
    vector: list[float]
    created_at: float
    expires_at: float | None = None
    hit_count: int = 0


def normalize_text(text: str) -> str:
    """Trim, collapse whitespace runs, lower-case."""
    return _WHITESPACE.sub(" ", text.strip()).lower()


def _to_base36(value: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    value = abs(value)
    out = []
    while value:
        value, rem = divmod(value, 36)
        out.append(digits[rem])
    return sign + "".join(reversed(out))


def create_cache_key(text: str) -> str:
    """
    Derive a cache key from normalized query text.

    Uses a 32-bit rolling string hash (``h = h * 31 + ord(c)``), not a
    cryptographic digest. Two different normalized texts can collide and
    would then share a cached vector.
    """
    h = 0
    for char in normalize_text(text):
        h = (h * 31 + ord(char)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return f"embedding:{_to_base36(h)}"


class EmbeddingCacheImpl:
    """
    In-memory embedding cache with lazy TTL expiration.

    Features:
    - Expired entries removed on read (no background sweep)
    - Entries without TTL never expire
    - Hit tracking for diagnostics
    """

    def __init__(
        self,
        default_ttl: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize cache.

        Args:
            default_ttl: TTL in seconds applied when ``set`` gets none
            clock: Monotonic time source in seconds
        """
        self._cache: dict[str, CachedEmbedding] = {}
        self._default_ttl = default_ttl
        self._clock = clock

    async def get(self, key: str) -> list[float] | None:
        """Get cached vector if present and not expired."""
        entry = self._cache.get(key)
        if entry is None:
            return None

        if entry.expires_at is not None and self._clock() > entry.expires_at:
            # Another writer may have replaced it since the lookup
            if self._cache.get(key) is entry:
                del self._cache[key]
            logger.debug("Embedding cache entry expired: %s", key)
            return None

        entry.hit_count += 1
        logger.debug("Embedding cache hit: %s (hits: %d)", key, entry.hit_count)
        return list(entry.vector)

    async def set(
        self,
        key: str,
        vector: list[float],
        ttl_seconds: int | None = None,
    ) -> None:
        """Cache a vector, overwriting any previous entry."""
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        now = self._clock()

        self._cache[key] = CachedEmbedding(
            key=key,
            vector=list(vector),
            created_at=now,
            expires_at=now + ttl if ttl else None,
        )

        logger.debug("Cached embedding: %s (TTL: %s)", key, ttl)

    async def delete(self, key: str) -> None:
        """Remove one entry if present."""
        self._cache.pop(key, None)

    async def clear(self) -> None:
        """Clear all cache entries."""
        count = len(self._cache)
        self._cache.clear()
        logger.info("Cleared %d embedding cache entries", count)

    def __len__(self) -> int:
        return len(self._cache)

    def stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        return {
            "size": len(self._cache),
            "total_hits": sum(e.hit_count for e in self._cache.values()),
            "default_ttl": self._default_ttl,
        }
