"""
Search Contracts - Interfaces for search domain.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from .models import ActivityFilter, LocationExtraction, SearchQuery, SearchResponse


@runtime_checkable
class ActivityStore(Protocol):
    """Document store holding searchable activities."""

    async def vector_search(
        self,
        query_vector: list[float],
        num_candidates: int,
        limit: int,
        filter: ActivityFilter,
    ) -> list[dict[str, Any]]:
        """
        Native similarity search.

        Returns documents carrying a ``relevance_score`` key, best first.

        Raises:
            VectorIndexUnavailableError: No usable vector index
        """
        ...

    async def find(
        self,
        filter: ActivityFilter,
        with_embedding: bool = False,
    ) -> list[dict[str, Any]]:
        """Plain filtered scan."""
        ...


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Text to fixed-length vector."""

    async def embed(self, text: str) -> list[float]:
        """Embed a single text."""
        ...


@runtime_checkable
class EmbeddingCache(Protocol):
    """Contract for query embedding caching."""

    async def get(self, key: str) -> list[float] | None:
        """Get cached vector."""
        ...

    async def set(
        self,
        key: str,
        vector: list[float],
        ttl_seconds: int | None = None,
    ) -> None:
        """Cache a vector."""
        ...

    async def delete(self, key: str) -> None:
        """Remove one entry."""
        ...

    async def clear(self) -> None:
        """Remove every entry."""
        ...


@runtime_checkable
class Geocoder(Protocol):
    """Address string to coordinates."""

    def is_available(self) -> bool:
        """Whether a provider credential is configured."""
        ...

    async def geocode_first(self, address: str, language: str = "en") -> Any:
        """First geocoding match or None."""
        ...


@runtime_checkable
class LocationExtractor(Protocol):
    """Location intent detection over free text."""

    async def analyze(self, query: str) -> LocationExtraction:
        """Extract address and language, or nulls."""
        ...


@runtime_checkable
class SearchEngine(Protocol):
    """Contract for search implementations."""

    async def search(self, query: SearchQuery) -> SearchResponse:
        """Execute search and return ranked, paginated results."""
        ...
