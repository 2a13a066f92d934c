"""
Location-Aware Search - Orchestrates one search call end to end.

Stages run once, in order:
EMBED -> RESOLVE_LOCATION -> RETRIEVE_CANDIDATES -> RANK -> PAGINATE -> DONE

Each stage transition is logged with ``extra={"search_event": <stage>, ...}``.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from .cache import EmbeddingCacheImpl, create_cache_key
from .location_analyzer import has_valid_location
from .models import (
    DEFAULT_MAX_DISTANCE_METERS,
    DetectedLocation,
    LocationMode,
    LocationResolution,
    SearchMetadata,
    SearchQuery,
    SearchResponse,
)
from .ranker import DEFAULT_PROXIMITY_WEIGHT, DEFAULT_RELEVANCE_WEIGHT, GeoProximityRanker
from .retriever import VectorCandidateRetriever

if TYPE_CHECKING:
    from actionatlas.config import Settings

    from .contracts import (
        ActivityStore,
        EmbeddingCache,
        EmbeddingProvider,
        Geocoder,
        LocationExtractor,
    )

logger = logging.getLogger(__name__)

__all__ = ["LocationAwareSearch", "SearchSettings"]


class SearchSettings(BaseModel):
    """Tuning knobs for the search orchestrator."""

    default_num_candidates: int = Field(default=100, ge=1)
    nearby_pool_size: int = Field(default=500, ge=1)
    default_max_distance_meters: float = Field(default=DEFAULT_MAX_DISTANCE_METERS, gt=0)
    relevance_weight: float = Field(default=DEFAULT_RELEVANCE_WEIGHT, ge=0)
    proximity_weight: float = Field(default=DEFAULT_PROXIMITY_WEIGHT, ge=0)
    auto_detect_location: bool = True
    embedding_cache_ttl_seconds: int = Field(default=30 * 24 * 60 * 60, ge=1)

    model_config = {"frozen": True}

    @classmethod
    def from_settings(cls, settings: Settings) -> SearchSettings:
        """Project the search section of application settings."""
        return cls(
            default_num_candidates=settings.search_default_num_candidates,
            nearby_pool_size=settings.search_nearby_pool_size,
            default_max_distance_meters=settings.search_default_max_distance_meters,
            relevance_weight=settings.search_relevance_weight,
            proximity_weight=settings.search_proximity_weight,
            auto_detect_location=settings.search_auto_detect_location,
            embedding_cache_ttl_seconds=settings.embedding_cache_ttl_seconds,
        )


def _elapsed_ms(start: float) -> int:
    return int(round((time.perf_counter() - start) * 1000))


class LocationAwareSearch:
    """
    Semantic search with optional geographic re-ranking.

    Example:
        >>> search = LocationAwareSearch(embedder, EmbeddingCacheImpl(), repo)
        >>> response = await search.search(SearchQuery(query="volunteer in Paris"))
        >>> response.metadata.detected_location.formatted_address
        'Paris, France'
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        cache: EmbeddingCache | None,
        store: ActivityStore,
        location_analyzer: LocationExtractor | None = None,
        geocoder: Geocoder | None = None,
        settings: SearchSettings | None = None,
    ) -> None:
        """
        Initialize search.

        Args:
            embedder: Query embedding provider
            cache: Query embedding cache (a fresh in-memory cache if None)
            store: Activity store used for retrieval
            location_analyzer: Location intent extractor (auto-detection is off without it)
            geocoder: Address geocoder (auto-detection is off without it)
            settings: Pool sizes, weights and defaults
        """
        self._settings = settings or SearchSettings()
        self._embedder = embedder
        self._cache = cache if cache is not None else EmbeddingCacheImpl()
        self._retriever = VectorCandidateRetriever(store)
        self._ranker = GeoProximityRanker(
            relevance_weight=self._settings.relevance_weight,
            proximity_weight=self._settings.proximity_weight,
        )
        self._analyzer = location_analyzer
        self._geocoder = geocoder

    @property
    def settings(self) -> SearchSettings:
        return self._settings

    async def search(self, query: SearchQuery) -> SearchResponse:
        """
        Execute a location-aware search.

        Args:
            query: Validated search request

        Returns:
            Ranked page of results with per-stage timings

        Raises:
            ConfigurationError: Embedding provider has no credential
            EmbeddingError: Query could not be embedded
            VectorLengthError: Stored embedding length differs from the query's
        """
        start = time.perf_counter()

        # EMBED
        stage_start = time.perf_counter()
        query_vector, cached = await self._embed(query.query)
        embedding_ms = _elapsed_ms(stage_start)
        logger.info(
            "Query embedded (cached=%s) in %dms",
            cached,
            embedding_ms,
            extra={"search_event": "embed", "cached": cached, "duration_ms": embedding_ms},
        )

        # RESOLVE_LOCATION
        resolution, analysis_ms, geocoding_ms = await self._resolve_location(query)
        logger.info(
            "Location mode: %s",
            resolution.mode.value,
            extra={
                "search_event": "resolve_location",
                "location_mode": resolution.mode.value,
                "formatted_address": resolution.formatted_address,
                "location_analysis_ms": analysis_ms,
                "geocoding_ms": geocoding_ms,
            },
        )

        # RETRIEVE_CANDIDATES
        page_end = query.offset + query.limit
        if resolution.is_resolved:
            pool_size = max(self._settings.nearby_pool_size, page_end)
        else:
            pool_size = page_end
        num_candidates = max(
            query.num_candidates or self._settings.default_num_candidates, pool_size
        )

        stage_start = time.perf_counter()
        retrieval = await self._retriever.retrieve(
            query_vector,
            limit=pool_size,
            num_candidates=num_candidates,
            filter=query.filter,
            full_pool=resolution.is_resolved,
        )
        vector_search_ms = _elapsed_ms(stage_start)
        logger.info(
            "Retrieved %d candidates via %s search in %dms",
            len(retrieval.candidates),
            retrieval.strategy.value,
            vector_search_ms,
            extra={
                "search_event": "retrieve",
                "strategy": retrieval.strategy.value,
                "pool_size": pool_size,
                "num_candidates": num_candidates,
                "candidates": len(retrieval.candidates),
                "duration_ms": vector_search_ms,
            },
        )

        # RANK
        post_start = time.perf_counter()
        geo_near_ms: int | None = None
        if resolution.is_resolved and retrieval.candidates:
            stage_start = time.perf_counter()
            ranked = self._ranker.rank(
                retrieval.candidates,
                latitude=resolution.latitude,
                longitude=resolution.longitude,
                max_distance_meters=resolution.max_distance_meters,
            )
            geo_near_ms = _elapsed_ms(stage_start)
            geo_ranked = True
        else:
            ranked = [
                c.model_copy(update={"final_score": c.relevance_score})
                for c in retrieval.candidates
            ]
            geo_ranked = False
        logger.info(
            "Ranked %d candidates (geo=%s)",
            len(ranked),
            geo_ranked,
            extra={"search_event": "rank", "geo_ranked": geo_ranked, "candidates": len(ranked)},
        )

        # PAGINATE
        results = ranked[query.offset : page_end]
        post_processing_ms = _elapsed_ms(post_start)
        logger.info(
            "Page [%d:%d] of %d",
            query.offset,
            page_end,
            len(ranked),
            extra={
                "search_event": "paginate",
                "offset": query.offset,
                "limit": query.limit,
                "total": len(ranked),
                "returned": len(results),
            },
        )

        # DONE
        detected: DetectedLocation | None = None
        if resolution.mode == LocationMode.AUTO_DETECTED:
            detected = DetectedLocation(
                formatted_address=resolution.formatted_address or "",
                coordinates=(resolution.longitude, resolution.latitude),
            )

        metadata = SearchMetadata(
            embedding_ms=embedding_ms,
            vector_search_ms=vector_search_ms,
            post_processing_ms=post_processing_ms,
            location_analysis_ms=analysis_ms,
            geocoding_ms=geocoding_ms,
            geo_near_ms=geo_near_ms,
            detected_location=detected,
            location_mode=resolution.mode,
            cached_embedding=cached,
            vector_search_strategy=retrieval.strategy,
        )
        execution_time_ms = _elapsed_ms(start)
        logger.info(
            "Search completed in %dms: %d results of %d",
            execution_time_ms,
            len(results),
            len(ranked),
            extra={
                "search_event": "done",
                "execution_time_ms": execution_time_ms,
                "total": len(ranked),
                "returned": len(results),
            },
        )

        return SearchResponse(
            results=results,
            total=len(ranked),
            execution_time_ms=execution_time_ms,
            metadata=metadata,
        )

    async def _embed(self, text: str) -> tuple[list[float], bool]:
        """Cached query embedding. Returns (vector, cache_hit)."""
        key = create_cache_key(text)
        vector = await self._cache.get(key)
        if vector is not None:
            return vector, True

        vector = await self._embedder.embed(text)
        await self._cache.set(key, vector, ttl_seconds=self._settings.embedding_cache_ttl_seconds)
        return vector, False

    def _auto_detect_enabled(self, query: SearchQuery) -> bool:
        if not (query.auto_detect_location and self._settings.auto_detect_location):
            return False
        if self._analyzer is None or self._geocoder is None:
            return False
        return self._geocoder.is_available()

    async def _resolve_location(
        self, query: SearchQuery
    ) -> tuple[LocationResolution, int | None, int | None]:
        """
        Decide the search location.

        Precedence: explicit, auto-detected, fallback, none.

        Returns:
            (resolution, location_analysis_ms, geocoding_ms)
        """
        if query.location is not None:
            return (
                LocationResolution(
                    mode=LocationMode.EXPLICIT,
                    latitude=query.location.latitude,
                    longitude=query.location.longitude,
                    max_distance_meters=query.location.max_distance_meters,
                ),
                None,
                None,
            )

        analysis_ms: int | None = None
        geocoding_ms: int | None = None

        if self._auto_detect_enabled(query):
            stage_start = time.perf_counter()
            extraction = await self._analyzer.analyze(query.query)
            analysis_ms = _elapsed_ms(stage_start)

            if has_valid_location(extraction):
                stage_start = time.perf_counter()
                try:
                    match = await self._geocoder.geocode_first(
                        extraction.formatted_address, extraction.language
                    )
                except Exception as e:
                    logger.warning(
                        "Geocoding '%s' failed, continuing without it: %s",
                        extraction.formatted_address,
                        e,
                    )
                    match = None
                geocoding_ms = _elapsed_ms(stage_start)

                if match is not None:
                    return (
                        LocationResolution(
                            mode=LocationMode.AUTO_DETECTED,
                            latitude=match.latitude,
                            longitude=match.longitude,
                            max_distance_meters=self._settings.default_max_distance_meters,
                            formatted_address=match.formatted_address,
                        ),
                        analysis_ms,
                        geocoding_ms,
                    )

        if query.fallback_location is not None:
            return (
                LocationResolution(
                    mode=LocationMode.FALLBACK,
                    latitude=query.fallback_location.latitude,
                    longitude=query.fallback_location.longitude,
                    max_distance_meters=query.fallback_location.max_distance_meters,
                ),
                analysis_ms,
                geocoding_ms,
            )

        return LocationResolution(), analysis_ms, geocoding_ms

