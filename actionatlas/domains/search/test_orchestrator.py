"""
Tests for the location-aware search orchestrator.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError

from actionatlas.adapters.google_maps import GeocodingResult
from actionatlas.config import Settings
from actionatlas.config.errors import (
    GeocodingError,
    SearchValidationError,
    VectorIndexUnavailableError,
)

from .cache import EmbeddingCacheImpl, create_cache_key
from .models import (
    ActivityFilter,
    GeoPoint,
    LocationExtraction,
    LocationMode,
    SearchQuery,
    VectorSearchStrategy,
)
from .orchestrator import LocationAwareSearch, SearchSettings
from .retriever import cosine_similarity

PARIS = GeocodingResult(latitude=48.8566, longitude=2.3522, formatted_address="Paris, France")

DOCUMENTS: list[dict[str, Any]] = [
    {
        "activity_id": "code-lyon",
        "title": "Coding club in Lyon",
        "embedding": [0.9, 0.1, 0.0],
        "geolocations": [{"coordinates": [4.8357, 45.7640]}],
    },
    {
        "activity_id": "code-paris",
        "title": "Teach kids programming in Paris",
        "embedding": [0.8, 0.3, 0.0],
        "location": {"coordinates": {"type": "Point", "coordinates": [2.3488, 48.8534]}},
    },
    {
        "activity_id": "code-online",
        "title": "Remote code mentoring",
        "embedding": [1.0, 0.0, 0.0],
    },
    {
        "activity_id": "garden-paris",
        "title": "Community garden",
        "embedding": [0.1, 0.9, 0.2],
        "geolocations": [{"coordinates": [2.3400, 48.8600]}],
    },
]


class FakeStore:
    """Activity store scoring documents by cosine similarity."""

    def __init__(self, documents: list[dict[str, Any]], native: bool = True) -> None:
        self.documents = documents
        self.native = native
        self.vector_calls: list[dict[str, Any]] = []

    async def vector_search(
        self,
        query_vector: list[float],
        num_candidates: int,
        limit: int,
        filter: ActivityFilter,
    ) -> list[dict[str, Any]]:
        self.vector_calls.append({"num_candidates": num_candidates, "limit": limit})
        if not self.native:
            raise VectorIndexUnavailableError("No vector index attached")
        scored = [
            {**doc, "relevance_score": cosine_similarity(query_vector, doc["embedding"])}
            for doc in self.documents
        ]
        scored.sort(key=lambda d: d["relevance_score"], reverse=True)
        return scored[:limit]

    async def find(
        self, filter: ActivityFilter, with_embedding: bool = False
    ) -> list[dict[str, Any]]:
        return list(self.documents)


@pytest.fixture
def embedder() -> MagicMock:
    mock = MagicMock()
    mock.embed = AsyncMock(return_value=[1.0, 0.0, 0.0])
    return mock


@pytest.fixture
def analyzer() -> MagicMock:
    mock = MagicMock()
    mock.analyze = AsyncMock(
        return_value=LocationExtraction(formatted_address="Paris, France", language="fr")
    )
    return mock


@pytest.fixture
def geocoder() -> MagicMock:
    mock = MagicMock()
    mock.is_available.return_value = True
    mock.geocode_first = AsyncMock(return_value=PARIS)
    return mock


@pytest.fixture
def store() -> FakeStore:
    return FakeStore(DOCUMENTS)


def make_search(
    embedder: MagicMock,
    store: FakeStore,
    analyzer: MagicMock | None = None,
    geocoder: MagicMock | None = None,
    **settings: Any,
) -> LocationAwareSearch:
    return LocationAwareSearch(
        embedder=embedder,
        cache=EmbeddingCacheImpl(),
        store=store,
        location_analyzer=analyzer,
        geocoder=geocoder,
        settings=SearchSettings(**settings),
    )


def ids(response: Any) -> list[str]:
    return [c.activity_id for c in response.results]


# --- Semantic-only search ---


async def test_semantic_search_orders_by_relevance(embedder, store) -> None:
    search = make_search(embedder, store)

    response = await search.search(SearchQuery(query="teach kids programming"))

    scores = [c.relevance_score for c in response.results]
    assert scores == sorted(scores, reverse=True)
    assert ids(response)[0] == "code-online"
    assert response.metadata.detected_location is None
    assert response.metadata.location_mode == LocationMode.NONE
    assert all(c.distance_meters is None for c in response.results)
    assert all(c.final_score == c.relevance_score for c in response.results)
    assert response.metadata.vector_search_strategy == VectorSearchStrategy.NATIVE


async def test_manual_fallback_when_index_unavailable(embedder) -> None:
    search = make_search(embedder, FakeStore(DOCUMENTS, native=False))

    response = await search.search(SearchQuery(query="teach kids programming"))

    assert response.metadata.vector_search_strategy == VectorSearchStrategy.MANUAL
    assert ids(response) == ["code-online", "code-lyon", "code-paris", "garden-paris"]


# --- Location resolution ---


async def test_auto_detected_location(embedder, store, analyzer, geocoder) -> None:
    search = make_search(embedder, store, analyzer, geocoder)

    response = await search.search(SearchQuery(query="volunteer in Paris"))

    detected = response.metadata.detected_location
    assert detected is not None
    assert "Paris" in detected.formatted_address
    assert detected.coordinates == (2.3522, 48.8566)
    assert response.metadata.location_mode == LocationMode.AUTO_DETECTED
    assert response.metadata.location_analysis_ms is not None
    assert response.metadata.geocoding_ms is not None
    geocoder.geocode_first.assert_awaited_once_with("Paris, France", "fr")

    by_id = {c.activity_id: c for c in response.results}
    for located in ("code-paris", "code-lyon", "garden-paris"):
        assert by_id[located].distance_meters is not None
        assert by_id[located].distance_meters >= 0
    # Without coordinates: kept, no distance
    assert by_id["code-online"].distance_meters is None
    # A nearby match outranks a more relevant one without coordinates
    assert ids(response).index("code-paris") < ids(response).index("code-online")


async def test_explicit_location_skips_detection(embedder, store, analyzer, geocoder) -> None:
    search = make_search(embedder, store, analyzer, geocoder)
    lyon = GeoPoint(latitude=45.7640, longitude=4.8357, max_distance_meters=20_000)

    response = await search.search(
        SearchQuery(query="volunteer in Paris", location=lyon)
    )

    assert response.metadata.location_mode == LocationMode.EXPLICIT
    assert response.metadata.detected_location is None
    assert ids(response)[0] == "code-lyon"
    analyzer.analyze.assert_not_called()
    geocoder.geocode_first.assert_not_called()


async def test_fallback_when_geocoder_unavailable(embedder, store, analyzer, geocoder) -> None:
    geocoder.is_available.return_value = False
    search = make_search(embedder, store, analyzer, geocoder)
    fallback = GeoPoint(latitude=48.8566, longitude=2.3522)

    response = await search.search(
        SearchQuery(query="volunteer in Paris", fallback_location=fallback)
    )

    assert response.metadata.location_mode == LocationMode.FALLBACK
    assert response.metadata.detected_location is None
    analyzer.analyze.assert_not_called()


async def test_fallback_when_auto_detect_disabled(embedder, store, analyzer, geocoder) -> None:
    search = make_search(embedder, store, analyzer, geocoder)
    fallback = GeoPoint(latitude=48.8566, longitude=2.3522)

    response = await search.search(
        SearchQuery(
            query="volunteer in Paris",
            auto_detect_location=False,
            fallback_location=fallback,
        )
    )

    assert response.metadata.location_mode == LocationMode.FALLBACK
    analyzer.analyze.assert_not_called()


async def test_geocoding_failure_is_absorbed(embedder, store, analyzer, geocoder) -> None:
    geocoder.geocode_first.side_effect = GeocodingError("Geocoding failed with status OVER_QUERY_LIMIT")
    search = make_search(embedder, store, analyzer, geocoder)

    response = await search.search(SearchQuery(query="volunteer in Paris"))

    assert response.metadata.location_mode == LocationMode.NONE
    assert response.metadata.detected_location is None
    assert response.total == len(DOCUMENTS)


async def test_geocoding_failure_uses_fallback(embedder, store, analyzer, geocoder) -> None:
    geocoder.geocode_first.side_effect = RuntimeError("network down")
    search = make_search(embedder, store, analyzer, geocoder)
    fallback = GeoPoint(latitude=45.7640, longitude=4.8357)

    response = await search.search(
        SearchQuery(query="volunteer in Paris", fallback_location=fallback)
    )

    assert response.metadata.location_mode == LocationMode.FALLBACK


async def test_no_location_in_query_skips_geocoding(embedder, store, analyzer, geocoder) -> None:
    analyzer.analyze.return_value = LocationExtraction()
    search = make_search(embedder, store, analyzer, geocoder)

    response = await search.search(SearchQuery(query="I want to help"))

    assert response.metadata.location_mode == LocationMode.NONE
    assert response.metadata.geocoding_ms is None
    geocoder.geocode_first.assert_not_called()


async def test_no_geocoding_match(embedder, store, analyzer, geocoder) -> None:
    geocoder.geocode_first.return_value = None
    search = make_search(embedder, store, analyzer, geocoder)

    response = await search.search(SearchQuery(query="volunteer in Atlantis"))

    assert response.metadata.location_mode == LocationMode.NONE


# --- Pool sizing and pagination ---


async def test_semantic_pool_is_page_sized(embedder, store) -> None:
    search = make_search(embedder, store)

    await search.search(SearchQuery(query="code", offset=10, limit=5))

    assert store.vector_calls == [{"num_candidates": 100, "limit": 15}]


async def test_located_pool_is_nearby_sized(embedder, store) -> None:
    search = make_search(embedder, store)
    here = GeoPoint(latitude=48.8566, longitude=2.3522)

    await search.search(SearchQuery(query="code", location=here, num_candidates=50))

    assert store.vector_calls == [{"num_candidates": 500, "limit": 500}]


async def test_pagination_slices_global_order(embedder, store, analyzer, geocoder) -> None:
    search = make_search(embedder, store, analyzer, geocoder)

    full = await search.search(SearchQuery(query="volunteer in Paris", limit=10))
    page = await search.search(SearchQuery(query="volunteer in Paris", offset=1, limit=2))

    assert ids(page) == ids(full)[1:3]
    assert page.total == full.total == len(DOCUMENTS)


async def test_offset_beyond_total(embedder, store, analyzer, geocoder) -> None:
    search = make_search(embedder, store, analyzer, geocoder)

    response = await search.search(SearchQuery(query="volunteer in Paris", offset=50))

    assert response.results == []
    assert response.total == len(DOCUMENTS)


async def test_semantic_total_is_bounded_by_page_end(embedder, store) -> None:
    search = make_search(embedder, store)

    first = await search.search(SearchQuery(query="code", limit=2))
    second = await search.search(SearchQuery(query="code", offset=1, limit=2))

    assert first.total == 2
    assert second.total == 3
    assert ids(second)[0] == ids(first)[1]


# --- Caching and determinism ---


async def test_repeated_search_is_idempotent_and_cached(embedder, store, analyzer, geocoder) -> None:
    search = make_search(embedder, store, analyzer, geocoder)
    query = SearchQuery(query="volunteer in Paris")

    first = await search.search(query)
    second = await search.search(query)

    assert ids(first) == ids(second)
    assert [c.final_score for c in first.results] == [c.final_score for c in second.results]
    assert first.metadata.cached_embedding is False
    assert second.metadata.cached_embedding is True
    embedder.embed.assert_awaited_once()


async def test_cache_key_ignores_case_and_spacing(embedder, store) -> None:
    search = make_search(embedder, store)

    await search.search(SearchQuery(query="Teach  Kids"))
    response = await search.search(SearchQuery(query="  teach kids "))

    assert response.metadata.cached_embedding is True
    embedder.embed.assert_awaited_once()


# --- Concurrency ---


async def test_cancellation_stops_remaining_stages(embedder, store) -> None:
    started = asyncio.Event()
    release = asyncio.Event()

    async def slow_embed(text: str) -> list[float]:
        started.set()
        await release.wait()
        return [1.0, 0.0, 0.0]

    embedder.embed = AsyncMock(side_effect=slow_embed)
    search = make_search(embedder, store)

    task = asyncio.create_task(search.search(SearchQuery(query="code")))
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert store.vector_calls == []


async def test_overlapping_searches_share_one_cache(store) -> None:
    in_flight = 0
    peak = 0

    async def embed(text: str) -> list[float]:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return [1.0, 0.0, 0.0] if "code" in text else [0.0, 1.0, 0.0]

    embedder = MagicMock()
    embedder.embed = AsyncMock(side_effect=embed)
    cache = EmbeddingCacheImpl()
    search = LocationAwareSearch(embedder=embedder, cache=cache, store=store)

    code, garden = await asyncio.gather(
        search.search(SearchQuery(query="code mentoring")),
        search.search(SearchQuery(query="garden help")),
    )

    assert peak == 2
    assert ids(code)[0] == "code-online"
    assert ids(garden)[0] == "garden-paris"
    assert await cache.get(create_cache_key("code mentoring")) == [1.0, 0.0, 0.0]
    assert await cache.get(create_cache_key("garden help")) == [0.0, 1.0, 0.0]

    again = await search.search(SearchQuery(query="garden help"))
    assert again.metadata.cached_embedding is True
    assert embedder.embed.await_count == 2


# --- Observability ---


async def test_emits_one_event_per_stage(embedder, store, caplog) -> None:
    caplog.set_level(logging.INFO, logger="actionatlas.domains.search.orchestrator")
    search = make_search(embedder, store)

    await search.search(SearchQuery(query="code"))

    events = [r.search_event for r in caplog.records if hasattr(r, "search_event")]
    assert events == ["embed", "resolve_location", "retrieve", "rank", "paginate", "done"]


# --- Validation and settings ---


@pytest.mark.parametrize(
    "kwargs",
    [
        {"query": ""},
        {"query": "   "},
        {"query": "x" * 501},
        {"query": "ok", "limit": 0},
        {"query": "ok", "limit": 101},
        {"query": "ok", "offset": -1},
        {"query": "ok", "num_candidates": 1001},
    ],
)
def test_invalid_query_rejected(kwargs: dict[str, Any]) -> None:
    with pytest.raises(ValidationError):
        SearchQuery(**kwargs)


@pytest.mark.parametrize(
    "point",
    [
        {"latitude": 91, "longitude": 0},
        {"latitude": 0, "longitude": -181},
        {"latitude": 0, "longitude": 0, "max_distance_meters": 0},
        {"latitude": 0, "longitude": 0, "max_distance_meters": 500_001},
    ],
)
def test_invalid_location_rejected(point: dict[str, float]) -> None:
    with pytest.raises(ValidationError):
        SearchQuery(query="ok", location=point)


async def test_validation_happens_before_embedding(embedder) -> None:
    with pytest.raises(ValidationError):
        SearchQuery(query="")
    embedder.embed.assert_not_called()


def test_search_settings_from_settings() -> None:
    settings = Settings(
        search_nearby_pool_size=250,
        search_relevance_weight=0.5,
        search_proximity_weight=0.5,
        search_auto_detect_location=False,
    )

    search_settings = SearchSettings.from_settings(settings)

    assert search_settings.nearby_pool_size == 250
    assert search_settings.relevance_weight == 0.5
    assert search_settings.auto_detect_location is False
    assert search_settings.embedding_cache_ttl_seconds == settings.embedding_cache_ttl_seconds


@pytest.mark.parametrize(
    ("params", "field"),
    [
        ({"query": ""}, "query"),
        ({"query": "ok", "limit": 0}, "limit"),
        ({"query": "ok", "location": {"latitude": 91, "longitude": 0}}, "location.latitude"),
    ],
)
def test_from_params_names_offending_field(params: dict[str, Any], field: str) -> None:
    with pytest.raises(SearchValidationError) as exc_info:
        SearchQuery.from_params(**params)

    assert exc_info.value.message.startswith(f"Invalid {field}:")
    assert exc_info.value.details["errors"][0]["field"] == field
