"""
Search Domain - Location-aware semantic search over activities.

This domain handles:
- Query embedding with a TTL cache
- Vector similarity retrieval (native index or manual cosine scan)
- Location intent detection and resolution
- Geo-proximity re-ranking and pagination
"""

from .cache import EmbeddingCacheImpl, create_cache_key, normalize_text
from .contracts import (
    ActivityStore,
    EmbeddingCache,
    EmbeddingProvider,
    Geocoder,
    LocationExtractor,
    SearchEngine,
)
from .embeddable import prepare_for_embedding
from .geometry import haversine_distance_meters, is_valid_coordinate
from .location_analyzer import LocationQueryAnalyzer, has_valid_location
from .models import (
    ActivityFilter,
    DetectedLocation,
    GeoPoint,
    LocationExtraction,
    LocationMode,
    ScoredCandidate,
    SearchMetadata,
    SearchQuery,
    SearchResponse,
    VectorSearchStrategy,
)
from .orchestrator import LocationAwareSearch, SearchSettings
from .ranker import GeoProximityRanker
from .retriever import VectorCandidateRetriever, cosine_similarity

__all__ = [
    # Contracts
    "ActivityStore",
    "EmbeddingCache",
    "EmbeddingProvider",
    "Geocoder",
    "LocationExtractor",
    "SearchEngine",
    # Models
    "ActivityFilter",
    "DetectedLocation",
    "GeoPoint",
    "LocationExtraction",
    "LocationMode",
    "ScoredCandidate",
    "SearchMetadata",
    "SearchQuery",
    "SearchResponse",
    "VectorSearchStrategy",
    # Components
    "EmbeddingCacheImpl",
    "create_cache_key",
    "normalize_text",
    "prepare_for_embedding",
    "haversine_distance_meters",
    "is_valid_coordinate",
    "cosine_similarity",
    "VectorCandidateRetriever",
    "LocationQueryAnalyzer",
    "has_valid_location",
    "GeoProximityRanker",
    "LocationAwareSearch",
    "SearchSettings",
]
