"""
Search Models - Data types for search domain.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from actionatlas.config.errors import SearchValidationError

MAX_QUERY_LENGTH = 500
MAX_DISTANCE_METERS = 500_000.0
DEFAULT_MAX_DISTANCE_METERS = 50_000.0


class LocationMode(str, Enum):
    """How the search location was decided."""

    EXPLICIT = "explicit"
    AUTO_DETECTED = "auto_detected"
    FALLBACK = "fallback"
    NONE = "none"


class VectorSearchStrategy(str, Enum):
    """Which retrieval path produced the candidate pool."""

    NATIVE = "native"
    MANUAL = "manual"


class GeoPoint(BaseModel):
    """Caller-supplied search location."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    max_distance_meters: float = Field(
        default=DEFAULT_MAX_DISTANCE_METERS, gt=0, le=MAX_DISTANCE_METERS
    )

    model_config = {"frozen": True}


class ActivityFilter(BaseModel):
    """Store-side filter applied before scoring."""

    category: list[str] | None = None
    is_active: bool | None = True

    model_config = {"frozen": True}


class SearchQuery(BaseModel):
    """Location-aware search request."""

    query: str = Field(..., min_length=1, max_length=MAX_QUERY_LENGTH)
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)
    num_candidates: int | None = Field(default=None, ge=1, le=1000)
    category: list[str] | None = None
    is_active: bool = True
    auto_detect_location: bool = True
    location: GeoPoint | None = None
    fallback_location: GeoPoint | None = None

    model_config = {"frozen": True}

    @field_validator("query")
    @classmethod
    def _query_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("query cannot be blank")
        return value

    @classmethod
    def from_params(cls, **params: Any) -> SearchQuery:
        """
        Build a query from untrusted parameters.

        Raises:
            SearchValidationError: A field is missing or out of bounds (the
                message names the first offending field)
        """
        try:
            return cls(**params)
        except ValidationError as e:
            errors = [
                {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ]
            first = errors[0]
            raise SearchValidationError(
                f"Invalid {first['field']}: {first['message']}",
                {"errors": errors},
            ) from e

    @property
    def filter(self) -> ActivityFilter:
        return ActivityFilter(category=self.category, is_active=self.is_active)


class ScoredCandidate(BaseModel):
    """Search candidate annotated during scoring."""

    document: dict[str, Any]
    relevance_score: float
    final_score: float | None = None
    distance_meters: float | None = Field(default=None, ge=0)

    @property
    def activity_id(self) -> str | None:
        return self.document.get("activity_id")


class RetrievalResult(BaseModel):
    """Candidate pool returned by the retriever."""

    candidates: list[ScoredCandidate]
    strategy: VectorSearchStrategy


class LocationExtraction(BaseModel):
    """Location intent extracted from free text."""

    formatted_address: str | None = None
    language: str | None = None


class LocationResolution(BaseModel):
    """Location decided once per search call."""

    mode: LocationMode = LocationMode.NONE
    latitude: float | None = None
    longitude: float | None = None
    max_distance_meters: float | None = None
    formatted_address: str | None = None

    @property
    def is_resolved(self) -> bool:
        return self.mode != LocationMode.NONE


class DetectedLocation(BaseModel):
    """Auto-detected location reported back to the caller."""

    formatted_address: str
    coordinates: tuple[float, float]  # (longitude, latitude)


class SearchMetadata(BaseModel):
    """Per-stage timings and degradation markers."""

    embedding_ms: int
    vector_search_ms: int
    post_processing_ms: int
    location_analysis_ms: int | None = None
    geocoding_ms: int | None = None
    geo_near_ms: int | None = None
    detected_location: DetectedLocation | None = None
    location_mode: LocationMode = LocationMode.NONE
    cached_embedding: bool = False
    vector_search_strategy: VectorSearchStrategy = VectorSearchStrategy.NATIVE

    model_config = {"frozen": True}


class SearchResponse(BaseModel):
    """
    Ranked, paginated search results.

    ``total`` is the size of the ranked pool the page was cut from. With a
    resolved location the pool spans the nearby pool size, so ``total`` is
    stable while pages stay within it. Without one the pool ends at ``offset + limit``,
    so ``total`` grows as the caller pages forward and is not a count of
    every matching activity.
    """

    results: list[ScoredCandidate]
    total: int = Field(..., ge=0)
    execution_time_ms: int
    metadata: SearchMetadata

    model_config = {"frozen": True}
