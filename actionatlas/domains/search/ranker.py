"""
Geo-Proximity Ranker - Blend semantic relevance with distance to a point.

Sorts, never filters: candidates without usable coordinates stay in the
list and rank as if infinitely far away.
"""

from __future__ import annotations

import logging

from .geometry import extract_coordinates, haversine_distance_meters, proximity_score
from .models import ScoredCandidate

logger = logging.getLogger(__name__)

__all__ = ["GeoProximityRanker", "DEFAULT_RELEVANCE_WEIGHT", "DEFAULT_PROXIMITY_WEIGHT"]

DEFAULT_RELEVANCE_WEIGHT = 0.7
DEFAULT_PROXIMITY_WEIGHT = 0.3


class GeoProximityRanker:
    """
    Re-rank a candidate pool by blended relevance and proximity.

    Example:
        >>> ranker = GeoProximityRanker()
        >>> ranked = ranker.rank(candidates, 48.8566, 2.3522, max_distance_meters=50_000)
    """

    def __init__(
        self,
        relevance_weight: float = DEFAULT_RELEVANCE_WEIGHT,
        proximity_weight: float = DEFAULT_PROXIMITY_WEIGHT,
    ) -> None:
        """
        Initialize ranker.

        Args:
            relevance_weight: Weight of the semantic relevance score
            proximity_weight: Weight of the normalized proximity score
        """
        if relevance_weight < 0 or proximity_weight < 0:
            raise ValueError("Ranking weights must be non-negative")
        self.relevance_weight = relevance_weight
        self.proximity_weight = proximity_weight

    def rank(
        self,
        candidates: list[ScoredCandidate],
        latitude: float,
        longitude: float,
        max_distance_meters: float,
        limit: int | None = None,
    ) -> list[ScoredCandidate]:
        """
        Score and sort candidates.

        Args:
            candidates: Pool with relevance scores attached
            latitude, longitude: Center point
            max_distance_meters: Distance at which proximity reaches 0
            limit: Truncate after sorting (None keeps everything)

        Returns:
            New candidate objects with ``final_score`` and, where
            coordinates exist, ``distance_meters``
        """
        if max_distance_meters <= 0:
            raise ValueError("max_distance_meters must be positive")

        scored: list[ScoredCandidate] = []
        located = 0

        for candidate in candidates:
            distances = [
                haversine_distance_meters(latitude, longitude, lat, lon)
                for lat, lon in extract_coordinates(candidate.document)
            ]

            if distances:
                located += 1
                distance = min(distances)
                final = (
                    candidate.relevance_score * self.relevance_weight
                    + proximity_score(distance, max_distance_meters) * self.proximity_weight
                )
                scored.append(
                    candidate.model_copy(
                        update={"final_score": final, "distance_meters": distance}
                    )
                )
            else:
                scored.append(
                    candidate.model_copy(
                        update={
                            "final_score": candidate.relevance_score * self.relevance_weight,
                            "distance_meters": None,
                        }
                    )
                )

        scored.sort(key=lambda c: c.final_score or 0.0, reverse=True)

        logger.debug(
            "Geo ranking: %d candidates (%d with coordinates), max_distance=%.0fm",
            len(scored),
            located,
            max_distance_meters,
        )

        if limit is not None:
            return scored[:limit]
        return scored
