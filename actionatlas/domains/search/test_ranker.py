"""
Tests for geo-proximity ranking.
"""

from __future__ import annotations

import pytest

from .geometry import haversine_distance_meters
from .models import ScoredCandidate
from .ranker import GeoProximityRanker

CENTER = (48.8566, 2.3522)
# ~1.0 km north of CENTER
ONE_KM_NORTH = (48.8656, 2.3522)


def candidate(activity_id: str, relevance: float, *points: tuple[float, float]) -> ScoredCandidate:
    document: dict = {"activity_id": activity_id}
    if points:
        document["geolocations"] = [{"coordinates": [lon, lat]} for lat, lon in points]
    return ScoredCandidate(document=document, relevance_score=relevance)


def test_proximity_can_outrank_relevance() -> None:
    far_but_relevant = candidate("remote", 0.9)
    near = candidate("near", 0.5, ONE_KM_NORTH)

    ranked = GeoProximityRanker().rank([far_but_relevant, near], *CENTER, max_distance_meters=50_000)

    assert [c.activity_id for c in ranked] == ["near", "remote"]
    assert ranked[0].final_score == pytest.approx(0.644, abs=1e-3)
    assert ranked[1].final_score == pytest.approx(0.63)
    assert ranked[1].distance_meters is None


def test_closest_coordinate_wins() -> None:
    lyon = (45.7640, 4.8357)
    multi = candidate("multi", 0.5, lyon, ONE_KM_NORTH)

    [ranked] = GeoProximityRanker().rank([multi], *CENTER, max_distance_meters=50_000)

    assert ranked.distance_meters == pytest.approx(
        haversine_distance_meters(*CENTER, *ONE_KM_NORTH)
    )


def test_beyond_max_distance_is_kept() -> None:
    lyon = candidate("lyon", 0.8, (45.7640, 4.8357))

    [ranked] = GeoProximityRanker().rank([lyon], *CENTER, max_distance_meters=50_000)

    assert ranked.final_score == pytest.approx(0.8 * 0.7)
    assert ranked.distance_meters > 50_000


def test_stable_for_equal_scores() -> None:
    first = candidate("first", 0.5)
    second = candidate("second", 0.5)

    ranked = GeoProximityRanker().rank([first, second], *CENTER, max_distance_meters=10_000)

    assert [c.activity_id for c in ranked] == ["first", "second"]


def test_limit_truncates_after_sorting() -> None:
    pool = [candidate("a", 0.1), candidate("b", 0.9), candidate("c", 0.5, CENTER)]

    ranked = GeoProximityRanker().rank(pool, *CENTER, max_distance_meters=10_000, limit=2)

    assert [c.activity_id for c in ranked] == ["c", "b"]


def test_custom_weights() -> None:
    ranker = GeoProximityRanker(relevance_weight=0.0, proximity_weight=1.0)
    pool = [candidate("relevant", 1.0, (45.7640, 4.8357)), candidate("close", 0.0, CENTER)]

    ranked = ranker.rank(pool, *CENTER, max_distance_meters=50_000)

    assert ranked[0].activity_id == "close"
    assert ranked[0].final_score == 1.0


def test_input_candidates_untouched() -> None:
    original = candidate("a", 0.5, CENTER)
    GeoProximityRanker().rank([original], *CENTER, max_distance_meters=1_000)
    assert original.final_score is None
    assert original.distance_meters is None


def test_rejects_bad_arguments() -> None:
    with pytest.raises(ValueError):
        GeoProximityRanker(relevance_weight=-0.1)
    with pytest.raises(ValueError):
        GeoProximityRanker().rank([], *CENTER, max_distance_meters=0)
