"""
Tests for vector candidate retrieval.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from actionatlas.config.errors import StorageError, VectorIndexUnavailableError, VectorLengthError

from .models import ActivityFilter, VectorSearchStrategy
from .retriever import VectorCandidateRetriever, cosine_similarity


# --- cosine_similarity ---


@pytest.mark.parametrize("vector", [[1.0, 2.0, 3.0], [0.5, -0.25], [1e-3] * 1536])
def test_self_similarity_is_one(vector: list[float]) -> None:
    assert cosine_similarity(vector, vector) == pytest.approx(1.0)


def test_similarity_is_symmetric() -> None:
    a, b = [0.3, -1.2, 4.0], [2.5, 0.1, -0.7]
    assert cosine_similarity(a, b) == cosine_similarity(b, a)


def test_orthogonal_and_opposite() -> None:
    assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)
    assert cosine_similarity([1, 0], [-1, 0]) == pytest.approx(-1.0)


def test_zero_vector_similarity_is_zero() -> None:
    assert cosine_similarity([0.0, 0.0], [1.0, 2.0]) == 0.0
    assert cosine_similarity([1.0, 2.0], [0.0, 0.0]) == 0.0


def test_length_mismatch_raises() -> None:
    with pytest.raises(VectorLengthError, match="Got 2 and 3"):
        cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])


def test_length_mismatch_is_value_error() -> None:
    with pytest.raises(ValueError):
        cosine_similarity([1.0], [1.0, 2.0])


# --- Native path ---


def make_store(native: list[dict] | None = None, scan: list[dict] | None = None) -> MagicMock:
    store = MagicMock()
    if native is None:
        store.vector_search = AsyncMock(
            side_effect=VectorIndexUnavailableError("No vector index attached")
        )
    else:
        store.vector_search = AsyncMock(return_value=native)
    store.find = AsyncMock(return_value=scan or [])
    return store


async def test_native_search() -> None:
    store = make_store(
        native=[
            {"activity_id": "a", "relevance_score": 0.92},
            {"activity_id": "b", "relevance_score": 0.81},
        ]
    )
    retriever = VectorCandidateRetriever(store)
    search_filter = ActivityFilter(category=["education"])

    result = await retriever.retrieve([1.0, 0.0], limit=20, num_candidates=10, filter=search_filter)

    assert result.strategy == VectorSearchStrategy.NATIVE
    assert [c.activity_id for c in result.candidates] == ["a", "b"]
    assert result.candidates[0].relevance_score == 0.92
    assert "relevance_score" not in result.candidates[0].document
    store.vector_search.assert_awaited_once_with(
        [1.0, 0.0], num_candidates=20, limit=20, filter=search_filter
    )
    store.find.assert_not_called()


async def test_other_store_errors_propagate() -> None:
    store = make_store(native=[])
    store.vector_search.side_effect = StorageError("disk I/O error")

    with pytest.raises(StorageError):
        await VectorCandidateRetriever(store).retrieve([1.0], limit=5, num_candidates=5)
    store.find.assert_not_called()


# --- Manual fallback ---


SCAN = [
    {"activity_id": "low", "embedding": [0.0, 1.0]},
    {"activity_id": "no-embedding"},
    {"activity_id": "high", "embedding": [1.0, 0.0]},
    {"activity_id": "mid", "embedding": [1.0, 1.0]},
    {"activity_id": "mid-twin", "embedding": [2.0, 2.0]},
]


async def test_manual_fallback_scores_and_sorts() -> None:
    store = make_store(scan=SCAN)

    result = await VectorCandidateRetriever(store).retrieve([1.0, 0.0], limit=3, num_candidates=100)

    assert result.strategy == VectorSearchStrategy.MANUAL
    # Equal scores keep store order
    assert [c.activity_id for c in result.candidates] == ["high", "mid", "mid-twin"]
    assert result.candidates[0].relevance_score == pytest.approx(1.0)


async def test_manual_fallback_full_pool() -> None:
    store = make_store(scan=SCAN)

    result = await VectorCandidateRetriever(store).retrieve(
        [1.0, 0.0], limit=1, num_candidates=100, full_pool=True
    )

    assert [c.activity_id for c in result.candidates] == ["high", "mid", "mid-twin", "low"]


@pytest.mark.parametrize(
    ("is_active", "scan_is_active"),
    [(True, None), (None, None), (False, False)],
)
async def test_manual_scan_only_filters_explicit_inactive(
    is_active: bool | None, scan_is_active: bool | None
) -> None:
    store = make_store(scan=[])

    await VectorCandidateRetriever(store).retrieve(
        [1.0],
        limit=5,
        num_candidates=5,
        filter=ActivityFilter(category=["health"], is_active=is_active),
    )

    store.find.assert_awaited_once_with(
        ActivityFilter(category=["health"], is_active=scan_is_active), with_embedding=True
    )


async def test_manual_fallback_length_mismatch_is_fatal() -> None:
    store = make_store(scan=[{"activity_id": "bad", "embedding": [1.0, 0.0, 0.0]}])

    with pytest.raises(VectorLengthError):
        await VectorCandidateRetriever(store).retrieve([1.0, 0.0], limit=5, num_candidates=5)
