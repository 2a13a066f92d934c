"""
Vector Candidate Retriever - Semantic candidate pool for a query vector.

Features:
- Native vector search through the activity store
- Manual cosine-similarity scan when no vector index is available
- Full-pool mode for downstream geo re-ranking
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import numpy as np

from actionatlas.config.errors import VectorIndexUnavailableError, VectorLengthError

from .models import ActivityFilter, RetrievalResult, ScoredCandidate, VectorSearchStrategy

if TYPE_CHECKING:
    from .contracts import ActivityStore

logger = logging.getLogger(__name__)

__all__ = ["VectorCandidateRetriever", "cosine_similarity"]


def cosine_similarity(vector_a: Any, vector_b: Any) -> float:
    """
    Cosine of the angle between two vectors.

    Returns:
        Value in [-1, 1]; 0.0 when either vector has zero magnitude

    Raises:
        VectorLengthError: Vectors differ in length
    """
    a = np.asarray(vector_a, dtype=np.float64)
    b = np.asarray(vector_b, dtype=np.float64)

    if a.shape != b.shape:
        raise VectorLengthError(a.size, b.size)

    magnitude = float(np.linalg.norm(a) * np.linalg.norm(b))
    if magnitude == 0.0:
        return 0.0

    return float(np.dot(a, b) / magnitude)


class VectorCandidateRetriever:
    """
    Retrieve semantically relevant candidates from an activity store.

    Example:
        >>> retriever = VectorCandidateRetriever(repo)
        >>> result = await retriever.retrieve(vector, limit=20, num_candidates=100)
    """

    def __init__(self, store: ActivityStore) -> None:
        self._store = store

    async def retrieve(
        self,
        query_vector: list[float],
        limit: int,
        num_candidates: int,
        filter: ActivityFilter | None = None,
        full_pool: bool = False,
    ) -> RetrievalResult:
        """
        Retrieve candidates ordered by descending relevance.

        Args:
            query_vector: Query embedding
            limit: Requested pool size
            num_candidates: Native index candidate count (raised to ``limit`` if lower)
            filter: Category / active filter
            full_pool: Return every scored document on the manual path

        Returns:
            RetrievalResult with candidates and the strategy used
        """
        filter = filter or ActivityFilter()

        try:
            documents = await self._store.vector_search(
                query_vector,
                num_candidates=max(num_candidates, limit),
                limit=limit,
                filter=filter,
            )
        except VectorIndexUnavailableError as e:
            logger.info("Native vector search unavailable, using manual cosine scan: %s", e.message)
            candidates = await self._manual_search(query_vector, limit, filter, full_pool)
            return RetrievalResult(candidates=candidates, strategy=VectorSearchStrategy.MANUAL)

        candidates = [
            ScoredCandidate(
                document={k: v for k, v in doc.items() if k != "relevance_score"},
                relevance_score=float(doc.get("relevance_score", 0.0)),
            )
            for doc in documents
        ]
        return RetrievalResult(candidates=candidates, strategy=VectorSearchStrategy.NATIVE)

    async def _manual_search(
        self,
        query_vector: list[float],
        limit: int,
        filter: ActivityFilter,
        full_pool: bool,
    ) -> list[ScoredCandidate]:
        """Full scan with in-process cosine similarity."""
        # Legacy documents lack is_active, so only an explicit False filters here
        scan_filter = ActivityFilter(
            category=filter.category,
            is_active=False if filter.is_active is False else None,
        )
        documents = await self._store.find(scan_filter, with_embedding=True)

        scored = [
            ScoredCandidate(
                document=doc,
                relevance_score=cosine_similarity(query_vector, doc["embedding"]),
            )
            for doc in documents
            if doc.get("embedding")
        ]
        # sort() is stable, so equal scores keep store order
        scored.sort(key=lambda c: c.relevance_score, reverse=True)

        logger.debug("Manual vector scan scored %d documents", len(scored))

        if full_pool:
            return scored
        return scored[:limit]
