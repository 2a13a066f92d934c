"""
FAISS Index - In-process vector index over activity embeddings.

Features:
- Inner product over L2-normalized vectors (cosine similarity)
- Full rebuild from stored embeddings
- Index persistence (index binary + id map)
- Blocking FAISS calls run in a worker thread
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import faiss
import numpy as np

logger = logging.getLogger(__name__)

__all__ = ["FAISSIndex"]

INDEX_FILE = "faiss_index.bin"
IDS_FILE = "ids.json"


class FAISSIndex:
    """
    FAISS cosine-similarity index keyed by activity id.

    Example:
        >>> index = FAISSIndex(dimension=1536)
        >>> await index.build(["a-1", "a-2"], vectors)
        >>> await index.search(query_vector, k=10)
        [('a-2', 0.91), ('a-1', 0.42)]
    """

    def __init__(self, dimension: int = 1536, index_type: str = "Flat") -> None:
        """
        Initialize FAISS index.

        Args:
            dimension: Vector dimension (1536 for text-embedding-3-small)
            index_type: "Flat" (exact) or "HNSW" (approximate)
        """
        if index_type not in ("Flat", "HNSW"):
            raise ValueError(f"Unsupported index type: {index_type}")
        self.dimension = dimension
        self.index_type = index_type

        self._index: faiss.Index | None = None
        self._ids: list[str] = []

    def _create_index(self) -> faiss.Index:
        if self.index_type == "HNSW":
            return faiss.IndexHNSWFlat(self.dimension, 32, faiss.METRIC_INNER_PRODUCT)
        return faiss.IndexFlatIP(self.dimension)

    def _prepare(self, vectors: Any) -> np.ndarray:
        array = np.ascontiguousarray(np.asarray(vectors, dtype="float32"))
        if array.ndim == 1:
            array = array.reshape(1, -1)
        if array.shape[1] != self.dimension:
            raise ValueError(
                f"Expected vectors of dimension {self.dimension}, got {array.shape[1]}"
            )
        faiss.normalize_L2(array)
        return array

    async def build(self, ids: Sequence[str], vectors: Any) -> None:
        """
        Replace the index contents.

        Args:
            ids: Activity ids, one per vector
            vectors: Array-like of shape (n, dimension)
        """
        if len(ids) != len(vectors):
            raise ValueError(f"Got {len(ids)} ids for {len(vectors)} vectors")

        index = self._create_index()
        if len(ids):
            await asyncio.to_thread(index.add, self._prepare(vectors))

        self._index = index
        self._ids = list(ids)
        logger.info(
            "FAISS index built: %d vectors, dimension=%d, type=%s",
            len(self._ids),
            self.dimension,
            self.index_type,
        )

    async def search(self, query_vector: Any, k: int = 10) -> list[tuple[str, float]]:
        """
        Nearest activities by cosine similarity.

        Returns:
            (activity_id, score) pairs, best first
        """
        if self.is_empty:
            return []
        assert self._index is not None

        query = self._prepare(query_vector)
        scores, indices = await asyncio.to_thread(
            self._index.search, query, min(k, self._index.ntotal)
        )

        return [
            (self._ids[idx], float(score))
            for score, idx in zip(scores[0], indices[0])
            if 0 <= idx < len(self._ids)
        ]

    async def save(self, path: str | Path) -> None:
        """Write index and id map to a directory."""
        if self._index is None:
            raise ValueError("Cannot save an index that was never built")

        path = Path(path)
        path.mkdir(parents=True, exist_ok=True)

        await asyncio.to_thread(faiss.write_index, self._index, str(path / INDEX_FILE))
        await asyncio.to_thread(
            self._write_json,
            path / IDS_FILE,
            {"dimension": self.dimension, "index_type": self.index_type, "ids": self._ids},
        )
        logger.info("Index saved to %s (%d vectors)", path, len(self._ids))

    @staticmethod
    def _write_json(path: Path, data: dict[str, Any]) -> None:
        with open(path, "w") as f:
            json.dump(data, f)

    async def load(self, path: str | Path) -> None:
        """Read index and id map from a directory."""
        path = Path(path)

        index = await asyncio.to_thread(faiss.read_index, str(path / INDEX_FILE))
        data = await asyncio.to_thread(self._read_json, path / IDS_FILE)

        if index.ntotal != len(data["ids"]):
            raise ValueError(
                f"Index holds {index.ntotal} vectors but id map has {len(data['ids'])}"
            )

        self._index = index
        self.dimension = data["dimension"]
        self.index_type = data["index_type"]
        self._ids = data["ids"]
        logger.info("Index loaded from %s (%d vectors)", path, len(self._ids))

    @staticmethod
    def _read_json(path: Path) -> dict[str, Any]:
        with open(path) as f:
            result: dict[str, Any] = json.load(f)
            return result

    @classmethod
    def exists(cls, path: str | Path) -> bool:
        path = Path(path)
        return (path / INDEX_FILE).exists() and (path / IDS_FILE).exists()

    @property
    def is_empty(self) -> bool:
        return self._index is None or self._index.ntotal == 0

    @property
    def size(self) -> int:
        """Get number of vectors in index."""
        return self._index.ntotal if self._index is not None else 0
