"""
SQLite Repository - Activity document storage with vector search.

Features:
- Async operations via aiosqlite
- Activity documents stored as JSON alongside filterable columns
- Stored embeddings for the manual cosine scan
- Native vector search through an attached FAISS index
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite

from actionatlas.adapters.faiss import FAISSIndex
from actionatlas.config.errors import (
    ErrorCode,
    StorageError,
    VectorIndexUnavailableError,
    VectorLengthError,
)
from actionatlas.domains.search.models import ActivityFilter

logger = logging.getLogger(__name__)

__all__ = ["SQLiteRepository", "resolve_document_filter"]

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"

# Columns kept outside the JSON document
_COLUMN_KEYS = ("activity_id", "organization_id", "is_active", "category", "embedding")


def resolve_document_filter(activity_id: str | int) -> tuple[str, list[Any]]:
    """
    SQL predicate matching an activity by business id or row id.

    Numeric ids may be either, so both columns are tried. Lookups that
    must hit one row prefer the business id match.

    Returns:
        (where clause, parameters)
    """
    value = str(activity_id)
    if value.isdigit():
        return "(id = ? OR activity_id = ?)", [int(value), value]
    return "activity_id = ?", [value]


def _filter_clause(filter: ActivityFilter | None) -> tuple[str, list[Any]]:
    """WHERE clause for an activity filter (empty string when unfiltered)."""
    if filter is None:
        return "", []

    clauses: list[str] = []
    params: list[Any] = []

    if filter.is_active is not None:
        clauses.append("is_active = ?")
        params.append(int(filter.is_active))

    if filter.category:
        placeholders = ", ".join("?" for _ in filter.category)
        clauses.append(
            f"EXISTS (SELECT 1 FROM json_each(activities.category) WHERE value IN ({placeholders}))"
        )
        params.extend(filter.category)

    if not clauses:
        return "", []
    return " WHERE " + " AND ".join(clauses), params


def _as_category_list(category: Any) -> list[str]:
    if category is None:
        return []
    if isinstance(category, str):
        return [category]
    return [str(c) for c in category]


class SQLiteRepository:
    """
    SQLite repository for activity documents.

    Example:
        >>> repo = SQLiteRepository("data/actionatlas.db")
        >>> await repo.initialize()
        >>> activity_id = await repo.insert_activity({"title": "Beach cleanup", "category": ["environment"]})
        >>> await repo.build_vector_index()
        >>> docs = await repo.vector_search(vector, num_candidates=100, limit=20, filter=ActivityFilter())
    """

    def __init__(self, db_path: str | Path, index: FAISSIndex | None = None) -> None:
        """
        Initialize repository.

        Args:
            db_path: Path to SQLite database file
            index: Vector index serving ``vector_search`` (none until attached or built)
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection: aiosqlite.Connection | None = None
        self._index = index

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get or create database connection."""
        if self._connection is None:
            self._connection = await aiosqlite.connect(str(self.db_path))
            self._connection.row_factory = aiosqlite.Row
        return self._connection

    async def initialize(self) -> None:
        """Initialize database schema."""
        conn = await self._get_connection()

        await conn.executescript("""
            CREATE TABLE IF NOT EXISTS activities (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                activity_id TEXT NOT NULL UNIQUE,
                organization_id TEXT,
                is_active INTEGER,
                category TEXT NOT NULL DEFAULT '[]',
                document TEXT NOT NULL,
                embedding TEXT,
                embedding_model TEXT,
                embedding_updated_at TIMESTAMP,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );

            CREATE INDEX IF NOT EXISTS idx_activities_organization ON activities(organization_id);
            CREATE INDEX IF NOT EXISTS idx_activities_active ON activities(is_active);
        """)

        await conn.commit()
        logger.info("Database initialized: %s", self.db_path)

    # --- Rows <-> documents ---

    @staticmethod
    def _row_to_document(row: aiosqlite.Row, with_embedding: bool) -> dict[str, Any]:
        document: dict[str, Any] = json.loads(row["document"])
        document["id"] = row["id"]
        document["activity_id"] = row["activity_id"]
        document["organization_id"] = row["organization_id"]
        document["category"] = json.loads(row["category"])
        if row["is_active"] is not None:
            document["is_active"] = bool(row["is_active"])
        if with_embedding and row["embedding"]:
            document["embedding"] = json.loads(row["embedding"])
        return document

    # --- Writes ---

    async def insert_activity(self, document: dict[str, Any]) -> str:
        """
        Insert an activity document.

        ``activity_id`` is generated when missing. An ``embedding`` key, if
        present, is stored in the embedding column.

        Returns:
            Business activity id

        Raises:
            StorageError: Duplicate activity id or write failure
        """
        conn = await self._get_connection()

        activity_id = str(document.get("activity_id") or uuid.uuid4().hex)
        is_active = document.get("is_active")
        embedding = document.get("embedding")
        body = {k: v for k, v in document.items() if k not in _COLUMN_KEYS and k != "id"}

        try:
            await conn.execute(
                """
                INSERT INTO activities
                (activity_id, organization_id, is_active, category, document,
                 embedding, embedding_model, embedding_updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    activity_id,
                    document.get("organization_id"),
                    None if is_active is None else int(bool(is_active)),
                    json.dumps(_as_category_list(document.get("category"))),
                    json.dumps(body),
                    json.dumps(embedding) if embedding else None,
                    document.get("embedding_model") if embedding else None,
                    datetime.now(timezone.utc).isoformat() if embedding else None,
                ),
            )
            await conn.commit()
        except aiosqlite.IntegrityError as e:
            raise StorageError(
                f"Activity {activity_id} already exists",
                {"activity_id": activity_id},
                code=ErrorCode.STORAGE_WRITE_FAILED,
            ) from e

        return activity_id

    async def _resolve_row_id(self, activity_id: str | int) -> int | None:
        """
        Primary key of the single row an id refers to.

        A business id match wins over a row id match, so a numeric id never
        resolves to two rows.
        """
        conn = await self._get_connection()
        where, params = resolve_document_filter(activity_id)
        cursor = await conn.execute(
            f"SELECT id FROM activities WHERE {where} ORDER BY activity_id = ? DESC LIMIT 1",
            [*params, str(activity_id)],
        )
        row = await cursor.fetchone()
        return row["id"] if row else None

    async def update_embedding(
        self,
        activity_id: str | int,
        embedding: list[float],
        model: str = DEFAULT_EMBEDDING_MODEL,
    ) -> bool:
        """
        Store an activity's embedding.

        Returns:
            True if a row was updated
        """
        row_id = await self._resolve_row_id(activity_id)
        if row_id is None:
            return False

        conn = await self._get_connection()
        now = datetime.now(timezone.utc).isoformat()
        cursor = await conn.execute(
            """
            UPDATE activities
            SET embedding = ?, embedding_model = ?, embedding_updated_at = ?, updated_at = ?
            WHERE id = ?
            """,
            [json.dumps(embedding), model, now, now, row_id],
        )
        await conn.commit()
        return cursor.rowcount > 0

    async def delete_activity(self, activity_id: str | int, hard: bool = False) -> bool:
        """
        Delete an activity.

        Soft delete (default) marks it inactive; hard delete removes the row.

        Returns:
            True if a row changed
        """
        row_id = await self._resolve_row_id(activity_id)
        if row_id is None:
            return False

        conn = await self._get_connection()
        if hard:
            cursor = await conn.execute("DELETE FROM activities WHERE id = ?", [row_id])
        else:
            cursor = await conn.execute(
                "UPDATE activities SET is_active = 0, updated_at = ? WHERE id = ?",
                [datetime.now(timezone.utc).isoformat(), row_id],
            )
        await conn.commit()
        return cursor.rowcount > 0

    # --- Reads ---

    async def get_activity(
        self, activity_id: str | int, with_embedding: bool = False
    ) -> dict[str, Any] | None:
        """Get activity by business id, or by row id when no business id matches."""
        row_id = await self._resolve_row_id(activity_id)
        if row_id is None:
            return None

        conn = await self._get_connection()
        cursor = await conn.execute("SELECT * FROM activities WHERE id = ?", [row_id])
        row = await cursor.fetchone()

        if row:
            return self._row_to_document(row, with_embedding)
        return None

    async def find(
        self,
        filter: ActivityFilter | None = None,
        with_embedding: bool = False,
        limit: int | None = None,
        skip: int = 0,
    ) -> list[dict[str, Any]]:
        """
        Filtered scan in insertion order.

        Args:
            filter: Category / active filter (None matches everything)
            with_embedding: Include the ``embedding`` key
            limit: Maximum documents (None for all)
            skip: Documents to skip
        """
        conn = await self._get_connection()
        where, params = _filter_clause(filter)

        sql = f"SELECT * FROM activities{where} ORDER BY id"
        if limit is not None or skip:
            sql += " LIMIT ? OFFSET ?"
            params = [*params, -1 if limit is None else limit, skip]

        cursor = await conn.execute(sql, params)
        rows = await cursor.fetchall()
        return [self._row_to_document(row, with_embedding) for row in rows]

    async def count(self, filter: ActivityFilter | None = None) -> int:
        """Count activities matching a filter."""
        conn = await self._get_connection()
        where, params = _filter_clause(filter)
        cursor = await conn.execute(f"SELECT COUNT(*) FROM activities{where}", params)
        row = await cursor.fetchone()
        return row[0] if row else 0

    async def find_missing_embeddings(self, limit: int = 100) -> list[dict[str, Any]]:
        """Activities without a stored embedding."""
        conn = await self._get_connection()
        cursor = await conn.execute(
            """
            SELECT * FROM activities
            WHERE embedding IS NULL OR embedding = '[]'
            ORDER BY id
            LIMIT ?
            """,
            (limit,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_document(row, with_embedding=False) for row in rows]

    # --- Vector search ---

    def attach_index(self, index: FAISSIndex | None) -> None:
        """Serve ``vector_search`` from this index (None detaches)."""
        self._index = index

    @property
    def index(self) -> FAISSIndex | None:
        return self._index

    async def build_vector_index(
        self,
        dimension: int | None = None,
        index_type: str = "Flat",
    ) -> FAISSIndex:
        """
        Rebuild the vector index from every stored embedding and attach it.

        Args:
            dimension: Vector dimension (taken from the stored data when None)
            index_type: FAISS index type

        Raises:
            VectorLengthError: Stored embeddings differ in length
        """
        conn = await self._get_connection()
        cursor = await conn.execute(
            "SELECT activity_id, embedding FROM activities "
            "WHERE embedding IS NOT NULL AND embedding != '[]' ORDER BY id"
        )
        rows = await cursor.fetchall()

        ids = [row["activity_id"] for row in rows]
        vectors = [json.loads(row["embedding"]) for row in rows]

        if dimension is None:
            dimension = len(vectors[0]) if vectors else 1536
        for vector in vectors:
            if len(vector) != dimension:
                raise VectorLengthError(len(vector), dimension)

        index = FAISSIndex(dimension=dimension, index_type=index_type)
        await index.build(ids, vectors)
        self._index = index
        return index

    async def vector_search(
        self,
        query_vector: list[float],
        num_candidates: int,
        limit: int,
        filter: ActivityFilter,
    ) -> list[dict[str, Any]]:
        """
        Native similarity search through the attached index.

        The filter applies before the ``limit`` cut: the index lookup starts at
        ``num_candidates`` neighbours and widens until ``limit`` matching
        documents are found or the whole index has been scanned.

        Returns:
            Documents with a ``relevance_score`` key, best first

        Raises:
            VectorIndexUnavailableError: No index attached or index empty
            VectorLengthError: Query dimension differs from the index
        """
        if self._index is None or self._index.is_empty:
            raise VectorIndexUnavailableError(
                "No vector index available",
                {"attached": self._index is not None},
            )
        if len(query_vector) != self._index.dimension:
            raise VectorLengthError(len(query_vector), self._index.dimension)

        index_size = self._index.size
        k = min(max(num_candidates, limit), index_size)

        while True:
            hits = await self._index.search(query_vector, k=k)
            results = await self._filter_hits(hits, filter, limit)
            if len(results) >= limit or k >= index_size:
                break
            logger.debug(
                "Vector search found %d/%d filtered hits in top %d, widening",
                len(results),
                limit,
                k,
            )
            k = min(k * 2, index_size)

        return results

    async def _filter_hits(
        self,
        hits: list[tuple[str, float]],
        filter: ActivityFilter,
        limit: int,
    ) -> list[dict[str, Any]]:
        """Documents for index hits that pass the filter, in hit order."""
        if not hits:
            return []

        conn = await self._get_connection()
        where, params = _filter_clause(filter)
        placeholders = ", ".join("?" for _ in hits)
        id_clause = f"activity_id IN ({placeholders})"
        where = f"{where} AND {id_clause}" if where else f" WHERE {id_clause}"

        cursor = await conn.execute(
            f"SELECT * FROM activities{where}",
            [*params, *(activity_id for activity_id, _ in hits)],
        )
        rows = {row["activity_id"]: row for row in await cursor.fetchall()}

        results: list[dict[str, Any]] = []
        for activity_id, score in hits:
            row = rows.get(activity_id)
            if row is None:
                continue
            document = self._row_to_document(row, with_embedding=False)
            document["relevance_score"] = score
            results.append(document)
            if len(results) >= limit:
                break

        return results

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None
