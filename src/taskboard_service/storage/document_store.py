"""SQLite-backed JSON document store."""

import asyncio
import json
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

import aiosqlite

from taskboard_service.errors import ConflictError, PersistenceError
from taskboard_service.models.base import format_timestamp
from taskboard_service.utils.logging import get_logger
from taskboard_service.utils.metrics import get_metrics

logger = get_logger(__name__)
metrics = get_metrics()

COLLECTIONS = ("users", "tasks", "notifications")

FIELD_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

COMPARISONS = {"$lt": "<", "$lte": "<=", "$gt": ">", "$gte": ">="}

Filters = dict[str, Any]


def _sql_value(value: Any) -> Any:
    """Convert a filter value to the form it has inside stored JSON."""
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, Enum):
        return value.value
    return value


def _json_path(field: str) -> str:
    if not FIELD_PATTERN.match(field):
        raise ValueError(f"Invalid field name: {field!r}")
    return f"$.{field}"


def build_where(filters: Filters | None) -> tuple[str, list[Any]]:
    """Translate a filter document into a SQL WHERE clause.

    Supported forms:
        {"field": value}              equality, or membership when field is a list
        {"field": {"$ne": value}}     inequality (missing fields match)
        {"field": {"$lt": value}}     also $lte, $gt, $gte (missing fields never match)
        {"field": {"$in": [...]}}     any element/value in the given list
        {"$or": [filters, ...]}       any of the sub-filters

    Args:
        filters: Filter document

    Returns:
        Tuple of (clause, parameters); clause is "1" when there are no filters
    """
    if not filters:
        return "1", []

    clauses: list[str] = []
    params: list[Any] = []

    for field, condition in filters.items():
        if field == "$or":
            parts = [build_where(sub) for sub in condition]
            if not parts:
                clauses.append("0")
                continue
            clauses.append("(" + " OR ".join(f"({clause})" for clause, _ in parts) + ")")
            for _, sub_params in parts:
                params.extend(sub_params)
            continue

        path = _json_path(field)

        if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
            for op, value in condition.items():
                if op == "$ne":
                    clauses.append("(json_extract(doc, ?) IS NULL OR json_extract(doc, ?) != ?)")
                    params.extend([path, path, _sql_value(value)])
                elif op in COMPARISONS:
                    clauses.append(f"json_extract(doc, ?) {COMPARISONS[op]} ?")
                    params.extend([path, _sql_value(value)])
                elif op == "$in":
                    values = [_sql_value(v) for v in value]
                    if not values:
                        clauses.append("0")
                        continue
                    placeholders = ", ".join("?" for _ in values)
                    clauses.append(
                        f"EXISTS (SELECT 1 FROM json_each(doc, ?) WHERE json_each.value IN ({placeholders}))"
                    )
                    params.extend([path, *values])
                else:
                    raise ValueError(f"Unsupported filter operator: {op}")
            continue

        # json_each yields one row for a scalar and one per element for an array
        clauses.append("EXISTS (SELECT 1 FROM json_each(doc, ?) WHERE json_each.value = ?)")
        params.extend([path, _sql_value(condition)])

    return " AND ".join(clauses), params


class DocumentStore:
    """Document store over a single SQLite database.

    Each collection is a table of JSON documents keyed by `id`. Queries filter
    with SQLite's JSON functions. All access goes through one aiosqlite
    connection guarded by an asyncio lock.
    """

    def __init__(self, db_path: str = ".data/taskboard.db") -> None:
        """Initialize document store.

        Args:
            db_path: Path to SQLite database file (":memory:" for a private in-memory database)
        """
        self.db_path = db_path
        self._db: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Open the database and create collections."""
        target = self.db_path
        if target != ":memory:":
            path = Path(target).expanduser()
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.error("document_store_directory_failed", path=self.db_path, error=str(e))
                raise PersistenceError("Cannot create database directory", path=self.db_path) from e
            target = str(path)

        async with self._lock:
            if self._db is not None:
                return
            try:
                self._db = await aiosqlite.connect(target)

                await self._db.execute("PRAGMA journal_mode=WAL")
                await self._db.execute("PRAGMA synchronous=NORMAL")

                for collection in COLLECTIONS:
                    await self._db.execute(f"""
                        CREATE TABLE IF NOT EXISTS {collection} (
                            id TEXT PRIMARY KEY,
                            doc TEXT NOT NULL,
                            created_at TEXT NOT NULL
                        )
                    """)
                    await self._db.execute(f"""
                        CREATE INDEX IF NOT EXISTS idx_{collection}_created_at
                        ON {collection}(created_at)
                    """)

                await self._db.execute("""
                    CREATE UNIQUE INDEX IF NOT EXISTS idx_users_email
                    ON users(json_extract(doc, '$.email'))
                """)

                await self._db.commit()
            except aiosqlite.Error as e:
                logger.error("document_store_initialize_failed", path=self.db_path, error=str(e))
                raise PersistenceError("Failed to open document store", path=self.db_path) from e

        logger.info("document_store_initialized", path=self.db_path)

    async def close(self) -> None:
        """Close the database connection."""
        async with self._lock:
            if self._db is not None:
                await self._db.close()
                self._db = None
                logger.info("document_store_closed", path=self.db_path)

    async def health_check(self) -> bool:
        """Check that the database answers queries."""
        try:
            async with self._operation("_", "health") as db:
                cursor = await db.execute("SELECT 1")
                row = await cursor.fetchone()
                return row is not None
        except PersistenceError:
            return False

    @asynccontextmanager
    async def _operation(self, collection: str, operation: str) -> AsyncIterator[aiosqlite.Connection]:
        """Serialize access, wrap driver errors, and count the operation."""
        if collection != "_" and collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection: {collection}")
        if self._db is None:
            await self.initialize()

        async with self._lock:
            if self._db is None:
                raise PersistenceError("Document store is closed", collection=collection)
            try:
                yield self._db
            except aiosqlite.IntegrityError as e:
                metrics.storage_operations_total.labels(
                    collection=collection, operation=operation, status="conflict"
                ).inc()
                logger.warning("document_store_conflict", collection=collection, operation=operation, error=str(e))
                raise ConflictError("Document violates a uniqueness constraint", collection=collection) from e
            except aiosqlite.Error as e:
                metrics.storage_operations_total.labels(
                    collection=collection, operation=operation, status="error"
                ).inc()
                logger.error("document_store_failed", collection=collection, operation=operation, error=str(e))
                raise PersistenceError(f"Document store {operation} failed", collection=collection) from e
            else:
                metrics.storage_operations_total.labels(
                    collection=collection, operation=operation, status="success"
                ).inc()

    async def insert(self, collection: str, doc: dict[str, Any]) -> dict[str, Any]:
        """Insert a new document.

        Args:
            collection: Collection name
            doc: JSON-serializable document with an "id" key

        Returns:
            The stored document

        Raises:
            ConflictError: If the id or a unique field already exists
        """
        async with self._operation(collection, "insert") as db:
            await db.execute(
                f"INSERT INTO {collection} (id, doc, created_at) VALUES (?, ?, ?)",
                (doc["id"], json.dumps(doc), doc.get("created_at", "")),
            )
            await db.commit()
        logger.debug("document_inserted", collection=collection, doc_id=doc["id"])
        return doc

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Retrieve a document by id.

        Returns:
            Document or None if not found
        """
        async with self._operation(collection, "get") as db:
            cursor = await db.execute(f"SELECT doc FROM {collection} WHERE id = ?", (doc_id,))
            row = await cursor.fetchone()
        return json.loads(row[0]) if row else None

    async def find(
        self,
        collection: str,
        filters: Filters | None = None,
        sort: str = "created_at",
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Find documents matching a filter.

        Args:
            collection: Collection name
            filters: Filter document (see build_where)
            sort: Field to order by
            descending: Reverse the sort order
            limit: Maximum documents to return

        Returns:
            Matching documents
        """
        where, params = build_where(filters)
        order = "DESC" if descending else "ASC"
        query = f"SELECT doc FROM {collection} WHERE {where} ORDER BY json_extract(doc, ?) {order}, id {order}"
        params = [*params, _json_path(sort)]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        async with self._operation(collection, "find") as db:
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
        return [json.loads(row[0]) for row in rows]

    async def find_one(self, collection: str, filters: Filters) -> dict[str, Any] | None:
        """Find the first document matching a filter."""
        docs = await self.find(collection, filters, limit=1)
        return docs[0] if docs else None

    async def count(self, collection: str, filters: Filters | None = None) -> int:
        """Count documents matching a filter."""
        where, params = build_where(filters)
        async with self._operation(collection, "count") as db:
            cursor = await db.execute(f"SELECT COUNT(*) FROM {collection} WHERE {where}", params)
            row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def replace(self, collection: str, doc: dict[str, Any]) -> bool:
        """Replace a stored document with a new version.

        Returns:
            True if a document with that id existed
        """
        async with self._operation(collection, "replace") as db:
            cursor = await db.execute(
                f"UPDATE {collection} SET doc = ? WHERE id = ?",
                (json.dumps(doc), doc["id"]),
            )
            await db.commit()
            updated = cursor.rowcount > 0
        logger.debug("document_replaced", collection=collection, doc_id=doc["id"], found=updated)
        return updated

    async def update_fields(self, collection: str, doc_id: str, fields: dict[str, Any]) -> bool:
        """Set top-level fields of one document, leaving the others as stored.

        Args:
            collection: Collection name
            doc_id: Document id
            fields: Field values to overwrite

        Returns:
            True if the document exists and was updated
        """
        for field in fields:
            _json_path(field)
        async with self._operation(collection, "update") as db:
            cursor = await db.execute(f"SELECT doc FROM {collection} WHERE id = ?", (doc_id,))
            row = await cursor.fetchone()
            if not row:
                return False
            doc = json.loads(row[0])
            doc.update({field: _sql_value(value) for field, value in fields.items()})
            await db.execute(f"UPDATE {collection} SET doc = ? WHERE id = ?", (json.dumps(doc), doc_id))
            await db.commit()
        logger.debug("document_updated", collection=collection, doc_id=doc_id, fields=sorted(fields))
        return True

    async def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document.

        Returns:
            True if a document was deleted
        """
        async with self._operation(collection, "delete") as db:
            cursor = await db.execute(f"DELETE FROM {collection} WHERE id = ?", (doc_id,))
            await db.commit()
            deleted = cursor.rowcount > 0
        logger.debug("document_deleted", collection=collection, doc_id=doc_id, found=deleted)
        return deleted

    async def push(self, collection: str, doc_id: str, field: str, value: Any, unique: bool = False) -> bool:
        """Append a value to a list field of one document.

        With `unique` the value is only appended when the list lacks it.

        Returns:
            True if the document exists and was updated
        """
        _json_path(field)
        async with self._operation(collection, "push") as db:
            cursor = await db.execute(f"SELECT doc FROM {collection} WHERE id = ?", (doc_id,))
            row = await cursor.fetchone()
            if not row:
                return False
            doc = json.loads(row[0])
            items = doc.setdefault(field, [])
            stored = _sql_value(value)
            if unique and stored in items:
                return True
            items.append(stored)
            await db.execute(f"UPDATE {collection} SET doc = ? WHERE id = ?", (json.dumps(doc), doc_id))
            await db.commit()
        return True

    async def aggregate_count(
        self,
        collection: str,
        group_key: str,
        filters: Filters | None = None,
    ) -> dict[Any, int]:
        """Count documents grouped by the value of one field.

        Args:
            collection: Collection name
            group_key: Field to group by
            filters: Filter applied before grouping

        Returns:
            Mapping of field value to document count
        """
        where, params = build_where(filters)
        query = (
            f"SELECT json_extract(doc, ?) AS grp, COUNT(*) FROM {collection} "
            f"WHERE {where} GROUP BY grp"
        )
        async with self._operation(collection, "aggregate") as db:
            cursor = await db.execute(query, [_json_path(group_key), *params])
            rows = await cursor.fetchall()
        return {row[0]: int(row[1]) for row in rows}

    async def collection_counts(self) -> dict[str, int]:
        """Count documents in every collection."""
        return {collection: await self.count(collection) for collection in COLLECTIONS}
