"""
Entity store for SchemaBoard.

This module manages the SQLite database that holds every collection of the
schema graph:
- projects and collaborators
- tables, columns, relationships and enum types
- snapshots and undo entries

Records are plain dicts keyed by field name. Each collection declares named
secondary indexes; ``query_by_index`` resolves an index name to its key
columns so callers never write SQL.

Invariants:
    - One SQLite file per deployment
    - Every unit of work runs in one transaction (BEGIN IMMEDIATE for writes)
    - sqlite3 errors surface as StoreFailure after rollback
    - Results of index queries are ordered by the index key, then insertion order

How to change safely:
    - Schema migrations must be backward compatible
    - Declare new indexes in both the DDL and COLLECTIONS
    - Use transactions for all write operations

Table schema (all ids TEXT, timestamps INTEGER Unix ms):
    projects:        id, name, owner_id, share_link, created_at, updated_at
    collaborators:   id, project_id, user_id, role, invited_at, invited_by
    tables:          id, project_id, name, position_x, position_y, created_at, updated_at
    columns:         id, table_id, name, data_type, type_category, is_primary_key,
                     is_nullable, is_unique, default_value, array_base_type,
                     enum_type_id, order, created_at, updated_at
    relationships:   id, project_id, source_table_id, source_column_id,
                     target_table_id, target_column_id, relation_type,
                     junction_table_id, created_at
    enum_types:      id, project_id, name, values (JSON), created_at, updated_at
    snapshots:       id, project_id, description, data, created_by, created_at
    undo_entries:    id, project_id, user_id, action_type, before_state,
                     after_state, position, status, created_at
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..errors import StoreFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CollectionSpec:
    """Catalog entry for one record collection.

    Attributes:
        name: SQL table name
        fields: Stored fields in column order (id first)
        indexes: Index name -> key fields
        bool_fields: Fields stored as INTEGER and decoded to bool
        json_fields: Fields stored as JSON text
    """

    name: str
    fields: tuple[str, ...]
    indexes: dict[str, tuple[str, ...]] = field(default_factory=dict)
    bool_fields: frozenset[str] = frozenset()
    json_fields: frozenset[str] = frozenset()


COLLECTIONS: dict[str, CollectionSpec] = {
    "projects": CollectionSpec(
        name="projects",
        fields=("id", "name", "owner_id", "share_link", "created_at", "updated_at"),
        indexes={
            "by_owner": ("owner_id",),
            "by_share_link": ("share_link",),
        },
    ),
    "collaborators": CollectionSpec(
        name="collaborators",
        fields=("id", "project_id", "user_id", "role", "invited_at", "invited_by"),
        indexes={
            "by_project": ("project_id",),
            "by_user": ("user_id",),
            "by_project_user": ("project_id", "user_id"),
        },
    ),
    "tables": CollectionSpec(
        name="tables",
        fields=(
            "id",
            "project_id",
            "name",
            "position_x",
            "position_y",
            "created_at",
            "updated_at",
        ),
        indexes={"by_project": ("project_id",)},
    ),
    "columns": CollectionSpec(
        name="columns",
        fields=(
            "id",
            "table_id",
            "name",
            "data_type",
            "type_category",
            "is_primary_key",
            "is_nullable",
            "is_unique",
            "default_value",
            "array_base_type",
            "enum_type_id",
            "order",
            "created_at",
            "updated_at",
        ),
        indexes={
            "by_table": ("table_id",),
            "by_table_order": ("table_id", "order"),
            "by_enum_type": ("enum_type_id",),
        },
        bool_fields=frozenset({"is_primary_key", "is_nullable", "is_unique"}),
    ),
    "relationships": CollectionSpec(
        name="relationships",
        fields=(
            "id",
            "project_id",
            "source_table_id",
            "source_column_id",
            "target_table_id",
            "target_column_id",
            "relation_type",
            "junction_table_id",
            "created_at",
        ),
        indexes={
            "by_project": ("project_id",),
            "by_source_table": ("source_table_id",),
            "by_target_table": ("target_table_id",),
            "by_source_column": ("source_column_id",),
            "by_target_column": ("target_column_id",),
            "by_junction_table": ("junction_table_id",),
        },
    ),
    "enum_types": CollectionSpec(
        name="enum_types",
        fields=("id", "project_id", "name", "values", "created_at", "updated_at"),
        indexes={
            "by_project": ("project_id",),
            "by_project_name": ("project_id", "name"),
        },
        json_fields=frozenset({"values"}),
    ),
    "snapshots": CollectionSpec(
        name="snapshots",
        fields=("id", "project_id", "description", "data", "created_by", "created_at"),
        indexes={
            "by_project": ("project_id",),
            "by_project_created": ("project_id", "created_at"),
        },
    ),
    "undo_entries": CollectionSpec(
        name="undo_entries",
        fields=(
            "id",
            "project_id",
            "user_id",
            "action_type",
            "before_state",
            "after_state",
            "position",
            "status",
            "created_at",
        ),
        indexes={
            "by_project_user": ("project_id", "user_id"),
            "by_project_user_position": ("project_id", "user_id", "position"),
            "by_project": ("project_id",),
        },
    ),
}


def _quote(identifier: str) -> str:
    return f'"{identifier}"'


def _spec(collection: str) -> CollectionSpec:
    try:
        return COLLECTIONS[collection]
    except KeyError:
        raise ValueError(f"Unknown collection: {collection}") from None


class StoreTransaction:
    """Record operations bound to one open SQLite transaction.

    Obtained from ``EntityStore.transaction()``; never shared across
    transactions or threads.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def _encode(self, spec: CollectionSpec, name: str, value: Any) -> Any:
        if name in spec.json_fields:
            return json.dumps(value)
        if name in spec.bool_fields and value is not None:
            return 1 if value else 0
        return value

    def _decode(self, spec: CollectionSpec, row: sqlite3.Row) -> dict[str, Any]:
        record: dict[str, Any] = {}
        for name in spec.fields:
            value = row[name]
            if name in spec.json_fields and value is not None:
                value = json.loads(value)
            elif name in spec.bool_fields and value is not None:
                value = bool(value)
            record[name] = value
        return record

    def _where(self, spec: CollectionSpec, index_name: str, key: Any) -> tuple[str, list[Any]]:
        try:
            key_fields = spec.indexes[index_name]
        except KeyError:
            raise ValueError(f"Unknown index {index_name} on {spec.name}") from None

        if not isinstance(key, (tuple, list)):
            key = (key,)
        if len(key) > len(key_fields):
            raise ValueError(
                f"Index {index_name} on {spec.name} has {len(key_fields)} key fields, "
                f"got {len(key)} values"
            )

        # A shorter key queries the index by prefix.
        clauses = [f"{_quote(name)} = ?" for name in key_fields[: len(key)]]
        params = [self._encode(spec, name, value) for name, value in zip(key_fields, key)]
        return " AND ".join(clauses), params

    def get(self, collection: str, record_id: str) -> dict[str, Any] | None:
        """Get a record by ID, or None if absent."""
        spec = _spec(collection)
        row = self._conn.execute(
            f"SELECT * FROM {_quote(spec.name)} WHERE id = ?",
            (record_id,),
        ).fetchone()
        return self._decode(spec, row) if row else None

    def insert(self, collection: str, record: dict[str, Any]) -> str:
        """Insert a record, generating an ID when none is given.

        Returns:
            The record ID
        """
        spec = _spec(collection)
        record = dict(record)
        record.setdefault("id", str(uuid.uuid4()))

        unknown = set(record) - set(spec.fields)
        if unknown:
            raise ValueError(f"Unknown fields for {collection}: {sorted(unknown)}")

        names = [name for name in spec.fields if name in record]
        self._conn.execute(
            f"INSERT INTO {_quote(spec.name)} ({', '.join(_quote(n) for n in names)}) "
            f"VALUES ({', '.join('?' for _ in names)})",
            [self._encode(spec, name, record[name]) for name in names],
        )
        return record["id"]

    def patch(self, collection: str, record_id: str, fields: dict[str, Any]) -> bool:
        """Update the given fields of a record, leaving the rest untouched.

        Returns:
            True if the record exists
        """
        spec = _spec(collection)
        rejected = (set(fields) - set(spec.fields)) | ({"id"} & set(fields))
        if rejected:
            raise ValueError(f"Cannot patch fields of {collection}: {sorted(rejected)}")
        if not fields:
            return self.get(collection, record_id) is not None

        names = list(fields)
        cursor = self._conn.execute(
            f"UPDATE {_quote(spec.name)} SET {', '.join(f'{_quote(n)} = ?' for n in names)} "
            "WHERE id = ?",
            [self._encode(spec, name, fields[name]) for name in names] + [record_id],
        )
        return cursor.rowcount > 0

    def upsert(self, collection: str, record: dict[str, Any]) -> None:
        """Write a full record, keeping insertion order if it already exists."""
        fields = {k: v for k, v in record.items() if k != "id"}
        if not self.patch(collection, record["id"], fields):
            self.insert(collection, record)

    def delete(self, collection: str, record_id: str) -> bool:
        """Delete a record.

        Returns:
            True if deleted, False if not found
        """
        spec = _spec(collection)
        cursor = self._conn.execute(
            f"DELETE FROM {_quote(spec.name)} WHERE id = ?",
            (record_id,),
        )
        return cursor.rowcount > 0

    def delete_by_index(self, collection: str, index_name: str, key: Any) -> int:
        """Delete every record matching an index key.

        Returns:
            Number of deleted records
        """
        spec = _spec(collection)
        where, params = self._where(spec, index_name, key)
        cursor = self._conn.execute(f"DELETE FROM {_quote(spec.name)} WHERE {where}", params)
        return cursor.rowcount

    def query_by_index(
        self,
        collection: str,
        index_name: str,
        key: Any,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        """Get records matching an index key (or key prefix).

        Args:
            collection: Collection name
            index_name: Index declared for the collection
            key: Single value or tuple of values
            descending: Reverse the index ordering

        Returns:
            Records ordered by the index key fields, ties by insertion order
        """
        spec = _spec(collection)
        where, params = self._where(spec, index_name, key)
        direction = "DESC" if descending else "ASC"
        order_by = ", ".join(
            f"{_quote(name)} {direction}" for name in (*spec.indexes[index_name], "rowid")
        )
        cursor = self._conn.execute(
            f"SELECT * FROM {_quote(spec.name)} WHERE {where} ORDER BY {order_by}",
            params,
        )
        return [self._decode(spec, row) for row in cursor.fetchall()]

    def exists_by_index(self, collection: str, index_name: str, key: Any) -> bool:
        spec = _spec(collection)
        where, params = self._where(spec, index_name, key)
        row = self._conn.execute(
            f"SELECT 1 FROM {_quote(spec.name)} WHERE {where} LIMIT 1",
            params,
        ).fetchone()
        return row is not None

    def max_value(self, collection: str, field_name: str, index_name: str, key: Any) -> Any:
        """Largest value of a field among records matching an index key."""
        spec = _spec(collection)
        where, params = self._where(spec, index_name, key)
        row = self._conn.execute(
            f"SELECT MAX({_quote(field_name)}) FROM {_quote(spec.name)} WHERE {where}",
            params,
        ).fetchone()
        return row[0]

    def count(self, collection: str) -> int:
        spec = _spec(collection)
        return self._conn.execute(f"SELECT COUNT(*) FROM {_quote(spec.name)}").fetchone()[0]


class EntityStore:
    """SQLite store for all SchemaBoard collections.

    This class provides:
    - Keyed CRUD for every collection
    - Secondary index queries by parent key and ordering key
    - Serializable write transactions spanning many records

    Thread safety:
        Each transaction opens its own connection.
        SQLite serializes writers through BEGIN IMMEDIATE and the busy timeout.

    Example:
        >>> store = EntityStore("/var/lib/schemaboard/schemaboard.db")
        >>> await store.initialize()
        >>> with store.transaction() as tx:
        ...     table_id = tx.insert("tables", {...})
    """

    # SQLite schema version for migrations
    SCHEMA_VERSION = 1

    def __init__(
        self,
        db_path: str | Path,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
        cache_size_pages: int = -64000,
    ) -> None:
        """Initialize the entity store.

        Args:
            db_path: Path of the SQLite database file
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
            cache_size_pages: SQLite cache size (negative = KB)
        """
        self.db_path = Path(db_path)
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self.cache_size_pages = cache_size_pages

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Open a configured connection to the database."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
        )
        conn.row_factory = sqlite3.Row

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            conn.execute(f"PRAGMA cache_size = {self.cache_size_pages}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")

            yield conn
        finally:
            conn.close()

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create database schema."""
        conn.executescript("""
            -- Schema version tracking
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS "projects" (
                "id" TEXT PRIMARY KEY,
                "name" TEXT NOT NULL,
                "owner_id" TEXT NOT NULL,
                "share_link" TEXT,
                "created_at" INTEGER NOT NULL,
                "updated_at" INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_projects_owner ON "projects"("owner_id");
            CREATE UNIQUE INDEX IF NOT EXISTS idx_projects_share_link ON "projects"("share_link");

            CREATE TABLE IF NOT EXISTS "collaborators" (
                "id" TEXT PRIMARY KEY,
                "project_id" TEXT NOT NULL,
                "user_id" TEXT NOT NULL,
                "role" TEXT NOT NULL,
                "invited_at" INTEGER NOT NULL,
                "invited_by" TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_collaborators_user ON "collaborators"("user_id");
            CREATE UNIQUE INDEX IF NOT EXISTS idx_collaborators_project_user
                ON "collaborators"("project_id", "user_id");

            CREATE TABLE IF NOT EXISTS "tables" (
                "id" TEXT PRIMARY KEY,
                "project_id" TEXT NOT NULL,
                "name" TEXT NOT NULL,
                "position_x" REAL NOT NULL,
                "position_y" REAL NOT NULL,
                "created_at" INTEGER NOT NULL,
                "updated_at" INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_tables_project ON "tables"("project_id");

            CREATE TABLE IF NOT EXISTS "columns" (
                "id" TEXT PRIMARY KEY,
                "table_id" TEXT NOT NULL,
                "name" TEXT NOT NULL,
                "data_type" TEXT NOT NULL,
                "type_category" TEXT NOT NULL,
                "is_primary_key" INTEGER NOT NULL,
                "is_nullable" INTEGER NOT NULL,
                "is_unique" INTEGER NOT NULL,
                "default_value" TEXT,
                "array_base_type" TEXT,
                "enum_type_id" TEXT,
                "order" INTEGER NOT NULL,
                "created_at" INTEGER NOT NULL,
                "updated_at" INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_columns_table ON "columns"("table_id");
            CREATE INDEX IF NOT EXISTS idx_columns_table_order ON "columns"("table_id", "order");
            CREATE INDEX IF NOT EXISTS idx_columns_enum_type ON "columns"("enum_type_id");

            CREATE TABLE IF NOT EXISTS "relationships" (
                "id" TEXT PRIMARY KEY,
                "project_id" TEXT NOT NULL,
                "source_table_id" TEXT NOT NULL,
                "source_column_id" TEXT NOT NULL,
                "target_table_id" TEXT NOT NULL,
                "target_column_id" TEXT NOT NULL,
                "relation_type" TEXT NOT NULL,
                "junction_table_id" TEXT,
                "created_at" INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_relationships_project ON "relationships"("project_id");
            CREATE INDEX IF NOT EXISTS idx_relationships_source_table
                ON "relationships"("source_table_id");
            CREATE INDEX IF NOT EXISTS idx_relationships_target_table
                ON "relationships"("target_table_id");
            CREATE INDEX IF NOT EXISTS idx_relationships_source_column
                ON "relationships"("source_column_id");
            CREATE INDEX IF NOT EXISTS idx_relationships_target_column
                ON "relationships"("target_column_id");
            CREATE INDEX IF NOT EXISTS idx_relationships_junction_table
                ON "relationships"("junction_table_id");

            CREATE TABLE IF NOT EXISTS "enum_types" (
                "id" TEXT PRIMARY KEY,
                "project_id" TEXT NOT NULL,
                "name" TEXT NOT NULL,
                "values" TEXT NOT NULL DEFAULT '[]',
                "created_at" INTEGER NOT NULL,
                "updated_at" INTEGER NOT NULL
            );

            CREATE UNIQUE INDEX IF NOT EXISTS idx_enum_types_project_name
                ON "enum_types"("project_id", "name");

            CREATE TABLE IF NOT EXISTS "snapshots" (
                "id" TEXT PRIMARY KEY,
                "project_id" TEXT NOT NULL,
                "description" TEXT NOT NULL,
                "data" TEXT NOT NULL,
                "created_by" TEXT NOT NULL,
                "created_at" INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_snapshots_project_created
                ON "snapshots"("project_id", "created_at");

            CREATE TABLE IF NOT EXISTS "undo_entries" (
                "id" TEXT PRIMARY KEY,
                "project_id" TEXT NOT NULL,
                "user_id" TEXT NOT NULL,
                "action_type" TEXT NOT NULL,
                "before_state" TEXT NOT NULL,
                "after_state" TEXT NOT NULL,
                "position" INTEGER NOT NULL,
                "status" TEXT NOT NULL,
                "created_at" INTEGER NOT NULL
            );

            CREATE UNIQUE INDEX IF NOT EXISTS idx_undo_project_user_position
                ON "undo_entries"("project_id", "user_id", "position");

            -- Record schema version
            INSERT OR IGNORE INTO schema_version (version, applied_at)
            VALUES (1, strftime('%s', 'now') * 1000);
        """)

    async def initialize(self) -> None:
        """Create the database file and schema if they don't exist."""
        try:
            with self._get_connection() as conn:
                self._create_schema(conn)
        except sqlite3.Error as e:
            raise StoreFailure(f"Failed to initialize store: {e}", operation="initialize") from e
        logger.info("Initialized entity store", extra={"db_path": str(self.db_path)})

    @contextmanager
    def transaction(
        self,
        operation: str = "transaction",
        write: bool = True,
    ) -> Iterator[StoreTransaction]:
        """Run a unit of work in one SQLite transaction.

        Writes take the database write lock up front (BEGIN IMMEDIATE), so
        the read-validate-write sequence of an operation can't interleave
        with another writer. Any exception rolls the transaction back.

        Args:
            operation: Name used in logs and StoreFailure details
            write: Whether the unit of work writes

        Yields:
            StoreTransaction bound to the open transaction

        Raises:
            StoreFailure: If SQLite fails; nothing is committed
        """
        try:
            with self._get_connection() as conn:
                conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
                try:
                    yield StoreTransaction(conn)
                    conn.execute("COMMIT")
                except Exception:
                    conn.execute("ROLLBACK")
                    raise
        except sqlite3.Error as e:
            logger.error(
                f"Store failure during {operation}: {e}",
                extra={"operation": operation},
            )
            raise StoreFailure(f"Store failure during {operation}: {e}", operation=operation) from e

    async def get(self, collection: str, record_id: str) -> dict[str, Any] | None:
        """Get a record by ID."""
        with self.transaction("get", write=False) as tx:
            return tx.get(collection, record_id)

    async def insert(self, collection: str, record: dict[str, Any]) -> str:
        """Insert a record and return its ID."""
        with self.transaction("insert") as tx:
            return tx.insert(collection, record)

    async def patch(self, collection: str, record_id: str, fields: dict[str, Any]) -> bool:
        """Patch a record; True if it exists."""
        with self.transaction("patch") as tx:
            return tx.patch(collection, record_id, fields)

    async def delete(self, collection: str, record_id: str) -> bool:
        """Delete a record; True if it existed."""
        with self.transaction("delete") as tx:
            return tx.delete(collection, record_id)

    async def query_by_index(
        self,
        collection: str,
        index_name: str,
        key: Sequence[Any] | Any,
    ) -> list[dict[str, Any]]:
        """Get records matching an index key."""
        with self.transaction("query_by_index", write=False) as tx:
            return tx.query_by_index(collection, index_name, key)

    async def get_stats(self) -> dict[str, int]:
        """Get record counts per collection."""
        with self.transaction("get_stats", write=False) as tx:
            return {name: tx.count(name) for name in COLLECTIONS}
