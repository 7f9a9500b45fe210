"""
Unit tests for the SQLite entity store.

Tests cover:
- Record CRUD and partial patches
- Index queries, prefix keys and ordering
- Transaction commit and rollback
- Unique index enforcement
"""

import tempfile
from pathlib import Path

import pytest

from designer.schemaboard_server.apply.entity_store import EntityStore
from designer.schemaboard_server.errors import StoreFailure


def _table(project_id="p1", name="users", **overrides):
    record = {
        "project_id": project_id,
        "name": name,
        "position_x": 0.0,
        "position_y": 0.0,
        "created_at": 1,
        "updated_at": 1,
    }
    record.update(overrides)
    return record


def _column(table_id, name, order, **overrides):
    record = {
        "table_id": table_id,
        "name": name,
        "data_type": "text",
        "type_category": "text",
        "is_primary_key": False,
        "is_nullable": True,
        "is_unique": False,
        "order": order,
        "created_at": 1,
        "updated_at": 1,
    }
    record.update(overrides)
    return record


class TestEntityStore:
    """Tests for EntityStore."""

    @pytest.fixture
    def data_dir(self):
        """Create temporary data directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield tmpdir

    @pytest.fixture
    def store(self, data_dir):
        return EntityStore(Path(data_dir) / "test.db", wal_mode=False)

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, store):
        """Initializing twice keeps the schema."""
        await store.initialize()
        await store.initialize()

        stats = await store.get_stats()
        assert stats["tables"] == 0
        assert set(stats) >= {"projects", "columns", "undo_entries"}

    @pytest.mark.asyncio
    async def test_insert_generates_id(self, store):
        """Insert assigns a UUID when no id is given."""
        await store.initialize()

        table_id = await store.insert("tables", _table())
        fetched = await store.get("tables", table_id)

        assert fetched["id"] == table_id
        assert fetched["name"] == "users"

    @pytest.mark.asyncio
    async def test_bool_and_json_fields_decode(self, store):
        """Booleans and JSON values come back in their Python types."""
        await store.initialize()

        column_id = await store.insert("columns", _column("t1", "id", 0, is_primary_key=True))
        enum_id = await store.insert(
            "enum_types",
            {"project_id": "p1", "name": "status", "values": ["a", "b"], "created_at": 1,
             "updated_at": 1},
        )

        column = await store.get("columns", column_id)
        enum_type = await store.get("enum_types", enum_id)
        assert column["is_primary_key"] is True
        assert column["is_unique"] is False
        assert enum_type["values"] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_patch_touches_only_given_fields(self, store):
        """Patch leaves other fields unchanged."""
        await store.initialize()
        table_id = await store.insert("tables", _table(position_x=5.0))

        assert await store.patch("tables", table_id, {"name": "accounts"}) is True

        fetched = await store.get("tables", table_id)
        assert fetched["name"] == "accounts"
        assert fetched["position_x"] == 5.0

    @pytest.mark.asyncio
    async def test_patch_missing_record(self, store):
        """Patching a missing record reports False."""
        await store.initialize()
        assert await store.patch("tables", "missing", {"name": "x"}) is False

    @pytest.mark.asyncio
    async def test_patch_rejects_unknown_fields(self, store):
        """Unknown fields and id are rejected."""
        await store.initialize()
        table_id = await store.insert("tables", _table())

        with pytest.raises(ValueError):
            await store.patch("tables", table_id, {"colour": "red"})
        with pytest.raises(ValueError):
            await store.patch("tables", table_id, {"id": "other"})

    @pytest.mark.asyncio
    async def test_delete(self, store):
        """Delete removes the record once."""
        await store.initialize()
        table_id = await store.insert("tables", _table())

        assert await store.delete("tables", table_id) is True
        assert await store.delete("tables", table_id) is False
        assert await store.get("tables", table_id) is None

    @pytest.mark.asyncio
    async def test_query_orders_by_index_then_insertion(self, store):
        """Ties on the ordering key fall back to insertion order."""
        await store.initialize()
        await store.insert("columns", _column("t1", "c", 1))
        await store.insert("columns", _column("t1", "a", 0))
        await store.insert("columns", _column("t1", "b", 1))
        await store.insert("columns", _column("t2", "other", 0))

        rows = await store.query_by_index("columns", "by_table_order", "t1")

        assert [r["name"] for r in rows] == ["a", "c", "b"]

    @pytest.mark.asyncio
    async def test_query_descending(self, store):
        """Descending reverses the index order."""
        await store.initialize()
        for created_at in (1, 3, 2):
            await store.insert(
                "snapshots",
                {"project_id": "p1", "description": "", "data": "{}", "created_by": "u",
                 "created_at": created_at},
            )

        with store.transaction(write=False) as tx:
            rows = tx.query_by_index("snapshots", "by_project_created", "p1", descending=True)

        assert [r["created_at"] for r in rows] == [3, 2, 1]

    @pytest.mark.asyncio
    async def test_unknown_index_raises(self, store):
        """Querying an undeclared index is a programming error."""
        await store.initialize()
        with pytest.raises(ValueError):
            await store.query_by_index("tables", "by_name", "users")

    @pytest.mark.asyncio
    async def test_transaction_rolls_back_on_error(self, store):
        """An exception inside a transaction discards its writes."""
        await store.initialize()

        with pytest.raises(RuntimeError):
            with store.transaction() as tx:
                tx.insert("tables", _table(name="ghost"))
                raise RuntimeError("boom")

        assert (await store.get_stats())["tables"] == 0

    @pytest.mark.asyncio
    async def test_unique_index_violation_is_store_failure(self, store):
        """SQLite constraint errors surface as StoreFailure after rollback."""
        await store.initialize()
        entry = {
            "project_id": "p1",
            "user_id": "u1",
            "action_type": "x",
            "before_state": "{}",
            "after_state": "{}",
            "position": 0,
            "status": "applied",
            "created_at": 1,
        }
        await store.insert("undo_entries", entry)

        with pytest.raises(StoreFailure) as exc_info:
            with store.transaction("push") as tx:
                tx.insert("tables", _table())
                tx.insert("undo_entries", entry)

        assert exc_info.value.operation == "push"
        assert (await store.get_stats())["tables"] == 0

    @pytest.mark.asyncio
    async def test_max_value(self, store):
        """max_value returns None for an empty key."""
        await store.initialize()
        with store.transaction() as tx:
            assert tx.max_value("columns", "order", "by_table", "t1") is None
            tx.insert("columns", _column("t1", "a", 4))
            tx.insert("columns", _column("t1", "b", 2))
            assert tx.max_value("columns", "order", "by_table", "t1") == 4
