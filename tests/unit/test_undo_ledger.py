"""
Unit tests for the undo/redo ledger.

Tests cover:
- Dense position assignment, including concurrent pushes
- Undo/redo round trips over real mutations
- Discarding the redo tail on push
- Integrity aborts
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from designer.schemaboard_server.errors import ConflictError, InvalidArgumentError, Unauthorized
from designer.schemaboard_server.model import ColumnUpdate, TableUpdate, TypeCategory, UndoStatus


def _normalized(graph):
    """Graph contents keyed by collection, sorted by id."""
    return {
        "tables": sorted((t.to_record() for t in graph.tables), key=lambda r: r["id"]),
        "columns": sorted((c.to_record() for c in graph.columns), key=lambda r: r["id"]),
        "relationships": sorted(
            (r.to_record() for r in graph.relationships), key=lambda r: r["id"]
        ),
        "enum_types": sorted((e.to_record() for e in graph.enum_types), key=lambda r: r["id"]),
    }


class TestPush:
    """Tests for push and position assignment."""

    @pytest.mark.asyncio
    async def test_positions_start_at_zero(self, board, project_id):
        first = await board.ledger.push("user:alice", project_id, "a", {}, {})
        second = await board.ledger.push("user:alice", project_id, "b", "{}", "{}")

        assert first.position == 0
        assert second.position == 1
        assert first.status is UndoStatus.APPLIED

    @pytest.mark.asyncio
    async def test_positions_are_per_user(self, make_board):
        board = await make_board(collaborator_roles_enabled=True)
        project_id = await board.projects.create_project("user:alice", "P")
        await board.projects.add_collaborator("user:alice", project_id, "user:bob", "editor")

        await board.ledger.push("user:alice", project_id, "a", {}, {})
        bob_entry = await board.ledger.push("user:bob", project_id, "b", {}, {})

        assert bob_entry.position == 0

    @pytest.mark.asyncio
    async def test_malformed_state_rejected(self, board, project_id):
        with pytest.raises(InvalidArgumentError):
            await board.ledger.push("user:alice", project_id, "a", "not json", "{}")
        with pytest.raises(InvalidArgumentError):
            await board.ledger.push("user:alice", project_id, "a", {"widgets": []}, {})

    @pytest.mark.asyncio
    async def test_push_requires_write_access(self, board, project_id):
        with pytest.raises(Unauthorized):
            await board.ledger.push("user:mallory", project_id, "a", {}, {})
        with pytest.raises(Unauthorized):
            await board.ledger.push(None, project_id, "a", {}, {})

    @pytest.mark.asyncio
    async def test_concurrent_pushes_get_dense_positions(self, board, project_id):
        """Pushes racing from many threads get exactly 0..N-1."""
        workers, per_worker = 8, 5

        def push_many(worker):
            for i in range(per_worker):
                asyncio.run(
                    board.ledger.push("user:alice", project_id, f"w{worker}-{i}", {}, {})
                )

        with ThreadPoolExecutor(max_workers=workers) as pool:
            list(pool.map(push_many, range(workers)))

        history = await board.ledger.history("user:alice", project_id)
        assert sorted(e.position for e in history) == list(range(workers * per_worker))


class TestUndoRedo:
    """Tests for undo and redo over mutator operations."""

    @pytest.mark.asyncio
    async def test_nothing_to_undo_or_redo(self, board, project_id):
        assert await board.ledger.undo("user:alice", project_id) is None
        assert await board.ledger.redo("user:alice", project_id) is None

    @pytest.mark.asyncio
    async def test_undo_create_table(self, board, project_id):
        table_id = await board.mutator.create_table("user:alice", project_id, "t", 0, 0)

        entry = await board.ledger.undo("user:alice", project_id)

        assert entry.action_type == "create_table"
        assert entry.status is UndoStatus.UNDONE
        assert await board.mutator.get_table("user:alice", table_id) is None

    @pytest.mark.asyncio
    async def test_undo_update_restores_previous_values(self, board, schema):
        await board.mutator.update_column(
            "user:alice", schema.user_email_col, ColumnUpdate(name="mail", is_unique=False)
        )

        await board.ledger.undo("user:alice", schema.project_id)

        columns = await board.mutator.list_columns("user:alice", schema.users)
        email = next(c for c in columns if c.id == schema.user_email_col)
        assert email.name == "email"
        assert email.is_unique is True

    @pytest.mark.asyncio
    async def test_undo_cascading_delete_restores_everything(self, board, schema):
        """Undo of a table delete brings back its columns and relationships."""
        before = await board.mutator.load_graph("user:alice", schema.project_id)
        await board.mutator.delete_table("user:alice", schema.users)

        await board.ledger.undo("user:alice", schema.project_id)

        after = await board.mutator.load_graph("user:alice", schema.project_id)
        assert _normalized(after) == _normalized(before)

    @pytest.mark.asyncio
    async def test_undo_then_redo_round_trip(self, board, schema):
        """Undoing k steps then redoing k steps returns to the same graph."""
        actor = "user:alice"
        await board.mutator.update_table(actor, schema.users, TableUpdate(name="accounts"))
        await board.mutator.reorder_columns(
            actor, schema.users, [schema.user_email_col, schema.user_id_col]
        )
        await board.mutator.delete_relationship(actor, schema.relationship)
        await board.mutator.delete_column(actor, schema.author_col)
        final = _normalized(await board.mutator.load_graph(actor, schema.project_id))

        for _ in range(4):
            assert await board.ledger.undo(actor, schema.project_id) is not None
        for _ in range(4):
            assert await board.ledger.redo(actor, schema.project_id) is not None

        assert _normalized(await board.mutator.load_graph(actor, schema.project_id)) == final

    @pytest.mark.asyncio
    async def test_undo_all_returns_to_empty_project(self, board, schema):
        """The whole fixture history unwinds to an empty graph."""
        history = await board.ledger.history("user:alice", schema.project_id)
        for _ in history:
            await board.ledger.undo("user:alice", schema.project_id)

        graph = await board.mutator.load_graph("user:alice", schema.project_id)
        assert _normalized(graph) == {
            "tables": [], "columns": [], "relationships": [], "enum_types": []
        }

    @pytest.mark.asyncio
    async def test_push_discards_redo_tail(self, board, project_id):
        await board.ledger.push("user:alice", project_id, "a", {}, {})
        await board.ledger.push("user:alice", project_id, "b", {}, {})
        await board.ledger.undo("user:alice", project_id)

        await board.ledger.push("user:alice", project_id, "c", {}, {})

        history = await board.ledger.history("user:alice", project_id)
        assert [(e.action_type, e.position, e.status) for e in history] == [
            ("a", 0, UndoStatus.APPLIED),
            ("b", 1, UndoStatus.DISCARDED),
            ("c", 2, UndoStatus.APPLIED),
        ]
        assert await board.ledger.redo("user:alice", project_id) is None

    @pytest.mark.asyncio
    async def test_undo_requires_write_access(self, board, project_id):
        await board.mutator.create_table("user:alice", project_id, "t", 0, 0)
        with pytest.raises(Unauthorized):
            await board.ledger.undo("user:mallory", project_id)

    @pytest.mark.asyncio
    async def test_history_hidden_from_strangers(self, board, schema):
        assert await board.ledger.history("user:mallory", schema.project_id) == []


class TestUndoIntegrity:
    """Undo and redo abort rather than leave dangling references."""

    @pytest.mark.asyncio
    async def test_undo_blocked_by_other_users_reference(self, make_board):
        """Undoing a column another user now references is a conflict."""
        board = await make_board(collaborator_roles_enabled=True)
        project_id = await board.projects.create_project("user:alice", "P")
        await board.projects.add_collaborator("user:alice", project_id, "user:bob", "editor")

        users = await board.mutator.create_table("user:alice", project_id, "users", 0, 0)
        user_id = await board.mutator.create_column(
            "user:alice", users, "id", "uuid", TypeCategory.UUID,
            is_primary_key=True, is_nullable=False, is_unique=True, order=0,
        )
        posts = await board.mutator.create_table("user:bob", project_id, "posts", 0, 0)
        author = await board.mutator.create_column(
            "user:bob", posts, "author_id", "uuid", TypeCategory.UUID,
            is_primary_key=False, is_nullable=False, is_unique=False, order=0,
        )
        await board.mutator.create_relationship(
            "user:bob", project_id, posts, author, users, user_id, "one-to-many"
        )
        before = _normalized(await board.mutator.load_graph("user:alice", project_id))

        with pytest.raises(ConflictError) as exc_info:
            await board.ledger.undo("user:alice", project_id)

        assert exc_info.value.reason == "undo-integrity"
        assert _normalized(await board.mutator.load_graph("user:alice", project_id)) == before
        history = await board.ledger.history("user:alice", project_id)
        assert all(e.status is UndoStatus.APPLIED for e in history)

    @pytest.mark.asyncio
    async def test_undo_table_create_blocked_by_other_users_column(self, make_board):
        """Undoing a table that another user added a column to is a conflict."""
        board = await make_board(collaborator_roles_enabled=True)
        project_id = await board.projects.create_project("user:alice", "P")
        await board.projects.add_collaborator("user:alice", project_id, "user:bob", "editor")

        table_id = await board.mutator.create_table("user:alice", project_id, "t", 0, 0)
        column_id = await board.mutator.create_column(
            "user:bob", table_id, "c", "text", TypeCategory.TEXT,
            is_primary_key=False, is_nullable=True, is_unique=False, order=0,
        )

        with pytest.raises(ConflictError) as exc_info:
            await board.ledger.undo("user:alice", project_id)

        assert exc_info.value.reason == "undo-integrity"
        assert await board.store.get("tables", table_id) is not None
        column = await board.store.get("columns", column_id)
        assert column["table_id"] == table_id

    @pytest.mark.asyncio
    async def test_undo_of_dangling_fragment_aborts(self, board, project_id):
        """A fragment pointing at a missing table never lands."""
        orphan = {
            "id": "col-1",
            "table_id": "no-such-table",
            "name": "x",
            "data_type": "text",
            "type_category": "text",
            "is_primary_key": False,
            "is_nullable": True,
            "is_unique": False,
            "default_value": None,
            "array_base_type": None,
            "enum_type_id": None,
            "order": 0,
            "created_at": 1,
            "updated_at": 1,
        }
        await board.ledger.push("user:alice", project_id, "bogus", {"columns": [orphan]}, {})

        with pytest.raises(ConflictError):
            await board.ledger.undo("user:alice", project_id)

        assert await board.store.get("columns", "col-1") is None
