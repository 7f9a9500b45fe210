"""
Unit tests for column operations of the schema mutator.

Tests cover:
- Caller-supplied ordering on create
- Partial updates and clearing optional fields
- Delete blocked by relationships (target checked first)
- Strict, atomic reordering
"""

import pytest

from designer.schemaboard_server.errors import (
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    Unauthorized,
)
from designer.schemaboard_server.model import ColumnUpdate, RelationType, TypeCategory


async def _add_column(board, table_id, name, order, **kwargs):
    params = dict(is_primary_key=False, is_nullable=True, is_unique=False, order=order)
    params.update(kwargs)
    return await board.mutator.create_column(
        "user:alice", table_id, name, "text", TypeCategory.TEXT, **params
    )


class TestCreateColumn:
    """Tests for create_column."""

    @pytest.mark.asyncio
    async def test_create_column(self, board, project_id):
        table_id = await board.mutator.create_table("user:alice", project_id, "users", 0, 0)
        column_id = await board.mutator.create_column(
            "user:alice", table_id, "tags", "text[]", "array",
            is_primary_key=False, is_nullable=True, is_unique=False, order=0,
            array_base_type="text", default_value="'{}'",
        )

        [column] = await board.mutator.list_columns("user:alice", table_id)
        assert column.id == column_id
        assert column.type_category is TypeCategory.ARRAY
        assert column.array_base_type == "text"
        assert column.default_value == "'{}'"
        assert column.enum_type_id is None

    @pytest.mark.asyncio
    async def test_duplicate_orders_accepted(self, board, project_id):
        """Orders are not renumbered on create; ties list by insertion."""
        table_id = await board.mutator.create_table("user:alice", project_id, "t", 0, 0)
        await _add_column(board, table_id, "a", 3)
        await _add_column(board, table_id, "b", 1)
        await _add_column(board, table_id, "c", 1)

        columns = await board.mutator.list_columns("user:alice", table_id)
        assert [(c.name, c.order) for c in columns] == [("b", 1), ("c", 1), ("a", 3)]

    @pytest.mark.asyncio
    async def test_unknown_type_category(self, board, project_id):
        table_id = await board.mutator.create_table("user:alice", project_id, "t", 0, 0)
        with pytest.raises(InvalidArgumentError) as exc_info:
            await board.mutator.create_column(
                "user:alice", table_id, "c", "money", "currency",
                is_primary_key=False, is_nullable=True, is_unique=False, order=0,
            )
        assert exc_info.value.field_name == "type_category"

    @pytest.mark.asyncio
    async def test_negative_order_rejected(self, board, project_id):
        table_id = await board.mutator.create_table("user:alice", project_id, "t", 0, 0)
        with pytest.raises(InvalidArgumentError):
            await _add_column(board, table_id, "c", -1)

    @pytest.mark.asyncio
    async def test_missing_table(self, board, project_id):
        with pytest.raises(NotFoundError):
            await _add_column(board, "missing", "c", 0)

    @pytest.mark.asyncio
    async def test_enum_from_other_project_rejected(self, board, project_id):
        """enum_type_id must belong to the column's project."""
        other_project = await board.projects.create_project("user:alice", "Other")
        enum_id = await board.mutator.create_enum_type(
            "user:alice", other_project, "status", ["on", "off"]
        )
        table_id = await board.mutator.create_table("user:alice", project_id, "t", 0, 0)

        with pytest.raises(InvalidArgumentError) as exc_info:
            await board.mutator.create_column(
                "user:alice", table_id, "status", "status", TypeCategory.ENUM,
                is_primary_key=False, is_nullable=True, is_unique=False, order=0,
                enum_type_id=enum_id,
            )
        assert exc_info.value.field_name == "enum_type_id"


class TestUpdateColumn:
    """Tests for update_column."""

    @pytest.mark.asyncio
    async def test_partial_update(self, board, schema):
        """Only supplied fields change; updated_at advances."""
        [before] = [
            c for c in await board.mutator.list_columns("user:alice", schema.users)
            if c.id == schema.user_email_col
        ]

        updated = await board.mutator.update_column(
            "user:alice", schema.user_email_col, ColumnUpdate(is_nullable=True)
        )

        assert updated.is_nullable is True
        assert updated.name == before.name
        assert updated.data_type == before.data_type
        assert updated.is_unique == before.is_unique
        assert updated.order == before.order
        assert updated.updated_at > before.updated_at

    @pytest.mark.asyncio
    async def test_explicit_none_clears_optional(self, board, project_id):
        """Setting an optional field to None clears it; omitting keeps it."""
        table_id = await board.mutator.create_table("user:alice", project_id, "t", 0, 0)
        column_id = await _add_column(board, table_id, "c", 0, default_value="'x'")

        kept = await board.mutator.update_column("user:alice", column_id, ColumnUpdate(name="d"))
        assert kept.default_value == "'x'"

        cleared = await board.mutator.update_column(
            "user:alice", column_id, ColumnUpdate(default_value=None)
        )
        assert cleared.default_value is None
        assert cleared.name == "d"

    @pytest.mark.asyncio
    async def test_update_missing_column(self, board, project_id):
        with pytest.raises(NotFoundError) as exc_info:
            await board.mutator.update_column("user:alice", "missing", ColumnUpdate(name="x"))
        assert exc_info.value.resource_type == "column"

    @pytest.mark.asyncio
    async def test_update_by_stranger(self, board, schema):
        with pytest.raises(Unauthorized):
            await board.mutator.update_column(
                "user:mallory", schema.user_email_col, ColumnUpdate(name="x")
            )


class TestDeleteColumn:
    """Tests for delete_column."""

    @pytest.mark.asyncio
    async def test_delete_unreferenced(self, board, schema):
        await board.mutator.delete_column("user:alice", schema.user_email_col)

        columns = await board.mutator.list_columns("user:alice", schema.users)
        assert [c.id for c in columns] == [schema.user_id_col]

    @pytest.mark.asyncio
    async def test_delete_target_column_conflicts(self, board, schema):
        """A relationship target cannot be deleted."""
        with pytest.raises(ConflictError) as exc_info:
            await board.mutator.delete_column("user:alice", schema.user_id_col)

        assert exc_info.value.reason == "relationship-target"
        assert len(await board.mutator.list_columns("user:alice", schema.users)) == 2

    @pytest.mark.asyncio
    async def test_delete_source_column_conflicts(self, board, schema):
        """A relationship source cannot be deleted."""
        with pytest.raises(ConflictError) as exc_info:
            await board.mutator.delete_column("user:alice", schema.author_col)

        assert exc_info.value.reason == "relationship-source"

    @pytest.mark.asyncio
    async def test_target_reported_before_source(self, board, schema):
        """A column that is both target and source reports the target conflict."""
        actor = "user:alice"
        comments = await board.mutator.create_table(actor, schema.project_id, "comments", 0, 0)
        post_ref = await board.mutator.create_column(
            actor, comments, "post_id", "uuid", TypeCategory.UUID,
            is_primary_key=False, is_nullable=False, is_unique=False, order=0,
        )
        # posts.author_id is already a source; make it a target as well.
        await board.mutator.create_relationship(
            actor, schema.project_id, comments, post_ref, schema.posts, schema.author_col,
            RelationType.ONE_TO_MANY,
        )

        with pytest.raises(ConflictError) as exc_info:
            await board.mutator.delete_column(actor, schema.author_col)
        assert exc_info.value.reason == "relationship-target"

    @pytest.mark.asyncio
    async def test_delete_after_relationship_removed(self, board, schema):
        await board.mutator.delete_relationship("user:alice", schema.relationship)
        await board.mutator.delete_column("user:alice", schema.user_id_col)

        columns = await board.mutator.list_columns("user:alice", schema.users)
        assert [c.id for c in columns] == [schema.user_email_col]


class TestReorderColumns:
    """Tests for reorder_columns."""

    @pytest.mark.asyncio
    async def test_reorder_assigns_dense_orders(self, board, project_id):
        """Orders become exactly 0..N-1 in the given sequence."""
        table_id = await board.mutator.create_table("user:alice", project_id, "t", 0, 0)
        a = await _add_column(board, table_id, "a", 7)
        b = await _add_column(board, table_id, "b", 7)
        c = await _add_column(board, table_id, "c", 2)

        result = await board.mutator.reorder_columns("user:alice", table_id, [c, a, b])

        assert [(col.id, col.order) for col in result] == [(c, 0), (a, 1), (b, 2)]
        listed = await board.mutator.list_columns("user:alice", table_id)
        assert [col.order for col in listed] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_reorder_requires_every_column(self, board, schema):
        """A partial list is rejected and changes nothing."""
        with pytest.raises(InvalidArgumentError):
            await board.mutator.reorder_columns("user:alice", schema.users, [schema.user_id_col])

        columns = await board.mutator.list_columns("user:alice", schema.users)
        assert [c.order for c in columns] == [0, 1]

    @pytest.mark.asyncio
    async def test_reorder_rejects_foreign_columns(self, board, schema):
        with pytest.raises(InvalidArgumentError):
            await board.mutator.reorder_columns(
                "user:alice", schema.users,
                [schema.user_id_col, schema.user_email_col, schema.post_id_col],
            )

    @pytest.mark.asyncio
    async def test_reorder_rejects_duplicates(self, board, schema):
        with pytest.raises(InvalidArgumentError):
            await board.mutator.reorder_columns(
                "user:alice", schema.users,
                [schema.user_id_col, schema.user_id_col, schema.user_email_col],
            )

    @pytest.mark.asyncio
    async def test_list_columns_hidden_from_strangers(self, board, schema):
        assert await board.mutator.list_columns("user:mallory", schema.users) == []
        assert await board.mutator.list_columns("user:alice", "missing") == []
