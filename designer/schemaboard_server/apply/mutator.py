"""
Schema graph mutator for SchemaBoard.

The mutator validates and applies every change to tables, columns,
relationships and enum types. Each public operation is one unit of work:

    1. Open a write transaction (BEGIN IMMEDIATE)
    2. Resolve the owning project (Column -> Table -> Project, etc.)
    3. Authorize the actor
    4. Validate against the graph as it is inside the transaction
    5. Write, then record an undo entry in the same transaction

Validation precedes every write, so a failed operation changes nothing.

Invariants:
    - Relationship columns exist and belong to the declared tables
    - A column referenced by a relationship cannot be deleted
    - Deleting a table cascades to its relationships and columns atomically
    - reorder_columns leaves the table's orders exactly 0..N-1
    - Partial updates only touch the fields the caller supplied

How to change safely:
    - Keep validation ahead of the first write in every operation
    - Record the before/after fragment of every record a change touches
    - Add a test for each new ConflictError reason
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from ..clock import Clock, now_ms
from ..errors import ConflictError, InvalidArgumentError, NotFoundError, Unauthorized
from ..model.patches import ColumnUpdate, EnumTypeUpdate, RelationshipUpdate, TableUpdate
from ..model.types import (
    Capability,
    Column,
    EnumType,
    Project,
    Relationship,
    RelationType,
    SchemaGraph,
    Table,
    TableWithColumns,
    TypeCategory,
)
from ..undo.ledger import Fragment, UndoLedger
from .entity_store import EntityStore, StoreTransaction
from .guard import AuthorizationGuard
from .integrity import load_project_graph

logger = logging.getLogger(__name__)


@dataclass
class TableDeletion:
    """What a table deletion removed.

    Attributes:
        table_id: The deleted table
        column_ids: Columns deleted with it
        relationship_ids: Relationships cascaded because they referenced it
    """

    table_id: str
    column_ids: list[str] = field(default_factory=list)
    relationship_ids: list[str] = field(default_factory=list)


def _require_actor(actor: str | None) -> str:
    if not actor:
        raise Unauthorized("Unauthorized: no acting user")
    return actor


def _require_name(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgumentError(f"'{field_name}' must be a non-empty string", field_name)
    return value


def _require_order(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidArgumentError("'order' must be a non-negative integer", "order")
    return value


def _type_category(value: TypeCategory | str) -> TypeCategory:
    if isinstance(value, TypeCategory):
        return value
    try:
        return TypeCategory.from_str(value)
    except ValueError as e:
        raise InvalidArgumentError(str(e), "type_category") from e


def _relation_type(value: RelationType | str) -> RelationType:
    if isinstance(value, RelationType):
        return value
    try:
        return RelationType.from_str(value)
    except ValueError as e:
        raise InvalidArgumentError(str(e), "relation_type") from e


def _enum_values(values: Any) -> list[str]:
    if not isinstance(values, (list, tuple)) or not all(isinstance(v, str) for v in values):
        raise InvalidArgumentError("'values' must be a list of strings", "values")
    if not values:
        raise InvalidArgumentError("'values' must not be empty", "values")
    if len(set(values)) != len(values):
        raise InvalidArgumentError("'values' must not contain duplicates", "values")
    return list(values)


class SchemaMutator:
    """Referential-integrity engine for the schema graph.

    Every method takes the acting user first. Mutations raise
    Unauthorized/NotFoundError/ConflictError/InvalidArgumentError; reads
    return an empty result when the actor can't see the project.

    Example:
        >>> mutator = SchemaMutator(store, guard, ledger)
        >>> table_id = await mutator.create_table("user:1", project_id, "users", 0, 0)
        >>> col_id = await mutator.create_column(
        ...     "user:1", table_id, "id", "uuid", TypeCategory.UUID,
        ...     is_primary_key=True, is_nullable=False, is_unique=True, order=0,
        ... )
    """

    def __init__(
        self,
        store: EntityStore,
        guard: AuthorizationGuard,
        ledger: UndoLedger,
        clock: Clock | None = None,
        record_undo: bool = True,
    ) -> None:
        self.store = store
        self.guard = guard
        self.ledger = ledger
        self.record_undo = record_undo
        self._clock = clock or now_ms

    # =========================================================================
    # Resolution
    # =========================================================================

    def _get_table(self, tx: StoreTransaction, table_id: str) -> Table:
        record = tx.get("tables", table_id)
        if record is None:
            raise NotFoundError("table", table_id)
        return Table.from_record(record)

    def _get_column(self, tx: StoreTransaction, column_id: str) -> Column:
        record = tx.get("columns", column_id)
        if record is None:
            raise NotFoundError("column", column_id)
        return Column.from_record(record)

    def _get_relationship(self, tx: StoreTransaction, relationship_id: str) -> Relationship:
        record = tx.get("relationships", relationship_id)
        if record is None:
            raise NotFoundError("relationship", relationship_id)
        return Relationship.from_record(record)

    def _get_enum_type(self, tx: StoreTransaction, enum_type_id: str) -> EnumType:
        record = tx.get("enum_types", enum_type_id)
        if record is None:
            raise NotFoundError("enum type", enum_type_id)
        return EnumType.from_record(record)

    def _authorize_table(
        self,
        tx: StoreTransaction,
        actor: str,
        table_id: str,
    ) -> tuple[Table, Project]:
        table = self._get_table(tx, table_id)
        project = self.guard.authorize(tx, actor, table.project_id, Capability.WRITE)
        return table, project

    def _authorize_column(
        self,
        tx: StoreTransaction,
        actor: str,
        column_id: str,
    ) -> tuple[Column, Table, Project]:
        column = self._get_column(tx, column_id)
        table, project = self._authorize_table(tx, actor, column.table_id)
        return column, table, project

    def _table_in_project(
        self,
        tx: StoreTransaction,
        table_id: str,
        project_id: str,
        field_name: str,
    ) -> Table:
        table = self._get_table(tx, table_id)
        if table.project_id != project_id:
            raise InvalidArgumentError(
                f"Table {table_id} does not belong to project {project_id}", field_name
            )
        return table

    def _check_enum_reference(
        self,
        tx: StoreTransaction,
        enum_type_id: str | None,
        project_id: str,
    ) -> None:
        if enum_type_id is None:
            return
        record = tx.get("enum_types", enum_type_id)
        if record is None or record["project_id"] != project_id:
            raise InvalidArgumentError(
                f"Enum type {enum_type_id} does not exist in project {project_id}",
                "enum_type_id",
            )

    def _record(
        self,
        tx: StoreTransaction,
        project_id: str,
        actor: str,
        action_type: str,
        before: Fragment,
        after: Fragment,
    ) -> None:
        if self.record_undo:
            self.ledger.record(tx, project_id, actor, action_type, before, after)

    # =========================================================================
    # Tables
    # =========================================================================

    async def create_table(
        self,
        actor: str | None,
        project_id: str,
        name: str,
        x: float,
        y: float,
    ) -> str:
        """Create a table on the canvas.

        Table names are not unique.

        Returns:
            The new table ID
        """
        actor = _require_actor(actor)
        _require_name(name, "name")

        with self.store.transaction("create_table") as tx:
            self.guard.authorize(tx, actor, project_id, Capability.WRITE)

            now = self._clock()
            table_id = tx.insert(
                "tables",
                {
                    "project_id": project_id,
                    "name": name,
                    "position_x": float(x),
                    "position_y": float(y),
                    "created_at": now,
                    "updated_at": now,
                },
            )
            after = tx.get("tables", table_id)
            self._record(tx, project_id, actor, "create_table", {}, {"tables": [after]})

        logger.debug(
            "Created table",
            extra={"project_id": project_id, "table_id": table_id, "actor": actor},
        )
        return table_id

    async def update_table(
        self,
        actor: str | None,
        table_id: str,
        patch: TableUpdate,
    ) -> Table:
        """Apply a partial update to a table.

        Omitted fields keep their stored value.

        Returns:
            The updated table
        """
        actor = _require_actor(actor)
        changes = patch.changes()
        if "name" in changes:
            _require_name(changes["name"], "name")

        with self.store.transaction("update_table") as tx:
            table, project = self._authorize_table(tx, actor, table_id)

            before = table.to_record()
            tx.patch("tables", table_id, {**changes, "updated_at": self._clock()})
            after = tx.get("tables", table_id)
            self._record(
                tx, project.id, actor, "update_table", {"tables": [before]}, {"tables": [after]}
            )

        logger.debug(
            "Updated table",
            extra={"table_id": table_id, "fields": sorted(changes), "actor": actor},
        )
        return Table.from_record(after)

    async def delete_table(self, actor: str | None, table_id: str) -> TableDeletion:
        """Delete a table, its columns and every relationship touching it.

        Relationships that reference one of the table's columns, or use the
        table as a junction table, are removed in the same transaction so no
        relationship is ever left pointing at a deleted column.

        Returns:
            TableDeletion describing everything removed
        """
        actor = _require_actor(actor)

        with self.store.transaction("delete_table") as tx:
            table, project = self._authorize_table(tx, actor, table_id)

            columns = tx.query_by_index("columns", "by_table_order", table_id)
            relationships: dict[str, dict[str, Any]] = {}
            for index_name in ("by_source_table", "by_target_table", "by_junction_table"):
                for rel in tx.query_by_index("relationships", index_name, table_id):
                    relationships[rel["id"]] = rel
            for column in columns:
                for index_name in ("by_source_column", "by_target_column"):
                    for rel in tx.query_by_index("relationships", index_name, column["id"]):
                        relationships[rel["id"]] = rel

            for rel_id in relationships:
                tx.delete("relationships", rel_id)
            for column in columns:
                tx.delete("columns", column["id"])
            tx.delete("tables", table_id)

            self._record(
                tx,
                project.id,
                actor,
                "delete_table",
                {
                    "tables": [table.to_record()],
                    "columns": columns,
                    "relationships": list(relationships.values()),
                },
                {},
            )

        result = TableDeletion(
            table_id=table_id,
            column_ids=[c["id"] for c in columns],
            relationship_ids=list(relationships),
        )
        logger.info(
            "Deleted table",
            extra={
                "table_id": table_id,
                "columns": len(result.column_ids),
                "relationships": len(result.relationship_ids),
                "actor": actor,
            },
        )
        return result

    async def get_table(self, actor: str | None, table_id: str) -> Table | None:
        """Get a table, or None if missing or not visible to the actor."""
        with self.store.transaction("get_table", write=False) as tx:
            record = tx.get("tables", table_id)
            if record is None:
                return None
            table = Table.from_record(record)
            if not self.guard.check(tx, actor, table.project_id).allowed:
                return None
            return table

    async def list_tables(self, actor: str | None, project_id: str) -> list[TableWithColumns]:
        """List a project's tables, each with its columns in order."""
        with self.store.transaction("list_tables", write=False) as tx:
            if not self.guard.check(tx, actor, project_id).allowed:
                return []
            return [
                TableWithColumns(
                    table=Table.from_record(t),
                    columns=[
                        Column.from_record(c)
                        for c in tx.query_by_index("columns", "by_table_order", t["id"])
                    ],
                )
                for t in tx.query_by_index("tables", "by_project", project_id)
            ]

    # =========================================================================
    # Columns
    # =========================================================================

    async def create_column(
        self,
        actor: str | None,
        table_id: str,
        name: str,
        data_type: str,
        type_category: TypeCategory | str,
        is_primary_key: bool,
        is_nullable: bool,
        is_unique: bool,
        order: int,
        default_value: str | None = None,
        array_base_type: str | None = None,
        enum_type_id: str | None = None,
    ) -> str:
        """Add a column to a table.

        The caller supplies ``order``; siblings are not renumbered, so
        duplicate or sparse orders are accepted until the next reorder.

        Returns:
            The new column ID
        """
        actor = _require_actor(actor)
        _require_name(name, "name")
        _require_name(data_type, "data_type")
        category = _type_category(type_category)
        _require_order(order)

        with self.store.transaction("create_column") as tx:
            table, project = self._authorize_table(tx, actor, table_id)
            self._check_enum_reference(tx, enum_type_id, project.id)

            now = self._clock()
            column = Column(
                id="",
                table_id=table_id,
                name=name,
                data_type=data_type,
                type_category=category,
                is_primary_key=bool(is_primary_key),
                is_nullable=bool(is_nullable),
                is_unique=bool(is_unique),
                order=order,
                default_value=default_value,
                array_base_type=array_base_type,
                enum_type_id=enum_type_id,
                created_at=now,
                updated_at=now,
            )
            record = column.to_record()
            del record["id"]
            column_id = tx.insert("columns", record)
            after = tx.get("columns", column_id)
            self._record(tx, project.id, actor, "create_column", {}, {"columns": [after]})

        logger.debug(
            "Created column",
            extra={"table_id": table_id, "column_id": column_id, "actor": actor},
        )
        return column_id

    async def update_column(
        self,
        actor: str | None,
        column_id: str,
        patch: ColumnUpdate,
    ) -> Column:
        """Apply a partial update to a column.

        Omitted fields keep their value; optional fields explicitly set to
        None are cleared.

        Returns:
            The updated column
        """
        actor = _require_actor(actor)
        changes = patch.changes()
        for name_field in ("name", "data_type"):
            if name_field in changes:
                _require_name(changes[name_field], name_field)
        if "order" in changes:
            _require_order(changes["order"])

        with self.store.transaction("update_column") as tx:
            column, table, project = self._authorize_column(tx, actor, column_id)
            if changes.get("enum_type_id") is not None:
                self._check_enum_reference(tx, changes["enum_type_id"], project.id)

            before = column.to_record()
            tx.patch("columns", column_id, {**changes, "updated_at": self._clock()})
            after = tx.get("columns", column_id)
            self._record(
                tx, project.id, actor, "update_column", {"columns": [before]}, {"columns": [after]}
            )

        logger.debug(
            "Updated column",
            extra={"column_id": column_id, "fields": sorted(changes), "actor": actor},
        )
        return Column.from_record(after)

    async def delete_column(self, actor: str | None, column_id: str) -> None:
        """Delete a column not referenced by any relationship.

        Raises:
            ConflictError: "relationship-target" if a relationship targets the
                column, otherwise "relationship-source" if one originates there
        """
        actor = _require_actor(actor)

        with self.store.transaction("delete_column") as tx:
            column, table, project = self._authorize_column(tx, actor, column_id)

            as_target = tx.query_by_index("relationships", "by_target_column", column_id)
            as_source = tx.query_by_index("relationships", "by_source_column", column_id)
            if as_target:
                raise ConflictError(
                    "relationship-target",
                    "Cannot delete column that is target of a relationship",
                    column_id=column_id,
                    relationship_ids=[r["id"] for r in as_target],
                )
            if as_source:
                raise ConflictError(
                    "relationship-source",
                    "Cannot delete column that is source of a relationship",
                    column_id=column_id,
                    relationship_ids=[r["id"] for r in as_source],
                )

            tx.delete("columns", column_id)
            self._record(
                tx, project.id, actor, "delete_column", {"columns": [column.to_record()]}, {}
            )

        logger.debug(
            "Deleted column",
            extra={"table_id": table.id, "column_id": column_id, "actor": actor},
        )

    async def reorder_columns(
        self,
        actor: str | None,
        table_id: str,
        ordered_column_ids: Sequence[str],
    ) -> list[Column]:
        """Renumber a table's columns to match the given sequence.

        The sequence must list every column of the table exactly once; each
        column gets ``order = index``. All orders change in one transaction.

        Returns:
            The table's columns in their new order

        Raises:
            InvalidArgumentError: If the sequence is not a permutation of the
                table's columns
        """
        actor = _require_actor(actor)
        ordered = list(ordered_column_ids)
        if len(set(ordered)) != len(ordered):
            raise InvalidArgumentError("Column IDs must not repeat", "column_ids")

        with self.store.transaction("reorder_columns") as tx:
            table, project = self._authorize_table(tx, actor, table_id)

            current = tx.query_by_index("columns", "by_table_order", table_id)
            current_ids = {c["id"] for c in current}
            foreign = [cid for cid in ordered if cid not in current_ids]
            if foreign:
                raise InvalidArgumentError(
                    f"Columns do not belong to table {table_id}: {foreign}", "column_ids"
                )
            missing = current_ids - set(ordered)
            if missing:
                raise InvalidArgumentError(
                    f"Reorder must list every column of table {table_id}; "
                    f"missing {sorted(missing)}",
                    "column_ids",
                )

            now = self._clock()
            for index, column_id in enumerate(ordered):
                tx.patch("columns", column_id, {"order": index, "updated_at": now})

            after = tx.query_by_index("columns", "by_table_order", table_id)
            self._record(
                tx, project.id, actor, "reorder_columns", {"columns": current}, {"columns": after}
            )

        logger.debug(
            "Reordered columns",
            extra={"table_id": table_id, "columns": len(ordered), "actor": actor},
        )
        return [Column.from_record(c) for c in after]

    async def list_columns(self, actor: str | None, table_id: str) -> list[Column]:
        """List a table's columns by ascending order, ties by insertion order."""
        with self.store.transaction("list_columns", write=False) as tx:
            record = tx.get("tables", table_id)
            if record is None:
                return []
            if not self.guard.check(tx, actor, record["project_id"]).allowed:
                return []
            return [
                Column.from_record(c)
                for c in tx.query_by_index("columns", "by_table_order", table_id)
            ]

    # =========================================================================
    # Relationships
    # =========================================================================

    def _validate_junction(
        self,
        tx: StoreTransaction,
        project_id: str,
        relation_type: RelationType,
        junction_table_id: str | None,
    ) -> None:
        if relation_type.requires_junction:
            if junction_table_id is None:
                raise InvalidArgumentError(
                    "Many-to-many relationships require a junction table", "junction_table_id"
                )
            self._table_in_project(tx, junction_table_id, project_id, "junction_table_id")
        elif junction_table_id is not None:
            raise InvalidArgumentError(
                f"Only many-to-many relationships take a junction table, got {relation_type.value}",
                "junction_table_id",
            )

    async def create_relationship(
        self,
        actor: str | None,
        project_id: str,
        source_table_id: str,
        source_column_id: str,
        target_table_id: str,
        target_column_id: str,
        relation_type: RelationType | str,
        junction_table_id: str | None = None,
    ) -> str:
        """Link a source (child) column to a target (parent) column.

        Returns:
            The new relationship ID

        Raises:
            NotFoundError: If a referenced table or column is missing
            InvalidArgumentError: If a column doesn't belong to its declared
                table, a table is outside the project, or the junction table
                doesn't match the relation type
        """
        actor = _require_actor(actor)
        kind = _relation_type(relation_type)
        if source_column_id == target_column_id:
            raise InvalidArgumentError(
                "A relationship cannot reference the same column on both sides",
                "target_column_id",
            )

        with self.store.transaction("create_relationship") as tx:
            self.guard.authorize(tx, actor, project_id, Capability.WRITE)

            for side, table_id, column_id in (
                ("source", source_table_id, source_column_id),
                ("target", target_table_id, target_column_id),
            ):
                self._table_in_project(tx, table_id, project_id, f"{side}_table_id")
                column = self._get_column(tx, column_id)
                if column.table_id != table_id:
                    raise InvalidArgumentError(
                        f"Column {column_id} does not belong to table {table_id}",
                        f"{side}_column_id",
                    )
            self._validate_junction(tx, project_id, kind, junction_table_id)

            relationship_id = tx.insert(
                "relationships",
                {
                    "project_id": project_id,
                    "source_table_id": source_table_id,
                    "source_column_id": source_column_id,
                    "target_table_id": target_table_id,
                    "target_column_id": target_column_id,
                    "relation_type": kind.value,
                    "junction_table_id": junction_table_id,
                    "created_at": self._clock(),
                },
            )
            after = tx.get("relationships", relationship_id)
            self._record(
                tx, project_id, actor, "create_relationship", {}, {"relationships": [after]}
            )

        logger.debug(
            "Created relationship",
            extra={
                "project_id": project_id,
                "relationship_id": relationship_id,
                "relation_type": kind.value,
                "actor": actor,
            },
        )
        return relationship_id

    async def update_relationship(
        self,
        actor: str | None,
        relationship_id: str,
        patch: RelationshipUpdate,
    ) -> Relationship:
        """Change a relationship's type and/or junction table."""
        actor = _require_actor(actor)
        changes = patch.changes()

        with self.store.transaction("update_relationship") as tx:
            relationship = self._get_relationship(tx, relationship_id)
            self.guard.authorize(tx, actor, relationship.project_id, Capability.WRITE)

            before = relationship.to_record()
            merged = Relationship.from_record({**before, **changes})
            self._validate_junction(
                tx, merged.project_id, merged.relation_type, merged.junction_table_id
            )

            tx.patch("relationships", relationship_id, changes)
            after = tx.get("relationships", relationship_id)
            self._record(
                tx,
                relationship.project_id,
                actor,
                "update_relationship",
                {"relationships": [before]},
                {"relationships": [after]},
            )

        return Relationship.from_record(after)

    async def delete_relationship(self, actor: str | None, relationship_id: str) -> None:
        """Remove a relationship, freeing its columns for deletion."""
        actor = _require_actor(actor)

        with self.store.transaction("delete_relationship") as tx:
            relationship = self._get_relationship(tx, relationship_id)
            self.guard.authorize(tx, actor, relationship.project_id, Capability.WRITE)

            tx.delete("relationships", relationship_id)
            self._record(
                tx,
                relationship.project_id,
                actor,
                "delete_relationship",
                {"relationships": [relationship.to_record()]},
                {},
            )

        logger.debug(
            "Deleted relationship",
            extra={"relationship_id": relationship_id, "actor": actor},
        )

    async def list_relationships(self, actor: str | None, project_id: str) -> list[Relationship]:
        with self.store.transaction("list_relationships", write=False) as tx:
            if not self.guard.check(tx, actor, project_id).allowed:
                return []
            return [
                Relationship.from_record(r)
                for r in tx.query_by_index("relationships", "by_project", project_id)
            ]

    # =========================================================================
    # Enum types
    # =========================================================================

    def _check_enum_name_free(
        self,
        tx: StoreTransaction,
        project_id: str,
        name: str,
        exclude_id: str | None = None,
    ) -> None:
        for row in tx.query_by_index("enum_types", "by_project_name", (project_id, name)):
            if row["id"] != exclude_id:
                raise ConflictError(
                    "enum-name-taken",
                    f"Enum type '{name}' already exists in project {project_id}",
                    enum_type_id=row["id"],
                )

    async def create_enum_type(
        self,
        actor: str | None,
        project_id: str,
        name: str,
        values: Sequence[str],
    ) -> str:
        """Define a custom enum type, unique by name within the project.

        Raises:
            ConflictError: "enum-name-taken" if the name is in use
        """
        actor = _require_actor(actor)
        _require_name(name, "name")
        enum_values = _enum_values(values)

        with self.store.transaction("create_enum_type") as tx:
            self.guard.authorize(tx, actor, project_id, Capability.WRITE)
            self._check_enum_name_free(tx, project_id, name)

            now = self._clock()
            enum_type_id = tx.insert(
                "enum_types",
                {
                    "project_id": project_id,
                    "name": name,
                    "values": enum_values,
                    "created_at": now,
                    "updated_at": now,
                },
            )
            after = tx.get("enum_types", enum_type_id)
            self._record(tx, project_id, actor, "create_enum_type", {}, {"enum_types": [after]})

        return enum_type_id

    async def update_enum_type(
        self,
        actor: str | None,
        enum_type_id: str,
        patch: EnumTypeUpdate,
    ) -> EnumType:
        actor = _require_actor(actor)
        changes = patch.changes()
        if "name" in changes:
            _require_name(changes["name"], "name")
        if "values" in changes:
            changes["values"] = _enum_values(changes["values"])

        with self.store.transaction("update_enum_type") as tx:
            enum_type = self._get_enum_type(tx, enum_type_id)
            self.guard.authorize(tx, actor, enum_type.project_id, Capability.WRITE)
            if "name" in changes:
                self._check_enum_name_free(
                    tx, enum_type.project_id, changes["name"], exclude_id=enum_type_id
                )

            before = enum_type.to_record()
            tx.patch("enum_types", enum_type_id, {**changes, "updated_at": self._clock()})
            after = tx.get("enum_types", enum_type_id)
            self._record(
                tx,
                enum_type.project_id,
                actor,
                "update_enum_type",
                {"enum_types": [before]},
                {"enum_types": [after]},
            )

        return EnumType.from_record(after)

    async def delete_enum_type(self, actor: str | None, enum_type_id: str) -> None:
        """Delete an enum type no column references.

        Raises:
            ConflictError: "enum-in-use" if a column references it
        """
        actor = _require_actor(actor)

        with self.store.transaction("delete_enum_type") as tx:
            enum_type = self._get_enum_type(tx, enum_type_id)
            self.guard.authorize(tx, actor, enum_type.project_id, Capability.WRITE)

            users = tx.query_by_index("columns", "by_enum_type", enum_type_id)
            if users:
                raise ConflictError(
                    "enum-in-use",
                    f"Enum type '{enum_type.name}' is used by {len(users)} column(s)",
                    column_ids=[c["id"] for c in users],
                )

            tx.delete("enum_types", enum_type_id)
            self._record(
                tx,
                enum_type.project_id,
                actor,
                "delete_enum_type",
                {"enum_types": [enum_type.to_record()]},
                {},
            )

    async def list_enum_types(self, actor: str | None, project_id: str) -> list[EnumType]:
        with self.store.transaction("list_enum_types", write=False) as tx:
            if not self.guard.check(tx, actor, project_id).allowed:
                return []
            return [
                EnumType.from_record(r)
                for r in tx.query_by_index("enum_types", "by_project", project_id)
            ]

    # =========================================================================
    # Graph
    # =========================================================================

    async def load_graph(self, actor: str | None, project_id: str) -> SchemaGraph | None:
        """Read the project's full graph in one consistent transaction."""
        with self.store.transaction("load_graph", write=False) as tx:
            if not self.guard.check(tx, actor, project_id).allowed:
                return None
            return load_project_graph(tx, project_id)
