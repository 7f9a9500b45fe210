"""
Undo/redo ledger for SchemaBoard.

Each (project, user) pair owns a stack of entries. An entry records the
graph fragment before and after one operation:

    {"tables": [...], "columns": [...], "relationships": [...], "enum_types": [...]}

Applying a side of an entry upserts the records it lists and deletes the
records that only the other side lists. Undo applies ``before_state`` of the
newest applied entry; redo applies ``after_state`` of the oldest undone one.

Entries are never deleted. The stack cursor is the boundary between
``applied`` and ``undone`` entries; pushing a new entry marks any undone
entries ``discarded``.

Invariants:
    - Positions per (project, user) are 0..N-1 with no gaps or duplicates
    - Position assignment happens inside a BEGIN IMMEDIATE transaction
    - A unique (project, user, position) index backs the assignment
    - Undo/redo never leaves a dangling reference; it aborts instead

How to change safely:
    - Fragment format changes must keep old entries decodable
    - Test concurrent pushes after any change to position assignment
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any

from ..apply.entity_store import EntityStore, StoreTransaction
from ..apply.guard import AuthorizationGuard
from ..apply.integrity import graph_problems, load_project_graph
from ..clock import Clock, now_ms
from ..errors import ConflictError, InvalidArgumentError
from ..model.types import Capability, UndoEntry, UndoStatus

logger = logging.getLogger(__name__)

FRAGMENT_COLLECTIONS = ("tables", "columns", "relationships", "enum_types")

Fragment = dict[str, list[dict[str, Any]]]


def encode_fragment(fragment: Fragment) -> str:
    """Serialize a graph fragment to its stored JSON form."""
    return json.dumps({k: v for k, v in fragment.items() if v}, sort_keys=True)


def decode_fragment(data: str | Fragment) -> Fragment:
    """Parse and validate a graph fragment.

    Raises:
        InvalidArgumentError: If the fragment is malformed
    """
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise InvalidArgumentError(f"Undo state is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise InvalidArgumentError("Undo state must be an object")

    fragment: Fragment = {}
    for collection, records in data.items():
        if collection not in FRAGMENT_COLLECTIONS:
            raise InvalidArgumentError(f"Unknown collection in undo state: {collection}")
        if not isinstance(records, list) or not all(
            isinstance(r, dict) and isinstance(r.get("id"), str) for r in records
        ):
            raise InvalidArgumentError(f"Undo state for {collection} must be a list of records")
        fragment[collection] = records
    return fragment


class UndoLedger:
    """Per-user, per-project undo stack over the entity store.

    Example:
        >>> ledger = UndoLedger(store, guard)
        >>> entry = await ledger.push("user:1", project_id, "rename_table", before, after)
        >>> await ledger.undo("user:1", project_id)
    """

    def __init__(
        self,
        store: EntityStore,
        guard: AuthorizationGuard,
        clock: Clock | None = None,
    ) -> None:
        self.store = store
        self.guard = guard
        self._clock = clock or now_ms

    def record(
        self,
        tx: StoreTransaction,
        project_id: str,
        user_id: str,
        action_type: str,
        before: Fragment,
        after: Fragment,
    ) -> UndoEntry:
        """Append an entry inside an already open write transaction.

        Args:
            tx: Open write transaction of the operation being recorded
            project_id: Project the operation touched
            user_id: Acting user
            action_type: Operation name, e.g. "delete_column"
            before: Fragment as it was before the operation
            after: Fragment as it is after the operation

        Returns:
            The appended entry
        """
        for row in tx.query_by_index("undo_entries", "by_project_user", (project_id, user_id)):
            if row["status"] == UndoStatus.UNDONE.value:
                tx.patch("undo_entries", row["id"], {"status": UndoStatus.DISCARDED.value})

        current_max = tx.max_value(
            "undo_entries", "position", "by_project_user", (project_id, user_id)
        )
        position = 0 if current_max is None else current_max + 1

        entry = UndoEntry(
            id=str(uuid.uuid4()),
            project_id=project_id,
            user_id=user_id,
            action_type=action_type,
            before_state=encode_fragment(before),
            after_state=encode_fragment(after),
            position=position,
            status=UndoStatus.APPLIED,
            created_at=self._clock(),
        )
        tx.insert("undo_entries", entry.to_record())

        logger.debug(
            "Recorded undo entry",
            extra={
                "project_id": project_id,
                "user_id": user_id,
                "action_type": action_type,
                "position": position,
            },
        )
        return entry

    async def push(
        self,
        actor: str | None,
        project_id: str,
        action_type: str,
        before_state: str | Fragment,
        after_state: str | Fragment,
    ) -> UndoEntry:
        """Append an entry for the acting user.

        Raises:
            Unauthorized: If the actor can't write the project
            InvalidArgumentError: If a state is not a valid graph fragment
        """
        before = decode_fragment(before_state)
        after = decode_fragment(after_state)

        with self.store.transaction("undo_push") as tx:
            self.guard.authorize(tx, actor, project_id, Capability.WRITE)
            return self.record(tx, project_id, actor, action_type, before, after)  # type: ignore[arg-type]

    async def undo(self, actor: str | None, project_id: str) -> UndoEntry | None:
        """Revert the actor's most recent applied entry.

        Returns:
            The undone entry, or None if there is nothing to undo

        Raises:
            ConflictError: If reverting would leave a dangling reference
        """
        with self.store.transaction("undo") as tx:
            self.guard.authorize(tx, actor, project_id, Capability.WRITE)
            rows = tx.query_by_index(
                "undo_entries", "by_project_user_position", (project_id, actor), descending=True
            )
            entry = next(
                (UndoEntry.from_record(r) for r in rows if r["status"] == UndoStatus.APPLIED.value),
                None,
            )
            if entry is None:
                return None

            self._apply(
                tx,
                project_id,
                decode_fragment(entry.before_state),
                decode_fragment(entry.after_state),
            )
            tx.patch("undo_entries", entry.id, {"status": UndoStatus.UNDONE.value})
            entry.status = UndoStatus.UNDONE

        logger.info(
            "Undid action",
            extra={
                "project_id": project_id,
                "user_id": actor,
                "action_type": entry.action_type,
                "position": entry.position,
            },
        )
        return entry

    async def redo(self, actor: str | None, project_id: str) -> UndoEntry | None:
        """Re-apply the actor's oldest undone entry.

        Returns:
            The redone entry, or None if there is nothing to redo

        Raises:
            ConflictError: If re-applying would leave a dangling reference
        """
        with self.store.transaction("redo") as tx:
            self.guard.authorize(tx, actor, project_id, Capability.WRITE)
            rows = tx.query_by_index(
                "undo_entries", "by_project_user_position", (project_id, actor)
            )
            entry = next(
                (UndoEntry.from_record(r) for r in rows if r["status"] == UndoStatus.UNDONE.value),
                None,
            )
            if entry is None:
                return None

            self._apply(
                tx,
                project_id,
                decode_fragment(entry.after_state),
                decode_fragment(entry.before_state),
            )
            tx.patch("undo_entries", entry.id, {"status": UndoStatus.APPLIED.value})
            entry.status = UndoStatus.APPLIED

        logger.info(
            "Redid action",
            extra={
                "project_id": project_id,
                "user_id": actor,
                "action_type": entry.action_type,
                "position": entry.position,
            },
        )
        return entry

    async def history(self, actor: str | None, project_id: str) -> list[UndoEntry]:
        """List the actor's entries for a project by position."""
        with self.store.transaction("undo_history", write=False) as tx:
            if not self.guard.check(tx, actor, project_id, Capability.READ).allowed:
                return []
            rows = tx.query_by_index(
                "undo_entries", "by_project_user_position", (project_id, actor)
            )
            return [UndoEntry.from_record(r) for r in rows]

    def _apply(
        self,
        tx: StoreTransaction,
        project_id: str,
        target: Fragment,
        other: Fragment,
    ) -> None:
        """Make the store match ``target`` for every record either side names."""
        kept_tables = {r["id"] for r in target.get("tables", [])}
        removed_tables = [
            r["id"] for r in other.get("tables", []) if r["id"] not in kept_tables
        ]

        for collection in FRAGMENT_COLLECTIONS:
            wanted = {r["id"]: r for r in target.get(collection, [])}
            for record in other.get(collection, []):
                if record["id"] not in wanted:
                    tx.delete(collection, record["id"])
            for record in wanted.values():
                tx.upsert(collection, record)

        graph = load_project_graph(tx, project_id)
        problems = graph_problems(graph)

        for collection in ("tables", "relationships", "enum_types"):
            for record in target.get(collection, []):
                if record.get("project_id") != project_id:
                    problems.append(f"{collection} record {record['id']} is not in project {project_id}")

        # Columns written into a table outside this project don't show up in
        # the loaded graph; treat them as dangling too.
        graph_columns = {c.id for c in graph.columns}
        for record in target.get("columns", []):
            if record["id"] not in graph_columns:
                problems.append(f"column {record['id']} is not in project {project_id}")

        # Columns added by other users to a removed table are not in the
        # fragment and would be left without a table.
        for table_id in removed_tables:
            for row in tx.query_by_index("columns", "by_table", table_id):
                problems.append(f"column {row['id']} would be left without table {table_id}")

        if problems:
            logger.warning(
                "Undo state conflicts with current graph",
                extra={"project_id": project_id, "problems": problems},
            )
            raise ConflictError(
                "undo-integrity",
                f"Cannot apply undo state: {problems[0]}",
                problems=problems,
            )
