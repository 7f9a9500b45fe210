"""
Snapshot codec for SchemaBoard.

A snapshot is an immutable, self-describing capture of a project's schema
graph. The stored payload is a versioned JSON document:

    {
        "format": "schemaboard.snapshot",
        "version": 1,
        "checksum": "sha256:<hex>",
        "graph": {
            "project_id": "...",
            "tables": [...],
            "columns": [...],
            "relationships": [...],
            "enum_types": [...]
        }
    }

The checksum covers the canonical (sorted keys, compact separators)
encoding of ``graph``. Records are stored in the same shape as the entity
store, so a decoded snapshot can be written back without translation.

Invariants:
    - A payload is fully decoded and validated before restore writes anything
    - Restore preserves entity ids and created_at; updated_at is regenerated
    - Restore replaces the live graph in one transaction and records undo
    - Snapshots are never modified after capture

How to change safely:
    - Bump SNAPSHOT_VERSION for any payload change and keep decoding old versions
    - Test restore with payloads captured by the previous version
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Any

from ..apply.entity_store import EntityStore
from ..apply.guard import AuthorizationGuard
from ..apply.integrity import graph_problems, load_project_graph
from ..clock import Clock, now_ms
from ..config import SnapshotConfig
from ..errors import CorruptSnapshotError, InvalidArgumentError, NotFoundError
from ..model.types import (
    Capability,
    Column,
    EnumType,
    Relationship,
    SchemaGraph,
    Snapshot,
    Table,
)
from ..undo.ledger import FRAGMENT_COLLECTIONS, Fragment, UndoLedger

logger = logging.getLogger(__name__)

SNAPSHOT_FORMAT = "schemaboard.snapshot"
SNAPSHOT_VERSION = 1

_RECORD_TYPES: dict[str, Any] = {
    "tables": Table,
    "columns": Column,
    "relationships": Relationship,
    "enum_types": EnumType,
}

# Collections whose records carry updated_at, regenerated on restore.
_TIMESTAMPED = ("tables", "columns", "enum_types")

# Expected value types per field; fields listed in _OPTIONAL may also be null.
_FIELD_TYPES: dict[str, dict[str, str]] = {
    "tables": {
        "id": "str",
        "project_id": "str",
        "name": "str",
        "position_x": "number",
        "position_y": "number",
        "created_at": "int",
        "updated_at": "int",
    },
    "columns": {
        "id": "str",
        "table_id": "str",
        "name": "str",
        "data_type": "str",
        "type_category": "str",
        "is_primary_key": "bool",
        "is_nullable": "bool",
        "is_unique": "bool",
        "default_value": "str",
        "array_base_type": "str",
        "enum_type_id": "str",
        "order": "int",
        "created_at": "int",
        "updated_at": "int",
    },
    "relationships": {
        "id": "str",
        "project_id": "str",
        "source_table_id": "str",
        "source_column_id": "str",
        "target_table_id": "str",
        "target_column_id": "str",
        "relation_type": "str",
        "junction_table_id": "str",
        "created_at": "int",
    },
    "enum_types": {
        "id": "str",
        "project_id": "str",
        "name": "str",
        "values": "str_list",
        "created_at": "int",
        "updated_at": "int",
    },
}

_OPTIONAL = frozenset({"default_value", "array_base_type", "enum_type_id", "junction_table_id"})


def _has_type(value: Any, kind: str) -> bool:
    if kind == "str":
        return isinstance(value, str)
    if kind == "bool":
        return isinstance(value, bool)
    if kind == "int":
        return isinstance(value, int) and not isinstance(value, bool)
    if kind == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


def _field_problem(collection: str, record: dict[str, Any]) -> str | None:
    """Return the first missing or mistyped field of a record, if any."""
    for name, kind in _FIELD_TYPES[collection].items():
        if name not in record:
            if name in _OPTIONAL:
                continue
            return f"missing field {name}"
        value = record[name]
        if value is None and name in _OPTIONAL:
            continue
        if not _has_type(value, kind):
            return f"field {name} has invalid value {value!r}"
    return None


def graph_records(graph: SchemaGraph) -> Fragment:
    """Convert a graph to store records grouped by collection."""
    return {
        "tables": [t.to_record() for t in graph.tables],
        "columns": [c.to_record() for c in graph.columns],
        "relationships": [r.to_record() for r in graph.relationships],
        "enum_types": [e.to_record() for e in graph.enum_types],
    }


def _checksum(body: dict[str, Any]) -> str:
    canonical = json.dumps(body, sort_keys=True, separators=(",", ":"))
    return f"sha256:{hashlib.sha256(canonical.encode('utf-8')).hexdigest()}"


def encode_graph(graph: SchemaGraph) -> str:
    """Serialize a graph to a snapshot payload."""
    body: dict[str, Any] = {"project_id": graph.project_id, **graph_records(graph)}
    return json.dumps(
        {
            "format": SNAPSHOT_FORMAT,
            "version": SNAPSHOT_VERSION,
            "checksum": _checksum(body),
            "graph": body,
        },
        sort_keys=True,
    )


def decode_graph(data: str, snapshot_id: str | None = None) -> SchemaGraph:
    """Parse and validate a snapshot payload.

    Args:
        data: Stored payload
        snapshot_id: Snapshot the payload belongs to, for error details

    Returns:
        The decoded graph

    Raises:
        CorruptSnapshotError: If the payload is not a valid, internally
            consistent snapshot
    """

    def corrupt(reason: str) -> CorruptSnapshotError:
        return CorruptSnapshotError(f"Corrupt snapshot: {reason}", snapshot_id=snapshot_id)

    try:
        document = json.loads(data)
    except (TypeError, json.JSONDecodeError) as e:
        raise corrupt(f"payload is not valid JSON ({e})") from e

    if not isinstance(document, dict):
        raise corrupt("payload is not an object")
    if document.get("format") != SNAPSHOT_FORMAT:
        raise corrupt(f"unknown format {document.get('format')!r}")
    version = document.get("version")
    if not isinstance(version, int) or not 1 <= version <= SNAPSHOT_VERSION:
        raise corrupt(f"unsupported version {version!r}")

    body = document.get("graph")
    if not isinstance(body, dict):
        raise corrupt("missing graph")
    if document.get("checksum") != _checksum(body):
        raise corrupt("checksum mismatch")

    project_id = body.get("project_id")
    if not isinstance(project_id, str) or not project_id:
        raise corrupt("missing project_id")

    decoded: dict[str, list[Any]] = {}
    for collection, record_type in _RECORD_TYPES.items():
        records = body.get(collection, [])
        if not isinstance(records, list):
            raise corrupt(f"{collection} is not a list")
        items = []
        for record in records:
            if not isinstance(record, dict) or not isinstance(record.get("id"), str):
                raise corrupt(f"malformed {collection} record")
            problem = _field_problem(collection, record)
            if problem:
                raise corrupt(f"malformed {collection} record {record['id']} ({problem})")
            try:
                items.append(record_type.from_record(record))
            except (KeyError, TypeError, ValueError) as e:
                raise corrupt(f"malformed {collection} record {record['id']} ({e})") from e
        ids = [item.id for item in items]
        if len(set(ids)) != len(ids):
            raise corrupt(f"duplicate ids in {collection}")
        decoded[collection] = items

    graph = SchemaGraph(project_id=project_id, **decoded)
    problems = graph_problems(graph)
    if problems:
        raise corrupt(problems[0])
    return graph


class SnapshotCodec:
    """Captures, lists and restores project snapshots.

    Example:
        >>> codec = SnapshotCodec(store, guard, ledger)
        >>> snapshot_id = await codec.capture("user:1", project_id, "before refactor")
        >>> await codec.restore("user:1", snapshot_id)
    """

    def __init__(
        self,
        store: EntityStore,
        guard: AuthorizationGuard,
        ledger: UndoLedger,
        config: SnapshotConfig | None = None,
        clock: Clock | None = None,
        record_undo: bool = True,
    ) -> None:
        self.store = store
        self.guard = guard
        self.ledger = ledger
        self.config = config or SnapshotConfig()
        self.record_undo = record_undo and self.config.record_restore_undo
        self._clock = clock or now_ms

    async def capture(self, actor: str | None, project_id: str, description: str = "") -> str:
        """Serialize the project's current graph into a new snapshot.

        Returns:
            The new snapshot ID
        """
        if not isinstance(description, str):
            raise InvalidArgumentError("'description' must be a string", "description")
        if len(description) > self.config.max_description_length:
            raise InvalidArgumentError(
                f"'description' exceeds {self.config.max_description_length} characters",
                "description",
            )

        with self.store.transaction("capture_snapshot") as tx:
            self.guard.authorize(tx, actor, project_id, Capability.WRITE)
            graph = load_project_graph(tx, project_id)
            snapshot_id = tx.insert(
                "snapshots",
                {
                    "project_id": project_id,
                    "description": description,
                    "data": encode_graph(graph),
                    "created_by": actor,
                    "created_at": self._clock(),
                },
            )

        logger.info(
            "Captured snapshot",
            extra={
                "project_id": project_id,
                "snapshot_id": snapshot_id,
                "tables": len(graph.tables),
                "columns": len(graph.columns),
                "relationships": len(graph.relationships),
            },
        )
        return snapshot_id

    async def list_snapshots(self, actor: str | None, project_id: str) -> list[Snapshot]:
        """List a project's snapshots, newest first."""
        with self.store.transaction("list_snapshots", write=False) as tx:
            if not self.guard.check(tx, actor, project_id).allowed:
                return []
            rows = tx.query_by_index(
                "snapshots", "by_project_created", project_id, descending=True
            )
            return [Snapshot.from_record(r) for r in rows]

    async def get_snapshot(self, actor: str | None, snapshot_id: str) -> Snapshot | None:
        with self.store.transaction("get_snapshot", write=False) as tx:
            record = tx.get("snapshots", snapshot_id)
            if record is None:
                return None
            if not self.guard.check(tx, actor, record["project_id"]).allowed:
                return None
            return Snapshot.from_record(record)

    async def restore(self, actor: str | None, snapshot_id: str) -> SchemaGraph:
        """Replace the project's live graph with a snapshot's graph.

        The payload is decoded and validated before anything is written. The
        replacement and its undo entry commit together.

        Returns:
            The restored graph

        Raises:
            NotFoundError: If the snapshot doesn't exist
            Unauthorized: If the actor can't write the project
            CorruptSnapshotError: If the payload fails to decode
        """
        with self.store.transaction("restore_snapshot") as tx:
            record = tx.get("snapshots", snapshot_id)
            if record is None:
                raise NotFoundError("snapshot", snapshot_id)
            snapshot = Snapshot.from_record(record)
            self.guard.authorize(tx, actor, snapshot.project_id, Capability.WRITE)

            decoded = decode_graph(snapshot.data, snapshot_id)
            if decoded.project_id != snapshot.project_id:
                raise CorruptSnapshotError(
                    f"Corrupt snapshot: captured from project {decoded.project_id}",
                    snapshot_id=snapshot_id,
                )

            before = graph_records(load_project_graph(tx, snapshot.project_id))
            for collection in reversed(FRAGMENT_COLLECTIONS):
                for existing in before[collection]:
                    tx.delete(collection, existing["id"])

            now = self._clock()
            after = graph_records(decoded)
            for collection in FRAGMENT_COLLECTIONS:
                for restored in after[collection]:
                    if collection in _TIMESTAMPED:
                        restored["updated_at"] = now
                    tx.insert(collection, restored)

            if self.record_undo:
                self.ledger.record(
                    tx, snapshot.project_id, actor, "restore_snapshot", before, after  # type: ignore[arg-type]
                )
            restored_graph = load_project_graph(tx, snapshot.project_id)

        logger.info(
            "Restored snapshot",
            extra={
                "project_id": snapshot.project_id,
                "snapshot_id": snapshot_id,
                "actor": actor,
                "tables": len(restored_graph.tables),
            },
        )
        return restored_graph

    async def delete_snapshot(self, actor: str | None, snapshot_id: str) -> None:
        with self.store.transaction("delete_snapshot") as tx:
            record = tx.get("snapshots", snapshot_id)
            if record is None:
                raise NotFoundError("snapshot", snapshot_id)
            self.guard.authorize(tx, actor, record["project_id"], Capability.WRITE)
            tx.delete("snapshots", snapshot_id)
