"""
Snapshot module for SchemaBoard.

This module captures and restores whole project graphs:
- Point-in-time captures of tables, columns, relationships and enum types
- Validated decode before any restore write
- Undoable restore

Invariants:
    - Snapshots are immutable once captured
    - Corrupt payloads are rejected without touching the live graph
"""

from .codec import SNAPSHOT_FORMAT, SNAPSHOT_VERSION, SnapshotCodec, decode_graph, encode_graph

__all__ = ["SNAPSHOT_FORMAT", "SNAPSHOT_VERSION", "SnapshotCodec", "decode_graph", "encode_graph"]
