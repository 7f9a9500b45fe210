"""
SchemaBoard Server - consistency engine for a collaborative schema editor.

Users place tables on a canvas, attach columns to them and link tables
through foreign-key relationships. This package keeps the resulting graph
consistent while edits from several users arrive concurrently:

- Entity store: SQLite collections with secondary indexes
- Authorization guard: resolves owner/collaborator capabilities
- Schema graph mutator: referential integrity and dense column ordering
- Snapshot codec: versioned capture and restore of a project's graph
- Undo ledger: per-user, per-project stack of before/after states

Architecture:
    ┌─────────────┐     ┌──────────────┐     ┌─────────────────┐
    │   Client    │────▶│ HTTP gateway │────▶│  Authorization  │
    │  (canvas)   │     │  (FastAPI)   │     │      Guard      │
    └─────────────┘     └──────────────┘     └────────┬────────┘
                                                      │
                        ┌─────────────────────────────┼──────────┐
                        │                             │          │
                        ▼                             ▼          ▼
                   ┌─────────┐                  ┌─────────┐ ┌─────────┐
                   │ Mutator │─────────────────▶│  Undo   │ │Snapshot │
                   └────┬────┘                  │ Ledger  │ │  Codec  │
                        │                       └────┬────┘ └────┬────┘
                        ▼                            ▼           ▼
                   ┌──────────────────────────────────────────────────┐
                   │               Entity Store (SQLite)              │
                   └──────────────────────────────────────────────────┘

Invariants:
    - Every operation runs in one serializable store transaction
    - Relationships never reference a missing column
    - Column order is dense (0..N-1) after every reorder
    - Undo positions are dense per (project, user)

How to change safely:
    - New collections need indexes declared in the store catalog
    - Snapshot format changes must bump the format version
    - Keep undo fragments decodable across releases
"""

from ._version import __version__

__all__ = ["__version__"]
