"""
Undo module for SchemaBoard.

Per-user, per-project undo/redo over before/after graph fragments.

Invariants:
    - Entries are never deleted; only their status changes
    - Positions are dense per (project, user)
"""

from .ledger import FRAGMENT_COLLECTIONS, UndoLedger, decode_fragment, encode_fragment

__all__ = ["FRAGMENT_COLLECTIONS", "UndoLedger", "decode_fragment", "encode_fragment"]
