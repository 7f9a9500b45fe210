"""
Apply module for SchemaBoard.

This module owns every write to the schema graph:
- EntityStore: SQLite-backed record collections with named indexes
- AuthorizationGuard: project capability checks
- SchemaMutator: validated table/column/relationship/enum changes
- ProjectService: project lifecycle, share links and membership

Invariants:
    - Each public operation is one store transaction
    - Authorization and validation precede the first write
    - Every graph mutation records an undo entry in the same transaction
"""

from .entity_store import COLLECTIONS, CollectionSpec, EntityStore, StoreTransaction
from .guard import AccessDecision, AuthorizationGuard
from .integrity import graph_problems, load_project_graph
from .mutator import SchemaMutator, TableDeletion
from .projects import ProjectService

__all__ = [
    "AccessDecision",
    "AuthorizationGuard",
    "COLLECTIONS",
    "CollectionSpec",
    "EntityStore",
    "ProjectService",
    "SchemaMutator",
    "StoreTransaction",
    "TableDeletion",
    "graph_problems",
    "load_project_graph",
]
