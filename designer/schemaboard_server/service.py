"""
SchemaBoard service assembly.

Wires the store, guard, undo ledger, mutator, snapshot codec and project
service from one ServerConfig so every component shares the same store
and authorization settings.

Invariants:
    - One EntityStore per SchemaBoard instance
    - Components share one clock
    - initialize() must complete before the first operation
"""

from __future__ import annotations

import logging

from .apply import AuthorizationGuard, EntityStore, ProjectService, SchemaMutator
from .clock import Clock, now_ms
from .config import ServerConfig
from .snapshot import SnapshotCodec
from .undo import UndoLedger

logger = logging.getLogger(__name__)


class SchemaBoard:
    """SchemaBoard engine.

    Attributes:
        config: Server configuration
        store: Entity store
        guard: Authorization guard
        ledger: Undo/redo ledger
        mutator: Schema graph mutator
        snapshots: Snapshot codec
        projects: Project service

    Example:
        >>> board = SchemaBoard(ServerConfig.from_env())
        >>> await board.initialize()
        >>> project_id = await board.projects.create_project("user:1", "Billing")
        >>> table_id = await board.mutator.create_table("user:1", project_id, "invoices", 0, 0)
    """

    def __init__(self, config: ServerConfig | None = None, clock: Clock | None = None) -> None:
        """Build all components.

        Args:
            config: Server configuration (loaded from env if not provided)
            clock: Millisecond clock shared by every component
        """
        self.config = config or ServerConfig.from_env()
        clock = clock or now_ms

        self.store = EntityStore(
            self.config.storage.db_path,
            wal_mode=self.config.storage.wal_mode,
            busy_timeout_ms=self.config.storage.busy_timeout_ms,
            cache_size_pages=self.config.storage.cache_size_pages,
        )
        self.guard = AuthorizationGuard(
            collaborator_roles_enabled=self.config.access.collaborator_roles_enabled,
        )
        self.ledger = UndoLedger(self.store, self.guard, clock=clock)
        self.mutator = SchemaMutator(
            self.store,
            self.guard,
            self.ledger,
            clock=clock,
            record_undo=self.config.undo.enabled,
        )
        self.snapshots = SnapshotCodec(
            self.store,
            self.guard,
            self.ledger,
            config=self.config.snapshot,
            clock=clock,
            record_undo=self.config.undo.enabled,
        )
        self.projects = ProjectService(self.store, self.guard, clock=clock)

    async def initialize(self) -> None:
        """Create the database schema if needed."""
        await self.store.initialize()
        logger.info(
            "SchemaBoard initialized",
            extra={
                "db_path": str(self.store.db_path),
                "collaborator_roles_enabled": self.guard.collaborator_roles_enabled,
                "undo_enabled": self.mutator.record_undo,
            },
        )
