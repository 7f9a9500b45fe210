"""
Error types for SchemaBoard Server.

Every failure surfaced by the core is one of these named kinds:
- SchemaBoardError: Base exception
- Unauthorized: Actor missing or lacking the required capability
- NotFoundError: Referenced entity does not exist
- ConflictError: Operation would break referential integrity
- InvalidArgumentError: Malformed input, rejected before any write
- CorruptSnapshotError: Snapshot payload cannot be decoded
- StoreFailure: The store failed mid-operation; nothing was committed

Invariants:
    - All errors inherit from SchemaBoardError
    - Raw sqlite3 errors never escape the store
    - Errors carry a stable code for programmatic handling
"""

from __future__ import annotations

from typing import Any


class SchemaBoardError(Exception):
    """Base exception for all SchemaBoard errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "SCHEMABOARD_ERROR"
        self.details = details or {}


class Unauthorized(SchemaBoardError):
    """Actor is absent or lacks access to the project."""

    def __init__(
        self,
        message: str = "Unauthorized",
        actor: str | None = None,
        project_id: str | None = None,
    ) -> None:
        super().__init__(
            message,
            code="UNAUTHORIZED",
            details={"actor": actor, "project_id": project_id},
        )
        self.actor = actor
        self.project_id = project_id


class NotFoundError(SchemaBoardError):
    """Resource not found.

    Raised when:
    - Project, table, column or relationship doesn't exist
    - Enum type or snapshot doesn't exist
    """

    def __init__(self, resource_type: str, resource_id: str) -> None:
        super().__init__(
            f"{resource_type.capitalize()} not found: {resource_id}",
            code="NOT_FOUND",
            details={
                "resource_type": resource_type,
                "resource_id": resource_id,
            },
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ConflictError(SchemaBoardError):
    """Operation would violate referential integrity.

    The reason is a short stable token, e.g. ``relationship-source`` or
    ``relationship-target``.
    """

    def __init__(self, reason: str, message: str | None = None, **details: Any) -> None:
        super().__init__(
            message or f"Conflict: {reason}",
            code="CONFLICT",
            details={"reason": reason, **details},
        )
        self.reason = reason


class InvalidArgumentError(SchemaBoardError):
    """Malformed input."""

    def __init__(self, message: str, field_name: str | None = None) -> None:
        super().__init__(
            message,
            code="INVALID_ARGUMENT",
            details={"field": field_name},
        )
        self.field_name = field_name


class CorruptSnapshotError(SchemaBoardError):
    """Snapshot payload failed to decode."""

    def __init__(self, message: str, snapshot_id: str | None = None) -> None:
        super().__init__(
            message,
            code="CORRUPT_SNAPSHOT",
            details={"snapshot_id": snapshot_id},
        )
        self.snapshot_id = snapshot_id


class StoreFailure(SchemaBoardError):
    """The entity store failed; the transaction was rolled back."""

    def __init__(self, message: str, operation: str | None = None) -> None:
        super().__init__(
            message,
            code="STORE_FAILURE",
            details={"operation": operation},
        )
        self.operation = operation
