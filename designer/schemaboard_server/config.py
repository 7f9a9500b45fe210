"""
Configuration management for SchemaBoard Server.

All configuration is done via environment variables - no config files inside containers.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Production deployments MUST set explicit values for the data directory
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Deprecate settings by logging warnings but continuing to support them
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class StorageConfig:
    """Local storage configuration.

    Attributes:
        data_dir: Directory for the SQLite database
        db_filename: Database file name inside data_dir
        wal_mode: SQLite WAL mode enabled
        busy_timeout_ms: SQLite busy timeout in milliseconds
        cache_size_pages: SQLite cache size in pages (negative = KB)
    """

    data_dir: str = "/var/lib/schemaboard"
    db_filename: str = "schemaboard.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000
    cache_size_pages: int = -64000  # 64MB

    @property
    def db_path(self) -> Path:
        return Path(self.data_dir) / self.db_filename

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        return cls(
            data_dir=os.getenv("DATA_DIR", "/var/lib/schemaboard"),
            db_filename=os.getenv("DB_FILENAME", "schemaboard.db"),
            wal_mode=_env_bool("SQLITE_WAL_MODE", "true"),
            busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
            cache_size_pages=int(os.getenv("SQLITE_CACHE_SIZE", "-64000")),
        )


@dataclass(frozen=True)
class AccessConfig:
    """Authorization configuration.

    Attributes:
        collaborator_roles_enabled: Grant editor/viewer collaborators access.
            Off by default, in which case only the project owner has access.
    """

    collaborator_roles_enabled: bool = False

    @classmethod
    def from_env(cls) -> AccessConfig:
        """Load configuration from environment variables."""
        return cls(
            collaborator_roles_enabled=_env_bool("COLLABORATOR_ROLES_ENABLED", "false"),
        )


@dataclass(frozen=True)
class UndoConfig:
    """Undo ledger configuration.

    Attributes:
        enabled: Whether mutations record undo entries
    """

    enabled: bool = True

    @classmethod
    def from_env(cls) -> UndoConfig:
        """Load configuration from environment variables."""
        return cls(enabled=_env_bool("UNDO_ENABLED", "true"))


@dataclass(frozen=True)
class SnapshotConfig:
    """Snapshot codec configuration.

    Attributes:
        max_description_length: Longest accepted snapshot description
        record_restore_undo: Whether restore pushes an undo entry
    """

    max_description_length: int = 500
    record_restore_undo: bool = True

    @classmethod
    def from_env(cls) -> SnapshotConfig:
        """Load configuration from environment variables."""
        return cls(
            max_description_length=int(os.getenv("SNAPSHOT_MAX_DESCRIPTION", "500")),
            record_restore_undo=_env_bool("SNAPSHOT_RESTORE_UNDO", "true"),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Observability and logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class ServerConfig:
    """Complete server configuration.

    This aggregates all configuration sections and provides validation.

    Attributes:
        storage: Local storage configuration
        access: Authorization configuration
        undo: Undo ledger configuration
        snapshot: Snapshot configuration
        observability: Observability configuration
    """

    storage: StorageConfig = field(default_factory=StorageConfig)
    access: AccessConfig = field(default_factory=AccessConfig)
    undo: UndoConfig = field(default_factory=UndoConfig)
    snapshot: SnapshotConfig = field(default_factory=SnapshotConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Load complete configuration from environment variables.

        Returns:
            ServerConfig with all sections populated from environment.

        Raises:
            ValueError: If required configuration is missing or invalid.
        """
        config = cls(
            storage=StorageConfig.from_env(),
            access=AccessConfig.from_env(),
            undo=UndoConfig.from_env(),
            snapshot=SnapshotConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not self.storage.db_filename:
            raise ValueError("DB_FILENAME must not be empty")
        if self.storage.busy_timeout_ms < 0:
            raise ValueError("SQLITE_BUSY_TIMEOUT_MS must be >= 0")
        if self.snapshot.max_description_length <= 0:
            raise ValueError("SNAPSHOT_MAX_DESCRIPTION must be positive")
        if self.observability.log_format not in ("json", "text"):
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: json, text"
            )

        if not os.path.exists(self.storage.data_dir):
            logger.warning(
                f"Data directory does not exist: {self.storage.data_dir}. "
                "It will be created on first write."
            )

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "Server configuration loaded",
            extra={
                "data_dir": self.storage.data_dir,
                "db_filename": self.storage.db_filename,
                "wal_mode": self.storage.wal_mode,
                "collaborator_roles_enabled": self.access.collaborator_roles_enabled,
                "undo_enabled": self.undo.enabled,
                "log_level": self.observability.log_level,
            },
        )
