"""
Unit tests for server and gateway configuration.
"""

from pathlib import Path

import pytest

from designer.schemaboard_server.api.config import Settings
from designer.schemaboard_server.config import (
    ObservabilityConfig,
    ServerConfig,
    SnapshotConfig,
    StorageConfig,
)


class TestServerConfig:
    """Tests for environment-driven ServerConfig."""

    def test_defaults(self, monkeypatch, tmp_path):
        for name in ("DB_FILENAME", "COLLABORATOR_ROLES_ENABLED", "UNDO_ENABLED",
                     "SNAPSHOT_MAX_DESCRIPTION", "LOG_FORMAT"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setenv("DATA_DIR", str(tmp_path))
        config = ServerConfig.from_env()

        assert config.storage.db_path == Path(tmp_path) / "schemaboard.db"
        assert config.access.collaborator_roles_enabled is False
        assert config.undo.enabled is True
        assert config.snapshot.max_description_length == 500
        assert config.observability.log_format == "json"

    def test_env_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DATA_DIR", str(tmp_path))
        monkeypatch.setenv("DB_FILENAME", "board.db")
        monkeypatch.setenv("COLLABORATOR_ROLES_ENABLED", "true")
        monkeypatch.setenv("UNDO_ENABLED", "false")
        monkeypatch.setenv("SQLITE_BUSY_TIMEOUT_MS", "250")
        monkeypatch.setenv("LOG_FORMAT", "text")

        config = ServerConfig.from_env()

        assert config.storage.db_path.name == "board.db"
        assert config.storage.busy_timeout_ms == 250
        assert config.access.collaborator_roles_enabled is True
        assert config.undo.enabled is False
        assert config.observability.log_format == "text"

    def test_invalid_log_format(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DATA_DIR", str(tmp_path))
        monkeypatch.setenv("LOG_FORMAT", "xml")
        with pytest.raises(ValueError):
            ServerConfig.from_env()

    def test_validate_rejects_bad_values(self, tmp_path):
        with pytest.raises(ValueError):
            ServerConfig(storage=StorageConfig(data_dir=str(tmp_path), db_filename="")).validate()
        with pytest.raises(ValueError):
            ServerConfig(
                storage=StorageConfig(data_dir=str(tmp_path)),
                snapshot=SnapshotConfig(max_description_length=0),
            ).validate()

    def test_valid_config_passes(self, tmp_path):
        ServerConfig(
            storage=StorageConfig(data_dir=str(tmp_path)),
            observability=ObservabilityConfig(log_format="text"),
        ).validate()


class TestSettings:
    """Tests for the HTTP gateway Settings."""

    def test_defaults(self):
        settings = Settings()
        assert settings.actor_header == "X-Actor"
        assert settings.port == 8080

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("SCHEMABOARD_PORT", "9000")
        monkeypatch.setenv("SCHEMABOARD_ACTOR_HEADER", "X-User-Id")

        settings = Settings()
        assert settings.port == 9000
        assert settings.actor_header == "X-User-Id"
