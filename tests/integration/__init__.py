"""Integration tests (HTTP gateway over SQLite)."""
