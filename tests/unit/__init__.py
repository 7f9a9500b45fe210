"""Unit tests (SQLite in a temporary directory)."""
