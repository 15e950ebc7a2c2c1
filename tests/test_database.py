"""Tests for database URL handling."""

from pathlib import Path

from registry.database import sqlite_file


class TestSqliteFile:
    def test_file_backed_url(self):
        assert sqlite_file("sqlite+aiosqlite:///./data/registry.db") == Path("./data/registry.db")

    def test_in_memory_urls(self):
        assert sqlite_file("sqlite+aiosqlite:///") is None
        assert sqlite_file("sqlite+aiosqlite:///:memory:") is None

    def test_other_backends(self):
        assert sqlite_file("postgresql+asyncpg://user:pw@db/registry") is None
