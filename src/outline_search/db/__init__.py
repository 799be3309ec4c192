"""Database connection and schema management."""

from outline_search.db.backend import Cursor, Database, Row
from outline_search.db.sqlite_backend import SQLiteBackend

__all__ = ["Cursor", "Database", "Row", "SQLiteBackend"]
