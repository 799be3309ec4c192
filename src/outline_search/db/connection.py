"""Database connection management for the outline store."""

import logging
from pathlib import Path

import aiosqlite

from outline_search.config import get_db_path
from outline_search.db.backend import Database
from outline_search.db.sqlite_backend import SQLiteBackend

logger = logging.getLogger(__name__)


async def create_connection(db_path: Path | str | None = None) -> Database:
    """Create and initialize a database connection.

    For in-memory SQLite databases, pass ":memory:".
    """
    db_path = str(db_path or get_db_path())

    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row

    # WAL keeps readers unblocked while an import is writing
    await conn.execute("PRAGMA journal_mode=WAL")

    db = SQLiteBackend(conn)
    await db.register_functions()
    await db.apply_schema()
    logger.debug("Outline database ready at %s", db_path)

    return db
