"""Query helpers for common outline store operations."""

from datetime import UTC, datetime

from outline_search.db.backend import Database, Row
from outline_search.models.node import ContentNode, NodeRecord

NODE_COLUMNS = "n.id, n.text, n.edit_time, n.page_title, n.parent_id"


def row_to_node(row: Row) -> ContentNode:
    """Convert a database row to a ContentNode."""
    return ContentNode(
        id=row["id"],
        text=row["text"],
        edit_time=datetime.fromisoformat(row["edit_time"]),
        page_title=row["page_title"],
        parent_id=row["parent_id"],
    )


async def insert_nodes(db: Database, records: list[NodeRecord]) -> None:
    """Insert or replace node rows, then commit."""
    await db.executemany(
        """INSERT OR REPLACE INTO nodes
        (id, parent_id, page_id, page_title, text, edit_time, position, is_page)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        [
            (
                r.id,
                r.parent_id,
                r.page_id,
                r.page_title,
                r.text,
                r.edit_time.isoformat(),
                r.position,
                int(r.is_page),
            )
            for r in records
        ],
    )
    await db.commit()


async def delete_page(db: Database, page_id: str) -> int:
    """Delete a page and every node under it. Returns the number of rows removed."""
    cursor = await db.execute("DELETE FROM nodes WHERE page_id = ?", (page_id,))
    await db.commit()
    return cursor.rowcount


async def get_node(db: Database, node_id: str) -> ContentNode | None:
    """Get a single node (or page) by ID."""
    cursor = await db.execute(f"SELECT {NODE_COLUMNS} FROM nodes n WHERE n.id = ?", (node_id,))
    row = await cursor.fetchone()
    return row_to_node(row) if row else None


async def get_children(db: Database, node_id: str) -> list[ContentNode]:
    """Direct children of a node, in outline order."""
    cursor = await db.execute(
        f"SELECT {NODE_COLUMNS} FROM nodes n WHERE n.parent_id = ? ORDER BY n.position",
        (node_id,),
    )
    return [row_to_node(row) for row in await cursor.fetchall()]


async def get_ancestors(db: Database, node_id: str) -> list[ContentNode]:
    """Ancestor chain of a node, nearest parent first, page root last."""
    cursor = await db.execute(
        f"""WITH RECURSIVE chain(id, depth) AS (
            SELECT parent_id, 1 FROM nodes WHERE id = ? AND parent_id IS NOT NULL
            UNION ALL
            SELECT p.parent_id, c.depth + 1
            FROM nodes p JOIN chain c ON p.id = c.id
            WHERE p.parent_id IS NOT NULL
        )
        SELECT {NODE_COLUMNS} FROM chain c JOIN nodes n ON n.id = c.id
        ORDER BY c.depth""",
        (node_id,),
    )
    return [row_to_node(row) for row in await cursor.fetchall()]


async def get_store_stats(db: Database) -> dict[str, int]:
    """Page and node counts."""
    cursor = await db.execute(
        "SELECT COALESCE(SUM(is_page), 0), COUNT(*) - COALESCE(SUM(is_page), 0) FROM nodes"
    )
    row = await cursor.fetchone()
    if row is None:
        return {"pages": 0, "nodes": 0}
    return {"pages": row[0], "nodes": row[1]}


async def get_source_hash(db: Database, source_path: str) -> str | None:
    """Content hash recorded for a previously imported source file."""
    cursor = await db.execute(
        "SELECT content_hash FROM imported_sources WHERE source_path = ?", (source_path,)
    )
    row = await cursor.fetchone()
    return row[0] if row else None


async def record_source(
    db: Database, source_path: str, content_hash: str, page_count: int, node_count: int
) -> None:
    """Record (or refresh) an imported source file."""
    await db.execute(
        """INSERT INTO imported_sources
        (source_path, content_hash, page_count, node_count, imported_at)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(source_path) DO UPDATE SET
            content_hash = excluded.content_hash,
            page_count = excluded.page_count,
            node_count = excluded.node_count,
            imported_at = excluded.imported_at""",
        (source_path, content_hash, page_count, node_count, datetime.now(UTC).isoformat()),
    )
    await db.commit()
