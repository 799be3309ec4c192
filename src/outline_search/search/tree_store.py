"""Pattern queries over the outline forest.

Every query fails open: an error is logged and treated as an empty match set,
so one bad lookup under-returns instead of aborting the pipeline.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from outline_search.db import queries
from outline_search.db.backend import Database
from outline_search.models.node import ContentNode
from outline_search.search.patterns import (
    DAILY_NOTE_ID_RE,
    DAILY_NOTES_SCOPE,
    is_valid_regex,
    matches,
    scoped_regex,
)

logger = logging.getLogger(__name__)

# Keep IN (...) lists well below SQLite's bound-parameter limit
_CHUNK_SIZE = 500


@dataclass
class DescendantHit:
    """A descendant matching the remaining patterns, and the anchor it descends from."""

    node: ContentNode
    anchor_id: str


@dataclass
class SiblingParentHit:
    """A parent whose children collectively match every pattern."""

    node: ContentNode
    matched_child_ids: list[str] = field(default_factory=list)


@runtime_checkable
class TreeStore(Protocol):
    """Read-only pattern query surface of the outline store."""

    async def query_by_own_pattern(
        self,
        pattern: str,
        exclude_pattern: str | None = None,
        page_scope: str | None = None,
    ) -> list[ContentNode]:
        """Nodes whose own text matches pattern and not exclude_pattern."""
        ...

    async def query_descendants(
        self,
        root_ids: list[str],
        patterns: list[str],
        exclude_pattern: str | None = None,
        page_scope: str | None = None,
    ) -> list[DescendantHit]:
        """Descendants (any depth) of root_ids whose own text matches all patterns."""
        ...

    async def query_siblings_parent_matching(
        self,
        node_ids: list[str],
        patterns: list[str],
        exclude_pattern: str | None = None,
        page_scope: str | None = None,
    ) -> list[SiblingParentHit]:
        """Parents of node_ids whose children together match every pattern."""
        ...

    async def ancestor_ids(self, node_id: str) -> list[str]:
        """Ids of the ancestor chain of a node, nearest first."""
        ...

    async def get_node(self, node_id: str) -> ContentNode | None:
        """A single node by id."""
        ...


def _chunks(ids: list[str]) -> list[list[str]]:
    return [ids[i : i + _CHUNK_SIZE] for i in range(0, len(ids), _CHUNK_SIZE)]


def _placeholders(values: list[str]) -> str:
    return ",".join("?" for _ in values)


def _scope_clause(page_scope: str | None, alias: str = "n") -> tuple[str, list[str]]:
    """SQL fragment restricting rows to a page scope.

    ``dnp`` means daily-note pages; anything else is matched against page titles.
    """
    if not page_scope or not page_scope.strip():
        return "", []
    scope = page_scope.strip()
    if scope.lower() == DAILY_NOTES_SCOPE:
        return f" AND {alias}.page_id REGEXP ?", [DAILY_NOTE_ID_RE.pattern]
    if not is_valid_regex(scoped_regex(scope)):
        scope = re.escape(scope)
    return f" AND {alias}.page_title REGEXP ?", [scoped_regex(scope)]


def _pattern_clause(
    patterns: list[str], exclude_pattern: str | None, alias: str = "n"
) -> tuple[str, list[str]]:
    sql = "".join(f" AND {alias}.text REGEXP ?" for _ in patterns)
    params = list(patterns)
    if exclude_pattern:
        sql += f" AND NOT {alias}.text REGEXP ?"
        params.append(exclude_pattern)
    return sql, params


def collective_match(
    children: list[tuple[str, str]],
    patterns: list[str],
    exclude_pattern: str | None = None,
) -> list[str] | None:
    """Check whether a group of sibling texts jointly satisfies every pattern.

    ``children`` is a list of (id, text) pairs. Returns the ids of the children
    that matched at least one pattern, or None if some pattern is unmatched,
    any child matches the exclusion, or fewer than two distinct children are
    involved.
    """
    if exclude_pattern and any(matches(exclude_pattern, text) for _, text in children):
        return None
    matched: list[str] = []
    for pattern in patterns:
        hits = [child_id for child_id, text in children if matches(pattern, text)]
        if not hits:
            return None
        matched.extend(h for h in hits if h not in matched)
    if len(matched) < 2:
        return None
    return matched


class SQLTreeStore:
    """TreeStore backed by the SQLite outline database."""

    def __init__(self, db: Database) -> None:
        """Initialize with a database connection."""
        self._db = db

    async def query_by_own_pattern(
        self,
        pattern: str,
        exclude_pattern: str | None = None,
        page_scope: str | None = None,
    ) -> list[ContentNode]:
        """Nodes whose own text matches pattern and not exclude_pattern."""
        match_sql, params = _pattern_clause([pattern], exclude_pattern)
        scope_sql, scope_params = _scope_clause(page_scope)
        sql = (
            f"SELECT {queries.NODE_COLUMNS} FROM nodes n "
            f"WHERE n.is_page = 0{match_sql}{scope_sql}"
        )
        try:
            cursor = await self._db.execute(sql, params + scope_params)
            rows = await cursor.fetchall()
        except Exception:
            logger.warning("Own-pattern query failed for pattern: %s", pattern, exc_info=True)
            return []
        return [queries.row_to_node(row) for row in rows]

    async def query_descendants(
        self,
        root_ids: list[str],
        patterns: list[str],
        exclude_pattern: str | None = None,
        page_scope: str | None = None,
    ) -> list[DescendantHit]:
        """Descendants (any depth) of root_ids whose own text matches all patterns."""
        if not root_ids:
            return []
        match_sql, match_params = _pattern_clause(patterns, exclude_pattern)
        scope_sql, scope_params = _scope_clause(page_scope)
        hits: list[DescendantHit] = []
        for chunk in _chunks(root_ids):
            sql = f"""
                WITH RECURSIVE subtree(id, anchor_id) AS (
                    SELECT id, parent_id FROM nodes WHERE parent_id IN ({_placeholders(chunk)})
                    UNION
                    SELECT c.id, s.anchor_id FROM nodes c JOIN subtree s ON c.parent_id = s.id
                )
                SELECT {queries.NODE_COLUMNS}, s.anchor_id
                FROM subtree s JOIN nodes n ON n.id = s.id
                WHERE n.is_page = 0{match_sql}{scope_sql}
            """
            try:
                cursor = await self._db.execute(sql, chunk + match_params + scope_params)
                rows = await cursor.fetchall()
            except Exception:
                logger.warning(
                    "Descendant query failed for patterns: %s", patterns, exc_info=True
                )
                continue
            hits.extend(
                DescendantHit(node=queries.row_to_node(row), anchor_id=row["anchor_id"])
                for row in rows
            )
        return hits

    async def query_siblings_parent_matching(
        self,
        node_ids: list[str],
        patterns: list[str],
        exclude_pattern: str | None = None,
        page_scope: str | None = None,
    ) -> list[SiblingParentHit]:
        """Parents of node_ids whose children together match every pattern.

        Page roots are never returned, and neither is a parent whose own text
        matches the exclusion.
        """
        if not node_ids or not patterns:
            return []
        scope_sql, scope_params = _scope_clause(page_scope, alias="p")
        parents: dict[str, ContentNode] = {}
        for chunk in _chunks(node_ids):
            sql = f"""
                SELECT DISTINCT p.id, p.text, p.edit_time, p.page_title, p.parent_id
                FROM nodes s JOIN nodes p ON p.id = s.parent_id
                WHERE s.id IN ({_placeholders(chunk)}) AND p.is_page = 0{scope_sql}
            """
            try:
                cursor = await self._db.execute(sql, chunk + scope_params)
                rows = await cursor.fetchall()
            except Exception:
                logger.warning("Sibling parent lookup failed", exc_info=True)
                continue
            for row in rows:
                parents.setdefault(row["id"], queries.row_to_node(row))

        if not parents:
            return []

        children: dict[str, list[tuple[str, str]]] = {pid: [] for pid in parents}
        parent_ids = list(parents)
        for chunk in _chunks(parent_ids):
            try:
                cursor = await self._db.execute(
                    f"""SELECT id, parent_id, text FROM nodes
                    WHERE parent_id IN ({_placeholders(chunk)}) ORDER BY position""",
                    chunk,
                )
                rows = await cursor.fetchall()
            except Exception:
                logger.warning("Sibling children lookup failed", exc_info=True)
                continue
            for row in rows:
                children[row["parent_id"]].append((row["id"], row["text"]))

        hits: list[SiblingParentHit] = []
        for parent_id in parent_ids:
            parent = parents[parent_id]
            if exclude_pattern and matches(exclude_pattern, parent.text):
                continue
            try:
                matched = collective_match(children[parent_id], patterns, exclude_pattern)
            except re.error:
                logger.warning("Invalid pattern in sibling match: %s", patterns, exc_info=True)
                return []
            if matched is not None:
                hits.append(SiblingParentHit(node=parent, matched_child_ids=matched))
        return hits

    async def ancestor_ids(self, node_id: str) -> list[str]:
        """Ids of the ancestor chain of a node, nearest first."""
        try:
            ancestors = await queries.get_ancestors(self._db, node_id)
        except Exception:
            logger.warning("Ancestor lookup failed for %s", node_id, exc_info=True)
            return []
        return [a.id for a in ancestors]

    async def get_node(self, node_id: str) -> ContentNode | None:
        """A single node by id."""
        try:
            return await queries.get_node(self._db, node_id)
        except Exception:
            logger.warning("Node lookup failed for %s", node_id, exc_info=True)
            return None
