"""Outline importer: loads Roam JSON exports and Markdown outlines into the store."""

import hashlib
import json
import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

from outline_search.db.backend import Database
from outline_search.db.queries import delete_page, get_source_hash, insert_nodes, record_source
from outline_search.models.node import NodeRecord

logger = logging.getLogger(__name__)

_JSON_EXTENSIONS = {".json"}
_MARKDOWN_EXTENSIONS = {".md", ".markdown"}

_ID_LENGTH = 9
_BULLET_RE = re.compile(r"^(?P<indent>[ \t]*)(?:[-*+]|\d+[.)])\s+(?P<text>.*)$")
_ROAM_DAILY_TITLE_RE = re.compile(
    r"^(?P<month>January|February|March|April|May|June|July|August|September|October"
    r"|November|December) (?P<day>\d{1,2})(?:st|nd|rd|th), (?P<year>\d{4})$"
)
_ISO_DATE_RE = re.compile(r"^(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})$")
_HEADING_RE = re.compile(r"^\s*#{1,6}\s")
_MONTHS = [
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
]


@dataclass
class FileResult:
    """Result of importing a single source file."""

    path: str
    action: str  # "imported", "unchanged", "skipped", "error"
    reason: str | None = None
    page_count: int = 0
    node_count: int = 0


@dataclass
class ImportResult:
    """Result of importing a file or directory."""

    total_files: int = 0
    imported: int = 0
    unchanged: int = 0
    skipped: int = 0
    errors: int = 0
    pages: int = 0
    nodes: int = 0
    file_results: list[FileResult] = field(default_factory=list)


def stable_id(*parts: str) -> str:
    """Fixed-width identifier derived from its parts."""
    digest = hashlib.sha1("/".join(parts).encode()).hexdigest()
    return digest[:_ID_LENGTH]


def _daily_note_id(day: date) -> str:
    return day.strftime("%m-%d-%Y")


def daily_note_id_for_title(title: str) -> str | None:
    """Daily-note page id for titles like ``October 19th, 2026`` or ``2026-10-19``."""
    title = title.strip()
    try:
        if match := _ROAM_DAILY_TITLE_RE.match(title):
            month = _MONTHS.index(match["month"]) + 1
            return _daily_note_id(date(int(match["year"]), month, int(match["day"])))
        if match := _ISO_DATE_RE.match(title):
            return _daily_note_id(date(int(match["year"]), int(match["month"]), int(match["day"])))
    except ValueError:
        return None
    return None


def _from_millis(value: Any, default: datetime) -> datetime:
    if isinstance(value, int | float) and value > 0:
        return datetime.fromtimestamp(value / 1000, tz=UTC)
    return default


def parse_roam_export(data: Any, *, default_time: datetime) -> list[NodeRecord]:
    """Flatten a Roam JSON export (a list of pages) into node rows."""
    if not isinstance(data, list):
        raise ValueError("Roam export must be a JSON array of pages")

    records: list[NodeRecord] = []
    for page in data:
        if not isinstance(page, dict) or not page.get("title"):
            logger.warning("Skipping page without a title")
            continue
        title = str(page["title"])
        page_id = str(page.get("uid") or daily_note_id_for_title(title) or stable_id("page", title))
        page_time = _from_millis(page.get("edit-time"), default_time)
        records.append(
            NodeRecord(
                id=page_id,
                parent_id=None,
                page_id=page_id,
                page_title=title,
                edit_time=page_time,
                is_page=True,
            )
        )
        stack: list[tuple[str, list[Any], str]] = [(page_id, page.get("children") or [], "")]
        while stack:
            parent_id, children, path = stack.pop()
            for position, block in enumerate(children):
                if not isinstance(block, dict):
                    continue
                block_path = f"{path}/{position}"
                block_id = str(block.get("uid") or stable_id(page_id, block_path))
                records.append(
                    NodeRecord(
                        id=block_id,
                        parent_id=parent_id,
                        page_id=page_id,
                        page_title=title,
                        text=str(block.get("string", "")),
                        edit_time=_from_millis(block.get("edit-time"), page_time),
                        position=position,
                    )
                )
                if block.get("children"):
                    stack.append((block_id, block["children"], block_path))
    return records


def _indent_width(indent: str) -> int:
    return len(indent.replace("\t", "    "))


def parse_markdown_outline(text: str, *, title: str, edit_time: datetime) -> list[NodeRecord]:
    """Turn an indented Markdown bullet list into node rows under one page.

    Lines that are not bullets continue the text of the previous block.
    """
    page_id = daily_note_id_for_title(title) or stable_id("page", title)
    records = [
        NodeRecord(
            id=page_id,
            parent_id=None,
            page_id=page_id,
            page_title=title,
            edit_time=edit_time,
            is_page=True,
        )
    ]
    # (indent width, record index, child count) for each open level
    open_levels: list[tuple[int, int, int]] = []
    top_level_count = 0

    for line in text.splitlines():
        if not line.strip():
            continue
        match = _BULLET_RE.match(line)
        if match is None:
            if _HEADING_RE.match(line) and len(records) == 1:
                continue
            if len(records) > 1:
                last = records[-1]
                records[-1] = last.model_copy(update={"text": f"{last.text}\n{line.strip()}"})
                continue
            match_text, width = line.strip(), 0
        else:
            match_text, width = match["text"].strip(), _indent_width(match["indent"])

        while open_levels and open_levels[-1][0] >= width:
            open_levels.pop()
        if open_levels:
            parent_width, parent_index, child_count = open_levels[-1]
            open_levels[-1] = (parent_width, parent_index, child_count + 1)
            parent = records[parent_index]
            parent_id, position = parent.id, child_count
        else:
            parent_id, position = page_id, top_level_count
            top_level_count += 1

        block_id = stable_id(page_id, parent_id, str(position))
        records.append(
            NodeRecord(
                id=block_id,
                parent_id=parent_id,
                page_id=page_id,
                page_title=title,
                text=match_text,
                edit_time=edit_time,
                position=position,
            )
        )
        open_levels.append((width, len(records) - 1, 0))
    return records


def _page_ids(records: list[NodeRecord]) -> list[str]:
    return [r.id for r in records if r.is_page]


class OutlineImporter:
    """Imports outline sources, replacing the pages they contain."""

    def __init__(self, db: Database) -> None:
        """Initialize with a database connection."""
        self._db = db

    async def import_path(self, path: Path) -> ImportResult:
        """Import a file, or every supported file under a directory."""
        result = ImportResult()
        if not path.exists():
            result.errors = 1
            result.file_results.append(
                FileResult(path=str(path), action="error", reason="Path not found")
            )
            return result

        for file_path in self._iter_sources(path):
            result.total_files += 1
            file_result = await self.import_file(file_path)
            result.file_results.append(file_result)
            if file_result.action == "imported":
                result.imported += 1
                result.pages += file_result.page_count
                result.nodes += file_result.node_count
            elif file_result.action == "unchanged":
                result.unchanged += 1
            elif file_result.action == "skipped":
                result.skipped += 1
            else:
                result.errors += 1
        return result

    async def import_file(self, path: Path) -> FileResult:
        """Import a single Roam JSON export or Markdown outline."""
        suffix = path.suffix.lower()
        if suffix not in _JSON_EXTENSIONS | _MARKDOWN_EXTENSIONS:
            return FileResult(
                path=str(path), action="skipped", reason=f"Unsupported file type: {suffix}"
            )
        try:
            content = path.read_text(encoding="utf-8")
            modified = datetime.fromtimestamp(path.stat().st_mtime, tz=UTC)
        except OSError as e:
            return FileResult(path=str(path), action="error", reason=str(e))

        source_path = str(path.resolve())
        content_hash = hashlib.sha256(content.encode()).hexdigest()
        if await get_source_hash(self._db, source_path) == content_hash:
            return FileResult(path=str(path), action="unchanged")

        try:
            if suffix in _JSON_EXTENSIONS:
                records = parse_roam_export(json.loads(content), default_time=modified)
            else:
                records = parse_markdown_outline(content, title=path.stem, edit_time=modified)
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning("Could not parse %s", path, exc_info=True)
            return FileResult(path=str(path), action="error", reason=str(e))

        page_ids = _page_ids(records)
        for page_id in page_ids:
            await delete_page(self._db, page_id)
        await insert_nodes(self._db, records)
        node_count = len(records) - len(page_ids)
        await record_source(self._db, source_path, content_hash, len(page_ids), node_count)
        logger.info("Imported %s: %d pages, %d nodes", path, len(page_ids), node_count)
        return FileResult(
            path=str(path),
            action="imported",
            page_count=len(page_ids),
            node_count=node_count,
        )

    def _iter_sources(self, path: Path) -> Iterator[Path]:
        if path.is_file():
            yield path
            return
        for candidate in sorted(path.rglob("*")):
            if candidate.is_file() and candidate.suffix.lower() in (
                _JSON_EXTENSIONS | _MARKDOWN_EXTENSIONS
            ):
                yield candidate
