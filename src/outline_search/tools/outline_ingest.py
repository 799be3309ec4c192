"""outline_ingest MCP tool: import outline files into the store."""

import logging
from pathlib import Path
from typing import Annotated

from fastmcp import FastMCP
from fastmcp.server.context import Context
from pydantic import Field

from outline_search.db.queries import get_store_stats
from outline_search.ingest.outline_loader import FileResult, ImportResult, OutlineImporter

logger = logging.getLogger(__name__)


def _format_file_result(r: FileResult) -> str:
    """Format a single file result."""
    line = f"  {r.action}: {r.path}"
    if r.reason:
        line += f" ({r.reason})"
    if r.action == "imported":
        line += f" [{r.page_count} pages, {r.node_count} nodes]"
    return line


def format_import_result(result: ImportResult, stats: dict[str, int]) -> str:
    """Format a file or directory import."""
    lines = [
        "Import complete",
        f"Files: {result.total_files} total, {result.imported} imported, "
        f"{result.unchanged} unchanged, {result.skipped} skipped, {result.errors} errors",
        f"Imported: {result.pages} pages, {result.nodes} nodes",
        f"Store: {stats['pages']} pages, {stats['nodes']} nodes",
    ]
    details = [_format_file_result(r) for r in result.file_results if r.action != "unchanged"]
    if details:
        lines.append("")
        lines.extend(details)
    return "\n".join(lines)


def register_outline_ingest(mcp: FastMCP) -> None:
    """Register the outline_ingest tool with the MCP server."""

    @mcp.tool()
    async def outline_ingest(
        path: Annotated[
            str,
            Field(
                description=(
                    "Roam JSON export, Markdown outline, or a directory containing them. "
                    "Accepts absolute, relative and ~ paths."
                ),
            ),
        ],
        ctx: Context | None = None,
    ) -> str:
        """Import outline files so they can be searched.

        Pages found in a file replace any earlier copy of the same pages;
        files whose content has not changed since the last import are skipped.
        """
        if ctx is None:
            raise RuntimeError("Context not injected")

        db = ctx.lifespan_context["db"]
        resolved = Path(path).expanduser()
        result = await OutlineImporter(db).import_path(resolved)
        if result.total_files == 0 and result.errors:
            return f"Error: {result.file_results[0].reason}: {resolved}"
        if result.total_files == 0:
            return f"No Roam JSON or Markdown files found at {resolved}."
        return format_import_result(result, await get_store_stats(db))
