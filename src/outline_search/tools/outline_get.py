"""outline_get MCP tool: full node retrieval by id."""

import logging
from typing import Annotated

from fastmcp import FastMCP
from fastmcp.server.context import Context
from pydantic import Field

from outline_search.db.queries import get_ancestors, get_children, get_node
from outline_search.tools.formatters import format_node_detail

logger = logging.getLogger(__name__)

_MAX_IDS = 20


def register_outline_get(mcp: FastMCP) -> None:
    """Register the outline_get tool with the MCP server."""

    @mcp.tool()
    async def outline_get(
        node_id: Annotated[
            str | list[str],
            Field(description="Single node id or list of ids (max 20), without parentheses"),
        ],
        ctx: Context | None = None,
    ) -> str:
        """Retrieve nodes in full, with their path from the page and their children.

        Use after outline_search to read a result in context.
        """
        if ctx is None:
            raise RuntimeError("Context not injected")

        db = ctx.lifespan_context["db"]
        ids = [node_id] if isinstance(node_id, str) else list(node_id)
        if len(ids) > _MAX_IDS:
            return f"Error: Maximum {_MAX_IDS} ids per request (got {len(ids)})."

        formatted: list[str] = []
        for raw_id in ids:
            nid = raw_id.strip().strip("()")
            node = await get_node(db, nid)
            if node is None:
                formatted.append(f"(({nid})) not found")
                continue
            ancestors = await get_ancestors(db, nid)
            children = await get_children(db, nid)
            formatted.append(format_node_detail(node, ancestors, children))
        return "\n\n".join(formatted)
