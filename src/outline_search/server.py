"""FastMCP server with lifespan management and tool registration."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastmcp import FastMCP

from outline_search.config import get_db_path, get_llm_provider, get_log_level, get_max_sessions
from outline_search.db.connection import create_connection
from outline_search.db.queries import get_store_stats
from outline_search.llm import AnthropicLLMClient, BedrockLLMClient, OllamaLLMClient
from outline_search.llm.provider import LLMProvider
from outline_search.pipeline.sessions import SearchSessions
from outline_search.search.tree_store import SQLTreeStore
from outline_search.tools.outline_get import register_outline_get
from outline_search.tools.outline_ingest import register_outline_ingest
from outline_search.tools.outline_search import register_outline_search


def _create_llm(provider: str) -> LLMProvider | None:
    """Create an LLM client for the given provider name."""
    if provider == "anthropic":
        return AnthropicLLMClient()
    if provider == "bedrock":
        return BedrockLLMClient()
    if provider == "ollama":
        return OllamaLLMClient()
    return None


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[dict[str, Any]]:
    """Manage the database connection, LLM client and search sessions."""
    # Configure logging to stderr (stdout is MCP stdio transport)
    logging.basicConfig(
        level=getattr(logging, get_log_level().upper(), logging.WARNING),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    logger = logging.getLogger(__name__)

    db_path = get_db_path()
    logger.info("Opening database at %s", db_path)
    db = await create_connection(db_path)
    stats = await get_store_stats(db)
    logger.info("Outline store: %d pages, %d nodes", stats["pages"], stats["nodes"])

    provider = get_llm_provider()
    llm = _create_llm(provider)
    if llm is not None:
        logger.info("Search LLM: %s (%s family)", provider, llm.family)
    else:
        logger.warning("Unknown LLM provider %r, searches disabled", provider)

    try:
        yield {
            "db": db,
            "store": SQLTreeStore(db),
            "llm": llm,
            "sessions": SearchSessions(get_max_sessions()),
        }
    finally:
        if llm is not None:
            await llm.close()
        await db.close()
        logger.info("Database connection closed")


_INSTRUCTIONS = """\
Searches a personal outline (e.g. a Roam Research graph): pages holding \
nested blocks of text.

- outline_search: natural-language search. Understands AND/OR/NOT, \
hierarchical conditions ("blocks about X with a child mentioning Y"), periods, \
daily-notes scope and random picks, and can answer a question from the \
matched blocks. Returns a session id.
- outline_more_results: next page (or another random sample) for a session.
- outline_retry: redo a session's search with an instruction on what to change.
- outline_get: read blocks in full with their path and children.
- outline_ingest: import a Roam JSON export or Markdown outlines.

Block ids are 9-character uids, shown as ((uid)).
"""


def create_server() -> FastMCP:
    """Create and configure the MCP server with all tools."""
    mcp = FastMCP(
        "outline-search",
        instructions=_INSTRUCTIONS,
        lifespan=lifespan,
    )

    register_outline_search(mcp)
    register_outline_get(mcp)
    register_outline_ingest(mcp)

    return mcp
