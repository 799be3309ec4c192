"""outline_search MCP tools: search, page through results, and retry."""

import logging
from typing import Annotated

from fastmcp import FastMCP
from fastmcp.server.context import Context
from pydantic import Field

from outline_search.config import get_page_size
from outline_search.errors import OutlineSearchError
from outline_search.pipeline.collaborator import SearchCollaborator
from outline_search.pipeline.controller import SearchPipeline
from outline_search.pipeline.progress import ProgressEvent, ProgressSink
from outline_search.pipeline.sessions import SearchSessions
from outline_search.tools.formatters import format_outcome

logger = logging.getLogger(__name__)


def context_progress_sink(ctx: Context) -> ProgressSink:
    """Forward pipeline milestones as MCP progress notifications."""

    async def report(event: ProgressEvent) -> None:
        await ctx.report_progress(progress=event.fraction, total=1.0)
        if event.message:
            await ctx.info(f"{event.stage}: {event.message}")

    return report


def register_outline_search(mcp: FastMCP) -> None:
    """Register the search, more-results and retry tools with the MCP server."""

    @mcp.tool()
    async def outline_search(
        request: Annotated[
            str,
            Field(
                description=(
                    "Natural-language search request. Supports +, |, - for AND, OR, NOT, "
                    "'A > B' (A with a descendant matching B), 'A < B' (A under an "
                    "ancestor matching B) and a trailing ~ for semantic variants."
                )
            ),
        ],
        root_id: Annotated[
            str | None,
            Field(
                description=(
                    "Node the request was asked from; it and its ancestors are never returned"
                )
            ),
        ] = None,
        post_process: Annotated[
            bool | None,
            Field(
                description=(
                    "Force (true) or skip (false) an answer synthesized from the results; "
                    "by default the request decides"
                )
            ),
        ] = None,
        ctx: Context | None = None,
    ) -> str:
        """Search the outline for nodes matching a natural-language request.

        Handles nested AND/OR/NOT conditions, hierarchical conditions across
        ancestors and descendants, periods, page scopes (e.g. daily notes) and
        random picks. Returns a session id usable with outline_more_results
        and outline_retry.
        """
        if ctx is None:
            raise RuntimeError("Context not injected")

        lifespan = ctx.lifespan_context
        llm = lifespan["llm"]
        if llm is None:
            return "Error: No language model configured. Set OUTLINE_LLM_PROVIDER."
        sessions: SearchSessions = lifespan["sessions"]

        pipeline = SearchPipeline(
            SearchCollaborator(llm),
            lifespan["store"],
            progress=context_progress_sink(ctx),
            page_size=get_page_size(),
        )
        session_id = sessions.add(pipeline)
        try:
            outcome = await pipeline.run(request, root_id=root_id, post_process=post_process)
        except OutlineSearchError as e:
            logger.warning("Search failed for %r: %s", request, e)
            return f"Error: {e}\nSession: {session_id} (use outline_retry to try again)"
        return format_outcome(outcome, session_id)

    @mcp.tool()
    async def outline_more_results(
        session_id: Annotated[str, Field(description="Session id returned by outline_search")],
        ctx: Context | None = None,
    ) -> str:
        """Show the next page of a previous search, or a new random sample.

        Reuses the matched nodes; nothing is searched again.
        """
        if ctx is None:
            raise RuntimeError("Context not injected")

        pipeline = ctx.lifespan_context["sessions"].get(session_id)
        if pipeline is None:
            return f"Error: Unknown or expired session {session_id}."
        pipeline.set_progress(context_progress_sink(ctx))
        try:
            outcome = await pipeline.more_results()
        except OutlineSearchError as e:
            return f"Error: {e}"
        return format_outcome(outcome, session_id)

    @mcp.tool()
    async def outline_retry(
        session_id: Annotated[str, Field(description="Session id returned by outline_search")],
        instruction: Annotated[
            str,
            Field(description="What to do differently, e.g. 'also match plural forms'"),
        ],
        ctx: Context | None = None,
    ) -> str:
        """Run a previous search again from scratch, guided by an instruction."""
        if ctx is None:
            raise RuntimeError("Context not injected")

        pipeline = ctx.lifespan_context["sessions"].get(session_id)
        if pipeline is None:
            return f"Error: Unknown or expired session {session_id}."
        pipeline.set_progress(context_progress_sink(ctx))
        try:
            outcome = await pipeline.retry(instruction)
        except OutlineSearchError as e:
            logger.warning("Retry failed for session %s: %s", session_id, e)
            return f"Error: {e}"
        return format_outcome(outcome, session_id)
