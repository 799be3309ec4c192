"""Tests for the outline_search, outline_more_results and outline_retry MCP tools."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest_asyncio

from outline_search.db.connection import create_connection
from outline_search.pipeline.progress import ProgressEvent
from outline_search.pipeline.sessions import SearchSessions
from outline_search.search.tree_store import SQLTreeStore
from outline_search.tools.outline_search import context_progress_sink, register_outline_search
from tests.conftest import BASE_TIME, SequenceLLM, add_outline


@pytest_asyncio.fixture
async def tool_context():
    """Mock MCP context with all lifespan dependencies."""
    db = await create_connection(":memory:")
    blocks = [(f"n{i:02d}", f"budget item {i}", []) for i in range(12)]
    await add_outline(db, "p1", "Finance", blocks, edit_time=BASE_TIME)

    lifespan = {
        "db": db,
        "store": SQLTreeStore(db),
        "llm": None,
        "sessions": SearchSessions(4),
    }
    ctx = MagicMock()
    ctx.lifespan_context = lifespan
    ctx.report_progress = AsyncMock()
    ctx.info = AsyncMock()

    yield ctx, lifespan

    await db.close()


def _register_and_capture(mcp_mock):
    """Register the search tools on a mock MCP and return the captured tools dict."""
    tools = {}

    def capture_tool():
        def decorator(func):
            tools[func.__name__] = func
            return func

        return decorator

    mcp_mock.tool = capture_tool
    register_outline_search(mcp_mock)
    return tools


def _budget_llm(*extra: str) -> SequenceLLM:
    return SequenceLLM(
        [
            json.dumps({"search_list": "budget"}),
            json.dumps({"filters": [[{"pattern": "budget"}]]}),
            *extra,
        ]
    )


def _session_id(result: str) -> str:
    first_line = result.splitlines()[0]
    return first_line.removeprefix("Session: ").split()[0]


class TestOutlineSearchTool:
    async def test_error_when_no_llm(self, tool_context):
        ctx, _ = tool_context
        tools = _register_and_capture(MagicMock())
        result = await tools["outline_search"](request="budget", ctx=ctx)
        assert result.startswith("Error: No language model configured")

    async def test_search_returns_session_and_results(self, tool_context):
        ctx, lifespan = tool_context
        lifespan["llm"] = _budget_llm()
        tools = _register_and_capture(MagicMock())

        result = await tools["outline_search"](request="budget items", ctx=ctx)

        assert result.startswith("Session: ")
        assert "Results 1 to 10 of 12" in result
        assert "Use outline_more_results for more." in result
        assert len(lifespan["sessions"]) == 1
        ctx.report_progress.assert_awaited()
        assert ctx.report_progress.await_args.kwargs == {"progress": 1.0, "total": 1.0}

    async def test_more_results(self, tool_context):
        ctx, lifespan = tool_context
        lifespan["llm"] = _budget_llm()
        tools = _register_and_capture(MagicMock())

        first = await tools["outline_search"](request="budget items", ctx=ctx)
        more = await tools["outline_more_results"](session_id=_session_id(first), ctx=ctx)

        assert "Results 11 to 12 of 12" in more
        assert "outline_more_results" not in more

    async def test_unknown_session(self, tool_context):
        ctx, _ = tool_context
        tools = _register_and_capture(MagicMock())
        more = await tools["outline_more_results"](session_id="deadbeef", ctx=ctx)
        assert more == "Error: Unknown or expired session deadbeef."
        retry = await tools["outline_retry"](session_id="deadbeef", instruction="x", ctx=ctx)
        assert retry == "Error: Unknown or expired session deadbeef."

    async def test_failed_search_can_be_retried(self, tool_context):
        ctx, lifespan = tool_context
        llm = SequenceLLM(
            [
                "not json at all",
                json.dumps({"search_list": "budget"}),
                json.dumps({"filters": [[{"pattern": "item 1[01]"}]]}),
            ]
        )
        lifespan["llm"] = llm
        tools = _register_and_capture(MagicMock())

        failed = await tools["outline_search"](request="budget items", ctx=ctx)
        assert failed.startswith("Error: interpret: malformed JSON")
        session_id = failed.splitlines()[1].removeprefix("Session: ").split()[0]

        retried = await tools["outline_retry"](
            session_id=session_id, instruction="only items ten and eleven", ctx=ctx
        )
        assert "Results 1 to 2 of 2" in retried
        assert "only items ten and eleven" in llm.prompts[1]


async def test_context_progress_sink():
    ctx = MagicMock()
    ctx.report_progress = AsyncMock()
    ctx.info = AsyncMock()
    sink = context_progress_sink(ctx)

    await sink(ProgressEvent(stage="matching", fraction=0.5))
    ctx.report_progress.assert_awaited_once_with(progress=0.5, total=1.0)
    ctx.info.assert_not_awaited()

    await sink(ProgressEvent(stage="interpreting", fraction=0.1, message="budget"))
    ctx.info.assert_awaited_once_with("interpreting: budget")
