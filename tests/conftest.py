"""Shared test fixtures."""

from datetime import UTC, datetime

import pytest_asyncio

from outline_search.db.connection import create_connection
from outline_search.db.queries import insert_nodes
from outline_search.llm.provider import ModelFamily
from outline_search.models.node import NodeRecord
from outline_search.search.tree_store import SQLTreeStore

BASE_TIME = datetime(2026, 10, 1, 12, 0, tzinfo=UTC)


@pytest_asyncio.fixture
async def db():
    """In-memory database with full schema and the REGEXP function."""
    conn = await create_connection(":memory:")
    yield conn
    await conn.close()


@pytest_asyncio.fixture
async def tree_store(db):
    """Tree store backed by in-memory DB."""
    return SQLTreeStore(db)


def outline_records(
    page_id: str,
    title: str,
    blocks: list[tuple],
    edit_time: datetime = BASE_TIME,
) -> list[NodeRecord]:
    """Node rows for a page.

    Each block is ``(id, text, children)`` or ``(id, text, children, edit_time)``.
    """
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

    def walk(parent_id: str, children: list[tuple]) -> None:
        for position, block in enumerate(children):
            block_id, text, grandchildren = block[:3]
            records.append(
                NodeRecord(
                    id=block_id,
                    parent_id=parent_id,
                    page_id=page_id,
                    page_title=title,
                    text=text,
                    edit_time=block[3] if len(block) > 3 else edit_time,
                    position=position,
                )
            )
            walk(block_id, grandchildren)

    walk(page_id, blocks)
    return records


async def add_outline(db, page_id: str, title: str, blocks: list[tuple], **kwargs) -> None:
    """Insert a page and its blocks."""
    await insert_nodes(db, outline_records(page_id, title, blocks, **kwargs))


class FakeLLM:
    """Controllable fake LLM for testing."""

    def __init__(
        self,
        response: str | None = "{}",
        available: bool = True,
        family: ModelFamily = ModelFamily.OTHER,
    ):
        self.response = response
        self._available = available
        self.family = family
        self.last_prompt: str | None = None
        self.last_system: str | None = None
        self.last_json_output: bool | None = None
        self.generate_count = 0

    async def is_available(self) -> bool:
        return self._available

    async def generate(
        self, prompt: str, *, system: str | None = None, json_output: bool = False
    ) -> str | None:
        self.last_prompt = prompt
        self.last_system = system
        self.last_json_output = json_output
        self.generate_count += 1
        if not self._available:
            return None
        return self.response

    async def close(self) -> None:
        pass


class SequenceLLM(FakeLLM):
    """Fake LLM returning queued responses in order, recording every prompt."""

    def __init__(self, responses: list[str | None], **kwargs):
        super().__init__(**kwargs)
        self.responses = list(responses)
        self.prompts: list[str] = []
        self.systems: list[str | None] = []

    async def generate(
        self, prompt: str, *, system: str | None = None, json_output: bool = False
    ) -> str | None:
        await super().generate(prompt, system=system, json_output=json_output)
        self.prompts.append(prompt)
        self.systems.append(system)
        if not self._available or not self.responses:
            return None
        return self.responses.pop(0)


@pytest_asyncio.fixture
async def fake_llm():
    """Controllable fake LLM client."""
    return FakeLLM()
