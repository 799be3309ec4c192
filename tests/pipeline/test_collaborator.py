"""Tests for the language-model collaborator (fake LLM)."""

import json
from datetime import date

import pytest

from outline_search.errors import InterpretationFailure
from outline_search.llm.provider import ModelFamily
from outline_search.models.node import ContentNode
from outline_search.models.search import MatchCandidate
from outline_search.pipeline.collaborator import (
    SearchCollaborator,
    balance_json,
    parse_json_object,
    render_candidates,
    with_guidance,
)
from tests.conftest import BASE_TIME, FakeLLM


def _collaborator(llm) -> SearchCollaborator:
    return SearchCollaborator(llm, today=lambda: date(2026, 10, 19))


def _candidate(node_id: str, text: str, **kwargs) -> MatchCandidate:
    node = ContentNode(id=node_id, text=text, edit_time=BASE_TIME, page_title="Work")
    return MatchCandidate(node=node, **kwargs)


class TestParseJson:
    def test_plain_object(self):
        assert parse_json_object('{"a": 1}') == {"a": 1}

    def test_fenced_object(self):
        raw = 'Sure:\n```json\n{"search_list": "budget"}\n```'
        assert parse_json_object(raw) == {"search_list": "budget"}

    def test_surrounding_prose(self):
        assert parse_json_object('Here you go {"a": [1, 2]} done') == {"a": [1, 2]}

    def test_not_an_object(self):
        assert parse_json_object("[1, 2]") is None
        assert parse_json_object("no json here") is None

    def test_truncated_needs_repair(self):
        raw = '{"filters": [[{"pattern": "budget"'
        assert parse_json_object(raw) is None
        assert parse_json_object(raw, repair=True) == {"filters": [[{"pattern": "budget"}]]}

    def test_balance_json_closes_string(self):
        assert json.loads(balance_json('{"a": "unterminated')) == {"a": "unterminated"}

    def test_balance_json_drops_trailing_comma(self):
        assert json.loads(balance_json('{"ids": ["x",')) == {"ids": ["x"]}


def test_with_guidance():
    assert with_guidance("prompt", "find budget", None) == "prompt"
    assert with_guidance("prompt", "find budget", "find budget") == "prompt"
    guided = with_guidance("prompt", "find budget", "include plurals")
    assert guided.startswith("prompt\n\n")
    assert "include plurals" in guided


def test_render_candidates():
    rendered = render_candidates(
        [
            _candidate("aaa", "first"),
            _candidate("bbb", "x" * 700, contributing_ids=["c1", "c2"]),
        ]
    )
    lines = rendered.splitlines()
    assert lines[0] == "1. Node ((aaa)) in page [[Work]]"
    assert lines[1] == "Content: first"
    assert lines[2] == "2. Node ((bbb)) in page [[Work]]"
    assert lines[3].endswith("...")
    assert lines[4] == "Matched through children: ((c1)), ((c2))"


@pytest.mark.asyncio
async def test_interpret():
    llm = FakeLLM(
        json.dumps(
            {
                "search_list": "budget + review",
                "result_count": 5,
                "is_random": False,
                "period": {"begin": "2026/01/01", "end": None},
                "page_scope": "dnp",
                "needs_post_processing": True,
            }
        )
    )
    interpretation = await _collaborator(llm).interpret("5 budget reviews in daily notes")

    assert interpretation.search_list == "budget + review"
    assert interpretation.result_count == 5
    assert interpretation.period is not None
    assert interpretation.period.begin == date(2026, 1, 1)
    assert interpretation.page_scope == "dnp"
    assert llm.last_json_output is True
    assert "2026-10-19" in llm.last_system
    assert "5 budget reviews in daily notes" in llm.last_prompt


@pytest.mark.asyncio
async def test_interpret_with_instruction():
    llm = FakeLLM('{"search_list": "budgets"}')
    await _collaborator(llm).interpret("budget", instruction="match plural forms")
    assert "match plural forms" in llm.last_prompt


@pytest.mark.asyncio
async def test_interpret_without_search_list_fails():
    llm = FakeLLM('{"result_count": 3}')
    with pytest.raises(InterpretationFailure) as exc_info:
        await _collaborator(llm).interpret("anything")
    assert exc_info.value.stage == "interpret"


@pytest.mark.asyncio
async def test_unavailable_llm_fails():
    llm = FakeLLM(available=False)
    with pytest.raises(InterpretationFailure):
        await _collaborator(llm).interpret("anything")


@pytest.mark.asyncio
async def test_malformed_json_fails_without_repair():
    llm = FakeLLM('{"search_list": "budget')
    with pytest.raises(InterpretationFailure) as exc_info:
        await _collaborator(llm).interpret("budget")
    assert "malformed" in exc_info.value.detail


@pytest.mark.asyncio
async def test_claude_output_is_repaired():
    llm = FakeLLM('{"search_list": "budget', family=ModelFamily.CLAUDE)
    interpretation = await _collaborator(llm).interpret("budget")
    assert interpretation.search_list == "budget"


@pytest.mark.asyncio
async def test_infer_alternative():
    llm = FakeLLM('{"alternative_list": " restaurant | cafe "}')
    alternative = await _collaborator(llm).infer_alternative("where did I eat?", "eat")
    assert alternative == "restaurant | cafe"


@pytest.mark.asyncio
async def test_infer_alternative_empty():
    llm = FakeLLM('{"alternative_list": ""}')
    assert await _collaborator(llm).infer_alternative("q", "eat") is None


@pytest.mark.asyncio
async def test_convert_to_filters():
    llm = FakeLLM(
        json.dumps(
            {
                "filters": [
                    [
                        {"pattern": "budget|costs"},
                        {"pattern": "draft", "is_exclusion": True},
                        {"is_exclusion": True},
                    ],
                    [{"pattern": "(?i)finance", "case_sensitive": True}],
                ]
            }
        )
    )
    filter_sets = await _collaborator(llm).convert_to_filters(
        ["budget -draft", "finance"], "budget not draft"
    )
    assert len(filter_sets) == 2
    assert [f.pattern for f in filter_sets[0].filters] == ["budget|costs", "draft"]
    assert filter_sets[0].exclusion.pattern == "draft"
    assert filter_sets[1].filters[0].case_sensitive is False
    assert "Search list 2: finance" in llm.last_prompt


@pytest.mark.asyncio
async def test_convert_accepts_flat_list():
    llm = FakeLLM('{"filters": [{"pattern": "budget"}, {"pattern": "review"}]}')
    filter_sets = await _collaborator(llm).convert_to_filters(["budget + review"], "r")
    assert len(filter_sets) == 1
    assert len(filter_sets[0].includes) == 2


@pytest.mark.asyncio
async def test_convert_without_filters_fails():
    llm = FakeLLM('{"filters": []}')
    with pytest.raises(InterpretationFailure) as exc_info:
        await _collaborator(llm).convert_to_filters(["budget"], "r")
    assert exc_info.value.stage == "convert_to_filters"


@pytest.mark.asyncio
async def test_preselect():
    llm = FakeLLM('{"ids": ["((bbb))", "aaa", "ccc"]}')
    candidates = [_candidate("aaa", "a"), _candidate("bbb", "b"), _candidate("ccc", "c")]
    ids = await _collaborator(llm).preselect(candidates, "r", max_count=2)
    assert ids == ["bbb", "aaa"]
    assert "at most 2 ids" in llm.last_system


@pytest.mark.asyncio
async def test_summarize():
    llm = FakeLLM("  The budget was approved ((aaa)).  ")
    summary = await _collaborator(llm).summarize([_candidate("aaa", "approved")], "budget?")
    assert summary == "The budget was approved ((aaa))."
    assert llm.last_json_output is False


@pytest.mark.asyncio
async def test_summarize_empty_fails():
    llm = FakeLLM("   ")
    with pytest.raises(InterpretationFailure) as exc_info:
        await _collaborator(llm).summarize([_candidate("aaa", "a")], "q")
    assert exc_info.value.stage == "post_process"
