"""Language-model collaborator: interpretation, filter derivation, selection, synthesis."""

import json
import logging
import re
from collections.abc import Callable
from datetime import UTC, date, datetime
from typing import Any

from pydantic import ValidationError

from outline_search.errors import InterpretationFailure
from outline_search.llm.provider import LLMProvider, ModelFamily
from outline_search.models.filters import Filter, FilterSet
from outline_search.models.search import Interpretation, MatchCandidate
from outline_search.pipeline.prompts import (
    CONVERT_SYSTEM,
    INFER_ALTERNATIVE_SYSTEM,
    INTERPRET_SYSTEM,
    POST_PROCESS_SYSTEM,
    PRESELECT_SYSTEM,
    RETRY_GUIDANCE,
)

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL)
_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)

_MAX_CONTENT_CHARS = 600


def _utc_today() -> date:
    return datetime.now(UTC).date()


def balance_json(text: str) -> str:
    """Close an unterminated string and any open arrays or objects."""
    closers: list[str] = []
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            closers.append("}")
        elif ch == "[":
            closers.append("]")
        elif ch in "}]" and closers:
            closers.pop()
    if in_string:
        return text + '"' + "".join(reversed(closers))
    return text.rstrip().rstrip(",") + "".join(reversed(closers))


def parse_json_object(raw: str, *, repair: bool = False) -> dict[str, Any] | None:
    """Extract the JSON object from a model response.

    Markdown fences are stripped. With ``repair``, a truncated object is
    closed before parsing.
    """
    fence_match = _FENCE_RE.search(raw)
    if fence_match:
        raw = fence_match.group(1)

    obj_match = _JSON_OBJECT_RE.search(raw)
    candidates: list[str] = []
    if obj_match:
        candidates.append(obj_match.group(0))
    if repair and "{" in raw:
        candidates.append(balance_json(raw[raw.index("{") :]))

    for text in candidates:
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    return None


def render_candidates(candidates: list[MatchCandidate]) -> str:
    """Numbered listing of candidates for the selection and synthesis prompts."""
    lines: list[str] = []
    for number, candidate in enumerate(candidates, start=1):
        node = candidate.node
        text = node.text
        if len(text) > _MAX_CONTENT_CHARS:
            text = text[:_MAX_CONTENT_CHARS] + "..."
        lines.append(f"{number}. Node (({node.id})) in page [[{node.page_title}]]")
        lines.append(f"Content: {text}")
        if candidate.contributing_ids:
            refs = ", ".join(f"(({cid}))" for cid in candidate.contributing_ids)
            lines.append(f"Matched through children: {refs}")
    return "\n".join(lines)


def with_guidance(prompt: str, request: str, instruction: str | None) -> str:
    """Append retry guidance, unless it only repeats the request."""
    if not instruction or not instruction.strip() or instruction.strip() == request.strip():
        return prompt
    return f"{prompt}\n\n{RETRY_GUIDANCE.format(instruction=instruction.strip())}"


class SearchCollaborator:
    """Wraps an LLMProvider with the prompts and parsing of each pipeline stage.

    Every method raises InterpretationFailure when the provider returns
    nothing or the output cannot be parsed.
    """

    def __init__(self, llm: LLMProvider, *, today: Callable[[], date] = _utc_today) -> None:
        """Initialize with an LLM provider and a clock for relative periods."""
        self._llm = llm
        self._today = today

    async def is_available(self) -> bool:
        """Check if the underlying provider is reachable."""
        return await self._llm.is_available()

    async def interpret(self, request: str, instruction: str | None = None) -> Interpretation:
        """Read search parameters out of a natural-language request."""
        system = INTERPRET_SYSTEM.format(today=self._today().isoformat())
        prompt = with_guidance(f"Request: {request}", request, instruction)
        data = await self._generate_json("interpret", prompt, system)

        search_list = data.get("search_list")
        if not isinstance(search_list, str) or not search_list.strip():
            raise InterpretationFailure("interpret", "no search list in model response")
        try:
            interpretation = Interpretation.model_validate(data)
        except ValidationError as exc:
            raise InterpretationFailure("interpret", str(exc)) from exc
        logger.info("Interpreted %r as %r", request, interpretation.search_list)
        return interpretation

    async def infer_alternative(self, request: str, search_list: str) -> str | None:
        """Infer a search list likelier to reach the answers of a question."""
        prompt = f"Question: {request}\nInitial search list: {search_list}"
        data = await self._generate_json(
            "infer_alternative", prompt, INFER_ALTERNATIVE_SYSTEM.format()
        )
        alternative = data.get("alternative_list")
        if isinstance(alternative, str) and alternative.strip():
            return alternative.strip()
        return None

    async def convert_to_filters(
        self, search_lists: list[str], request: str, instruction: str | None = None
    ) -> list[FilterSet]:
        """Derive one FilterSet per search list, in order."""
        parts = [f"Search list {i}: {sl}" for i, sl in enumerate(search_lists, start=1)]
        parts.append(f"Original request: {request}")
        prompt = with_guidance("\n".join(parts), request, instruction)
        data = await self._generate_json("convert_to_filters", prompt, CONVERT_SYSTEM.format())

        groups = data.get("filters")
        if not isinstance(groups, list) or not groups:
            raise InterpretationFailure("convert_to_filters", "no filters in model response")
        # A single flat list of filters is accepted for a single search list
        if all(isinstance(g, dict) for g in groups):
            groups = [groups]

        filter_sets: list[FilterSet] = []
        for group in groups[: len(search_lists)]:
            if not isinstance(group, list):
                raise InterpretationFailure("convert_to_filters", "filter group is not a list")
            filters: list[Filter] = []
            for item in group:
                try:
                    filters.append(Filter.model_validate(item))
                except ValidationError:
                    logger.warning("Dropping malformed filter: %s", item)
            filter_sets.append(FilterSet(filters=filters))
        return filter_sets

    async def preselect(
        self,
        candidates: list[MatchCandidate],
        request: str,
        max_count: int,
        instruction: str | None = None,
    ) -> list[str]:
        """Ids of the candidates most relevant to the request."""
        prompt = with_guidance(
            f"Request: {request}\n\nNodes:\n{render_candidates(candidates)}", request, instruction
        )
        system = PRESELECT_SYSTEM.format(max_count=max_count)
        data = await self._generate_json("preselect", prompt, system)
        ids = data.get("ids")
        if not isinstance(ids, list):
            raise InterpretationFailure("preselect", "no id list in model response")
        return [str(i).strip().strip("()") for i in ids][:max_count]

    async def summarize(
        self, candidates: list[MatchCandidate], request: str, instruction: str | None = None
    ) -> str:
        """Answer the request from the candidates' content."""
        prompt = with_guidance(
            f"Request: {request}\n\nNodes:\n{render_candidates(candidates)}", request, instruction
        )
        raw = await self._llm.generate(prompt, system=POST_PROCESS_SYSTEM)
        if raw is None or not raw.strip():
            raise InterpretationFailure("post_process", "language model returned no response")
        return raw.strip()

    async def _generate_json(self, stage: str, prompt: str, system: str) -> dict[str, Any]:
        raw = await self._llm.generate(prompt, system=system, json_output=True)
        if raw is None:
            raise InterpretationFailure(stage, "language model returned no response")
        data = parse_json_object(raw, repair=self._llm.family is ModelFamily.CLAUDE)
        if data is None:
            logger.warning("Malformed JSON in %s response: %.200s", stage, raw)
            raise InterpretationFailure(stage, "malformed JSON in model response")
        return data
