"""Search pipeline models: interpretation, match candidates, result sets, outcomes."""

from collections.abc import Iterable, Iterator
from datetime import date
from typing import Any

from pydantic import BaseModel, Field, field_validator

from outline_search.models.node import ContentNode

NO_MATCHES_MESSAGE = "No matching nodes."


class Period(BaseModel):
    """Inclusive date range; either bound may be open."""

    begin: date | None = None
    end: date | None = None

    @field_validator("begin", "end", mode="before")
    @classmethod
    def _normalize_date(cls, value: Any) -> Any:
        # Language models tend to answer yyyy/mm/dd
        if isinstance(value, str):
            value = value.strip().replace("/", "-")
            if not value:
                return None
            return value[:10]
        return value


class Interpretation(BaseModel):
    """Structured reading of a natural-language request."""

    search_list: str
    alternative_list: str | None = None
    result_count: int | None = None
    is_random: bool | None = None
    period: Period | None = None
    page_scope: str | None = None
    needs_post_processing: bool | None = None
    needs_inference: bool | None = None

    @field_validator("result_count", mode="before")
    @classmethod
    def _positive_count(cls, value: Any) -> Any:
        if isinstance(value, int | float) and value < 1:
            return None
        return value

    @field_validator("alternative_list", "page_scope", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class MatchCandidate(BaseModel):
    """A node returned by the matcher, with how it came to match."""

    node: ContentNode
    matched_via_descendant: bool = False
    anchor_id: str | None = None
    rescued_by_siblings: bool = False
    contributing_ids: list[str] = Field(default_factory=list)
    sources: list[str] = Field(default_factory=list)

    @property
    def id(self) -> str:
        """The node id."""
        return self.node.id


class ResultSet:
    """Candidates keyed by node id, in first-seen order.

    Adding a node that is already present merges its contributing ids and
    sources into the existing entry instead of duplicating it.
    """

    def __init__(self, candidates: Iterable[MatchCandidate] = ()) -> None:
        """Initialize, deduplicating the given candidates."""
        self._by_id: dict[str, MatchCandidate] = {}
        for candidate in candidates:
            self.add(candidate)

    def add(self, candidate: MatchCandidate) -> bool:
        """Add a candidate. Returns False if its node was already present."""
        existing = self._by_id.get(candidate.id)
        if existing is None:
            self._by_id[candidate.id] = candidate
            return True
        for child_id in candidate.contributing_ids:
            if child_id not in existing.contributing_ids:
                existing.contributing_ids.append(child_id)
        for source in candidate.sources:
            if source not in existing.sources:
                existing.sources.append(source)
        return False

    def discard(self, node_ids: Iterable[str]) -> None:
        """Remove the given node ids if present."""
        for node_id in node_ids:
            self._by_id.pop(node_id, None)

    def get(self, node_id: str) -> MatchCandidate | None:
        """Return the candidate for a node id."""
        return self._by_id.get(node_id)

    def ids(self) -> set[str]:
        """All node ids in the set."""
        return set(self._by_id)

    def candidates(self) -> list[MatchCandidate]:
        """Candidates in insertion order."""
        return list(self._by_id.values())

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._by_id

    def __iter__(self) -> Iterator[MatchCandidate]:
        return iter(list(self._by_id.values()))

    def __len__(self) -> int:
        return len(self._by_id)

    def __repr__(self) -> str:
        return f"ResultSet({list(self._by_id)})"


class SearchOutcome(BaseModel):
    """What a pipeline run delivers."""

    request: str
    candidates: list[MatchCandidate] = Field(default_factory=list)
    summary: str | None = None
    total: int = 0
    start: int = 0
    next_cursor: int | None = None
    is_random: bool = False
    filter_descriptions: list[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """True when nothing matched."""
        return not self.candidates and not self.summary

    @property
    def message(self) -> str:
        """Short status line for the delivered page."""
        if self.total == 0:
            return NO_MATCHES_MESSAGE
        if self.is_empty:
            return f"No more results ({self.total} in total)."
        if self.summary is not None:
            return f"Answer based on {len(self.candidates)} of {self.total} matching node(s)"
        if self.is_random:
            return f"{len(self.candidates)} random result(s) out of {self.total}"
        end = self.start + len(self.candidates)
        return f"Results {self.start + 1} to {end} of {self.total}"
