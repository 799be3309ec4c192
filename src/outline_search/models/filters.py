"""Filter models: one conjunctive filter set as used by the node matcher."""

import logging
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from outline_search.search.patterns import is_valid_regex, scoped_regex, strip_case_flag

logger = logging.getLogger(__name__)


class Filter(BaseModel):
    """A single text condition.

    ``pattern`` is a regex whose disjunctive alternatives (fuzzy or semantic
    variants) are already baked in as ``alt1|alt2|...``.
    """

    pattern: str
    is_exclusion: bool = False
    is_ancestor_scoped: bool = False
    case_sensitive: bool = False

    @model_validator(mode="before")
    @classmethod
    def _fold_case_flag(cls, data: Any) -> Any:
        """Turn a leading ``(?i)`` into ``case_sensitive=False``."""
        if isinstance(data, dict) and isinstance(data.get("pattern"), str):
            pattern, had_flag = strip_case_flag(data["pattern"].strip())
            data = {**data, "pattern": pattern}
            if had_flag:
                data["case_sensitive"] = False
        return data

    @property
    def regex(self) -> str:
        """The pattern wrapped with its own case flag."""
        return scoped_regex(self.pattern, self.case_sensitive)


class FilterSet(BaseModel):
    """Ordered, conjunctively combined filters.

    Empty or invalid patterns are dropped on construction. Only the first
    exclusion is honored; any further exclusions are dropped.
    """

    filters: list[Filter] = Field(default_factory=list)

    @field_validator("filters")
    @classmethod
    def _drop_malformed(cls, filters: list[Filter]) -> list[Filter]:
        kept: list[Filter] = []
        has_exclusion = False
        for f in filters:
            if not f.pattern:
                logger.warning("Dropping filter with empty pattern")
                continue
            if not is_valid_regex(f.regex):
                logger.warning("Dropping filter with invalid regex: %s", f.pattern)
                continue
            if f.is_exclusion:
                if has_exclusion:
                    logger.warning("Ignoring additional exclusion filter: %s", f.pattern)
                    continue
                has_exclusion = True
            kept.append(f)
        return kept

    @property
    def includes(self) -> list[Filter]:
        """Non-exclusion filters, in order."""
        return [f for f in self.filters if not f.is_exclusion]

    @property
    def exclusion(self) -> Filter | None:
        """The single honored exclusion filter, if any."""
        return next((f for f in self.filters if f.is_exclusion), None)

    @property
    def ancestor_scoped(self) -> list[Filter]:
        """Include filters that must be satisfied by an ancestor."""
        return [f for f in self.includes if f.is_ancestor_scoped]

    def describe(self) -> str:
        """Compact human-readable rendering, e.g. ``budget & review -draft``."""
        parts: list[str] = []
        for f in self.filters:
            text = f.pattern
            if f.is_ancestor_scoped:
                text = f"{text} (ancestor)"
            if f.is_exclusion:
                text = f"-{text}"
            parts.append(text)
        return " & ".join(parts) if parts else "(no filters)"
