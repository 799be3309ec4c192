"""Regex helpers shared by the filter model and the tree store."""

import re
from functools import lru_cache

# Daily-note pages use their date as page id, e.g. 10-19-2026
DAILY_NOTE_ID_RE = re.compile(r"^(0[1-9]|1[0-2])-(0[1-9]|[12][0-9]|3[01])-(19|20)[0-9][0-9]$")
DAILY_NOTES_SCOPE = "dnp"

_LEADING_CASE_FLAG = "(?i)"


def strip_case_flag(pattern: str) -> tuple[str, bool]:
    """Remove a leading global ``(?i)`` flag.

    Returns the bare pattern and whether the flag was present. Global flags are
    only legal at the very start of a regex, so they cannot survive being
    embedded in a conjunction.
    """
    stripped = False
    while pattern.startswith(_LEADING_CASE_FLAG):
        pattern = pattern[len(_LEADING_CASE_FLAG) :]
        stripped = True
    return pattern, stripped


def scoped_regex(pattern: str, case_sensitive: bool = False) -> str:
    """Wrap a pattern in a group carrying its own case flag."""
    if case_sensitive:
        return f"(?:{pattern})"
    return f"(?i:{pattern})"


def conjunctive_regex(regexes: list[str]) -> str:
    """Combine regexes into one that matches text satisfying all of them."""
    if len(regexes) == 1:
        return regexes[0]
    lookaheads = "".join(f"(?=.*{r})" for r in regexes)
    return f"(?s)^{lookaheads}"


@lru_cache(maxsize=512)
def compile_regex(regex: str) -> re.Pattern[str]:
    """Compile and cache a regex."""
    return re.compile(regex)


def is_valid_regex(pattern: str) -> bool:
    """Return True if the pattern compiles."""
    try:
        compile_regex(pattern)
    except re.error:
        return False
    return True


def matches(regex: str, text: str | None) -> bool:
    """Search semantics: True if the regex matches anywhere in text."""
    if text is None:
        return False
    return compile_regex(regex).search(text) is not None
