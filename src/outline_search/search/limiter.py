"""Period filtering, recency ordering, truncation and random sampling."""

import logging
import random
from collections.abc import Iterable
from datetime import UTC, date, datetime, time, timedelta

from outline_search.models.search import MatchCandidate, Period

logger = logging.getLogger(__name__)

MAX_FETCH = 100
POST_PROCESS_FACTOR = 5
PRESELECT_THRESHOLD = 20
PRESELECT_FACTOR = 3
DEFAULT_PAGE_SIZE = 10


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=UTC)


def apply_period(
    candidates: Iterable[MatchCandidate], period: Period | None
) -> list[MatchCandidate]:
    """Keep candidates edited within the period.

    Bounds are whole UTC days: ``begin <= edit_time < end + 1 day``.
    """
    candidates = list(candidates)
    if period is None or (period.begin is None and period.end is None):
        return candidates
    lower = _day_start(period.begin) if period.begin else None
    upper = _day_start(period.end) + timedelta(days=1) if period.end else None
    kept = [
        c
        for c in candidates
        if (lower is None or c.node.edit_time >= lower)
        and (upper is None or c.node.edit_time < upper)
    ]
    logger.debug("Period filter kept %d of %d", len(kept), len(candidates))
    return kept


def order_by_recency(candidates: Iterable[MatchCandidate]) -> list[MatchCandidate]:
    """Most recently edited first; ties keep their incoming order."""
    return sorted(candidates, key=lambda c: c.node.edit_time, reverse=True)


def fetch_limit(requested: int | None, post_processing: bool) -> int:
    """How many candidates to carry forward from the ordered pool."""
    if requested is None:
        return MAX_FETCH
    if post_processing:
        return min(POST_PROCESS_FACTOR * requested, MAX_FETCH)
    return min(requested, MAX_FETCH)


def random_draw_size(requested: int | None, post_processing: bool) -> int:
    """Sample size for a random request; a single node when no count is given."""
    if requested is None:
        return 1
    return fetch_limit(requested, post_processing)


def preselect_target(requested: int | None) -> int:
    """Upper bound on candidates handed to post-processing."""
    if requested is None:
        return PRESELECT_THRESHOLD
    return min(PRESELECT_THRESHOLD, PRESELECT_FACTOR * requested)


def needs_preselection(count: int, requested: int | None) -> bool:
    """Whether a candidate list is too large to post-process directly."""
    return count > max(PRESELECT_THRESHOLD, preselect_target(requested))


def page_size(requested: int | None, default: int = DEFAULT_PAGE_SIZE) -> int:
    """Delivery window size: the requested count, capped like a fetch."""
    if requested is None:
        return default
    return min(requested, MAX_FETCH)


class RandomSampler:
    """Draws disjoint uniform samples from a fixed pool.

    Drawn ids are remembered, so successive draws never repeat a node until
    the pool is exhausted; the draw after exhaustion starts a fresh cycle.
    """

    def __init__(self, pool: list[MatchCandidate], rng: random.Random | None = None) -> None:
        """Initialize with the pool to sample from."""
        self._pool = list(pool)
        self._rng = rng or random.Random()
        self._drawn: set[str] = set()

    @property
    def total(self) -> int:
        """Pool size."""
        return len(self._pool)

    @property
    def remaining(self) -> int:
        """Nodes not yet drawn in the current cycle."""
        return len(self._pool) - len(self._drawn)

    @property
    def drawn_ids(self) -> set[str]:
        """Ids drawn in the current cycle."""
        return set(self._drawn)

    def draw(self, count: int) -> list[MatchCandidate]:
        """Draw up to ``count`` nodes not drawn before in this cycle."""
        if not self._pool or count < 1:
            return []
        available = [c for c in self._pool if c.id not in self._drawn]
        if not available:
            logger.debug("Random pool exhausted, starting a new cycle")
            self._drawn.clear()
            available = list(self._pool)
        sample = self._rng.sample(available, min(count, len(available)))
        self._drawn.update(c.id for c in sample)
        return sample
