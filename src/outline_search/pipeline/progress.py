"""Progress milestones reported while a search pipeline runs."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

MILESTONES: dict[str, float] = {
    "interpreting": 0.1,
    "inferring": 0.2,
    "converting": 0.3,
    "matching": 0.5,
    "limiting": 0.6,
    "preselecting": 0.7,
    "post-processing": 0.9,
    "done": 1.0,
}


@dataclass(frozen=True)
class ProgressEvent:
    """A stage reached, with its fraction of the run."""

    stage: str
    fraction: float
    message: str = ""


ProgressSink = Callable[[ProgressEvent], Awaitable[None]]


class ProgressTracker:
    """Forwards milestones to a sink, never letting the fraction go backwards."""

    def __init__(self, sink: ProgressSink | None = None) -> None:
        """Initialize with an optional async sink."""
        self._sink = sink
        self._last = 0.0

    @property
    def last(self) -> float:
        """Most recent fraction reported."""
        return self._last

    def reset(self) -> None:
        """Start a new run."""
        self._last = 0.0

    async def report(self, stage: str, message: str = "") -> None:
        """Report a milestone; stale or repeated milestones are skipped."""
        fraction = MILESTONES[stage]
        if fraction <= self._last:
            return
        self._last = fraction
        if self._sink is None:
            return
        try:
            await self._sink(ProgressEvent(stage=stage, fraction=fraction, message=message))
        except Exception:
            logger.warning("Progress sink failed at %s", stage, exc_info=True)
