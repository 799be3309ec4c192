"""Exceptions raised by the search pipeline."""


class OutlineSearchError(Exception):
    """Base class for outline search errors."""


class InterpretationFailure(OutlineSearchError):
    """A language-model call failed or returned something unusable.

    Aborts the current pipeline run; no partial results are delivered.
    """

    def __init__(self, stage: str, detail: str) -> None:
        """Record the pipeline stage that failed and a human-readable reason."""
        super().__init__(f"{stage}: {detail}")
        self.stage = stage
        self.detail = detail


class PipelineCancelled(OutlineSearchError):
    """The run was cancelled before a language-model call."""
