"""Bounded registry of search pipelines, one per search session."""

import logging
import uuid
from collections import OrderedDict

from outline_search.pipeline.controller import SearchPipeline

logger = logging.getLogger(__name__)


class SearchSessions:
    """Keeps the most recently used pipelines; the oldest is evicted when full."""

    def __init__(self, max_sessions: int = 32) -> None:
        """Initialize with the maximum number of live sessions."""
        self._max = max(1, max_sessions)
        self._pipelines: OrderedDict[str, SearchPipeline] = OrderedDict()

    def add(self, pipeline: SearchPipeline) -> str:
        """Register a pipeline and return its new session id."""
        session_id = uuid.uuid4().hex[:8]
        self._pipelines[session_id] = pipeline
        while len(self._pipelines) > self._max:
            evicted, _ = self._pipelines.popitem(last=False)
            logger.debug("Evicted search session %s", evicted)
        return session_id

    def get(self, session_id: str) -> SearchPipeline | None:
        """Look up a session, marking it as recently used."""
        pipeline = self._pipelines.get(session_id)
        if pipeline is not None:
            self._pipelines.move_to_end(session_id)
        return pipeline

    def __len__(self) -> int:
        return len(self._pipelines)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._pipelines
