"""Search pipeline: an explicit state machine from request to delivered results.

``transition`` decides the next state from the run alone; each state has one
coroutine handler on ``SearchPipeline``. A run works on its own ``SearchRun``
and only replaces the committed run once it reaches END, so a failed run
leaves the previous results in place.
"""

import asyncio
import copy
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from enum import StrEnum

from outline_search.errors import InterpretationFailure, OutlineSearchError, PipelineCancelled
from outline_search.models.filters import FilterSet
from outline_search.models.search import Interpretation, MatchCandidate, ResultSet, SearchOutcome
from outline_search.pipeline.collaborator import SearchCollaborator
from outline_search.pipeline.progress import ProgressSink, ProgressTracker
from outline_search.search.aggregator import aggregate
from outline_search.search.limiter import (
    DEFAULT_PAGE_SIZE,
    RandomSampler,
    apply_period,
    fetch_limit,
    needs_preselection,
    order_by_recency,
    page_size,
    preselect_target,
    random_draw_size,
)
from outline_search.search.matcher import NodeMatcher
from outline_search.search.tree_store import TreeStore

logger = logging.getLogger(__name__)


class PipelineState(StrEnum):
    """Stages of a pipeline run."""

    LOAD_MODEL = "load_model"
    INTERPRET = "interpret"
    INFER_ALTERNATIVE = "infer_alternative"
    CONVERT_TO_FILTERS = "convert_to_filters"
    MATCH = "match"
    AGGREGATE = "aggregate"
    LIMIT = "limit"
    PRESELECT = "preselect"
    POST_PROCESS = "post_process"
    DELIVER = "deliver"
    END = "end"


@dataclass
class SearchRun:
    """Everything one pipeline run reads and produces."""

    request: str
    root_id: str | None = None
    post_process: bool | None = None
    instruction: str | None = None
    paging: bool = False
    interpretation: Interpretation | None = None
    alternative_list: str | None = None
    filter_sets: list[FilterSet] = field(default_factory=list)
    result_sets: list[ResultSet] = field(default_factory=list)
    aggregated: ResultSet = field(default_factory=ResultSet)
    pool: list[MatchCandidate] = field(default_factory=list)
    selected: list[MatchCandidate] = field(default_factory=list)
    sampler: RandomSampler | None = None
    start: int = 0
    next_start: int | None = None
    summary: str | None = None
    outcome: SearchOutcome | None = None

    def require_interpretation(self) -> Interpretation:
        """The interpretation of the request; stages after INTERPRET need it."""
        if self.interpretation is None:
            raise OutlineSearchError("Request has not been interpreted")
        return self.interpretation

    @property
    def requested_count(self) -> int | None:
        """Number of results asked for, if any."""
        return self.interpretation.result_count if self.interpretation else None

    @property
    def is_random(self) -> bool:
        """Whether random results were asked for."""
        return bool(self.interpretation and self.interpretation.is_random)

    @property
    def wants_post_processing(self) -> bool:
        """Caller's choice first, then the interpretation's."""
        if self.post_process is not None:
            return self.post_process
        return bool(self.interpretation and self.interpretation.needs_post_processing)


def transition(state: PipelineState, run: SearchRun) -> PipelineState:
    """Next state after ``state`` has been handled for ``run``."""
    if state is PipelineState.LOAD_MODEL:
        return PipelineState.LIMIT if run.paging else PipelineState.INTERPRET
    if state is PipelineState.INTERPRET:
        interpretation = run.interpretation
        if interpretation and interpretation.needs_inference and not run.alternative_list:
            return PipelineState.INFER_ALTERNATIVE
        return PipelineState.CONVERT_TO_FILTERS
    if state is PipelineState.INFER_ALTERNATIVE:
        return PipelineState.CONVERT_TO_FILTERS
    if state is PipelineState.CONVERT_TO_FILTERS:
        return PipelineState.MATCH
    if state is PipelineState.MATCH:
        if len(run.result_sets) < len(run.filter_sets):
            return PipelineState.MATCH
        return PipelineState.AGGREGATE
    if state is PipelineState.AGGREGATE:
        return PipelineState.LIMIT
    if state is PipelineState.LIMIT:
        if run.paging or not run.wants_post_processing or not run.selected:
            return PipelineState.DELIVER
        if needs_preselection(len(run.selected), run.requested_count):
            return PipelineState.PRESELECT
        return PipelineState.POST_PROCESS
    if state is PipelineState.PRESELECT:
        return PipelineState.POST_PROCESS
    if state is PipelineState.POST_PROCESS:
        return PipelineState.DELIVER
    return PipelineState.END


class SearchPipeline:
    """Runs searches for one conversation, keeping the last results for paging and retry."""

    def __init__(
        self,
        collaborator: SearchCollaborator,
        store: TreeStore,
        *,
        progress: ProgressSink | None = None,
        cancel_event: asyncio.Event | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize with collaborators, an optional progress sink and cancel event."""
        self._collaborator = collaborator
        self._matcher = NodeMatcher(store)
        self._progress = ProgressTracker(progress)
        self._cancel = cancel_event or asyncio.Event()
        self._lock = asyncio.Lock()
        self._page_size = page_size
        self._rng = rng
        self._committed: SearchRun | None = None
        self._last_request: SearchRun | None = None
        self._handlers: dict[PipelineState, Callable[[SearchRun], Awaitable[None]]] = {
            PipelineState.LOAD_MODEL: self._load_model,
            PipelineState.INTERPRET: self._interpret,
            PipelineState.INFER_ALTERNATIVE: self._infer_alternative,
            PipelineState.CONVERT_TO_FILTERS: self._convert_to_filters,
            PipelineState.MATCH: self._match,
            PipelineState.AGGREGATE: self._aggregate,
            PipelineState.LIMIT: self._limit,
            PipelineState.PRESELECT: self._preselect,
            PipelineState.POST_PROCESS: self._post_process,
            PipelineState.DELIVER: self._deliver,
        }

    @property
    def committed(self) -> SearchRun | None:
        """The last run that completed."""
        return self._committed

    def set_progress(self, sink: ProgressSink | None) -> None:
        """Send progress of the following runs to a new sink."""
        self._progress = ProgressTracker(sink)

    def cancel(self) -> None:
        """Stop the current run before its next language-model call."""
        self._cancel.set()

    async def run(
        self, request: str, *, root_id: str | None = None, post_process: bool | None = None
    ) -> SearchOutcome:
        """Search for a new natural-language request."""
        search_run = SearchRun(request=request, root_id=root_id, post_process=post_process)
        self._last_request = search_run
        return await self._execute(search_run)

    async def retry(self, instruction: str) -> SearchOutcome:
        """Re-run the last request from scratch, guided by an instruction."""
        last = self._last_request
        if last is None:
            raise OutlineSearchError("No previous search to retry")
        search_run = SearchRun(
            request=last.request,
            root_id=last.root_id,
            post_process=last.post_process,
            instruction=instruction,
        )
        return await self._execute(search_run)

    async def more_results(self) -> SearchOutcome:
        """Deliver the next page (or a fresh random sample) of the last results."""
        committed = self._committed
        if committed is None:
            raise OutlineSearchError("No previous search to continue")
        search_run = replace(
            committed,
            paging=True,
            summary=None,
            outcome=None,
            sampler=copy.deepcopy(committed.sampler),
        )
        return await self._execute(search_run)

    async def _execute(self, search_run: SearchRun) -> SearchOutcome:
        async with self._lock:
            self._cancel.clear()
            self._progress.reset()
            state = PipelineState.LOAD_MODEL
            while state is not PipelineState.END:
                logger.debug("Pipeline state %s", state)
                await self._handlers[state](search_run)
                state = transition(state, search_run)
            if search_run.outcome is None:
                raise OutlineSearchError("Pipeline ended without an outcome")
            self._committed = search_run
            return search_run.outcome

    def _check_cancelled(self, stage: str) -> None:
        if self._cancel.is_set():
            raise PipelineCancelled(f"Search cancelled before {stage}")

    async def _load_model(self, search_run: SearchRun) -> None:
        if search_run.paging:
            return
        if not await self._collaborator.is_available():
            raise InterpretationFailure("load_model", "language model is not available")

    async def _interpret(self, search_run: SearchRun) -> None:
        await self._progress.report("interpreting", search_run.request)
        self._check_cancelled("interpreting")
        interpretation = await self._collaborator.interpret(
            search_run.request, search_run.instruction
        )
        search_run.interpretation = interpretation
        search_run.alternative_list = interpretation.alternative_list

    async def _infer_alternative(self, search_run: SearchRun) -> None:
        await self._progress.report("inferring")
        self._check_cancelled("inferring")
        interpretation = search_run.require_interpretation()
        search_run.alternative_list = await self._collaborator.infer_alternative(
            search_run.request, interpretation.search_list
        )

    async def _convert_to_filters(self, search_run: SearchRun) -> None:
        search_lists = [search_run.require_interpretation().search_list]
        if search_run.alternative_list:
            search_lists.append(search_run.alternative_list)
        await self._progress.report("converting", " / ".join(search_lists))
        self._check_cancelled("converting")
        search_run.filter_sets = await self._collaborator.convert_to_filters(
            search_lists, search_run.request, search_run.instruction
        )

    async def _match(self, search_run: SearchRun) -> None:
        await self._progress.report("matching")
        interpretation = search_run.require_interpretation()
        filter_set = search_run.filter_sets[len(search_run.result_sets)]
        result_set = await self._matcher.match(
            filter_set,
            page_scope=interpretation.page_scope,
            root_id=search_run.root_id,
        )
        search_run.result_sets.append(result_set)

    async def _aggregate(self, search_run: SearchRun) -> None:
        alternative = search_run.result_sets[1] if len(search_run.result_sets) > 1 else None
        search_run.aggregated = aggregate(search_run.result_sets[0], alternative)

    async def _limit(self, search_run: SearchRun) -> None:
        await self._progress.report("limiting")
        requested = search_run.requested_count
        window = page_size(requested, self._page_size)

        if search_run.paging:
            if search_run.is_random and search_run.sampler is not None:
                search_run.selected = search_run.sampler.draw(random_draw_size(requested, False))
                return
            start = search_run.next_start
            search_run.start = len(search_run.pool) if start is None else start
            search_run.selected = search_run.pool[search_run.start : search_run.start + window]
            return

        period = search_run.require_interpretation().period
        post_processing = search_run.wants_post_processing
        search_run.pool = order_by_recency(apply_period(search_run.aggregated.candidates(), period))
        search_run.start = 0
        if search_run.is_random:
            search_run.sampler = RandomSampler(search_run.pool, self._rng)
            search_run.selected = search_run.sampler.draw(
                random_draw_size(requested, post_processing)
            )
        elif post_processing:
            search_run.selected = search_run.pool[: fetch_limit(requested, True)]
        else:
            search_run.selected = search_run.pool[:window]

    async def _preselect(self, search_run: SearchRun) -> None:
        await self._progress.report("preselecting")
        self._check_cancelled("preselecting")
        target = preselect_target(search_run.requested_count)
        ids = await self._collaborator.preselect(
            search_run.selected, search_run.request, target, search_run.instruction
        )
        by_id = {c.id: c for c in search_run.selected}
        chosen = [by_id[i] for i in dict.fromkeys(ids) if i in by_id]
        if not chosen:
            logger.warning("Preselection returned no known ids, keeping the most recent")
            chosen = search_run.selected
        search_run.selected = chosen[:target]

    async def _post_process(self, search_run: SearchRun) -> None:
        await self._progress.report("post-processing")
        self._check_cancelled("post-processing")
        search_run.summary = await self._collaborator.summarize(
            search_run.selected, search_run.request, search_run.instruction
        )

    async def _deliver(self, search_run: SearchRun) -> None:
        total = len(search_run.pool)
        if search_run.is_random:
            next_start = None
        elif search_run.summary is not None:
            # Paging after an answer lists the matched nodes from the top
            next_start = 0 if total else None
        else:
            end = search_run.start + len(search_run.selected)
            next_start = end if end < total else None
        search_run.next_start = next_start
        search_run.outcome = SearchOutcome(
            request=search_run.request,
            candidates=list(search_run.selected),
            summary=search_run.summary,
            total=total,
            start=0 if search_run.is_random else search_run.start,
            next_cursor=next_start,
            is_random=search_run.is_random,
            filter_descriptions=[fs.describe() for fs in search_run.filter_sets],
        )
        await self._progress.report("done", search_run.outcome.message)
        logger.info("Delivered %s for %r", search_run.outcome.message, search_run.request)
