"""Node matcher: resolves one filter set against the outline forest.

A node qualifies when its own text satisfies every include filter, or when
it satisfies one include filter and some descendant satisfies the rest
(the descendant is returned), or when its children collectively satisfy
every include filter (the parent is returned). Ancestor-scoped filters act
together as one anchor: a node must satisfy all of them, and only its
descendants matching the other include filters are returned.
"""

import logging

from outline_search.models.filters import Filter, FilterSet
from outline_search.models.search import MatchCandidate, ResultSet
from outline_search.search.patterns import conjunctive_regex
from outline_search.search.tree_store import TreeStore

logger = logging.getLogger(__name__)


class NodeMatcher:
    """Runs the staged matching algorithm through a TreeStore."""

    def __init__(self, store: TreeStore) -> None:
        """Initialize with the tree store to query."""
        self._store = store

    async def match(
        self,
        filter_set: FilterSet,
        *,
        page_scope: str | None = None,
        root_id: str | None = None,
    ) -> ResultSet:
        """Return the nodes matching a filter set.

        ``root_id`` and its whole ancestor chain never appear in the output.
        """
        results = ResultSet()
        includes = filter_set.includes
        if not includes:
            logger.info("No include filters, nothing to match")
            return results

        exclude = filter_set.exclusion.regex if filter_set.exclusion else None
        anchors = filter_set.ancestor_scoped
        protected = await self._protected_ids(root_id)

        if len(includes) >= 2 and not anchors:
            conjunction = conjunctive_regex([f.regex for f in includes])
            for node in await self._store.query_by_own_pattern(conjunction, exclude, page_scope):
                results.add(MatchCandidate(node=node))
            logger.debug("Baseline pass matched %d nodes", len(results))

        if anchors:
            # every anchor must hold on the same ancestor
            await self._expand(
                conjunctive_regex([a.regex for a in anchors]),
                [f for f in includes if not f.is_ancestor_scoped],
                None,
                results,
                protected,
                exclude,
                page_scope,
            )
        else:
            for index, current in enumerate(includes):
                remaining = [f for i, f in enumerate(includes) if i != index]
                await self._expand(
                    current.regex, remaining, includes, results, protected, exclude, page_scope
                )

        results.discard(protected)
        logger.info("Matched %d nodes for %s", len(results), filter_set.describe())
        return results

    async def _protected_ids(self, root_id: str | None) -> set[str]:
        if not root_id:
            return set()
        return {root_id, *await self._store.ancestor_ids(root_id)}

    async def _expand(
        self,
        pattern: str,
        remaining: list[Filter],
        rescue_with: list[Filter] | None,
        results: ResultSet,
        protected: set[str],
        exclude: str | None,
        page_scope: str | None,
    ) -> None:
        """Per-filter expansion for one include pattern.

        ``rescue_with`` holds the filters a group of siblings must jointly
        satisfy for their parent to be rescued; None disables sibling rescue.
        """
        matched = await self._store.query_by_own_pattern(pattern, exclude, page_scope)
        direct = [n for n in matched if n.id not in results and n.id not in protected]
        if not direct:
            return

        if not remaining:
            for node in direct:
                results.add(MatchCandidate(node=node))
            return

        # a parent matching the same pattern as its direct child is covered by the child
        covered = {n.parent_id for n in matched if n.parent_id}
        direct = [n for n in direct if n.id not in covered]
        if not direct:
            return

        hits = await self._store.query_descendants(
            [n.id for n in direct], [f.regex for f in remaining], exclude, page_scope
        )
        qualified: set[str] = set()
        for hit in hits:
            qualified.add(hit.anchor_id)
            results.add(
                MatchCandidate(node=hit.node, matched_via_descendant=True, anchor_id=hit.anchor_id)
            )
        logger.debug("Pattern %r: %d direct, %d descendant hits", pattern, len(direct), len(hits))

        if rescue_with is None:
            return

        unqualified = [n.id for n in direct if n.id not in qualified]
        if not unqualified:
            return
        rescued = await self._store.query_siblings_parent_matching(
            unqualified, [f.regex for f in rescue_with], exclude, page_scope
        )
        for hit in rescued:
            results.add(
                MatchCandidate(
                    node=hit.node,
                    rescued_by_siblings=True,
                    contributing_ids=list(hit.matched_child_ids),
                )
            )
