"""Compact output formatters for MCP tool responses."""

from outline_search.models.node import ContentNode
from outline_search.models.search import MatchCandidate, SearchOutcome
from outline_search.search.aggregator import ALTERNATIVE, PRIMARY

_SNIPPET_CHARS = 200


def _snippet(text: str, limit: int = _SNIPPET_CHARS) -> str:
    text = " ".join(text.split())
    return text if len(text) <= limit else text[: limit - 3] + "..."


def format_node_header(node: ContentNode) -> str:
    """Format: ((abc123xyz)) [[Page Title]] 2026-10-19."""
    return f"(({node.id})) [[{node.page_title}]] {node.edit_time.date().isoformat()}"


def format_candidate(candidate: MatchCandidate) -> str:
    """Header + snippet + how the node matched."""
    lines = [format_node_header(candidate.node), f"  {_snippet(candidate.node.text)}"]
    if candidate.matched_via_descendant and candidate.anchor_id:
        lines.append(f"  ↳ under (({candidate.anchor_id}))")
    if candidate.rescued_by_siblings and candidate.contributing_ids:
        refs = ", ".join(f"(({cid}))" for cid in candidate.contributing_ids)
        lines.append(f"  ↳ children {refs}")
    if candidate.sources == [ALTERNATIVE]:
        lines.append("  (alternative search)")
    elif PRIMARY in candidate.sources and ALTERNATIVE in candidate.sources:
        lines.append("  (both searches)")
    return "\n".join(lines)


def format_outcome(outcome: SearchOutcome, session_id: str | None = None) -> str:
    """Status line, optional answer, then the delivered nodes."""
    lines: list[str] = []
    if session_id:
        lines.append(f"Session: {session_id}")
    if outcome.filter_descriptions:
        lines.append("Filters: " + " || ".join(outcome.filter_descriptions))
    lines.append(outcome.message)

    if outcome.summary:
        lines.append("")
        lines.append(outcome.summary)

    if outcome.candidates:
        lines.append("")
        if outcome.summary:
            lines.append("Sources:")
        lines.append("\n\n".join(format_candidate(c) for c in outcome.candidates))

    if outcome.next_cursor is not None or outcome.is_random:
        lines.append("")
        lines.append("Use outline_more_results for more.")
    return "\n".join(lines)


def format_node_detail(
    node: ContentNode, ancestors: list[ContentNode], children: list[ContentNode]
) -> str:
    """Full node text with its path from the page root and its direct children."""
    lines = [format_node_header(node)]
    if ancestors:
        path = " > ".join(_snippet(a.text or a.page_title, 40) for a in reversed(ancestors))
        lines.append(f"  Path: {path}")
    lines.append(f"  {node.text}")
    if children:
        lines.append("  Children:")
        lines.extend(f"    - (({c.id})) {_snippet(c.text, 80)}" for c in children)
    return "\n".join(lines)
