"""Union of primary and alternative result sets, with provenance."""

from outline_search.models.search import ResultSet

PRIMARY = "primary"
ALTERNATIVE = "alternative"


def aggregate(primary: ResultSet, alternative: ResultSet | None = None) -> ResultSet:
    """Merge result sets by node id.

    Primary candidates come first, then alternative-only ones. Each candidate
    records which set(s) found it; a node found by both carries both labels.
    """
    merged = ResultSet()
    for label, result_set in ((PRIMARY, primary), (ALTERNATIVE, alternative)):
        if result_set is None:
            continue
        for candidate in result_set:
            copy = candidate.model_copy(deep=True)
            if label not in copy.sources:
                copy.sources.append(label)
            merged.add(copy)
    return merged
