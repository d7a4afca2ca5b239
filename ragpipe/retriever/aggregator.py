"""
Result Aggregation

Merges hits from successive retrieval rounds. A chunk surfaced by an
earlier round keeps its first score and origin; later duplicates are
dropped rather than re-scored.
"""

from typing import Iterable, List, Set

from ..common.models import Hit


def dedupe_append(seen_ids: Set[str], accumulator: List[Hit], new_hits: Iterable[Hit]) -> List[Hit]:
    """
    Append hits whose chunk id has not been seen yet.

    Mutates ``seen_ids`` and ``accumulator`` in place.

    Returns:
        The accumulator, for chaining
    """
    for hit in new_hits:
        if hit.chunk_id in seen_ids:
            continue
        seen_ids.add(hit.chunk_id)
        accumulator.append(hit)
    return accumulator


def sort_by_raw_score(hits: Iterable[Hit]) -> List[Hit]:
    """Descending raw (pre-rerank) score; ties keep their relative order"""
    return sorted(hits, key=lambda h: h.raw_score, reverse=True)
