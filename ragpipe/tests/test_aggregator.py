"""Tests for result aggregation helpers"""

from ragpipe.common.models import RoundOrigin
from ragpipe.retriever.aggregator import dedupe_append, sort_by_raw_score


class TestDedupeAppend:
    def test_first_occurrence_wins(self, hit_factory):
        seen = set()
        acc = dedupe_append(seen, [], [hit_factory("a", 0.2), hit_factory("b", 0.4)])

        later = hit_factory("a", 0.9)
        later.round_origin = RoundOrigin.EXPANDED
        dedupe_append(seen, acc, [later, hit_factory("c", 0.1)])

        assert [h.chunk_id for h in acc] == ["a", "b", "c"]
        assert acc[0].raw_score == 0.2
        assert acc[0].round_origin == RoundOrigin.PRIMARY
        assert seen == {"a", "b", "c"}

    def test_duplicates_within_one_batch(self, hit_factory):
        acc = dedupe_append(set(), [], [hit_factory("a", 0.5), hit_factory("a", 0.7)])

        assert len(acc) == 1
        assert acc[0].raw_score == 0.5

    def test_returns_same_accumulator(self, hit_factory):
        acc = []
        assert dedupe_append(set(), acc, [hit_factory("a", 0.5)]) is acc


class TestSortByRawScore:
    def test_descending(self, hit_factory):
        hits = [hit_factory("a", 0.1), hit_factory("b", 0.9), hit_factory("c", 0.5)]

        assert [h.chunk_id for h in sort_by_raw_score(hits)] == ["b", "c", "a"]

    def test_stable_for_ties(self, hit_factory):
        hits = [hit_factory("a", 0.5), hit_factory("b", 0.7), hit_factory("c", 0.5), hit_factory("d", 0.5)]

        assert [h.chunk_id for h in sort_by_raw_score(hits)] == ["b", "a", "c", "d"]

    def test_ignores_reranked_score(self, hit_factory):
        a, b = hit_factory("a", 0.9), hit_factory("b", 0.1)
        a.reranked_score = 0.0
        b.reranked_score = 1.0

        assert [h.chunk_id for h in sort_by_raw_score([b, a])] == ["a", "b"]
