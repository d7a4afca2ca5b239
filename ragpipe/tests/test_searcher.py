"""Tests for the adaptive two-phase Searcher"""

import logging

import pytest
from unittest.mock import AsyncMock


QUERY = "python developer"
VECTORS = {
    QUERY: [1.0, 0.0, 0.0],
    "java": [0.0, 1.0, 0.0],
    "backend": [0.0, 0.0, 1.0],
    "spring boot": [0.5, 0.5, 0.0],
}


class TestSearcher:
    @pytest.fixture
    def generator(self):
        generator = AsyncMock()
        generator.complete.return_value = "java, backend, spring boot"
        return generator

    @pytest.fixture
    def embedding(self, fake_embedding):
        fake_embedding.vectors.update(VECTORS)
        return fake_embedding

    @pytest.fixture
    def searcher(self, embedding, fake_index, generator):
        from ragpipe.retriever.query_expander import QueryExpander
        from ragpipe.retriever.searcher import Searcher
        return Searcher(embedding, fake_index, QueryExpander(generator), "pdf_documents")

    @pytest.mark.asyncio
    async def test_sufficient_primary_skips_expansion(self, searcher, fake_index, generator, hit_factory):
        scores = [0.9, 0.8, 0.75, 0.6, 0.5, 0.4, 0.35]
        fake_index.script(VECTORS[QUERY], [hit_factory(f"h{i}", s) for i, s in enumerate(scores)])

        outcome = await searcher.search(QUERY)

        generator.complete.assert_not_called()
        assert [h.raw_score for h in outcome.hits] == scores
        assert outcome.expansion.applied is False
        assert outcome.expansion.expanded_terms == [QUERY]
        assert outcome.expansion.search_context == QUERY
        assert len(fake_index.calls) == 1
        assert fake_index.calls[0]["limit"] == 20

    @pytest.mark.asyncio
    async def test_sufficient_primary_truncated_to_topk(self, searcher, fake_index, hit_factory):
        fake_index.script(VECTORS[QUERY], [hit_factory(f"h{i}", 0.9 - i * 0.01) for i in range(20)])

        outcome = await searcher.search(QUERY)

        assert len(outcome.hits) == 10
        assert outcome.hits[0].chunk_id == "h0"

    @pytest.mark.asyncio
    async def test_floor_is_strict(self, searcher, fake_index, generator, hit_factory):
        # exactly at the floor does not count as a good hit
        hits = [hit_factory(f"h{i}", 0.9) for i in range(4)] + [hit_factory("edge", 0.3)]
        fake_index.script(VECTORS[QUERY], hits)

        outcome = await searcher.search(QUERY)

        generator.complete.assert_awaited_once()
        assert outcome.expansion.applied is True

    @pytest.mark.asyncio
    async def test_weak_primary_triggers_expansion(self, searcher, fake_index, embedding, generator, hit_factory):
        from ragpipe.common.models import RoundOrigin
        from ragpipe.common.ports import EmbeddingKind

        fake_index.script(VECTORS[QUERY], [hit_factory("a", 0.25), hit_factory("b", 0.2)])
        fake_index.script(VECTORS["java"], [hit_factory("c", 0.5), hit_factory("a", 0.95)])
        fake_index.script(VECTORS["backend"], [hit_factory("d", 0.4), hit_factory("c", 0.45)])

        outcome = await searcher.search(QUERY)

        generator.complete.assert_awaited_once()
        assert outcome.expansion.expanded_terms == [QUERY, "java", "backend", "spring boot"]

        # one batch for the first three expansion terms, query kind
        assert embedding.calls[-1] == ([QUERY, "java", "backend"], EmbeddingKind.QUERY)

        # primary + three expansion searches of K each
        assert [c["limit"] for c in fake_index.calls] == [20, 10, 10, 10]

        assert [h.chunk_id for h in outcome.hits] == ["c", "d", "a", "b"]
        by_id = {h.chunk_id: h for h in outcome.hits}
        assert by_id["a"].raw_score == 0.25
        assert by_id["a"].round_origin == RoundOrigin.PRIMARY
        assert by_id["c"].raw_score == 0.5
        assert by_id["c"].round_origin == RoundOrigin.EXPANDED

    @pytest.mark.asyncio
    async def test_merged_results_truncated_to_topk(self, searcher, fake_index, hit_factory):
        fake_index.script(VECTORS["java"], [hit_factory(f"j{i}", 0.2 + i * 0.1) for i in range(4)])
        fake_index.script(VECTORS["backend"], [hit_factory(f"b{i}", 0.25 + i * 0.1) for i in range(4)])

        outcome = await searcher.search(QUERY, topk=5)

        assert [h.chunk_id for h in outcome.hits] == ["b3", "j3", "b2", "j2", "b1"]

    @pytest.mark.asyncio
    async def test_no_duplicate_chunk_ids(self, searcher, fake_index, hit_factory):
        shared = [hit_factory("x", 0.2), hit_factory("y", 0.1)]
        for vector in (VECTORS[QUERY], VECTORS["java"], VECTORS["backend"]):
            fake_index.script(vector, list(shared))

        outcome = await searcher.search(QUERY)

        ids = [h.chunk_id for h in outcome.hits]
        assert ids == ["x", "y"]
        assert len(ids) == len(set(ids))

    @pytest.mark.asyncio
    async def test_empty_term_embeddings_skipped(self, searcher, fake_index, embedding, hit_factory):
        del embedding.vectors["java"]
        fake_index.script(VECTORS["backend"], [hit_factory("d", 0.4)])

        outcome = await searcher.search(QUERY)

        assert [c["vector"] for c in fake_index.calls] == [VECTORS[QUERY], VECTORS[QUERY], VECTORS["backend"]]
        assert [h.chunk_id for h in outcome.hits] == ["d"]

    @pytest.mark.asyncio
    async def test_query_embedding_failure_still_expands(self, searcher, fake_index, embedding, generator, caplog):
        embedding.error = RuntimeError("embedding service down")

        with caplog.at_level(logging.WARNING, logger="ragpipe.retriever.searcher"):
            outcome = await searcher.search(QUERY)

        generator.complete.assert_awaited_once()
        assert outcome.hits == []
        assert fake_index.calls == []
        assert "Query embedding unavailable" in caplog.text

    @pytest.mark.asyncio
    async def test_index_failure_is_an_empty_round(self, embedding, generator, hit_factory, caplog):
        from ragpipe.retriever.query_expander import QueryExpander
        from ragpipe.retriever.searcher import Searcher

        index = AsyncMock()
        index.search.side_effect = [
            ConnectionError("index unreachable"),
            [hit_factory("c", 0.5)],
            [],
            [],
        ]
        searcher = Searcher(embedding, index, QueryExpander(generator), "pdf_documents")

        with caplog.at_level(logging.WARNING, logger="ragpipe.retriever.searcher"):
            outcome = await searcher.search(QUERY)

        assert [h.chunk_id for h in outcome.hits] == ["c"]
        assert "Vector search failed" in caplog.text

    @pytest.mark.asyncio
    async def test_expansion_failure_searches_query_again(self, searcher, fake_index, generator, hit_factory):
        generator.complete.side_effect = RuntimeError("generator down")
        fake_index.script(VECTORS[QUERY], [hit_factory("a", 0.1)])

        outcome = await searcher.search(QUERY)

        assert outcome.expansion.expanded_terms == [QUERY]
        assert [c["limit"] for c in fake_index.calls] == [20, 10]
        assert [h.chunk_id for h in outcome.hits] == ["a"]


class TestBasicSearch:
    @pytest.fixture
    def searcher(self, fake_embedding, fake_index):
        from ragpipe.retriever.query_expander import QueryExpander
        from ragpipe.retriever.searcher import Searcher

        fake_embedding.vectors.update(VECTORS)
        return Searcher(fake_embedding, fake_index, QueryExpander(AsyncMock()), "pdf_documents")

    @pytest.mark.asyncio
    async def test_single_round_of_five(self, searcher, fake_index, hit_factory):
        fake_index.script(VECTORS[QUERY], [hit_factory(f"h{i}", 0.1) for i in range(8)])

        hits = await searcher.basic_search(QUERY)

        assert len(hits) == 5
        assert [c["limit"] for c in fake_index.calls] == [5]

    @pytest.mark.asyncio
    async def test_embedding_failure_returns_empty(self, searcher, fake_embedding, fake_index):
        fake_embedding.error = RuntimeError("down")

        assert await searcher.basic_search(QUERY) == []
        assert fake_index.calls == []
