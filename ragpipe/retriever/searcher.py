"""
Searcher

Adaptive two-phase semantic search over the vector index.

1. Primary round: embed the raw query and fetch 2×K candidates.
2. If enough candidates clear the relevance floor, stop there.
3. Otherwise expand the query, search again with the first few expansion
   terms, and merge the new hits behind the primary ones.

Embedding and index failures degrade to empty rounds; only cancellation
propagates.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence

from ..common.config import RetrieverConfig
from ..common.embedding_service import embed_one
from ..common.models import Hit, QueryExpansion, RoundOrigin
from ..common.ports import Embedding, EmbeddingKind, EmbeddingPort, VectorIndexPort
from .aggregator import dedupe_append, sort_by_raw_score
from .query_expander import QueryExpander

logger = logging.getLogger("ragpipe.retriever.searcher")


@dataclass
class SearchOutcome:
    """Hits from one adaptive search, with the expansion record that produced them"""
    hits: List[Hit]
    expansion: QueryExpansion

    @property
    def expanded(self) -> bool:
        return self.expansion.applied


class Searcher:
    """
    Searches the vector index, widening the query only when needed.

    Features:
    - Sufficiency check on the primary round
    - Concurrent expansion-round searches, merged in term order
    - Deduplication by chunk id (first occurrence wins)
    """

    def __init__(
        self,
        embedding: EmbeddingPort,
        index: VectorIndexPort,
        expander: QueryExpander,
        collection: str,
        config: Optional[RetrieverConfig] = None,
    ):
        """
        Initialize searcher.

        Args:
            embedding: Embedding port for query vectors
            index: Vector index port to search
            expander: Query expander for the second round
            collection: Index collection holding the corpus
            config: Retrieval policy (defaults when omitted)
        """
        self._embedding = embedding
        self._index = index
        self._expander = expander
        self._collection = collection
        self._config = config or RetrieverConfig()

    @property
    def collection(self) -> str:
        return self._collection

    async def search(self, query: str, topk: Optional[int] = None) -> SearchOutcome:
        """
        Adaptive search for a query.

        Args:
            query: User query
            topk: Number of hits to return (default from config)

        Returns:
            SearchOutcome with at most ``topk`` hits sorted by raw score
        """
        topk = topk or self._config.topk

        # Primary round
        seen_ids = set()
        hits: List[Hit] = []
        query_vector = await embed_one(self._embedding, query, EmbeddingKind.QUERY)
        if query_vector:
            primary = await self._search_round(
                query_vector, topk * self._config.primary_multiplier, RoundOrigin.PRIMARY
            )
            dedupe_append(seen_ids, hits, primary)
        else:
            logger.warning("Query embedding unavailable; primary round is empty")

        if self.is_sufficient(hits):
            logger.info("Primary round sufficient (%d hits); skipping expansion", len(hits))
            return SearchOutcome(
                hits=sort_by_raw_score(hits)[:topk],
                expansion=QueryExpansion.skipped(query),
            )

        # Expansion round
        logger.info("Primary round weak (%d hits); expanding query", len(hits))
        expansion = await self._expander.expand(query)
        terms = expansion.expanded_terms[:self._config.expansion_search_terms]
        vectors = await self._embed_terms(terms)

        rounds = await asyncio.gather(*[
            self._search_round(vector, topk, RoundOrigin.EXPANDED)
            for vector in vectors
            if vector
        ])
        for round_hits in rounds:
            dedupe_append(seen_ids, hits, round_hits)

        return SearchOutcome(hits=sort_by_raw_score(hits)[:topk], expansion=expansion)

    async def basic_search(self, query: str, topk: Optional[int] = None) -> List[Hit]:
        """Single-round search with no sufficiency check or expansion"""
        topk = topk or self._config.basic_topk
        query_vector = await embed_one(self._embedding, query, EmbeddingKind.QUERY)
        if not query_vector:
            logger.warning("Query embedding unavailable; basic search is empty")
            return []
        hits = await self._search_round(query_vector, topk, RoundOrigin.PRIMARY)
        return dedupe_append(set(), [], hits)

    def is_sufficient(self, hits: Sequence[Hit]) -> bool:
        """True when enough hits clear the relevance floor to skip expansion"""
        good = [h for h in hits if h.raw_score > self._config.relevance_floor]
        return len(good) >= self._config.sufficient_hits

    async def _embed_terms(self, terms: Sequence[str]) -> List[Embedding]:
        """Embed expansion terms in one batch; [] when the batch fails"""
        if not terms:
            return []
        try:
            vectors = await self._embedding.embed(list(terms), EmbeddingKind.QUERY)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Embedding expansion terms failed: %s", e)
            return []

        vectors = list(vectors or [])
        if vectors and len(vectors) != len(terms):
            logger.warning("Got %d embeddings for %d expansion terms; skipping round", len(vectors), len(terms))
            return []
        return vectors

    async def _search_round(self, vector: Embedding, limit: int, origin: RoundOrigin) -> List[Hit]:
        """One index query; failures yield an empty round"""
        try:
            results = await self._index.search(
                self._collection, vector, limit=limit, with_payload=True
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Vector search failed (%s round): %s", origin.value, e)
            return []

        return [replace(hit, round_origin=origin) for hit in results or []]
