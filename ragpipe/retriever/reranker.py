"""
Reranker

Re-scores retrieved hits against the query with a rerank service. A
failing or malformed rerank response leaves every hit in its prior order
with a neutral score, so reranking can only reorder, never lose, hits.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Dict, List, Optional, Sequence

from ..common.config import RetrieverConfig
from ..common.models import Hit
from ..common.ports import RerankPort
from ..common.schemas import parse_rerank_outcomes

logger = logging.getLogger("ragpipe.retriever.reranker")


class Reranker:
    """Applies a RerankPort to a list of hits"""

    def __init__(self, port: RerankPort, config: Optional[RetrieverConfig] = None):
        self._port = port
        self._config = config or RetrieverConfig()

    def format_document(self, hit: Hit) -> str:
        """Text submitted to the rerank service for one hit"""
        text = hit.chunk.text[:self._config.rerank_truncate_chars]
        return f"Source: {hit.chunk.source}\n\n{text}"

    async def rerank(self, hits: Sequence[Hit], query: str) -> List[Hit]:
        """
        Rerank hits for a query.

        Returns:
            The same hits with ``reranked_score`` set, sorted by it
            (descending, stable). Never raises except on cancellation.
        """
        if not hits:
            return []

        documents = [self.format_document(h) for h in hits]
        try:
            raw = await self._port.rerank(query, documents, top_n=len(documents))
            outcomes = parse_rerank_outcomes(raw)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Reranking failed, keeping retrieval order: %s", e)
            return self._neutral(hits)

        scores: Dict[int, float] = {}
        for outcome in outcomes:
            if outcome.index < len(hits):
                scores.setdefault(outcome.index, outcome.relevance_score)
            else:
                logger.debug("Ignoring rerank outcome for out-of-range index %d", outcome.index)

        reranked = [
            replace(hit, reranked_score=scores.get(i, hit.raw_score))
            for i, hit in enumerate(hits)
        ]
        return sorted(reranked, key=lambda h: h.reranked_score, reverse=True)

    def _neutral(self, hits: Sequence[Hit]) -> List[Hit]:
        score = self._config.neutral_rerank_score
        return [replace(hit, reranked_score=score) for hit in hits]
