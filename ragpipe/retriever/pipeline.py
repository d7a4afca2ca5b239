"""
Retrieval Pipeline

End-to-end answer flow for one query:

1. Reject malformed queries and invalid credentials up front
2. Probe the index; an empty corpus is answered without searching
3. Adaptive search (or a single basic round)
4. Optional reranking
5. Answer synthesis from the top passages

Every well-formed query ends in exactly one AnswerResult. Dependency
failures are absorbed by the component that owns the call.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from ..common.config import ConfigStatus, RetrieverConfig
from ..common.errors import ConfigurationError, InputError, RagPipeError
from ..common.models import (
    AnswerResult,
    AnswerStatus,
    Hit,
    QueryExpansion,
    SearchMethod,
    SourcePreview,
)
from ..common.ports import VectorIndexPort
from .reranker import Reranker
from .searcher import Searcher
from .synthesizer import Synthesizer, build_context

logger = logging.getLogger("ragpipe.retriever.pipeline")


NO_DOCUMENTS_ANSWER = "No documents have been uploaded yet. Please upload some PDF documents first."
NO_RESULTS_ANSWER = "I couldn't find any relevant information for your query."


class RetrievalPipeline:
    """
    Orchestrates search, reranking and synthesis for a query.

    Holds no per-request state; concurrent ``answer_query`` calls are
    independent.
    """

    def __init__(
        self,
        searcher: Searcher,
        synthesizer: Synthesizer,
        index: VectorIndexPort,
        reranker: Optional[Reranker] = None,
        config: Optional[RetrieverConfig] = None,
        config_status: Optional[ConfigStatus] = None,
    ):
        """
        Initialize pipeline.

        Args:
            searcher: Adaptive searcher bound to the corpus collection
            synthesizer: Answer synthesizer
            index: Vector index, probed for an empty corpus
            reranker: Reranker, or None when reranking is disabled
            config: Retrieval policy (defaults when omitted)
            config_status: Credential check result; invalid status fails every query
        """
        self._searcher = searcher
        self._synthesizer = synthesizer
        self._index = index
        self._reranker = reranker
        self._config = config or RetrieverConfig()
        self._config_status = config_status

    @property
    def reranking_available(self) -> bool:
        return self._reranker is not None

    async def answer_query(
        self,
        query: str,
        use_expansion: bool = True,
        use_reranking: bool = True,
    ) -> AnswerResult:
        """
        Answer a natural-language query from the indexed corpus.

        Args:
            query: User question
            use_expansion: Adaptive (enhanced) search when True, a single
                basic round otherwise
            use_reranking: Rerank enhanced-search hits when a reranker is set

        Returns:
            AnswerResult (empty corpus and empty results included)

        Raises:
            InputError: query is missing, blank or not a string
            ConfigurationError: provider credentials failed validation
        """
        self._validate_request(query)

        search_method = SearchMethod.ENHANCED if use_expansion else SearchMethod.BASIC

        if not await self._corpus_exists():
            return AnswerResult(
                query=query,
                answer=NO_DOCUMENTS_ANSWER,
                status=AnswerStatus.NO_DOCUMENTS,
                search_method=search_method,
            )

        expansion: Optional[QueryExpansion] = None
        reranking_applied = False

        if use_expansion:
            outcome = await self._searcher.search(query, topk=self._config.topk)
            hits, expansion = outcome.hits, outcome.expansion

            reranking_applied = use_reranking and self._reranker is not None
            if reranking_applied and hits:
                hits = await self._reranker.rerank(hits, query)
        else:
            hits = await self._searcher.basic_search(query, topk=self._config.basic_topk)

        hits = [h for h in hits if h.chunk.text]
        if not hits:
            logger.info("No results for query %r", query)
            return AnswerResult(
                query=query,
                answer=NO_RESULTS_ANSWER,
                status=AnswerStatus.NO_RESULTS,
                expansion=expansion,
                search_method=search_method,
                reranking_applied=reranking_applied,
            )

        passages = [h.chunk.text for h in hits][:self._config.context_hits]
        context = build_context(passages, limit=self._config.context_hits)
        answer = await self._synthesizer.synthesize(query, context, passages)

        return AnswerResult(
            query=query,
            answer=answer,
            status=AnswerStatus.ANSWERED,
            sources=self._to_sources(hits),
            expansion=expansion,
            search_method=search_method,
            reranking_applied=reranking_applied,
        )

    async def handle(
        self,
        query: Any,
        use_expansion: bool = True,
        use_reranking: bool = True,
    ) -> Dict[str, Any]:
        """
        Wire-level entry point: always returns a response dict.

        Successful outcomes render ``AnswerResult.to_dict()``; rejected
        requests and unexpected failures render a structured error.
        """
        try:
            result = await self.answer_query(query, use_expansion, use_reranking)
        except RagPipeError as e:
            logger.info("Rejected query: %s", e.details)
            return e.to_dict()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Search failed: %s", e, exc_info=True)
            return {"success": False, "error": "Search failed", "details": str(e)}
        return result.to_dict()

    def _validate_request(self, query: Any) -> None:
        if not isinstance(query, str) or not query.strip():
            raise InputError("Query is required")

        status = self._config_status
        if status is not None and not status.is_valid:
            raise ConfigurationError(status.error or "Invalid configuration", setting=status.setting)

    async def _corpus_exists(self) -> bool:
        collection = self._searcher.collection
        try:
            return bool(await self._index.exists(collection))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Could not probe collection %s, treating as empty: %s", collection, e)
            return False

    def _to_sources(self, hits: List[Hit]) -> List[SourcePreview]:
        return [SourcePreview.from_hit(h, self._config.preview_chars) for h in hits]
