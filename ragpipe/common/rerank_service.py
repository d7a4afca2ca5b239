"""
Rerank Services

Concrete rerank ports:
- CrossEncoderRerankService: on-device fastembed cross-encoder
- LLMRerankService: asks the configured LLM to grade each document

Both raise on failure; the retriever's Reranker owns the fallback policy.
"""

import asyncio
import logging
import math
from typing import List, Optional, Sequence

from .config import RerankConfig
from .llm_client import LLMClient
from .llm_utils import parse_llm_json
from .schemas import RerankOutcome

logger = logging.getLogger("ragpipe.common.rerank_service")


def _sigmoid(x: float) -> float:
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)


def _top_n(scores: Sequence[float], top_n: int) -> List[RerankOutcome]:
    ranked = sorted(range(len(scores)), key=lambda i: scores[i], reverse=True)
    return [RerankOutcome(index=i, relevance_score=scores[i]) for i in ranked[:top_n]]


class CrossEncoderRerankService:
    """
    Rerank port backed by a fastembed cross-encoder.

    Raw logits are squashed through a sigmoid so scores land in (0, 1).
    """

    def __init__(self, model: str = "Xenova/ms-marco-MiniLM-L-6-v2", encoder=None):
        self._model = model
        self._encoder = encoder

    def _get_encoder(self):
        if self._encoder is None:
            from fastembed.rerank.cross_encoder import TextCrossEncoder

            self._encoder = TextCrossEncoder(model_name=self._model)
            logger.info("Loaded cross-encoder %s", self._model)
        return self._encoder

    def score(self, query: str, documents: Sequence[str]) -> List[float]:
        encoder = self._get_encoder()
        return [_sigmoid(float(s)) for s in encoder.rerank(query, list(documents))]

    async def rerank(self, query: str, documents: Sequence[str], top_n: int) -> List[RerankOutcome]:
        if not documents:
            return []
        scores = await asyncio.to_thread(self.score, query, documents)
        if len(scores) != len(documents):
            raise ValueError(f"Cross-encoder returned {len(scores)} scores for {len(documents)} documents")
        return _top_n(scores, top_n)


LLM_RERANK_PROMPT = """Rate how relevant each document is to the search query.

Query: {query}

Documents:
{documents}

Respond with a valid JSON object mapping every document number to a relevance score between 0.0 and 1.0:
{{"scores": {{"0": 0.9, "1": 0.1}}}}

JSON:"""


class LLMRerankService:
    """Rerank port that grades documents with a general-purpose LLM"""

    def __init__(self, llm: LLMClient, max_tokens: int = 512, snippet_chars: int = 500):
        self._llm = llm
        self._max_tokens = max_tokens
        self._snippet_chars = snippet_chars

    def _build_prompt(self, query: str, documents: Sequence[str]) -> str:
        listing = "\n\n".join(
            f"[{i}] {doc[:self._snippet_chars]}" for i, doc in enumerate(documents)
        )
        return LLM_RERANK_PROMPT.format(query=query, documents=listing)

    async def rerank(self, query: str, documents: Sequence[str], top_n: int) -> List[RerankOutcome]:
        if not documents:
            return []

        raw = await self._llm.complete(
            self._build_prompt(query, documents),
            max_tokens=self._max_tokens,
            temperature=0.0,
        )
        scores = parse_llm_json(raw).get("scores")
        if not isinstance(scores, dict):
            raise ValueError("LLM rerank response has no 'scores' object")

        outcomes = []
        for key, value in scores.items():
            try:
                index = int(key)
                score = float(value)
            except (TypeError, ValueError):
                logger.debug("Ignoring malformed rerank entry %r: %r", key, value)
                continue
            if 0 <= index < len(documents):
                outcomes.append(RerankOutcome(index=index, relevance_score=score))

        outcomes.sort(key=lambda o: o.relevance_score, reverse=True)
        return outcomes[:top_n]


def build_rerank_service(config: RerankConfig, llm: Optional[LLMClient] = None):
    """
    Create the rerank port selected by ``config.mode``.

    Returns:
        A rerank port, or None when reranking is disabled
    """
    mode = (config.mode or "none").lower()
    if mode == "cross_encoder":
        return CrossEncoderRerankService(model=config.model)
    if mode == "llm":
        if llm is None or not llm.is_available:
            logger.warning("LLM rerank requested but no LLM is available; reranking disabled")
            return None
        return LLMRerankService(llm)
    if mode != "none":
        logger.warning("Unknown rerank mode %s; reranking disabled", config.mode)
    return None
