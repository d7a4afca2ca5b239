"""
Query Expander

Broadens a weak query with related terms, synonyms and associated concepts
produced by the generator. Used only when the primary search round does not
surface enough relevant chunks.

Expansion never fails the request: any generator error yields the degraded
record whose only term is the original query.
"""

import asyncio
import logging
from typing import List, Optional

from ..common.config import RetrieverConfig
from ..common.llm_utils import split_comma_list
from ..common.models import QueryExpansion
from ..common.ports import GeneratorPort

logger = logging.getLogger("ragpipe.retriever.query_expander")


EXPANSION_PROMPT = """Given the search query: "{query}"

Generate related terms, synonyms, and associated concepts that would help find relevant candidates or information in {corpus}.

Output ONLY a comma-separated list of related terms (maximum {max_terms} terms):"""

EXPANSION_MAX_TOKENS = 150
EXPANSION_TEMPERATURE = 0.3


class QueryExpander:
    """
    Generates auxiliary search terms for a query.

    The expanded term list always starts with the original query, holds no
    duplicates, and never exceeds ``max_expansion_terms`` entries. Generated
    terms of ``max_term_length`` characters or more are discarded.
    """

    def __init__(self, generator: GeneratorPort, config: Optional[RetrieverConfig] = None):
        self._generator = generator
        self._config = config or RetrieverConfig()

    def build_prompt(self, query: str) -> str:
        return EXPANSION_PROMPT.format(
            query=query,
            corpus=self._config.corpus_description,
            max_terms=self._config.max_expansion_terms,
        )

    async def expand(self, query: str) -> QueryExpansion:
        """
        Expand a query into related search terms.

        Args:
            query: Raw user query

        Returns:
            QueryExpansion whose ``expanded_terms`` start with ``query``
        """
        try:
            raw = await self._generator.complete(
                self.build_prompt(query),
                max_tokens=EXPANSION_MAX_TOKENS,
                temperature=EXPANSION_TEMPERATURE,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Query expansion failed, using original query only: %s", e)
            return QueryExpansion.degraded(query)

        terms = self.parse_terms(raw)
        expanded_terms = self._combine(query, terms)
        logger.debug("Expanded %r into %d term(s)", query, len(expanded_terms))

        return QueryExpansion(
            original_query=query,
            expanded_terms=expanded_terms,
            search_context=f"{query} {' '.join(expanded_terms)}",
        )

    def parse_terms(self, raw: Optional[str]) -> List[str]:
        """Valid generated terms in response order (not yet deduplicated)"""
        if not isinstance(raw, str):
            return []
        terms = [
            t for t in split_comma_list(raw)
            if len(t) < self._config.max_term_length
        ]
        return terms[:self._config.max_expansion_terms]

    def _combine(self, query: str, terms: List[str]) -> List[str]:
        combined = []
        seen = set()
        for term in [query, *terms]:
            if term not in seen:
                seen.add(term)
                combined.append(term)
        return combined[:max(1, self._config.max_expansion_terms)]
