"""
Retriever - Adaptive Retrieval-Augmented Answers

Searches the indexed corpus and synthesizes answers using an LLM.

Key Components:
- QueryExpander: Broadens weak queries with generated related terms
- Searcher: Two-phase vector search with conditional expansion
- Reranker: Re-scores hits with a rerank service
- Synthesizer: LLM-based answer synthesis from the top passages
- RetrievalPipeline: Ties the above together behind answer_query

Pipeline:
1. Embed the query and search the vector index
2. Expand and search again only if the first round is weak
3. Merge, deduplicate and rerank hits
4. Synthesize an answer grounded in the top passages
"""

from .aggregator import dedupe_append, sort_by_raw_score
from .pipeline import RetrievalPipeline
from .query_expander import QueryExpander
from .reranker import Reranker
from .searcher import Searcher, SearchOutcome
from .synthesizer import Synthesizer

__all__ = [
    "dedupe_append",
    "sort_by_raw_score",
    "RetrievalPipeline",
    "QueryExpander",
    "Reranker",
    "Searcher",
    "SearchOutcome",
    "Synthesizer",
]
