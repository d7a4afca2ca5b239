"""
Retrieval Data Model

Chunks are owned by the vector store; Hits, expansions and answers are
request-scoped and never persisted by the pipeline.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Chunk:
    """Immutable unit of retrievable text"""
    id: str
    text: str = ""
    source: str = "unknown"
    sequence: int = 0
    source_chunk_count: int = 1


class RoundOrigin(str, Enum):
    """Retrieval round that surfaced a hit"""
    PRIMARY = "primary"
    EXPANDED = "expanded"


@dataclass
class Hit:
    """A chunk surfaced by a retrieval round"""
    chunk: Chunk
    raw_score: float
    reranked_score: Optional[float] = None
    round_origin: RoundOrigin = RoundOrigin.PRIMARY

    @property
    def chunk_id(self) -> str:
        return self.chunk.id

    @property
    def score(self) -> float:
        """Best available relevance: reranked when present, else raw"""
        return self.reranked_score if self.reranked_score is not None else self.raw_score


@dataclass
class QueryExpansion:
    """
    Record of how a query was broadened.

    ``expanded_terms`` always starts with the original query. ``applied`` is
    False when the primary round was strong enough that expansion never ran.
    """
    original_query: str
    expanded_terms: List[str]
    search_context: str
    applied: bool = True

    @classmethod
    def skipped(cls, query: str) -> "QueryExpansion":
        """Trivial record for a search that did not need expansion"""
        return cls(original_query=query, expanded_terms=[query], search_context=query, applied=False)

    @classmethod
    def degraded(cls, query: str) -> "QueryExpansion":
        """Record for an expansion attempt whose generation failed"""
        return cls(original_query=query, expanded_terms=[query], search_context=query, applied=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "originalQuery": self.original_query,
            "expandedQueries": list(self.expanded_terms),
            "searchContext": self.search_context,
            "applied": self.applied,
        }


class SearchMethod(str, Enum):
    BASIC = "basic"
    ENHANCED = "enhanced"


class AnswerStatus(str, Enum):
    """Which successful terminal state produced the answer"""
    ANSWERED = "answered"
    NO_DOCUMENTS = "no_documents"
    NO_RESULTS = "no_results"


@dataclass
class SourcePreview:
    """A hit condensed for display"""
    file: str
    chunk: int
    score: float
    original_score: float
    preview: str

    @classmethod
    def from_hit(cls, hit: Hit, preview_chars: int = 150) -> "SourcePreview":
        return cls(
            file=hit.chunk.source,
            chunk=hit.chunk.sequence,
            score=hit.score,
            original_score=hit.raw_score,
            preview=hit.chunk.text[:preview_chars] + "...",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file": self.file,
            "chunk": self.chunk,
            "score": self.score,
            "originalScore": self.original_score,
            "preview": self.preview,
        }


@dataclass
class AnswerResult:
    """Final response for a well-formed query"""
    query: str
    answer: str
    status: AnswerStatus = AnswerStatus.ANSWERED
    sources: List[SourcePreview] = field(default_factory=list)
    expansion: Optional[QueryExpansion] = None
    search_method: SearchMethod = SearchMethod.ENHANCED
    reranking_applied: bool = False

    @property
    def success(self) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape returned to callers"""
        response: Dict[str, Any] = {
            "success": self.success,
            "status": self.status.value,
            "answer": self.answer,
            "query": self.query,
            "queryExpansion": self.expansion.to_dict() if self.expansion else None,
        }
        if self.status == AnswerStatus.ANSWERED:
            response.update({
                "sources": [s.to_dict() for s in self.sources],
                "searchMethod": self.search_method.value,
                "rerankingApplied": self.reranking_applied,
            })
        return response
