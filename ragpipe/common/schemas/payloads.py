"""
Port Boundary Schemas

Shapes that cross the boundary between ragpipe and its external services.
Everything the vector index stores or the reranker returns is validated
against these models before the pipeline touches it; anything that fails
validation is treated as a failure of that service.
"""

from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, Field, ValidationError


# ============================================================================
# Vector index payloads
# ============================================================================

class ChunkPayload(BaseModel):
    """
    Payload stored alongside each chunk vector.

    This is what the index must hand back to reconstruct a Chunk.
    """
    text: str = Field(..., min_length=1, description="Chunk text")
    source: str = Field(default="unknown", description="Origin document (filename)")
    type: str = Field(default="pdf", description="Origin document type")
    chunk_index: int = Field(default=0, ge=0, description="0-based position within the source")
    total_chunks: int = Field(default=1, ge=1, description="Chunks produced from the source")


class StoredChunk(ChunkPayload):
    """A chunk as kept by the document repository"""
    id: str = Field(..., min_length=1)


# ============================================================================
# Rerank results
# ============================================================================

class RerankOutcome(BaseModel):
    """One scored document returned by a rerank service"""
    index: int = Field(..., ge=0, description="Position in the submitted document list")
    relevance_score: float


RawRerankOutcome = Union[RerankOutcome, Tuple[int, float], Dict[str, Any]]


def parse_rerank_outcomes(raw: Optional[List[RawRerankOutcome]]) -> List[RerankOutcome]:
    """
    Validate rerank service output.

    Accepts RerankOutcome objects, (index, score) pairs, or dicts with
    ``index`` and ``relevance_score`` (or camelCase ``relevanceScore``).

    Raises:
        ValueError: if the response is not a list or any entry is malformed
    """
    if not isinstance(raw, list):
        raise ValueError(f"Rerank response must be a list, got {type(raw).__name__}")

    outcomes = []
    for item in raw:
        if isinstance(item, RerankOutcome):
            outcomes.append(item)
            continue
        try:
            if isinstance(item, (tuple, list)) and len(item) == 2:
                outcomes.append(RerankOutcome(index=item[0], relevance_score=item[1]))
            elif isinstance(item, dict):
                score = item.get("relevance_score", item.get("relevanceScore"))
                outcomes.append(RerankOutcome(index=item.get("index"), relevance_score=score))
            else:
                raise ValueError(f"Unrecognized rerank entry: {item!r}")
        except ValidationError as e:
            raise ValueError(f"Invalid rerank entry {item!r}: {e}") from e

    return outcomes
