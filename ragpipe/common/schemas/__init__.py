"""
ragpipe Port Schemas

Validated shapes for data exchanged with the vector index and rerank service.
"""

from .payloads import (
    ChunkPayload,
    StoredChunk,
    RerankOutcome,
    RawRerankOutcome,
    parse_rerank_outcomes,
)

__all__ = [
    "ChunkPayload",
    "StoredChunk",
    "RerankOutcome",
    "RawRerankOutcome",
    "parse_rerank_outcomes",
]
