"""
Service Ports

Contracts ragpipe requires from its external collaborators. Concrete
implementations live beside this module (EmbeddingService, InMemoryVectorIndex,
rerank services, LLMClient); tests substitute stubs.
"""

from enum import Enum
from typing import TYPE_CHECKING, List, Protocol, Sequence, runtime_checkable

if TYPE_CHECKING:
    from .models import Hit
    from .schemas import RawRerankOutcome

Embedding = List[float]


class EmbeddingKind(str, Enum):
    """Embedding flavor; query and document vectors must not be mixed"""
    QUERY = "search_query"
    DOCUMENT = "search_document"


@runtime_checkable
class EmbeddingPort(Protocol):
    async def embed(self, texts: Sequence[str], kind: EmbeddingKind) -> List[Embedding]:
        """Position-aligned embeddings, or [] when the service fails."""
        ...


@runtime_checkable
class VectorIndexPort(Protocol):
    async def search(
        self,
        collection: str,
        vector: Embedding,
        limit: int,
        with_payload: bool = True,
    ) -> List["Hit"]:
        """Nearest neighbours sorted by descending similarity."""
        ...

    async def exists(self, collection: str) -> bool:
        ...


@runtime_checkable
class RerankPort(Protocol):
    async def rerank(
        self, query: str, documents: Sequence[str], top_n: int
    ) -> List["RawRerankOutcome"]:
        """Scores for positions in ``documents``."""
        ...


@runtime_checkable
class GeneratorPort(Protocol):
    async def complete(self, prompt: str, max_tokens: int, temperature: float) -> str:
        ...
