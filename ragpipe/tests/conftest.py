"""Shared fakes for the retrieval ports."""

from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from ragpipe.common.models import Chunk, Hit


def make_hit(chunk_id: str, score: float, text: Optional[str] = None, source: str = "cv.pdf", sequence: int = 0) -> Hit:
    return Hit(
        chunk=Chunk(
            id=chunk_id,
            text=f"text of {chunk_id}" if text is None else text,
            source=source,
            sequence=sequence,
        ),
        raw_score=score,
    )


class FakeEmbedding:
    """Embedding port that maps known texts to fixed vectors; unknown texts embed empty"""

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None):
        self.vectors = dict(vectors or {})
        self.calls: List[Tuple[List[str], object]] = []
        self.error: Optional[Exception] = None

    async def embed(self, texts: Sequence[str], kind) -> List[List[float]]:
        self.calls.append((list(texts), kind))
        if self.error is not None:
            raise self.error
        return [list(self.vectors.get(t, [])) for t in texts]


class FakeIndex:
    """Vector index port answering each query vector with a scripted hit list"""

    def __init__(self, exists: bool = True):
        self.results: Dict[Tuple[float, ...], List[Hit]] = {}
        self.calls: List[dict] = []
        self.exists_result = exists
        self.exists_error: Optional[Exception] = None

    def script(self, vector: List[float], hits: List[Hit]) -> None:
        self.results[tuple(vector)] = hits

    async def search(self, collection, vector, limit, with_payload=True):
        self.calls.append({"collection": collection, "vector": list(vector), "limit": limit})
        return list(self.results.get(tuple(vector), []))[:limit]

    async def exists(self, collection):
        if self.exists_error is not None:
            raise self.exists_error
        return self.exists_result


@pytest.fixture
def fake_embedding():
    return FakeEmbedding()


@pytest.fixture
def fake_index():
    return FakeIndex()


@pytest.fixture
def hit_factory():
    return make_hit
