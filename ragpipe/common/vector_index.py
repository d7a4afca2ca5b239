"""
In-Memory Vector Index

Per-collection cosine-similarity index over L2-normalized vectors, with
chunk payloads stored alongside. Safe for concurrent readers on one event
loop; writes replace the collection's matrix wholesale.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
from pydantic import ValidationError

from .models import Chunk, Hit, RoundOrigin
from .ports import Embedding
from .schemas import ChunkPayload

logger = logging.getLogger("ragpipe.common.vector_index")


@dataclass
class IndexPoint:
    """A vector with its id and payload, as submitted for upsert"""
    id: str
    vector: Embedding
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class _Collection:
    ids: List[str] = field(default_factory=list)
    payloads: List[Dict[str, Any]] = field(default_factory=list)
    matrix: Optional[np.ndarray] = None

    @property
    def size(self) -> int:
        return len(self.ids)


class InMemoryVectorIndex:
    """
    Vector index port held entirely in process memory.

    A collection exists only while it holds at least one point, so an empty
    corpus reports ``exists() == False``.
    """

    def __init__(self):
        self._collections: Dict[str, _Collection] = {}

    def count(self, collection: str) -> int:
        """Number of points in a collection"""
        col = self._collections.get(collection)
        return col.size if col else 0

    def upsert(self, collection: str, points: List[IndexPoint]) -> int:
        """
        Insert or replace points by id.

        Returns:
            Number of points written

        Raises:
            ValueError: on a dimension mismatch with the collection
        """
        if not points:
            return 0

        col = self._collections.get(collection) or _Collection()
        new_vectors = [np.asarray(p.vector, dtype=float) for p in points]
        dim = col.matrix.shape[1:] if col.matrix is not None else new_vectors[0].shape
        for vec in new_vectors:
            if vec.ndim != 1 or vec.size == 0 or vec.shape != dim:
                raise ValueError(f"Vector dimension mismatch: {vec.shape} vs {dim}")

        rows = {pid: i for i, pid in enumerate(col.ids)}
        vectors = list(col.matrix) if col.matrix is not None else []

        for point, vec in zip(points, new_vectors):
            norm = np.linalg.norm(vec)
            if norm > 0:
                vec = vec / norm

            if point.id in rows:
                row = rows[point.id]
                vectors[row] = vec
                col.payloads[row] = dict(point.payload)
            else:
                rows[point.id] = len(col.ids)
                col.ids.append(point.id)
                col.payloads.append(dict(point.payload))
                vectors.append(vec)

        col.matrix = np.vstack(vectors)
        self._collections[collection] = col
        return len(points)

    def delete_source(self, collection: str, source: str) -> int:
        """Remove every point whose payload names ``source``; returns count removed"""
        col = self._collections.get(collection)
        if not col:
            return 0
        keep = [i for i, p in enumerate(col.payloads) if p.get("source") != source]
        return self._retain(collection, col, keep)

    def delete_ids(self, collection: str, ids: Iterable[str]) -> int:
        """Remove points by id; returns count removed"""
        col = self._collections.get(collection)
        if not col:
            return 0
        doomed = set(ids)
        keep = [i for i, pid in enumerate(col.ids) if pid not in doomed]
        return self._retain(collection, col, keep)

    def _retain(self, collection: str, col: _Collection, keep: List[int]) -> int:
        """Keep only the rows in ``keep``; an emptied collection is dropped"""
        removed = col.size - len(keep)
        if removed == 0:
            return 0

        if not keep:
            del self._collections[collection]
            return removed

        col.ids = [col.ids[i] for i in keep]
        col.payloads = [col.payloads[i] for i in keep]
        col.matrix = col.matrix[keep]
        return removed

    def drop(self, collection: str) -> None:
        self._collections.pop(collection, None)

    async def exists(self, collection: str) -> bool:
        return self.count(collection) > 0

    async def search(
        self,
        collection: str,
        vector: Embedding,
        limit: int,
        with_payload: bool = True,
        score_threshold: Optional[float] = None,
    ) -> List[Hit]:
        """
        Nearest neighbours by cosine similarity.

        Returns:
            Hits sorted by descending score (ties keep insertion order)

        Raises:
            ValueError: on a dimension mismatch
        """
        col = self._collections.get(collection)
        if not col or col.matrix is None or limit <= 0 or not vector:
            return []

        query = np.asarray(vector, dtype=float)
        if query.shape != col.matrix.shape[1:]:
            raise ValueError(
                f"Vector dimension mismatch: {query.shape} vs {col.matrix.shape[1:]}"
            )
        norm = np.linalg.norm(query)
        if norm > 0:
            query = query / norm

        similarities = col.matrix @ query
        order = np.argsort(-similarities, kind="stable")

        hits = []
        for idx in order:
            score = float(similarities[idx])
            if score_threshold is not None and score < score_threshold:
                break
            chunk = self._to_chunk(col.ids[idx], col.payloads[idx], with_payload)
            if chunk is None:
                continue
            hits.append(Hit(chunk=chunk, raw_score=score, round_origin=RoundOrigin.PRIMARY))
            if len(hits) >= limit:
                break

        return hits

    def _to_chunk(self, point_id: str, payload: Dict[str, Any], with_payload: bool) -> Optional[Chunk]:
        """Validate a stored payload; malformed payloads are skipped"""
        if not with_payload:
            return Chunk(id=point_id)
        try:
            parsed = ChunkPayload.model_validate(payload)
        except ValidationError as e:
            logger.warning("Skipping point %s with invalid payload: %s", point_id, e)
            return None
        return Chunk(
            id=point_id,
            text=parsed.text,
            source=parsed.source,
            sequence=parsed.chunk_index,
            source_chunk_count=parsed.total_chunks,
        )
