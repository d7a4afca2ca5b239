"""
Document Indexer

Turns uploaded documents (already split into text chunks) into indexed
vectors and keeps the document repository in step with the vector index.

Unlike retrieval, ingestion has no degraded mode: a document whose chunks
cannot be embedded is rejected and nothing is stored.
"""

import logging
from typing import List, Sequence

from ..common.document_store import DocumentRepository
from ..common.errors import IndexingError, InputError
from ..common.models import Chunk
from ..common.ports import EmbeddingKind, EmbeddingPort
from ..common.schemas import StoredChunk
from ..common.vector_index import IndexPoint, InMemoryVectorIndex

logger = logging.getLogger("ragpipe.indexer.document_indexer")


def _to_chunk(stored: StoredChunk) -> Chunk:
    return Chunk(
        id=stored.id,
        text=stored.text,
        source=stored.source,
        sequence=stored.chunk_index,
        source_chunk_count=stored.total_chunks,
    )


def _to_point(stored: StoredChunk, vector) -> IndexPoint:
    return IndexPoint(id=stored.id, vector=vector, payload=stored.model_dump(exclude={"id"}))


class DocumentIndexer:
    """
    Adds, removes and lists documents in the corpus.

    Usage:
        indexer = DocumentIndexer(embedding, index, repository, "pdf_documents")
        await indexer.add_document("cv.pdf", chunks)
    """

    def __init__(
        self,
        embedding: EmbeddingPort,
        index: InMemoryVectorIndex,
        repository: DocumentRepository,
        collection: str,
    ):
        self._embedding = embedding
        self._index = index
        self._repository = repository
        self._collection = collection

    async def add_document(self, filename: str, chunks: Sequence[str]) -> List[Chunk]:
        """
        Embed and index a document's chunks.

        An existing document with the same name is replaced.

        Args:
            filename: Document name (used as each chunk's source)
            chunks: Chunk texts in document order

        Returns:
            The indexed chunks with their assigned ids

        Raises:
            InputError: empty filename or no non-blank chunk
            IndexingError: the chunks could not be embedded
        """
        if not filename or not filename.strip():
            raise InputError("Filename is required")

        texts = [c.strip() for c in chunks if c and c.strip()]
        if not texts:
            raise InputError(f"{filename} has no text to index")

        vectors = await self._embedding.embed(texts, EmbeddingKind.DOCUMENT)
        if not vectors or len(vectors) != len(texts) or not all(vectors):
            raise IndexingError(f"Could not embed {len(texts)} chunk(s) of {filename}")

        # New points go in under fresh ids before the previous version's
        # points are removed, so a failed upsert leaves that version intact.
        previous = self._repository.get(filename)
        stored = self._repository.put(filename, texts)
        try:
            self._index.upsert(
                self._collection,
                [_to_point(s, v) for s, v in zip(stored, vectors)],
            )
        except ValueError as e:
            if previous:
                self._repository.restore(filename, previous)
            else:
                self._repository.delete(filename)
            raise IndexingError(f"Could not index {filename}: {e}") from e

        if previous:
            self._index.delete_ids(self._collection, [c.id for c in previous])

        logger.info("Indexed %s (%d chunks)", filename, len(stored))
        return [_to_chunk(s) for s in stored]

    def delete_document(self, filename: str) -> bool:
        """
        Remove a document from the repository and the index.

        Returns:
            False if no document with that name exists
        """
        if not self._repository.exists(filename):
            return False

        removed = self._index.delete_source(self._collection, filename)
        self._repository.delete(filename)
        logger.info("Deleted %s (%d vectors)", filename, removed)
        return True

    def get_document(self, filename: str) -> List[Chunk]:
        stored = self._repository.get(filename) or []
        return [_to_chunk(s) for s in stored]

    def list_documents(self) -> List[str]:
        return self._repository.list_files()

    async def rebuild(self) -> int:
        """
        Re-embed every stored document into the index.

        Used at startup when the index lives in memory and the repository
        is persisted. Documents that fail to embed are skipped with a warning.

        Returns:
            Number of chunks indexed
        """
        self._index.drop(self._collection)

        indexed = 0
        for filename in self._repository.list_files():
            stored = self._repository.get(filename) or []
            if not stored:
                continue

            vectors = await self._embedding.embed([s.text for s in stored], EmbeddingKind.DOCUMENT)
            if not vectors or len(vectors) != len(stored) or not all(vectors):
                logger.warning("Skipping %s during rebuild: embedding failed", filename)
                continue

            try:
                indexed += self._index.upsert(
                    self._collection,
                    [_to_point(s, v) for s, v in zip(stored, vectors)],
                )
            except ValueError as e:
                logger.warning("Skipping %s during rebuild: %s", filename, e)

        logger.info("Rebuilt collection %s with %d chunks", self._collection, indexed)
        return indexed
