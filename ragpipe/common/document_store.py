"""
Document Store

Bookkeeping for uploaded documents: which files exist and the chunks each
one produced. The retrieval pipeline never reads from here; the indexer
uses it to assign chunk ids and to rebuild the vector index.

The JSON-backed repository is persisted to ~/.ragpipe/documents.json.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence

from pydantic import ValidationError

from .config import DOCUMENTS_PATH
from .schemas import StoredChunk

logger = logging.getLogger("ragpipe.common.document_store")

FIRST_CHUNK_ID = 1000


class DocumentRepository(Protocol):
    def put(self, filename: str, texts: Sequence[str], doc_type: str = "pdf") -> List[StoredChunk]:
        """Store a document's chunks (replacing any previous version) and return them with ids."""
        ...

    def get(self, filename: str) -> Optional[List[StoredChunk]]:
        ...

    def restore(self, filename: str, chunks: Sequence[StoredChunk]) -> None:
        """Put back a previously stored version verbatim, ids included."""
        ...

    def delete(self, filename: str) -> bool:
        ...

    def list_files(self) -> List[str]:
        ...

    def exists(self, filename: str) -> bool:
        ...

    def all_chunks(self) -> List[StoredChunk]:
        ...


class InMemoryDocumentRepository:
    """
    Document repository held in process memory.

    Chunk ids come from a monotonically increasing counter starting at 1000;
    ids are never reused, even after a document is deleted or replaced.
    """

    def __init__(self):
        self._documents: Dict[str, List[StoredChunk]] = {}
        self._id_counter = FIRST_CHUNK_ID

    def _next_id(self) -> str:
        chunk_id = str(self._id_counter)
        self._id_counter += 1
        return chunk_id

    def put(self, filename: str, texts: Sequence[str], doc_type: str = "pdf") -> List[StoredChunk]:
        chunks = [
            StoredChunk(
                id=self._next_id(),
                text=text,
                source=filename,
                type=doc_type,
                chunk_index=i,
                total_chunks=len(texts),
            )
            for i, text in enumerate(texts)
        ]
        self._documents[filename] = chunks
        self._persist()
        return chunks

    def get(self, filename: str) -> Optional[List[StoredChunk]]:
        chunks = self._documents.get(filename)
        return list(chunks) if chunks is not None else None

    def restore(self, filename: str, chunks: Sequence[StoredChunk]) -> None:
        self._documents[filename] = list(chunks)
        self._persist()

    def delete(self, filename: str) -> bool:
        if filename not in self._documents:
            return False
        del self._documents[filename]
        self._persist()
        return True

    def list_files(self) -> List[str]:
        return list(self._documents.keys())

    def exists(self, filename: str) -> bool:
        return filename in self._documents

    def all_chunks(self) -> List[StoredChunk]:
        return [chunk for chunks in self._documents.values() for chunk in chunks]

    def clear(self) -> None:
        """Forget every document and reset the id counter"""
        self._documents.clear()
        self._id_counter = FIRST_CHUNK_ID
        self._persist()

    def _persist(self) -> None:
        """Hook for durable subclasses"""


class JsonFileDocumentRepository(InMemoryDocumentRepository):
    """
    Document repository persisted as a single JSON file.

    File layout::

        {"documents": {"<filename>": [<chunk>, ...]}, "idCounter": 1042}
    """

    def __init__(self, path: Optional[Path] = None):
        super().__init__()
        self._path = Path(path) if path else DOCUMENTS_PATH
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> None:
        """Load documents from disk"""
        if not self._path.exists():
            return

        try:
            with open(self._path) as f:
                data = json.load(f)

            self._documents = {
                filename: [StoredChunk.model_validate(c) for c in chunks]
                for filename, chunks in data.get("documents", {}).items()
            }
            self._id_counter = int(data.get("idCounter") or FIRST_CHUNK_ID)
        except (json.JSONDecodeError, IOError, ValidationError, AttributeError, TypeError, ValueError) as e:
            logger.warning("Failed to load documents from %s: %s", self._path, e)
            self._documents = {}
            self._id_counter = FIRST_CHUNK_ID

    def _persist(self) -> None:
        """Save documents to disk"""
        self._path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "documents": {
                filename: [c.model_dump() for c in chunks]
                for filename, chunks in self._documents.items()
            },
            "idCounter": self._id_counter,
        }

        with open(self._path, "w") as f:
            json.dump(data, f, indent=2)
