"""
Embedding Service

On-device embedding generation using fastembed. Query and document texts go
through the model's separate query/passage encoders.

Failures never propagate: callers get an empty result and treat it as
"skip this vector operation".
"""

import asyncio
import logging
from typing import List, Optional, Sequence

import numpy as np

from .ports import Embedding, EmbeddingKind

logger = logging.getLogger("ragpipe.common.embedding_service")

DEFAULT_MODEL = "sentence-transformers/paraphrase-multilingual-MiniLM-L12-v2"


class EmbeddingService:
    """
    Embedding port backed by fastembed.

    The fastembed model is loaded lazily on first use so that constructing
    the service never blocks or fails. A preloaded ``backend`` exposing
    ``query_embed`` and ``passage_embed`` may be injected instead.
    """

    def __init__(self, model: str = DEFAULT_MODEL, backend=None):
        self._model = model
        self._backend = backend
        self._load_failed = False

    @property
    def model(self) -> str:
        return self._model

    def _get_backend(self):
        """Load the fastembed model once; None if it cannot be loaded"""
        if self._backend is not None or self._load_failed:
            return self._backend

        try:
            from fastembed import TextEmbedding

            self._backend = TextEmbedding(model_name=self._model)
            logger.info("Loaded embedding model %s", self._model)
        except Exception as e:
            logger.warning("Could not load embedding model %s: %s", self._model, e)
            self._load_failed = True

        return self._backend

    @property
    def is_available(self) -> bool:
        """Check if embedding model is available"""
        return self._get_backend() is not None

    def embed_sync(self, texts: Sequence[str], kind: EmbeddingKind) -> List[Embedding]:
        """
        Generate embeddings for a list of texts.

        Args:
            texts: Strings to embed
            kind: QUERY or DOCUMENT encoder

        Returns:
            Embedding vectors aligned with ``texts``, or [] on failure
        """
        if not texts:
            return []

        backend = self._get_backend()
        if backend is None:
            return []

        try:
            if kind == EmbeddingKind.QUERY:
                vectors = list(backend.query_embed(list(texts)))
            else:
                vectors = list(backend.passage_embed(list(texts)))
        except Exception as e:
            logger.warning("Embedding %d text(s) failed: %s", len(texts), e)
            return []

        if len(vectors) != len(texts):
            logger.warning("Embedding returned %d vectors for %d texts", len(vectors), len(texts))
            return []

        return [np.asarray(v, dtype=float).tolist() for v in vectors]

    async def embed(self, texts: Sequence[str], kind: EmbeddingKind) -> List[Embedding]:
        """Embedding port: ``embed_sync`` off the event loop"""
        return await asyncio.to_thread(self.embed_sync, texts, kind)


async def embed_one(port, text: str, kind: EmbeddingKind) -> Embedding:
    """
    Embed a single text through any EmbeddingPort.

    Returns [] instead of raising when the port fails or returns nothing.
    """
    if not text:
        return []
    try:
        embeddings = await port.embed([text], kind)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.warning("Embedding port failed: %s", e)
        return []
    if not embeddings:
        return []
    return list(embeddings[0] or [])


def combine_embeddings(
    embeddings: Sequence[Embedding],
    weights: Optional[Sequence[float]] = None,
) -> Embedding:
    """
    Weighted element-wise sum of embeddings, L2-normalized.

    Default weights are uniform (1/n). A zero-norm result is returned as is.

    Raises:
        ValueError: on mismatched dimensions or weight count
    """
    if not embeddings:
        return []

    matrix = np.asarray(embeddings, dtype=float)
    if matrix.ndim != 2:
        raise ValueError("All embeddings must have the same dimension")

    if weights is None:
        w = np.full(len(embeddings), 1.0 / len(embeddings))
    else:
        w = np.asarray(weights, dtype=float)
        if w.shape != (len(embeddings),):
            raise ValueError(
                f"Expected {len(embeddings)} weights, got {len(weights)}"
            )

    combined = w @ matrix
    norm = np.linalg.norm(combined)
    if norm > 0:
        combined = combined / norm

    return combined.tolist()
